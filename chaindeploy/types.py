import click


class MinInt(click.ParamType):
    name = "minint"

    def __init__(self, min_value):
        self.min_value = min_value

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            ivalue = value
        else:
            try:
                ivalue = int(value)
            except ValueError:
                self.fail(f"{value} is not a valid integer", param, ctx)
        if ivalue < self.min_value:
            self.fail(
                f"{value} is less than the minimum allowed value of {self.min_value}", param, ctx
            )
        return ivalue


class Tag(click.ParamType):
    """A task tag; tags are plain words, so whitespace and commas are rejected."""

    name = "tag"

    def convert(self, value, param, ctx):
        value = str(value).strip()
        if not value or any(c.isspace() or c == "," for c in value):
            self.fail(f"'{value}' is not a valid tag", param, ctx)
        return value
