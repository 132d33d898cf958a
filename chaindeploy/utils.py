import json
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from chaindeploy.constants import EXPLORER_APIS
from chaindeploy.networks import NetworkProfile

STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> Any:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def _write_json(data: Any, filepath: Path) -> Path:
    """
    Writes JSON next to its destination first and then moves it into place,
    so readers never observe a partially written file.
    """
    filepath.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(
        dir=filepath.parent, prefix=f".{filepath.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w") as file:
            json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)
        os.replace(temp_path, filepath)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise
    return filepath


def check_explorer_api_key(profile: NetworkProfile) -> bool:
    """
    Checks that the appropriate explorer API key environment variable is set for
    a live network. A missing key only disables verification.
    """
    if not profile.is_live:
        # unnecessary for local deployment
        return True
    if profile.explorer_api_key:
        return True
    explorer = EXPLORER_APIS.get(profile.name)
    envvar = explorer[1] if explorer else "explorer API key"
    print(f"WARNING: {envvar} is not set; contracts will not be verified.")
    return False

