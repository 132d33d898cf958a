import heapq
from collections import defaultdict
from typing import Dict, Iterable, List, Set

from chaindeploy.exceptions import CyclicDependencyError, InvalidTaskError, UnresolvedTagError
from chaindeploy.params import DeploymentTask


class TaskGraph:
    """
    Directed graph over deployment tasks: an edge runs from every task declaring
    a tag to every task depending on that tag. Tasks are identified by their
    declaration index, which also breaks ties between unordered tasks.
    """

    def __init__(self, tasks: Iterable[DeploymentTask]):
        self.tasks = list(tasks)
        self._check_names()
        self._providers = self._index_tags()
        self._dependencies = self._link()

    def _check_names(self) -> None:
        seen = set()
        for task in self.tasks:
            if task.contract_name in seen:
                raise InvalidTaskError(f"{task.contract_name} is declared more than once.")
            seen.add(task.contract_name)

    def _index_tags(self) -> Dict[str, List[int]]:
        """tag -> indices of the tasks declaring it"""
        providers = defaultdict(list)
        for index, task in enumerate(self.tasks):
            for tag in task.tags:
                providers[tag].append(index)
        return providers

    def _link(self) -> Dict[int, Set[int]]:
        """task index -> indices of the tasks that must run before it"""
        dependencies = dict()
        for index, task in enumerate(self.tasks):
            required = set()
            for tag in sorted(task.dependencies):
                if tag not in self._providers:
                    raise UnresolvedTagError(
                        f"{task.contract_name} depends on tag '{tag}', "
                        "which no task declares."
                    )
                required.update(self._providers[tag])
            dependencies[index] = required
        return dependencies

    def _closure(self, indices: Iterable[int]) -> Set[int]:
        selected = set()
        stack = list(indices)
        while stack:
            index = stack.pop()
            if index in selected:
                continue
            selected.add(index)
            stack.extend(self._dependencies[index])
        return selected

    def _sort(self, indices: Set[int]) -> List[DeploymentTask]:
        """Kahn's algorithm, always releasing the earliest declared ready task first."""
        remaining = {index: set(self._dependencies[index]) & indices for index in indices}
        dependents = defaultdict(set)
        for index, required in remaining.items():
            for dependency in required:
                dependents[dependency].add(index)

        ready = [index for index, required in remaining.items() if not required]
        heapq.heapify(ready)
        ordered = list()
        while ready:
            index = heapq.heappop(ready)
            ordered.append(index)
            for dependent in dependents[index]:
                required = remaining[dependent]
                required.discard(index)
                if not required:
                    heapq.heappush(ready, dependent)

        if len(ordered) != len(indices):
            blocked = sorted(set(indices) - set(ordered))
            names = ", ".join(self.tasks[index].contract_name for index in blocked)
            raise CyclicDependencyError(f"Circular tag dependency between: {names}")

        return [self.tasks[index] for index in ordered]

    def order(self) -> List[DeploymentTask]:
        """Returns every task in a deterministic, dependency-respecting order."""
        return self._sort(set(range(len(self.tasks))))

    def select(self, tags: Iterable[str]) -> List[DeploymentTask]:
        """Returns the tasks carrying any of the tags plus everything they depend on, in order."""
        tags = list(tags)
        for tag in tags:
            if tag not in self._providers:
                raise UnresolvedTagError(f"No task is tagged '{tag}'.")
        selected = self._closure(index for tag in tags for index in self._providers[tag])
        # a cycle anywhere is a configuration error, even outside the selection
        self.order()
        return self._sort(selected)


def order(tasks: Iterable[DeploymentTask]) -> List[DeploymentTask]:
    return TaskGraph(tasks).order()
