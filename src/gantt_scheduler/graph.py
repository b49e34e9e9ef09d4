from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterable, Sequence

from .errors import CyclicDependencyError, ProjectValidationError
from .models import Link, Task


@dataclass(frozen=True)
class Cycle:
    """Represents a detected cycle path for error reporting."""

    path: list[str]
    links: list[Link]

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return " -> ".join(self.path)


class DependencyGraph:
    """
    Adjacency index over tasks and links, built once per scheduling pass.

    Predecessor and successor lookups are O(1) per task so the topological
    sort and both CPM passes stay O(V + E).
    """

    def __init__(self, tasks: Sequence[Task], links: Sequence[Link]) -> None:
        self.order: list[str] = [task.id for task in tasks]
        self.tasks: dict[str, Task] = {task.id: task for task in tasks}
        self.links: list[Link] = list(links)
        self.incoming: dict[str, list[Link]] = {task_id: [] for task_id in self.order}
        self.outgoing: dict[str, list[Link]] = {task_id: [] for task_id in self.order}
        for link in self.links:
            self.outgoing[link.from_id].append(link)
            self.incoming[link.to_id].append(link)

    @classmethod
    def build(cls, tasks: Sequence[Task], links: Sequence[Link]) -> "DependencyGraph":
        """Validate ids and references, then index the graph."""
        validate_references(tasks, links)
        return cls(tasks, links)

    def predecessors(self, task_id: str) -> list[Link]:
        return self.incoming.get(task_id, [])

    def successors(self, task_id: str) -> list[Link]:
        return self.outgoing.get(task_id, [])

    def find_cycle(self) -> Cycle | None:
        state: dict[str, str] = {}
        stack: list[str] = []
        via: list[Link] = []
        positions: dict[str, int] = {}

        def dfs(node_id: str) -> Cycle | None:
            state[node_id] = "visiting"
            positions[node_id] = len(stack)
            stack.append(node_id)

            for link in self.outgoing.get(node_id, []):
                next_state = state.get(link.to_id)
                if next_state == "visiting":
                    start = positions[link.to_id]
                    return Cycle(stack[start:] + [link.to_id], via[start:] + [link])
                if next_state is None:
                    via.append(link)
                    found = dfs(link.to_id)
                    if found:
                        return found
                    via.pop()

            stack.pop()
            positions.pop(node_id, None)
            state[node_id] = "done"
            return None

        for node_id in self.order:
            if state.get(node_id) is None:
                found = dfs(node_id)
                if found:
                    return found
        return None

    def assert_acyclic(self) -> None:
        cycle = self.find_cycle()
        if cycle:
            raise CyclicDependencyError(
                cycle.path,
                [f"{link.id} ({link.from_id} -> {link.to_id})" for link in cycle.links],
            )

    def topological_order(self) -> list[str]:
        """Kahn's algorithm seeded in input order; raises CyclicDependencyError on a cycle."""

        self.assert_acyclic()
        indegree: dict[str, int] = {task_id: len(self.incoming[task_id]) for task_id in self.order}
        queue = deque(task_id for task_id in self.order if indegree[task_id] == 0)
        result: list[str] = []

        while queue:
            current = queue.popleft()
            result.append(current)
            for link in self.outgoing[current]:
                indegree[link.to_id] -= 1
                if indegree[link.to_id] == 0:
                    queue.append(link.to_id)

        if len(result) != len(self.order):
            # Should not happen because cycles are rejected above.
            placed = set(result)
            raise CyclicDependencyError([task_id for task_id in self.order if task_id not in placed])
        return result

    def restricted_to(self, tasks: Iterable[Task]) -> "DependencyGraph":
        """
        Graph over the given task versions and the links between them.

        Input order is kept, so a restricted graph sorts the same way as the
        full one.
        """
        replacements = {task.id: task for task in tasks}
        kept = [replacements[task_id] for task_id in self.order if task_id in replacements]
        links = [link for link in self.links if link.from_id in replacements and link.to_id in replacements]
        return DependencyGraph(kept, links)


def validate_references(tasks: Sequence[Task], links: Sequence[Link]) -> None:
    """Reject duplicate ids, unknown link endpoints, self links and links to summary tasks."""

    lookup: dict[str, Task] = {}
    for task in tasks:
        if task.id in lookup:
            raise ProjectValidationError(f"Duplicate task id '{task.id}'")
        lookup[task.id] = task

    for task in tasks:
        if task.parent_id is not None:
            parent = lookup.get(task.parent_id)
            if parent is None:
                raise ProjectValidationError(f"Task '{task.id}' has unknown parent '{task.parent_id}'")
            if not parent.is_group:
                raise ProjectValidationError(f"Task '{task.id}' has non-group parent '{task.parent_id}'")

    for task in tasks:
        seen = [task.id]
        parent_id = task.parent_id
        while parent_id is not None:
            if parent_id in seen:
                raise ProjectValidationError(f"Hierarchy cycle detected: {' -> '.join(seen + [parent_id])}")
            seen.append(parent_id)
            parent_id = lookup[parent_id].parent_id

    link_ids: set[str] = set()
    for link in links:
        if link.id in link_ids:
            raise ProjectValidationError(f"Duplicate link id '{link.id}'")
        link_ids.add(link.id)
        for end_id in (link.from_id, link.to_id):
            end = lookup.get(end_id)
            if end is None:
                raise ProjectValidationError(f"Link '{link.id}' references unknown task '{end_id}'")
            if end.is_group:
                raise ProjectValidationError(f"Link '{link.id}' references summary task '{end_id}'")
        if link.from_id == link.to_id:
            raise CyclicDependencyError([link.from_id, link.to_id], [f"{link.id} ({link.from_id} -> {link.to_id})"])
