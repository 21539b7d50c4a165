"""Bidirectional cell dependency index"""

from __future__ import annotations

import logging
from collections import deque
from typing import Dict, Iterable, List, Set

from core.models import CellAddr


logger = logging.getLogger(__name__)


class DependencyGraph:
    """Which cells a formula reads, and which formulas read a cell.

    `dependencies[a]` holds the cells a's formula references and
    `dependents[b]` holds the cells whose formulas reference b. Every
    mutation updates both maps so they stay inverses of each other.
    """

    def __init__(self):
        self._dependencies: Dict[CellAddr, Set[CellAddr]] = {}
        self._dependents: Dict[CellAddr, Set[CellAddr]] = {}

    def add_dependency(self, cell: CellAddr, dependency: CellAddr):
        self._dependencies.setdefault(cell, set()).add(dependency)
        self._dependents.setdefault(dependency, set()).add(cell)

    def remove_dependencies(self, cell: CellAddr) -> Set[CellAddr]:
        """Drop every outgoing edge of cell and return what it depended on"""
        previous = self._dependencies.pop(cell, set())
        for dependency in previous:
            readers = self._dependents.get(dependency)
            if readers is None:
                continue
            readers.discard(cell)
            if not readers:
                del self._dependents[dependency]
        return previous

    def set_dependencies(self, cell: CellAddr, dependencies: Iterable[CellAddr]) -> Set[CellAddr]:
        """Replace cell's edges, returning the previous set"""
        previous = self.remove_dependencies(cell)
        for dependency in dependencies:
            self.add_dependency(cell, dependency)
        return previous

    def get_dependencies(self, cell: CellAddr) -> Set[CellAddr]:
        return set(self._dependencies.get(cell, set()))

    def get_dependents(self, cell: CellAddr) -> Set[CellAddr]:
        return set(self._dependents.get(cell, set()))

    def clear(self):
        self._dependencies.clear()
        self._dependents.clear()

    def edge_count(self) -> int:
        return sum(len(deps) for deps in self._dependencies.values())

    def has_cycle_from(self, start: CellAddr) -> bool:
        """Depth-first search over dependency edges with a per-path stack.

        A cell is circular only when it is reached again while still on
        the current path; cells whose subtrees were fully explored are
        never revisited, so diamonds are neither false positives nor
        exponential.
        """
        on_path: Set[CellAddr] = {start}
        finished: Set[CellAddr] = set()
        stack = [(start, iter(sorted(self._dependencies.get(start, set()), key=CellAddr.sort_key)))]

        while stack:
            node, children = stack[-1]
            child = next(children, None)
            if child is None:
                stack.pop()
                on_path.discard(node)
                finished.add(node)
                continue
            if child in on_path:
                logger.debug("Cycle through %s reached from %s", child, start)
                return True
            if child in finished:
                continue
            on_path.add(child)
            stack.append((child, iter(sorted(self._dependencies.get(child, set()), key=CellAddr.sort_key))))

        return False

    def affected_cells(self, changed: Iterable[CellAddr]) -> Set[CellAddr]:
        """Changed cells plus everything that transitively reads them"""
        affected: Set[CellAddr] = set()
        queue = deque(changed)
        while queue:
            cell = queue.popleft()
            if cell in affected:
                continue
            affected.add(cell)
            queue.extend(self._dependents.get(cell, set()) - affected)
        return affected

    def calculation_order(self, changed: Iterable[CellAddr]) -> List[CellAddr]:
        """Topological order of the affected subgraph (Kahn's algorithm).

        Each affected cell appears once, after every affected cell it
        depends on, so cells with several changed ancestors never see a
        stale input.
        """
        affected = self.affected_cells(changed)
        in_degree: Dict[CellAddr, int] = {
            cell: len(self._dependencies.get(cell, set()) & affected)
            for cell in affected
        }

        queue = deque(sorted(
            (cell for cell, degree in in_degree.items() if degree == 0),
            key=CellAddr.sort_key,
        ))
        order: List[CellAddr] = []

        while queue:
            cell = queue.popleft()
            order.append(cell)
            for dependent in sorted(self._dependents.get(cell, set()) & affected, key=CellAddr.sort_key):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(order) < len(affected):
            remaining = sorted(affected - set(order), key=CellAddr.sort_key)
            logger.warning("Cells left out of calculation order by a cycle: %s", remaining)

        logger.debug("Calculation order: %s", [str(cell) for cell in order])
        return order
