"""Dependency graph between component documents."""

from __future__ import annotations

import heapq
from collections import deque
from typing import Dict, FrozenSet, Iterable, List, Set

from .errors import CyclicDependencyError


class DependencyGraph:
    """Direct structural references from each document to other documents.

    Edges are collected while documents are resolved; once :meth:`freeze` is
    called the graph is read-only and closures can be queried.
    """

    def __init__(self) -> None:
        self._edges: Dict[str, Set[str]] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def documents(self) -> List[str]:
        """Sorted names of every document added to the graph."""
        return sorted(self._edges)

    def add_document(self, name: str, targets: Iterable[str] = ()) -> None:
        """Record ``name`` and its direct dependencies. Self-references are dropped."""
        if self._frozen:
            raise RuntimeError("dependency graph is frozen")
        edges = self._edges.setdefault(name, set())
        edges.update(target for target in targets if target != name)

    def freeze(self) -> None:
        self._frozen = True

    def dependencies(self, name: str) -> FrozenSet[str]:
        return frozenset(self._edges.get(name, ()))

    def targets(self) -> Set[str]:
        """Every document referenced by at least one edge."""
        found: Set[str] = set()
        for edges in self._edges.values():
            found.update(edges)
        return found

    def closure(self, name: str) -> Set[str]:
        """Return ``name`` plus every document reachable from it."""
        seen = {name}
        pending = deque([name])
        while pending:
            current = pending.popleft()
            for dep in self._edges.get(current, ()):
                if dep not in seen:
                    seen.add(dep)
                    pending.append(dep)
        return seen

    def sorted_closure(self, name: str) -> List[str]:
        """Order the closure of ``name`` so dependencies precede their dependents.

        Ties are broken by ascending name, which keeps output reproducible.
        """
        members = self.closure(name)
        remaining: Dict[str, Set[str]] = {
            node: set(self._edges.get(node, ())) & members for node in members
        }
        dependents: Dict[str, List[str]] = {node: [] for node in members}
        for node, deps in remaining.items():
            for dep in deps:
                dependents[dep].append(node)

        ready = [node for node, deps in remaining.items() if not deps]
        heapq.heapify(ready)
        order: List[str] = []
        while ready:
            node = heapq.heappop(ready)
            order.append(node)
            for dependent in dependents[node]:
                deps = remaining[dependent]
                deps.discard(node)
                if not deps:
                    heapq.heappush(ready, dependent)

        if len(order) != len(members):
            raise CyclicDependencyError(name, members.difference(order))
        return order


__all__ = ["DependencyGraph"]
