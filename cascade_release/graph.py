"""Dependency graph utilities.

Decides which packages need a release and in which order to visit them.
A version bump ripples outward: when package A is released, every package
depending on A (directly or transitively) gets a release too, so its
manifest can pick up A's new version.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable

from .errors import DependencyCycleError
from .models import Package

# Package name → Package, in the order packages were discovered.
DependencyGraph = dict[str, Package]


def build_graph(packages: Iterable[Package]) -> DependencyGraph:
    """Index packages by name, keeping discovery order."""
    return {package.name: package for package in packages}


def dependents_closure(graph: DependencyGraph, names: Iterable[str]) -> set[str]:
    """Return ``names`` plus every package that transitively depends on them.

    Example:
        If C depends on B and B depends on A:
        dependents_closure(graph, ["A"]) → {"A", "B", "C"}
    """
    # Track reverse dependencies (who depends on each package)
    reverse_deps: dict[str, list[str]] = {name: [] for name in graph}
    for name, package in graph.items():
        for dep in package.deps:
            if dep in reverse_deps:
                reverse_deps[dep].append(name)

    closure = {name for name in names if name in graph}
    queue = list(closure)
    while queue:
        node = queue.pop(0)
        for dependent in reverse_deps[node]:
            if dependent not in closure:
                closure.add(dependent)
                queue.append(dependent)
    return closure


def graph_order(graph: DependencyGraph, names: Iterable[str]) -> list[Package]:
    """Topologically sort the packages in ``names`` by their internal deps.

    Uses Kahn's algorithm so that every package comes after all of its
    dependencies. Among packages that are ready at the same time, the one
    discovered first goes first, which keeps the output stable across runs.

    Args:
        graph: Full dependency graph.
        names: Packages to order. Dependencies outside this set are ignored
               (they aren't being released).

    Returns:
        Packages in visiting order (dependencies first).

    Raises:
        DependencyCycleError: If a dependency cycle is detected.

    Example:
        If A depends on B, and B depends on C:
        graph_order(graph, {A, B, C}) → [C, B, A]
    """
    selected = set(names)
    position = {name: index for index, name in enumerate(graph)}
    members = [name for name in graph if name in selected]

    # Count incoming edges (dependencies) for each package
    in_degree = {name: 0 for name in members}
    reverse_deps: dict[str, list[str]] = {name: [] for name in members}
    for name in members:
        for dep in dict.fromkeys(graph[name].deps):
            if dep in in_degree:
                in_degree[name] += 1
                reverse_deps[dep].append(name)

    # Ready packages are kept in a heap keyed by discovery position
    ready = [position[name] for name in members if in_degree[name] == 0]
    heapq.heapify(ready)
    order: list[Package] = []
    names_by_position = list(graph)

    while ready:
        node = names_by_position[heapq.heappop(ready)]
        order.append(graph[node])
        for dependent in reverse_deps[node]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(ready, position[dependent])

    # If we didn't process all packages, there must be a cycle
    if len(order) != len(members):
        remaining = sorted(set(members) - {package.name for package in order})
        raise DependencyCycleError(f"Dependency cycle detected involving: {remaining}")

    return order
