"""
Dependency resolver for step definitions.

Kahn's algorithm over the forward graph (predecessor → dependent). Ready
nodes are released in the input order of the step list, so the same input
always yields the same order.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Sequence

from caseflow.core.exceptions import CircularDependencyError
from caseflow.services.schedule_types import StepDefinition

logger = logging.getLogger(__name__)


def find_dangling_dependencies(steps: Sequence[StepDefinition]) -> list[tuple[int, int]]:
    """Return (step_id, missing_id) pairs for predecessors not in ``steps``."""
    known = {s.id for s in steps}
    return [
        (step.id, dep_id)
        for step in steps
        for dep_id in step.depends_on
        if dep_id not in known
    ]


def kahn_order(nodes: Sequence[tuple[int, Sequence[int]]]) -> list[int]:
    """Order ``(node_id, predecessor_ids)`` pairs so predecessors come first.

    Predecessor ids that are not themselves nodes are ignored.

    Raises:
        CircularDependencyError: if some nodes can never become ready.
    """
    dependents: dict[int, list[int]] = {node_id: [] for node_id, _ in nodes}
    in_degree: dict[int, int] = {node_id: 0 for node_id, _ in nodes}

    for node_id, predecessors in nodes:
        for dep_id in predecessors:
            if dep_id in dependents:
                dependents[dep_id].append(node_id)
                in_degree[node_id] += 1

    queue = deque(node_id for node_id, _ in nodes if in_degree[node_id] == 0)
    order: list[int] = []

    while queue:
        current = queue.popleft()
        order.append(current)
        for dependent in dependents[current]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    if len(order) < len(nodes):
        unresolved = [node_id for node_id, _ in nodes if in_degree[node_id] > 0]
        logger.error("Circular dependency among steps: %s", unresolved)
        raise CircularDependencyError(unresolved)

    return order


def topological_order(steps: Sequence[StepDefinition]) -> list[int]:
    """Return step ids so that every predecessor precedes its dependents.

    Predecessor ids that are not part of ``steps`` are ignored here; the
    schedule engine rejects them beforehand.
    """
    return kahn_order([(s.id, s.depends_on) for s in steps])
