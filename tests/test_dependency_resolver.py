"""
tests/test_dependency_resolver.py - topological ordering of step definitions.

Covers:
    1. Linear chain ordered predecessor-first
    2. Independent steps keep input order
    3. Diamond resolves with both branches before the join
    4. Unknown predecessor ids are ignored by the resolver
    5. Cycles (including self-loops) raise CircularDependencyError
    6. Dangling references are listed in input order
"""

import pytest

from caseflow.core.exceptions import CircularDependencyError
from caseflow.services.dependency_resolver import (
    find_dangling_dependencies,
    kahn_order,
    topological_order,
)
from caseflow.services.schedule_types import StepDefinition


def _step(step_id, *deps, basis="prev", offset=1):
    return StepDefinition(
        id=step_id, seq=step_id, name=f"S{step_id}",
        basis=basis, offset_days=offset, depends_on=deps,
    )


def test_linear_chain():
    steps = [_step(3, 2), _step(1, basis="goal", offset=-10), _step(2, 1)]
    assert topological_order(steps) == [1, 2, 3]


def test_independent_steps_keep_input_order():
    steps = [_step(5, basis="goal"), _step(2, basis="goal"), _step(9, basis="goal")]
    assert topological_order(steps) == [5, 2, 9]


def test_diamond():
    steps = [_step(1, basis="goal"), _step(2, 1), _step(3, 1), _step(4, 2, 3)]
    order = topological_order(steps)
    assert order == [1, 2, 3, 4]


def test_unknown_predecessor_ignored():
    steps = [_step(1, 99), _step(2, 1)]
    assert topological_order(steps) == [1, 2]


def test_cycle_raises_with_unresolved_ids():
    steps = [_step(1, basis="goal"), _step(2, 3), _step(3, 2), _step(4, 3)]
    with pytest.raises(CircularDependencyError) as exc_info:
        topological_order(steps)
    assert exc_info.value.unresolved_ids == [2, 3, 4]
    assert exc_info.value.code == "ERR_SCHEDULE_CIRCULAR_DEPENDENCY"


def test_self_loop_is_a_cycle():
    with pytest.raises(CircularDependencyError):
        topological_order([_step(1, 1)])


def test_kahn_order_on_plain_pairs():
    assert kahn_order([(10, ()), (20, (10,)), (30, (10,))]) == [10, 20, 30]


def test_find_dangling_dependencies():
    steps = [_step(1, 7), _step(2, 1, 8), _step(3, 2)]
    assert find_dangling_dependencies(steps) == [(1, 7), (2, 8)]
