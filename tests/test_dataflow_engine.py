# tests/test_dataflow_engine.py
"""
Tests for the backward liveness fixpoint engine.
"""

from dataclasses import dataclass, replace

import pytest

from l2_liveness.ctrlflow_graph import build_cfg
from l2_liveness.dataflow_engine import (
    IterationOrder,
    LivenessSolver,
    PowersetLattice,
    check_fixpoint,
    solve,
    verify_fixpoint,
)
from l2_liveness.errors import FixpointViolation, UnsupportedInstruction
from l2_liveness.ir import Call, Instruction
from l2_liveness.transfer import Effects
from tests.conftest import (
    ARGS,
    CALLEE_SAVED,
    RET,
    RETURN_LIVE,
    assign,
    cjump,
    fn,
    label,
    lbl,
    num,
    reg,
    var,
)


@dataclass(frozen=True)
class Halt(Instruction):
    kind = "halt"


def run(function, known_functions=(), **kw):
    return solve(build_cfg(function, known_functions), **kw)


class TestLattice:

    def test_bottom_and_join(self):
        lat = PowersetLattice()
        assert lat.bottom() == frozenset()
        assert lat.join(frozenset("a"), frozenset("b")) == frozenset("ab")
        assert lat.join_all([]) == frozenset()
        assert lat.leq(frozenset("a"), frozenset("ab"))
        assert not lat.leq(frozenset("ab"), frozenset("a"))


class TestScenarios:

    def test_lone_return(self):
        result = run(fn(RET))
        assert result.live_in(0) == RETURN_LIVE
        assert result.live_out(0) == frozenset()

    def test_dead_definition(self):
        result = run(fn(assign(var("x"), num(5)), RET))
        assert "x" not in result.live_in(0)
        assert result.live_in(0) == RETURN_LIVE
        assert result.live_out(0) == result.live_in(1) == RETURN_LIVE

    def test_copy_chain(self):
        result = run(fn(assign(var("x"), num(5)), assign(var("y"), var("x")), RET))
        assert "x" in result.live_in(1)
        assert result.live_in(1) == RETURN_LIVE | {"x"}
        assert result.live_out(1) == result.live_in(2)
        assert "x" not in result.live_in(0)
        assert result.live_in(0) == RETURN_LIVE

    def test_cjump_with_equal_targets(self):
        f = fn(
            cjump(var("x"), "<", num(1), "l", "l"),
            label("l"),
            assign(reg("rax"), var("y")),
            RET,
        )
        result = run(f)
        assert result.successors[0] == (1,)
        assert result.live_out(0) == result.live_in(1) == CALLEE_SAVED | {"y"}
        assert result.live_in(0) == CALLEE_SAVED | {"x", "y"}

    def test_call_argument_window(self):
        result = run(fn(Call(lbl("g"), 8), RET), known_functions=["g"])
        assert result.effects[0].gen == frozenset(ARGS)
        assert result.live_in(0) == CALLEE_SAVED | set(ARGS)

    def test_indirect_call_argument_window(self):
        result = run(fn(Call(reg("r10"), 8), RET))
        assert result.effects[0].gen == frozenset(ARGS) | {"r10"}
        assert result.live_in(0) == CALLEE_SAVED | set(ARGS) | {"r10"}


class TestControlFlow:

    def test_loop(self, loop_function):
        result = run(loop_function)
        assert result.live_in(3) == CALLEE_SAVED | {"x", "rdi"}
        assert result.live_out(3) == CALLEE_SAVED | {"x", "rdi"}
        assert result.live_in(0) == CALLEE_SAVED | {"rdi"}
        assert result.live_in(5) == CALLEE_SAVED | {"x"}

    def test_diamond(self, diamond_function):
        result = run(diamond_function)
        assert result.live_in(6) == CALLEE_SAVED | {"b"}
        assert result.live_in(3) == CALLEE_SAVED | {"a"}
        assert result.live_in(0) == CALLEE_SAVED | {"rdi"}
        assert "a" not in result.live_in(0)

    def test_unreachable_code_still_analysed(self):
        result = run(fn(RET, assign(reg("rax"), var("z")), RET))
        assert result.live_in(1) == CALLEE_SAVED | {"z"}
        assert result.live_out(0) == frozenset()

    def test_fall_off_end_has_empty_out(self):
        result = run(fn(assign(var("x"), var("y"))))
        assert result.live_out(0) == frozenset()
        assert result.live_in(0) == frozenset({"y"})

    def test_empty_function(self):
        result = run(fn())
        assert len(result) == 0
        assert result.passes == 1


class TestProperties:

    def test_result_is_fixpoint(self, loop_function, diamond_function):
        for f in (loop_function, diamond_function):
            assert verify_fixpoint(run(f)) == []

    def test_idempotent(self, diamond_function):
        cfg = build_cfg(diamond_function)
        assert solve(cfg) == solve(cfg)

    def test_order_does_not_change_result(self, loop_function):
        reverse = run(loop_function, order=IterationOrder.REVERSE)
        forward = run(loop_function, order=IterationOrder.FORWARD)
        assert reverse == forward

    def test_reverse_order_converges_in_two_passes_on_straight_line(self):
        f = fn(assign(var("x"), num(5)), assign(var("y"), var("x")), RET)
        assert run(f, order=IterationOrder.REVERSE).passes == 2
        assert run(f, order=IterationOrder.FORWARD).passes == 4

    def test_only_known_names(self, diamond_function):
        result = run(diamond_function)
        assert result.names() <= RETURN_LIVE | {"a", "b", "rdi"}

    def test_exit_instructions_have_empty_out(self, diamond_function):
        result = run(diamond_function)
        for i, targets in enumerate(result.successors):
            if not targets:
                assert result.live_out(i) == frozenset()

    def test_items(self):
        result = run(fn(assign(var("x"), num(5)), RET))
        rows = list(result.items())
        assert [i for i, _, _ in rows] == [0, 1]
        assert rows[1][1] == RETURN_LIVE


class TestTransferHooks:

    def test_custom_transfer(self, loop_function):
        result = solve(build_cfg(loop_function), lambda ins: (set(), set()))
        assert all(not fin for fin in result.facts_in)
        assert all(isinstance(e, Effects) for e in result.effects)

    def test_error_carries_location(self):
        cfg = build_cfg(fn(RET, Halt(), name="h"))
        with pytest.raises(UnsupportedInstruction) as info:
            LivenessSolver(cfg).solve()
        assert info.value.index == 1
        assert info.value.function == "h"


class TestFixpointCheck:

    def test_check_passes_through(self, loop_function):
        result = run(loop_function)
        assert check_fixpoint(result) is result

    def test_tampered_result_is_rejected(self):
        result = run(fn(assign(var("x"), num(5)), RET))
        broken = replace(result, facts_in=(frozenset({"x"}),) + result.facts_in[1:])
        assert verify_fixpoint(broken) == [0]
        with pytest.raises(FixpointViolation) as info:
            check_fixpoint(broken)
        assert info.value.indices == [0]
