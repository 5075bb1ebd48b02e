# tests/test_ir.py
"""
Tests for the L2 IR model: operand normalisation, construction-time
shape checks and the function/program containers.
"""

import pytest

from l2_liveness.errors import DuplicateLabel, MalformedInstruction, MalformedProgram
from l2_liveness.ir import (
    INSTRUCTION_KINDS,
    Assign,
    Call,
    CJump,
    Cisc,
    Compare,
    Function,
    Goto,
    IncDec,
    Label,
    LabelDef,
    Memory,
    Number,
    Program,
    Register,
    Return,
    StackArg,
    Variable,
)
from tests.conftest import RET, assign, fn, goto, label, lbl, mem, num, reg, var


class TestOperands:

    def test_label_strips_colon(self):
        assert Label(":loop") == Label("loop")
        assert str(Label("loop")) == ":loop"

    def test_register_and_variable_are_distinct(self):
        assert Register("x") != Variable("x")

    def test_number_name(self):
        assert Number(-3).name == "-3"

    def test_memory_rendering(self):
        assert str(mem(reg("rsp"), 8)) == "mem rsp 8"

    def test_memory_accepts_number_offset(self):
        assert Memory(var("p"), Number(16)).offset == 16

    def test_memory_rejects_label_base(self):
        with pytest.raises(MalformedInstruction):
            Memory(lbl("x"), 0)

    def test_memory_rejects_non_integer_offset(self):
        with pytest.raises(MalformedInstruction, match="offset"):
            Memory(var("p"), var("q"))
        with pytest.raises(MalformedInstruction):
            Memory(var("p"), True)


class TestInstructions:

    def test_closed_set(self):
        assert len(INSTRUCTION_KINDS) == 10
        assert len({k.kind for k in INSTRUCTION_KINDS}) == 10

    def test_assign_list_sources_become_tuple(self):
        ins = Assign(var("x"), "<-", [num(1)])
        assert ins.sources == (num(1),)

    def test_assign_requires_source(self):
        with pytest.raises(MalformedInstruction):
            Assign(var("x"), "<-", ())

    def test_assign_rejects_unknown_operator(self):
        with pytest.raises(MalformedInstruction, match="unknown operator"):
            assign(var("x"), num(1), op="/=")

    def test_assign_rejects_two_memory_operands(self):
        with pytest.raises(MalformedInstruction, match="memory"):
            assign(mem(var("a")), mem(var("b")))

    def test_assign_rejects_number_destination(self):
        with pytest.raises(MalformedInstruction):
            assign(num(1), var("x"))

    def test_compound_flag(self):
        assert assign(var("x"), num(1), op="+=").is_compound
        assert not assign(var("x"), num(1)).is_compound

    def test_cjump_missing_label(self):
        with pytest.raises(MalformedInstruction, match="false_label"):
            CJump(var("a"), num(1), "<", Label("t"), None)

    def test_cjump_accepts_string_labels(self):
        ins = CJump(var("a"), num(1), "<=", ":t", "f")
        assert ins.targets == (Label("t"), Label("f"))

    def test_cjump_rejects_unknown_comparison(self):
        with pytest.raises(MalformedInstruction):
            CJump(var("a"), num(1), ">", "t", "f")

    def test_call_argument_count(self):
        assert Call(lbl("g"), Number(3)).arg_count == 3
        with pytest.raises(MalformedInstruction):
            Call(lbl("g"), -1)

    def test_call_rejects_number_target(self):
        with pytest.raises(MalformedInstruction):
            Call(num(4), 0)

    def test_cisc_scale(self):
        Cisc(var("w"), var("a"), var("b"), 8)
        with pytest.raises(MalformedInstruction, match="scale"):
            Cisc(var("w"), var("a"), var("b"), 3)

    def test_inc_dec_operator(self):
        assert str(IncDec(var("i"), "--")) == "(i--)"
        with pytest.raises(MalformedInstruction):
            IncDec(var("i"), "**")

    def test_compare_rendering(self):
        assert str(Compare(var("c"), var("a"), num(3), "=")) == "(c <- a = 3)"

    def test_stack_arg(self):
        assert str(StackArg(var("x"), 8)) == "(x <- stack-arg 8)"

    def test_goto_and_labeldef_accept_strings(self):
        assert Goto("end").label == Label("end")
        assert LabelDef(":end").label == Label("end")

    def test_instructions_are_immutable(self):
        ins = assign(var("x"), num(1))
        with pytest.raises(AttributeError):
            ins.dest = var("y")


class TestFunction:

    def test_strips_colon_and_tuples(self):
        f = Function(":main", 0, 0, [RET])
        assert f.name == "main"
        assert f.instructions == (RET,)
        assert len(f) == 1

    def test_labels(self):
        f = fn(label("a"), goto("b"), label("b"), RET)
        assert f.labels() == {"a": 0, "b": 2}

    def test_duplicate_label(self):
        f = fn(label("a"), label("a"), RET)
        with pytest.raises(DuplicateLabel) as info:
            f.labels()
        assert info.value.first == 0
        assert info.value.second == 1

    def test_negative_counts(self):
        with pytest.raises(MalformedProgram):
            Function("f", -1, 0, ())

    def test_rejects_non_instruction(self):
        with pytest.raises(MalformedProgram):
            Function("f", 0, 0, ("return",))

    def test_rendering(self):
        f = fn(assign(var("x"), num(5)), RET, name="main")
        assert str(f) == "(:main 0 0\n  (x <- 5)\n  (return)\n)"


class TestProgram:

    def test_lookup(self):
        p = Program(":main", (fn(RET, name="main"), fn(RET, name="g")))
        assert p.entry == "main"
        assert p.function(":g").name == "g"
        assert p.function("h") is None
        assert p.function_names() == ("main", "g")

    def test_duplicate_function(self):
        with pytest.raises(MalformedProgram, match="duplicate"):
            Program("main", (fn(RET, name="main"), fn(RET, name="main")))

    def test_entry_must_exist(self):
        with pytest.raises(MalformedProgram, match="entry"):
            Program("main", (fn(RET, name="g"),))
