# tests/conftest.py
"""
Shared builders and fixtures for the l2_liveness test-suite.

The builders keep test bodies close to L2 surface syntax::

    fn(assign(var("x"), num(5)), RET)      # (x <- 5) (return)
"""

import pytest

from l2_liveness.architecture import X86_64
from l2_liveness.ir import (
    Assign,
    Call,
    CJump,
    Function,
    Goto,
    Label,
    LabelDef,
    Memory,
    Number,
    Register,
    Return,
    RuntimeFunction,
    Variable,
)
from l2_liveness.transfer import TransferCatalog


# ── Operand builders ─────────────────────────────────────────────

def reg(name):
    return Register(name)


def var(name):
    return Variable(name)


def lbl(name):
    return Label(name)


def num(value):
    return Number(value)


def mem(base, offset=0):
    return Memory(base, offset)


def runtime(name):
    return RuntimeFunction(name)


# ── Instruction builders ─────────────────────────────────────────

RET = Return()


def assign(dest, *sources, op="<-"):
    return Assign(dest, op, tuple(sources))


def label(name):
    return LabelDef(Label(name))


def goto(name):
    return Goto(Label(name))


def cjump(a, cmp, b, true_label, false_label):
    return CJump(a, b, cmp, Label(true_label), Label(false_label))


def call(target, n):
    return Call(target, n)


def fn(*instructions, name="f", arguments=0, locals=0):
    return Function(name, arguments, locals, tuple(instructions))


# ── Convention constants ─────────────────────────────────────────

CALLEE_SAVED = frozenset({"r12", "r13", "r14", "r15", "rbp", "rbx"})
CALLER_SAVED = frozenset({"r10", "r11", "r8", "r9", "rax", "rcx", "rdi", "rdx", "rsi"})
RETURN_LIVE = CALLEE_SAVED | {"rax"}
ARGS = ("rdi", "rsi", "rdx", "rcx", "r8", "r9")


# ── Fixtures ─────────────────────────────────────────────────────

@pytest.fixture
def arch():
    return X86_64


@pytest.fixture
def catalog():
    return TransferCatalog(X86_64)


@pytest.fixture
def loop_function():
    """A counting loop::

        (x <- 0)
        :top
        (x += 1)
        (cjump x < rdi :top :done)
        :done
        (rax <- x)
        (return)
    """
    return fn(
        assign(var("x"), num(0)),
        label("top"),
        assign(var("x"), num(1), op="+="),
        cjump(var("x"), "<", reg("rdi"), "top", "done"),
        label("done"),
        assign(reg("rax"), var("x")),
        RET,
        name="count",
    )


@pytest.fixture
def diamond_function():
    """Two paths that define different names and meet again::

        (cjump rdi < 1 :left :right)
        :left
        (a <- 1)
        (goto :join)
        :right
        (b <- 2)
        (a <- b)
        :join
        (rax <- a)
        (return)
    """
    return fn(
        cjump(reg("rdi"), "<", num(1), "left", "right"),
        label("left"),
        assign(var("a"), num(1)),
        goto("join"),
        label("right"),
        assign(var("b"), num(2)),
        assign(var("a"), var("b")),
        label("join"),
        assign(reg("rax"), var("a")),
        RET,
        name="diamond",
    )
