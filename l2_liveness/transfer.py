"""
l2_liveness.transfer
====================

The transfer-function catalog: GEN and KILL sets per instruction kind.

``GEN`` holds the names an instruction reads before writing anything;
``KILL`` holds the names it (re)defines.  Only registers and variables
are names.  Labels, numbers and runtime functions never appear, and
neither do the architecture's untracked names (the stack pointer and
the runtime-system entry points).

Rules
-----
====================  ==========================================  ==============================
Kind                  GEN                                         KILL
====================  ==========================================  ==============================
``return``            callee-saved ∪ {return register}            ∅
``w <- s``            sources (plus memory bases)                 {w}
``w op= s``           {w} ∪ sources                               {w}
``mem x M <- s``      {x} ∪ sources                               ∅
``call u N``          {u} ∪ first min(N, window) arg registers    caller-saved ∪ {return reg}
``w++`` / ``w--``     {w}                                         {w}
``w @ a b E``         {a, b}                                      {w}
``w <- a cmp b``      {a, b}                                      {w}
``cjump a cmp b``     {a, b}                                      ∅
``goto`` / label      ∅                                           ∅
``w <- stack-arg M``  ∅                                           {w}
====================  ==========================================  ==============================

A call neither reads nor clobbers callee-saved registers: the callee is
obliged to preserve them, so from the caller's side they flow through
the call untouched.

The rule table is checked against :data:`~l2_liveness.ir.INSTRUCTION_KINDS`
when this module is imported; an instruction whose type has no rule
raises :class:`~l2_liveness.errors.UnsupportedInstruction` instead of
silently contributing nothing.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Set, Type

from .architecture import Architecture, X86_64
from .errors import MalformedInstruction, UnsupportedInstruction
from .ir import (
    INSTRUCTION_KINDS,
    Assign,
    Call,
    CJump,
    Cisc,
    Compare,
    Function,
    Goto,
    IncDec,
    Instruction,
    LabelDef,
    Memory,
    Operand,
    Register,
    Return,
    StackArg,
    Variable,
)

logger = logging.getLogger(__name__)


class Effects(NamedTuple):
    """GEN and KILL sets of one instruction."""

    gen: FrozenSet[str]
    kill: FrozenSet[str]


EMPTY = Effects(frozenset(), frozenset())


class TransferCatalog:
    """Table-driven GEN/KILL computation for one target architecture.

    Instances are callable, so a catalog can be handed to the dataflow
    engine directly as its transfer function::

        catalog = TransferCatalog(X86_64)
        result = solve(cfg, catalog)

    Parameters
    ----------
    architecture : Architecture
        Register conventions.  Defaults to :data:`X86_64`.
    """

    _RULES: Dict[Type[Instruction], str] = {
        Return: "_return",
        LabelDef: "_nothing",
        Assign: "_assign",
        Call: "_call",
        Goto: "_nothing",
        IncDec: "_inc_dec",
        Cisc: "_cisc",
        Compare: "_compare",
        CJump: "_cjump",
        StackArg: "_stack_arg",
    }

    def __init__(self, architecture: Optional[Architecture] = None) -> None:
        self.architecture = architecture or X86_64
        self._untracked = self.architecture.untracked
        arch = self.architecture
        self._return_gen = frozenset(arch.callee_saved) | {arch.return_register}
        self._call_kill = frozenset(arch.caller_saved) | {arch.return_register}

    def __call__(self, instruction: Instruction) -> Effects:
        return self.effects(instruction)

    def effects(self, instruction: Instruction) -> Effects:
        """Return the :class:`Effects` of *instruction*.

        Raises
        ------
        UnsupportedInstruction
            If the instruction's kind has no rule.
        MalformedInstruction
            If a register operand names a register the architecture lacks.
        """
        rule = self._RULES.get(type(instruction))
        if rule is None:
            raise UnsupportedInstruction(instruction)
        return getattr(self, rule)(instruction)

    def function_effects(self, function: Function) -> List[Effects]:
        """Effects of every instruction of *function*, in order."""
        effects: List[Effects] = []
        for idx, ins in enumerate(function.instructions):
            try:
                effects.append(self.effects(ins))
            except (UnsupportedInstruction, MalformedInstruction) as exc:
                exc.index = idx
                raise exc.with_function(function.name)
        return effects

    # ----- operand helpers --------------------------------------------------

    def _add(self, into: Set[str], operand: Operand, instruction: Instruction) -> None:
        """Add *operand*'s name to *into* if it is a tracked name."""
        if isinstance(operand, Register):
            if not self.architecture.is_register(operand.name):
                raise MalformedInstruction(
                    instruction.kind,
                    f"unknown register {operand.name!r} for {self.architecture.name}",
                )
        elif not isinstance(operand, Variable):
            return
        if operand.name not in self._untracked:
            into.add(operand.name)

    def _read(self, into: Set[str], operand: Operand, instruction: Instruction) -> None:
        """Record *operand* as read; a memory operand reads its base."""
        if isinstance(operand, Memory):
            self._add(into, operand.base, instruction)
        else:
            self._add(into, operand, instruction)

    def _uses(self, instruction: Instruction, operands: Iterable[Operand]) -> Set[str]:
        gen: Set[str] = set()
        for op in operands:
            self._read(gen, op, instruction)
        return gen

    # ----- rules ------------------------------------------------------------

    def _nothing(self, instruction: Instruction) -> Effects:
        return EMPTY

    def _return(self, instruction: Return) -> Effects:
        return Effects(self._return_gen, frozenset())

    def _assign(self, instruction: Assign) -> Effects:
        gen = self._uses(instruction, instruction.sources)
        kill: Set[str] = set()
        dest = instruction.dest
        if isinstance(dest, Memory):
            self._add(gen, dest.base, instruction)
        else:
            self._add(kill, dest, instruction)
            if instruction.is_compound:
                self._add(gen, dest, instruction)
        return Effects(frozenset(gen), frozenset(kill))

    def _call(self, instruction: Call) -> Effects:
        gen: Set[str] = set()
        self._add(gen, instruction.target, instruction)
        gen.update(self.architecture.argument_registers_for(instruction.arg_count))
        return Effects(frozenset(gen - self._untracked), self._call_kill - self._untracked)

    def _inc_dec(self, instruction: IncDec) -> Effects:
        names: Set[str] = set()
        self._add(names, instruction.target, instruction)
        frozen = frozenset(names)
        return Effects(frozen, frozen)

    def _define(self, instruction: Instruction, dest: Operand, *uses: Operand) -> Effects:
        kill: Set[str] = set()
        self._add(kill, dest, instruction)
        return Effects(frozenset(self._uses(instruction, uses)), frozenset(kill))

    def _cisc(self, instruction: Cisc) -> Effects:
        return self._define(instruction, instruction.dest, instruction.a, instruction.b)

    def _compare(self, instruction: Compare) -> Effects:
        return self._define(instruction, instruction.dest, instruction.a, instruction.b)

    def _cjump(self, instruction: CJump) -> Effects:
        return Effects(
            frozenset(self._uses(instruction, (instruction.a, instruction.b))),
            frozenset(),
        )

    def _stack_arg(self, instruction: StackArg) -> Effects:
        return self._define(instruction, instruction.dest)


TransferFn = Callable[[Instruction], Effects]


def _check_catalog_complete() -> None:
    missing = [k.__name__ for k in INSTRUCTION_KINDS if k not in TransferCatalog._RULES]
    if missing:
        raise ImportError(f"transfer catalog has no rule for {', '.join(missing)}")
    for method in set(TransferCatalog._RULES.values()):
        if not callable(getattr(TransferCatalog, method, None)):
            raise ImportError(f"transfer catalog rule {method} is not defined")


_check_catalog_complete()


def effects(instruction: Instruction, architecture: Optional[Architecture] = None) -> Effects:
    """GEN/KILL of a single instruction under *architecture* (default x86-64)."""
    return TransferCatalog(architecture)(instruction)
