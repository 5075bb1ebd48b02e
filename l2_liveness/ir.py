"""
l2_liveness.ir
==============

Immutable in-memory representation of L2 programs.

The IR is produced by an external front end (the grammar-driven parser)
and is treated as read-only by every analysis in this package.  All
nodes are frozen dataclasses; shape violations are rejected when a node
is constructed, raising :class:`~l2_liveness.errors.MalformedInstruction`.

Operands
--------
    Register        - a machine register (``rax``, ``rdi``, ...)
    Variable        - a symbolic name assigned by the front end
    Label           - a code label (``:loop``); rendered with a leading colon
    Number          - an integer immediate
    RuntimeFunction - a runtime-system entry point (``print``, ``allocate``,
                      ``array-error``); legal only as a call target
    Memory          - the ``mem x M`` addressing form

Instructions
------------
    Return, LabelDef, Assign, Call, Goto, IncDec, Cisc, Compare, CJump,
    StackArg

``INSTRUCTION_KINDS`` lists the closed set; the transfer catalog checks
its rule table against it.

Containers
----------
    Function        - name, argument count, local count, instructions
    Program         - entry label plus uniquely-named functions
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Dict, Iterator, Optional, Tuple, Type, Union

from .errors import DuplicateLabel, MalformedInstruction, MalformedProgram


# ===========================================================================
# OPERANDS
# ===========================================================================

@dataclass(frozen=True)
class Register:
    """A machine register."""
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Variable:
    """A front-end variable; two variables with equal names are the same."""
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Label:
    """A code label.  The leading ``:`` is stripped on construction."""
    name: str

    def __post_init__(self) -> None:
        if self.name.startswith(":"):
            object.__setattr__(self, "name", self.name[1:])

    def __str__(self) -> str:
        return f":{self.name}"


@dataclass(frozen=True)
class Number:
    """An integer immediate."""
    value: int

    @property
    def name(self) -> str:
        return str(self.value)

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class RuntimeFunction:
    """Reference to a fixed runtime-system entry point."""
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Memory:
    """``mem base offset`` -- an address computed from a base name."""
    base: Union[Register, Variable]
    offset: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.base, (Register, Variable)):
            raise MalformedInstruction(
                "mem", f"base must be a register or variable, got {self.base!r}"
            )
        if isinstance(self.offset, Number):
            object.__setattr__(self, "offset", self.offset.value)
        if not isinstance(self.offset, int) or isinstance(self.offset, bool):
            raise MalformedInstruction(
                "mem", f"offset must be an integer, got {self.offset!r}"
            )

    @property
    def name(self) -> str:
        return self.base.name

    def __str__(self) -> str:
        return f"mem {self.base} {self.offset}"


Operand = Union[Register, Variable, Label, Number, RuntimeFunction, Memory]

#: Operand classes whose names take part in liveness.
NAMED_OPERANDS: Tuple[type, ...] = (Register, Variable)


# ===========================================================================
# OPERATORS
# ===========================================================================

ASSIGN_OP = "<-"
COMPOUND_OPS = frozenset({"+=", "-=", "*=", "&=", "<<=", ">>="})
UPDATE_OPS = frozenset({ASSIGN_OP}) | COMPOUND_OPS
INC_DEC_OPS = frozenset({"++", "--"})
COMPARISONS = frozenset({"<", "<=", "="})
CISC_SCALES = frozenset({1, 2, 4, 8})


# ===========================================================================
# INSTRUCTIONS
# ===========================================================================

def _describe(classes: Tuple[type, ...]) -> str:
    return " or ".join(c.__name__ for c in classes)


@dataclass(frozen=True)
class Instruction:
    """Base class of every instruction kind."""

    kind: ClassVar[str] = "instruction"

    def operands(self) -> Tuple[Operand, ...]:
        """Every operand this instruction carries, in surface order."""
        return ()

    def _fail(self, problem: str) -> None:
        raise MalformedInstruction(self.kind, problem)

    def _require(self, attr: str, classes: Tuple[type, ...]) -> None:
        value = getattr(self, attr)
        if value is None:
            self._fail(f"missing {attr}")
        if not isinstance(value, classes):
            self._fail(f"{attr} must be {_describe(classes)}, got {value!r}")


@dataclass(frozen=True)
class Return(Instruction):
    kind: ClassVar[str] = "return"

    def __str__(self) -> str:
        return "(return)"


@dataclass(frozen=True)
class LabelDef(Instruction):
    kind: ClassVar[str] = "label"
    label: Label = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if isinstance(self.label, str):
            object.__setattr__(self, "label", Label(self.label))
        self._require("label", (Label,))

    def operands(self) -> Tuple[Operand, ...]:
        return (self.label,)

    def __str__(self) -> str:
        return str(self.label)


@dataclass(frozen=True)
class Assign(Instruction):
    """Register-start and memory-start update forms.

    ``dest op sources...`` where *op* is ``<-`` or a compound
    read-modify-write operator such as ``+=`` or ``<<=``.
    """

    kind: ClassVar[str] = "assign"
    dest: Union[Register, Variable, Memory] = None  # type: ignore[assignment]
    op: str = ASSIGN_OP
    sources: Tuple[Operand, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.sources, tuple):
            object.__setattr__(self, "sources", tuple(self.sources))
        self._require("dest", (Register, Variable, Memory))
        if self.op not in UPDATE_OPS:
            self._fail(f"unknown operator {self.op!r}")
        if not self.sources:
            self._fail("missing source operand")
        for src in self.sources:
            if not isinstance(src, (Register, Variable, Label, Number, Memory)):
                self._fail(f"invalid source operand {src!r}")
        if sum(isinstance(o, Memory) for o in self.operands()) > 1:
            self._fail("at most one memory operand is allowed")

    @property
    def is_compound(self) -> bool:
        return self.op in COMPOUND_OPS

    def operands(self) -> Tuple[Operand, ...]:
        return (self.dest,) + self.sources

    def __str__(self) -> str:
        srcs = " ".join(str(s) for s in self.sources)
        return f"({self.dest} {self.op} {srcs})"


@dataclass(frozen=True)
class Call(Instruction):
    kind: ClassVar[str] = "call"
    target: Union[Register, Variable, Label, RuntimeFunction] = None  # type: ignore[assignment]
    arg_count: int = 0

    def __post_init__(self) -> None:
        self._require("target", (Register, Variable, Label, RuntimeFunction))
        if isinstance(self.arg_count, Number):
            object.__setattr__(self, "arg_count", self.arg_count.value)
        if not isinstance(self.arg_count, int) or isinstance(self.arg_count, bool):
            self._fail(f"argument count must be an integer, got {self.arg_count!r}")
        if self.arg_count < 0:
            self._fail(f"negative argument count {self.arg_count}")

    def operands(self) -> Tuple[Operand, ...]:
        return (self.target,)

    def __str__(self) -> str:
        return f"(call {self.target} {self.arg_count})"


@dataclass(frozen=True)
class Goto(Instruction):
    kind: ClassVar[str] = "goto"
    label: Label = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if isinstance(self.label, str):
            object.__setattr__(self, "label", Label(self.label))
        self._require("label", (Label,))

    def operands(self) -> Tuple[Operand, ...]:
        return (self.label,)

    def __str__(self) -> str:
        return f"(goto {self.label})"


@dataclass(frozen=True)
class IncDec(Instruction):
    kind: ClassVar[str] = "inc-dec"
    target: Union[Register, Variable] = None  # type: ignore[assignment]
    op: str = "++"

    def __post_init__(self) -> None:
        self._require("target", NAMED_OPERANDS)
        if self.op not in INC_DEC_OPS:
            self._fail(f"unknown operator {self.op!r}")

    def operands(self) -> Tuple[Operand, ...]:
        return (self.target,)

    def __str__(self) -> str:
        return f"({self.target}{self.op})"


@dataclass(frozen=True)
class Cisc(Instruction):
    """Three-operand address arithmetic: ``dest @ a b scale``."""

    kind: ClassVar[str] = "cisc"
    dest: Union[Register, Variable] = None  # type: ignore[assignment]
    a: Union[Register, Variable, Number] = None  # type: ignore[assignment]
    b: Union[Register, Variable, Number] = None  # type: ignore[assignment]
    scale: int = 1

    def __post_init__(self) -> None:
        self._require("dest", NAMED_OPERANDS)
        self._require("a", NAMED_OPERANDS + (Number,))
        self._require("b", NAMED_OPERANDS + (Number,))
        if isinstance(self.scale, Number):
            object.__setattr__(self, "scale", self.scale.value)
        if self.scale not in CISC_SCALES:
            self._fail(f"scale must be one of 1, 2, 4, 8, got {self.scale!r}")

    def operands(self) -> Tuple[Operand, ...]:
        return (self.dest, self.a, self.b)

    def __str__(self) -> str:
        return f"({self.dest} @ {self.a} {self.b} {self.scale})"


@dataclass(frozen=True)
class Compare(Instruction):
    """``dest <- a cmp b``."""

    kind: ClassVar[str] = "compare"
    dest: Union[Register, Variable] = None  # type: ignore[assignment]
    a: Union[Register, Variable, Number] = None  # type: ignore[assignment]
    b: Union[Register, Variable, Number] = None  # type: ignore[assignment]
    cmp: str = "<"

    def __post_init__(self) -> None:
        self._require("dest", NAMED_OPERANDS)
        self._require("a", NAMED_OPERANDS + (Number,))
        self._require("b", NAMED_OPERANDS + (Number,))
        if self.cmp not in COMPARISONS:
            self._fail(f"unknown comparison {self.cmp!r}")

    def operands(self) -> Tuple[Operand, ...]:
        return (self.dest, self.a, self.b)

    def __str__(self) -> str:
        return f"({self.dest} <- {self.a} {self.cmp} {self.b})"


@dataclass(frozen=True)
class CJump(Instruction):
    """``cjump a cmp b true_label false_label``."""

    kind: ClassVar[str] = "cjump"
    a: Union[Register, Variable, Number] = None  # type: ignore[assignment]
    b: Union[Register, Variable, Number] = None  # type: ignore[assignment]
    cmp: str = "<"
    true_label: Label = None  # type: ignore[assignment]
    false_label: Label = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        for attr in ("true_label", "false_label"):
            if isinstance(getattr(self, attr), str):
                object.__setattr__(self, attr, Label(getattr(self, attr)))
        self._require("a", NAMED_OPERANDS + (Number,))
        self._require("b", NAMED_OPERANDS + (Number,))
        if self.cmp not in COMPARISONS:
            self._fail(f"unknown comparison {self.cmp!r}")
        self._require("true_label", (Label,))
        self._require("false_label", (Label,))

    @property
    def targets(self) -> Tuple[Label, Label]:
        return (self.true_label, self.false_label)

    def operands(self) -> Tuple[Operand, ...]:
        return (self.a, self.b, self.true_label, self.false_label)

    def __str__(self) -> str:
        return (
            f"(cjump {self.a} {self.cmp} {self.b} "
            f"{self.true_label} {self.false_label})"
        )


@dataclass(frozen=True)
class StackArg(Instruction):
    """``dest <- stack-arg offset``."""

    kind: ClassVar[str] = "stack-arg"
    dest: Union[Register, Variable] = None  # type: ignore[assignment]
    offset: int = 0

    def __post_init__(self) -> None:
        self._require("dest", NAMED_OPERANDS)
        if isinstance(self.offset, Number):
            object.__setattr__(self, "offset", self.offset.value)
        if not isinstance(self.offset, int) or isinstance(self.offset, bool):
            self._fail(f"offset must be an integer, got {self.offset!r}")

    def operands(self) -> Tuple[Operand, ...]:
        return (self.dest,)

    def __str__(self) -> str:
        return f"({self.dest} <- stack-arg {self.offset})"


#: The closed set of instruction kinds.
INSTRUCTION_KINDS: Tuple[Type[Instruction], ...] = (
    Return,
    LabelDef,
    Assign,
    Call,
    Goto,
    IncDec,
    Cisc,
    Compare,
    CJump,
    StackArg,
)

#: Kinds that end a basic block.
TERMINATORS: Tuple[Type[Instruction], ...] = (Return, Goto, CJump)


# ===========================================================================
# CONTAINERS
# ===========================================================================

@dataclass(frozen=True)
class Function:
    """One L2 function.  Owns its instruction sequence."""

    name: str
    arguments: int = 0
    locals: int = 0
    instructions: Tuple[Instruction, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.name.startswith(":"):
            object.__setattr__(self, "name", self.name[1:])
        if not isinstance(self.instructions, tuple):
            object.__setattr__(self, "instructions", tuple(self.instructions))
        if self.arguments < 0 or self.locals < 0:
            raise MalformedProgram(
                f"negative argument/local count ({self.arguments}, {self.locals})",
                function=self.name,
            )
        for idx, ins in enumerate(self.instructions):
            if not isinstance(ins, Instruction):
                raise MalformedProgram(
                    f"not an instruction: {ins!r}", function=self.name, index=idx
                )

    def __len__(self) -> int:
        return len(self.instructions)

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)

    def labels(self) -> Dict[str, int]:
        """Map each defined label name to the index of its ``LabelDef``.

        Raises
        ------
        DuplicateLabel
            If a label is defined more than once.
        """
        positions: Dict[str, int] = {}
        for idx, ins in enumerate(self.instructions):
            if isinstance(ins, LabelDef):
                name = ins.label.name
                if name in positions:
                    raise DuplicateLabel(
                        name, positions[name], idx, function=self.name
                    )
                positions[name] = idx
        return positions

    def __str__(self) -> str:
        body = "\n".join(f"  {ins}" for ins in self.instructions)
        return f"(:{self.name} {self.arguments} {self.locals}\n{body}\n)"


@dataclass(frozen=True)
class Program:
    """Entry label plus the set of uniquely-named functions."""

    entry: str
    functions: Tuple[Function, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.entry.startswith(":"):
            object.__setattr__(self, "entry", self.entry[1:])
        if not isinstance(self.functions, tuple):
            object.__setattr__(self, "functions", tuple(self.functions))
        seen = set()
        for fn in self.functions:
            if fn.name in seen:
                raise MalformedProgram(f"duplicate function '{fn.name}'")
            seen.add(fn.name)
        if self.functions and self.entry not in seen:
            raise MalformedProgram(f"entry label ':{self.entry}' names no function")

    def function(self, name: str) -> Optional[Function]:
        """Look up a function by name (with or without the leading colon)."""
        name = name[1:] if name.startswith(":") else name
        for fn in self.functions:
            if fn.name == name:
                return fn
        return None

    def function_names(self) -> Tuple[str, ...]:
        return tuple(fn.name for fn in self.functions)

    def __iter__(self) -> Iterator[Function]:
        return iter(self.functions)

    def __str__(self) -> str:
        body = "\n".join(str(fn) for fn in self.functions)
        return f"(:{self.entry}\n{body}\n)"
