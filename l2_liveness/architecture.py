"""
l2_liveness.architecture
========================

Register conventions of the target ABI.

The transfer catalog never hard-codes a register name; every
calling-convention decision (which registers a ``return`` keeps alive,
which registers a ``call`` reads and clobbers, which names are never
tracked) is read from an :class:`Architecture`.  :data:`X86_64` is the
System V convention the L2 language targets and is the default
everywhere.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, FrozenSet, List, Mapping, Tuple

from .errors import ConfigurationError


@dataclass(frozen=True)
class Architecture:
    """Register partition and calling convention of one target.

    Attributes
    ----------
    name : str
        Identifier used in configuration files (``"x86-64"``).
    registers : tuple[str, ...]
        Every register name the IR may mention, stack pointer included.
    callee_saved : tuple[str, ...]
        Registers a callee must preserve; live at every ``return``.
    caller_saved : tuple[str, ...]
        Registers a ``call`` may clobber.
    argument_registers : tuple[str, ...]
        Argument-passing registers, in order.
    return_register : str
        Register holding a function's result.
    stack_pointer : str
        Never tracked by liveness.
    frame_pointer : str
        Tracked like any other callee-saved register.
    runtime_functions : frozenset[str]
        Names of runtime-system entry points; never tracked.
    argument_window : int
        How many arguments travel in registers; the rest go through memory.
    """

    name: str
    registers: Tuple[str, ...]
    callee_saved: Tuple[str, ...]
    caller_saved: Tuple[str, ...]
    argument_registers: Tuple[str, ...]
    return_register: str
    stack_pointer: str
    frame_pointer: str
    runtime_functions: FrozenSet[str] = field(default_factory=frozenset)
    argument_window: int = 6

    @property
    def untracked(self) -> FrozenSet[str]:
        """Names excluded from every GEN and KILL set."""
        return frozenset({self.stack_pointer}) | self.runtime_functions

    def is_register(self, name: str) -> bool:
        return name in self.registers

    def argument_registers_for(self, count: int) -> Tuple[str, ...]:
        """The registers carrying the first ``min(count, window)`` arguments."""
        return self.argument_registers[: max(0, min(count, self.argument_window))]

    def validate(self) -> List[str]:
        """Return a list of consistency problems (empty if valid)."""
        problems: List[str] = []
        known = set(self.registers)
        for group in ("callee_saved", "caller_saved", "argument_registers"):
            unknown = [r for r in getattr(self, group) if r not in known]
            if unknown:
                problems.append(f"{group} names unknown registers {unknown}")
        for attr in ("return_register", "stack_pointer", "frame_pointer"):
            if getattr(self, attr) not in known:
                problems.append(f"{attr} {getattr(self, attr)!r} is not a register")
        overlap = set(self.callee_saved) & set(self.caller_saved)
        if overlap:
            problems.append(f"registers both caller- and callee-saved: {sorted(overlap)}")
        if self.stack_pointer in self.callee_saved or self.stack_pointer in self.caller_saved:
            problems.append("stack pointer must not be caller- or callee-saved")
        if self.argument_window < 0:
            problems.append("argument_window must be non-negative")
        if self.argument_window > len(self.argument_registers):
            problems.append(
                f"argument_window {self.argument_window} exceeds "
                f"{len(self.argument_registers)} argument registers"
            )
        return problems

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Architecture":
        """Build an architecture from a plain mapping (e.g. parsed JSON).

        Raises
        ------
        ConfigurationError
            If required keys are missing or the result fails :meth:`validate`.
        """
        required = (
            "name", "registers", "callee_saved", "caller_saved",
            "argument_registers", "return_register", "stack_pointer",
            "frame_pointer",
        )
        missing = [k for k in required if k not in data]
        if missing:
            raise ConfigurationError(
                "incomplete architecture", [f"missing {k}" for k in missing]
            )
        arg_regs = tuple(data["argument_registers"])
        arch = cls(
            name=str(data["name"]),
            registers=tuple(data["registers"]),
            callee_saved=tuple(data["callee_saved"]),
            caller_saved=tuple(data["caller_saved"]),
            argument_registers=arg_regs,
            return_register=str(data["return_register"]),
            stack_pointer=str(data["stack_pointer"]),
            frame_pointer=str(data["frame_pointer"]),
            runtime_functions=frozenset(data.get("runtime_functions", ())),
            argument_window=int(data.get("argument_window", len(arg_regs))),
        )
        problems = arch.validate()
        if problems:
            raise ConfigurationError(f"invalid architecture {arch.name!r}", problems)
        return arch

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "registers": list(self.registers),
            "callee_saved": list(self.callee_saved),
            "caller_saved": list(self.caller_saved),
            "argument_registers": list(self.argument_registers),
            "return_register": self.return_register,
            "stack_pointer": self.stack_pointer,
            "frame_pointer": self.frame_pointer,
            "runtime_functions": sorted(self.runtime_functions),
            "argument_window": self.argument_window,
        }


X86_64 = Architecture(
    name="x86-64",
    registers=(
        "rax", "rbx", "rcx", "rdx", "rsi", "rdi", "rbp", "rsp",
        "r8", "r9", "r10", "r11", "r12", "r13", "r14", "r15",
    ),
    callee_saved=("r12", "r13", "r14", "r15", "rbp", "rbx"),
    caller_saved=("r10", "r11", "r8", "r9", "rax", "rcx", "rdi", "rdx", "rsi"),
    argument_registers=("rdi", "rsi", "rdx", "rcx", "r8", "r9"),
    return_register="rax",
    stack_pointer="rsp",
    frame_pointer="rbp",
    runtime_functions=frozenset({"print", "allocate", "array-error"}),
    argument_window=6,
)

_KNOWN = {X86_64.name: X86_64}


def get_architecture(name: str) -> Architecture:
    """Look up a built-in architecture by name."""
    try:
        return _KNOWN[name]
    except KeyError:
        raise ConfigurationError(
            f"unknown architecture {name!r}", [f"known: {sorted(_KNOWN)}"]
        ) from None
