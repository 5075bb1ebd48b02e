# l2_liveness/errors.py
"""
Error types for the liveness analysis pipeline.

Error Hierarchy
───────────────
┌─────────────────────────────────────────────────────────────────────┐
│  LivenessError (base)                                               │
│  ├── UnresolvedLabel        - jump/call target has no definition    │
│  │   └── DuplicateLabel     - label defined more than once          │
│  ├── MalformedInstruction   - instruction missing/invalid operands  │
│  ├── MalformedProgram       - duplicate function, bad entry label   │
│  ├── ReportParseError       - unreadable textual liveness report    │
│  ├── UnsupportedInstruction - kind absent from transfer catalog     │
│  ├── ConfigurationError     - invalid architecture / config         │
│  └── FixpointViolation      - solved sets fail the equations        │
└─────────────────────────────────────────────────────────────────────┘

Error Codes
───────────
Each error carries a code ``L2LV-NNNN``:
  - 1000-1999: structural errors (labels, shapes, programs, reports)
  - 2000-2999: configuration errors
  - 9000-9999: internal defects (should never happen)

None of these are transient.  They propagate to the caller, who decides
whether to abort the whole program or skip the offending function.
"""

from __future__ import annotations

from enum import Enum, unique
from typing import Any, Optional, Sequence


@unique
class ErrorPhase(Enum):
    """Pipeline phase in which an error was detected."""

    IR = "ir"
    CFG = "cfg"
    TRANSFER = "transfer"
    SOLVE = "solve"
    CONFIG = "config"
    REPORT = "report"


class ErrorCode:
    """Structured error code of the form ``L2LV-NNNN``."""

    __slots__ = ("prefix", "number", "phase")

    def __init__(self, number: int, phase: ErrorPhase, prefix: str = "L2LV") -> None:
        self.prefix = prefix
        self.number = number
        self.phase = phase

    @property
    def code(self) -> str:
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.phase.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class ErrorCodes:
    """Predefined error codes."""

    UNRESOLVED_LABEL = ErrorCode(1000, ErrorPhase.CFG)
    DUPLICATE_LABEL = ErrorCode(1001, ErrorPhase.CFG)
    MALFORMED_INSTRUCTION = ErrorCode(1100, ErrorPhase.IR)
    MALFORMED_PROGRAM = ErrorCode(1200, ErrorPhase.IR)
    MALFORMED_REPORT = ErrorCode(1300, ErrorPhase.REPORT)
    INVALID_CONFIGURATION = ErrorCode(2000, ErrorPhase.CONFIG)
    UNSUPPORTED_INSTRUCTION = ErrorCode(9000, ErrorPhase.TRANSFER)
    FIXPOINT_VIOLATION = ErrorCode(9001, ErrorPhase.SOLVE)


# ═══════════════════════════════════════════════════════════════════════
# BASE
# ═══════════════════════════════════════════════════════════════════════

class LivenessError(Exception):
    """
    Base exception for all liveness-analysis errors.

    Parameters
    ----------
    message : str
        Human-readable description.
    code : ErrorCode, optional
        Structured code; subclasses supply their own default.
    function : str, optional
        Name of the function being analysed, when known.
    index : int, optional
        Instruction index the error refers to, when known.
    """

    default_code: ErrorCode = ErrorCodes.MALFORMED_PROGRAM

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        function: Optional[str] = None,
        index: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.function = function
        self.index = index

    def with_function(self, name: str) -> "LivenessError":
        """Attach the enclosing function name if not already set."""
        if self.function is None:
            self.function = name
        return self

    def __str__(self) -> str:
        where = []
        if self.function is not None:
            where.append(f"function {self.function}")
        if self.index is not None:
            where.append(f"instruction {self.index}")
        loc = f" ({', '.join(where)})" if where else ""
        return f"{self.code}: {self.message}{loc}"


# ═══════════════════════════════════════════════════════════════════════
# STRUCTURAL ERRORS
# ═══════════════════════════════════════════════════════════════════════

class UnresolvedLabel(LivenessError):
    """A jump or call target names a label with no matching ``LabelDef``."""

    default_code = ErrorCodes.UNRESOLVED_LABEL

    def __init__(self, label: str, **kwargs: Any) -> None:
        kwargs.setdefault("code", self.default_code)
        super().__init__(f"Unresolved label '{label}'", **kwargs)
        self.label = label


class DuplicateLabel(UnresolvedLabel):
    """A label is defined more than once, so references are ambiguous."""

    default_code = ErrorCodes.DUPLICATE_LABEL

    def __init__(self, label: str, first: int, second: int, **kwargs: Any) -> None:
        super().__init__(label, index=second, **kwargs)
        self.message = (
            f"Label '{label}' defined twice (instructions {first} and {second})"
        )
        self.args = (self.message,)
        self.first = first
        self.second = second


class MalformedInstruction(LivenessError):
    """An instruction is missing operands (or has ill-typed ones) for its kind."""

    default_code = ErrorCodes.MALFORMED_INSTRUCTION

    def __init__(self, kind: str, problem: str, **kwargs: Any) -> None:
        super().__init__(f"Malformed {kind} instruction: {problem}", **kwargs)
        self.kind = kind
        self.problem = problem


class MalformedProgram(LivenessError):
    """A function or program container violates its invariants."""

    default_code = ErrorCodes.MALFORMED_PROGRAM


class ReportParseError(LivenessError, ValueError):
    """A textual liveness report could not be read back."""

    default_code = ErrorCodes.MALFORMED_REPORT


class ConfigurationError(LivenessError):
    """Invalid architecture description or analysis configuration."""

    default_code = ErrorCodes.INVALID_CONFIGURATION

    def __init__(self, message: str, problems: Sequence[str] = (), **kwargs: Any) -> None:
        if problems:
            message = f"{message}: {'; '.join(problems)}"
        super().__init__(message, **kwargs)
        self.problems = list(problems)


# ═══════════════════════════════════════════════════════════════════════
# INTERNAL DEFECTS
# ═══════════════════════════════════════════════════════════════════════

class UnsupportedInstruction(LivenessError, TypeError):
    """An instruction kind has no rule in the transfer catalog."""

    default_code = ErrorCodes.UNSUPPORTED_INSTRUCTION

    def __init__(self, instruction: object, **kwargs: Any) -> None:
        super().__init__(
            f"No transfer rule for instruction kind {type(instruction).__name__}",
            **kwargs,
        )
        self.instruction = instruction


class FixpointViolation(LivenessError):
    """The solved IN/OUT sets do not satisfy the dataflow equations."""

    default_code = ErrorCodes.FIXPOINT_VIOLATION

    def __init__(self, indices: Sequence[int], **kwargs: Any) -> None:
        shown = ", ".join(str(i) for i in list(indices)[:10])
        super().__init__(f"Dataflow equations violated at instructions [{shown}]", **kwargs)
        self.indices = list(indices)
