"""
l2_liveness.reporting
=====================

Read-only projections of a :class:`~l2_liveness.dataflow_engine.LivenessResult`
for downstream consumers (the register allocator, golden-output tests,
tooling).

No analysis happens here.  Every view lists names in sorted order so
output is deterministic, and rows appear in instruction order.

Formats
-------
S-expression (the liveness report format of the L2 toolchain)::

    (
    (in
    (r12 r13 r14 r15 rax rbp rbx)
    )

    (out
    ()
    )

    )

Rows are emitted and read back with ``sexpdata``.

JSON::

    {"function": "main", "passes": 2,
     "instructions": [{"index": 0, "instruction": "(return)",
                       "in": ["r12", ...], "out": []}]}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

import sexpdata

from .dataflow_engine import LivenessResult
from .errors import ReportParseError
from .ir import Function

logger = logging.getLogger(__name__)

Names = Tuple[str, ...]


def sorted_names(names: Iterable[str]) -> Names:
    return tuple(sorted(names))


@dataclass(frozen=True)
class InstructionLiveness:
    """Live-in/live-out names of one instruction."""

    index: int
    live_in: Names
    live_out: Names
    instruction: Optional[str] = None


@dataclass(frozen=True)
class FunctionLiveness:
    """Per-instruction rows of one function, in instruction order."""

    name: str
    rows: Tuple[InstructionLiveness, ...]

    def __len__(self) -> int:
        return len(self.rows)

    def __getitem__(self, index: int) -> InstructionLiveness:
        return self.rows[index]

    @property
    def ins(self) -> Tuple[Names, ...]:
        return tuple(r.live_in for r in self.rows)

    @property
    def outs(self) -> Tuple[Names, ...]:
        return tuple(r.live_out for r in self.rows)


def project(result: LivenessResult, function: Optional[Function] = None) -> FunctionLiveness:
    """Project *result* into sorted per-instruction rows.

    If *function* is given, each row also carries the instruction's
    surface text.
    """
    if function is not None and len(function.instructions) != len(result):
        raise ValueError(
            f"function {function.name!r} has {len(function.instructions)} "
            f"instructions but the result covers {len(result)}"
        )
    rows = []
    for i, fin, fout in result.items():
        text = str(function.instructions[i]) if function is not None else None
        rows.append(InstructionLiveness(i, sorted_names(fin), sorted_names(fout), text))
    return FunctionLiveness(result.function, tuple(rows))


# ===========================================================================
# S-EXPRESSION
# ===========================================================================

def _row(names: Iterable[str]) -> str:
    return sexpdata.dumps([sexpdata.Symbol(n) for n in sorted(names)])


def render_sexp(result: LivenessResult) -> str:
    """Render *result* in the toolchain's ``((in ...) (out ...))`` layout."""
    lines = ["(", "(in"]
    lines.extend(_row(f) for f in result.facts_in)
    lines.extend([")", "", "(out"])
    lines.extend(_row(f) for f in result.facts_out)
    lines.extend([")", "", ")"])
    return "\n".join(lines) + "\n"


def _normalise(obj: Any) -> Any:
    """Recursively turn ``sexpdata`` output into plain strings and lists."""
    if isinstance(obj, list):
        return [_normalise(x) for x in obj]
    if hasattr(obj, "value") and callable(getattr(obj, "value", None)):
        return str(obj.value())
    return str(obj)


def parse_sexp(text: str) -> Tuple[Tuple[Names, ...], Tuple[Names, ...]]:
    """Read a report produced by :func:`render_sexp` (or the reference tools).

    Returns
    -------
    (ins, outs)
        One sorted tuple of names per instruction.

    Raises
    ------
    ReportParseError
        If the text is not a well-formed liveness report.
    """
    try:
        parsed = sexpdata.loads(text, nil=None, true=None)
    except Exception as exc:
        raise ReportParseError(f"Failed to parse S-expression: {exc}") from exc
    tree = _normalise(parsed)
    if not isinstance(tree, list) or len(tree) != 2:
        raise ReportParseError("expected exactly an (in ...) and an (out ...) section")
    sections: Dict[str, Tuple[Names, ...]] = {}
    for section in tree:
        if not isinstance(section, list) or not section or section[0] not in ("in", "out"):
            raise ReportParseError(f"unexpected section {section!r}")
        rows = section[1:]
        for row in rows:
            if not isinstance(row, list) or any(isinstance(x, list) for x in row):
                raise ReportParseError(f"malformed row {row!r} in ({section[0]} ...)")
        sections[section[0]] = tuple(sorted_names(row) for row in rows)
    if set(sections) != {"in", "out"}:
        raise ReportParseError("report needs both an (in ...) and an (out ...) section")
    if len(sections["in"]) != len(sections["out"]):
        raise ReportParseError("(in ...) and (out ...) have different row counts")
    return sections["in"], sections["out"]


# ===========================================================================
# JSON
# ===========================================================================

def to_dict(result: LivenessResult, function: Optional[Function] = None) -> Dict[str, Any]:
    """JSON-serialisable view of *result*."""
    view = project(result, function)
    instructions: List[Dict[str, Any]] = []
    for row in view.rows:
        entry: Dict[str, Any] = {"index": row.index}
        if row.instruction is not None:
            entry["instruction"] = row.instruction
        entry["in"] = list(row.live_in)
        entry["out"] = list(row.live_out)
        instructions.append(entry)
    return {
        "function": result.function,
        "passes": result.passes,
        "instructions": instructions,
    }


def render_json(
    results: Iterable[LivenessResult],
    functions: Optional[Dict[str, Function]] = None,
    indent: Optional[int] = 2,
) -> str:
    """Render several results as one JSON document."""
    functions = functions or {}
    payload = [to_dict(r, functions.get(r.function)) for r in results]
    return json.dumps({"functions": payload}, indent=indent)
