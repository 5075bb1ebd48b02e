"""
l2_liveness.ctrlflow_graph
==========================

Builds the intraprocedural Control Flow Graph of one L2 function.

A CFG is a directed graph whose nodes are *basic blocks* (maximal runs of
instructions with one entry label and no internal control transfer) and
whose edges carry control-flow semantics (fall-through, goto,
branch-true, branch-false).

Blocks do not own instructions: a :class:`BasicBlock` is a half-open
index range ``[start, end)`` into ``function.instructions``, so a CFG is
a disposable view that can be rebuilt from the function at any time.

Public API
----------
    EdgeKind         - classification of an edge
    BasicBlock       - a single basic block
    CFGEdge          - a directed edge between two blocks
    CFG              - the control flow graph for one function
    build_cfg        - build a CFG from a :class:`~l2_liveness.ir.Function`
    cfg_summary      - multi-line debugging summary

Typical usage::

    from l2_liveness.ctrlflow_graph import build_cfg

    cfg = build_cfg(function)
    for block in cfg.blocks:
        print(f"BB{block.index}: {block.start}..{block.end} -> {block.successors}")

Block boundaries
----------------
* A block starts at instruction 0 and at every ``LabelDef`` (the label is
  the block's first instruction, i.e. its single entry point).
* A block ends after a ``Return``, ``Goto`` or ``CJump``, or immediately
  before the next ``LabelDef``.
* ``Return`` has no successors; ``Goto`` has its target; ``CJump`` has
  both targets (possibly the same block); any other block falls through
  to the next block in program order, or has no successor if it runs off
  the end of the function.
"""

from __future__ import annotations

import enum
import logging
from collections import deque
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from .errors import UnresolvedLabel
from .ir import CJump, Call, Function, Goto, Label, LabelDef, Return, TERMINATORS

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Edge kinds
# ---------------------------------------------------------------------------


class EdgeKind(enum.Enum):
    """Classification of a CFG edge."""

    FALL_THROUGH = "fall-through"
    GOTO = "goto"
    BRANCH_TRUE = "branch-true"
    BRANCH_FALSE = "branch-false"


# ---------------------------------------------------------------------------
# BasicBlock
# ---------------------------------------------------------------------------


class BasicBlock:
    """A basic block in the CFG.

    Attributes
    ----------
    index : int
        Position of the block in ``CFG.blocks`` (program order).
    start, end : int
        Half-open range of instruction indices covered by the block.
    label : str or None
        Name of the entry label if the block begins with a ``LabelDef``.
    successors : list[int]
        Indices of successor blocks, deduplicated, in edge order.
    predecessors : list[int]
        Indices of predecessor blocks, deduplicated.
    """

    __slots__ = ("index", "start", "end", "label", "successors", "predecessors")

    def __init__(self, index: int, start: int, end: int, label: Optional[str] = None) -> None:
        self.index = index
        self.start = start
        self.end = end
        self.label = label
        self.successors: List[int] = []
        self.predecessors: List[int] = []

    @property
    def last(self) -> int:
        """Index of the block's final instruction."""
        return self.end - 1

    def __len__(self) -> int:
        return self.end - self.start

    def __contains__(self, instruction_index: int) -> bool:
        return self.start <= instruction_index < self.end

    def indices(self) -> range:
        return range(self.start, self.end)

    def instructions(self, function: Function) -> Sequence:
        """Slice *function*'s instructions covered by this block."""
        return function.instructions[self.start:self.end]

    def __repr__(self) -> str:
        lbl = f", label={self.label!r}" if self.label else ""
        return f"BasicBlock(BB{self.index}, [{self.start}, {self.end}){lbl})"


# ---------------------------------------------------------------------------
# CFGEdge
# ---------------------------------------------------------------------------


class CFGEdge:
    """A directed edge between two blocks (by index)."""

    __slots__ = ("src", "dst", "kind")

    def __init__(self, src: int, dst: int, kind: EdgeKind = EdgeKind.FALL_THROUGH) -> None:
        self.src = src
        self.dst = dst
        self.kind = kind

    def __repr__(self) -> str:
        return f"CFGEdge(BB{self.src} -> BB{self.dst}, kind={self.kind.value!r})"

    def __hash__(self) -> int:
        return hash((self.src, self.dst, self.kind))

    def __eq__(self, other) -> bool:
        if isinstance(other, CFGEdge):
            return (
                self.src == other.src
                and self.dst == other.dst
                and self.kind == other.kind
            )
        return NotImplemented


# ---------------------------------------------------------------------------
# CFG
# ---------------------------------------------------------------------------


class CFG:
    """Intraprocedural control flow graph for a single function.

    Attributes
    ----------
    function : Function
        The function this CFG views.
    blocks : list[BasicBlock]
        All basic blocks, in program order.  Block 0 is the entry.
    edges : list[CFGEdge]
        All edges.  A ``cjump`` whose targets coincide contributes two
        edges but a single successor.
    """

    def __init__(self, function: Function) -> None:
        self.function = function
        self.blocks: List[BasicBlock] = []
        self.edges: List[CFGEdge] = []
        self._block_of: List[int] = [0] * len(function.instructions)

    # ----- graph mutation ---------------------------------------------------

    def add_block(self, start: int, end: int) -> BasicBlock:
        """Register a block covering ``[start, end)`` and return it."""
        first = self.function.instructions[start]
        label = first.label.name if isinstance(first, LabelDef) else None
        block = BasicBlock(len(self.blocks), start, end, label)
        self.blocks.append(block)
        for i in range(start, end):
            self._block_of[i] = block.index
        return block

    def add_edge(self, src: int, dst: int, kind: EdgeKind = EdgeKind.FALL_THROUGH) -> CFGEdge:
        """Create an edge and wire up successor/predecessor lists."""
        edge = CFGEdge(src, dst, kind)
        self.edges.append(edge)
        if dst not in self.blocks[src].successors:
            self.blocks[src].successors.append(dst)
        if src not in self.blocks[dst].predecessors:
            self.blocks[dst].predecessors.append(src)
        return edge

    # ----- queries ----------------------------------------------------------

    @property
    def entry(self) -> Optional[BasicBlock]:
        return self.blocks[0] if self.blocks else None

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[BasicBlock]:
        return iter(self.blocks)

    def block_of(self, instruction_index: int) -> BasicBlock:
        """Return the block containing instruction *instruction_index*."""
        return self.blocks[self._block_of[instruction_index]]

    def successors_of(self, block: BasicBlock) -> List[BasicBlock]:
        return [self.blocks[i] for i in block.successors]

    def predecessors_of(self, block: BasicBlock) -> List[BasicBlock]:
        return [self.blocks[i] for i in block.predecessors]

    def exit_blocks(self) -> List[BasicBlock]:
        """Blocks without successors (returns and fall-off-the-end)."""
        return [b for b in self.blocks if not b.successors]

    def instruction_successors(self) -> Tuple[Tuple[int, ...], ...]:
        """Per-instruction successor indices.

        Inside a block the successor is the next instruction; the last
        instruction of a block inherits the first instructions of the
        block's successors.
        """
        succ: List[Tuple[int, ...]] = []
        for block in self.blocks:
            for i in range(block.start, block.last):
                succ.append((i + 1,))
            succ.append(tuple(self.blocks[s].start for s in block.successors))
        return tuple(succ)

    def instruction_predecessors(self) -> Tuple[Tuple[int, ...], ...]:
        """Per-instruction predecessor indices (inverse of :meth:`instruction_successors`)."""
        preds: List[List[int]] = [[] for _ in self._block_of]
        for i, targets in enumerate(self.instruction_successors()):
            for j in targets:
                preds[j].append(i)
        return tuple(tuple(p) for p in preds)

    def reachable_blocks(self, start: int = 0) -> Set[int]:
        """Indices of blocks reachable from block *start* (BFS)."""
        if not self.blocks:
            return set()
        visited: Set[int] = set()
        worklist = deque([start])
        while worklist:
            b = worklist.popleft()
            if b in visited:
                continue
            visited.add(b)
            worklist.extend(self.blocks[b].successors)
        return visited

    # ----- serialisation helpers --------------------------------------------

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT representation of this CFG."""
        lines = ["digraph CFG {"]
        lines.append(f'  label="{title or self.function.name}";')
        lines.append("  node [shape=box, fontname=monospace, fontsize=10];")
        for b in self.blocks:
            body = "\\l".join(
                str(ins).replace('"', '\\"') for ins in b.instructions(self.function)
            )
            lines.append(f'  BB{b.index} [label="BB{b.index}\\n{body}\\l"];')
        for e in self.edges:
            style = ""
            if e.kind == EdgeKind.BRANCH_TRUE:
                style = ", color=green, fontcolor=green"
            elif e.kind == EdgeKind.BRANCH_FALSE:
                style = ", color=red, fontcolor=red"
            lines.append(
                f'  BB{e.src} -> BB{e.dst} [label="{e.kind.value}"{style}];'
            )
        lines.append("}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"CFG(function={self.function.name!r}, blocks={len(self.blocks)}, "
            f"edges={len(self.edges)})"
        )


# ===========================================================================
# CFG BUILDER
# ===========================================================================

class _CFGBuilder:
    """Partition a function into blocks, then wire the edges."""

    def __init__(self, function: Function, known_functions: Iterable[str] = ()) -> None:
        self.function = function
        self.known_functions = {
            name[1:] if name.startswith(":") else name for name in known_functions
        }
        self.cfg = CFG(function)
        self._labels: Dict[str, int] = {}

    def build(self) -> CFG:
        self._labels = self.function.labels()
        self._check_targets()
        self._partition()
        self._connect()
        logger.debug(
            "built %r: %d instructions", self.cfg, len(self.function.instructions)
        )
        return self.cfg

    def _unresolved(self, label: Label, index: int) -> UnresolvedLabel:
        return UnresolvedLabel(label.name, function=self.function.name, index=index)

    def _check_targets(self) -> None:
        for idx, ins in enumerate(self.function.instructions):
            if isinstance(ins, Goto):
                targets: Tuple[Label, ...] = (ins.label,)
            elif isinstance(ins, CJump):
                targets = ins.targets
            elif isinstance(ins, Call) and isinstance(ins.target, Label):
                if (
                    ins.target.name not in self._labels
                    and ins.target.name not in self.known_functions
                ):
                    raise self._unresolved(ins.target, idx)
                continue
            else:
                continue
            for label in targets:
                if label.name not in self._labels:
                    raise self._unresolved(label, idx)

    def _partition(self) -> None:
        instructions = self.function.instructions
        start = 0
        for idx, ins in enumerate(instructions):
            if isinstance(ins, LabelDef) and idx > start:
                self.cfg.add_block(start, idx)
                start = idx
            if isinstance(ins, TERMINATORS):
                self.cfg.add_block(start, idx + 1)
                start = idx + 1
        if start < len(instructions):
            self.cfg.add_block(start, len(instructions))

    def _block_at(self, label: Label) -> int:
        return self.cfg.block_of(self._labels[label.name]).index

    def _connect(self) -> None:
        instructions = self.function.instructions
        last_block = len(self.cfg.blocks) - 1
        for block in self.cfg.blocks:
            ins = instructions[block.last]
            if isinstance(ins, Return):
                continue
            if isinstance(ins, Goto):
                self.cfg.add_edge(block.index, self._block_at(ins.label), EdgeKind.GOTO)
            elif isinstance(ins, CJump):
                self.cfg.add_edge(
                    block.index, self._block_at(ins.true_label), EdgeKind.BRANCH_TRUE
                )
                self.cfg.add_edge(
                    block.index, self._block_at(ins.false_label), EdgeKind.BRANCH_FALSE
                )
            elif block.index < last_block:
                self.cfg.add_edge(block.index, block.index + 1, EdgeKind.FALL_THROUGH)


def build_cfg(function: Function, known_functions: Iterable[str] = ()) -> CFG:
    """Build a :class:`CFG` for a single function.

    Parameters
    ----------
    function : Function
        The function to view as a graph.  A function with no
        instructions yields a CFG with no blocks.
    known_functions : iterable of str
        Names of other functions in the program; a ``call`` to a label
        resolves against these as well as the function's own labels.

    Raises
    ------
    UnresolvedLabel
        If a ``goto``, ``cjump`` or ``call`` names an undefined label.
    DuplicateLabel
        If a label is defined more than once.
    """
    return _CFGBuilder(function, known_functions).build()


# ---------------------------------------------------------------------------
# Convenience: print a summary
# ---------------------------------------------------------------------------

def cfg_summary(cfg: CFG) -> str:
    """Return a multi-line human-readable summary of *cfg*."""
    lines = [repr(cfg)]
    kinds: Dict[Tuple[int, int], List[str]] = {}
    for e in cfg.edges:
        kinds.setdefault((e.src, e.dst), []).append(e.kind.value)
    for block in cfg.blocks:
        succ = ", ".join(
            f"BB{s.index}({'/'.join(kinds[(block.index, s.index)])})"
            for s in cfg.successors_of(block)
        )
        pred = ", ".join(f"BB{p.index}" for p in cfg.predecessors_of(block))
        lbl = f" :{block.label}" if block.label else ""
        lines.append(
            f"  BB{block.index}{lbl} [{block.start}, {block.end})  "
            f"succ=[{succ}]  pred=[{pred}]"
        )
    return "\n".join(lines)
