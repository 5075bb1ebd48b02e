"""
l2_liveness.dataflow_engine
===========================

Backward may-liveness fixpoint engine over a function's CFG.

Theory
------
Liveness is a backward dataflow analysis over the powerset lattice of
names ``(2^Names, ⊆, ∅, ∪)``.  It is solved at instruction granularity
so every instruction gets exact facts:

    OUT[i] = ⋃ IN[j]  for j ∈ succ(i)
    IN[i]  = GEN[i] ∪ (OUT[i] \\ KILL[i])

``succ(i)`` is the next instruction inside a block; the last instruction
of a block inherits the first instructions of the block's successors,
and a ``return`` has none.

All facts start at ⊥ (the empty set).  Each pass recomputes every
instruction; the solver stops when a complete pass leaves the full
IN/OUT snapshot unchanged.  GEN and KILL are fixed and the equations
are monotone over a finite universe, so the least fixpoint is reached
after finitely many passes and is independent of the visiting order;
the order only changes how many passes it takes.

Public API
----------
    PowersetLattice     - the lattice of name sets
    IterationOrder      - order in which a pass visits instructions
    LivenessResult      - immutable IN/OUT facts per instruction
    LivenessSolver      - single-function fixpoint engine
    solve               - convenience function
    verify_fixpoint     - re-check the equations on a result
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple

from .ctrlflow_graph import CFG
from .errors import FixpointViolation, LivenessError
from .transfer import Effects, TransferCatalog, TransferFn

logger = logging.getLogger(__name__)


# ===========================================================================
# LATTICE
# ===========================================================================

class PowersetLattice:
    """Powerset lattice: ``(2^U, ⊆, ∅, ∪)``.

    Values are frozensets, so facts can be shared between snapshots
    without copying.
    """

    def bottom(self) -> FrozenSet[str]:
        return frozenset()

    def join(self, a: FrozenSet[str], b: FrozenSet[str]) -> FrozenSet[str]:
        return a | b

    def join_all(self, values: Iterable[FrozenSet[str]]) -> FrozenSet[str]:
        result = self.bottom()
        for v in values:
            result = result | v
        return result

    def leq(self, a: FrozenSet[str], b: FrozenSet[str]) -> bool:
        return a <= b


# ===========================================================================
# ITERATION ORDER
# ===========================================================================

class IterationOrder(enum.Enum):
    """Order in which one pass visits the instructions."""
    REVERSE = "reverse"    # reverse program order (fast for backward flow)
    FORWARD = "forward"    # program order

    def indices(self, n: int) -> Sequence[int]:
        if self is IterationOrder.REVERSE:
            return range(n - 1, -1, -1)
        return range(n)


# ===========================================================================
# RESULT
# ===========================================================================

@dataclass(frozen=True)
class LivenessResult:
    """Liveness facts of one function, indexed by instruction.

    Attributes
    ----------
    function : str
        Name of the analysed function.
    facts_in : tuple[frozenset[str], ...]
        ``IN[i]`` -- names live immediately before instruction *i*.
    facts_out : tuple[frozenset[str], ...]
        ``OUT[i]`` -- names live immediately after instruction *i*.
    effects : tuple[Effects, ...]
        The GEN/KILL sets the facts were computed from.
    successors : tuple[tuple[int, ...], ...]
        Instruction-level successor indices used by the equations.
    passes : int
        Number of full passes, including the final unchanged one.
    elapsed_seconds : float
        Wall-clock time of the solve.
    """

    function: str
    facts_in: Tuple[FrozenSet[str], ...]
    facts_out: Tuple[FrozenSet[str], ...]
    effects: Tuple[Effects, ...] = ()
    successors: Tuple[Tuple[int, ...], ...] = ()
    passes: int = field(default=0, compare=False)
    elapsed_seconds: float = field(default=0.0, compare=False)

    def __len__(self) -> int:
        return len(self.facts_in)

    def live_in(self, index: int) -> FrozenSet[str]:
        return self.facts_in[index]

    def live_out(self, index: int) -> FrozenSet[str]:
        return self.facts_out[index]

    def items(self) -> Iterator[Tuple[int, FrozenSet[str], FrozenSet[str]]]:
        """Iterate over ``(index, IN, OUT)`` triples."""
        for i, (fin, fout) in enumerate(zip(self.facts_in, self.facts_out)):
            yield i, fin, fout

    def names(self) -> FrozenSet[str]:
        """Every name live somewhere in the function."""
        lattice = PowersetLattice()
        return lattice.join(
            lattice.join_all(self.facts_in), lattice.join_all(self.facts_out)
        )


# ===========================================================================
# SOLVER
# ===========================================================================

class LivenessSolver:
    """Round-robin fixpoint engine for liveness over one CFG.

    Parameters
    ----------
    cfg : CFG
        The control-flow graph (from :mod:`l2_liveness.ctrlflow_graph`).
    transfer : callable(Instruction) → Effects, optional
        The transfer function.  Defaults to an x86-64
        :class:`~l2_liveness.transfer.TransferCatalog`.
    order : IterationOrder
        Visiting order of a pass.

    The solver owns its working arrays; nothing is shared between two
    ``solve()`` calls, so independent functions can be solved
    concurrently.
    """

    def __init__(
        self,
        cfg: CFG,
        transfer: Optional[TransferFn] = None,
        order: IterationOrder = IterationOrder.REVERSE,
    ) -> None:
        self.cfg = cfg
        self.transfer = transfer if transfer is not None else TransferCatalog()
        self.order = order
        self.lattice = PowersetLattice()

    def _effects(self) -> Tuple[Effects, ...]:
        function = self.cfg.function
        effects: List[Effects] = []
        for idx, ins in enumerate(function.instructions):
            try:
                gen, kill = self.transfer(ins)
            except LivenessError as exc:
                if exc.index is None:
                    exc.index = idx
                raise exc.with_function(function.name)
            effects.append(Effects(frozenset(gen), frozenset(kill)))
        return tuple(effects)

    def solve(self) -> LivenessResult:
        """Run the analysis to its least fixpoint.

        Returns
        -------
        LivenessResult
        """
        t0 = time.monotonic()
        name = self.cfg.function.name
        effects = self._effects()
        succ = self.cfg.instruction_successors()
        n = len(effects)

        bot = self.lattice.bottom()
        facts_in: List[FrozenSet[str]] = [bot] * n
        facts_out: List[FrozenSet[str]] = [bot] * n
        visit = self.order.indices(n)

        passes = 0
        while True:
            before_in = tuple(facts_in)
            before_out = tuple(facts_out)
            passes += 1
            for i in visit:
                out = self.lattice.join_all(facts_in[j] for j in succ[i])
                gen, kill = effects[i]
                facts_out[i] = out
                facts_in[i] = gen | (out - kill)
            changed = sum(
                1 for i in range(n)
                if facts_in[i] != before_in[i] or facts_out[i] != before_out[i]
            )
            if not changed:
                break
            logger.debug("%s: pass %d changed %d instructions", name, passes, changed)

        elapsed = time.monotonic() - t0
        logger.info(
            "%s: liveness converged after %d passes over %d instructions",
            name, passes, n,
        )
        return LivenessResult(
            function=name,
            facts_in=tuple(facts_in),
            facts_out=tuple(facts_out),
            effects=effects,
            successors=succ,
            passes=passes,
            elapsed_seconds=elapsed,
        )


def solve(
    cfg: CFG,
    transfer: Optional[TransferFn] = None,
    *,
    order: IterationOrder = IterationOrder.REVERSE,
) -> LivenessResult:
    """Solve liveness for *cfg* with *transfer* (default: x86-64 catalog)."""
    return LivenessSolver(cfg, transfer, order).solve()


def verify_fixpoint(result: LivenessResult) -> List[int]:
    """Return the indices where *result* violates the liveness equations.

    An empty list means the facts are a fixpoint.
    """
    lattice = PowersetLattice()
    bad: List[int] = []
    for i, (gen, kill) in enumerate(result.effects):
        out = lattice.join_all(result.facts_in[j] for j in result.successors[i])
        if result.facts_out[i] != out or result.facts_in[i] != gen | (out - kill):
            bad.append(i)
    return bad


def check_fixpoint(result: LivenessResult) -> LivenessResult:
    """Raise :class:`FixpointViolation` unless *result* is a fixpoint."""
    bad = verify_fixpoint(result)
    if bad:
        raise FixpointViolation(bad, function=result.function)
    return result
