"""
l2_liveness.liveness
====================

Ready-to-use liveness analysis for functions and whole programs.

Each call builds a fresh CFG and fresh working sets, solves, and hands
back an immutable :class:`~l2_liveness.dataflow_engine.LivenessResult`.
Nothing is cached between calls, so functions may be analysed in
parallel by the caller.

Usage example
-------------
::

    from l2_liveness import analyze_program, render_sexp

    for name, result in analyze_program(program).items():
        print(render_sexp(result))
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, Iterable, Optional

from .config import AnalysisConfig
from .ctrlflow_graph import CFG, build_cfg
from .dataflow_engine import LivenessResult, LivenessSolver, check_fixpoint
from .errors import LivenessError
from .ir import Function, Program
from .transfer import TransferCatalog

logger = logging.getLogger(__name__)


class LivenessAnalysis:
    """Liveness analysis (backward, may) of one function.

    Parameters
    ----------
    function : Function
        The function to analyse.
    config : AnalysisConfig, optional
        Architecture and solver settings; defaults to x86-64.
    known_functions : iterable of str
        Other function names a ``call`` to a label may target.
    """

    def __init__(
        self,
        function: Function,
        config: Optional[AnalysisConfig] = None,
        known_functions: Iterable[str] = (),
    ) -> None:
        self.function = function
        self.config = config or AnalysisConfig()
        self.known_functions = tuple(known_functions)
        self.catalog = TransferCatalog(self.config.architecture)
        self.cfg: Optional[CFG] = None

    def run(self) -> LivenessResult:
        """Execute the analysis."""
        try:
            self.cfg = build_cfg(self.function, self.known_functions)
        except LivenessError as exc:
            raise exc.with_function(self.function.name)
        result = LivenessSolver(self.cfg, self.catalog, self.config.order).solve()
        if self.config.check_fixpoint:
            check_fixpoint(result)
        return result


def analyze_function(
    function: Function,
    config: Optional[AnalysisConfig] = None,
    known_functions: Iterable[str] = (),
) -> LivenessResult:
    """Compute per-instruction live-in/live-out sets of *function*."""
    return LivenessAnalysis(function, config, known_functions).run()


def analyze_program(
    program: Program,
    config: Optional[AnalysisConfig] = None,
) -> Dict[str, LivenessResult]:
    """Analyse every function of *program* independently.

    Returns an ordered mapping from function name to result, in program
    order.  A :class:`~l2_liveness.errors.LivenessError` aborts the whole
    run unless ``config.skip_failed_functions`` is set, in which case the
    function is logged and left out of the mapping.
    """
    config = config or AnalysisConfig()
    names = program.function_names()
    results: Dict[str, LivenessResult] = OrderedDict()
    for fn in program.functions:
        try:
            results[fn.name] = analyze_function(fn, config, names)
        except LivenessError as exc:
            if not config.skip_failed_functions:
                raise
            logger.warning("skipping function %s: %s", fn.name, exc)
    logger.info(
        "analysed %d of %d functions", len(results), len(program.functions)
    )
    return results
