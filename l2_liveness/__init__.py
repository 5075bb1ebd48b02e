"""
l2_liveness — Liveness Analysis for the L2 Compiler Backend
===========================================================

Computes, for every instruction of an L2 function, the set of registers
and variables whose current value may still be read ("live").  The
result feeds interference-graph construction in the register allocator.

Core modules
------------
ir
    Immutable operands, instructions, functions and programs.
architecture
    Register conventions of the target (x86-64 by default).
ctrlflow_graph
    Basic-block CFG construction from a linear instruction list.
transfer
    GEN/KILL rules per instruction kind.
dataflow_engine
    Backward fixpoint solver producing per-instruction IN/OUT sets.
reporting
    Sorted, read-only views of a result (S-expression and JSON).
liveness
    Per-function and per-program entry points.
config
    Analysis configuration and logging setup.

Quick start
-----------
>>> from l2_liveness import Function, Return, analyze_function
>>> result = analyze_function(Function("main", 0, 0, (Return(),)))
>>> sorted(result.live_in(0))
['r12', 'r13', 'r14', 'r15', 'rax', 'rbp', 'rbx']
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import TYPE_CHECKING, List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.3.0"
__author__ = "l2-liveness contributors"
__license__ = "MIT"
__all__: List[str] = []          # populated below

_log = logging.getLogger(__name__)
_log.addHandler(logging.NullHandler())

# ---------------------------------------------------------------------------
# Internal registry: (module_name, list_of_names_to_re-export)
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "errors": [
        "LivenessError",
        "UnresolvedLabel",
        "DuplicateLabel",
        "MalformedInstruction",
        "MalformedProgram",
        "ReportParseError",
        "UnsupportedInstruction",
        "ConfigurationError",
        "FixpointViolation",
    ],
    "ir": [
        "Register",
        "Variable",
        "Label",
        "Number",
        "RuntimeFunction",
        "Memory",
        "Instruction",
        "Return",
        "LabelDef",
        "Assign",
        "Call",
        "Goto",
        "IncDec",
        "Cisc",
        "Compare",
        "CJump",
        "StackArg",
        "INSTRUCTION_KINDS",
        "Function",
        "Program",
    ],
    "architecture": [
        "Architecture",
        "X86_64",
        "get_architecture",
    ],
    "ctrlflow_graph": [
        "BasicBlock",
        "CFG",
        "CFGEdge",
        "EdgeKind",
        "build_cfg",
        "cfg_summary",
    ],
    "transfer": [
        "Effects",
        "TransferCatalog",
        "effects",
    ],
    "dataflow_engine": [
        "IterationOrder",
        "LivenessResult",
        "LivenessSolver",
        "solve",
        "verify_fixpoint",
        "check_fixpoint",
    ],
    "reporting": [
        "InstructionLiveness",
        "FunctionLiveness",
        "project",
        "render_sexp",
        "parse_sexp",
        "to_dict",
        "render_json",
    ],
    "config": [
        "AnalysisConfig",
        "load_config",
        "configure_logging",
    ],
    "liveness": [
        "LivenessAnalysis",
        "analyze_function",
        "analyze_program",
    ],
}

# ---------------------------------------------------------------------------
# Import helper
# ---------------------------------------------------------------------------

def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"l2_liveness: required submodule '{module_rel_name}' "
            f"failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        if not hasattr(mod, name):
            raise AttributeError(
                f"l2_liveness.{module_rel_name} does not export '{name}'"
            )
        setattr(current_module, name, getattr(mod, name))
        __all__.append(name)

    # Also expose the submodule itself so that both
    #   l2_liveness.ir.Return  and  l2_liveness.Return
    # work.
    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names


def list_submodules() -> List[str]:
    """Return the names of all submodules in the package."""
    return sorted(_CORE_MODULES)


__all__ += ["list_submodules", "__version__"]

# ---------------------------------------------------------------------------
# Static re-exports for type checkers and IDEs
# ---------------------------------------------------------------------------

if TYPE_CHECKING:
    from .errors import (
        LivenessError as LivenessError,
        UnresolvedLabel as UnresolvedLabel,
        DuplicateLabel as DuplicateLabel,
        MalformedInstruction as MalformedInstruction,
        MalformedProgram as MalformedProgram,
        ReportParseError as ReportParseError,
        UnsupportedInstruction as UnsupportedInstruction,
        ConfigurationError as ConfigurationError,
        FixpointViolation as FixpointViolation,
    )
    from .ir import (
        Register as Register,
        Variable as Variable,
        Label as Label,
        Number as Number,
        RuntimeFunction as RuntimeFunction,
        Memory as Memory,
        Instruction as Instruction,
        Return as Return,
        LabelDef as LabelDef,
        Assign as Assign,
        Call as Call,
        Goto as Goto,
        IncDec as IncDec,
        Cisc as Cisc,
        Compare as Compare,
        CJump as CJump,
        StackArg as StackArg,
        INSTRUCTION_KINDS as INSTRUCTION_KINDS,
        Function as Function,
        Program as Program,
    )
    from .architecture import (
        Architecture as Architecture,
        X86_64 as X86_64,
        get_architecture as get_architecture,
    )
    from .ctrlflow_graph import (
        BasicBlock as BasicBlock,
        CFG as CFG,
        CFGEdge as CFGEdge,
        EdgeKind as EdgeKind,
        build_cfg as build_cfg,
        cfg_summary as cfg_summary,
    )
    from .transfer import (
        Effects as Effects,
        TransferCatalog as TransferCatalog,
        effects as effects,
    )
    from .dataflow_engine import (
        IterationOrder as IterationOrder,
        LivenessResult as LivenessResult,
        LivenessSolver as LivenessSolver,
        solve as solve,
        verify_fixpoint as verify_fixpoint,
        check_fixpoint as check_fixpoint,
    )
    from .reporting import (
        InstructionLiveness as InstructionLiveness,
        FunctionLiveness as FunctionLiveness,
        project as project,
        render_sexp as render_sexp,
        parse_sexp as parse_sexp,
        to_dict as to_dict,
        render_json as render_json,
    )
    from .config import (
        AnalysisConfig as AnalysisConfig,
        load_config as load_config,
        configure_logging as configure_logging,
    )
    from .liveness import (
        LivenessAnalysis as LivenessAnalysis,
        analyze_function as analyze_function,
        analyze_program as analyze_program,
    )
