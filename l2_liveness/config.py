"""
l2_liveness.config
==================

Analysis configuration and logging setup.

:class:`AnalysisConfig` gathers the tuning knobs of one analysis run.
It can be built in code, from a mapping, or from a JSON file::

    {
        "architecture": "x86-64",
        "order": "reverse",
        "check_fixpoint": true,
        "skip_failed_functions": false
    }

``"architecture"`` is either the name of a built-in architecture or a
full architecture object (see :meth:`Architecture.from_dict`).
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

from .architecture import Architecture, X86_64, get_architecture
from .dataflow_engine import IterationOrder
from .errors import ConfigurationError

_log = logging.getLogger("l2_liveness")

_KEYS = {"architecture", "order", "check_fixpoint", "skip_failed_functions"}

# Handler installed by the last configure_logging() call.
_handler: Optional[logging.Handler] = None


@dataclass
class AnalysisConfig:
    """Tuning knobs for a liveness run."""

    architecture: Architecture = field(default_factory=lambda: X86_64)
    order: IterationOrder = IterationOrder.REVERSE
    check_fixpoint: bool = False
    skip_failed_functions: bool = False

    def validate(self) -> List[str]:
        """Return a list of validation problems (empty if valid)."""
        problems = list(self.architecture.validate())
        if not isinstance(self.order, IterationOrder):
            problems.append(f"order must be an IterationOrder, got {self.order!r}")
        return problems

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalysisConfig":
        """Build a config from a mapping, raising :class:`ConfigurationError`."""
        unknown = sorted(set(data) - _KEYS)
        if unknown:
            raise ConfigurationError("unknown configuration keys", unknown)
        arch_spec = data.get("architecture", X86_64.name)
        if isinstance(arch_spec, Mapping):
            arch = Architecture.from_dict(arch_spec)
        else:
            arch = get_architecture(str(arch_spec))
        try:
            order = IterationOrder(data.get("order", IterationOrder.REVERSE.value))
        except ValueError:
            raise ConfigurationError(
                f"unknown iteration order {data.get('order')!r}",
                [f"expected one of {[o.value for o in IterationOrder]}"],
            ) from None
        flags = {}
        for key in ("check_fixpoint", "skip_failed_functions"):
            value = data.get(key, False)
            if not isinstance(value, bool):
                raise ConfigurationError(
                    f"{key} must be true or false, got {value!r}", [key]
                )
            flags[key] = value
        config = cls(architecture=arch, order=order, **flags)
        problems = config.validate()
        if problems:
            raise ConfigurationError("invalid configuration", problems)
        return config


def load_config(path: Union[str, Path]) -> AnalysisConfig:
    """Read an :class:`AnalysisConfig` from a JSON file."""
    p = Path(path).expanduser()
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"cannot read configuration {p}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"configuration {p} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"configuration {p} must hold a JSON object")
    _log.debug("loaded configuration from %s", p)
    return AnalysisConfig.from_dict(data)


def configure_logging(verbosity: int) -> None:
    """Set up the root ``l2_liveness`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    global _handler
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("l2_liveness")
    root.setLevel(level)
    if _handler is not None:
        root.removeHandler(_handler)
    _handler = handler
    root.addHandler(handler)
