#!/usr/bin/env python3
# =============================================================================
#  l2-liveness — setup.py
#
#  The version lives in l2_liveness/__init__.py and the runtime requirements
#  in requirements.txt, so both have a single source of truth.
#
#  Typical use:
#      pip install -e ".[dev]"
#      python -m pytest
# =============================================================================

from __future__ import annotations

import re
from pathlib import Path

from setuptools import setup, find_packages

_HERE = Path(__file__).resolve().parent


def _read_version() -> str:
    """Extract ``__version__`` from the package's ``__init__.py``."""
    init = _HERE / "l2_liveness" / "__init__.py"
    text = init.read_text(encoding="utf-8")
    match = re.search(r'^__version__\s*=\s*"([^"]+)"', text, re.MULTILINE)
    if match:
        return match.group(1)
    return "0.0.0"


def _read_long_description() -> str:
    """Read README.md for the long description."""
    readme = _HERE / "README.md"
    if readme.exists():
        return readme.read_text(encoding="utf-8")
    return ""


def _read_requirements() -> list[str]:
    """Read requirements.txt if it exists."""
    req_file = _HERE / "requirements.txt"
    if req_file.exists():
        lines = req_file.read_text(encoding="utf-8").splitlines()
        return [
            ln.strip()
            for ln in lines
            if ln.strip() and not ln.strip().startswith("#")
        ]
    return []


setup(
    name="l2-liveness",
    version=_read_version(),
    description=(
        "Liveness analysis for the L2 compiler backend: CFG construction, "
        "GEN/KILL transfer rules and a backward dataflow fixpoint solver."
    ),
    long_description=_read_long_description(),
    long_description_content_type="text/markdown",
    license="MIT",
    author="l2-liveness contributors",
    python_requires=">=3.8",
    packages=find_packages(
        include=[
            "l2_liveness",
            "l2_liveness.*",
        ],
        exclude=[
            "tests",
            "tests.*",
        ],
    ),
    package_data={
        "l2_liveness": ["py.typed"],
    },
    install_requires=_read_requirements(),
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Software Development :: Compilers",
        "Typing :: Typed",
    ],
    keywords=[
        "compiler",
        "liveness",
        "data-flow",
        "control-flow",
        "register-allocation",
    ],
    zip_safe=False,
)
