#!/usr/bin/env python3
# =============================================================================
#  tacflow: setup.py
#
#  Build requirements and pytest settings live in pyproject.toml; package
#  metadata lives here.  The version is read from tacflow/__init__.py so
#  there is a single source of truth.
#
#  For development:
#      pip install -e ".[dev]"
#      python -m pytest
# =============================================================================

from __future__ import annotations

import re
from pathlib import Path

from setuptools import setup, find_packages

_HERE = Path(__file__).resolve().parent


def _read_version() -> str:
    """Extract ``__version__`` from tacflow/__init__.py."""
    init = _HERE / "tacflow" / "__init__.py"
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


setup(
    name="tacflow",
    version=_read_version(),
    description=(
        "Constant propagation, live variables, dead-code detection and "
        "CHA call graphs over a three-address IR."
    ),
    long_description=_read_long_description(),
    long_description_content_type="text/markdown",
    license="MIT",
    author="tacflow contributors",
    python_requires=">=3.10",
    packages=find_packages(
        include=[
            "tacflow",
            "tacflow.*",
        ],
        exclude=[
            "tests",
            "tests.*",
        ],
    ),
    package_data={
        "tacflow": ["py.typed"],
    },
    install_requires=[],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "ruff>=0.4",
            "mypy>=1.10",
            "black>=24.0",
            "isort>=5.13",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Software Development :: Quality Assurance",
        "Topic :: Software Development :: Compilers",
        "Typing :: Typed",
    ],
    keywords=[
        "static-analysis",
        "data-flow",
        "constant-propagation",
        "dead-code",
        "call-graph",
        "class-hierarchy-analysis",
        "program-analysis",
    ],
    zip_safe=False,
)
