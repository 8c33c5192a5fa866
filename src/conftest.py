"""
Pytest Configuration
====================

Automatically loaded by pytest. Adds src/ to sys.path so lattice_inflator
is importable without installation, and routes the package logger to the
console at WARNING (pytest captures it per test).

Portable - works wherever the project is cloned.

Usage:
    cd src
    pytest tests/ -v
    LATTICE_LOG=DEBUG pytest tests/core/test_inflator.py -s
"""

import logging
import os
import sys
from pathlib import Path


def _add_src_to_path():
    src_root = Path(__file__).parent
    if str(src_root) not in sys.path:
        sys.path.insert(0, str(src_root))


def pytest_configure(config):
    """Add src/ to path before any imports happen, then set up logging."""
    _add_src_to_path()
    from lattice_inflator.logging_config import setup_logging

    level = getattr(logging, os.environ.get("LATTICE_LOG", "WARNING").upper(), logging.WARNING)
    setup_logging(level)


# Also do it at module level for non-pytest usage
_add_src_to_path()
