"""Pytest configuration shared by the unit and end-to-end suites.

What:
  Establish project import paths and apply a canned runtime configuration to
  every test.

Why:
  Tests must import the in-repo ``mailpart`` sources rather than an installed
  wheel, and the configuration cache is global state that would otherwise
  leak between tests.

How:
  Prepend ``mailpart/src`` to ``sys.path`` when present, point
  ``MAILPART_CONFIG_PATH`` at ``tests/data/config.yaml``, and reset the runtime
  cache before and after each test.

Interfaces:
  :func:`runtime_config` (autouse fixture).
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "mailpart" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from mailpart.config.loader import reset_runtime_config

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "config.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Apply the canned configuration file for every test.

    Args:
      monkeypatch: Pytest helper used for environment control.
    """

    monkeypatch.setenv("MAILPART_CONFIG_PATH", str(CONFIG_PATH))
    reset_runtime_config()
    try:
        yield
    finally:
        reset_runtime_config()
