"""Tests for CLI commands that need no network or long-running work."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from cli import cmd_stress


def test_stress_rejects_negative_duration(capsys) -> None:
    assert cmd_stress(argparse.Namespace(duration=-5)) == 1
    out = capsys.readouterr().out
    assert "Stress test failed" in out
    assert "must be positive" in out
