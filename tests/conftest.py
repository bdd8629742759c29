"""Shared pytest fixtures."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from osm_element_tracker.guard import CommitGuard
from osm_element_tracker.history import HistoryStore

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


@pytest.fixture()
def guard(tmp_path: Path) -> CommitGuard:
    return CommitGuard(tmp_path / "locks" / "tracker.lock")


@pytest.fixture()
def store(tmp_path: Path, guard: CommitGuard) -> HistoryStore:
    """An initialised history repository in a temporary directory."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    history = HistoryStore(tmp_path / "history", guard)
    history.initialize()
    return history
