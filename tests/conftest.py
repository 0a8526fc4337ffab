"""Pytest configuration and shared fixtures."""

import subprocess

import pytest

from mysh.process import zombie_children
from mysh.shell import Shell


@pytest.fixture
def shell(tmp_path):
    """A Shell whose working directory is a fresh temporary directory."""
    return Shell(cwd=str(tmp_path))


@pytest.fixture
def forbid_spawn(monkeypatch):
    """Fail the test if anything tries to start a process."""
    calls = []

    def fake_popen(*args, **kwargs):
        calls.append(args)
        raise AssertionError(f"unexpected process spawn: {args!r}")

    monkeypatch.setattr(subprocess, "Popen", fake_popen)
    return calls


@pytest.fixture(autouse=True)
def no_zombies_left():
    """Every test must leave no terminated-but-unwaited children behind."""
    yield
    assert zombie_children() == []
