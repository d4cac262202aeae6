"""Shared test fixtures."""

import os
import subprocess

import pytest


@pytest.fixture
def spawned(monkeypatch):
    """Record every Popen the bridge creates."""
    procs = []
    real_popen = subprocess.Popen

    class RecordingPopen(real_popen):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            procs.append(self)

    monkeypatch.setattr(subprocess, "Popen", RecordingPopen)
    return procs


@pytest.fixture
def open_fds():
    """Return a callable listing this process's open descriptors."""
    if not os.path.isdir("/proc/self/fd"):
        pytest.skip("needs /proc/self/fd")

    def _list():
        return set(os.listdir("/proc/self/fd"))

    return _list


@pytest.fixture
def no_env_config(tmp_path, monkeypatch):
    """Run from an empty directory with no config overrides."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("POPEN_BRIDGE_CONFIG", raising=False)
    monkeypatch.delenv("POPEN_BRIDGE_VERBOSE", raising=False)
    return tmp_path
