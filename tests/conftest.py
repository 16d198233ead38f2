"""Pytest configuration and fixtures."""

import os
from pathlib import Path

import pytest
from PyQt6.QtCore import QCoreApplication


@pytest.fixture(scope="session")
def qapp():
    """A single Qt application object for signal-based tests."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


@pytest.fixture
def make_file():
    """Write a file below a root, optionally pinning its mtime."""
    def _make(root: Path, relative: str, content: bytes = b"data", mtime: int = None) -> Path:
        path = root.joinpath(*relative.split('/'))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path
    return _make


@pytest.fixture
def local_dir(tmp_path):
    path = tmp_path / "local"
    path.mkdir()
    return path


@pytest.fixture
def remote_dir(tmp_path):
    path = tmp_path / "remote"
    path.mkdir()
    return path
