"""Shared pytest fixtures for folder-sync tests."""

import logging
from pathlib import Path

import pytest

import folder_sync


@pytest.fixture
def source(tmp_path: Path) -> Path:
    path = tmp_path / "source"
    path.mkdir()
    return path


@pytest.fixture
def replica(tmp_path: Path) -> Path:
    path = tmp_path / "replica"
    path.mkdir()
    return path


@pytest.fixture
def logger() -> logging.Logger:
    """A propagating logger so caplog sees every action line."""
    return logging.getLogger("sync_tests")


@pytest.fixture(autouse=True)
def reset_app_logger():
    """main() configures the shared app logger; drop its handlers afterwards."""
    yield
    app_logger = logging.getLogger(folder_sync.LOGGER_NAME)
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
