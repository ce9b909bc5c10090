"""Shared pytest fixtures for the whole test suite."""

import os

import pytest

from shellpipe.config import reset_execution_config


@pytest.fixture(autouse=True)
def reset_config_singleton(monkeypatch):
    """Isolate every test from SHELLPIPE_* variables and the cached config."""
    for key in list(os.environ):
        if key.startswith("SHELLPIPE_") and not key.startswith("SHELLPIPE_TEST_"):
            monkeypatch.delenv(key)
    reset_execution_config()
    yield
    reset_execution_config()
