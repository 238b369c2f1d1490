"""Fixtures for configuration tests."""

import os

import pytest


@pytest.fixture(autouse=True)
def clean_environment():
    """Strip COMPOSITION_ variables and restore the environment afterwards."""
    saved = dict(os.environ)
    for key in list(os.environ):
        if key.startswith("COMPOSITION_"):
            del os.environ[key]
    yield
    os.environ.clear()
    os.environ.update(saved)
