"""Shared pytest fixtures for the logpipe test suite."""

import pytest

from logpipe.metrics import Registry
from sample_logs import LOG_FIXTURE, LOG_LINE


@pytest.fixture()
def log_line() -> str:
    return LOG_LINE


@pytest.fixture()
def log_fixture() -> str:
    return LOG_FIXTURE


@pytest.fixture()
def registry() -> Registry:
    return Registry()
