"""Shared pytest fixtures."""

import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo ``configure_logging`` so no test writes to a stream captured by another."""
    yield
    structlog.reset_defaults()
