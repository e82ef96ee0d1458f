import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo configure_logging() calls made by a test."""
    yield
    structlog.reset_defaults()
