import pytest
from status_monitor.testing import MonitorTestContext


@pytest.fixture(scope="session")
def session_context() -> MonitorTestContext:
    """Capture log records for the whole test session."""
    context = MonitorTestContext.create()
    yield context
    context.close()


@pytest.fixture
def monitor_context(session_context) -> MonitorTestContext:
    """Provide the session context with the log records of earlier tests cleared."""
    session_context.clear()
    return session_context
