import logging
from datetime import datetime, timedelta, timezone

import pytest
import structlog
from structlog.testing import LogCapture


class FakeClock:
    """Clock returning fixed instants so latency is known in advance."""

    def __init__(self, start: datetime, end: datetime):
        self.start = start
        self.end = end

    def now(self) -> datetime:
        return self.start

    def since(self, start: datetime) -> timedelta:
        return self.end - start


@pytest.fixture
def capture() -> LogCapture:
    return LogCapture()


@pytest.fixture
def capture_logger(capture):
    """structlog logger whose events end up in ``capture.entries``."""
    return structlog.wrap_logger(
        structlog.ReturnLogger(),
        processors=[capture],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    t0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    return FakeClock(t0, t0 + timedelta(milliseconds=50))
