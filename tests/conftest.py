"""Pytest configuration and shared fixtures."""

import logging

import pytest

from telehook.bridge import ApprovalBroker, Backend
from telehook.config import TelehookSettings


class FakeBackend(Backend):
    """In-memory backend double.

    ``pending`` is what priming (offset=None) sees. ``batches`` are handed out
    one per poll; an Exception in ``batches`` is raised for that poll instead.
    Offsets are recorded but not honoured, so redelivery can be simulated.
    """

    def __init__(self, batches=None, pending=None, auth_error=None, send_errors=None,
                 prime_error=None, ack_error=None):
        self.batches = list(batches or [])
        self.pending = list(pending or [])
        self.auth_error = auth_error
        self.send_errors = send_errors or {}
        self.prime_error = prime_error
        self.ack_error = ack_error
        self.calls = []
        self.sent = []
        self.acks = []
        self.offsets = []
        self.closed = False

    async def authenticate(self):
        self.calls.append("authenticate")
        if self.auth_error:
            raise self.auth_error

    async def send_message(self, recipient, text, controls):
        self.calls.append("send")
        if recipient in self.send_errors:
            raise self.send_errors[recipient]
        self.sent.append((recipient, text, list(controls)))

    async def fetch_events(self, offset=None, timeout=0):
        self.calls.append("fetch")
        if offset is None:
            if self.prime_error:
                raise self.prime_error
            return list(self.pending)
        self.offsets.append(offset)
        if not self.batches:
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return list(batch)

    async def acknowledge(self, query_id, text=None):
        self.calls.append("ack")
        if self.ack_error:
            raise self.ack_error
        self.acks.append((query_id, text))

    async def close(self):
        self.closed = True


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is awaited."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_broker(clock):
    """Build an ApprovalBroker on the fake clock."""
    def _make(backend):
        return ApprovalBroker(backend, clock=clock, sleep=clock.sleep)
    return _make


@pytest.fixture
def settings(tmp_path):
    """Fully configured settings pointing logs into tmp_path."""
    return TelehookSettings(
        log_file=str(tmp_path / "telehook.log"),
        telegram_enabled=True,
        telegram_bot_token="123456:ABC-DEF",
        telegram_user_ids=[42],
        telegram_timeout_ms=5000,
        telegram_poll_interval_ms=1000,
        permission_hook_enabled=True,
        permission_hook_tools_auto_approved=["Read"],
        permission_hook_timeout_ms=3000,
    )


@pytest.fixture(autouse=True)
def _reset_telehook_logger():
    """Drop handlers added by setup_logging so tests don't share log files."""
    logger = logging.getLogger("telehook")
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
