"""Tests for the approval broker exchange."""

import re

import pytest

from telehook.bridge import (
    ActivationEvent,
    BackendAuthError,
    Control,
    DeliveryError,
    Exchange,
    ExchangeState,
    ExchangeTimeoutError,
    HandlerError,
    IgnoredEvent,
    MessageTooLong,
    PollingError,
    TextEvent,
    interactive,
    passive,
)
from telehook.bridge.broker import ACK_TEXT, TELEGRAM_MAX_LENGTH

from conftest import FakeBackend


def _press(update_id, user, payload, query_id=None):
    return ActivationEvent(id=update_id, from_recipient=user, payload=payload, query_id=query_id or f"q{update_id}")


def _text(update_id, user, text):
    return TextEvent(id=update_id, from_recipient=user, text=text)


# ── Preconditions ───────────────────────────────────────────


class TestPreconditions:
    @pytest.mark.asyncio
    async def test_message_too_long_makes_no_calls(self, make_broker):
        """Test that oversized text fails before any backend call."""
        backend = FakeBackend()
        with pytest.raises(MessageTooLong) as exc:
            await make_broker(backend).ask("x" * (TELEGRAM_MAX_LENGTH + 1), [passive("/x")], {42})
        assert backend.calls == []
        assert exc.value.length == TELEGRAM_MAX_LENGTH + 1

    @pytest.mark.asyncio
    async def test_message_at_limit_is_sent(self, make_broker):
        """Test that text exactly at the limit is sent."""
        backend = FakeBackend(batches=[[_text(1, 42, "/x")]])
        result = await make_broker(backend).ask("x" * TELEGRAM_MAX_LENGTH, [passive("/x")], {42})
        assert result == "/x"

    @pytest.mark.asyncio
    async def test_auth_failure(self, make_broker):
        """Test that an authentication failure raises BackendAuthError."""
        backend = FakeBackend(auth_error=RuntimeError("Unauthorized"))
        with pytest.raises(BackendAuthError):
            await make_broker(backend).ask("hi", [passive("/x")], {42})
        assert backend.calls == ["authenticate"]

    @pytest.mark.asyncio
    async def test_delivery_failure_fails_whole_exchange(self, make_broker):
        """Test that one failed send fails the exchange."""
        backend = FakeBackend(send_errors={2: RuntimeError("chat not found")})
        with pytest.raises(DeliveryError) as exc:
            await make_broker(backend).ask("hi", [passive("/x")], [1, 2, 3])
        assert exc.value.recipient == 2
        assert "fetch" not in backend.calls


# ── Send phase ──────────────────────────────────────────────


class TestSendPhase:
    @pytest.mark.asyncio
    async def test_controls_from_interactive_commands_in_order(self, make_broker):
        """Test that interactive commands become controls in declaration order."""
        commands = [
            interactive("Yes", "/yes"),
            passive(re.compile(r"^/why (.+)$")),
            interactive("No", "/no"),
        ]
        backend = FakeBackend(batches=[[_press(1, 42, "/no")]])
        await make_broker(backend).ask("Approve?", commands, {42})
        _, _, controls = backend.sent[0]
        assert controls == [Control("Yes", "/yes"), Control("No", "/no")]

    @pytest.mark.asyncio
    async def test_sends_to_every_recipient(self, make_broker):
        """Test that every recipient gets the message once."""
        backend = FakeBackend(batches=[[_text(1, 7, "/x")]])
        await make_broker(backend).ask("hi", [passive("/x")], [7, 8, 7])
        assert [r for r, _, _ in backend.sent] == [7, 8]

    @pytest.mark.asyncio
    async def test_passive_only_sends_no_controls(self, make_broker):
        """Test that passive commands add no buttons."""
        backend = FakeBackend(batches=[[_text(1, 42, "/x")]])
        await make_broker(backend).ask("hi", [passive("/x")], {42})
        assert backend.sent[0][2] == []


# ── Scenarios ───────────────────────────────────────────────


class TestScenarios:
    @pytest.mark.asyncio
    async def test_button_press_on_second_poll(self, make_broker):
        """Test that a press on a later poll resolves the exchange."""
        seen = []
        commands = [interactive("Yes", "/yes-123", seen.append)]
        backend = FakeBackend(batches=[[], [_press(1, 42, "/yes-123", "cbq")]])

        result = await make_broker(backend).ask("Approve?", commands, {42}, 5000, 1000)

        assert result == "/yes-123"
        assert seen == ["/yes-123"]
        assert backend.acks == [("cbq", ACK_TEXT)]

    @pytest.mark.asyncio
    async def test_unauthorized_press_times_out(self, make_broker):
        """Test that presses from unknown users never resolve."""
        seen = []
        commands = [interactive("Yes", "/yes-123", seen.append)]
        backend = FakeBackend(batches=[[], [_press(1, 99, "/yes-123")]])

        with pytest.raises(ExchangeTimeoutError):
            await make_broker(backend).ask("Approve?", commands, {42}, 5000, 1000)

        assert seen == []
        assert backend.acks == []

    @pytest.mark.asyncio
    async def test_regex_text_command(self, make_broker):
        """Test that a regex command matches free text."""
        seen = []
        commands = [passive(re.compile(r"^/block\s+(.+)$"), seen.append)]
        backend = FakeBackend(batches=[[_text(1, 42, "/block bad idea")]])

        result = await make_broker(backend).ask("Done?", commands, {42})

        assert result == "/block bad idea"
        assert seen == [("bad idea",)]

    @pytest.mark.asyncio
    async def test_unauthorized_text_never_matches(self, make_broker):
        """Test that text from unknown users is ignored."""
        seen = []
        commands = [passive("/go", seen.append)]
        backend = FakeBackend(batches=[[_text(1, 99, "/go")], [_text(2, 42, "/go")]])
        result = await make_broker(backend).ask("hi", commands, {42})
        assert result == "/go"
        assert seen == ["/go"]


# ── Matching ────────────────────────────────────────────────


class TestMatching:
    @pytest.mark.asyncio
    async def test_first_command_wins_on_overlap(self, make_broker):
        """Test that the first matching command wins."""
        first, second = [], []
        commands = [
            passive(re.compile(r"^/go(.*)$"), first.append),
            passive("/go", second.append),
        ]
        backend = FakeBackend(batches=[[_text(1, 42, "/go")]])
        result = await make_broker(backend).ask("hi", commands, {42})
        assert result == "/go"
        assert first == [("",)]
        assert second == []

    @pytest.mark.asyncio
    async def test_text_can_match_interactive_command(self, make_broker):
        """Test that typed text can match a button command."""
        seen = []
        backend = FakeBackend(batches=[[_text(1, 42, "/yes")]])
        result = await make_broker(backend).ask("hi", [interactive("Yes", "/yes", seen.append)], {42})
        assert result == "/yes"
        assert seen == ["/yes"]
        assert backend.acks == []

    @pytest.mark.asyncio
    async def test_press_ignores_passive_commands(self, make_broker):
        """Test that button presses only match interactive commands."""
        seen = []
        commands = [passive("/hidden", seen.append), interactive("Yes", "/yes")]
        backend = FakeBackend(batches=[[_press(1, 42, "/hidden", "q1"), _press(2, 42, "/yes", "q2")]])
        result = await make_broker(backend).ask("hi", commands, {42})
        assert result == "/yes"
        assert seen == []
        # Unknown press still answered, without text
        assert backend.acks == [("q1", None), ("q2", ACK_TEXT)]

    @pytest.mark.asyncio
    async def test_rest_of_batch_ignored_after_match(self, make_broker):
        """Test that events after the match in a batch are not handled."""
        seen = []
        commands = [passive("/a", seen.append), passive("/b", seen.append)]
        backend = FakeBackend(batches=[[_text(1, 42, "/a"), _text(2, 42, "/b")]])
        result = await make_broker(backend).ask("hi", commands, {42})
        assert result == "/a"
        assert seen == ["/a"]

    @pytest.mark.asyncio
    async def test_unmatched_text_is_ignored(self, make_broker):
        """Test that unmatched text keeps the exchange polling."""
        backend = FakeBackend(batches=[[_text(1, 42, "hello?"), IgnoredEvent(2)], [_text(3, 42, "/ok")]])
        result = await make_broker(backend).ask("hi", [passive("/ok")], {42})
        assert result == "/ok"


# ── Cursor ──────────────────────────────────────────────────


class TestCursor:
    @pytest.mark.asyncio
    async def test_priming_discards_stale_events(self, make_broker):
        """Test that events pending before the exchange are skipped."""
        seen = []
        backend = FakeBackend(
            pending=[_press(5, 42, "/yes"), _text(7, 42, "/yes")],
            batches=[[_press(8, 42, "/yes", "fresh")]],
        )
        result = await make_broker(backend).ask("hi", [interactive("Yes", "/yes", seen.append)], {42})
        assert result == "/yes"
        assert backend.offsets == [8]
        assert backend.acks == [("fresh", ACK_TEXT)]
        assert seen == ["/yes"]

    @pytest.mark.asyncio
    async def test_priming_failure_is_not_fatal(self, make_broker):
        """Test that a failed priming fetch starts from cursor zero."""
        backend = FakeBackend(prime_error=RuntimeError("boom"), batches=[[_text(1, 42, "/ok")]])
        result = await make_broker(backend).ask("hi", [passive("/ok")], {42})
        assert result == "/ok"
        assert backend.offsets == [1]

    @pytest.mark.asyncio
    async def test_cursor_advances_past_every_event(self, make_broker):
        """Test that the cursor moves past ignored events too."""
        backend = FakeBackend(batches=[
            [_text(3, 99, "/ok"), _text(4, 42, "nope"), IgnoredEvent(6)],
            [],
            [_text(9, 42, "/ok")],
        ])
        await make_broker(backend).ask("hi", [passive("/ok")], {42})
        assert backend.offsets == [1, 7, 7]

    @pytest.mark.asyncio
    async def test_redelivered_batch_is_not_reconsidered(self, clock):
        """Test that redelivered events are skipped."""
        seen = []
        batch = [_text(3, 42, "nope"), _press(4, 42, "/unknown", "q4")]
        backend = FakeBackend(batches=[batch, batch, [_text(5, 42, "/ok")]])
        exchange = Exchange(backend, [passive("/ok", seen.append)], {42}, clock=clock)

        assert await exchange.step() is None
        assert await exchange.step() is None
        assert backend.acks == [("q4", None)]

        assert await exchange.step() == "/ok"
        assert seen == ["/ok"]

    @pytest.mark.asyncio
    async def test_redelivered_match_resolves_once(self, clock):
        """Test that a redelivered match runs its handler once."""
        seen = []
        batch = [_press(4, 42, "/yes", "q4")]
        backend = FakeBackend(batches=[batch, batch])
        exchange = Exchange(backend, [interactive("Yes", "/yes", seen.append)], {42}, clock=clock)

        assert await exchange.step() == "/yes"
        assert exchange.state is ExchangeState.RESOLVED
        # Once resolved, step() reports the result without polling again
        assert await exchange.step() == "/yes"
        assert len(backend.offsets) == 1
        assert seen == ["/yes"]


# ── Polling, deadline and interval ──────────────────────────


class TestPollLoop:
    @pytest.mark.asyncio
    async def test_poll_failure_is_transient(self, make_broker):
        """Test that a failed poll is treated as an empty batch."""
        backend = FakeBackend(batches=[RuntimeError("network down"), [_text(1, 42, "/ok")]])
        result = await make_broker(backend).ask("hi", [passive("/ok")], {42})
        assert result == "/ok"

    @pytest.mark.asyncio
    async def test_polls_fail_every_time_until_deadline(self, make_broker):
        """Test that constant poll failures end in a timeout chained to the last one."""
        backend = FakeBackend(batches=[RuntimeError("down")] * 100)
        with pytest.raises(ExchangeTimeoutError) as exc:
            await make_broker(backend).ask("hi", [passive("/ok")], {42}, timeout_ms=3000)
        cause = exc.value.__cause__
        assert isinstance(cause, PollingError)
        assert str(cause.cause) == "down"

    @pytest.mark.asyncio
    async def test_recovered_poll_failure_is_not_chained(self, make_broker):
        """Test that a poll failure followed by a good poll is not chained."""
        backend = FakeBackend(batches=[RuntimeError("down")])
        with pytest.raises(ExchangeTimeoutError) as exc:
            await make_broker(backend).ask("hi", [passive("/ok")], {42}, timeout_ms=3000)
        assert exc.value.__cause__ is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("deadline_ms, interval_ms", [(5000, 1000), (4500, 1000), (3000, 2500)])
    async def test_timeout_window(self, clock, make_broker, deadline_ms, interval_ms):
        """Test that the timeout fires within one interval of the deadline."""
        backend = FakeBackend()
        start = clock()
        with pytest.raises(ExchangeTimeoutError) as exc:
            await make_broker(backend).ask("hi", [passive("/ok")], {42}, deadline_ms, interval_ms)
        elapsed_ms = (clock() - start) * 1000
        assert deadline_ms <= elapsed_ms < deadline_ms + interval_ms
        assert exc.value.timeout_ms == deadline_ms
        assert isinstance(exc.value, TimeoutError)

    @pytest.mark.asyncio
    async def test_poll_interval_floor(self, clock, make_broker):
        """Test that short poll intervals are raised to the floor."""
        backend = FakeBackend(batches=[[], [], [_text(1, 42, "/ok")]])
        await make_broker(backend).ask("hi", [passive("/ok")], {42}, poll_interval_ms=10)
        assert clock.sleeps == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_no_deadline_keeps_polling(self, make_broker):
        """Test that a zero timeout polls until a match."""
        backend = FakeBackend(batches=[[]] * 200 + [[_text(1, 42, "/ok")]])
        result = await make_broker(backend).ask("hi", [passive("/ok")], {42}, timeout_ms=0, poll_interval_ms=60000)
        assert result == "/ok"
        assert len(backend.offsets) == 201

    @pytest.mark.asyncio
    async def test_deadline_checked_before_each_poll(self, clock):
        """Test that an expired deadline stops the exchange before fetching."""
        backend = FakeBackend(batches=[[_text(1, 42, "/ok")]])
        exchange = Exchange(backend, [passive("/ok")], {42}, timeout_ms=1000, clock=clock)
        clock.now += 1.0
        with pytest.raises(ExchangeTimeoutError):
            await exchange.step()
        assert exchange.state is ExchangeState.FAILED
        assert backend.offsets == []


# ── Acknowledgement and handlers ────────────────────────────


class TestHandlers:
    @pytest.mark.asyncio
    async def test_handler_failure_surfaces_payload(self, make_broker):
        """Test that a raising handler surfaces as HandlerError with the payload."""
        def boom(match):
            raise ValueError("handler broke")

        backend = FakeBackend(batches=[[_press(1, 42, "/yes", "q1")]])
        with pytest.raises(HandlerError) as exc:
            await make_broker(backend).ask("hi", [interactive("Yes", "/yes", boom)], {42})

        assert exc.value.payload == "/yes"
        assert isinstance(exc.value.__cause__, ValueError)
        # Acknowledged before the handler ran
        assert backend.acks == [("q1", ACK_TEXT)]

    @pytest.mark.asyncio
    async def test_ack_failure_still_resolves(self, make_broker):
        """Test that a failed acknowledgement does not block resolution."""
        seen = []
        backend = FakeBackend(batches=[[_press(1, 42, "/yes")]], ack_error=RuntimeError("query too old"))
        result = await make_broker(backend).ask("hi", [interactive("Yes", "/yes", seen.append)], {42})
        assert result == "/yes"
        assert seen == ["/yes"]

    @pytest.mark.asyncio
    async def test_async_handler_is_awaited(self, make_broker):
        """Test that coroutine handlers are awaited."""
        seen = []

        async def handler(match):
            seen.append(match)

        backend = FakeBackend(batches=[[_text(1, 42, "/ok")]])
        await make_broker(backend).ask("hi", [passive("/ok", handler)], {42})
        assert seen == ["/ok"]
