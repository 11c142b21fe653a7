"""
Tests for the client-side session lifecycle
"""
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from app.enums.session_enums import MessageSender, SessionStatus
from app.exceptions.errors import QuotaExceededError, RateLimitedError, UpstreamError
from app.realtime.notifications import (
    CollectingNotifier,
    QUOTA_NOTICE,
    RATE_LIMIT_NOTICE,
    SESSION_START_NOTICE,
)
from app.realtime.session_manager import SessionCell, SessionLifecycleManager


T0 = datetime(2026, 10, 18, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:

    def __init__(self, now: datetime = T0):
        self.now = now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def fake_api():
    api = AsyncMock()
    api.create_session.return_value = {"id": "sess_1", "status": "active"}
    api.add_message.side_effect = lambda session_id, sender, content: {
        "session_id": session_id, "sender": sender, "content": content
    }
    api.end_session.side_effect = lambda session_id, **kwargs: {"id": session_id, **kwargs}
    api.get_session.return_value = {"id": "sess_1", "summary": "Talked about work."}
    return api


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return CollectingNotifier()


@pytest.fixture
def manager(fake_api, notifier, clock):
    return SessionLifecycleManager(fake_api, notifier=notifier, clock=clock)


class TestStartSession:

    @pytest.mark.unit
    async def test_start_tracks_session(self, manager, notifier):
        session = await manager.start_session()

        assert session["id"] == "sess_1"
        assert manager.session_id == "sess_1"
        assert notifier.notices == []

    @pytest.mark.unit
    async def test_start_failure_warns_and_returns_none(self, manager, fake_api, notifier):
        fake_api.create_session.side_effect = UpstreamError("boom")

        assert await manager.start_session() is None
        assert manager.session_id is None
        assert notifier.notices == [SESSION_START_NOTICE]


class TestSaveMessage:

    @pytest.mark.unit
    async def test_no_session_means_no_write(self, manager, fake_api):
        assert manager.save_message(MessageSender.USER, "hello") is None

        fake_api.add_message.assert_not_called()

    @pytest.mark.unit
    async def test_writes_keep_finalize_order(self, manager, fake_api):
        delays = {"first": 0.02, "second": 0.0, "third": 0.01}

        async def slow_add(session_id, sender, content):
            await asyncio.sleep(delays[content])
            return {"content": content}

        fake_api.add_message.side_effect = slow_add
        await manager.start_session()

        manager.save_message(MessageSender.AI, "first")
        manager.save_message(MessageSender.USER, "second")
        manager.save_message(MessageSender.AI, "third")
        await manager.drain()

        assert [c.args for c in fake_api.add_message.call_args_list] == [
            ("sess_1", "ai", "first"),
            ("sess_1", "user", "second"),
            ("sess_1", "ai", "third"),
        ]

    @pytest.mark.unit
    async def test_session_id_is_read_when_finalized(self, manager, fake_api):
        await manager.start_session()
        manager.save_message(MessageSender.USER, "before end")

        fake_api.create_session.return_value = {"id": "sess_2"}
        await manager.end_session()
        await manager.start_session()
        manager.save_message(MessageSender.USER, "after restart")
        await manager.drain()

        assert [c.args[0] for c in fake_api.add_message.call_args_list] == ["sess_1", "sess_2"]

    @pytest.mark.unit
    async def test_write_failure_is_not_raised(self, manager, fake_api):
        fake_api.add_message.side_effect = UpstreamError("down")
        await manager.start_session()

        task = manager.save_message(MessageSender.USER, "hello")
        assert await task is None


class TestEndSession:

    @pytest.mark.unit
    async def test_pause_after_ninety_seconds(self, manager, fake_api, clock):
        await manager.start_session()
        clock.advance(90)

        session = await manager.end_session(SessionStatus.PAUSED)

        fake_api.end_session.assert_awaited_once_with(
            "sess_1", status="paused", ended_at=T0 + timedelta(seconds=90), duration_seconds=90
        )
        assert session["duration_seconds"] == 90
        assert manager.session_id is None

    @pytest.mark.unit
    async def test_duration_rounds_to_whole_seconds(self, manager, fake_api, clock):
        await manager.start_session()
        clock.advance(12.6)

        await manager.end_session()

        assert fake_api.end_session.call_args.kwargs["duration_seconds"] == 13

    @pytest.mark.unit
    async def test_second_end_is_a_no_op(self, manager, fake_api):
        await manager.start_session()

        assert await manager.end_session() is not None
        assert await manager.end_session() is None
        fake_api.end_session.assert_awaited_once()

    @pytest.mark.unit
    async def test_concurrent_ends_close_once(self, manager, fake_api):
        await manager.start_session()

        results = await asyncio.gather(manager.end_session(), manager.end_session())

        assert sum(r is not None for r in results) == 1
        fake_api.end_session.assert_awaited_once()

    @pytest.mark.unit
    async def test_pending_writes_finish_before_end(self, manager, fake_api):
        order = []

        async def slow_add(session_id, sender, content):
            await asyncio.sleep(0.01)
            order.append("message")

        async def record_end(session_id, **kwargs):
            order.append("end")
            return {"id": session_id}

        fake_api.add_message.side_effect = slow_add
        fake_api.end_session.side_effect = record_end
        await manager.start_session()

        manager.save_message(MessageSender.USER, "last words")
        await manager.end_session()

        assert order == ["message", "end"]

    @pytest.mark.unit
    async def test_failed_end_can_be_retried(self, manager, fake_api):
        await manager.start_session()
        fake_api.end_session.side_effect = UpstreamError("down")

        assert await manager.end_session() is None
        assert manager.session_id == "sess_1"

        fake_api.end_session.side_effect = lambda session_id, **kwargs: {"id": session_id}
        assert await manager.end_session() == {"id": "sess_1"}


class TestGenerateSummary:

    @pytest.mark.unit
    async def test_summary_refetches_session(self, manager, fake_api):
        session = await manager.generate_summary("sess_1")

        fake_api.generate_summary.assert_awaited_once_with("sess_1")
        fake_api.get_session.assert_awaited_once_with("sess_1")
        assert session["summary"] == "Talked about work."
        assert manager.current_session == session

    @pytest.mark.unit
    @pytest.mark.parametrize("error,notice", [
        (QuotaExceededError(), QUOTA_NOTICE),
        (RateLimitedError(), RATE_LIMIT_NOTICE),
    ])
    async def test_throttling_is_shown_to_user(self, manager, fake_api, notifier, error, notice):
        fake_api.generate_summary.side_effect = error

        assert await manager.generate_summary("sess_1") is None
        assert notifier.notices == [notice]
        fake_api.get_session.assert_not_called()

    @pytest.mark.unit
    async def test_other_failures_are_only_logged(self, manager, fake_api, notifier):
        fake_api.generate_summary.side_effect = UpstreamError("AI analysis failed")

        assert await manager.generate_summary("sess_1") is None
        assert notifier.notices == []


class TestReadApis:

    @pytest.mark.unit
    async def test_read_failures_return_empty(self, manager, fake_api):
        fake_api.list_sessions.side_effect = UpstreamError("down")
        fake_api.list_messages.side_effect = UpstreamError("down")
        fake_api.rate_session.side_effect = UpstreamError("down")

        assert await manager.get_user_sessions() == []
        assert await manager.get_session_messages("sess_1") == []
        assert await manager.update_session_rating("sess_1", 5, []) is None


class TestSessionCell:

    @pytest.mark.unit
    def test_take_clears(self):
        cell = SessionCell()
        cell.set("sess_1", T0)

        assert cell.take() == ("sess_1", T0)
        assert cell.get() == (None, None)

    @pytest.mark.unit
    def test_restore_does_not_overwrite_newer_session(self):
        cell = SessionCell()
        cell.set("sess_2", T0)

        cell.restore("sess_1", T0)

        assert cell.session_id == "sess_2"
