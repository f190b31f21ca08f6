from unittest.mock import AsyncMock

import pytest

from aegis.configuration.automod_settings import AutomodSettings
from aegis.datatypes.action_datatypes import ActionType, ModerationRecord
from aegis.datatypes.discord_datatypes import InboundMessage
from aegis.datatypes.guild_config import GuildConfig, MuteRule
from aegis.moderation.automod_engine import AutomodEngine, build_engine

from fakes import FakePlatform, FakeStore, RecordingSink, member


def make_message(content="hello", manage_messages=False, message_id="m1"):
    return InboundMessage(
        guild_id="1",
        channel_id="c1",
        message_id=message_id,
        user_id="10",
        content=content,
        has_manage_messages=manage_messages,
    )


@pytest.fixture()
def store():
    return FakeStore(GuildConfig(guild_id="1", banned_words=frozenset({"bad"}), escalation_rules={1: MuteRule("10m")}))


@pytest.fixture()
def platform():
    return FakePlatform({"10": member()})


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def engine(store, platform, sink):
    return build_engine(store, platform, sink, AutomodSettings({"spam_threshold": 3}))


def test_build_engine_applies_settings(engine):
    assert isinstance(engine, AutomodEngine)
    assert engine.spam_detector.threshold == 3
    assert engine.spam_detector.timeframe_ms == 3000
    assert engine.content_filter.notice_ttl_ms == 5000


def test_engines_do_not_share_spam_state(store, platform, sink):
    first = build_engine(store, platform, sink, AutomodSettings())
    second = build_engine(store, platform, sink, AutomodSettings())

    first.spam_detector.track("1", "10", 0)

    assert second.spam_detector.state_for("1", "10") is None


@pytest.mark.asyncio
async def test_banned_word_is_filtered(engine, store, platform):
    await engine.on_message(make_message("that is bad"))
    await engine.shutdown()

    platform.delete_message.assert_awaited_once()
    assert [record.action for _, record in store.records] == [ActionType.AUTO_WARN]


@pytest.mark.asyncio
async def test_auto_warning_does_not_escalate(engine, store, platform):
    await engine.on_message(make_message("bad"))
    await engine.shutdown()

    platform.timeout_member.assert_not_awaited()


@pytest.mark.asyncio
async def test_manage_messages_exempts_sender(engine, store, platform):
    for index in range(5):
        await engine.on_message(make_message("bad", manage_messages=True, message_id=str(index)))
    await engine.shutdown()

    platform.delete_message.assert_not_awaited()
    platform.timeout_member.assert_not_awaited()
    assert store.records == []


@pytest.mark.asyncio
async def test_spam_trigger_skips_content_filter(engine, platform):
    engine.content_filter.process = AsyncMock()

    for index in range(3):
        await engine.on_message(make_message("hi", message_id=str(index)))

    platform.timeout_member.assert_awaited_once()
    assert engine.content_filter.process.await_count == 2


@pytest.mark.asyncio
async def test_errors_stay_scoped_to_the_message(engine):
    engine.content_filter.process = AsyncMock(side_effect=RuntimeError("boom"))

    await engine.on_message(make_message("bad"))


@pytest.mark.asyncio
async def test_on_warning_issued_delegates_to_escalation(engine, store, platform):
    await engine.recorder.append("1", ModerationRecord(action=ActionType.WARN, target_id="10", moderator_id="5", reason="r"))
    result = await engine.on_warning_issued("1", "10")

    assert result.applied is True
    platform.timeout_member.assert_awaited_once()
