import pytest

from aegis.datatypes.action_datatypes import ActionType, LogColor
from aegis.datatypes.discord_datatypes import InboundMessage
from aegis.datatypes.guild_config import GuildConfig
from aegis.moderation.content_filter import ContentFilter, auto_warn_reason
from aegis.moderation.moderation_recorder import ModerationRecorder
from aegis.settings.guild_config_cache import GuildConfigCache
from aegis.util.errors import MissingPermissionError

from fakes import BOT_ID, FakeClock, FakeConfigSource, FakePlatform, FakeStore, RecordingSink


def make_message(content: str) -> InboundMessage:
    return InboundMessage(
        guild_id="1", channel_id="c1", message_id="m1", user_id="10", content=content, author_tag="user#0001"
    )


def build_filter(words=()):
    store = FakeStore(GuildConfig(guild_id="1", banned_words=frozenset(words)))
    cache = GuildConfigCache(store, clock=FakeClock())
    recorder = ModerationRecorder(store)
    platform = FakePlatform()
    sink = RecordingSink()
    return ContentFilter(cache, recorder, platform, sink), store, recorder, platform, sink


@pytest.mark.asyncio
async def test_scan_matches_substring_case_insensitively():
    content_filter, *_ = build_filter(["bad"])

    assert await content_filter.scan("1", "This is BADly needed".lower()) == "bad"


@pytest.mark.asyncio
async def test_scan_without_banned_words_returns_none():
    content_filter, *_ = build_filter()

    assert await content_filter.scan("1", "anything at all") is None


@pytest.mark.asyncio
async def test_repeated_scans_within_ttl_load_config_once():
    source = FakeConfigSource(GuildConfig(guild_id="1", banned_words=frozenset({"bad"})))
    clock = FakeClock()
    cache = GuildConfigCache(source, ttl_ms=1000, clock=clock)
    content_filter = ContentFilter(cache, ModerationRecorder(FakeStore()), FakePlatform(), RecordingSink())

    for _ in range(5):
        assert await content_filter.scan("1", "so bad") == "bad"
        clock.advance(100)

    assert source.calls == 1

    clock.advance(600)
    await content_filter.scan("1", "clean")
    assert source.calls == 2


@pytest.mark.asyncio
async def test_scan_clean_message_returns_none():
    content_filter, *_ = build_filter(["bad", "worse"])

    assert await content_filter.scan("1", "all good here") is None


@pytest.mark.asyncio
async def test_process_match_deletes_warns_records_and_logs():
    content_filter, store, recorder, platform, sink = build_filter(["bad"])

    word = await content_filter.process(make_message("This is BADly needed"))
    await recorder.flush()

    assert word == "bad"
    platform.delete_message.assert_awaited_once_with("1", "c1", "m1")
    platform.send_ephemeral_notice.assert_awaited_once_with("c1", "<@10>, that word is not allowed here.", 5000)

    assert len(store.records) == 1
    _, record = store.records[0]
    assert record.action is ActionType.AUTO_WARN
    assert record.target_id == "10"
    assert record.moderator_id == BOT_ID
    assert record.reason == auto_warn_reason("bad")
    assert record.reason == 'Automatic detection of blacklisted word: "bad"'

    (_, entry), = sink.logs
    assert entry.action == "Auto-Warn (Banned Word)"
    assert entry.color is LogColor.DARK_RED
    assert entry.reason == "Contained the word: `bad`"


@pytest.mark.asyncio
async def test_process_clean_message_does_nothing():
    content_filter, store, recorder, platform, sink = build_filter(["bad"])

    assert await content_filter.process(make_message("hello there")) is None
    await recorder.flush()

    platform.delete_message.assert_not_awaited()
    assert store.records == []
    assert sink.logs == []


@pytest.mark.asyncio
async def test_delete_failure_does_not_stop_the_warning():
    content_filter, store, recorder, platform, sink = build_filter(["bad"])
    platform.delete_message.side_effect = MissingPermissionError("cannot delete")

    assert await content_filter.process(make_message("bad")) == "bad"
    await recorder.flush()

    assert len(store.records) == 1
    assert sink.actions == ["Auto-Warn (Banned Word)"]


@pytest.mark.asyncio
async def test_record_failure_is_logged_not_raised():
    content_filter, store, recorder, platform, sink = build_filter(["bad"])
    store.fail_appends = True

    assert await content_filter.process(make_message("bad")) == "bad"
    await recorder.flush()

    assert store.records == []
    assert sink.actions == ["Auto-Warn (Banned Word)"]
