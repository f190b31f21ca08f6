import pytest

from aegis.datatypes.action_datatypes import LogColor
from aegis.datatypes.discord_datatypes import InboundMessage
from aegis.moderation.spam_detector import SPAM_MUTE_REASON, SpamDetector
from aegis.util.errors import MissingPermissionError

from fakes import FakeClock, FakePlatform, RecordingSink, member


def make_message(user_id="10", guild_id="1", message_id="m") -> InboundMessage:
    return InboundMessage(guild_id=guild_id, channel_id="c1", message_id=message_id, user_id=user_id, content="hi")


@pytest.fixture()
def clock():
    return FakeClock(1_000_000)


@pytest.fixture()
def platform():
    return FakePlatform({"10": member()})


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def detector(platform, sink, clock):
    return SpamDetector(platform, sink, clock=clock)


def test_track_counts_within_window(detector):
    for expected in range(1, 5):
        assert detector.track("1", "10", 1000 + expected) is False
        assert detector.state_for("1", "10").count == expected


def test_track_gap_longer_than_timeframe_restarts_at_one(detector):
    detector.track("1", "10", 0)
    detector.track("1", "10", 100)
    detector.track("1", "10", 3101)

    state = detector.state_for("1", "10")
    assert state.count == 1
    assert state.window_start_ms == 3101


def test_track_message_exactly_at_timeframe_still_counts(detector):
    detector.track("1", "10", 0)
    detector.track("1", "10", 3000)
    assert detector.state_for("1", "10").count == 2


def test_track_threshold_resets_state(detector):
    results = [detector.track("1", "10", t) for t in (0, 100, 200, 300, 400)]

    assert results == [False, False, False, False, True]
    assert detector.state_for("1", "10") is None


def test_track_is_per_guild_and_user(detector):
    for t in range(4):
        detector.track("1", "10", t)
    assert detector.track("2", "10", 5) is False
    assert detector.track("1", "11", 5) is False
    assert detector.track("1", "10", 5) is True


@pytest.mark.asyncio
async def test_five_messages_in_window_mute_once(detector, platform, sink, clock):
    triggered = []
    for index in range(6):
        clock.advance(100)
        triggered.append(await detector.process(make_message(message_id=str(index))))

    assert triggered == [False, False, False, False, True, False]
    platform.timeout_member.assert_awaited_once_with("1", "10", 300_000, SPAM_MUTE_REASON)
    platform.send_ephemeral_notice.assert_awaited_once_with(
        "c1", "<@10> has been automatically muted for spamming.", 5000
    )
    assert len(sink.logs) == 1
    entry = sink.logs[0][1]
    assert entry.action == "Auto-Mute (Spam)"
    assert entry.color is LogColor.DARK_PURPLE
    assert entry.duration == "5 minutes"
    assert entry.moderator_id == platform.bot_user_id
    # Counter restarted after the mute
    assert detector.state_for("1", "10").count == 1


@pytest.mark.asyncio
async def test_already_muted_member_is_not_muted_again(detector, platform, sink, clock):
    platform.members["10"] = member(is_muted=True)
    for _ in range(5):
        clock.advance(10)
        await detector.process(make_message())

    platform.timeout_member.assert_not_awaited()
    assert sink.logs == []


@pytest.mark.asyncio
async def test_unmoderatable_member_is_skipped(detector, platform, sink, clock):
    platform.members["10"] = member(moderatable=False)
    for _ in range(5):
        await detector.process(make_message())

    platform.timeout_member.assert_not_awaited()


@pytest.mark.asyncio
async def test_mute_failure_is_swallowed(detector, platform, sink):
    platform.timeout_member.side_effect = MissingPermissionError("nope")

    results = [await detector.process(make_message()) for _ in range(5)]

    assert results[-1] is True
    assert sink.logs == []


@pytest.mark.asyncio
async def test_notice_failure_still_logs(detector, platform, sink):
    platform.send_ephemeral_notice.side_effect = RuntimeError("channel gone")

    for _ in range(5):
        await detector.process(make_message())

    platform.timeout_member.assert_awaited_once()
    assert sink.actions == ["Auto-Mute (Spam)"]
