from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import aiosqlite
import pytest

from aegis.database.db_connection import ConnectionManager
from aegis.database.store import RecordFilter, Store
from aegis.datatypes.action_datatypes import ActionType, ModerationRecord
from aegis.datatypes.guild_config import BanRule, GuildConfigPatch, KickRule, MuteRule
from aegis.util.errors import NotFoundError, PersistenceError, ValidationError


class StepClock:
    """Returns a new UTC timestamp one second later on every call."""

    def __init__(self) -> None:
        self.current = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@asynccontextmanager
async def open_store(tmp_path):
    manager = ConnectionManager()
    await manager.open(tmp_path / "aegis.db")
    try:
        yield Store(manager, clock=StepClock()), manager
    finally:
        await manager.close()


def warn(target="10", reason="spamming"):
    return ModerationRecord(action=ActionType.WARN, target_id=target, moderator_id="5", reason=reason)


@pytest.mark.asyncio
async def test_schema_creates_tables(tmp_path):
    async with open_store(tmp_path) as (_, manager):
        async with manager.connection.execute("SELECT name FROM sqlite_master WHERE type='table'") as cursor:
            tables = {row[0] for row in await cursor.fetchall()}

    assert {"guild_settings", "guild_banned_words", "guild_escalation_rules", "moderation_records", "schema_version"} <= tables


@pytest.mark.asyncio
async def test_unknown_guild_has_no_config(tmp_path):
    async with open_store(tmp_path) as (store, _):
        assert await store.get_guild_config("1") is None


@pytest.mark.asyncio
async def test_set_guild_config_merges_by_default(tmp_path):
    async with open_store(tmp_path) as (store, _):
        await store.set_guild_config(
            "1",
            GuildConfigPatch(banned_words=frozenset({"bad"}), escalation_rules={2: MuteRule("10m")}, log_channel_id="77"),
        )
        await store.set_guild_config(
            "1", GuildConfigPatch(banned_words=frozenset({"worse"}), escalation_rules={3: KickRule()})
        )
        config = await store.get_guild_config("1")

    assert config.banned_words == frozenset({"bad", "worse"})
    assert config.escalation_rules == {2: MuteRule("10m"), 3: KickRule()}
    assert config.log_channel_id == "77"


@pytest.mark.asyncio
async def test_set_guild_config_replace(tmp_path):
    async with open_store(tmp_path) as (store, _):
        await store.set_guild_config(
            "1", GuildConfigPatch(banned_words=frozenset({"bad", "worse"}), escalation_rules={2: KickRule()})
        )
        await store.set_guild_config(
            "1", GuildConfigPatch(banned_words=frozenset({"worse"}), escalation_rules={5: BanRule()}), merge=False
        )
        config = await store.get_guild_config("1")

    assert config.banned_words == frozenset({"worse"})
    assert config.escalation_rules == {5: BanRule()}


@pytest.mark.asyncio
async def test_append_assigns_id_and_timestamp(tmp_path):
    async with open_store(tmp_path) as (store, _):
        stored = await store.append_moderation_record("1", warn())

    assert stored.record_id is not None
    assert stored.timestamp is not None
    assert stored.timestamp.tzinfo is not None


@pytest.mark.asyncio
async def test_query_is_most_recent_first_and_filtered(tmp_path):
    async with open_store(tmp_path) as (store, _):
        first = await store.append_moderation_record("1", warn(reason="first"))
        await store.append_moderation_record("1", warn(target="11"))
        await store.append_moderation_record(
            "1", ModerationRecord(action=ActionType.KICK, target_id="10", moderator_id="5", reason="kick")
        )
        last = await store.append_moderation_record("1", warn(reason="last"))
        await store.append_moderation_record("2", warn())

        warnings = await store.query_moderation_records(
            "1", RecordFilter(target_id="10", actions=frozenset({ActionType.WARN}))
        )
        everything = await store.query_moderation_records("1", RecordFilter(target_id="10"))

    assert [record.record_id for record in warnings] == [last.record_id, first.record_id]
    assert [record.action for record in everything] == [ActionType.WARN, ActionType.KICK, ActionType.WARN]


@pytest.mark.asyncio
async def test_edit_changes_only_reason_and_stamps_edit(tmp_path):
    async with open_store(tmp_path) as (store, _):
        stored = await store.append_moderation_record("1", warn(reason="old"))
        updated = await store.edit_moderation_record("1", stored.record_id, "new", "mod#0001")

    assert updated.reason == "new"
    assert updated.edited_by == "mod#0001"
    assert updated.edited_at is not None
    assert updated.timestamp == stored.timestamp
    assert updated.action is stored.action


@pytest.mark.asyncio
async def test_edit_missing_record_raises_not_found(tmp_path):
    async with open_store(tmp_path) as (store, _):
        with pytest.raises(NotFoundError):
            await store.edit_moderation_record("1", 999, "new", "mod")


@pytest.mark.asyncio
async def test_records_cannot_be_deleted_or_rewritten(tmp_path):
    async with open_store(tmp_path) as (store, manager):
        stored = await store.append_moderation_record("1", warn())

        with pytest.raises(aiosqlite.Error):
            await manager.connection.execute("DELETE FROM moderation_records WHERE id = ?", (stored.record_id,))
        with pytest.raises(aiosqlite.Error):
            await manager.connection.execute(
                "UPDATE moderation_records SET action = 'ban' WHERE id = ?", (stored.record_id,)
            )


@pytest.mark.asyncio
async def test_closed_connection_raises_persistence_error(tmp_path):
    store = Store(ConnectionManager())

    with pytest.raises(PersistenceError):
        await store.get_guild_config("1")
    with pytest.raises(PersistenceError):
        await store.append_moderation_record("1", warn())


@pytest.mark.asyncio
async def test_cleared_settings_are_reset(tmp_path):
    async with open_store(tmp_path) as (store, _):
        await store.set_guild_config("1", GuildConfigPatch(log_channel_id="77", auto_role_id="42", banned_words=frozenset({"bad"})))

        await store.set_guild_config("1", GuildConfigPatch(cleared=frozenset({"auto_role_id"})))
        config = await store.get_guild_config("1")

    assert config.auto_role_id is None
    assert config.log_channel_id == "77"
    assert config.banned_words == frozenset({"bad"})


@pytest.mark.asyncio
async def test_clearing_unknown_setting_is_rejected(tmp_path):
    async with open_store(tmp_path) as (store, _):
        with pytest.raises(ValidationError):
            await store.set_guild_config("1", GuildConfigPatch(cleared=frozenset({"guild_id"})))

        assert await store.get_guild_config("1") is None


def test_unopened_connection_raises_runtime_error():
    with pytest.raises(RuntimeError):
        ConnectionManager().connection
