from unittest.mock import AsyncMock

import pytest

from aegis.datatypes.discord_datatypes import RoleState
from aegis.datatypes.guild_config import GuildConfig
from aegis.moderation.auto_role_service import AUTO_ROLE_REASON, AutoRoleService
from aegis.settings.guild_config_cache import GuildConfigCache
from aegis.util.errors import MissingPermissionError, PersistenceError

from fakes import FakeClock, FakePlatform, FakeStore

ROLE = RoleState(role_id="42", name="Member", assignable=True)


def build_service(auto_role_id="42", roles=None):
    store = FakeStore(GuildConfig(guild_id="1", auto_role_id=auto_role_id))
    platform = FakePlatform(roles={"42": ROLE} if roles is None else roles)
    cache = GuildConfigCache(store, clock=FakeClock())
    return AutoRoleService(cache, store, platform), store, platform


@pytest.mark.asyncio
async def test_new_member_gets_auto_role():
    service, store, platform = build_service()

    assert await service.on_member_join("1", "10") is True

    platform.assign_role.assert_awaited_once_with("1", "10", "42", AUTO_ROLE_REASON)
    assert store.patches == []


@pytest.mark.asyncio
async def test_bots_are_skipped():
    service, store, platform = build_service()

    assert await service.on_member_join("1", "10", is_bot=True) is False
    platform.assign_role.assert_not_awaited()


@pytest.mark.asyncio
async def test_no_auto_role_configured_does_nothing():
    service, store, platform = build_service(auto_role_id=None)

    assert await service.on_member_join("1", "10") is False
    platform.assign_role.assert_not_awaited()


@pytest.mark.asyncio
async def test_deleted_role_clears_setting():
    service, store, platform = build_service(roles={})

    assert await service.on_member_join("1", "10") is False

    platform.assign_role.assert_not_awaited()
    [(guild_id, patch)] = store.patches
    assert guild_id == "1"
    assert patch.cleared == frozenset({"auto_role_id"})
    assert patch.banned_words is None and patch.escalation_rules is None


@pytest.mark.asyncio
async def test_unassignable_role_is_not_given():
    service, store, platform = build_service(roles={"42": RoleState(role_id="42", name="Admin", assignable=False)})

    assert await service.on_member_join("1", "10") is False

    platform.assign_role.assert_not_awaited()
    assert store.patches == []


@pytest.mark.asyncio
async def test_platform_failure_is_contained():
    service, store, platform = build_service()
    platform.assign_role = AsyncMock(side_effect=MissingPermissionError("Missing permission to assign role"))

    assert await service.on_member_join("1", "10") is False


@pytest.mark.asyncio
async def test_config_failure_is_contained():
    service, store, platform = build_service()
    store.get_guild_config = AsyncMock(side_effect=PersistenceError("read failed"))

    assert await service.on_member_join("1", "10") is False
    platform.assign_role.assert_not_awaited()
