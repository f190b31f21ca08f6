from dataclasses import dataclass, field
from types import SimpleNamespace

import pytest

from aegis.datatypes.discord_datatypes import InboundMessage, MemberState, RoleState
from aegis.datatypes.guild_config import BanRule, KickRule, MuteRule, rule_from_dict, rule_to_dict
from aegis.util.errors import ValidationError


@dataclass(order=True)
class Role:
    position: int


class Tagged(SimpleNamespace):
    def __str__(self):
        return self.tag


def make_member(position=1, timed_out=False, owner=False, moderate=True, kick=True, ban=True):
    me = SimpleNamespace(
        top_role=Role(10),
        guild_permissions=SimpleNamespace(moderate_members=moderate, kick_members=kick, ban_members=ban),
    )
    guild = SimpleNamespace(me=me, owner_id=10 if owner else 99)
    return Tagged(id=10, guild=guild, top_role=Role(position), timed_out=timed_out, tag="user#0001")


def test_inbound_message_from_message():
    author = Tagged(id=10, guild_permissions=SimpleNamespace(manage_messages=True), tag="mod#0001")
    message = SimpleNamespace(
        guild=SimpleNamespace(id=1), channel=SimpleNamespace(id=2), id=3, author=author, content="hello"
    )

    inbound = InboundMessage.from_message(message)

    assert inbound == InboundMessage(
        guild_id="1", channel_id="2", message_id="3", user_id="10", content="hello",
        has_manage_messages=True, author_tag="mod#0001",
    )


def test_member_state_outranked_member():
    state = MemberState.from_member(make_member(position=1))

    assert state.moderatable and state.kickable and state.bannable
    assert state.is_muted is False
    assert state.top_role_position == 1
    assert state.tag == "user#0001"


def test_member_state_higher_role_or_owner_is_untouchable():
    for member in (make_member(position=10), make_member(owner=True)):
        state = MemberState.from_member(member)
        assert not (state.moderatable or state.kickable or state.bannable)


def test_member_state_reflects_bot_permissions():
    state = MemberState.from_member(make_member(kick=False, timed_out=True))

    assert state.is_muted is True
    assert state.kickable is False
    assert state.bannable is True


def test_rule_round_trip_through_stored_form():
    assert rule_from_dict({"action": "mute", "duration": "10m"}) == MuteRule("10m")
    assert rule_from_dict({"action": "KICK", "duration": "10m"}) == KickRule()
    assert rule_to_dict(BanRule()) == {"action": "ban", "duration": None}
    assert rule_to_dict(MuteRule()) == {"action": "mute", "duration": None}


def test_rule_from_dict_rejects_unknown_action():
    with pytest.raises(ValidationError):
        rule_from_dict({"action": "softban"})


@dataclass(order=True)
class GuildRole:
    position: int
    id: int = field(default=0, compare=False)
    name: str = field(default="", compare=False)
    guild: object = field(default=None, compare=False)


def make_role(position, manage_roles=True):
    me = SimpleNamespace(top_role=GuildRole(10), guild_permissions=SimpleNamespace(manage_roles=manage_roles))
    return GuildRole(position, id=42, name="Member", guild=SimpleNamespace(me=me))


def test_role_state_assignable_below_bot_top_role():
    assert RoleState.from_role(make_role(3)) == RoleState(role_id="42", name="Member", assignable=True)


@pytest.mark.parametrize(
    "position, manage_roles",
    [(10, True), (12, True), (3, False)],
)
def test_role_state_not_assignable(position, manage_roles):
    assert RoleState.from_role(make_role(position, manage_roles)).assignable is False
