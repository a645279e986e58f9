"""Test player, role and faction models."""

import pytest

from werewolf_engine.models import (
    Faction,
    Player,
    Role,
    WEREWOLF_ALIGNED_ROLES,
    faction_of,
)


def test_player_creation():
    """Test creating a player in the lobby."""
    player = Player(id="u1", username="Alice")
    assert player.id == "u1"
    assert player.username == "Alice"
    assert player.role is None
    assert player.is_alive
    assert not player.is_protected


def test_unassigned_player_counts_as_village():
    """Test that a player without a role is not werewolf-aligned."""
    player = Player(id="u1", username="Alice")
    assert player.faction == Faction.VILLAGE
    assert not player.is_werewolf_aligned


def test_assign_role_once():
    """Test that a role can be dealt once and never reassigned."""
    player = Player(id="u1", username="Alice")
    player.assign_role(Role.SEER)
    assert player.role == Role.SEER

    with pytest.raises(ValueError):
        player.assign_role(Role.WEREWOLF)
    assert player.role == Role.SEER


def test_reset_returns_player_to_lobby():
    """Test that reset clears role, death and protection."""
    player = Player(id="u1", username="Alice", role=Role.HUNTER, is_alive=False, is_protected=True)
    player.reset()
    assert player.role is None
    assert player.is_alive
    assert not player.is_protected


def test_to_dict_hides_role_by_default():
    """Test that the public view hides the role unless asked."""
    player = Player(id="u1", username="Alice", role=Role.WEREWOLF)
    assert player.to_dict()["role"] is None
    assert player.to_dict(reveal_role=True)["role"] == "WEREWOLF"


class TestFactions:
    """Tests for faction membership."""

    @pytest.mark.parametrize("role", [Role.WEREWOLF, Role.MINION, Role.SORCERER])
    def test_werewolf_aligned_roles(self, role):
        """Test that Werewolf, Minion and Sorcerer play for the werewolves."""
        assert role in WEREWOLF_ALIGNED_ROLES
        assert faction_of(role) == Faction.WEREWOLF
        assert Player(id="x", username="X", role=role).is_werewolf_aligned

    @pytest.mark.parametrize(
        "role", [Role.SEER, Role.BODYGUARD, Role.CUPID, Role.HUNTER, Role.VILLAGER]
    )
    def test_village_roles(self, role):
        """Test that every other role plays for the village."""
        assert faction_of(role) == Faction.VILLAGE

    def test_role_values_are_names(self):
        """Test that roles serialize as their upper-case names."""
        assert Role("CUPID") is Role.CUPID
        assert Role.WEREWOLF == "WEREWOLF"
