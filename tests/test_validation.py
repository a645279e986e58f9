"""Tests for the state consistency validators (S.1-S.7)."""

import pytest

from werewolf_engine.engine import NightAction
from werewolf_engine.events import ActionType, Phase
from werewolf_engine.models import Role
from werewolf_engine.validation import (
    ValidationError,
    ValidationSeverity,
    ensure_valid,
    validate_state,
)

from helpers import make_state

ROLES = [Role.WEREWOLF, Role.HUNTER, Role.VILLAGER, Role.VILLAGER, Role.VILLAGER]


def rule_ids(state) -> set[str]:
    return {v.rule_id for v in validate_state(state)}


class TestStateConsistency:
    """Tests for each rule."""

    def test_valid_state(self):
        """Test that a fresh day has no violations."""
        state = make_state(ROLES)
        assert validate_state(state) == []
        ensure_valid(state)

    def test_s1_parity(self):
        """Test that a decided game must be over."""
        state = make_state(ROLES)
        state.players["p1"].is_alive = False
        assert "S.1" in rule_ids(state)

    def test_s1_skipped_in_setup(self):
        """Test that the lobby has no parity rule."""
        state = make_state([Role.VILLAGER, Role.VILLAGER], phase=Phase.LOBBY)
        assert "S.1" not in rule_ids(state)

    def test_s2_game_over_flag(self):
        """Test that game_over and GAME_OVER agree."""
        state = make_state(ROLES)
        state.game_over = True
        assert "S.2" in rule_ids(state)

    def test_s3_lovers(self):
        """Test lover symmetry and shared fate."""
        state = make_state(ROLES)
        state.lovers = {"p3": "p4"}
        assert "S.3" in rule_ids(state)

        state.bond("p3", "p4")
        state.players["p3"].is_alive = False
        assert "S.3" in rule_ids(state)

    def test_s4_dead_expected_actor(self):
        """Test that the dead are never waited for."""
        state = make_state(ROLES, phase=Phase.NIGHT)
        state.players["p3"].is_alive = False
        state.night.expected = {"p1", "p3"}
        assert "S.4" in rule_ids(state)

    def test_s4_dead_target(self):
        """Test that no action may target the dead."""
        state = make_state(ROLES, phase=Phase.NIGHT)
        state.night.actions["p1"] = NightAction(action_type=ActionType.ATTACK, target_id="p3")
        state.players["p3"].is_alive = False
        assert "S.4" in rule_ids(state)

    def test_s4_dead_voter_is_a_warning(self):
        """Test that a stale ballot only warns."""
        state = make_state(ROLES, phase=Phase.VOTING)
        state.nomination.nominee_id = "p3"
        state.nomination.seconder_id = "p4"
        state.nomination.is_open = True
        state.nomination.votes = {"p5": True}
        state.players["p5"].is_alive = False
        violations = [v for v in validate_state(state) if v.rule_id == "S.4"]
        assert violations[0].severity == ValidationSeverity.WARNING
        ensure_valid(state)

    def test_s5_protection_outside_night(self):
        """Test that wards do not survive into the day."""
        state = make_state(ROLES)
        state.players["p3"].is_protected = True
        assert "S.5" in rule_ids(state)

    def test_s6_nomination_matches_phase(self):
        """Test nomination leftovers and missing nominees."""
        state = make_state(ROLES)
        state.nomination.nominee_id = "p3"
        assert "S.6" in rule_ids(state)

        state = make_state(ROLES, phase=Phase.VOTING)
        assert "S.6" in rule_ids(state)

    def test_s7_last_stand(self):
        """Test that only a dead Hunter can hold the last stand."""
        state = make_state(ROLES)
        state.pending_last_stand_actor_id = "p2"
        assert "S.7" in rule_ids(state)
        state.players["p2"].is_alive = False
        assert "S.7" not in rule_ids(state)
        state.pending_last_stand_actor_id = "p3"
        state.players["p3"].is_alive = False
        assert "S.7" in rule_ids(state)

    def test_ensure_valid_raises(self):
        """Test that errors raise with every violation attached."""
        state = make_state(ROLES)
        state.game_over = True
        with pytest.raises(ValidationError) as exc_info:
            ensure_valid(state)
        assert "S.2" in str(exc_info.value)
        assert exc_info.value.violations

    def test_error_message_lists_errors_only(self, caplog):
        """Test that warnings are logged and left out of the raised error."""
        state = make_state(ROLES, phase=Phase.VOTING)
        state.nomination.nominee_id = "p3"
        state.nomination.seconder_id = "p4"
        state.nomination.is_open = True
        state.nomination.votes = {"p5": True}
        state.players["p5"].is_alive = False
        state.game_over = True

        with pytest.raises(ValidationError) as exc_info:
            ensure_valid(state)
        assert [v.rule_id for v in exc_info.value.errors] == ["S.2"]
        assert "S.4" not in str(exc_info.value)
        assert "S.4 [warning] Dead player p5 holds a ballot" in caplog.text
