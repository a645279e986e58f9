"""State Consistency Validators (S.1-S.7).

Rules:
- S.1: Living werewolf-aligned < living others, unless the game is over
- S.2: game_over is set exactly when phase is GAME_OVER
- S.3: Lovers are symmetric and die together
- S.4: Dead players are never expected night actors, night targets or voters
- S.5: is_protected only during NIGHT and only for players protected tonight
- S.6: Nomination fields match the phase
- S.7: A pending last stand belongs to a dead last-stand role
"""

import logging
from typing import TYPE_CHECKING

from werewolf_engine.events.game_events import Phase
from .types import ValidationError, ValidationSeverity, ValidationViolation

# Import for type hints only (engine imports this package)
if TYPE_CHECKING:
    from werewolf_engine.engine.game_state import GameState

logger = logging.getLogger(__name__)

SETUP_PHASES = (Phase.LOBBY, Phase.NIGHT_ZERO)


def validate_state(state: "GameState") -> list[ValidationViolation]:
    """Validate state consistency rules S.1-S.7.

    Returns:
        List of validation violations (empty if valid)
    """
    from werewolf_engine.engine.role_catalog import capability_for

    violations: list[ValidationViolation] = []

    # S.1: parity or game over
    if not state.game_over and state.phase not in SETUP_PHASES:
        werewolves, others = state.alive_faction_counts()
        if werewolves == 0 or werewolves >= others:
            violations.append(ValidationViolation(
                rule_id="S.1",
                message=f"Game continues with {werewolves} werewolf-aligned vs {others} others alive",
                context={"werewolves": werewolves, "others": others},
            ))

    # S.2: game_over <-> GAME_OVER
    if state.game_over != (state.phase == Phase.GAME_OVER):
        violations.append(ValidationViolation(
            rule_id="S.2",
            message=f"game_over={state.game_over} but phase={state.phase.value}",
        ))

    # S.3: lovers
    for player_id, partner_id in state.lovers.items():
        if state.lovers.get(partner_id) != player_id:
            violations.append(ValidationViolation(
                rule_id="S.3",
                message=f"Lover bond {player_id} -> {partner_id} is not symmetric",
            ))
            continue
        first = state.get_player(player_id)
        second = state.get_player(partner_id)
        if first is None or second is None:
            violations.append(ValidationViolation(
                rule_id="S.3",
                message=f"Lover bond {player_id} <-> {partner_id} names an unknown player",
            ))
        elif first.is_alive != second.is_alive:
            violations.append(ValidationViolation(
                rule_id="S.3",
                message=f"Lover {player_id} alive={first.is_alive} but {partner_id} alive={second.is_alive}",
            ))

    # S.4: dead players stay out of living-only operations
    alive = state.alive_ids()
    for actor_id in state.night.expected:
        if actor_id not in alive:
            violations.append(ValidationViolation(
                rule_id="S.4",
                message=f"Dead player {actor_id} is expected to act",
            ))
    for actor_id, action in state.night.actions.items():
        for target_id in (action.target_id, action.second_target_id):
            if target_id is not None and target_id not in alive:
                violations.append(ValidationViolation(
                    rule_id="S.4",
                    message=f"{actor_id}'s {action.action_type.value} targets dead player {target_id}",
                ))
    for voter_id in state.nomination.votes:
        if voter_id not in alive:
            violations.append(ValidationViolation(
                rule_id="S.4",
                message=f"Dead player {voter_id} holds a ballot",
                severity=ValidationSeverity.WARNING,
            ))

    # S.5: protection
    for player in state.players.values():
        if not player.is_protected:
            continue
        if state.phase != Phase.NIGHT or player.id not in state.night.protected_tonight:
            violations.append(ValidationViolation(
                rule_id="S.5",
                message=f"{player.id} is protected outside tonight's protections",
                context={"phase": state.phase.value},
            ))

    # S.6: nomination matches phase
    nomination = state.nomination
    if state.phase == Phase.NOMINATION:
        if nomination.nominee_id is None or nomination.is_open:
            violations.append(ValidationViolation(
                rule_id="S.6",
                message="NOMINATION phase without a pending nominee",
            ))
    elif state.phase == Phase.VOTING and not state.last_stand_pending:
        if not nomination.is_open or nomination.seconder_id is None:
            violations.append(ValidationViolation(
                rule_id="S.6",
                message="VOTING phase without an open, seconded nomination",
            ))
    elif state.phase != Phase.VOTING and not nomination.is_empty:
        violations.append(ValidationViolation(
            rule_id="S.6",
            message=f"Nomination left over in {state.phase.value}",
        ))

    # S.7: last stand
    actor_id = state.pending_last_stand_actor_id
    if actor_id is not None:
        actor = state.get_player(actor_id)
        if (
            actor is None
            or actor.is_alive
            or actor.role is None
            or not capability_for(actor.role).last_stand
        ):
            violations.append(ValidationViolation(
                rule_id="S.7",
                message=f"Last stand pending for {actor_id}, who is not a dead last-stand role",
            ))

    return violations


def ensure_valid(state: "GameState") -> None:
    """Raise ValidationError if any ERROR-level rule is violated. Warnings are only logged."""
    violations = validate_state(state)
    for violation in violations:
        if not violation.is_error:
            logger.warning("Game %s: %s", state.game_id, violation)
    if any(v.is_error for v in violations):
        raise ValidationError(violations)
