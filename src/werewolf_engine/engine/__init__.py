"""Engine package - game rule engine components."""

from .errors import (
    GameError,
    NotAuthorized,
    DeadPlayer,
    WrongPhase,
    InvalidTarget,
    InvalidRole,
    InvalidAction,
    ConflictingAttack,
    AlreadyActed,
    RoleCountMismatch,
    PhaseTransitionError,
    PersistenceError,
)
from .game_state import GameState, NominationState, InvestigationRecord, DeathRecord
from .night_action_store import NightActionStore, NightAction
from .role_catalog import ROLE_CATALOG, RoleCapability, capability_for
from .event_collector import EventCollector
from .snapshot import GameSnapshot, SnapshotManager, Transaction
from .timers import ScheduledTask, TimerRegistry, AsyncioTimerRegistry, ManualTimerRegistry
from .death_resolver import DeathResolver
from .night_action_resolver import NightActionResolver, NightActionResult
from .vote_resolver import VoteResolver, VoteResult
from .win_evaluator import GameSummary, is_game_over, summarize
from .phase_machine import PhaseStateMachine, TRANSITIONS
from .werewolf_game import WerewolfGame, TargetOption, GameStatus
from .session_repository import SessionRepository

__all__ = [
    # Errors
    "GameError",
    "NotAuthorized",
    "DeadPlayer",
    "WrongPhase",
    "InvalidTarget",
    "InvalidRole",
    "InvalidAction",
    "ConflictingAttack",
    "AlreadyActed",
    "RoleCountMismatch",
    "PhaseTransitionError",
    "PersistenceError",
    # State
    "GameState",
    "NominationState",
    "InvestigationRecord",
    "DeathRecord",
    "NightActionStore",
    "NightAction",
    "ROLE_CATALOG",
    "RoleCapability",
    "capability_for",
    # Infrastructure
    "EventCollector",
    "GameSnapshot",
    "SnapshotManager",
    "Transaction",
    "ScheduledTask",
    "TimerRegistry",
    "AsyncioTimerRegistry",
    "ManualTimerRegistry",
    # Rules
    "DeathResolver",
    "NightActionResolver",
    "NightActionResult",
    "VoteResolver",
    "VoteResult",
    "GameSummary",
    "is_game_over",
    "summarize",
    "PhaseStateMachine",
    "TRANSITIONS",
    # Session
    "WerewolfGame",
    "TargetOption",
    "GameStatus",
    "SessionRepository",
]
