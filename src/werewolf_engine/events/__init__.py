"""Events package."""

from werewolf_engine.events.game_events import (
    # Base
    GameEvent,
    CharacterAction,
    TargetAction,
    # Enums
    Phase,
    ActionType,
    DeathCause,
    NIGHT_PHASES,
    DAY_PHASES,
    # Lobby and setup
    PlayerJoined,
    RolesAssigned,
    PhaseChanged,
    # Night
    NightActionSubmitted,
    Investigation,
    LoversBonded,
    AttackNullified,
    DeathEvent,
    # Day
    Nomination,
    NominationSeconded,
    NominationExpired,
    Vote,
    VoteOutcome,
    # Last stand
    LastStandOpened,
    HunterShot,
    LastStandExpired,
    # End
    GameOver,
)

from werewolf_engine.events.event_log import (
    GameEventLog,
    PhaseLog,
)

__all__ = [
    # Base
    "GameEvent",
    "CharacterAction",
    "TargetAction",
    # Enums
    "Phase",
    "ActionType",
    "DeathCause",
    "NIGHT_PHASES",
    "DAY_PHASES",
    # Lobby and setup
    "PlayerJoined",
    "RolesAssigned",
    "PhaseChanged",
    # Night
    "NightActionSubmitted",
    "Investigation",
    "LoversBonded",
    "AttackNullified",
    "DeathEvent",
    # Day
    "Nomination",
    "NominationSeconded",
    "NominationExpired",
    "Vote",
    "VoteOutcome",
    # Last stand
    "LastStandOpened",
    "HunterShot",
    "LastStandExpired",
    # End
    "GameOver",
    # Logs
    "GameEventLog",
    "PhaseLog",
]
