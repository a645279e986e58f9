"""Game settings.

Timeouts are in seconds. Settings can be loaded from a YAML file whose
keys mirror the field names; unknown keys are rejected.
"""

from enum import Enum
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator


class TiePolicy(str, Enum):
    """What a tied vote does to the nominee."""

    SURVIVE = "survive"
    ELIMINATE = "eliminate"


class GameSettings(BaseModel):
    """Tunable rules and timeouts for a session."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    min_players: int = Field(default=6, ge=3)
    max_players: int = Field(default=20, ge=3)

    nomination_timeout: float = Field(default=60, gt=0)
    night_action_timeout: float = Field(default=600, gt=0)
    night_zero_timeout: float = Field(default=600, gt=0)
    last_stand_timeout: float = Field(default=300, gt=0)

    tie_policy: TiePolicy = TiePolicy.SURVIVE
    # Cap on the werewolf faction as a fraction of the player count.
    max_evil_ratio: float = Field(default=1 / 3, gt=0, lt=1)
    continue_day_after_acquittal: bool = False
    close_voting_when_complete: bool = True
    validate_invariants: bool = False

    @model_validator(mode="after")
    def check_player_bounds(self) -> "GameSettings":
        if self.max_players < self.min_players:
            raise ValueError(
                f"max_players ({self.max_players}) must be >= min_players ({self.min_players})"
            )
        return self

    def max_werewolf_faction(self, player_count: int) -> int:
        """Largest werewolf-faction size allowed for a player count (at least one)."""
        # Epsilon keeps 9 * (1/3) from flooring to 2.
        return max(1, int(player_count * self.max_evil_ratio + 1e-9))


def load_settings(path: Optional[Union[str, Path]] = None) -> GameSettings:
    """Load settings from a YAML file, or return defaults when path is None."""
    if path is None:
        return GameSettings()
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    return GameSettings.model_validate(data)
