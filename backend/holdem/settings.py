from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Any, Optional

from pydantic import Field, model_validator

from .config import env_bool, env_int
from .models import CamelModel
from .strategy import Personality

logger = logging.getLogger(__name__)


class AISpeed(str, Enum):
    SLOW = "slow"
    NORMAL = "normal"
    FAST = "fast"


AI_DELAY_SECONDS: dict[AISpeed, tuple[float, float]] = {
    AISpeed.SLOW: (1.5, 2.5),
    AISpeed.NORMAL: (0.8, 1.5),
    AISpeed.FAST: (0.3, 0.6),
}


class GameSettings(CamelModel):
    starting_chips: int = Field(default=1000, gt=0)
    small_blind: int = Field(default=5, gt=0)
    big_blind: int = Field(default=10, gt=0)
    ai_speed: AISpeed = AISpeed.NORMAL
    ai_personality_1: Personality = Personality.TIGHT_AGGRESSIVE
    ai_personality_2: Personality = Personality.LOOSE_AGGRESSIVE
    use_llm_ai: bool = False

    @model_validator(mode="after")
    def _check_blinds(self) -> "GameSettings":
        if self.big_blind < self.small_blind:
            raise ValueError("bigBlind must be at least smallBlind")
        return self

    @property
    def ai_personalities(self) -> tuple[Personality, Personality]:
        return self.ai_personality_1, self.ai_personality_2

    @classmethod
    def from_env(cls) -> "GameSettings":
        defaults = cls()
        values: dict[str, Any] = {
            "starting_chips": env_int("STARTING_CHIPS", defaults.starting_chips),
            "small_blind": env_int("SMALL_BLIND", defaults.small_blind),
            "big_blind": env_int("BIG_BLIND", defaults.big_blind),
            "ai_speed": os.getenv("AI_SPEED") or defaults.ai_speed,
            "ai_personality_1": os.getenv("AI_PERSONALITY_1") or defaults.ai_personality_1,
            "ai_personality_2": os.getenv("AI_PERSONALITY_2") or defaults.ai_personality_2,
            "use_llm_ai": env_bool("USE_LLM_AI", defaults.use_llm_ai),
        }
        return cls.model_validate(values)


class GameSettingsUpdate(CamelModel):
    starting_chips: Optional[int] = None
    small_blind: Optional[int] = None
    big_blind: Optional[int] = None
    ai_speed: Optional[AISpeed] = None
    ai_personality_1: Optional[Personality] = None
    ai_personality_2: Optional[Personality] = None
    use_llm_ai: Optional[bool] = None


class SettingsManager:
    """Holds the table's settings; callers always receive a copy."""

    def __init__(self, defaults: GameSettings | None = None) -> None:
        self._defaults = defaults or GameSettings()
        self._settings = self._defaults.model_copy()

    def get_settings(self) -> GameSettings:
        return self._settings.model_copy()

    def update_settings(self, update: GameSettingsUpdate | dict[str, Any]) -> GameSettings:
        if isinstance(update, dict):
            update = GameSettingsUpdate.model_validate(update)
        changes = update.model_dump(exclude_none=True)
        merged = {**self._settings.model_dump(), **changes}
        # Re-validate the merged record so cross-field rules still hold.
        self._settings = GameSettings.model_validate(merged)
        logger.info("Settings updated: %s", sorted(changes))
        return self.get_settings()

    def reset_to_defaults(self) -> GameSettings:
        self._settings = self._defaults.model_copy()
        return self.get_settings()

    def ai_delay(self) -> tuple[float, float]:
        return AI_DELAY_SECONDS[self._settings.ai_speed]


__all__ = [
    "AISpeed",
    "AI_DELAY_SECONDS",
    "GameSettings",
    "GameSettingsUpdate",
    "SettingsManager",
]
