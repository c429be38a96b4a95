import pytest
from pydantic import ValidationError

from backend.holdem.settings import AISpeed, GameSettings, GameSettingsUpdate, SettingsManager
from backend.holdem.strategy import Personality


def test_defaults() -> None:
    settings = SettingsManager().get_settings()

    assert settings.starting_chips == 1000
    assert settings.small_blind == 5
    assert settings.big_blind == 10
    assert settings.ai_speed is AISpeed.NORMAL
    assert settings.ai_personalities == (Personality.TIGHT_AGGRESSIVE, Personality.LOOSE_AGGRESSIVE)
    assert settings.use_llm_ai is False


def test_update_merges_only_provided_fields() -> None:
    manager = SettingsManager()
    updated = manager.update_settings(GameSettingsUpdate(big_blind=20, ai_speed=AISpeed.FAST))

    assert updated.big_blind == 20
    assert updated.small_blind == 5
    assert manager.ai_delay() == (0.3, 0.6)


def test_update_accepts_camel_case_payload() -> None:
    manager = SettingsManager()
    updated = manager.update_settings({"startingChips": 2500, "aiPersonality2": "tight-passive"})

    assert updated.starting_chips == 2500
    assert updated.ai_personality_2 is Personality.TIGHT_PASSIVE


def test_invalid_merge_keeps_previous_settings() -> None:
    manager = SettingsManager()
    with pytest.raises(ValidationError):
        manager.update_settings({"small_blind": 50})

    assert manager.get_settings().small_blind == 5


def test_callers_get_copies() -> None:
    manager = SettingsManager()
    copy = manager.get_settings()
    copy.starting_chips = 1

    assert manager.get_settings().starting_chips == 1000


def test_reset_restores_defaults() -> None:
    manager = SettingsManager(GameSettings(starting_chips=300))
    manager.update_settings({"starting_chips": 900})

    assert manager.reset_to_defaults().starting_chips == 300


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STARTING_CHIPS", "750")
    monkeypatch.setenv("AI_SPEED", "slow")
    monkeypatch.setenv("USE_LLM_AI", "true")
    monkeypatch.setenv("AI_PERSONALITY_1", "loose-passive")

    settings = GameSettings.from_env()

    assert settings.starting_chips == 750
    assert settings.ai_speed is AISpeed.SLOW
    assert settings.use_llm_ai is True
    assert settings.ai_personality_1 is Personality.LOOSE_PASSIVE


def test_serializes_camel_case() -> None:
    payload = GameSettings().model_dump(by_alias=True, mode="json")
    assert payload["startingChips"] == 1000
    assert payload["aiPersonality1"] == "tight-aggressive"
    assert payload["useLlmAi"] is False
