import asyncio
import json

import httpx
import pytest

from backend.holdem.cards import parse_cards
from backend.holdem.opponent import AIProviderError, LLMSettings, LLMStrategy, build_prompt, parse_llm_response
from backend.holdem.strategy import AIDecision, GameContext, Personality
from backend.tests.helpers import seat


class FixedStrategy:
    def __init__(self) -> None:
        self.calls = 0

    async def decide(self, context: GameContext) -> AIDecision:
        self.calls += 1
        return AIDecision("fold", reasoning="fixed")


def _context(chips: int = 500) -> GameContext:
    hero = seat(1, chips, hand="Ah Kd")
    return GameContext(
        player=hero,
        players=(seat(0, current_bet=20, total_bet=20), hero, seat(2)),
        community_cards=tuple(parse_cards("Qs 7h 2c")),
        pot=45,
        minimum_bet=10,
        phase="flop",
        betting_round="flop",
        position="middle",
    )


def _openai_reply(content: str) -> dict:
    return {"choices": [{"message": {"content": content}}]}


def _decide(strategy_factory, handler, context: GameContext | None = None, times: int = 1) -> list[AIDecision]:
    async def run() -> list[AIDecision]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            strategy = strategy_factory(client)
            return [await strategy.decide(context or _context()) for _ in range(times)]

    return asyncio.run(run())


OPENAI = LLMSettings(provider="openai", api_key="sk-test", model="gpt-4o")
GEMINI = LLMSettings(provider="gemini", api_key="g-test", model="gemini-1.5-pro")


def test_openai_decision_is_parsed() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_openai_reply('{"action":"raise","amount":50}'))

    fallback = FixedStrategy()
    (decision,) = _decide(lambda client: LLMStrategy(fallback, Personality.TIGHT_AGGRESSIVE, OPENAI, client), handler)

    assert decision.action == "raise"
    assert decision.amount == 50
    assert decision.source == "llm"
    assert decision.fallback is False
    assert fallback.calls == 0
    assert seen[0].headers["Authorization"] == "Bearer sk-test"
    assert seen[0].url.path == "/v1/chat/completions"
    body = json.loads(seen[0].content)
    assert body["model"] == "gpt-4o"
    assert "A♥, K♦" in body["messages"][1]["content"]


def test_gemini_decision_in_fenced_block() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        text = '```json\n{"action": "call"}\n```'
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})

    (decision,) = _decide(lambda client: LLMStrategy(FixedStrategy(), Personality.LOOSE_PASSIVE, GEMINI, client), handler)

    assert decision.action == "call"
    assert seen[0].url.params["key"] == "g-test"
    assert seen[0].url.path.endswith("gemini-1.5-pro:generateContent")


def test_http_error_falls_back_to_rules() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "boom"})

    fallback = FixedStrategy()
    (decision,) = _decide(lambda client: LLMStrategy(fallback, Personality.TIGHT_PASSIVE, OPENAI, client), handler)

    assert decision.action == "fold"
    assert decision.fallback is True
    assert decision.source == "rules"
    assert "LLM error fallback" in decision.reasoning
    assert fallback.calls == 1


def test_unparsable_reply_falls_back() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_openai_reply("I think I'll fold here."))

    (decision,) = _decide(lambda client: LLMStrategy(FixedStrategy(), Personality.TIGHT_PASSIVE, OPENAI, client), handler)

    assert decision.fallback is True


def test_missing_credentials_use_rules_without_calling_out() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    (decision,) = _decide(lambda client: LLMStrategy(FixedStrategy(), Personality.TIGHT_PASSIVE, None, client), handler)

    assert decision.fallback is True
    assert "rule-based fallback" in decision.reasoning


def test_repeated_situation_is_served_from_cache() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json=_openai_reply('{"action":"call"}'))

    first, second = _decide(
        lambda client: LLMStrategy(FixedStrategy(), Personality.TIGHT_AGGRESSIVE, OPENAI, client),
        handler,
        times=2,
    )

    assert calls == 1
    assert first.action == second.action == "call"
    assert second.reasoning.endswith("(cached)")


def test_raise_amount_is_clamped() -> None:
    context = _context(chips=500)
    assert parse_llm_response('{"action":"raise","amount":5000}', context).amount == 200
    assert parse_llm_response('{"action":"raise","amount":1}', context).amount == 10
    assert parse_llm_response('{"action":"raise","amount":90}', _context(chips=60)).amount == 60


def test_unknown_action_is_rejected() -> None:
    with pytest.raises(AIProviderError, match="Unsupported LLM action"):
        parse_llm_response('{"action":"shove"}', _context())


def test_prompt_describes_the_spot() -> None:
    prompt = build_prompt(_context(), Personality.TIGHT_AGGRESSIVE)
    assert "conservative and aggressive" in prompt
    assert "CALL $20" in prompt
    assert "Pot Size: $45" in prompt
    assert "between $10 and $200" in prompt


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "gemini")
    monkeypatch.setenv("GEMINI_API_KEY", "real-key")
    monkeypatch.setenv("LLM_TIMEOUT_MS", "2500")
    monkeypatch.delenv("LLM_MODEL", raising=False)

    settings = LLMSettings.from_env()

    assert settings is not None
    assert settings.provider == "gemini"
    assert settings.model == "gemini-1.5-pro"
    assert settings.timeout_ms == 2500

    monkeypatch.setenv("GEMINI_API_KEY", "your_gemini_api_key_here")
    assert LLMSettings.from_env() is None


def test_owned_client_is_closed() -> None:
    async def run() -> AIDecision:
        strategy = LLMStrategy(FixedStrategy(), Personality.LOOSE_AGGRESSIVE, None)
        try:
            return await strategy.decide(_context())
        finally:
            await strategy.aclose()
            assert strategy._http.is_closed

    assert asyncio.run(run()).fallback is True
