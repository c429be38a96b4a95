from __future__ import annotations

import json
import logging
import os
import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from .strategy import AIDecision, DecisionStrategy, GameContext, Personality

logger = logging.getLogger(__name__)

Provider = Literal["openai", "gemini"]

DEFAULT_MODELS: dict[Provider, str] = {"openai": "gpt-4o", "gemini": "gemini-1.5-pro"}
OPENAI_URL = "https://api.openai.com/v1/chat/completions"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

MAX_LLM_RAISE = 200
MIN_LLM_RAISE = 10
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class AIProviderError(RuntimeError):
    pass


def _normalize_api_key(raw: str | None) -> str | None:
    if raw is None:
        return None

    value = raw.strip()
    if not value:
        return None

    if value.lower() in {
        "your_openai_api_key_here",
        "your_gemini_api_key_here",
        "replace_with_gemini_key",
        "__replace_me__",
        "changeme",
    }:
        return None

    return value


@dataclass(frozen=True)
class LLMSettings:
    provider: Provider
    api_key: str
    model: str
    timeout_ms: int = 5000
    cache_size: int = 100

    @classmethod
    def from_env(cls) -> "LLMSettings | None":
        provider = os.getenv("LLM_PROVIDER", "openai").strip().lower()
        if provider not in DEFAULT_MODELS:
            logger.warning("Unsupported LLM_PROVIDER %r; LLM opponents disabled.", provider)
            return None

        key_var = "OPENAI_API_KEY" if provider == "openai" else "GEMINI_API_KEY"
        api_key = _normalize_api_key(os.getenv(key_var))
        if not api_key:
            return None

        return cls(
            provider=provider,  # type: ignore[arg-type]
            api_key=api_key,
            model=os.getenv("LLM_MODEL") or DEFAULT_MODELS[provider],  # type: ignore[index]
            timeout_ms=int(os.getenv("LLM_TIMEOUT_MS", "5000")),
            cache_size=int(os.getenv("LLM_CACHE_SIZE", "100")),
        )


def build_prompt(context: GameContext, personality: Personality) -> str:
    player = context.player
    hand = ", ".join(card.symbol for card in player.hand)
    board = ", ".join(card.symbol for card in context.community_cards) or "None yet"
    call_amount = context.call_amount
    active = sum(1 for p in context.players if not p.folded)

    options = []
    if call_amount == 0:
        options.append("- CHECK (bet nothing)")
    else:
        options.append(f"- CALL ${call_amount} (match current bet)")
    options.append("- FOLD (give up this hand)")
    options.append("- RAISE (increase the bet)")

    return (
        f"You are an expert Texas Hold'em poker AI with a {personality.description} playing style.\n\n"
        "Current Situation:\n"
        f"- Game Phase: {context.phase.upper()}\n"
        f"- Your Hole Cards: {hand}\n"
        f"- Community Cards: {board}\n"
        f"- Pot Size: ${context.pot}\n"
        f"- Your Chips: ${player.chips}\n"
        f"- Current Bet to Match: ${call_amount}\n"
        f"- Active Players: {active}\n\n"
        "Your Options:\n" + "\n".join(options) + "\n\n"
        "Respond with ONLY a JSON object in this exact format:\n"
        '{"action":"fold|check|call|raise","amount":number}\n\n'
        f"If raising, \"amount\" should be the RAISE amount (not total bet), between "
        f"${max(context.minimum_bet, MIN_LLM_RAISE)} and ${min(player.chips, MAX_LLM_RAISE)}.\n"
        "If folding, checking, or calling, omit \"amount\" or set to 0.\n\n"
        "Make your decision now:"
    )


def parse_llm_response(text: str, context: GameContext) -> AIDecision:
    match = _JSON_OBJECT.search(text)
    if not match:
        raise AIProviderError("No JSON object found in LLM response.")

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise AIProviderError(f"Malformed JSON in LLM response: {exc}") from exc
    if not isinstance(parsed, dict):
        raise AIProviderError("LLM response JSON is not an object.")

    action = str(parsed.get("action", "")).strip().lower()
    if action not in {"fold", "check", "call", "raise"}:
        raise AIProviderError(f"Unsupported LLM action: {action!r}")

    if action != "raise":
        return AIDecision(action, None, 0.8, f"LLM decision: {action}", source="llm")  # type: ignore[arg-type]

    raw_amount = parsed.get("amount")
    amount = round(raw_amount) if isinstance(raw_amount, (int, float)) else 0
    floor = max(context.minimum_bet, MIN_LLM_RAISE)
    amount = max(floor, min(amount, context.player.chips, MAX_LLM_RAISE))
    return AIDecision("raise", amount, 0.8, f"LLM decision: raise ${amount}", source="llm")


class LLMStrategy:
    """LLM-backed opponent that falls back to the wrapped strategy on any failure."""

    _SYSTEM_PROMPT = "You are an expert poker AI. Respond only with valid JSON."
    _CACHE_TTL_SECONDS = 30.0

    def __init__(
        self,
        fallback: DecisionStrategy,
        personality: Personality,
        settings: LLMSettings | None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.fallback = fallback
        self.personality = personality
        self.settings = settings
        self.cache_size = max(0, settings.cache_size) if settings else 0
        self._decision_cache: OrderedDict[str, tuple[float, AIDecision]] = OrderedDict()
        self._owns_client = http_client is None
        timeout = settings.timeout_ms / 1000.0 if settings else 5.0
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(max(0.5, timeout)),
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def decide(self, context: GameContext) -> AIDecision:
        cache_key = self._decision_cache_key(context)
        cached = self._cache_get(cache_key)
        if cached is not None:
            return AIDecision(
                cached.action,
                cached.amount,
                cached.confidence,
                f"{cached.reasoning} (cached)",
                source=cached.source,
            )

        if self.settings is None:
            decision = await self.fallback.decide(context)
            return decision.as_fallback("rule-based fallback")

        try:
            prompt = build_prompt(context, self.personality)
            text = await self._request_move(prompt)
            decision = parse_llm_response(text, context)
        except Exception as exc:  # provider, transport and payload errors all fall back
            logger.warning("LLM decision for %s failed: %s", context.player.name, exc)
            fallback = await self.fallback.decide(context)
            return fallback.as_fallback("LLM error fallback")

        self._cache_put(cache_key, decision)
        return decision

    async def _request_move(self, prompt: str) -> str:
        assert self.settings is not None
        if self.settings.provider == "openai":
            return await self._call_openai(prompt)
        return await self._call_gemini(prompt)

    async def _call_openai(self, prompt: str) -> str:
        assert self.settings is not None
        payload = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": self._SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.7,
            "max_tokens": 100,
        }
        response = await self._http.post(
            OPENAI_URL,
            json=payload,
            headers={"Authorization": f"Bearer {self.settings.api_key}"},
        )
        response.raise_for_status()

        parsed: dict[str, Any] = response.json()
        text = parsed.get("choices", [{}])[0].get("message", {}).get("content", "")
        if not text:
            raise AIProviderError("OpenAI response did not include message content.")
        return text

    async def _call_gemini(self, prompt: str) -> str:
        assert self.settings is not None
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0.7, "maxOutputTokens": 100},
        }
        model = self.settings.model.replace("/", "%2F")
        response = await self._http.post(
            GEMINI_URL.format(model=model),
            params={"key": self.settings.api_key},
            json=payload,
        )
        response.raise_for_status()

        parsed: dict[str, Any] = response.json()
        parts = parsed.get("candidates", [{}])[0].get("content", {}).get("parts", [])
        text = "".join(part.get("text", "") for part in parts).strip()
        if not text:
            raise AIProviderError("Gemini response did not include text content.")
        return text

    def _decision_cache_key(self, context: GameContext) -> str:
        hand = "".join(sorted(card.label for card in context.player.hand))
        board = "".join(card.label for card in context.community_cards)
        return f"{hand}|{board}|{context.phase}|{context.highest_bet}|{context.pot}"

    def _cache_get(self, key: str) -> AIDecision | None:
        if self.cache_size <= 0:
            return None
        entry = self._decision_cache.get(key)
        if entry is None:
            return None
        stored_at, decision = entry
        if time.monotonic() - stored_at >= self._CACHE_TTL_SECONDS:
            del self._decision_cache[key]
            return None
        self._decision_cache.move_to_end(key)
        return decision

    def _cache_put(self, key: str, decision: AIDecision) -> None:
        if self.cache_size <= 0:
            return
        self._decision_cache[key] = (time.monotonic(), decision)
        self._decision_cache.move_to_end(key)
        while len(self._decision_cache) > self.cache_size:
            self._decision_cache.popitem(last=False)
