from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Literal, Protocol, Sequence

from .cards import Card
from .evaluator import (
    calculate_pot_odds,
    estimate_drawing_outs,
    evaluate_postflop_hand,
    evaluate_preflop_hand,
)
from .players import Player, get_call_amount, get_highest_bet

logger = logging.getLogger(__name__)

PlayerAction = Literal["fold", "check", "call", "raise"]
GamePhase = Literal["idle", "preflop", "flop", "turn", "river", "showdown", "complete"]
BettingRound = Literal["preflop", "flop", "turn", "river"]
Position = Literal["early", "middle", "late"]


class Personality(str, Enum):
    TIGHT_AGGRESSIVE = "tight-aggressive"
    TIGHT_PASSIVE = "tight-passive"
    LOOSE_AGGRESSIVE = "loose-aggressive"
    LOOSE_PASSIVE = "loose-passive"

    @property
    def is_tight(self) -> bool:
        return self in (Personality.TIGHT_AGGRESSIVE, Personality.TIGHT_PASSIVE)

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    Personality.TIGHT_AGGRESSIVE: "conservative and aggressive",
    Personality.TIGHT_PASSIVE: "conservative and cautious",
    Personality.LOOSE_AGGRESSIVE: "loose and aggressive",
    Personality.LOOSE_PASSIVE: "loose and passive",
}


@dataclass(frozen=True)
class AIConfig:
    personality: Personality
    bluff_frequency: float
    aggression_level: float


_PROFILES = {
    Personality.TIGHT_AGGRESSIVE: (0.15, 0.75),
    Personality.TIGHT_PASSIVE: (0.05, 0.25),
    Personality.LOOSE_AGGRESSIVE: (0.25, 0.85),
    Personality.LOOSE_PASSIVE: (0.10, 0.35),
}


def create_ai_config(personality: Personality | str) -> AIConfig:
    personality = Personality(personality)
    bluff_frequency, aggression_level = _PROFILES[personality]
    return AIConfig(personality=personality, bluff_frequency=bluff_frequency, aggression_level=aggression_level)


@dataclass(frozen=True)
class GameContext:
    player: Player
    players: tuple[Player, ...]
    community_cards: tuple[Card, ...]
    pot: int
    minimum_bet: int
    phase: GamePhase
    betting_round: BettingRound | None
    position: Position

    @property
    def highest_bet(self) -> int:
        return get_highest_bet(self.players)

    @property
    def call_amount(self) -> int:
        return get_call_amount(self.player, self.highest_bet)


@dataclass(frozen=True)
class AIDecision:
    action: PlayerAction
    amount: int | None = None
    confidence: float = 0.0
    reasoning: str = ""
    source: Literal["rules", "llm"] = "rules"
    fallback: bool = False

    def as_fallback(self, reason: str) -> "AIDecision":
        return replace(self, fallback=True, reasoning=f"{self.reasoning} ({reason})")


class DecisionStrategy(Protocol):
    async def decide(self, context: GameContext) -> AIDecision:
        ...


def get_position(player: Player, players: Sequence[Player]) -> Position:
    dealer_index = next((idx for idx, p in enumerate(players) if p.is_dealer), 0)
    player_index = next((idx for idx, p in enumerate(players) if p.id == player.id), 0)
    seats_from_dealer = (player_index - dealer_index) % len(players)

    if seats_from_dealer <= 1:
        return "early"
    if seats_from_dealer == 2:
        return "middle"
    return "late"


def _position_offset(position: Position) -> float:
    if position == "late":
        return -0.05
    if position == "early":
        return 0.05
    return 0.0


def get_fold_threshold(config: AIConfig, position: Position) -> float:
    base = 0.45 if config.personality.is_tight else 0.3
    return base + _position_offset(position)


def get_raise_threshold(config: AIConfig, position: Position) -> float:
    base = 0.65 - config.aggression_level * 0.15
    return base + _position_offset(position)


def calculate_raise_amount(hand_strength: float, config: AIConfig, minimum_bet: int, pot: int) -> int:
    multiplier = 2 + config.aggression_level * 3
    if hand_strength >= 0.85:
        multiplier *= 1.5
    elif hand_strength < 0.5:
        multiplier *= 0.7

    amount = math.floor(minimum_bet * multiplier)
    amount = min(amount, math.floor(pot * 0.75))
    return max(minimum_bet, amount)


def estimate_hand_strength(context: GameContext) -> float:
    hand = context.player.hand
    if not context.community_cards:
        if len(hand) < 2:
            return 0.25
        return evaluate_preflop_hand(hand[0], hand[1])
    return evaluate_postflop_hand(hand, context.community_cards)


def make_ai_decision(context: GameContext, config: AIConfig, rng: random.Random | None = None) -> AIDecision:
    rng = rng or random.Random()
    hand_strength = estimate_hand_strength(context)
    call_amount = context.call_amount
    pot_odds = calculate_pot_odds(call_amount, context.pot)
    position = context.position

    adjusted = hand_strength * rng.uniform(0.9, 1.1)
    fold_threshold = get_fold_threshold(config, position)
    raise_threshold = get_raise_threshold(config, position)
    bluffing = rng.random() < config.bluff_frequency and position == "late"

    def raise_decision(reasoning: str) -> AIDecision:
        amount = calculate_raise_amount(hand_strength, config, context.minimum_bet, context.pot)
        return AIDecision("raise", amount, hand_strength, reasoning)

    if call_amount == 0:
        if bluffing or adjusted >= raise_threshold:
            return raise_decision(
                "Bluffing from good position" if bluffing else f"Strong hand ({hand_strength:.2f}) - raising"
            )
        return AIDecision("check", None, hand_strength, f"Moderate hand ({hand_strength:.2f}) - checking")

    outs = estimate_drawing_outs(context.player.hand, context.community_cards)
    equity = outs * 0.02 * (1 if context.phase == "turn" else 2) if outs > 0 else 0.0

    if adjusted < fold_threshold and equity < pot_odds:
        return AIDecision(
            "fold", None, hand_strength, f"Weak hand ({hand_strength:.2f}) vs pot odds ({pot_odds:.2f})"
        )
    if adjusted >= raise_threshold or bluffing:
        return raise_decision("Bluff-raising" if bluffing else f"Very strong hand ({hand_strength:.2f}) - raising")
    if adjusted >= fold_threshold or equity > pot_odds or pot_odds < 0.25:
        return AIDecision(
            "call",
            None,
            hand_strength,
            f"Decent hand ({hand_strength:.2f}) or good pot odds ({pot_odds:.2f})",
        )
    return AIDecision("fold", None, hand_strength, "Hand not strong enough to call")


class RuleBasedStrategy:
    """Default opponent: personality thresholds, pot odds and position."""

    def __init__(self, config: AIConfig, rng: random.Random | None = None) -> None:
        self.config = config
        self.rng = rng or random.Random()

    @property
    def personality(self) -> Personality:
        return self.config.personality

    async def decide(self, context: GameContext) -> AIDecision:
        decision = make_ai_decision(context, self.config, self.rng)
        logger.debug("%s (%s): %s", context.player.name, self.config.personality.value, decision.reasoning)
        return decision
