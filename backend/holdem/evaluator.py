from __future__ import annotations

import itertools
from collections import Counter
from dataclasses import dataclass, field
from typing import Sequence

from .cards import Card
from .players import Player

HIGH_CARD = 1
PAIR = 2
TWO_PAIR = 3
THREE_OF_A_KIND = 4
STRAIGHT = 5
FLUSH = 6
FULL_HOUSE = 7
FOUR_OF_A_KIND = 8
STRAIGHT_FLUSH = 9
ROYAL_FLUSH = 10

HAND_NAMES = {
    HIGH_CARD: "High Card",
    PAIR: "Pair",
    TWO_PAIR: "Two Pair",
    THREE_OF_A_KIND: "Three of a Kind",
    STRAIGHT: "Straight",
    FLUSH: "Flush",
    FULL_HOUSE: "Full House",
    FOUR_OF_A_KIND: "Four of a Kind",
    STRAIGHT_FLUSH: "Straight Flush",
    ROYAL_FLUSH: "Royal Flush",
}


@dataclass(frozen=True, order=True)
class HandRanking:
    rank: int
    primary_values: tuple[int, ...]
    kickers: tuple[int, ...]
    cards: tuple[Card, ...] = field(default=(), compare=False)

    @property
    def name(self) -> str:
        return HAND_NAMES[self.rank]


def _straight_high(ranks: set[int]) -> int | None:
    if len(ranks) != 5:
        return None
    high, low = max(ranks), min(ranks)
    if high - low == 4:
        return high
    if ranks == {14, 2, 3, 4, 5}:
        return 5
    return None


def rank_five(cards: Sequence[Card]) -> HandRanking:
    if len(cards) != 5:
        raise ValueError(f"rank_five expects 5 cards, got {len(cards)}")

    counts = Counter(card.rank for card in cards)
    # Most frequent first, then higher rank.
    grouped = sorted(counts.items(), key=lambda item: (item[1], item[0]), reverse=True)
    shape = [count for _, count in grouped]
    values = [value for value, _ in grouped]

    is_flush = len({card.suit for card in cards}) == 1
    straight_high = _straight_high(set(counts))
    held = tuple(cards)

    if is_flush and straight_high is not None:
        rank = ROYAL_FLUSH if straight_high == 14 else STRAIGHT_FLUSH
        return HandRanking(rank, (straight_high,), (), held)
    if shape[0] == 4:
        return HandRanking(FOUR_OF_A_KIND, (values[0],), (values[1],), held)
    if shape == [3, 2]:
        return HandRanking(FULL_HOUSE, (values[0], values[1]), (), held)
    if is_flush:
        return HandRanking(FLUSH, tuple(sorted(counts, reverse=True)), (), held)
    if straight_high is not None:
        return HandRanking(STRAIGHT, (straight_high,), (), held)
    if shape[0] == 3:
        return HandRanking(THREE_OF_A_KIND, (values[0],), tuple(values[1:]), held)
    if shape[:2] == [2, 2]:
        return HandRanking(TWO_PAIR, (values[0], values[1]), (values[2],), held)
    if shape[0] == 2:
        return HandRanking(PAIR, (values[0],), tuple(values[1:]), held)
    return HandRanking(HIGH_CARD, (), tuple(values), held)


def evaluate_hand(cards: Sequence[Card]) -> HandRanking:
    """Best 5-card hand out of 5 to 7 cards."""
    if not 5 <= len(cards) <= 7:
        raise ValueError(f"Cannot evaluate {len(cards)} cards; need 5 to 7.")
    return max(rank_five(combo) for combo in itertools.combinations(cards, 5))


def compare_hands(a: HandRanking, b: HandRanking) -> int:
    if a > b:
        return 1
    if a < b:
        return -1
    return 0


def determine_showdown_winners(active_players: Sequence[Player], community_cards: Sequence[Card]) -> list[Player]:
    if len(active_players) <= 1:
        return list(active_players)

    rankings = [(player, evaluate_hand([*player.hand, *community_cards])) for player in active_players]
    best = max(ranking for _, ranking in rankings)
    return [player for player, ranking in rankings if ranking == best]


# Heuristics below only feed the AI; showdown always goes through evaluate_hand.


def evaluate_preflop_hand(card1: Card, card2: Card) -> float:
    value1, value2 = card1.rank, card2.rank
    suited = card1.suit == card2.suit

    if value1 == value2:
        if value1 >= 11:
            return 0.9 + (value1 - 11) * 0.025
        return 0.6 + (value1 - 2) * 0.03

    high, low = max(value1, value2), min(value1, value2)
    gap = high - low

    if high == 14:
        if low >= 13:
            return 0.85 if suited else 0.75
        if low >= 12:
            return 0.75 if suited else 0.65
        if low >= 11:
            return 0.7 if suited else 0.6
        if low >= 10:
            return 0.65 if suited else 0.55
        return 0.45 if suited else 0.35

    if high == 13:
        if low >= 12:
            return 0.7 if suited else 0.6
        if low >= 11:
            return 0.65 if suited else 0.55
        if low >= 10:
            return 0.6 if suited else 0.5
        return 0.4 if suited else 0.3

    if suited and gap <= 1 and low >= 7:
        return 0.55
    if suited and gap <= 2 and low >= 6:
        return 0.45
    return 0.35 if suited else 0.25


def _has_run(values: Sequence[int], length: int) -> bool:
    ordered = sorted(set(values), reverse=True)
    span = length - 1
    return any(ordered[i] - ordered[i + span] == span for i in range(len(ordered) - span))


def evaluate_postflop_hand(hand: Sequence[Card], community_cards: Sequence[Card]) -> float:
    cards = [*hand, *community_cards]
    if len(cards) < 5:
        return evaluate_preflop_hand(hand[0], hand[1]) if len(hand) >= 2 else 0.25

    counts = sorted(Counter(card.rank for card in cards).values(), reverse=True)
    has_flush = max(Counter(card.suit for card in cards).values()) >= 5
    # Coarse check: no ace-low wheel here.
    has_straight = _has_run([card.rank for card in cards], 5)

    if counts[0] == 4:
        return 0.95
    if counts[0] == 3 and len(counts) > 1 and counts[1] >= 2:
        return 0.9
    if has_flush and has_straight:
        return 0.99
    if has_flush:
        return 0.85
    if has_straight:
        return 0.8
    if counts[0] == 3:
        return 0.7
    if counts[0] == 2 and counts[1] == 2:
        return 0.6
    if counts[0] == 2:
        return 0.45

    top = max(card.rank for card in cards)
    if top >= 14:
        return 0.35
    if top >= 13:
        return 0.3
    return 0.25


def calculate_pot_odds(call_amount: int, pot_size: int) -> float:
    if call_amount == 0:
        return 1.0
    return call_amount / (pot_size + call_amount)


def estimate_drawing_outs(hand: Sequence[Card], community_cards: Sequence[Card]) -> int:
    cards = [*hand, *community_cards]
    if not cards:
        return 0

    outs = 0
    if max(Counter(card.suit for card in cards).values()) == 4:
        outs += 9
    if _has_run([card.rank for card in cards], 4):
        outs += 8
    if 2 in Counter(card.rank for card in cards).values():
        outs += 2
    return outs
