from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Literal

Suit = Literal["hearts", "diamonds", "clubs", "spades"]

SUITS: tuple[Suit, ...] = ("hearts", "diamonds", "clubs", "spades")
CARD_VALUES: tuple[str, ...] = ("2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A")
VALUE_RANKS = {value: idx for idx, value in enumerate(CARD_VALUES, start=2)}

SUIT_LETTERS: dict[Suit, str] = {"hearts": "h", "diamonds": "d", "clubs": "c", "spades": "s"}
SUIT_SYMBOLS: dict[Suit, str] = {"hearts": "♥", "diamonds": "♦", "clubs": "♣", "spades": "♠"}
_LETTER_SUITS = {letter: suit for suit, letter in SUIT_LETTERS.items()}


class EmptyDeckError(RuntimeError):
    pass


@dataclass(frozen=True)
class Card:
    value: str
    suit: Suit
    rank: int

    def __post_init__(self) -> None:
        if self.value not in VALUE_RANKS:
            raise ValueError(f"Invalid card value: {self.value}")
        if self.suit not in SUIT_LETTERS:
            raise ValueError(f"Invalid suit: {self.suit}")
        if VALUE_RANKS[self.value] != self.rank:
            raise ValueError(f"Rank {self.rank} does not match value {self.value}")

    @property
    def label(self) -> str:
        return f"{self.value}{SUIT_LETTERS[self.suit]}"

    @property
    def symbol(self) -> str:
        return f"{self.value}{SUIT_SYMBOLS[self.suit]}"

    def __str__(self) -> str:
        return self.symbol


def make_card(value: str, suit: Suit) -> Card:
    return Card(value=value, suit=suit, rank=VALUE_RANKS[value])


def parse_card(label: str) -> Card:
    clean = label.strip()
    if len(clean) < 2:
        raise ValueError(f"Invalid card label: {label}")
    value, letter = clean[:-1].upper(), clean[-1].lower()
    if value == "T":
        value = "10"
    suit = _LETTER_SUITS.get(letter)
    if suit is None or value not in VALUE_RANKS:
        raise ValueError(f"Invalid card label: {label}")
    return make_card(value, suit)


def parse_cards(labels: str | list[str]) -> list[Card]:
    if isinstance(labels, str):
        labels = labels.split()
    return [parse_card(label) for label in labels]


def full_deck() -> list[Card]:
    return [make_card(value, suit) for suit in SUITS for value in CARD_VALUES]


class Deck:
    """52-card deck dealt from the top (end of the list)."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._cards: list[Card] = []
        self.reset()

    def reset(self) -> None:
        self._cards = full_deck()
        self.shuffle()

    def shuffle(self) -> None:
        cards = self._cards
        for i in range(len(cards) - 1, 0, -1):
            j = self._rng.randint(0, i)
            cards[i], cards[j] = cards[j], cards[i]

    def draw(self) -> Card:
        if not self._cards:
            raise EmptyDeckError("Deck is empty!")
        return self._cards.pop()

    def draw_many(self, count: int) -> list[Card]:
        return [self.draw() for _ in range(count)]

    def remaining(self) -> int:
        return len(self._cards)
