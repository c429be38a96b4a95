from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .players import Player


@dataclass(frozen=True)
class SidePot:
    amount: int
    eligible_player_ids: tuple[int, ...]


def calculate_pot(players: Sequence[Player]) -> int:
    return sum(player.total_bet for player in players)


def calculate_round_pot(players: Sequence[Player]) -> int:
    return sum(player.current_bet for player in players)


def calculate_side_pots(players: Sequence[Player]) -> list[SidePot]:
    """Split the hand's wagers into pots by ascending total-bet level.

    Folded players' chips stay in every pot they reached, but folded players
    are never eligible to win.
    """
    pots: list[SidePot] = []
    remaining = list(players)
    previous_level = 0

    for level in sorted({player.total_bet for player in players}):
        if not remaining:
            break
        if level == previous_level:
            continue

        amount = sum(min(player.total_bet, level) - previous_level for player in remaining)
        if amount > 0:
            eligible = tuple(player.id for player in remaining if not player.folded)
            pots.append(SidePot(amount=amount, eligible_player_ids=eligible))

        previous_level = level
        remaining = [player for player in remaining if player.total_bet > level]

    return pots


def distribute_pot(winners: Sequence[Player], amount: int) -> dict[int, int]:
    if not winners:
        raise ValueError("Cannot distribute a pot without winners.")

    base, remainder = divmod(amount, len(winners))
    distribution: dict[int, int] = {}
    for idx, winner in enumerate(winners):
        distribution[winner.id] = distribution.get(winner.id, 0) + base + (1 if idx < remainder else 0)
    return distribution


def get_minimum_bet(big_blind: int, last_raise_amount: int) -> int:
    return max(big_blind, last_raise_amount)
