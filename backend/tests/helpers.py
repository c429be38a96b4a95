from __future__ import annotations

from dataclasses import replace

from backend.holdem.cards import parse_cards
from backend.holdem.players import Player, create_ai_player, create_player


def seat(
    id: int,
    chips: int = 1000,
    *,
    hand: str = "",
    current_bet: int = 0,
    total_bet: int = 0,
    folded: bool = False,
    has_acted: bool = False,
    is_dealer: bool = False,
) -> Player:
    """Build a player mid-hand; all-in is derived from an empty stack with chips committed."""
    base = create_player(id, "You", chips) if id == 0 else create_ai_player(id, f"Player {id + 1}", chips)
    return replace(
        base,
        hand=tuple(parse_cards(hand)) if hand else (),
        current_bet=current_bet,
        total_bet=total_bet,
        folded=folded,
        is_all_in=chips == 0 and total_bet > 0,
        has_acted=has_acted,
        is_dealer=is_dealer,
    )


def total_chips(players: tuple[Player, ...] | list[Player]) -> int:
    return sum(player.chips for player in players)
