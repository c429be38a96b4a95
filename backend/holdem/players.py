from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

from .cards import Card

DEFAULT_STARTING_CHIPS = 1000


@dataclass(frozen=True)
class Player:
    id: int
    name: str
    chips: int
    hand: tuple[Card, ...] = ()
    current_bet: int = 0
    total_bet: int = 0
    folded: bool = False
    is_all_in: bool = False
    is_dealer: bool = False
    is_ai: bool = False
    has_acted: bool = False


def create_player(id: int, name: str, chips: int = DEFAULT_STARTING_CHIPS, is_ai: bool = False) -> Player:
    return Player(id=id, name=name, chips=chips, is_ai=is_ai)


def create_ai_player(id: int, name: str, chips: int = DEFAULT_STARTING_CHIPS) -> Player:
    return create_player(id, name, chips, is_ai=True)


def can_player_act(player: Player) -> bool:
    return not player.folded and not player.is_all_in


def _commit(player: Player, amount: int) -> Player:
    paid = max(0, min(amount, player.chips))
    chips = player.chips - paid
    return replace(
        player,
        chips=chips,
        current_bet=player.current_bet + paid,
        total_bet=player.total_bet + paid,
        is_all_in=chips == 0,
    )


def place_bet(player: Player, amount: int) -> Player:
    return replace(_commit(player, amount), has_acted=True)


def post_blind(player: Player, amount: int) -> Player:
    # Forced bets must not count towards round completion.
    return replace(_commit(player, amount), has_acted=False)


def fold_player(player: Player) -> Player:
    return replace(player, folded=True, has_acted=True)


def check_player(player: Player) -> Player:
    return replace(player, has_acted=True)


def reset_player_for_new_hand(player: Player) -> Player:
    return replace(
        player,
        hand=(),
        current_bet=0,
        total_bet=0,
        folded=False,
        is_all_in=False,
        has_acted=False,
    )


def reset_current_bets(player: Player) -> Player:
    return replace(player, current_bet=0, has_acted=False)


def deal_cards_to_player(player: Player, cards: Sequence[Card]) -> Player:
    return replace(player, hand=player.hand + tuple(cards))


def award_chips(player: Player, amount: int) -> Player:
    return replace(player, chips=player.chips + amount)


def set_dealer(player: Player, is_dealer: bool) -> Player:
    return replace(player, is_dealer=is_dealer)


def get_active_players(players: Sequence[Player]) -> list[Player]:
    return [player for player in players if not player.folded]


def get_players_who_can_act(players: Sequence[Player]) -> list[Player]:
    return [player for player in players if can_player_act(player)]


def get_next_player_index(players: Sequence[Player], current_index: int) -> int:
    count = len(players)
    index = (current_index + 1) % count
    for _ in range(count):
        if can_player_act(players[index]):
            return index
        index = (index + 1) % count
    return current_index


def get_highest_bet(players: Sequence[Player]) -> int:
    return max((player.current_bet for player in players), default=0)


def get_call_amount(player: Player, highest_bet: int) -> int:
    return max(0, highest_bet - player.current_bet)


def is_betting_round_complete(players: Sequence[Player]) -> bool:
    active = get_active_players(players)
    if not active:
        return True

    can_act = get_players_who_can_act(players)
    if not can_act:
        return True

    highest = max(player.current_bet for player in active)
    return all(player.has_acted and player.current_bet == highest for player in can_act)
