from backend.holdem.players import (
    create_player,
    fold_player,
    get_call_amount,
    get_highest_bet,
    get_next_player_index,
    is_betting_round_complete,
    place_bet,
    post_blind,
    reset_current_bets,
    reset_player_for_new_hand,
)
from backend.tests.helpers import seat


def test_place_bet_caps_at_stack_and_flags_all_in() -> None:
    player = place_bet(create_player(0, "You", 100), 150)

    assert player.chips == 0
    assert player.current_bet == 100
    assert player.total_bet == 100
    assert player.is_all_in is True
    assert player.has_acted is True


def test_post_blind_does_not_count_as_acting() -> None:
    player = post_blind(create_player(0, "You", 100), 10)

    assert player.chips == 90
    assert player.current_bet == 10
    assert player.has_acted is False
    assert player.is_all_in is False


def test_fold_keeps_chips() -> None:
    player = fold_player(seat(1, 500, current_bet=20, total_bet=20))
    assert player.folded is True
    assert player.has_acted is True
    assert player.chips == 500


def test_resets_keep_the_right_fields() -> None:
    player = seat(1, 0, hand="Ah Kd", current_bet=40, total_bet=90, has_acted=True)
    assert player.is_all_in

    between_rounds = reset_current_bets(player)
    assert between_rounds.current_bet == 0
    assert between_rounds.total_bet == 90
    assert between_rounds.has_acted is False

    fresh = reset_player_for_new_hand(player)
    assert fresh.hand == ()
    assert fresh.total_bet == 0
    assert fresh.is_all_in is False
    assert fresh.chips == 0


def test_chip_conservation_across_bets() -> None:
    players = [create_player(i, f"P{i}", 200) for i in range(3)]
    players[1] = post_blind(players[1], 5)
    players[2] = post_blind(players[2], 10)
    players[0] = place_bet(players[0], 40)
    players[1] = place_bet(players[1], 35)
    players[2] = fold_player(players[2])
    players = [reset_current_bets(p) for p in players]
    players[1] = place_bet(players[1], 500)
    players[0] = place_bet(players[0], get_call_amount(players[0], get_highest_bet(players)))

    assert sum(p.chips + p.total_bet for p in players) == 600


def test_unacted_player_blocks_round_completion() -> None:
    players = [
        seat(0, current_bet=10, has_acted=True),
        seat(1, current_bet=10, has_acted=True),
        seat(2, current_bet=10, has_acted=False),
    ]
    assert is_betting_round_complete(players) is False

    players[2] = place_bet(players[2], 0)
    assert is_betting_round_complete(players) is True


def test_unmatched_bet_blocks_round_completion() -> None:
    players = [
        seat(0, current_bet=30, has_acted=True),
        seat(1, current_bet=10, has_acted=True),
        seat(2, 0, current_bet=5, total_bet=5, has_acted=True),
        seat(3, folded=True, has_acted=True),
    ]
    assert is_betting_round_complete(players) is False

    players[1] = place_bet(players[1], 20)
    assert is_betting_round_complete(players) is True


def test_next_player_skips_folded_and_all_in_and_wraps() -> None:
    players = [
        seat(0),
        seat(1, folded=True),
        seat(2, 0, total_bet=100),
        seat(3),
    ]
    assert get_next_player_index(players, 0) == 3
    assert get_next_player_index(players, 3) == 0


def test_next_player_unchanged_when_nobody_can_act() -> None:
    players = [seat(0, folded=True), seat(1, 0, total_bet=50), seat(2, folded=True)]
    assert get_next_player_index(players, 1) == 1
