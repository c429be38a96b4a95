import asyncio
import random

import pytest

from backend.holdem.cards import Deck, parse_cards
from backend.holdem.strategy import (
    GameContext,
    Personality,
    RuleBasedStrategy,
    calculate_raise_amount,
    create_ai_config,
    get_position,
    make_ai_decision,
)
from backend.tests.helpers import seat


def _context(
    hand: str,
    *,
    to_call: int = 0,
    pot: int = 15,
    minimum_bet: int = 10,
    board: str = "",
    position: str = "middle",
) -> GameContext:
    hero = seat(1, 1000, hand=hand)
    villain = seat(2, 1000, current_bet=to_call, total_bet=to_call)
    community = tuple(parse_cards(board)) if board else ()
    phase = {0: "preflop", 3: "flop", 4: "turn", 5: "river"}[len(community)]
    return GameContext(
        player=hero,
        players=(seat(0), hero, villain),
        community_cards=community,
        pot=pot,
        minimum_bet=minimum_bet,
        phase=phase,
        betting_round=phase,
        position=position,
    )


@pytest.mark.parametrize(
    ("personality", "bluff", "aggression"),
    [
        (Personality.TIGHT_AGGRESSIVE, 0.15, 0.75),
        (Personality.TIGHT_PASSIVE, 0.05, 0.25),
        (Personality.LOOSE_AGGRESSIVE, 0.25, 0.85),
        (Personality.LOOSE_PASSIVE, 0.10, 0.35),
    ],
)
def test_personality_profiles(personality: Personality, bluff: float, aggression: float) -> None:
    config = create_ai_config(personality)
    assert config.bluff_frequency == bluff
    assert config.aggression_level == aggression


def test_config_accepts_wire_value() -> None:
    assert create_ai_config("loose-passive").personality is Personality.LOOSE_PASSIVE


def test_position_counts_seats_from_dealer() -> None:
    players = [seat(0, is_dealer=True), seat(1), seat(2), seat(3)]
    assert get_position(players[0], players) == "early"
    assert get_position(players[1], players) == "early"
    assert get_position(players[2], players) == "middle"
    assert get_position(players[3], players) == "late"


def test_premium_hand_raises_with_pot_cap() -> None:
    config = create_ai_config(Personality.TIGHT_AGGRESSIVE)

    small_pot = make_ai_decision(_context("As Ah", pot=15), config, random.Random(1))
    big_pot = make_ai_decision(_context("As Ah", pot=1000), config, random.Random(1))

    assert small_pot.action == "raise"
    assert small_pot.amount == 11
    assert big_pot.amount == 63


def test_raise_amount_never_below_minimum() -> None:
    config = create_ai_config(Personality.LOOSE_PASSIVE)
    assert calculate_raise_amount(0.3, config, minimum_bet=40, pot=10) == 40


def test_weak_hand_folds_to_large_bet_out_of_position() -> None:
    config = create_ai_config(Personality.TIGHT_PASSIVE)
    decision = make_ai_decision(_context("7c 2d", to_call=100, pot=30, position="early"), config, random.Random(3))
    assert decision.action == "fold"


def test_never_checks_facing_a_bet() -> None:
    rng = random.Random(2024)
    for trial in range(300):
        deck = Deck(rng)
        hole = " ".join(card.label for card in deck.draw_many(2))
        board = " ".join(card.label for card in deck.draw_many(rng.choice([0, 3, 4, 5])))
        minimum_bet = rng.choice([10, 20, 50])
        context = _context(
            hole,
            to_call=rng.randint(1, 300),
            pot=rng.randint(15, 900),
            minimum_bet=minimum_bet,
            board=board,
            position=rng.choice(["early", "middle", "late"]),
        )
        config = create_ai_config(rng.choice(list(Personality)))

        decision = make_ai_decision(context, config, rng)

        assert decision.action != "check", trial
        if decision.action == "raise":
            assert decision.amount is not None and decision.amount >= minimum_bet


def test_rule_based_strategy_is_async_and_tagged() -> None:
    strategy = RuleBasedStrategy(create_ai_config(Personality.LOOSE_AGGRESSIVE), random.Random(5))
    decision = asyncio.run(strategy.decide(_context("Kd Qd")))

    assert decision.source == "rules"
    assert decision.fallback is False
    assert decision.action in {"check", "raise"}
    assert strategy.personality is Personality.LOOSE_AGGRESSIVE
