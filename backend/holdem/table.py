from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from typing import Sequence

import httpx

from .cards import Card, Deck
from .evaluator import determine_showdown_winners, evaluate_hand
from .interfaces import EventFeedRenderer, HandResultSink, ImmediateScheduler, InMemoryResultSink, Renderer, Scheduler
from .models import HandResultModel, PlayerStateModel, TableStateModel
from .opponent import LLMSettings, LLMStrategy
from .players import (
    Player,
    award_chips,
    can_player_act,
    check_player,
    create_ai_player,
    create_player,
    deal_cards_to_player,
    fold_player,
    get_active_players,
    get_call_amount,
    get_highest_bet,
    get_next_player_index,
    get_players_who_can_act,
    is_betting_round_complete,
    place_bet,
    post_blind,
    reset_current_bets,
    reset_player_for_new_hand,
    set_dealer,
)
from .pot import calculate_pot, calculate_side_pots, distribute_pot, get_minimum_bet
from .settings import AI_DELAY_SECONDS, GameSettings, GameSettingsUpdate, SettingsManager
from .strategy import (
    AIDecision,
    BettingRound,
    DecisionStrategy,
    GameContext,
    GamePhase,
    PlayerAction,
    RuleBasedStrategy,
    create_ai_config,
    get_position,
)

logger = logging.getLogger(__name__)

HUMAN_SEAT = 0
_NEXT_STREET: dict[str, tuple[BettingRound, int]] = {"preflop": ("flop", 3), "flop": ("turn", 1), "turn": ("river", 1)}


class TableFlowError(ValueError):
    pass


class IllegalActionError(ValueError):
    pass


@dataclass(frozen=True)
class TableState:
    players: tuple[Player, ...]
    community_cards: tuple[Card, ...] = ()
    pot: int = 0
    phase: GamePhase = "idle"
    betting_round: BettingRound | None = None
    current_player_index: int = 0
    dealer_index: int = 0
    small_blind_index: int = 1
    big_blind_index: int = 2
    small_blind: int = 5
    big_blind: int = 10
    minimum_bet: int = 10
    last_raise_amount: int = 10
    hand_number: int = 0
    hand_in_progress: bool = False
    chips_at_start: tuple[int, ...] = ()
    winner_ids: tuple[int, ...] = ()

    @property
    def current_player(self) -> Player:
        return self.players[self.current_player_index]

    @property
    def highest_bet(self) -> int:
        return get_highest_bet(self.players)

    def seats_from_dealer_left(self) -> list[Player]:
        count = len(self.players)
        return [self.players[(self.dealer_index + offset) % count] for offset in range(1, count + 1)]


@dataclass(frozen=True)
class ActionOutcome:
    state: TableState
    action: PlayerAction
    paid: int
    coercion: str | None = None


def begin_hand(state: TableState, settings: GameSettings, deck: Deck) -> TableState:
    count = len(state.players)
    dealer = (state.dealer_index + 1) % count
    small_blind_index = (dealer + 1) % count
    big_blind_index = (dealer + 2) % count

    players = [set_dealer(reset_player_for_new_hand(player), idx == dealer) for idx, player in enumerate(state.players)]
    chips_at_start = tuple(player.chips for player in players)

    deal_order = [(dealer + offset) % count for offset in range(1, count + 1)]
    for _ in range(2):
        for idx in deal_order:
            players[idx] = deal_cards_to_player(players[idx], [deck.draw()])

    players[small_blind_index] = post_blind(players[small_blind_index], settings.small_blind)
    players[big_blind_index] = post_blind(players[big_blind_index], settings.big_blind)

    first = (big_blind_index + 1) % count
    if not can_player_act(players[first]):
        first = get_next_player_index(players, first)

    return replace(
        state,
        players=tuple(players),
        community_cards=(),
        pot=calculate_pot(players),
        phase="preflop",
        betting_round="preflop",
        current_player_index=first,
        dealer_index=dealer,
        small_blind_index=small_blind_index,
        big_blind_index=big_blind_index,
        small_blind=settings.small_blind,
        big_blind=settings.big_blind,
        minimum_bet=settings.big_blind,
        last_raise_amount=settings.big_blind,
        hand_number=state.hand_number + 1,
        hand_in_progress=True,
        chips_at_start=chips_at_start,
        winner_ids=(),
    )


def check_action_legal(player: Player, action: PlayerAction, highest_bet: int) -> None:
    call_amount = get_call_amount(player, highest_bet)
    if action == "check" and call_amount > 0:
        raise IllegalActionError(f"{player.name} cannot check facing ${call_amount}")


def apply_player_action(state: TableState, action: PlayerAction, amount: int | None = None) -> ActionOutcome:
    """Apply an action for the player at ``current_player_index``.

    Illegal checks are coerced to a call (when affordable) or a fold. Bets
    beyond the player's stack are capped and put the player all-in.
    """
    idx = state.current_player_index
    player = state.players[idx]
    highest = state.highest_bet
    call_amount = get_call_amount(player, highest)
    coercion = None

    try:
        check_action_legal(player, action, highest)
    except IllegalActionError as exc:
        action = "call" if call_amount <= player.chips else "fold"
        coercion = f"{exc}; converted to {action}"

    minimum_bet = state.minimum_bet
    last_raise = state.last_raise_amount

    if action == "fold":
        updated = fold_player(player)
    elif action == "check":
        updated = check_player(player)
    elif action == "call":
        updated = place_bet(player, call_amount)
        action = "call" if call_amount > 0 else "check"
    else:
        raise_by = max(amount or 0, state.minimum_bet)
        updated = place_bet(player, highest + raise_by - player.current_bet)
        raised = updated.current_bet - highest
        if raised <= 0:
            action = "call" if call_amount > 0 else "check"
        elif raised >= state.minimum_bet:
            last_raise = raised
            minimum_bet = get_minimum_bet(state.big_blind, raised)

    players = list(state.players)
    players[idx] = updated
    paid = updated.total_bet - player.total_bet
    next_state = replace(
        state,
        players=tuple(players),
        pot=calculate_pot(players),
        minimum_bet=minimum_bet,
        last_raise_amount=last_raise,
        current_player_index=get_next_player_index(players, idx),
    )
    return ActionOutcome(next_state, action, paid, coercion)


def is_betting_closed(state: TableState) -> bool:
    if is_betting_round_complete(state.players):
        return True
    # Run out the board when at most one player can still act and owes nothing.
    can_act = get_players_who_can_act(state.players)
    return len(can_act) == 1 and can_act[0].current_bet >= state.highest_bet


def advance_phase(state: TableState, deck: Deck) -> TableState:
    if state.phase not in _NEXT_STREET:
        raise TableFlowError(f"Cannot advance from {state.phase}")

    next_round, reveal = _NEXT_STREET[state.phase]
    players = [reset_current_bets(player) for player in state.players]
    return replace(
        state,
        players=tuple(players),
        community_cards=state.community_cards + tuple(deck.draw_many(reveal)),
        phase=next_round,
        betting_round=next_round,
        minimum_bet=state.big_blind,
        last_raise_amount=state.big_blind,
        current_player_index=get_next_player_index(players, state.dealer_index),
    )


def _apply_payouts(state: TableState, payouts: dict[int, int], phase: GamePhase) -> TableState:
    players = tuple(award_chips(player, payouts.get(player.id, 0)) for player in state.players)
    return replace(
        state,
        players=players,
        phase=phase,
        betting_round=None,
        hand_in_progress=False,
        winner_ids=tuple(pid for pid, amount in payouts.items() if amount > 0),
    )


def award_uncontested(state: TableState) -> tuple[TableState, dict[int, int]]:
    (winner,) = get_active_players(state.players)
    payouts = {winner.id: state.pot}
    return _apply_payouts(state, payouts, "complete"), payouts


def resolve_showdown(state: TableState) -> tuple[TableState, dict[int, int]]:
    ordered = state.seats_from_dealer_left()
    active = [player for player in ordered if not player.folded]
    payouts: dict[int, int] = {}

    for pot in calculate_side_pots(state.players):
        eligible = [player for player in ordered if player.id in pot.eligible_player_ids] or active
        winners = determine_showdown_winners(eligible, state.community_cards)
        for player_id, share in distribute_pot(winners, pot.amount).items():
            payouts[player_id] = payouts.get(player_id, 0) + share

    return _apply_payouts(state, payouts, "showdown"), payouts


def build_context(state: TableState, index: int) -> GameContext:
    player = state.players[index]
    return GameContext(
        player=player,
        players=state.players,
        community_cards=state.community_cards,
        pot=state.pot,
        minimum_bet=state.minimum_bet,
        phase=state.phase,
        betting_round=state.betting_round,
        position=get_position(player, state.players),
    )


_VERBS = {"fold": ("folded", "folds"), "check": ("checked", "checks"), "call": ("called", "calls"), "raise": ("raised", "raises")}


def describe_action(player: Player, action: PlayerAction, amount: int) -> str:
    human_verb, ai_verb = _VERBS[action]
    text = f"{player.name} {ai_verb}" if player.is_ai else f"You {human_verb}"
    return f"{text} ${amount}" if action in ("call", "raise") else text


def legal_actions(state: TableState, index: int) -> list[PlayerAction]:
    player = state.players[index]
    if not state.hand_in_progress or player.folded or player.is_all_in:
        return []
    call_amount = get_call_amount(player, state.highest_bet)
    actions: list[PlayerAction] = ["check"] if call_amount == 0 else ["fold", "call"]
    if player.chips > call_amount:
        actions.append("raise")
    return actions


class PokerTable:
    """One human seat against rule-based (optionally LLM-backed) opponents."""

    def __init__(
        self,
        table_id: str,
        settings_manager: SettingsManager | None = None,
        *,
        rng: random.Random | None = None,
        scheduler: Scheduler | None = None,
        renderer: Renderer | None = None,
        result_sink: HandResultSink | None = None,
        llm_settings: LLMSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        feed_limit: int = 80,
        player_names: Sequence[str] = ("You", "Player 2", "Player 3"),
    ) -> None:
        self.table_id = table_id
        self.settings_manager = settings_manager or SettingsManager()
        self.rng = rng or random.Random()
        self.scheduler = scheduler or ImmediateScheduler()
        self.result_sink = result_sink or InMemoryResultSink()
        self.llm_settings = llm_settings
        self.deck = Deck(self.rng)
        self.feed = EventFeedRenderer(limit=feed_limit, phase_source=lambda: (self.state.phase, self.state.pot))
        self._renderers: list[Renderer] = [self.feed] if renderer is None else [self.feed, renderer]
        self._http = http_client
        self._owns_http = False
        self._processing = False
        self._pending_chip_reset = False

        settings = self.settings_manager.get_settings()
        self._hand_settings = settings
        players = [create_player(HUMAN_SEAT, player_names[0], settings.starting_chips)]
        players += [create_ai_player(idx, name, settings.starting_chips) for idx, name in enumerate(player_names[1:], 1)]
        players[0] = set_dealer(players[0], True)
        self.state = TableState(
            players=tuple(players),
            small_blind=settings.small_blind,
            big_blind=settings.big_blind,
            minimum_bet=settings.big_blind,
            last_raise_amount=settings.big_blind,
        )
        self._strategies = self._build_strategies(settings)

    async def aclose(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    # Settings -------------------------------------------------------

    def update_settings(self, update: GameSettingsUpdate | dict) -> GameSettings:
        settings = self.settings_manager.update_settings(update)
        # Stacks are reset on the next deal, never mid-hand.
        self._pending_chip_reset = True
        self._status("Settings saved! Start a new hand to apply changes.")
        return settings

    def reset_settings(self) -> GameSettings:
        settings = self.settings_manager.reset_to_defaults()
        self._pending_chip_reset = True
        self._status("Settings reset to defaults")
        return settings

    # Hand lifecycle -------------------------------------------------

    async def deal_new_hand(self) -> None:
        if self.state.hand_in_progress:
            raise TableFlowError("Current hand is still in progress.")
        if self._processing:
            raise TableFlowError("An action is already being processed.")

        settings = self.settings_manager.get_settings()
        players = list(self.state.players)

        if self._pending_chip_reset:
            players = [replace(player, chips=settings.starting_chips) for player in players]
            self._pending_chip_reset = False
            self._status(f"Chip stacks reset to ${settings.starting_chips} for new game")

        for idx, player in enumerate(players):
            if player.chips > 0:
                continue
            if not player.is_ai:
                self.state = replace(self.state, players=tuple(players))
                raise TableFlowError("You're out of chips! Rebuy to continue.")
            players[idx] = replace(player, chips=settings.starting_chips)
            self._status(f"{player.name} rebuys for ${settings.starting_chips}")

        self._hand_settings = settings
        self._strategies = self._build_strategies(settings)
        self.deck.reset()
        self.state = begin_hand(replace(self.state, players=tuple(players)), settings, self.deck)

        state = self.state
        logger.info(
            "Table %s hand %s: dealer=%s blinds %s/%s",
            self.table_id,
            state.hand_number,
            state.dealer_index,
            state.small_blind,
            state.big_blind,
        )
        self._render_cards("player-hand", state.players[HUMAN_SEAT].hand)
        self._render_cards("community", state.community_cards)
        for player in state.players:
            self._chips(player)

        self._processing = True
        try:
            await self._drive()
        finally:
            self._processing = False

    async def rebuy(self) -> None:
        if self.state.hand_in_progress:
            raise TableFlowError("Cannot rebuy during an active hand.")
        human = self.state.players[HUMAN_SEAT]
        if human.chips > 0:
            raise TableFlowError("Rebuy is only available when you are out of chips.")

        starting = self.settings_manager.get_settings().starting_chips
        players = list(self.state.players)
        players[HUMAN_SEAT] = replace(human, chips=starting)
        self.state = replace(self.state, players=tuple(players))
        self._status(f"You rebuy for ${starting}")
        await self.deal_new_hand()

    async def submit_action(self, action: PlayerAction, amount: int | None = None) -> bool:
        """Apply the human seat's action; returns False when the action is ignored."""
        if self._processing:
            logger.debug("Ignoring %s on table %s: action already in flight", action, self.table_id)
            return False
        state = self.state
        if not state.hand_in_progress or state.current_player_index != HUMAN_SEAT:
            logger.debug("Ignoring %s on table %s: not the human's turn", action, self.table_id)
            return False

        self._processing = True
        try:
            self._apply(action, amount)
            await self._drive()
        finally:
            self._processing = False
        return True

    # Driver ---------------------------------------------------------

    async def _drive(self) -> None:
        while self._settle():
            player = self.state.current_player
            if not player.is_ai:
                self._status("Your turn!")
                return
            await self._ai_turn()

    def _settle(self) -> bool:
        """Advance phases until someone must act; False once the hand is over."""
        while self.state.hand_in_progress:
            state = self.state
            active = get_active_players(state.players)
            if len(active) == 1:
                self.state, payouts = award_uncontested(state)
                winner = active[0]
                self._status(f"{winner.name} wins ${state.pot}! (Everyone else folded)")
                self._finish_hand(payouts)
                return False

            if not is_betting_closed(state):
                return True

            if state.phase == "river":
                self._showdown()
                return False

            self.state = advance_phase(state, self.deck)
            logger.info("Table %s hand %s: %s", self.table_id, self.state.hand_number, self.state.phase)
            self._render_cards("community", self.state.community_cards)
            revealed = {"flop": "Flop revealed!", "turn": "Turn card revealed!", "river": "River card revealed!"}
            self._status(revealed[self.state.phase])
        return False

    def _showdown(self) -> None:
        before = self.state
        self.state, payouts = resolve_showdown(before)
        contenders = [player for player in before.players if not player.folded]
        for player in contenders:
            if player.is_ai:
                self._render_cards(f"opponent-{player.id}", player.hand)

        winners = [player for player in before.players if payouts.get(player.id)]
        if len(winners) == 1:
            ranking = evaluate_hand([*winners[0].hand, *before.community_cards])
            self._status(f"{winners[0].name} wins ${before.pot} with {ranking.name}!")
        else:
            shares = ", ".join(f"{player.name} ${payouts[player.id]}" for player in winners)
            self._status(f"Pot split: {shares}")
        self._finish_hand(payouts)

    def _finish_hand(self, payouts: dict[int, int]) -> None:
        state = self.state
        for player in state.players:
            self._chips(player)

        delta = state.players[HUMAN_SEAT].chips - state.chips_at_start[HUMAN_SEAT]
        outcome = "win" if delta > 0 else "loss" if delta < 0 else "push"
        self.result_sink.record(
            HandResultModel(
                hand_number=state.hand_number,
                outcome=outcome,
                chip_delta=delta,
                winner_ids=sorted(payouts),
            )
        )
        logger.info("Table %s hand %s complete: payouts=%s", self.table_id, state.hand_number, payouts)

    async def _ai_turn(self) -> None:
        index = self.state.current_player_index
        player = self.state.players[index]
        low, high = AI_DELAY_SECONDS[self._hand_settings.ai_speed]
        await self.scheduler.sleep(self.rng.uniform(low, high))

        strategy = self._strategies.get(player.id)
        if strategy is None:
            action: PlayerAction = "check" if get_call_amount(player, self.state.highest_bet) == 0 else "fold"
            decision = AIDecision(action, reasoning="No strategy configured")
        else:
            decision = await strategy.decide(build_context(self.state, index))

        if decision.fallback:
            logger.info("%s used fallback decision: %s", player.name, decision.reasoning)
        logger.debug("%s decides %s %s: %s", player.name, decision.action, decision.amount, decision.reasoning)
        self._apply(decision.action, decision.amount)

    def _apply(self, action: PlayerAction, amount: int | None) -> None:
        before = self.state
        player = before.current_player
        outcome = apply_player_action(before, action, amount)
        self.state = outcome.state

        if outcome.coercion:
            logger.warning("Table %s: %s", self.table_id, outcome.coercion)
            self._status(outcome.coercion)

        updated = self.state.players[before.current_player_index]
        shown = outcome.paid if outcome.action == "call" else updated.current_bet - before.highest_bet
        text = describe_action(player, outcome.action, shown)
        if updated.is_all_in and outcome.paid:
            text += " (all-in)"
        self._status(text)
        if outcome.paid:
            self._chips(updated)

    # Strategies -----------------------------------------------------

    def _build_strategies(self, settings: GameSettings) -> dict[int, DecisionStrategy]:
        ai_players = [player for player in self.state.players if player.is_ai]
        personalities = settings.ai_personalities
        strategies: dict[int, DecisionStrategy] = {}
        for slot, player in enumerate(ai_players):
            personality = personalities[slot % len(personalities)]
            rules = RuleBasedStrategy(create_ai_config(personality), self.rng)
            if settings.use_llm_ai:
                if self.llm_settings is None:
                    logger.warning("LLM AI enabled without credentials; %s plays rule-based", player.name)
                strategies[player.id] = LLMStrategy(rules, personality, self.llm_settings, self._llm_client())
            else:
                strategies[player.id] = rules
        return strategies

    def _llm_client(self) -> httpx.AsyncClient:
        if self._http is None:
            timeout = self.llm_settings.timeout_ms / 1000.0 if self.llm_settings else 5.0
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(max(0.5, timeout)),
                headers={"Content-Type": "application/json"},
            )
            self._owns_http = True
        return self._http

    def personality_of(self, player_id: int) -> str | None:
        strategy = self._strategies.get(player_id)
        personality = getattr(strategy, "personality", None)
        return personality.value if personality is not None else None

    # Rendering ------------------------------------------------------

    def _status(self, text: str) -> None:
        for renderer in self._renderers:
            renderer.update_status(text, self.state.phase, self.state.pot)

    def _render_cards(self, container: str, cards: Sequence[Card]) -> None:
        for renderer in self._renderers:
            renderer.render_cards(container, cards)

    def _chips(self, player: Player) -> None:
        for renderer in self._renderers:
            renderer.update_chips(player.id, player.chips)

    # Snapshot -------------------------------------------------------

    def snapshot(self) -> TableStateModel:
        state = self.state
        reveal_all = state.phase == "showdown"
        players = []
        for player in state.players:
            visible = not player.is_ai or (reveal_all and not player.folded)
            players.append(
                PlayerStateModel(
                    id=player.id,
                    name=player.name,
                    chips=player.chips,
                    hand=[card.label for card in player.hand] if visible else ["??"] * len(player.hand),
                    cards_visible=visible,
                    current_bet=player.current_bet,
                    total_bet=player.total_bet,
                    folded=player.folded,
                    is_all_in=player.is_all_in,
                    is_dealer=player.is_dealer,
                    is_ai=player.is_ai,
                    has_acted=player.has_acted,
                    personality=self.personality_of(player.id),
                )
            )

        human_turn = state.hand_in_progress and state.current_player_index == HUMAN_SEAT and not self._processing
        if state.hand_in_progress:
            status = "in_progress"
        elif state.hand_number == 0:
            status = "waiting"
        else:
            status = "hand_complete"

        return TableStateModel(
            table_id=self.table_id,
            hand_number=state.hand_number,
            phase=state.phase,
            betting_round=state.betting_round,
            pot=state.pot,
            community_cards=[card.label for card in state.community_cards],
            players=players,
            current_player_index=state.current_player_index,
            dealer_index=state.dealer_index,
            small_blind_index=state.small_blind_index,
            big_blind_index=state.big_blind_index,
            minimum_bet=state.minimum_bet,
            call_amount=get_call_amount(state.players[HUMAN_SEAT], state.highest_bet),
            is_human_turn=human_turn,
            legal_actions=legal_actions(state, HUMAN_SEAT) if human_turn else [],
            status=status,
            winner_ids=list(state.winner_ids),
            feed=self.feed.events(),
        )
