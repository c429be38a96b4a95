from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict


ActionType = Literal["fold", "check", "call", "raise"]
Phase = Literal["idle", "preflop", "flop", "turn", "river", "showdown", "complete"]
TableStatus = Literal["waiting", "in_progress", "hand_complete"]
EventKind = Literal["status", "cards", "chips"]
Outcome = Literal["win", "loss", "push"]



def to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(part.capitalize() for part in parts[1:])


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class PlayerStateModel(CamelModel):
    id: int
    name: str
    chips: int
    hand: List[str]
    cards_visible: bool
    current_bet: int
    total_bet: int
    folded: bool
    is_all_in: bool
    is_dealer: bool
    is_ai: bool
    has_acted: bool
    personality: Optional[str] = None


class TableEventModel(CamelModel):
    id: str
    timestamp: str
    kind: EventKind
    phase: Phase
    pot: int
    text: Optional[str] = None
    container: Optional[str] = None
    cards: Optional[List[str]] = None
    player_id: Optional[int] = None
    amount: Optional[int] = None


class HandResultModel(CamelModel):
    hand_number: int
    game_type: Literal["poker"] = "poker"
    outcome: Outcome
    chip_delta: int
    winner_ids: List[int]


class TableStateModel(CamelModel):
    table_id: str
    hand_number: int
    phase: Phase
    betting_round: Optional[Literal["preflop", "flop", "turn", "river"]]
    pot: int
    community_cards: List[str]
    players: List[PlayerStateModel]
    current_player_index: int
    dealer_index: int
    small_blind_index: int
    big_blind_index: int
    minimum_bet: int
    call_amount: int
    is_human_turn: bool
    legal_actions: List[ActionType]
    status: TableStatus
    winner_ids: List[int]
    feed: List[TableEventModel]


class HumanActionRequestModel(CamelModel):
    action_type: ActionType
    amount: Optional[int] = None


class ActionResolutionModel(CamelModel):
    accepted: bool
    table_state: TableStateModel
    applied_events: List[TableEventModel]
    hand_complete: bool
