from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, Protocol, Sequence

from .cards import Card
from .models import EventKind, HandResultModel, Phase, TableEventModel

logger = logging.getLogger(__name__)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Renderer(Protocol):
    def render_cards(self, container: str, cards: Sequence[Card]) -> None:
        ...

    def update_status(self, text: str, phase: Phase, pot: int) -> None:
        ...

    def update_chips(self, player_id: int, amount: int) -> None:
        ...


class EventFeedRenderer:
    """Records pushed render calls as a bounded feed that clients poll."""

    def __init__(self, limit: int = 80, phase_source: Callable[[], tuple[Phase, int]] | None = None) -> None:
        self._events: Deque[TableEventModel] = deque(maxlen=max(1, limit))
        self._counter = 0
        self._phase_source = phase_source or (lambda: ("idle", 0))

    @property
    def counter(self) -> int:
        return self._counter

    def bind(self, phase_source: Callable[[], tuple[Phase, int]]) -> None:
        self._phase_source = phase_source

    def events(self) -> list[TableEventModel]:
        return list(self._events)

    def events_since(self, counter: int) -> list[TableEventModel]:
        return [event for event in self._events if int(event.id.split("-")[1]) > counter]

    def render_cards(self, container: str, cards: Sequence[Card]) -> None:
        self._add("cards", container=container, cards=[card.label for card in cards])

    def update_status(self, text: str, phase: Phase, pot: int) -> None:
        self._add("status", text=text, phase=phase, pot=pot)

    def update_chips(self, player_id: int, amount: int) -> None:
        self._add("chips", player_id=player_id, amount=amount)

    def _add(self, kind: EventKind, phase: Phase | None = None, pot: int | None = None, **fields: object) -> None:
        current_phase, current_pot = self._phase_source()
        self._counter += 1
        self._events.append(
            TableEventModel(
                id=f"evt-{self._counter:04d}",
                timestamp=now_iso(),
                kind=kind,
                phase=phase or current_phase,
                pot=current_pot if pot is None else pot,
                **fields,
            )
        )


class Scheduler(Protocol):
    async def sleep(self, seconds: float) -> None:
        ...


class AsyncioScheduler:
    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ImmediateScheduler:
    """Records requested delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def sleep(self, seconds: float) -> None:
        self.delays.append(seconds)


class HandResultSink(Protocol):
    def record(self, result: HandResultModel) -> None:
        ...


class InMemoryResultSink:
    def __init__(self) -> None:
        self.results: list[HandResultModel] = []

    def record(self, result: HandResultModel) -> None:
        logger.info(
            "Hand %s result: %s (%+d chips)",
            result.hand_number,
            result.outcome,
            result.chip_delta,
        )
        self.results.append(result)
