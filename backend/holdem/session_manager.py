from __future__ import annotations

import asyncio
import uuid

from .config import env_int
from .interfaces import AsyncioScheduler, InMemoryResultSink, Scheduler
from .models import ActionResolutionModel, HandResultModel, HumanActionRequestModel, TableStateModel
from .opponent import LLMSettings
from .settings import GameSettings, GameSettingsUpdate, SettingsManager
from .table import IllegalActionError, PokerTable, TableFlowError


class SessionNotFoundError(KeyError):
    pass


class SessionManager:
    def __init__(
        self,
        scheduler: Scheduler | None = None,
        default_settings: GameSettings | None = None,
        llm_settings: LLMSettings | None = None,
    ) -> None:
        self._tables: dict[str, PokerTable] = {}
        self._sinks: dict[str, InMemoryResultSink] = {}
        self._table_locks: dict[str, asyncio.Lock] = {}
        self._lock = asyncio.Lock()
        self._scheduler = scheduler or AsyncioScheduler()
        self._default_settings = default_settings or GameSettings.from_env()
        self._llm_settings = llm_settings if llm_settings is not None else LLMSettings.from_env()
        self._live_feed_limit = env_int("LIVE_FEED_LIMIT", 80)

    async def aclose(self) -> None:
        for table in list(self._tables.values()):
            await table.aclose()

    async def create_table(self) -> TableStateModel:
        async with self._lock:
            table_id = uuid.uuid4().hex[:12]
            sink = InMemoryResultSink()
            table = PokerTable(
                table_id,
                SettingsManager(self._default_settings),
                scheduler=self._scheduler,
                result_sink=sink,
                llm_settings=self._llm_settings,
                feed_limit=self._live_feed_limit,
            )
            self._tables[table_id] = table
            self._sinks[table_id] = sink
            self._table_locks[table_id] = asyncio.Lock()
        return table.snapshot()

    async def get_state(self, table_id: str) -> TableStateModel:
        table, lock = await self._get_table_entry(table_id)
        async with lock:
            return table.snapshot()

    async def apply_action(self, table_id: str, payload: HumanActionRequestModel) -> ActionResolutionModel:
        table, lock = await self._get_table_entry(table_id)
        if lock.locked():
            # Another request for this table is mid-flight; drop the duplicate.
            return self._resolution(table, accepted=False, since=table.feed.counter)
        async with lock:
            since = table.feed.counter
            accepted = await table.submit_action(payload.action_type, payload.amount)
            return self._resolution(table, accepted=accepted, since=since)

    async def next_hand(self, table_id: str) -> TableStateModel:
        table, lock = await self._get_table_entry(table_id)
        async with lock:
            await table.deal_new_hand()
            return table.snapshot()

    async def rebuy(self, table_id: str) -> TableStateModel:
        table, lock = await self._get_table_entry(table_id)
        async with lock:
            await table.rebuy()
            return table.snapshot()

    async def list_results(self, table_id: str) -> list[HandResultModel]:
        await self._get_table_entry(table_id)
        return list(self._sinks[table_id].results)

    async def get_settings(self, table_id: str) -> GameSettings:
        table, _ = await self._get_table_entry(table_id)
        return table.settings_manager.get_settings()

    async def update_settings(self, table_id: str, payload: GameSettingsUpdate) -> GameSettings:
        table, lock = await self._get_table_entry(table_id)
        async with lock:
            return table.update_settings(payload)

    async def reset_settings(self, table_id: str) -> GameSettings:
        table, lock = await self._get_table_entry(table_id)
        async with lock:
            return table.reset_settings()

    def _resolution(self, table: PokerTable, accepted: bool, since: int) -> ActionResolutionModel:
        state = table.snapshot()
        return ActionResolutionModel(
            accepted=accepted,
            table_state=state,
            applied_events=table.feed.events_since(since),
            hand_complete=state.status == "hand_complete",
        )

    async def _get_table_entry(self, table_id: str) -> tuple[PokerTable, asyncio.Lock]:
        async with self._lock:
            table = self._get_table(table_id)
            lock = self._table_locks.get(table_id)
            if lock is None:
                lock = asyncio.Lock()
                self._table_locks[table_id] = lock
            return table, lock

    def _get_table(self, table_id: str) -> PokerTable:
        table = self._tables.get(table_id)
        if not table:
            raise SessionNotFoundError(f"Table not found: {table_id}")
        return table


__all__ = [
    "IllegalActionError",
    "SessionManager",
    "SessionNotFoundError",
    "TableFlowError",
]
