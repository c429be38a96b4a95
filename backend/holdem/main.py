from __future__ import annotations

import importlib.util
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse
from pydantic import ValidationError

from .config import load_environment
from .models import ActionResolutionModel, HandResultModel, HumanActionRequestModel, TableStateModel
from .session_manager import SessionManager, SessionNotFoundError, TableFlowError
from .settings import GameSettings, GameSettingsUpdate

load_environment()

DefaultResponseClass = ORJSONResponse if importlib.util.find_spec("orjson") else JSONResponse
manager = SessionManager()


@asynccontextmanager
async def lifespan(_: FastAPI):
    try:
        yield
    finally:
        await manager.aclose()


app = FastAPI(
    title="Hold'em Table API",
    version="0.1.0",
    default_response_class=DefaultResponseClass,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _not_found(exc: SessionNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc.args[0]) if exc.args else "Table not found")


@app.get("/api/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/api/tables", response_model=TableStateModel)
async def create_table() -> TableStateModel:
    return await manager.create_table()


@app.get("/api/tables/{table_id}", response_model=TableStateModel)
async def get_table(table_id: str) -> TableStateModel:
    try:
        return await manager.get_state(table_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc


@app.post("/api/tables/{table_id}/actions", response_model=ActionResolutionModel)
async def apply_action(table_id: str, payload: HumanActionRequestModel) -> ActionResolutionModel:
    try:
        return await manager.apply_action(table_id, payload)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc


@app.post("/api/tables/{table_id}/next-hand", response_model=TableStateModel)
async def next_hand(table_id: str) -> TableStateModel:
    try:
        return await manager.next_hand(table_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    except TableFlowError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@app.post("/api/tables/{table_id}/rebuy", response_model=TableStateModel)
async def rebuy(table_id: str) -> TableStateModel:
    try:
        return await manager.rebuy(table_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    except TableFlowError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@app.get("/api/tables/{table_id}/results", response_model=list[HandResultModel])
async def list_results(table_id: str) -> list[HandResultModel]:
    try:
        return await manager.list_results(table_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc


@app.get("/api/tables/{table_id}/settings", response_model=GameSettings)
async def get_settings(table_id: str) -> GameSettings:
    try:
        return await manager.get_settings(table_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc


@app.put("/api/tables/{table_id}/settings", response_model=GameSettings)
async def update_settings(table_id: str, payload: GameSettingsUpdate) -> GameSettings:
    try:
        return await manager.update_settings(table_id, payload)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False)) from exc


@app.post("/api/tables/{table_id}/settings/reset", response_model=GameSettings)
async def reset_settings(table_id: str) -> GameSettings:
    try:
        return await manager.reset_settings(table_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
