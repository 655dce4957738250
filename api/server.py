"""FastAPI server exposing a perft diff session and embedded divide."""

from __future__ import annotations

import chess
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from perftdiff.constants import START_FEN
from perftdiff.errors import InvalidPosition
from perftdiff.navigator import Command, Navigator
from perftdiff.perft import perft, perft_divide
from perftdiff.position import parse_fen

from .session import SessionHolder
from .websocket import router as websocket_router


class PerftRequest(BaseModel):
    fen: str = Field(default=START_FEN)
    depth: int = Field(default=3, ge=0, le=6)
    divide: bool = Field(default=True)


class CommandRequest(BaseModel):
    command: Command


def _board_from_fen(fen: str) -> chess.Board:
    try:
        return parse_fen(fen)
    except InvalidPosition as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_app(navigator: Navigator | None = None) -> FastAPI:
    app = FastAPI(title="Perft Diff API", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    session = SessionHolder(navigator)
    app.state.session = session
    app.include_router(websocket_router)

    def _require_session() -> SessionHolder:
        if not session.active:
            raise HTTPException(status_code=503, detail="No perft session is configured")
        return session

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/session")
    def get_session() -> dict:
        return _require_session().snapshot()

    @app.post("/session/command")
    def post_command(payload: CommandRequest) -> dict:
        return _require_session().apply(payload.command)

    @app.post("/perft")
    def run_perft(payload: PerftRequest) -> dict:
        board = _board_from_fen(payload.fen)
        if not payload.divide:
            return {"nodes": perft(board, payload.depth)}
        divide = perft_divide(board, payload.depth)
        return {
            "divide": {move.uci(): count for move, count in sorted(divide, key=lambda item: item[0].uci())},
            "nodes": sum(count for _, count in divide),
        }

    return app


app = create_app()
