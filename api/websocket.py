"""WebSocket route streaming session state after each operator command."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from perftdiff.navigator import Command

router = APIRouter()


@router.websocket("/ws/session")
async def session_websocket(websocket: WebSocket) -> None:
    await websocket.accept()
    session = websocket.app.state.session

    if not session.active:
        await websocket.send_json({"type": "error", "message": "No perft session is configured"})
        await websocket.close()
        return

    try:
        while True:
            payload = await websocket.receive_json()
            raw = payload.get("command") if isinstance(payload, dict) else None

            if raw is None:
                state = await asyncio.to_thread(session.snapshot)
            else:
                try:
                    command = Command(raw)
                except ValueError:
                    await websocket.send_json({"type": "error", "message": f"Unknown command: {raw}"})
                    continue
                state = await asyncio.to_thread(session.apply, command)

            await websocket.send_json({"type": "state", **state})
    except WebSocketDisconnect:
        return
