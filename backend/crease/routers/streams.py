import asyncio
import logging
from contextlib import suppress

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
import redis.asyncio as redis

from ..schemas import StreamCommand
from ..services import broadcast


router = APIRouter()
logger = logging.getLogger(__name__)


async def _forward(ws: WebSocket, mid: str, ready: asyncio.Event | None = None) -> None:
    """Relay "changed" signals for ``mid`` to the socket until cancelled."""
    try:
        async with broadcast.channel.subscribe(mid) as signals:
            if ready is not None:
                ready.set()
            async for signal in signals:
                await ws.send_json(signal)
    except redis.ConnectionError as exc:
        logger.warning("Stream for match %s lost its broker: %s", mid, exc)
        await ws.close()
    finally:
        if ready is not None:
            ready.set()


async def _stop(task: asyncio.Task) -> None:
    task.cancel()
    with suppress(asyncio.CancelledError):
        await task


@router.websocket("/matches/{mid}/stream")
async def match_stream(ws: WebSocket, mid: str) -> None:
    """Notify a single match's changes; connecting joins, disconnecting leaves."""
    await ws.accept()
    ready = asyncio.Event()
    send_task = asyncio.create_task(_forward(ws, mid, ready))
    await ready.wait()
    if send_task.done():
        return
    await ws.send_json({"type": "joined", "matchId": mid})
    try:
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await _stop(send_task)


@router.websocket("/matches/stream")
async def multiplexed_stream(ws: WebSocket) -> None:
    """One socket, many matches: clients send join/leave frames by match id."""
    await ws.accept()
    joined: dict[str, asyncio.Task] = {}
    try:
        while True:
            raw = await ws.receive_text()
            try:
                command = StreamCommand.model_validate_json(raw)
            except ValidationError:
                await ws.send_json({"type": "error", "code": "invalid_command"})
                continue

            mid = command.matchId
            if command.action == "join":
                if mid not in joined:
                    ready = asyncio.Event()
                    joined[mid] = asyncio.create_task(_forward(ws, mid, ready))
                    await ready.wait()
                await ws.send_json({"type": "joined", "matchId": mid})
            else:
                task = joined.pop(mid, None)
                if task is not None:
                    await _stop(task)
                await ws.send_json({"type": "left", "matchId": mid})
    except WebSocketDisconnect:
        pass
    finally:
        for task in joined.values():
            await _stop(task)
