from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from structlog.contextvars import bind_contextvars, unbind_contextvars

from ..errors import AuthError
from ..logging_config import get_logger
from ..state import get_ws_presence

router = APIRouter(prefix="", tags=["ws"])
logger = get_logger(__name__)


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket, token: Optional[str] = Query(default=None)):
    presence = get_ws_presence(ws)
    await ws.accept()

    try:
        identity = await presence.identity.authenticate(token)
    except AuthError as exc:
        logger.warning("socket handshake rejected", reason=exc.message, close_code=exc.close_code)
        await ws.close(code=exc.close_code, reason=exc.message)
        return

    connection = presence.new_connection(ws)
    bind_contextvars(connection_id=connection.connection_id, user_id=identity.id)
    writer = asyncio.create_task(connection.run_writer())

    try:
        presence.dispatcher.connect(connection, identity)
        while connection.is_authenticated:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                logger.debug("binary frame dropped")
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("malformed frame dropped")
                continue
            await presence.dispatcher.handle(connection, data)
    except WebSocketDisconnect:
        pass
    except RuntimeError:
        # Receiving after the server already closed the socket.
        pass
    except Exception:
        logger.exception("websocket error")
    finally:
        presence.dispatcher.disconnect(connection)
        if not writer.done():
            connection.close()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(writer, timeout=1.0)
        if not writer.done():
            writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await writer
        unbind_contextvars("connection_id", "user_id")
