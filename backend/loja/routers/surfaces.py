"""Chat surface endpoints (panel and detached window)"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from loja.models.messages import parse_inbound
from loja.services.broadcaster import SurfaceKind

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/{surface}")
async def surface_socket(websocket: WebSocket, surface: str):
    """One chat surface; every frame is handled in its own task"""
    try:
        kind = SurfaceKind(surface)
    except ValueError:
        await websocket.close(code=4404)
        return

    controller = websocket.app.state.controller
    await websocket.accept()
    await controller.attach_surface(kind, websocket)

    try:
        while True:
            frame = await websocket.receive_text()
            try:
                message = parse_inbound(json.loads(frame))
            except json.JSONDecodeError:
                logger.warning(f"[Surfaces] Dropping non-JSON frame from {kind.value}")
                continue
            except ValidationError as e:
                logger.warning(f"[Surfaces] Dropping malformed frame from {kind.value}: {e.error_count()} error(s)")
                continue
            controller.submit(message, kind)
    except WebSocketDisconnect:
        logger.info(f"[Surfaces] {kind.value} surface disconnected")
    finally:
        controller.detach_surface(kind, websocket)
