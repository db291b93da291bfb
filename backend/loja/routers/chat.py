"""Chat API endpoints (for clients without a websocket surface)"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from loja.models.chat import Message
from loja.models.messages import ChatRequest, HistoryEvent
from loja.services.chat_controller import UNDO_COMMAND

router = APIRouter()


@router.get("/history", response_model=HistoryEvent, response_model_exclude_none=True)
async def get_history(request: Request) -> HistoryEvent:
    """Current shared history"""
    return HistoryEvent(history=request.app.state.controller.history.snapshot())


@router.post("/message", response_model=Message, response_model_exclude_none=True)
async def chat_message(body: ChatRequest, request: Request) -> Message:
    """Run one user turn and return the entry it settled with"""
    controller = request.app.state.controller
    if body.text.strip().lower() == UNDO_COMMAND:
        if not await controller.undo():
            raise HTTPException(status_code=409, detail="Nothing to undo")
        return controller.history.last()
    return await controller.run_turn(body.text, body.context_items, body.inline_references)
