"""Editor-side endpoints: the plugin pushes its state and triggers commands here"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from loja.models.editor import EditorState

router = APIRouter()


@router.put("/state")
async def update_state(state: EditorState, request: Request) -> dict[str, Any]:
    """Replace the workspace, active document and selection snapshot"""
    request.app.state.host.update_state(state)
    return {"status": "success"}


@router.post("/add-to-chat")
async def add_selection_to_chat(request: Request) -> dict[str, Any]:
    """Insert the current selection into a chat surface as an inline reference"""
    delivered = await request.app.state.controller.add_selection_to_chat()
    return {"delivered": delivered}
