"""Token catalog routes."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from core.errors import GameEngineError
from web.api.session_manager import session_manager

router = APIRouter(tags=["tokens"])


@router.get("/tokens", response_model=list[dict])
async def list_tokens():
    """List every token card players can create."""
    try:
        return session_manager.list_tokens()
    except GameEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
