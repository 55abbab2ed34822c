"""Deck catalog routes. Read-only; decks are imported elsewhere."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from core.errors import GameEngineError
from web.api.session_manager import session_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["decks"])


@router.get("/decks", response_model=list[dict])
async def list_decks():
    """List every deck, newest first."""
    try:
        return session_manager.list_decks()
    except GameEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/decks/{deck_id}", response_model=dict)
async def get_deck(deck_id: str):
    """Get a deck with its commanders and card list."""
    try:
        return session_manager.get_deck(deck_id)
    except GameEngineError as e:
        logger.warning(f"Deck lookup failed: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
