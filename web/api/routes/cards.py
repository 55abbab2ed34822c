"""Card catalog routes: lookup by id or name, and name autocomplete."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from core.config import CARD_SEARCH_LIMIT, MAX_CARD_SEARCH_LIMIT
from core.errors import GameEngineError
from web.api.session_manager import session_manager

router = APIRouter(tags=["cards"])


@router.get("/cards", response_model=list[dict])
async def find_cards(name: str = Query(..., min_length=1)):
    """Cards with exactly this name."""
    try:
        return session_manager.find_cards(name)
    except GameEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/cards/search", response_model=list[dict])
async def search_cards(
    q: str = Query(..., min_length=1),
    limit: int = Query(CARD_SEARCH_LIMIT, ge=1, le=MAX_CARD_SEARCH_LIMIT),
):
    """Cards whose name starts with `q`, for autocomplete."""
    try:
        return session_manager.search_cards(q, limit)
    except GameEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/cards/{card_id}", response_model=dict)
async def get_card(card_id: str):
    """Get a card by id."""
    try:
        return session_manager.get_card(card_id)
    except GameEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
