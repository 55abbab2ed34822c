"""Game API routes."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from core.config import DEFAULT_AUDIT_PAGE_SIZE, MAX_AUDIT_PAGE_SIZE, MAX_PLAYERS
from core.errors import GameEngineError
from web.api.session_manager import session_to_dict, session_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["games"])


# Request/Response models
class CreateGameRequest(BaseModel):
    """Request to create a new game."""

    deck_ids: list[str] = Field(
        ..., min_length=1, max_length=MAX_PLAYERS, description="One deck per seat, seat 1 first"
    )
    name: str | None = Field(None, description="Display name for the game")


class ActionRequest(BaseModel):
    """Request to perform an action."""

    seat: int = Field(..., description="Acting seat, 1-based")
    action_type: str = Field(..., description="Action kind, e.g. 'draw' or 'end_turn'")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Action-specific fields")


class RestartRequest(BaseModel):
    """Request to restart a game, optionally with different decks."""

    deck_ids: list[str] | None = Field(None, min_length=1, max_length=MAX_PLAYERS)


class ActionResponse(BaseModel):
    """Result of an action."""

    action_id: int
    state: dict[str, Any]


def _http_error(e: GameEngineError) -> HTTPException:
    logger.warning(f"Rejected request: {type(e).__name__}: {e.message}")
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


# REST Endpoints


@router.post("/games", response_model=dict)
async def create_game(request: CreateGameRequest, viewer_seat: int = 1):
    """Create a new game session and deal the decks."""
    try:
        session = session_manager.create_session(request.deck_ids, name=request.name)
        return {
            "game_id": session.id,
            "session": session_to_dict(session),
            "state": session_manager.get_projected_state(session.id, viewer_seat),
        }
    except GameEngineError as e:
        raise _http_error(e)


@router.get("/games", response_model=list[dict])
async def list_games():
    """List games that are not completed."""
    try:
        return session_manager.list_sessions()
    except GameEngineError as e:
        raise _http_error(e)


@router.get("/games/{game_id}")
async def get_game(game_id: str, viewer_seat: int = 0):
    """Get the state of a game as one seat sees it."""
    try:
        return session_manager.get_projected_state(game_id, viewer_seat)
    except GameEngineError as e:
        raise _http_error(e)


@router.post("/games/{game_id}/action", response_model=ActionResponse)
async def perform_action(game_id: str, request: ActionRequest):
    """Perform an action and return the acting seat's view afterwards."""
    try:
        action_id = session_manager.execute_action(
            game_id, request.seat, request.action_type, request.metadata
        )
        state = session_manager.get_projected_state(game_id, request.seat)
    except GameEngineError as e:
        raise _http_error(e)
    return ActionResponse(action_id=action_id, state=state)


@router.post("/games/{game_id}/restart")
async def restart_game(game_id: str, request: RestartRequest | None = None, viewer_seat: int = 1):
    """Wipe a game and deal again."""
    deck_ids = request.deck_ids if request else None
    try:
        session_manager.restart_session(game_id, deck_ids)
        return session_manager.get_projected_state(game_id, viewer_seat)
    except GameEngineError as e:
        raise _http_error(e)


@router.post("/games/{game_id}/end")
async def end_game(game_id: str):
    """Mark a game completed."""
    try:
        return session_to_dict(session_manager.end_session(game_id))
    except GameEngineError as e:
        raise _http_error(e)


@router.get("/games/{game_id}/actions")
async def list_actions(
    game_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_AUDIT_PAGE_SIZE, ge=1, le=MAX_AUDIT_PAGE_SIZE),
):
    """Page through a game's audit log, newest first."""
    try:
        return session_manager.list_audit_log(game_id, page=page, page_size=limit)
    except GameEngineError as e:
        raise _http_error(e)
