"""Per-viewer projection of a session's state."""

from __future__ import annotations

import logging
from typing import Any

from core.errors import NotFoundError
from db.database import (
    CardRecord,
    CardRepository,
    Database,
    GameObjectRecord,
    GameObjectRepository,
    GameStateRecord,
    GameStateRepository,
    IndicatorRecord,
    IndicatorRepository,
    SessionRecord,
    SessionRepository,
)
from tabletop_engine.zones import HIDDEN_ZONES

logger = logging.getLogger(__name__)

_HIDDEN_ZONE_VALUES = frozenset(zone.value for zone in HIDDEN_ZONES)


def can_see_card(obj: GameObjectRecord, viewer_seat: int) -> bool:
    """Owners see their own cards; everyone sees cards outside hand and library."""
    return obj.seat == viewer_seat or obj.zone not in _HIDDEN_ZONE_VALUES


def project_object(
    obj: GameObjectRecord,
    card: CardRecord | None,
    viewer_seat: int,
) -> dict[str, Any]:
    """Client view of one object. Hidden cards keep everything but `card`."""
    return {
        "id": obj.id,
        "seat": obj.seat,
        "zone": obj.zone,
        "card_id": obj.card_id if can_see_card(obj, viewer_seat) else None,
        "card": card.to_dict() if card is not None and can_see_card(obj, viewer_seat) else None,
        "is_token": obj.is_token,
        "is_tapped": obj.is_tapped,
        "is_flipped": obj.is_flipped,
        "counters": dict(obj.counters),
        "position": obj.position,
        "order": obj.order,
    }


def project_indicator(indicator: IndicatorRecord) -> dict[str, Any]:
    return {
        "id": indicator.id,
        "seat": indicator.seat,
        "position": indicator.position,
        "color": indicator.color,
    }


def project_state(
    session: SessionRecord,
    state: GameStateRecord,
    objects: list[GameObjectRecord],
    cards: dict[str, CardRecord],
    indicators: list[IndicatorRecord],
    viewer_seat: int,
) -> dict[str, Any]:
    """Assemble the state a viewer is allowed to see.

    Args:
        session: The session row.
        state: Life and turn tracking.
        objects: Every object of the session.
        cards: Catalog cards keyed by id.
        indicators: Every indicator of the session.
        viewer_seat: Seat asking; a seat that owns nothing sees public zones only.
    """
    seats = range(1, session.player_count + 1)
    return {
        "session_id": session.id,
        "name": session.name,
        "status": session.status,
        "player_count": session.player_count,
        "viewer_seat": viewer_seat,
        "life": {seat: state.life[seat] for seat in seats},
        "commander_damage": {seat: state.commander_damage[seat] for seat in seats},
        "active_seat": state.active_seat,
        "turn_number": state.turn_number,
        "objects": [project_object(obj, cards.get(obj.card_id), viewer_seat) for obj in objects],
        "indicators": [project_indicator(indicator) for indicator in indicators],
    }


class VisibilityProjector:
    """Loads a session from the store and projects it for one viewer."""

    def __init__(self, db: Database):
        self.db = db
        self._sessions = SessionRepository(db)
        self._state = GameStateRepository(db)
        self._objects = GameObjectRepository(db)
        self._indicators = IndicatorRepository(db)
        self._cards = CardRepository(db)

    def project(self, session_id: str, viewer_seat: int) -> dict[str, Any]:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Game session {session_id} not found")
        state = self._state.get(session_id)
        if state is None:
            raise NotFoundError(f"Game state not found for session {session_id}")

        objects = self._objects.list_for_session(session_id)
        # Only fetch card data the viewer is allowed to see
        visible_ids = {obj.card_id for obj in objects if can_see_card(obj, viewer_seat)}
        cards = self._cards.get_many(visible_ids)
        indicators = self._indicators.list_for_session(session_id)

        return project_state(session, state, objects, cards, indicators, viewer_seat)
