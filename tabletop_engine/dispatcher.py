"""Routes action requests to handlers and writes the audit trail."""

from __future__ import annotations

import logging
import uuid
from typing import Any, assert_never

from core.errors import InvalidMetadataError, NotFoundError
from db.database import ActionRepository, Database, SessionRecord, SessionRepository
from tabletop_engine.actions import (
    ActionKind,
    ActionMetadata,
    PendingAction,
    parse_metadata,
    resolve_action_kind,
    target_object_id,
)
from tabletop_engine.handlers import ActionHandlers

logger = logging.getLogger(__name__)


class ActionDispatcher:
    """Runs one action, its cascade and their audit rows in a single transaction."""

    def __init__(self, db: Database, handlers: ActionHandlers):
        self.db = db
        self.handlers = handlers
        self._sessions = SessionRepository(db)
        self._actions = ActionRepository(db)

    def execute(
        self,
        session_id: str,
        seat: int,
        action_kind: str | ActionKind,
        metadata: dict[str, Any] | None = None,
    ) -> int:
        """Execute an action and return the id of its audit row.

        Args:
            session_id: Session to act in.
            seat: Acting seat, 1-based.
            action_kind: Wire name or ActionKind.
            metadata: Raw action metadata; stored verbatim in the audit row.

        Raises:
            InvalidMetadataError: Unknown kind, bad metadata or seat out of range.
            NotFoundError: Session or a referenced object does not exist.
            InvalidStateError: The action does not apply to the current state.
            UpstreamError: The store failed.
        """
        kind = resolve_action_kind(action_kind)
        metadata = dict(metadata or {})
        parsed = parse_metadata(kind, metadata)

        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Game session {session_id} not found")
        _check_seat(session, seat)

        group_id = str(uuid.uuid4())
        with self.db.transaction():
            action_id = self._run(session_id, seat, kind, metadata, parsed, group_id)

        logger.info(f"Action {kind.value} by seat {seat} in game {session_id} logged as {action_id}")
        return action_id

    def _run(
        self,
        session_id: str,
        seat: int,
        kind: ActionKind,
        metadata: dict[str, Any],
        parsed: ActionMetadata,
        group_id: str,
    ) -> int:
        followups = self._invoke(session_id, seat, kind, parsed)
        self._sessions.touch(session_id)
        action_id = self._actions.append(
            session_id,
            seat,
            kind.value,
            metadata,
            group_id,
            target_object_id=target_object_id(parsed),
        )
        for sub in followups:
            logger.debug(f"Cascading {sub.kind.value} for seat {sub.seat} from {kind.value}")
            self._run(
                session_id,
                sub.seat,
                sub.kind,
                sub.metadata,
                parse_metadata(sub.kind, sub.metadata),
                group_id,
            )
        return action_id

    def _invoke(
        self,
        session_id: str,
        seat: int,
        kind: ActionKind,
        meta: Any,
    ) -> list[PendingAction]:
        h = self.handlers
        match kind:
            case ActionKind.TAP:
                h.tap(session_id, seat, meta)
            case ActionKind.UNTAP:
                h.untap(session_id, seat, meta)
            case ActionKind.TOGGLE_TAP:
                h.toggle_tap(session_id, seat, meta)
            case ActionKind.UNTAP_ALL:
                h.untap_all(session_id, seat, meta)
            case ActionKind.SHUFFLE_LIBRARY:
                h.shuffle_library(session_id, seat, meta)
            case ActionKind.MILL:
                h.mill(session_id, seat, meta)
            case ActionKind.DRAW:
                h.draw(session_id, seat, meta)
            case ActionKind.LIFE_CHANGE:
                h.life_change(session_id, seat, meta)
            case ActionKind.EXILE_FROM_TOP:
                h.exile_from_top(session_id, seat, meta)
            case ActionKind.SCRY:
                h.scry(session_id, seat, meta)
            case ActionKind.SURVEIL:
                h.surveil(session_id, seat, meta)
            case ActionKind.MOVE_TO_EXILE:
                h.move_to_exile(session_id, seat, meta)
            case ActionKind.MOVE_TO_LIBRARY:
                h.move_to_library(session_id, seat, meta)
            case ActionKind.MOVE_TO_HAND:
                h.move_to_hand(session_id, seat, meta)
            case ActionKind.MOVE_TO_BATTLEFIELD:
                h.move_to_battlefield(session_id, seat, meta)
            case ActionKind.MOVE_TO_GRAVEYARD | ActionKind.DISCARD:
                h.move_to_graveyard(session_id, seat, meta)
            case ActionKind.ADD_COUNTER:
                h.add_counter(session_id, seat, meta)
            case ActionKind.REMOVE_COUNTER:
                h.remove_counter(session_id, seat, meta)
            case ActionKind.CREATE_TOKEN_COPY:
                h.create_token_copy(session_id, seat, meta)
            case ActionKind.REMOVE_TOKEN:
                h.remove_token(session_id, seat, meta)
            case ActionKind.CREATE_INDICATOR:
                h.create_indicator(session_id, seat, meta)
            case ActionKind.MOVE_INDICATOR:
                h.move_indicator(session_id, seat, meta)
            case ActionKind.DELETE_INDICATOR:
                h.delete_indicator(session_id, seat, meta)
            case ActionKind.CAST:
                h.cast(session_id, seat, meta)
            case ActionKind.END_TURN:
                return h.end_turn(session_id, seat, meta)
            case _:
                assert_never(kind)
        return []


def _check_seat(session: SessionRecord, seat: int) -> None:
    if not isinstance(seat, int) or isinstance(seat, bool) or not 1 <= seat <= session.player_count:
        raise InvalidMetadataError(
            f"Seat must be between 1 and {session.player_count}, got {seat}"
        )
