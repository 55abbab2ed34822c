"""Game session management for the web API."""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Any

from core.config import (
    CARD_SEARCH_LIMIT,
    DEFAULT_AUDIT_PAGE_SIZE,
    MAX_AUDIT_PAGE_SIZE,
    MAX_CARD_SEARCH_LIMIT,
    MAX_PLAYERS,
)
from core.errors import InvalidMetadataError, NotFoundError, UpstreamError
from core.token_catalog import TokenCatalog
from db.database import (
    ActionRecord,
    ActionRepository,
    CardRepository,
    DeckRepository,
    Database,
    SessionRecord,
    SessionRepository,
)
from tabletop_engine.actions import ActionKind
from tabletop_engine.dispatcher import ActionDispatcher
from tabletop_engine.handlers import ActionHandlers
from tabletop_engine.lifecycle import SessionLifecycle
from tabletop_engine.visibility import VisibilityProjector

logger = logging.getLogger(__name__)

SESSION_STATUSES = ("active", "paused", "completed")


def session_to_dict(session: SessionRecord) -> dict[str, Any]:
    return {
        "id": session.id,
        "name": session.name,
        "status": session.status,
        "player_count": session.player_count,
        "deck_ids": list(session.deck_ids),
        "created_at": session.created_at.isoformat() if session.created_at else None,
        "updated_at": session.updated_at.isoformat() if session.updated_at else None,
        "completed_at": session.completed_at.isoformat() if session.completed_at else None,
    }


def action_to_dict(action: ActionRecord) -> dict[str, Any]:
    return {
        "id": action.id,
        "seat": action.seat,
        "action_type": action.action_type,
        "target_object_id": action.target_object_id,
        "metadata": action.metadata,
        "group_id": action.group_id,
        "created_at": action.created_at.isoformat() if action.created_at else None,
    }


class GameSessionManager:
    """Entry point for everything the API does with sessions.

    Holds no game state itself; the database is the source of truth. Call
    `configure` once with a Database before use.
    """

    def __init__(self):
        self._db: Database | None = None
        self._token_catalog: TokenCatalog | None = None
        self._dispatcher: ActionDispatcher | None = None
        self._lifecycle: SessionLifecycle | None = None
        self._projector: VisibilityProjector | None = None
        self._session_repo: SessionRepository | None = None
        self._action_repo: ActionRepository | None = None
        self._deck_repo: DeckRepository | None = None
        self._card_repo: CardRepository | None = None

    @property
    def is_configured(self) -> bool:
        return self._db is not None

    def configure(self, db: Database, rng: random.Random | None = None) -> None:
        """Wire the engine to a database and snapshot the token catalog."""
        rng = rng or random.Random()
        self._db = db
        self._token_catalog = TokenCatalog.from_repository(CardRepository(db))
        self._dispatcher = ActionDispatcher(db, ActionHandlers(db, self._token_catalog, rng))
        self._lifecycle = SessionLifecycle(db, rng)
        self._projector = VisibilityProjector(db)
        self._session_repo = SessionRepository(db)
        self._action_repo = ActionRepository(db)
        self._deck_repo = DeckRepository(db)
        self._card_repo = CardRepository(db)
        logger.info(f"Session manager configured: {db.db_path} ({len(self._token_catalog)} token cards)")

    def _require_db(self) -> Database:
        if self._db is None:
            raise UpstreamError("Session manager has no database configured")
        return self._db

    # Sessions

    def create_session(self, deck_ids: list[str], name: str | None = None) -> SessionRecord:
        """Create a session and deal its decks in one transaction."""
        db = self._require_db()
        self._check_decks(deck_ids)
        name = name or f"Game {datetime.now():%Y-%m-%d %H:%M}"

        with db.transaction():
            session = self._session_repo.create(deck_ids, name=name)
            self._lifecycle.initialize(session.id, deck_ids)

        logger.info(f"Created game {session.id} ({len(deck_ids)} players)")
        return self.get_session(session.id)

    def get_session(self, session_id: str) -> SessionRecord:
        self._require_db()
        session = self._session_repo.get(session_id)
        if session is None:
            raise NotFoundError(f"Game session {session_id} not found")
        return session

    def list_sessions(self) -> list[dict[str, Any]]:
        """List sessions that are not completed."""
        self._require_db()
        return [session_to_dict(s) for s in self._session_repo.list_active()]

    def set_status(self, session_id: str, status: str) -> SessionRecord:
        if status not in SESSION_STATUSES:
            raise InvalidMetadataError(f"Unknown session status: {status}")
        self.get_session(session_id)
        self._session_repo.update_status(session_id, status)
        logger.info(f"Game {session_id} status -> {status}")
        return self.get_session(session_id)

    def end_session(self, session_id: str) -> SessionRecord:
        return self.set_status(session_id, "completed")

    # Lifecycle

    def initialize_session(self, session_id: str, deck_ids: list[str]) -> None:
        self._require_db()
        self._lifecycle.initialize(session_id, deck_ids)

    def restart_session(self, session_id: str, deck_ids: list[str] | None = None) -> None:
        """Reset a session to a fresh deal, optionally with new decks."""
        db = self._require_db()
        self.get_session(session_id)
        with db.transaction():
            if deck_ids:
                self._check_decks(deck_ids)
                self._session_repo.update_decks(session_id, deck_ids)
            self._lifecycle.restart(session_id)
        logger.info(f"Restarted game {session_id}")

    # Actions and views

    def execute_action(
        self,
        session_id: str,
        seat: int,
        action_kind: str | ActionKind,
        metadata: dict[str, Any] | None = None,
    ) -> int:
        self._require_db()
        return self._dispatcher.execute(session_id, seat, action_kind, metadata)

    def get_projected_state(self, session_id: str, viewer_seat: int) -> dict[str, Any]:
        self._require_db()
        return self._projector.project(session_id, viewer_seat)

    def list_audit_log(
        self,
        session_id: str,
        page: int = 1,
        page_size: int = DEFAULT_AUDIT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """One page of a session's audit rows, newest first."""
        self.get_session(session_id)
        if page < 1:
            raise InvalidMetadataError(f"Page must be at least 1, got {page}")
        if not 1 <= page_size <= MAX_AUDIT_PAGE_SIZE:
            raise InvalidMetadataError(
                f"Page size must be between 1 and {MAX_AUDIT_PAGE_SIZE}, got {page_size}"
            )

        actions = self._action_repo.list_page(session_id, page_size, (page - 1) * page_size)
        return {
            "total": self._action_repo.count(session_id),
            "page": page,
            "page_size": page_size,
            "actions": [action_to_dict(a) for a in actions],
        }

    def list_tokens(self) -> list[dict[str, Any]]:
        self._require_db()
        return self._token_catalog.to_list()

    # Catalog lookups

    def list_decks(self) -> list[dict[str, Any]]:
        self._require_db()
        return [deck.to_dict() for deck in self._deck_repo.list_all()]

    def get_deck(self, deck_id: str) -> dict[str, Any]:
        """A deck with its commanders and library lines, each line carrying its card."""
        self._require_db()
        deck = self._deck_repo.get(deck_id)
        if deck is None:
            raise NotFoundError(f"Deck {deck_id} not found")

        library = self._deck_repo.get_cards(deck_id)
        cards = self._card_repo.get_many(
            [line.card_id for line in library] + deck.commander_ids
        )
        result = deck.to_dict()
        result["commanders"] = [
            cards[card_id].to_dict() for card_id in deck.commander_ids if card_id in cards
        ]
        result["cards"] = [
            {
                "quantity": line.quantity,
                "zone": line.zone,
                "card": cards[line.card_id].to_dict() if line.card_id in cards else None,
            }
            for line in library
        ]
        return result

    def get_card(self, card_id: str) -> dict[str, Any]:
        self._require_db()
        card = self._card_repo.get(card_id)
        if card is None:
            raise NotFoundError(f"Card {card_id} not found")
        return card.to_dict()

    def find_cards(self, name: str) -> list[dict[str, Any]]:
        """Cards with exactly this name."""
        self._require_db()
        return [card.to_dict() for card in self._card_repo.get_by_names([name])]

    def search_cards(self, prefix: str, limit: int = CARD_SEARCH_LIMIT) -> list[dict[str, Any]]:
        """Name autocomplete: cards whose name starts with `prefix`."""
        self._require_db()
        if not prefix.strip():
            raise InvalidMetadataError("Search text is required")
        if not 1 <= limit <= MAX_CARD_SEARCH_LIMIT:
            raise InvalidMetadataError(
                f"Search limit must be between 1 and {MAX_CARD_SEARCH_LIMIT}, got {limit}"
            )
        return [card.to_dict() for card in self._card_repo.search(prefix, limit)]

    def _check_decks(self, deck_ids: list[str]) -> None:
        """One to four decks, each of which must exist."""
        if not 1 <= len(deck_ids) <= MAX_PLAYERS:
            raise InvalidMetadataError(f"A game needs 1 to {MAX_PLAYERS} decks, got {len(deck_ids)}")
        for deck_id in deck_ids:
            if self._deck_repo.get(deck_id) is None:
                raise NotFoundError(f"Deck {deck_id} not found")


# Global session manager instance
session_manager = GameSessionManager()
