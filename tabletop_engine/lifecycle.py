"""Setting up and resetting the table for a session."""

from __future__ import annotations

import logging
import random
import uuid

from core.config import DEFAULT_LIFE, OPENING_HAND_SIZE
from core.errors import InvalidMetadataError, InvalidStateError, NotFoundError
from db.database import (
    ActionRepository,
    Database,
    DeckRepository,
    GameObjectRecord,
    GameStateRepository,
    IndicatorRepository,
    SessionRecord,
    SessionRepository,
)
from tabletop_engine.shuffle import shuffle_library
from tabletop_engine.zones import ObjectStore, Zone

logger = logging.getLogger(__name__)


class SessionLifecycle:
    """Deals decks into a session and wipes it for a restart.

    Neither operation goes through the dispatcher, so neither is audited.
    """

    def __init__(self, db: Database, rng: random.Random | None = None):
        self.db = db
        self.objects = ObjectStore(db)
        self._sessions = SessionRepository(db)
        self._decks = DeckRepository(db)
        self._state = GameStateRepository(db)
        self._indicators = IndicatorRepository(db)
        self._actions = ActionRepository(db)
        self._rng = rng or random.Random()

    def initialize(self, session_id: str, deck_ids: list[str]) -> None:
        """Load one deck per seat, shuffle, draw opening hands and create the state row.

        Args:
            session_id: Session to set up; must have no state yet.
            deck_ids: Deck for seat 1, seat 2, ... in order.
        """
        session = self._require_session(session_id)
        if len(deck_ids) != session.player_count:
            raise InvalidMetadataError(
                f"Session {session_id} has {session.player_count} seats but got {len(deck_ids)} decks"
            )

        with self.db.transaction():
            if self._state.get(session_id) is not None:
                raise InvalidStateError(f"Game session {session_id} is already initialized")
            for seat, deck_id in enumerate(deck_ids, start=1):
                self._deal_seat(session_id, seat, deck_id)
            self._state.create(session_id, starting_life=DEFAULT_LIFE, active_seat=1, turn_number=1)

        logger.info(f"Initialized game {session_id} with {len(deck_ids)} seats")

    def restart(self, session_id: str) -> None:
        """Wipe objects, audit rows, indicators and state, then deal again."""
        session = self._require_session(session_id)
        with self.db.transaction():
            removed = self.objects.clear_session(session_id)
            self._actions.delete_for_session(session_id)
            self._indicators.delete_for_session(session_id)
            self._state.delete(session_id)
            logger.info(f"Cleared {removed} objects from game {session_id} for restart")
            self.initialize(session_id, session.deck_ids)

    def _deal_seat(self, session_id: str, seat: int, deck_id: str) -> None:
        deck = self._decks.get(deck_id)
        if deck is None:
            raise NotFoundError(f"Deck {deck_id} not found")

        commander_ids = set(deck.commander_ids)
        library: list[GameObjectRecord] = []
        for line in self._decks.get_cards(deck_id, zone="library"):
            if line.card_id in commander_ids:
                continue
            for _ in range(line.quantity):
                library.append(self._new_object(session_id, seat, Zone.LIBRARY, line.card_id, len(library)))

        commanders = [
            self._new_object(session_id, seat, Zone.COMMAND_ZONE, card_id, 0)
            for card_id in deck.commander_ids
        ]
        self.objects.create_many(library + commanders)

        shuffle_library(self.objects, session_id, seat, self._rng)
        for obj in self.objects.top_of_library(session_id, seat, OPENING_HAND_SIZE):
            self.objects.move(obj, Zone.HAND)

        logger.info(
            f"Seat {seat} dealt deck {deck.name!r}: {len(library)} library, "
            f"{len(commanders)} commanders"
        )

    def _require_session(self, session_id: str) -> SessionRecord:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Game session {session_id} not found")
        return session

    @staticmethod
    def _new_object(
        session_id: str,
        seat: int,
        zone: Zone,
        card_id: str,
        order: int,
    ) -> GameObjectRecord:
        return GameObjectRecord(
            id=str(uuid.uuid4()),
            session_id=session_id,
            seat=seat,
            zone=zone.value,
            card_id=card_id,
            order=order,
        )
