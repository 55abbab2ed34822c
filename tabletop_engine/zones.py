"""Zone vocabulary and the mutation primitives for game objects."""

from __future__ import annotations

import logging
import uuid
from enum import Enum

from core.errors import NotFoundError
from db.database import Database, GameObjectRecord, GameObjectRepository

logger = logging.getLogger(__name__)


class Zone(str, Enum):
    """Where an object currently is."""

    LIBRARY = "library"
    HAND = "hand"
    BATTLEFIELD = "battlefield"
    GRAVEYARD = "graveyard"
    EXILE = "exile"
    COMMAND_ZONE = "command_zone"
    STACK = "stack"

    @property
    def is_hidden(self) -> bool:
        """Whether only the owner may see card identities here."""
        return self in HIDDEN_ZONES


HIDDEN_ZONES = frozenset({Zone.HAND, Zone.LIBRARY})

# A token sent to one of these zones ceases to exist instead
TOKEN_DESTROYING_ZONES = frozenset({Zone.HAND, Zone.GRAVEYARD})


class ObjectStore:
    """Sole path for mutating game objects.

    Primitives write through to the store and mirror the change onto the
    record they were handed, so callers can keep working with it.
    """

    def __init__(self, db: Database):
        self.db = db
        self._objects = GameObjectRepository(db)

    def get(self, session_id: str, object_id: str) -> GameObjectRecord:
        """Fetch an object that must belong to the session."""
        obj = self._objects.get(object_id)
        if obj is None or obj.session_id != session_id:
            raise NotFoundError(f"Object {object_id} not found in session {session_id}")
        return obj

    def create(
        self,
        session_id: str,
        seat: int,
        zone: Zone,
        card_id: str,
        is_token: bool = False,
        position: dict[str, float] | None = None,
        order: int = 0,
    ) -> GameObjectRecord:
        obj = GameObjectRecord(
            id=str(uuid.uuid4()),
            session_id=session_id,
            seat=seat,
            zone=zone.value,
            card_id=card_id,
            is_token=is_token,
            position=position,
            order=order,
        )
        self._objects.insert_many([obj])
        return obj

    def create_many(self, objects: list[GameObjectRecord]) -> None:
        if objects:
            self._objects.insert_many(objects)

    def move(
        self,
        obj: GameObjectRecord,
        zone: Zone,
        position: dict[str, float] | None = None,
    ) -> None:
        """Rewrite the zone only. Position is written when given; order is untouched."""
        self._objects.update_zone(obj.id, zone.value, position)
        obj.zone = zone.value
        if position is not None:
            obj.position = position

    def relocate(
        self,
        obj: GameObjectRecord,
        zone: Zone,
        position: dict[str, float] | None = None,
    ) -> bool:
        """Move an object, destroying tokens that would land in hand or graveyard.

        Returns:
            Whether the object still exists afterwards.
        """
        if obj.is_token and zone in TOKEN_DESTROYING_ZONES:
            logger.debug(f"Token {obj.id} sent to {zone.value}; destroying")
            self.destroy(obj)
            return False
        self.move(obj, zone, position)
        return True

    def set_flag(self, obj: GameObjectRecord, flag: str, value: bool) -> None:
        """Set is_tapped or is_flipped. Setting the current value is harmless."""
        self._objects.update_flag(obj.id, flag, value)
        setattr(obj, flag, value)

    def set_counter(self, obj: GameObjectRecord, counter_type: str, delta: int) -> dict[str, int]:
        """Apply a signed delta to one counter type.

        The result is clamped at zero and a zero count removes the key.
        """
        counters = dict(obj.counters)
        new_value = max(0, counters.get(counter_type, 0) + delta)
        if new_value == 0:
            counters.pop(counter_type, None)
        else:
            counters[counter_type] = new_value
        if counters != obj.counters:
            self._objects.update_counters(obj.id, counters)
            obj.counters = counters
        return counters

    def destroy(self, obj: GameObjectRecord) -> None:
        self._objects.delete(obj.id)

    # Library ordering

    def library(self, session_id: str, seat: int) -> list[GameObjectRecord]:
        """A seat's library, top card first."""
        return self._objects.list_zone(session_id, seat, Zone.LIBRARY.value)

    def top_of_library(self, session_id: str, seat: int, count: int) -> list[GameObjectRecord]:
        """Up to `count` cards from the top of a seat's library."""
        return self._objects.list_zone(session_id, seat, Zone.LIBRARY.value, limit=count)

    def zone_contents(self, session_id: str, seat: int, zone: Zone) -> list[GameObjectRecord]:
        return self._objects.list_zone(session_id, seat, zone.value)

    def write_order(self, ordered_ids: list[str], start: int = 0) -> None:
        """Give the ids consecutive order values in one batched write."""
        if ordered_ids:
            self._objects.update_orders(ordered_ids, start)

    def place_in_library(self, obj: GameObjectRecord, on_top: bool) -> None:
        """Put an object above or below the rest of its owner's library."""
        low, high = self._objects.library_bounds(obj.session_id, obj.seat)
        if on_top:
            order = 0 if low is None else low - 1
        else:
            order = 0 if high is None else high + 1
        self._objects.update_order(obj.id, order)
        obj.order = order
        self.move(obj, Zone.LIBRARY)

    def untap_zone(self, session_id: str, seat: int, zone: Zone) -> int:
        return self._objects.untap_zone(session_id, seat, zone.value)

    def clear_session(self, session_id: str) -> int:
        return self._objects.delete_for_session(session_id)
