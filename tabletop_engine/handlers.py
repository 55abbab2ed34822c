"""State transitions, one per action kind.

Handlers take (session_id, acting seat, validated metadata), mutate the store
through ObjectStore and the repositories, and return nothing. The one
compound handler, end_turn, returns the sub-actions it cascades into so the
dispatcher can run and audit each of them.
"""

from __future__ import annotations

import logging
import random

from core.config import DEFAULT_BATTLEFIELD_POSITION, TOKEN_OFFSET_STEP
from core.errors import InvalidMetadataError, InvalidStateError, NotFoundError
from core.token_catalog import TokenCatalog
from db.database import (
    CardRepository,
    Database,
    GameObjectRecord,
    GameStateRepository,
    IndicatorRepository,
    SessionRepository,
)
from tabletop_engine.actions import (
    ActionKind,
    BattlefieldMoveMetadata,
    CountMetadata,
    CounterMetadata,
    CreateIndicatorMetadata,
    DeleteIndicatorMetadata,
    EmptyMetadata,
    LibraryMoveMetadata,
    LifeChangeMetadata,
    MoveIndicatorMetadata,
    ObjectMetadata,
    PendingAction,
    ScryMetadata,
    SurveilMetadata,
    TokenCopyMetadata,
)
from tabletop_engine.shuffle import shuffle_library
from tabletop_engine.zones import ObjectStore, Zone

logger = logging.getLogger(__name__)

CASTABLE_ZONES = frozenset({Zone.HAND, Zone.COMMAND_ZONE})


class ActionHandlers:
    """Implements every action kind against one database."""

    def __init__(
        self,
        db: Database,
        token_catalog: TokenCatalog,
        rng: random.Random | None = None,
    ):
        """Initialize the handlers.

        Args:
            db: Database holding the sessions.
            token_catalog: Token cards, built once at startup.
            rng: Random source for shuffles.
        """
        self.db = db
        self.objects = ObjectStore(db)
        self._cards = CardRepository(db)
        self._sessions = SessionRepository(db)
        self._state = GameStateRepository(db)
        self._indicators = IndicatorRepository(db)
        self._tokens = token_catalog
        self._rng = rng or random.Random()

    # Library

    def draw(self, session_id: str, seat: int, meta: CountMetadata) -> None:
        moved = self._move_from_top(session_id, seat, meta.count, Zone.HAND)
        logger.info(f"Seat {seat} drew {moved}/{meta.count} in game {session_id}")

    def mill(self, session_id: str, seat: int, meta: CountMetadata) -> None:
        moved = self._move_from_top(session_id, seat, meta.count, Zone.GRAVEYARD)
        logger.info(f"Seat {seat} milled {moved} in game {session_id}")

    def exile_from_top(self, session_id: str, seat: int, meta: CountMetadata) -> None:
        moved = self._move_from_top(session_id, seat, meta.count, Zone.EXILE)
        logger.info(f"Exiled {moved} cards from library by seat {seat} in game {session_id}")

    def shuffle_library(self, session_id: str, seat: int, meta: EmptyMetadata) -> None:
        shuffle_library(self.objects, session_id, seat, self._rng)

    def scry(self, session_id: str, seat: int, meta: ScryMetadata) -> None:
        """Put `top` on top in the given order and `bottom` under everything else."""
        if meta.arrangement is None or meta.count is None:
            logger.info(f"Scry by seat {seat} in game {session_id} without arrangement; nothing to do")
            return
        top = meta.arrangement.top
        bottom = meta.arrangement.bottom

        library_ids = [obj.id for obj in self.objects.library(session_id, seat)]
        _check_arrangement(ActionKind.SCRY, library_ids, top + bottom)

        named = set(top) | set(bottom)
        remaining = [card_id for card_id in library_ids if card_id not in named]
        self.objects.write_order(top + remaining + bottom)
        logger.info(
            f"Scry {meta.count} by seat {seat} in game {session_id}: "
            f"{len(top)} top, {len(bottom)} bottom"
        )

    def surveil(self, session_id: str, seat: int, meta: SurveilMetadata) -> None:
        """Put `top` on top in the given order and send `graveyard` to the graveyard."""
        if meta.arrangement is None:
            logger.info(f"Surveil by seat {seat} in game {session_id} without arrangement; nothing to do")
            return
        top = meta.arrangement.top
        to_graveyard = meta.arrangement.graveyard

        library = {obj.id: obj for obj in self.objects.library(session_id, seat)}
        _check_arrangement(ActionKind.SURVEIL, list(library), top + to_graveyard)

        named = set(top) | set(to_graveyard)
        remaining = [card_id for card_id in library if card_id not in named]
        self.objects.write_order(top + remaining)
        for card_id in to_graveyard:
            self.objects.relocate(library[card_id], Zone.GRAVEYARD)
        logger.info(
            f"Surveil {meta.count} by seat {seat} in game {session_id}: "
            f"{len(top)} top, {len(to_graveyard)} to graveyard"
        )

    # Tapping

    def tap(self, session_id: str, seat: int, meta: ObjectMetadata) -> None:
        obj = self.objects.get(session_id, meta.object_id)
        self.objects.set_flag(obj, "is_tapped", True)

    def untap(self, session_id: str, seat: int, meta: ObjectMetadata) -> None:
        obj = self.objects.get(session_id, meta.object_id)
        self.objects.set_flag(obj, "is_tapped", False)

    def toggle_tap(self, session_id: str, seat: int, meta: ObjectMetadata) -> None:
        obj = self.objects.get(session_id, meta.object_id)
        self.objects.set_flag(obj, "is_tapped", not obj.is_tapped)

    def untap_all(self, session_id: str, seat: int, meta: EmptyMetadata) -> None:
        count = self.objects.untap_zone(session_id, seat, Zone.BATTLEFIELD)
        logger.info(f"Untapped {count} permanents for seat {seat} in game {session_id}")

    # Life

    def life_change(self, session_id: str, seat: int, meta: LifeChangeMetadata) -> None:
        if not self._state.adjust_life(session_id, seat, meta.amount):
            raise NotFoundError(f"Game state not found for session {session_id}")

    # Zone transitions

    def move_to_hand(self, session_id: str, seat: int, meta: ObjectMetadata) -> None:
        self._relocate(session_id, meta.object_id, Zone.HAND)

    def move_to_graveyard(self, session_id: str, seat: int, meta: ObjectMetadata) -> None:
        self._relocate(session_id, meta.object_id, Zone.GRAVEYARD)

    def move_to_exile(self, session_id: str, seat: int, meta: ObjectMetadata) -> None:
        self._relocate(session_id, meta.object_id, Zone.EXILE)

    def move_to_battlefield(self, session_id: str, seat: int, meta: BattlefieldMoveMetadata) -> None:
        position = meta.position.as_dict() if meta.position else None
        self._relocate(session_id, meta.object_id, Zone.BATTLEFIELD, position)

    def move_to_library(self, session_id: str, seat: int, meta: LibraryMoveMetadata) -> None:
        obj = self.objects.get(session_id, meta.object_id)
        if meta.placement is None:
            self.objects.relocate(obj, Zone.LIBRARY)
        else:
            self.objects.place_in_library(obj, on_top=meta.placement == "top")

    def cast(self, session_id: str, seat: int, meta: BattlefieldMoveMetadata) -> None:
        obj = self.objects.get(session_id, meta.object_id)
        if obj.zone not in CASTABLE_ZONES:
            raise InvalidStateError(f"Cannot cast object {obj.id} from {obj.zone}")
        position = meta.position.as_dict() if meta.position else dict(DEFAULT_BATTLEFIELD_POSITION)
        self.objects.move(obj, Zone.BATTLEFIELD, position)
        logger.info(f"Seat {seat} cast {obj.card_id} in game {session_id}")

    # Counters

    def add_counter(self, session_id: str, seat: int, meta: CounterMetadata) -> None:
        obj = self.objects.get(session_id, meta.object_id)
        self.objects.set_counter(obj, meta.counter_type, meta.amount)

    def remove_counter(self, session_id: str, seat: int, meta: CounterMetadata) -> None:
        obj = self.objects.get(session_id, meta.object_id)
        self.objects.set_counter(obj, meta.counter_type, -meta.amount)

    # Tokens

    def create_token_copy(self, session_id: str, seat: int, meta: TokenCopyMetadata) -> None:
        logger.info(f"Creating token copy in game {session_id} with metadata: {meta.model_dump(by_alias=True)}")
        card_id = self._resolve_token_card(session_id, meta)

        for i in range(meta.quantity):
            position = None
            if meta.position is not None:
                offset = i * TOKEN_OFFSET_STEP
                position = {"x": meta.position.x + offset, "y": meta.position.y + offset}
            self.objects.create(
                session_id,
                seat,
                Zone.BATTLEFIELD,
                card_id,
                is_token=True,
                position=position,
            )

    def remove_token(self, session_id: str, seat: int, meta: ObjectMetadata) -> None:
        obj = self.objects.get(session_id, meta.object_id)
        if not obj.is_token:
            raise InvalidStateError(f"Can only remove tokens; {obj.id} is a card")
        self.objects.destroy(obj)

    # Indicators

    def create_indicator(self, session_id: str, seat: int, meta: CreateIndicatorMetadata) -> None:
        self._indicators.create(session_id, seat, meta.position.as_dict(), meta.color)

    def move_indicator(self, session_id: str, seat: int, meta: MoveIndicatorMetadata) -> None:
        moved = self._indicators.update_position(
            session_id, meta.indicator_id, seat, meta.position.as_dict()
        )
        if not moved:
            raise NotFoundError(f"Indicator {meta.indicator_id} not found for seat {seat}")

    def delete_indicator(self, session_id: str, seat: int, meta: DeleteIndicatorMetadata) -> None:
        if not self._indicators.delete(session_id, meta.indicator_id, seat):
            raise NotFoundError(f"Indicator {meta.indicator_id} not found for seat {seat}")

    # Turn structure

    def end_turn(self, session_id: str, seat: int, meta: EmptyMetadata) -> list[PendingAction]:
        """Pass the turn to the next seat, then untap and draw for it."""
        session = self._sessions.get(session_id)
        state = self._state.get(session_id)
        if session is None or state is None:
            raise NotFoundError(f"Game state not found for session {session_id}")

        next_seat = state.active_seat % session.player_count + 1
        advanced = self._state.advance_turn(
            session_id, state.active_seat, state.turn_number, next_seat
        )
        if not advanced:
            raise InvalidStateError(
                f"Turn {state.turn_number} of game {session_id} was already ended"
            )
        logger.info(
            f"End turn: seat {state.active_seat} -> seat {next_seat}, "
            f"turn {state.turn_number} -> {state.turn_number + 1} in game {session_id}"
        )
        return [
            PendingAction(ActionKind.UNTAP_ALL, next_seat, {}),
            PendingAction(ActionKind.DRAW, next_seat, {"count": 1}),
        ]

    # Helpers

    def _move_from_top(self, session_id: str, seat: int, count: int, zone: Zone) -> int:
        cards = self.objects.top_of_library(session_id, seat, count)
        for obj in cards:
            self.objects.relocate(obj, zone)
        return len(cards)

    def _relocate(
        self,
        session_id: str,
        object_id: str,
        zone: Zone,
        position: dict[str, float] | None = None,
    ) -> GameObjectRecord:
        obj = self.objects.get(session_id, object_id)
        self.objects.relocate(obj, zone, position)
        return obj

    def _resolve_token_card(self, session_id: str, meta: TokenCopyMetadata) -> str:
        """Card id for new tokens: the source object's card, else the token card.

        Only battlefield objects can be copied, so a copy never reveals a card
        from a hand or library.
        """
        if meta.source_object_id:
            source = self.objects.get(session_id, meta.source_object_id)
            if source.zone != Zone.BATTLEFIELD:
                raise InvalidStateError(
                    f"Can only copy battlefield objects; {source.id} is in {source.zone}"
                )
            return source.card_id
        if meta.token_card_id in self._tokens:
            return meta.token_card_id
        if self._cards.get(meta.token_card_id) is not None:
            return meta.token_card_id
        raise NotFoundError(f"Token card {meta.token_card_id} not found")


def _check_arrangement(kind: ActionKind, library_ids: list[str], named: list[str]) -> None:
    """Arrangement ids must be distinct cards from the seat's library."""
    if len(set(named)) != len(named):
        raise InvalidMetadataError(f"{kind.value} arrangement names a card more than once")
    unknown = set(named) - set(library_ids)
    if unknown:
        raise InvalidMetadataError(
            f"{kind.value} arrangement names cards outside the library: {sorted(unknown)}"
        )
