"""SQLite database layer for tabletop game sessions."""

from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Iterator

from core.errors import UpstreamError

SEATS = (1, 2, 3, 4)
OBJECT_FLAGS = ("is_tapped", "is_flipped")

_NOW = "strftime('%Y-%m-%d %H:%M:%f', 'now')"


@dataclass
class CardRecord:
    """A card from the catalog."""
    id: str
    name: str
    type_line: str | None = None
    oracle_text: str | None = None
    mana_cost: str | None = None
    cmc: float | None = None
    power: str | None = None
    toughness: str | None = None
    colors: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    layout: str = "normal"
    image_uris: dict[str, str] | None = None
    card_faces: list[dict[str, Any]] | None = None

    @property
    def is_token_card(self) -> bool:
        return self.layout == "token"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type_line": self.type_line,
            "oracle_text": self.oracle_text,
            "mana_cost": self.mana_cost,
            "cmc": self.cmc,
            "power": self.power,
            "toughness": self.toughness,
            "colors": list(self.colors),
            "keywords": list(self.keywords),
            "layout": self.layout,
            "image_uris": self.image_uris,
            "card_faces": self.card_faces,
        }


@dataclass
class DeckRecord:
    """A deck from the catalog."""
    id: str
    name: str
    description: str | None
    commander_ids: list[str]
    created_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "commander_ids": list(self.commander_ids),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class DeckCardRecord:
    """One card line of a deck."""
    deck_id: str
    card_id: str
    quantity: int
    zone: str


@dataclass
class SessionRecord:
    """A game session row."""
    id: str
    name: str | None
    status: str
    player_count: int
    deck_ids: list[str]
    created_at: datetime | None
    updated_at: datetime | None
    completed_at: datetime | None


@dataclass
class GameStateRecord:
    """Life totals and turn tracking for a session."""
    session_id: str
    life: dict[int, int]
    commander_damage: dict[int, int]
    active_seat: int
    turn_number: int


@dataclass
class GameObjectRecord:
    """A card or token instance inside a session."""
    id: str
    session_id: str
    seat: int
    zone: str
    card_id: str
    is_token: bool = False
    is_tapped: bool = False
    is_flipped: bool = False
    counters: dict[str, int] = field(default_factory=dict)
    position: dict[str, float] | None = None
    order: int = 0
    created_at: datetime | None = None


@dataclass
class IndicatorRecord:
    """A seat-owned marker on the battlefield."""
    id: str
    session_id: str
    seat: int
    position: dict[str, float]
    color: str
    created_at: datetime | None
    updated_at: datetime | None


@dataclass
class ActionRecord:
    """An audit row."""
    id: int
    session_id: str
    seat: int
    action_type: str
    target_object_id: str | None
    metadata: dict[str, Any]
    group_id: str
    created_at: datetime | None


class Database:
    """SQLite connection manager with per-thread connections and nestable transactions."""

    def __init__(self, db_path: str | Path = "tabletop.db"):
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, "connection"):
            try:
                # isolation_level=None: transactions are opened explicitly in transaction()
                conn = sqlite3.connect(
                    str(self.db_path),
                    timeout=30.0,
                    isolation_level=None,
                )
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys = ON")
                conn.execute("PRAGMA journal_mode = WAL")
                conn.execute("PRAGMA busy_timeout = 30000")
            except sqlite3.Error as e:
                raise UpstreamError(f"Could not open database {self.db_path}: {e}") from e
            self._local.connection = conn
            self._local.depth = 0
        return self._local.connection

    def _init_schema(self) -> None:
        """Initialize database schema if not exists."""
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r") as f:
            schema_sql = f.read()

        conn = self._get_connection()
        with _translate_errors():
            conn.executescript(schema_sql)

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "depth", 0) > 0

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block in one transaction.

        Nested blocks join the outermost transaction, which alone commits or
        rolls back. BEGIN IMMEDIATE takes the write lock up front so reads
        made inside the block cannot go stale before the writes land.
        """
        conn = self._get_connection()
        depth = self._local.depth
        if depth == 0:
            with _translate_errors():
                conn.execute("BEGIN IMMEDIATE")
        self._local.depth = depth + 1
        try:
            yield conn
        except BaseException:
            self._local.depth = depth
            if depth == 0 and conn.in_transaction:
                with _translate_errors():
                    conn.execute("ROLLBACK")
            raise
        self._local.depth = depth
        if depth == 0:
            with _translate_errors():
                conn.execute("COMMIT")

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute a SQL statement."""
        conn = self._get_connection()
        with _translate_errors():
            return conn.execute(sql, params)

    def executemany(self, sql: str, params_list: list[tuple]) -> sqlite3.Cursor:
        """Execute a SQL statement with multiple parameter sets."""
        conn = self._get_connection()
        with _translate_errors():
            return conn.executemany(sql, params_list)

    def close(self) -> None:
        """Close the database connection for the current thread."""
        if hasattr(self._local, "connection"):
            self._local.connection.close()
            del self._local.connection
            self._local.depth = 0


@contextmanager
def _translate_errors() -> Iterator[None]:
    """Re-raise driver errors as UpstreamError."""
    try:
        yield
    except sqlite3.Error as e:
        raise UpstreamError(f"Store error: {e}") from e


class CardRepository:
    """Read access to the card catalog (plus a seed helper for importers and tests)."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, card: CardRecord) -> CardRecord:
        """Insert or replace a catalog card."""
        self.db.execute(
            """
            INSERT INTO cards (
                id, name, type_line, oracle_text, mana_cost, cmc, power, toughness,
                colors_json, keywords_json, layout, image_uris_json, card_faces_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                type_line = excluded.type_line,
                oracle_text = excluded.oracle_text,
                mana_cost = excluded.mana_cost,
                cmc = excluded.cmc,
                power = excluded.power,
                toughness = excluded.toughness,
                colors_json = excluded.colors_json,
                keywords_json = excluded.keywords_json,
                layout = excluded.layout,
                image_uris_json = excluded.image_uris_json,
                card_faces_json = excluded.card_faces_json
            """,
            (
                card.id, card.name, card.type_line, card.oracle_text, card.mana_cost,
                card.cmc, card.power, card.toughness,
                json.dumps(card.colors), json.dumps(card.keywords), card.layout,
                _dumps_or_none(card.image_uris), _dumps_or_none(card.card_faces),
            ),
        )
        return card

    def get(self, card_id: str) -> CardRecord | None:
        """Get a card by ID."""
        row = self.db.execute("SELECT * FROM cards WHERE id = ?", (card_id,)).fetchone()
        if row is None:
            return None
        return _row_to_card_record(row)

    def get_many(self, card_ids: Iterable[str]) -> dict[str, CardRecord]:
        """Get cards keyed by ID; unknown IDs are absent from the result."""
        ids = sorted(set(card_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self.db.execute(
            f"SELECT * FROM cards WHERE id IN ({placeholders})", tuple(ids)
        ).fetchall()
        return {row["id"]: _row_to_card_record(row) for row in rows}

    def get_by_names(self, names: list[str]) -> list[CardRecord]:
        """Get cards whose name matches exactly."""
        if not names:
            return []
        placeholders = ", ".join("?" for _ in names)
        rows = self.db.execute(
            f"SELECT * FROM cards WHERE name IN ({placeholders}) ORDER BY name",
            tuple(names),
        ).fetchall()
        return [_row_to_card_record(row) for row in rows]

    def search(self, prefix: str, limit: int = 20) -> list[CardRecord]:
        """Cards whose name starts with `prefix`, case-insensitively."""
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        rows = self.db.execute(
            "SELECT * FROM cards WHERE name LIKE ? ESCAPE '\\' ORDER BY name, id LIMIT ?",
            (f"{escaped}%", limit),
        ).fetchall()
        return [_row_to_card_record(row) for row in rows]

    def list_tokens(self) -> list[CardRecord]:
        """List every token card in the catalog."""
        rows = self.db.execute(
            "SELECT * FROM cards WHERE layout = 'token' ORDER BY name, id"
        ).fetchall()
        return [_row_to_card_record(row) for row in rows]


class DeckRepository:
    """Read access to decks and their card lists."""

    def __init__(self, db: Database):
        self.db = db

    def create(
        self,
        name: str,
        cards: list[tuple[str, int]],
        commander_ids: list[str] | None = None,
        description: str | None = None,
        deck_id: str | None = None,
    ) -> DeckRecord:
        """Create a deck from (card_id, quantity) library lines.

        Commanders are stored both on the deck and as 'commander' lines.
        """
        deck_id = deck_id or str(uuid.uuid4())
        commander_ids = commander_ids or []
        with self.db.transaction():
            self.db.execute(
                "INSERT INTO decks (id, name, description, commander_ids_json) VALUES (?, ?, ?, ?)",
                (deck_id, name, description, json.dumps(commander_ids)),
            )
            lines = [(deck_id, card_id, quantity, "library") for card_id, quantity in cards]
            lines += [(deck_id, card_id, 1, "commander") for card_id in commander_ids]
            self.db.executemany(
                "INSERT INTO deck_cards (deck_id, card_id, quantity, zone) VALUES (?, ?, ?, ?)",
                lines,
            )
        return self.get(deck_id)

    def get(self, deck_id: str) -> DeckRecord | None:
        """Get a deck by ID."""
        row = self.db.execute("SELECT * FROM decks WHERE id = ?", (deck_id,)).fetchone()
        if row is None:
            return None
        return _row_to_deck_record(row)

    def list_all(self) -> list[DeckRecord]:
        """List every deck, newest first."""
        rows = self.db.execute(
            "SELECT * FROM decks ORDER BY created_at DESC, name"
        ).fetchall()
        return [_row_to_deck_record(row) for row in rows]

    def get_cards(self, deck_id: str, zone: str = "library") -> list[DeckCardRecord]:
        """Get a deck's card lines for one zone."""
        rows = self.db.execute(
            "SELECT * FROM deck_cards WHERE deck_id = ? AND zone = ? ORDER BY id",
            (deck_id, zone),
        ).fetchall()
        return [
            DeckCardRecord(
                deck_id=row["deck_id"],
                card_id=row["card_id"],
                quantity=row["quantity"],
                zone=row["zone"],
            )
            for row in rows
        ]


class SessionRepository:
    """Repository for game session rows."""

    def __init__(self, db: Database):
        self.db = db

    def create(
        self,
        deck_ids: list[str],
        name: str | None = None,
        session_id: str | None = None,
    ) -> SessionRecord:
        """Create a session with one deck per seat."""
        session_id = session_id or str(uuid.uuid4())
        decks = _deck_columns(deck_ids)
        self.db.execute(
            """
            INSERT INTO game_sessions (
                id, name, status, player_count, deck1_id, deck2_id, deck3_id, deck4_id
            ) VALUES (?, ?, 'active', ?, ?, ?, ?, ?)
            """,
            (session_id, name, len(deck_ids), *decks),
        )
        return self.get(session_id)

    def get(self, session_id: str) -> SessionRecord | None:
        """Get a session by ID."""
        row = self.db.execute(
            "SELECT * FROM game_sessions WHERE id = ?", (session_id,)
        ).fetchone()
        if row is None:
            return None
        return _row_to_session_record(row)

    def list_active(self, limit: int = 100) -> list[SessionRecord]:
        """List sessions that are not completed, most recently touched first."""
        rows = self.db.execute(
            """
            SELECT * FROM game_sessions
            WHERE status != 'completed'
            ORDER BY updated_at DESC
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
        return [_row_to_session_record(row) for row in rows]

    def touch(self, session_id: str) -> None:
        """Bump updated_at."""
        self.db.execute(
            f"UPDATE game_sessions SET updated_at = {_NOW} WHERE id = ?",
            (session_id,),
        )

    def update_status(self, session_id: str, status: str) -> None:
        """Update session status; 'completed' also stamps completed_at."""
        self.db.execute(
            f"""
            UPDATE game_sessions
            SET status = ?,
                updated_at = {_NOW},
                completed_at = CASE WHEN ? = 'completed' THEN {_NOW} ELSE completed_at END
            WHERE id = ?
            """,
            (status, status, session_id),
        )

    def update_decks(self, session_id: str, deck_ids: list[str]) -> None:
        """Replace the per-seat deck references and player count."""
        self.db.execute(
            """
            UPDATE game_sessions
            SET player_count = ?, deck1_id = ?, deck2_id = ?, deck3_id = ?, deck4_id = ?
            WHERE id = ?
            """,
            (len(deck_ids), *_deck_columns(deck_ids), session_id),
        )


class GameStateRepository:
    """Repository for the per-session life/turn row."""

    def __init__(self, db: Database):
        self.db = db

    def create(
        self,
        session_id: str,
        starting_life: int = 40,
        active_seat: int = 1,
        turn_number: int = 1,
    ) -> GameStateRecord:
        """Create the state row for a session."""
        self.db.execute(
            """
            INSERT INTO game_state (
                game_session_id, seat1_life, seat2_life, seat3_life, seat4_life,
                active_seat, turn_number
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (session_id, *([starting_life] * len(SEATS)), active_seat, turn_number),
        )
        return self.get(session_id)

    def get(self, session_id: str) -> GameStateRecord | None:
        """Get the state row for a session."""
        row = self.db.execute(
            "SELECT * FROM game_state WHERE game_session_id = ?", (session_id,)
        ).fetchone()
        if row is None:
            return None
        return GameStateRecord(
            session_id=row["game_session_id"],
            life={seat: row[f"seat{seat}_life"] for seat in SEATS},
            commander_damage={seat: row[f"seat{seat}_commander_damage"] for seat in SEATS},
            active_seat=row["active_seat"],
            turn_number=row["turn_number"],
        )

    def adjust_life(self, session_id: str, seat: int, amount: int) -> int:
        """Add a signed delta to one seat's life. Returns rows affected."""
        column = _seat_column(seat, "life")
        cursor = self.db.execute(
            f"""
            UPDATE game_state
            SET {column} = {column} + ?, updated_at = {_NOW}
            WHERE game_session_id = ?
            """,
            (amount, session_id),
        )
        return cursor.rowcount

    def advance_turn(
        self,
        session_id: str,
        expected_seat: int,
        expected_turn: int,
        next_seat: int,
    ) -> bool:
        """Compare-and-swap the active seat and turn number.

        Returns False when the row no longer holds the expected values.
        """
        cursor = self.db.execute(
            f"""
            UPDATE game_state
            SET active_seat = ?, turn_number = ?, updated_at = {_NOW}
            WHERE game_session_id = ? AND active_seat = ? AND turn_number = ?
            """,
            (next_seat, expected_turn + 1, session_id, expected_seat, expected_turn),
        )
        return cursor.rowcount == 1

    def delete(self, session_id: str) -> None:
        self.db.execute("DELETE FROM game_state WHERE game_session_id = ?", (session_id,))


class GameObjectRepository:
    """Repository for cards and tokens in play."""

    def __init__(self, db: Database):
        self.db = db

    def insert_many(self, objects: list[GameObjectRecord]) -> None:
        """Insert objects in one batched statement."""
        self.db.executemany(
            """
            INSERT INTO game_objects (
                id, game_session_id, seat, zone, card_id, is_token, is_tapped,
                is_flipped, counters_json, position_json, "order"
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    obj.id, obj.session_id, obj.seat, obj.zone, obj.card_id,
                    int(obj.is_token), int(obj.is_tapped), int(obj.is_flipped),
                    json.dumps(obj.counters), _dumps_or_none(obj.position), obj.order,
                )
                for obj in objects
            ],
        )

    def get(self, object_id: str) -> GameObjectRecord | None:
        """Get an object by ID."""
        row = self.db.execute(
            "SELECT * FROM game_objects WHERE id = ?", (object_id,)
        ).fetchone()
        if row is None:
            return None
        return _row_to_object_record(row)

    def list_for_session(self, session_id: str) -> list[GameObjectRecord]:
        """All objects of a session, grouped by zone and library order."""
        rows = self.db.execute(
            """
            SELECT * FROM game_objects
            WHERE game_session_id = ?
            ORDER BY zone, "order", created_at, id
            """,
            (session_id,),
        ).fetchall()
        return [_row_to_object_record(row) for row in rows]

    def list_zone(
        self,
        session_id: str,
        seat: int,
        zone: str,
        limit: int | None = None,
    ) -> list[GameObjectRecord]:
        """Objects of one seat in one zone, top of library first."""
        sql = """
            SELECT * FROM game_objects
            WHERE game_session_id = ? AND seat = ? AND zone = ?
            ORDER BY "order", id
        """
        params: tuple = (session_id, seat, zone)
        if limit is not None:
            sql += " LIMIT ?"
            params += (limit,)
        rows = self.db.execute(sql, params).fetchall()
        return [_row_to_object_record(row) for row in rows]

    def update_zone(
        self,
        object_id: str,
        zone: str,
        position: dict[str, float] | None = None,
    ) -> None:
        """Rewrite an object's zone, and its position when one is given."""
        if position is None:
            self.db.execute(
                "UPDATE game_objects SET zone = ? WHERE id = ?", (zone, object_id)
            )
        else:
            self.db.execute(
                "UPDATE game_objects SET zone = ?, position_json = ? WHERE id = ?",
                (zone, json.dumps(position), object_id),
            )

    def update_flag(self, object_id: str, flag: str, value: bool) -> None:
        if flag not in OBJECT_FLAGS:
            raise ValueError(f"Unknown object flag: {flag}")
        self.db.execute(
            f"UPDATE game_objects SET {flag} = ? WHERE id = ?", (int(value), object_id)
        )

    def update_counters(self, object_id: str, counters: dict[str, int]) -> None:
        self.db.execute(
            "UPDATE game_objects SET counters_json = ? WHERE id = ?",
            (json.dumps(counters), object_id),
        )

    def update_order(self, object_id: str, order: int) -> None:
        self.db.execute(
            'UPDATE game_objects SET "order" = ? WHERE id = ?', (order, object_id)
        )

    def update_orders(self, ordered_ids: list[str], start: int = 0) -> None:
        """Assign consecutive order values in one batched statement."""
        self.db.executemany(
            'UPDATE game_objects SET "order" = ? WHERE id = ?',
            [(start + index, object_id) for index, object_id in enumerate(ordered_ids)],
        )

    def library_bounds(self, session_id: str, seat: int) -> tuple[int | None, int | None]:
        """Lowest and highest order in a seat's library."""
        row = self.db.execute(
            """
            SELECT MIN("order") AS low, MAX("order") AS high FROM game_objects
            WHERE game_session_id = ? AND seat = ? AND zone = 'library'
            """,
            (session_id, seat),
        ).fetchone()
        return row["low"], row["high"]

    def untap_zone(self, session_id: str, seat: int, zone: str) -> int:
        """Clear is_tapped for a seat's zone. Returns rows affected."""
        cursor = self.db.execute(
            """
            UPDATE game_objects SET is_tapped = 0
            WHERE game_session_id = ? AND seat = ? AND zone = ? AND is_tapped = 1
            """,
            (session_id, seat, zone),
        )
        return cursor.rowcount

    def delete(self, object_id: str) -> None:
        self.db.execute("DELETE FROM game_objects WHERE id = ?", (object_id,))

    def delete_for_session(self, session_id: str) -> int:
        cursor = self.db.execute(
            "DELETE FROM game_objects WHERE game_session_id = ?", (session_id,)
        )
        return cursor.rowcount


class IndicatorRepository:
    """Repository for battlefield indicators."""

    def __init__(self, db: Database):
        self.db = db

    def create(
        self,
        session_id: str,
        seat: int,
        position: dict[str, float],
        color: str,
    ) -> IndicatorRecord:
        indicator_id = str(uuid.uuid4())
        self.db.execute(
            """
            INSERT INTO battlefield_indicators (id, game_session_id, seat, position_json, color)
            VALUES (?, ?, ?, ?, ?)
            """,
            (indicator_id, session_id, seat, json.dumps(position), color),
        )
        return self.get(indicator_id)

    def get(self, indicator_id: str) -> IndicatorRecord | None:
        row = self.db.execute(
            "SELECT * FROM battlefield_indicators WHERE id = ?", (indicator_id,)
        ).fetchone()
        if row is None:
            return None
        return _row_to_indicator_record(row)

    def update_position(
        self,
        session_id: str,
        indicator_id: str,
        seat: int,
        position: dict[str, float],
    ) -> bool:
        """Move an indicator owned by seat. Returns False when nothing matched."""
        cursor = self.db.execute(
            f"""
            UPDATE battlefield_indicators
            SET position_json = ?, updated_at = {_NOW}
            WHERE id = ? AND game_session_id = ? AND seat = ?
            """,
            (json.dumps(position), indicator_id, session_id, seat),
        )
        return cursor.rowcount == 1

    def delete(self, session_id: str, indicator_id: str, seat: int) -> bool:
        """Delete an indicator owned by seat. Returns False when nothing matched."""
        cursor = self.db.execute(
            """
            DELETE FROM battlefield_indicators
            WHERE id = ? AND game_session_id = ? AND seat = ?
            """,
            (indicator_id, session_id, seat),
        )
        return cursor.rowcount == 1

    def list_for_session(self, session_id: str) -> list[IndicatorRecord]:
        rows = self.db.execute(
            """
            SELECT * FROM battlefield_indicators
            WHERE game_session_id = ?
            ORDER BY created_at, id
            """,
            (session_id,),
        ).fetchall()
        return [_row_to_indicator_record(row) for row in rows]

    def delete_for_session(self, session_id: str) -> int:
        cursor = self.db.execute(
            "DELETE FROM battlefield_indicators WHERE game_session_id = ?", (session_id,)
        )
        return cursor.rowcount


class ActionRepository:
    """Append-only repository for audit rows."""

    def __init__(self, db: Database):
        self.db = db

    def append(
        self,
        session_id: str,
        seat: int,
        action_type: str,
        metadata: dict[str, Any],
        group_id: str,
        target_object_id: str | None = None,
    ) -> int:
        """Append an audit row and return its ID."""
        cursor = self.db.execute(
            """
            INSERT INTO game_actions (
                game_session_id, seat, action_type, target_object_id, metadata_json, group_id
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (session_id, seat, action_type, target_object_id, json.dumps(metadata), group_id),
        )
        return cursor.lastrowid

    def get(self, action_id: int) -> ActionRecord | None:
        row = self.db.execute(
            "SELECT * FROM game_actions WHERE id = ?", (action_id,)
        ).fetchone()
        if row is None:
            return None
        return _row_to_action_record(row)

    def list_page(self, session_id: str, limit: int, offset: int = 0) -> list[ActionRecord]:
        """Audit rows for a session, newest first."""
        rows = self.db.execute(
            """
            SELECT * FROM game_actions
            WHERE game_session_id = ?
            ORDER BY id DESC
            LIMIT ? OFFSET ?
            """,
            (session_id, limit, offset),
        ).fetchall()
        return [_row_to_action_record(row) for row in rows]

    def list_group(self, group_id: str) -> list[ActionRecord]:
        """Audit rows sharing a group ID, in execution order."""
        rows = self.db.execute(
            "SELECT * FROM game_actions WHERE group_id = ? ORDER BY id", (group_id,)
        ).fetchall()
        return [_row_to_action_record(row) for row in rows]

    def count(self, session_id: str) -> int:
        row = self.db.execute(
            "SELECT COUNT(*) AS cnt FROM game_actions WHERE game_session_id = ?",
            (session_id,),
        ).fetchone()
        return row["cnt"]

    def delete_for_session(self, session_id: str) -> int:
        cursor = self.db.execute(
            "DELETE FROM game_actions WHERE game_session_id = ?", (session_id,)
        )
        return cursor.rowcount


def _seat_column(seat: int, suffix: str) -> str:
    """Column name for a per-seat value; seat is validated before interpolation."""
    if seat not in SEATS:
        raise ValueError(f"Seat out of range: {seat}")
    return f"seat{seat}_{suffix}"


def _deck_columns(deck_ids: list[str]) -> tuple[str | None, ...]:
    if not 1 <= len(deck_ids) <= len(SEATS):
        raise ValueError(f"Expected 1-{len(SEATS)} decks, got {len(deck_ids)}")
    return tuple(deck_ids) + (None,) * (len(SEATS) - len(deck_ids))


def _dumps_or_none(value: Any) -> str | None:
    return None if value is None else json.dumps(value)


def _loads_or_none(value: str | None) -> Any:
    return None if value is None else json.loads(value)


def _parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse a datetime value from the database."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None


def _row_to_card_record(row: sqlite3.Row) -> CardRecord:
    """Convert a database row to a CardRecord."""
    return CardRecord(
        id=row["id"],
        name=row["name"],
        type_line=row["type_line"],
        oracle_text=row["oracle_text"],
        mana_cost=row["mana_cost"],
        cmc=row["cmc"],
        power=row["power"],
        toughness=row["toughness"],
        colors=json.loads(row["colors_json"] or "[]"),
        keywords=json.loads(row["keywords_json"] or "[]"),
        layout=row["layout"],
        image_uris=_loads_or_none(row["image_uris_json"]),
        card_faces=_loads_or_none(row["card_faces_json"]),
    )


def _row_to_deck_record(row: sqlite3.Row) -> DeckRecord:
    return DeckRecord(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        commander_ids=json.loads(row["commander_ids_json"] or "[]"),
        created_at=_parse_datetime(row["created_at"]),
    )


def _row_to_session_record(row: sqlite3.Row) -> SessionRecord:
    """Convert a database row to a SessionRecord."""
    deck_ids = [row[f"deck{seat}_id"] for seat in SEATS][: row["player_count"]]
    return SessionRecord(
        id=row["id"],
        name=row["name"],
        status=row["status"],
        player_count=row["player_count"],
        deck_ids=deck_ids,
        created_at=_parse_datetime(row["created_at"]),
        updated_at=_parse_datetime(row["updated_at"]),
        completed_at=_parse_datetime(row["completed_at"]),
    )


def _row_to_object_record(row: sqlite3.Row) -> GameObjectRecord:
    """Convert a database row to a GameObjectRecord."""
    return GameObjectRecord(
        id=row["id"],
        session_id=row["game_session_id"],
        seat=row["seat"],
        zone=row["zone"],
        card_id=row["card_id"],
        is_token=bool(row["is_token"]),
        is_tapped=bool(row["is_tapped"]),
        is_flipped=bool(row["is_flipped"]),
        counters=json.loads(row["counters_json"] or "{}"),
        position=_loads_or_none(row["position_json"]),
        order=row["order"],
        created_at=_parse_datetime(row["created_at"]),
    )


def _row_to_indicator_record(row: sqlite3.Row) -> IndicatorRecord:
    """Convert a database row to an IndicatorRecord."""
    return IndicatorRecord(
        id=row["id"],
        session_id=row["game_session_id"],
        seat=row["seat"],
        position=json.loads(row["position_json"]),
        color=row["color"],
        created_at=_parse_datetime(row["created_at"]),
        updated_at=_parse_datetime(row["updated_at"]),
    )


def _row_to_action_record(row: sqlite3.Row) -> ActionRecord:
    """Convert a database row to an ActionRecord."""
    return ActionRecord(
        id=row["id"],
        session_id=row["game_session_id"],
        seat=row["seat"],
        action_type=row["action_type"],
        target_object_id=row["target_object_id"],
        metadata=json.loads(row["metadata_json"] or "{}"),
        group_id=row["group_id"],
        created_at=_parse_datetime(row["created_at"]),
    )
