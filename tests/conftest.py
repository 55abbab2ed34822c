"""Shared fixtures: a temp-file database seeded with cards and decks."""

import random

import pytest

from core.token_catalog import TokenCatalog
from db.database import (
    CardRecord,
    CardRepository,
    Database,
    DeckRepository,
    GameStateRepository,
    SessionRepository,
)
from tabletop_engine.dispatcher import ActionDispatcher
from tabletop_engine.handlers import ActionHandlers
from tabletop_engine.lifecycle import SessionLifecycle
from tabletop_engine.zones import ObjectStore, Zone

LIBRARY_CARDS = [f"card-{i:02d}" for i in range(1, 11)]
TOKEN_CARDS = ["token-soldier", "token-treasure"]


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "tabletop_test.db")
    yield database
    database.close()


@pytest.fixture
def cards(db):
    repo = CardRepository(db)
    for card_id in LIBRARY_CARDS:
        repo.create(CardRecord(id=card_id, name=f"Card {card_id[-2:]}", type_line="Creature"))
    repo.create(CardRecord(id="forest", name="Forest", type_line="Basic Land - Forest"))
    repo.create(CardRecord(id="cmd-atraxa", name="Atraxa", type_line="Legendary Creature"))
    repo.create(CardRecord(id="cmd-krenko", name="Krenko", type_line="Legendary Creature"))
    repo.create(CardRecord(id="token-soldier", name="Soldier", type_line="Token Creature", layout="token"))
    repo.create(CardRecord(id="token-treasure", name="Treasure", type_line="Token Artifact", layout="token"))
    return repo


@pytest.fixture
def decks(db, cards):
    """Two 15-card decks; the second lists its commander in the library too."""
    repo = DeckRepository(db)
    deck_a = repo.create(
        "Atraxa Superfriends",
        [(card_id, 1) for card_id in LIBRARY_CARDS] + [("forest", 5)],
        commander_ids=["cmd-atraxa"],
        deck_id="deck-a",
    )
    deck_b = repo.create(
        "Krenko Goblins",
        [(card_id, 1) for card_id in LIBRARY_CARDS] + [("forest", 5), ("cmd-krenko", 1)],
        commander_ids=["cmd-krenko"],
        deck_id="deck-b",
    )
    return deck_a, deck_b


@pytest.fixture
def token_catalog(cards):
    return TokenCatalog.from_repository(cards)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def store(db):
    return ObjectStore(db)


@pytest.fixture
def handlers(db, token_catalog, rng):
    return ActionHandlers(db, token_catalog, rng)


@pytest.fixture
def dispatcher(db, handlers):
    return ActionDispatcher(db, handlers)


@pytest.fixture
def lifecycle(db, rng):
    return SessionLifecycle(db, rng)


@pytest.fixture
def blank_session(db, decks):
    """A two-seat session with a state row but no objects."""
    session = SessionRepository(db).create(["deck-a", "deck-b"], name="Blank table")
    GameStateRepository(db).create(session.id)
    return session.id


@pytest.fixture
def make_library(store):
    """Put cards into a seat's library in the given top-to-bottom order; returns object ids."""

    def _make(session_id, seat, card_ids):
        return [
            store.create(session_id, seat, Zone.LIBRARY, card_id, order=i).id
            for i, card_id in enumerate(card_ids)
        ]

    return _make


@pytest.fixture
def dealt_session(db, decks, lifecycle):
    """A two-seat session dealt through the lifecycle."""
    session = SessionRepository(db).create(["deck-a", "deck-b"], name="Dealt table")
    lifecycle.initialize(session.id, ["deck-a", "deck-b"])
    return session.id
