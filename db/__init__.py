"""Database module for tabletop game sessions."""

from db.database import (
    ActionRecord,
    ActionRepository,
    CardRecord,
    CardRepository,
    Database,
    DeckRepository,
    GameObjectRecord,
    GameObjectRepository,
    GameStateRepository,
    IndicatorRepository,
    SessionRepository,
)

__all__ = [
    "ActionRecord",
    "ActionRepository",
    "CardRecord",
    "CardRepository",
    "Database",
    "DeckRepository",
    "GameObjectRecord",
    "GameObjectRepository",
    "GameStateRepository",
    "IndicatorRepository",
    "SessionRepository",
]
