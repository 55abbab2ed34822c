"""Tabletop game-session engine."""

from tabletop_engine.actions import ActionKind, PendingAction, parse_metadata
from tabletop_engine.dispatcher import ActionDispatcher
from tabletop_engine.handlers import ActionHandlers
from tabletop_engine.lifecycle import SessionLifecycle
from tabletop_engine.shuffle import riffle_shuffle, shuffle_library
from tabletop_engine.visibility import VisibilityProjector, project_state
from tabletop_engine.zones import ObjectStore, Zone

__all__ = [
    "ActionKind",
    "PendingAction",
    "parse_metadata",
    "ActionDispatcher",
    "ActionHandlers",
    "SessionLifecycle",
    "riffle_shuffle",
    "shuffle_library",
    "VisibilityProjector",
    "project_state",
    "ObjectStore",
    "Zone",
]
