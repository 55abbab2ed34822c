"""
Configuration for the tabletop session engine.

Deployment settings come from environment variables; everything else is a
game constant shared by the engine and the API.
"""

import os
from pathlib import Path

# =============================================================================
# Deployment
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent

# SQLite database file holding catalogs and sessions
DB_PATH = Path(os.environ.get("TABLETOP_DB_PATH", PROJECT_ROOT / "tabletop.db"))

# Server bind settings used by run_server.py
HOST = os.environ.get("TABLETOP_HOST", "127.0.0.1")
PORT = int(os.environ.get("TABLETOP_PORT", "8000"))
RELOAD = os.environ.get("TABLETOP_RELOAD", "false").lower() in ("1", "true", "yes")
LOG_LEVEL = os.environ.get("TABLETOP_LOG_LEVEL", "info")

# Extra CORS origin for a deployed frontend
FRONTEND_URL = os.environ.get("FRONTEND_URL")

CORS_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
]

# =============================================================================
# Game Configuration
# =============================================================================

MAX_PLAYERS = 4

DEFAULT_LIFE = 40

OPENING_HAND_SIZE = 7

# Number of riffle passes per shuffle
SHUFFLE_PASSES = 3

# Each token copy is nudged this far (on both axes) from the previous one
TOKEN_OFFSET_STEP = 5

# Where cast cards land when the client gives no position
DEFAULT_BATTLEFIELD_POSITION = {"x": 50, "y": 50}

DEFAULT_INDICATOR_COLOR = "red"

# =============================================================================
# Audit Log and Catalog Lookups
# =============================================================================

DEFAULT_AUDIT_PAGE_SIZE = 50
MAX_AUDIT_PAGE_SIZE = 200

# Card name autocomplete
CARD_SEARCH_LIMIT = 20
MAX_CARD_SEARCH_LIMIT = 100
