"""FastAPI backend for the tabletop session engine."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import CORS_ORIGINS, DB_PATH, FRONTEND_URL
from web.api.routes import cards, decks, games, tokens

logger = logging.getLogger(__name__)


def init_database():
    """Open the database and hand it to the session manager."""
    from db import Database
    from web.api.session_manager import session_manager

    # Skip if already initialized
    if session_manager.is_configured:
        logger.info("Database already initialized")
        return

    db = Database(DB_PATH)
    logger.info(f"Database initialized: {DB_PATH}")
    session_manager.configure(db)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - initialize DB on startup."""
    logger.info("Lifespan startup: initializing database")
    init_database()
    yield
    logger.info("Lifespan shutdown")


app = FastAPI(
    title="Tabletop Session API",
    description="API for running multiplayer tabletop card game sessions",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for frontend
cors_origins = list(CORS_ORIGINS)

# Add production frontend URL if set
if FRONTEND_URL:
    cors_origins.append(FRONTEND_URL)

logger.info(f"CORS origins configured: {cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(games.router, prefix="/api")
app.include_router(tokens.router, prefix="/api")
app.include_router(decks.router, prefix="/api")
app.include_router(cards.router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
