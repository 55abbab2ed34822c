"""Core infrastructure for the tabletop session engine."""

from core.errors import (
    GameEngineError,
    InvalidMetadataError,
    InvalidStateError,
    NotFoundError,
    UpstreamError,
)

__all__ = [
    "GameEngineError",
    "InvalidMetadataError",
    "InvalidStateError",
    "NotFoundError",
    "UpstreamError",
]
