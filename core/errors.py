"""Error taxonomy for the game-session engine."""

from __future__ import annotations

from typing import Any


class GameEngineError(Exception):
    """Base class for errors raised while reading or mutating a session.

    Attributes:
        status_code: HTTP status the API layer reports for this error.
    """

    status_code: int = 500

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an error response body."""
        body: dict[str, Any] = {"error": type(self).__name__, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(GameEngineError):
    """A session, object, card, deck or indicator id did not resolve."""

    status_code = 404


class InvalidMetadataError(GameEngineError):
    """Required action fields are missing or malformed."""

    status_code = 400


class InvalidStateError(GameEngineError):
    """The action is well-formed but the current state does not allow it."""

    status_code = 409


class UpstreamError(GameEngineError):
    """The store failed (connection loss, constraint or query error)."""

    status_code = 503
