"""
Tagged failures raised by the engine.
The transport layer maps each kind to a protocol status; the engine never does.
"""


class EngineError(Exception):
    """Base class. kind is a stable tag for callers that do not want to switch on type."""
    kind = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(EngineError):
    """Malformed or missing input, detected before any store access."""
    kind = "validation_failed"


class NotFound(EngineError):
    """A user or game id/username did not resolve to a record."""
    kind = "not_found"


class Conflict(EngineError):
    """Adding a player already in the game, or removing one who is not."""
    kind = "conflict"


class StoreFailure(EngineError):
    """The underlying collection call failed. Surfaced, never retried."""
    kind = "store_failure"
