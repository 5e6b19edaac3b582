"""Engine error taxonomy.

``InvalidOddsError`` and ``InsufficientDataError`` are the caller's concern and
are never retried. ``PersistenceError`` wraps storage failures; every write the
engine performs is idempotent, so the caller may retry the whole operation.
"""

from .utils.retry import NonRetryableError, RetryableError


class PropEngineError(Exception):
    """Base class for all engine errors."""


class InvalidOddsError(PropEngineError, NonRetryableError, ValueError):
    """A sportsbook price cannot be interpreted as American odds."""

    def __init__(self, price, reason: str = "American odds must be a non-zero integer"):
        self.price = price
        super().__init__(f"Invalid odds {price!r}: {reason}")


class InsufficientDataError(PropEngineError, NonRetryableError):
    """A player has no usable statistics for the requested prop type."""

    def __init__(self, player_id: int, prop_type: str, message: str | None = None):
        self.player_id = player_id
        self.prop_type = prop_type
        super().__init__(
            message or f"No rolling or season averages for player {player_id} ({prop_type})"
        )


class PersistenceError(PropEngineError, RetryableError):
    """The storage layer failed; the operation may be retried."""
