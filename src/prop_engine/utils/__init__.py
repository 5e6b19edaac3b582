"""Utility modules for the prop engine."""

from .logging import get_logger, setup_logging
from .retry import retry_call, retry_with_backoff, RetryableError, NonRetryableError
from .season import current_season, season_for_date

__all__ = [
    "get_logger",
    "setup_logging",
    "retry_call",
    "retry_with_backoff",
    "RetryableError",
    "NonRetryableError",
    "current_season",
    "season_for_date",
]
