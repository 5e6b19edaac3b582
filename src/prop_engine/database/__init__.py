"""Database models and session management.

The prediction store lives in ``prop_engine.database.store``.
"""

from .models import (
    RESULT_OVER,
    RESULT_PUSH,
    RESULT_UNDER,
    WINDOWS,
    Base,
    ModelPerformanceMetric,
    PlayerStatsSnapshot,
    Prediction,
)
from .session import configure_database, get_engine, get_session, init_db

__all__ = [
    "RESULT_OVER",
    "RESULT_PUSH",
    "RESULT_UNDER",
    "WINDOWS",
    "Base",
    "ModelPerformanceMetric",
    "PlayerStatsSnapshot",
    "Prediction",
    "configure_database",
    "get_engine",
    "get_session",
    "init_db",
]
