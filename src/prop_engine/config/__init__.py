"""Configuration module.

Usage:
    from prop_engine.config import get_settings

    settings = get_settings()
    print(settings.model_version)
    print(settings.value_bet_threshold)
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
