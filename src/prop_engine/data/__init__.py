"""Collaborator records and provider interfaces."""

from .records import (
    STAT_CATEGORIES,
    PROP_TYPES,
    ActualStats,
    OddsQuote,
    PropMarket,
    StatRecord,
    VendorQuote,
    stat_category,
)
from .providers import OddsProvider, StatsProvider
from .file_provider import JsonFileProvider

__all__ = [
    "STAT_CATEGORIES",
    "PROP_TYPES",
    "ActualStats",
    "OddsQuote",
    "PropMarket",
    "StatRecord",
    "VendorQuote",
    "stat_category",
    "OddsProvider",
    "StatsProvider",
    "JsonFileProvider",
]
