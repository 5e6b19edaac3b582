"""Interfaces the engine expects from its data collaborators.

The engine never talks to the network itself. Concrete providers own their
own timeouts and retries and hand over already-deduplicated records.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Iterable, List, Optional

from .records import ActualStats, PropMarket, StatRecord


class StatsProvider(ABC):
    """Source of player game logs and final box scores."""

    @abstractmethod
    def get_player_stats(
        self, player_id: int, season: int, before: Optional[date] = None
    ) -> List[StatRecord]:
        """Game logs for one player in one season, optionally only games before a date."""

    @abstractmethod
    def get_game_stats(self, game_id: int) -> Dict[int, ActualStats]:
        """Final statistics for every player who appeared in a game."""

    @abstractmethod
    def is_game_final(self, game_id: int) -> bool:
        """Whether the game's outcome is available for reconciliation."""


class OddsProvider(ABC):
    """Source of current prop lines and per-vendor prices."""

    @abstractmethod
    def get_prop_markets(self, prediction_date: date) -> Iterable[PropMarket]:
        """Prop markets open for games on or after ``prediction_date``."""
