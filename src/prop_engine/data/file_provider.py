"""JSON-file backed stats and odds provider.

Lets the CLI drive full scoring and reconciliation cycles from a snapshot
exported by an upstream scraper. Expected layout::

    {
      "stats": [{"player_id": 1, "game_id": 10, "game_date": "2024-11-02",
                 "points": 27, "assists": 5, ...}],
      "final_games": [10],
      "markets": [{"game_id": 11, "player_id": 1, "prop_type": "points",
                   "line_value": 24.5, "game_date": "2024-11-05",
                   "quotes": [{"vendor": "draftkings", "over_price": -110,
                               "under_price": -110}]}]
    }
"""

import json
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from ..utils.logging import get_logger
from ..utils.season import season_for_date
from .providers import OddsProvider, StatsProvider
from .records import ActualStats, PropMarket, StatRecord, VendorQuote

logger = get_logger(__name__)


class JsonFileProvider(StatsProvider, OddsProvider):
    """Serve stats, final games and prop markets from one JSON document."""

    def __init__(self, payload: dict):
        self.records = [StatRecord.from_dict(row) for row in payload.get("stats", [])]
        self.final_games = {int(g) for g in payload.get("final_games", [])}
        self._markets = payload.get("markets", [])

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "JsonFileProvider":
        path = Path(path)
        with path.open(encoding="utf-8") as f:
            payload = json.load(f)
        provider = cls(payload)
        logger.info(
            f"Loaded {len(provider.records)} stat lines and "
            f"{len(provider._markets)} markets from {path}"
        )
        return provider

    def _record_season(self, record: StatRecord) -> int:
        if record.season is not None:
            return record.season
        return season_for_date(record.game_date)

    def get_player_stats(
        self, player_id: int, season: int, before: Optional[date] = None
    ) -> List[StatRecord]:
        return [
            r for r in self.records
            if r.player_id == player_id
            and self._record_season(r) == season
            and (before is None or r.game_date < before)
        ]

    def get_game_stats(self, game_id: int) -> Dict[int, ActualStats]:
        return {r.player_id: r for r in self.records if r.game_id == game_id}

    def is_game_final(self, game_id: int) -> bool:
        return game_id in self.final_games

    def get_prop_markets(self, prediction_date: date) -> Iterable[PropMarket]:
        for index, row in enumerate(self._markets):
            try:
                market = self._build_market(row, prediction_date)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed market #{index}: {e!r}")
                continue
            if market is not None:
                yield market

    @staticmethod
    def _build_market(row: dict, prediction_date: date) -> Optional[PropMarket]:
        """Parse one market row; None when the game is already in the past."""
        game_date = row.get("game_date")
        if game_date and date.fromisoformat(game_date[:10]) < prediction_date:
            return None

        season = row.get("season")
        if season is None and game_date:
            season = season_for_date(date.fromisoformat(game_date[:10]))

        return PropMarket(
            game_id=int(row["game_id"]),
            player_id=int(row["player_id"]),
            prop_type=row["prop_type"],
            line_value=float(row["line_value"]),
            quotes=[
                VendorQuote(
                    vendor=q["vendor"],
                    over_price=q.get("over_price"),
                    under_price=q.get("under_price"),
                )
                for q in row.get("quotes", [])
            ],
            season=season,
        )
