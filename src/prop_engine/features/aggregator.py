"""Rolling-window and season aggregation of player game logs."""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

import pandas as pd
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..data.records import STAT_CATEGORIES, StatRecord
from ..database.models import WINDOWS, PlayerStatsSnapshot, utcnow
from ..database.session import get_session
from ..database.upsert import upsert
from ..exceptions import PersistenceError
from ..utils.logging import get_logger
from ..utils.season import season_for_date

logger = get_logger(__name__)

SEASON = "season"


def _clean(value) -> Optional[float]:
    """Turn pandas NaN into None so "no data" never reads as zero."""
    if value is None or pd.isna(value):
        return None
    return float(value)


@dataclass
class SnapshotData:
    """Aggregates for one player-season, detached from storage."""

    player_id: int
    season: int
    last_game_id: Optional[int] = None
    last_game_date: Optional[date] = None
    last_game: Dict[str, Optional[float]] = field(default_factory=dict)
    averages: Dict[int, Dict[str, Optional[float]]] = field(default_factory=dict)
    games_counted: Dict[int, int] = field(default_factory=dict)
    season_totals: Dict[str, Optional[float]] = field(default_factory=dict)
    season_averages: Dict[str, Optional[float]] = field(default_factory=dict)
    season_games_played: int = 0

    def average(self, window, category: str) -> Optional[float]:
        """Mean for ``category`` over a window (7/14/30) or the season."""
        if window == SEASON:
            return self.season_averages.get(category)
        return self.averages.get(window, {}).get(category)

    def games(self, window) -> int:
        """Games actually used for a window (7/14/30) or the season."""
        if window == SEASON:
            return self.season_games_played
        return self.games_counted.get(window, 0)

    @property
    def is_empty(self) -> bool:
        return self.season_games_played == 0

    @classmethod
    def from_model(cls, row: PlayerStatsSnapshot) -> "SnapshotData":
        return cls(
            player_id=row.player_id,
            season=row.season,
            last_game_id=row.last_game_id,
            last_game_date=row.last_game_date,
            last_game=dict(row.last_game or {}),
            averages={
                7: dict(row.avg_7 or {}),
                14: dict(row.avg_14 or {}),
                30: dict(row.avg_30 or {}),
            },
            games_counted={
                7: row.games_played_7,
                14: row.games_played_14,
                30: row.games_played_30,
            },
            season_totals=dict(row.season_totals or {}),
            season_averages=dict(row.season_averages or {}),
            season_games_played=row.season_games_played,
        )

    def to_row(self) -> dict:
        """Column values for the player_stats_snapshots table."""
        return {
            "player_id": self.player_id,
            "season": self.season,
            "last_game_id": self.last_game_id,
            "last_game_date": self.last_game_date,
            "last_game": self.last_game,
            "avg_7": self.averages.get(7, {}),
            "avg_14": self.averages.get(14, {}),
            "avg_30": self.averages.get(30, {}),
            "season_totals": self.season_totals,
            "season_averages": self.season_averages,
            "games_played_7": self.games(7),
            "games_played_14": self.games(14),
            "games_played_30": self.games(30),
            "season_games_played": self.season_games_played,
        }


class PerformanceAggregator:
    """Build and persist PlayerStatsSnapshot rows from StatRecords."""

    def __init__(self, windows: Iterable[int] = WINDOWS):
        self.windows = tuple(sorted(windows))

    def _to_frame(self, stat_records: Iterable[StatRecord], season: int) -> pd.DataFrame:
        rows = []
        for record in stat_records:
            record_season = record.season if record.season is not None else season_for_date(record.game_date)
            if record_season != season:
                continue
            row = {"game_id": record.game_id, "game_date": record.game_date}
            row.update({c: record.value(c) for c in STAT_CATEGORIES})
            rows.append(row)

        df = pd.DataFrame(rows, columns=["game_id", "game_date", *STAT_CATEGORIES])
        if df.empty:
            return df

        df[list(STAT_CATEGORIES)] = df[list(STAT_CATEGORIES)].apply(pd.to_numeric, errors="coerce")
        # Game id breaks same-day ties so identical input always yields identical output
        return df.sort_values(["game_date", "game_id"], kind="mergesort").reset_index(drop=True)

    def compute_snapshot(
        self,
        player_id: int,
        season: int,
        stat_records: Iterable[StatRecord],
    ) -> SnapshotData:
        """Aggregate a player's in-season game logs.

        Args:
            player_id: Player identifier
            season: Season the snapshot describes; records from other seasons are ignored
            stat_records: Game logs in any order

        Returns:
            SnapshotData; with no records every average is None and every count 0
        """
        df = self._to_frame(stat_records, season)
        snapshot = SnapshotData(player_id=player_id, season=season)

        if df.empty:
            for window in self.windows:
                snapshot.averages[window] = {c: None for c in STAT_CATEGORIES}
                snapshot.games_counted[window] = 0
            snapshot.last_game = {c: None for c in STAT_CATEGORIES}
            snapshot.season_totals = {c: None for c in STAT_CATEGORIES}
            snapshot.season_averages = {c: None for c in STAT_CATEGORIES}
            return snapshot

        stats = df[list(STAT_CATEGORIES)]

        for window in self.windows:
            recent = stats.tail(window)
            snapshot.averages[window] = {c: _clean(v) for c, v in recent.mean().items()}
            snapshot.games_counted[window] = len(recent)

        # min_count=1 keeps an all-missing category at None instead of 0
        snapshot.season_totals = {c: _clean(v) for c, v in stats.sum(min_count=1).items()}
        snapshot.season_averages = {c: _clean(v) for c, v in stats.mean().items()}
        snapshot.season_games_played = len(df)

        last = df.iloc[-1]
        snapshot.last_game_id = int(last["game_id"])
        snapshot.last_game_date = pd.Timestamp(last["game_date"]).date()
        snapshot.last_game = {c: _clean(last[c]) for c in STAT_CATEGORIES}

        return snapshot

    def save_snapshot(self, snapshot: SnapshotData) -> int:
        """Overwrite the stored snapshot for the player-season."""
        values = snapshot.to_row()
        values["updated_at"] = utcnow()
        try:
            with get_session() as session:
                return upsert(
                    session,
                    PlayerStatsSnapshot,
                    values,
                    index_elements=["player_id", "season"],
                    update_columns=[k for k in values if k not in ("player_id", "season")],
                )
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to save snapshot for player {snapshot.player_id} season {snapshot.season}: {e}"
            ) from e

    def refresh(
        self,
        player_id: int,
        season: int,
        stat_records: Iterable[StatRecord],
    ) -> SnapshotData:
        """Recompute a player's snapshot from fresh game logs and store it."""
        snapshot = self.compute_snapshot(player_id, season, stat_records)
        self.save_snapshot(snapshot)
        logger.debug(
            f"Snapshot player={player_id} season={season}: "
            f"{snapshot.season_games_played} games "
            f"(7g={snapshot.games(7)}, 14g={snapshot.games(14)}, 30g={snapshot.games(30)})"
        )
        return snapshot

    def get_snapshot(self, player_id: int, season: int) -> Optional[SnapshotData]:
        """Load the stored snapshot, or None if the player was never aggregated."""
        with get_session() as session:
            row = session.execute(
                select(PlayerStatsSnapshot).where(
                    PlayerStatsSnapshot.player_id == player_id,
                    PlayerStatsSnapshot.season == season,
                )
            ).scalar_one_or_none()
            return SnapshotData.from_model(row) if row else None

    def list_snapshots(self, season: Optional[int] = None) -> List[SnapshotData]:
        """All stored snapshots, optionally for one season, by player id."""
        with get_session() as session:
            stmt = select(PlayerStatsSnapshot).order_by(
                PlayerStatsSnapshot.season, PlayerStatsSnapshot.player_id
            )
            if season is not None:
                stmt = stmt.where(PlayerStatsSnapshot.season == season)
            return [SnapshotData.from_model(row) for row in session.execute(stmt).scalars()]
