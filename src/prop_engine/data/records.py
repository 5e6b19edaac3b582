"""Plain data records exchanged with the stats and odds collaborators."""

from dataclasses import dataclass, field, fields
from datetime import date
from typing import List, Mapping, Optional, Union

# Numeric categories carried on every StatRecord
STAT_CATEGORIES = (
    "points",
    "assists",
    "rebounds",
    "steals",
    "blocks",
    "turnovers",
    "threes",
    "minutes",
    "fgm",
    "fga",
    "fg3a",
    "ftm",
    "fta",
)

# Prop types the scorer can price, mapped to the StatRecord category they read
PROP_TYPES = {
    "points": "points",
    "assists": "assists",
    "rebounds": "rebounds",
    "steals": "steals",
    "blocks": "blocks",
    "turnovers": "turnovers",
    "threes": "threes",
}


def stat_category(prop_type: str) -> str:
    """Return the StatRecord category backing ``prop_type``."""
    try:
        return PROP_TYPES[prop_type]
    except KeyError:
        raise ValueError(
            f"Unknown prop type: {prop_type}. Available: {sorted(PROP_TYPES)}"
        ) from None


@dataclass(frozen=True)
class StatRecord:
    """One player's statistics for a single game."""

    player_id: int
    game_id: int
    game_date: date
    season: Optional[int] = None
    points: Optional[float] = None
    assists: Optional[float] = None
    rebounds: Optional[float] = None
    steals: Optional[float] = None
    blocks: Optional[float] = None
    turnovers: Optional[float] = None
    threes: Optional[float] = None
    minutes: Optional[float] = None
    fgm: Optional[float] = None
    fga: Optional[float] = None
    fg3a: Optional[float] = None
    ftm: Optional[float] = None
    fta: Optional[float] = None

    def value(self, category: str) -> Optional[float]:
        """Raw value for a stat category (None when not recorded)."""
        if category not in STAT_CATEGORIES:
            raise ValueError(f"Unknown stat category: {category}")
        return getattr(self, category)

    @classmethod
    def from_dict(cls, data: Mapping) -> "StatRecord":
        """Build a record from a provider payload, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        game_date = values.get("game_date")
        if isinstance(game_date, str):
            values["game_date"] = date.fromisoformat(game_date[:10])
        return cls(**values)


@dataclass(frozen=True)
class VendorQuote:
    """A single sportsbook's prices for both sides of one prop line."""

    vendor: str
    over_price: Optional[int] = None
    under_price: Optional[int] = None


@dataclass(frozen=True)
class OddsQuote:
    """Best available prices per side for one (game, player, prop type).

    A side no vendor offers is ``None`` for both price and vendor.
    """

    line_value: Optional[float] = None
    best_over_price: Optional[int] = None
    over_vendor: Optional[str] = None
    best_under_price: Optional[int] = None
    under_vendor: Optional[str] = None

    @property
    def has_over(self) -> bool:
        return self.best_over_price is not None

    @property
    def has_under(self) -> bool:
        return self.best_under_price is not None


@dataclass
class PropMarket:
    """A market line offered for one player prop, with every vendor's quote."""

    game_id: int
    player_id: int
    prop_type: str
    line_value: float
    quotes: List[VendorQuote] = field(default_factory=list)
    season: Optional[int] = None


# Per-player actual values handed to the reconciler: either a full StatRecord
# or a plain {category: value} mapping.
ActualStats = Union[StatRecord, Mapping[str, Optional[float]]]
