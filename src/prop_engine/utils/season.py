"""NBA season helpers.

A season is identified by the calendar year it starts in: the 2024-25
season is 2024.
"""

from datetime import date, datetime
from typing import Optional, Union

from ..config import get_settings

# First month of a new season (regular season tips off in October)
SEASON_START_MONTH = 10


def season_for_date(day: Union[date, datetime]) -> int:
    """Return the season a game played on ``day`` belongs to."""
    if day.month >= SEASON_START_MONTH:
        return day.year
    return day.year - 1


def current_season(as_of: Optional[date] = None) -> int:
    """Season in effect today, or the configured override when no date is given."""
    if as_of is not None:
        return season_for_date(as_of)
    return get_settings().current_season
