"""Odds conversion and best-price selection.

American odds: a positive price is the profit on a 100 stake, a negative
price is the stake needed to win 100. Zero has no meaning in this convention.
"""

import math
from numbers import Integral
from typing import Iterable, Optional, Tuple

from ..data.records import OddsQuote, VendorQuote
from ..exceptions import InvalidOddsError


def _validate_price(price) -> int:
    """Return ``price`` as an int, rejecting zero and non-integral values."""
    if isinstance(price, bool):
        raise InvalidOddsError(price, "boolean is not a price")
    if isinstance(price, Integral):
        value = int(price)
    elif isinstance(price, float) and math.isfinite(price) and price.is_integer():
        value = int(price)
    else:
        raise InvalidOddsError(price)
    if value == 0:
        raise InvalidOddsError(price, "zero is undefined in American odds")
    return value


def american_odds_to_probability(price: int) -> float:
    """Convert American odds to the implied probability (vig included).

    +150 -> 100 / 250 = 0.40
    -110 -> 110 / 210 = 0.5238
    """
    value = _validate_price(price)
    if value > 0:
        return 100 / (value + 100)
    return abs(value) / (abs(value) + 100)


def american_to_decimal(price: int) -> float:
    """Convert American odds to decimal odds (stake included)."""
    value = _validate_price(price)
    if value > 0:
        return (value / 100) + 1
    return (100 / abs(value)) + 1


def format_american_odds(price: Optional[int]) -> str:
    """Render a price the way sportsbooks display it (+150, -110, N/A)."""
    if price is None:
        return "N/A"
    return f"+{price}" if price > 0 else str(price)


def _best_side(
    quotes: Iterable[VendorQuote], attr: str
) -> Tuple[Optional[int], Optional[str]]:
    """Pick the price with the lowest implied probability for one side.

    Strict comparison keeps the first vendor on ties.
    """
    best_price = None
    best_vendor = None
    best_prob = None

    for quote in quotes:
        price = getattr(quote, attr)
        if price is None:
            continue
        prob = american_odds_to_probability(price)
        if best_prob is None or prob < best_prob:
            best_price, best_vendor, best_prob = int(price), quote.vendor, prob

    return best_price, best_vendor


def select_best_quote(
    quotes: Iterable[VendorQuote],
    line_value: Optional[float] = None,
) -> OddsQuote:
    """Keep only the most bettor-favorable price per side across vendors.

    Each side is chosen independently, so the best over and best under may
    come from different books. Sides nobody offers stay ``None``.

    Raises:
        InvalidOddsError: If any offered price is malformed
    """
    quotes = list(quotes)
    over_price, over_vendor = _best_side(quotes, "over_price")
    under_price, under_vendor = _best_side(quotes, "under_price")

    return OddsQuote(
        line_value=line_value,
        best_over_price=over_price,
        over_vendor=over_vendor,
        best_under_price=under_price,
        under_vendor=under_vendor,
    )
