"""Prediction scorer: weighted rolling averages vs. the market line.

The point estimate is a weighted blend of the 7/14/30-game and season
averages. Its distance from the line is mapped to an over probability by a
pluggable strategy, clamped so a thin sample can never claim certainty, and
compared with the implied probability of the best available price.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional, Tuple, Union

from ..config import get_settings
from ..data.records import OddsQuote, stat_category
from ..exceptions import InsufficientDataError
from ..features.aggregator import SEASON, SnapshotData
from ..utils.logging import get_logger
from ..utils.odds import american_odds_to_probability
from .probability import ProbabilityStrategy, get_strategy

logger = get_logger(__name__)

Window = Union[int, str]


@dataclass
class ScoredPrediction:
    """An unsaved prediction: every scoring field plus its frozen inputs."""

    game_id: int
    player_id: int
    prop_type: str
    prediction_date: date
    line_value: float
    point_estimate: float
    predicted_prob_over: float
    predicted_prob_under: float
    confidence_score: float
    model_version: str
    best_over_odds: Optional[int] = None
    best_under_odds: Optional[int] = None
    over_vendor: Optional[str] = None
    under_vendor: Optional[str] = None
    implied_prob_over: Optional[float] = None
    implied_prob_under: Optional[float] = None
    predicted_value_over: Optional[float] = None
    predicted_value_under: Optional[float] = None
    player_avg_7: Optional[float] = None
    player_avg_14: Optional[float] = None
    player_avg_30: Optional[float] = None
    player_season_avg: Optional[float] = None
    games_counted_7: int = 0
    games_counted_14: int = 0
    games_counted_30: int = 0
    season_games_played: int = 0
    scoring_inputs: Dict = field(default_factory=dict)

    @property
    def key(self) -> Tuple[int, int, str, date]:
        return (self.game_id, self.player_id, self.prop_type, self.prediction_date)

    @property
    def best_value(self) -> Optional[float]:
        values = [v for v in (self.predicted_value_over, self.predicted_value_under) if v is not None]
        return max(values) if values else None

    def to_row(self) -> Dict:
        """Column values for the predictions table."""
        return {
            "game_id": self.game_id,
            "player_id": self.player_id,
            "prop_type": self.prop_type,
            "prediction_date": self.prediction_date,
            "line_value": self.line_value,
            "best_over_odds": self.best_over_odds,
            "best_under_odds": self.best_under_odds,
            "over_vendor": self.over_vendor,
            "under_vendor": self.under_vendor,
            "implied_prob_over": self.implied_prob_over,
            "implied_prob_under": self.implied_prob_under,
            "predicted_prob_over": self.predicted_prob_over,
            "predicted_prob_under": self.predicted_prob_under,
            "predicted_value_over": self.predicted_value_over,
            "predicted_value_under": self.predicted_value_under,
            "confidence_score": self.confidence_score,
            "model_version": self.model_version,
            "point_estimate": self.point_estimate,
            "player_avg_7": self.player_avg_7,
            "player_avg_14": self.player_avg_14,
            "player_avg_30": self.player_avg_30,
            "player_season_avg": self.player_season_avg,
            "games_counted_7": self.games_counted_7,
            "games_counted_14": self.games_counted_14,
            "games_counted_30": self.games_counted_30,
            "season_games_played": self.season_games_played,
            "scoring_inputs": self.scoring_inputs,
        }


class PredictionScorer:
    """Turn a stats snapshot and a market quote into a ScoredPrediction."""

    # Weight per window, renormalized over the windows that have data
    WEIGHTS: Dict[Window, float] = {7: 0.4, 14: 0.3, 30: 0.2, SEASON: 0.1}

    # Typical single-game variance by prop type (standard deviation squared)
    PROP_TYPE_VARIANCE: Dict[str, float] = {
        "points": 36.0,
        "rebounds": 9.0,
        "assists": 6.25,
        "threes": 1.69,
        "steals": 1.0,
        "blocks": 1.0,
        "turnovers": 1.44,
    }

    # Widest first; confidence reads the first window with data
    CONFIDENCE_ORDER: Tuple[Window, ...] = (SEASON, 30, 14, 7)

    def __init__(
        self,
        model_version: Optional[str] = None,
        strategy: Union[str, ProbabilityStrategy, None] = None,
        variance: Optional[float] = None,
        min_probability: Optional[float] = None,
        max_probability: Optional[float] = None,
        confidence_games: Optional[int] = None,
    ):
        settings = get_settings()
        self.model_version = model_version or settings.model_version
        strategy = strategy or settings.probability_strategy
        if isinstance(strategy, str):
            self.strategy_name = strategy
            self.strategy = get_strategy(strategy)
        else:
            self.strategy_name = getattr(strategy, "__name__", type(strategy).__name__)
            self.strategy = strategy
        self.variance = variance if variance is not None else settings.prediction_variance
        self.min_probability = settings.min_probability if min_probability is None else min_probability
        self.max_probability = settings.max_probability if max_probability is None else max_probability
        self.confidence_games = confidence_games or settings.confidence_games

        if self.variance is not None and self.variance <= 0:
            raise ValueError("variance must be positive")
        if not 0 <= self.min_probability < self.max_probability <= 1:
            raise ValueError("probability bounds must satisfy 0 <= min < max <= 1")

    def variance_for(self, prop_type: str) -> float:
        """Variance used for a prop type (global override wins)."""
        if self.variance is not None:
            return self.variance
        return self.PROP_TYPE_VARIANCE.get(prop_type, 4.0)

    def point_estimate(
        self, snapshot: SnapshotData, prop_type: str
    ) -> Tuple[float, Dict[Window, Optional[float]], Dict[Window, float]]:
        """Weighted estimate over whichever averages are present.

        Returns:
            (estimate, averages by window, weights actually applied)

        Raises:
            InsufficientDataError: If all four averages are absent
        """
        category = stat_category(prop_type)
        averages = {w: snapshot.average(w, category) for w in self.WEIGHTS}
        present = {w: a for w, a in averages.items() if a is not None}

        if not present:
            raise InsufficientDataError(snapshot.player_id, prop_type)

        total_weight = sum(self.WEIGHTS[w] for w in present)
        applied = {w: self.WEIGHTS[w] / total_weight for w in present}
        estimate = sum(present[w] * applied[w] for w in present)
        return estimate, averages, applied

    def probability_over(self, delta: float, prop_type: str) -> float:
        """Clamped over probability for ``estimate - line``."""
        raw = self.strategy(delta, self.variance_for(prop_type))
        return min(max(raw, self.min_probability), self.max_probability)

    def confidence(self, snapshot: SnapshotData, averages: Dict[Window, Optional[float]]) -> float:
        """Sample-size confidence from the widest window that has data."""
        for window in self.CONFIDENCE_ORDER:
            if averages.get(window) is not None:
                return min(1.0, snapshot.games(window) / self.confidence_games)
        return 0.0

    def score(
        self,
        snapshot: SnapshotData,
        prop_type: str,
        line_value: float,
        odds_quote: OddsQuote,
        game_id: int,
        prediction_date: Optional[date] = None,
    ) -> ScoredPrediction:
        """
        Score one prop outcome.

        Args:
            snapshot: Player aggregates to score from
            prop_type: Prop category (points, assists, ...)
            line_value: Market line
            odds_quote: Best prices per side (a side may be missing)
            game_id: Game the prop belongs to
            prediction_date: Date stamped on the prediction (default: today)

        Returns:
            Unsaved ScoredPrediction

        Raises:
            InsufficientDataError: If the player has no usable averages
            InvalidOddsError: If a best price is malformed
        """
        line_value = float(line_value)
        if not math.isfinite(line_value):
            raise ValueError(f"line_value must be finite, got {line_value}")

        estimate, averages, applied = self.point_estimate(snapshot, prop_type)

        prob_over = self.probability_over(estimate - line_value, prop_type)
        prob_under = 1.0 - prob_over

        implied_over = implied_under = None
        value_over = value_under = None
        if odds_quote.best_over_price is not None:
            implied_over = american_odds_to_probability(odds_quote.best_over_price)
            value_over = prob_over - implied_over
        if odds_quote.best_under_price is not None:
            implied_under = american_odds_to_probability(odds_quote.best_under_price)
            value_under = prob_under - implied_under

        confidence = self.confidence(snapshot, averages)
        variance = self.variance_for(prop_type)

        prediction = ScoredPrediction(
            game_id=game_id,
            player_id=snapshot.player_id,
            prop_type=prop_type,
            prediction_date=prediction_date or date.today(),
            line_value=line_value,
            point_estimate=estimate,
            predicted_prob_over=prob_over,
            predicted_prob_under=prob_under,
            confidence_score=confidence,
            model_version=self.model_version,
            best_over_odds=odds_quote.best_over_price,
            best_under_odds=odds_quote.best_under_price,
            over_vendor=odds_quote.over_vendor,
            under_vendor=odds_quote.under_vendor,
            implied_prob_over=implied_over,
            implied_prob_under=implied_under,
            predicted_value_over=value_over,
            predicted_value_under=value_under,
            player_avg_7=averages[7],
            player_avg_14=averages[14],
            player_avg_30=averages[30],
            player_season_avg=averages[SEASON],
            games_counted_7=snapshot.games(7),
            games_counted_14=snapshot.games(14),
            games_counted_30=snapshot.games(30),
            season_games_played=snapshot.games(SEASON),
            scoring_inputs={
                "season": snapshot.season,
                "weights": {str(w): weight for w, weight in applied.items()},
                "variance": variance,
                "strategy": self.strategy_name,
                "probability_bounds": [self.min_probability, self.max_probability],
                "confidence_games": self.confidence_games,
            },
        )

        logger.debug(
            f"Scored player={snapshot.player_id} game={game_id} {prop_type} {line_value}: "
            f"est={estimate:.2f} p_over={prob_over:.3f} conf={confidence:.2f}"
        )
        return prediction
