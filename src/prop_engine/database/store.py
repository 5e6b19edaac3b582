"""Prediction persistence and query surface."""

from datetime import date
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError

from ..config import get_settings
from ..exceptions import PersistenceError
from ..utils.logging import get_logger
from .models import Prediction, utcnow
from .session import get_session
from .upsert import upsert

if TYPE_CHECKING:
    from ..ml.scorer import ScoredPrediction

logger = get_logger(__name__)

# Natural key enforced by uq_prediction_key
PREDICTION_KEY = ("game_id", "player_id", "prop_type", "prediction_date")

# Reconciler-owned columns the store never writes on update
OUTCOME_FIELDS = ("actual_value", "actual_result", "reconciled_at")


def _sort_key(prediction: Prediction):
    """Best-side value desc (missing last), confidence desc, id asc."""
    best = prediction.best_value
    return (
        best is None,
        -(best or 0.0),
        -(prediction.confidence_score or 0.0),
        prediction.id,
    )


class PredictionStore:
    """Idempotent writes and filtered reads of Prediction rows."""

    def upsert(self, prediction: "ScoredPrediction") -> int:
        """
        Insert a prediction or overwrite the scoring fields of an existing one.

        The key is (game_id, player_id, prop_type, prediction_date). Outcome
        fields and created_at are never touched, so re-scoring a reconciled
        prediction keeps its result.

        Returns:
            Prediction id

        Raises:
            PersistenceError: On any storage-layer failure
        """
        values = prediction.to_row()
        now = utcnow()
        values["created_at"] = now
        values["updated_at"] = now

        update_columns = [
            column for column in values
            if column not in PREDICTION_KEY
            and column not in OUTCOME_FIELDS
            and column != "created_at"
        ]

        try:
            with get_session() as session:
                prediction_id = upsert(
                    session,
                    Prediction,
                    values,
                    index_elements=PREDICTION_KEY,
                    update_columns=update_columns,
                )
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to upsert prediction {prediction.key}: {e}"
            ) from e

        logger.debug(f"Upserted prediction {prediction_id} for {prediction.key}")
        return prediction_id

    def get(self, prediction_id: int) -> Optional[Prediction]:
        with get_session() as session:
            return session.get(Prediction, prediction_id)

    def query(
        self,
        game_id: Optional[int] = None,
        player_id: Optional[int] = None,
        prop_type: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        min_value: Optional[float] = None,
        min_confidence: Optional[float] = None,
        model_version: Optional[str] = None,
        unreconciled_only: bool = False,
        limit: Optional[int] = None,
    ) -> List[Prediction]:
        """
        Fetch predictions matching every given filter.

        ``min_value`` keeps rows where either side's value reaches the
        threshold; rows without any priced side are dropped by it.

        Returns:
            Predictions sorted by best-side value desc, confidence desc, id asc
        """
        stmt = select(Prediction)
        if game_id is not None:
            stmt = stmt.where(Prediction.game_id == game_id)
        if player_id is not None:
            stmt = stmt.where(Prediction.player_id == player_id)
        if prop_type is not None:
            stmt = stmt.where(Prediction.prop_type == prop_type)
        if date_from is not None:
            stmt = stmt.where(Prediction.prediction_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Prediction.prediction_date <= date_to)
        if min_value is not None:
            stmt = stmt.where(or_(
                Prediction.predicted_value_over >= min_value,
                Prediction.predicted_value_under >= min_value,
            ))
        if min_confidence is not None:
            stmt = stmt.where(Prediction.confidence_score >= min_confidence)
        if model_version is not None:
            stmt = stmt.where(Prediction.model_version == model_version)
        if unreconciled_only:
            stmt = stmt.where(Prediction.actual_result.is_(None))

        try:
            with get_session() as session:
                rows = list(session.execute(stmt).scalars())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to query predictions: {e}") from e

        rows.sort(key=_sort_key)
        return rows[:limit] if limit is not None else rows

    def for_game(
        self,
        game_id: int,
        prop_type: Optional[str] = None,
        min_value: Optional[float] = None,
        min_confidence: Optional[float] = None,
    ) -> List[Prediction]:
        """All predictions for one game, optionally filtered."""
        return self.query(
            game_id=game_id,
            prop_type=prop_type,
            min_value=min_value,
            min_confidence=min_confidence,
        )

    def value_bets(
        self,
        min_value: Optional[float] = None,
        min_confidence: Optional[float] = None,
        prop_type: Optional[str] = None,
        date_from: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[Prediction]:
        """Current (unreconciled) predictions above value and confidence thresholds."""
        settings = get_settings()
        return self.query(
            prop_type=prop_type,
            date_from=date_from,
            min_value=settings.value_bet_threshold if min_value is None else min_value,
            min_confidence=settings.default_min_confidence if min_confidence is None else min_confidence,
            unreconciled_only=True,
            limit=limit,
        )
