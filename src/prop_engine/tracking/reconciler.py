"""Outcome reconciliation: write actual results onto stored predictions."""

import math
from typing import Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..data.records import ActualStats, StatRecord, stat_category
from ..database.models import (
    RESULT_OVER,
    RESULT_PUSH,
    RESULT_UNDER,
    Prediction,
    utcnow,
)
from ..database.session import get_session
from ..exceptions import PersistenceError
from ..utils.logging import get_logger

logger = get_logger(__name__)


def classify_result(actual_value: float, line_value: float) -> str:
    """over if the actual beats the line, under if it falls short, push on the line."""
    if actual_value > line_value:
        return RESULT_OVER
    if actual_value < line_value:
        return RESULT_UNDER
    return RESULT_PUSH


def actual_stat_value(stats: ActualStats, prop_type: str) -> Optional[float]:
    """Read the value a prop settles on from a StatRecord or a plain mapping.

    Returns None when the category was not recorded (e.g. did not play).
    """
    category = stat_category(prop_type)
    if isinstance(stats, StatRecord):
        value = stats.value(category)
    else:
        value = stats.get(prop_type, stats.get(category))

    if value is None:
        return None
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Non-finite actual value {value!r} for {prop_type}")
    return value


class OutcomeReconciler:
    """Owner of the outcome fields on Prediction rows."""

    def reconcile(
        self,
        game_id: int,
        actual_stats_by_player: Mapping[int, ActualStats],
        force: bool = False,
    ) -> int:
        """
        Classify every open prediction for a finished game.

        Players missing from ``actual_stats_by_player`` are skipped and stay
        unreconciled. A failure on one row is logged and does not stop the rest.

        Args:
            game_id: Finished game
            actual_stats_by_player: Final stats keyed by player id
            force: Also re-apply results to already reconciled predictions

        Returns:
            Number of predictions updated

        Raises:
            PersistenceError: If the batch cannot be loaded or committed
        """
        updated = skipped = failed = 0

        try:
            with get_session() as session:
                stmt = select(Prediction).where(Prediction.game_id == game_id).order_by(Prediction.id)
                if not force:
                    stmt = stmt.where(Prediction.actual_result.is_(None))
                predictions = list(session.execute(stmt).scalars())
                reconciled_at = utcnow()

                for prediction in predictions:
                    stats = actual_stats_by_player.get(prediction.player_id)
                    if stats is None:
                        stats = actual_stats_by_player.get(str(prediction.player_id))
                    if stats is None:
                        skipped += 1
                        continue

                    try:
                        actual = actual_stat_value(stats, prediction.prop_type)
                    except ValueError as e:
                        failed += 1
                        logger.warning(f"Prediction {prediction.id}: cannot read actual value: {e}")
                        continue

                    if actual is None:
                        skipped += 1
                        continue

                    try:
                        with session.begin_nested():
                            prediction.actual_value = actual
                            prediction.actual_result = classify_result(actual, prediction.line_value)
                            prediction.reconciled_at = reconciled_at
                    except SQLAlchemyError as e:
                        failed += 1
                        logger.error(f"Prediction {prediction.id}: reconciliation write failed: {e}")
                        continue

                    updated += 1
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to reconcile game {game_id}: {e}") from e

        logger.info(
            f"Reconciled game {game_id}: {updated} updated, {skipped} skipped, {failed} failed"
        )
        return updated
