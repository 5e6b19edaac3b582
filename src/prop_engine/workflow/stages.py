"""Workflow stages for the prop engine."""

from abc import ABC, abstractmethod
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..config import get_settings
from ..data.providers import OddsProvider, StatsProvider
from ..data.records import PropMarket
from ..database.store import PredictionStore
from ..exceptions import InsufficientDataError, InvalidOddsError, PersistenceError
from ..features.aggregator import PerformanceAggregator
from ..ml.scorer import PredictionScorer
from ..tracking.evaluator import PerformanceEvaluator
from ..tracking.reconciler import OutcomeReconciler
from ..utils import get_logger, retry_with_backoff
from ..utils.odds import select_best_quote

logger = get_logger(__name__)


class StageStatus(Enum):
    """Status of a workflow stage."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageResult:
    """Result of executing a workflow stage."""

    stage_name: str
    status: StageStatus
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Exception] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate duration in seconds."""
        if self.started_at and self.ended_at:
            return (self.ended_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "stage_name": self.stage_name,
            "status": self.status.value,
            "message": self.message,
            "data": self.data,
            "error": str(self.error) if self.error else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds,
        }


class WorkflowStage(ABC):
    """Base class for workflow stages."""

    name: str = "base_stage"
    description: str = "Base workflow stage"

    def __init__(self):
        self.settings = get_settings()
        self.logger = get_logger(f"{__name__}.{self.name}")

    @abstractmethod
    def execute(self, prediction_date: date, **kwargs) -> StageResult:
        """
        Execute the stage.

        Args:
            prediction_date: Day the batch runs for
            **kwargs: Stage-specific arguments (providers, overrides)

        Returns:
            StageResult with execution outcome
        """
        pass

    def _create_result(
        self,
        status: StageStatus,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        error: Optional[Exception] = None,
        started_at: Optional[datetime] = None,
        ended_at: Optional[datetime] = None,
    ) -> StageResult:
        """Helper to create a StageResult."""
        return StageResult(
            stage_name=self.name,
            status=status,
            message=message,
            data=data or {},
            error=error,
            started_at=started_at,
            ended_at=ended_at,
        )

    def _persist(self, func, *args, **kwargs):
        """Call a storage operation, retrying PersistenceError."""
        retry_delay = kwargs.pop("retry_delay", 0.5)
        retrying = retry_with_backoff(
            max_retries=self.settings.persistence_retries,
            initial_delay=retry_delay,
        )
        return retrying(func)(*args, **kwargs)


class ScoringStage(WorkflowStage):
    """Aggregate player stats and score every open prop market."""

    name = "score_props"
    description = "Refresh player snapshots and score prop markets"

    def _score_player(
        self,
        player_id: int,
        season: int,
        markets: List[PropMarket],
        prediction_date: date,
        stats_provider: StatsProvider,
        aggregator: PerformanceAggregator,
        scorer: PredictionScorer,
        store: PredictionStore,
        retry_delay: float,
    ) -> Dict[str, Any]:
        """Snapshot one player, then score each of their markets."""
        counts = {"scored": 0, "skipped": 0, "failed": 0, "prediction_ids": []}

        try:
            # Only games played before the prediction date feed the snapshot
            records = stats_provider.get_player_stats(player_id, season, before=prediction_date)
            snapshot = self._persist(
                aggregator.refresh, player_id, season, records, retry_delay=retry_delay
            )
        except PersistenceError as e:
            self.logger.error(f"Snapshot for player {player_id} could not be saved: {e}")
            counts["failed"] += len(markets)
            return counts
        except Exception as e:
            self.logger.error(f"Snapshot for player {player_id} could not be built: {e}")
            counts["failed"] += len(markets)
            return counts

        for market in markets:
            label = f"player={player_id} game={market.game_id} {market.prop_type} {market.line_value}"
            try:
                quote = select_best_quote(market.quotes, market.line_value)
                prediction = scorer.score(
                    snapshot,
                    market.prop_type,
                    market.line_value,
                    quote,
                    game_id=market.game_id,
                    prediction_date=prediction_date,
                )
                prediction_id = self._persist(store.upsert, prediction, retry_delay=retry_delay)
            except InsufficientDataError as e:
                self.logger.info(f"Skipping {label}: {e}")
                counts["skipped"] += 1
                continue
            except (InvalidOddsError, ValueError) as e:
                self.logger.warning(f"Cannot score {label}: {e}")
                counts["failed"] += 1
                continue
            except PersistenceError as e:
                self.logger.error(f"Cannot store {label}: {e}")
                counts["failed"] += 1
                continue
            except Exception as e:
                self.logger.error(f"Unexpected error scoring {label}: {e}")
                counts["failed"] += 1
                continue

            counts["scored"] += 1
            counts["prediction_ids"].append(prediction_id)

        return counts

    def execute(self, prediction_date: date, **kwargs) -> StageResult:
        """
        Score all prop markets open on the prediction date.

        Args:
            prediction_date: Day the predictions are stamped with
            stats_provider: StatsProvider for game logs (required)
            odds_provider: OddsProvider for prop markets (required)
            max_workers: Worker threads (default: settings.max_workers)
            scorer: PredictionScorer to use (default: built from settings)
            retry_delay: Initial delay between persistence retries (default 0.5)

        Returns:
            StageResult with markets, players, scored, skipped, failed
        """
        started_at = datetime.now()
        stats_provider: Optional[StatsProvider] = kwargs.get("stats_provider")
        odds_provider: Optional[OddsProvider] = kwargs.get("odds_provider")
        max_workers = kwargs.get("max_workers") or self.settings.max_workers
        retry_delay = kwargs.get("retry_delay", 0.5)

        if stats_provider is None or odds_provider is None:
            return self._create_result(
                status=StageStatus.FAILED,
                message="score_props needs both stats_provider and odds_provider",
                started_at=started_at,
                ended_at=datetime.now(),
            )

        self.logger.info(f"Scoring prop markets for {prediction_date}")

        groups: Dict[Tuple[int, int], List[PropMarket]] = defaultdict(list)
        market_count = 0
        feed_error: Optional[Exception] = None
        try:
            for market in odds_provider.get_prop_markets(prediction_date):
                season = market.season if market.season is not None else self.settings.current_season
                groups[(market.player_id, season)].append(market)
                market_count += 1
        except Exception as e:
            # A broken feed cannot be resumed; score what was read before it stopped
            self.logger.error(f"Market feed stopped after {market_count} markets: {e}")
            feed_error = e

        feed_failed = 1 if feed_error else 0
        if not groups:
            if feed_failed:
                return self._create_result(
                    status=StageStatus.FAILED,
                    message="Market feed failed before any market was read",
                    data={"markets": 0, "failed": feed_failed},
                    error=feed_error,
                    started_at=started_at,
                    ended_at=datetime.now(),
                )
            return self._create_result(
                status=StageStatus.SKIPPED,
                message=f"No prop markets open on {prediction_date}",
                data={"markets": 0},
                started_at=started_at,
                ended_at=datetime.now(),
            )

        try:
            aggregator = PerformanceAggregator()
            scorer = kwargs.get("scorer") or PredictionScorer()
            store = PredictionStore()

            totals = {"scored": 0, "skipped": 0, "failed": feed_failed, "prediction_ids": []}
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                futures = {
                    executor.submit(
                        self._score_player,
                        player_id,
                        season,
                        markets,
                        prediction_date,
                        stats_provider,
                        aggregator,
                        scorer,
                        store,
                        retry_delay,
                    ): player_id
                    for (player_id, season), markets in groups.items()
                }
                for future in as_completed(futures):
                    counts = future.result()
                    for key in ("scored", "skipped", "failed"):
                        totals[key] += counts[key]
                    totals["prediction_ids"].extend(counts["prediction_ids"])

        except Exception as e:
            self.logger.error(f"Scoring failed: {e}")
            return self._create_result(
                status=StageStatus.FAILED,
                message=f"Scoring failed: {str(e)}",
                error=e,
                started_at=started_at,
                ended_at=datetime.now(),
            )

        totals["prediction_ids"].sort()
        data = {"markets": market_count, "players": len(groups), **totals}
        message = (
            f"Scored {totals['scored']}/{market_count} markets for {len(groups)} players "
            f"({totals['skipped']} skipped, {totals['failed']} failed)"
        )
        self.logger.info(message)

        status = StageStatus.SUCCESS
        if totals["failed"] and not totals["scored"]:
            status = StageStatus.FAILED

        return self._create_result(
            status=status,
            message=message,
            data=data,
            started_at=started_at,
            ended_at=datetime.now(),
        )


class ReconciliationStage(WorkflowStage):
    """Write actual results onto predictions for finished games."""

    name = "reconcile_outcomes"
    description = "Reconcile open predictions against final box scores"

    def execute(self, prediction_date: date, **kwargs) -> StageResult:
        """
        Reconcile predictions for finished games.

        Args:
            prediction_date: Only predictions made on or before this day are considered
            stats_provider: StatsProvider for final stats (required)
            game_ids: Games to reconcile (default: every game with open predictions)
            force: Re-apply results to reconciled predictions (default False)
            retry_delay: Initial delay between persistence retries (default 0.5)

        Returns:
            StageResult with games_reconciled, games_pending, predictions_updated
        """
        started_at = datetime.now()
        stats_provider: Optional[StatsProvider] = kwargs.get("stats_provider")
        game_ids = kwargs.get("game_ids")
        force = kwargs.get("force", False)
        retry_delay = kwargs.get("retry_delay", 0.5)

        if stats_provider is None:
            return self._create_result(
                status=StageStatus.FAILED,
                message="reconcile_outcomes needs a stats_provider",
                started_at=started_at,
                ended_at=datetime.now(),
            )

        if game_ids is None:
            open_predictions = PredictionStore().query(date_to=prediction_date, unreconciled_only=True)
            game_ids = sorted({p.game_id for p in open_predictions})

        if not game_ids:
            return self._create_result(
                status=StageStatus.SKIPPED,
                message="No games with open predictions",
                started_at=started_at,
                ended_at=datetime.now(),
            )

        reconciler = OutcomeReconciler()
        reconciled, pending, failed = [], [], []
        updated = 0

        for game_id in game_ids:
            try:
                if not stats_provider.is_game_final(game_id):
                    pending.append(game_id)
                    continue
                updated += self._persist(
                    reconciler.reconcile,
                    game_id,
                    stats_provider.get_game_stats(game_id),
                    force=force,
                    retry_delay=retry_delay,
                )
            except PersistenceError as e:
                self.logger.error(f"Game {game_id} could not be reconciled: {e}")
                failed.append(game_id)
                continue
            except Exception as e:
                self.logger.error(f"Final stats for game {game_id} unavailable: {e}")
                failed.append(game_id)
                continue
            reconciled.append(game_id)

        data = {
            "games_reconciled": reconciled,
            "games_pending": pending,
            "games_failed": failed,
            "predictions_updated": updated,
        }
        message = (
            f"Reconciled {len(reconciled)} games ({updated} predictions), "
            f"{len(pending)} pending, {len(failed)} failed"
        )
        self.logger.info(message)

        return self._create_result(
            status=StageStatus.FAILED if failed and not reconciled else StageStatus.SUCCESS,
            message=message,
            data=data,
            started_at=started_at,
            ended_at=datetime.now(),
        )


class EvaluationStage(WorkflowStage):
    """Recompute performance metrics for a trailing period."""

    name = "evaluate_models"
    description = "Recompute model performance metrics"

    def execute(self, prediction_date: date, **kwargs) -> StageResult:
        """
        Evaluate every model version and prop type with predictions in the period.

        Args:
            prediction_date: Default end of the period
            period_start: First day (default: 30 days before period_end)
            period_end: Last day (default: prediction_date)

        Returns:
            StageResult with metrics (list of dicts)
        """
        started_at = datetime.now()
        period_end = kwargs.get("period_end") or prediction_date
        period_start = kwargs.get("period_start") or period_end - timedelta(days=30)

        try:
            metrics = PerformanceEvaluator().evaluate_all(period_start, period_end)
        except Exception as e:
            self.logger.error(f"Evaluation failed: {e}")
            return self._create_result(
                status=StageStatus.FAILED,
                message=f"Evaluation failed: {str(e)}",
                error=e,
                started_at=started_at,
                ended_at=datetime.now(),
            )

        if not metrics:
            return self._create_result(
                status=StageStatus.SKIPPED,
                message=f"No predictions between {period_start} and {period_end}",
                started_at=started_at,
                ended_at=datetime.now(),
            )

        return self._create_result(
            status=StageStatus.SUCCESS,
            message=f"Evaluated {len(metrics)} model/prop combinations for {period_start}..{period_end}",
            data={
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "metrics": [m.to_dict() for m in metrics],
            },
            started_at=started_at,
            ended_at=datetime.now(),
        )


# Registry of all available stages
STAGE_REGISTRY: Dict[str, type] = {
    "score_props": ScoringStage,
    "reconcile_outcomes": ReconciliationStage,
    "evaluate_models": EvaluationStage,
}


def get_stage(name: str) -> WorkflowStage:
    """
    Get a stage instance by name.

    Args:
        name: Stage name

    Returns:
        WorkflowStage instance

    Raises:
        ValueError: If stage name not found
    """
    if name not in STAGE_REGISTRY:
        raise ValueError(f"Unknown stage: {name}. Available: {list(STAGE_REGISTRY.keys())}")
    return STAGE_REGISTRY[name]()


def list_stages() -> List[str]:
    """Get list of available stage names."""
    return list(STAGE_REGISTRY.keys())
