"""Tests for workflow stages and the orchestrator."""

from datetime import date, datetime
from unittest.mock import patch

import pytest

from prop_engine.data import JsonFileProvider
from prop_engine.database.store import PredictionStore
from prop_engine.exceptions import PersistenceError
from prop_engine.workflow import (
    Orchestrator,
    StageResult,
    StageStatus,
    WorkflowResult,
    WorkflowType,
    get_stage,
    list_stages,
)

SLATE_DAY = date(2024, 11, 5)


@pytest.fixture
def provider(provider_payload):
    return JsonFileProvider(provider_payload)


@pytest.fixture
def stage_kwargs(provider):
    return {
        "stats_provider": provider,
        "odds_provider": provider,
        "max_workers": 1,
        "retry_delay": 0,
    }


class FlakyStatsProvider(JsonFileProvider):
    """Game logs for player 1 time out; everyone else is served normally."""

    def get_player_stats(self, player_id, season, before=None):
        if player_id == 1:
            raise ConnectionError("provider timeout")
        return super().get_player_stats(player_id, season, before=before)


class BrokenFeedProvider(JsonFileProvider):
    """Market feed that drops after yielding ``keep`` markets."""

    def __init__(self, payload, keep=1):
        super().__init__(payload)
        self.keep = keep

    def get_prop_markets(self, prediction_date):
        markets = list(super().get_prop_markets(prediction_date))
        yield from markets[:self.keep]
        raise ConnectionError("feed dropped")


class BrokenBoxScoreProvider(JsonFileProvider):
    """Reports games final but cannot serve their box scores."""

    def get_game_stats(self, game_id):
        raise ConnectionError("box score unavailable")


class TestStageRegistry:
    """Tests for the stage registry."""

    def test_list_stages_returns_expected(self):
        assert list_stages() == ["score_props", "reconcile_outcomes", "evaluate_models"]

    def test_get_stage_returns_instance(self):
        stage = get_stage("score_props")
        assert stage.name == "score_props"

    def test_get_stage_unknown_raises(self):
        with pytest.raises(ValueError, match="Unknown stage"):
            get_stage("nonexistent_stage")


class TestStageResult:
    """Tests for StageResult dataclass."""

    def test_duration_calculation(self):
        result = StageResult(
            stage_name="test_stage",
            status=StageStatus.SUCCESS,
            message="ok",
            started_at=datetime(2024, 11, 5, 12, 0, 0),
            ended_at=datetime(2024, 11, 5, 12, 0, 30),
        )
        assert result.duration_seconds == 30.0

    def test_to_dict(self):
        result = StageResult(
            stage_name="test_stage",
            status=StageStatus.FAILED,
            message="boom",
            error=RuntimeError("boom"),
        )
        data = result.to_dict()

        assert data["status"] == "failed"
        assert data["error"] == "boom"
        assert data["duration_seconds"] is None


class TestScoringStage:
    """Tests for batch scoring."""

    def test_scores_every_market_with_data(self, db, stage_kwargs):
        result = get_stage("score_props").execute(SLATE_DAY, **stage_kwargs)

        assert result.status == StageStatus.SUCCESS
        assert result.data["markets"] == 3
        assert result.data["players"] == 3
        assert result.data["scored"] == 2
        # Player 3 has no history
        assert result.data["skipped"] == 1
        assert result.data["failed"] == 0

        rows = PredictionStore().query()
        assert {(r.player_id, r.prop_type) for r in rows} == {(1, "points"), (2, "rebounds")}
        assert all(r.prediction_date == SLATE_DAY for r in rows)

    def test_snapshot_excludes_games_on_prediction_day(self, db, stage_kwargs):
        get_stage("score_props").execute(SLATE_DAY, **stage_kwargs)

        points = PredictionStore().query(player_id=1)[0]
        # Ten games of 20..29 points; the 30-point game is on the slate day
        assert points.season_games_played == 10
        assert points.player_avg_7 == pytest.approx(26.0)
        assert points.player_season_avg == pytest.approx(24.5)

    def test_best_prices_used(self, db, stage_kwargs):
        get_stage("score_props").execute(SLATE_DAY, **stage_kwargs)

        points = PredictionStore().query(player_id=1)[0]
        assert points.best_over_odds == 105
        assert points.over_vendor == "fanduel"
        assert points.best_under_odds == -110
        assert points.under_vendor == "draftkings"

    def test_rerun_is_idempotent(self, db, stage_kwargs):
        stage = get_stage("score_props")
        first = stage.execute(SLATE_DAY, **stage_kwargs)
        second = stage.execute(SLATE_DAY, **stage_kwargs)

        assert first.data["prediction_ids"] == second.data["prediction_ids"]
        assert len(PredictionStore().query()) == 2

    def test_no_markets_skipped(self, db, stage_kwargs):
        result = get_stage("score_props").execute(date(2025, 1, 1), **stage_kwargs)
        assert result.status == StageStatus.SKIPPED

    def test_missing_providers_fails(self, db):
        result = get_stage("score_props").execute(SLATE_DAY)
        assert result.status == StageStatus.FAILED

    def test_invalid_price_fails_item_only(self, db, provider_payload):
        provider_payload["markets"][1]["quotes"] = [{"vendor": "typo", "over_price": 0}]
        provider = JsonFileProvider(provider_payload)

        result = get_stage("score_props").execute(
            SLATE_DAY, stats_provider=provider, odds_provider=provider, max_workers=1
        )

        assert result.status == StageStatus.SUCCESS
        assert result.data["scored"] == 1
        assert result.data["failed"] == 1

    def test_persistence_error_retried(self, db, stage_kwargs):
        calls = []
        original = PredictionStore.upsert

        def flaky_upsert(self, prediction):
            calls.append(prediction.key)
            if len(calls) == 1:
                raise PersistenceError("database is locked")
            return original(self, prediction)

        with patch.object(PredictionStore, "upsert", flaky_upsert):
            result = get_stage("score_props").execute(SLATE_DAY, **stage_kwargs)

        assert result.data["scored"] == 2
        assert len(calls) == 3

    def test_stats_provider_error_fails_only_that_player(self, db, provider_payload):
        provider = FlakyStatsProvider(provider_payload)

        result = get_stage("score_props").execute(
            SLATE_DAY, stats_provider=provider, odds_provider=provider, max_workers=1
        )

        assert result.status == StageStatus.SUCCESS
        assert result.data["scored"] == 1
        assert result.data["failed"] == 1
        assert result.data["skipped"] == 1
        assert len(result.data["prediction_ids"]) == 1
        assert [r.player_id for r in PredictionStore().query()] == [2]

    def test_malformed_market_skipped(self, db, provider_payload):
        provider_payload["markets"].append(
            {"game_id": 200, "player_id": 2, "prop_type": "points", "game_date": "2024-11-05"}
        )
        provider = JsonFileProvider(provider_payload)

        result = get_stage("score_props").execute(
            SLATE_DAY, stats_provider=provider, odds_provider=provider, max_workers=1
        )

        assert result.status == StageStatus.SUCCESS
        assert result.data["markets"] == 3
        assert result.data["scored"] == 2

    def test_feed_dropping_midway_keeps_read_markets(self, db, provider_payload):
        provider = BrokenFeedProvider(provider_payload, keep=1)

        result = get_stage("score_props").execute(
            SLATE_DAY, stats_provider=provider, odds_provider=provider, max_workers=1
        )

        assert result.status == StageStatus.SUCCESS
        assert result.data["markets"] == 1
        assert result.data["scored"] == 1
        assert result.data["failed"] == 1

    def test_feed_failing_immediately(self, db, provider_payload):
        provider = BrokenFeedProvider(provider_payload, keep=0)

        result = get_stage("score_props").execute(
            SLATE_DAY, stats_provider=provider, odds_provider=provider, max_workers=1
        )

        assert result.status == StageStatus.FAILED
        assert result.data["markets"] == 0


class TestPostGameStages:
    """Tests for reconciliation and evaluation stages."""

    def test_reconcile_open_games(self, db, stage_kwargs):
        get_stage("score_props").execute(SLATE_DAY, **stage_kwargs)
        result = get_stage("reconcile_outcomes").execute(SLATE_DAY, **stage_kwargs)

        assert result.status == StageStatus.SUCCESS
        assert result.data["games_reconciled"] == [200]
        assert result.data["predictions_updated"] == 2

        results = {r.player_id: r.actual_result for r in PredictionStore().query()}
        assert results == {1: "over", 2: "push"}

    def test_reconcile_pending_game(self, db, stage_kwargs, provider_payload):
        get_stage("score_props").execute(SLATE_DAY, **stage_kwargs)
        provider_payload["final_games"] = []
        provider = JsonFileProvider(provider_payload)

        result = get_stage("reconcile_outcomes").execute(SLATE_DAY, stats_provider=provider)

        assert result.data["games_pending"] == [200]
        assert result.data["predictions_updated"] == 0

    def test_reconcile_box_score_error_isolated(self, db, stage_kwargs, provider_payload):
        get_stage("score_props").execute(SLATE_DAY, **stage_kwargs)
        provider = BrokenBoxScoreProvider(provider_payload)

        result = get_stage("reconcile_outcomes").execute(
            SLATE_DAY, stats_provider=provider, game_ids=[200, 201], retry_delay=0
        )

        assert result.data["games_failed"] == [200]
        assert result.data["games_pending"] == [201]
        assert result.data["predictions_updated"] == 0
        assert all(r.actual_result is None for r in PredictionStore().query())

    def test_reconcile_nothing_open(self, db, stage_kwargs):
        result = get_stage("reconcile_outcomes").execute(SLATE_DAY, **stage_kwargs)
        assert result.status == StageStatus.SKIPPED

    def test_evaluate(self, db, stage_kwargs):
        stage = get_stage("score_props")
        stage.execute(SLATE_DAY, **stage_kwargs)
        get_stage("reconcile_outcomes").execute(SLATE_DAY, **stage_kwargs)

        result = get_stage("evaluate_models").execute(SLATE_DAY)

        assert result.status == StageStatus.SUCCESS
        metrics = {m["prop_type"]: m for m in result.data["metrics"]}
        assert metrics["points"]["correct_predictions"] == 1
        assert metrics["rebounds"]["pushes"] == 1
        assert metrics["rebounds"]["accuracy"] is None

    def test_evaluate_empty(self, db):
        result = get_stage("evaluate_models").execute(SLATE_DAY)
        assert result.status == StageStatus.SKIPPED


class TestOrchestrator:
    """Tests for workflow sequencing."""

    def test_workflow_sequences(self):
        assert Orchestrator.WORKFLOWS[WorkflowType.PRE_GAME] == ["score_props"]
        assert Orchestrator.WORKFLOWS[WorkflowType.POST_GAME] == ["reconcile_outcomes", "evaluate_models"]

    def test_full_workflow(self, db, stage_kwargs):
        result = Orchestrator().run_full(SLATE_DAY, **stage_kwargs)

        assert isinstance(result, WorkflowResult)
        assert result.success
        assert [r.stage_name for r in result.stage_results] == list_stages()
        assert "SUCCESS" in result.summary()
        assert result.to_dict()["prediction_date"] == "2024-11-05"

    def test_stop_on_failure(self, db):
        result = Orchestrator().run_workflow(WorkflowType.FULL, SLATE_DAY)

        assert not result.success
        assert result.failed_stages == ["score_props"]
        assert len(result.stage_results) == 1

    def test_continue_on_failure(self, db):
        result = Orchestrator().run_workflow(WorkflowType.FULL, SLATE_DAY, stop_on_failure=False)

        assert len(result.stage_results) == 3
        assert result.failed_stages == ["score_props", "reconcile_outcomes"]

    def test_status(self):
        status = Orchestrator().get_status()

        assert status["model_version"] == "weighted-avg-v1"
        assert status["all_stages"] == list_stages()
        assert "pre_game" in status["workflows"]
