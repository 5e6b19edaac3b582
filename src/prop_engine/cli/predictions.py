"""Command line interface for scoring, browsing and evaluating predictions."""

import json
import logging
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional

import click
import pandas as pd
from rich.console import Console
from rich.table import Table

from ..config import get_settings
from ..data.file_provider import JsonFileProvider
from ..data.records import PROP_TYPES
from ..database import init_db
from ..database.models import RESULT_OVER, Prediction
from ..database.store import PredictionStore
from ..exceptions import PropEngineError
from ..tracking.evaluator import PerformanceEvaluator
from ..tracking.reconciler import OutcomeReconciler
from ..utils import setup_logging
from ..utils.odds import american_to_decimal, format_american_odds
from ..workflow import Orchestrator, StageStatus

console = Console()
logger = logging.getLogger(__name__)

DATE = click.DateTime(formats=["%Y-%m-%d"])
PROP_TYPE = click.Choice(sorted(PROP_TYPES))

CSV_COLUMNS = [
    "Player ID",
    "Game ID",
    "Prop Type",
    "Line Value",
    "Value Side",
    "Value %",
    "Predicted Prob %",
    "Market Odds",
    "Decimal Odds",
    "Vendor",
    "Confidence %",
    "Over Odds",
    "Over Vendor",
    "Under Odds",
    "Under Vendor",
]


def _as_date(value) -> Optional[date]:
    return value.date() if value is not None else None


def _pct(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value * 100:.1f}%"


def _side_fields(prediction: Prediction) -> dict:
    """Value side and the matching probability, price and vendor."""
    side = prediction.value_side
    if side is None:
        return {"side": None, "prob": None, "price": None, "vendor": None}
    if side == RESULT_OVER:
        return {
            "side": side,
            "prob": prediction.predicted_prob_over,
            "price": prediction.best_over_odds,
            "vendor": prediction.over_vendor,
        }
    return {
        "side": side,
        "prob": prediction.predicted_prob_under,
        "price": prediction.best_under_odds,
        "vendor": prediction.under_vendor,
    }


def display_predictions(predictions: List[Prediction], title: str, verbose: bool = False):
    """Render predictions as a rich table."""
    if not predictions:
        console.print("[yellow]No predictions found.[/yellow]")
        return

    table = Table(title=f"{title} ({len(predictions)})")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Player", justify="right")
    table.add_column("Game", justify="right")
    table.add_column("Prop", style="cyan")
    table.add_column("Line", justify="right")
    table.add_column("Side", style="bold")
    table.add_column("Value", justify="right", style="green")
    table.add_column("Prob", justify="right")
    table.add_column("Odds", justify="right")
    table.add_column("Vendor")
    table.add_column("Conf", justify="right")
    if verbose:
        table.add_column("Estimate", justify="right")
        table.add_column("Result")

    for p in predictions:
        side = _side_fields(p)
        row = [
            str(p.id),
            str(p.player_id),
            str(p.game_id),
            p.prop_type,
            f"{p.line_value:g}",
            (side["side"] or "-").upper(),
            _pct(p.best_value),
            _pct(side["prob"]),
            format_american_odds(side["price"]),
            side["vendor"] or "-",
            _pct(p.confidence_score),
        ]
        if verbose:
            row.append(f"{p.point_estimate:.2f}")
            row.append(p.actual_result or "-")
        table.add_row(*row)

    console.print(table)


def _csv_frame(predictions: List[Prediction]) -> pd.DataFrame:
    rows = []
    for p in predictions:
        side = _side_fields(p)
        rows.append({
            "Player ID": p.player_id,
            "Game ID": p.game_id,
            "Prop Type": p.prop_type,
            "Line Value": p.line_value,
            "Value Side": (side["side"] or "").upper(),
            "Value %": round(p.best_value * 100, 1) if p.best_value is not None else None,
            "Predicted Prob %": round(side["prob"] * 100, 1) if side["prob"] is not None else None,
            "Market Odds": format_american_odds(side["price"]),
            "Decimal Odds": round(american_to_decimal(side["price"]), 2) if side["price"] is not None else None,
            "Vendor": side["vendor"] or "",
            "Confidence %": round(p.confidence_score * 100, 1),
            "Over Odds": format_american_odds(p.best_over_odds),
            "Over Vendor": p.over_vendor or "",
            "Under Odds": format_american_odds(p.best_under_odds),
            "Under Vendor": p.under_vendor or "",
        })
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def _fail(message: str, verbose: bool = False):
    console.print(f"[red]Error: {message}[/red]")
    if verbose:
        console.print_exception()
    raise click.Abort()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx, verbose):
    """Score player props against market lines and track how the model does."""
    setup_logging(level="DEBUG" if verbose else None)
    init_db()
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command("init-db")
def init_db_command():
    """Create all database tables."""
    init_db()
    console.print(f"[green]Database ready:[/green] {get_settings().database_url}")


@cli.command("list")
@click.option("--prop-type", type=PROP_TYPE, help="Filter by prop type")
@click.option("--min-value", type=float, help="Minimum value on either side")
@click.option("--min-confidence", type=float, help="Minimum confidence")
@click.option("--date", "prediction_date", type=DATE, help="Only predictions made on this day")
@click.option("--unreconciled", is_flag=True, help="Only predictions without an outcome")
@click.option("--limit", type=int, default=50, show_default=True)
@click.pass_context
def list_command(ctx, prop_type, min_value, min_confidence, prediction_date, unreconciled, limit):
    """List stored predictions, best value first."""
    day = _as_date(prediction_date)
    predictions = PredictionStore().query(
        prop_type=prop_type,
        date_from=day,
        date_to=day,
        min_value=min_value,
        min_confidence=min_confidence,
        unreconciled_only=unreconciled,
        limit=limit,
    )
    display_predictions(predictions, "Predictions", verbose=ctx.obj["verbose"])


@cli.command("value-bets")
@click.option("--prop-type", type=PROP_TYPE, help="Filter by prop type")
@click.option("--min-value", type=float, help="Minimum value (default: value_bet_threshold)")
@click.option("--min-confidence", type=float, help="Minimum confidence (default: default_min_confidence)")
@click.option("--since", type=DATE, help="Only predictions made on or after this day")
@click.option("--limit", type=int, default=20, show_default=True)
@click.pass_context
def value_bets_command(ctx, prop_type, min_value, min_confidence, since, limit):
    """Show open predictions whose value clears the thresholds."""
    predictions = PredictionStore().value_bets(
        min_value=min_value,
        min_confidence=min_confidence,
        prop_type=prop_type,
        date_from=_as_date(since),
        limit=limit,
    )
    display_predictions(predictions, "Value Bets", verbose=ctx.obj["verbose"])


@cli.command("game")
@click.argument("game_id", type=int)
@click.option("--prop-type", type=PROP_TYPE, help="Filter by prop type")
@click.option("--min-value", type=float, help="Minimum value on either side")
@click.option("--min-confidence", type=float, help="Minimum confidence")
@click.pass_context
def game_command(ctx, game_id, prop_type, min_value, min_confidence):
    """Show every prediction for one game."""
    predictions = PredictionStore().for_game(
        game_id, prop_type=prop_type, min_value=min_value, min_confidence=min_confidence
    )
    display_predictions(predictions, f"Game {game_id}", verbose=ctx.obj["verbose"])


@cli.command("generate")
@click.option("--input", "input_path", type=click.Path(exists=True, dir_okay=False), required=True,
              help="JSON file with stats and prop markets")
@click.option("--date", "prediction_date", type=DATE, help="Prediction date (default: today)")
@click.option("--max-workers", type=int, help="Worker threads (default: settings)")
@click.option("--list-after", is_flag=True, help="List the generated predictions")
@click.pass_context
def generate_command(ctx, input_path, prediction_date, max_workers, list_after):
    """Refresh player snapshots and score every open prop market."""
    verbose = ctx.obj["verbose"]
    day = _as_date(prediction_date) or date.today()

    try:
        provider = JsonFileProvider.from_path(input_path)
    except (OSError, ValueError, KeyError) as e:
        _fail(f"Cannot read {input_path}: {e}", verbose)

    with console.status(f"Scoring props for {day}..."):
        result = Orchestrator().run_stage(
            "score_props",
            day,
            stats_provider=provider,
            odds_provider=provider,
            max_workers=max_workers,
        )

    if result.status == StageStatus.FAILED:
        _fail(result.message, verbose)

    console.print(f"[green]{result.message}[/green]")
    if list_after and result.data.get("prediction_ids"):
        store = PredictionStore()
        predictions = store.query(date_from=day, date_to=day)
        ids = set(result.data["prediction_ids"])
        display_predictions([p for p in predictions if p.id in ids], "Generated", verbose=verbose)


@cli.command("reconcile")
@click.option("--input", "input_path", type=click.Path(exists=True, dir_okay=False), required=True,
              help="JSON file with final box scores")
@click.option("--force", is_flag=True, help="Re-apply results to reconciled predictions")
@click.argument("game_id", type=int)
@click.pass_context
def reconcile_command(ctx, input_path, force, game_id):
    """Write actual results onto a finished game's predictions."""
    verbose = ctx.obj["verbose"]
    try:
        provider = JsonFileProvider.from_path(input_path)
    except (OSError, ValueError, KeyError) as e:
        _fail(f"Cannot read {input_path}: {e}", verbose)

    if not provider.is_game_final(game_id):
        _fail(f"Game {game_id} is not final in {input_path}", verbose)

    try:
        updated = OutcomeReconciler().reconcile(game_id, provider.get_game_stats(game_id), force=force)
    except PropEngineError as e:
        _fail(str(e), verbose)

    console.print(f"[green]Reconciled {updated} prediction(s) for game {game_id}[/green]")


@cli.command("evaluate")
@click.option("--start", type=DATE, help="First day of the period (default: 30 days before end)")
@click.option("--end", type=DATE, help="Last day of the period (default: today)")
@click.option("--model-version", help="Model version (default: every version in the period)")
@click.option("--prop-type", type=PROP_TYPE, help="Prop type (default: every prop type in the period)")
@click.pass_context
def evaluate_command(ctx, start, end, model_version, prop_type):
    """Recompute performance metrics for a period."""
    verbose = ctx.obj["verbose"]
    period_end = _as_date(end) or date.today()
    period_start = _as_date(start) or period_end - timedelta(days=30)
    evaluator = PerformanceEvaluator()

    try:
        if model_version and prop_type:
            metrics = [evaluator.evaluate(model_version, prop_type, period_start, period_end)]
        else:
            metrics = [
                m for m in evaluator.evaluate_all(period_start, period_end)
                if (model_version is None or m.model_version == model_version)
                and (prop_type is None or m.prop_type == prop_type)
            ]
    except (PropEngineError, ValueError) as e:
        _fail(str(e), verbose)

    display_metrics(metrics, f"Performance {period_start} to {period_end}")


@cli.command("performance")
@click.option("--model-version", help="Filter by model version")
@click.option("--prop-type", type=PROP_TYPE, help="Filter by prop type")
@click.option("--limit", type=int, default=20, show_default=True)
def performance_command(model_version, prop_type, limit):
    """Show stored performance metrics, latest period first."""
    metrics = PerformanceEvaluator().list_metrics(
        model_version=model_version, prop_type=prop_type, limit=limit
    )
    display_metrics(metrics, "Stored Performance Metrics")


def display_metrics(metrics, title: str):
    """Render ModelPerformanceMetric rows as a rich table."""
    if not metrics:
        console.print("[yellow]No performance metrics found.[/yellow]")
        return

    table = Table(title=title)
    table.add_column("Model", style="cyan")
    table.add_column("Prop")
    table.add_column("Period")
    table.add_column("Preds", justify="right")
    table.add_column("Outcomes", justify="right")
    table.add_column("Pushes", justify="right")
    table.add_column("Accuracy", justify="right", style="green")
    table.add_column("Value Bets", justify="right")
    table.add_column("VB Acc", justify="right", style="green")
    table.add_column("Brier", justify="right")
    table.add_column("ROI", justify="right")

    for m in metrics:
        table.add_row(
            m.model_version,
            m.prop_type,
            f"{m.evaluation_period_start} .. {m.evaluation_period_end}",
            str(m.total_predictions),
            str(m.predictions_with_outcome),
            str(m.pushes),
            _pct(m.accuracy),
            str(m.value_bets_identified),
            _pct(m.value_bet_accuracy),
            "N/A" if m.brier_score is None else f"{m.brier_score:.3f}",
            _pct(m.roi),
        )

    console.print(table)


@cli.command("export")
@click.option("--format", "fmt", type=click.Choice(["json", "csv"]), default="json", show_default=True)
@click.option("--output", type=click.Path(dir_okay=False), help="Output file (default: predictions-<date>.<format>)")
@click.option("--value-bets-only", is_flag=True, help="Export only open value bets")
@click.option("--game-id", type=int, help="Export one game's predictions")
@click.option("--prop-type", type=PROP_TYPE, help="Filter by prop type")
def export_command(fmt, output, value_bets_only, game_id, prop_type):
    """Export predictions to JSON or CSV."""
    store = PredictionStore()
    if game_id is not None:
        predictions = store.for_game(game_id, prop_type=prop_type)
    elif value_bets_only:
        predictions = store.value_bets(prop_type=prop_type)
    else:
        predictions = store.query(prop_type=prop_type)

    if not predictions:
        console.print("[yellow]No predictions to export.[/yellow]")
        return

    output_file = Path(output or f"predictions-{date.today():%Y%m%d}.{fmt}")
    output_file.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "json":
        with open(output_file, "w", encoding="utf-8") as f:
            json.dump([p.to_dict() for p in predictions], f, indent=2)
    else:
        _csv_frame(predictions).to_csv(output_file, index=False)

    console.print(f"[green]Exported {len(predictions)} prediction(s) to {output_file}[/green]")


if __name__ == "__main__":
    cli()
