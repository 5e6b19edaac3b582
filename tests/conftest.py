"""Pytest fixtures for the prop engine test suite."""

import json
from datetime import date, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from prop_engine.config import get_settings
from prop_engine.data.records import StatRecord, VendorQuote
from prop_engine.database import session as db_session
from prop_engine.database import configure_database, init_db


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Point settings at throwaway locations and reload them for every test."""
    monkeypatch.setenv("PROP_ENGINE_DATABASE_URL", "sqlite://")
    monkeypatch.setenv("PROP_ENGINE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("PROP_ENGINE_LOGS_DIR", str(tmp_path / "logs"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def db():
    """In-memory SQLite database shared by every session in the test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_database(engine=engine)
    init_db(engine)
    yield engine
    engine.dispose()
    db_session._engine = None
    db_session._session_factory = None


def make_games(player_id=1, points=(), start=date(2024, 10, 25), first_game_id=100, **categories):
    """StatRecords on consecutive days, one per value in ``points``."""
    records = []
    for i, pts in enumerate(points):
        values = {name: seq[i] for name, seq in categories.items()}
        records.append(StatRecord(
            player_id=player_id,
            game_id=first_game_id + i,
            game_date=start + timedelta(days=i),
            season=2024,
            points=pts,
            **values,
        ))
    return records


@pytest.fixture
def game_log():
    """Factory for consecutive-day game logs."""
    return make_games


@pytest.fixture
def sample_records():
    """Thirty-five games for player 1: points 10..44, assists always 5."""
    return make_games(points=list(range(10, 45)), assists=[5] * 35)


@pytest.fixture
def sample_quotes():
    """Three books quoting the same line."""
    return [
        VendorQuote("draftkings", over_price=-115, under_price=-105),
        VendorQuote("fanduel", over_price=-110, under_price=-110),
        VendorQuote("betmgm", over_price=+100, under_price=-125),
    ]


@pytest.fixture
def provider_payload():
    """JSON document for JsonFileProvider: two players, one upcoming game."""
    stats = []
    for i in range(10):
        game_date = (date(2024, 10, 25) + timedelta(days=i)).isoformat()
        stats.append({"player_id": 1, "game_id": 100 + i, "game_date": game_date,
                      "points": 20 + i, "assists": 6, "rebounds": 4})
        stats.append({"player_id": 2, "game_id": 100 + i, "game_date": game_date,
                      "points": 10, "assists": 2, "rebounds": 9})
    # Final box score for the upcoming game
    stats.append({"player_id": 1, "game_id": 200, "game_date": "2024-11-05",
                  "points": 30, "assists": 6, "rebounds": 4})
    stats.append({"player_id": 2, "game_id": 200, "game_date": "2024-11-05",
                  "points": 12, "assists": 2, "rebounds": 9})

    quotes = [
        {"vendor": "draftkings", "over_price": -110, "under_price": -110},
        {"vendor": "fanduel", "over_price": 105, "under_price": -125},
    ]
    markets = [
        {"game_id": 200, "player_id": 1, "prop_type": "points", "line_value": 22.5,
         "game_date": "2024-11-05", "quotes": quotes},
        {"game_id": 200, "player_id": 2, "prop_type": "rebounds", "line_value": 9.0,
         "game_date": "2024-11-05", "quotes": quotes},
        {"game_id": 200, "player_id": 3, "prop_type": "points", "line_value": 15.5,
         "game_date": "2024-11-05", "quotes": quotes},
    ]
    return {"stats": stats, "final_games": [200], "markets": markets}


@pytest.fixture
def provider_file(tmp_path, provider_payload):
    path = tmp_path / "slate.json"
    path.write_text(json.dumps(provider_payload), encoding="utf-8")
    return path


def make_prediction(**overrides):
    """ScoredPrediction with plausible defaults."""
    from prop_engine.ml.scorer import ScoredPrediction

    values = dict(
        game_id=500,
        player_id=1,
        prop_type="points",
        prediction_date=date(2024, 11, 5),
        line_value=24.5,
        point_estimate=26.0,
        predicted_prob_over=0.6,
        predicted_prob_under=0.4,
        confidence_score=0.8,
        model_version="weighted-avg-v1",
        best_over_odds=-110,
        best_under_odds=-110,
        over_vendor="draftkings",
        under_vendor="fanduel",
        implied_prob_over=110 / 210,
        implied_prob_under=110 / 210,
    )
    values.update(overrides)
    values.setdefault(
        "predicted_value_over",
        None if values["implied_prob_over"] is None
        else values["predicted_prob_over"] - values["implied_prob_over"],
    )
    values.setdefault(
        "predicted_value_under",
        None if values["implied_prob_under"] is None
        else values["predicted_prob_under"] - values["implied_prob_under"],
    )
    return ScoredPrediction(**values)


@pytest.fixture
def prediction_factory():
    """Factory for ScoredPrediction objects."""
    return make_prediction
