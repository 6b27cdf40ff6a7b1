from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from position_journal.web.app import CONFIG_ENV, app


@pytest.fixture()
def client(tmp_path, monkeypatch):
    tx_path = tmp_path / "transactions.json"
    tx_path.write_text(
        json.dumps(
            [
                {"date": "2024-01-01T00:00:00Z", "type": "BUY", "asset": "BTC", "amount": 2, "price": 100},
                {"date": "2024-01-01T12:00:00Z", "type": "SELL", "asset": "BTC", "amount": 2, "price": 90},
                {"date": "2024-01-02T00:00:00Z", "type": "BUY", "asset": "SOL", "amount": 10, "price": 20},
            ]
        ),
        encoding="utf-8",
    )
    prices_path = tmp_path / "prices.json"
    prices_path.write_text(json.dumps({"SOL": 25}), encoding="utf-8")
    config_path = tmp_path / "app.toml"
    config_path.write_text(
        f"[paths]\ntransactions = {json.dumps(str(tx_path))}\nprices = {json.dumps(str(prices_path))}\n",
        encoding="utf-8",
    )
    monkeypatch.setenv(CONFIG_ENV, str(config_path))
    return TestClient(app)


def test_assets_endpoint_lists_each_asset(client):
    response = client.get("/api/assets")

    assert response.status_code == 200
    by_asset = {item["asset"]: item for item in response.json()}
    assert by_asset["BTC"]["realized_pnl_abs"] == -20.0
    assert by_asset["BTC"]["losing_round_trips"] == 1
    assert by_asset["SOL"]["unrealized_pnl_abs"] == 50.0
    assert by_asset["SOL"]["status"] == "open"


def test_single_asset_endpoint(client):
    assert client.get("/api/assets/sol").json()["last_price"] == 25.0
    assert client.get("/api/assets/DOGE").status_code == 404


def test_summary_endpoint(client):
    payload = client.get("/api/summary").json()

    assert payload["total_assets_traded"] == 2
    assert payload["lifetime_pnl_abs"] == 30.0
    assert payload["lifetime_invested_cost"] == 400.0
    assert payload["round_trip_win_rate"] == 0.0
    assert payload["best_assets"][0]["asset"] == "SOL"


def test_missing_export_is_not_found(tmp_path, monkeypatch):
    config_path = tmp_path / "empty.toml"
    config_path.write_text(f"[paths]\ntransactions = {json.dumps(str(tmp_path / 'none.json'))}\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV, str(config_path))

    assert TestClient(app).get("/api/assets").status_code == 404


def test_asset_metrics_post(client):
    response = client.post(
        "/api/metrics/asset",
        json={
            "asset": "btc",
            "current_price": 130,
            "as_of": "2024-01-02T00:00:00Z",
            "transactions": [
                {"date": "2024-01-01T00:00:00Z", "type": "buy", "amount": 10, "price": 100},
                {"date": "2024-01-01T06:00:00Z", "type": "sell", "amount": 10, "price": 120},
            ],
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["asset"] == "BTC"
    assert payload["realized_pnl_abs"] == 200.0
    assert payload["round_trips"] == 1
    assert payload["status"] == "closed"
    assert payload["open_cycle"] is None
    assert payload["avg_holding_hours"] == 6.0


def test_asset_metrics_post_validates_body(client):
    assert client.post("/api/metrics/asset", json={"transactions": "nope"}).status_code == 422
    assert client.post("/api/metrics/asset", json={"transactions": [], "as_of": "later"}).status_code == 422


def test_portfolio_metrics_post(client):
    response = client.post(
        "/api/metrics/portfolio",
        json={
            "assets": [
                {"asset": "A", "round_trips": 2, "round_trip_win_rate": 1, "lifetime_pnl_pct": 0.4},
                {"asset": "B", "round_trips": 2, "round_trip_win_rate": 0, "lifetime_pnl_pct": -0.1},
                {"asset": "C", "round_trips": "many"},
            ],
            "behavioral_profile": {"bias": "fomo"},
            "top_n": 1,
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["round_trip_win_rate"] == 0.5
    assert payload["total_round_trips"] == 4
    assert payload["skipped_assets"] == 1
    assert payload["best_assets"] == [{"asset": "A", "lifetime_pnl_pct": 0.4}]
    assert payload["worst_assets"] == [{"asset": "B", "lifetime_pnl_pct": -0.1}]
    assert payload["behavioral_profile"] == {"bias": "fomo"}
    assert client.post("/api/metrics/portfolio", json={"assets": {}}).status_code == 422
