from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

from fastapi import Body, FastAPI, HTTPException

from position_journal.config.app_config import AppConfig, load_app_config
from position_journal.ingest.transactions import load_transactions
from position_journal.ledger.assets import compute_all_asset_metrics, compute_asset_metrics, resolve_current_price
from position_journal.logging_setup import setup_logging
from position_journal.metrics.portfolio import aggregate_user_metrics
from position_journal.models import AssetMetrics
from position_journal.normalize import normalize_asset, parse_timestamp
from position_journal.pricing.snapshots import load_price_snapshot
from position_journal.serialize import asset_metrics_to_dict, user_metrics_to_dict

logger = logging.getLogger(__name__)

CONFIG_ENV = "POSITION_JOURNAL_CONFIG"

app = FastAPI(title="Position Journal")


@app.get("/api/assets")
def assets_api() -> list[dict[str, Any]]:
    return [asset_metrics_to_dict(item) for item in _load_asset_metrics(_app_config())]


@app.get("/api/assets/{asset}")
def asset_api(asset: str) -> dict[str, Any]:
    wanted = normalize_asset(asset)
    metrics = next((item for item in _load_asset_metrics(_app_config()) if item.asset == wanted), None)
    if metrics is None:
        raise HTTPException(status_code=404, detail="Asset not found.")
    return asset_metrics_to_dict(metrics)


@app.get("/api/summary")
def summary_api() -> dict[str, Any]:
    app_config = _app_config()
    metrics = aggregate_user_metrics(
        _load_asset_metrics(app_config),
        top_n=app_config.summary.top_assets,
    )
    return user_metrics_to_dict(metrics)


@app.post("/api/metrics/asset")
def asset_metrics_api(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    transactions = payload.get("transactions")
    if not isinstance(transactions, list):
        raise HTTPException(status_code=422, detail="Body must include a transactions list.")
    as_of = _as_of(payload.get("as_of"))
    current_price = resolve_current_price(transactions, payload.get("current_price"))
    metrics = compute_asset_metrics(
        transactions,
        current_price,
        as_of=as_of,
        asset=str(payload.get("asset") or ""),
    )
    return asset_metrics_to_dict(metrics)


@app.post("/api/metrics/portfolio")
def portfolio_metrics_api(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    assets = payload.get("assets")
    if not isinstance(assets, list):
        raise HTTPException(status_code=422, detail="Body must include an assets list.")
    profile = payload.get("behavioral_profile")
    top_n = payload.get("top_n")
    metrics = aggregate_user_metrics(
        assets,
        behavioral_profile=profile if isinstance(profile, dict) else None,
        top_n=top_n if isinstance(top_n, int) and top_n > 0 else _app_config().summary.top_assets,
    )
    return user_metrics_to_dict(metrics)


def _app_config() -> AppConfig:
    raw_path = os.environ.get(CONFIG_ENV)
    return load_app_config(Path(raw_path) if raw_path else None)


def _load_asset_metrics(app_config: AppConfig) -> list[AssetMetrics]:
    transactions_path = app_config.paths.transactions
    if not transactions_path.exists():
        raise HTTPException(status_code=404, detail="Transaction export not found.")
    result = load_transactions(transactions_path)
    if result.skipped:
        logger.warning("Skipped %d transaction rows in %s.", result.skipped, transactions_path)

    prices: dict[str, Decimal] = {}
    prices_path = app_config.paths.prices
    if prices_path is not None and prices_path.exists():
        prices = load_price_snapshot(prices_path)
    return compute_all_asset_metrics(result.transactions, prices, as_of=datetime.now(timezone.utc))


def _as_of(value: Any) -> datetime:
    if value in (None, ""):
        return datetime.now(timezone.utc)
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid as_of: {value}") from exc


def main() -> None:
    import uvicorn

    app_config = _app_config()
    setup_logging(app_config.logging.level)
    uvicorn.run(
        "position_journal.web.app:app",
        host=app_config.app.host,
        port=app_config.app.port,
        reload=app_config.app.reload,
    )


if __name__ == "__main__":
    main()
