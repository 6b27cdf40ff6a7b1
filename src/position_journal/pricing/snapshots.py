from __future__ import annotations

import csv
import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Mapping

from position_journal.normalize import normalize_asset
from position_journal.numbers import to_decimal

logger = logging.getLogger(__name__)


def load_price_snapshot(path: str | Path) -> dict[str, Decimal]:
    source_path = Path(path)
    suffix = source_path.suffix.lower()
    if suffix == ".json":
        with source_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return parse_price_payload(payload)
    if suffix in {".csv", ".tsv"}:
        with source_path.open("r", encoding="utf-8", newline="") as handle:
            reader = csv.DictReader(handle, delimiter="\t" if suffix == ".tsv" else ",")
            return _rows_to_prices(reader)
    raise ValueError(f"Unsupported file type: {source_path.suffix}")


def parse_price_payload(payload: Any) -> dict[str, Decimal]:
    if isinstance(payload, Mapping):
        nested = payload.get("prices")
        if isinstance(nested, (Mapping, list)):
            return parse_price_payload(nested)
        prices: dict[str, Decimal] = {}
        for asset, value in payload.items():
            price = to_decimal(value, default=None)
            if price is None or price < 0:
                logger.warning("Skipping price for %s: %r", asset, value)
                continue
            prices[normalize_asset(asset)] = price
        return prices
    if isinstance(payload, list):
        return _rows_to_prices(payload)
    raise ValueError("Unsupported JSON format for price snapshot")


def parse_price_overrides(values: Iterable[str]) -> dict[str, Decimal]:
    """Parse ``ASSET=PRICE`` pairs from the command line."""

    prices: dict[str, Decimal] = {}
    for item in values:
        asset, sep, raw_price = item.partition("=")
        price = to_decimal(raw_price, default=None)
        if not sep or not asset.strip() or price is None or price < 0:
            raise ValueError(f"Invalid price override: {item}")
        prices[normalize_asset(asset)] = price
    return prices


def _rows_to_prices(rows: Iterable[Any]) -> dict[str, Decimal]:
    prices: dict[str, Decimal] = {}
    for row in rows:
        if not isinstance(row, Mapping):
            continue
        asset = row.get("asset") or row.get("symbol") or row.get("ticker")
        raw_price = row.get("price")
        if raw_price in (None, ""):
            raw_price = row.get("last_price")
        price = to_decimal(raw_price, default=None)
        if not asset or price is None or price < 0:
            logger.warning("Skipping price row: %r", dict(row))
            continue
        prices[normalize_asset(asset)] = price
    return prices
