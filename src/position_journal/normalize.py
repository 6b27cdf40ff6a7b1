from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Any, Mapping

from position_journal.models import BUY, SELL, Transaction
from position_journal.numbers import ZERO, to_decimal


def coerce_transaction(
    item: Transaction | Mapping[str, Any],
    *,
    asset: str | None = None,
    require_asset: bool = False,
) -> Transaction:
    """Return a clean ``Transaction`` or raise ``ValueError`` when the record cannot be used.

    Amount and price never cause a rejection: missing or non-numeric values are
    read as zero, signed amounts by magnitude. Only a missing date or an
    unknown side makes a record unusable.
    """

    if isinstance(item, Transaction):
        return replace(
            item,
            date=parse_timestamp(item.date),
            kind=normalize_kind(item.kind),
            amount=abs(to_decimal(item.amount)),
            price=max(to_decimal(item.price), ZERO),
            asset=normalize_asset(item.asset or asset),
        )
    if not isinstance(item, Mapping):
        raise ValueError(f"Unsupported transaction record: {type(item).__name__}")
    return normalize_record(item, asset=asset, require_asset=require_asset)


def normalize_record(
    raw: Mapping[str, Any],
    *,
    asset: str | None = None,
    require_asset: bool = False,
) -> Transaction:
    timestamp = parse_timestamp(_pick(raw, "date", "timestamp", "time", "created_at", "createdAt"))
    kind = normalize_kind(_pick(raw, "kind", "type", "side", "direction"))
    amount = abs(to_decimal(_pick(raw, "amount", "quantity", "qty", "size")))
    price = max(to_decimal(_pick(raw, "price", "fill_price", "avg_price")), ZERO)
    resolved_asset = _pick(raw, "asset", "symbol", "ticker") or asset
    if require_asset and not resolved_asset:
        raise ValueError("Missing asset")
    transaction_id = _pick(raw, "id", "transaction_id", "transactionId", "tx_id")
    return Transaction(
        date=timestamp,
        kind=kind,
        amount=amount,
        price=price,
        asset=normalize_asset(resolved_asset),
        transaction_id=str(transaction_id) if transaction_id is not None else None,
        raw=dict(raw),
    )


def normalize_kind(value: Any) -> str:
    if value is None:
        raise ValueError("Missing transaction kind")
    text = str(value).strip().upper()
    if text in {"BUY", "B", "LONG"}:
        return BUY
    if text in {"SELL", "S", "SHORT"}:
        return SELL
    raise ValueError(f"Unknown transaction kind: {value}")


def normalize_asset(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().upper()


def parse_timestamp(value: Any) -> datetime:
    if value is None or isinstance(value, bool):
        raise ValueError("Missing timestamp")

    if isinstance(value, datetime):
        return _ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _timestamp_from_number(float(value))

    text = str(value).strip()
    if not text:
        raise ValueError("Missing timestamp")
    try:
        return _timestamp_from_number(float(text))
    except ValueError:
        pass

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"Unsupported timestamp format: {value}") from exc
    return _ensure_utc(parsed)


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] not in (None, ""):
            return raw[key]
    return None


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _timestamp_from_number(value: float) -> datetime:
    if value != value or value in (float("inf"), float("-inf")):
        raise ValueError("Invalid numeric timestamp")
    seconds = value / 1000.0 if abs(value) > 1e12 else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError("Invalid numeric timestamp") from exc
