from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping

from position_journal.models import Transaction
from position_journal.normalize import coerce_transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    transactions: list[Transaction]
    skipped: int = 0


def load_transactions(path: str | Path, *, asset: str | None = None) -> IngestResult:
    source_path = Path(path)
    suffix = source_path.suffix.lower()
    if suffix == ".json":
        with source_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return load_transactions_payload(payload, asset=asset)
    if suffix in {".csv", ".tsv"}:
        with source_path.open("r", encoding="utf-8", newline="") as handle:
            reader = csv.DictReader(handle, delimiter="\t" if suffix == ".tsv" else ",")
            transactions, skipped = _normalize_records(reader, asset=asset)
        return IngestResult(transactions=transactions, skipped=skipped)
    raise ValueError(f"Unsupported file type: {source_path.suffix}")


def load_transactions_payload(payload: Any, *, asset: str | None = None) -> IngestResult:
    records = _extract_records(payload)
    transactions, skipped = _normalize_records(records, asset=asset)
    return IngestResult(transactions=transactions, skipped=skipped)


def _extract_records(payload: Any) -> Iterable[Mapping[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("transactions", "data", "result"):
            if key in payload and isinstance(payload[key], list):
                return payload[key]
    raise ValueError("Unsupported JSON format for transactions payload")


def _normalize_records(
    records: Iterable[Any],
    *,
    asset: str | None,
) -> tuple[list[Transaction], int]:
    transactions: list[Transaction] = []
    skipped = 0
    for index, raw in enumerate(records):
        try:
            transactions.append(coerce_transaction(raw, asset=asset, require_asset=True))
        except ValueError as exc:
            skipped += 1
            logger.warning("Skipping transaction row %d: %s", index, exc)
    return transactions, skipped
