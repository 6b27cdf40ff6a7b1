from __future__ import annotations

import math
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from position_journal.models import AssetMetrics, UserMetrics


def asset_metrics_to_dict(metrics: AssetMetrics) -> dict[str, Any]:
    return sanitize_payload(asdict(metrics))


def user_metrics_to_dict(metrics: UserMetrics) -> dict[str, Any]:
    return sanitize_payload(asdict(metrics))


def sanitize_payload(value: Any) -> Any:
    """Turn engine output into plain JSON-ready data.

    Decimals become floats, timestamps ISO strings; missing or non-finite
    numbers become 0 because the persistence layer rejects undefined values.
    """

    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, Decimal):
        if not value.is_finite():
            return 0.0
        return float(value)
    if isinstance(value, float):
        return value if math.isfinite(value) else 0.0
    if isinstance(value, int):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return sanitize_payload(asdict(value))
    if isinstance(value, Mapping):
        return {str(key): sanitize_payload(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
        return [sanitize_payload(item) for item in items]
    return value
