from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    import tomli as tomllib

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class AppSettings:
    host: str
    port: int
    reload: bool


@dataclass(frozen=True)
class PathsSettings:
    transactions: Path
    prices: Path | None
    out: Path | None


@dataclass(frozen=True)
class SummarySettings:
    top_assets: int
    behavioral_profile: Path | None


@dataclass(frozen=True)
class LoggingSettings:
    level: str


@dataclass(frozen=True)
class AppConfig:
    app: AppSettings
    paths: PathsSettings
    summary: SummarySettings
    logging: LoggingSettings


def load_app_config(path: Path | None = None) -> AppConfig:
    config_path = path or Path("config/app.toml")
    raw: Mapping[str, Any] = {}
    if config_path.exists():
        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))

    app_raw = _section(raw, "app")
    paths_raw = _section(raw, "paths")
    summary_raw = _section(raw, "summary")
    logging_raw = _section(raw, "logging")

    app = AppSettings(
        host=str(app_raw.get("host", "127.0.0.1")),
        port=_int_or_default(app_raw.get("port"), 8000),
        reload=bool(app_raw.get("reload", True)),
    )

    paths = PathsSettings(
        transactions=_path_or_none(paths_raw.get("transactions")) or Path("data/transactions.json"),
        prices=_path_or_none(paths_raw.get("prices")),
        out=_path_or_none(paths_raw.get("out")),
    )

    top_assets = _int_or_default(summary_raw.get("top_assets"), 3)
    summary = SummarySettings(
        top_assets=top_assets if top_assets > 0 else 3,
        behavioral_profile=_path_or_none(summary_raw.get("behavioral_profile")),
    )

    level = str(logging_raw.get("level", "INFO")).strip().upper()
    logging_settings = LoggingSettings(level=level if level in _LOG_LEVELS else "INFO")

    return AppConfig(app=app, paths=paths, summary=summary, logging=logging_settings)


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if isinstance(value, Mapping):
        return value
    return {}


def _int_or_default(value: Any, default: int) -> int:
    if value in (None, "") or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _path_or_none(value: Any) -> Path | None:
    if value in (None, ""):
        return None
    return Path(str(value))
