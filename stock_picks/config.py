"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      committed static defaults
  2. ``config/local.toml``        optional local overrides (gitignored)
  3. ``.env``                     local env overrides (gitignored)
  4. Environment variables        ``STOCK_PICKS_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Pipeline stages and CLI commands receive an ``AppConfig`` instance rather
than reading env vars or raw dicts themselves.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite run-audit database settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/stock_picks.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class DataConfig(BaseModel):
    """Filesystem layout for the ledger, reports and the history cache."""

    model_config = ConfigDict(frozen=True)

    ledger_dir: str = "data/ledger"
    legacy_archive_dirs: list[str] = ["data/picks-archive"]
    reports_dir: str = "data/reports"
    history_cache_dir: str = "data/cache/history"


class ProviderConfig(BaseModel):
    """Market data provider (Yahoo chart endpoint) settings."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    snapshot_range: str = "1y"
    history_range: str = "2y"
    timeout_seconds: float = 15.0
    batch_size: int = 5
    request_delay_ms: int = 200
    user_agent: str = "Mozilla/5.0 (compatible; stock-picks/0.1)"

    @field_validator("request_delay_ms")
    @classmethod
    def validate_delay(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"request_delay_ms must be >= 0, got {v}.")
        return v

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"batch_size must be >= 1, got {v}.")
        return v


class UniverseConfig(BaseModel):
    """Symbol universe.  An empty ``symbols`` list means the built-in universe."""

    model_config = ConfigDict(frozen=True)

    benchmark: str = "SPY"
    symbols: list[str] = []


class EngineConfig(BaseModel):
    """Pick generation settings."""

    model_config = ConfigDict(frozen=True)

    top_n: int = 20
    slippage_pct: float = 0.5

    @field_validator("top_n")
    @classmethod
    def validate_top_n(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"top_n must be >= 1, got {v}.")
        return v


class VerificationConfig(BaseModel):
    """Verification report settings."""

    model_config = ConfigDict(frozen=True)

    top_hits: int = 10


class BacktestConfig(BaseModel):
    """Retroactive backtest settings."""

    model_config = ConfigDict(frozen=True)

    min_sample_for_ranking: int = 2
    low_sample_below: int = 5


class PortfolioConfig(BaseModel):
    """Equal-weight portfolio constraints."""

    model_config = ConfigDict(frozen=True)

    max_positions: int = 10
    max_weight_per_position: float = 0.2
    reference_notional: float = 10_000.0

    @field_validator("max_weight_per_position")
    @classmethod
    def validate_max_weight(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError(f"max_weight_per_position must be in (0.0, 1.0], got {v}.")
        return v


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/stock_picks.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration.

    Constructed by ``load_config()``, which merges TOML, ``.env`` and
    ``STOCK_PICKS_*`` environment variables.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    data: DataConfig = DataConfig()
    provider: ProviderConfig = ProviderConfig()
    universe: UniverseConfig = UniverseConfig()
    engine: EngineConfig = EngineConfig()
    verification: VerificationConfig = VerificationConfig()
    backtest: BacktestConfig = BacktestConfig()
    portfolio: PortfolioConfig = PortfolioConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the config file does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply STOCK_PICKS_* env vars to the raw config dict.

    Supported overrides:
      STOCK_PICKS_DB_PATH           → raw["database"]["db_path"]
      STOCK_PICKS_LEDGER_DIR        → raw["data"]["ledger_dir"]
      STOCK_PICKS_REPORTS_DIR       → raw["data"]["reports_dir"]
      STOCK_PICKS_REQUEST_DELAY_MS  → raw["provider"]["request_delay_ms"]
      STOCK_PICKS_LOG_LEVEL         → raw["logging"]["level"]
      STOCK_PICKS_DEBUG             → raw["debug"]
    """
    if db_path := os.environ.get("STOCK_PICKS_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if ledger_dir := os.environ.get("STOCK_PICKS_LEDGER_DIR"):
        raw.setdefault("data", {})["ledger_dir"] = ledger_dir

    if reports_dir := os.environ.get("STOCK_PICKS_REPORTS_DIR"):
        raw.setdefault("data", {})["reports_dir"] = reports_dir

    if delay := os.environ.get("STOCK_PICKS_REQUEST_DELAY_MS"):
        raw.setdefault("provider", {})["request_delay_ms"] = int(delay)

    if log_level := os.environ.get("STOCK_PICKS_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("STOCK_PICKS_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        data=DataConfig(**raw.get("data", {})),
        provider=ProviderConfig(**raw.get("provider", {})),
        universe=UniverseConfig(**raw.get("universe", {})),
        engine=EngineConfig(**raw.get("engine", {})),
        verification=VerificationConfig(**raw.get("verification", {})),
        backtest=BacktestConfig(**raw.get("backtest", {})),
        portfolio=PortfolioConfig(**raw.get("portfolio", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", False),
    )
