"""TOML config loading, profiles, environment overrides, and validation."""

from __future__ import annotations

import json
import logging
import os
import re
import tomllib
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

from polyfront.errors import ConfigError

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"

# Env var -> (section, key). Env wins over TOML.
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "TARGET_ADDRESSES": ("listener", "target_addresses"),
    "FETCH_INTERVAL": ("listener", "fetch_interval_sec"),
    "MIN_TRADE_SIZE_USD": ("engine", "min_trade_size_usd"),
    "FRONTRUN_SIZE_MULTIPLIER": ("engine", "frontrun_size_multiplier"),
    "GAS_PRICE_MULTIPLIER": ("engine", "gas_price_multiplier"),
    "MIN_POL_BALANCE": ("engine", "min_gas_balance"),
    "RETRY_LIMIT": ("engine", "max_retries"),
    "BALANCE_CACHE_TTL": ("engine", "balance_cache_ttl_sec"),
    "DEDUP_RETENTION_SECONDS": ("engine", "dedup_retention_sec"),
    "MIN_REMAINING_USD": ("engine", "min_remaining_usd"),
    "TRADE_EXECUTION_ENABLED": ("engine", "trade_execution_enabled"),
    "RPC_URL": ("chain", "rpc_url"),
    "USDC_CONTRACT_ADDRESS": ("chain", "usdc_contract_address"),
    "CLOB_API_URL": ("polymarket", "clob_api_base"),
    "DATA_API_URL": ("polymarket", "data_api_base"),
    "PUBLIC_KEY": ("wallet", "proxy_wallet"),
    "PRIVATE_KEY": ("wallet", "private_key"),
    "POLYMARKET_API_KEY": ("wallet", "api_key"),
    "POLYMARKET_API_SECRET": ("wallet", "api_secret"),
    "POLYMARKET_API_PASSPHRASE": ("wallet", "api_passphrase"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
}

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_PRIVATE_KEY_RE = re.compile(r"^[a-fA-F0-9]{64}$")


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override values take precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir(config_dir: Path | None = None) -> Path:
    if config_dir is not None:
        return config_dir
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Load merged config from default.toml and optional profile overlay."""
    config_dir = _find_config_dir(config_dir)
    default_path = config_dir / "default.toml"
    if not default_path.exists():
        return {}
    base = _load_toml(default_path)
    if profile:
        profile_path = config_dir / f"{profile}.toml"
        if profile_path.exists():
            overlay = _load_toml(profile_path)
            base = _deep_merge(base, overlay)
    return base


def parse_list(value: str | list[Any] | None) -> list[str]:
    """Parse a JSON array or a comma separated string into a list of strings."""
    if not value:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    try:
        maybe_json = json.loads(value)
    except json.JSONDecodeError:
        maybe_json = None
    if isinstance(maybe_json, list):
        return [str(v).strip() for v in maybe_json if str(v).strip()]
    return [s.strip() for s in value.split(",") if s.strip()]


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def apply_env_overrides(raw: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Return a copy of raw with any set environment variables applied."""
    overlay: dict[str, Any] = {}
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or value == "":
            continue
        overlay.setdefault(section, {})[key] = value
    return _deep_merge(raw, overlay)


def get_settings(
    profile: str | None = None,
    config_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Return Settings instance from merged config plus environment overrides."""
    raw = load_config(profile, config_dir)
    raw = apply_env_overrides(raw, os.environ if environ is None else environ)
    return Settings.from_dict(raw)


class Settings:
    """Application settings from TOML config and environment."""

    def __init__(
        self,
        *,
        engine: dict[str, Any] | None = None,
        listener: dict[str, Any] | None = None,
        polymarket: dict[str, Any] | None = None,
        chain: dict[str, Any] | None = None,
        wallet: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
    ):
        self.engine = engine or {}
        self.listener = listener or {}
        self.polymarket = polymarket or {}
        self.chain = chain or {}
        self.wallet = wallet or {}
        self.logging = logging or {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        return cls(
            engine=raw.get("engine"),
            listener=raw.get("listener"),
            polymarket=raw.get("polymarket"),
            chain=raw.get("chain"),
            wallet=raw.get("wallet"),
            logging=raw.get("logging"),
        )

    # Engine
    @property
    def min_trade_size_usd(self) -> float:
        return float(self.engine.get("min_trade_size_usd", 100.0))

    @property
    def frontrun_size_multiplier(self) -> float:
        return float(self.engine.get("frontrun_size_multiplier", 0.5))

    @property
    def gas_price_multiplier(self) -> float:
        return float(self.engine.get("gas_price_multiplier", 1.2))

    @property
    def min_gas_balance(self) -> float:
        return float(self.engine.get("min_gas_balance", 0.2))

    @property
    def max_retries(self) -> int:
        return int(self.engine.get("max_retries", 3))

    @property
    def balance_cache_ttl_sec(self) -> float:
        return float(self.engine.get("balance_cache_ttl_sec", 5.0))

    @property
    def dedup_retention_sec(self) -> float:
        return float(self.engine.get("dedup_retention_sec", 30.0))

    @property
    def min_remaining_usd(self) -> float:
        return float(self.engine.get("min_remaining_usd", 1.0))

    @property
    def backoff_base_sec(self) -> float:
        return float(self.engine.get("backoff_base_sec", 1.0))

    @property
    def backoff_max_sec(self) -> float:
        return float(self.engine.get("backoff_max_sec", 5.0))

    @property
    def trade_execution_enabled(self) -> bool:
        return parse_bool(self.engine.get("trade_execution_enabled", True))

    # Listener
    @property
    def target_addresses(self) -> list[str]:
        return parse_list(self.listener.get("target_addresses"))

    @property
    def fetch_interval_sec(self) -> float:
        return float(self.listener.get("fetch_interval_sec", 1.0))

    @property
    def activity_limit(self) -> int:
        return int(self.listener.get("activity_limit", 50))

    @property
    def listener_backoff_max_sec(self) -> float:
        return float(self.listener.get("backoff_max_sec", 30.0))

    @property
    def seen_window_sec(self) -> float:
        return float(self.listener.get("seen_window_sec", 3600.0))

    # Polymarket
    @property
    def clob_api_base(self) -> str:
        return self.polymarket.get("clob_api_base", "https://clob.polymarket.com")

    @property
    def data_api_base(self) -> str:
        return self.polymarket.get("data_api_base", "https://data-api.polymarket.com")

    @property
    def chain_id(self) -> int:
        return int(self.polymarket.get("chain_id", 137))

    @property
    def signature_type(self) -> int:
        # 0 = EOA, 1 = Polymarket email/magic proxy, 2 = browser wallet proxy (Gnosis Safe)
        return int(self.polymarket.get("signature_type", 2))

    @property
    def request_timeout_sec(self) -> float:
        return float(self.polymarket.get("request_timeout_sec", 10.0))

    # Chain
    @property
    def rpc_url(self) -> str:
        return self.chain.get("rpc_url", "")

    @property
    def usdc_contract_address(self) -> str:
        return self.chain.get("usdc_contract_address", "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174")

    @property
    def usdc_decimals(self) -> int:
        return int(self.chain.get("usdc_decimals", 6))

    # Wallet (env only in practice)
    @property
    def proxy_wallet(self) -> str:
        return self.wallet.get("proxy_wallet", "")

    @property
    def private_key(self) -> str:
        return self.wallet.get("private_key", "")

    @property
    def api_credentials(self) -> dict[str, str] | None:
        key = self.wallet.get("api_key")
        secret = self.wallet.get("api_secret")
        passphrase = self.wallet.get("api_passphrase")
        if key and secret and passphrase:
            return {"key": key, "secret": secret, "passphrase": passphrase}
        return None

    # Logging
    @property
    def logging_level(self) -> str:
        return self.logging.get("level", "INFO").upper()

    @property
    def logging_format(self) -> str:
        return self.logging.get("format", "console")

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.INFO)

    def summary(self) -> dict[str, Any]:
        """Effective settings with secrets masked, for startup logs and `polyfront config`."""
        return {
            "target_addresses": self.target_addresses,
            "proxy_wallet": self.proxy_wallet,
            "private_key": "***" if self.private_key else "",
            "rpc_url": self.rpc_url,
            "fetch_interval_sec": self.fetch_interval_sec,
            "min_trade_size_usd": self.min_trade_size_usd,
            "frontrun_size_multiplier": self.frontrun_size_multiplier,
            "gas_price_multiplier": self.gas_price_multiplier,
            "min_gas_balance": self.min_gas_balance,
            "max_retries": self.max_retries,
            "balance_cache_ttl_sec": self.balance_cache_ttl_sec,
            "dedup_retention_sec": self.dedup_retention_sec,
            "min_remaining_usd": self.min_remaining_usd,
            "trade_execution_enabled": self.trade_execution_enabled,
            "usdc_contract_address": self.usdc_contract_address,
            "api_credentials": "***" if self.api_credentials else None,
        }


def is_valid_address(address: str) -> bool:
    return bool(_ADDRESS_RE.match(address or ""))


def is_valid_private_key(key: str) -> bool:
    cleaned = key[2:] if key.startswith("0x") else key
    return bool(_PRIVATE_KEY_RE.match(cleaned))


def is_valid_rpc_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https", "ws", "wss") and bool(parsed.netloc)


def _check_range(value: float, low: float, high: float, name: str) -> None:
    if value != value or value < low or value > high:
        raise ConfigError(f"{name} must be between {low} and {high}, got {value}")


def validate_settings(settings: Settings, require_wallet: bool = True) -> None:
    """Raise ConfigError on the first invalid value.

    Wallet, RPC and target checks are skipped with require_wallet=False so
    read-only commands can run without secrets.
    """
    try:
        _check_range(settings.fetch_interval_sec, 0.1, 60, "FETCH_INTERVAL")
        _check_range(settings.min_trade_size_usd, 0, 1_000_000, "MIN_TRADE_SIZE_USD")
        _check_range(settings.frontrun_size_multiplier, 0, 1, "FRONTRUN_SIZE_MULTIPLIER")
        _check_range(settings.gas_price_multiplier, 1, 5, "GAS_PRICE_MULTIPLIER")
        _check_range(settings.max_retries, 1, 10, "RETRY_LIMIT")
        _check_range(settings.min_gas_balance, 0, float("inf"), "MIN_POL_BALANCE")
        _check_range(settings.dedup_retention_sec, 0, float("inf"), "DEDUP_RETENTION_SECONDS")
        _check_range(settings.min_remaining_usd, 0, float("inf"), "MIN_REMAINING_USD")
        ttl = settings.balance_cache_ttl_sec
    except ValueError as e:
        raise ConfigError(f"Invalid numeric setting: {e}") from e
    if settings.frontrun_size_multiplier == 0:
        raise ConfigError("FRONTRUN_SIZE_MULTIPLIER must be greater than 0")
    if ttl <= 0:
        raise ConfigError(f"BALANCE_CACHE_TTL must be positive, got {ttl}")
    if not is_valid_address(settings.usdc_contract_address):
        raise ConfigError(f"Invalid USDC_CONTRACT_ADDRESS format: {settings.usdc_contract_address}")

    if not require_wallet:
        return

    targets = settings.target_addresses
    if not targets:
        raise ConfigError("TARGET_ADDRESSES must contain at least one trader address")
    for addr in targets:
        if not is_valid_address(addr):
            raise ConfigError(f"Invalid target address format: {addr}")
    if not settings.proxy_wallet:
        raise ConfigError("Missing required env var: PUBLIC_KEY")
    if not is_valid_address(settings.proxy_wallet):
        raise ConfigError(f"Invalid PUBLIC_KEY address format: {settings.proxy_wallet}")
    if not settings.private_key:
        raise ConfigError("Missing required env var: PRIVATE_KEY")
    if not is_valid_private_key(settings.private_key):
        raise ConfigError(
            "Invalid PRIVATE_KEY format. Must be 64-character hex string (with or without 0x prefix)"
        )
    if not settings.rpc_url:
        raise ConfigError("Missing required env var: RPC_URL")
    if not is_valid_rpc_url(settings.rpc_url):
        raise ConfigError(f"Invalid RPC_URL format: {settings.rpc_url}")


def configure_logging(settings: Settings) -> None:
    """Configure structlog with settings. Call once at application entry."""
    import structlog

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if settings.logging_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.pop()
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
