"""
Configuration management for the Hive Engine adapter

Loads settings from environment variables and .env file.
Includes logging configuration with file output and correlation ID support.
"""

import os
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, List, Tuple

from dotenv import load_dotenv


def _load_env_file():
    """Load .env file from project root"""
    current = Path(__file__).parent.parent  # hive_engine_adapter package parent
    env_file = current / ".env"

    if env_file.exists():
        load_dotenv(env_file)


# Load .env on module import
_load_env_file()


DEFAULT_NODES: Tuple[str, ...] = (
    "https://api.hive-engine.com/rpc",
    "https://engine.rishipanthee.com",
    "https://herpc.dtools.dev",
    "https://api.primersion.com",
)


def _get_env(key: str, default: Optional[str] = "") -> Optional[str]:
    """Get environment variable with default"""
    value = os.getenv(key)
    if value is None:
        return default
    return value


def _get_env_float(key: str, default: float) -> float:
    """Get environment variable as float"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid float value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as int"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid int value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_decimal(key: str, default: str) -> Decimal:
    """Get environment variable as Decimal (money-like values never go through float)"""
    value = os.getenv(key)
    if value is None:
        return Decimal(default)
    try:
        return Decimal(value)
    except InvalidOperation:
        logging.getLogger(__name__).warning(
            f"Invalid decimal value for {key}='{value}', using default={default}"
        )
        return Decimal(default)


def _get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as bool"""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _get_env_list(key: str, default: Tuple[str, ...]) -> List[str]:
    """Get comma separated environment variable as list"""
    value = os.getenv(key)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class RpcConfig:
    """Sidechain RPC configuration"""
    nodes: List[str] = field(default_factory=lambda: _get_env_list("HIVE_ENGINE_NODES", DEFAULT_NODES))
    timeout_seconds: float = field(default_factory=lambda: _get_env_float("RPC_TIMEOUT_SECONDS", 10.0))
    max_retries: int = field(default_factory=lambda: _get_env_int("RPC_MAX_RETRIES", 3))
    retry_delay_seconds: float = field(default_factory=lambda: _get_env_float("RPC_RETRY_DELAY_SECONDS", 1.0))
    # Random fraction of the backoff added on top (0 = deterministic)
    retry_jitter: float = field(default_factory=lambda: _get_env_float("RPC_RETRY_JITTER", 0.0))
    # Consecutive failures before a node is marked unhealthy
    failure_threshold: int = field(default_factory=lambda: _get_env_int("RPC_FAILURE_THRESHOLD", 3))
    contracts_path: str = field(default_factory=lambda: _get_env("RPC_CONTRACTS_PATH", "/contracts"))
    blockchain_path: str = field(default_factory=lambda: _get_env("RPC_BLOCKCHAIN_PATH", "/blockchain"))


@dataclass
class MarketApiConfig:
    """Secondary market-data API (Tribaldex)"""
    base_url: str = field(default_factory=lambda: _get_env("MARKET_API_URL", "https://api.tribaldex.com"))
    metrics_path: str = field(default_factory=lambda: _get_env("MARKET_API_METRICS_PATH", "/market/metrics"))
    timeout_seconds: float = field(default_factory=lambda: _get_env_float("MARKET_API_TIMEOUT", 5.0))


@dataclass
class HistoryApiConfig:
    """Account history HTTP service"""
    base_url: str = field(default_factory=lambda: _get_env(
        "HISTORY_API_URL", "https://accounts.hive-engine.com/accountHistory"
    ))
    timeout_seconds: float = field(default_factory=lambda: _get_env_float("HISTORY_API_TIMEOUT", 10.0))


@dataclass
class TokenConfig:
    """Platform token settings"""
    symbol: str = field(default_factory=lambda: _get_env("TOKEN_SYMBOL", "MEDALS"))
    precision: int = field(default_factory=lambda: _get_env_int("TOKEN_PRECISION", 6))
    # Quote currency of the sidechain market
    quote_symbol: str = field(default_factory=lambda: _get_env("TOKEN_QUOTE_SYMBOL", "SWAP.HIVE"))
    # First year of the staking reward program
    program_start_year: int = field(default_factory=lambda: _get_env_int("TOKEN_PROGRAM_START_YEAR", 2025))
    contract_id: str = field(default_factory=lambda: _get_env("SIDECHAIN_CONTRACT_ID", "ssc-mainnet-hive"))


@dataclass
class AccountsConfig:
    """Platform accounts"""
    main: str = field(default_factory=lambda: _get_env("ACCOUNT_MAIN", "sportsblock"))
    rewards: str = field(default_factory=lambda: _get_env("ACCOUNT_REWARDS", "sportsblock"))
    burn: str = field(default_factory=lambda: _get_env("ACCOUNT_BURN", "medals.burn"))
    predictions: str = field(default_factory=lambda: _get_env("ACCOUNT_PREDICTIONS", "sp-predictions"))
    # Excluded from public leaderboards
    founders: List[str] = field(default_factory=lambda: _get_env_list("ACCOUNT_FOUNDERS", ("niallon11", "blanchy")))


@dataclass
class SwapConfig:
    """HIVE -> token swap settings"""
    fee_rate: Decimal = field(default_factory=lambda: _get_env_decimal("SWAP_FEE_RATE", "0.005"))
    slippage_buffer: Decimal = field(default_factory=lambda: _get_env_decimal("SWAP_SLIPPAGE_BUFFER", "0.005"))
    # Bridge account that wraps HIVE into SWAP.HIVE
    deposit_account: str = field(default_factory=lambda: _get_env("SWAP_DEPOSIT_ACCOUNT", "honey-swap"))
    deposit_memo: str = field(default_factory=lambda: _get_env("SWAP_DEPOSIT_MEMO", "SWAP.HIVE"))
    fee_memo: str = field(default_factory=lambda: _get_env("SWAP_FEE_MEMO", "Sportsblock swap fee"))
    book_depth: int = field(default_factory=lambda: _get_env_int("SWAP_BOOK_DEPTH", 200))


def _get_default_log_path() -> str:
    """Get default log file path under hive_engine_adapter/log/ with UTC timestamp"""
    from datetime import datetime, timezone
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_dir = Path(__file__).parent / "log"
    return str(log_dir / f"hive_engine_{timestamp}.log")


@dataclass
class LoggingConfig:
    """
    Logging configuration with file output and correlation ID support.

    File logging is off unless LOG_FILE is set (or enable_file_logging() is used).

    Environment variables:
        LOG_FILE: Path to log file
        LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
        LOG_FORMAT: Custom log format string
        LOG_CONSOLE: Enable console output (default: true)
        LOG_MAX_BYTES: Max log file size before rotation (default: 10MB)
        LOG_BACKUP_COUNT: Number of backup files to keep (default: 5)
    """
    log_file: str = field(default_factory=lambda: _get_env("LOG_FILE", ""))
    log_level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: _get_env(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))
    console_output: bool = field(default_factory=lambda: _get_env_bool("LOG_CONSOLE", True))
    max_bytes: int = field(default_factory=lambda: _get_env_int("LOG_MAX_BYTES", 10 * 1024 * 1024))  # 10MB
    backup_count: int = field(default_factory=lambda: _get_env_int("LOG_BACKUP_COUNT", 5))

    @property
    def level(self) -> int:
        """Get numeric log level"""
        return getattr(logging, self.log_level.upper(), logging.INFO)


@dataclass
class Config:
    """
    Main configuration container

    Usage:
        from hive_engine_adapter.config import config

        print(config.rpc.nodes)
        print(config.swap.fee_rate)
    """
    rpc: RpcConfig = field(default_factory=RpcConfig)
    market_api: MarketApiConfig = field(default_factory=MarketApiConfig)
    history_api: HistoryApiConfig = field(default_factory=HistoryApiConfig)
    token: TokenConfig = field(default_factory=TokenConfig)
    accounts: AccountsConfig = field(default_factory=AccountsConfig)
    swap: SwapConfig = field(default_factory=SwapConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def reload(cls) -> "Config":
        """Reload configuration from environment"""
        _load_env_file()
        return cls()


# Global config instance
config = Config()


def get_config() -> Config:
    """Get global configuration instance"""
    return config


def reload_config() -> Config:
    """Reload and return new configuration"""
    global config
    config = Config.reload()
    return config


def setup_logging(
    log_config: Optional[LoggingConfig] = None,
    logger_name: str = "hive_engine_adapter",
) -> logging.Logger:
    """
    Set up logging based on configuration.

    Creates handlers for file and/or console output with optional rotation.
    The log file directory is created automatically if it doesn't exist.

    Args:
        log_config: Logging configuration (uses global config if None)
        logger_name: Name of the logger to configure

    Returns:
        Configured logger instance
    """
    if log_config is None:
        log_config = config.logging

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_config.level)

    # Close before removing to flush buffers and release file handles
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(log_config.log_format)

    handlers: List[logging.Handler] = []

    if log_config.log_file:
        from logging.handlers import RotatingFileHandler

        log_path = Path(log_config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_config.log_file,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
            encoding='utf-8',
        )
        file_handler.setLevel(log_config.level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if log_config.console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_config.level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    for handler in handlers:
        logger.addHandler(handler)

    # Child loggers inherit handlers from parent
    for name in [
        f"{logger_name}.infra",
        f"{logger_name}.modules",
    ]:
        logging.getLogger(name).setLevel(log_config.level)

    if log_config.log_file:
        logger.info(f"Logging initialized: file={log_config.log_file}, level={log_config.log_level}")

    return logger


def enable_file_logging(
    log_file: Optional[str] = None,
    level: str = "INFO",
    console: bool = True,
) -> logging.Logger:
    """
    Quick setup for file logging.

    Args:
        log_file: Path to log file (defaults to hive_engine_adapter/log/hive_engine_<ts>.log)
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        console: Also output to console

    Returns:
        Configured logger
    """
    log_config = LoggingConfig(
        log_file=log_file or config.logging.log_file or _get_default_log_path(),
        log_level=level,
        console_output=console,
    )
    return setup_logging(log_config)
