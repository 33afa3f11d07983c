"""
Error definitions for the Hive Engine adapter
"""

from .exceptions import (
    ErrorCode,
    HiveEngineError,
    RpcError,
    RequestCancelled,
    ValidationError,
    MarketDataUnavailable,
    ConfigurationError,
)

__all__ = [
    "ErrorCode",
    "HiveEngineError",
    "RpcError",
    "RequestCancelled",
    "ValidationError",
    "MarketDataUnavailable",
    "ConfigurationError",
]
