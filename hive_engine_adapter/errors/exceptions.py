"""
Exception definitions for the Hive Engine adapter
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """
    Unified error codes for sidechain operations

    1xxx - RPC errors
    2xxx - Validation errors
    3xxx - Market data errors
    9xxx - Configuration errors
    """
    # RPC errors (recoverable)
    RPC_CONNECTION_FAILED = "1001"
    RPC_TIMEOUT = "1002"
    RPC_RATE_LIMITED = "1003"
    RPC_INVALID_RESPONSE = "1004"
    RPC_HTTP_ERROR = "1005"
    RPC_PROTOCOL_ERROR = "1006"
    RPC_EXHAUSTED = "1007"
    RPC_CANCELLED = "1008"

    # Validation errors (fatal)
    INVALID_ACCOUNT = "2001"
    INVALID_QUANTITY = "2002"
    SELF_DELEGATION = "2003"
    INVALID_TRANSACTION_ID = "2004"
    INVALID_SYMBOL = "2005"
    INVALID_PRICE = "2006"

    # Market data errors
    MARKET_DATA_UNAVAILABLE = "3001"

    # Configuration errors
    CONFIG_INVALID = "9001"
    CONFIG_MISSING = "9002"


class HiveEngineError(Exception):
    """
    Base exception for all adapter errors

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        recoverable: Whether the error might succeed on retry
        original_error: The underlying exception if any
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"

    @property
    def should_retry(self) -> bool:
        """Indicate if the operation should be retried"""
        return self.recoverable


class RpcError(HiveEngineError):
    """
    RPC-related errors - recoverable by trying another node

    Raised when:
    - Connection to a node fails or times out
    - A node answers with a non-2xx status
    - A node answers with a JSON-RPC error field or malformed JSON
    - Every attempt of a request has failed
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.RPC_CONNECTION_FAILED,
        original_error: Optional[Exception] = None,
        endpoint: Optional[str] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=True,
            original_error=original_error,
            details={"endpoint": endpoint} if endpoint else None,
        )
        self.endpoint = endpoint

    @classmethod
    def connection_failed(cls, endpoint: str, error: Exception = None) -> "RpcError":
        return cls(
            f"Failed to connect to RPC node: {endpoint}",
            ErrorCode.RPC_CONNECTION_FAILED,
            original_error=error,
            endpoint=endpoint,
        )

    @classmethod
    def timeout(cls, endpoint: str, timeout_seconds: float) -> "RpcError":
        return cls(
            f"RPC request timed out after {timeout_seconds}s",
            ErrorCode.RPC_TIMEOUT,
            endpoint=endpoint,
        )

    @classmethod
    def rate_limited(cls, endpoint: str) -> "RpcError":
        return cls(
            "RPC rate limit exceeded",
            ErrorCode.RPC_RATE_LIMITED,
            endpoint=endpoint,
        )

    @classmethod
    def http_status(cls, endpoint: str, status_code: int) -> "RpcError":
        if status_code == 429:
            return cls.rate_limited(endpoint)
        return cls(
            f"HTTP error {status_code}",
            ErrorCode.RPC_HTTP_ERROR,
            endpoint=endpoint,
        )

    @classmethod
    def protocol(cls, endpoint: str, message: str, rpc_code: Optional[int] = None) -> "RpcError":
        error = cls(
            f"RPC error: {message}",
            ErrorCode.RPC_PROTOCOL_ERROR,
            endpoint=endpoint,
        )
        error.details["rpc_error_code"] = rpc_code
        return error

    @classmethod
    def invalid_response(cls, endpoint: str, error: Exception = None) -> "RpcError":
        return cls(
            "Malformed JSON-RPC response",
            ErrorCode.RPC_INVALID_RESPONSE,
            original_error=error,
            endpoint=endpoint,
        )

    @classmethod
    def exhausted(cls) -> "RpcError":
        return cls("All Hive Engine nodes failed", ErrorCode.RPC_EXHAUSTED)


class RequestCancelled(HiveEngineError):
    """
    The caller cancelled an in-flight request - never retried

    Distinct from RpcError.timeout so retry logic can tell a deliberate
    stop from a slow node.
    """

    def __init__(self, message: str = "Request cancelled by caller", endpoint: Optional[str] = None):
        super().__init__(
            message,
            ErrorCode.RPC_CANCELLED,
            recoverable=False,
            details={"endpoint": endpoint} if endpoint else None,
        )
        self.endpoint = endpoint


class ValidationError(HiveEngineError):
    """
    Operation parameters rejected before any network or builder call

    Attributes:
        field: Name of the rejected parameter
        reason: Specific reason string
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        field: Optional[str] = None,
        value: Optional[str] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=False,
            details={"field": field, "value": value},
        )
        self.field = field
        self.value = value
        self.reason = message

    @classmethod
    def invalid_account(cls, name, field: str = "account") -> "ValidationError":
        return cls(f"Invalid account name: {name}", ErrorCode.INVALID_ACCOUNT, field=field, value=name)

    @classmethod
    def invalid_quantity(cls, quantity, precision: int, field: str = "quantity") -> "ValidationError":
        return cls(
            f"Invalid quantity: {quantity} (expected positive decimal with at most {precision} places)",
            ErrorCode.INVALID_QUANTITY,
            field=field,
            value=quantity,
        )

    @classmethod
    def self_delegation(cls, account: str) -> "ValidationError":
        return cls("Cannot delegate to yourself", ErrorCode.SELF_DELEGATION, field="to", value=account)

    @classmethod
    def invalid_transaction_id(cls, tx_id) -> "ValidationError":
        return cls("Invalid transaction ID", ErrorCode.INVALID_TRANSACTION_ID, field="tx_id", value=tx_id)

    @classmethod
    def invalid_symbol(cls, symbol) -> "ValidationError":
        return cls(f"Invalid token symbol: {symbol}", ErrorCode.INVALID_SYMBOL, field="symbol", value=symbol)

    @classmethod
    def invalid_price(cls, price) -> "ValidationError":
        return cls(f"Invalid price: {price}", ErrorCode.INVALID_PRICE, field="price", value=price)


class MarketDataUnavailable(HiveEngineError):
    """
    Primary market-data API failed - recoverable via the on-chain fallback
    """

    def __init__(
        self,
        message: str,
        symbol: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            ErrorCode.MARKET_DATA_UNAVAILABLE,
            recoverable=True,
            original_error=original_error,
            details={"symbol": symbol},
        )
        self.symbol = symbol

    @classmethod
    def http_status(cls, symbol: str, status_code: int) -> "MarketDataUnavailable":
        return cls(f"Market API returned HTTP {status_code} for {symbol}", symbol=symbol)

    @classmethod
    def request_failed(cls, symbol: str, error: Exception) -> "MarketDataUnavailable":
        return cls(f"Market API request failed for {symbol}: {error}", symbol=symbol, original_error=error)


class ConfigurationError(HiveEngineError):
    """
    Configuration-related errors

    Raised when:
    - Required configuration is missing
    - Configuration values are invalid
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        super().__init__(message, code, recoverable=False)

    @classmethod
    def missing(cls, param: str) -> "ConfigurationError":
        return cls(f"Missing required configuration: {param}", ErrorCode.CONFIG_MISSING)

    @classmethod
    def invalid(cls, param: str, reason: str) -> "ConfigurationError":
        return cls(f"Invalid configuration '{param}': {reason}", ErrorCode.CONFIG_INVALID)
