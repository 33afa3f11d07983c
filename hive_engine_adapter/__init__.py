"""
Hive Engine Adapter - Sidechain integration layer for Hive Engine tokens

Provides:
- Resilient JSON-RPC access to a federated set of sidechain nodes
- Token balances, stake, premium tiers and staking APY
- Unsigned operation envelopes for an external signer
- Market data with on-chain fallback and order book aggregation
- Swap quotes by walking the order book
- Account history and reward summaries
"""

__version__ = "0.1.0"

from .client import HiveEngineClient
from .types import (
    TokenBalance,
    StakeInfo,
    TokenInfo,
    PremiumTier,
    OrderBook,
    OrderBookEntry,
    MarketSnapshot,
    SwapQuote,
    OperationEnvelope,
    NativeTransfer,
    SwapPlan,
    AuthorityTier,
    AccountOverview,
)
from .errors import (
    HiveEngineError,
    RpcError,
    RequestCancelled,
    ValidationError,
    MarketDataUnavailable,
    ConfigurationError,
    ErrorCode,
)
from .infra import NodePool, RpcClient, RpcClientConfig, RetryPolicy, CancellationToken
from .modules import operations
from .modules.swap import quote_swap, walk_sell_book, build_swap_operations

__all__ = [
    "__version__",
    # Client
    "HiveEngineClient",
    # Types
    "TokenBalance",
    "StakeInfo",
    "TokenInfo",
    "PremiumTier",
    "OrderBook",
    "OrderBookEntry",
    "MarketSnapshot",
    "SwapQuote",
    "OperationEnvelope",
    "NativeTransfer",
    "SwapPlan",
    "AuthorityTier",
    "AccountOverview",
    # Errors
    "HiveEngineError",
    "RpcError",
    "RequestCancelled",
    "ValidationError",
    "MarketDataUnavailable",
    "ConfigurationError",
    "ErrorCode",
    # Infra
    "NodePool",
    "RpcClient",
    "RpcClientConfig",
    "RetryPolicy",
    "CancellationToken",
    # Builders
    "operations",
    "quote_swap",
    "walk_sell_book",
    "build_swap_operations",
]
