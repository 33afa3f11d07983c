"""
Type definitions for the Hive Engine adapter
"""

from .rpc import (
    RpcMethod,
    RpcRequest,
    RpcResponse,
    RpcErrorBody,
    FindResult,
    FindOneResult,
    BlockInfo,
    next_request_id,
)
from .balance import (
    PremiumTier,
    PREMIUM_TIERS,
    PREMIUM_FEATURES,
    STAKING_POOLS,
    TokenBalance,
    PendingUnstake,
    Delegation,
    StakeInfo,
    TokenInfo,
    TokenMetadata,
    Holder,
    AccountOverview,
)
from .market import (
    MarketSource,
    OrderBookEntry,
    OrderBook,
    DepthLevel,
    AggregatedOrderBook,
    Trade,
    MarketSnapshot,
    PoolInfo,
    MarketStats,
    PriceImpact,
)
from .operation import (
    AuthorityTier,
    Contract,
    ContractAction,
    OperationEnvelope,
    NativeTransfer,
    SwapLeg,
    SwapPlan,
)
from .quote import SwapQuote
from .history import (
    TransactionType,
    ActivityType,
    RewardType,
    TransferRecord,
    StakingAction,
    ParsedTransaction,
    Activity,
    RewardEntry,
    RewardTotals,
    WeeklyDistribution,
    AccountStats,
)

__all__ = [
    # RPC
    "RpcMethod",
    "RpcRequest",
    "RpcResponse",
    "RpcErrorBody",
    "FindResult",
    "FindOneResult",
    "BlockInfo",
    "next_request_id",
    # Balances
    "PremiumTier",
    "PREMIUM_TIERS",
    "PREMIUM_FEATURES",
    "STAKING_POOLS",
    "TokenBalance",
    "PendingUnstake",
    "Delegation",
    "StakeInfo",
    "TokenInfo",
    "TokenMetadata",
    "Holder",
    "AccountOverview",
    # Market
    "MarketSource",
    "OrderBookEntry",
    "OrderBook",
    "DepthLevel",
    "AggregatedOrderBook",
    "Trade",
    "MarketSnapshot",
    "PoolInfo",
    "MarketStats",
    "PriceImpact",
    # Operations
    "AuthorityTier",
    "Contract",
    "ContractAction",
    "OperationEnvelope",
    "NativeTransfer",
    "SwapLeg",
    "SwapPlan",
    "SwapQuote",
    # History
    "TransactionType",
    "ActivityType",
    "RewardType",
    "TransferRecord",
    "StakingAction",
    "ParsedTransaction",
    "Activity",
    "RewardEntry",
    "RewardTotals",
    "WeeklyDistribution",
    "AccountStats",
]
