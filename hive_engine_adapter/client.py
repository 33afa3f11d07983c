"""
HiveEngineClient - Unified entry point for sidechain queries

Provides a high-level interface to the Hive Engine sidechain through
functional modules (tokens, market, swap, history) and the operation
builder.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from types import ModuleType
from typing import List, Optional, Sequence, TYPE_CHECKING

from .infra import NodePool, RpcClient, RpcClientConfig, CorrelationContext
from .types import AccountOverview
from .modules import operations as _operations

logger = logging.getLogger(__name__)


class HiveEngineClient:
    """
    Unified Hive Engine adapter client

    Provides access to sidechain data through functional modules:
    - tokens: Balances, stake, tiers, token info
    - market: Market data, order books, pools
    - swap: Swap quotes and swap legs
    - history: Transfers, rewards, activity
    - operations: Unsigned operation builders

    The client owns one NodePool shared by every request it makes, so node
    health is remembered for the client's lifetime.

    Usage:
        with HiveEngineClient() as client:
            balance = client.tokens.get_balance("alice")
            quote = client.swap.quote(Decimal("50"))
            op = client.operations.build_stake("alice", "100.000000")
    """

    def __init__(
        self,
        nodes: Optional[Sequence[str]] = None,
        rpc_config: Optional[RpcClientConfig] = None,
        pool: Optional[NodePool] = None,
        rpc: Optional[RpcClient] = None,
    ):
        """
        Initialize HiveEngineClient

        Args:
            nodes: Node URLs (defaults to configured nodes)
            rpc_config: Optional RPC configuration
            pool: Optional pre-built node pool
            rpc: Optional pre-built RPC client (its pool is used)
        """
        if rpc is not None:
            self._rpc = rpc
            self._pool = rpc.pool
        else:
            self._pool = pool or NodePool(nodes)
            self._rpc = RpcClient(self._pool, config=rpc_config)

        # Lazy-loaded modules
        self._tokens: Optional["TokenModule"] = None
        self._market: Optional["MarketModule"] = None
        self._swap: Optional["SwapModule"] = None
        self._history: Optional["HistoryModule"] = None

    @property
    def rpc(self) -> RpcClient:
        """Access to RPC client"""
        return self._rpc

    @property
    def pool(self) -> NodePool:
        return self._pool

    @property
    def operations(self) -> ModuleType:
        """Operation builders (pure, no network access)"""
        return _operations

    @property
    def tokens(self) -> "TokenModule":
        """
        Token module for balance and stake queries

        Provides:
        - get_balance(account): Parsed balance
        - get_stake_info(account): Stake, tier and APY
        - get_token_info(symbol): Token definition
        - get_top_holders(): Rich list
        """
        if self._tokens is None:
            from .modules.tokens import TokenModule
            self._tokens = TokenModule(self)
        return self._tokens

    @property
    def market(self) -> "MarketModule":
        """
        Market module for market data and order books

        Provides:
        - get_market_data(symbol): Snapshot with sidechain fallback
        - get_order_book(symbol, depth): Raw book
        - get_aggregated_order_book(symbol): Depth chart levels
        - get_market_stats(symbol): Spread and liquidity
        """
        if self._market is None:
            from .modules.market import MarketModule
            self._market = MarketModule(self)
        return self._market

    @property
    def swap(self) -> "SwapModule":
        """
        Swap module

        Provides:
        - quote(amount): Walk the ask book
        - build_operations(account, quote): Ordered swap legs
        """
        if self._swap is None:
            from .modules.swap import SwapModule
            self._swap = SwapModule(self)
        return self._swap

    @property
    def history(self) -> "HistoryModule":
        """
        History module

        Provides:
        - get_transfer_history(account): Raw transfers
        - get_rewards_received(account): Classified rewards
        - get_recent_activity(account): Merged activity feed
        - get_account_stats(account): Totals and counterparties
        """
        if self._history is None:
            from .modules.history import HistoryModule
            self._history = HistoryModule(self)
        return self._history

    def get_account_overview(
        self,
        account: str,
        symbol: Optional[str] = None,
        activity_limit: int = 10,
    ) -> AccountOverview:
        """
        Balance, stake info and recent activity for one account

        The three lookups run in parallel; an RPC failure propagates.
        """
        with CorrelationContext("overview") as cid:
            logger.debug(f"[{cid}] Loading account overview for {account}")
            with ThreadPoolExecutor(max_workers=3) as executor:
                balance_future = executor.submit(self.tokens.get_balance, account, symbol)
                stake_future = executor.submit(self.tokens.get_stake_info, account, symbol)
                activity_future = executor.submit(
                    self.history.get_recent_activity, account, symbol, activity_limit
                )
                balance = balance_future.result()
                stake_info = stake_future.result()
                activity = activity_future.result()

        return AccountOverview(
            account=account,
            balance=balance,
            stake_info=stake_info,
            recent_activity=tuple(activity),
        )

    def node_health(self) -> List:
        return self._rpc.node_health()

    def close(self):
        """Close client connections and release resources"""
        if self._market is not None:
            self._market.close()
        if self._history is not None:
            self._history.close()
        self._rpc.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"HiveEngineClient(nodes={len(self._pool.nodes)})"


# Type hints for modules (resolved at runtime)
if TYPE_CHECKING:
    from .modules.tokens import TokenModule
    from .modules.market import MarketModule
    from .modules.swap import SwapModule
    from .modules.history import HistoryModule
