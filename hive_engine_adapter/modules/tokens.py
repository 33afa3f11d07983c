"""
Token Module

Provides balance, stake and token-info queries against the sidechain
`tokens` contract, plus the premium tier and staking APY rules.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, FrozenSet, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..client import HiveEngineClient

from ..types import (
    TokenBalance,
    PendingUnstake,
    Delegation,
    StakeInfo,
    TokenInfo,
    TokenMetadata,
    Holder,
    PremiumTier,
    PREMIUM_TIERS,
    PREMIUM_FEATURES,
    STAKING_POOLS,
)
from ..types.operation import Contract
from ..validation import parse_quantity, ZERO
from ..config import config

logger = logging.getLogger(__name__)

WEEKS_PER_YEAR = 52

# Upper bound used when summing every staker's balance
TOTAL_STAKED_SCAN_LIMIT = 10000


def get_premium_tier(effective_stake: Decimal) -> Optional[PremiumTier]:
    """
    Premium tier for an effective stake

    Thresholds are inclusive: exactly 1000 is BRONZE, 999.999999 is none.
    """
    tier = None
    for threshold, candidate in PREMIUM_TIERS:
        if effective_stake >= threshold:
            tier = candidate
    return tier


def get_premium_features(tier: Optional[PremiumTier]) -> FrozenSet[str]:
    if tier is None:
        return frozenset()
    return PREMIUM_FEATURES[tier]


def get_staking_pool(years_active: int) -> Decimal:
    """Weekly staking emission for the given program year (1-indexed)"""
    if years_active <= 1:
        return STAKING_POOLS[0]
    return STAKING_POOLS[min(years_active, len(STAKING_POOLS)) - 1]


def get_current_staking_pool(now: Optional[datetime] = None, start_year: Optional[int] = None) -> Decimal:
    now = now or datetime.now(timezone.utc)
    start_year = start_year if start_year is not None else config.token.program_start_year
    return get_staking_pool(now.year - start_year + 1)


def calculate_apy(user_stake: Decimal, total_staked: Decimal, weekly_pool: Decimal) -> Decimal:
    """
    Estimated staking APY as a percentage, rounded to 2 places

    Returns 0 when either stake is non-positive.
    """
    if user_stake <= 0 or total_staked <= 0:
        return Decimal("0.00")
    weekly_reward = user_stake / total_staked * weekly_pool
    annual_reward = weekly_reward * WEEKS_PER_YEAR
    apy = annual_reward / user_stake * 100
    return apy.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def calculate_weekly_reward(stake: Decimal, total_staked: Decimal, weekly_pool: Decimal) -> Decimal:
    if stake <= 0 or total_staked <= 0:
        return ZERO
    return stake / total_staked * weekly_pool


class TokenModule:
    """
    Token balance and staking queries

    Usage:
        client = HiveEngineClient()

        balance = client.tokens.get_balance("alice")
        info = client.tokens.get_stake_info("alice")
        tier = client.tokens.get_account_tier("alice")
    """

    def __init__(self, client: "HiveEngineClient"):
        """
        Initialize token module

        Args:
            client: HiveEngineClient instance
        """
        self._client = client
        self._rpc = client.rpc
        self._default_symbol = config.token.symbol

    def _symbol(self, symbol: Optional[str]) -> str:
        return symbol or self._default_symbol

    # =========================================================================
    # Balances
    # =========================================================================

    def get_raw_balance(self, account: str, symbol: Optional[str] = None) -> Optional[Dict]:
        """Unparsed `tokens.balances` row"""
        return self._rpc.find_one(
            Contract.TOKENS.value, "balances", {"account": account, "symbol": self._symbol(symbol)}
        )

    def get_balance(self, account: str, symbol: Optional[str] = None) -> Optional[TokenBalance]:
        """
        Get parsed balance for an account

        Returns:
            TokenBalance, or None if the account has never held the token
        """
        row = self.get_raw_balance(account, symbol)
        if row is None:
            return None
        return TokenBalance.from_row(row)

    def get_all_balances(self, account: str) -> List[TokenBalance]:
        rows = self._rpc.find(Contract.TOKENS.value, "balances", {"account": account})
        return [TokenBalance.from_row(row) for row in rows]

    def get_balances_for_accounts(
        self,
        accounts: List[str],
        symbol: Optional[str] = None,
    ) -> Dict[str, TokenBalance]:
        """Batch balance lookup keyed by account; accounts without a row are absent"""
        if not accounts:
            return {}
        rows = self._rpc.find(
            Contract.TOKENS.value,
            "balances",
            {"account": {"$in": list(accounts)}, "symbol": self._symbol(symbol)},
        )
        return {row.get("account", ""): TokenBalance.from_row(row) for row in rows}

    # =========================================================================
    # Staking
    # =========================================================================

    def get_pending_unstakes(self, account: str, symbol: Optional[str] = None) -> List[PendingUnstake]:
        rows = self._rpc.find(
            Contract.TOKENS.value, "pendingUnstakes", {"account": account, "symbol": self._symbol(symbol)}
        )
        return [PendingUnstake.from_row(row) for row in rows]

    def get_delegations_out(self, account: str, symbol: Optional[str] = None) -> List[Delegation]:
        rows = self._rpc.find(
            Contract.TOKENS.value, "delegations", {"from": account, "symbol": self._symbol(symbol)}
        )
        return [Delegation.from_row(row) for row in rows]

    def get_delegations_in(self, account: str, symbol: Optional[str] = None) -> List[Delegation]:
        rows = self._rpc.find(
            Contract.TOKENS.value, "delegations", {"to": account, "symbol": self._symbol(symbol)}
        )
        return [Delegation.from_row(row) for row in rows]

    def get_all_stakers(
        self,
        symbol: Optional[str] = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> List[TokenBalance]:
        """Balances with a non-zero stake (for reward distribution)"""
        rows = self._rpc.find(
            Contract.TOKENS.value,
            "balances",
            {"symbol": self._symbol(symbol), "stake": {"$gt": "0"}},
            limit=limit,
            offset=offset,
        )
        return [TokenBalance.from_row(row) for row in rows]

    def get_total_staked(self, symbol: Optional[str] = None) -> Decimal:
        stakers = self.get_all_stakers(symbol, limit=TOTAL_STAKED_SCAN_LIMIT)
        return sum((s.staked for s in stakers), ZERO)

    def get_stake_info(self, account: str, symbol: Optional[str] = None) -> Optional[StakeInfo]:
        """
        Stake summary with tier and estimated APY

        Balance, pending unstakes and network total stake are fetched in
        parallel; any failure propagates.

        Returns:
            StakeInfo, or None if the account has no balance row
        """
        symbol = self._symbol(symbol)
        with ThreadPoolExecutor(max_workers=3) as executor:
            balance_future = executor.submit(self.get_balance, account, symbol)
            unstakes_future = executor.submit(self.get_pending_unstakes, account, symbol)
            total_future = executor.submit(self.get_total_staked, symbol)

            balance = balance_future.result()
            unstakes = unstakes_future.result()
            total_staked = total_future.result()

        if balance is None:
            return None

        release_times = [u.next_transaction_timestamp for u in unstakes]
        effective_stake = balance.effective_stake

        return StakeInfo(
            account=account,
            symbol=symbol,
            staked=balance.staked,
            pending_unstake=balance.pending_unstake,
            next_unstake_release_time=min(release_times) if release_times else None,
            delegated_in=balance.delegated_in,
            delegated_out=balance.delegated_out,
            estimated_apy=calculate_apy(effective_stake, total_staked, get_current_staking_pool()),
            tier=get_premium_tier(effective_stake),
        )

    def estimate_apy(self, user_stake: Decimal, symbol: Optional[str] = None) -> Decimal:
        if user_stake <= 0:
            return Decimal("0.00")
        return calculate_apy(user_stake, self.get_total_staked(symbol), get_current_staking_pool())

    def estimate_weekly_reward(self, stake: Decimal, symbol: Optional[str] = None) -> Decimal:
        if stake <= 0:
            return ZERO
        return calculate_weekly_reward(stake, self.get_total_staked(symbol), get_current_staking_pool())

    # =========================================================================
    # Premium tiers
    # =========================================================================

    def get_account_tier(self, account: str) -> Optional[PremiumTier]:
        balance = self.get_balance(account, self._default_symbol)
        if balance is None:
            return None
        return get_premium_tier(balance.effective_stake)

    def has_premium_status(self, account: str) -> bool:
        return self.get_account_tier(account) is not None

    # =========================================================================
    # Token info
    # =========================================================================

    def get_token_info(self, symbol: Optional[str] = None) -> Optional[TokenInfo]:
        row = self._rpc.find_one(Contract.TOKENS.value, "tokens", {"symbol": self._symbol(symbol)})
        if row is None:
            return None
        return TokenInfo.from_row(row)

    def get_token_metadata(self, symbol: Optional[str] = None) -> Optional[TokenMetadata]:
        info = self.get_token_info(symbol)
        return info.metadata if info else None

    def token_exists(self, symbol: str) -> bool:
        return self.get_token_info(symbol) is not None

    # =========================================================================
    # Rich lists
    # =========================================================================

    def get_top_holders(self, symbol: Optional[str] = None, limit: int = 100) -> List[Holder]:
        """Holders ordered by liquid balance, descending"""
        rows = self._rpc.find(
            Contract.TOKENS.value,
            "balances",
            {"symbol": self._symbol(symbol)},
            limit=limit,
            index="balance",
            descending=True,
        )
        return [
            Holder(
                account=row.get("account", ""),
                balance=parse_quantity(row.get("balance")),
                stake=parse_quantity(row.get("stake")),
            )
            for row in rows
        ]

    def get_top_stakers(self, symbol: Optional[str] = None, limit: int = 100) -> List[Holder]:
        stakers = self.get_all_stakers(symbol, limit=limit)
        holders = [Holder(account=s.account, stake=s.staked) for s in stakers]
        return sorted(holders, key=lambda h: h.stake, reverse=True)
