"""
Token balance, stake and token info type definitions
"""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from ..validation import parse_int, parse_quantity, ZERO

logger = logging.getLogger(__name__)


class PremiumTier(Enum):
    """Premium tiers by effective stake (ascending)"""
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


# Ascending (threshold, tier) pairs
PREMIUM_TIERS: Tuple[Tuple[Decimal, PremiumTier], ...] = (
    (Decimal(1000), PremiumTier.BRONZE),
    (Decimal(5000), PremiumTier.SILVER),
    (Decimal(25000), PremiumTier.GOLD),
    (Decimal(100000), PremiumTier.PLATINUM),
)

PREMIUM_FEATURES: Dict[PremiumTier, FrozenSet[str]] = {
    PremiumTier.BRONZE: frozenset({"ad_free", "bronze_badge"}),
    PremiumTier.SILVER: frozenset({"ad_free", "silver_badge", "priority_curation"}),
    PremiumTier.GOLD: frozenset({"ad_free", "gold_badge", "priority_curation", "exclusive_contests"}),
    PremiumTier.PLATINUM: frozenset({
        "ad_free", "platinum_badge", "priority_curation", "exclusive_contests", "direct_support",
    }),
}

# Weekly staking emission by program year; the last entry is open-ended
STAKING_POOLS: Tuple[Decimal, ...] = (
    Decimal(30000),
    Decimal(40000),
    Decimal(50000),
    Decimal(60000),
)


@dataclass(frozen=True)
class TokenBalance:
    """
    Balance of one token for one account

    Attributes:
        liquid: Available balance
        staked: Staked balance
        pending_unstake: Amount in the unstaking cooldown
        delegated_in: Stake delegated to this account
        delegated_out: Stake this account delegated away
        pending_undelegations: Delegations on their way back
    """
    account: str
    symbol: str
    liquid: Decimal = ZERO
    staked: Decimal = ZERO
    pending_unstake: Decimal = ZERO
    delegated_in: Decimal = ZERO
    delegated_out: Decimal = ZERO
    pending_undelegations: Decimal = ZERO

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TokenBalance":
        """Build from a `tokens.balances` row (quantities are decimal strings)"""
        balance = cls(
            account=row.get("account", ""),
            symbol=row.get("symbol", ""),
            liquid=parse_quantity(row.get("balance")),
            staked=parse_quantity(row.get("stake")),
            pending_unstake=parse_quantity(row.get("pendingUnstake")),
            delegated_in=parse_quantity(row.get("delegationsIn")),
            delegated_out=parse_quantity(row.get("delegationsOut")),
            pending_undelegations=parse_quantity(row.get("pendingUndelegations")),
        )
        if not balance.is_consistent:
            logger.warning(
                f"Negative total balance for {balance.account}/{balance.symbol}: "
                f"{balance.total} (delegated_out={balance.delegated_out})"
            )
        return balance

    @property
    def total(self) -> Decimal:
        """liquid + staked + delegated_in - delegated_out (may be negative transiently)"""
        return self.liquid + self.staked + self.delegated_in - self.delegated_out

    @property
    def effective_stake(self) -> Decimal:
        """Stake counted toward tiers and rewards"""
        return self.staked + self.delegated_in - self.delegated_out

    @property
    def is_consistent(self) -> bool:
        """False when derived totals are negative (chain reorganization in progress)"""
        return self.total >= 0


@dataclass(frozen=True)
class PendingUnstake:
    """Pending unstake record from `tokens.pendingUnstakes`"""
    tx_id: str
    account: str
    symbol: str
    quantity: Decimal
    quantity_left: Decimal
    next_transaction_timestamp: int
    number_transactions_left: int = 0
    millisec_per_period: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "PendingUnstake":
        return cls(
            tx_id=str(row.get("txID", "")),
            account=row.get("account", ""),
            symbol=row.get("symbol", ""),
            quantity=parse_quantity(row.get("quantity")),
            quantity_left=parse_quantity(row.get("quantityLeft")),
            next_transaction_timestamp=parse_int(row.get("nextTransactionTimestamp"), "nextTransactionTimestamp"),
            number_transactions_left=parse_int(row.get("numberTransactionsLeft"), "numberTransactionsLeft"),
            millisec_per_period=parse_int(row.get("millisecPerPeriod"), "millisecPerPeriod"),
        )


@dataclass(frozen=True)
class Delegation:
    """Delegation record from `tokens.delegations`"""
    from_account: str
    to_account: str
    symbol: str
    quantity: Decimal

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Delegation":
        return cls(
            from_account=row.get("from", ""),
            to_account=row.get("to", ""),
            symbol=row.get("symbol", ""),
            quantity=parse_quantity(row.get("quantity")),
        )


@dataclass(frozen=True)
class StakeInfo:
    """
    Stake summary for an account

    Attributes:
        next_unstake_release_time: Earliest pending unstake payout (ms epoch) or None
        estimated_apy: Percentage, 2 decimal places
        tier: Premium tier by effective stake, None below the lowest threshold
    """
    account: str
    symbol: str
    staked: Decimal
    pending_unstake: Decimal
    next_unstake_release_time: Optional[int]
    delegated_in: Decimal
    delegated_out: Decimal
    estimated_apy: Decimal
    tier: Optional[PremiumTier]

    @property
    def effective_stake(self) -> Decimal:
        return self.staked + self.delegated_in - self.delegated_out


@dataclass(frozen=True)
class TokenMetadata:
    """Parsed token metadata"""
    url: Optional[str] = None
    icon: Optional[str] = None
    desc: Optional[str] = None


@dataclass(frozen=True)
class TokenInfo:
    """Token definition from `tokens.tokens`"""
    symbol: str
    name: str
    issuer: str
    precision: int
    max_supply: Decimal
    supply: Decimal
    circulating_supply: Decimal
    staking_enabled: bool = False
    unstaking_cooldown: int = 0
    delegation_enabled: bool = False
    undelegation_cooldown: int = 0
    metadata_raw: str = ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TokenInfo":
        return cls(
            symbol=row.get("symbol", ""),
            name=row.get("name", ""),
            issuer=row.get("issuer", ""),
            precision=parse_int(row.get("precision"), "precision"),
            max_supply=parse_quantity(row.get("maxSupply")),
            supply=parse_quantity(row.get("supply")),
            circulating_supply=parse_quantity(row.get("circulatingSupply")),
            staking_enabled=bool(row.get("stakingEnabled", False)),
            unstaking_cooldown=parse_int(row.get("unstakingCooldown"), "unstakingCooldown"),
            delegation_enabled=bool(row.get("delegationEnabled", False)),
            undelegation_cooldown=parse_int(row.get("undelegationCooldown"), "undelegationCooldown"),
            metadata_raw=row.get("metadata") or "",
        )

    @property
    def metadata(self) -> Optional[TokenMetadata]:
        """Parsed metadata, None when absent or malformed"""
        if not self.metadata_raw:
            return None
        try:
            data = json.loads(self.metadata_raw)
        except ValueError:
            logger.warning(f"Unparseable metadata for token {self.symbol}")
            return None
        if not isinstance(data, dict):
            return None
        return TokenMetadata(url=data.get("url"), icon=data.get("icon"), desc=data.get("desc"))


@dataclass(frozen=True)
class Holder:
    """Leaderboard entry"""
    account: str
    balance: Decimal = ZERO
    stake: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.balance + self.stake


@dataclass(frozen=True)
class AccountOverview:
    """Balance, stake and recent activity joined for one account"""
    account: str
    balance: Optional[TokenBalance]
    stake_info: Optional[StakeInfo]
    recent_activity: Tuple = field(default_factory=tuple)
