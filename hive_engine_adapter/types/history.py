"""
Account history type definitions
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from ..validation import parse_int, parse_quantity, ZERO


class TransactionType(Enum):
    TRANSFER = "transfer"
    STAKE = "stake"
    UNSTAKE = "unstake"
    DELEGATE = "delegate"
    UNDELEGATE = "undelegate"
    MARKET = "market"
    OTHER = "other"


class ActivityType(Enum):
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    STAKE = "stake"
    UNSTAKE = "unstake"
    DELEGATE = "delegate"
    REWARD = "reward"


class RewardType(Enum):
    STAKING = "staking"
    CURATOR = "curator"
    CONTENT = "content"
    OTHER = "other"


def utc_from_timestamp(unix_seconds: int) -> datetime:
    return datetime.fromtimestamp(unix_seconds, tz=timezone.utc)


@dataclass(frozen=True)
class TransferRecord:
    """Transfer from the account-history API (timestamp in unix seconds)"""
    id: str
    from_account: str
    to_account: str
    symbol: str
    quantity: Decimal
    timestamp: int
    memo: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TransferRecord":
        return cls(
            id=str(row.get("_id", "")),
            from_account=row.get("from", ""),
            to_account=row.get("to", ""),
            symbol=row.get("symbol", ""),
            quantity=parse_quantity(row.get("quantity")),
            timestamp=parse_int(row.get("timestamp"), "timestamp"),
            memo=row.get("memo"),
        )

    @property
    def datetime(self) -> datetime:
        return utc_from_timestamp(self.timestamp)


@dataclass(frozen=True)
class StakingAction:
    """Staking-type history entry"""
    id: str
    account: str
    symbol: str
    quantity: Decimal
    action: str
    timestamp: int
    to_account: Optional[str] = None
    from_account: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "StakingAction":
        return cls(
            id=str(row.get("_id", "")),
            account=row.get("account", ""),
            symbol=row.get("symbol", ""),
            quantity=parse_quantity(row.get("quantity")),
            action=row.get("action", ""),
            timestamp=parse_int(row.get("timestamp"), "timestamp"),
            to_account=row.get("to"),
            from_account=row.get("from"),
        )


@dataclass(frozen=True)
class ParsedTransaction:
    id: str
    timestamp: datetime
    type: TransactionType
    from_account: str
    symbol: str
    to_account: Optional[str] = None
    amount: Decimal = ZERO
    memo: Optional[str] = None
    block_number: int = 0
    tx_id: str = ""
    success: bool = True


@dataclass(frozen=True)
class Activity:
    type: ActivityType
    amount: Decimal
    timestamp: datetime
    counterparty: Optional[str] = None
    memo: Optional[str] = None


@dataclass(frozen=True)
class RewardEntry:
    type: RewardType
    amount: Decimal
    from_account: str
    timestamp: datetime
    memo: Optional[str] = None


@dataclass
class RewardTotals:
    total: Decimal = ZERO
    staking: Decimal = ZERO
    curator: Decimal = ZERO
    content: Decimal = ZERO
    other: Decimal = ZERO

    def add(self, reward_type: RewardType, amount: Decimal) -> None:
        self.total += amount
        setattr(self, reward_type.value, getattr(self, reward_type.value) + amount)


@dataclass
class WeeklyDistribution:
    week_id: str
    total_amount: Decimal = ZERO
    recipient_count: int = 0
    staking_rewards: Decimal = ZERO
    curator_rewards: Decimal = ZERO
    content_rewards: Decimal = ZERO


@dataclass(frozen=True)
class AccountStats:
    total_received: Decimal
    total_sent: Decimal
    transfer_count: int
    unique_counterparties: int
    first_activity: Optional[datetime] = None
    last_activity: Optional[datetime] = None
