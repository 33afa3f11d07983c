"""
History Module

Reads transfer and staking history from the account-history HTTP service
and derives rewards, activity feeds and account statistics from it.

The history service is best-effort: network failures and bad responses
are logged and degrade to an empty result rather than raising.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from ..client import HiveEngineClient

from ..types import (
    TransferRecord,
    StakingAction,
    ParsedTransaction,
    TransactionType,
    Activity,
    ActivityType,
    RewardEntry,
    RewardType,
    RewardTotals,
    WeeklyDistribution,
    AccountStats,
)
from ..types.history import utc_from_timestamp
from ..validation import ZERO
from ..config import config
from .operations import week_id

logger = logging.getLogger(__name__)

STAKING_REWARD_MARKER = "Staking reward"
CURATOR_REWARD_MARKER = "Curator reward"
REWARD_MARKER = "reward"

_UNSTAKE_ACTIONS = {"unstakeStart", "unstakeDone"}
_DELEGATE_ACTIONS = {"delegate", "undelegate"}


def classify_reward_memo(memo: Optional[str]) -> RewardType:
    """Reward category from a distribution memo"""
    memo = memo or ""
    if STAKING_REWARD_MARKER in memo:
        return RewardType.STAKING
    if CURATOR_REWARD_MARKER in memo:
        return RewardType.CURATOR
    if REWARD_MARKER in memo:
        return RewardType.CONTENT
    return RewardType.OTHER


class HistoryModule:
    """
    Account history queries

    Usage:
        client = HiveEngineClient()

        transfers = client.history.get_transfer_history("alice", limit=50)
        rewards = client.history.get_total_rewards_earned("alice")
        feed = client.history.get_recent_activity("alice", limit=20)
    """

    def __init__(self, client: "HiveEngineClient", http_client: Optional[httpx.Client] = None):
        """
        Initialize history module

        Args:
            client: HiveEngineClient instance
            http_client: Optional pre-built client for the history service
        """
        self._client = client
        self._http = http_client
        self._owns_http = http_client is None
        self._http_lock = threading.Lock()
        self._default_symbol = config.token.symbol
        self._rewards_account = config.accounts.rewards

    def _symbol(self, symbol: Optional[str]) -> str:
        return symbol or self._default_symbol

    def _get_http(self) -> httpx.Client:
        if self._http is None:
            with self._http_lock:
                if self._http is None:
                    self._http = httpx.Client(timeout=config.history_api.timeout_seconds)
        return self._http

    def _fetch(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """GET the history service; any failure degrades to []"""
        api = config.history_api
        try:
            response = self._get_http().get(api.base_url, params=params, timeout=api.timeout_seconds)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"History request failed for {params.get('account')}: {e}")
            return []
        except ValueError as e:
            logger.warning(f"Unreadable history response for {params.get('account')}: {e}")
            return []
        if not isinstance(data, list):
            return []
        return [row for row in data if isinstance(row, dict)]

    # =========================================================================
    # Transfers
    # =========================================================================

    def get_transfer_history(
        self,
        account: str,
        symbol: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[TransferRecord]:
        rows = self._fetch({
            "account": account,
            "symbol": self._symbol(symbol),
            "limit": str(limit),
            "offset": str(offset),
        })
        return [TransferRecord.from_row(row) for row in rows]

    def get_incoming_transfers(self, account: str, symbol: Optional[str] = None, limit: int = 50) -> List[TransferRecord]:
        history = self.get_transfer_history(account, symbol, limit * 2)
        return [tx for tx in history if tx.to_account == account][:limit]

    def get_outgoing_transfers(self, account: str, symbol: Optional[str] = None, limit: int = 50) -> List[TransferRecord]:
        history = self.get_transfer_history(account, symbol, limit * 2)
        return [tx for tx in history if tx.from_account == account][:limit]

    def get_parsed_history(
        self,
        account: str,
        symbol: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[ParsedTransaction]:
        return [
            ParsedTransaction(
                id=record.id,
                timestamp=record.datetime,
                type=TransactionType.TRANSFER,
                from_account=record.from_account,
                to_account=record.to_account,
                amount=record.quantity,
                symbol=record.symbol,
                memo=record.memo,
            )
            for record in self.get_transfer_history(account, symbol, limit, offset)
        ]

    # =========================================================================
    # Staking
    # =========================================================================

    def get_staking_history(self, account: str, symbol: Optional[str] = None, limit: int = 50) -> List[StakingAction]:
        rows = self._fetch({
            "account": account,
            "symbol": self._symbol(symbol),
            "limit": str(limit),
            "type": "staking",
        })
        return [StakingAction.from_row(row) for row in rows]

    # =========================================================================
    # Rewards
    # =========================================================================

    def get_rewards_received(self, account: str, symbol: Optional[str] = None, limit: int = 100) -> List[RewardEntry]:
        """Incoming transfers, classified by memo when sent by the rewards account"""
        rewards = []
        for tx in self.get_incoming_transfers(account, symbol, limit):
            if tx.from_account == self._rewards_account:
                reward_type = classify_reward_memo(tx.memo)
            else:
                reward_type = RewardType.OTHER
            rewards.append(RewardEntry(
                type=reward_type,
                amount=tx.quantity,
                from_account=tx.from_account,
                timestamp=tx.datetime,
                memo=tx.memo,
            ))
        return rewards

    def get_total_rewards_earned(self, account: str, symbol: Optional[str] = None) -> RewardTotals:
        totals = RewardTotals()
        for reward in self.get_rewards_received(account, symbol, 1000):
            totals.add(reward.type, reward.amount)
        return totals

    # =========================================================================
    # Activity
    # =========================================================================

    def get_recent_activity(self, account: str, symbol: Optional[str] = None, limit: int = 20) -> List[Activity]:
        """Transfers and staking actions merged, newest first"""
        symbol = self._symbol(symbol)
        with ThreadPoolExecutor(max_workers=2) as executor:
            transfers_future = executor.submit(self.get_transfer_history, account, symbol, limit)
            staking_future = executor.submit(self.get_staking_history, account, symbol, limit)
            transfers = transfers_future.result()
            staking = staking_future.result()

        activities: List[Activity] = []
        for tx in transfers:
            incoming = tx.to_account == account
            if tx.from_account == self._rewards_account:
                activity_type = ActivityType.REWARD
            elif incoming:
                activity_type = ActivityType.TRANSFER_IN
            else:
                activity_type = ActivityType.TRANSFER_OUT
            activities.append(Activity(
                type=activity_type,
                amount=tx.quantity,
                timestamp=tx.datetime,
                counterparty=tx.from_account if incoming else tx.to_account,
                memo=tx.memo,
            ))

        for action in staking:
            if action.action in _UNSTAKE_ACTIONS:
                activity_type = ActivityType.UNSTAKE
            elif action.action in _DELEGATE_ACTIONS:
                activity_type = ActivityType.DELEGATE
            else:
                activity_type = ActivityType.STAKE
            activities.append(Activity(
                type=activity_type,
                amount=action.quantity,
                timestamp=utc_from_timestamp(action.timestamp),
                counterparty=action.to_account or action.from_account,
            ))

        activities.sort(key=lambda a: a.timestamp, reverse=True)
        return activities[:limit]

    # =========================================================================
    # Distributions
    # =========================================================================

    def get_distribution_history(self, symbol: Optional[str] = None, limit: int = 100) -> List[TransferRecord]:
        """Transfers sent by the rewards account"""
        return self.get_outgoing_transfers(self._rewards_account, symbol, limit)

    def get_weekly_distribution_summary(self, symbol: Optional[str] = None) -> Dict[str, WeeklyDistribution]:
        """Distributions grouped by week id, in the order weeks first appear"""
        summary: Dict[str, WeeklyDistribution] = {}
        for tx in self.get_distribution_history(symbol, 1000):
            week = week_id(tx.datetime)
            entry = summary.setdefault(week, WeeklyDistribution(week_id=week))
            entry.total_amount += tx.quantity
            entry.recipient_count += 1

            reward_type = classify_reward_memo(tx.memo)
            if reward_type == RewardType.STAKING:
                entry.staking_rewards += tx.quantity
            elif reward_type == RewardType.CURATOR:
                entry.curator_rewards += tx.quantity
            elif reward_type == RewardType.CONTENT:
                entry.content_rewards += tx.quantity
        return summary

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_account_stats(self, account: str, symbol: Optional[str] = None) -> AccountStats:
        history = self.get_transfer_history(account, symbol, 1000)
        if not history:
            return AccountStats(total_received=ZERO, total_sent=ZERO, transfer_count=0, unique_counterparties=0)

        counterparties = set()
        total_received = ZERO
        total_sent = ZERO
        for tx in history:
            if tx.to_account == account:
                total_received += tx.quantity
                counterparties.add(tx.from_account)
            else:
                total_sent += tx.quantity
                counterparties.add(tx.to_account)

        timestamps = [tx.timestamp for tx in history]
        return AccountStats(
            total_received=total_received,
            total_sent=total_sent,
            transfer_count=len(history),
            unique_counterparties=len(counterparties),
            first_activity=utc_from_timestamp(min(timestamps)),
            last_activity=utc_from_timestamp(max(timestamps)),
        )

    def close(self):
        if self._http is not None and self._owns_http:
            self._http.close()
            self._http = None
