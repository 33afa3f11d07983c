"""
Test account history, rewards and activity feed
"""

import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import httpx
import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from hive_engine_adapter.modules.history import HistoryModule, classify_reward_memo
from hive_engine_adapter.types import ActivityType, RewardType, TransactionType
from hive_engine_adapter.config import config

from conftest import json_response

REWARDS = config.accounts.rewards

# 2025-01-06 (Monday) 00:00 UTC
T0 = 1736121600


def transfer(_id, sender, recipient, quantity, timestamp=T0, memo=None):
    row = {
        "_id": _id,
        "from": sender,
        "to": recipient,
        "symbol": "MEDALS",
        "quantity": str(quantity),
        "timestamp": timestamp,
    }
    if memo is not None:
        row["memo"] = memo
    return row


def staking(_id, action, quantity, timestamp=T0, to=None):
    return {
        "_id": _id,
        "account": "alice",
        "symbol": "MEDALS",
        "quantity": str(quantity),
        "action": action,
        "timestamp": timestamp,
        "to": to,
    }


def serve(transfers=(), staking_rows=()):
    """GET side effect returning staking rows for type=staking, transfers otherwise"""

    def get(url, params=None, **kwargs):
        rows = staking_rows if (params or {}).get("type") == "staking" else transfers
        return json_response(list(rows), url=url)

    return get


@pytest.fixture
def history(fake_client, http_client):
    return HistoryModule(fake_client, http_client=http_client)


class TestClassifyMemo:

    @pytest.mark.parametrize("memo,expected", [
        ("Staking reward 2025-W02", RewardType.STAKING),
        ("Curator reward for @bob/post", RewardType.CURATOR),
        ("most_comments reward 2025-W02", RewardType.CONTENT),
        ("thanks", RewardType.OTHER),
        ("", RewardType.OTHER),
        (None, RewardType.OTHER),
    ])
    def test_classify(self, memo, expected):
        assert classify_reward_memo(memo) == expected


class TestTransfers:

    def test_transfer_history_params(self, history, http_client):
        http_client.get.side_effect = serve([transfer("1", "bob", "alice", "5", memo="hi")])

        records = history.get_transfer_history("alice", limit=25, offset=50)

        assert len(records) == 1
        assert records[0].quantity == Decimal(5)
        assert records[0].memo == "hi"
        assert records[0].datetime == datetime(2025, 1, 6, tzinfo=timezone.utc)
        params = http_client.get.call_args.kwargs["params"]
        assert params == {"account": "alice", "symbol": "MEDALS", "limit": "25", "offset": "50"}

    def test_failure_degrades_to_empty(self, history, http_client):
        http_client.get.side_effect = httpx.ConnectError("down")
        assert history.get_transfer_history("alice") == []

    def test_http_error_degrades_to_empty(self, history, http_client):
        http_client.get.return_value = json_response({"error": "x"}, status_code=500)
        assert history.get_transfer_history("alice") == []

    def test_non_list_body_is_empty(self, history, http_client):
        http_client.get.return_value = json_response({"rows": []})
        assert history.get_transfer_history("alice") == []

    def test_malformed_timestamp_reads_as_epoch(self, history, http_client):
        http_client.get.side_effect = serve([
            transfer("1", "bob", "alice", "5", timestamp="yesterday"),
            transfer("2", "bob", "alice", "1"),
        ])

        records = history.get_transfer_history("alice")

        assert [r.id for r in records] == ["1", "2"]
        assert records[0].timestamp == 0
        assert records[1].timestamp == T0

    def test_incoming_and_outgoing(self, history, http_client):
        http_client.get.side_effect = serve([
            transfer("1", "bob", "alice", "5"),
            transfer("2", "alice", "carol", "3"),
            transfer("3", "dave", "alice", "1"),
        ])

        incoming = history.get_incoming_transfers("alice", limit=10)
        outgoing = history.get_outgoing_transfers("alice", limit=10)

        assert [t.id for t in incoming] == ["1", "3"]
        assert [t.id for t in outgoing] == ["2"]
        assert http_client.get.call_args.kwargs["params"]["limit"] == "20"

    def test_incoming_respects_limit(self, history, http_client):
        http_client.get.side_effect = serve([transfer(str(i), "bob", "alice", "1") for i in range(6)])
        assert len(history.get_incoming_transfers("alice", limit=2)) == 2

    def test_parsed_history(self, history, http_client):
        http_client.get.side_effect = serve([transfer("9", "bob", "alice", "2.5", memo="m")])
        parsed = history.get_parsed_history("alice")
        assert parsed[0].type == TransactionType.TRANSFER
        assert parsed[0].amount == Decimal("2.5")
        assert parsed[0].timestamp.tzinfo is not None


class TestRewards:

    def test_rewards_classified_only_from_rewards_account(self, history, http_client):
        http_client.get.side_effect = serve([
            transfer("1", REWARDS, "alice", "10", memo="Staking reward 2025-W02"),
            transfer("2", REWARDS, "alice", "100", memo="Curator reward for @alice/p"),
            transfer("3", REWARDS, "alice", "3000", memo="most_comments reward 2025-W02"),
            transfer("4", "bob", "alice", "7", memo="Staking reward fake"),
            transfer("5", "alice", "bob", "1"),
        ])

        rewards = history.get_rewards_received("alice")

        assert [r.type for r in rewards] == [
            RewardType.STAKING, RewardType.CURATOR, RewardType.CONTENT, RewardType.OTHER,
        ]

        totals = history.get_total_rewards_earned("alice")
        assert totals.staking == Decimal(10)
        assert totals.curator == Decimal(100)
        assert totals.content == Decimal(3000)
        assert totals.other == Decimal(7)
        assert totals.total == Decimal(3117)


class TestActivity:

    def test_merged_and_sorted(self, history, http_client):
        http_client.get.side_effect = serve(
            transfers=[
                transfer("t1", "bob", "alice", "5", timestamp=T0 + 10),
                transfer("t2", "alice", "carol", "2", timestamp=T0 + 30),
                transfer("t3", REWARDS, "alice", "9", timestamp=T0 + 50, memo="Staking reward"),
            ],
            staking_rows=[
                staking("s1", "stake", "100", timestamp=T0 + 20),
                staking("s2", "unstakeStart", "50", timestamp=T0 + 40),
                staking("s3", "delegate", "25", timestamp=T0 + 60, to="dave"),
            ],
        )

        feed = history.get_recent_activity("alice", limit=10)

        assert [a.type for a in feed] == [
            ActivityType.DELEGATE,
            ActivityType.REWARD,
            ActivityType.UNSTAKE,
            ActivityType.TRANSFER_OUT,
            ActivityType.STAKE,
            ActivityType.TRANSFER_IN,
        ]
        assert feed[0].counterparty == "dave"
        assert feed[3].counterparty == "carol"
        assert feed[5].counterparty == "bob"

    def test_limit_applied_after_merge(self, history, http_client):
        http_client.get.side_effect = serve(
            transfers=[transfer(f"t{i}", "bob", "alice", "1", timestamp=T0 + i) for i in range(5)],
            staking_rows=[staking(f"s{i}", "stake", "1", timestamp=T0 + 100 + i) for i in range(5)],
        )
        feed = history.get_recent_activity("alice", limit=3)
        assert len(feed) == 3
        assert all(a.type == ActivityType.STAKE for a in feed)


class TestDistributions:

    def test_weekly_summary(self, history, http_client):
        week = 7 * 24 * 3600
        http_client.get.side_effect = serve([
            transfer("1", REWARDS, "alice", "10", timestamp=T0, memo="Staking reward 2025-W02"),
            transfer("2", REWARDS, "bob", "100", timestamp=T0 + 60, memo="Curator reward for @bob/p"),
            transfer("3", REWARDS, "carol", "5", timestamp=T0 + week, memo="Staking reward 2025-W03"),
            transfer("4", "bob", REWARDS, "1", timestamp=T0),
        ])

        summary = history.get_weekly_distribution_summary()

        assert list(summary) == ["2025-W02", "2025-W03"]
        w2 = summary["2025-W02"]
        assert w2.total_amount == Decimal(110)
        assert w2.recipient_count == 2
        assert w2.staking_rewards == Decimal(10)
        assert w2.curator_rewards == Decimal(100)
        assert summary["2025-W03"].staking_rewards == Decimal(5)


class TestAccountStats:

    def test_stats(self, history, http_client):
        http_client.get.side_effect = serve([
            transfer("1", "bob", "alice", "5", timestamp=T0 + 100),
            transfer("2", "alice", "carol", "2", timestamp=T0),
            transfer("3", "bob", "alice", "1", timestamp=T0 + 50),
        ])

        stats = history.get_account_stats("alice")

        assert stats.total_received == Decimal(6)
        assert stats.total_sent == Decimal(2)
        assert stats.transfer_count == 3
        assert stats.unique_counterparties == 2
        assert stats.first_activity == datetime(2025, 1, 6, tzinfo=timezone.utc)
        assert stats.last_activity.timestamp() == T0 + 100

    def test_empty_stats(self, history, http_client):
        http_client.get.side_effect = serve([])
        stats = history.get_account_stats("alice")
        assert stats.transfer_count == 0
        assert stats.first_activity is None

    def test_close_keeps_injected_client(self, history, http_client):
        history.close()
        http_client.close.assert_not_called()
