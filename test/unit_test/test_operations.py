"""
Test unsigned operation builders

Every builder must reject bad input with ValidationError before building
anything, and emit the exact custom_json shape the sidechain expects.
"""

import json
import sys
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from hive_engine_adapter.modules import operations
from hive_engine_adapter.modules.operations import ContentRewardCategory
from hive_engine_adapter.types import AuthorityTier, OperationEnvelope
from hive_engine_adapter.errors import ValidationError, ErrorCode
from hive_engine_adapter.config import config


def payload_of(op: OperationEnvelope) -> dict:
    return json.loads(op.payload_json)


class TestEnvelope:

    def test_transfer_custom_json_shape(self):
        op = operations.build_transfer("alice", "bob", "10.000000", memo="thanks")

        body = op.to_custom_json()
        assert body["id"] == "ssc-mainnet-hive"
        assert body["required_auths"] == ["alice"]
        assert body["required_posting_auths"] == []
        assert json.loads(body["json"]) == {
            "contractName": "tokens",
            "contractAction": "transfer",
            "contractPayload": {"symbol": "MEDALS", "to": "bob", "quantity": "10.000000", "memo": "thanks"},
        }

    def test_signer_payload(self):
        op = operations.build_stake("alice", "5")
        signer = op.to_signer_payload()
        assert signer["requiredActiveAuths"] == ["alice"]
        assert signer["requiredLimitedAuths"] == []
        assert signer["payload"] == op.payload_json

    def test_payload_json_is_compact(self):
        op = operations.build_unstake("alice", "1")
        assert " " not in op.payload_json

    def test_operation_tuple(self):
        op = operations.build_transfer("alice", "bob", "1")
        name, body = op.to_operation()
        assert name == "custom_json"
        assert body == op.to_custom_json()

    def test_payload_is_read_only(self):
        op = operations.build_transfer("alice", "bob", "1")
        with pytest.raises(TypeError):
            op.contract_payload["to"] = "mallory"

    def test_posting_authority(self):
        op = OperationEnvelope(
            contract_name=operations.Contract.TOKENS,
            contract_action=operations.ContractAction.TRANSFER,
            contract_payload={},
            signer="alice",
            authority=AuthorityTier.POSTING,
        )
        assert op.required_active_auths == []
        assert op.required_limited_auths == ["alice"]


class TestTokenBuilders:

    def test_transfer_without_memo_omits_field(self):
        op = operations.build_transfer("alice", "bob", "1.5")
        assert "memo" not in payload_of(op)["contractPayload"]
        op = operations.build_transfer("alice", "bob", "1.5", memo="")
        assert "memo" not in payload_of(op)["contractPayload"]

    def test_transfer_from_amount_formats_precision(self):
        op = operations.build_transfer_from_amount("alice", "bob", Decimal("2.5"))
        assert payload_of(op)["contractPayload"]["quantity"] == "2.500000"

    def test_transfer_other_symbol(self):
        op = operations.build_transfer_from_amount("alice", "bob", Decimal("1.1"), symbol="SWAP.HIVE")
        payload = payload_of(op)["contractPayload"]
        assert payload["symbol"] == "SWAP.HIVE"
        assert payload["quantity"] == "1.10000000"

    def test_stake_defaults_to_self(self):
        op = operations.build_stake("alice", "100")
        assert payload_of(op) == {
            "contractName": "tokens",
            "contractAction": "stake",
            "contractPayload": {"symbol": "MEDALS", "to": "alice", "quantity": "100"},
        }

    def test_stake_to_other(self):
        op = operations.build_stake_from_amount("alice", 3, to_account="bob")
        payload = payload_of(op)["contractPayload"]
        assert payload["to"] == "bob"
        assert payload["quantity"] == "3.000000"
        assert op.signer == "alice"

    def test_unstake(self):
        op = operations.build_unstake_from_amount("alice", Decimal("0.5"))
        assert payload_of(op)["contractAction"] == "unstake"
        assert payload_of(op)["contractPayload"] == {"symbol": "MEDALS", "quantity": "0.500000"}

    def test_cancel_unstake(self):
        op = operations.build_cancel_unstake("alice", "abc123")
        assert payload_of(op) == {
            "contractName": "tokens",
            "contractAction": "cancelUnstake",
            "contractPayload": {"txID": "abc123"},
        }

    @pytest.mark.parametrize("tx_id", ["", None, 123])
    def test_cancel_unstake_rejects_bad_tx(self, tx_id):
        with pytest.raises(ValidationError) as exc_info:
            operations.build_cancel_unstake("alice", tx_id)
        assert exc_info.value.code == ErrorCode.INVALID_TRANSACTION_ID

    def test_delegate(self):
        op = operations.build_delegate_from_amount("alice", "bob", 10)
        assert payload_of(op)["contractPayload"] == {"symbol": "MEDALS", "to": "bob", "quantity": "10.000000"}

    def test_self_delegation_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            operations.build_delegate("alice", "alice", "10")
        assert exc_info.value.code == ErrorCode.SELF_DELEGATION

    def test_undelegate(self):
        op = operations.build_undelegate("alice", "bob", "10")
        assert op.signer == "alice"
        assert payload_of(op)["contractPayload"] == {"symbol": "MEDALS", "from": "bob", "quantity": "10"}

    def test_undelegate_from_amount(self):
        op = operations.build_undelegate_from_amount("alice", "bob", Decimal("1.25"))
        assert payload_of(op)["contractPayload"]["quantity"] == "1.250000"


class TestValidationBeforeBuild:

    @pytest.mark.parametrize("build", [
        lambda: operations.build_transfer("Alice", "bob", "1"),
        lambda: operations.build_transfer("alice", "b", "1"),
        lambda: operations.build_stake("alice", "1", to_account="-bad"),
        lambda: operations.build_unstake("1alice", "1"),
        lambda: operations.build_delegate("alice", "bob..x", "1"),
        lambda: operations.build_undelegate("alice", "bob-", "1"),
        lambda: operations.build_cancel_unstake("no", "tx"),
    ])
    def test_bad_accounts(self, build):
        with pytest.raises(ValidationError) as exc_info:
            build()
        assert exc_info.value.code == ErrorCode.INVALID_ACCOUNT

    @pytest.mark.parametrize("quantity", ["0", "-1", "1.1234567", "abc", "", "1e3"])
    def test_bad_quantities(self, quantity):
        with pytest.raises(ValidationError) as exc_info:
            operations.build_transfer("alice", "bob", quantity)
        assert exc_info.value.code == ErrorCode.INVALID_QUANTITY

    def test_non_ascii_digits_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            operations.build_transfer("alice", "bob", "١٠.٥")
        assert exc_info.value.code == ErrorCode.INVALID_QUANTITY

    @pytest.mark.parametrize("amount", [
        Decimal("Infinity"),
        Decimal("-Infinity"),
        Decimal("NaN"),
        Decimal(10) ** 25,
        "abc",
        None,
    ])
    def test_unusable_amounts_raise_validation_error(self, amount):
        for build in (
            lambda: operations.build_transfer_from_amount("alice", "bob", amount),
            lambda: operations.build_stake_from_amount("alice", amount),
            lambda: operations.build_delegate_from_amount("alice", "bob", amount),
        ):
            with pytest.raises(ValidationError) as exc_info:
                build()
            assert exc_info.value.code == ErrorCode.INVALID_QUANTITY
            assert exc_info.value.field == "amount"

    def test_zero_amount_from_number_rejected(self):
        with pytest.raises(ValidationError):
            operations.build_stake_from_amount("alice", 0)

    def test_bad_symbol(self):
        with pytest.raises(ValidationError) as exc_info:
            operations.build_transfer("alice", "bob", "1", symbol="medals")
        assert exc_info.value.code == ErrorCode.INVALID_SYMBOL

    def test_error_names_field(self):
        with pytest.raises(ValidationError) as exc_info:
            operations.build_transfer("alice", "B", "1")
        assert exc_info.value.field == "to"


class TestMarketOrders:

    def test_buy(self):
        op = operations.build_market_buy("alice", "MEDALS", "100.000000", "0.01000000")
        assert payload_of(op) == {
            "contractName": "market",
            "contractAction": "buy",
            "contractPayload": {"symbol": "MEDALS", "quantity": "100.000000", "price": "0.01000000"},
        }

    def test_sell(self):
        op = operations.build_market_sell("alice", "MEDALS", "5", "0.02")
        assert payload_of(op)["contractAction"] == "sell"

    @pytest.mark.parametrize("price", ["0", "-0.1", "0.123456789", "abc"])
    def test_bad_price(self, price):
        with pytest.raises(ValidationError) as exc_info:
            operations.build_market_buy("alice", "MEDALS", "1", price)
        assert exc_info.value.code == ErrorCode.INVALID_PRICE


class TestBatchesAndRewards:

    def test_batch_skips_non_positive(self):
        ops = operations.build_batch_transfers("alice", [
            {"to": "bob", "amount": 0},
            {"to": "carol", "amount": 5, "memo": "hi"},
            {"to": "dave", "amount": -1},
        ])
        assert len(ops) == 1
        payload = payload_of(ops[0])["contractPayload"]
        assert payload["to"] == "carol"
        assert payload["quantity"] == "5.000000"
        assert payload["memo"] == "hi"

    def test_batch_keeps_order_and_duplicates(self):
        ops = operations.build_batch_transfers("alice", [
            {"to": "bob", "amount": "1"},
            {"to": "carol", "amount": "2"},
            {"to": "bob", "amount": "3"},
        ])
        assert [payload_of(op)["contractPayload"]["to"] for op in ops] == ["bob", "carol", "bob"]

    @pytest.mark.parametrize("amount", ["abc", Decimal("Infinity"), Decimal("NaN"), Decimal(10) ** 25])
    def test_batch_rejects_unusable_amount(self, amount):
        with pytest.raises(ValidationError) as exc_info:
            operations.build_batch_transfers("alice", [
                {"to": "bob", "amount": "1"},
                {"to": "carol", "amount": amount},
            ])
        assert exc_info.value.code == ErrorCode.INVALID_QUANTITY

    def test_staking_rewards_reject_unusable_amount(self):
        with pytest.raises(ValidationError):
            operations.build_staking_reward_ops([{"account": "alice", "amount": "lots"}], week="2025-W07")

    def test_batch_empty(self):
        assert operations.build_batch_transfers("alice", []) == []

    def test_staking_rewards(self):
        ops = operations.build_staking_reward_ops(
            [{"account": "alice", "amount": Decimal("12.5")}, {"account": "bob", "amount": 0}],
            week="2025-W07",
        )
        assert len(ops) == 1
        assert ops[0].signer == config.accounts.rewards
        payload = payload_of(ops[0])["contractPayload"]
        assert payload["memo"] == "Staking reward 2025-W07"
        assert payload["quantity"] == "12.500000"

    def test_curator_reward_amounts(self):
        assert operations.get_curator_reward_amount(1) == Decimal(100)
        assert operations.get_curator_reward_amount(3) == Decimal(100)
        assert operations.get_curator_reward_amount(4) == Decimal(150)

    def test_curator_reward(self):
        op = operations.build_curator_reward("bob", "my-post", reward_amount=100)
        payload = payload_of(op)["contractPayload"]
        assert payload["to"] == "bob"
        assert payload["quantity"] == "100.000000"
        assert payload["memo"] == "Curator reward for @bob/my-post"

    def test_content_reward(self):
        op = operations.build_content_reward(
            ContentRewardCategory.MOST_EXTERNAL_VIEWS, "bob", post_id="bob/post", week="2025-W03"
        )
        payload = payload_of(op)["contractPayload"]
        assert payload["quantity"] == "5000.000000"
        assert payload["memo"] == "most_external_views reward 2025-W03: bob/post"

    def test_content_reward_from_string(self):
        op = operations.build_content_reward("best_newcomer", "bob", week="2025-W03")
        assert payload_of(op)["contractPayload"]["quantity"] == "1000.000000"

    @pytest.mark.parametrize("when,expected", [
        (date(2025, 1, 1), "2025-W01"),
        (date(2025, 1, 4), "2025-W01"),
        (date(2025, 1, 5), "2025-W02"),
        (datetime(2025, 2, 16, 12, tzinfo=timezone.utc), "2025-W08"),
        (date(2023, 1, 1), "2023-W01"),
        (date(2023, 1, 8), "2023-W02"),
    ])
    def test_week_id(self, when, expected):
        assert operations.week_id(when) == expected


class TestInspection:

    def test_valid_operation(self):
        op = operations.build_transfer("alice", "bob", "1")
        assert operations.validate_operation(op) == (True, None)
        assert operations.validate_operation(op.to_custom_json()) == (True, None)

    @pytest.mark.parametrize("body,reason", [
        ({"id": "other", "required_auths": ["a"], "json": "{}"}, "Invalid operation ID"),
        ({"id": "ssc-mainnet-hive", "required_auths": [], "json": "{}"}, "No signing accounts specified"),
        ({"id": "ssc-mainnet-hive", "required_auths": ["a"], "json": "{nope"}, "Invalid JSON payload"),
        ({"id": "ssc-mainnet-hive", "required_auths": ["a"], "json": '{"contractName": "tokens"}'},
         "Invalid payload structure"),
        ({"id": "ssc-mainnet-hive", "required_auths": ["a"], "json": "[]"}, "Invalid payload structure"),
    ])
    def test_invalid_operations(self, body, reason):
        assert operations.validate_operation(body) == (False, reason)

    def test_parse_operation(self):
        op = operations.build_delegate("alice", "bob", "2")
        assert operations.parse_operation(op) == {
            "contract": "tokens",
            "action": "delegate",
            "payload": {"symbol": "MEDALS", "to": "bob", "quantity": "2"},
            "signer": "alice",
        }

    def test_parse_unreadable(self):
        assert operations.parse_operation({"json": "not json"}) is None
        assert operations.parse_operation({}) is None
