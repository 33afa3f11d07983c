"""
Operation Builder

Builds unsigned sidechain operation envelopes. Every builder validates its
inputs first and raises ValidationError before anything is constructed;
nothing here touches the network.

Usage:
    from hive_engine_adapter.modules import operations

    op = operations.build_transfer("alice", "bob", "10.000000", memo="thanks")
    signer.sign_and_broadcast(op.to_signer_payload())
"""

import json
import logging
import math
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..errors import ValidationError
from ..types import (
    AuthorityTier,
    Contract,
    ContractAction,
    OperationEnvelope,
)
from ..validation import (
    Number,
    format_quantity,
    is_valid_account_name,
    is_valid_quantity,
    is_valid_symbol,
    to_decimal,
)
from ..config import config

logger = logging.getLogger(__name__)

# Precision of SWAP.HIVE, also the widest the sidechain accepts
MAX_PRECISION = 8

CURATOR_REWARD_EARLY = Decimal(100)
CURATOR_REWARD_LATE = Decimal(150)


class ContentRewardCategory(Enum):
    MOST_EXTERNAL_VIEWS = "most_external_views"
    MOST_VIEWED_POST = "most_viewed_post"
    MOST_COMMENTS = "most_comments"
    MOST_ENGAGED_POST = "most_engaged_post"
    POST_OF_WEEK = "post_of_week"
    BEST_NEWCOMER = "best_newcomer"


CONTENT_REWARD_AMOUNTS: Dict[ContentRewardCategory, Decimal] = {
    ContentRewardCategory.MOST_EXTERNAL_VIEWS: Decimal(5000),
    ContentRewardCategory.MOST_VIEWED_POST: Decimal(3000),
    ContentRewardCategory.MOST_COMMENTS: Decimal(3000),
    ContentRewardCategory.MOST_ENGAGED_POST: Decimal(2000),
    ContentRewardCategory.POST_OF_WEEK: Decimal(2000),
    ContentRewardCategory.BEST_NEWCOMER: Decimal(1000),
}


# =============================================================================
# Helpers
# =============================================================================

def precision_for(symbol: str) -> int:
    """Declared precision of the platform token, MAX_PRECISION for anything else"""
    if symbol == config.token.symbol:
        return config.token.precision
    return MAX_PRECISION


def _default_symbol(symbol: Optional[str]) -> str:
    return symbol or config.token.symbol


def _validate_params(
    from_account: Optional[str] = None,
    to_account: Optional[str] = None,
    quantity: Optional[str] = None,
    symbol: Optional[str] = None,
    from_field: str = "from",
    to_field: str = "to",
) -> None:
    if from_account is not None and not is_valid_account_name(from_account):
        raise ValidationError.invalid_account(from_account, from_field)
    if to_account is not None and not is_valid_account_name(to_account):
        raise ValidationError.invalid_account(to_account, to_field)
    if symbol is not None and not is_valid_symbol(symbol):
        raise ValidationError.invalid_symbol(symbol)
    if quantity is not None:
        precision = precision_for(symbol) if symbol else config.token.precision
        if not is_valid_quantity(quantity, precision):
            raise ValidationError.invalid_quantity(quantity, precision)


def _envelope(
    signer: str,
    contract: Contract,
    action: ContractAction,
    payload: Dict[str, Any],
    authority: AuthorityTier = AuthorityTier.ACTIVE,
) -> OperationEnvelope:
    return OperationEnvelope(
        contract_name=contract,
        contract_action=action,
        contract_payload=payload,
        signer=signer,
        authority=authority,
        contract_id=config.token.contract_id,
    )


def _to_amount(amount: Number, symbol: Optional[str], field: str = "amount") -> Decimal:
    """Decimal amount, or ValidationError for non-numeric and non-finite input"""
    precision = precision_for(_default_symbol(symbol))
    try:
        value = to_decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError.invalid_quantity(amount, precision, field)
    if not value.is_finite():
        raise ValidationError.invalid_quantity(amount, precision, field)
    return value


def _format_amount(amount: Number, symbol: str) -> str:
    value = _to_amount(amount, symbol)
    precision = precision_for(symbol)
    try:
        return format_quantity(value, precision)
    except InvalidOperation:
        # Wider than the decimal context allows
        raise ValidationError.invalid_quantity(amount, precision, "amount")


def week_id(when: Optional[Union[date, datetime]] = None) -> str:
    """
    Week identifier used in reward memos, e.g. "2025-W07"

    Weeks start on Sunday; week 1 is the (possibly partial) week holding
    January 1st.
    """
    when = when or datetime.now(timezone.utc)
    day = when.date() if isinstance(when, datetime) else when
    start_of_year = date(day.year, 1, 1)
    days = (day - start_of_year).days
    # Sunday = 0
    start_weekday = (start_of_year.weekday() + 1) % 7
    week = math.ceil((days + start_weekday + 1) / 7)
    return f"{day.year}-W{week:02d}"


# =============================================================================
# Transfers
# =============================================================================

def build_transfer(
    from_account: str,
    to_account: str,
    quantity: str,
    symbol: Optional[str] = None,
    memo: Optional[str] = None,
) -> OperationEnvelope:
    """
    Build a token transfer

    Args:
        from_account: Sender (signer)
        to_account: Recipient
        quantity: Decimal string at the token's precision
        symbol: Token symbol (defaults to the platform token)
        memo: Optional memo, omitted from the payload when empty

    Raises:
        ValidationError: On a bad account, symbol or quantity
    """
    symbol = _default_symbol(symbol)
    _validate_params(from_account, to_account, quantity, symbol)

    payload: Dict[str, Any] = {"symbol": symbol, "to": to_account, "quantity": quantity}
    if memo:
        payload["memo"] = memo
    return _envelope(from_account, Contract.TOKENS, ContractAction.TRANSFER, payload)


def build_transfer_from_amount(
    from_account: str,
    to_account: str,
    amount: Number,
    symbol: Optional[str] = None,
    memo: Optional[str] = None,
) -> OperationEnvelope:
    symbol = _default_symbol(symbol)
    return build_transfer(from_account, to_account, _format_amount(amount, symbol), symbol, memo)


# =============================================================================
# Staking
# =============================================================================

def build_stake(
    account: str,
    quantity: str,
    to_account: Optional[str] = None,
    symbol: Optional[str] = None,
) -> OperationEnvelope:
    """Stake tokens, to the account itself unless to_account is given"""
    symbol = _default_symbol(symbol)
    target = to_account or account
    _validate_params(account, target, quantity, symbol, from_field="account")

    payload = {"symbol": symbol, "to": target, "quantity": quantity}
    return _envelope(account, Contract.TOKENS, ContractAction.STAKE, payload)


def build_stake_from_amount(
    account: str,
    amount: Number,
    to_account: Optional[str] = None,
    symbol: Optional[str] = None,
) -> OperationEnvelope:
    symbol = _default_symbol(symbol)
    return build_stake(account, _format_amount(amount, symbol), to_account, symbol)


def build_unstake(account: str, quantity: str, symbol: Optional[str] = None) -> OperationEnvelope:
    symbol = _default_symbol(symbol)
    _validate_params(account, None, quantity, symbol, from_field="account")

    payload = {"symbol": symbol, "quantity": quantity}
    return _envelope(account, Contract.TOKENS, ContractAction.UNSTAKE, payload)


def build_unstake_from_amount(account: str, amount: Number, symbol: Optional[str] = None) -> OperationEnvelope:
    symbol = _default_symbol(symbol)
    return build_unstake(account, _format_amount(amount, symbol), symbol)


def build_cancel_unstake(account: str, tx_id: str) -> OperationEnvelope:
    """Cancel a pending unstake by the transaction id that started it"""
    if not is_valid_account_name(account):
        raise ValidationError.invalid_account(account, "account")
    if not tx_id or not isinstance(tx_id, str):
        raise ValidationError.invalid_transaction_id(tx_id)

    return _envelope(account, Contract.TOKENS, ContractAction.CANCEL_UNSTAKE, {"txID": tx_id})


# =============================================================================
# Delegation
# =============================================================================

def build_delegate(
    from_account: str,
    to_account: str,
    quantity: str,
    symbol: Optional[str] = None,
) -> OperationEnvelope:
    """
    Delegate stake to another account

    Raises:
        ValidationError: On bad input, or when delegating to yourself
    """
    symbol = _default_symbol(symbol)
    _validate_params(from_account, to_account, quantity, symbol)
    if from_account == to_account:
        raise ValidationError.self_delegation(from_account)

    payload = {"symbol": symbol, "to": to_account, "quantity": quantity}
    return _envelope(from_account, Contract.TOKENS, ContractAction.DELEGATE, payload)


def build_delegate_from_amount(
    from_account: str,
    to_account: str,
    amount: Number,
    symbol: Optional[str] = None,
) -> OperationEnvelope:
    symbol = _default_symbol(symbol)
    return build_delegate(from_account, to_account, _format_amount(amount, symbol), symbol)


def build_undelegate(
    account: str,
    from_account: str,
    quantity: str,
    symbol: Optional[str] = None,
) -> OperationEnvelope:
    """Take back stake previously delegated by account to from_account"""
    symbol = _default_symbol(symbol)
    _validate_params(account, from_account, quantity, symbol, from_field="account", to_field="from")

    payload = {"symbol": symbol, "from": from_account, "quantity": quantity}
    return _envelope(account, Contract.TOKENS, ContractAction.UNDELEGATE, payload)


def build_undelegate_from_amount(
    account: str,
    from_account: str,
    amount: Number,
    symbol: Optional[str] = None,
) -> OperationEnvelope:
    symbol = _default_symbol(symbol)
    return build_undelegate(account, from_account, _format_amount(amount, symbol), symbol)


# =============================================================================
# Market
# =============================================================================

def _build_market_order(
    action: ContractAction,
    account: str,
    symbol: str,
    quantity: str,
    price: str,
) -> OperationEnvelope:
    _validate_params(account, None, quantity, symbol, from_field="account")
    if not is_valid_quantity(price, MAX_PRECISION):
        raise ValidationError.invalid_price(price)

    payload = {"symbol": symbol, "quantity": quantity, "price": price}
    return _envelope(account, Contract.MARKET, action, payload)


def build_market_buy(account: str, symbol: str, quantity: str, price: str) -> OperationEnvelope:
    """
    Limit buy on the sidechain market

    Args:
        quantity: Tokens to buy, at the token's precision
        price: Max price per token in the quote currency (8 decimals max)
    """
    return _build_market_order(ContractAction.BUY, account, symbol, quantity, price)


def build_market_sell(account: str, symbol: str, quantity: str, price: str) -> OperationEnvelope:
    return _build_market_order(ContractAction.SELL, account, symbol, quantity, price)


# =============================================================================
# Batches and rewards
# =============================================================================

def build_batch_transfers(
    from_account: str,
    transfers: Iterable[Mapping[str, Any]],
    symbol: Optional[str] = None,
) -> List[OperationEnvelope]:
    """
    One transfer envelope per {"to", "amount", "memo"?} entry

    Non-positive amounts are skipped. Order is preserved and duplicate
    recipients are kept.
    """
    ops = []
    for transfer in transfers:
        amount = _to_amount(transfer["amount"], symbol)
        if amount <= 0:
            continue
        ops.append(build_transfer_from_amount(
            from_account, transfer["to"], amount, symbol, transfer.get("memo")
        ))
    return ops


def build_staking_reward_ops(
    distributions: Iterable[Mapping[str, Any]],
    week: Optional[str] = None,
) -> List[OperationEnvelope]:
    """
    Weekly staking reward transfers from the rewards account

    Args:
        distributions: {"account", "amount"} entries; non-positive amounts skipped
        week: Week id for the memo (defaults to the current week)
    """
    week = week or week_id()
    memo = f"Staking reward {week}"
    ops = []
    for distribution in distributions:
        amount = _to_amount(distribution["amount"], None)
        if amount <= 0:
            continue
        ops.append(build_transfer_from_amount(
            config.accounts.rewards, distribution["account"], amount, memo=memo
        ))
    logger.info(f"Built {len(ops)} staking reward operations for {week}")
    return ops


def get_curator_reward_amount(years_active: int) -> Decimal:
    return CURATOR_REWARD_EARLY if years_active <= 3 else CURATOR_REWARD_LATE


def build_curator_reward(
    author: str,
    permlink: str,
    reward_amount: Optional[Number] = None,
) -> OperationEnvelope:
    """Reward the author of a curated post from the rewards account"""
    if reward_amount is None:
        years_active = datetime.now(timezone.utc).year - config.token.program_start_year + 1
        reward_amount = get_curator_reward_amount(years_active)
    memo = f"Curator reward for @{author}/{permlink}"
    return build_transfer_from_amount(config.accounts.rewards, author, reward_amount, memo=memo)


def build_content_reward(
    category: Union[ContentRewardCategory, str],
    account: str,
    post_id: Optional[str] = None,
    week: Optional[str] = None,
) -> OperationEnvelope:
    category = ContentRewardCategory(category)
    week = week or week_id()
    memo = f"{category.value} reward {week}"
    if post_id:
        memo = f"{memo}: {post_id}"
    return build_transfer_from_amount(
        config.accounts.rewards, account, CONTENT_REWARD_AMOUNTS[category], memo=memo
    )


# =============================================================================
# Inspection
# =============================================================================

def _as_custom_json(op: Union[OperationEnvelope, Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(op, OperationEnvelope):
        return op.to_custom_json()
    return op


def validate_operation(op: Union[OperationEnvelope, Mapping[str, Any]]) -> Tuple[bool, Optional[str]]:
    """
    Structural check of a custom_json operation

    Returns:
        (True, None) when valid, otherwise (False, reason)
    """
    body = _as_custom_json(op)
    if body.get("id") != config.token.contract_id:
        return False, "Invalid operation ID"
    if not body.get("required_auths") and not body.get("required_posting_auths"):
        return False, "No signing accounts specified"
    try:
        payload = json.loads(body.get("json") or "")
    except (TypeError, ValueError):
        return False, "Invalid JSON payload"
    if not isinstance(payload, dict) or not all(
        payload.get(key) for key in ("contractName", "contractAction", "contractPayload")
    ):
        return False, "Invalid payload structure"
    return True, None


def parse_operation(op: Union[OperationEnvelope, Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Extract contract, action, payload and signer from a custom_json operation

    Returns:
        Dict with those keys, or None if the JSON is unreadable
    """
    body = _as_custom_json(op)
    try:
        data = json.loads(body.get("json") or "")
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    auths = list(body.get("required_auths") or []) + list(body.get("required_posting_auths") or [])
    return {
        "contract": data.get("contractName"),
        "action": data.get("contractAction"),
        "payload": data.get("contractPayload"),
        "signer": auths[0] if auths else None,
    }
