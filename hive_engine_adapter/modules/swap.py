"""
Swap Module

Prices a quote-currency -> token swap by walking the ask side of the order
book, and assembles the ordered transaction legs that execute it:

1. fee transfer to the platform account (skipped when the fee is zero)
2. deposit of the net input to the bridge account, which wraps it
3. market buy of the estimated output at the worst fill price plus a
   slippage buffer

The legs must be broadcast in that order.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from ..client import HiveEngineClient

from ..errors import ValidationError
from ..types import OrderBookEntry, SwapQuote, NativeTransfer, SwapPlan
from ..validation import Number, ZERO, to_decimal, truncate, format_quantity, is_valid_account_name
from ..config import config
from . import operations

logger = logging.getLogger(__name__)

# Fee and net input are truncated to this many places
INPUT_DECIMALS = 3


def walk_sell_book(asks: Sequence[OrderBookEntry], net_input: Decimal) -> SwapQuote:
    """
    Spend net_input against asks sorted by ascending price

    Fully consumes each ask the remaining input can cover, then buys a
    fraction of the next one and stops. Asks with a zero price or
    quantity are skipped.

    Returns:
        SwapQuote with the fill fields set; gross input and fee are left
        for the caller (net_input_amount is set to net_input)
    """
    remaining = net_input
    output = ZERO
    worst_price = ZERO
    orders_consumed = 0

    for ask in asks:
        price = ask.price_value
        quantity = ask.quantity_value
        if price <= 0 or quantity <= 0:
            continue

        cost = quantity * price
        if remaining >= cost:
            output += quantity
            remaining -= cost
        else:
            output += remaining / price
            remaining = ZERO
        worst_price = price
        orders_consumed += 1

        if remaining <= 0:
            break

    spent = net_input - remaining
    average_price = spent / output if output > 0 else ZERO

    best_ask = next((a.price_value for a in asks if a.price_value > 0 and a.quantity_value > 0), ZERO)
    if best_ask > 0:
        impact = max(ZERO, (average_price - best_ask) / best_ask * 100)
    else:
        impact = ZERO

    return SwapQuote(
        gross_input_amount=net_input,
        fee=ZERO,
        net_input_amount=net_input,
        estimated_output_amount=output,
        average_price=average_price,
        worst_fill_price=worst_price,
        price_impact_percent=impact,
        sufficient_liquidity=remaining <= 0,
        orders_consumed=orders_consumed,
    )


def quote_swap(
    gross_input: Number,
    asks: Sequence[OrderBookEntry],
    fee_rate: Optional[Decimal] = None,
) -> SwapQuote:
    """
    Quote a swap of gross_input against a snapshot of the ask book

    Fee and net input are truncated (never rounded) to 3 decimals. A
    non-positive input yields an all-zero quote without reading the book.
    """
    gross_input = to_decimal(gross_input)
    if gross_input <= 0:
        return SwapQuote.empty(gross_input)

    fee_rate = config.swap.fee_rate if fee_rate is None else fee_rate
    fee = truncate(gross_input * fee_rate, INPUT_DECIMALS)
    net_input = truncate(gross_input - fee, INPUT_DECIMALS)

    walked = walk_sell_book(asks, net_input)
    return SwapQuote(
        gross_input_amount=gross_input,
        fee=fee,
        net_input_amount=net_input,
        estimated_output_amount=walked.estimated_output_amount,
        average_price=walked.average_price,
        worst_fill_price=walked.worst_fill_price,
        price_impact_percent=walked.price_impact_percent,
        sufficient_liquidity=walked.sufficient_liquidity,
        orders_consumed=walked.orders_consumed,
    )


def build_swap_operations(
    account: str,
    quote: SwapQuote,
    symbol: Optional[str] = None,
    slippage_buffer: Optional[Decimal] = None,
) -> SwapPlan:
    """
    Assemble the ordered legs for an accepted quote

    Every leg is validated before the plan is returned, so a bad input
    never yields a partial plan.

    Raises:
        ValidationError: On a bad account or a quote with nothing to buy
    """
    symbol = symbol or config.token.symbol
    slippage_buffer = config.swap.slippage_buffer if slippage_buffer is None else slippage_buffer
    swap_config = config.swap

    if not is_valid_account_name(account):
        raise ValidationError.invalid_account(account, "account")
    if quote.net_input_amount <= 0:
        raise ValidationError.invalid_quantity(str(quote.net_input_amount), INPUT_DECIMALS, "net_input_amount")
    if quote.worst_fill_price <= 0:
        raise ValidationError.invalid_price(str(quote.worst_fill_price))

    quantity = truncate(quote.estimated_output_amount, operations.precision_for(symbol))
    max_price = quote.worst_fill_price * (1 + slippage_buffer)
    buy = operations.build_market_buy(
        account,
        symbol,
        format_quantity(quantity, operations.precision_for(symbol)),
        format_quantity(max_price, operations.MAX_PRECISION),
    )

    legs: List = []
    if quote.fee > 0:
        legs.append(NativeTransfer(
            from_account=account,
            to_account=config.accounts.main,
            amount=quote.fee,
            memo=swap_config.fee_memo,
        ))
    legs.append(NativeTransfer(
        from_account=account,
        to_account=swap_config.deposit_account,
        amount=quote.net_input_amount,
        memo=swap_config.deposit_memo,
    ))
    legs.append(buy)

    logger.info(
        f"Built swap plan for {account}: {len(legs)} legs, "
        f"{quote.net_input_amount} in, ~{quantity} {symbol} out, max price {max_price}"
    )
    return SwapPlan(legs=tuple(legs))


class SwapModule:
    """
    Swap quotes against the live order book

    Usage:
        client = HiveEngineClient()

        quote = client.swap.quote(Decimal("100"))
        if quote.sufficient_liquidity:
            plan = client.swap.build_operations("alice", quote)
            wallet.broadcast(plan.to_operations())
    """

    def __init__(self, client: "HiveEngineClient"):
        self._client = client

    def quote(self, gross_input: Number, symbol: Optional[str] = None) -> SwapQuote:
        """Quote against a fresh ask book; quotes are never cached"""
        gross_input = to_decimal(gross_input)
        if gross_input <= 0:
            return SwapQuote.empty(gross_input)
        order_book = self._client.market.get_order_book(symbol, config.swap.book_depth)
        quote = quote_swap(gross_input, order_book.asks)
        logger.debug(f"Swap quote: {quote}")
        return quote

    def build_operations(self, account: str, quote: SwapQuote, symbol: Optional[str] = None) -> SwapPlan:
        return build_swap_operations(account, quote, symbol)
