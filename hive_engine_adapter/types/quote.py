"""
Swap quote type definition
"""

from dataclasses import dataclass
from decimal import Decimal

from ..validation import ZERO


@dataclass(frozen=True)
class SwapQuote:
    """
    Price for spending a gross input amount against the ask side of the book

    Quotes are produced fresh per query and never cached.

    Attributes:
        gross_input_amount: Amount entered by the user
        fee: Platform fee (truncated to 3 decimals)
        net_input_amount: Amount actually spent on the book
        estimated_output_amount: Tokens received
        average_price: Spent / received
        worst_fill_price: Highest ask touched
        price_impact_percent: |average - best ask| / best ask * 100, never negative
        sufficient_liquidity: False when the book ran out before the input did
        orders_consumed: Asks touched (fully or partially)
    """
    gross_input_amount: Decimal
    fee: Decimal
    net_input_amount: Decimal
    estimated_output_amount: Decimal
    average_price: Decimal
    worst_fill_price: Decimal
    price_impact_percent: Decimal
    sufficient_liquidity: bool
    orders_consumed: int

    @classmethod
    def empty(cls, gross_input_amount: Decimal = ZERO) -> "SwapQuote":
        return cls(
            gross_input_amount=gross_input_amount,
            fee=ZERO,
            net_input_amount=ZERO,
            estimated_output_amount=ZERO,
            average_price=ZERO,
            worst_fill_price=ZERO,
            price_impact_percent=ZERO,
            sufficient_liquidity=False,
            orders_consumed=0,
        )

    def __str__(self) -> str:
        return (
            f"SwapQuote(in={self.gross_input_amount}, fee={self.fee}, "
            f"out={self.estimated_output_amount}, avg={self.average_price}, "
            f"impact={self.price_impact_percent}%, sufficient={self.sufficient_liquidity})"
        )
