"""
Market data and order book type definitions
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List

from ..validation import parse_int, parse_quantity, ZERO


class MarketSource(Enum):
    """Where a market snapshot came from"""
    MARKET_API = "market_api"
    SIDECHAIN = "sidechain"


@dataclass(frozen=True)
class OrderBookEntry:
    """
    Single resting order (read-only snapshot)

    price and quantity stay as the wire's decimal strings; use the
    price_value/quantity_value properties for arithmetic.
    """
    price: str
    quantity: str
    account: str = ""
    timestamp: int = 0
    tx_id: str = ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "OrderBookEntry":
        return cls(
            price=str(row.get("price", "0")),
            quantity=str(row.get("quantity", "0")),
            account=row.get("account", ""),
            timestamp=parse_int(row.get("timestamp"), "timestamp"),
            tx_id=str(row.get("txId", "")),
        )

    @property
    def price_value(self) -> Decimal:
        return parse_quantity(self.price)

    @property
    def quantity_value(self) -> Decimal:
        return parse_quantity(self.quantity)


@dataclass(frozen=True)
class OrderBook:
    """Bids sorted by price descending, asks ascending"""
    bids: List[OrderBookEntry] = field(default_factory=list)
    asks: List[OrderBookEntry] = field(default_factory=list)

    @property
    def best_bid(self) -> Decimal:
        return self.bids[0].price_value if self.bids else ZERO

    @property
    def best_ask(self) -> Decimal:
        return self.asks[0].price_value if self.asks else ZERO


@dataclass(frozen=True)
class DepthLevel:
    """Aggregated price bucket with running total for depth charts"""
    price: Decimal
    quantity: Decimal
    total: Decimal


@dataclass(frozen=True)
class AggregatedOrderBook:
    bids: List[DepthLevel] = field(default_factory=list)
    asks: List[DepthLevel] = field(default_factory=list)


@dataclass(frozen=True)
class Trade:
    """Row from `market.tradesHistory` (timestamp in unix seconds)"""
    price: Decimal
    quantity: Decimal
    timestamp: int

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Trade":
        return cls(
            price=parse_quantity(row.get("price")),
            quantity=parse_quantity(row.get("quantity")),
            timestamp=parse_int(row.get("timestamp"), "timestamp"),
        )

    @property
    def volume(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class MarketSnapshot:
    """
    Market data for a token, identical in shape regardless of source

    Fields the sidechain cannot derive (24h change, market cap) are zero
    when source is SIDECHAIN.
    """
    symbol: str
    price: Decimal
    price_change_24h: Decimal
    volume_24h: Decimal
    highest_bid: Decimal
    lowest_ask: Decimal
    last_price: Decimal
    market_cap: Decimal
    source: MarketSource = MarketSource.MARKET_API

    @property
    def spread(self) -> Decimal:
        return self.lowest_ask - self.highest_bid

    @property
    def mid_price(self) -> Decimal:
        return (self.lowest_ask + self.highest_bid) / 2


@dataclass(frozen=True)
class PoolInfo:
    """Liquidity pool from `marketpools.pools`"""
    token_pair: str
    base_symbol: str
    quote_symbol: str
    base_quantity: Decimal
    quote_quantity: Decimal
    total_liquidity: Decimal
    base_price: Decimal


@dataclass(frozen=True)
class MarketStats:
    price: Decimal
    price_change_24h: Decimal
    volume_24h: Decimal
    market_cap: Decimal
    liquidity: Decimal
    spread: Decimal
    spread_percent: Decimal


@dataclass(frozen=True)
class PriceImpact:
    """Result of walking one side of the book for a token amount"""
    average_price: Decimal
    price_impact_percent: Decimal
    worst_price: Decimal
    sufficient_liquidity: bool
