"""
Market Module

Provides market data and order book queries:
- Market metrics from the external market-data API, with an on-chain
  fallback computed from the sidechain's own books and trade history
- Order books (raw and aggregated for depth charts)
- Liquidity pools, spread statistics and price impact
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR
from typing import Any, Callable, Dict, Iterable, List, Optional, TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from ..client import HiveEngineClient

from ..types import (
    OrderBookEntry,
    OrderBook,
    DepthLevel,
    AggregatedOrderBook,
    Trade,
    MarketSource,
    MarketSnapshot,
    PoolInfo,
    MarketStats,
    PriceImpact,
)
from ..types.operation import Contract
from ..errors import MarketDataUnavailable, RpcError
from ..validation import parse_quantity, ZERO
from ..config import config

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60
TRADES_LOOKBACK = 100


def aggregate_order_book(order_book: OrderBook, limit: int = 20, decimals: int = 4) -> AggregatedOrderBook:
    """
    Merge raw orders into price buckets with running totals

    Bid prices round down and ask prices round up to `decimals` places, so
    a bucket never looks better than the orders inside it. Bids come out
    descending, asks ascending, each cut to `limit` levels.
    """
    step = Decimal(1).scaleb(-decimals)

    def bucket(entries: Iterable[OrderBookEntry], rounding: str) -> Dict[Decimal, Decimal]:
        levels: Dict[Decimal, Decimal] = {}
        for entry in entries:
            price = entry.price_value.quantize(step, rounding=rounding)
            levels[price] = levels.get(price, ZERO) + entry.quantity_value
        return levels

    def with_totals(levels: Dict[Decimal, Decimal], descending: bool) -> List[DepthLevel]:
        result = []
        total = ZERO
        for price in sorted(levels, reverse=descending)[:limit]:
            total += levels[price]
            result.append(DepthLevel(price=price, quantity=levels[price], total=total))
        return result

    return AggregatedOrderBook(
        bids=with_totals(bucket(order_book.bids, ROUND_FLOOR), descending=True),
        asks=with_totals(bucket(order_book.asks, ROUND_CEILING), descending=False),
    )


def walk_book_for_amount(orders: List[OrderBookEntry], amount: Decimal):
    """
    Fill `amount` tokens against one side of the book

    Returns:
        (total_cost, worst_price, remaining_amount)
    """
    remaining = amount
    total_cost = ZERO
    worst_price = ZERO
    for order in orders:
        quantity = order.quantity_value
        price = order.price_value
        fill = min(remaining, quantity)
        total_cost += fill * price
        remaining -= fill
        worst_price = price
        if remaining <= 0:
            break
    return total_cost, worst_price, remaining


class MarketModule:
    """
    Market data module

    Usage:
        client = HiveEngineClient()

        snapshot = client.market.get_market_data("MEDALS")
        book = client.market.get_order_book("MEDALS", depth=50)
        depth = client.market.get_aggregated_order_book("MEDALS", limit=20)
        stats = client.market.get_market_stats("MEDALS")
    """

    def __init__(
        self,
        client: "HiveEngineClient",
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize market module

        Args:
            client: HiveEngineClient instance
            http_client: Optional pre-built client for the market-data API
            clock: Wall clock (unix seconds) for the 24h volume window
        """
        self._client = client
        self._rpc = client.rpc
        self._http = http_client
        self._owns_http = http_client is None
        self._http_lock = threading.Lock()
        self._clock = clock
        self._default_symbol = config.token.symbol

    def _symbol(self, symbol: Optional[str]) -> str:
        return symbol or self._default_symbol

    def _get_http(self) -> httpx.Client:
        if self._http is None:
            with self._http_lock:
                if self._http is None:
                    self._http = httpx.Client(timeout=config.market_api.timeout_seconds)
        return self._http

    # =========================================================================
    # Market data
    # =========================================================================

    def get_market_metrics(self, symbol: Optional[str] = None) -> MarketSnapshot:
        """
        Market metrics from the external market-data API

        Raises:
            MarketDataUnavailable: On network failure, non-2xx or unreadable body
        """
        symbol = self._symbol(symbol)
        api = config.market_api
        url = f"{api.base_url.rstrip('/')}{api.metrics_path}/{symbol}"

        try:
            response = self._get_http().get(url, timeout=api.timeout_seconds)
        except httpx.HTTPError as e:
            raise MarketDataUnavailable.request_failed(symbol, e)
        if not response.is_success:
            raise MarketDataUnavailable.http_status(symbol, response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise MarketDataUnavailable.request_failed(symbol, e)
        if not isinstance(data, dict):
            raise MarketDataUnavailable(f"Unexpected market API body for {symbol}", symbol=symbol)

        last_price = parse_quantity(data.get("lastPrice"))
        return MarketSnapshot(
            symbol=symbol,
            price=last_price,
            price_change_24h=parse_quantity(data.get("priceChangePercent")),
            volume_24h=parse_quantity(data.get("volume")),
            highest_bid=parse_quantity(data.get("highestBid")),
            lowest_ask=parse_quantity(data.get("lowestAsk")),
            last_price=last_price,
            market_cap=parse_quantity(data.get("marketCap")),
            source=MarketSource.MARKET_API,
        )

    def get_market_data_from_sidechain(self, symbol: Optional[str] = None) -> Optional[MarketSnapshot]:
        """
        Market data computed from the sidechain's books and trade history

        24h change and market cap are not derivable on-chain and are zero.

        Returns:
            MarketSnapshot, or None if the sidechain could not be queried
        """
        symbol = self._symbol(symbol)
        market = Contract.MARKET.value
        try:
            with ThreadPoolExecutor(max_workers=3) as executor:
                bids_future = executor.submit(
                    self._rpc.find, market, "buyBook", {"symbol": symbol},
                    limit=1, index="price", descending=True,
                )
                asks_future = executor.submit(
                    self._rpc.find, market, "sellBook", {"symbol": symbol},
                    limit=1, index="price", descending=False,
                )
                trades_future = executor.submit(
                    self._rpc.find, market, "tradesHistory", {"symbol": symbol},
                    limit=TRADES_LOOKBACK, index="timestamp", descending=True,
                )
                bids = bids_future.result()
                asks = asks_future.result()
                trades = [Trade.from_row(row) for row in trades_future.result()]
        except RpcError as e:
            logger.error(f"Failed to fetch market data from sidechain for {symbol}: {e}")
            return None

        cutoff = self._clock() - SECONDS_PER_DAY
        volume_24h = sum((t.volume for t in trades if t.timestamp > cutoff), ZERO)

        highest_bid = OrderBookEntry.from_row(bids[0]).price_value if bids else ZERO
        lowest_ask = OrderBookEntry.from_row(asks[0]).price_value if asks else ZERO
        last_price = trades[0].price if trades else ZERO

        return MarketSnapshot(
            symbol=symbol,
            price=last_price or (highest_bid + lowest_ask) / 2,
            price_change_24h=ZERO,
            volume_24h=volume_24h,
            highest_bid=highest_bid,
            lowest_ask=lowest_ask,
            last_price=last_price,
            market_cap=ZERO,
            source=MarketSource.SIDECHAIN,
        )

    def get_market_data(self, symbol: Optional[str] = None) -> Optional[MarketSnapshot]:
        """Market data from the API, falling back to the sidechain"""
        symbol = self._symbol(symbol)
        try:
            return self.get_market_metrics(symbol)
        except MarketDataUnavailable as e:
            logger.warning(f"Market API unavailable, falling back to sidechain: {e}")
        return self.get_market_data_from_sidechain(symbol)

    # =========================================================================
    # Order book
    # =========================================================================

    def get_order_book(self, symbol: Optional[str] = None, depth: int = 50) -> OrderBook:
        """Bids (price descending) and asks (price ascending), fetched in parallel"""
        symbol = self._symbol(symbol)
        market = Contract.MARKET.value
        with ThreadPoolExecutor(max_workers=2) as executor:
            bids_future = executor.submit(
                self._rpc.find, market, "buyBook", {"symbol": symbol},
                limit=depth, index="price", descending=True,
            )
            asks_future = executor.submit(
                self._rpc.find, market, "sellBook", {"symbol": symbol},
                limit=depth, index="price", descending=False,
            )
            bids = bids_future.result()
            asks = asks_future.result()

        return OrderBook(
            bids=[OrderBookEntry.from_row(row) for row in bids],
            asks=[OrderBookEntry.from_row(row) for row in asks],
        )

    def get_aggregated_order_book(self, symbol: Optional[str] = None, limit: int = 20) -> AggregatedOrderBook:
        order_book = self.get_order_book(symbol, limit * 5)
        return aggregate_order_book(order_book, limit)

    # =========================================================================
    # Pools and stats
    # =========================================================================

    def _find_pool(self, token_pair: str) -> Optional[Dict[str, Any]]:
        return self._rpc.find_one(Contract.MARKETPOOLS.value, "pools", {"tokenPair": token_pair})

    def get_pool_info(self, base_symbol: Optional[str] = None, quote_symbol: Optional[str] = None) -> Optional[PoolInfo]:
        """
        Liquidity pool for a pair, trying BASE:QUOTE then QUOTE:BASE

        Total liquidity is twice the quote side.
        """
        base_symbol = self._symbol(base_symbol)
        quote_symbol = quote_symbol or config.token.quote_symbol

        pool = self._find_pool(f"{base_symbol}:{quote_symbol}")
        if pool is None:
            pool = self._find_pool(f"{quote_symbol}:{base_symbol}")
            if pool is None:
                return None
            base_symbol, quote_symbol = quote_symbol, base_symbol

        quote_quantity = parse_quantity(pool.get("quoteQuantity"))
        return PoolInfo(
            token_pair=pool.get("tokenPair", ""),
            base_symbol=base_symbol,
            quote_symbol=quote_symbol,
            base_quantity=parse_quantity(pool.get("baseQuantity")),
            quote_quantity=quote_quantity,
            total_liquidity=quote_quantity * 2,
            base_price=parse_quantity(pool.get("basePrice")),
        )

    def get_market_stats(self, symbol: Optional[str] = None) -> Optional[MarketStats]:
        symbol = self._symbol(symbol)
        with ThreadPoolExecutor(max_workers=2) as executor:
            data_future = executor.submit(self.get_market_data, symbol)
            pool_future = executor.submit(self.get_pool_info, symbol)
            snapshot = data_future.result()
            pool = pool_future.result()

        if snapshot is None:
            return None

        mid = snapshot.mid_price
        spread = snapshot.spread
        return MarketStats(
            price=snapshot.price,
            price_change_24h=snapshot.price_change_24h,
            volume_24h=snapshot.volume_24h,
            market_cap=snapshot.market_cap,
            liquidity=pool.total_liquidity if pool else ZERO,
            spread=spread,
            spread_percent=spread / mid * 100 if mid > 0 else ZERO,
        )

    # =========================================================================
    # Price calculations
    # =========================================================================

    def calculate_value(self, amount: Decimal, symbol: Optional[str] = None) -> Decimal:
        """Quote-currency value of a token amount (0 without market data)"""
        snapshot = self.get_market_data(symbol)
        if snapshot is None:
            return ZERO
        return amount * snapshot.price

    def calculate_token_amount(self, quote_amount: Decimal, symbol: Optional[str] = None) -> Decimal:
        snapshot = self.get_market_data(symbol)
        if snapshot is None or snapshot.price == 0:
            return ZERO
        return quote_amount / snapshot.price

    def calculate_price_impact(
        self,
        amount: Decimal,
        is_buy: bool,
        symbol: Optional[str] = None,
    ) -> PriceImpact:
        """
        Price impact of buying (walking asks) or selling (walking bids) `amount` tokens

        Impact is measured against the last traded price; with not enough
        liquidity the result reports 100% impact and no prices.
        """
        if amount <= 0:
            return PriceImpact(ZERO, ZERO, ZERO, sufficient_liquidity=True)

        symbol = self._symbol(symbol)
        order_book = self.get_order_book(symbol, 100)
        orders = order_book.asks if is_buy else order_book.bids
        total_cost, worst_price, remaining = walk_book_for_amount(orders, amount)

        if remaining > 0:
            return PriceImpact(ZERO, Decimal(100), ZERO, sufficient_liquidity=False)

        average_price = total_cost / amount
        snapshot = self.get_market_data(symbol)
        current_price = (snapshot.last_price if snapshot else ZERO) or average_price
        if current_price == 0:
            impact = ZERO
        else:
            impact = abs((average_price - current_price) / current_price) * 100

        return PriceImpact(
            average_price=average_price,
            price_impact_percent=impact,
            worst_price=worst_price,
            sufficient_liquidity=True,
        )

    def close(self):
        if self._http is not None and self._owns_http:
            self._http.close()
            self._http = None
