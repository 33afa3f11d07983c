"""
Test market module: API metrics, sidechain fallback, order books and price impact
"""

import sys
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock

import httpx
import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from hive_engine_adapter.modules.market import (
    MarketModule,
    aggregate_order_book,
    walk_book_for_amount,
)
from hive_engine_adapter.types import (
    MarketSource,
    MarketSnapshot,
    OrderBook,
    OrderBookEntry,
)
from hive_engine_adapter.errors import MarketDataUnavailable, RpcError

from conftest import json_response

NOW = 1_700_000_000


def entry(price, quantity):
    return OrderBookEntry(price=str(price), quantity=str(quantity))


def order_row(price, quantity, account="maker"):
    return {"price": str(price), "quantity": str(quantity), "account": account, "txId": "tx", "timestamp": NOW}


def sidechain_tables(buy=(), sell=(), trades=(), pools=None):
    """rpc.find / rpc.find_one side effects keyed by table"""

    def find(contract, table, query, **kwargs):
        rows = {"buyBook": buy, "sellBook": sell, "tradesHistory": trades}.get(table, [])
        return list(rows)[: kwargs.get("limit", 1000)]

    def find_one(contract, table, query, **kwargs):
        if pools is None:
            return None
        return pools.get(query.get("tokenPair"))

    return find, find_one


@pytest.fixture
def market(fake_client, http_client):
    return MarketModule(fake_client, http_client=http_client, clock=lambda: NOW)


class TestMarketMetrics:

    def test_api_success(self, market, http_client):
        http_client.get.return_value = json_response({
            "symbol": "MEDALS",
            "lastPrice": "0.0123",
            "priceChangePercent": "-2.5",
            "volume": "1500.5",
            "highestBid": "0.012",
            "lowestAsk": "0.0125",
            "marketCap": "99999",
        })

        snapshot = market.get_market_metrics("MEDALS")

        assert snapshot.source == MarketSource.MARKET_API
        assert snapshot.price == Decimal("0.0123")
        assert snapshot.price_change_24h == Decimal("-2.5")
        assert snapshot.market_cap == Decimal(99999)
        assert http_client.get.call_args.args[0].endswith("/market/metrics/MEDALS")

    def test_api_http_error(self, market, http_client):
        http_client.get.return_value = json_response({}, status_code=502)
        with pytest.raises(MarketDataUnavailable):
            market.get_market_metrics("MEDALS")

    def test_api_network_error(self, market, http_client):
        http_client.get.side_effect = httpx.ConnectError("down")
        with pytest.raises(MarketDataUnavailable) as exc_info:
            market.get_market_metrics("MEDALS")
        assert exc_info.value.symbol == "MEDALS"

    def test_api_non_object_body(self, market, http_client):
        http_client.get.return_value = json_response([1, 2, 3])
        with pytest.raises(MarketDataUnavailable):
            market.get_market_metrics("MEDALS")


class TestSidechainFallback:

    def test_fallback_when_api_down(self, market, fake_client, http_client):
        http_client.get.side_effect = httpx.ConnectError("down")
        find, _ = sidechain_tables(
            buy=[order_row("0.010", 100)],
            sell=[order_row("0.012", 50)],
            trades=[
                {"price": "0.011", "quantity": "10", "timestamp": NOW - 60},
                {"price": "0.010", "quantity": "20", "timestamp": NOW - 3600},
                {"price": "0.009", "quantity": "1000", "timestamp": NOW - 2 * 86400},
            ],
        )
        fake_client.rpc.find.side_effect = find

        snapshot = market.get_market_data("MEDALS")

        assert snapshot.source == MarketSource.SIDECHAIN
        assert snapshot.price == Decimal("0.011")
        assert snapshot.last_price == Decimal("0.011")
        assert snapshot.highest_bid == Decimal("0.010")
        assert snapshot.lowest_ask == Decimal("0.012")
        # Old trade falls outside the 24h window
        assert snapshot.volume_24h == Decimal("0.110") + Decimal("0.200")
        assert snapshot.price_change_24h == 0
        assert snapshot.market_cap == 0

    def test_fallback_survives_malformed_trade_timestamp(self, market, fake_client, http_client):
        http_client.get.side_effect = httpx.ConnectError("down")
        fake_client.rpc.find.side_effect = sidechain_tables(
            buy=[order_row("0.010", 100)],
            sell=[order_row("0.012", 50)],
            trades=[
                {"price": "0.011", "quantity": "10", "timestamp": "2024-01-01T00:00:00"},
                {"price": "0.010", "quantity": "20", "timestamp": NOW - 60},
            ],
        )[0]

        snapshot = market.get_market_data("MEDALS")

        assert snapshot.source == MarketSource.SIDECHAIN
        assert snapshot.last_price == Decimal("0.011")
        # Unreadable timestamp reads as 0, outside the 24h window
        assert snapshot.volume_24h == Decimal("0.200")

    def test_fallback_shape_matches_api_shape(self, market, fake_client, http_client):
        http_client.get.return_value = json_response({"lastPrice": "1"})
        api = market.get_market_data("MEDALS")

        http_client.get.return_value = json_response({}, status_code=500)
        fake_client.rpc.find.side_effect = sidechain_tables()[0]
        fallback = market.get_market_data("MEDALS")

        assert isinstance(api, MarketSnapshot)
        assert isinstance(fallback, MarketSnapshot)
        assert set(vars(api)) == set(vars(fallback))

    def test_no_trades_uses_mid_price(self, market, fake_client):
        fake_client.rpc.find.side_effect = sidechain_tables(
            buy=[order_row("1.0", 1)], sell=[order_row("2.0", 1)],
        )[0]
        snapshot = market.get_market_data_from_sidechain("MEDALS")
        assert snapshot.last_price == 0
        assert snapshot.price == Decimal("1.5")

    def test_sidechain_failure_returns_none(self, market, fake_client, http_client):
        http_client.get.side_effect = httpx.ConnectError("down")
        fake_client.rpc.find.side_effect = RpcError.exhausted()
        assert market.get_market_data("MEDALS") is None

    def test_book_queries(self, market, fake_client):
        fake_client.rpc.find.side_effect = sidechain_tables()[0]
        market.get_market_data_from_sidechain("MEDALS")
        calls = {c.args[1]: c.kwargs for c in fake_client.rpc.find.call_args_list}
        assert calls["buyBook"] == {"limit": 1, "index": "price", "descending": True}
        assert calls["sellBook"] == {"limit": 1, "index": "price", "descending": False}
        assert calls["tradesHistory"] == {"limit": 100, "index": "timestamp", "descending": True}


class TestOrderBook:

    def test_get_order_book(self, market, fake_client):
        fake_client.rpc.find.side_effect = sidechain_tables(
            buy=[order_row("0.02", 5), order_row("0.01", 10)],
            sell=[order_row("0.03", 7)],
        )[0]

        book = market.get_order_book("MEDALS", depth=10)

        assert book.best_bid == Decimal("0.02")
        assert book.best_ask == Decimal("0.03")
        assert book.bids[1].quantity == "10"
        assert book.asks[0].account == "maker"

    def test_aggregate_rounds_away_from_spread(self):
        book = OrderBook(
            bids=[entry("1.23456", 1), entry("1.23451", 2), entry("1.2", 3)],
            asks=[entry("1.30001", 1), entry("1.30009", 4), entry("1.4", 2)],
        )

        depth = aggregate_order_book(book, limit=20, decimals=4)

        assert [(lvl.price, lvl.quantity, lvl.total) for lvl in depth.bids] == [
            (Decimal("1.2345"), Decimal(3), Decimal(3)),
            (Decimal("1.2000"), Decimal(3), Decimal(6)),
        ]
        assert [(lvl.price, lvl.quantity, lvl.total) for lvl in depth.asks] == [
            (Decimal("1.3001"), Decimal(5), Decimal(5)),
            (Decimal("1.4000"), Decimal(2), Decimal(7)),
        ]

    def test_aggregate_limit(self):
        book = OrderBook(bids=[entry(p, 1) for p in range(1, 30)], asks=[])
        depth = aggregate_order_book(book, limit=5)
        assert len(depth.bids) == 5
        assert depth.bids[0].price == Decimal(29)
        assert depth.bids[-1].total == Decimal(5)

    def test_aggregated_fetches_wider_book(self, market, fake_client):
        fake_client.rpc.find.side_effect = sidechain_tables()[0]
        market.get_aggregated_order_book("MEDALS", limit=20)
        assert {c.kwargs["limit"] for c in fake_client.rpc.find.call_args_list} == {100}


class TestPoolsAndStats:

    def test_pool_reverse_pair(self, market, fake_client):
        _, find_one = sidechain_tables(pools={
            "SWAP.HIVE:MEDALS": {
                "tokenPair": "SWAP.HIVE:MEDALS",
                "baseQuantity": "100",
                "quoteQuantity": "5000",
                "basePrice": "50",
            },
        })
        fake_client.rpc.find_one.side_effect = find_one

        pool = market.get_pool_info("MEDALS", "SWAP.HIVE")

        assert pool.token_pair == "SWAP.HIVE:MEDALS"
        assert pool.base_symbol == "SWAP.HIVE"
        assert pool.quote_symbol == "MEDALS"
        assert pool.total_liquidity == Decimal(10000)

    def test_pool_missing(self, market, fake_client):
        fake_client.rpc.find_one.return_value = None
        assert market.get_pool_info("MEDALS") is None
        assert fake_client.rpc.find_one.call_count == 2

    def test_market_stats(self, market, fake_client, http_client):
        http_client.get.return_value = json_response({
            "lastPrice": "1.5", "highestBid": "1", "lowestAsk": "2", "volume": "10",
        })
        fake_client.rpc.find_one.return_value = None

        stats = market.get_market_stats("MEDALS")

        assert stats.spread == Decimal(1)
        assert stats.spread_percent == Decimal(1) / Decimal("1.5") * 100
        assert stats.liquidity == 0


class TestPriceImpact:

    def test_walk_book(self):
        cost, worst, remaining = walk_book_for_amount([entry(1, 10), entry(2, 10)], Decimal(15))
        assert cost == Decimal(20)
        assert worst == Decimal(2)
        assert remaining == 0

    def test_walk_book_runs_out(self):
        cost, worst, remaining = walk_book_for_amount([entry(1, 10)], Decimal(15))
        assert remaining == Decimal(5)

    def test_buy_impact(self, market, fake_client, http_client):
        http_client.get.return_value = json_response({"lastPrice": "1"})
        fake_client.rpc.find.side_effect = sidechain_tables(
            sell=[order_row(1, 10), order_row(2, 10)],
        )[0]

        impact = market.calculate_price_impact(Decimal(15), is_buy=True, symbol="MEDALS")

        assert impact.sufficient_liquidity
        assert impact.average_price == Decimal(20) / Decimal(15)
        assert impact.worst_price == Decimal(2)
        assert impact.price_impact_percent == (Decimal(20) / Decimal(15) - 1) * 100

    def test_insufficient_liquidity(self, market, fake_client):
        fake_client.rpc.find.side_effect = sidechain_tables(buy=[order_row(1, 1)])[0]
        impact = market.calculate_price_impact(Decimal(5), is_buy=False, symbol="MEDALS")
        assert not impact.sufficient_liquidity
        assert impact.price_impact_percent == Decimal(100)

    def test_value_conversions(self, market, http_client):
        http_client.get.return_value = json_response({"lastPrice": "0.5"})
        assert market.calculate_value(Decimal(10), "MEDALS") == Decimal(5)
        assert market.calculate_token_amount(Decimal(10), "MEDALS") == Decimal(20)

    def test_close_keeps_injected_client(self, market, http_client):
        market.close()
        http_client.close.assert_not_called()
