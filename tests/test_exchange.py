import unittest

import ccxt

from hedge_bot.errors import InvalidSideError
from hedge_bot.exchange import ExchangeSync
from hedge_bot.live_strategy import LiveHedgeStrategy
from tests.fakes import FakeLogger, FakeNotifier, FakeOrdersDB, FakePositionStore, FakePriceFeed, make_config


class FakeFuturesClient:
    """
    Records ccxt calls. `fail` maps a method name to the exception it raises.
    """

    def __init__(self, precision_mode=ccxt.TICK_SIZE, price_precision=0.1):
        self.markets = {}
        self.precisionMode = precision_mode
        self.price_precision = price_precision
        self.calls = []
        self.fail = {}

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        if name in self.fail:
            raise self.fail[name]

    def load_markets(self):
        self._record("load_markets")
        self.markets = {"BTC/USDT:USDT": {}}

    def market(self, symbol):
        return {"symbol": symbol, "precision": {"price": self.price_precision, "amount": 0.001}}

    def set_margin_mode(self, margin_mode, symbol):
        self._record("set_margin_mode", margin_mode, symbol)

    def set_position_mode(self, hedged, symbol):
        self._record("set_position_mode", hedged, symbol)

    def set_leverage(self, leverage, symbol, params=None):
        self._record("set_leverage", leverage, symbol, params=params)

    def create_order(self, symbol, type, side, amount, price=None, params=None):
        self._record("create_order", symbol, type, side, amount, params=params)
        return {"id": f"bg-{len(self.calls)}", "average": 50010.0, "status": "closed", "timestamp": 1_700_000_000_000}

    def cancel_all_orders(self, symbol):
        self._record("cancel_all_orders", symbol)
        return []

    def fetch_ticker(self, symbol):
        self._record("fetch_ticker", symbol)
        return {"symbol": symbol, "last": 50123.4}


class ExchangeSyncTests(unittest.TestCase):
    def setUp(self):
        self.client = FakeFuturesClient()
        self.exchange = ExchangeSync(symbol="BTC/USDT:USDT", futures_client=self.client)

    def test_markets_loaded_once(self):
        self.assertEqual([c[0] for c in self.client.calls], ["load_markets"])
        self.exchange.ensure_markets_loaded()
        self.assertEqual([c[0] for c in self.client.calls], ["load_markets"])

    def test_open_position_is_hedged_market_order(self):
        self.exchange.open_position("Buy", 0.01)
        name, args, kwargs = self.client.calls[-1]
        self.assertEqual(name, "create_order")
        self.assertEqual(args, ("BTC/USDT:USDT", "market", "buy", 0.01))
        self.assertEqual(kwargs["params"], {"hedged": True})

    def test_close_position_sends_opposite_reduce_only(self):
        self.exchange.close_position("Buy", 0.01)
        _, args, kwargs = self.client.calls[-1]
        self.assertEqual(args[2], "sell")
        self.assertEqual(kwargs["params"], {"hedged": True, "reduceOnly": True})

        self.exchange.close_position("sell", 0.01)
        self.assertEqual(self.client.calls[-1][1][2], "buy")

    def test_set_leverage_uses_hold_side(self):
        self.exchange.set_leverage(10, "Sell", "crossed")
        _, args, kwargs = self.client.calls[-1]
        self.assertEqual(args, (10, "BTC/USDT:USDT"))
        self.assertEqual(kwargs["params"], {"marginMode": "crossed", "holdSide": "short"})

    def test_invalid_side(self):
        with self.assertRaises(InvalidSideError):
            self.exchange.open_position("long", 0.01)
        self.assertEqual([c[0] for c in self.client.calls], ["load_markets"])

    def test_price_precision_from_tick_size(self):
        self.assertEqual(self.exchange.fetch_price_precision(), 1)

        client = FakeFuturesClient(precision_mode=ccxt.DECIMAL_PLACES, price_precision=2)
        exchange = ExchangeSync(symbol="BTC/USDT:USDT", futures_client=client, load_markets=False)
        self.assertEqual(exchange.fetch_price_precision(), 2)

    def test_fetch_last_price(self):
        self.assertEqual(self.exchange.fetch_last_price(), 50123.4)


class LiveHedgeStrategyTests(unittest.IsolatedAsyncioTestCase):
    def make_strategy(self, client, orders_db=None):
        exchange = ExchangeSync(symbol="BTC/USDT:USDT", futures_client=client, load_markets=False)
        self.logger = FakeLogger()
        self.notifier = FakeNotifier()
        return LiveHedgeStrategy(
            make_config(),
            FakePriceFeed(50000.0),
            exchange=exchange,
            orders_db=orders_db,
            position_store=FakePositionStore(),
            notifier=self.notifier,
            logger=self.logger,
        )

    async def test_prepare_account_warns_and_applies_precision(self):
        client = FakeFuturesClient(price_precision=0.01)
        client.fail["set_margin_mode"] = ccxt.ExchangeError("margin mode unchanged")
        strat = self.make_strategy(client)

        await strat._io_prepare_account()

        names = [c[0] for c in client.calls]
        self.assertEqual(names, ["set_margin_mode", "set_position_mode", "set_leverage", "set_leverage"])
        self.assertEqual([c[2]["params"]["holdSide"] for c in client.calls if c[0] == "set_leverage"], ["long", "short"])
        self.assertEqual(strat.config.price_precision, 2)
        self.assertEqual(strat.grid.price_precision, 2)
        self.assertEqual(strat.boundary.price_precision, 2)
        self.assertTrue(any("margin mode unchanged" in m for m in self.logger.messages("WARNING")))

    async def test_open_and_close_record_orders(self):
        orders = FakeOrdersDB()
        strat = self.make_strategy(FakeFuturesClient(), orders_db=orders)

        await strat.open_main("Buy", 50000.0)
        await strat.open_hedge("Sell", 49900.0)
        await strat.close_hedge(49800.0)

        self.assertEqual([(r["role"], r["action"]) for r in orders.rows], [("MAIN", "OPEN"), ("HEDGE", "OPEN"), ("HEDGE", "CLOSE")])
        self.assertEqual(orders.rows[0]["avg_price"], 50010.0)
        self.assertEqual(orders.rows[0]["env"], "live")
        self.assertAlmostEqual(orders.rows[2]["realized_pnl"], 0.1)

    async def test_ccxt_error_becomes_exchange_error(self):
        client = FakeFuturesClient()
        client.fail["create_order"] = ccxt.NetworkError("connection reset")
        strat = self.make_strategy(client)

        self.assertIsNone(await strat.open_main("Buy", 50000.0))
        self.assertIsNone(strat.main_position)
        self.assertTrue(any("open_position failed: connection reset" in m for m in self.notifier.messages))

    async def test_order_log_failure_is_logged(self):
        strat = self.make_strategy(FakeFuturesClient(), orders_db=FakeOrdersDB(fail=True))
        main = await strat.open_main("Sell", 50000.0)
        self.assertIsNotNone(main)
        self.assertTrue(any("create_order error" in m for m in self.logger.messages("ERROR")))

    async def test_cancel_all_orders(self):
        client = FakeFuturesClient()
        strat = self.make_strategy(client)
        await strat._io_cancel_all_orders()
        self.assertEqual(client.calls[-1][0], "cancel_all_orders")


if __name__ == "__main__":
    unittest.main()
