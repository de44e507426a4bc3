import json
import unittest

import ccxt

from hedge_bot.price_feed import PollingPriceFeed, ReplayPriceFeed, WebSocketPriceFeed
from tests.fakes import FakeLogger


class ReplayPriceFeedTests(unittest.IsolatedAsyncioTestCase):
    async def test_push_updates_price_and_callbacks(self):
        feed = ReplayPriceFeed(logger=FakeLogger())
        seen = []
        feed.on_price(seen.append)
        self.assertIsNone(feed.get_current_price())

        feed.push(50000.5)
        self.assertEqual(feed.get_current_price(), 50000.5)
        self.assertEqual(await feed.wait_for_first_price(timeout=1), 50000.5)
        self.assertEqual(seen, [50000.5])

    async def test_non_positive_price_ignored(self):
        feed = ReplayPriceFeed(logger=FakeLogger())
        feed.push(0)
        self.assertIsNone(feed.get_current_price())

    async def test_callback_error_is_logged(self):
        logger = FakeLogger()
        feed = ReplayPriceFeed(logger=logger)

        def broken(price):
            raise ValueError("bad subscriber")

        feed.on_price(broken)
        feed.push(100.0)
        self.assertEqual(feed.get_current_price(), 100.0)
        self.assertTrue(any("bad subscriber" in m for m in logger.messages("ERROR")))


class WebSocketPriceFeedTests(unittest.TestCase):
    def setUp(self):
        self.logger = FakeLogger()
        self.feed = WebSocketPriceFeed("BTCUSDT", logger=self.logger)

    def test_subscribe_message(self):
        msg = json.loads(self.feed.subscribe_message())
        self.assertEqual(msg["op"], "subscribe")
        self.assertEqual(msg["args"], [{"instType": "USDT-FUTURES", "channel": "ticker", "instId": "BTCUSDT"}])

    def test_ticker_message_updates_price(self):
        message = json.dumps({"action": "snapshot", "arg": {"channel": "ticker"}, "data": [{"instId": "BTCUSDT", "lastPr": "50123.4"}]})
        self.assertEqual(self.feed.handle_message(message), 50123.4)
        self.assertEqual(self.feed.get_current_price(), 50123.4)

    def test_pong_and_garbage_are_ignored(self):
        self.assertIsNone(self.feed.handle_message("pong"))
        self.assertIsNone(self.feed.handle_message("{oops"))
        self.assertIsNone(self.feed.handle_message(json.dumps({"event": "subscribe"})))
        self.assertIsNone(self.feed.get_current_price())

    def test_error_event_logged(self):
        self.feed.handle_message(json.dumps({"event": "error", "msg": "instId doesn't exist"}))
        self.assertTrue(any("instId doesn't exist" in m for m in self.logger.messages("ERROR")))


class PollingPriceFeedTests(unittest.IsolatedAsyncioTestCase):
    async def test_poll_once(self):
        class Exchange:
            def __init__(self):
                self.fail = False

            def fetch_last_price(self):
                if self.fail:
                    raise ccxt.NetworkError("timed out")
                return 50010.0

        exchange = Exchange()
        logger = FakeLogger()
        feed = PollingPriceFeed(exchange, interval=0.01, logger=logger)

        self.assertEqual(await feed.poll_once(), 50010.0)
        self.assertEqual(feed.get_current_price(), 50010.0)

        exchange.fail = True
        self.assertIsNone(await feed.poll_once())
        self.assertEqual(feed.get_current_price(), 50010.0)
        self.assertTrue(any("timed out" in m for m in logger.messages("WARNING")))

    async def test_start_stop(self):
        class Exchange:
            def fetch_last_price(self):
                return 1.5

        feed = PollingPriceFeed(Exchange(), interval=0.01, logger=FakeLogger())
        await feed.start()
        self.assertEqual(await feed.wait_for_first_price(timeout=2), 1.5)
        await feed.stop()
        self.assertIsNone(feed._task)


if __name__ == "__main__":
    unittest.main()
