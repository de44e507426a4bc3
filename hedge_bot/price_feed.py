import asyncio
import json
from typing import Any, Callable, List, Optional

import ccxt
import websockets

from hedge_bot.database.logger import Logger
from hedge_bot.exchange import ExchangeSync
from hedge_bot.interface.collaborators import IPriceFeed

BITGET_PUBLIC_WS_URL = "wss://ws.bitget.com/v2/ws/public"


class BasePriceFeed(IPriceFeed):
    """
    Holds the latest price, the first-price event and the subscriber callbacks.
    Subclasses only decide where prices come from.
    """

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger or Logger()
        self.price: Optional[float] = None
        self._callbacks: List[Callable[[float], Any]] = []
        self._first_price = asyncio.Event()

    def get_current_price(self) -> Optional[float]:
        return self.price

    async def wait_for_first_price(self, timeout: Optional[float] = None) -> float:
        await asyncio.wait_for(self._first_price.wait(), timeout)
        return self.price

    def on_price(self, callback: Callable[[float], Any]) -> None:
        self._callbacks.append(callback)

    def _update_price(self, price: float) -> None:
        price = float(price)
        if price <= 0:
            return
        self.price = price
        if not self._first_price.is_set():
            self._first_price.set()
        for callback in self._callbacks:
            try:
                callback(price)
            except Exception as e:
                self.logger.log(f"[PriceFeed] callback error: {e}", level="ERROR")

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None


class PollingPriceFeed(BasePriceFeed):
    """
    REST fallback: polls fetch_ticker every `interval` seconds.
    """

    def __init__(self, exchange: ExchangeSync, interval: float = 2.0, logger: Optional[Logger] = None):
        super().__init__(logger=logger)
        self.exchange = exchange
        self.interval = float(interval)
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def poll_once(self) -> Optional[float]:
        try:
            price = await asyncio.to_thread(self.exchange.fetch_last_price)
        except ccxt.BaseError as e:
            self.logger.log(f"[PriceFeed] fetch_ticker error: {e}", level="WARNING")
            return None
        if price:
            self._update_price(price)
        return price

    async def _poll_loop(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)


class WebSocketPriceFeed(BasePriceFeed):
    """
    Bitget public ticker channel.
    Connect, subscribe and keep the connection alive with a text "ping".
    Reconnects automatically on drop.
    """

    def __init__(
        self,
        ws_symbol: str,
        url: str = BITGET_PUBLIC_WS_URL,
        inst_type: str = "USDT-FUTURES",
        ping_interval: float = 25.0,
        reconnect_delay: float = 5.0,
        logger: Optional[Logger] = None,
    ):
        super().__init__(logger=logger)
        self.ws_symbol = ws_symbol
        self.url = url
        self.inst_type = inst_type
        self.ping_interval = float(ping_interval)
        self.reconnect_delay = float(reconnect_delay)
        self._task: Optional[asyncio.Task] = None

    def subscribe_message(self) -> str:
        return json.dumps({"op": "subscribe", "args": [{"instType": self.inst_type, "channel": "ticker", "instId": self.ws_symbol}]})

    async def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.connect_and_listen())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def connect_and_listen(self) -> None:
        while True:
            try:
                async with websockets.connect(self.url) as ws:
                    self.logger.log(f"[PriceFeed] connected to {self.url}", level="INFO")
                    await ws.send(self.subscribe_message())
                    while True:
                        try:
                            message = await asyncio.wait_for(ws.recv(), timeout=self.ping_interval)
                        except asyncio.TimeoutError:
                            await ws.send("ping")
                            continue
                        self.handle_message(message)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.log(f"[PriceFeed] WebSocket error: {e}. Reconnecting in {self.reconnect_delay}s", level="WARNING")
                await asyncio.sleep(self.reconnect_delay)

    def handle_message(self, message: Any) -> Optional[float]:
        if message == "pong":
            return None
        try:
            data = json.loads(message)
        except ValueError:
            self.logger.log(f"[PriceFeed] unparsable message: {message!r}", level="WARNING")
            return None

        if data.get("event") == "error":
            self.logger.log(f"[PriceFeed] subscribe error: {data.get('msg')}", level="ERROR")
            return None

        price = None
        for item in data.get("data") or []:
            last = item.get("lastPr") if isinstance(item, dict) else None
            if last:
                price = float(last)
                self._update_price(price)
        return price


class ReplayPriceFeed(BasePriceFeed):
    """
    Prices pushed by the caller (backtest replay, tests).
    """

    def push(self, price: float) -> None:
        self._update_price(price)
