# live_strategy.py
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Optional

import ccxt

from hedge_bot.database.futures_orders import FuturesOrders
from hedge_bot.datas.exchange import ExchangeConfig
from hedge_bot.errors import ExchangeError
from hedge_bot.exchange import ExchangeSync

from .base_strategy import BUY, SELL, BaseHedgeStrategy, Position, ROLE_HEDGE, ROLE_MAIN


class LiveHedgeStrategy(BaseHedgeStrategy):
    """
    Strategy for live trading
    - real market orders through ExchangeSync (ccxt, Bitget USDT perpetuals)
    - blocking ccxt calls run in a worker thread so the monitor loop keeps ticking
    - every ccxt failure surfaces as ExchangeError
    """

    def __init__(
        self,
        config,
        price_feed,
        exchange: Optional[ExchangeSync] = None,
        exchange_config: Optional[ExchangeConfig] = None,
        orders_db: Optional[FuturesOrders] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(config=config, price_feed=price_feed, mode="live", **kwargs)

        self.exchange = exchange or ExchangeSync(symbol=config.symbol, config=exchange_config)
        self.orders_db = orders_db
        self.logger.log("[LiveHedgeStrategy] initialized", level="INFO")

    async def _call(self, action: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except ccxt.BaseError as e:
            raise ExchangeError(action, str(e)) from e

    # ------------------------------------------------------------------
    # implement abstract I/O
    # ------------------------------------------------------------------
    async def _io_prepare_account(self) -> None:
        # Bitget rejects a setting the account already has, so these only warn
        for action, fn, args in (
            ("set_margin_mode", self.exchange.set_margin_mode, (self.config.margin_mode,)),
            ("set_position_mode", self.exchange.set_position_mode, (True,)),
            ("set_leverage", self.exchange.set_leverage, (self.config.leverage, BUY, self.config.margin_mode)),
            ("set_leverage", self.exchange.set_leverage, (self.config.leverage, SELL, self.config.margin_mode)),
        ):
            try:
                await self._call(action, fn, *args)
            except ExchangeError as e:
                self.logger.log(f"[Live] {e}", level="WARNING")

        if self.config.fetch_precision:
            precision = await self._call("fetch_precision", self.exchange.fetch_price_precision)
            self.apply_price_precision(precision)

    async def _io_open_position(self, side: str, qty: float, price: float) -> Optional[Dict[str, Any]]:
        role = ROLE_MAIN if self.main_position is None else ROLE_HEDGE
        self.logger.log(f"[Live] open {role} {side} qty={qty} @ ~{price}", level="INFO")
        resp = await self._call("open_position", self.exchange.open_position, side, qty)
        self._record_order(resp, role=role, action="OPEN", side=side, qty=qty, price=price)
        return resp

    async def _io_close_position(self, position: Position, qty: float, price: float) -> Optional[Dict[str, Any]]:
        self.logger.log(f"[Live] close {position.role} {position.side} qty={qty} @ ~{price}", level="INFO")
        resp = await self._call("close_position", self.exchange.close_position, position.side, qty)
        pnl = (price - position.entry_price) * qty * position.direction
        self._record_order(resp, role=position.role, action="CLOSE", side=position.side, qty=qty, price=price, realized_pnl=pnl)
        return resp

    async def _io_cancel_all_orders(self) -> None:
        await self._call("cancel_all_orders", self.exchange.cancel_all_orders)

    # ------------------------------------------------------------------
    # order log
    # ------------------------------------------------------------------
    def _record_order(self, resp: Any, role: str, action: str, side: str, qty: float, price: float, realized_pnl: float = 0.0) -> None:
        if self.orders_db is None:
            return

        resp = resp if isinstance(resp, dict) else {}
        data = {
            "order_id": str(resp.get("id") or ""),
            "env": self.mode,
            "symbol": self.symbol,
            "role": role,
            "action": action,
            "side": side,
            "qty": qty,
            "price": price,
            "avg_price": float(resp.get("average") or price),
            "status": str(resp.get("status") or "submitted"),
            "realized_pnl": round(realized_pnl, 8),
            "time": int(resp.get("timestamp") or self._now_ms()),
        }
        try:
            self.orders_db.create_order(data)
        except Exception as e:
            self.logger.log(f"[Live] create_order error: {e}", level="ERROR")
