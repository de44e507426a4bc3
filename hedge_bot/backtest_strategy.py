# backtest_strategy.py
from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import pandas as pd

from hedge_bot.database.futures_orders import FuturesOrders
from hedge_bot.database.logger import Logger
from hedge_bot.price_feed import ReplayPriceFeed
from hedge_bot.utils import util

from .base_strategy import BaseHedgeStrategy, Position, ROLE_HEDGE, ROLE_MAIN


class BacktestHedgeStrategy(BaseHedgeStrategy):
    """
    Strategy for backtest / forward_test
    - no orders reach the exchange
    - market orders fill immediately at the tick price
    - the DB (when given) is only an order log
    """

    PAPER_MODES = ("backtest", "forward_test")

    def __init__(self, config, price_feed=None, mode: str = "backtest", orders_db: Optional[FuturesOrders] = None, **kwargs: Any) -> None:
        if mode not in self.PAPER_MODES:
            raise ValueError(f"Invalid paper mode '{mode}'. Must be one of {self.PAPER_MODES}.")

        logger = kwargs.get("logger") or Logger()
        kwargs["logger"] = logger
        super().__init__(config=config, price_feed=price_feed or ReplayPriceFeed(logger=logger), mode=mode, **kwargs)

        self.orders_db = orders_db
        self.realized_pnl: float = 0.0
        self.paper_orders: List[Dict[str, Any]] = []
        self._bar_time_ms: Optional[int] = None

        self.logger.log(f"[BacktestHedgeStrategy] initialized mode={mode}", level="INFO")

    def _now_ms(self) -> int:
        # replayed bars carry their own clock
        if self._bar_time_ms is not None:
            return self._bar_time_ms
        return super()._now_ms()

    # main backtest loop
    async def _run(self, file_path: Optional[str] = None, initial_side: Optional[str] = None, intrabar: bool = True) -> Dict[str, Any]:
        """
        Replay a CSV OHLCV file through the controller.
        If file_path is None, fall back to env OHLCV_FILE.
        initial_side opens the first Main on the first bar; otherwise the signal source decides.
        """
        file_path = file_path or os.getenv("OHLCV_FILE")
        if not file_path or not os.path.exists(file_path):
            raise ValueError("OHLCV_FILE must be set in env or config for backtest and point to an existing file")
        if not isinstance(self.price_feed, ReplayPriceFeed):
            raise ValueError("backtest replay needs a ReplayPriceFeed")

        self.logger.log(f"Loading OHLCV data from {file_path}", level="INFO")
        df = pd.read_csv(file_path, parse_dates=["Time"])
        df.rename(columns={"Time": "time", "Open": "open", "High": "high", "Low": "low", "Close": "close", "Volume": "volume"}, inplace=True)
        df.set_index("time", inplace=True)

        self.running = True
        bars = 0
        ticks = 0
        last_price = None
        for idx, row in df.iterrows():
            self._bar_time_ms = int(idx.value // 10**6)  # Timestamp -> ms
            path = self._bar_path(row) if intrabar else [float(row["close"])]

            for price in path:
                self.price_feed.push(price)
                last_price = price
                if bars == 0 and ticks == 0:
                    if initial_side:
                        await self.open_main(initial_side, price)
                    else:
                        await self.check_for_new_trade_opportunity(price)
                else:
                    await self.process_tick(price)
                ticks += 1
            bars += 1

        self.running = False
        summary = self.summary(last_price)
        summary.update({"bars": bars, "ticks": ticks})
        self.logger.log(f"[BACKTEST] finished {summary}", level="INFO")
        return summary

    @staticmethod
    def _bar_path(row: Any) -> List[float]:
        """
        Price path inside one bar: up bars go open -> low -> high -> close,
        down bars go open -> high -> low -> close.
        """
        close = float(row["close"])
        if not all(k in row for k in ("open", "high", "low")):
            return [close]
        open_, high, low = float(row["open"]), float(row["high"]), float(row["low"])
        if close >= open_:
            return [open_, low, high, close]
        return [open_, high, low, close]

    def summary(self, price: Optional[float] = None) -> Dict[str, Any]:
        price = price if price is not None else self._current_price()
        return {
            "mode": self.mode,
            "symbol": self.symbol,
            "orders": len(self.paper_orders),
            "realized_pnl": round(self.realized_pnl, 8),
            "unrealized_pnl": round(self._unrealized_pnl(price), 8),
            "main": self.main_position.side if self.main_position else None,
            "hedge": self.hedge_position.side if self.hedge_position else None,
        }

    def _unrealized_pnl(self, price: Optional[float]) -> float:
        if price is None:
            return 0.0
        total = 0.0
        for p in (self.main_position, self.hedge_position):
            if p is not None:
                total += (price - p.entry_price) * p.qty * p.direction
        return total

    # ------------------------------------------------------------------
    # implement abstract I/O
    # ------------------------------------------------------------------
    async def _io_prepare_account(self) -> None:
        self.logger.log(f"[{self.mode.upper()}] paper account, nothing to prepare", level="INFO")

    async def _io_open_position(self, side: str, qty: float, price: float) -> Optional[Dict[str, Any]]:
        role = ROLE_MAIN if self.main_position is None else ROLE_HEDGE
        order = self._paper_fill("OPEN", role=role, side=side, qty=qty, price=price)
        self.logger.log(f"Date: {util.timestamp_ms_to_date(order['timestamp'])} - [PAPER] open {role} {side} qty={qty} @ {price}", level="INFO")
        return order

    async def _io_close_position(self, position: Position, qty: float, price: float) -> Optional[Dict[str, Any]]:
        pnl = (price - position.entry_price) * qty * position.direction
        self.realized_pnl += pnl
        order = self._paper_fill("CLOSE", role=position.role, side=position.side, qty=qty, price=price, realized_pnl=pnl)
        self.logger.log(
            f"Date: {util.timestamp_ms_to_date(order['timestamp'])} - [PAPER] close {position.role} {position.side} "
            f"entry={position.entry_price} exit={price} qty={qty} pnl={pnl:.4f} total_realized={self.realized_pnl:.4f}",
            level="INFO",
        )
        return order

    async def _io_cancel_all_orders(self) -> None:
        # paper fills are immediate, nothing rests on a book
        return None

    def _paper_fill(self, action: str, role: str, side: str, qty: float, price: float, realized_pnl: float = 0.0) -> Dict[str, Any]:
        order = {
            "id": util.generate_order_id(action),
            "role": role,
            "action": action,
            "side": side,
            "qty": qty,
            "price": price,
            "average": price,
            "status": "closed",
            "realized_pnl": realized_pnl,
            "timestamp": self._now_ms(),
        }
        self.paper_orders.append(order)

        if self.orders_db is not None:
            try:
                self.orders_db.create_order(
                    {
                        "order_id": order["id"],
                        "env": self.mode,
                        "symbol": self.symbol,
                        "role": role,
                        "action": action,
                        "side": side,
                        "qty": qty,
                        "price": price,
                        "avg_price": price,
                        "status": "FILLED",
                        "realized_pnl": round(realized_pnl, 8),
                        "time": order["timestamp"],
                    }
                )
            except Exception as e:
                self.logger.log(f"[{self.mode.upper()}] create_order error: {e}", level="ERROR")
        return order
