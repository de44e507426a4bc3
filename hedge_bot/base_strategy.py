# base_strategy.py
from __future__ import annotations

import asyncio
import traceback
from typing import Any, Dict, Optional

from hedge_bot.dataclass.position import BUY, SELL, ROLE_HEDGE, ROLE_MAIN, Position
from hedge_bot.database.logger import Logger
from hedge_bot.datas.strategy import BotConfig
from hedge_bot.errors import ExchangeError, PersistenceError
from hedge_bot.interface.collaborators import IBoundaryStore, IPositionStore, IPriceFeed, ISignalSource, SIGNAL_BUY, SIGNAL_SELL, SIGNAL_WAIT
from hedge_bot.interface.io_interface import IHedgeIO
from hedge_bot.interface.notifier import INotifier, NullNotifier
from hedge_bot.strategy.boundary_tracker import BoundaryTracker
from hedge_bot.strategy.grid_calculator import GridCalculator
from hedge_bot.utils import util


class BaseHedgeStrategy(IHedgeIO):
    """
    Base class: the Main / Hedge position state machine shared by live and paper trading.
    Exchange access goes through the abstract _io_* methods only.

    States:
        Idle -> MainOpen -> MainOpen+HedgeOpen
        MainOpen+HedgeOpen -> MainOpen   (hedge closed)
        MainOpen+HedgeOpen -> MainOpen   (main closed, hedge promoted)
        MainOpen -> Idle                 (main closed, no hedge)
    """

    def __init__(
        self,
        config: BotConfig,
        price_feed: IPriceFeed,
        mode: str,
        signal_source: Optional[ISignalSource] = None,
        boundary_store: Optional[IBoundaryStore] = None,
        position_store: Optional[IPositionStore] = None,
        notifier: Optional[INotifier] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.config = config
        self.symbol = config.symbol
        self.mode = mode

        self.price_feed = price_feed
        self.signal_source = signal_source
        self.position_store = position_store
        self.logger = logger or Logger()
        self.notifier = notifier or NullNotifier()

        self.grid = GridCalculator.from_config(config)
        self.boundary = BoundaryTracker(config, store=boundary_store, logger=self.logger, notifier=self.notifier)

        # runtime state
        self.main_position: Optional[Position] = None
        self.hedge_position: Optional[Position] = None
        self.running: bool = False
        self.hedge_cooldown_until: int = 0  # timestamp ms

        # single in-flight guard for hedge opens (awaited I/O lets the next tick re-enter)
        self._opening_lock = asyncio.Lock()
        self._monitor_task: Optional[asyncio.Task] = None
        self._state_loaded = False

        self.logger.log(
            f"[BaseHedgeStrategy] Init mode={mode}, symbol={self.symbol}, order_size={config.order_size}, "
            f"entry_spacing={config.trade_entry_spacing}, zero_level_spacing={config.zero_level_spacing}, "
            f"grid_spacing={config.grid_spacing}, stop_fraction={config.grid_stop_loss_fraction}, "
            f"trailing_distance={config.constant_trailing_distance}, tolerance={config.boundary_tolerance}",
            level="INFO",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _now_ms(self) -> int:
        return util.now_ms()

    def _round(self, value: Optional[float]) -> Optional[float]:
        return util.to_precision(value, self.config.price_precision)

    def _current_price(self, fallback: Optional[float] = None) -> Optional[float]:
        price = self.price_feed.get_current_price() if self.price_feed is not None else None
        return price if price else fallback

    def _cooldown_passed(self) -> bool:
        return self._now_ms() >= self.hedge_cooldown_until

    @property
    def opening_in_progress(self) -> bool:
        return self._opening_lock.locked()

    def _can_open_hedge(self) -> bool:
        return self.hedge_position is None and not self.opening_in_progress and self._cooldown_passed()

    def _notify(self, message: str) -> None:
        try:
            self.notifier.send(message)
        except Exception as e:
            self.logger.log(f"[NOTIFY] send error: {e}", level="ERROR")

    def _report_error(self, message: str) -> None:
        self.logger.log(message, level="ERROR")
        self._notify(message)

    def _warn(self, message: str) -> None:
        self.logger.log(message, level="WARNING")
        self._notify(message)

    def _persist_position(self, position: Position) -> None:
        if self.position_store is None:
            return
        try:
            self.position_store.save_position(position)
        except PersistenceError as e:
            self._report_error(f"💾 Persistence failure: {e}")

    def _forget_position(self, role: str) -> None:
        if self.position_store is None:
            return
        try:
            self.position_store.clear_position(role)
        except PersistenceError as e:
            self._report_error(f"💾 Persistence failure: {e}")

    def apply_price_precision(self, precision: int) -> None:
        precision = int(precision)
        self.config.price_precision = precision
        self.grid.price_precision = precision
        self.boundary.price_precision = precision
        self.logger.log(f"[PRECISION] price precision set to {precision} decimals", level="INFO")

    def load_state(self) -> None:
        """
        Restore boundary band and open positions from the stores. Runs once per instance.
        """
        if self._state_loaded:
            return
        self._state_loaded = True

        self.boundary.load()
        if self.position_store is None:
            return
        try:
            positions = self.position_store.load_positions()
        except PersistenceError as e:
            self._report_error(f"💾 Persistence failure: {e}")
            return

        # slots already filled in memory win over the stored copy
        if self.main_position is None:
            self.main_position = positions.get(ROLE_MAIN)
        if self.hedge_position is None:
            self.hedge_position = positions.get(ROLE_HEDGE)
        if self.main_position or self.hedge_position:
            self.logger.log(f"[STATE] restored main={self.main_position}, hedge={self.hedge_position}", level="INFO")

    def status(self) -> Dict[str, Any]:
        def _pos(p: Optional[Position]) -> Optional[Dict[str, Any]]:
            if p is None:
                return None
            return {
                "side": p.side,
                "entry_price": p.entry_price,
                "level": p.level,
                "stop_loss": p.stop_loss,
                "next_level_price": self.grid.next_trigger_price(p),
                "opened_at": p.opened_at,
            }

        return {
            "running": self.running,
            "mode": self.mode,
            "paper": self.is_paper_mode,
            "symbol": self.symbol,
            "price": self._current_price(),
            "main": _pos(self.main_position),
            "hedge": _pos(self.hedge_position),
            "boundaries": {"top": self.boundary.top, "bottom": self.boundary.bottom},
            "boundary_locked": self.boundary.locked,
            "opening_in_progress": self.opening_in_progress,
        }

    # ------------------------------------------------------------------
    # Main trade
    # ------------------------------------------------------------------
    async def open_main(self, side: str, price: float) -> Optional[Position]:
        side = util.normalize_side(side)
        if self.main_position is not None:
            self._warn(f"⚠️ Main trade already open ({self.main_position.side}), open {side} ignored.")
            return None

        qty = self.config.order_size
        try:
            order = await self._io_open_position(side=side, qty=qty, price=price)
        except ExchangeError as e:
            self._report_error(f"❌ Failed to open main trade: {e}")
            return None

        position = Position(
            symbol=self.symbol,
            side=side,
            entry_price=self._round(price),
            qty=qty,
            role=ROLE_MAIN,
            opened_at=self._now_ms(),
            meta={"open_order_id": (order or {}).get("id")},
        )
        if self.main_position is not None:
            # another main landed while this order was in flight
            self._warn(f"⚠️ Main trade opened concurrently ({self.main_position.side}), closing extra {side}.")
            await self._close_extra(position, price)
            return None

        self.main_position = position
        self._persist_position(position)

        self.boundary.lock()
        self._notify(f"📈 Main trade opened: {side} at {position.entry_price}")
        self.boundary.initialize(side, self._current_price(price))
        return position

    async def close_main(self, price: float, manual: bool = False) -> bool:
        main = self.main_position
        if main is None:
            return False

        try:
            await self._io_close_position(position=main, qty=self.config.order_size, price=price)
        except ExchangeError as e:
            self._report_error(f"❌ Close failed: {e}")
            return False

        self.main_position = None
        self._forget_position(ROLE_MAIN)
        self.boundary.unlock()
        self._notify(f"✅ {main.side} trade closed at {price}{' (manual)' if manual else ''}")

        if self.hedge_position is not None:
            await self.promote_hedge_to_main(price)
        else:
            self.boundary.lock()
            await self.check_for_new_trade_opportunity(self._current_price(price))
        return True

    async def check_for_new_trade_opportunity(self, price: Optional[float]) -> Optional[Position]:
        """
        Idle path: ask the signal source for a direction and open a fresh Main.
        No direction -> symmetric entry band around price.
        """
        if price is None:
            self._warn("⚠️ Price unavailable - boundary reset delayed")
            return None
        if self.main_position is not None or self.hedge_position is not None:
            return None
        if not self._cooldown_passed():
            self.logger.log(f"[ENTRY] skip new trade, cooldown until {util.timestamp_ms_to_date(self.hedge_cooldown_until)}", level="INFO")
            return None

        signal = await self._analyze_signal()
        position = None
        if signal == SIGNAL_BUY:
            position = await self.open_main(BUY, price)
        elif signal == SIGNAL_SELL:
            position = await self.open_main(SELL, price)

        if position is None:
            self.boundary.initialize(None, price)
        return position

    async def _analyze_signal(self) -> str:
        if self.signal_source is None:
            return SIGNAL_WAIT
        try:
            signal = await self.signal_source.analyze()
        except Exception as e:
            self._report_error(f"❌ Signal source error: {e}")
            return SIGNAL_WAIT
        signal = str(signal or SIGNAL_WAIT).upper()
        self.logger.log(f"[SIGNAL] {signal}", level="INFO")
        return signal

    # ------------------------------------------------------------------
    # Hedge trade
    # ------------------------------------------------------------------
    async def open_hedge(self, side: str, price: float) -> Optional[Position]:
        side = util.normalize_side(side)
        if self.hedge_position is not None:
            self._warn("⚠️ Attempt to open duplicate hedge ignored.")
            return None
        if self.main_position is None:
            self._warn("⚠️ Hedge not opened: no main trade to hedge.")
            return None

        half_step = 0.5 * self.config.zero_level_spacing
        breakthrough_price = self._round(price + half_step if side == BUY else price - half_step)

        qty = self.config.order_size
        try:
            order = await self._io_open_position(side=side, qty=qty, price=price)
        except ExchangeError as e:
            self._report_error(f"❌ Failed to open hedge trade: {e}")
            return None

        position = Position(
            symbol=self.symbol,
            side=side,
            entry_price=self._round(price),
            qty=qty,
            role=ROLE_HEDGE,
            opened_at=self._now_ms(),
            breakthrough_price=breakthrough_price,
            meta={"open_order_id": (order or {}).get("id")},
        )
        main = self.main_position
        if main is None:
            self._warn(f"⚠️ Main trade closed while hedge {side} was opening, hedge becomes main.")
            return self._take_over_as_main(position, price)
        if main.side == side or self.hedge_position is not None:
            self._warn(f"⚠️ Hedge {side} no longer needed, closing it.")
            await self._close_extra(position, price)
            return None

        self.hedge_position = position
        self._persist_position(position)
        self._notify(f"🛡️ Hedge trade opened: {side} at {position.entry_price} (Breakthrough: {breakthrough_price})")
        return position

    async def close_hedge(self, price: float, manual: bool = False) -> bool:
        hedge = self.hedge_position
        if hedge is None:
            return False

        try:
            await self._io_close_position(position=hedge, qty=self.config.order_size, price=price)
        except ExchangeError as e:
            self._report_error(f"❌ Failed to close hedge trade: {e}")
            return False

        self.hedge_position = None
        self._forget_position(ROLE_HEDGE)
        self.boundary.unlock()
        self.hedge_cooldown_until = self._now_ms() + int(self.config.hedge_cooldown_sec * 1000)
        self._notify(f"❌ Hedge trade closed: {hedge.side} at {price}{' (manual)' if manual else ''}")

        main_side = self.main_position.side if self.main_position is not None else None
        self.boundary.reset_after_hedge(main_side, self._current_price(price))
        return True

    async def promote_hedge_to_main(self, price: float) -> Optional[Position]:
        """
        The only role transfer: the Hedge becomes the new Main with a fresh grid.
        """
        hedge = self.hedge_position
        if hedge is None:
            return None
        if self.main_position is not None:
            self._warn("⚠️ Promotion skipped: main trade still open.")
            return None

        self.hedge_position = None
        self._forget_position(ROLE_HEDGE)
        return self._take_over_as_main(hedge, price)

    def _take_over_as_main(self, position: Position, price: float) -> Position:
        position.role = ROLE_MAIN
        position.level = 0
        position.stop_loss = None
        self.main_position = position
        self._persist_position(position)

        self.boundary.unlock()
        self._notify("🔁 Hedge trade promoted to main trade. Grid reset and stop loss cleared.")

        current_price = self._current_price(price)
        if current_price is None:
            self._warn("⚠️ Price unavailable - boundary reset delayed")
            return position
        self.boundary.reset_after_hedge(position.side, current_price)
        self.boundary.trail(position.side, current_price)
        return position

    async def _close_extra(self, position: Position, price: float) -> None:
        try:
            await self._io_close_position(position=position, qty=position.qty, price=price)
        except ExchangeError as e:
            self._report_error(f"❌ Failed to close extra {position.side} position, close it manually: {e}")

    async def _guarded_open_hedge(self, side: str, price: float, reason: str) -> Optional[Position]:
        if self._opening_lock.locked():
            return None
        async with self._opening_lock:
            self.logger.log(f"[HEDGE] trigger={reason} side={side} price={price} boundaries={self.boundary.as_dict()['boundaries']}", level="INFO")
            return await self.open_hedge(side, price)

    # ------------------------------------------------------------------
    # Per tick
    # ------------------------------------------------------------------
    async def process_tick(self, price: float) -> None:
        price = self._round(price)
        hedge_at_start = self.hedge_position

        # 1) hedge opening on boundary (+ tolerance)
        await self._check_hedge_trigger(price)

        # 2) main grid / stop / level-0 breach
        if self.main_position is not None:
            await self._handle_main(price)

        # 3) hedge grid / stop (only the hedge that existed when the tick started)
        if hedge_at_start is not None and self.hedge_position is hedge_at_start:
            await self._handle_hedge(price)

        # 4) trail the boundary while the main runs unhedged
        main = self.main_position
        if main is not None and self.hedge_position is None:
            self.boundary.trail(main.side, price)

    async def _check_hedge_trigger(self, price: float) -> None:
        main = self.main_position
        if main is None or not self._can_open_hedge():
            return
        if self.boundary.hedge_triggered(main.side, price):
            await self._guarded_open_hedge(util.opposite_side(main.side), price, reason="BOUNDARY")

    def _advance_grid(self, position: Position, label: str, price: float) -> None:
        if not self.grid.advance(position, price):
            return
        self._notify(f"📊 {label} trade reached level {position.level} at {price}")
        self._notify(f"🔒 {label} trade stop loss updated to {position.stop_loss}")
        self._persist_position(position)

    async def _handle_main(self, price: float) -> None:
        main = self.main_position
        if main is None:
            return

        self._advance_grid(main, "Main", price)

        if self.grid.is_stop_breached(main, price):
            self.logger.log(f"[MAIN] stop loss hit side={main.side} stop={main.stop_loss} price={price}", level="INFO")
            await self.close_main(price)
            return

        if main.level == 0 and self._can_open_hedge() and self.boundary.breached(main.side, price):
            await self._guarded_open_hedge(util.opposite_side(main.side), price, reason="LEVEL0_BREACH")

    async def _handle_hedge(self, price: float) -> None:
        hedge = self.hedge_position
        if hedge is None:
            return

        self._advance_grid(hedge, "Hedge", price)

        if self.grid.is_stop_breached(hedge, price):
            self.logger.log(f"[HEDGE] stop loss hit side={hedge.side} stop={hedge.stop_loss} price={price}", level="INFO")
            await self.close_hedge(price)

    # ------------------------------------------------------------------
    # Monitor loop
    # ------------------------------------------------------------------
    async def monitor_price(self) -> None:
        while self.running:
            try:
                price = self.price_feed.get_current_price()
                if not price:
                    await asyncio.sleep(self.config.price_retry_sec)
                    continue

                await self.process_tick(price)
                await asyncio.sleep(self.config.monitor_interval_sec)
            except Exception as e:
                self._report_error(f"‼️ CRITICAL MONITOR ERROR: {e}")
                self.logger.log(traceback.format_exc(), level="DEBUG")
                await asyncio.sleep(self.config.error_retry_sec)

        self.logger.log("[MONITOR] loop stopped", level="INFO")

    def _launch_monitor(self) -> asyncio.Task:
        if self._monitor_task is None or self._monitor_task.done():
            self._monitor_task = asyncio.create_task(self.monitor_price())
        return self._monitor_task

    # ------------------------------------------------------------------
    # Operator surface
    # ------------------------------------------------------------------
    async def _bring_up(self) -> None:
        self.load_state()
        await self.price_feed.start()
        first_price = await self.price_feed.wait_for_first_price()
        self.logger.log(f"🎯 First price fetched: {first_price}", level="INFO")

        try:
            await self._io_prepare_account()
        except ExchangeError as e:
            self._report_error(f"❌ Account setup failed: {e}")

        self.running = True
        self._notify("🤖 Bot started")

    async def start(self) -> Optional[asyncio.Task]:
        if self.running:
            self._warn("⚠️ Bot already running.")
            return self._monitor_task

        await self._bring_up()

        if self.main_position is not None:
            main = self.main_position
            self._notify(f"📦 Resuming main trade: {main.side} from {main.entry_price} at level {main.level}")
        elif self.hedge_position is not None:
            self._notify("🛡️ Found existing hedge trade - promoting to main")
            await self.promote_hedge_to_main(self._current_price())
        else:
            price = self._current_price()
            if price is None:
                self._warn("⚠️ Unable to fetch price for main trade on startup.")
            else:
                signal = await self._analyze_signal()
                if signal in (SIGNAL_BUY, SIGNAL_SELL):
                    self._notify(f"🕐 Signal is {signal}, placing {signal.lower()} order...")
                    await self.open_main(BUY if signal == SIGNAL_BUY else SELL, price)
                if self.main_position is None:
                    self.boundary.initialize(None, price)

        return self._launch_monitor()

    async def stop(self) -> None:
        """
        Halts loop re-entry. An in-flight exchange call is not aborted.
        """
        self.running = False
        await self.price_feed.stop()
        self._notify("🛑 Bot stopped")

    async def reset(self) -> None:
        self.main_position = None
        self.hedge_position = None
        if self.position_store is not None:
            try:
                self.position_store.clear_all()
            except PersistenceError as e:
                self._report_error(f"💾 Persistence failure: {e}")

        self.running = False
        self.boundary.clear()
        self._notify("♻️ Persistent state cleared.")

        price = self._current_price()
        if price is None:
            self._warn("⚠️ Unable to get current price to set boundaries.")
        else:
            self.boundary.initialize(None, price)

        try:
            await self._io_cancel_all_orders()
        except ExchangeError as e:
            self._report_error(f"❌ Error canceling orders during reset: {e}")

    async def manual_open(self, side: str) -> Optional[Position]:
        side = util.normalize_side(side)
        self.load_state()
        was_running = self.running

        if self.main_position is not None or self.hedge_position is not None:
            self._warn("⚠️ Trade not placed: Main or Hedge already active.")
            return None

        if not was_running:
            await self._bring_up()

        price = self._current_price()
        if price is None:
            price = await self.price_feed.wait_for_first_price()

        position = await self.open_main(side, price)
        if not was_running:
            self._launch_monitor()
        return position

    async def manual_close_main(self) -> bool:
        price = self._current_price()
        if not price or self.main_position is None:
            return False
        return await self.close_main(price, manual=True)

    async def manual_close_hedge(self) -> bool:
        price = self._current_price()
        if not price or self.hedge_position is None:
            return False
        return await self.close_hedge(price, manual=True)
