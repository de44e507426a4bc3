from typing import Any, Dict, Optional

from hedge_bot.dataclass.position import BUY, SELL
from hedge_bot.database.logger import Logger
from hedge_bot.datas.strategy import BotConfig
from hedge_bot.errors import PersistenceError
from hedge_bot.interface.collaborators import IBoundaryStore
from hedge_bot.interface.notifier import INotifier, NullNotifier
from hedge_bot.utils.util import to_precision


class BoundaryTracker:
    """
    Owns the entry / hedge boundary band.

    - no Main      : symmetric band, top and bottom both set
    - Main open    : one-sided, Buy keeps `bottom`, Sell keeps `top`
    - trailing     : the one-sided boundary only ever moves toward price
    Every change is written to the store together with the legacy `trailing_boundary` value.
    """

    def __init__(self, config: BotConfig, store: Optional[IBoundaryStore] = None, logger: Optional[Logger] = None, notifier: Optional[INotifier] = None):
        self.config = config
        self.store = store
        self.logger = logger or Logger()
        self.notifier = notifier or NullNotifier()
        self.price_precision = int(config.price_precision)

        self.top: Optional[float] = None
        self.bottom: Optional[float] = None
        self.trailing_boundary: Any = None
        self.locked: bool = False
        self._loaded = False

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------
    def as_dict(self) -> Dict[str, Any]:
        return {"trailing_boundary": self.trailing_boundary, "boundaries": {"top": self.top, "bottom": self.bottom}}

    def is_empty(self) -> bool:
        return self.top is None and self.bottom is None

    def lock(self) -> None:
        self.locked = True

    def unlock(self) -> None:
        self.locked = False

    def load(self) -> bool:
        """
        Restore the band from the store. Runs once per tracker; later calls are no-ops.
        """
        if self._loaded:
            return False
        self._loaded = True
        if self.store is None:
            return False

        try:
            state = self.store.load()
        except PersistenceError as e:
            self._report_persistence_error(e)
            return False

        if not state:
            return False

        boundaries = state.get("boundaries") or {}
        self.top = boundaries.get("top")
        self.bottom = boundaries.get("bottom")
        self.trailing_boundary = state.get("trailing_boundary")
        self.logger.log(f"[BOUNDARY] restored top={self.top}, bottom={self.bottom}", level="INFO")
        return True

    def clear(self) -> None:
        self.top = None
        self.bottom = None
        self.locked = False
        if self.store is None:
            return
        try:
            self.store.clear()
        except PersistenceError as e:
            self._report_persistence_error(e)

    # ------------------------------------------------------------------
    # band computation
    # ------------------------------------------------------------------
    def initialize(self, main_side: Optional[str], price: float) -> None:
        spacing = self.config.trade_entry_spacing
        if main_side == BUY:
            self._set_one_sided(BUY, price - spacing)
            self._notify(f"🔵 Buy main trade - bottom boundary set at {self.bottom} (current: {price})")
        elif main_side == SELL:
            self._set_one_sided(SELL, price + spacing)
            self._notify(f"🔴 Sell main trade - top boundary set at {self.top} (current: {price})")
        else:
            self.top = self._round(price + spacing)
            self.bottom = self._round(price - spacing)
            self._notify(f"⚪ No main trade - boundaries set at {self.bottom}-{self.top} (current: {price})")
        self._save()

    def reset_after_hedge(self, main_side: Optional[str], price: float) -> None:
        """
        "New hedge boundary": recomputed after a hedge closes or is promoted, using the wider spacing.
        """
        spacing = self.config.new_boundary_spacing
        if main_side == BUY:
            self._set_one_sided(BUY, price - spacing)
            self._notify(f"🔵 For buy main trade - New hedge bottom boundary set at {self.bottom} (current: {price})")
        elif main_side == SELL:
            self._set_one_sided(SELL, price + spacing)
            self._notify(f"🔴 For sell main trade - New hedge top boundary set at {self.top} (current: {price})")
        else:
            self._notify(f"⚪ No main trade - boundaries kept at {self.bottom}-{self.top} (current: {price})")
        self._save()

    def trail(self, main_side: str, price: float) -> bool:
        """
        Propose a boundary at the maintained distance from price.
        Accepted only when it tightens toward price. Returns True if the band moved.
        """
        distance = self.config.constant_trailing_distance
        if main_side == BUY:
            proposed = self._round(price - distance)
            if self.bottom is not None and proposed <= self._round(self.bottom):
                return False
            self._set_one_sided(BUY, proposed)
        elif main_side == SELL:
            proposed = self._round(price + distance)
            if self.top is not None and proposed >= self._round(self.top):
                return False
            self._set_one_sided(SELL, proposed)
        else:
            return False

        self._save()
        self.logger.log(
            f"[BOUNDARY] trailed main={main_side} price={self._round(price)} new_boundary={proposed} distance={distance}",
            level="DEBUG",
        )
        return True

    # ------------------------------------------------------------------
    # triggers
    # ------------------------------------------------------------------
    def hedge_triggered(self, main_side: str, price: float) -> bool:
        price = self._round(price)
        tolerance = self.config.boundary_tolerance
        if main_side == BUY and self.bottom is not None:
            return price <= self._round(self.bottom + tolerance)
        if main_side == SELL and self.top is not None:
            return price >= self._round(self.top - tolerance)
        return False

    def breached(self, main_side: str, price: float) -> bool:
        price = self._round(price)
        if main_side == BUY and self.bottom is not None:
            return price <= self._round(self.bottom)
        if main_side == SELL and self.top is not None:
            return price >= self._round(self.top)
        return False

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _round(self, value: float) -> float:
        return to_precision(value, self.price_precision)

    def _set_one_sided(self, main_side: str, value: float) -> None:
        if main_side == BUY:
            self.bottom = self._round(value)
            self.top = None
        else:
            self.top = self._round(value)
            self.bottom = None

    def _save(self) -> None:
        if self.store is None:
            return
        try:
            self.store.save(self.as_dict())
        except PersistenceError as e:
            self._report_persistence_error(e)

    def _report_persistence_error(self, error: PersistenceError) -> None:
        self.logger.log(f"[BOUNDARY] persistence failure: {error}", level="ERROR")
        self._notify(f"💾 Persistence failure: {error}")

    def _notify(self, message: str) -> None:
        try:
            self.notifier.send(message)
        except Exception as e:
            self.logger.log(f"[NOTIFY] send error: {e}", level="ERROR")
