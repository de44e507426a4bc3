# ------------------------------------------------------------------
# Abstract "I/O" methods - implemented by the live / paper subclasses
# ------------------------------------------------------------------
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from hedge_bot.dataclass.position import Position


class IHedgeIO(ABC):
    """
    Abstract exchange I/O for the hedge bot.
    Every method raises ExchangeError when the remote side rejects / fails,
    so the controller can leave its state untouched.
    """

    @property
    def is_paper_mode(self) -> bool:
        """
        True when orders are simulated (backtest / forward_test)
        """
        return self.mode in ("backtest", "forward_test")

    @abstractmethod
    async def _io_prepare_account(self) -> None:
        """
        One-time account setup per session:
        - live: margin mode, hedge position mode, leverage, price precision
        - paper: nothing
        """
        raise NotImplementedError

    @abstractmethod
    async def _io_open_position(self, side: str, qty: float, price: float) -> Optional[Dict[str, Any]]:
        """
        Open a market position of `side` ("Buy" / "Sell").
        price is the tick price that triggered the open (used by paper fills).
        return: order info
        """
        raise NotImplementedError

    @abstractmethod
    async def _io_close_position(self, position: Position, qty: float, price: float) -> Optional[Dict[str, Any]]:
        """
        Close `qty` of an open position (reduce-only market order on the opposite side).
        """
        raise NotImplementedError

    @abstractmethod
    async def _io_cancel_all_orders(self) -> None:
        raise NotImplementedError
