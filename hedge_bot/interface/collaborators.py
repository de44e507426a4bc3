# ------------------------------------------------------------------
# Contracts of the collaborators the trade controller consumes
# ------------------------------------------------------------------
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from hedge_bot.dataclass.position import Position

SIGNAL_BUY = "BUY"
SIGNAL_SELL = "SELL"
SIGNAL_WAIT = "WAIT"


class IPriceFeed(ABC):
    """
    Continuously updated last-traded price plus a one-shot "first price" signal.
    """

    @abstractmethod
    def get_current_price(self) -> Optional[float]:
        """latest price, None while nothing has arrived yet"""
        raise NotImplementedError

    @abstractmethod
    async def wait_for_first_price(self) -> float:
        raise NotImplementedError

    @abstractmethod
    def on_price(self, callback: Callable[[float], Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def start(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def stop(self) -> None:
        raise NotImplementedError


class ISignalSource(ABC):
    @abstractmethod
    async def analyze(self) -> str:
        """return one of SIGNAL_BUY / SIGNAL_SELL / SIGNAL_WAIT"""
        raise NotImplementedError


class IBoundaryStore(ABC):
    """
    Durable storage of the boundary band.
    state format: {"trailing_boundary": Any, "boundaries": {"top": float|None, "bottom": float|None}}
    Implementations raise PersistenceError on failure.
    """

    @abstractmethod
    def save(self, state: Dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def load(self) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError


class IPositionStore(ABC):
    """
    Durable storage of the open Main / Hedge positions, keyed by role.
    Implementations raise PersistenceError on failure.
    """

    @abstractmethod
    def save_position(self, position: Position) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear_position(self, role: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def load_positions(self) -> Dict[str, Position]:
        raise NotImplementedError

    @abstractmethod
    def clear_all(self) -> None:
        raise NotImplementedError
