from abc import ABC, abstractmethod
from typing import Optional

from hedge_bot.database.logger import Logger


class INotifier(ABC):
    """
    Operator channel. The controller reports state transitions and failures here.
    """

    @abstractmethod
    def send(self, message: str) -> None:
        raise NotImplementedError


class NullNotifier(INotifier):
    def send(self, message: str) -> None:
        return


class LogNotifier(INotifier):
    """Forward operator messages to the logger (used when no chat channel is wired)."""

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger or Logger()

    def send(self, message: str) -> None:
        self.logger.log(f"[NOTIFY] {message}", level="INFO")
