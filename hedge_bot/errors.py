class BotError(Exception):
    """Base class for errors raised by the hedge bot."""


class ExchangeError(BotError):
    """A remote exchange / price-feed call failed. Local state is left untouched."""

    def __init__(self, action: str, message: str):
        self.action = action
        self.message = message
        super().__init__(f"{action} failed: {message}")


class InvalidSideError(BotError, ValueError):
    """Unrecognized side value. Raised before any remote call is made."""

    def __init__(self, side):
        self.side = side
        super().__init__(f"Invalid side '{side}'. Must be one of Buy / Sell.")


class PersistenceError(BotError):
    """Boundary / position store failed to read or write."""

    def __init__(self, store: str, message: str):
        self.store = store
        self.message = message
        super().__init__(f"[{store}] {message}")
