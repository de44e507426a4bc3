from typing import Optional

from hedge_bot.interface.collaborators import ISignalSource, SIGNAL_BUY, SIGNAL_SELL, SIGNAL_WAIT


class ManualSignal(ISignalSource):
    """
    Directional bias held by the operator (or by a backtest run).
    Indicator-driven sources plug in through the same ISignalSource contract.
    """

    VALID = (SIGNAL_BUY, SIGNAL_SELL, SIGNAL_WAIT)

    def __init__(self, signal: Optional[str] = None):
        self.signal = SIGNAL_WAIT
        self.set_signal(signal or SIGNAL_WAIT)

    def set_signal(self, signal: str) -> None:
        value = str(signal).upper()
        if value not in self.VALID:
            raise ValueError(f"Invalid signal '{signal}'. Must be one of {self.VALID}.")
        self.signal = value

    async def analyze(self) -> str:
        return self.signal
