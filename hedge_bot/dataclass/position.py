from dataclasses import dataclass, field
from typing import Any, Dict, Optional

BUY = "Buy"
SELL = "Sell"

ROLE_MAIN = "MAIN"
ROLE_HEDGE = "HEDGE"


@dataclass
class Position:
    symbol: str
    side: str  # "Buy" / "Sell"
    entry_price: float
    qty: float
    role: str = ROLE_MAIN
    level: int = 0
    stop_loss: Optional[float] = None
    opened_at: int = 0  # timestamp ms
    breakthrough_price: Optional[float] = None  # hedge only, informational
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def direction(self) -> int:
        return 1 if self.side == BUY else -1
