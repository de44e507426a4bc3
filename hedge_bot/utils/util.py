import threading
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, timezone
from typing import Any, Optional

from hedge_bot.dataclass.position import BUY, SELL
from hedge_bot.errors import InvalidSideError


_sequence = 0
_sequence_lock = threading.Lock()


def to_precision(value: Optional[float], precision: int) -> Optional[float]:
    """
    Round half-up to `precision` decimals. None passes through.
    Decimal(str(x)) keeps 101.25 -> 101.3 instead of the binary-float 101.2.
    """
    if value is None:
        return None
    step = Decimal("1").scaleb(-int(precision))  # 10^-precision
    return float(Decimal(str(value)).quantize(step, rounding=ROUND_HALF_UP))


def decimals_from_tick(tick: Any) -> int:
    """0.01 -> 2, 0.5 -> 1, 1 -> 0, 10 -> 0"""
    return max(0, -Decimal(str(tick)).normalize().as_tuple().exponent)


def normalize_side(side: Any) -> str:
    if isinstance(side, str):
        lowered = side.strip().lower()
        if lowered == "buy":
            return BUY
        if lowered == "sell":
            return SELL
    raise InvalidSideError(side)


def opposite_side(side: str) -> str:
    return SELL if normalize_side(side) == BUY else BUY


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def timestamp_ms_to_date(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def generate_order_id(action: str) -> str:
    """
    Generate a unique paper order ID composed of:
    - UTC timestamp in YYYYMMDDHHMMSSffffff format
    - action: one of 'OPEN', 'CLOSE'
    - sequence number to avoid duplicates within the same microsecond

    Example:
        20250625123456789012_OPEN_1
    """
    global _sequence
    allowed = {"OPEN", "CLOSE"}
    if action not in allowed:
        raise ValueError(f"Invalid action '{action}'. Must be one of {allowed}.")

    with _sequence_lock:
        _sequence += 1
        seq = _sequence

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
    return f"{timestamp}_{action}_{seq}"
