from dataclasses import dataclass, fields
from typing import Any, Mapping


@dataclass
class BotConfig:
    symbol: str = "BTC/USDT:USDT"  # ccxt unified swap symbol
    ws_symbol: str = "BTCUSDT"  # exchange-native id used by the websocket feed
    order_size: float = 0.001
    leverage: int = 10
    margin_mode: str = "crossed"
    price_precision: int = 1
    fetch_precision: bool = True  # refresh price_precision from market info on start

    # boundary band
    trade_entry_spacing: float = 100.0
    new_boundary_spacing: float = 150.0
    constant_trailing_distance: float = 100.0
    boundary_tolerance: float = 5.0

    # grid / stop-loss
    zero_level_spacing: float = 200.0
    grid_spacing: float = 150.0
    grid_stop_loss_fraction: float = 0.5

    # timing (seconds)
    monitor_interval_sec: float = 1.0
    price_retry_sec: float = 2.0
    error_retry_sec: float = 2.0
    hedge_cooldown_sec: float = 0.0
    poll_interval_sec: float = 2.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "BotConfig":
        """
        Build from the lower-cased CONFIG dict (see config.py).
        Unknown keys are ignored, missing keys keep their defaults.
        """
        values = {}
        for f in fields(cls):
            if f.name not in config or config[f.name] in (None, ""):
                continue
            raw = config[f.name]
            if f.type in ("int", int):
                values[f.name] = int(raw)
            elif f.type in ("float", float):
                values[f.name] = float(raw)
            elif f.type in ("bool", bool):
                values[f.name] = raw if isinstance(raw, bool) else str(raw).lower() == "true"
            else:
                values[f.name] = str(raw)
        return cls(**values)
