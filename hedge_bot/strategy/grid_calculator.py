from typing import Optional

from hedge_bot.dataclass.position import Position
from hedge_bot.datas.strategy import BotConfig
from hedge_bot.utils.util import to_precision


class GridCalculator:
    """
    Per-position grid levels and ratcheting stop-loss.

    Rungs (dir = +1 Buy, -1 Sell):
        rung(0) = entry
        rung(n) = entry + dir * (zero_level_spacing + grid_spacing * (n - 1))    n >= 1

    Reaching rung(level + 1) advances the level by one and moves the stop to
        rung(n - 1) + fraction * (rung(n) - rung(n - 1))
    """

    def __init__(self, zero_level_spacing: float, grid_spacing: float, stop_loss_fraction: float, price_precision: int):
        self.zero_level_spacing = float(zero_level_spacing)
        self.grid_spacing = float(grid_spacing)
        self.stop_loss_fraction = float(stop_loss_fraction)
        self.price_precision = int(price_precision)

    @classmethod
    def from_config(cls, config: BotConfig) -> "GridCalculator":
        return cls(
            zero_level_spacing=config.zero_level_spacing,
            grid_spacing=config.grid_spacing,
            stop_loss_fraction=config.grid_stop_loss_fraction,
            price_precision=config.price_precision,
        )

    def spacing(self, level: int) -> float:
        if level == 0:
            return self.zero_level_spacing
        return self.grid_spacing

    def level_price(self, position: Position, level: int) -> float:
        if level <= 0:
            return to_precision(position.entry_price, self.price_precision)
        distance = self.spacing(0) + self.spacing(level) * (level - 1)
        return to_precision(position.entry_price + position.direction * distance, self.price_precision)

    def next_trigger_price(self, position: Position) -> float:
        return self.level_price(position, position.level + 1)

    def stop_loss_for_level(self, position: Position, level: int) -> Optional[float]:
        if level < 1:
            return None
        prev_price = self.level_price(position, level - 1)
        curr_price = self.level_price(position, level)
        return to_precision(prev_price + self.stop_loss_fraction * (curr_price - prev_price), self.price_precision)

    def has_crossed(self, position: Position, price: float, level_price: float) -> bool:
        price = to_precision(price, self.price_precision)
        if position.direction > 0:
            return price >= level_price
        return price <= level_price

    def advance(self, position: Position, price: float) -> bool:
        """
        Move the position one level forward if price reached the next rung.
        Returns True when level / stop_loss changed.
        """
        if not self.has_crossed(position, price, self.next_trigger_price(position)):
            return False

        position.level += 1
        position.stop_loss = self.stop_loss_for_level(position, position.level)
        return True

    def is_stop_breached(self, position: Position, price: float) -> bool:
        if position.level < 1 or position.stop_loss is None:
            return False
        price = to_precision(price, self.price_precision)
        stop = to_precision(position.stop_loss, self.price_precision)
        if position.direction > 0:
            return price <= stop
        return price >= stop
