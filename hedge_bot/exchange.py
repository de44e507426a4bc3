from typing import Any, Dict, Optional

import ccxt

from hedge_bot.datas.exchange import ExchangeConfig
import hedge_bot.utils.util as util


class ExchangeSync:
    """
    Thin ccxt wrapper for the Bitget USDT perpetual account.
    All orders are market orders in hedge (dual-side) position mode.
    """

    def __init__(
        self,
        symbol: str,
        config: Optional[ExchangeConfig] = None,
        load_markets: bool = True,
        futures_client: Any = None,
        **_: Any,
    ):
        self.symbol = symbol
        self.config = config or ExchangeConfig.from_env()
        self.futures = futures_client or self.create_future_exchange(self.config)
        if load_markets:
            self.ensure_markets_loaded()

    def ensure_markets_loaded(self):
        if not self.futures.markets:
            self.futures.load_markets()

    @staticmethod
    def create_future_exchange(config: ExchangeConfig):
        futures = ccxt.bitget(
            {
                "apiKey": config.api_key,
                "secret": config.api_secret,
                "password": config.api_passphrase,
                "enableRateLimit": config.enable_rate_limit,
                "options": {"defaultType": "swap", "adjustForTimeDifference": config.adjust_for_time_diff},
            }
        )

        if config.use_testnet:
            futures.set_sandbox_mode(True)

        return futures

    # ---------------- account setup ----------------
    def set_margin_mode(self, margin_mode: str) -> Any:
        return self.futures.set_margin_mode(margin_mode, self.symbol)

    def set_position_mode(self, hedged: bool = True) -> Any:
        return self.futures.set_position_mode(hedged, self.symbol)

    def set_leverage(self, leverage: int, side: str, margin_mode: str) -> Any:
        hold_side = "long" if util.normalize_side(side) == "Buy" else "short"
        return self.futures.set_leverage(int(leverage), self.symbol, params={"marginMode": margin_mode, "holdSide": hold_side})

    # ---------------- orders ----------------
    def open_position(self, side: str, qty: float) -> Dict[str, Any]:
        side = util.normalize_side(side)
        return self.futures.create_order(self.symbol, "market", side.lower(), qty, params={"hedged": True})

    def close_position(self, position_side: str, qty: float) -> Dict[str, Any]:
        """
        Reduce-only order on the opposite side of the held position.
        """
        close_side = util.opposite_side(position_side)
        return self.futures.create_order(self.symbol, "market", close_side.lower(), qty, params={"hedged": True, "reduceOnly": True})

    def cancel_all_orders(self) -> Any:
        return self.futures.cancel_all_orders(self.symbol)

    # ---------------- market data ----------------
    def fetch_last_price(self) -> Optional[float]:
        ticker = self.futures.fetch_ticker(self.symbol)
        last = ticker.get("last") if isinstance(ticker, dict) else None
        return float(last) if last is not None else None

    def get_market_info(self):
        return self.futures.market(self.symbol)

    def fetch_price_precision(self) -> int:
        """
        Decimal places for prices. ccxt reports either a tick size or a digit count
        depending on the exchange precisionMode.
        """
        market = self.get_market_info()
        precision = market["precision"]["price"]
        if getattr(self.futures, "precisionMode", None) == ccxt.TICK_SIZE:
            return util.decimals_from_tick(precision)
        return int(precision)
