import asyncio
import os

from config import CONFIG
from hedge_bot.backtest_strategy import BacktestHedgeStrategy
from hedge_bot.database.boundary_state import BoundaryState
from hedge_bot.database.futures_orders import FuturesOrders
from hedge_bot.database.json_state import JsonBoundaryState, JsonStateFile, JsonTradePositions
from hedge_bot.database.logger import Logger
from hedge_bot.database.trade_positions import TradePositions
from hedge_bot.datas.exchange import ExchangeConfig
from hedge_bot.datas.strategy import BotConfig
from hedge_bot.exchange import ExchangeSync
from hedge_bot.interface.notifier import LogNotifier
from hedge_bot.live_strategy import LiveHedgeStrategy
from hedge_bot.price_feed import PollingPriceFeed, WebSocketPriceFeed
from hedge_bot.strategy.signal import ManualSignal


def build_stores(symbol: str, storage: str, logger: Logger):
    """
    return: (boundary_store, position_store, orders_db)
    """
    if storage == "mysql":
        return BoundaryState(symbol), TradePositions(symbol), FuturesOrders()
    if storage == "json":
        state_file = JsonStateFile(str(CONFIG.get("state_file", "hedge_bot_state.json")), symbol)
        return JsonBoundaryState(state_file), JsonTradePositions(state_file), None
    if storage == "none":
        logger.log("[Runner] STORAGE=none, state is kept in memory only", level="WARNING")
        return None, None, None
    raise ValueError(f"Invalid STORAGE '{storage}'. Must be one of mysql / json / none.")


def build_price_feed(config: BotConfig, exchange: ExchangeSync, logger: Logger):
    source = str(CONFIG.get("price_source", "websocket")).lower()
    if source == "rest":
        return PollingPriceFeed(exchange, interval=config.poll_interval_sec, logger=logger)
    return WebSocketPriceFeed(config.ws_symbol, logger=logger)


async def main():

    logger = Logger()
    notifier = LogNotifier(logger)
    mode = str(CONFIG.get("mode", "forward_test")).lower()
    config = BotConfig.from_config(CONFIG)
    signal = ManualSignal(CONFIG.get("signal"))

    if mode == "backtest":
        _, _, orders_db = build_stores(config.symbol, str(CONFIG.get("storage", "none")).lower(), logger)
        bt = BacktestHedgeStrategy(config, mode="backtest", orders_db=orders_db, signal_source=signal, notifier=notifier, logger=logger)
        summary = await bt._run(CONFIG.get("ohlcv_file") or os.getenv("OHLCV_FILE"), initial_side=CONFIG.get("initial_side"))

        print("\n===== Backtest Summary =====")
        for k, v in summary.items():
            print(f"{k}: {v}")
        return

    boundary_store, position_store, orders_db = build_stores(config.symbol, str(CONFIG.get("storage", "mysql")).lower(), logger)
    exchange = ExchangeSync(symbol=config.symbol, config=ExchangeConfig.from_env())
    feed = build_price_feed(config, exchange, logger)
    common = dict(
        signal_source=signal,
        boundary_store=boundary_store,
        position_store=position_store,
        orders_db=orders_db,
        notifier=notifier,
        logger=logger,
    )

    if mode == "live":
        bot = LiveHedgeStrategy(config, feed, exchange=exchange, **common)
    elif mode == "forward_test":
        bot = BacktestHedgeStrategy(config, price_feed=feed, mode="forward_test", **common)
    else:
        raise ValueError(f"Invalid MODE '{mode}'. Must be one of live / forward_test / backtest.")

    logger.log(f"✅ Bot initialized for {mode} mode", level="INFO")
    task = await bot.start()
    try:
        await task
    finally:
        await bot.stop()


if __name__ == "__main__":
    asyncio.run(main())
