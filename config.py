import os
from dataclasses import fields

from dotenv import load_dotenv, dotenv_values

from hedge_bot.datas.strategy import BotConfig

load_dotenv()

RUNNER_KEYS = ("MODE", "STORAGE", "STATE_FILE", "PRICE_SOURCE", "SIGNAL", "INITIAL_SIDE", "OHLCV_FILE", "ENVIRONMENT")


def _cast_value(val: str):
    lower = val.lower()
    if lower in ("true", "false"):
        return lower == "true"
    if val.isdigit():
        return int(val)
    try:
        return float(val)
    except ValueError:
        return val


raw_env = dotenv_values()

CONFIG = {key.lower(): _cast_value(value) for key, value in raw_env.items() if value is not None}

# process environment wins over .env for the keys the bot reads
for _key in RUNNER_KEYS + tuple(f.name.upper() for f in fields(BotConfig)):
    _value = os.environ.get(_key)
    if _value is not None:
        CONFIG[_key.lower()] = _cast_value(_value)
