import os
from dataclasses import dataclass


@dataclass
class ExchangeConfig:
    api_key: str
    api_secret: str
    api_passphrase: str
    use_testnet: bool
    enable_rate_limit: bool = True
    adjust_for_time_diff: bool = True

    @classmethod
    def from_env(cls) -> "ExchangeConfig":
        testnet = os.getenv("BITGET_TESTNET", "false").lower() == "true"
        prefix = "BITGET_TEST_" if testnet else "BITGET_"
        return cls(
            api_key=os.getenv(f"{prefix}API_KEY", ""),
            api_secret=os.getenv(f"{prefix}API_SECRET", ""),
            api_passphrase=os.getenv(f"{prefix}API_PASSPHRASE", ""),
            use_testnet=testnet,
        )
