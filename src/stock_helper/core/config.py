import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from stock_helper.core.errors import ConfigurationError

# Claude desktop passes env vars directly; .env is for local runs
load_dotenv()


def _parse_int(name: str, raw: str, default: Optional[int]) -> Optional[int]:
    raw = (raw or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    return _parse_int(name, os.getenv(name, ""), default)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


class Settings(BaseModel):
    # kept as text; only the Telegram adapter parses them
    telegram_api_id: str = ""
    telegram_api_hash: str = ""
    telegram_session: str = ""
    telegram_search_batch: str = ""

    trading212_api_key: str = ""
    trading212_api_secret: str = ""
    trading212_base_url: str = "https://live.trading212.com/api/v0"

    http_timeout: float = 30.0
    log_level: str = "ERROR"
    metrics_port: Optional[int] = None

    def telegram_api_id_value(self) -> int:
        return _parse_int("TELEGRAM_API_ID", self.telegram_api_id, 0)

    def telegram_search_batch_value(self) -> int:
        return _parse_int("TELEGRAM_SEARCH_BATCH", self.telegram_search_batch, 100)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            telegram_api_id=os.getenv("TELEGRAM_API_ID", ""),
            telegram_api_hash=os.getenv("TELEGRAM_API_HASH", ""),
            telegram_session=os.getenv("TELEGRAM_SESSION", ""),
            telegram_search_batch=os.getenv("TELEGRAM_SEARCH_BATCH", ""),
            trading212_api_key=os.getenv("TRADING212_API_KEY", ""),
            trading212_api_secret=os.getenv("TRADING212_API_SECRET", ""),
            trading212_base_url=os.getenv("TRADING212_BASE_URL", "https://live.trading212.com/api/v0"),
            http_timeout=_float_env("STOCK_HELPER_HTTP_TIMEOUT", 30.0),
            log_level=os.getenv("STOCK_HELPER_LOG_LEVEL", "ERROR").upper(),
            metrics_port=_int_env("STOCK_HELPER_METRICS_PORT", None),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
