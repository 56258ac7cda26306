"""Environment-driven settings shared by the bot services."""

from functools import lru_cache
from typing import Callable

from pydantic_settings import BaseSettings, SettingsConfigDict

from cryptobot.core.types import Exchange


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a local .env file."""

    APP_NAME: str = "Crypto Signal Bot"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    VERSION: str = "0.1.0"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    BOT_TOKEN: str = ""
    NOTIFY_CHAT_ID: str = ""
    WEBHOOK_SECRET: str = ""
    CRON_KEY: str = ""

    DATABASE_PATH: str = "data/cryptobot.db"

    BINANCE_REST_URL: str = "https://api.binance.com"
    BINANCE_WS_URL: str = "wss://stream.binance.com:9443/ws"
    INDODAX_REST_URL: str = "https://indodax.com/api"
    QUICKCHART_URL: str = "https://quickchart.io/chart"

    HTTP_TIMEOUT_S: float = 30.0
    HTTP_MAX_ATTEMPTS: int = 3
    HTTP_BACKOFF_S: float = 1.0
    HTTP_CACHE_TTL_S: float = 60.0

    WORKER_BATCH_SIZE: int = 10
    WORKER_JOB_DELAY_S: float = 0.5
    WORKER_POLL_INTERVAL_S: float = 60.0
    WORKER_RUN_ONCE: bool = False

    BINANCE_DEFAULT_QUOTE: str = "USDT"
    INDODAX_DEFAULT_QUOTE: str = "IDR"
    DEFAULT_BASE: str = "BTC"

    RSI_PERIOD: int = 14
    STOCH_PERIOD: int = 14
    STOCH_SMOOTH_K: int = 3
    STOCH_SMOOTH_D: int = 3

    SENTIMENT_QUOTE: str = "USDT"
    SENTIMENT_CHANGE_THRESHOLD: float = 5.0
    SENTIMENT_ALERT_MIN_COUNT: int = 10

    ALERT_EXCHANGE: str = "indodax"
    ALERT_BASES: str = "BTC,ETH,XRP,TRX,DOGE,LTC,XLM,ADA,BNB,USDT"
    ALERT_MIN_CLOSES: int = 32
    ALERT_LOOKBACK: int = 100
    ALERT_PAIR_DELAY_S: float = 0.5

    SUPPORTED_BASES: str = "BTC,ETH,BNB,SOL,XRP"
    BACKFILL_EXCHANGES: str = "binance,indodax"
    BACKFILL_DAYS: int = 365
    BACKFILL_SLEEP_S: float = 1.0

    INGEST_INTERVALS: str = "1d"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def default_quotes(self) -> dict[Exchange, str]:
        """Return the default quote currency of each exchange."""

        return {
            Exchange.BINANCE: self.BINANCE_DEFAULT_QUOTE.strip().upper(),
            Exchange.INDODAX: self.INDODAX_DEFAULT_QUOTE.strip().upper(),
        }

    def supported_bases(self) -> tuple[str, ...]:
        """Return normalized base assets for backfill and ingest."""

        return self._split_csv(self.SUPPORTED_BASES, transform=str.upper)

    def alert_bases(self) -> tuple[str, ...]:
        """Return normalized base assets checked by the StochRSI alert."""

        return self._split_csv(self.ALERT_BASES, transform=str.upper)

    def alert_exchange(self) -> Exchange:
        return Exchange(self.ALERT_EXCHANGE.strip().lower())

    def backfill_exchanges(self) -> tuple[Exchange, ...]:
        """Return exchanges whose daily history is backfilled."""

        return tuple(Exchange(name) for name in self._split_csv(self.BACKFILL_EXCHANGES, transform=str.lower))

    def ingest_intervals(self) -> tuple[str, ...]:
        """Return normalized kline intervals streamed by the ingestor."""

        return self._split_csv(self.INGEST_INTERVALS, transform=str.lower)

    @staticmethod
    def _split_csv(value: str, transform: Callable[[str], str]) -> tuple[str, ...]:
        """Split comma-separated values while removing empty entries and duplicates."""

        items: list[str] = []
        seen: set[str] = set()

        for raw in value.split(","):
            item = transform(raw.strip())
            if not item or item in seen:
                continue
            seen.add(item)
            items.append(item)

        return tuple(items)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings to avoid repeated environment parsing."""

    return Settings()
