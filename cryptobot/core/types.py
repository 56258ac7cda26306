"""Shared lightweight types to keep module interfaces explicit and typed."""

from dataclasses import dataclass
from enum import Enum


class Exchange(str, Enum):
    BINANCE = "binance"
    INDODAX = "indodax"


class Command(str, Enum):
    PRICE = "price"
    CHART = "chart"
    CANDLESTICK = "candlestick"
    INDICATOR = "indicator"


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SignalCondition(str, Enum):
    OVERSOLD = "Oversold"
    OVERBOUGHT = "Overbought"
    BULLISH_CROSSOVER = "Bullish Crossover"
    BEARISH_CROSSOVER = "Bearish Crossover"
    NEUTRAL = "Neutral"


class SignalAction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class Direction(str, Enum):
    MOON = "Moon"
    CRASH = "Crash"
    NEUTRAL = "Neutral"


@dataclass(frozen=True, slots=True)
class PriceSample:
    """One OHLCV candle; timestamp is the candle open time in epoch milliseconds."""

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True, slots=True)
class Ticker:
    """Last price and 24h statistics for one pair."""

    symbol: str
    last_price: float
    high: float
    low: float
    volume: float
    change_percent: float | None = None


@dataclass(frozen=True, slots=True)
class StochRSI:
    """Smoothed K line and double-smoothed D line; lengths differ."""

    k: tuple[float, ...]
    d: tuple[float, ...]

    def is_empty(self) -> bool:
        return not self.k or not self.d


@dataclass(frozen=True, slots=True)
class Signal:
    """StochRSI interpretation; k and d keep full precision."""

    condition: SignalCondition
    action: SignalAction
    k: float
    d: float
    emoji: str
    description: str

    @property
    def k_display(self) -> float:
        return round(self.k, 2)

    @property
    def d_display(self) -> float:
        return round(self.d, 2)


@dataclass(frozen=True, slots=True)
class SentimentLevel:
    """Market sentiment tier for a count of strongly moving coins."""

    count: int
    name: str
    level: str
    emoji: str
    direction: Direction

    @property
    def full_name(self) -> str:
        if self.direction is Direction.NEUTRAL:
            return f"{self.emoji} Neutral Market"
        return f"{self.emoji} {self.name} {self.direction.value} {self.level}".rstrip()


@dataclass(frozen=True, slots=True)
class Job:
    """One queued chat command."""

    id: int
    chat_id: str
    command: Command
    pair: str
    exchange: Exchange
    status: JobStatus
    created_at_ms: int
    error: str | None = None


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Outcome counters of a single dispatch pass."""

    claimed: int = 0
    done: int = 0
    failed: int = 0
