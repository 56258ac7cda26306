"""Deterministic indicator math: RSI, SMA, EMA, Stochastic RSI and signal/sentiment classification.

Every function is pure. Inputs are ordered oldest to newest; results are index-aligned to the
trailing end of the input. Too-short input yields an empty result rather than an error.
"""

from typing import Sequence

from cryptobot.core.types import (
    Direction,
    SentimentLevel,
    Signal,
    SignalAction,
    SignalCondition,
    StochRSI,
)

OVERSOLD_LEVEL = 20.0
OVERBOUGHT_LEVEL = 80.0
_MIDLINE = 50.0

# (threshold, name, level, emoji), strictly decreasing thresholds
_SHARED_TIERS: tuple[tuple[int, str, str, str], ...] = (
    (121, "Diamond", "", "💎"),
    (111, "Golden", "2", "🥇"),
    (101, "Golden", "1", "🥇"),
    (91, "Ultra", "2", "🔥"),
    (81, "Ultra", "1", "🔥"),
    (71, "Mega", "2", "⚡"),
    (61, "Mega", "1", "⚡"),
    (51, "Super", "2", "🌟"),
    (41, "Super", "1", "🌟"),
)
_MOON_TIERS: tuple[tuple[int, str, str, str], ...] = (
    (31, "Moon", "2", "🌙"),
    (21, "Moon", "1", "🌙"),
    (11, "Go Moon", "2", "🚀"),
    (1, "Go Moon", "1", "🚀"),
)
_CRASH_TIERS: tuple[tuple[int, str, str, str], ...] = (
    (31, "Crash", "2", "📉"),
    (21, "Crash", "1", "📉"),
    (11, "Go Crash", "2", "🔻"),
    (1, "Go Crash", "1", "🔻"),
)

MOON_LADDER = _SHARED_TIERS + _MOON_TIERS
CRASH_LADDER = _SHARED_TIERS + _CRASH_TIERS


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def rsi(prices: Sequence[float], period: int = 14) -> list[float]:
    """Wilder RSI; returns len(prices) - period values, or [] when len(prices) < period + 1."""

    if period <= 0 or len(prices) < period + 1:
        return []

    gains: list[float] = []
    losses: list[float] = []
    for idx in range(1, len(prices)):
        change = prices[idx] - prices[idx - 1]
        gains.append(max(change, 0.0))
        losses.append(abs(min(change, 0.0)))

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period
    values = [_rsi_value(avg_gain, avg_loss)]

    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = ((avg_gain * (period - 1)) + gain) / period
        avg_loss = ((avg_loss * (period - 1)) + loss) / period
        values.append(_rsi_value(avg_gain, avg_loss))

    return values


def sma(values: Sequence[float], period: int) -> list[float]:
    """Trailing simple moving average; len(values) - period + 1 values."""

    if period <= 0 or len(values) < period:
        return []

    return [sum(values[end - period : end]) / period for end in range(period, len(values) + 1)]


def ema(values: Sequence[float], period: int) -> list[float]:
    """Exponential moving average seeded with the SMA of the first window."""

    if period <= 0 or len(values) < period:
        return []

    multiplier = 2.0 / (period + 1.0)
    current = sum(values[:period]) / period
    result = [current]
    for value in values[period:]:
        current = ((value - current) * multiplier) + current
        result.append(current)
    return result


def stoch_rsi(
    prices: Sequence[float],
    rsi_period: int = 14,
    stoch_period: int = 14,
    smooth_k: int = 3,
    smooth_d: int = 3,
) -> StochRSI:
    """Stochastic oscillator over RSI values, smoothed into K and D lines."""

    rsi_values = rsi(prices, rsi_period)
    if stoch_period <= 0 or len(rsi_values) < stoch_period:
        return StochRSI(k=(), d=())

    stoch: list[float] = []
    for end in range(stoch_period, len(rsi_values) + 1):
        window = rsi_values[end - stoch_period : end]
        highest = max(window)
        lowest = min(window)
        if highest == lowest:
            stoch.append(0.0)
        else:
            stoch.append(((window[-1] - lowest) / (highest - lowest)) * 100.0)

    k_line = sma(stoch, smooth_k)
    d_line = sma(k_line, smooth_d)
    return StochRSI(k=tuple(k_line), d=tuple(d_line))


def interpret_signal(k: float, d: float) -> Signal:
    """Classify the latest K/D pair; the first matching rule wins."""

    if k < OVERSOLD_LEVEL and d < OVERSOLD_LEVEL:
        return Signal(
            condition=SignalCondition.OVERSOLD,
            action=SignalAction.BUY,
            k=k,
            d=d,
            emoji="🟢",
            description="Market is oversold, potential buying opportunity",
        )
    if k > OVERBOUGHT_LEVEL and d > OVERBOUGHT_LEVEL:
        return Signal(
            condition=SignalCondition.OVERBOUGHT,
            action=SignalAction.SELL,
            k=k,
            d=d,
            emoji="🔴",
            description="Market is overbought, potential selling opportunity",
        )
    if k > d and k < _MIDLINE:
        return Signal(
            condition=SignalCondition.BULLISH_CROSSOVER,
            action=SignalAction.BUY,
            k=k,
            d=d,
            emoji="🚀",
            description="K line crossed above D line, bullish signal",
        )
    if k < d and k > _MIDLINE:
        return Signal(
            condition=SignalCondition.BEARISH_CROSSOVER,
            action=SignalAction.SELL,
            k=k,
            d=d,
            emoji="📉",
            description="K line crossed below D line, bearish signal",
        )
    return Signal(
        condition=SignalCondition.NEUTRAL,
        action=SignalAction.HOLD,
        k=k,
        d=d,
        emoji="⚪",
        description="No clear signal, hold position",
    )


def latest_signal(result: StochRSI) -> Signal | None:
    """Interpret the final K and D values, or None when either line is empty."""

    if result.is_empty():
        return None
    return interpret_signal(result.k[-1], result.d[-1])


def sentiment_level(count: int, is_moon: bool = True) -> SentimentLevel:
    """Map a count of strongly moving coins to the highest tier it reaches."""

    direction = Direction.MOON if is_moon else Direction.CRASH
    ladder = MOON_LADDER if is_moon else CRASH_LADDER
    for threshold, name, level, emoji in ladder:
        if count >= threshold:
            return SentimentLevel(count=count, name=name, level=level, emoji=emoji, direction=direction)

    return SentimentLevel(count=count, name="Neutral", level="", emoji="⚪", direction=Direction.NEUTRAL)


def price_change_percent(old_price: float, new_price: float) -> float:
    if old_price == 0:
        return 0.0
    return ((new_price - old_price) / old_price) * 100.0
