"""Telegram Markdown message texts."""

import re
from datetime import datetime
from typing import Sequence

from telegram.helpers import escape_markdown

from cryptobot.core.symbols import Symbol
from cryptobot.core.time_utils import utc_now
from cryptobot.core.types import SentimentLevel, Signal, Ticker

_MARKDOWN_UNSAFE = re.compile(r"[*_`\[\]]")
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


def strip_markdown(value: str) -> str:
    return _MARKDOWN_UNSAFE.sub("", value)


def failure_message(error: str) -> str:
    """Job failure notice; the error text is escaped so pairs like BTC_IDR survive Markdown parsing."""

    return f"❌ Failed to process your request: {escape_markdown(error, version=1)}"


def format_price(price: float) -> str:
    if price >= 1000:
        return f"{price:,.2f}"
    if price >= 1:
        return f"{price:,.4f}"
    return f"{price:,.8f}"


def format_percentage(change: float) -> str:
    marker = "🟢" if change >= 0 else "🔴"
    sign = "+" if change >= 0 else ""
    return f"{marker} {sign}{change:,.2f}%"


def _stamp(now: datetime | None) -> str:
    return (now or utc_now()).strftime(_TIME_FORMAT)


def price_message(symbol: Symbol, ticker: Ticker, now: datetime | None = None) -> str:
    lines = [
        f"💰 *{symbol.pair} Price*",
        "",
        f"💵 Price: `{format_price(ticker.last_price)} {symbol.quote}`",
    ]
    if ticker.change_percent is not None:
        lines.append(f"📊 24h Change: {format_percentage(ticker.change_percent)}")
    lines.extend(
        [
            f"📈 24h High: `{format_price(ticker.high)} {symbol.quote}`",
            f"📉 24h Low: `{format_price(ticker.low)} {symbol.quote}`",
            f"📦 24h Volume: `{ticker.volume:,.2f}`",
            "",
            f"⏰ Updated: {_stamp(now)}",
        ]
    )
    return "\n".join(lines)


def indicator_message(symbol: Symbol, signal: Signal, now: datetime | None = None) -> str:
    return "\n".join(
        [
            f"📊 *{symbol.pair} Stochastic RSI*",
            "",
            f"{signal.emoji} *{signal.condition.value}*",
            f"📌 Signal: *{signal.action.value}*",
            "",
            f"📈 K Line: `{signal.k_display}`",
            f"📉 D Line: `{signal.d_display}`",
            "",
            f"💡 {signal.description}",
            "",
            f"⏰ Calculated: {_stamp(now)}",
        ]
    )


def sentiment_alert_message(
    moon: SentimentLevel,
    crash: SentimentLevel,
    threshold: float,
    min_count: int,
) -> str:
    lines = ["🔔 *Market Sentiment Alert*", ""]
    if moon.count >= min_count:
        lines.extend(
            [
                "🚀 *Bullish Movement*",
                moon.full_name,
                f"Coins up >{threshold:g}%: {moon.count}",
                "",
            ]
        )
    if crash.count >= min_count:
        lines.extend(
            [
                "📉 *Bearish Movement*",
                crash.full_name,
                f"Coins down <-{threshold:g}%: {crash.count}",
            ]
        )
    return "\n".join(lines).rstrip()


def stoch_alert_message(signals: Sequence[tuple[str, Signal]], now: datetime | None = None) -> str:
    """Group (pair, signal) entries by condition, keeping first-seen order."""

    grouped: dict[str, list[tuple[str, Signal]]] = {}
    for pair, signal in signals:
        grouped.setdefault(signal.condition.value, []).append((pair, signal))

    lines = ["🔔 *StochRSI Alert*", f"⏰ {_stamp(now)}", ""]
    for condition, items in grouped.items():
        lines.append(f"{items[0][1].emoji} *{condition}*")
        for pair, signal in items:
            lines.append(
                f"• `{pair}`: K={signal.k_display}, D={signal.d_display} - {signal.action.value}"
            )
        lines.append("")
    return "\n".join(lines).rstrip()


def start_message(user_name: str) -> str:
    return "\n".join(
        [
            f"👋 Hello, {strip_markdown(user_name) or 'User'}!",
            "",
            "🤖 *Crypto Signal Bot*",
            "Monitor cryptocurrency prices from Binance and Indodax",
            "",
            "📊 *Available Commands:*",
            "/price BTC USDT - Get current price",
            "/chart ETH USDT - Line chart (1 hour)",
            "/chartdaily BTC USDT - Candlestick chart (30 days)",
            "/indicator BTC USDT - Stochastic RSI analysis",
            "/stop - Cancel all pending jobs",
            "/help - Show this help message",
            "",
            "💡 *Example:* `/price BTC USDT` or `/price indodax BTC`",
        ]
    )


def help_message(default_quotes: dict[str, str]) -> str:
    quotes = ", ".join(f"{name}: {quote}" for name, quote in default_quotes.items())
    return "\n".join(
        [
            "📚 *Command Guide*",
            "",
            "🔹 */price [EXCHANGE] [BASE] [QUOTE]*",
            "Real-time price and 24h statistics",
            "Example: `/price BTC USDT`",
            "",
            "🔹 */chart [EXCHANGE] [BASE] [QUOTE]*",
            "5-minute line chart of the last hour",
            "Example: `/chart ETH USDT`",
            "",
            "🔹 */chartdaily [EXCHANGE] [BASE] [QUOTE]*",
            "Daily candlestick chart of the last 30 days",
            "Example: `/chartdaily BNB USDT`",
            "",
            "🔹 */indicator [EXCHANGE] [BASE] [QUOTE]*",
            "Stochastic RSI with buy/sell signal",
            "Example: `/indicator SOL USDT`",
            "",
            "🔹 */stop*",
            "Cancel all your pending jobs",
            "",
            "💡 *Tips:*",
            "• Exchange is `binance` (default) or `indodax`",
            f"• Default quote currency: {quotes}",
            "• Commands are case-insensitive",
        ]
    )
