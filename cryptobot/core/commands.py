"""Inbound chat command parsing: queue work, cancel it, or answer start/help directly."""

import logging
from dataclasses import dataclass
from typing import Mapping

from cryptobot.core.formatting import help_message, start_message
from cryptobot.core.jobs import JobQueue
from cryptobot.core.symbols import Symbol
from cryptobot.core.types import Command, Exchange

logger = logging.getLogger(__name__)

QUEUED_COMMANDS: dict[str, Command] = {
    "/price": Command.PRICE,
    "/harga": Command.PRICE,
    "/chart": Command.CHART,
    "/chartdaily": Command.CANDLESTICK,
    "/candlestick": Command.CANDLESTICK,
    "/indicator": Command.INDICATOR,
    "/stochrsi": Command.INDICATOR,
}
CANCEL_COMMANDS = frozenset({"/stop", "/cancel"})

_ACKNOWLEDGEMENTS = {
    Command.PRICE: "⏳ Fetching price for {pair}...",
    Command.CHART: "⏳ Generating chart for {pair}...",
    Command.CANDLESTICK: "⏳ Generating candlestick chart for {pair}...",
    Command.INDICATOR: "⏳ Calculating StochRSI for {pair}...",
}


@dataclass(frozen=True, slots=True)
class ParsedCommand:
    name: str
    args: tuple[str, ...]


def parse_command(text: str) -> ParsedCommand | None:
    """Split '/cmd@bot a b' into ('/cmd', ('a', 'b')); None for non-command text."""

    parts = text.strip().split()
    if not parts or not parts[0].startswith("/"):
        return None
    name = parts[0].split("@", 1)[0].lower()
    return ParsedCommand(name=name, args=tuple(parts[1:]))


def resolve_symbol(
    args: tuple[str, ...],
    default_quotes: Mapping[Exchange, str],
    default_base: str = "BTC",
) -> Symbol:
    """Read an optional exchange keyword, then base and quote with per-exchange defaults."""

    exchange = Exchange.BINANCE
    remaining = list(args)
    if remaining:
        try:
            exchange = Exchange(remaining[0].lower())
        except ValueError:
            pass
        else:
            remaining.pop(0)

    base = remaining[0] if remaining else default_base
    quote = remaining[1] if len(remaining) > 1 else default_quotes[exchange]
    return Symbol.of(exchange, base, quote)


class CommandRouter:
    """Turns chat messages into queue operations and reply texts."""

    def __init__(
        self,
        queue: JobQueue,
        default_quotes: Mapping[Exchange, str],
        default_base: str = "BTC",
    ) -> None:
        self.queue = queue
        self.default_quotes = dict(default_quotes)
        self.default_base = default_base

    def handle(self, chat_id: str, text: str, user_name: str = "User") -> list[str]:
        parsed = parse_command(text)
        if parsed is None:
            return []

        if parsed.name == "/start":
            return [start_message(user_name)]
        if parsed.name == "/help":
            return [help_message({exchange.value: quote for exchange, quote in self.default_quotes.items()})]
        if parsed.name in CANCEL_COMMANDS:
            self.queue.cancel(chat_id)
            return ["✅ All pending jobs have been cancelled."]

        command = QUEUED_COMMANDS.get(parsed.name)
        if command is None:
            logger.info("command_unknown", extra={"chat_id": chat_id, "command": parsed.name})
            return ["❌ Unknown command. Use /help to see available commands."]

        try:
            symbol = resolve_symbol(parsed.args, self.default_quotes, self.default_base)
        except ValueError:
            return ["❌ Invalid trading pair. Example: `/price BTC USDT`"]

        self.queue.enqueue(chat_id, command, symbol.pair, symbol.exchange)
        return [_ACKNOWLEDGEMENTS[command].format(pair=symbol.display)]
