"""Chat command parsing and routing into the job queue."""

import pytest

from cryptobot.core.commands import CommandRouter, parse_command, resolve_symbol
from cryptobot.core.db import Database
from cryptobot.core.jobs import JobQueue
from cryptobot.core.types import Command, Exchange, JobStatus

QUOTES = {Exchange.BINANCE: "USDT", Exchange.INDODAX: "IDR"}


def test_parse_command_strips_bot_suffix_and_case() -> None:
    parsed = parse_command("  /PRICE@CryptoSignalBot eth  usdt ")

    assert parsed is not None
    assert parsed.name == "/price"
    assert parsed.args == ("eth", "usdt")
    assert parse_command("hello there") is None
    assert parse_command("") is None


@pytest.mark.parametrize(
    ("args", "exchange", "pair", "display"),
    [
        ((), Exchange.BINANCE, "BTCUSDT", "BTC/USDT"),
        (("eth",), Exchange.BINANCE, "ETHUSDT", "ETH/USDT"),
        (("sol", "fdusd"), Exchange.BINANCE, "SOLFDUSD", "SOL/FDUSD"),
        (("indodax",), Exchange.INDODAX, "BTC_IDR", "BTC/IDR"),
        (("INDODAX", "doge"), Exchange.INDODAX, "DOGE_IDR", "DOGE/IDR"),
        (("binance", "bnb", "btc"), Exchange.BINANCE, "BNBBTC", "BNB/BTC"),
    ],
)
def test_resolve_symbol(args: tuple[str, ...], exchange: Exchange, pair: str, display: str) -> None:
    symbol = resolve_symbol(args, QUOTES)

    assert symbol.exchange is exchange
    assert symbol.pair == pair
    assert symbol.display == display


def test_resolve_symbol_rejects_empty_asset() -> None:
    with pytest.raises(ValueError):
        resolve_symbol(("$$$",), QUOTES)


def test_router_queues_command_and_acknowledges(database: Database) -> None:
    queue = JobQueue(database)
    router = CommandRouter(queue, QUOTES)

    replies = router.handle("99", "/chartdaily indodax eth")

    assert replies == ["⏳ Generating candlestick chart for ETH/IDR..."]
    [job] = queue.dequeue(5)
    assert job.command is Command.CANDLESTICK
    assert job.exchange is Exchange.INDODAX
    assert job.pair == "ETH_IDR"
    assert job.chat_id == "99"


def test_router_aliases_map_to_same_command(database: Database) -> None:
    queue = JobQueue(database)
    router = CommandRouter(queue, QUOTES)

    router.handle("1", "/harga")
    router.handle("1", "/stochrsi btc")

    commands = [job.command for job in queue.dequeue(5)]
    assert commands == [Command.PRICE, Command.INDICATOR]


def test_router_stop_cancels_pending_jobs(database: Database) -> None:
    queue = JobQueue(database)
    router = CommandRouter(queue, QUOTES)
    router.handle("5", "/price")
    router.handle("5", "/chart")

    replies = router.handle("5", "/stop")

    assert replies == ["✅ All pending jobs have been cancelled."]
    assert queue.count_by_status(JobStatus.CANCELLED) == 2


def test_router_direct_replies_do_not_queue(database: Database) -> None:
    queue = JobQueue(database)
    router = CommandRouter(queue, QUOTES)

    [start] = router.handle("1", "/start", "Ana_*")
    [help_text] = router.handle("1", "/help")
    unknown = router.handle("1", "/moon")
    plain = router.handle("1", "just chatting")

    assert start.startswith("👋 Hello, Ana!")
    assert "binance: USDT, indodax: IDR" in help_text
    assert unknown == ["❌ Unknown command. Use /help to see available commands."]
    assert plain == []
    assert queue.count_by_status(JobStatus.PENDING) == 0


def test_router_rejects_invalid_pair(database: Database) -> None:
    router = CommandRouter(JobQueue(database), QUOTES)

    assert router.handle("1", "/price !!! usdt") == ["❌ Invalid trading pair. Example: `/price BTC USDT`"]
