"""Batch dispatch: failure isolation, pacing and the per-command handlers."""

import asyncio

import pytest

from conftest import RecordingSink, StaticSource, zigzag
from cryptobot.core.charts import ChartURLBuilder
from cryptobot.core.db import Database
from cryptobot.core.errors import InsufficientData, UnsupportedInterval
from cryptobot.core.jobs import JobQueue
from cryptobot.core.store import PriceHistoryStore
from cryptobot.core.types import Command, Exchange, Job, JobStatus
from cryptobot.services.worker.dispatcher import JobDispatcher
from cryptobot.services.worker.handlers import CommandHandlers, IndicatorParams, job_symbol

QUOTES = {Exchange.BINANCE: "USDT", Exchange.INDODAX: "IDR"}


class _Sleeper:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def test_failing_job_does_not_affect_the_rest_of_the_batch(database: Database, sink: RecordingSink) -> None:
    queue = JobQueue(database)
    ok_first = queue.enqueue("1", Command.PRICE, "BTCUSDT")
    broken = queue.enqueue("2", Command.CHART, "BTCUSDT")
    ok_last = queue.enqueue("3", Command.PRICE, "ETHUSDT")
    handled: list[int] = []

    async def price(job: Job) -> None:
        handled.append(job.id)

    async def chart(job: Job) -> None:
        raise RuntimeError("chart service down")

    sleeper = _Sleeper()
    dispatcher = JobDispatcher(
        queue, {Command.PRICE: price, Command.CHART: chart}, sink, job_delay_s=0.5, sleep=sleeper
    )

    result = asyncio.run(dispatcher.run_batch())

    assert (result.claimed, result.done, result.failed) == (3, 2, 1)
    assert handled == [ok_first, ok_last]
    assert queue.get(ok_first).status is JobStatus.DONE
    assert queue.get(ok_last).status is JobStatus.DONE
    failed = queue.get(broken)
    assert failed.status is JobStatus.FAILED
    assert failed.error == "chart service down"
    assert sink.texts == [("2", "❌ Failed to process your request: chart service down")]
    assert sleeper.delays == [0.5, 0.5]


def test_empty_queue_is_a_no_op(database: Database, sink: RecordingSink) -> None:
    dispatcher = JobDispatcher(JobQueue(database), {}, sink, sleep=_Sleeper())

    result = asyncio.run(dispatcher.run_batch())

    assert result.claimed == 0


def test_job_without_handler_fails(database: Database, sink: RecordingSink) -> None:
    queue = JobQueue(database)
    job_id = queue.enqueue("1", Command.INDICATOR, "BTCUSDT")
    dispatcher = JobDispatcher(queue, {}, sink, sleep=_Sleeper())

    asyncio.run(dispatcher.run_batch())

    job = queue.get(job_id)
    assert job.status is JobStatus.FAILED
    assert job.error == "Unknown command: indicator"


def test_undeliverable_failure_notice_still_marks_failed(database: Database) -> None:
    queue = JobQueue(database)
    job_id = queue.enqueue("1", Command.PRICE, "BTCUSDT")

    async def price(job: Job) -> None:
        raise RuntimeError("boom")

    dispatcher = JobDispatcher(queue, {Command.PRICE: price}, RecordingSink(fail=True), sleep=_Sleeper())

    result = asyncio.run(dispatcher.run_batch())

    assert result.failed == 1
    assert queue.get(job_id).status is JobStatus.FAILED


def test_batch_size_limits_claim(database: Database, sink: RecordingSink) -> None:
    queue = JobQueue(database)
    for _ in range(4):
        queue.enqueue("1", Command.PRICE, "BTCUSDT")

    async def price(job: Job) -> None:
        return None

    dispatcher = JobDispatcher(queue, {Command.PRICE: price}, sink, batch_size=3, sleep=_Sleeper())

    assert asyncio.run(dispatcher.run_batch()).claimed == 3
    assert queue.count_by_status(JobStatus.PENDING) == 1


def _job(command: Command, pair: str, exchange: Exchange = Exchange.BINANCE) -> Job:
    return Job(
        id=1,
        chat_id="77",
        command=command,
        pair=pair,
        exchange=exchange,
        status=JobStatus.PROCESSING,
        created_at_ms=0,
    )


def _handlers(source: StaticSource, sink: RecordingSink, history: PriceHistoryStore | None = None) -> CommandHandlers:
    return CommandHandlers(
        sources={Exchange.BINANCE: source, Exchange.INDODAX: source},
        sink=sink,
        charts=ChartURLBuilder("https://quickchart.io/chart"),
        price_history=history,
        default_quotes=QUOTES,
    )


def test_job_symbol_recovers_base_and_quote() -> None:
    assert job_symbol(_job(Command.PRICE, "ETHUSDT"), QUOTES).display == "ETH/USDT"
    assert job_symbol(_job(Command.PRICE, "SOLFDUSD"), QUOTES).display == "SOL/FDUSD"
    assert job_symbol(_job(Command.PRICE, "BTC_IDR", Exchange.INDODAX), QUOTES).display == "BTC/IDR"


def test_price_handler_replies_and_records_snapshot(database: Database, sink: RecordingSink) -> None:
    history = PriceHistoryStore(database)
    source = StaticSource({"BTCUSDT": [64000.0, 65000.0]})

    asyncio.run(_handlers(source, sink, history).price(_job(Command.PRICE, "BTCUSDT")))

    [(chat_id, text)] = sink.texts
    assert chat_id == "77"
    assert "65,000.00 USDT" in text
    assert history.latest(Exchange.BINANCE, "BTCUSDT")[0][1] == 65000.0


def test_chart_handlers_send_images(sink: RecordingSink) -> None:
    source = StaticSource({"ETHUSDT": zigzag(40, 3000.0)})
    handlers = _handlers(source, sink)

    asyncio.run(handlers.chart(_job(Command.CHART, "ETHUSDT")))
    asyncio.run(handlers.candlestick(_job(Command.CANDLESTICK, "ETHUSDT")))

    assert [call[1:] for call in source.calls] == [("5m", 12), ("1d", 30)]
    captions = [caption for _, _, caption in sink.images]
    assert captions[0].startswith("📈 *ETHUSDT Line Chart*")
    assert "Last 30 days" in captions[1]


def test_indicator_handler_sends_signal_then_chart(sink: RecordingSink) -> None:
    source = StaticSource({"BTCUSDT": zigzag(120)})

    asyncio.run(_handlers(source, sink).indicator(_job(Command.INDICATOR, "BTCUSDT")))

    assert source.calls == [("BTCUSDT", "4h", 100)]
    assert "*BTCUSDT Stochastic RSI*" in sink.texts[0][1]
    assert sink.images[0][2] == "StochRSI Chart for BTCUSDT"


def test_indicator_handler_rejects_short_history(sink: RecordingSink) -> None:
    source = StaticSource({"BTC_IDR": zigzag(20)})

    with pytest.raises(InsufficientData) as excinfo:
        asyncio.run(_handlers(source, sink).indicator(_job(Command.INDICATOR, "BTC_IDR", Exchange.INDODAX)))

    assert excinfo.value.required == IndicatorParams().min_closes == 32
    assert excinfo.value.available == 20
    assert sink.texts == []


def test_indodax_chart_job_fails_with_unsupported_interval(database: Database, sink: RecordingSink) -> None:
    class _DailyOnly(StaticSource):
        async def get_candles(self, symbol: str, interval: str, limit: int):
            if interval != "1d":
                raise UnsupportedInterval("indodax", f"Indodax only provides daily candles, not {interval}")
            return await super().get_candles(symbol, interval, limit)

    queue = JobQueue(database)
    job_id = queue.enqueue("77", Command.CHART, "BTC_IDR", Exchange.INDODAX)
    handlers = _handlers(_DailyOnly({"BTC_IDR": zigzag(40)}), sink)
    dispatcher = JobDispatcher(queue, handlers.as_mapping(), sink, sleep=_Sleeper())

    asyncio.run(dispatcher.run_batch())

    assert queue.get(job_id).error == "Indodax only provides daily candles, not 5m"
    assert sink.texts[-1][1].startswith("❌ Failed to process your request")


def test_failure_notice_escapes_markdown_in_indodax_pairs(database: Database, sink: RecordingSink) -> None:
    queue = JobQueue(database)
    job_id = queue.enqueue("77", Command.INDICATOR, "BTC_IDR", Exchange.INDODAX)
    handlers = _handlers(StaticSource({"BTC_IDR": zigzag(20)}), sink)
    dispatcher = JobDispatcher(queue, handlers.as_mapping(), sink, sleep=_Sleeper())

    asyncio.run(dispatcher.run_batch())

    assert queue.get(job_id).error == "Not enough data for StochRSI on BTC_IDR: 20 of 32 candles"
    [(chat_id, text)] = sink.texts
    assert chat_id == "77"
    assert text == "❌ Failed to process your request: Not enough data for StochRSI on BTC\\_IDR: 20 of 32 candles"
