"""API smoke tests: health metadata, webhook intake and cron-triggered batches."""

import asyncio
from pathlib import Path

import httpx
from fastapi.testclient import TestClient

from conftest import RecordingSink
from cryptobot.core.config import Settings
from cryptobot.core.types import JobStatus
from cryptobot.services.api.main import app, create_app

CRON_KEY = "cron-secret"


def _ticker_payload(symbol: str, change: str) -> dict[str, str]:
    return {
        "symbol": symbol,
        "lastPrice": "65000.00",
        "highPrice": "66000.00",
        "lowPrice": "64000.00",
        "volume": "1500.5",
        "priceChangePercent": change,
    }


def _binance(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/api/v3/ticker/24hr":
        symbol = request.url.params.get("symbol")
        if symbol:
            return httpx.Response(200, json=_ticker_payload(symbol, "1.25"))
        tickers = [_ticker_payload(f"C{idx}USDT", "9.0") for idx in range(11)]
        return httpx.Response(200, json=tickers + [_ticker_payload("BTCUSDT", "-6.0")])
    return httpx.Response(404)


def _settings(tmp_path: Path, **overrides: object) -> Settings:
    values: dict[str, object] = {
        "DATABASE_PATH": str(tmp_path / "api.db"),
        "CRON_KEY": CRON_KEY,
        "NOTIFY_CHAT_ID": "notify",
        "WORKER_JOB_DELAY_S": 0.0,
        "HTTP_BACKOFF_S": 0.0,
    }
    values.update(overrides)
    return Settings(**values)


def _update(text: str, chat_id: int = 555) -> dict[str, object]:
    return {
        "update_id": 1,
        "message": {
            "message_id": 10,
            "chat": {"id": chat_id, "type": "private"},
            "from": {"id": chat_id, "first_name": "Dewi"},
            "text": text,
        },
    }


def test_health_endpoint() -> None:
    """Health endpoint should report an OK status."""

    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_version_endpoint(tmp_path: Path) -> None:
    client = TestClient(create_app(_settings(tmp_path, VERSION="9.9.9"), sink=RecordingSink()))

    assert client.get("/version").json()["version"] == "9.9.9"


def test_webhook_queues_and_cron_dispatch_delivers(tmp_path: Path) -> None:
    sink = RecordingSink()
    api = create_app(_settings(tmp_path), sink=sink, transport=httpx.MockTransport(_binance))

    with TestClient(api) as client:
        response = client.post("/webhook", json=_update("/price btc usdt"))
        assert response.json() == {"ok": True}
        assert sink.texts == [("555", "⏳ Fetching price for BTC/USDT...")]

        dispatched = client.post("/cron/dispatch", params={"key": CRON_KEY})

    assert dispatched.status_code == 200
    assert dispatched.json() == {"claimed": 1, "done": 1, "failed": 0}
    chat_id, text = sink.texts[-1]
    assert chat_id == "555"
    assert "65,000.00 USDT" in text


def test_webhook_routes_commands_off_the_event_loop(tmp_path: Path) -> None:
    sink = RecordingSink()
    api = create_app(_settings(tmp_path), sink=sink)
    loops: list[bool] = []

    with TestClient(api) as client:
        router = api.state.container.router
        handle = router.handle

        def recording_handle(chat_id: str, text: str, user_name: str = "User") -> list[str]:
            try:
                asyncio.get_running_loop()
                loops.append(True)
            except RuntimeError:
                loops.append(False)
            return handle(chat_id, text, user_name)

        router.handle = recording_handle
        client.post("/webhook", json=_update("/chart eth"))

    assert loops == [False]
    assert api.state.container.queue.count_by_status(JobStatus.PENDING) == 1


def test_webhook_ignores_updates_without_text(tmp_path: Path) -> None:
    sink = RecordingSink()

    with TestClient(create_app(_settings(tmp_path), sink=sink)) as client:
        response = client.post("/webhook", json={"update_id": 2, "callback_query": {}})

    assert response.status_code == 200
    assert sink.texts == []


def test_webhook_secret_is_enforced(tmp_path: Path) -> None:
    sink = RecordingSink()

    with TestClient(create_app(_settings(tmp_path, WEBHOOK_SECRET="s3"), sink=sink)) as client:
        rejected = client.post("/webhook", json=_update("/help"))
        accepted = client.post(
            "/webhook", json=_update("/help"), headers={"X-Telegram-Bot-Api-Secret-Token": "s3"}
        )

    assert rejected.status_code == 403
    assert accepted.status_code == 200
    assert len(sink.texts) == 1


def test_cron_routes_require_key(tmp_path: Path) -> None:
    with TestClient(create_app(_settings(tmp_path), sink=RecordingSink())) as client:
        missing = client.post("/cron/dispatch")
        wrong = client.post("/cron/sentiment", params={"key": "nope"})

    assert missing.status_code == 403
    assert wrong.status_code == 403


def test_cron_disabled_without_configured_key(tmp_path: Path) -> None:
    with TestClient(create_app(_settings(tmp_path, CRON_KEY=""), sink=RecordingSink())) as client:
        response = client.post("/cron/dispatch", params={"key": ""})

    assert response.status_code == 403


def test_cron_sentiment_alerts_notify_chat(tmp_path: Path) -> None:
    sink = RecordingSink()
    api = create_app(_settings(tmp_path), sink=sink, transport=httpx.MockTransport(_binance))

    with TestClient(api) as client:
        response = client.post("/cron/sentiment", params={"key": CRON_KEY})

    body = response.json()
    assert body["moon_count"] == 11
    assert body["crash_count"] == 1
    assert body["alerted"] is True
    assert sink.texts[0][0] == "notify"


def test_unconfigured_bot_still_serves_health(tmp_path: Path) -> None:
    with TestClient(create_app(_settings(tmp_path, BOT_TOKEN=""))) as client:
        health = client.get("/health")
        webhook = client.post("/webhook", json=_update("/help"))

    assert health.status_code == 200
    assert webhook.status_code == 503
