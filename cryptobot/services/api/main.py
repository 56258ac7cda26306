"""FastAPI service: Telegram webhook intake, cron-triggered batches and deployment checks."""

import hmac
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Mapping

import httpx
from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool

from cryptobot.core.config import Settings, get_settings
from cryptobot.core.errors import BotError, ConfigurationError
from cryptobot.core.interfaces import MarketDataSource, NotificationSink
from cryptobot.core.logging import configure_logging
from cryptobot.core.types import Exchange
from cryptobot.services.container import Container, build_container
from cryptobot.services.sentiment.main import run_sentiment_scan

logger = logging.getLogger(__name__)


def _container(request: Request) -> Container:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="bot is not configured")
    return container


def _check_cron_key(settings: Settings, key: str | None) -> None:
    if not settings.CRON_KEY or not key or not hmac.compare_digest(key.encode(), settings.CRON_KEY.encode()):
        raise HTTPException(status_code=403, detail="invalid cron key")


def _message_fields(update: Any) -> tuple[str, str, str] | None:
    """Extract (chat_id, text, first_name) from a Telegram update, None when it carries no text."""

    if not isinstance(update, dict):
        return None
    message = update.get("message") or update.get("edited_message")
    if not isinstance(message, dict):
        return None

    chat = message.get("chat")
    text = message.get("text")
    if not isinstance(chat, dict) or "id" not in chat or not isinstance(text, str):
        return None

    sender = message.get("from")
    first_name = sender.get("first_name") if isinstance(sender, dict) else None
    return str(chat["id"]), text, str(first_name or "User")


def create_app(
    settings: Settings | None = None,
    *,
    sink: NotificationSink | None = None,
    sources: Mapping[Exchange, MarketDataSource] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL, service="api")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Build the shared handles once and release them on shutdown."""

        try:
            app.state.container = build_container(settings, sink=sink, sources=sources, transport=transport)
        except ConfigurationError as exc:
            app.state.container = None
            logger.error("api_configuration_error", extra={"error": exc.message})

        logger.info(
            "api_startup",
            extra={
                "service": "api",
                "env": settings.ENV,
                "version": settings.VERSION,
                "configured": app.state.container is not None,
            },
        )
        try:
            yield
        finally:
            if app.state.container is not None:
                await app.state.container.aclose()

    app = FastAPI(title=settings.APP_NAME, version=settings.VERSION, lifespan=lifespan)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Return process liveness status."""

        return {"status": "ok"}

    @app.get("/version")
    def version() -> dict[str, str]:
        """Return application metadata from shared settings."""

        return {
            "name": settings.APP_NAME,
            "version": settings.VERSION,
            "env": settings.ENV,
        }

    @app.post("/webhook")
    async def webhook(
        request: Request,
        secret_token: str | None = Header(default=None, alias="X-Telegram-Bot-Api-Secret-Token"),
    ) -> dict[str, bool]:
        """Route a Telegram update; always acknowledged so Telegram does not redeliver it."""

        if settings.WEBHOOK_SECRET and not hmac.compare_digest(
            (secret_token or "").encode(), settings.WEBHOOK_SECRET.encode()
        ):
            raise HTTPException(status_code=403, detail="invalid webhook secret")

        container = _container(request)
        try:
            update = await request.json()
        except ValueError:
            logger.warning("webhook_invalid_json")
            return {"ok": True}

        fields = _message_fields(update)
        if fields is None:
            return {"ok": True}

        chat_id, text, first_name = fields
        replies = await run_in_threadpool(container.router.handle, chat_id, text, first_name)
        for reply in replies:
            try:
                await container.sink.send_text(chat_id, reply)
            except Exception as exc:  # noqa: BLE001
                logger.warning("webhook_reply_undelivered", extra={"chat_id": chat_id, "error": str(exc)})
        return {"ok": True}

    @app.post("/cron/dispatch")
    async def cron_dispatch(request: Request, key: str | None = Query(default=None)) -> dict[str, int]:
        """Run one worker batch."""

        _check_cron_key(settings, key)
        result = await _container(request).dispatcher.run_batch()
        return {"claimed": result.claimed, "done": result.done, "failed": result.failed}

    @app.post("/cron/sentiment")
    async def cron_sentiment(request: Request, key: str | None = Query(default=None)) -> dict[str, Any]:
        """Run one market sentiment scan."""

        _check_cron_key(settings, key)
        container = _container(request)
        try:
            report = await run_sentiment_scan(
                feed=container.binance,
                reports=container.sentiment_reports,
                sink=container.sink,
                chat_id=settings.NOTIFY_CHAT_ID,
                quote=settings.SENTIMENT_QUOTE,
                threshold=settings.SENTIMENT_CHANGE_THRESHOLD,
                min_count=settings.SENTIMENT_ALERT_MIN_COUNT,
            )
        except BotError as exc:
            logger.error("cron_sentiment_failed", extra={"source": exc.source, "error": exc.message})
            raise HTTPException(status_code=502, detail=exc.message) from exc

        return {
            "moon": report.moon.full_name,
            "crash": report.crash.full_name,
            "moon_count": report.moon.count,
            "crash_count": report.crash.count,
            "alerted": report.alerted,
        }

    return app


app = create_app()
