"""Telegram notification sink built on python-telegram-bot."""

import asyncio
import logging
from typing import Any

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import BadRequest, Forbidden, InvalidToken, TelegramError
from telegram.request import HTTPXRequest

from cryptobot.clients.retry import Sleep, retry_async
from cryptobot.core.errors import ConfigurationError, UpstreamFetchFailure

_SOURCE = "telegram"

logger = logging.getLogger(__name__)


class _NonRetryable(Exception):
    pass


class TelegramSink:
    """Delivers Markdown texts and image URLs to chats."""

    def __init__(
        self,
        token: str = "",
        *,
        attempts: int = 3,
        backoff_s: float = 1.0,
        bot: Any | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.requests: tuple[HTTPXRequest, ...] = ()
        if bot is None:
            if not token:
                raise ConfigurationError(_SOURCE, "BOT_TOKEN is not configured")
            requests = (HTTPXRequest(), HTTPXRequest())
            try:
                bot = Bot(token=token, request=requests[0], get_updates_request=requests[1])
            except InvalidToken as exc:
                raise ConfigurationError(_SOURCE, "BOT_TOKEN is invalid") from exc
            self.requests = requests
        self.bot = bot
        self.attempts = attempts
        self.backoff_s = backoff_s
        self._sleep = sleep

    async def send_text(self, chat_id: str, text: str) -> None:
        await self._call("send_message", chat_id=chat_id, text=text, parse_mode=ParseMode.MARKDOWN)

    async def send_image(self, chat_id: str, url: str, caption: str = "") -> None:
        kwargs: dict[str, Any] = {"chat_id": chat_id, "photo": url}
        if caption:
            kwargs["caption"] = caption
            kwargs["parse_mode"] = ParseMode.MARKDOWN
        await self._call("send_photo", **kwargs)

    async def close(self) -> None:
        """Release the HTTP clients whether or not the bot was ever initialized."""

        shutdown = getattr(self.bot, "shutdown", None)
        if shutdown is not None:
            await shutdown()
        for request in self.requests:
            await request.shutdown()

    async def _call(self, method: str, **kwargs: Any) -> None:
        async def _send() -> None:
            try:
                await getattr(self.bot, method)(**kwargs)
            except (BadRequest, Forbidden) as exc:
                # client errors are final
                raise _NonRetryable(str(exc)) from exc

        try:
            await retry_async(
                _send,
                source=_SOURCE,
                attempts=self.attempts,
                backoff_s=self.backoff_s,
                retry_on=(TelegramError,),
                sleep=self._sleep,
            )
        except _NonRetryable as exc:
            logger.error("telegram_request_rejected", extra={"method": method, "error": str(exc)})
            raise UpstreamFetchFailure(_SOURCE, f"Telegram rejected {method}: {exc}") from exc
