"""Run the webhook and cron API under uvicorn with the bot's JSON logging."""

import uvicorn

from cryptobot.core.config import get_settings
from cryptobot.core.logging import configure_logging


def main() -> int:
    """Serve the API on the configured host and port."""

    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, service="api")
    # keep the JSON handlers installed above
    uvicorn.run(
        "cryptobot.services.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
        proxy_headers=True,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
