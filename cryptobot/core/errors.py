"""Exception hierarchy shared by clients, handlers and services."""


class BotError(Exception):
    """Base exception carrying the failing component and a user-presentable message."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        self.message = message
        super().__init__(message)


class UpstreamFetchFailure(BotError):
    """Exchange, chart or Telegram call failed or returned malformed data."""


class InsufficientData(BotError):
    """Fewer samples than an indicator needs."""

    def __init__(self, source: str, message: str, required: int, available: int) -> None:
        super().__init__(source, message)
        self.required = required
        self.available = available


class UnsupportedInterval(BotError):
    """The exchange does not serve candles at the requested interval."""


class UnknownCommandError(BotError):
    """A queued job names a command with no registered handler."""


class ConfigurationError(BotError):
    """Missing credentials or connection settings; fatal at startup."""
