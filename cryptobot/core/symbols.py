"""Trading pair normalization for Binance and Indodax."""

import re
from dataclasses import dataclass

from cryptobot.core.types import Exchange

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def sanitize_asset(value: str) -> str:
    """Keep only ASCII letters and digits, upper-cased."""

    return _NON_ALNUM.sub("", value).upper()


@dataclass(frozen=True, slots=True)
class Symbol:
    """A base/quote pair on one exchange."""

    exchange: Exchange
    base: str
    quote: str

    @classmethod
    def of(cls, exchange: Exchange, base: str, quote: str) -> "Symbol":
        clean_base = sanitize_asset(base)
        clean_quote = sanitize_asset(quote)
        if not clean_base or not clean_quote:
            raise ValueError(f"invalid trading pair: {base!r}/{quote!r}")
        return cls(exchange=exchange, base=clean_base, quote=clean_quote)

    @property
    def pair(self) -> str:
        """Exchange-native pair string, e.g. BTCUSDT or BTC_IDR."""

        if self.exchange is Exchange.INDODAX:
            return f"{self.base}_{self.quote}"
        return f"{self.base}{self.quote}"

    @property
    def display(self) -> str:
        return f"{self.base}/{self.quote}"
