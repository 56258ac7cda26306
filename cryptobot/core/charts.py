"""QuickChart URL builder for price, candlestick, StochRSI and comparison charts.

Builders only produce URLs; the image is rendered by the chart service when Telegram fetches it.
An empty input series yields an empty string.
"""

import json
from typing import Any, Sequence

import httpx

from cryptobot.core.indicators import OVERBOUGHT_LEVEL, OVERSOLD_LEVEL
from cryptobot.core.time_utils import format_ms
from cryptobot.core.types import PriceSample

_DEFAULT_WIDTH = 800
_DEFAULT_HEIGHT = 400
_CANDLESTICK_HEIGHT = 500
_UP_COLOR = "rgba(75, 192, 192, 0.8)"
_DOWN_COLOR = "rgba(255, 99, 132, 0.8)"


def _axis(label: str, **extra: Any) -> dict[str, Any]:
    axis: dict[str, Any] = {"display": True, "scaleLabel": {"display": True, "labelString": label}}
    axis.update(extra)
    return axis


def _title(text: str) -> dict[str, Any]:
    return {"display": True, "text": text, "fontSize": 16}


def _threshold_line(value: float, color: str, label: str) -> dict[str, Any]:
    return {
        "type": "line",
        "mode": "horizontal",
        "scaleID": "y-axis-0",
        "value": value,
        "borderColor": color,
        "borderWidth": 1,
        "borderDash": [5, 5],
        "label": {"content": label, "enabled": True, "position": "left"},
    }


def line_chart_config(samples: Sequence[PriceSample], symbol: str, interval: str, quote: str) -> dict[str, Any]:
    return {
        "type": "line",
        "data": {
            "labels": [format_ms(sample.timestamp, "%H:%M") for sample in samples],
            "datasets": [
                {
                    "label": symbol,
                    "data": [sample.close for sample in samples],
                    "fill": False,
                    "borderColor": "rgb(75, 192, 192)",
                    "tension": 0.1,
                    "pointRadius": 2,
                    "pointHoverRadius": 5,
                }
            ],
        },
        "options": {
            "title": _title(f"{symbol} Price Chart ({interval})"),
            "legend": {"display": False},
            "scales": {
                "xAxes": [_axis("Time")],
                "yAxes": [_axis(f"Price ({quote})")],
            },
        },
    }


def candlestick_config(samples: Sequence[PriceSample], symbol: str, quote: str) -> dict[str, Any]:
    return {
        "type": "candlestick",
        "data": {
            "labels": [format_ms(sample.timestamp, "%b %d") for sample in samples],
            "datasets": [
                {
                    "label": symbol,
                    "data": [
                        {"o": sample.open, "h": sample.high, "l": sample.low, "c": sample.close}
                        for sample in samples
                    ],
                }
            ],
        },
        "options": {
            "title": _title(f"{symbol} Candlestick Chart ({len(samples)} Days)"),
            "legend": {"display": False},
            "scales": {
                "xAxes": [_axis("Date")],
                "yAxes": [_axis(f"Price ({quote})")],
            },
        },
    }


def stoch_rsi_config(k_values: Sequence[float], d_values: Sequence[float], symbol: str) -> dict[str, Any]:
    return {
        "type": "line",
        "data": {
            "labels": list(range(1, len(k_values) + 1)),
            "datasets": [
                {
                    "label": "K Line",
                    "data": list(k_values),
                    "fill": False,
                    "borderColor": "rgb(54, 162, 235)",
                    "tension": 0.1,
                    "pointRadius": 2,
                },
                {
                    "label": "D Line",
                    "data": list(d_values),
                    "fill": False,
                    "borderColor": "rgb(255, 99, 132)",
                    "tension": 0.1,
                    "pointRadius": 2,
                },
            ],
        },
        "options": {
            "title": _title(f"{symbol} Stochastic RSI"),
            "legend": {"display": True, "position": "top"},
            "scales": {
                "xAxes": [_axis("Period")],
                "yAxes": [_axis("StochRSI Value", ticks={"min": 0, "max": 100})],
            },
            "annotation": {
                "annotations": [
                    _threshold_line(OVERBOUGHT_LEVEL, "red", "Overbought"),
                    _threshold_line(OVERSOLD_LEVEL, "green", "Oversold"),
                ]
            },
        },
    }


def comparison_config(symbols: Sequence[str], changes: Sequence[float]) -> dict[str, Any]:
    return {
        "type": "bar",
        "data": {
            "labels": list(symbols),
            "datasets": [
                {
                    "label": "24h Change (%)",
                    "data": list(changes),
                    "backgroundColor": [_UP_COLOR if change >= 0 else _DOWN_COLOR for change in changes],
                }
            ],
        },
        "options": {
            "title": _title("Top Movers (24h)"),
            "legend": {"display": False},
            "scales": {"yAxes": [_axis("24h Change (%)")]},
        },
    }


class ChartURLBuilder:
    """Turns series data into renderable QuickChart URLs."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url

    def build_url(self, config: dict[str, Any], width: int = _DEFAULT_WIDTH, height: int = _DEFAULT_HEIGHT) -> str:
        params = {
            "c": json.dumps(config, ensure_ascii=False, separators=(",", ":")),
            "width": width,
            "height": height,
            "backgroundColor": "white",
            "devicePixelRatio": 2.0,
        }
        return str(httpx.URL(self.base_url, params=params))

    def line(self, samples: Sequence[PriceSample], symbol: str, interval: str = "5m", quote: str = "USDT") -> str:
        if not samples:
            return ""
        return self.build_url(line_chart_config(samples, symbol, interval, quote))

    def candlestick(self, samples: Sequence[PriceSample], symbol: str, quote: str = "USDT") -> str:
        if not samples:
            return ""
        return self.build_url(candlestick_config(samples, symbol, quote), height=_CANDLESTICK_HEIGHT)

    def stoch_rsi(self, k_values: Sequence[float], d_values: Sequence[float], symbol: str) -> str:
        if not k_values or not d_values:
            return ""
        return self.build_url(stoch_rsi_config(k_values, d_values, symbol))

    def comparison(self, symbols: Sequence[str], changes: Sequence[float]) -> str:
        if not symbols or not changes:
            return ""
        return self.build_url(comparison_config(symbols, changes))
