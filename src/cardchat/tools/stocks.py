"""
Latest stock quote from Alpha Vantage (GLOBAL_QUOTE).
"""

from __future__ import annotations

import httpx

from cardchat.core.constants import ALPHAVANTAGE_URL
from cardchat.models.schemas.tools import StockQuote
from cardchat.tools.base import ToolError, fetch_json


def _to_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value.rstrip("%"))
    except ValueError:
        return None


async def get_stock_price(
    client: httpx.AsyncClient,
    api_key: str | None,
    symbol: str,
    url: str = ALPHAVANTAGE_URL,
) -> StockQuote:
    """Fetch the latest quote for ``symbol``.

    Raises:
        ToolError: Missing API key, unknown symbol, bad data, or provider failure
    """
    if not api_key:
        raise ToolError("Alpha Vantage API key not configured")

    status, data = await fetch_json(
        client, url, {"function": "GLOBAL_QUOTE", "symbol": symbol.upper(), "apikey": api_key}
    )
    if status != 200 or not isinstance(data, dict):
        raise ToolError(f"Stock API error: {status}")

    quote = data.get("Global Quote") or {}
    if not quote:
        raise ToolError(f'Stock symbol "{symbol}" not found or no data available')

    price = _to_float(quote.get("05. price"))
    if price is None:
        raise ToolError("Invalid stock price data received")

    return StockQuote(
        symbol=quote.get("01. symbol") or symbol.upper(),
        price=price,
        change=_to_float(quote.get("09. change")),
        change_percent=_to_float(quote.get("10. change percent")),
    )
