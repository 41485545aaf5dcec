"""
Tool registry exposed to the model.

Each tool is a plain async function returning a payload model. Registering
it wraps the function so that it:
- serves repeated calls from a TTL cache
- records Prometheus metrics and a log line per call
- turns every failure into an ``{"error": "..."}`` payload, so a failing
  tool never aborts the generation
- returns a JSON string, which is what the model sees

The wrapped function keeps the original signature and docstring, so
``function_tool`` derives the same input schema the function declares.
"""

from __future__ import annotations

import functools
import inspect
import json
import time

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from agents import FunctionTool, function_tool
from pydantic import BaseModel

from cardchat.core.constants import (
    F1_CACHE_TTL_SECONDS,
    STOCK_CACHE_TTL_SECONDS,
    TOOL_CACHE_MAX_ENTRIES,
    WEATHER_CACHE_TTL_SECONDS,
    Settings,
)
from cardchat.models.schemas.tools import F1Race, StockQuote, WeatherReport
from cardchat.tools.base import ToolError
from cardchat.tools.f1 import get_f1_matches
from cardchat.tools.stocks import get_stock_price
from cardchat.tools.weather import get_weather
from cardchat.utils.cache import TTLCache
from cardchat.utils.logger import logger
from cardchat.utils.metrics import tool_cache_hits_total, tool_call_duration_seconds, tool_calls_total

ToolHandler = Callable[..., Awaitable[Any]]


@dataclass
class RegisteredTool:
    name: str
    description: str
    invoke: Callable[..., Awaitable[str]]
    agent_tool: FunctionTool
    cache: TTLCache | None = None


class ToolRegistry:
    """Named tools available to the model for one process."""

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def agent_tools(self) -> list[FunctionTool]:
        """Tools in the form the agents runner accepts."""
        return [tool.agent_tool for tool in self._tools.values()]

    def cache_stats(self) -> dict[str, dict[str, Any]]:
        """Hit and size counters for every tool that caches its results."""
        return {name: tool.cache.stats() for name, tool in self._tools.items() if tool.cache is not None}

    async def invoke(self, name: str, **arguments: Any) -> Any:
        """Call a tool directly and return its decoded payload."""
        tool = self._tools.get(name)
        if tool is None:
            return {"error": f"Unknown tool: {name}"}
        return json.loads(await tool.invoke(**arguments))

    def tool(
        self,
        name: str,
        *,
        description: str,
        error_prefix: str,
        cache: TTLCache | None = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Register an async function as a tool.

        Args:
            name: Tool name shown to the model and in ``tool-result`` frames
            description: Instruction for the model on when to call the tool
            error_prefix: Format string for failures, filled from the call arguments
            cache: Optional TTL cache for successful results
        """

        def decorator(func: ToolHandler) -> ToolHandler:
            signature = inspect.signature(func)

            @functools.wraps(func)
            async def wrapper(*args: Any, **kwargs: Any) -> str:
                arguments = dict(signature.bind(*args, **kwargs).arguments)
                payload = await self._execute(name, func, arguments, error_prefix, cache)
                return json.dumps(payload)

            agent_tool = function_tool(wrapper, name_override=name, description_override=description)
            self._tools[name] = RegisteredTool(
                name=name, description=description, invoke=wrapper, agent_tool=agent_tool, cache=cache
            )
            return wrapper

        return decorator

    async def _execute(
        self,
        name: str,
        func: ToolHandler,
        arguments: dict[str, Any],
        error_prefix: str,
        cache: TTLCache | None,
    ) -> Any:
        cache_key = f"{name}:{json.dumps(arguments, sort_keys=True, default=str).lower()}"
        if cache is not None:
            cached_payload = await cache.get(cache_key)
            if cached_payload is not None:
                tool_cache_hits_total.labels(tool_name=name).inc()
                return cached_payload

        start_time = time.perf_counter()
        status = "success"
        try:
            result = await func(**arguments)
            payload = result.to_payload() if isinstance(result, BaseModel) else result  # type: ignore[attr-defined]
        except ToolError as exc:
            status = "error"
            logger.warning(f"Tool {name} failed: {exc}", func=name)
            payload = {"error": f"{error_prefix.format(**arguments)}: {exc}"}
        except Exception as exc:
            status = "error"
            logger.error(f"Tool {name} raised unexpectedly: {exc}", exc_info=True, func=name)
            payload = {"error": f"{error_prefix.format(**arguments)}: {exc}"}
        finally:
            tool_calls_total.labels(tool_name=name, status=status).inc()
            tool_call_duration_seconds.labels(tool_name=name).observe(time.perf_counter() - start_time)

        if status == "success" and cache is not None:
            await cache.set(cache_key, payload)

        logger.log_function_call(name, arguments, payload)
        return payload


def build_default_registry(client: httpx.AsyncClient, settings: Settings) -> ToolRegistry:
    """Registry with the weather, Formula 1 and stock tools over a shared HTTP client."""
    registry = ToolRegistry()

    @registry.tool(
        "getWeather",
        description=(
            "You MUST use this tool for ANY weather-related question: temperature, humidity, wind, "
            "conditions or any location-specific weather. Never answer about weather without it."
        ),
        error_prefix="Failed to fetch weather for {location}",
        cache=TTLCache(max_size=TOOL_CACHE_MAX_ENTRIES, default_ttl=WEATHER_CACHE_TTL_SECONDS),
    )
    async def weather_tool(location: str) -> WeatherReport:
        """Get current weather for a location.

        Args:
            location: City name, coordinates, or location identifier (e.g., "Pune", "London", "New York")
        """
        return await get_weather(client, settings.openweather_api_key, location)

    @registry.tool(
        "getF1Matches",
        description=(
            "You MUST use this tool for ANY Formula 1 question: races, Grand Prix, schedule, "
            "circuits. Never answer about F1 without it."
        ),
        error_prefix="Failed to fetch F1 data",
        cache=TTLCache(max_size=TOOL_CACHE_MAX_ENTRIES, default_ttl=F1_CACHE_TTL_SECONDS),
    )
    async def f1_tool() -> F1Race:
        """Get the next scheduled Formula 1 race."""
        return await get_f1_matches(client, settings.f1_api_base_url)

    @registry.tool(
        "getStockPrice",
        description=(
            "You MUST use this tool for ANY stock-related question: prices, market data, company "
            "stocks. Never answer about stocks without it."
        ),
        error_prefix="Failed to fetch stock data for {symbol}",
        cache=TTLCache(max_size=TOOL_CACHE_MAX_ENTRIES, default_ttl=STOCK_CACHE_TTL_SECONDS),
    )
    async def stock_tool(symbol: str) -> StockQuote:
        """Get the latest stock price for a ticker symbol.

        Args:
            symbol: Stock symbol (e.g., AAPL, GOOGL, MSFT, TSLA)
        """
        return await get_stock_price(client, settings.alphavantage_api_key, symbol)

    return registry
