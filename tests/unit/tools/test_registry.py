from __future__ import annotations

import httpx
import pytest

from cardchat.core.constants import Settings
from cardchat.models.schemas.tools import WeatherReport
from cardchat.tools.base import ToolError
from cardchat.tools.registry import ToolRegistry, build_default_registry
from cardchat.utils.cache import TTLCache


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry()


@pytest.mark.asyncio
async def test_payload_models_are_serialized_camel_case(registry: ToolRegistry) -> None:
    @registry.tool("getWeather", description="weather", error_prefix="Failed to fetch weather for {location}")
    async def weather(location: str) -> WeatherReport:
        return WeatherReport(location=location, temp_c=18, description="clear", icon="01d", humidity=40, wind_kph=9)

    result = await registry.invoke("getWeather", location="Paris")

    assert result["tempC"] == 18
    assert result["location"] == "Paris"


@pytest.mark.asyncio
async def test_tool_error_becomes_error_payload(registry: ToolRegistry) -> None:
    @registry.tool("getWeather", description="weather", error_prefix="Failed to fetch weather for {location}")
    async def weather(location: str) -> WeatherReport:
        raise ToolError(f'Location "{location}" not found')

    result = await registry.invoke("getWeather", location="Atlantis")

    assert result == {"error": 'Failed to fetch weather for Atlantis: Location "Atlantis" not found'}


@pytest.mark.asyncio
async def test_unexpected_exception_is_captured(registry: ToolRegistry) -> None:
    @registry.tool("getF1Matches", description="f1", error_prefix="Failed to fetch F1 data")
    async def f1() -> dict:
        raise RuntimeError("boom")

    result = await registry.invoke("getF1Matches")

    assert result == {"error": "Failed to fetch F1 data: boom"}


@pytest.mark.asyncio
async def test_successful_results_are_cached(registry: ToolRegistry) -> None:
    calls: list[str] = []

    @registry.tool(
        "getStockPrice",
        description="stocks",
        error_prefix="Failed to fetch stock data for {symbol}",
        cache=TTLCache(max_size=10, default_ttl=60.0),
    )
    async def stock(symbol: str) -> dict:
        calls.append(symbol)
        return {"symbol": symbol.upper(), "price": 1.0}

    await registry.invoke("getStockPrice", symbol="aapl")
    await registry.invoke("getStockPrice", symbol="AAPL")
    await registry.invoke("getStockPrice", symbol="MSFT")

    assert calls == ["aapl", "MSFT"]
    stats = registry.cache_stats()["getStockPrice"]
    assert (stats["size"], stats["hits"], stats["misses"]) == (2, 1, 2)


@pytest.mark.asyncio
async def test_errors_are_not_cached(registry: ToolRegistry) -> None:
    calls = 0

    @registry.tool(
        "getF1Matches",
        description="f1",
        error_prefix="Failed to fetch F1 data",
        cache=TTLCache(max_size=10, default_ttl=60.0),
    )
    async def f1() -> dict:
        nonlocal calls
        calls += 1
        raise ToolError("F1 API error: 503")

    await registry.invoke("getF1Matches")
    await registry.invoke("getF1Matches")

    assert calls == 2


@pytest.mark.asyncio
async def test_unknown_tool(registry: ToolRegistry) -> None:
    assert await registry.invoke("getHoroscope") == {"error": "Unknown tool: getHoroscope"}


@pytest.mark.asyncio
async def test_uncached_tools_have_no_stats(registry: ToolRegistry) -> None:
    @registry.tool("echo", description="echo", error_prefix="Failed to echo")
    async def echo(text: str) -> dict:
        return {"text": text}

    assert registry.cache_stats() == {}


def test_default_registry(test_settings: Settings) -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))

    registry = build_default_registry(client, test_settings)

    assert registry.names == ["getWeather", "getF1Matches", "getStockPrice"]
    assert "getWeather" in registry
    assert len(registry) == 3
    assert [tool.name for tool in registry.agent_tools()] == registry.names
    assert set(registry.cache_stats()) == set(registry.names)


@pytest.mark.asyncio
async def test_default_weather_tool_reports_provider_failure(test_settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"cod": "404", "message": "city not found"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        registry = build_default_registry(client, test_settings)
        result = await registry.invoke("getWeather", location="Atlantis")

    assert result == {"error": 'Failed to fetch weather for Atlantis: Location "Atlantis" not found'}
