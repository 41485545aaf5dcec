"""
Current weather from OpenWeatherMap.
"""

from __future__ import annotations

import httpx

from cardchat.core.constants import OPENWEATHER_URL
from cardchat.models.schemas.tools import WeatherReport
from cardchat.tools.base import ToolError, fetch_json

#: OpenWeather reports wind in m/s with metric units
MS_TO_KPH = 3.6


async def get_weather(
    client: httpx.AsyncClient,
    api_key: str | None,
    location: str,
    url: str = OPENWEATHER_URL,
) -> WeatherReport:
    """Fetch current conditions for ``location``.

    Raises:
        ToolError: Missing API key, unknown location, or provider failure
    """
    if not api_key:
        raise ToolError("OpenWeather API key not configured")

    status, data = await fetch_json(client, url, {"q": location, "appid": api_key, "units": "metric"})

    if status == 404:
        raise ToolError(f'Location "{location}" not found')
    if status == 401:
        raise ToolError("Invalid OpenWeather API key")
    if status != 200 or not isinstance(data, dict):
        raise ToolError(f"Weather API error: {status}")

    try:
        conditions = data["weather"][0]
        return WeatherReport(
            location=data["name"],
            temp_c=round(data["main"]["temp"]),
            description=conditions["description"],
            icon=conditions["icon"],
            humidity=data["main"]["humidity"],
            wind_kph=round(data["wind"]["speed"] * MS_TO_KPH),
        )
    except (KeyError, IndexError, TypeError) as exc:
        raise ToolError("Invalid weather data received") from exc
