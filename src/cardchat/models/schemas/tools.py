"""
External data tool payloads.

These are the card payloads the browser renders. They are serialized with
camelCase keys both for the model (tool output) and for ``tool-result`` frames.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _ToolPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class WeatherReport(_ToolPayload):
    """Current conditions for one location."""

    location: str
    temp_c: int = Field(..., description="Temperature in Celsius, rounded")
    description: str
    icon: str
    humidity: int
    wind_kph: int = Field(..., description="Wind speed in km/h, rounded")


class F1Race(_ToolPayload):
    """Next scheduled Formula 1 race."""

    season: str
    round: int
    race_name: str
    circuit: str
    country: str
    date: str
    time: str | None = None


class StockQuote(_ToolPayload):
    symbol: str
    price: float
    change: float | None = None
    change_percent: float | None = None

