"""
Next Formula 1 race from an Ergast-compatible API.
"""

from __future__ import annotations

import httpx

from cardchat.models.schemas.tools import F1Race
from cardchat.tools.base import ToolError, fetch_json


async def get_f1_matches(client: httpx.AsyncClient, base_url: str) -> F1Race:
    """Fetch the next scheduled race.

    Raises:
        ToolError: No upcoming race or provider failure
    """
    status, data = await fetch_json(client, f"{base_url.rstrip('/')}/current/next.json")
    if status != 200 or not isinstance(data, dict):
        raise ToolError(f"F1 API error: {status}")

    races = data.get("MRData", {}).get("RaceTable", {}).get("Races") or []
    if not races:
        raise ToolError("No upcoming F1 race found")

    race = races[0]
    try:
        circuit = race["Circuit"]
        return F1Race(
            season=str(race["season"]),
            round=int(race["round"]),
            race_name=race["raceName"],
            circuit=circuit["circuitName"],
            country=circuit["Location"]["country"],
            date=race["date"],
            time=race.get("time"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ToolError("Invalid F1 race data received") from exc
