"""
Shared pieces for the external data tools.
"""

from __future__ import annotations

from typing import Any

import httpx


class ToolError(Exception):
    """A tool could not produce a result. The message is shown to the model."""


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    params: dict[str, Any] | None = None,
) -> tuple[int, Any]:
    """GET ``url`` and return ``(status_code, parsed_json)``.

    Transport failures and non-JSON bodies are raised as ToolError so adapters
    only branch on status codes and payload shape.
    """
    try:
        response = await client.get(url, params=params)
    except httpx.TimeoutException as exc:
        raise ToolError("Request timed out") from exc
    except httpx.HTTPError as exc:
        raise ToolError(f"Request failed: {exc}") from exc

    try:
        payload = response.json()
    except ValueError:
        payload = None
    return response.status_code, payload
