"""
Agent setup for cardchat.
Creates the Agent the runner drives for each chat request.
"""

from __future__ import annotations

from typing import Any

from agents import Agent

from cardchat.utils.logger import logger


def create_agent(model: str, instructions: str, tools: list[Any]) -> Agent:
    """Create the chat agent.

    Args:
        model: Model name passed to the provider
        instructions: System instructions prepended to every conversation
        tools: Function tools from the tool registry

    Returns:
        Configured Agent instance
    """
    logger.debug(f"Creating agent: model={model}, tools={len(tools)}")
    return Agent(
        name="cardchat",
        model=model,
        instructions=instructions,
        tools=tools,
    )
