"""
CardChat - Streaming chat backend with live data cards
======================================================

FastAPI backend that relays model output to the browser as server-sent events
and lets the model call data tools (weather, F1, stocks) whose results render
as cards.

Modules:
    api: FastAPI routes, services, and middleware
    core: Settings, constants, system prompt, agent construction
    tools: External data tools and the tool registry
    models: Pydantic models for stream events, API schemas, and errors
    utils: Logging, metrics, HTTP/OpenAI client factories, database helpers

Architecture:
    ``POST /api/chat`` authenticates the caller, validates the conversation,
    consumes one unit of the caller's fixed-window quota, then opens a
    streamed run on the OpenAI Agents runner. Each text increment and tool
    result is re-framed as one stream event; the stream ends with ``done``
    (or ``error``). Chats and messages persist in PostgreSQL via asyncpg.
"""
