"""
Tools Module - Live Data Tools for the Chat Agent
=================================================

Modules:
    base: Shared HTTP fetch helper and ToolError
    weather: Current conditions from OpenWeather
    f1: Next Formula 1 race from the Ergast-compatible API
    stocks: Global quote from Alpha Vantage
    registry: Tool registration, caching, error capture and agent wrapping

Tool failures never raise into the model run: the registry turns them into
an ``{"error": "..."}`` payload the model can explain to the user.
"""
