"""
Utils Module - Infrastructure Utilities
=======================================

Modules:
    logger: Structured JSON logging with rotation and request correlation
    metrics: Prometheus counters, gauges and histograms
    client_factory: httpx and AsyncOpenAI client construction
    db_utils: asyncpg pool creation, health and graceful close
    cache: In-memory TTL cache for tool results
"""
