from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from cardchat.api.middleware.request_context import (
    RequestContext,
    RequestContextMiddleware,
    clear_request_context,
    generate_request_id,
    get_request_context,
    get_request_id,
    set_request_context,
    update_request_context,
)


def test_generate_request_id_is_unique() -> None:
    ids = {generate_request_id() for _ in range(100)}
    assert len(ids) == 100
    assert all(i.startswith("req_") for i in ids)


def test_update_request_context_sets_known_and_extra_fields() -> None:
    set_request_context(RequestContext(request_id="req_test"))
    try:
        update_request_context(user_id="github:1", chat_id="c1", tool="getWeather")
        ctx = get_request_context()
        assert ctx is not None
        assert ctx.user_id == "github:1"
        assert ctx.chat_id == "c1"
        assert ctx.extra == {"tool": "getWeather"}

        log_context = ctx.to_log_context()
        assert log_context["request_id"] == "req_test"
        assert log_context["user_id"] == "github:1"
    finally:
        clear_request_context()

    assert get_request_id() is None


def test_update_without_context_is_noop() -> None:
    clear_request_context()
    update_request_context(user_id="github:1")
    assert get_request_context() is None


def test_middleware_sets_and_echoes_request_id() -> None:
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)

    @app.get("/ping")
    async def ping() -> dict[str, str | None]:
        ctx = get_request_context()
        return {"request_id": ctx.request_id if ctx else None, "path": ctx.path if ctx else None}

    client = TestClient(app)

    response = client.get("/ping")
    assert response.status_code == 200
    body = response.json()
    assert response.headers["X-Request-ID"] == body["request_id"]
    assert body["path"] == "/ping"
    assert response.headers["X-Response-Time"].endswith("ms")

    response = client.get("/ping", headers={"X-Request-ID": "req_upstream"})
    assert response.headers["X-Request-ID"] == "req_upstream"
