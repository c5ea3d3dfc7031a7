from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from governor.core.logging import get_request_id
from governor.core.middleware import request_id_middleware


def _app() -> FastAPI:
    app = FastAPI()
    app.middleware("http")(request_id_middleware)

    @app.get("/whoami")
    async def whoami() -> dict:
        logging.getLogger("test").info("inside request")
        return {"request_id": get_request_id()}

    return app


def test_preserves_incoming_request_id_header():
    client = TestClient(_app())
    resp = client.get("/whoami", headers={"X-Request-ID": "test-request-id-123"})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == "test-request-id-123"
    assert resp.json() == {"request_id": "test-request-id-123"}


def test_generates_request_id_when_missing():
    client = TestClient(_app())
    resp = client.get("/whoami")

    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert resp.json()["request_id"] == generated
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_request_id_cleared_after_request():
    client = TestClient(_app())
    client.get("/whoami", headers={"X-Request-ID": "short-lived"})

    assert get_request_id() is None
