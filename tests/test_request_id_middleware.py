from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from quota_api.adapters.quota import QuotaLimiter
from quota_api.core.app_factory import create_app


@pytest.fixture
def client(memory_store):
    with TestClient(create_app(QuotaLimiter(memory_store))) as test_client:
        yield test_client


def test_preserves_incoming_request_id_header(client) -> None:
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client) -> None:
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_error_responses_carry_request_id(client) -> None:
    resp = client.get("/v1/rules", headers={"X-Request-ID": "req-err"})

    assert resp.status_code == 403
    assert resp.headers.get("X-Request-ID") == "req-err"
