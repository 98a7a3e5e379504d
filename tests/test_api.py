"""Tests for app-wide endpoints, envelopes and middleware."""

from productbazar.realtime.pubsub import set_redis


async def test_health_check(client):
    """Test health check endpoint."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "success",
        "message": "healthy",
        "data": {"status": "healthy"},
    }


async def test_database_health_reports_redis(client):
    response = await client.get("/api/v1/health/db")
    assert response.status_code == 200
    assert response.json()["data"] == {"database": "connected", "redis": "connected"}


async def test_database_health_without_redis(client):
    set_redis(None)
    response = await client.get("/api/v1/health/db")
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["redis"] == "not configured"


async def test_unknown_route_uses_error_envelope(client):
    response = await client.get("/api/v1/nowhere")
    assert response.status_code == 404
    assert response.json() == {
        "status": "error",
        "message": "Can't find /api/v1/nowhere on this server!",
    }


async def test_validation_errors_are_400_with_fields(client):
    response = await client.post("/auth/login/email", json={"email": "not-an-email"})
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_FAILED"
    fields = {err["field"] for err in body["data"]["errors"]}
    assert {"email", "password"} <= fields


async def test_request_id_is_generated_and_echoed(client):
    generated = await client.get("/api/v1/health")
    assert generated.headers["X-Request-ID"]

    echoed = await client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert echoed.headers["X-Request-ID"] == "req-123"


async def test_security_headers(client):
    response = await client.get("/api/v1/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "Strict-Transport-Security" not in response.headers


async def test_rate_limit_headers_when_redis_available(client, fake_redis):
    response = await client.get("/api/v1/health")
    assert response.headers["X-RateLimit-Limit"] == "10000"
    assert response.headers["X-RateLimit-Remaining"] == "9999"
    assert any(key.startswith("productbazar:rl:") for key in fake_redis.store)


async def test_protected_route_requires_token(client):
    response = await client.get("/auth/profile")
    assert response.status_code == 401
    assert response.json()["code"] == "NOT_AUTHENTICATED"


async def test_invalid_token_rejected(client):
    response = await client.get("/auth/profile", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"
