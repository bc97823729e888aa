import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from security import RateLimitMiddleware


@pytest.fixture()
def limited_client():
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, requests_per_minute_ip=5, requests_per_minute_user=2)

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    return TestClient(app)


class TestRateLimitMiddleware:
    def test_ip_limit_returns_429_with_retry_after(self, limited_client):
        for _ in range(5):
            assert limited_client.get("/ping").status_code == 200

        response = limited_client.get("/ping")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        assert "Rate limit exceeded" in response.json()["detail"]

    def test_token_limit_is_stricter(self, limited_client):
        headers = {"Authorization": "Bearer token-one"}
        assert limited_client.get("/ping", headers=headers).status_code == 200
        assert limited_client.get("/ping", headers=headers).status_code == 200

        assert limited_client.get("/ping", headers=headers).status_code == 429
        other = limited_client.get("/ping", headers={"Authorization": "Bearer token-two"})
        assert other.status_code == 200

    def test_requests_from_distinct_addresses_are_counted_separately(self, limited_client):
        for _ in range(5):
            limited_client.get("/ping", headers={"X-Forwarded-For": "10.0.0.1"})

        assert limited_client.get("/ping", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 429
        assert limited_client.get("/ping", headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 200

    def test_failed_auth_bursts_are_tracked(self):
        app = FastAPI()
        middleware = RateLimitMiddleware(app, requests_per_minute_ip=100)

        class _Request:
            class url:
                path = "/private"

        for _ in range(7):
            middleware._detect_suspicious_activity(_Request(), 401, "10.0.0.9", now=1000.0)

        assert len(middleware.request_counts["10.0.0.9_401"]) == 7
        assert len(middleware.request_counts["10.0.0.9_4xx"]) == 7
        assert "10.0.0.9_404" not in middleware.request_counts

    def test_old_failures_fall_out_of_the_window(self):
        middleware = RateLimitMiddleware(FastAPI())

        class _Request:
            class url:
                path = "/missing"

        middleware._detect_suspicious_activity(_Request(), 404, "10.0.0.9", now=1000.0)
        middleware._detect_suspicious_activity(_Request(), 404, "10.0.0.9", now=1400.0)

        assert middleware.request_counts["10.0.0.9_404"] == [1400.0]

    def test_idle_clients_are_evicted(self):
        middleware = RateLimitMiddleware(FastAPI(), requests_per_minute_user=2)
        for i in range(1000):
            middleware._allow(f"user:tok{i}", 2, now=1000.0)

        assert middleware._allow("user:fresh", 2, now=2000.0)

        assert list(middleware.request_counts) == ["user:fresh"]

    def test_recent_clients_survive_a_sweep(self):
        middleware = RateLimitMiddleware(FastAPI(), requests_per_minute_user=2)
        middleware._allow("user:busy", 2, now=1000.0)

        middleware._allow("user:other", 2, now=1100.0)

        assert middleware.request_counts["user:busy"] == [1000.0]
        assert middleware.request_counts["user:other"] == [1100.0]
