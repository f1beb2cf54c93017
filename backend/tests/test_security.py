"""
Request-level protection tests: rate limiting, security and CORS headers,
legacy route aliases, health and the missing-database guard.
"""

import pytest
from flask import Flask

from bistro import create_app
from bistro.aliases import AliasError, register_aliases
from bistro.config import TestingConfig
from bistro.rate_limit import RateLimiter

from conftest import FakeClock


class TestRateLimiter:

    def test_blocks_after_limit_until_window_ends(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=3, window_seconds=60, clock=clock)
        assert all(limiter.hit("1.2.3.4") for _ in range(3))
        assert not limiter.hit("1.2.3.4")
        assert limiter.hit("5.6.7.8")

        clock.advance(61)
        assert limiter.hit("1.2.3.4")

    def test_retry_after_counts_down(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
        limiter.hit("k")
        clock.advance(20)
        assert limiter.retry_after("k") == 41

    def test_table_is_bounded(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=5, window_seconds=60, max_keys=3, clock=clock)
        for key in ["a", "b", "c", "d"]:
            clock.advance(1)
            limiter.hit(key)
        assert len(limiter) == 3
        # "a" had the earliest window end and was evicted first
        assert "a" not in limiter._windows

    def test_sweep_drops_expired_windows(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=5, window_seconds=10, clock=clock)
        limiter.hit("a")
        limiter.hit("b")
        clock.advance(11)
        assert limiter.sweep() == 2
        assert len(limiter) == 0

    def test_periodic_sweep(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=100, window_seconds=10, clock=clock, sweep_interval=3)
        limiter.hit("a")
        clock.advance(11)
        limiter.hit("b")
        limiter.hit("b")
        assert "a" not in limiter._windows

    def test_rejects_nonsense_config(self):
        with pytest.raises(ValueError):
            RateLimiter(max_requests=0)


class TestRateLimitedApi:

    @pytest.fixture
    def app(self, clock):
        class Tight(TestingConfig):
            RATE_LIMIT_MAX_REQUESTS = 2

        from bistro.extensions import db
        app = create_app(Tight, rate_limit_clock=clock)
        with app.app_context():
            db.create_all()
            yield app
            db.session.remove()
            db.drop_all()

    def test_429_with_retry_after_then_recovers(self, client, clock):
        for _ in range(2):
            assert client.get("/api/products").status_code == 401
        resp = client.get("/api/products")
        assert resp.status_code == 429
        assert resp.json == {
            "error": "rate_limit_exceeded",
            "message": "Too many requests, please try again later",
        }
        assert int(resp.headers["Retry-After"]) > 0

        clock.advance(61)
        assert client.get("/api/products").status_code == 401

    def test_forwarded_for_is_the_key(self, client):
        for _ in range(2):
            client.get("/api/products", headers={"X-Forwarded-For": "10.0.0.1, 172.16.0.1"})
        assert client.get("/api/products", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 429
        assert client.get("/api/products", headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 401

    def test_health_is_not_limited(self, client):
        for _ in range(5):
            assert client.get("/api/health").status_code == 200

    def test_reset(self, app, client):
        for _ in range(3):
            client.get("/api/products")
        app.extensions["rate_limiter"].reset()
        assert client.get("/api/products").status_code == 401


class TestHeaders:

    def test_security_headers_on_every_response(self, client, seed):
        for path in ("/api/health", "/api/products", "/does-not-exist"):
            resp = client.get(path)
            assert resp.headers["X-Frame-Options"] == "DENY"
            assert resp.headers["X-Content-Type-Options"] == "nosniff"
            assert "default-src 'self'" in resp.headers["Content-Security-Policy"]
            assert "Strict-Transport-Security" not in resp.headers

    def test_hsts_only_in_production_over_https(self, clock):
        class Production(TestingConfig):
            ENV_NAME = "production"

        app = create_app(Production, rate_limit_clock=clock)
        client = app.test_client()
        plain = client.get("/api/health")
        proxied = client.get("/api/health", headers={"X-Forwarded-Proto": "https"})
        assert "Strict-Transport-Security" not in plain.headers
        assert proxied.headers["Strict-Transport-Security"].startswith("max-age=31536000")

    def test_cors_echoes_allowed_origin_only(self, client, seed):
        ok = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert ok.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        other = client.get("/api/health", headers={"Origin": "https://evil.example"})
        assert "Access-Control-Allow-Origin" not in other.headers


class TestAliases:

    def test_alias_and_canonical_share_view(self, app):
        adapter = app.url_map.bind("localhost")
        alias_endpoint, _ = adapter.match("/api/settings/settings_company", method="GET")
        canonical_endpoint, _ = adapter.match("/api/settings/company", method="GET")
        assert app.view_functions[alias_endpoint] is app.view_functions[canonical_endpoint]

    def test_alias_keeps_view_per_method(self, app):
        adapter = app.url_map.bind("localhost")
        for method in ("GET", "PUT"):
            alias_endpoint, _ = adapter.match("/api/settings/settings_company", method=method)
            canonical_endpoint, _ = adapter.match("/api/settings/company", method=method)
            assert alias_endpoint.startswith("alias:")
            assert app.view_functions[alias_endpoint] is app.view_functions[canonical_endpoint]

    def test_alias_outranks_converter_rule(self):
        app = Flask(__name__)
        app.add_url_rule("/items/<key>", "item", lambda key: key)
        app.add_url_rule("/items-current", "current", lambda: "current")
        register_aliases(app, {"/items/current": "/items-current"})
        endpoint, _ = app.url_map.bind("localhost").match("/items/current", method="GET")
        assert app.view_functions[endpoint] is app.view_functions["current"]

    def test_missing_target_fails_at_startup(self):
        app = Flask(__name__)
        with pytest.raises(AliasError):
            register_aliases(app, {"/old": "/new"})

    def test_alias_cannot_shadow_route(self):
        app = Flask(__name__)
        app.add_url_rule("/a", "a", lambda: "a")
        app.add_url_rule("/b", "b", lambda: "b")
        with pytest.raises(AliasError):
            register_aliases(app, {"/a": "/b"})


class TestHealthAndDatabaseGuard:

    def test_health_degraded_without_accounts(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "degraded"

    def test_health_healthy_once_seeded(self, client, seed):
        assert client.get("/api/health").json["status"] == "healthy"

    def test_unconfigured_database(self, clock):
        class NoDatabase(TestingConfig):
            DATABASE_CONFIGURED = False

        app = create_app(NoDatabase, rate_limit_clock=clock)
        client = app.test_client()
        resp = client.get("/api/products")
        assert resp.status_code == 500
        assert resp.json["error"] == "db_not_configured"
        assert client.get("/api/health").status_code == 503
