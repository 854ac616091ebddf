"""Tests for chatgate/web/cors.py — origin matching and CORS headers."""

from chatgate.config.settings import get_settings
from chatgate.web.cors import cors_headers, is_allowed_origin

ALLOWED = ["http://localhost:3000", "https://*.vercel.app"]


class TestIsAllowedOrigin:

    def test_exact_match(self):
        assert is_allowed_origin("http://localhost:3000", ALLOWED)

    def test_wildcard_subdomain(self):
        assert is_allowed_origin("https://my-app-git-main.vercel.app", ALLOWED)

    def test_wildcard_does_not_cross_path(self):
        assert not is_allowed_origin("https://evil.com/x.vercel.app", ALLOWED)

    def test_scheme_must_match(self):
        assert not is_allowed_origin("http://my-app.vercel.app", ALLOWED)

    def test_empty_origin(self):
        assert not is_allowed_origin("", ALLOWED)


class TestCorsHeaders:

    def test_allowed_origin_echoed(self, override_settings):
        override_settings(CORS_ALLOWED_ORIGINS=",".join(ALLOWED), ENVIRONMENT="production")
        headers = cors_headers("https://x.vercel.app", get_settings())
        assert headers["Access-Control-Allow-Origin"] == "https://x.vercel.app"
        assert headers["Access-Control-Allow-Methods"] == "POST, OPTIONS, GET"
        assert headers["Access-Control-Allow-Headers"] == "Content-Type, Authorization"

    def test_unknown_origin_pinned_to_first(self, override_settings):
        override_settings(CORS_ALLOWED_ORIGINS=",".join(ALLOWED), ENVIRONMENT="production")
        headers = cors_headers("https://other.example", get_settings())
        assert headers["Access-Control-Allow-Origin"] == "http://localhost:3000"

    def test_development_allows_any_origin(self, override_settings):
        override_settings(CORS_ALLOWED_ORIGINS="http://localhost:3000", ENVIRONMENT="development")
        headers = cors_headers("http://192.168.1.20:3000", get_settings())
        assert headers["Access-Control-Allow-Origin"] == "http://192.168.1.20:3000"

    def test_no_configured_origins_falls_back_to_star(self, override_settings):
        override_settings(CORS_ALLOWED_ORIGINS="", VERCEL_URL="", ENVIRONMENT="production")
        headers = cors_headers("", get_settings())
        assert headers["Access-Control-Allow-Origin"] == "*"
