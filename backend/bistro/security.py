# Overview: Security and CORS response headers applied to every response.

from __future__ import annotations

from flask import current_app, request

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline' 'unsafe-eval'; "
    "style-src 'self' 'unsafe-inline'; "
    "img-src 'self' data: https:; "
    "font-src 'self' data:;"
)

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}

HSTS = "max-age=31536000; includeSubDomains"


def _is_https() -> bool:
    # Behind the platform proxy TLS ends before the app
    return request.is_secure or request.headers.get("X-Forwarded-Proto", "").lower() == "https"


def apply_security_headers(response):
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    if current_app.config.get("ENV_NAME") == "production" and _is_https():
        response.headers["Strict-Transport-Security"] = HSTS
    return response


def apply_cors_headers(response):
    origin = request.headers.get("Origin")
    if origin and origin in current_app.config.get("CORS_ORIGINS", []):
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Vary"] = "Origin"
        response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
    return response
