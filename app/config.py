"""Configuration classes for the Flask application."""

from __future__ import annotations

import os
import secrets


def _load_secret() -> str:
    secret = os.environ.get("SR_STUDIO_SECRET")
    if secret:
        return secret
    return secrets.token_urlsafe(64)


class BaseConfig:
    SECRET_KEY = _load_secret()
    # overridden by site.max_content_length_mb in config.yml
    MAX_CONTENT_LENGTH = 25 * 1024 * 1024
    # results arrive as base64 data URLs; previews of local picks are blob URLs
    RESPONSE_HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Content-Security-Policy": (
            "default-src 'self'; img-src 'self' data: blob:; frame-ancestors 'none'"
        ),
        "Referrer-Policy": "no-referrer",
    }


class TestingConfig(BaseConfig):
    TESTING = True


__all__ = ["BaseConfig", "TestingConfig"]
