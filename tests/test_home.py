import json
import re

from app import create_app


def test_home_lists_plugins():
    app = create_app("TestingConfig")
    client = app.test_client()
    response = client.get("/")
    assert response.status_code == 200
    body = response.get_data(as_text=True)
    match = re.search(
        r'<script id="app-state" type="application/json">(.+?)</script>', body, re.S
    )
    assert match is not None
    state = json.loads(match.group(1))
    titles = [item["title"] for item in state.get("manifests", [])]
    assert "Super Resolution" in titles
    assert state["manifests"][0]["href"] == "/super_resolution/"
    assert state.get("page") == "home"
    csp = response.headers["Content-Security-Policy"]
    assert "img-src 'self' data: blob:" in csp
    assert "unsafe-inline" not in csp
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers.get("X-Request-ID")


def test_plugin_settings_are_copied_per_app():
    first = create_app("TestingConfig")
    first.config["PLUGIN_SETTINGS"].setdefault("super_resolution", {})["enabled"] = False
    second = create_app("TestingConfig")
    assert second.config["PLUGIN_SETTINGS"].get("super_resolution", {}).get("enabled", True) is True
