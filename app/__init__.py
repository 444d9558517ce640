"""Application factory for the Super Resolution Studio."""

from __future__ import annotations

import importlib
import os
import pkgutil
from pathlib import Path
from typing import Iterable

import yaml
from flask import Flask, render_template, url_for

from common.logging import get_logger, install_request_logging

from . import config as config_module
from .blueprints import register_plugin_blueprints

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yml"

logger = get_logger("app")


def _config_path() -> Path:
    override = os.getenv("SR_STUDIO_CONFIG")
    return Path(override).expanduser() if override else CONFIG_PATH


def _load_yaml_config() -> dict:
    path = _config_path()
    if not path.exists():
        logger.warning("config file %s not found; using defaults", path)
        return {}
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _discover_plugins(package: str = "plugins") -> Iterable[str]:
    """Yield import paths for all plugin packages."""

    package_path = Path(__file__).resolve().parent.parent / package
    if not package_path.exists():
        return []
    for module_info in pkgutil.iter_modules([str(package_path)]):
        if module_info.ispkg:
            yield f"{package}.{module_info.name}"


def _load_manifests(plugin_settings: dict) -> list[dict[str, str]]:
    manifests: list[dict[str, str]] = []
    for dotted in _discover_plugins():
        module = importlib.import_module(dotted)
        manifest = getattr(module, "manifest", None)
        if not manifest:
            continue
        entry = dict(manifest)
        plugin_config = plugin_settings.get(entry.get("blueprint"), {}) or {}
        if plugin_config.get("summary"):
            entry["summary"] = plugin_config["summary"]
        manifests.append(entry)
    manifests.sort(key=lambda item: item["title"].lower())
    return manifests


def create_app(config_name: str | None = None) -> Flask:
    """Create and configure the Flask application instance."""

    app = Flask(__name__, static_folder="ui/static", template_folder="ui/templates")
    app.config.from_object(config_module.BaseConfig)

    yaml_config = _load_yaml_config()
    site_settings = yaml_config.get("site", {}) or {}
    plugin_settings = yaml_config.get("plugins", {}) or {}

    app.config["SITE_SETTINGS"] = site_settings
    if "max_content_length_mb" in site_settings:
        try:
            max_bytes = int(float(site_settings["max_content_length_mb"]) * 1024 * 1024)
            app.config["MAX_CONTENT_LENGTH"] = max_bytes
        except (TypeError, ValueError):
            logger.warning("ignoring invalid max_content_length_mb=%r", site_settings["max_content_length_mb"])

    # copied so tests can tweak one app's plugin settings without touching another's
    app.config["PLUGIN_SETTINGS"] = {
        name: dict(value) if isinstance(value, dict) else value
        for name, value in plugin_settings.items()
    }

    if config_name:
        config_obj = getattr(config_module, config_name, None)
        if config_obj:
            app.config.from_object(config_obj)

    install_request_logging(app)
    register_plugin_blueprints(app)
    app.config["PLUGIN_MANIFESTS"] = _load_manifests(plugin_settings)

    @app.after_request
    def apply_response_headers(response):
        """Attach strict security headers to every outgoing response."""

        configured = app.config.get("RESPONSE_HEADERS", {})
        for header, value in configured.items():
            if header not in response.headers:
                response.headers[header] = value
        return response

    def _nav_plugins() -> list[dict]:
        entries: list[dict] = []
        for manifest in app.config.get("PLUGIN_MANIFESTS", []):
            entry = dict(manifest)
            blueprint = entry.get("blueprint")
            if blueprint:
                entry["href"] = url_for(f"{blueprint}.index")
            entries.append(entry)
        return entries

    @app.context_processor
    def inject_navigation():
        return {
            "nav_plugins": _nav_plugins(),
            "site_settings": app.config.get("SITE_SETTINGS", {}),
        }

    @app.route("/")
    def home() -> str:
        state = {"page": "home", "manifests": _nav_plugins()}
        return render_template("home.html", initial_state=state)

    @app.errorhandler(400)
    def bad_request(error):  # pragma: no cover - simple template rendering
        return render_template("errors/400.html"), 400

    @app.errorhandler(413)
    def payload_too_large(error):  # pragma: no cover
        return render_template("errors/413.html"), 413

    @app.errorhandler(500)
    def server_error(error):  # pragma: no cover
        return render_template("errors/500.html"), 500

    logger.info("application created with %d plugin(s)", len(app.config["PLUGIN_MANIFESTS"]))
    return app


__all__ = ["create_app"]
