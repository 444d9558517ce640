"""Super resolution API blueprint."""

from __future__ import annotations

from pathlib import Path
from threading import Lock

from flask import Blueprint, Response, current_app, render_template, request, send_file

from common.errors import (
    AppError,
    ConflictAppError,
    InternalAppError,
    UnavailableAppError,
    ValidationAppError,
)
from common.imaging import mimetype_for
from common.io import buffer_from_bytes, read_upload, secure_filename, stream_size, to_base64
from common.responses import fail, ok
from common.validation import SchemaModel, ValidationError, parse_model, validate_mime

from ..core import (
    ImageAcquirer,
    ProviderError,
    SelectorBusyError,
    SuperResolutionInputError,
    SuperResolutionModelError,
    SuperResolutionPage,
    SuperResolutionSettings,
    SuperResolutionUnavailableError,
    import_error,
    is_available,
    load_settings,
    make_session_factory,
    mode_from_text,
)

ALLOWED_MIME = {"image/png", "image/jpeg", "image/webp", "image/bmp"}
EXTENSION_KEY = "super_resolution.page"

api_bp = Blueprint(
    "super_resolution_api", __name__, url_prefix="/api/v1/super_resolution"
)
ui_bp = Blueprint("super_resolution", __name__, url_prefix="/super_resolution")

_PAGE_LOCK = Lock()


class ProviderPayload(SchemaModel):
    provider: str


def _repo_root() -> Path:
    return Path(current_app.root_path).resolve().parent


def _settings() -> SuperResolutionSettings:
    settings = current_app.config.get("PLUGIN_SETTINGS", {}).get("super_resolution", {})
    return load_settings(settings, root=_repo_root())


def _build_page(settings: SuperResolutionSettings) -> SuperResolutionPage:
    factory = make_session_factory(
        settings.model,
        intra_op_threads=settings.intra_op_threads,
        graph_optimization=settings.graph_optimization,
    )
    acquirer = ImageAcquirer(
        sample_image=settings.sample_image,
        max_input_side=settings.max_input_side,
    )
    return SuperResolutionPage(
        factory,
        acquirer,
        default_provider=settings.default_provider,
        preload=settings.preload,
    )


def get_page() -> SuperResolutionPage:
    """The application's page controller, created on first use."""

    page = current_app.extensions.get(EXTENSION_KEY)
    if page is not None:
        return page
    with _PAGE_LOCK:
        page = current_app.extensions.get(EXTENSION_KEY)
        if page is None:
            page = _build_page(_settings())
            current_app.extensions[EXTENSION_KEY] = page
        return page


def _to_app_error(exc: Exception) -> AppError:
    if isinstance(exc, SelectorBusyError):
        return ConflictAppError(message=str(exc), code="super_resolution.selector_busy")
    if isinstance(exc, ProviderError):
        return ValidationAppError(message=str(exc), code="super_resolution.invalid_provider")
    if isinstance(exc, SuperResolutionInputError):
        return ValidationAppError(message=str(exc), code="super_resolution.invalid_input")
    if isinstance(exc, SuperResolutionUnavailableError):
        return UnavailableAppError(message=str(exc), code="super_resolution.unavailable")
    if isinstance(exc, SuperResolutionModelError):
        return InternalAppError(message=str(exc), code="super_resolution.model_error")
    return InternalAppError(message=str(exc), code="super_resolution.inference_failed")


def _disabled() -> Response:
    return fail(
        ValidationAppError(
            message="Super-resolution is disabled in config.yml",
            code="super_resolution.disabled",
        ),
        status=404,
    )


@ui_bp.get("/")
def index() -> str:
    settings = _settings()
    if settings.enabled:
        # building the page starts the default session in the background
        get_page()
    return render_template(
        "super_resolution/index.html",
        enabled=settings.enabled,
        model_name=settings.model.name,
        api_root=api_bp.url_prefix,
    )


@api_bp.get("/health")
def health() -> Response:
    settings = _settings()
    page = current_app.extensions.get(EXTENSION_KEY)
    payload = {
        "status": "ok",
        "runtime_available": is_available(),
        "runtime_error": import_error(),
        "model_name": settings.model.name,
        "model_present": settings.model.path.exists(),
        "session_state": page.lifecycle.state.value if page else "no_session",
        "provider": (page.selected_provider if page else settings.default_provider).value,
    }
    return ok(payload)


@api_bp.get("/state")
def state() -> Response:
    if not _settings().enabled:
        return _disabled()
    return ok(get_page().snapshot())


@api_bp.post("/provider")
def select_provider() -> Response:
    if not _settings().enabled:
        return _disabled()
    try:
        payload = parse_model(ProviderPayload, request.get_json(silent=True))
    except ValidationError as exc:
        return fail(
            ValidationAppError(
                message=str(exc),
                code="super_resolution.invalid_request",
                details={"errors": exc.details} if exc.details else None,
            )
        )

    page = get_page()
    try:
        page.select_provider(payload.provider)
    except (ProviderError, SelectorBusyError) as exc:
        return fail(_to_app_error(exc))
    return ok(page.snapshot(), status=202)


@api_bp.post("/run")
def run() -> Response:
    settings = _settings()
    if not settings.enabled:
        return _disabled()

    mode = mode_from_text(request.form.get("mode"))
    upload: bytes | None = None
    file = request.files.get("image")
    if file and file.filename:
        max_bytes = max(1, settings.max_upload_mb) * 1024 * 1024
        if stream_size(file.stream) > max_bytes:
            return fail(
                ValidationAppError(
                    message=f"File exceeds {settings.max_upload_mb} MB limit",
                    code="super_resolution.too_large",
                ),
                status=413,
            )
        try:
            validate_mime([file], ALLOWED_MIME)
        except ValidationError as exc:
            return fail(
                ValidationAppError(
                    message=str(exc),
                    code="super_resolution.invalid_upload",
                )
            )
        upload = read_upload(file.stream)

    page = get_page()
    try:
        result = page.run(mode, upload)
    except Exception as exc:  # surfaced to the page as an alert
        return fail(_to_app_error(exc))

    if result is None:
        return ok({"mode": mode.value, "ran": False, **page.snapshot()})

    return ok(
        {
            "mode": mode.value,
            "ran": True,
            "provider": result.provider.value if result.provider else None,
            "elapsed_ms": round(result.elapsed_ms, 2),
            "before_base64": to_base64(result.before),
            "before_mimetype": mimetype_for(result.before),
            "after_base64": to_base64(result.after),
            "after_mimetype": mimetype_for(result.after),
            **page.snapshot(),
        }
    )


@api_bp.get("/result/<which>")
def result_image(which: str) -> Response:
    if not _settings().enabled:
        return _disabled()
    if which not in {"before", "after"}:
        return fail(
            ValidationAppError(
                message="Result must be 'before' or 'after'",
                code="super_resolution.invalid_result",
            ),
            status=404,
        )
    page = get_page()
    data = page.before if which == "before" else page.after
    if data is None:
        return fail(
            ValidationAppError(
                message=f"No {which} image available",
                code="super_resolution.no_result",
            ),
            status=404,
        )
    mimetype = mimetype_for(data)
    extension = "jpg" if mimetype == "image/jpeg" else "png"
    return send_file(
        buffer_from_bytes(data),
        mimetype=mimetype,
        as_attachment=request.args.get("download") == "1",
        download_name=secure_filename(f"{which}.{extension}"),
        max_age=0,
    )


@api_bp.post("/alerts/dismiss")
def dismiss_alerts() -> Response:
    if not _settings().enabled:
        return _disabled()
    page = get_page()
    return ok({"dismissed": page.dismiss_alerts()})


blueprints = [ui_bp, api_bp]


__all__ = [
    "blueprints",
    "dismiss_alerts",
    "get_page",
    "health",
    "index",
    "result_image",
    "run",
    "select_provider",
    "state",
]
