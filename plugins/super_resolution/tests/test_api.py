import base64
from io import BytesIO

import pytest
from PIL import Image

from app import create_app
from plugins.super_resolution import api as api_module
from plugins.super_resolution.core import RESULT_CAPTION, SuperResolutionModelError

API = "/api/v1/super_resolution"


@pytest.fixture
def make_client(monkeypatch, factory_cls):
    apps = []

    def _make(factory=None, **overrides):
        factory = factory or factory_cls()
        monkeypatch.setattr(api_module, "make_session_factory", lambda *_args, **_kwargs: factory)
        app = create_app("TestingConfig")
        app.config["PLUGIN_SETTINGS"]["super_resolution"] = {
            "enabled": True,
            "preload": False,
            "max_upload_mb": 1,
            "sample_image": "tests/data/missing-sample.png",
            **overrides,
        }
        apps.append(app)
        return app.test_client()

    yield _make
    for app in apps:
        page = app.extensions.get(api_module.EXTENSION_KEY)
        if page is not None:
            page.close()


def test_health_endpoint_reports_status(make_client):
    client = make_client()
    response = client.get(f"{API}/health")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["success"] is True
    data = payload["data"]
    assert data["status"] == "ok"
    assert data["model_name"] == "super-resolution-10"
    assert data["session_state"] == "no_session"
    assert data["provider"] == "CPU"


def test_state_lists_cpu_first(make_client):
    client = make_client()
    data = client.get(f"{API}/state").get_json()["data"]
    assert data["provider_options"][0] == "CPU"
    assert data["selected_provider"] == "CPU"
    assert data["selector_enabled"] is True
    assert data["busy"] is False
    assert data["alerts"] == []


def test_run_sample_returns_before_and_after(make_client):
    client = make_client()
    response = client.post(f"{API}/run", data={"mode": "sample"})
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["ran"] is True
    assert data["mode"] == "sample"
    assert data["provider"] == "CPU"
    assert data["caption"] == RESULT_CAPTION
    assert data["session_state"] == "ready"
    before = Image.open(BytesIO(base64.b64decode(data["before_base64"])))
    after = Image.open(BytesIO(base64.b64decode(data["after_base64"])))
    assert after.size == (before.width * 2, before.height * 2)
    assert data["after_mimetype"] == "image/png"

    image = client.get(f"{API}/result/after")
    assert image.status_code == 200
    assert image.mimetype == "image/png"
    assert image.data.startswith(b"\x89PNG")


def test_run_pick_with_upload(make_client, make_png):
    client = make_client()
    data = {"mode": "pick", "image": (BytesIO(make_png(size=(10, 10))), "photo.png")}
    response = client.post(f"{API}/run", data=data, content_type="multipart/form-data")
    assert response.status_code == 200
    payload = response.get_json()["data"]
    after = Image.open(BytesIO(base64.b64decode(payload["after_base64"])))
    assert after.size == (20, 20)


def test_run_pick_without_upload_does_nothing(make_client, factory_cls):
    factory = factory_cls()
    client = make_client(factory)
    response = client.post(f"{API}/run", data={"mode": "pick"})
    assert response.status_code == 200
    assert response.get_json()["data"]["ran"] is False
    assert factory.calls == []
    assert client.get(f"{API}/result/after").status_code == 404


def test_run_rejects_unknown_file_signature(make_client):
    client = make_client()
    data = {"mode": "capture", "image": (BytesIO(b"GIF89a-nope"), "photo.gif")}
    response = client.post(f"{API}/run", data=data, content_type="multipart/form-data")
    assert response.status_code == 400
    assert response.get_json()["error"]["code"] == "super_resolution.invalid_upload"


def test_run_rejects_oversized_upload(make_client):
    client = make_client()
    blob = b"\x89PNG\r\n\x1a\n" + b"\x00" * (1024 * 1024 + 10)
    data = {"mode": "pick", "image": (BytesIO(blob), "big.png")}
    response = client.post(f"{API}/run", data=data, content_type="multipart/form-data")
    assert response.status_code == 413
    assert response.get_json()["error"]["code"] == "super_resolution.too_large"


def test_session_failure_is_reported_as_alert(make_client, factory_cls):
    factory = factory_cls(fail_with=SuperResolutionModelError("Missing model file: sr.onnx"))
    client = make_client(factory)

    response = client.post(f"{API}/run", data={"mode": "sample"})

    assert response.status_code == 500
    error = response.get_json()["error"]
    assert error["code"] == "super_resolution.model_error"
    assert error["message"] == "Missing model file: sr.onnx"
    state = client.get(f"{API}/state").get_json()["data"]
    assert state["busy"] is False
    assert state["alerts"] == [{"title": "Error", "message": "Missing model file: sr.onnx"}]

    dismissed = client.post(f"{API}/alerts/dismiss").get_json()["data"]
    assert dismissed == {"dismissed": 1}
    assert client.get(f"{API}/state").get_json()["data"]["alerts"] == []


def test_run_response_carries_pending_alerts(make_client, factory_cls, waiter):
    factory = factory_cls(fail_with=SuperResolutionModelError("Missing model file: sr.onnx"))
    client = make_client(factory, preload=True)
    client.get(f"{API}/state")
    assert waiter(lambda: client.get(f"{API}/state").get_json()["data"]["alerts"])

    factory.fail_with = None
    data = client.post(f"{API}/run", data={"mode": "sample"}).get_json()["data"]

    assert data["ran"] is True
    assert data["alerts"] == [{"title": "Error", "message": "Missing model file: sr.onnx"}]


def test_provider_selection_disables_selector_until_ready(make_client, factory_cls, waiter):
    factory = factory_cls(gated=True)
    client = make_client(factory)

    response = client.post(f"{API}/provider", json={"provider": "cpu"})
    assert response.status_code == 202
    data = response.get_json()["data"]
    assert data["selector_enabled"] is False
    assert data["session_state"] == "creating"

    busy = client.post(f"{API}/provider", json={"provider": "CPU"})
    assert busy.status_code == 409
    assert busy.get_json()["error"]["code"] == "super_resolution.selector_busy"

    factory.gate.set()
    assert waiter(lambda: client.get(f"{API}/state").get_json()["data"]["selector_enabled"])
    state = client.get(f"{API}/state").get_json()["data"]
    assert state["session_state"] == "ready"
    assert state["session_provider"] == "CPU"


def test_provider_validation_errors(make_client):
    client = make_client()
    unknown = client.post(f"{API}/provider", json={"provider": "cuda"})
    assert unknown.status_code == 400
    assert unknown.get_json()["error"]["code"] == "super_resolution.invalid_provider"

    missing = client.post(f"{API}/provider", json={})
    assert missing.status_code == 400
    assert missing.get_json()["error"]["code"] == "super_resolution.invalid_request"


def test_disabled_plugin_returns_404(make_client, factory_cls):
    factory = factory_cls()
    client = make_client(factory, enabled=False, preload=True)
    assert client.get(f"{API}/state").status_code == 404
    assert client.post(f"{API}/run", data={"mode": "sample"}).status_code == 404
    assert client.get(f"{API}/result/after").status_code == 404
    dismissed = client.post(f"{API}/alerts/dismiss")
    assert dismissed.status_code == 404
    assert dismissed.get_json()["error"]["code"] == "super_resolution.disabled"
    assert factory.calls == []
    assert api_module.EXTENSION_KEY not in client.application.extensions


def test_page_renders_controls(make_client):
    client = make_client()
    response = client.get("/super_resolution/")
    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert "Execution provider" in body
    assert 'data-mode="capture"' in body
    assert "/api/v1/super_resolution" in body
