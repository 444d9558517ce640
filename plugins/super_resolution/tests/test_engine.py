from io import BytesIO
from pathlib import Path
from types import SimpleNamespace

import numpy as np
import pytest
from PIL import Image

from plugins.super_resolution.core import engine
from plugins.super_resolution.core import (
    ExecutionProvider,
    ModelSpec,
    OrtSuperResolutionSession,
    SuperResolutionInputError,
    SuperResolutionModelError,
)


class FakeOrtSession:
    """Mimics ``onnxruntime.InferenceSession`` for a 3x nearest upscaler."""

    def __init__(self, input_shape=(1, 1, 8, 8), scale=3, output=None):
        self.input_shape = list(input_shape)
        self.scale = scale
        self.output = output
        self.feeds = []

    def get_inputs(self):
        return [SimpleNamespace(name="input", shape=self.input_shape)]

    def get_outputs(self):
        return [SimpleNamespace(name="output", shape=None)]

    def get_providers(self):
        return ["CPUExecutionProvider"]

    def run(self, output_names, feeds):
        assert output_names == ["output"]
        self.feeds.append(feeds)
        if self.output is not None:
            return [self.output]
        tensor = feeds["input"]
        return [np.repeat(np.repeat(tensor, self.scale, axis=2), self.scale, axis=3)]


def _spec(**overrides) -> ModelSpec:
    values = {"name": "test", "path": Path("unused.onnx")}
    values.update(overrides)
    return ModelSpec(**values)


def _image_bytes(size, color=(30, 160, 90), fmt="PNG") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color=color).save(buffer, format=fmt)
    return buffer.getvalue()


def test_tensor_model_upscales_by_model_factor():
    fake = FakeOrtSession()
    session = OrtSuperResolutionSession(_spec(), ExecutionProvider.CPU, fake)

    output = Image.open(BytesIO(session.run(_image_bytes((8, 8)))))

    assert output.format == "PNG"
    assert output.size == (24, 24)
    tensor = fake.feeds[0]["input"]
    assert tensor.shape == (1, 1, 8, 8)
    assert tensor.dtype == np.float32
    assert 0.0 <= tensor.min() <= tensor.max() <= 1.0


def test_colour_survives_round_trip_through_luma_model():
    session = OrtSuperResolutionSession(_spec(), ExecutionProvider.CPU, FakeOrtSession())
    output = Image.open(BytesIO(session.run(_image_bytes((8, 8), color=(200, 40, 40))))).convert("RGB")
    red, green, blue = output.getpixel((12, 12))
    assert red > 150 and green < 90 and blue < 90


def test_fixed_input_keeps_source_aspect_ratio():
    session = OrtSuperResolutionSession(_spec(), ExecutionProvider.CPU, FakeOrtSession())
    output = Image.open(BytesIO(session.run(_image_bytes((16, 8)))))
    assert output.size == (24, 12)


def test_dynamic_input_uses_native_size():
    fake = FakeOrtSession(input_shape=("N", 1, "H", "W"))
    session = OrtSuperResolutionSession(_spec(input_size=0), ExecutionProvider.CPU, fake)
    output = Image.open(BytesIO(session.run(_image_bytes((10, 6)))))
    assert output.size == (30, 18)


def test_jpeg_output_format():
    session = OrtSuperResolutionSession(
        _spec(output_format="jpg"), ExecutionProvider.CPU, FakeOrtSession()
    )
    assert session.run(_image_bytes((8, 8))).startswith(b"\xff\xd8\xff")


def test_unexpected_output_shape_is_a_model_error():
    fake = FakeOrtSession(output=np.zeros((1, 3, 24, 24), dtype=np.float32))
    session = OrtSuperResolutionSession(_spec(), ExecutionProvider.CPU, fake)
    with pytest.raises(SuperResolutionModelError, match="Unexpected model output shape"):
        session.run(_image_bytes((8, 8)))


def test_invalid_image_is_an_input_error():
    session = OrtSuperResolutionSession(_spec(), ExecutionProvider.CPU, FakeOrtSession())
    with pytest.raises(SuperResolutionInputError):
        session.run(b"not an image")


def test_bytes_model_passes_encoded_image_through():
    encoded_output = _image_bytes((4, 4))
    fake = FakeOrtSession(
        input_shape=["num_bytes"],
        output=np.frombuffer(encoded_output, dtype=np.uint8),
    )
    session = OrtSuperResolutionSession(_spec(kind="bytes"), ExecutionProvider.CPU, fake)
    data = _image_bytes((2, 2))

    assert session.run(data) == encoded_output
    fed = fake.feeds[0]["input"]
    assert fed.dtype == np.uint8
    assert fed.tobytes() == data
    assert session.input_hw is None


def test_create_session_requires_model_file(tmp_path):
    pytest.importorskip("onnxruntime")
    from plugins.super_resolution.core import create_session

    with pytest.raises(SuperResolutionModelError, match="Missing model file"):
        create_session(_spec(path=tmp_path / "absent.onnx"), ExecutionProvider.CPU)


def test_create_session_runs_real_onnx_model(tmp_path):
    onnx = pytest.importorskip("onnx")
    pytest.importorskip("onnxruntime")
    from onnx import TensorProto, helper

    from plugins.super_resolution.core import create_session

    scales = helper.make_tensor("scales", TensorProto.FLOAT, [4], [1.0, 1.0, 3.0, 3.0])
    node = helper.make_node("Resize", ["input", "", "scales"], ["output"], mode="nearest")
    graph = helper.make_graph(
        [node],
        "nearest_upscale",
        [helper.make_tensor_value_info("input", TensorProto.FLOAT, [1, 1, 8, 8])],
        [helper.make_tensor_value_info("output", TensorProto.FLOAT, [1, 1, 24, 24])],
        initializer=[scales],
    )
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])
    model.ir_version = 8
    path = tmp_path / "upscale.onnx"
    onnx.save(model, str(path))

    session = create_session(_spec(path=path), ExecutionProvider.CPU)

    assert session.input_hw == (8, 8)
    assert "CPUExecutionProvider" in session.active_providers
    output = Image.open(BytesIO(session.run(_image_bytes((8, 8)))))
    assert output.size == (24, 24)


class RecordingOrt:
    """Records what ``create_session`` hands to ONNX Runtime."""

    class GraphOptimizationLevel:
        ORT_DISABLE_ALL = "disable_all"
        ORT_ENABLE_BASIC = "enable_basic"
        ORT_ENABLE_EXTENDED = "enable_extended"
        ORT_ENABLE_ALL = "enable_all"

    class SessionOptions:
        def __init__(self):
            self.graph_optimization_level = None
            self.intra_op_num_threads = 0
            self.config_entries = {}

        def add_session_config_entry(self, key, value):
            self.config_entries[key] = value

    def __init__(self):
        self.created = []

    def InferenceSession(self, path, *, sess_options, providers, provider_options):
        self.created.append(
            {
                "path": path,
                "options": sess_options,
                "providers": providers,
                "provider_options": provider_options,
            }
        )
        return FakeOrtSession()


@pytest.fixture
def recording_ort(monkeypatch, tmp_path):
    fake = RecordingOrt()
    monkeypatch.setattr(engine, "ort", fake, raising=False)
    monkeypatch.setattr(engine, "ORT_AVAILABLE", True)
    model = tmp_path / "sr.onnx"
    model.write_bytes(b"onnx")
    return fake, model


def test_xnnpack_session_options(recording_ort):
    fake, model = recording_ort

    session = engine.create_session(
        _spec(path=model), ExecutionProvider.XNNPACK, intra_op_threads=4, graph_optimization="basic"
    )

    created = fake.created[0]
    options = created["options"]
    assert created["path"] == str(model)
    assert options.intra_op_num_threads == 1
    assert options.config_entries == {"session.intra_op.allow_spinning": "0"}
    assert options.graph_optimization_level == "enable_basic"
    assert created["providers"] == ["XnnpackExecutionProvider", "CPUExecutionProvider"]
    assert created["provider_options"] == [{"intra_op_num_threads": "4"}, {}]
    assert session.provider is ExecutionProvider.XNNPACK


def test_cpu_session_options(recording_ort):
    fake, model = recording_ort

    engine.create_session(_spec(path=model), ExecutionProvider.CPU, intra_op_threads=2)
    engine.create_session(_spec(path=model), ExecutionProvider.CPU, graph_optimization="bogus")

    first, second = (entry["options"] for entry in fake.created)
    assert first.intra_op_num_threads == 2
    assert first.config_entries == {}
    assert first.graph_optimization_level == "enable_all"
    assert second.intra_op_num_threads == 0
    assert second.graph_optimization_level == "enable_all"
    assert fake.created[0]["providers"] == ["CPUExecutionProvider"]
    assert fake.created[0]["provider_options"] == [{}]
