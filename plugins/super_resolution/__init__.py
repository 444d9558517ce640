"""Super resolution plugin."""

manifest = {
    "title": "Super Resolution",
    "summary": "Upscale a sample, captured or picked photo with an ONNX Runtime model and compare before/after.",
    "blueprint": "super_resolution",
    "category": "Image Enhancement",
}


__all__ = ["manifest"]
