#!/usr/bin/env python3
"""Place the ONNX super-resolution model where config.yml expects it.

Run from the repository root: ``python -m scripts.setup_super_resolution_model``.
"""

from __future__ import annotations

import argparse
import shutil
import sys
import urllib.request
from pathlib import Path
from typing import Mapping

import yaml

from plugins.super_resolution.core import load_settings

DEFAULT_URLS = {
    "super-resolution-10": (
        "https://github.com/onnx/models/raw/main/validated/vision/super_resolution/"
        "sub_pixel_cnn_2016/model/super-resolution-10.onnx"
    ),
}


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _load_config(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _plugin_settings(config: Mapping[str, object]) -> Mapping[str, object]:
    plugins = config.get("plugins", {}) if isinstance(config, Mapping) else {}
    raw = plugins.get("super_resolution", {}) if isinstance(plugins, Mapping) else {}
    return raw if isinstance(raw, Mapping) else {}


def _copy_model(source: Path, target: Path, *, force: bool) -> None:
    if target.exists() and not force:
        raise FileExistsError(f"{target} already exists (use --force to overwrite)")
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, target)


def _download_model(url: str, target: Path, *, force: bool) -> None:
    if target.exists() and not force:
        raise FileExistsError(f"{target} already exists (use --force to overwrite)")
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = target.with_suffix(target.suffix + ".download")
    try:
        urllib.request.urlretrieve(url, tmp_path)
        tmp_path.replace(target)
    finally:
        tmp_path.unlink(missing_ok=True)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--config",
        type=Path,
        default=_repo_root() / "config.yml",
        help="Path to config.yml",
    )
    parser.add_argument("--source", type=Path, help="Local .onnx file to copy.")
    parser.add_argument(
        "--download",
        action="store_true",
        help="Download the model from the ONNX model zoo.",
    )
    parser.add_argument("--url", help="Override the download URL.")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing model file.",
    )
    args = parser.parse_args(argv)

    settings = load_settings(_plugin_settings(_load_config(args.config)), root=_repo_root())
    spec = settings.model

    if not args.source and not args.download:
        raise SystemExit("Provide --source or --download to install the model.")

    try:
        if args.source:
            if not args.source.is_file():
                raise SystemExit(f"Source file not found: {args.source}")
            _copy_model(args.source, spec.path, force=args.force)
            print(f"Copied {args.source} -> {spec.path}")
        else:
            url = args.url or DEFAULT_URLS.get(spec.name)
            if not url:
                raise SystemExit(f"No default URL for model {spec.name}; pass --url")
            _download_model(url, spec.path, force=args.force)
            print(f"Downloaded {spec.name} -> {spec.path}")
    except FileExistsError as exc:
        raise SystemExit(str(exc)) from exc
    return 0


if __name__ == "__main__":
    sys.exit(main())
