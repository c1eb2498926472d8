from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

ENVIRONMENT_CONFIG_NAMES = ("environment.yaml", "environment.yml")
OVERLAY_KEY = "environments"


def find_project_root(start: str | os.PathLike[str] | None = None) -> str:
    start_path = Path(start or os.getcwd()).resolve()
    if start_path.is_file():
        start_path = start_path.parent

    markers = ("package.json", "config")
    for candidate in (start_path, *start_path.parents):
        if (candidate / "package.json").is_file():
            return str(candidate)
        if (candidate / "config").is_dir() and (candidate / "src").is_dir():
            return str(candidate)

    raise FileNotFoundError(
        "Cannot locate project root: searched from "
        f"{start_path} for {', '.join(markers)}"
    )


def _load_yaml_mapping(path: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        try:
            payload = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"{path} must contain a YAML mapping (type={type(payload).__name__})")
    return dict(payload)


def _kind(value: Any) -> str:
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, (list, tuple)):
        return "list"
    return "scalar"


def _overlay(base: Any, overlay: Any, *, key_path: str) -> Any:
    """Apply an environment overlay: mappings merge key by key, everything else is replaced."""

    if base is None or overlay is None:
        return overlay
    if _kind(base) != _kind(overlay):
        raise ValueError(
            f"Environment overlay changes the shape of {key_path or '<root>'}: "
            f"{_kind(base)} -> {_kind(overlay)}"
        )
    if not isinstance(base, Mapping):
        return list(overlay) if isinstance(overlay, (list, tuple)) else overlay

    merged: dict[str, Any] = dict(base)
    for key, value in overlay.items():
        merged[key] = _overlay(base.get(key), value, key_path=f"{key_path}.{key}" if key_path else str(key))
    return merged


def load_environment_config(
    config_dir: str | os.PathLike[str], environment: str
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Load the application configuration for `environment`.

    Reads `config/environment.yaml` (or `.yml`). Top-level keys apply to every
    environment; `environments.<name>` is deep-merged on top for the active one.
    A missing file yields an empty configuration.
    """

    directory = Path(config_dir)
    config_path: Path | None = None
    for name in ENVIRONMENT_CONFIG_NAMES:
        candidate = directory / name
        if candidate.is_file():
            config_path = candidate
            break

    if config_path is None:
        return {}, {"mode": "missing", "paths": [], "environment": environment}

    raw = _load_yaml_mapping(str(config_path))
    overlays = raw.pop(OVERLAY_KEY, None) or {}
    if not isinstance(overlays, Mapping):
        raise ValueError(f"{config_path}: {OVERLAY_KEY} must be a mapping of environment names")

    cfg = raw
    mode = "base"
    overlay = overlays.get(environment)
    if overlay is not None:
        if not isinstance(overlay, Mapping):
            raise ValueError(f"{config_path}: {OVERLAY_KEY}.{environment} must be a mapping")
        cfg = _overlay(cfg, dict(overlay), key_path="")
        mode = f"base+{environment}"

    meta = {"mode": mode, "paths": [str(config_path.resolve())], "environment": environment}
    return cfg, meta


def read_package_name(project_root: str | os.PathLike[str]) -> str | None:
    package_path = Path(project_root) / "package.json"
    if not package_path.is_file():
        return None
    try:
        payload = json.loads(package_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {package_path}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ValueError(f"{package_path} must contain a JSON object")
    name = payload.get("name")
    if name is None:
        return None
    if not isinstance(name, str) or not name.strip():
        raise ValueError(f"{package_path}: name must be a non-empty string")
    return name.strip()


def load_options_file(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Read build options from a YAML (or JSON) file."""

    return _load_yaml_mapping(os.fspath(path))
