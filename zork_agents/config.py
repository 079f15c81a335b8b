"""App configuration (LLM connection, pacing, logging)."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm": {
        "provider_url": "http://localhost:5001",
        "api_key": "",
        "provider_format": "koboldcpp",
        "model": "",
        "timeout": 120.0,
    },
    "step_delay_ms": 800,
    "autoplay_interval_ms": 4000,
    "log_level": "INFO",
}

_SCALAR_KEYS = ("step_delay_ms", "autoplay_interval_ms", "log_level")

# environment variable → key inside the "llm" group
_LLM_ENV = {
    "LLM_PROVIDER_URL": "provider_url",
    "LLM_API_KEY": "api_key",
    "LLM_PROVIDER_FORMAT": "provider_format",
    "LLM_MODEL": "model",
}


def _config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


def _defaults() -> dict[str, Any]:
    return json.loads(json.dumps(_CONFIG_DEFAULTS))


def get_config(data_dir: Path) -> dict[str, Any]:
    """Read config: defaults, then stored values, then environment overrides."""
    config = _defaults()
    path = _config_path(data_dir)
    if path.is_file():
        stored = json.loads(path.read_text())
        if isinstance(stored.get("llm"), dict):
            config["llm"].update(stored["llm"])
        for key in _SCALAR_KEYS:
            if key in stored:
                config[key] = stored[key]

    for env_name, key in _LLM_ENV.items():
        value = os.getenv(env_name)
        if value:
            config["llm"][key] = value
    if os.getenv("LOG_LEVEL"):
        config["log_level"] = os.environ["LOG_LEVEL"]
    return config


def update_config(data_dir: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into the stored config and persist. Returns full config.

    Only stored values are written back; environment overrides stay out of
    the file.
    """
    path = _config_path(data_dir)
    stored: dict[str, Any] = json.loads(path.read_text()) if path.is_file() else {}
    if isinstance(fields.get("llm"), dict):
        stored.setdefault("llm", {}).update(fields["llm"])
    for key in _SCALAR_KEYS:
        if key in fields:
            stored[key] = fields[key]
    data_dir.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(stored, indent=2))
    return get_config(data_dir)
