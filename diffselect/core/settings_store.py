#!/usr/bin/env python3
from __future__ import annotations

import json
import os
from pathlib import Path

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

DEFAULT_SETTINGS: dict[str, object] = {
    "context_lines": 3,
    "default_include": "all",
    "log_level": "WARNING",
}


def get_settings_path() -> Path:
    if os.name == "nt":
        base = os.environ.get("APPDATA")
        if base:
            return Path(base) / "diffselect" / "settings.json"
        return Path.home() / "AppData" / "Roaming" / "diffselect" / "settings.json"
    base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(base) / "diffselect" / "settings.json"


def _coerce_int(value: object, default: int, minimum: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if parsed < minimum:
        return default
    return parsed


def _coerce_choice(value: object, default: str, choices: tuple[str, ...], upper: bool = False) -> str:
    if not isinstance(value, str):
        return default
    candidate = value.strip().upper() if upper else value.strip().lower()
    return candidate if candidate in choices else default


def sanitize_settings(raw: dict[str, object]) -> dict[str, object]:
    data = dict(DEFAULT_SETTINGS)
    data["context_lines"] = _coerce_int(
        raw.get("context_lines"),
        int(DEFAULT_SETTINGS["context_lines"]),
        minimum=0,
    )
    data["default_include"] = _coerce_choice(
        raw.get("default_include"),
        str(DEFAULT_SETTINGS["default_include"]),
        ("all", "none"),
    )
    data["log_level"] = _coerce_choice(
        raw.get("log_level"),
        str(DEFAULT_SETTINGS["log_level"]),
        LOG_LEVELS,
        upper=True,
    )
    return data


def load_settings(path: Path) -> dict[str, object]:
    if not path.exists():
        return dict(DEFAULT_SETTINGS)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return dict(DEFAULT_SETTINGS)
    if not isinstance(raw, dict):
        return dict(DEFAULT_SETTINGS)
    return sanitize_settings(raw)


def save_settings(path: Path, settings: dict[str, object]) -> None:
    merged = dict(DEFAULT_SETTINGS)
    merged.update(settings)
    data = sanitize_settings(merged)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(data, ensure_ascii=False, indent=2)
    path.write_text(payload, encoding="utf-8")
