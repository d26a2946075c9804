"""
Utilities for loading the model viewer color palette.
"""
from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml

CONFIG_PATH = Path(
    os.getenv("VIEWER_PALETTE_PATH", Path(__file__).resolve().parents[2] / "config" / "viewer_colors.yaml")
)

Color = Dict[str, int]

DEFAULT_PALETTE: Dict[str, Color] = {
    "neutral": {"r": 255, "g": 255, "b": 255},
    "pending": {"r": 156, "g": 163, "b": 175},
    "confirmed": {"r": 34, "g": 197, "b": 94},
    "missing": {"r": 239, "g": 68, "b": 68},
    "added_from_vehicle": {"r": 59, "g": 130, "b": 246},
    "added_from_model": {"r": 168, "g": 85, "b": 247},
}


def _clamp(value: Any) -> int:
    return max(0, min(255, int(value)))


def _parse_color(raw: Any) -> Color | None:
    if isinstance(raw, dict) and {"r", "g", "b"} <= set(raw):
        return {channel: _clamp(raw[channel]) for channel in ("r", "g", "b")}
    if isinstance(raw, (list, tuple)) and len(raw) == 3:
        return {channel: _clamp(value) for channel, value in zip(("r", "g", "b"), raw)}
    if isinstance(raw, str) and raw.startswith("#") and len(raw) == 7:
        return {
            "r": int(raw[1:3], 16),
            "g": int(raw[3:5], 16),
            "b": int(raw[5:7], 16),
        }
    return None


@lru_cache()
def load_palette_config() -> Dict[str, Any]:
    if not CONFIG_PATH.exists():
        return {}
    with open(CONFIG_PATH, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def get_palette() -> Dict[str, Color]:
    """Default palette overlaid with any valid colors from the YAML file."""
    palette = {name: dict(color) for name, color in DEFAULT_PALETTE.items()}
    for name, raw in (load_palette_config().get("colors") or {}).items():
        color = _parse_color(raw)
        if name in palette and color is not None:
            palette[name] = color
    return palette
