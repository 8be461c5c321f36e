"""
Business configuration

Tunables that product changes without a deploy (nuts prices, free tier
limits, model presets) are kept in app/config/default_config.json, or in the
file named by APP_CONFIG_PATH. The parsed document is cached in memory and
reloaded with refresh_config().
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any

logger = logging.getLogger(__name__)

_lock = Lock()
_config: dict[str, Any] | None = None

_DEFAULT_PATH = Path(__file__).resolve().parents[1] / "config" / "default_config.json"

# Used when the config file is missing or a section is absent
_FALLBACK: dict[str, Any] = {
    "generation": {"nuts_per_image": 10, "nuts_per_video": 50, "default_model": "flux"},
    "rate_limit": {
        "free_generations_limit": 10,
        "rate_limit_seconds": 30,
        "max_ips_per_user": 3,
        "suspicious_ip_threshold": 5,
    },
    "companions": {"max_active": 5, "history_limit": 20},
    "image_models": {},
    "video_models": {},
}


def get_config() -> dict[str, Any]:
    global _config
    with _lock:
        if _config is not None:
            return _config
        _config = _load_from_file()
        return _config


def refresh_config() -> dict[str, Any]:
    global _config
    with _lock:
        _config = _load_from_file()
        return _config


def _load_from_file() -> dict[str, Any]:
    path = Path(os.environ.get("APP_CONFIG_PATH") or _DEFAULT_PATH)
    if not path.exists():
        logger.warning("Config file %s not found, using built-in defaults", path)
        return dict(_FALLBACK)
    data = json.loads(path.read_text(encoding="utf-8"))
    cfg = dict(_FALLBACK)
    if isinstance(data, dict):
        cfg.update(data)
    return cfg


def section(name: str) -> dict[str, Any]:
    """A config section merged over its fallback values"""
    cfg = get_config()
    merged = dict(_FALLBACK.get(name, {}))
    value = cfg.get(name)
    if isinstance(value, dict):
        merged.update(value)
    return merged


def nuts_per_image() -> int:
    return int(section("generation").get("nuts_per_image", 10))


def nuts_per_video() -> int:
    return int(section("generation").get("nuts_per_video", 50))


def public_config() -> dict[str, Any]:
    """Subset of the configuration that clients may read"""
    generation = section("generation")
    rate_limit = section("rate_limit")
    companions = section("companions")
    return {
        "nuts_per_image": int(generation.get("nuts_per_image", 10)),
        "nuts_per_video": int(generation.get("nuts_per_video", 50)),
        "free_generations_limit": int(rate_limit.get("free_generations_limit", 10)),
        "rate_limit_seconds": int(rate_limit.get("rate_limit_seconds", 30)),
        "max_active_companions": int(companions.get("max_active", 5)),
        "image_models": sorted(section("image_models").keys()),
    }
