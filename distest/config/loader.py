from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

_DEFAULT_DATABASE_URL = "sqlite:///./distest.db"
_DEFAULT_VOTING = {
    "dots_per_voter": 4,
    "estimation_enabled": True,
    "randomize_display_order": True,
}
_DEFAULT_STORE = {
    "namespace_prefix": "dotVoting.",
}
_DEFAULT_MEETING_LINKS = {
    "base_url": "http://localhost:8000/",
    "meeting_param": "distEstMeetingID",
    "admin_prefix": "a-",
    "voter_prefix": "v-",
}
_DEFAULT_ICE_SERVERS = [
    {"urls": "stun:stun.l.google.com:19302"},
]


def load_config() -> Dict[str, Any]:
    """Load the application config from YAML, returning an empty mapping on error."""
    try:
        with _CONFIG_PATH.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
            if isinstance(data, dict):
                return data
            logging.warning(
                "Config file %s is not a mapping; using defaults.", _CONFIG_PATH
            )
            return {}
    except FileNotFoundError:
        logging.warning(
            "Configuration file %s not found; using defaults.", _CONFIG_PATH
        )
        return {}
    except Exception as exc:  # noqa: BLE001
        logging.error("Failed to load configuration from %s: %s", _CONFIG_PATH, exc)
        return {}


def _coerce_positive_int(value: Any, fallback: int) -> int:
    try:
        candidate = int(value)
        return candidate if candidate > 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def _coerce_bool(value: Any, fallback: bool) -> bool:
    if value is None:
        return fallback
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _coerce_str(value: Any, fallback: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return fallback


def get_database_settings() -> Dict[str, str]:
    """
    Return the database URL for the local replica.

    Priority:
    1) DISTEST_DATABASE_URL env var
    2) config.yaml database_url
    3) default sqlite file in the working directory
    """
    env_value = os.getenv("DISTEST_DATABASE_URL")
    if env_value:
        return {"database_url": env_value.strip()}
    config = load_config()
    return {
        "database_url": _coerce_str(config.get("database_url"), _DEFAULT_DATABASE_URL)
    }


def get_voting_defaults() -> Dict[str, Any]:
    """Return dot-voting and estimation defaults sourced from config."""
    config = load_config()
    section = config.get("voting") or {}
    defaults = dict(_DEFAULT_VOTING)
    return {
        "dots_per_voter": _coerce_positive_int(
            section.get("dots_per_voter"), defaults["dots_per_voter"]
        ),
        "estimation_enabled": _coerce_bool(
            section.get("estimation_enabled"), defaults["estimation_enabled"]
        ),
        "randomize_display_order": _coerce_bool(
            section.get("randomize_display_order"),
            defaults["randomize_display_order"],
        ),
    }


def get_store_settings() -> Dict[str, str]:
    """Return replicated store settings sourced from config with safe defaults."""
    config = load_config()
    section = config.get("store") or {}
    prefix = section.get("namespace_prefix")
    if not isinstance(prefix, str):
        prefix = _DEFAULT_STORE["namespace_prefix"]
    return {"namespace_prefix": prefix}


def get_meeting_link_settings() -> Dict[str, str]:
    """Return the settings used to build and parse admin/voter meeting links."""
    config = load_config()
    section = config.get("meeting_links") or {}
    defaults = dict(_DEFAULT_MEETING_LINKS)
    settings = {
        key: _coerce_str(section.get(key), fallback)
        for key, fallback in defaults.items()
    }
    if settings["admin_prefix"] == settings["voter_prefix"]:
        logging.warning(
            "Admin and voter link prefixes are identical; using defaults."
        )
        settings["admin_prefix"] = defaults["admin_prefix"]
        settings["voter_prefix"] = defaults["voter_prefix"]
    return settings


def get_peer_settings() -> Dict[str, List[Dict[str, str]]]:
    """Return the ICE server list handed to the external peer transport."""
    config = load_config()
    section = config.get("peer") or {}
    raw_servers = section.get("ice_servers")
    if not isinstance(raw_servers, list):
        return {"ice_servers": [dict(entry) for entry in _DEFAULT_ICE_SERVERS]}

    servers: List[Dict[str, str]] = []
    for entry in raw_servers:
        if isinstance(entry, str) and entry.strip():
            servers.append({"urls": entry.strip()})
            continue
        if not isinstance(entry, dict):
            continue
        urls = _coerce_str(entry.get("urls"), "")
        if not urls:
            continue
        server = {"urls": urls}
        for key in ("username", "credential"):
            value = entry.get(key)
            if isinstance(value, str) and value:
                server[key] = value
        servers.append(server)
    return {"ice_servers": servers}


def get_default_participant_name() -> str | None:
    """Return a fixed participant name from env/config, if one is configured."""
    env_value = os.getenv("DISTEST_PARTICIPANT_NAME")
    if env_value and env_value.strip():
        return env_value.strip()
    config = load_config()
    value = config.get("participant_name")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
