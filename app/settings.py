import copy
import os

import yaml

from constants import CONFIG_FILE, DEFAULT_SETTINGS

import logging

# Retrieve main logger
logger = logging.getLogger("main")

# Environment variables that override settings.yaml: (env name, section, key, cast)
ENV_OVERRIDES = [
    ("IGDB_CLIENT_ID", "apis", "igdb_client_id", str),
    ("IGDB_CLIENT_SECRET", "apis", "igdb_client_secret", str),
    ("IGDB_RATE_LIMIT_DELAY_MS", "apis", "igdb_rate_limit_delay_ms", int),
    ("STEAMGRIDDB_API_KEY", "apis", "steamgriddb_api_key", str),
    ("IGDB_ACTIVE_EXTERNAL_SOURCES", "sync", "active_external_sources", None),
]


def _parse_id_list(value):
    return [int(part) for part in value.split(",") if part.strip().isdigit()]


def _merge_settings(defaults, overrides):
    merged = copy.deepcopy(defaults)
    for section, values in (overrides or {}).items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(values)
        else:
            merged[section] = values
    return merged


def _apply_env_overrides(settings):
    for env_name, section, key, cast in ENV_OVERRIDES:
        raw = os.environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            value = _parse_id_list(raw) if cast is None else cast(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid value for {env_name}: {raw!r}")
            continue
        settings.setdefault(section, {})[key] = value
    return settings


# Cache variable
_cached_settings = None


def load_settings(force=False, config_file=None):
    global _cached_settings

    if _cached_settings and not force and config_file is None:
        return _cached_settings

    path = config_file or CONFIG_FILE
    file_settings = {}
    if os.path.exists(path):
        logger.debug(f"Reading configuration file: {path}")
        with open(path, "r") as yaml_file:
            file_settings = yaml.safe_load(yaml_file) or {}
    else:
        logger.debug(f"No configuration file at {path}, using defaults")

    settings = _apply_env_overrides(_merge_settings(DEFAULT_SETTINGS, file_settings))

    _cached_settings = settings
    return settings


def save_settings(settings, config_file=None):
    path = config_file or CONFIG_FILE
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as yaml_file:
        yaml.dump(settings, yaml_file)
    load_settings(force=True, config_file=config_file)


def verify_settings(settings):
    """Return (success, errors) for the sections the sync pipeline needs."""
    errors = []
    apis = settings.get("apis", {})
    if not apis.get("igdb_client_id") or not apis.get("igdb_client_secret"):
        errors.append({"path": "apis/igdb", "error": "IGDB client id and secret are required."})
    sources = settings.get("sync", {}).get("active_external_sources", [])
    if not isinstance(sources, list) or not all(isinstance(s, int) for s in sources):
        errors.append({"path": "sync/active_external_sources", "error": "Must be a list of IGDB source ids."})
    return not errors, errors
