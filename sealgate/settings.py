import json
import os
from pathlib import Path

from .models import AgentSettings

# Built-in defaults (used to detect if env vars were explicitly changed)
_BUILTIN_DEFAULTS = {
    "api_base": "https://seal.email/api",
    "login_url": "https://seal.email/login?from=extension",
    "allowed_origins": "https://seal.email,http://localhost:3000",
    "extension_id": "seal-extension",
    "gmail_url_pattern": "https://mail.google.com/*",
    "max_envelope_size": "10mb",
}

_ENV_MAPPING = {
    "SEAL_API_BASE": "api_base",
    "SEAL_LOGIN_URL": "login_url",
    "SEAL_ALLOWED_ORIGINS": "allowed_origins",
    "SEAL_EXTENSION_ID": "extension_id",
    "SEAL_GMAIL_URL_PATTERN": "gmail_url_pattern",
    "SEAL_MAX_ENVELOPE_SIZE": "max_envelope_size",
}


def data_dir() -> Path:
    """Directory holding the credential database and the settings file."""
    return Path(os.getenv("SEAL_DATA_DIR", Path.home() / ".seal-agent"))


def settings_file() -> Path:
    return data_dir() / "settings.json"


def _split_origins(value) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    return [o.strip().rstrip("/") for o in value if o and o.strip()]


def _get_env_overrides() -> dict:
    """Return a dict of settings where the env var differs from its built-in default.
    These should always win over persisted settings."""
    overrides = {}
    for env_key, setting_key in _ENV_MAPPING.items():
        raw = os.getenv(env_key)
        if raw is not None and raw != _BUILTIN_DEFAULTS[setting_key]:
            overrides[setting_key] = raw
    return overrides


def load_settings() -> AgentSettings:
    """Load settings from file, then apply any explicit env-var overrides."""
    settings = {key: os.getenv(env_key, _BUILTIN_DEFAULTS[key]) for env_key, key in _ENV_MAPPING.items()}

    # Load persisted settings (overwrites defaults)
    path = settings_file()
    if path.exists():
        try:
            persisted = json.loads(path.read_text())
            settings.update({k: v for k, v in persisted.items() if k in _BUILTIN_DEFAULTS})
        except (json.JSONDecodeError, OSError, AttributeError):
            pass

    # Env-var overrides always win if the user explicitly changed them
    settings.update(_get_env_overrides())
    settings["allowed_origins"] = _split_origins(settings["allowed_origins"])
    return AgentSettings(**settings)
