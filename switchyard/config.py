"""
Configuration and Logging Setup

Settings are read from environment variables, after loading a .env file
with python-dotenv. Server definitions live in a separate JSON file using
the common {"mcpServers": {...}} layout.
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

DEFAULT_DB_PATH = Path.cwd() / "switchyard.db"
DEFAULT_EMBEDDING_MODEL = "google/embeddinggemma-300m"
DEFAULT_CALL_TIMEOUT = 60.0
DEFAULT_SESSION_ID = "api-session"

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(message)s'

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    smart_routing_enabled: bool = False
    db_path: Path = DEFAULT_DB_PATH
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_device: str = "cpu"
    servers_file: Optional[Path] = None
    call_timeout: float = DEFAULT_CALL_TIMEOUT
    log_level: str = "INFO"
    log_file: Optional[Path] = None


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _env_path(name: str) -> Optional[Path]:
    value = os.environ.get(name)
    return Path(value).expanduser() if value else None


def load_settings(env_path: Optional[Path] = None) -> Settings:
    """Load settings from the environment (and an optional .env file)."""
    load_dotenv(dotenv_path=env_path)

    timeout_raw = os.environ.get("SWITCHYARD_CALL_TIMEOUT")
    try:
        call_timeout = float(timeout_raw) if timeout_raw else DEFAULT_CALL_TIMEOUT
    except ValueError:
        raise ValueError(f"SWITCHYARD_CALL_TIMEOUT must be a number, got {timeout_raw!r}")

    return Settings(
        smart_routing_enabled=_env_bool("SWITCHYARD_SMART_ROUTING"),
        db_path=_env_path("SWITCHYARD_DB_PATH") or DEFAULT_DB_PATH,
        embedding_model=os.environ.get("SWITCHYARD_EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
        embedding_device=os.environ.get("SWITCHYARD_EMBEDDING_DEVICE", "cpu"),
        servers_file=_env_path("SWITCHYARD_SERVERS_FILE"),
        call_timeout=call_timeout,
        log_level=os.environ.get("SWITCHYARD_LOG_LEVEL", "INFO").upper(),
        log_file=_env_path("SWITCHYARD_LOG_FILE"),
    )


def configure_logging(settings: Settings):
    """Configure root logging once for the process."""
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT, handlers=handlers)

    # Reduce noise from HTTP and model libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sentence_transformers").setLevel(logging.WARNING)


# ==================== SERVER DEFINITIONS ====================

def resolve_env_vars(data: Any) -> Any:
    """Recursively resolve 'ENV:VAR_NAME', '${VAR_NAME}', or '${input:VAR_NAME}' strings."""
    if isinstance(data, dict):
        return {k: resolve_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [resolve_env_vars(i) for i in data]
    elif isinstance(data, str):
        if data.startswith("ENV:"):
            return os.environ.get(data[4:], data)

        def replace_match(match):
            val = os.environ.get(match.group(1))
            return val if val is not None else match.group(0)

        return re.sub(r'\${(?:input:)?([^}]+)}', replace_match, data)

    return data


def load_server_definitions(path: Path) -> Dict[str, Dict[str, Any]]:
    """
    Read server definitions from a JSON file.

    Accepts either {"mcpServers": {name: {...}}} or a bare {name: {...}}
    mapping. Entries with "enabled": false are skipped.
    """
    with open(path, "r") as f:
        raw = json.load(f)

    servers = raw.get("mcpServers", raw) if isinstance(raw, dict) else None
    if not isinstance(servers, dict):
        raise ValueError(f"{path}: expected an object of server definitions")

    definitions = {}
    for name, entry in servers.items():
        if not isinstance(entry, dict):
            raise ValueError(f"{path}: server '{name}' must be an object")
        if entry.get("enabled", True) is False:
            continue
        definitions[name] = resolve_env_vars(entry)
    return definitions
