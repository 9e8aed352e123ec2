"""
Tests for switchyard/config.py
"""
import json
from pathlib import Path

import pytest

from switchyard.config import (
    DEFAULT_CALL_TIMEOUT,
    DEFAULT_DB_PATH,
    load_server_definitions,
    load_settings,
    resolve_env_vars,
)

ENV_VARS = [
    "SWITCHYARD_SMART_ROUTING",
    "SWITCHYARD_DB_PATH",
    "SWITCHYARD_EMBEDDING_MODEL",
    "SWITCHYARD_EMBEDDING_DEVICE",
    "SWITCHYARD_SERVERS_FILE",
    "SWITCHYARD_CALL_TIMEOUT",
    "SWITCHYARD_LOG_LEVEL",
    "SWITCHYARD_LOG_FILE",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Point dotenv at an empty file so a stray .env never leaks in
    env_file = tmp_path / ".env"
    env_file.write_text("")
    return env_file


class TestLoadSettings:
    def test_defaults(self, clean_env):
        settings = load_settings(clean_env)
        assert settings.smart_routing_enabled is False
        assert settings.db_path == DEFAULT_DB_PATH
        assert settings.call_timeout == DEFAULT_CALL_TIMEOUT
        assert settings.servers_file is None
        assert settings.log_level == "INFO"

    def test_environment_overrides(self, clean_env, monkeypatch, tmp_path):
        monkeypatch.setenv("SWITCHYARD_SMART_ROUTING", "true")
        monkeypatch.setenv("SWITCHYARD_DB_PATH", str(tmp_path / "tools.db"))
        monkeypatch.setenv("SWITCHYARD_CALL_TIMEOUT", "12.5")
        monkeypatch.setenv("SWITCHYARD_LOG_LEVEL", "debug")

        settings = load_settings(clean_env)

        assert settings.smart_routing_enabled is True
        assert settings.db_path == tmp_path / "tools.db"
        assert settings.call_timeout == 12.5
        assert settings.log_level == "DEBUG"

    def test_dotenv_file_is_read(self, clean_env):
        clean_env.write_text("SWITCHYARD_SMART_ROUTING=1\n")
        settings = load_settings(clean_env)
        assert settings.smart_routing_enabled is True

    def test_bad_timeout(self, clean_env, monkeypatch):
        monkeypatch.setenv("SWITCHYARD_CALL_TIMEOUT", "soon")
        with pytest.raises(ValueError, match="SWITCHYARD_CALL_TIMEOUT"):
            load_settings(clean_env)


class TestResolveEnvVars:
    def test_all_placeholder_forms(self, monkeypatch):
        monkeypatch.setenv("API_TOKEN", "secret")
        resolved = resolve_env_vars({
            "env": {"TOKEN": "ENV:API_TOKEN"},
            "headers": {"Authorization": "Bearer ${API_TOKEN}"},
            "args": ["--token", "${input:API_TOKEN}"],
            "port": 8080,
        })
        assert resolved == {
            "env": {"TOKEN": "secret"},
            "headers": {"Authorization": "Bearer secret"},
            "args": ["--token", "secret"],
            "port": 8080,
        }

    def test_unset_variables_are_left_alone(self, monkeypatch):
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        assert resolve_env_vars("ENV:NOT_SET_ANYWHERE") == "ENV:NOT_SET_ANYWHERE"
        assert resolve_env_vars("x-${NOT_SET_ANYWHERE}") == "x-${NOT_SET_ANYWHERE}"


class TestServerDefinitions:
    def write(self, tmp_path, data) -> Path:
        path = tmp_path / "servers.json"
        path.write_text(json.dumps(data))
        return path

    def test_mcp_servers_layout(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WEATHER_KEY", "k-1")
        path = self.write(tmp_path, {"mcpServers": {
            "weather": {"url": "https://weather.example/mcp", "headers": {"X-Key": "${WEATHER_KEY}"}},
            "files": {"command": "npx", "args": ["-y", "server-filesystem"]},
            "old": {"command": "old-server", "enabled": False},
        }})

        definitions = load_server_definitions(path)

        assert sorted(definitions) == ["files", "weather"]
        assert definitions["weather"]["headers"] == {"X-Key": "k-1"}

    def test_bare_mapping(self, tmp_path):
        path = self.write(tmp_path, {"files": {"command": "fs-server"}})
        assert load_server_definitions(path) == {"files": {"command": "fs-server"}}

    @pytest.mark.parametrize("data", [[1, 2], {"mcpServers": []}, {"files": "fs-server"}])
    def test_malformed_files(self, tmp_path, data):
        with pytest.raises(ValueError):
            load_server_definitions(self.write(tmp_path, data))
