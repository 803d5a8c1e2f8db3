from __future__ import annotations

from pathlib import Path

import pytest

from userdirectory.config import DEFAULT_PORT, load_settings


def test_defaults_when_no_config_file(tmp_path: Path) -> None:
    settings = load_settings(environ={"USERS_CONFIG_PATH": str(tmp_path / "missing.yaml")})

    assert settings.port == DEFAULT_PORT
    assert settings.cors_origins == ("*",)
    assert settings.log_level == "INFO"
    assert settings.database_path.name == "users.sqlite3"


def test_yaml_values_are_loaded(tmp_path: Path) -> None:
    config_path = tmp_path / "settings.yaml"
    config_path.write_text(
        "database_path: data/users.sqlite3\n"
        "port: 8080\n"
        "cors_origins:\n"
        "  - http://localhost:5173\n"
        "log_level: debug\n"
        "api_url: http://api.internal:8080/\n",
        encoding="utf-8",
    )

    settings = load_settings(config_path, environ={})

    assert settings.database_path == (tmp_path / "data" / "users.sqlite3").resolve()
    assert settings.port == 8080
    assert settings.cors_origins == ("http://localhost:5173",)
    assert settings.log_level == "DEBUG"
    assert settings.api_url == "http://api.internal:8080"


def test_environment_overrides_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "settings.yaml"
    config_path.write_text("port: 8080\nhost: 127.0.0.1\n", encoding="utf-8")

    settings = load_settings(
        config_path,
        environ={
            "USERS_PORT": "9000",
            "USERS_DB_PATH": str(tmp_path / "env.sqlite3"),
            "USERS_CORS_ORIGINS": "https://a.example, https://b.example",
        },
    )

    assert settings.port == 9000
    assert settings.host == "127.0.0.1"
    assert settings.database_path == (tmp_path / "env.sqlite3").resolve()
    assert settings.cors_origins == ("https://a.example", "https://b.example")


@pytest.mark.parametrize(
    "environ",
    [{"USERS_PORT": "not-a-port"}, {"USERS_PORT": "70000"}, {"USERS_LOG_LEVEL": "loud"}],
)
def test_invalid_values_raise(tmp_path: Path, environ) -> None:
    environ = {"USERS_CONFIG_PATH": str(tmp_path / "missing.yaml"), **environ}
    with pytest.raises(ValueError):
        load_settings(environ=environ)


def test_explicit_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "absent.yaml", environ={})
