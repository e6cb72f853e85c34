"""Tests for configuration management."""

from pathlib import Path

import pytest

from nestblue_sync.backends.http import DEFAULT_API_URL
from nestblue_sync.config import Config, resolve_settings
from nestblue_sync.notifications import DEFAULT_WS_URL


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the home directory at a temporary path."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home)
    return home


@pytest.fixture
def local_dir(tmp_path: Path, home: Path) -> Path:
    """Local config directory."""
    return tmp_path / "project" / ".nestblue"


def test_set_get_unset(local_dir: Path) -> None:
    """Test basic config operations persist to YAML."""
    config = Config(config_dir=local_dir)
    config.set("api.url", "http://example.test/api")
    assert config.get("api.url") == "http://example.test/api"

    reloaded = Config(config_dir=local_dir)
    assert reloaded.get("api.url") == "http://example.test/api"

    reloaded.unset("api.url")
    assert Config(config_dir=local_dir).get("api.url") is None
    assert reloaded.get("missing", "fallback") == "fallback"


def test_global_fallback(local_dir: Path, home: Path) -> None:
    """Test local config falls back to global values."""
    Config(use_global=True).set("auth.token", "global-token")
    Config(use_global=True).set("ws.url", "http://global.test")
    local = Config(config_dir=local_dir)
    local.set("ws.url", "http://local.test")

    assert local.get("auth.token") == "global-token"
    assert local.get("ws.url") == "http://local.test"
    assert local.list() == {"auth.token": "global-token", "ws.url": "http://local.test"}
    assert (home / ".nestblue" / "config.yaml").exists()


def test_invalid_yaml(local_dir: Path) -> None:
    """Test that a broken config file is reported."""
    local_dir.mkdir(parents=True)
    (local_dir / "config.yaml").write_text("api.url: [unclosed\n")
    with pytest.raises(ValueError, match="Failed to load config"):
        Config(config_dir=local_dir)


def test_non_mapping_config(local_dir: Path) -> None:
    """Test that a config file must be a mapping."""
    local_dir.mkdir(parents=True)
    (local_dir / "config.yaml").write_text("- a\n- b\n")
    with pytest.raises(ValueError, match="must contain a mapping"):
        Config(config_dir=local_dir)


def test_resolve_defaults(local_dir: Path) -> None:
    """Test defaults when nothing is configured."""
    config = Config(config_dir=local_dir)
    settings = resolve_settings(config, environ={})
    assert settings.api_url == DEFAULT_API_URL
    assert settings.ws_url == DEFAULT_WS_URL
    assert settings.token is None
    assert settings.storage_dir == local_dir / "storage"


def test_environment_overrides_config(local_dir: Path) -> None:
    """Test environment variables take precedence."""
    config = Config(config_dir=local_dir)
    config.set("api.url", "http://config.test/api")
    config.set("auth.token", "config-token")

    settings = resolve_settings(
        config,
        environ={"NESTBLUE_API_URL": "http://env.test/api", "NESTBLUE_STORAGE_DIR": "/tmp/mirror"},
    )

    assert settings.api_url == "http://env.test/api"
    assert settings.token == "config-token"
    assert settings.storage_dir == Path("/tmp/mirror")
