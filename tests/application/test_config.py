from pathlib import Path

from flashlite.application.config import AppConfig, resolve_config


def test_defaults(mock_home):
    config = resolve_config()

    assert config.backend == "local"
    assert config.data_file == mock_home / ".local/share/flashlite/store.json"
    assert config.store_url == "http://127.0.0.1:8080"
    assert config.email is None


def test_toml_file_is_loaded(mock_home):
    cfg = mock_home / ".config/flashlite/config.toml"
    cfg.parent.mkdir(parents=True)
    cfg.write_text('backend = "http"\nstore_url = "https://cards.example.com/"\n')

    config = resolve_config()

    assert config.backend == "http"
    assert config.store_url == "https://cards.example.com"


def test_env_overrides_toml(mock_home, monkeypatch):
    cfg = mock_home / ".flashlite.toml"
    cfg.write_text('local_user = "from-file"\n')
    monkeypatch.setenv("FLASHLITE_LOCAL_USER", "from-env")

    assert resolve_config().local_user == "from-env"


def test_cli_overrides_win_and_none_is_ignored(mock_home, monkeypatch):
    monkeypatch.setenv("FLASHLITE_BACKEND", "http")

    config = resolve_config({"backend": "local", "store_url": None, "data_file": "~/cards.json"})

    assert config.backend == "local"
    assert config.store_url == "http://127.0.0.1:8080"
    assert config.data_file == Path(mock_home / "cards.json")


def test_app_config_is_settings_model(mock_home):
    assert AppConfig(verbose=3).verbose == 3
