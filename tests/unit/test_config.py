"""Unit tests for config.py"""

import pytest

from one2mp.config import HaloSite, Settings, WechatAccount, load_config


def test_load_config_uses_env_db_url(monkeypatch, tmp_path):
    """ONE2MP_DB_URL env var is picked up by load_config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ONE2MP_DB_URL", "sqlite:///env.db")
    settings = load_config()
    assert settings.db_url == "sqlite:///env.db"


def test_load_config_env_overrides_config_yaml(tmp_path, monkeypatch):
    """ONE2MP_DB_URL takes precedence over config.yaml db_url."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("db_url: 'sqlite:///project.db'\n")
    monkeypatch.setenv("ONE2MP_DB_URL", "sqlite:///override.db")
    settings = load_config()
    assert settings.db_url == "sqlite:///override.db"


def test_load_config_cli_overrides_env(monkeypatch, tmp_path):
    """A non-None CLI override beats the env var; None overrides are ignored."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ONE2MP_DB_URL", "sqlite:///env.db")
    settings = load_config(overrides={"db_url": "sqlite:///cli.db", "vault_dir": None})
    assert settings.db_url == "sqlite:///cli.db"
    assert settings.vault_dir == "."


def test_load_config_defaults(monkeypatch, tmp_path):
    """Defaults apply when no config.yaml, env var, or override exists."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ONE2MP_DB_URL", raising=False)
    settings = load_config()
    assert settings.db_url == "sqlite:///one2mp.db"
    assert settings.redbook_export_label == "小红书导出"
    assert settings.svg_upload_threshold == 10000


def test_load_config_invalid_yaml(tmp_path, monkeypatch):
    """load_config raises ValueError when config.yaml contains invalid YAML."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("key: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid config.yaml"):
        load_config()


def test_load_config_env_timeout_coerced(monkeypatch, tmp_path):
    """ONE2MP_CALLOUT_TIMEOUT is coerced to float."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ONE2MP_CALLOUT_TIMEOUT", "2.5")
    assert load_config().callout_timeout == 2.5


def test_load_config_rejects_bad_log_level(monkeypatch, tmp_path):
    """An unknown log level is a configuration error."""
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ValueError, match="Invalid configuration"):
        load_config(overrides={"log_level": "LOUD"})


def test_accounts_and_sites_from_yaml(tmp_path, monkeypatch):
    """Nested account and site lists load from config.yaml."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text(
        "accounts:\n  - {name: a, app_id: x, app_secret: y}\n"
        "halo_sites:\n  - {name: blog, url: 'https://h.example', token: t}\n",
        encoding="utf-8",
    )
    settings = load_config()
    assert settings.accounts[0].app_id == "x"
    assert settings.halo_sites[0].url == "https://h.example"


def test_account_lookup_uses_selection():
    """account() returns the named account, else the selected one, else None."""
    s = Settings(accounts=[WechatAccount(name="a", app_id="1", app_secret="2")])
    assert s.account() is None
    assert s.account("a").app_id == "1"
    s.selected_account = "a"
    assert s.account().name == "a"


def test_halo_site_falls_back_to_first():
    """halo_site() falls back to the first site when the selection is unknown."""
    s = Settings(
        halo_sites=[HaloSite(name="one", url="u1"), HaloSite(name="two", url="u2")],
        selected_halo_site="missing",
    )
    assert s.halo_site().name == "one"
    assert s.halo_site("two").url == "u2"
    assert Settings().halo_site() is None
