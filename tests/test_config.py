from __future__ import annotations

import pytest

from core.config import DEMO_BASE_URL, PROD_BASE_URL, KalshiConfig, _ENV_OVERRIDES, load_config


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    # setenv-then-delenv makes monkeypatch restore "unset" even if load_dotenv sets it later
    for name in list(_ENV_OVERRIDES) + ["KALSHI_TEST_SECRET"]:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("KALSHI_DESK_HOME", str(tmp_path))
    return tmp_path


def test_defaults_without_files(clean_env):
    config = load_config()
    assert config.server.port == 8080
    assert config.storage.db_path == "data/kalshi.db"
    assert config.refresh.limit == 100
    assert config.refresh.on_start is True
    assert config.alerts.jump_threshold == 5.0
    assert config.alerts.spread_threshold == 10.0
    assert config.kalshi.resolved_base_url == DEMO_BASE_URL
    assert config.home_path == clean_env


def test_yaml_values_and_env_references(clean_env, monkeypatch):
    monkeypatch.setenv("KALSHI_TEST_SECRET", "from-env")
    (clean_env / "config.yaml").write_text(
        "kalshi:\n"
        "  env: prod\n"
        "  api_key: ${KALSHI_TEST_SECRET}\n"
        "alerts:\n"
        "  jump_threshold: 2.5\n"
    )

    config = load_config()

    assert config.kalshi.api_key == "from-env"
    assert config.kalshi.resolved_base_url == PROD_BASE_URL
    assert config.alerts.jump_threshold == 2.5


def test_kalshi_env_vars_override_yaml(clean_env, monkeypatch):
    (clean_env / "config.yaml").write_text("server:\n  port: 9000\n")
    monkeypatch.setenv("KALSHI_PORT", "9100")
    monkeypatch.setenv("KALSHI_REFRESH_ON_START", "false")
    monkeypatch.setenv("KALSHI_ALERT_SPREAD", "7.5")
    monkeypatch.setenv("KALSHI_BASE_URL", "https://example.test/api/")

    config = load_config()

    assert config.server.port == 9100
    assert config.refresh.on_start is False
    assert config.alerts.spread_threshold == 7.5
    assert config.kalshi.resolved_base_url == "https://example.test/api"


def test_dotenv_file_is_loaded(clean_env):
    (clean_env / ".env").write_text("KALSHI_API_KEY=dotenv-key\nKALSHI_REFRESH_LIMIT=25\n")
    config = load_config()
    assert config.kalshi.api_key == "dotenv-key"
    assert config.refresh.limit == 25


def test_empty_override_keeps_default(clean_env, monkeypatch):
    monkeypatch.setenv("KALSHI_DB_PATH", "")
    assert load_config().storage.db_path == "data/kalshi.db"


def test_base_url_selection():
    assert KalshiConfig(env="prod").resolved_base_url == PROD_BASE_URL
    assert KalshiConfig(env="demo").resolved_base_url == DEMO_BASE_URL
    assert KalshiConfig(base_url="http://x/").resolved_base_url == "http://x"


@pytest.mark.parametrize(
    "value,expected",
    [("1", True), ("true", True), ("YES", True), ("0", False), ("enabled", False), ("False", False)],
)
def test_refresh_on_start_parses_leniently(clean_env, monkeypatch, value, expected):
    monkeypatch.setenv("KALSHI_REFRESH_ON_START", value)
    assert load_config().refresh.on_start is expected
