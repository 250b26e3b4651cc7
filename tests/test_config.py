import pytest
from code_analyzer.config import ConfigError, Settings

ENV_VARS = [
    "AGENT_PROVIDER", "AGENT_MODEL", "AGENT_DEBUG", "AGENT_MAX_TURNS",
    "OPENAI_API_KEY", "OPENROUTER_API_KEY",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    settings = Settings.from_env()

    assert settings.provider == "openai"
    assert settings.model == "gpt-4o-mini"
    assert settings.max_turns == 25
    assert settings.debug is False
    assert settings.base_url is None
    assert settings.require_api_key() == "sk-test"

def test_environment_values(monkeypatch):
    monkeypatch.setenv("AGENT_PROVIDER", "openrouter")
    monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")
    monkeypatch.setenv("AGENT_MODEL", "anthropic/some-model")
    monkeypatch.setenv("AGENT_DEBUG", "yes")
    monkeypatch.setenv("AGENT_MAX_TURNS", "7")

    settings = Settings.from_env()

    assert settings.base_url == "https://openrouter.ai/api/v1"
    assert settings.api_key == "or-key"
    assert settings.model == "anthropic/some-model"
    assert settings.debug is True
    assert settings.max_turns == 7

def test_overrides_beat_environment(monkeypatch):
    monkeypatch.setenv("AGENT_MODEL", "from-env")
    settings = Settings.from_env(model="from-cli", max_turns=3, debug=None)
    assert settings.model == "from-cli"
    assert settings.max_turns == 3
    assert settings.debug is False

def test_unknown_provider():
    with pytest.raises(ConfigError, match="Unknown provider"):
        Settings.from_env(provider="gemini")

def test_invalid_values_become_config_error(monkeypatch):
    monkeypatch.setenv("AGENT_MAX_TURNS", "zero")
    with pytest.raises(ConfigError, match="Invalid settings"):
        Settings.from_env()

def test_missing_api_key():
    settings = Settings.from_env()
    with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
        settings.require_api_key()
