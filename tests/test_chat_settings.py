import pytest

from HealthChat.services import chat_settings
from HealthChat.services.chat_settings import MODE_AI, MODE_MOCK, ChatSettings
from HealthChat.services.openai_compatible_client import PROVIDER_CFG, get_async_openai_compatible_client


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for cfg in PROVIDER_CFG.values():
        monkeypatch.delenv(cfg["env"], raising=False)
    for name in ("CHAT_PROVIDER", "CHAT_MODEL", "CHAT_PROVIDER_TIMEOUT_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(chat_settings, "_singleton", None)


def test_no_credential_means_mock_mode():
    settings = ChatSettings.from_env()

    assert settings.mode == MODE_MOCK
    assert settings.provider == "gemini"
    assert settings.api_key is None


def test_credential_switches_to_ai_mode(monkeypatch):
    monkeypatch.setenv("CHAT_PROVIDER", "OpenAI")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("CHAT_MODEL", "gpt-test")
    monkeypatch.setenv("CHAT_PROVIDER_TIMEOUT_SECONDS", "7.5")

    settings = ChatSettings.from_env()

    assert settings.mode == MODE_AI
    assert settings.provider == "openai"
    assert settings.model == "gpt-test"
    assert settings.timeout_seconds == 7.5


def test_bad_timeout_uses_default(monkeypatch):
    monkeypatch.setenv("CHAT_PROVIDER_TIMEOUT_SECONDS", "soon")

    assert ChatSettings.from_env().timeout_seconds == chat_settings.DEFAULT_PROVIDER_TIMEOUT_SECONDS


def test_unknown_provider_falls_back_to_mock(monkeypatch):
    monkeypatch.setenv("CHAT_PROVIDER", "mistral")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    settings = ChatSettings.from_env()

    assert settings.mode == MODE_MOCK
    assert settings.provider == "gemini"
    assert settings.api_key is None
    assert chat_settings.get_chat_settings().mode == MODE_MOCK


def test_settings_are_resolved_once(monkeypatch):
    first = chat_settings.get_chat_settings()
    monkeypatch.setenv("GEMINI_API_KEY", "late-key")

    assert chat_settings.get_chat_settings() is first
    assert first.mode == MODE_MOCK


def test_client_requires_key():
    with pytest.raises(ValueError):
        get_async_openai_compatible_client("gemini")

    client = get_async_openai_compatible_client("gemini", api_key="k", timeout=3.0)
    assert "generativelanguage.googleapis.com" in str(client.base_url)
