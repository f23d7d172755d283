from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from HealthChat.services.openai_compatible_client import DEFAULT_MODEL, normalize_provider, provider_api_key

logger = logging.getLogger(__name__)

MODE_AI = "ai"
MODE_MOCK = "mock"

DEFAULT_PROVIDER_TIMEOUT_SECONDS = 20.0


@dataclass(frozen=True)
class ChatSettings:
    mode: str = MODE_MOCK
    provider: str = "gemini"
    model: str = DEFAULT_MODEL["gemini"]
    api_key: Optional[str] = None
    timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS

    # Resolves provider mode from the environment: a credential means "ai", otherwise "mock"
    @classmethod
    def from_env(cls) -> "ChatSettings":
        try:
            provider = normalize_provider(os.getenv("CHAT_PROVIDER"))
        except ValueError as e:
            logger.warning("chat.settings.bad_provider: %s; falling back to mock mode", e)
            return cls()
        api_key = provider_api_key(provider)
        model = os.getenv("CHAT_MODEL") or DEFAULT_MODEL[provider]
        try:
            timeout_seconds = float(os.getenv("CHAT_PROVIDER_TIMEOUT_SECONDS") or DEFAULT_PROVIDER_TIMEOUT_SECONDS)
        except ValueError:
            logger.warning("CHAT_PROVIDER_TIMEOUT_SECONDS is not a number; using %s", DEFAULT_PROVIDER_TIMEOUT_SECONDS)
            timeout_seconds = DEFAULT_PROVIDER_TIMEOUT_SECONDS
        return cls(
            mode=MODE_AI if api_key else MODE_MOCK,
            provider=provider,
            model=model,
            api_key=api_key,
            timeout_seconds=timeout_seconds,
        )


_singleton: Optional[ChatSettings] = None


# Decided once per process; later environment changes are not re-probed
def get_chat_settings() -> ChatSettings:
    global _singleton
    if _singleton is not None:
        return _singleton
    _singleton = ChatSettings.from_env()
    logger.info("chat.settings: mode=%s provider=%s model=%s", _singleton.mode, _singleton.provider, _singleton.model)
    return _singleton
