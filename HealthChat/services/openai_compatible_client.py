import os
from typing import Dict, Optional

from openai import AsyncOpenAI


PROVIDER_CFG: Dict[str, Dict[str, Optional[str]]] = {
    "gemini": {"env": "GEMINI_API_KEY", "base_url": "https://generativelanguage.googleapis.com/v1beta/openai"},
    "openai": {"env": "OPENAI_API_KEY", "base_url": None},
    "grok": {"env": "GROK_API_KEY", "base_url": "https://api.x.ai/v1"},
    "anthropic": {"env": "ANTHROPIC_API_KEY", "base_url": "https://api.anthropic.com/v1"},
}

DEFAULT_MODEL = {
    "gemini": "gemini-2.0-flash",
    "openai": "gpt-5-mini",
    "grok": "grok-4-fast",
    "anthropic": "claude-sonnet-4-5",
}


def normalize_provider(provider: Optional[str]) -> str:
    provider_l = (provider or "gemini").strip().lower()
    if provider_l not in PROVIDER_CFG:
        raise ValueError(f"Unsupported provider: {provider_l}")
    return provider_l


# Reads the provider credential from the environment; None means no credential is configured
def provider_api_key(provider: Optional[str]) -> Optional[str]:
    env_var = PROVIDER_CFG[normalize_provider(provider)]["env"]
    if not env_var:
        return None
    return os.getenv(env_var) or None


# Create an async OpenAI-compatible client for the configured provider
def get_async_openai_compatible_client(provider: Optional[str], *, api_key: Optional[str] = None, timeout: Optional[float] = None) -> AsyncOpenAI:
    provider_l = normalize_provider(provider)
    cfg = PROVIDER_CFG[provider_l]

    api_key = api_key or provider_api_key(provider_l)
    if not api_key:
        raise ValueError(f"Missing API key for provider '{provider_l}'. Set {cfg['env']}.")

    kwargs: dict = {"api_key": api_key, "max_retries": 0}
    if cfg["base_url"]:
        kwargs["base_url"] = cfg["base_url"]
    if timeout is not None:
        kwargs["timeout"] = timeout
    return AsyncOpenAI(**kwargs)
