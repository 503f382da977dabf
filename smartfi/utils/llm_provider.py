"""
LLM provider helpers - API key lists with rotation, and a LangChain chat model
factory switched by the LLM_PROVIDER environment variable.
"""

import os
import logging
from typing import Optional

from dotenv import load_dotenv
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

load_dotenv()
logger = logging.getLogger(__name__)

# Global state to keep track of current key index per provider
_KEY_INDEXES = {"openrouter": 0, "google": 0, "groq": 0}


def get_keys_for_provider(provider: str) -> list:
    """Gets a list of keys from the environment for a given provider."""
    env_var = f"{provider.upper()}_API_KEY"
    raw_val = os.getenv(env_var, "")
    # Support comma-separated keys or multiple lines
    return [k.strip() for k in raw_val.replace(",", " ").split() if k.strip()]


def current_key(provider: str) -> Optional[str]:
    """The key currently selected for the provider, or None when none is configured."""
    keys = get_keys_for_provider(provider)
    if not keys:
        return None
    return keys[_KEY_INDEXES.get(provider, 0) % len(keys)]


def rotate_key(provider: str):
    """Increments the key index for the provider."""
    keys = get_keys_for_provider(provider)
    if len(keys) > 1:
        _KEY_INDEXES[provider] = (_KEY_INDEXES.get(provider, 0) + 1) % len(keys)
        logger.warning(f"Rotating to next {provider} API key (New index: {_KEY_INDEXES[provider]})")


def get_llm(temperature: float = 0.3, model_override: str = None):
    """
    Get LLM instance based on environment variable with multi-key rotation support.
    Raises ValueError when the selected provider has no key configured.
    """
    provider = os.getenv("LLM_PROVIDER", "google").lower()
    if provider == "gemini":
        provider = "google"
    api_key = current_key(provider)

    if provider == "groq":
        from langchain_groq import ChatGroq
        if not api_key:
            raise ValueError("GROQ_API_KEY not set in .env")
        model = model_override or "llama-3.3-70b-versatile"
        return ChatGroq(api_key=api_key, model=model, temperature=temperature, max_retries=1)

    elif provider == "openrouter":
        if not api_key:
            raise ValueError("OPENROUTER_API_KEY not set in .env")
        model = model_override or "openrouter/auto"
        return ChatOpenAI(
            api_key=api_key,
            base_url="https://openrouter.ai/api/v1",
            model=model,
            temperature=temperature,
            max_retries=1
        )

    elif provider == "ollama":
        model = model_override or "llama3"
        return ChatOpenAI(
            base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/v1"),
            api_key="ollama",
            model=model,
            temperature=temperature,
            max_retries=1
        )

    elif provider == "google":
        if not api_key:
            raise ValueError("GOOGLE_API_KEY not set in .env")
        model = model_override or "gemini-2.0-flash"
        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=api_key,
            temperature=temperature,
            max_retries=1
        )

    else:
        raise ValueError(f"Unknown provider: {provider}. Use: groq, openrouter, google, or ollama")


def has_credentials() -> bool:
    """True when the selected provider can be built without a missing key."""
    provider = os.getenv("LLM_PROVIDER", "google").lower()
    if provider == "ollama":
        return True
    if provider == "gemini":
        provider = "google"
    return current_key(provider) is not None
