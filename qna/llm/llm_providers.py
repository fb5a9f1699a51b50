"""
LLM Provider Configuration Registry

Providers and models the interview collaborators may use. Each provider
declares its key/base-url environment variables and default call options;
model entries only list what differs from those defaults. Role defaults pick
the provider/model for each collaborator (question oracle, requirements
synthesizer and simplifier, mockup generator, knowledge-base processor).
"""

import os
from typing import Any

PROVIDER_REGISTRY: dict[str, dict[str, Any]] = {
    "openai": {
        "api_key_env": "OPENAI_API_KEY",
        "base_url_env": "OPENAI_BASE_URL",
        "defaults": {"max_tokens": 4096, "temperature": 0.7},
        "models": {
            "gpt-4o": {},
            "gpt-4o-mini": {},
            # reasoning models only accept temperature 1
            "o3-mini": {"max_tokens": 25000, "temperature": 1.0, "reasoning_effort": "medium"},
        },
    },
    "anthropic": {
        "api_key_env": "ANTHROPIC_API_KEY",
        "base_url_env": "ANTHROPIC_BASE_URL",
        "defaults": {"max_tokens": 4096, "temperature": 0.7},
        "models": {
            "claude-sonnet-4-20250514": {"max_tokens": 16000, "temperature": 0.3},
            "claude-3-5-sonnet-20241022": {},
        },
    },
    "gemini": {
        "api_key_env": "GEMINI_API_KEY",
        "base_url_env": "GEMINI_BASE_URL",
        "defaults": {"max_tokens": 4096, "temperature": 0.7},
        "models": {
            "gemini-2.0-flash": {},
        },
    },
    "cerebras": {
        "api_key_env": "CEREBRAS_API_KEY",
        "base_url_env": "CEREBRAS_BASE_URL",
        "defaults": {"max_tokens": 4096, "temperature": 0.7},
        "models": {
            "llama3.1-8b": {},
            "qwen-3-32b": {"max_tokens": 32000},
        },
    },
}

# collaborator role -> (provider, model)
ROLE_MODELS: dict[str, tuple[str, str]] = {
    "questions": ("openai", "gpt-4o"),
    "requirements": ("openai", "gpt-4o"),
    "simplify": ("anthropic", "claude-sonnet-4-20250514"),
    "mockup": ("openai", "o3-mini"),
    "knowledge": ("openai", "o3-mini"),
}


def get_provider_config(provider: str) -> dict[str, Any]:
    if provider not in PROVIDER_REGISTRY:
        raise ValueError(f"Unknown provider: {provider}. Available: {list_providers()}")
    return PROVIDER_REGISTRY[provider]


def get_model_config(provider: str, model: str) -> dict[str, Any]:
    """
    Call options for one provider/model pair. `model` in the result carries
    the LiteLLM provider prefix ("openai/gpt-4o").
    """
    provider_config = get_provider_config(provider)
    models = provider_config["models"]
    if model not in models:
        raise ValueError(f"Unknown model '{model}' for provider '{provider}'. Available: {list(models)}")

    return {
        "provider": provider,
        "model": f"{provider}/{model}",
        "api_key_env": provider_config["api_key_env"],
        "base_url_env": provider_config.get("base_url_env"),
        **provider_config["defaults"],
        **models[model],
    }


def list_providers() -> list[str]:
    return list(PROVIDER_REGISTRY)


def get_default_config(role: str = "questions") -> tuple[str, str]:
    """Default provider/model for a collaborator role."""
    if role not in ROLE_MODELS:
        raise ValueError(f"Unknown role '{role}'. Available: {list(ROLE_MODELS)}")
    return ROLE_MODELS[role]


def validate_provider_setup(provider: str, model: str) -> dict[str, Any]:
    """
    Check a provider/model pair before starting a session.

    Returns a report dict; `missing_env_vars` lists unset API key variables.
    """
    try:
        config = get_model_config(provider, model)
    except ValueError as e:
        return {"valid": False, "error": str(e), "provider": provider, "model": model}

    key_env = config["api_key_env"]
    return {
        "valid": True,
        "provider": provider,
        "model": model,
        "config": config,
        "api_key_available": bool(os.getenv(key_env)),
        "missing_env_vars": [key_env] if not os.getenv(key_env) else [],
    }
