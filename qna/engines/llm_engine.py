"""
Direct LLM Configuration Utilities

Async LiteLLM calls configured from the provider registry. Separates LLM
configuration concerns from the oracle, synthesis and knowledge-base
adapters that build the prompts.
"""

import json
import os
import re
from typing import Any

import litellm

from ..llm import get_model_config

_PASSTHROUGH_SKIP = {
    "model", "api_key", "base_url", "max_tokens", "temperature",
    "api_key_env", "base_url_env", "provider",
}

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def create_llm_config(provider: str, model_name: str, **kwargs) -> dict[str, Any]:
    """Create LLM configuration dict for direct LLM calls."""
    config = get_model_config(provider, model_name)

    api_key_env = config.get("api_key_env")
    if api_key_env:
        api_key = os.getenv(api_key_env)
        if api_key:
            config["api_key"] = api_key
        else:
            raise ValueError(f"API key not found in environment: {api_key_env}")

    base_url_env = config.get("base_url_env")
    if base_url_env:
        base_url = os.getenv(base_url_env)
        if base_url:
            config["base_url"] = base_url

    # Override with any additional kwargs
    config.update(kwargs)

    return config


async def call_llm(
    messages: list[dict[str, str]],
    provider: str,
    model: str,
    **kwargs
) -> Any:
    """Make a direct async LLM call using LiteLLM."""
    config = create_llm_config(provider, model, **kwargs)

    return await litellm.acompletion(
        model=config["model"],
        messages=messages,
        api_key=config.get("api_key"),
        base_url=config.get("base_url"),
        max_tokens=config.get("max_tokens", 4096),
        temperature=config.get("temperature", 0.7),
        **{k: v for k, v in config.items() if k not in _PASSTHROUGH_SKIP}
    )


def get_response_text(response: Any) -> str:
    """Extract text from LLM response."""
    return response.choices[0].message.content or ""


def extract_json(text: str | None) -> dict[str, Any]:
    """
    Parse the first JSON object in an LLM reply, tolerating markdown fences.

    Raises ValueError when no object can be parsed.
    """
    if not text or not text.strip():
        raise ValueError("empty LLM response")
    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _OBJECT_RE.search(cleaned)
        if not match:
            raise ValueError("no JSON object in LLM response")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ValueError(f"malformed JSON in LLM response: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data
