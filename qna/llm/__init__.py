"""
LLM Provider Configuration
==========================

Provider registry and collaborator role defaults shared by every LLM-backed
adapter (question oracle, requirements synthesizer, mockup generator,
knowledge-base processor).
"""

from .llm_providers import (
    PROVIDER_REGISTRY,
    ROLE_MODELS,
    get_provider_config,
    get_model_config,
    get_default_config,
    list_providers,
    validate_provider_setup,
)

__all__ = [
    "PROVIDER_REGISTRY",
    "ROLE_MODELS",
    "get_provider_config",
    "get_model_config",
    "get_default_config",
    "list_providers",
    "validate_provider_setup",
]
