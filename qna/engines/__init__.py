"""
LLM Engine
==========

Async LiteLLM call helpers used by the oracle transport, the synthesis
adapters and the knowledge-base processor.
"""

from .llm_engine import (
    create_llm_config,
    call_llm,
    get_response_text,
    extract_json,
)

__all__ = [
    "create_llm_config",
    "call_llm",
    "get_response_text",
    "extract_json",
]
