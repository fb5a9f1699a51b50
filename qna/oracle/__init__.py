"""
Question Oracle
===============

Adapter to the external question-generation service: wire schemas, the
normalizing client, and the LLM and scripted transports.
"""

from .schemas import (
    FALLBACK_QUESTION,
    HistoryEntry,
    KnowledgeExcerpt,
    ParentContext,
    OracleRequest,
    OracleResponse,
    OracleResult,
)
from .client import OracleClient, normalize_response
from .llm_transport import LLMTransport
from .scripted import ScriptedTransport

__all__ = [
    "FALLBACK_QUESTION",
    "HistoryEntry",
    "KnowledgeExcerpt",
    "ParentContext",
    "OracleRequest",
    "OracleResponse",
    "OracleResult",
    "OracleClient",
    "normalize_response",
    "LLMTransport",
    "ScriptedTransport",
]
