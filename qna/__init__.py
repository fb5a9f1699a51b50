"""
Adaptive design-interview engine.

Grows a tree of questions and answers about a design prompt, one oracle
question at a time, then compiles the answers into a requirements document
and a UI mockup.

- Node store and topic extraction keep the tree free of duplicate questions
- Traversal policies (BFS/DFS) pick or create the next question
- The oracle client normalizes every question-generation reply
- The session controller and automation loop drive the interview

Version: 1.0.0
"""

QNA_API_VERSION = "1.0.0"

from .types import (
    NodeId,
    QuestionNode,
    HistoryItem,
    TraversalContext,
    TraversalMode,
    OracleMode,
    Confidence,
    AdvanceOutcome,
    Suggestion,
    MAX_DEPTH,
    QnAError,
    InvariantViolation,
    TraversalCancelled,
    SessionError,
    SessionBusyError,
    SynthesisError,
    KnowledgeBaseError,
)

from .interfaces import (
    OracleTransport,
    QuestionOracle,
    TraversalPolicy,
)

from .topics import extract_topics, extract_aspects, child_target

from .oracle import (
    FALLBACK_QUESTION,
    OracleRequest,
    OracleResult,
    OracleClient,
    LLMTransport,
    ScriptedTransport,
)

from .traversals import BreadthFirstPolicy, DepthFirstPolicy, create_traversal_engine

from .orchestrators import (
    AutomationLoop,
    SessionController,
    SessionSnapshot,
    QASettings,
    TurnResult,
    TurnStatus,
)

__all__ = [
    "QNA_API_VERSION",
    # Types
    "NodeId",
    "QuestionNode",
    "HistoryItem",
    "TraversalContext",
    "TraversalMode",
    "OracleMode",
    "Confidence",
    "AdvanceOutcome",
    "Suggestion",
    "MAX_DEPTH",
    # Errors
    "QnAError",
    "InvariantViolation",
    "TraversalCancelled",
    "SessionError",
    "SessionBusyError",
    "SynthesisError",
    "KnowledgeBaseError",
    # Interfaces
    "OracleTransport",
    "QuestionOracle",
    "TraversalPolicy",
    # Topics
    "extract_topics",
    "extract_aspects",
    "child_target",
    # Oracle
    "FALLBACK_QUESTION",
    "OracleRequest",
    "OracleResult",
    "OracleClient",
    "LLMTransport",
    "ScriptedTransport",
    # Traversal
    "BreadthFirstPolicy",
    "DepthFirstPolicy",
    "create_traversal_engine",
    # Orchestration
    "AutomationLoop",
    "SessionController",
    "SessionSnapshot",
    "QASettings",
    "TurnResult",
    "TurnStatus",
]
