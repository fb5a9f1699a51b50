"""
Core types for the adaptive interview engine.

These types are shared across all components. Nodes own their children by
strong reference only; parent and depth are always derived by scanning from
the root, so the tree never contains back-references.
"""

from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NewType

# Type aliases
NodeId = NewType('NodeId', str)  # opaque uuid4 string

ROOT_PREFIX = "Prompt: "
MAX_DEPTH = 5


def new_node_id() -> NodeId:
    return NodeId(str(uuid.uuid4()))


class TraversalMode(str, Enum):
    """Policy governing whether exploration goes broad or deep first."""
    BFS = "bfs"
    DFS = "dfs"


class OracleMode(str, Enum):
    """What the question oracle is asked to produce."""
    NEXT_QUESTION = "next-question"
    SUGGEST_ANSWER = "suggest-answer"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AdvanceOutcome(str, Enum):
    """How the last traversal step ended."""
    NEXT = "next"                      # a node was surfaced
    EXHAUSTED = "exhausted"            # every fallback level came back empty
    DUPLICATE = "duplicate"            # only already-asked candidates were produced
    ORACLE_FAULT = "oracle_fault"      # the oracle only produced fallback results
    LIMIT_REACHED = "limit_reached"    # max total questions reached


# ---------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------

class QnAError(Exception):
    """Base class for interview engine errors."""


class InvariantViolation(QnAError):
    """The tree is corrupt (duplicate question, duplicate id, missing root). Fatal."""


class TraversalCancelled(QnAError):
    """The tree owning a traversal was replaced while an oracle call was outstanding."""


class SessionError(QnAError):
    pass


class SessionBusyError(SessionError):
    """Another oracle request is already in flight for this session."""


class SynthesisError(QnAError):
    """Requirements synthesis or mockup generation failed."""


class KnowledgeBaseError(QnAError):
    pass


# ---------------------------------------------------------------------
# Tree node
# ---------------------------------------------------------------------

class QuestionNode:
    """
    One question (and optional answer) in the interview tree.

    `id` and `question` are fixed at creation. `sequence_number` may be
    assigned once. Re-answering overwrites `answer` and leaves descendants
    untouched.
    """

    __slots__ = ("_id", "_question", "answer", "children", "_sequence_number")

    def __init__(
        self,
        question: str,
        answer: str | None = None,
        children: list[QuestionNode] | None = None,
        sequence_number: int | None = None,
        id: NodeId | None = None,
    ):
        self._id = id or new_node_id()
        self._question = question
        self.answer = answer
        self.children: list[QuestionNode] = children or []
        self._sequence_number = sequence_number

    @property
    def id(self) -> NodeId:
        return self._id

    @property
    def question(self) -> str:
        return self._question

    @property
    def sequence_number(self) -> int | None:
        return self._sequence_number

    @sequence_number.setter
    def sequence_number(self, value: int) -> None:
        if self._sequence_number is not None and self._sequence_number != value:
            raise InvariantViolation(
                f"sequence number of {self._id} already assigned ({self._sequence_number})"
            )
        self._sequence_number = value

    @property
    def is_answered(self) -> bool:
        return bool(self.answer)

    def __repr__(self) -> str:
        return f"QuestionNode(id={self._id!r}, question={self._question!r}, answered={self.is_answered})"


@dataclass
class HistoryItem:
    """One answered question as sent to the oracle."""
    question: str
    answer: str | None = None
    topics: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"question": self.question, "topics": list(self.topics)}
        if self.answer is not None:
            payload["answer"] = self.answer
        return payload


@dataclass
class TraversalContext:
    """
    Session-owned, per-tree traversal state.

    Not persisted: rebuilt from the tree on restore (see
    `qna.trees.node_store.rebuild_context`).
    """
    mode: TraversalMode = TraversalMode.BFS
    max_depth: int = MAX_DEPTH
    max_questions: int | None = None
    asked_questions: set[str] = field(default_factory=set)   # surfaced to the user
    asked_topics: set[str] = field(default_factory=set)
    materialized: set[str] = field(default_factory=set)      # every question in the tree
    question_count: int = 0
    knowledge_base: list[dict[str, Any]] = field(default_factory=list)
    last_outcome: AdvanceOutcome | None = None
    last_error: str | None = None
    invalidated: bool = False
    # rejected candidates during the current advance call
    step_duplicates: int = 0
    step_faults: int = 0

    def __post_init__(self):
        if not isinstance(self.mode, TraversalMode):
            self.mode = TraversalMode(self.mode)

    def limit_reached(self) -> bool:
        return self.max_questions is not None and self.question_count >= self.max_questions

    def next_sequence_number(self) -> int:
        """Claim the next sequence number and bump the running counter."""
        self.question_count += 1
        return self.question_count

    def is_known(self, question: str) -> bool:
        return question in self.asked_questions or question in self.materialized

    def begin_step(self) -> None:
        self.last_outcome = None
        self.last_error = None
        self.step_duplicates = 0
        self.step_faults = 0


@dataclass
class Suggestion:
    """An oracle-suggested answer to the current question."""
    text: str
    confidence: Confidence = Confidence.LOW
    source_references: list[int] = field(default_factory=list)
