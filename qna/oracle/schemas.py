"""
Wire models for the question-generation oracle.

camelCase on the wire, snake_case in Python. Requests are built by the
traversal policies and the session; responses are validated here and then
normalized by `qna.oracle.client`.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from qna.types import TraversalMode, OracleMode, Confidence, HistoryItem


FALLBACK_QUESTION = "Could you tell me more about what this design needs to accomplish?"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class HistoryEntry(WireModel):
    question: str
    answer: str | None = None
    topics: list[str] = Field(default_factory=list)

    @classmethod
    def from_item(cls, item: HistoryItem) -> HistoryEntry:
        return cls(question=item.question, answer=item.answer, topics=list(item.topics))


class KnowledgeExcerpt(WireModel):
    name: str
    type: str = "text"
    extracted_fields: dict[str, Any] = Field(default_factory=dict)


class ParentContext(WireModel):
    parent_question: str
    parent_answer: str | None = None
    parent_topics: list[str] = Field(default_factory=list)
    sibling_questions: list[str] = Field(default_factory=list)
    uncovered_aspects: list[str] | None = None


class OracleRequest(WireModel):
    design_prompt: str
    answered_history: list[HistoryEntry] = Field(default_factory=list)
    traversal_mode: TraversalMode = TraversalMode.BFS
    knowledge_base: list[KnowledgeExcerpt] | None = None
    depth: int = 1
    parent_context: ParentContext | None = None
    mode: OracleMode = OracleMode.NEXT_QUESTION
    # extensions: what the session already covered, and the question to answer in suggest mode
    covered_topics: list[str] | None = None
    current_question: str | None = None


class OracleResponse(WireModel):
    """What a well-behaved oracle returns. Unknown keys are ignored."""
    questions: list[str] = Field(default_factory=list)
    should_stop_branch: bool = False
    stop_reason: str = ""
    suggested_answer: str | None = None
    source_references: list[int] = Field(default_factory=list)
    confidence: Confidence = Confidence.LOW
    topics_covered: list[str] = Field(default_factory=list)
    parent_topic: str = ""
    subtopics: list[str] = Field(default_factory=list)

    @field_validator("questions", mode="before")
    @classmethod
    def _coerce_questions(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if isinstance(value, list):
            return [q.strip() for q in value if isinstance(q, str) and q.strip()]
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() in {c.value for c in Confidence}:
            return value.lower()
        return Confidence.LOW

    @field_validator("stop_reason", "parent_topic", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("source_references", "topics_covered", "subtopics", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value


class OracleResult(OracleResponse):
    """A normalized oracle response, tagged so callers can tell fallbacks apart."""
    is_fallback: bool = False
    error: str | None = None

    @property
    def first_question(self) -> str | None:
        return self.questions[0] if self.questions else None

    @classmethod
    def fallback(cls, reason: str) -> OracleResult:
        return cls(
            questions=[FALLBACK_QUESTION],
            should_stop_branch=True,
            stop_reason=reason,
            suggested_answer=None,
            confidence=Confidence.LOW,
            is_fallback=True,
            error=reason,
        )
