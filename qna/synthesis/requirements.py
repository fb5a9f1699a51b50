"""
Requirements Document Synthesis

Pydantic model of the requirements document and the LLM adapter that keeps
it in step with the interview tree. The adapter raises SynthesisError; the
session decides whether a failure is fatal (it is not: the previous
document is kept).
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterator, Literal, get_args

from pydantic import Field, ValidationError, field_validator

from qna.engines import call_llm, extract_json, get_response_text
from qna.llm import get_default_config
from qna.oracle.schemas import WireModel
from qna.trees.node_store import find_by_id, node_to_dict
from qna.types import QuestionNode, SynthesisError

logger = logging.getLogger(__name__)

Priority = Literal["high", "medium", "low"]
RequirementKind = Literal["functional", "technical", "ux", "accessibility", "security", "performance"]
RequirementSource = Literal["user-qa", "knowledge-base"]

CATEGORY_TITLES = {
    "basic_needs": "Basic Needs",
    "functional_requirements": "Functional Requirements",
    "user_experience": "User Experience",
    "implementation": "Implementation",
    "refinements": "Refinements",
    "constraints": "Constraints",
}


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SourceDetails(WireModel):
    question_id: str | None = None
    knowledge_base_index: int | None = None


class Requirement(WireModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    text: str
    source: RequirementSource = "user-qa"
    source_details: SourceDetails | None = None
    priority: Priority = "medium"
    category: RequirementKind = "functional"
    tags: list[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> Any:
        value = str(value).lower() if value is not None else "medium"
        return value if value in {"high", "medium", "low"} else "medium"

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_kind(cls, value: Any) -> Any:
        value = str(value).lower() if value is not None else "functional"
        return value if value in get_args(RequirementKind) else "functional"

    @field_validator("source", mode="before")
    @classmethod
    def _coerce_source(cls, value: Any) -> Any:
        return value if value in get_args(RequirementSource) else "user-qa"


class RequirementCategory(WireModel):
    title: str
    requirements: list[Requirement] = Field(default_factory=list)


def _category(key: str):
    return Field(default_factory=lambda: RequirementCategory(title=CATEGORY_TITLES[key]))


class RequirementCategories(WireModel):
    basic_needs: RequirementCategory = _category("basic_needs")
    functional_requirements: RequirementCategory = _category("functional_requirements")
    user_experience: RequirementCategory = _category("user_experience")
    implementation: RequirementCategory = _category("implementation")
    refinements: RequirementCategory = _category("refinements")
    constraints: RequirementCategory = _category("constraints")


class RequirementsDocument(WireModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    prompt: str
    last_updated: str = Field(default_factory=utc_now)
    categories: RequirementCategories = Field(default_factory=RequirementCategories)

    def iter_categories(self) -> Iterator[tuple[str, RequirementCategory]]:
        for key in CATEGORY_TITLES:
            yield key, getattr(self.categories, key)

    def iter_requirements(self) -> Iterator[Requirement]:
        for _, category in self.iter_categories():
            yield from category.requirements

    def requirement_count(self) -> int:
        return sum(1 for _ in self.iter_requirements())


def new_requirements_document(prompt: str) -> RequirementsDocument:
    return RequirementsDocument(prompt=prompt)


def format_requirements(doc: RequirementsDocument) -> str:
    """Plain-text listing, one block per category."""
    blocks = []
    for _, category in doc.iter_categories():
        lines = [f"- {req.text} ({req.priority} priority)" for req in category.requirements]
        blocks.append(f"{category.title}:\n" + "\n".join(lines))
    return "\n\n".join(blocks)


UPDATE_SYSTEM_PROMPT = """You are a requirements analyst that helps maintain and update a product requirements document based on Q&A sessions and knowledge base information.

The requirements document is organized into categories:
1. Basic Needs - Fundamental user needs and target audience
2. Functional Requirements - Core features and functionality
3. User Experience - UX patterns, accessibility, and user interactions
4. Implementation - Technical specifications and UI elements
5. Refinements - Edge cases and detailed behaviors
6. Constraints - Limitations and restrictions

For each requirement, you should:
- Determine the appropriate category
- Set priority (high/medium/low)
- Assign relevant tags
- Categorize type (functional/technical/ux/accessibility/security/performance)
- Track the source (user-qa or knowledge-base)

Return the updated document as JSON with the same structure as the current document."""

SIMPLIFY_SYSTEM_PROMPT = """You are a requirements document simplification expert.

SCAN the document for duplicate or overlapping requirements, overly verbose requirements and redundant information.
SIMPLIFY by merging duplicates, making verbose requirements concise and removing redundancy, keeping the same structure and categories.
PRESERVE all unique information, priority levels, the original prompt and the overall scope.

Return ONLY a valid JSON object with the exact structure of the input. Do NOT add new requirements."""


def _format_knowledge(knowledge_base: list[Any]) -> str:
    if not knowledge_base:
        return "No knowledge base provided"
    blocks = []
    for i, source in enumerate(knowledge_base, 1):
        fields = source.processed_content or {}
        lines = "\n".join(f"{key}: {json.dumps(value)}" for key, value in fields.items())
        blocks.append(f"Source {i} ({source.type}): {source.name}\n{lines}")
    return "\n\n".join(blocks)


class RequirementsSynthesizer:
    """LLM adapter that updates and simplifies the requirements document."""

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        simplify_provider: str | None = None,
        simplify_model: str | None = None,
    ):
        default_provider, default_model = get_default_config("requirements")
        self.provider = provider or default_provider
        self.model = model or default_model
        simplify_default = get_default_config("simplify")
        self.simplify_provider = simplify_provider or simplify_default[0]
        self.simplify_model = simplify_model or simplify_default[1]

    async def _complete(self, messages: list[dict[str, str]], provider: str, model: str) -> dict[str, Any]:
        try:
            response = await call_llm(
                messages,
                provider=provider,
                model=model,
                response_format={"type": "json_object"},
            )
            return extract_json(get_response_text(response))
        except Exception as e:
            raise SynthesisError(f"requirements model call failed: {e}") from e

    async def update(
        self,
        tree: QuestionNode,
        current_node_id: str | None,
        knowledge_base: list[Any] | None,
        existing: RequirementsDocument,
    ) -> RequirementsDocument:
        """Fold the latest answer (and the knowledge base) into `existing`."""
        current = find_by_id(tree, current_node_id) if current_node_id else None
        latest = (
            f"\nQuestion: {current.question}\nAnswer: {current.answer}"
            if current is not None else "No new answer"
        )
        user = f"""Current Q&A Tree: {json.dumps(node_to_dict(tree), indent=2)}

Knowledge Base Information:
{_format_knowledge(knowledge_base or [])}

Current Requirements Document:
{json.dumps(existing.to_wire(), indent=2)}

Latest Answer: {latest}

Please update the requirements document and return it in JSON format."""

        data = await self._complete(
            [{"role": "system", "content": UPDATE_SYSTEM_PROMPT}, {"role": "user", "content": user}],
            self.provider, self.model,
        )
        updated = self._validate(data, existing)
        logger.info("Requirements updated: %d requirement(s)", updated.requirement_count())
        return updated

    async def simplify(self, doc: RequirementsDocument) -> RequirementsDocument:
        """De-duplicate and tighten the document. The prompt is always preserved."""
        user = f"""Simplify this requirements document by removing duplicates, consolidating overlapping items, and making verbose requirements more concise.

Current Document:
{json.dumps(doc.to_wire(), indent=2)}

Return the simplified document as a JSON object with the exact same structure."""

        data = await self._complete(
            [{"role": "system", "content": SIMPLIFY_SYSTEM_PROMPT}, {"role": "user", "content": user}],
            self.simplify_provider, self.simplify_model,
        )
        if "categories" not in data:
            raise SynthesisError("Invalid simplified document structure")
        simplified = self._validate(data, doc)
        logger.info(
            "Requirements simplified: %d -> %d requirement(s)",
            doc.requirement_count(), simplified.requirement_count(),
        )
        return simplified

    @staticmethod
    def _validate(data: dict[str, Any], previous: RequirementsDocument) -> RequirementsDocument:
        data = {**data, "prompt": previous.prompt}
        try:
            doc = RequirementsDocument.model_validate(data)
        except ValidationError as e:
            raise SynthesisError(f"requirements document failed validation: {e.error_count()} error(s)") from e
        return doc.model_copy(update={"id": previous.id, "prompt": previous.prompt, "last_updated": utc_now()})
