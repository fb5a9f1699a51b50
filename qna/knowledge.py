"""
Knowledge Base Processing
=========================

Turns reference material (notes, briefs, specs as text files or pasted
text) into structured fields the question oracle can cite. Extraction is
done by an LLM; the result is opaque to the traversal engine and only
travels inside oracle requests as `knowledgeBase` excerpts.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Literal

from pydantic import Field

from qna.engines import call_llm, extract_json, get_response_text
from qna.llm import get_default_config
from qna.oracle.schemas import KnowledgeExcerpt, WireModel
from qna.types import KnowledgeBaseError

logger = logging.getLogger(__name__)

EXTRACTED_FIELDS = (
    "requirements",
    "technicalSpecifications",
    "designGuidelines",
    "userPreferences",
    "industryStandards",
)

EXTRACTION_PROMPT = """You are a knowledge base processor. Extract key information from the provided document and return it as a JSON object. Focus on:
1. Requirements and constraints
2. Technical specifications
3. Design guidelines
4. User preferences or patterns
5. Industry standards or best practices

Return your response in this exact JSON format:
{
  "requirements": [],
  "technicalSpecifications": [],
  "designGuidelines": [],
  "userPreferences": [],
  "industryStandards": []
}"""


class KnowledgeBaseSource(WireModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: Literal["file", "text"] = "text"
    name: str
    content: str | None = None
    processed_content: dict[str, Any] | None = None

    @property
    def is_processed(self) -> bool:
        return self.processed_content is not None


def load_source(path: str | Path) -> KnowledgeBaseSource:
    """Read a text file as a knowledge-base source. PDF is not supported."""
    path = Path(path)
    if path.suffix.lower() == ".pdf":
        raise KnowledgeBaseError(f"PDF sources are not supported: {path.name}")
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise KnowledgeBaseError(f"Could not read {path}: {e}") from e
    return KnowledgeBaseSource(type="file", name=path.name, content=content)


def normalize_extraction(data: dict[str, Any]) -> dict[str, Any]:
    """Every known field present as a list of strings; unknown keys are kept."""
    result = dict(data)
    for key in EXTRACTED_FIELDS:
        value = data.get(key) or []
        if isinstance(value, str):
            value = [value]
        result[key] = [str(item) for item in value]
    return result


class KnowledgeBaseProcessor:
    """LLM-backed extraction of structured fields from knowledge-base sources."""

    def __init__(self, provider: str | None = None, model: str | None = None, **llm_kwargs):
        default_provider, default_model = get_default_config("knowledge")
        self.provider = provider or default_provider
        self.model = model or default_model
        self.llm_kwargs = llm_kwargs

    async def extract(self, content: str) -> dict[str, Any]:
        if not content or not content.strip():
            raise KnowledgeBaseError("Knowledge base source is empty")
        messages = [
            {"role": "system", "content": EXTRACTION_PROMPT},
            {"role": "user", "content": content},
        ]
        try:
            response = await call_llm(
                messages,
                provider=self.provider,
                model=self.model,
                response_format={"type": "json_object"},
                **self.llm_kwargs,
            )
            data = extract_json(get_response_text(response))
        except Exception as e:
            raise KnowledgeBaseError(f"Failed to process content: {e}") from e
        return normalize_extraction(data)

    async def process(self, source: KnowledgeBaseSource) -> KnowledgeBaseSource:
        """Return a copy of `source` with `processed_content` filled in."""
        if source.content is None:
            raise KnowledgeBaseError(f"Source {source.name!r} has no content")
        processed = await self.extract(source.content)
        logger.info(
            "Processed knowledge source %r: %s",
            source.name, {k: len(processed[k]) for k in EXTRACTED_FIELDS},
        )
        return source.model_copy(update={"processed_content": processed})


def to_excerpts(sources: list[KnowledgeBaseSource]) -> list[dict[str, Any]]:
    """Oracle `knowledgeBase` entries for the processed sources, in order."""
    return [
        KnowledgeExcerpt(name=s.name, type=s.type, extracted_fields=s.processed_content).to_wire()
        for s in sources
        if s.processed_content is not None
    ]
