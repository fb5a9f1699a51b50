"""
Mockup Generation

LLM adapter that turns a requirements document into a React/Tailwind
component. The generated code is returned as text; rendering it is left to
the caller.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import Field, ValidationError

from qna.engines import call_llm, extract_json, get_response_text
from qna.llm import get_default_config
from qna.oracle.schemas import WireModel
from qna.types import SynthesisError
from .requirements import RequirementsDocument, format_requirements

logger = logging.getLogger(__name__)

MAX_PROMPT_WORDS = 2000

_TYPE_ASSERTION_RE = re.compile(r"\sas\s+\w+")

MOCKUP_SYSTEM_PROMPT = """You are an expert UI developer who creates React components with Tailwind CSS. Generate a modern, functional mockup based on the provided requirements and return it as a JSON object.

Guidelines:
1. Use only React and Tailwind CSS (no external libraries)
2. The code MUST implement ALL features mentioned in the requirements
3. Every interactive element needs ARIA labels and roles
4. Handle error, loading and success states
5. The interface must be fully responsive
6. Do not include inline type assertions (e.g. "as ElevatorMode") or other TypeScript-only syntax; put type information in comments
7. Use React hooks for state and export the main component as default

Return your response in this exact JSON format:
{
  "code": "complete React/Tailwind component code",
  "colorScheme": {"primary": "#hex", "secondary": "#hex", "accent": "#hex", "background": "#hex", "text": "#hex"},
  "components": ["reusable components created, with their purposes"],
  "features": ["implemented features, matching the requirements"],
  "nextSteps": ["suggested improvements for future iterations"]
}"""


class MockupResult(WireModel):
    code: str
    color_scheme: dict[str, Any] = Field(default_factory=dict)
    components: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)


def strip_type_assertions(code: str) -> str:
    """Remove inline ` as Type` assertions so the code runs as plain JavaScript."""
    return _TYPE_ASSERTION_RE.sub("", code)


def build_mockup_prompt(doc: RequirementsDocument) -> str:
    return f"Design Prompt: {doc.prompt}\n\nRequirements:\n{format_requirements(doc)}"


class MockupGenerator:
    def __init__(self, provider: str | None = None, model: str | None = None, **llm_kwargs):
        default_provider, default_model = get_default_config("mockup")
        self.provider = provider or default_provider
        self.model = model or default_model
        self.llm_kwargs = llm_kwargs

    async def generate(self, doc: RequirementsDocument) -> MockupResult:
        prompt_text = build_mockup_prompt(doc)
        word_count = len(prompt_text.split())
        if word_count > MAX_PROMPT_WORDS:
            raise SynthesisError(
                f"Requirements document is too large ({word_count} words, limit {MAX_PROMPT_WORDS}). "
                "Simplify it or split it into multiple requests."
            )

        messages = [
            {"role": "system", "content": MOCKUP_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"{prompt_text}\n\nGenerate a complete React/Tailwind mockup that satisfies ALL these requirements.",
            },
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
            raise SynthesisError(f"Failed to generate mockup: {e}") from e

        try:
            result = MockupResult.model_validate(data)
        except ValidationError as e:
            raise SynthesisError(f"Failed to parse mockup data: {e.error_count()} error(s)") from e

        logger.info("Generated mockup with %d component(s)", len(result.components))
        return result.model_copy(update={"code": strip_type_assertions(result.code)})
