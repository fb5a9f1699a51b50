"""
LiteLLM-backed oracle transport.
"""

from __future__ import annotations

import asyncio
import logging

from qna.engines import call_llm, get_response_text
from qna.llm import get_default_config
from .prompts import build_messages
from .schemas import OracleRequest

logger = logging.getLogger(__name__)


class LLMTransport:
    """Sends oracle requests to a chat model and returns the raw reply text."""

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        timeout: float | None = 60.0,
        **llm_kwargs,
    ):
        default_provider, default_model = get_default_config("questions")
        self.provider = provider or default_provider
        self.model = model or default_model
        self.timeout = timeout
        self.llm_kwargs = llm_kwargs

    async def send(self, request: OracleRequest) -> str:
        messages = build_messages(request)
        logger.debug(
            "Oracle request (%s, depth=%d) via %s/%s",
            request.mode.value, request.depth, self.provider, self.model,
        )
        call = call_llm(
            messages,
            provider=self.provider,
            model=self.model,
            response_format={"type": "json_object"},
            **self.llm_kwargs,
        )
        if self.timeout is not None:
            response = await asyncio.wait_for(call, timeout=self.timeout)
        else:
            response = await call
        return get_response_text(response)
