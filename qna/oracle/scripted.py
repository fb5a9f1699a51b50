"""
Scripted oracle transport.

Replays a fixed list of replies instead of calling a model. Used by the test
suite and by the CLI's offline mode.

Question script items:
- str: a reply with that single question
- list of str: a reply with those questions
- None: a stop signal with no question
- dict: returned as the raw payload
- Exception instance: raised from `send`

Suggestion script items follow the same rules, except a str becomes the
suggested answer. Exhausted scripts answer with a stop signal (questions) or
a null suggestion (suggestions).
"""

from __future__ import annotations

import asyncio
import json
from collections import deque
from pathlib import Path
from typing import Any

from qna.types import OracleMode
from .schemas import OracleRequest


class ScriptedTransport:
    def __init__(
        self,
        questions: list[Any] | None = None,
        suggestions: list[Any] | None = None,
        delay: float = 0.0,
        gate: asyncio.Event | None = None,
    ):
        self.questions: deque[Any] = deque(questions or [])
        self.suggestions: deque[Any] = deque(suggestions or [])
        self.delay = delay
        self.gate = gate
        self.requests: list[OracleRequest] = []

    @classmethod
    def from_file(cls, path: str | Path, **kwargs) -> ScriptedTransport:
        """
        Load a question script: a JSON list, or plain text with one question per line.
        """
        text = Path(path).read_text(encoding="utf-8")
        try:
            items = json.loads(text)
        except json.JSONDecodeError:
            items = [line.strip() for line in text.splitlines() if line.strip()]
        if not isinstance(items, list):
            raise ValueError(f"question script must be a list, got {type(items).__name__}")
        return cls(questions=items, **kwargs)

    def add_questions(self, *items: Any) -> None:
        self.questions.extend(items)

    def add_suggestions(self, *items: Any) -> None:
        self.suggestions.extend(items)

    @property
    def question_requests(self) -> list[OracleRequest]:
        return [r for r in self.requests if r.mode == OracleMode.NEXT_QUESTION]

    @property
    def suggestion_requests(self) -> list[OracleRequest]:
        return [r for r in self.requests if r.mode == OracleMode.SUGGEST_ANSWER]

    async def send(self, request: OracleRequest) -> str | dict[str, Any]:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)

        if request.mode == OracleMode.SUGGEST_ANSWER:
            return self._suggestion_reply()
        return self._question_reply()

    def _question_reply(self) -> dict[str, Any]:
        if not self.questions:
            return {"questions": [], "shouldStopBranch": True, "stopReason": "script exhausted"}
        item = self.questions.popleft()
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, dict):
            return item
        if item is None:
            return {"questions": [], "shouldStopBranch": True, "stopReason": "no more questions here"}
        questions = [item] if isinstance(item, str) else list(item)
        return {"questions": questions, "shouldStopBranch": False, "confidence": "high"}

    def _suggestion_reply(self) -> dict[str, Any]:
        if not self.suggestions:
            return {"questions": [], "suggestedAnswer": None, "confidence": "low"}
        item = self.suggestions.popleft()
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, dict):
            return item
        return {"questions": [], "suggestedAnswer": item, "confidence": "high" if item else "low"}
