"""
Oracle Client
=============

Boundary adapter between the traversal engine and the external
question-generation oracle. Every oracle fault (transport error, empty or
malformed payload, schema mismatch) is recovered here and handed to the
engine as a fallback-tagged OracleResult; nothing raised by a transport
crosses this boundary except cancellation.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from qna.engines import extract_json
from qna.interfaces import OracleTransport
from qna.types import OracleMode
from .schemas import OracleRequest, OracleResponse, OracleResult

logger = logging.getLogger(__name__)


def normalize_response(raw: str | dict[str, Any] | None, mode: OracleMode) -> OracleResult:
    """Validate a raw oracle payload into an OracleResult, or the fallback on any defect."""
    if raw is not None and not isinstance(raw, (str, dict)):
        return OracleResult.fallback(f"invalid oracle payload type: {type(raw).__name__}")
    try:
        data = raw if isinstance(raw, dict) else extract_json(raw)
    except ValueError as e:
        return OracleResult.fallback(f"invalid oracle payload: {e}")

    try:
        response = OracleResponse.model_validate(data)
    except ValidationError as e:
        return OracleResult.fallback(f"oracle payload failed validation: {e.error_count()} error(s)")

    if mode == OracleMode.NEXT_QUESTION and not response.questions and not response.should_stop_branch:
        return OracleResult.fallback("oracle returned no questions")

    return OracleResult(**response.model_dump())


class OracleClient:
    """
    QuestionOracle implementation wrapping any OracleTransport.

    The client also keeps a small request log so callers (tests, the CLI's
    debug output) can see what was asked without reaching into the transport.
    """

    def __init__(self, transport: OracleTransport, keep_history: int = 50):
        self.transport = transport
        self.keep_history = keep_history
        self.history: list[tuple[OracleRequest, OracleResult]] = []

    async def request_next(self, request: OracleRequest) -> OracleResult:
        try:
            raw = await self.transport.send(request)
        except Exception as e:
            logger.warning("Oracle transport failed (%s): %s", type(e).__name__, e)
            result = OracleResult.fallback(f"oracle transport error: {e}")
        else:
            result = normalize_response(raw, request.mode)
            if result.is_fallback:
                logger.warning("Oracle response normalized to fallback: %s", result.error)

        self._remember(request, result)
        return result

    def _remember(self, request: OracleRequest, result: OracleResult) -> None:
        self.history.append((request, result))
        if len(self.history) > self.keep_history:
            del self.history[: len(self.history) - self.keep_history]
