"""
Tests for the oracle boundary: wire schemas, response normalization, the
client's fault handling, and the LLM and scripted transports.
"""

from unittest.mock import AsyncMock, patch

import pytest

from qna.oracle import (
    FALLBACK_QUESTION,
    LLMTransport,
    OracleClient,
    OracleRequest,
    OracleResponse,
    ParentContext,
    ScriptedTransport,
    normalize_response,
)
from qna.oracle.prompts import build_messages
from qna.types import Confidence, OracleMode


@pytest.fixture
def request_():
    return OracleRequest(design_prompt="Design a parking app")


class TestWireSchemas:

    def test_request_uses_camel_case(self):
        request = OracleRequest(
            design_prompt="Design a parking app",
            depth=2,
            parent_context=ParentContext(parent_question="Who is the primary user?", uncovered_aspects=["admins"]),
        )
        wire = request.to_wire()
        assert wire["designPrompt"] == "Design a parking app"
        assert wire["traversalMode"] == "bfs"
        assert wire["mode"] == "next-question"
        assert wire["parentContext"]["parentQuestion"] == "Who is the primary user?"
        assert wire["parentContext"]["uncoveredAspects"] == ["admins"]
        assert "knowledgeBase" not in wire

    def test_response_coercions(self):
        response = OracleResponse.model_validate({
            "questions": "  Is there valet parking?  ",
            "confidence": "HIGH",
            "stopReason": None,
            "sourceReferences": None,
        })
        assert response.questions == ["Is there valet parking?"]
        assert response.confidence == Confidence.HIGH
        assert response.stop_reason == ""
        assert response.source_references == []

    def test_unknown_confidence_is_low(self):
        assert OracleResponse.model_validate({"confidence": "sure"}).confidence == Confidence.LOW

    def test_blank_questions_dropped(self):
        response = OracleResponse.model_validate({"questions": ["", "  ", "Real question?", 7]})
        assert response.questions == ["Real question?"]


class TestNormalizeResponse:

    def test_dict_payload(self):
        result = normalize_response({"questions": ["Q1?", "Q2?"]}, OracleMode.NEXT_QUESTION)
        assert not result.is_fallback
        assert result.first_question == "Q1?"

    def test_fenced_json_string(self):
        raw = '```json\n{"questions": ["Who is the primary user?"], "confidence": "medium"}\n```'
        result = normalize_response(raw, OracleMode.NEXT_QUESTION)
        assert result.first_question == "Who is the primary user?"
        assert result.confidence == Confidence.MEDIUM

    @pytest.mark.parametrize("raw", ["", None, "not json at all", "[1, 2, 3]", '{"questions": '])
    def test_malformed_payload_becomes_fallback(self, raw):
        result = normalize_response(raw, OracleMode.NEXT_QUESTION)
        assert result.is_fallback
        assert result.questions == [FALLBACK_QUESTION]
        assert result.should_stop_branch
        assert result.suggested_answer is None
        assert result.confidence == Confidence.LOW
        assert result.error

    @pytest.mark.parametrize("raw", [["Q1?"], 42, b"{}"])
    def test_unsupported_payload_type_becomes_fallback(self, raw):
        result = normalize_response(raw, OracleMode.NEXT_QUESTION)
        assert result.is_fallback
        assert result.error.startswith("invalid oracle payload type")

    def test_schema_mismatch_becomes_fallback(self):
        result = normalize_response({"questions": 5}, OracleMode.NEXT_QUESTION)
        assert result.is_fallback
        assert "validation" in result.error

    def test_no_questions_without_stop_is_a_fault(self):
        result = normalize_response({"questions": []}, OracleMode.NEXT_QUESTION)
        assert result.is_fallback

    def test_stop_signal_is_not_a_fault(self):
        result = normalize_response({"questions": [], "shouldStopBranch": True}, OracleMode.NEXT_QUESTION)
        assert not result.is_fallback
        assert result.first_question is None

    def test_suggest_mode_allows_empty_questions(self):
        result = normalize_response({"suggestedAnswer": "Drivers"}, OracleMode.SUGGEST_ANSWER)
        assert not result.is_fallback
        assert result.suggested_answer == "Drivers"


class TestOracleClient:

    @pytest.mark.asyncio
    async def test_passes_request_to_transport(self, request_):
        transport = AsyncMock()
        transport.send.return_value = {"questions": ["Who is the primary user?"]}
        client = OracleClient(transport)

        result = await client.request_next(request_)

        transport.send.assert_awaited_once_with(request_)
        assert result.first_question == "Who is the primary user?"
        assert client.history == [(request_, result)]

    @pytest.mark.asyncio
    async def test_transport_error_becomes_fallback(self, request_):
        transport = AsyncMock()
        transport.send.side_effect = RuntimeError("boom")
        client = OracleClient(transport)

        result = await client.request_next(request_)

        assert result.is_fallback
        assert "boom" in result.error

    @pytest.mark.asyncio
    async def test_decoded_non_object_payload_becomes_fallback(self, request_):
        transport = AsyncMock()
        transport.send.return_value = ["Who is the primary user?"]
        client = OracleClient(transport)

        result = await client.request_next(request_)

        assert result.is_fallback
        assert result.questions == [FALLBACK_QUESTION]
        assert "list" in result.error

    @pytest.mark.asyncio
    async def test_history_is_bounded(self, request_):
        client = OracleClient(ScriptedTransport(["A?", "B?", "C?"]), keep_history=2)
        for _ in range(3):
            await client.request_next(request_)
        assert [result.first_question for _, result in client.history] == ["B?", "C?"]


class TestScriptedTransport:

    @pytest.mark.asyncio
    async def test_script_items(self, request_):
        client = OracleClient(ScriptedTransport([
            "Single?",
            ["First?", "Second?"],
            None,
            {"questions": [], "shouldStopBranch": True, "stopReason": "enough"},
            ValueError("scripted failure"),
        ]))

        assert (await client.request_next(request_)).questions == ["Single?"]
        assert (await client.request_next(request_)).questions == ["First?", "Second?"]
        stop = await client.request_next(request_)
        assert stop.should_stop_branch and not stop.is_fallback
        assert (await client.request_next(request_)).stop_reason == "enough"
        assert (await client.request_next(request_)).is_fallback
        exhausted = await client.request_next(request_)
        assert exhausted.should_stop_branch and exhausted.stop_reason == "script exhausted"

    @pytest.mark.asyncio
    async def test_suggestions(self):
        transport = ScriptedTransport(suggestions=["Drivers and valets"])
        client = OracleClient(transport)
        request = OracleRequest(
            design_prompt="Design a parking app",
            mode=OracleMode.SUGGEST_ANSWER,
            current_question="Who is the primary user?",
        )

        first = await client.request_next(request)
        second = await client.request_next(request)

        assert first.suggested_answer == "Drivers and valets"
        assert second.suggested_answer is None
        assert len(transport.suggestion_requests) == 2
        assert transport.question_requests == []

    def test_from_text_file(self, tmp_path):
        path = tmp_path / "questions.txt"
        path.write_text("Who is the primary user?\n\nWhat payment methods are required?\n")
        transport = ScriptedTransport.from_file(path)
        assert list(transport.questions) == [
            "Who is the primary user?", "What payment methods are required?",
        ]

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "questions.json"
        path.write_text('["Who is the primary user?", null]')
        assert list(ScriptedTransport.from_file(path).questions) == ["Who is the primary user?", None]


class TestLLMTransport:

    @pytest.mark.asyncio
    async def test_send_returns_reply_text(self, request_, llm_response):
        reply = '{"questions": ["Who is the primary user?"]}'
        with patch("qna.oracle.llm_transport.call_llm", new=AsyncMock(return_value=llm_response(reply))) as call:
            transport = LLMTransport(provider="openai", model="gpt-4o", timeout=5)
            assert await transport.send(request_) == reply

        kwargs = call.await_args.kwargs
        assert kwargs["provider"] == "openai"
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_llm_failure_surfaces_as_fallback(self, request_):
        with patch("qna.oracle.llm_transport.call_llm", new=AsyncMock(side_effect=TimeoutError("slow"))):
            client = OracleClient(LLMTransport(provider="openai", model="gpt-4o"))
            result = await client.request_next(request_)
        assert result.is_fallback


class TestPrompts:

    def test_next_question_prompt(self):
        request = OracleRequest(
            design_prompt="Design a parking app",
            depth=2,
            parent_context=ParentContext(
                parent_question="Who is the primary user?",
                parent_answer="Drivers and admins",
                uncovered_aspects=["admins"],
            ),
            covered_topics=["audience"],
        )
        system, user = build_messages(request)
        assert system["role"] == "system"
        content = user["content"]
        assert "Design a parking app" in content
        assert "PARENT QUESTION: Who is the primary user?" in content
        assert "ASPECTS NOT YET COVERED:\n- admins" in content
        assert "Topics already covered: audience." in content

    def test_suggest_prompt(self):
        request = OracleRequest(
            design_prompt="Design a parking app",
            mode=OracleMode.SUGGEST_ANSWER,
            current_question="Who is the primary user?",
        )
        content = build_messages(request)[1]["content"]
        assert "Suggest the most likely answer" in content
        assert "Who is the primary user?" in content
