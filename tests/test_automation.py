"""
Test Suite for the automation loop

Suggest -> settle -> apply cycles, the conditions that stop the loop, and
discarding in-flight work on stop or cancellation.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from qna.orchestrators import TurnStatus
from qna.types import SessionError, TraversalMode


async def started(make_session, **kwargs):
    session = make_session(**kwargs)
    await session.start("Design a parking app")
    return session


class TestCycles:

    @pytest.mark.asyncio
    async def test_runs_until_no_suggestion(self, make_session, transport):
        transport.add_questions(
            "Who is the primary user?",
            "Is multi-level parking supported?",
            "What payment methods are required?",
        )
        transport.add_suggestions("Drivers", "Yes, three levels")
        session = await started(make_session)
        first = session.current

        session.start_automation()
        result = await session.automation.wait()

        assert session.automation.cycles == 2
        assert result.status == TurnStatus.NEXT
        assert first.answer == "Drivers"
        assert session.current.question == "What payment methods are required?"
        assert session.current.answer is None
        assert session.automation.stop_reason == "no suggestion available"
        assert not session.automation.enabled
        assert not session.automation.running

    @pytest.mark.asyncio
    async def test_stops_when_interview_completes(self, make_session, transport):
        transport.add_questions("Who is the primary user?")
        transport.add_suggestions("ok", "never used")
        session = await started(make_session)

        session.start_automation()
        result = await session.automation.wait()

        assert result.status == TurnStatus.COMPLETE
        assert session.automation.cycles == 1
        assert session.automation.stop_reason == "traversal ended: complete"
        assert len(transport.suggestion_requests) == 1

    @pytest.mark.asyncio
    async def test_duplicate_stops_without_retry(self, make_session, transport):
        transport.add_questions("Q1?", "Q1?", None, "Q2?")
        transport.add_suggestions("Yes", "More")
        session = await started(make_session, mode=TraversalMode.DFS)

        session.start_automation()
        result = await session.automation.wait()

        assert result.status == TurnStatus.DUPLICATE
        assert len(transport.question_requests) == 3
        assert session.current.question == "Q1?"

    @pytest.mark.asyncio
    async def test_oracle_fault_stops(self, make_session, transport):
        transport.add_questions("Who is the primary user?", RuntimeError("down"))
        transport.add_suggestions("Yes")
        session = await started(make_session)

        session.start_automation()
        result = await session.automation.wait()

        assert result.status == TurnStatus.ORACLE_FAULT
        assert session.automation.stop_reason == "traversal ended: oracle_fault"

    @pytest.mark.asyncio
    async def test_error_disables_loop(self, make_session, transport):
        transport.add_questions("Who is the primary user?")
        transport.add_suggestions("Drivers")
        session = await started(make_session)
        session.submit_answer = AsyncMock(side_effect=SessionError("gone"))

        session.start_automation()
        await session.automation.wait()

        assert isinstance(session.automation.error, SessionError)
        assert session.automation.stop_reason == "error: gone"
        assert not session.automation.enabled

    @pytest.mark.asyncio
    async def test_single_task_per_session(self, make_session, transport):
        transport.add_questions("Who is the primary user?")
        session = await started(make_session)

        first = session.start_automation()
        second = session.start_automation()
        await session.automation.wait()

        assert first is second


class TestStopping:

    @pytest.mark.asyncio
    async def test_cancel_while_suggestion_in_flight(self, make_session, transport, requests_seen):
        transport.add_questions("Who is the primary user?", "Unused?")
        transport.add_suggestions("Drivers")
        session = await started(make_session)
        first = session.current

        transport.gate = asyncio.Event()
        session.start_automation()
        await requests_seen(transport, 2)
        await session.stop_automation()
        transport.gate.set()
        await asyncio.sleep(0)

        assert first.answer is None
        assert session.current is first
        assert session.automation.cycles == 0
        assert not session.automation.running
        assert not session.is_loading

    @pytest.mark.asyncio
    async def test_stop_request_discards_arriving_suggestion(self, make_session, transport, requests_seen):
        transport.add_questions("Who is the primary user?", "Unused?")
        transport.add_suggestions("Drivers")
        session = await started(make_session)
        first = session.current

        transport.gate = asyncio.Event()
        session.start_automation()
        await requests_seen(transport, 2)
        session.automation.request_stop()
        transport.gate.set()
        await session.automation.wait()

        assert first.answer is None
        assert session.automation.cycles == 0
        assert session.automation.stop_reason == "stopped by user"
        assert len(transport.question_requests) == 1

    @pytest.mark.asyncio
    async def test_stop_during_settle_delay(self, make_session, transport, requests_seen):
        transport.add_questions("Who is the primary user?", "Unused?")
        transport.add_suggestions("Drivers")
        session = await started(make_session, settle_delay=10)
        first = session.current

        session.start_automation()
        await requests_seen(transport, 2)
        await session.stop_automation()

        assert first.answer is None
        assert len(transport.question_requests) == 1

    @pytest.mark.asyncio
    async def test_restart_stops_automation(self, make_session, transport, requests_seen):
        transport.add_questions("Who is the primary user?", "Fresh first question?")
        transport.add_suggestions("Drivers")
        session = await started(make_session)
        first = session.current

        transport.gate = asyncio.Event()
        session.start_automation()
        await requests_seen(transport, 2)
        transport.gate.set()
        result = await session.restart()

        assert result.node.question == "Fresh first question?"
        assert first.answer is None
        assert not session.automation.running
        assert session.automation.stop_reason == "session restarted"

    @pytest.mark.asyncio
    async def test_user_answer_during_settle_delay_keeps_suggestion_off_next_question(
        self, make_session, transport, requests_seen
    ):
        transport.add_questions("Who is the primary user?", "Is multi-level parking supported?")
        transport.add_suggestions("Drivers only")
        session = await started(make_session, settle_delay=0.05)
        first = session.current

        session.start_automation()
        await requests_seen(transport, 2)
        await session.wait_idle()
        result = await session.submit_answer("Commuters and visitors")
        await session.automation.wait()

        second = result.node
        assert second.question == "Is multi-level parking supported?"
        assert first.answer == "Commuters and visitors"
        assert second.answer is None
        assert session.current is second
        assert session.automation.cycles == 0
        assert session.automation.stop_reason == "current question changed"
