"""
Automation Loop

Unattended answering: ask the oracle for a suggested answer to the current
question, wait a settle delay, apply it and advance. The loop disables itself
on the first cycle that does not end with a new question.

One asyncio task per session. A stop request, a cancelled task or a session
restart all cause an in-flight suggestion to be discarded when it arrives.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from qna.types import QnAError

if TYPE_CHECKING:
    from .session import SessionController, TurnResult

logger = logging.getLogger(__name__)


class AutomationLoop:
    def __init__(self, session: SessionController, settle_delay: float = 1.0):
        self.session = session
        self.settle_delay = settle_delay
        self.enabled = False
        self.cycles = 0
        self.last_result: TurnResult | None = None
        self.stop_reason: str | None = None
        self.error: BaseException | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the loop, or return the task already running for this session."""
        if self.running:
            return self._task
        self.enabled = True
        self.stop_reason = None
        self.error = None
        self._task = asyncio.create_task(self._run(), name="qna-automation")
        return self._task

    def request_stop(self, reason: str = "stopped by user") -> None:
        """Disable the loop; an in-flight step finishes but its result is discarded."""
        if self.enabled:
            logger.info("Automation stopping: %s", reason)
        self.enabled = False
        self.stop_reason = self.stop_reason or reason

    async def stop(self, reason: str = "stopped by user") -> None:
        """Disable the loop and cancel the running task."""
        self.request_stop(reason)
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def wait(self) -> TurnResult | None:
        """Wait for the loop to finish on its own."""
        if self._task is not None:
            await asyncio.wait({self._task})
        return self.last_result

    async def _run(self) -> None:
        try:
            while self.enabled:
                result = await self.run_cycle()
                if result is None:
                    break
        except QnAError as e:
            logger.warning("Automation stopped on error: %s", e)
            self.error = e
            self.stop_reason = f"error: {e}"
        except Exception as e:
            logger.exception("Automation stopped on unexpected error")
            self.error = e
            self.stop_reason = f"error: {e}"
        finally:
            self.enabled = False

    def _still_valid(self, generation: int) -> bool:
        if not self.enabled:
            return False
        if generation != self.session.generation:
            self.request_stop("session was replaced")
            return False
        return True

    async def run_cycle(self) -> TurnResult | None:
        """
        One suggest -> settle -> apply cycle.

        Returns the turn result when the cycle produced a new question, or
        None when the loop should stop.
        """
        generation = self.session.generation
        await self.session.wait_idle()
        if not self._still_valid(generation):
            return None

        target = self.session.current
        suggestion = await self.session.suggest_answer()
        if not self._still_valid(generation):
            # stopped while the suggestion was in flight
            return None
        if suggestion is None:
            self.request_stop("no suggestion available")
            return None

        if self.settle_delay:
            await asyncio.sleep(self.settle_delay)
        if not self._still_valid(generation):
            return None
        if self.session.current is not target:
            # answered by someone else during the settle delay
            self.request_stop("current question changed")
            return None

        result = await self.session.submit_answer(suggestion.text, automated=True)
        self.cycles += 1
        self.last_result = result
        if not result.ok:
            self.request_stop(f"traversal ended: {result.status.value}")
            return None
        return result
