"""
Session Controller

Owns one interview: the tree, the traversal context, the requirements
document and the automation loop. Every user-facing operation goes through
here; the traversal policies and synthesis adapters never see each other.

Oracle traffic is serialized: at most one request is in flight per session.
Restart and restore replace the tree wholesale, invalidate the old context
and bump `generation` so late oracle results are dropped.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import Field

from qna.interfaces import QuestionOracle
from qna.knowledge import KnowledgeBaseSource, to_excerpts
from qna.oracle.schemas import FALLBACK_QUESTION, WireModel
from qna.synthesis import (
    MockupGenerator, MockupResult, RequirementsDocument, RequirementsSynthesizer,
    new_requirements_document,
)
from qna.traversals import build_oracle_request, create_traversal_engine, parent_context_for
from qna.trees.node_store import (
    answered_history, create_root, design_prompt_of, find_by_id, find_parent, node_depth,
    node_from_dict, node_to_dict, rebuild_context,
)
from qna.types import (
    AdvanceOutcome, OracleMode, QuestionNode, SessionBusyError, SessionError, Suggestion,
    SynthesisError, TraversalCancelled, TraversalContext, TraversalMode,
)
from .automation import AutomationLoop

logger = logging.getLogger(__name__)

COMPLETE_MESSAGE = "No more questions. Q&A complete."
LIMIT_MESSAGE = "Question limit reached. Q&A complete."
DUPLICATE_MESSAGE = "The next question would repeat an earlier one. Retry or edit an answer."
STALE_MESSAGE = "The session was replaced while the request was running."


class TurnStatus(str, Enum):
    NEXT = "next"
    COMPLETE = "complete"
    DUPLICATE = "duplicate"
    ORACLE_FAULT = "oracle_fault"
    LIMIT_REACHED = "limit_reached"
    STALE = "stale"


@dataclass
class TurnResult:
    """Outcome of one session operation that advances the interview."""
    status: TurnStatus
    node: QuestionNode | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == TurnStatus.NEXT


class QASettings(WireModel):
    traversal_mode: TraversalMode = TraversalMode.BFS
    unknown_handling: Literal["auto", "prompt"] = "prompt"
    conflict_resolution: Literal["auto", "manual"] = "manual"
    max_questions: int | None = None
    knowledge_base: list[KnowledgeBaseSource] = Field(default_factory=list)
    auto_update_requirements: bool = False


class SessionSnapshot(WireModel):
    """Persisted session: `{tree, currentNodeId, questionCount, designPrompt, settings, requirementsDocument}`."""
    tree: dict[str, Any]
    current_node_id: str | None = None
    question_count: int = 0
    design_prompt: str
    settings: QASettings = Field(default_factory=QASettings)
    requirements_document: RequirementsDocument | None = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


class SessionController:
    def __init__(
        self,
        oracle: QuestionOracle,
        settings: QASettings | None = None,
        synthesizer: RequirementsSynthesizer | None = None,
        mockup_generator: MockupGenerator | None = None,
        settle_delay: float = 1.0,
    ):
        self.oracle = oracle
        self.settings = settings or QASettings()
        self.synthesizer = synthesizer
        self.mockup_generator = mockup_generator
        self.policy = create_traversal_engine(self.settings.traversal_mode, oracle)
        self.automation = AutomationLoop(self, settle_delay=settle_delay)

        self.tree: QuestionNode | None = None
        self.current: QuestionNode | None = None
        self.ctx: TraversalContext | None = None
        self.requirements: RequirementsDocument | None = None
        self.last_answered_id: str | None = None
        self.generation = 0

        self._lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()

    # -----------------------------------------------------------------
    # State views
    # -----------------------------------------------------------------

    @property
    def started(self) -> bool:
        return self.tree is not None

    @property
    def design_prompt(self) -> str | None:
        return design_prompt_of(self.tree) if self.tree is not None else None

    @property
    def current_question_text(self) -> str:
        return self.current.question if self.current is not None else COMPLETE_MESSAGE

    @property
    def question_count(self) -> int:
        return self.ctx.question_count if self.ctx is not None else 0

    @property
    def is_loading(self) -> bool:
        return self._lock.locked()

    async def wait_idle(self) -> None:
        await self._idle.wait()

    def _require_tree(self) -> QuestionNode:
        if self.tree is None:
            raise SessionError("No session in progress; call start() first")
        return self.tree

    @contextlib.asynccontextmanager
    async def _busy(self):
        """Hold the session's oracle slot for the duration of one request."""
        if self._lock.locked():
            raise SessionBusyError("An oracle request is already in flight for this session")
        lock, idle = self._lock, self._idle
        async with lock:
            idle.clear()
            try:
                yield
            finally:
                idle.set()

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------

    def _replace_tree(
        self,
        tree: QuestionNode,
        current: QuestionNode | None,
        ctx: TraversalContext,
    ) -> None:
        """Swap in a new tree; anything still running against the old one is discarded."""
        if self.ctx is not None:
            self.ctx.invalidated = True
        self.automation.request_stop("session was replaced")
        self.generation += 1
        # a request still running against the old tree keeps the old lock
        self._lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()
        self.tree = tree
        self.current = current
        self.ctx = ctx
        self.last_answered_id = None

    def _new_context(self) -> TraversalContext:
        return TraversalContext(
            mode=self.settings.traversal_mode,
            max_questions=self.settings.max_questions,
            knowledge_base=to_excerpts(self.settings.knowledge_base),
        )

    async def start(self, prompt: str) -> TurnResult:
        """Create a fresh tree for `prompt` and surface the first question."""
        prompt = prompt.strip()
        if not prompt:
            raise SessionError("Design prompt must not be empty")
        tree = create_root(prompt)
        ctx = self._new_context()
        ctx.materialized.add(tree.question)
        self._replace_tree(tree, None, ctx)
        self.requirements = new_requirements_document(prompt)
        logger.info("Started session for %r (%s)", prompt, self.settings.traversal_mode.value)

        async with self._busy():
            return await self._advance(None)

    async def restart(self) -> TurnResult:
        """Throw the tree away and start over with the same prompt."""
        prompt = self.design_prompt
        if prompt is None:
            raise SessionError("No session to restart")
        await self.automation.stop("session restarted")
        return await self.start(prompt)

    def set_traversal_mode(self, mode: TraversalMode | str) -> None:
        mode = TraversalMode(mode)
        self.settings = self.settings.model_copy(update={"traversal_mode": mode})
        self.policy = create_traversal_engine(mode, self.oracle)
        if self.ctx is not None:
            self.ctx.mode = mode

    def set_max_questions(self, limit: int | None) -> None:
        """Change the question limit for subsequent advances; None removes it."""
        if limit is not None and limit < 1:
            raise SessionError("max_questions must be at least 1")
        self.settings = self.settings.model_copy(update={"max_questions": limit})
        if self.ctx is not None:
            self.ctx.max_questions = limit

    # -----------------------------------------------------------------
    # Answering
    # -----------------------------------------------------------------

    async def _advance(self, answered: QuestionNode | None) -> TurnResult:
        generation, tree, ctx = self.generation, self.tree, self.ctx
        try:
            node = await self.policy.advance(tree, answered, ctx)
        except TraversalCancelled:
            return TurnResult(TurnStatus.STALE, message=STALE_MESSAGE)
        if generation != self.generation:
            return TurnResult(TurnStatus.STALE, message=STALE_MESSAGE)

        if node is not None:
            self.current = node
            return TurnResult(TurnStatus.NEXT, node, node.question)

        outcome = ctx.last_outcome
        if outcome == AdvanceOutcome.ORACLE_FAULT:
            # the answered node stays current so retry() can re-advance
            return TurnResult(TurnStatus.ORACLE_FAULT, answered, f"{FALLBACK_QUESTION} ({ctx.last_error})")
        if outcome == AdvanceOutcome.DUPLICATE:
            return TurnResult(TurnStatus.DUPLICATE, answered, DUPLICATE_MESSAGE)

        self.current = None
        if outcome == AdvanceOutcome.LIMIT_REACHED:
            return TurnResult(TurnStatus.LIMIT_REACHED, message=LIMIT_MESSAGE)
        return TurnResult(TurnStatus.COMPLETE, message=COMPLETE_MESSAGE)

    async def submit_answer(self, answer: str, automated: bool = False) -> TurnResult:
        """
        Answer the current question and advance.

        A duplicate-only advance is retried once in interactive mode; the
        automation loop stops on it instead.
        """
        self._require_tree()
        node = self.current
        if node is None:
            raise SessionError(COMPLETE_MESSAGE)
        answer = answer.strip()
        if not answer:
            raise SessionError("Answer must not be empty")

        async with self._busy():
            previous = node.answer
            node.answer = answer
            try:
                result = await self._advance(node)
                if result.status == TurnStatus.DUPLICATE and not automated:
                    logger.info("Only duplicates produced, retrying once")
                    result = await self._advance(node)
            except asyncio.CancelledError:
                node.answer = previous
                raise
            if result.status != TurnStatus.STALE:
                self.last_answered_id = node.id

        if result.status == TurnStatus.NEXT and self.settings.auto_update_requirements:
            await self.update_requirements()
        return result

    async def retry(self) -> TurnResult:
        """Re-advance from the last answered node after a fault or duplicate."""
        self._require_tree()
        if self.current is not None and not self.current.is_answered:
            raise SessionError("The current question has not been answered yet")
        async with self._busy():
            return await self._advance(self.current)

    def edit_answer(self, node_id: str, answer: str) -> QuestionNode:
        """
        Overwrite the answer of an already answered node. Descendants are kept
        as they are; nothing is pruned.
        """
        tree = self._require_tree()
        node = find_by_id(tree, node_id)
        if node is None or node is tree:
            raise SessionError(f"No answerable node with id {node_id!r}")
        if not node.is_answered:
            raise SessionError("Only answered questions can be edited")
        answer = answer.strip()
        if not answer:
            raise SessionError("Answer must not be empty")
        node.answer = answer
        return node

    async def suggest_answer(self) -> Suggestion | None:
        """Ask the oracle for a likely answer to the current question."""
        tree = self._require_tree()
        node = self.current
        if node is None or node.is_answered:
            return None

        generation, ctx = self.generation, self.ctx
        parent = find_parent(tree, node)
        request = build_oracle_request(
            tree, ctx,
            depth=node_depth(tree, node),
            history=answered_history(tree),
            parent_context=parent_context_for(parent) if parent is not None and parent is not tree else None,
            mode=OracleMode.SUGGEST_ANSWER,
            current_question=node.question,
        )
        async with self._busy():
            result = await self.oracle.request_next(request)

        if generation != self.generation or ctx.invalidated:
            return None
        if result.is_fallback or not result.suggested_answer:
            return None
        return Suggestion(
            text=result.suggested_answer,
            confidence=result.confidence,
            source_references=list(result.source_references),
        )

    # -----------------------------------------------------------------
    # Automation
    # -----------------------------------------------------------------

    def start_automation(self) -> asyncio.Task:
        self._require_tree()
        return self.automation.start()

    async def stop_automation(self) -> None:
        await self.automation.stop()

    # -----------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------

    def snapshot(self) -> SessionSnapshot:
        tree = self._require_tree()
        return SessionSnapshot(
            tree=node_to_dict(tree),
            current_node_id=self.current.id if self.current is not None else None,
            question_count=self.question_count,
            design_prompt=design_prompt_of(tree),
            settings=self.settings,
            requirements_document=self.requirements,
        )

    def restore(self, snapshot: SessionSnapshot) -> None:
        """Replace the session state; asked sets are recomputed from the tree."""
        tree = node_from_dict(snapshot.tree)
        current = find_by_id(tree, snapshot.current_node_id) if snapshot.current_node_id else None
        if snapshot.current_node_id and current is None:
            raise SessionError(f"Snapshot current node {snapshot.current_node_id!r} is not in the tree")

        self.settings = snapshot.settings
        self.policy = create_traversal_engine(self.settings.traversal_mode, self.oracle)
        ctx = rebuild_context(
            tree, current,
            mode=self.settings.traversal_mode,
            max_questions=self.settings.max_questions,
            question_count=snapshot.question_count,
            knowledge_base=to_excerpts(self.settings.knowledge_base),
        )
        self._replace_tree(tree, current, ctx)
        self.requirements = snapshot.requirements_document or new_requirements_document(snapshot.design_prompt)
        logger.info("Restored session %r at question %d", snapshot.design_prompt, ctx.question_count)

    def save(self, path: str | Path) -> Path:
        path = Path(path)
        path.write_text(self.snapshot().to_json(), encoding="utf-8")
        return path

    @classmethod
    def load(cls, path: str | Path, oracle: QuestionOracle, **kwargs) -> SessionController:
        """Build a controller from a snapshot file written by `save`."""
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SessionError(f"Could not read session file {path}: {e}") from e
        snapshot = SessionSnapshot.model_validate(data)
        session = cls(oracle, settings=snapshot.settings, **kwargs)
        session.restore(snapshot)
        return session

    # -----------------------------------------------------------------
    # Requirements and mockup
    # -----------------------------------------------------------------

    async def update_requirements(self) -> RequirementsDocument:
        """Fold the latest answer into the requirements document; failures keep the old one."""
        tree = self._require_tree()
        if self.synthesizer is None:
            raise SessionError("No requirements synthesizer configured")
        existing = self.requirements or new_requirements_document(design_prompt_of(tree))
        generation = self.generation
        try:
            updated = await self.synthesizer.update(
                tree, self.last_answered_id, self.settings.knowledge_base, existing,
            )
        except SynthesisError as e:
            logger.warning("Requirements update failed, keeping previous document: %s", e)
            return existing
        if generation == self.generation:
            self.requirements = updated
        return self.requirements

    async def simplify_requirements(self) -> RequirementsDocument:
        self._require_tree()
        if self.synthesizer is None:
            raise SessionError("No requirements synthesizer configured")
        if self.requirements is None:
            raise SessionError("No requirements document to simplify")
        generation = self.generation
        simplified = await self.synthesizer.simplify(self.requirements)
        if generation == self.generation:
            self.requirements = simplified
        return simplified

    async def generate_mockup(self) -> MockupResult:
        self._require_tree()
        if self.mockup_generator is None:
            raise SessionError("No mockup generator configured")
        if self.requirements is None or not self.requirements.requirement_count():
            raise SessionError("The requirements document is empty")
        return await self.mockup_generator.generate(self.requirements)
