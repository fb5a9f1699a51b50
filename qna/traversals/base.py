"""
Base Traversal Policy

Shared machinery for the breadth-first and depth-first policies: the
`advance` wrapper (limit short-circuit, surfacing, outcome bookkeeping),
oracle request construction, and node creation with duplicate suppression.

Subclasses implement `_select`, which returns the next node or None.
"""

from __future__ import annotations

import logging

from qna.interfaces import QuestionOracle
from qna.oracle.schemas import HistoryEntry, KnowledgeExcerpt, OracleRequest, ParentContext
from qna.topics import extract_aspects, extract_topics, child_target, uncovered_aspects
from qna.trees.node_store import (
    append_children, answered_history, branch_history, design_prompt_of, index_in,
)
from qna.types import (
    AdvanceOutcome, HistoryItem, OracleMode, QuestionNode, TraversalCancelled,
    TraversalContext, TraversalMode,
)

logger = logging.getLogger(__name__)


def build_oracle_request(
    tree: QuestionNode,
    ctx: TraversalContext,
    depth: int,
    history: list[HistoryItem],
    parent_context: ParentContext | None = None,
    mode: OracleMode = OracleMode.NEXT_QUESTION,
    current_question: str | None = None,
) -> OracleRequest:
    """Package tree context into an oracle request."""
    return OracleRequest(
        design_prompt=design_prompt_of(tree),
        answered_history=[HistoryEntry.from_item(item) for item in history],
        traversal_mode=ctx.mode,
        knowledge_base=[KnowledgeExcerpt.model_validate(kb) for kb in ctx.knowledge_base] or None,
        depth=depth,
        parent_context=parent_context,
        mode=mode,
        covered_topics=sorted(ctx.asked_topics) or None,
        current_question=current_question,
    )


def parent_context_for(parent: QuestionNode, uncovered: list[str] | None = None) -> ParentContext:
    return ParentContext(
        parent_question=parent.question,
        parent_answer=parent.answer,
        parent_topics=sorted(extract_topics(parent.question) | extract_topics(parent.answer)),
        sibling_questions=[child.question for child in parent.children],
        uncovered_aspects=uncovered,
    )


class BaseTraversalPolicy:
    """
    Common `advance` contract for both policies.

    The policy object is stateless between calls; the tree and the
    session-owned TraversalContext carry everything.
    """

    mode: TraversalMode

    def __init__(self, oracle: QuestionOracle):
        self.oracle = oracle

    async def advance(
        self,
        tree: QuestionNode,
        answered: QuestionNode | None,
        ctx: TraversalContext,
    ) -> QuestionNode | None:
        """
        Pick (and if needed create) the next question after `answered`.

        `answered=None` opens a session with a fresh top-level question.
        Returns None when nothing is left; `ctx.last_outcome` says why.
        """
        self._check_live(ctx)
        ctx.begin_step()

        if ctx.limit_reached():
            logger.info("Question limit reached (%d)", ctx.question_count)
            ctx.last_outcome = AdvanceOutcome.LIMIT_REACHED
            return None

        if answered is not None and answered is not tree:
            # the answered node was surfaced earlier; make sure the sets agree after a restore
            self._surface(answered, ctx)

        node = await self._select(tree, answered, ctx)

        if node is not None:
            self._surface(node, ctx)
            ctx.last_outcome = AdvanceOutcome.NEXT
        elif ctx.limit_reached():
            ctx.last_outcome = AdvanceOutcome.LIMIT_REACHED
        elif ctx.step_duplicates:
            ctx.last_outcome = AdvanceOutcome.DUPLICATE
        elif ctx.step_faults:
            ctx.last_outcome = AdvanceOutcome.ORACLE_FAULT
        else:
            ctx.last_outcome = AdvanceOutcome.EXHAUSTED
        return node

    async def _select(
        self,
        tree: QuestionNode,
        answered: QuestionNode | None,
        ctx: TraversalContext,
    ) -> QuestionNode | None:
        raise NotImplementedError

    # -----------------------------------------------------------------
    # Node state helpers
    # -----------------------------------------------------------------

    @staticmethod
    def _check_live(ctx: TraversalContext) -> None:
        if ctx.invalidated:
            raise TraversalCancelled("tree was replaced while the traversal was running")

    @staticmethod
    def _surface(node: QuestionNode, ctx: TraversalContext) -> None:
        ctx.asked_questions.add(node.question)
        ctx.asked_topics |= extract_topics(node.question)

    @staticmethod
    def _is_available(node: QuestionNode, ctx: TraversalContext) -> bool:
        """Materialized but never shown to the user."""
        return not node.is_answered and node.question not in ctx.asked_questions

    @staticmethod
    def _needs_children(node: QuestionNode) -> bool:
        return node.is_answered and len(node.children) < child_target(node.answer)

    def _next_available_sibling(
        self,
        siblings: list[QuestionNode],
        current: QuestionNode,
        ctx: TraversalContext,
    ) -> QuestionNode | None:
        """First unvisited sibling after `current`, then any unvisited one before it."""
        idx = index_in(siblings, current)
        for node in siblings[idx + 1:] + siblings[:max(idx, 0)]:
            if node is not current and self._is_available(node, ctx):
                return node
        return None

    # -----------------------------------------------------------------
    # Oracle requests
    # -----------------------------------------------------------------

    @staticmethod
    def _open_aspects(parent: QuestionNode) -> list[str]:
        """Aspects of `parent`'s answer not yet covered by its answered children."""
        covered_topics: set[str] = set()
        covered_texts: list[str] = []
        for child in parent.children:
            if child.is_answered:
                covered_topics |= extract_topics(child.question) | extract_topics(child.answer)
                covered_texts.extend([child.question, child.answer])
        return uncovered_aspects(extract_aspects(parent.answer), covered_topics, covered_texts)

    async def _spawn(
        self,
        tree: QuestionNode,
        parent: QuestionNode,
        ctx: TraversalContext,
        request: OracleRequest,
    ) -> QuestionNode | None:
        """
        Ask the oracle for one question and append it under `parent`.

        Returns the new node, or None when the oracle stopped, failed or only
        produced a question that already exists.
        """
        if ctx.limit_reached():
            return None

        result = await self.oracle.request_next(request)
        self._check_live(ctx)

        if result.is_fallback:
            ctx.step_faults += 1
            ctx.last_error = result.error
            return None
        if result.should_stop_branch or not result.first_question:
            logger.info("Oracle stopped branch at depth %d: %s", request.depth, result.stop_reason or "no question")
            return None

        question = result.first_question
        if ctx.is_known(question):
            ctx.step_duplicates += 1
            logger.info("Discarded duplicate question from oracle: %r", question)
            return None

        appended = append_children(parent, [QuestionNode(question=question)], ctx)
        if not appended:
            ctx.step_duplicates += 1
            return None
        node = appended[0]
        node.sequence_number = ctx.next_sequence_number()
        return node

    async def _grow(
        self,
        tree: QuestionNode,
        node: QuestionNode,
        node_depth: int,
        ctx: TraversalContext,
    ) -> QuestionNode | None:
        """Request one child for an answered node, unless it sits at the depth bound."""
        if node_depth >= ctx.max_depth:
            return None
        request = build_oracle_request(
            tree, ctx,
            depth=node_depth + 1,
            history=branch_history(tree, node),
            parent_context=parent_context_for(node, self._open_aspects(node)),
        )
        return await self._spawn(tree, node, ctx, request)

    async def _fresh_top_level(self, tree: QuestionNode, ctx: TraversalContext) -> QuestionNode | None:
        """Last resort: a new top-level question seeded with the whole answered history."""
        request = build_oracle_request(tree, ctx, depth=1, history=answered_history(tree))
        return await self._spawn(tree, tree, ctx, request)
