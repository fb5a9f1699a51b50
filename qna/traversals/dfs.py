"""
Depth-first traversal policy.

Drill into the most recent answer until the depth bound, then backtrack:
next unvisited sibling at each ancestor level, sibling synthesis for
only-children, and finally a fresh top-level question.
"""

from __future__ import annotations

import logging

from qna.topics import extract_aspects
from qna.trees.node_store import branch_history, index_in, path_to_root
from qna.types import InvariantViolation, QuestionNode, TraversalContext, TraversalMode
from .base import BaseTraversalPolicy, build_oracle_request, parent_context_for

logger = logging.getLogger(__name__)


class DepthFirstPolicy(BaseTraversalPolicy):
    mode = TraversalMode.DFS

    async def _select(
        self,
        tree: QuestionNode,
        answered: QuestionNode | None,
        ctx: TraversalContext,
    ) -> QuestionNode | None:
        if answered is None or answered is tree or not answered.is_answered:
            return await self._fresh_top_level(tree, ctx)

        path = path_to_root(tree, answered)
        if not path:
            raise InvariantViolation(f"answered node {answered.id} is not in the tree")
        depth = len(path) - 1

        if depth < ctx.max_depth:
            child = await self._descend(tree, answered, depth, ctx)
            if child is not None:
                return child
            if ctx.step_faults:
                # the oracle is failing; leave backtracking for a retry
                return None
            logger.info("No child produced at depth %d, backtracking", depth)
        else:
            logger.info("Depth bound %d reached, backtracking", ctx.max_depth)

        return await self._backtrack(tree, path, ctx)

    async def _descend(
        self,
        tree: QuestionNode,
        answered: QuestionNode,
        depth: int,
        ctx: TraversalContext,
    ) -> QuestionNode | None:
        # children materialized earlier (e.g. before a restore) come first
        for child in answered.children:
            if self._is_available(child, ctx):
                return child
        return await self._grow(tree, answered, depth, ctx)

    async def _backtrack(
        self,
        tree: QuestionNode,
        path: list[QuestionNode],
        ctx: TraversalContext,
    ) -> QuestionNode | None:
        """
        Walk from the answered node up to the root. `path` runs node -> root.
        """
        for level, (node, parent) in enumerate(zip(path, path[1:])):
            sibling = self._next_available_sibling(parent.children, node, ctx)
            if sibling is not None:
                return sibling

            if parent is not tree and len(parent.children) == 1 and index_in(parent.children, node) == 0:
                node_depth = len(path) - 1 - level
                sibling = await self._synthesize_sibling(tree, parent, node_depth, ctx)
                if sibling is not None:
                    return sibling
                if ctx.step_faults:
                    return None

        logger.info("Backtracking reached the root, requesting a fresh top-level question")
        return await self._fresh_top_level(tree, ctx)

    async def _synthesize_sibling(
        self,
        tree: QuestionNode,
        parent: QuestionNode,
        depth: int,
        ctx: TraversalContext,
    ) -> QuestionNode | None:
        """Ask for a second child of `parent`, steered by the parent's aspects."""
        request = build_oracle_request(
            tree, ctx,
            depth=depth,
            history=branch_history(tree, parent),
            parent_context=parent_context_for(parent, extract_aspects(parent.answer)),
        )
        return await self._spawn(tree, parent, ctx, request)
