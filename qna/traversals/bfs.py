"""
Breadth-first traversal policy.

Fill out each level before going deeper: existing siblings first, then new
siblings while the parent's aspects are not yet covered, then rebalancing
across depth-2 branches, then the next level, then a fresh top-level
question.
"""

from __future__ import annotations

import logging

from qna.topics import child_target
from qna.trees.node_store import (
    answered_history, branch_history, find_parent, history_item, node_depth, nodes_at_depth,
)
from qna.types import InvariantViolation, QuestionNode, TraversalContext, TraversalMode
from .base import BaseTraversalPolicy, build_oracle_request, parent_context_for

logger = logging.getLogger(__name__)

TOP_LEVEL_CAP = 4
LEVEL_CAP = 3


class BreadthFirstPolicy(BaseTraversalPolicy):
    mode = TraversalMode.BFS

    async def _select(
        self,
        tree: QuestionNode,
        answered: QuestionNode | None,
        ctx: TraversalContext,
    ) -> QuestionNode | None:
        if answered is None or answered is tree:
            return await self._fresh_top_level(tree, ctx)

        parent = find_parent(tree, answered)
        if parent is None:
            raise InvariantViolation(f"answered node {answered.id} is not in the tree")
        depth = node_depth(tree, answered)
        at_top = parent is tree

        # keep depth-1 branches growing evenly before going deeper under one of them
        if depth == 2 and len(parent.children) >= child_target(parent.answer):
            lateral = await self._grow_first_needing(tree, 1, ctx, exclude=parent)
            if lateral is not None:
                logger.info("Moved laterally to another depth-1 branch")
                return lateral
            if ctx.step_faults:
                return None

        sibling = self._next_available_sibling(parent.children, answered, ctx)
        if sibling is not None:
            return sibling

        sibling = await self._grow_level(tree, parent, depth, at_top, ctx)
        if sibling is not None:
            return sibling
        if ctx.step_faults:
            # the oracle is failing; leave the rest of the fallbacks for a retry
            return None

        if depth >= 3:
            rebalanced = await self._grow_first_needing(tree, 2, ctx)
            if rebalanced is not None:
                logger.info("Rebalanced coverage under a depth-2 node")
                return rebalanced
            if ctx.step_faults:
                return None

        return await self._level_fallback(tree, depth, ctx)

    async def _grow_level(
        self,
        tree: QuestionNode,
        parent: QuestionNode,
        depth: int,
        at_top: bool,
        ctx: TraversalContext,
    ) -> QuestionNode | None:
        """Request a new sibling while the level is under its cap and still has uncovered aspects."""
        cap = TOP_LEVEL_CAP if at_top else LEVEL_CAP
        if len(parent.children) >= cap:
            return None

        if at_top:
            # top-level coverage is bounded by the cap alone
            request = build_oracle_request(tree, ctx, depth=1, history=answered_history(tree))
        else:
            remaining = self._open_aspects(parent)
            if not remaining:
                return None
            history = branch_history(tree, parent)
            history += [history_item(node) for node in parent.children if node.is_answered]
            request = build_oracle_request(
                tree, ctx,
                depth=depth,
                history=history,
                parent_context=parent_context_for(parent, remaining),
            )
        return await self._spawn(tree, parent, ctx, request)

    async def _grow_first_needing(
        self,
        tree: QuestionNode,
        depth: int,
        ctx: TraversalContext,
        exclude: QuestionNode | None = None,
    ) -> QuestionNode | None:
        for node in nodes_at_depth(tree, depth):
            if node is exclude or not self._needs_children(node):
                continue
            child = await self._grow(tree, node, depth, ctx)
            if child is not None:
                return child
            if ctx.step_faults:
                # stop at the first oracle fault
                break
        return None

    async def _level_fallback(
        self,
        tree: QuestionNode,
        depth: int,
        ctx: TraversalContext,
    ) -> QuestionNode | None:
        """
        Finish the current level, then the next one, then start a new top-level question.
        """
        for level in (depth, depth + 1):
            if level > ctx.max_depth:
                break
            nodes = nodes_at_depth(tree, level)
            for node in nodes:
                if self._is_available(node, ctx):
                    return node
            child = await self._grow_first_needing(tree, level, ctx)
            if child is not None:
                return child
            if ctx.step_faults:
                return None

        logger.info("Level %d exhausted, requesting a fresh top-level question", depth)
        return await self._fresh_top_level(tree, ctx)
