"""
Test Suite for the depth-first traversal policy

Drilling into the latest answer, the depth bound, backtracking with sibling
synthesis, duplicate suppression, oracle faults and cancellation.
"""

import asyncio

import pytest

from qna.trees import find_parent, iter_preorder, node_depth, rebuild_context
from qna.traversals import DepthFirstPolicy, create_traversal_engine
from qna.types import AdvanceOutcome, MAX_DEPTH, TraversalCancelled, TraversalMode


@pytest.fixture
def policy(oracle):
    return DepthFirstPolicy(oracle)


@pytest.fixture
def ctx(tree, make_ctx):
    return make_ctx(tree, TraversalMode.DFS)


class TestFactory:

    def test_creates_dfs_policy(self, oracle):
        assert isinstance(create_traversal_engine("dfs", oracle), DepthFirstPolicy)

    def test_unknown_mode(self, oracle):
        with pytest.raises(ValueError):
            create_traversal_engine("random", oracle)


class TestDescend:

    @pytest.mark.asyncio
    async def test_first_question_is_top_level(self, policy, tree, ctx, transport):
        transport.add_questions("Who is the primary user?")

        node = await policy.advance(tree, None, ctx)

        assert node.question == "Who is the primary user?"
        assert node.sequence_number == 1
        assert tree.children == [node]
        assert "Who is the primary user?" in ctx.asked_questions
        assert ctx.last_outcome == AdvanceOutcome.NEXT
        request = transport.requests[0]
        assert request.depth == 1
        assert request.parent_context is None
        assert request.traversal_mode == TraversalMode.DFS

    @pytest.mark.asyncio
    async def test_answer_grows_a_child(self, policy, tree, ctx, transport):
        transport.add_questions("Who is the primary user?", "Do drivers need accounts?")
        q1 = await policy.advance(tree, None, ctx)
        q1.answer = "Drivers and owners"

        child = await policy.advance(tree, q1, ctx)

        assert find_parent(tree, child) is q1
        assert child.sequence_number == 2
        request = transport.requests[1]
        assert request.depth == 2
        assert request.parent_context.parent_question == "Who is the primary user?"
        assert request.parent_context.uncovered_aspects == ["Drivers", "owners"]
        assert [h.question for h in request.answered_history] == ["Who is the primary user?"]

    @pytest.mark.asyncio
    async def test_existing_child_is_surfaced_without_oracle_call(self, policy, tree, add_node, transport):
        q1 = add_node(tree, "Who is the primary user?", "Drivers")
        child = add_node(q1, "Do drivers need accounts?")
        ctx = rebuild_context(tree, q1, TraversalMode.DFS)

        assert await policy.advance(tree, q1, ctx) is child
        assert transport.requests == []


class TestDepthBound:

    @pytest.mark.asyncio
    async def test_never_grows_below_max_depth(self, policy, tree, build_chain, transport):
        chain = build_chain(tree, MAX_DEPTH)
        ctx = rebuild_context(tree, chain[-1], TraversalMode.DFS)
        transport.add_questions("Another depth 5 question?")

        node = await policy.advance(tree, chain[-1], ctx)

        # the only-child at the bound gets a synthesized sibling instead of a child
        assert find_parent(tree, node) is chain[-2]
        assert node_depth(tree, node) == MAX_DEPTH
        assert node.sequence_number == MAX_DEPTH + 1
        request = transport.requests[0]
        assert request.depth == MAX_DEPTH
        assert request.parent_context.parent_question == chain[-2].question
        assert all(r.depth <= MAX_DEPTH for r in transport.requests)


class TestBacktrack:

    @pytest.mark.asyncio
    async def test_backtracks_to_unvisited_sibling(self, policy, tree, add_node, transport):
        a = add_node(tree, "Who is the primary user?", "Drivers and admins")
        a1 = add_node(a, "Do drivers need accounts?", "Yes")
        a2 = add_node(a, "Do admins manage pricing?")
        ctx = rebuild_context(tree, a1, TraversalMode.DFS)
        transport.add_questions(None)

        node = await policy.advance(tree, a1, ctx)

        assert node is a2
        assert len(transport.question_requests) == 1

    @pytest.mark.asyncio
    async def test_duplicate_child_falls_back_to_new_top_level(self, policy, tree, ctx, transport):
        transport.add_questions(
            "Who is the primary user?",
            "Who is the primary user?",
            "What payment methods are required?",
        )
        q1 = await policy.advance(tree, None, ctx)
        q1.answer = "Drivers"

        node = await policy.advance(tree, q1, ctx)

        assert node.question == "What payment methods are required?"
        assert find_parent(tree, node) is tree
        assert ctx.step_duplicates == 1
        assert ctx.last_outcome == AdvanceOutcome.NEXT
        questions = [n.question for n in iter_preorder(tree)]
        assert len(questions) == len(set(questions))
        assert transport.requests[2].depth == 1
        assert transport.requests[2].parent_context is None

    @pytest.mark.asyncio
    async def test_duplicate_only_outcome(self, policy, tree, ctx, transport):
        transport.add_questions("Who is the primary user?", "Who is the primary user?")
        q1 = await policy.advance(tree, None, ctx)
        q1.answer = "Drivers"

        assert await policy.advance(tree, q1, ctx) is None
        assert ctx.last_outcome == AdvanceOutcome.DUPLICATE
        assert q1.children == []


class TestTermination:

    @pytest.mark.asyncio
    async def test_finite_oracle_terminates(self, policy, tree, ctx, transport):
        transport.add_questions(*[f"Question {i}?" for i in range(6)])

        surfaced = []
        node = await policy.advance(tree, None, ctx)
        for _ in range(50):
            if node is None:
                break
            surfaced.append(node)
            node.answer = "Alpha, beta"
            node = await policy.advance(tree, node, ctx)

        assert node is None
        assert ctx.last_outcome == AdvanceOutcome.EXHAUSTED
        assert [n.sequence_number for n in surfaced] == list(range(1, 7))
        assert all(node_depth(tree, n) <= MAX_DEPTH for n in surfaced)

    @pytest.mark.asyncio
    async def test_question_limit(self, policy, tree, make_ctx, transport):
        ctx = make_ctx(tree, TraversalMode.DFS, max_questions=2)
        transport.add_questions("Q1?", "Q2?", "Q3?")
        q1 = await policy.advance(tree, None, ctx)
        q1.answer = "Yes"
        q2 = await policy.advance(tree, q1, ctx)
        q2.answer = "Yes"

        assert await policy.advance(tree, q2, ctx) is None
        assert ctx.last_outcome == AdvanceOutcome.LIMIT_REACHED
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_stop_flag_wins_over_questions(self, policy, tree, ctx, transport):
        transport.add_questions({"questions": ["Ignored?"], "shouldStopBranch": True})

        assert await policy.advance(tree, None, ctx) is None
        assert ctx.last_outcome == AdvanceOutcome.EXHAUSTED
        assert tree.children == []


class TestFaults:

    @pytest.mark.asyncio
    async def test_oracle_fault_outcome(self, policy, tree, ctx, transport):
        transport.add_questions(RuntimeError("boom"))

        assert await policy.advance(tree, None, ctx) is None
        assert ctx.last_outcome == AdvanceOutcome.ORACLE_FAULT
        assert "boom" in ctx.last_error
        assert tree.children == []

    @pytest.mark.asyncio
    async def test_fault_while_descending_skips_backtracking(self, policy, tree, transport, build_chain):
        first, second = build_chain(tree, 2)
        ctx = rebuild_context(tree, second, TraversalMode.DFS)
        transport.add_questions(RuntimeError("down"), "Never requested?")

        assert await policy.advance(tree, second, ctx) is None
        assert ctx.last_outcome == AdvanceOutcome.ORACLE_FAULT
        assert len(transport.requests) == 1
        assert first.children == [second]
        assert len(tree.children) == 1

    @pytest.mark.asyncio
    async def test_late_result_after_invalidation_is_dropped(self, policy, tree, ctx, transport, requests_seen):
        transport.gate = asyncio.Event()
        transport.add_questions("Late question?")

        task = asyncio.create_task(policy.advance(tree, None, ctx))
        await requests_seen(transport, 1)
        ctx.invalidated = True
        transport.gate.set()

        with pytest.raises(TraversalCancelled):
            await task
        assert tree.children == []

    @pytest.mark.asyncio
    async def test_invalidated_context_refuses_to_start(self, policy, tree, ctx):
        ctx.invalidated = True
        with pytest.raises(TraversalCancelled):
            await policy.advance(tree, None, ctx)
