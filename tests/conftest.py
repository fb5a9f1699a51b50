"""
Shared fixtures for the interview engine tests.

Oracles are stubbed with ScriptedTransport; LLM-backed adapters are patched
with AsyncMock.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from qna.oracle import OracleClient, ScriptedTransport
from qna.orchestrators import SessionController, QASettings
from qna.trees import create_root
from qna.types import QuestionNode, TraversalContext, TraversalMode


PROMPT = "Design a parking app"


@pytest.fixture
def transport():
    """Scripted oracle transport; tests queue questions and suggestions on it."""
    return ScriptedTransport()


@pytest.fixture
def oracle(transport):
    return OracleClient(transport)


@pytest.fixture
def tree():
    return create_root(PROMPT)


@pytest.fixture
def make_ctx():
    def make(tree: QuestionNode, mode: TraversalMode = TraversalMode.BFS, **kwargs) -> TraversalContext:
        ctx = TraversalContext(mode=mode, **kwargs)
        ctx.materialized.add(tree.question)
        return ctx
    return make


@pytest.fixture
def add_node():
    """Attach a hand-built node (bypassing the engine) with the next free sequence number."""
    counter = {"seq": 0}

    def add(parent: QuestionNode, question: str, answer: str | None = None) -> QuestionNode:
        counter["seq"] += 1
        node = QuestionNode(question=question, answer=answer, sequence_number=counter["seq"])
        parent.children.append(node)
        return node
    return add


@pytest.fixture
def build_chain(add_node):
    """A single branch root -> depth 1 -> ... -> depth n, every node answered."""
    def build(tree: QuestionNode, depth: int, answer: str = "Yes", last_answer: str | None = None) -> list[QuestionNode]:
        nodes = []
        parent = tree
        for d in range(1, depth + 1):
            node_answer = last_answer if (d == depth and last_answer is not None) else answer
            parent = add_node(parent, f"Depth {d} question?", node_answer)
            nodes.append(parent)
        return nodes
    return build


@pytest.fixture
def make_session(oracle):
    def make(mode: TraversalMode = TraversalMode.BFS, **kwargs) -> SessionController:
        settings_kwargs = {k: kwargs.pop(k) for k in list(kwargs) if k in QASettings.model_fields}
        settings = QASettings(traversal_mode=mode, **settings_kwargs)
        kwargs.setdefault("settle_delay", 0)
        return SessionController(oracle, settings=settings, **kwargs)
    return make


@pytest.fixture
def llm_response():
    """Build a litellm-shaped response object with the given message content."""
    def build(content: str):
        response = MagicMock()
        response.choices[0].message.content = content
        return response
    return build


async def wait_for_requests(transport: ScriptedTransport, count: int, timeout: float = 1.0) -> None:
    """Yield to the loop until the transport has seen `count` requests."""
    async def poll():
        while len(transport.requests) < count:
            await asyncio.sleep(0)
    await asyncio.wait_for(poll(), timeout)


@pytest.fixture
def requests_seen():
    return wait_for_requests
