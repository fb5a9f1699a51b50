"""
Interview Tree Node Store
=========================

In-memory tree of question/answer nodes. Nodes own their children; parent
and depth are computed by scanning from the root on every call, which keeps
the structure free of back-references.

All functions operate on the root node passed in. The "asked" and
"materialized" question sets live on the session-owned `TraversalContext`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from qna.types import (
    NodeId, QuestionNode, HistoryItem, TraversalContext, TraversalMode,
    InvariantViolation, ROOT_PREFIX,
)
from qna.topics import extract_topics

logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Construction and lookup
# -------------------------------------------------------------------

def create_root(prompt_text: str) -> QuestionNode:
    """Create the session root. It carries the design prompt and is never answerable."""
    return QuestionNode(question=f"{ROOT_PREFIX}{prompt_text}", sequence_number=0)


def design_prompt_of(tree: QuestionNode) -> str:
    question = tree.question
    return question[len(ROOT_PREFIX):] if question.startswith(ROOT_PREFIX) else question


def iter_preorder(tree: QuestionNode) -> Iterator[QuestionNode]:
    """Pre-order walk, iterative so deep trees cannot hit the recursion limit."""
    stack = [tree]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_by_id(tree: QuestionNode, node_id: NodeId | str) -> QuestionNode | None:
    for node in iter_preorder(tree):
        if node.id == node_id:
            return node
    return None


def find_parent(tree: QuestionNode, target: QuestionNode) -> QuestionNode | None:
    """The unique parent of `target`, or None for the root or a foreign node."""
    for node in iter_preorder(tree):
        for child in node.children:
            if child is target:
                return node
    return None


def path_to_root(tree: QuestionNode, target: QuestionNode) -> list[QuestionNode]:
    """Nodes from `target` up to and including the root (target -> parent -> root)."""
    def walk(node: QuestionNode, trail: list[QuestionNode]) -> list[QuestionNode] | None:
        trail.append(node)
        if node is target:
            return trail
        for child in node.children:
            found = walk(child, trail)
            if found is not None:
                return found
        trail.pop()
        return None

    path = walk(tree, [])
    return list(reversed(path)) if path else []


def node_depth(tree: QuestionNode, target: QuestionNode) -> int:
    """Root is depth 0, top-level questions depth 1. -1 if `target` is not in the tree."""
    path = path_to_root(tree, target)
    return len(path) - 1 if path else -1


def index_in(siblings: list[QuestionNode], target: QuestionNode) -> int:
    for i, node in enumerate(siblings):
        if node is target:
            return i
    return -1


def nodes_at_depth(tree: QuestionNode, depth: int) -> list[QuestionNode]:
    """Pre-order collection of nodes at exactly `depth`."""
    result: list[QuestionNode] = []

    def walk(node: QuestionNode, level: int) -> None:
        if level == depth:
            result.append(node)
            return
        for child in node.children:
            walk(child, level + 1)

    walk(tree, 0)
    return result


# -------------------------------------------------------------------
# Mutation
# -------------------------------------------------------------------

def append_children(
    parent: QuestionNode,
    new_nodes: list[QuestionNode],
    ctx: TraversalContext,
) -> list[QuestionNode]:
    """
    Append in order, skipping any node whose question was already asked or
    already lives in the tree. Returns the nodes actually appended.
    """
    appended: list[QuestionNode] = []
    for node in new_nodes:
        if ctx.is_known(node.question):
            logger.info("Rejected duplicate question: %r", node.question)
            continue
        parent.children.append(node)
        ctx.materialized.add(node.question)
        appended.append(node)
    return appended


# -------------------------------------------------------------------
# History views
# -------------------------------------------------------------------

def history_item(node: QuestionNode) -> HistoryItem:
    return HistoryItem(
        question=node.question,
        answer=node.answer,
        topics=sorted(extract_topics(node.question) | extract_topics(node.answer)),
    )


def answered_history(tree: QuestionNode) -> list[HistoryItem]:
    """Pre-order answered nodes, root excluded."""
    return [history_item(node) for node in iter_preorder(tree) if node is not tree and node.answer]


def branch_history(tree: QuestionNode, target: QuestionNode) -> list[HistoryItem]:
    """Answered nodes from the first question below the root down to `target`."""
    path = list(reversed(path_to_root(tree, target)))
    return [history_item(node) for node in path[1:] if node.answer]


# -------------------------------------------------------------------
# Integrity and (de)serialization
# -------------------------------------------------------------------

def validate_tree(tree: QuestionNode | None) -> None:
    """Raise InvariantViolation on a missing root, duplicate ids or duplicate questions."""
    if tree is None:
        raise InvariantViolation("tree has no root")
    seen_ids: set[str] = set()
    seen_questions: set[str] = set()
    for node in iter_preorder(tree):
        if node.id in seen_ids:
            raise InvariantViolation(f"node id {node.id!r} appears twice (cycle or shared node)")
        if node.question in seen_questions:
            raise InvariantViolation(f"question {node.question!r} appears twice")
        seen_ids.add(node.id)
        seen_questions.add(node.question)


def node_to_dict(node: QuestionNode) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": str(node.id),
        "question": node.question,
        "children": [node_to_dict(child) for child in node.children],
    }
    if node.answer is not None:
        data["answer"] = node.answer
    if node.sequence_number is not None:
        data["questionNumber"] = node.sequence_number
    return data


def node_from_dict(data: dict[str, Any]) -> QuestionNode:
    return QuestionNode(
        question=data["question"],
        answer=data.get("answer"),
        children=[node_from_dict(child) for child in data.get("children", [])],
        sequence_number=data.get("questionNumber"),
        id=NodeId(data["id"]) if data.get("id") else None,
    )


def rebuild_context(
    tree: QuestionNode,
    current: QuestionNode | None,
    mode: TraversalMode | str,
    max_questions: int | None = None,
    question_count: int | None = None,
    knowledge_base: list[dict[str, Any]] | None = None,
) -> TraversalContext:
    """
    Recompute the per-tree sets by walking a (restored) tree.

    Asked questions are the answered nodes plus the current node; every node,
    root included, is materialized.
    """
    validate_tree(tree)
    ctx = TraversalContext(mode=TraversalMode(mode), max_questions=max_questions)
    highest = 0
    for node in iter_preorder(tree):
        ctx.materialized.add(node.question)
        if node is tree:
            continue
        if node.answer or node is current:
            ctx.asked_questions.add(node.question)
            ctx.asked_topics |= extract_topics(node.question)
        if node.sequence_number is not None:
            highest = max(highest, node.sequence_number)
    ctx.question_count = max(question_count or 0, highest)
    ctx.knowledge_base = list(knowledge_base or [])
    return ctx
