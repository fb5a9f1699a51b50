"""
Text rendering of the interview tree.

Builds a throwaway anytree view of the session tree so the CLI and debug
logging can print it with RenderTree. The view is rebuilt on every call and
never fed back into traversal.
"""

from __future__ import annotations

from anytree import Node, RenderTree

from qna.types import QuestionNode


def to_anytree(tree: QuestionNode) -> Node:
    """Mirror the question tree into anytree nodes."""
    def build(node: QuestionNode, parent: Node | None) -> Node:
        view = Node(
            node.question,
            parent=parent,
            node_id=str(node.id),
            answer=node.answer,
            number=node.sequence_number,
        )
        for child in node.children:
            build(child, view)
        return view

    return build(tree, None)


def render_tree(tree: QuestionNode, max_depth: int | None = None, show_answers: bool = True) -> str:
    """Render the tree as indented text, one line per question (plus its answer)."""
    lines: list[str] = []
    for pre, fill, view in RenderTree(to_anytree(tree)):
        if max_depth is not None and view.depth > max_depth:
            continue
        label = f"Q{view.number}" if view.number is not None else "Q?"
        lines.append(f"{pre}{label}: {view.name}")
        if show_answers and view.answer:
            lines.append(f"{fill}    -> {view.answer}")
    return "\n".join(lines)
