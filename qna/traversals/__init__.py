"""
Traversal Policies
==================

Next-question selection for the interview tree. Both policies share the
`advance(tree, answered, ctx)` interface defined by `TraversalPolicy`.
"""

from qna.interfaces import QuestionOracle, TraversalPolicy
from qna.types import TraversalMode
from .base import BaseTraversalPolicy, build_oracle_request, parent_context_for
from .bfs import BreadthFirstPolicy
from .dfs import DepthFirstPolicy

_POLICIES = {
    TraversalMode.BFS: BreadthFirstPolicy,
    TraversalMode.DFS: DepthFirstPolicy,
}


def create_traversal_engine(mode: TraversalMode | str, oracle: QuestionOracle) -> TraversalPolicy:
    """Factory for the policy matching `mode` ("bfs" or "dfs")."""
    try:
        policy_cls = _POLICIES[TraversalMode(mode)]
    except ValueError:
        raise ValueError(f"Unknown traversal mode: {mode!r}. Available: {[m.value for m in TraversalMode]}")
    return policy_cls(oracle)


__all__ = [
    "BaseTraversalPolicy",
    "build_oracle_request",
    "parent_context_for",
    "BreadthFirstPolicy",
    "DepthFirstPolicy",
    "create_traversal_engine",
]
