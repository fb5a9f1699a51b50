"""
Core interfaces for the interview engine.

These protocols define the contracts between layers:
- OracleTransport: raw I/O to a question-generation backend
- QuestionOracle: normalized request/response boundary the engine talks to
- TraversalPolicy: BFS/DFS next-node selection
"""

from __future__ import annotations
from typing import Any, Protocol, TYPE_CHECKING

from .types import QuestionNode, TraversalContext, TraversalMode

if TYPE_CHECKING:
    from .oracle.schemas import OracleRequest, OracleResult


class OracleTransport(Protocol):
    """
    Protocol for the raw side of the oracle boundary.

    Implementations perform the network call (or replay a script) and return
    the oracle's payload untouched: a JSON string or an already-decoded dict.
    They may raise; the OracleClient converts every failure into a fallback.
    """

    async def send(self, request: OracleRequest) -> str | dict[str, Any]:
        ...


class QuestionOracle(Protocol):
    """
    Protocol for the normalized oracle boundary.

    `request_next` never raises for oracle faults; malformed or failed
    exchanges come back as a fallback-tagged OracleResult.
    """

    async def request_next(self, request: OracleRequest) -> OracleResult:
        ...


class TraversalPolicy(Protocol):
    """
    Protocol for next-node selection.

    Policies carry no state of their own between calls: everything lives in
    the tree and the session-owned TraversalContext passed in.
    """

    mode: TraversalMode

    async def advance(
        self,
        tree: QuestionNode,
        answered: QuestionNode | None,
        ctx: TraversalContext,
    ) -> QuestionNode | None:
        """Return the next node to surface, or None when nothing is left."""
        ...
