"""
Orchestrators package for interview sessions.

The session controller composes the traversal policy, oracle and synthesis
adapters; the automation loop drives it without user input.
"""

from .automation import AutomationLoop
from .session import (
    SessionController, SessionSnapshot, QASettings, TurnResult, TurnStatus,
    COMPLETE_MESSAGE,
)

__all__ = [
    "AutomationLoop",
    "SessionController",
    "SessionSnapshot",
    "QASettings",
    "TurnResult",
    "TurnStatus",
    "COMPLETE_MESSAGE",
]
