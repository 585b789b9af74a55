"""The streaming turn orchestrator (agent loop)."""

from .turn import TurnOrchestrator, TurnState, Turn

__all__ = ["TurnOrchestrator", "TurnState", "Turn"]
