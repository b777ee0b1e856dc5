"""Background execution runtime for agent runs.

The runtime takes a queued run and drives it through a multi-turn
conversation with strong guarantees:

- a run is owned by exactly one worker while it executes,
- status changes only along the edges of ``lifecycle.ALLOWED_TRANSITIONS``,
- pause and cancel are cooperative and observed at turn and tool-call
  boundaries,
- failed and cancelled runs keep their full history and logs.

The main entry point is ``ExecutionEngine``; one turn of the loop is a
LangGraph state machine in ``TurnLoopController``.
"""

from .engine import ExecutionEngine
from .events import RunEventBroadcaster
from .goal import GoalEvaluator
from .lifecycle import ALLOWED_TRANSITIONS, ensure_transition
from .models import EngineDeps, RetryPolicy, RunContext, RunControl, TurnOutcome
from .registry import ActiveRunRegistry
from .turn_loop import TurnLoopController

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ActiveRunRegistry",
    "EngineDeps",
    "ExecutionEngine",
    "GoalEvaluator",
    "RetryPolicy",
    "RunContext",
    "RunControl",
    "RunEventBroadcaster",
    "TurnLoopController",
    "TurnOutcome",
    "ensure_transition",
]
