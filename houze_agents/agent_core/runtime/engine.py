from __future__ import annotations

"""Background execution engine.

``ExecutionEngine`` owns the execution queue, the worker pool, the active run
registry and the pause/resume/cancel control surface.

Execution model
---------------

- ``enqueue`` validates the request, reserves queue capacity, persists a
  ``pending`` run and puts its id on a bounded FIFO ``asyncio.Queue``. A full
  queue fails fast with ``QueueFullError`` and no run is created.
- ``worker_count`` worker tasks dequeue ids. A worker *claims* a run under the
  engine's claim lock (load, validate status, mark ``running``, register),
  then drives it through ``TurnLoopController`` one turn at a time, persisting
  after every turn, until the run is terminal or suspended.
- Finalization (status write, last persist, deregistration) also happens under
  the claim lock, so a control operation either lands before the worker
  releases the run and is observed, or after and sees the settled status.
- ``execute`` creates the run the same way but drives it on the caller's task
  under the worker id ``inline``, bypassing the queue and its capacity.

Control
-------

Pause, resume and cancel are idempotent signal setters. A running run sees
them at its next turn boundary (cancel also before each tool call). Runs no
worker holds are settled directly: a parked paused run is cancelled in place,
a queued run is marked ``cancelling`` and finalized by the worker that claims
it. Terminal status writes are always made through ``lifecycle.transition``.
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Set, Tuple

from ...core.logging_config import get_logger, sanitize_for_log
from ...server.core.config import EngineConfig
from ..errors import ConfigurationError, InvalidStateError, NotFoundError, QueueFullError, ValidationError
from ..schemas.domain import (
    Agent,
    AgentRun,
    AgentRunStatus,
    LogLevel,
    RunEvent,
    RunEventType,
    RunSummary,
    _utc_now,
)
from .goal import GoalEvaluator
from .lifecycle import transition
from .models import EngineDeps, RetryPolicy, RunContext, RunControl, TurnOutcome
from .prompt import missing_required_inputs
from .registry import ActiveRunRegistry
from .turn_loop import TurnLoopController, resolve_agent_tools

logger = get_logger(__name__)

S = AgentRunStatus

INLINE_WORKER_ID = "inline"


class ExecutionEngine:
    """Run agents in the background with bounded concurrency and cooperative control."""

    def __init__(
        self,
        *,
        deps: EngineDeps,
        config: Optional[EngineConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the ExecutionEngine.

        Args:
            deps: Repositories, chat model, tool provider and optional event channel.
            config: Queue, worker, retry and timeout settings.
            sleep: Backoff sleeper shared by all retries, injectable for tests.
        """
        self._deps = deps
        self._config = config or EngineConfig()
        self._retry = RetryPolicy.from_config(self._config)
        self._sleep = sleep
        self._turn_loop = TurnLoopController(
            chat_model=deps.chat_model,
            tools=deps.tools,
            retry=self._retry,
            goal_evaluator=GoalEvaluator(
                deps.chat_model,
                retry=self._retry,
                timeout_seconds=self._config.model_timeout_seconds,
                sleep=sleep,
            ),
            model_timeout_seconds=self._config.model_timeout_seconds,
            sleep=sleep,
        )

        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self._config.queue_capacity)
        self._queued: Set[str] = set()
        self._controls: Dict[str, RunControl] = {}
        self._registry = ActiveRunRegistry()
        self._claim_lock = asyncio.Lock()
        self._workers: List[asyncio.Task[None]] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        """Spawn the worker tasks. Calling ``start`` twice is a no-op."""
        if self._workers:
            return
        for i in range(self._config.worker_count):
            worker_id = f"worker-{i + 1}"
            self._workers.append(asyncio.create_task(self._worker(worker_id), name=f"houze-agents-{worker_id}"))
        logger.info(
            "Execution engine started: workers=%d queue_capacity=%d",
            self._config.worker_count,
            self._config.queue_capacity,
        )

    async def stop(self) -> None:
        """Cancel the worker tasks.

        Runs held by a worker at shutdown are parked as ``paused`` so they can
        be resumed later; queued runs stay ``pending`` in the store.
        """
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        logger.info("Execution engine stopped")

    # ------------------------------------------------------------------
    # Control API
    # ------------------------------------------------------------------

    async def enqueue(self, agent_id: str, input_values: Mapping[str, str], *, owner: Optional[str] = None) -> str:
        """
        Create a pending run for ``agent_id`` and queue it for execution.

        Raises:
            NotFoundError: The agent does not exist (or is not visible to ``owner``).
            ValidationError: A required input variable is missing or blank.
            QueueFullError: The execution queue is at capacity.
        """
        agent, values = await self._validate_request(agent_id, input_values, owner)

        async with self._claim_lock:
            if self._queue.full():
                raise QueueFullError(self._config.queue_capacity)
            run = await self._create_run(agent, values, owner, "Run queued")
            self._put(run.id)

        logger.info("Queued run %s for agent %s", sanitize_for_log(run.id), sanitize_for_log(agent_id))
        self._publish_status(run)
        return run.id

    async def execute(self, agent_id: str, input_values: Mapping[str, str], *, owner: Optional[str] = None) -> AgentRun:
        """
        Create a run and drive it on the calling task until it settles.

        The run skips the queue and the worker pool but is claimed, controlled
        and released exactly like a queued run, so it shows up in
        ``list_active`` and honours pause and cancel. A run paused mid-way is
        returned ``paused``; resuming it hands it to the workers.

        Raises:
            NotFoundError: The agent does not exist (or is not visible to ``owner``).
            ValidationError: A required input variable is missing or blank.
        """
        agent, values = await self._validate_request(agent_id, input_values, owner)

        async with self._claim_lock:
            run = await self._create_run(agent, values, owner, "Run started inline")
        logger.info("Executing run %s for agent %s inline", sanitize_for_log(run.id), sanitize_for_log(agent_id))
        self._publish_status(run)

        await self._process(INLINE_WORKER_ID, run.id, interrupted_reason="request cancelled")
        settled = await self._deps.runs.get(run.id)
        return settled if settled is not None else run

    async def pause(self, run_id: str) -> None:
        """Request a pause; observed at the next turn boundary (or right after claim)."""
        async with self._claim_lock:
            run = await self._load_controllable(run_id)
            if run.status == S.cancelling:
                return
            if run.status == S.paused and run_id not in self._queued:
                return
            # A resumed run still waiting in the queue is parked again when claimed.
            self._control(run_id).pause_requested = True
        logger.info("Pause requested for run %s", sanitize_for_log(run_id))

    async def resume(self, run_id: str) -> None:
        """Clear a pending pause, or re-queue a paused run at the turn it stopped."""
        async with self._claim_lock:
            run = await self._load_controllable(run_id)
            if run.status == S.cancelling:
                raise InvalidStateError(f"run '{run_id}' is being cancelled")
            control = self._controls.get(run_id)
            if control is not None:
                control.pause_requested = False
            if run.status == S.paused and run_id not in self._queued:
                if self._queue.full():
                    raise QueueFullError(self._config.queue_capacity)
                self._controls.setdefault(run_id, RunControl())
                self._put(run_id)
                logger.info("Resumed run %s", sanitize_for_log(run_id))

    async def cancel(self, run_id: str) -> None:
        """Request cancellation. History and logs are kept on the cancelled run."""
        async with self._claim_lock:
            run = await self._load_controllable(run_id)
            if run.status == S.cancelling:
                return
            self._control(run_id).cancel_requested = True
            if self._registry.contains(run_id):
                logger.info("Cancel requested for running run %s", sanitize_for_log(run_id))
                return

            transition(run, S.cancelling, reason="cancel requested")
            if run_id not in self._queued:
                # Nothing will claim it; settle here.
                transition(run, S.cancelled)
                run.result = "Cancelled by user"
                self._controls.pop(run_id, None)
            await self._deps.runs.update(run)
        logger.info("Cancelled run %s (status=%s)", sanitize_for_log(run_id), run.status.value)
        self._publish_status(run)

    def list_active(self) -> List[RunSummary]:
        """Snapshot of the runs currently held by workers."""
        return self._registry.snapshot()

    async def get_run(self, run_id: str, *, owner: Optional[str] = None) -> Optional[AgentRun]:
        return await self._deps.runs.get(run_id, owner=owner)

    async def get_agent(self, agent_id: str, *, owner: Optional[str] = None) -> Optional[Agent]:
        return await self._deps.agents.get(agent_id, owner=owner)

    async def list_runs(self, agent_id: str, *, owner: Optional[str] = None, limit: int = 100) -> List[AgentRun]:
        return await self._deps.runs.list_by_agent(agent_id, owner=owner, limit=limit)

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    async def _worker(self, worker_id: str) -> None:
        while True:
            run_id = await self._queue.get()
            try:
                await self._process(worker_id, run_id)
            except Exception:
                logger.exception("Worker %s crashed while processing run %s", worker_id, sanitize_for_log(run_id))
            finally:
                self._queue.task_done()

    async def _process(self, worker_id: str, run_id: str, *, interrupted_reason: str = "engine stopped") -> None:
        ctx = await self._claim(worker_id, run_id)
        if ctx is None:
            return
        try:
            outcome = await self._drive(ctx)
        except asyncio.CancelledError:
            await self._release(ctx, TurnOutcome.paused, reason=interrupted_reason)
            raise
        except Exception as e:
            logger.exception("Run %s crashed", sanitize_for_log(run_id))
            ctx.run.error = f"Unexpected engine error: {e}"
            outcome = TurnOutcome.failed
        await self._release(ctx, outcome)

    async def _claim(self, worker_id: str, run_id: str) -> Optional[RunContext]:
        async with self._claim_lock:
            self._queued.discard(run_id)
            run = await self._deps.runs.get(run_id)
            if run is None:
                logger.warning("Dequeued unknown run %s", sanitize_for_log(run_id))
                self._controls.pop(run_id, None)
                return None

            if run.status == S.cancelling:
                transition(run, S.cancelled)
                run.result = "Cancelled by user"
                await self._deps.runs.update(run)
                self._controls.pop(run_id, None)
                self._publish_status(run)
                return None
            if run.status == S.paused and self._control(run_id).pause_requested:
                logger.info("Run %s paused again while queued; leaving it parked", sanitize_for_log(run_id))
                return None
            if run.status not in (S.pending, S.paused):
                logger.warning("Skipping run %s in status %s", sanitize_for_log(run_id), run.status.value)
                return None

            control = self._control(run_id)
            agent = await self._deps.agents.get(run.agent_id)
            transition(run, S.running, reason=f"claimed by {worker_id}")
            if agent is None:
                run.error = f"Agent '{run.agent_id}' no longer exists"
                transition(run, S.failed, reason=run.error)
                await self._deps.runs.update(run)
                self._controls.pop(run_id, None)
                self._publish_status(run)
                return None
            await self._deps.runs.update(run)

            claimed_at = _utc_now()
            self._registry.register(
                run_id=run.id,
                agent_id=run.agent_id,
                status=run.status,
                turn_count=run.turn_count,
                max_turns=run.max_turns,
                worker_id=worker_id,
                claimed_at=claimed_at,
            )

        self._publish_status(run)
        logger.info("Worker %s claimed run %s", worker_id, sanitize_for_log(run_id))
        return RunContext(run=run, agent=agent, control=control, worker_id=worker_id, claimed_at=claimed_at)

    async def _drive(self, ctx: RunContext) -> TurnOutcome:
        run = ctx.run
        try:
            ctx.tools = await resolve_agent_tools(ctx.agent, self._deps.tools, retry=self._retry, sleep=self._sleep)
        except ConfigurationError as e:
            run.error = str(e)
            return TurnOutcome.failed

        timeout = self._remaining_run_time(run)
        if timeout is not None and timeout <= 0:
            run.error = f"Run exceeded its time limit of {self._config.run_timeout_seconds}s"
            return TurnOutcome.failed
        try:
            return await asyncio.wait_for(self._turns(ctx), timeout=timeout)
        except asyncio.TimeoutError:
            run.error = f"Run exceeded its time limit of {self._config.run_timeout_seconds}s"
            return TurnOutcome.failed

    async def _turns(self, ctx: RunContext) -> TurnOutcome:
        started = time.monotonic()
        while True:
            outcome = await self._turn_loop.run_turn(ctx)
            if outcome != TurnOutcome.proceed:
                return outcome
            await self._deps.runs.update(ctx.run)
            self._registry.update(ctx.run.id, turn_count=ctx.run.turn_count)
            self._publish_progress(ctx)
            logger.debug(
                "Run %s finished turn %d/%d (%.2fs elapsed)",
                sanitize_for_log(ctx.run.id),
                ctx.run.turn_count,
                ctx.run.max_turns,
                time.monotonic() - started,
            )

    async def _release(self, ctx: RunContext, outcome: TurnOutcome, *, reason: Optional[str] = None) -> None:
        run = ctx.run
        control = ctx.control
        async with self._claim_lock:
            if outcome in (TurnOutcome.paused, TurnOutcome.completed) and control.cancel_requested:
                outcome = TurnOutcome.cancelled
            # A resume that lands after the pause was observed but before the
            # run is parked clears the flag; re-queue instead of parking.
            requeue = outcome == TurnOutcome.paused and reason is None and not control.pause_requested

            if outcome == TurnOutcome.completed:
                transition(run, S.completed, reason=run.result)
            elif outcome == TurnOutcome.failed:
                transition(run, S.failed, reason=run.error)
            elif outcome == TurnOutcome.cancelled:
                transition(run, S.cancelling)
                transition(run, S.cancelled)
                run.result = "Cancelled by user"
            else:
                transition(run, S.paused, reason=reason)

            try:
                await self._deps.runs.update(run)
            finally:
                self._registry.deregister(run.id)
                if run.status.is_terminal:
                    self._controls.pop(run.id, None)

            if requeue:
                try:
                    self._put(run.id)
                except asyncio.QueueFull:
                    logger.warning("Queue full; run %s stays paused", sanitize_for_log(run.id))

        self._publish_progress(ctx)
        self._publish_status(run)
        logger.info(
            "Run %s released by %s: status=%s turns=%d",
            sanitize_for_log(run.id),
            ctx.worker_id,
            run.status.value,
            run.turn_count,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _validate_request(
        self, agent_id: str, input_values: Mapping[str, str], owner: Optional[str]
    ) -> Tuple[Agent, Dict[str, str]]:
        agent = await self._deps.agents.get(agent_id, owner=owner)
        if agent is None:
            raise NotFoundError("agent", agent_id)

        values = {str(k): str(v) for k, v in (input_values or {}).items()}
        missing = missing_required_inputs(agent, values)
        if missing:
            raise ValidationError(f"Missing required input variables: {', '.join(missing)}")
        return agent, values

    async def _create_run(self, agent: Agent, values: Dict[str, str], owner: Optional[str], verb: str) -> AgentRun:
        run = AgentRun(
            agent_id=agent.id,
            owner=owner if owner is not None else agent.owner,
            input_values=values,
            max_turns=agent.config.max_turns,
            goal=agent.config.goal_completion_prompt or None,
        )
        run.add_log(LogLevel.info, f"{verb} for agent '{agent.name}' with model {agent.config.model}")
        await self._deps.runs.create(run)
        self._controls[run.id] = RunControl()
        return run

    def _put(self, run_id: str) -> None:
        if run_id in self._queued:
            return
        self._queue.put_nowait(run_id)
        self._queued.add(run_id)

    def _control(self, run_id: str) -> RunControl:
        return self._controls.setdefault(run_id, RunControl())

    async def _load_controllable(self, run_id: str) -> AgentRun:
        run = await self._deps.runs.get(run_id)
        if run is None:
            raise NotFoundError("run", run_id)
        if run.status.is_terminal:
            raise InvalidStateError(f"run '{run_id}' is already {run.status.value}")
        return run

    def _remaining_run_time(self, run: AgentRun) -> Optional[float]:
        limit = self._config.run_timeout_seconds
        if limit is None:
            return None
        started = run.started_at or _utc_now()
        return limit - (_utc_now() - started).total_seconds()

    def _publish_status(self, run: AgentRun) -> None:
        if self._deps.events is None:
            return
        self._deps.events.publish(
            RunEvent(
                type=RunEventType.status_changed,
                run_id=run.id,
                agent_id=run.agent_id,
                payload={"status": run.status.value, "turnCount": run.turn_count, "result": run.result, "error": run.error},
            )
        )

    def _publish_progress(self, ctx: RunContext) -> None:
        run = ctx.run
        events = self._deps.events
        if events is not None:
            for turn in run.conversation_history[ctx.published_turns :]:
                events.publish(
                    RunEvent(type=RunEventType.turn_appended, run_id=run.id, agent_id=run.agent_id, payload=turn.to_document())
                )
            for entry in run.logs[ctx.published_logs :]:
                events.publish(
                    RunEvent(type=RunEventType.log_appended, run_id=run.id, agent_id=run.agent_id, payload=entry.to_document())
                )
        ctx.published_turns = len(run.conversation_history)
        ctx.published_logs = len(run.logs)
