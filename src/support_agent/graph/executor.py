"""Bounded step executor.

A ``StepGraph`` is assembled once (steps, edges, branches), validated by
``compile`` and then run any number of times. Each run walks from the entry
step to ``StepName.END`` over one ``InvocationState``:

    pre_handler(payload, state) -> body(payload, state) -> post_handler(payload, state)

The output of a step is the input of its successor. A step has exactly one
outgoing route: a fixed edge or a branch whose decision function picks one of
a declared set of successors. The number of step executions per run is capped
so a loop that never terminates fails instead of hanging.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

from support_agent.graph.types import (
    GraphConfigurationError,
    InvalidRouteError,
    InvocationCancelledError,
    InvocationState,
    StepExecutionError,
    StepLimitExceededError,
    StepName,
    StepRecord,
)
from support_agent.telemetry import (
    BRANCH_DECISION,
    GRAPH_COMPILED,
    STEP_COMPLETED,
    STEP_FAILED,
    STEP_LIMIT_EXCEEDED,
    STEP_STARTED,
    get_logger,
)

log = get_logger(__name__)

StepFunction = Callable[[Any, InvocationState], Awaitable[Any]]
Decision = Callable[[Any, InvocationState], StepName]

MIN_STEP_CEILING = 20


def step_ceiling(tool_call_budget: int) -> int:
    """Maximum step executions for a given tool-call budget.

    Each tool round costs two steps (tool executor + response model); ten
    more cover the straight-line part of the graph.
    """
    return max(MIN_STEP_CEILING, 10 + 2 * tool_call_budget)


@dataclass(frozen=True)
class Step:
    name: StepName
    body: StepFunction
    pre_handler: StepFunction | None = None
    post_handler: StepFunction | None = None

    async def run(self, payload: Any, state: InvocationState) -> Any:
        if self.pre_handler is not None:
            payload = await self.pre_handler(payload, state)
        payload = await self.body(payload, state)
        if self.post_handler is not None:
            payload = await self.post_handler(payload, state)
        return payload


@dataclass(frozen=True)
class Branch:
    decide: Decision
    successors: frozenset[StepName]


class StepGraph:
    """Mutable graph builder; call ``compile`` to get a runnable graph."""

    def __init__(self) -> None:
        self._steps: dict[StepName, Step] = {}
        self._edges: dict[StepName, StepName] = {}
        self._branches: dict[StepName, Branch] = {}
        self._entry: StepName | None = None

    def add_step(
        self,
        name: StepName,
        body: StepFunction,
        pre_handler: StepFunction | None = None,
        post_handler: StepFunction | None = None,
    ) -> "StepGraph":
        """Register a step.

        Raises:
            GraphConfigurationError: If the name is END or already registered.
        """
        if name is StepName.END:
            raise GraphConfigurationError("END cannot be registered as a step")
        if name in self._steps:
            raise GraphConfigurationError(f"step already registered: {name.value}")
        self._steps[name] = Step(name, body, pre_handler, post_handler)
        return self

    def _check_unrouted(self, source: StepName) -> None:
        if source in self._edges or source in self._branches:
            raise GraphConfigurationError(f"step {source.value} already has an outgoing route")

    def add_edge(self, source: StepName, target: StepName) -> "StepGraph":
        """Route ``source`` unconditionally to ``target``."""
        self._check_unrouted(source)
        self._edges[source] = target
        return self

    def add_branch(
        self, source: StepName, decide: Decision, successors: Iterable[StepName]
    ) -> "StepGraph":
        """Route ``source`` to whichever of ``successors`` ``decide`` returns.

        ``decide`` receives the step's output and the invocation state.
        """
        self._check_unrouted(source)
        self._branches[source] = Branch(decide, frozenset(successors))
        return self

    def set_entry(self, name: StepName) -> "StepGraph":
        self._entry = name
        return self

    def _targets(self, name: StepName) -> frozenset[StepName]:
        if name in self._edges:
            return frozenset({self._edges[name]})
        return self._branches[name].successors

    def compile(self, max_steps: int) -> "CompiledGraph":
        """Validate the topology and freeze it.

        Args:
            max_steps: Step executions allowed per invocation.

        Returns:
            Runnable graph.

        Raises:
            GraphConfigurationError: If the entry is missing, a step has no
                outgoing route, a route targets an unknown step, a branch
                declares no successors, a step is unreachable, or
                ``max_steps`` is below 1.
        """
        if max_steps < 1:
            raise GraphConfigurationError(f"max_steps must be at least 1, got {max_steps}")
        if self._entry is None:
            raise GraphConfigurationError("entry step not set")
        if self._entry not in self._steps:
            raise GraphConfigurationError(f"entry step not registered: {self._entry.value}")

        for source in (*self._edges, *self._branches):
            if source not in self._steps:
                raise GraphConfigurationError(f"route from unregistered step: {source.value}")
        for name, branch in self._branches.items():
            if not branch.successors:
                raise GraphConfigurationError(f"branch of {name.value} has no successors")

        for name in self._steps:
            if name not in self._edges and name not in self._branches:
                raise GraphConfigurationError(f"step {name.value} has no outgoing route")
            for target in self._targets(name):
                if target is not StepName.END and target not in self._steps:
                    raise GraphConfigurationError(
                        f"step {name.value} routes to unregistered step {target.value}"
                    )

        reachable = {self._entry}
        pending = [self._entry]
        while pending:
            for target in self._targets(pending.pop()):
                if target is not StepName.END and target not in reachable:
                    reachable.add(target)
                    pending.append(target)
        unreachable = sorted(name.value for name in self._steps if name not in reachable)
        if unreachable:
            raise GraphConfigurationError(f"unreachable steps: {', '.join(unreachable)}")

        log.debug(
            GRAPH_COMPILED,
            entry=self._entry.value,
            steps=[name.value for name in self._steps],
            max_steps=max_steps,
        )
        return CompiledGraph(
            steps=dict(self._steps),
            edges=dict(self._edges),
            branches=dict(self._branches),
            entry=self._entry,
            max_steps=max_steps,
        )


class CompiledGraph:
    """Validated, immutable graph. Safe to run concurrently with distinct states."""

    def __init__(
        self,
        steps: dict[StepName, Step],
        edges: dict[StepName, StepName],
        branches: dict[StepName, Branch],
        entry: StepName,
        max_steps: int,
    ) -> None:
        self._steps = steps
        self._edges = edges
        self._branches = branches
        self.entry = entry
        self.max_steps = max_steps

    @property
    def step_names(self) -> list[StepName]:
        return list(self._steps)

    def _next_step(self, current: StepName, output: Any, state: InvocationState) -> StepName:
        if current in self._edges:
            return self._edges[current]

        branch = self._branches[current]
        try:
            target = branch.decide(output, state)
        except Exception as e:
            log.error(
                STEP_FAILED,
                trace_id=state.trace_id,
                step=current.value,
                phase="decision",
                error=str(e),
            )
            raise StepExecutionError(current, e) from e
        if target not in branch.successors:
            raise InvalidRouteError(current, target, branch.successors)
        target = StepName(target)
        log.debug(BRANCH_DECISION, trace_id=state.trace_id, step=current.value, target=target.value)
        return target

    async def _run(self, payload: Any, state: InvocationState) -> Any:
        current = self.entry
        index = 0
        while current is not StepName.END:
            if index >= self.max_steps:
                log.error(
                    STEP_LIMIT_EXCEEDED,
                    trace_id=state.trace_id,
                    max_steps=self.max_steps,
                    step=current.value,
                )
                raise StepLimitExceededError(self.max_steps, current)

            index += 1
            step = self._steps[current]
            log.debug(STEP_STARTED, trace_id=state.trace_id, step=current.value, step_index=index)
            start_time = time.monotonic()
            try:
                payload = await step.run(payload, state)
            except Exception as e:
                log.error(
                    STEP_FAILED,
                    trace_id=state.trace_id,
                    step=current.value,
                    step_index=index,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise StepExecutionError(current, e) from e
            duration_ms = (time.monotonic() - start_time) * 1000

            next_step = self._next_step(current, payload, state)
            state.steps.append(
                StepRecord(
                    step=current.value,
                    index=index,
                    duration_ms=duration_ms,
                    next_step=next_step.value,
                )
            )
            log.debug(
                STEP_COMPLETED,
                trace_id=state.trace_id,
                step=current.value,
                step_index=index,
                duration_ms=duration_ms,
                next_step=next_step.value,
            )
            current = next_step
        return payload

    async def invoke(
        self, payload: Any, state: InvocationState, *, timeout: float | None = None
    ) -> Any:
        """Run the graph from the entry step until END.

        Args:
            payload: Input of the entry step.
            state: Fresh state for this invocation.
            timeout: Optional deadline in seconds for the whole invocation.

        Returns:
            Output of the last executed step.

        Raises:
            StepExecutionError: If a handler, body or decision raised.
            InvalidRouteError: If a decision picked an undeclared successor.
            StepLimitExceededError: If the step ceiling was exceeded.
            InvocationCancelledError: If the deadline expired.
        """
        if timeout is None:
            return await self._run(payload, state)
        try:
            async with asyncio.timeout(timeout):
                return await self._run(payload, state)
        except TimeoutError:
            raise InvocationCancelledError(
                f"invocation exceeded its {timeout}s deadline"
            ) from None
