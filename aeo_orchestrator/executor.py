"""
Agent executor.

Runs the agents of one phase, either concurrently or strictly in declaration
order, enforcing declared dependencies and a per-agent deadline. Every
launched agent ends up ``completed`` or ``failed`` in the context store.
"""

# pylint: disable=too-many-arguments, too-many-positional-arguments

import asyncio
import time
from typing import AbstractSet, Any, List, Optional, Sequence

from aeo_orchestrator.config import DEFAULT_MODEL
from aeo_orchestrator.context import ContextStore
from aeo_orchestrator.errors import (
    AgentExecutionFailedError,
    AgentTimeoutError,
    DependencyUnsatisfiedError,
    PipelineError,
)
from aeo_orchestrator.models import AgentStatus, PhaseReport
from aeo_orchestrator.observability.hooks import (
    EventHookRegistry,
    PipelineEvent,
    default_hook_registry,
)
from aeo_orchestrator.observability.logging import get_logger
from aeo_orchestrator.registry import AgentRegistry, default_agent_registry
from aeo_orchestrator.tasks import AgentRunContext, TaskRegistry


class AgentExecutor:
    """Executes phases of agents against a job's context store.

    Usage:
        executor = AgentExecutor(tasks=my_tasks, agent_timeout_seconds=120)
        report = await executor.run_phase(
            ["tavily-research", "community-signals"], parallel=True, context=store
        )
        report.failed  # {"community-signals": "..."}
    """

    def __init__(
        self,
        tasks: Optional[TaskRegistry] = None,
        registry: Optional[AgentRegistry] = None,
        hook_registry: Optional[EventHookRegistry] = None,
        agent_timeout_seconds: float = 300.0,
        max_parallel_agents: int = 8,
        model: str = DEFAULT_MODEL,
    ) -> None:
        """Initialize the executor.

        Args:
            tasks: Work functions by agent id (defaults to ``@agent_task`` ones)
            registry: Agent catalog used for dependency checks
            hook_registry: Event hook registry
            agent_timeout_seconds: Deadline for one agent invocation
            max_parallel_agents: Maximum agents running at once in a parallel phase
            model: Model name handed to work functions
        """
        self._tasks = tasks or TaskRegistry()
        self._registry = registry or default_agent_registry
        self._hooks = hook_registry or default_hook_registry
        self.agent_timeout_seconds = agent_timeout_seconds
        self.max_parallel_agents = max_parallel_agents
        self.model = model

    async def run_phase(
        self,
        agent_ids: Sequence[str],
        parallel: bool,
        context: ContextStore,
        phase_name: Optional[str] = None,
        target_url: str = "",
    ) -> PhaseReport:
        """Run one phase of agents.

        In a parallel phase every agent is launched and the phase returns only
        once all of them have completed or failed; agent failures are reported,
        not raised. In a sequential phase the first failure stops the remaining
        agents and is raised.

        Args:
            agent_ids: Agents to run, in declaration order
            parallel: Whether to run the agents concurrently
            context: The job's context store
            phase_name: Name used in logs and events
            target_url: URL under analysis, passed to work functions

        Returns:
            Report of completed and failed agents

        Raises:
            UnknownAgentError: If an agent id is not in the catalog
            DependencyUnsatisfiedError: If an agent's prerequisites have not
                completed (raised after parallel siblings settle)
            AgentExecutionFailedError: If an agent fails in a sequential phase
        """
        name = phase_name or ("parallel" if parallel else "sequential")
        logger = get_logger("executor", job_id=context.job_id)
        report = PhaseReport(phase_name=name)
        start_time = time.perf_counter()

        self._hooks.trigger(
            PipelineEvent.PHASE_START,
            job_id=context.job_id,
            phase=name,
            agents=list(agent_ids),
            parallel=parallel,
        )
        logger.info(
            f"Starting phase with {len(agent_ids)} agents",
            phase=name,
            extra={"agents": list(agent_ids), "parallel": parallel},
        )

        if parallel:
            await self._run_parallel(agent_ids, context, report, target_url)
        else:
            await self._run_sequential(agent_ids, context, report, target_url)

        report.duration_ms = (time.perf_counter() - start_time) * 1000
        self._hooks.trigger(
            PipelineEvent.PHASE_END,
            job_id=context.job_id,
            phase=name,
            duration_ms=report.duration_ms,
            completed=list(report.completed),
            failed=dict(report.failed),
        )
        logger.info(
            f"Completed phase: {len(report.completed)} completed, "
            f"{len(report.failed)} failed",
            phase=name,
            duration_ms=report.duration_ms,
        )
        return report

    async def _run_parallel(
        self,
        agent_ids: Sequence[str],
        context: ContextStore,
        report: PhaseReport,
        target_url: str,
    ) -> None:
        # Every agent in the phase is checked against the same completed set
        completed = frozenset(context.completed_agent_ids())
        semaphore = asyncio.Semaphore(self.max_parallel_agents)

        async def bounded(agent_id: str) -> None:
            async with semaphore:
                await self._run_agent(agent_id, context, completed, target_url)

        outcomes = await asyncio.gather(
            *(bounded(agent_id) for agent_id in agent_ids),
            return_exceptions=True,
        )

        fatal: List[BaseException] = []
        for agent_id, outcome in zip(agent_ids, outcomes):
            if outcome is None:
                report.completed.append(agent_id)
            elif isinstance(outcome, AgentExecutionFailedError):
                report.failed[agent_id] = outcome.detail
            elif isinstance(outcome, PipelineError):
                report.failed[agent_id] = str(outcome)
                fatal.append(outcome)
            else:
                fatal.append(outcome)

        if fatal:
            raise fatal[0]

    async def _run_sequential(
        self,
        agent_ids: Sequence[str],
        context: ContextStore,
        report: PhaseReport,
        target_url: str,
    ) -> None:
        for index, agent_id in enumerate(agent_ids):
            try:
                await self._run_agent(
                    agent_id, context, context.completed_agent_ids(), target_url
                )
            except PipelineError as e:
                report.failed[agent_id] = getattr(e, "detail", str(e))
                report.not_started = list(agent_ids[index + 1 :])
                raise
            report.completed.append(agent_id)

    async def _run_agent(
        self,
        agent_id: str,
        context: ContextStore,
        completed: AbstractSet[str],
        target_url: str,
    ) -> None:
        logger = get_logger("executor", job_id=context.job_id, agent_id=agent_id)

        missing = self._registry.missing_dependencies(agent_id, completed)
        if missing:
            dependency_error = DependencyUnsatisfiedError(agent_id, missing)
            context.mark_failed(agent_id, str(dependency_error))
            logger.error(str(dependency_error))
            raise dependency_error

        task = self._tasks.get(agent_id)
        if task is None:
            missing_task = AgentExecutionFailedError(
                agent_id, message="no work function registered"
            )
            context.mark_failed(agent_id, missing_task.detail)
            self._hooks.trigger(
                PipelineEvent.AGENT_ERROR,
                job_id=context.job_id,
                agent_id=agent_id,
                error=missing_task,
            )
            raise missing_task

        context.mark_running(agent_id)
        self._hooks.trigger(
            PipelineEvent.AGENT_START, job_id=context.job_id, agent_id=agent_id
        )
        logger.info("Agent starting")
        start_time = time.perf_counter()

        run_context = AgentRunContext(
            agent_id=agent_id,
            job_id=context.job_id,
            tenant_id=context.tenant_id,
            domain=context.domain,
            target_url=target_url,
            model=self.model,
            store=context,
        )

        try:
            result: Any = await asyncio.wait_for(
                task.invoke(run_context), timeout=self.agent_timeout_seconds
            )
            summary = await context.store_result(agent_id, result)
        except asyncio.TimeoutError as e:
            timeout_error = AgentTimeoutError(agent_id, self.agent_timeout_seconds)
            self._fail(context, timeout_error, start_time, cause=e)
            raise timeout_error from e
        except Exception as e:  # pylint: disable=broad-exception-caught
            failure = AgentExecutionFailedError(agent_id, e)
            self._fail(context, failure, start_time, cause=e)
            raise failure from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        if summary.status is AgentStatus.FAILED:
            # Summary stays as recorded; the result ref was already dropped
            rejected = AgentExecutionFailedError(
                agent_id, message="summarizer reported a failed result"
            )
            self._hooks.trigger(
                PipelineEvent.AGENT_ERROR,
                job_id=context.job_id,
                agent_id=agent_id,
                duration_ms=duration_ms,
                error=rejected,
            )
            logger.error(f"Agent failed: {rejected.detail}", duration_ms=duration_ms)
            raise rejected

        self._hooks.trigger(
            PipelineEvent.AGENT_END,
            job_id=context.job_id,
            agent_id=agent_id,
            duration_ms=duration_ms,
        )
        logger.info("Agent completed", duration_ms=duration_ms)

    def _fail(
        self,
        context: ContextStore,
        error: AgentExecutionFailedError,
        start_time: float,
        cause: BaseException,
    ) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000
        context.mark_failed(error.agent_id, error.detail)
        self._hooks.trigger(
            PipelineEvent.AGENT_ERROR,
            job_id=context.job_id,
            agent_id=error.agent_id,
            duration_ms=duration_ms,
            error=cause,
        )
        get_logger("executor", job_id=context.job_id, agent_id=error.agent_id).error(
            f"Agent failed: {error.detail}", duration_ms=duration_ms
        )
