"""
Job orchestrator.

The Orchestrator owns one job's context store and plan. It asks the plan
generator for phases, runs them one by one through the executor, and after
each phase consults the result reasoner to decide whether to continue, stop
early or re-plan. Context compression runs between phases once the token
budget gets tight.
"""

# pylint: disable=too-many-arguments, too-many-positional-arguments, too-many-instance-attributes

import inspect
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from aeo_orchestrator.compression import CompressionPolicy, OldestFractionPolicy
from aeo_orchestrator.config import PipelineConfig
from aeo_orchestrator.context import ContextStore
from aeo_orchestrator.errors import OracleCallFailedError
from aeo_orchestrator.executor import AgentExecutor
from aeo_orchestrator.models import (
    AgentStatus,
    AgentSummary,
    ExecutionPhase,
    ExecutionPlan,
    PhaseReport,
    ReasoningResult,
)
from aeo_orchestrator.observability.hooks import (
    EventHookRegistry,
    PipelineEvent,
    default_hook_registry,
)
from aeo_orchestrator.observability.logging import PipelineLogger, get_logger
from aeo_orchestrator.oracles.base import PlanningOracle, ResultReasoner, SummarizationOracle
from aeo_orchestrator.oracles.ollama import (
    OllamaPlanningOracle,
    OllamaResultReasoner,
    OllamaSummarizationOracle,
)
from aeo_orchestrator.planner import PlanGenerator
from aeo_orchestrator.registry import AgentRegistry, default_agent_registry
from aeo_orchestrator.storage import BlobStore, InMemoryBlobStore, LocalBlobStore
from aeo_orchestrator.tasks import TaskRegistry

PhaseCallback = Callable[[str, Dict[str, AgentSummary]], Any]


class OrchestratorState(Enum):
    """Lifecycle state of an orchestrated job."""

    INITIALIZED = "initialized"
    PLANNING = "planning"
    READY = "ready"
    EXECUTING_PHASE = "executing_phase"
    REASONING = "reasoning"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class OrchestratorResult:
    """Outcome of one ``execute`` run.

    Attributes:
        job_id: Job identifier
        state: Final orchestrator state
        phases_executed: Names of the phases that ran, in order
        stopped_early: Whether the reasoner stopped the job before the last phase
        last_reasoning: The final reasoner verdict
        insights: Phase name -> reasoner insights after that phase
        summaries: Final agent summaries
        phase_reports: Executor report of every phase that ran
        replans: How many times the plan was regenerated
        snapshot_ref: Blob reference of the final context snapshot
        duration_ms: Wall time of the run
    """

    job_id: str
    state: OrchestratorState
    phases_executed: List[str] = field(default_factory=list)
    stopped_early: bool = False
    last_reasoning: Optional[ReasoningResult] = None
    insights: Dict[str, List[str]] = field(default_factory=dict)
    summaries: Dict[str, AgentSummary] = field(default_factory=dict)
    phase_reports: List[PhaseReport] = field(default_factory=list)
    replans: int = 0
    snapshot_ref: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def failed_agents(self) -> List[str]:
        """Ids of agents whose final status is failed."""
        return [a for a, s in self.summaries.items() if s.status is AgentStatus.FAILED]


class Orchestrator:
    """Drives one job through planning, phased execution and reasoning.

    Usage:
        orchestrator = Orchestrator(
            job_id="job-1",
            tenant_id="tenant-1",
            domain="example.com",
            planning_oracle=StaticPlanningOracle(),
            summarizer=HeuristicSummarizationOracle(),
            reasoner=ContinueReasoner(),
            tasks=my_tasks,
        )
        await orchestrator.initialize("https://example.com/pricing")
        result = await orchestrator.execute()
    """

    def __init__(
        self,
        job_id: str,
        tenant_id: str,
        domain: str,
        planning_oracle: PlanningOracle,
        summarizer: SummarizationOracle,
        reasoner: ResultReasoner,
        blob_store: Optional[BlobStore] = None,
        tasks: Optional[TaskRegistry] = None,
        registry: Optional[AgentRegistry] = None,
        config: Optional[PipelineConfig] = None,
        hook_registry: Optional[EventHookRegistry] = None,
        clock: Optional[Callable[[], datetime]] = None,
        compression_policy: Optional[CompressionPolicy] = None,
    ) -> None:
        """Initialize the orchestrator and its per-job collaborators.

        Args:
            job_id: Job identifier
            tenant_id: Tenant owning the job
            domain: Domain under analysis
            planning_oracle: Proposes execution plans
            summarizer: Summarizes full agent results
            reasoner: Decides after each phase whether to continue
            blob_store: Where full results go (in-memory by default)
            tasks: Work functions by agent id
            registry: Agent catalog
            config: Pipeline configuration
            hook_registry: Event hook registry for observability
            clock: Time source for context timestamps
            compression_policy: Overrides the policy derived from config
        """
        self.config = config or PipelineConfig()
        self._domain = domain
        self._reasoner = reasoner
        self._hooks = hook_registry or default_hook_registry
        registry = registry or default_agent_registry

        policy = compression_policy or OldestFractionPolicy(
            fraction=self.config.compression_fraction,
            min_completed=self.config.compression_min_completed,
        )
        self._context = ContextStore(
            job_id=job_id,
            tenant_id=tenant_id,
            domain=domain,
            blob_store=blob_store or InMemoryBlobStore(),
            summarizer=summarizer,
            compression_policy=policy,
            clock=clock,
            hook_registry=self._hooks,
        )
        self._executor = AgentExecutor(
            tasks=tasks,
            registry=registry,
            hook_registry=self._hooks,
            agent_timeout_seconds=self.config.agent_timeout_seconds,
            max_parallel_agents=self.config.max_parallel_agents,
            model=self.config.model,
        )
        self._planner = PlanGenerator(
            planning_oracle, registry=registry, hook_registry=self._hooks
        )

        self._state = OrchestratorState.INITIALIZED
        self._plan: Optional[ExecutionPlan] = None
        self._target_url = ""
        self._current_phase_index = 0
        self._logger: PipelineLogger = get_logger("orchestrator", job_id=job_id)

    @classmethod
    def with_ollama(
        cls,
        job_id: str,
        tenant_id: str,
        domain: str,
        config: Optional[PipelineConfig] = None,
        **kwargs: Any,
    ) -> "Orchestrator":
        """Create an orchestrator backed by Ollama oracles and local storage.

        The model, server and storage directory come from ``config``.
        Remaining keyword arguments go to the constructor.
        """
        config = config or PipelineConfig.from_env()
        registry = kwargs.get("registry") or default_agent_registry
        kwargs.setdefault("blob_store", LocalBlobStore(config.storage_dir))
        return cls(
            job_id=job_id,
            tenant_id=tenant_id,
            domain=domain,
            planning_oracle=OllamaPlanningOracle(
                config.model, host=config.ollama_host, registry=registry
            ),
            summarizer=OllamaSummarizationOracle(config.model, host=config.ollama_host),
            reasoner=OllamaResultReasoner(config.model, host=config.ollama_host),
            config=config,
            **kwargs,
        )

    # --- Accessors ---

    @property
    def context(self) -> ContextStore:
        """The job's context store."""
        return self._context

    @property
    def plan(self) -> Optional[ExecutionPlan]:
        """The current plan (None before initialization)."""
        return self._plan

    @property
    def state(self) -> OrchestratorState:
        """Current lifecycle state."""
        return self._state

    @property
    def current_phase_index(self) -> int:
        """Index of the phase being executed or reasoned about."""
        return self._current_phase_index

    def get_all_agent_summaries(self) -> Dict[str, AgentSummary]:
        """Get a copy of every agent summary."""
        return self._context.get_all_summaries()

    def should_retrieve_full_data(self, agent_id: str) -> bool:
        """Whether a consumer should read the agent's full result.

        True for failed agents and for summaries that suggest next steps.
        """
        summary = self._context.get_summary(agent_id)
        if summary is None:
            return False
        return summary.status is AgentStatus.FAILED or bool(summary.next_steps)

    # --- Lifecycle ---

    async def initialize(self, target_url: str, domain: Optional[str] = None) -> ExecutionPlan:
        """Create the execution plan for the job.

        Args:
            target_url: URL under analysis
            domain: Domain passed to the planner (defaults to the job's domain)

        Returns:
            The validated plan

        Raises:
            RuntimeError: If the orchestrator was already initialized
            OracleCallFailedError: If the planning oracle fails
            OraclePlanInvalidError: If the plan is malformed
        """
        if self._state is not OrchestratorState.INITIALIZED:
            raise RuntimeError(f"Cannot initialize orchestrator in state {self._state.value}")

        self._target_url = target_url
        self._domain = domain or self._domain
        self._hooks.trigger(
            PipelineEvent.JOB_START,
            job_id=self._context.job_id,
            target_url=target_url,
            domain=self._domain,
        )
        self._logger.info(f"Planning analysis of {target_url}")

        self._state = OrchestratorState.PLANNING
        try:
            self._plan = await self._planner.create_plan(
                target_url, self._domain, self._context.get_context()
            )
        except Exception as e:
            self._fail(e)
            raise

        self._state = OrchestratorState.READY
        self._current_phase_index = 0
        return self._plan

    async def execute(self, on_phase_complete: Optional[PhaseCallback] = None) -> OrchestratorResult:
        """Run the planned phases until the plan ends or the reasoner stops.

        Args:
            on_phase_complete: Called with the phase name and a copy of the
                summaries after every phase; may be a coroutine function

        Returns:
            Result of the run

        Raises:
            RuntimeError: If the orchestrator is not ready
            PipelineError: If a phase aborts or an oracle call fails
        """
        if self._state is not OrchestratorState.READY or self._plan is None:
            raise RuntimeError(f"Cannot execute orchestrator in state {self._state.value}")

        start_time = time.perf_counter()
        result = OrchestratorResult(job_id=self._context.job_id, state=self._state)
        phases: List[ExecutionPhase] = list(self._plan.phases)
        index = 0

        while index < len(phases):
            phase = phases[index]
            self._current_phase_index = index
            self._state = OrchestratorState.EXECUTING_PHASE

            try:
                report = await self._executor.run_phase(
                    phase.agent_ids,
                    phase.run_in_parallel,
                    self._context,
                    phase_name=phase.name,
                    target_url=self._target_url,
                )
            except Exception as e:
                self._fail_unfinished_agents(phase, e)
                self._fail(e)
                raise

            result.phases_executed.append(phase.name)
            result.phase_reports.append(report)
            await self._notify_phase_complete(on_phase_complete, phase.name)

            self._state = OrchestratorState.REASONING
            try:
                reasoning = await self._reason(phase.name)
            except Exception as e:
                self._fail(e)
                raise

            result.last_reasoning = reasoning
            result.insights[phase.name] = list(reasoning.insights)

            if not reasoning.should_continue:
                result.stopped_early = index < len(phases) - 1
                self._logger.info(
                    "Reasoner stopped the job", phase=phase.name, extra={"insights": reasoning.insights}
                )
                break

            try:
                if reasoning.adjustments and self._can_replan(result.replans):
                    phases = await self._replan(phases[: index + 1], reasoning.adjustments)
                    result.replans += 1

                if self._context.is_approaching_limit(self.config.token_limit):
                    await self._context.compress()
            except Exception as e:
                self._fail(e)
                raise

            index += 1

        self._state = OrchestratorState.COMPLETED
        result.snapshot_ref = self._write_snapshot(raise_errors=True)
        result.state = self._state
        result.summaries = self._context.get_all_summaries()
        result.duration_ms = (time.perf_counter() - start_time) * 1000

        self._hooks.trigger(
            PipelineEvent.JOB_END,
            job_id=self._context.job_id,
            duration_ms=result.duration_ms,
            phases=result.phases_executed,
            stopped_early=result.stopped_early,
        )
        self._logger.info(
            f"Job completed after {len(result.phases_executed)} phases",
            duration_ms=result.duration_ms,
        )
        return result

    # --- Internals ---

    async def _reason(self, phase_name: str) -> ReasoningResult:
        try:
            reasoning = await self._reasoner.reason(self._context.get_context())
        except OracleCallFailedError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise OracleCallFailedError("Result reasoner", e) from e

        if not isinstance(reasoning, ReasoningResult):
            raise OracleCallFailedError(
                "Result reasoner",
                TypeError(f"expected ReasoningResult, got {type(reasoning).__name__}"),
            )

        self._hooks.trigger(
            PipelineEvent.REASONING_COMPLETE,
            job_id=self._context.job_id,
            phase=phase_name,
            should_continue=reasoning.should_continue,
            insights=reasoning.insights,
            adjustments=reasoning.adjustments,
            confidence=reasoning.confidence,
        )
        self._logger.info(
            f"Reasoning complete: continue={reasoning.should_continue}",
            phase=phase_name,
            extra={"insights": reasoning.insights, "adjustments": reasoning.adjustments},
        )
        return reasoning

    def _can_replan(self, replans: int) -> bool:
        return self.config.replan_on_adjustments and replans < self.config.max_replans

    async def _replan(
        self, executed: List[ExecutionPhase], adjustments: List[str]
    ) -> List[ExecutionPhase]:
        self._logger.info(
            "Re-planning remaining phases", extra={"adjustments": adjustments}
        )
        new_plan = await self._planner.create_plan(
            self._target_url,
            self._domain,
            self._context.get_context(),
            executed_phases=[phase.name for phase in executed],
        )
        phases = executed + list(new_plan.phases)
        self._plan = ExecutionPlan(
            phases=tuple(phases),
            estimated_duration_seconds=new_plan.estimated_duration_seconds,
            rationale=new_plan.rationale,
        )
        return phases

    async def _notify_phase_complete(
        self, callback: Optional[PhaseCallback], phase_name: str
    ) -> None:
        if callback is None:
            return
        try:
            outcome = callback(phase_name, self._context.get_all_summaries())
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:  # pylint: disable=broad-exception-caught
            self._logger.warning(
                "Phase completion callback failed", phase=phase_name, exc_info=True
            )

    def _fail_unfinished_agents(self, phase: ExecutionPhase, error: BaseException) -> None:
        for agent_id in phase.agent_ids:
            summary = self._context.get_summary(agent_id)
            if summary is None or not summary.status.is_terminal:
                self._context.mark_failed(agent_id, f"Phase {phase.name} aborted: {error}")

    def _fail(self, error: BaseException) -> None:
        self._state = OrchestratorState.FAILED
        self._hooks.trigger(
            PipelineEvent.JOB_ERROR,
            job_id=self._context.job_id,
            error=error,
            code=getattr(error, "code", None),
        )
        self._logger.error(f"Job failed: {error}")
        self._write_snapshot(raise_errors=False)

    def _write_snapshot(self, raise_errors: bool) -> Optional[str]:
        try:
            return self._context.snapshot_to_blob()
        except (OSError, TypeError, ValueError) as e:
            if raise_errors:
                self._state = OrchestratorState.FAILED
                self._logger.error(f"Context snapshot failed: {e}")
                raise
            self._logger.error(f"Context snapshot failed: {e}")
            return None

    def __repr__(self) -> str:
        return (
            f"Orchestrator(job='{self._context.job_id}', state={self._state.value}, "
            f"phase={self._current_phase_index})"
        )
