"""Shared stubs and builders for the orchestration tests."""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from aeo_orchestrator.context import ContextStore
from aeo_orchestrator.models import (
    AgentContext,
    ExecutionPhase,
    ExecutionPlan,
    ReasoningResult,
    SummaryResult,
)
from aeo_orchestrator.observability.hooks import EventHookRegistry
from aeo_orchestrator.oracles.base import PlanningOracle, ResultReasoner, SummarizationOracle
from aeo_orchestrator.registry import AgentMetadata, AgentRegistry
from aeo_orchestrator.storage import InMemoryBlobStore
from aeo_orchestrator.tasks import TaskRegistry


class TickingClock:
    """Clock that advances one second on every call."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class StubPlanningOracle(PlanningOracle):
    """Returns a fixed proposal and records the digests it was given."""

    def __init__(self, proposal: Any = None, error: Optional[Exception] = None) -> None:
        self.proposals: List[Any] = [proposal]
        self.error = error
        self.digests: List[str] = []

    def then(self, proposal: Any) -> "StubPlanningOracle":
        """Queue another proposal for the next call."""
        self.proposals.append(proposal)
        return self

    async def propose(self, target_url: str, domain: str, context_digest: str) -> Any:
        self.digests.append(context_digest)
        if self.error is not None:
            raise self.error
        index = min(len(self.digests), len(self.proposals)) - 1
        return self.proposals[index]


class StubSummarizer(SummarizationOracle):
    """Deterministic summarizer with switchable failure modes.

    ``fail_for`` agents make the call raise; ``failed_for`` agents get a
    summary with status ``failed``.
    """

    def __init__(
        self,
        status: str = "completed",
        fail_for: Iterable[str] = (),
        failed_for: Iterable[str] = (),
        next_steps: Optional[List[str]] = None,
    ) -> None:
        self.status = status
        self.fail_for = set(fail_for)
        self.failed_for = set(failed_for)
        self.next_steps = next_steps
        self.brief_calls: List[str] = []

    async def summarize(self, agent_id: str, full_result: Any) -> SummaryResult:
        if agent_id in self.fail_for:
            raise ConnectionError("summarizer unavailable")
        return SummaryResult(
            summary=f"{agent_id} finished with a fairly long descriptive summary text",
            key_findings=[f"{agent_id} finding {i}" for i in range(4)],
            metrics={"size": float(len(str(full_result)))},
            next_steps=self.next_steps,
            status="failed" if agent_id in self.failed_for else self.status,
        )

    async def brief_summarize(self, agent_id: str, full_result: Any) -> str:
        self.brief_calls.append(agent_id)
        return f"{agent_id} brief"


class ScriptedReasoner(ResultReasoner):
    """Returns queued reasoning results, repeating the last one."""

    def __init__(self, *results: Union[ReasoningResult, Exception]) -> None:
        self.results = list(results) or [ReasoningResult(should_continue=True)]
        self.calls = 0
        self.seen: List[AgentContext] = []

    async def reason(self, context: AgentContext) -> ReasoningResult:
        self.seen.append(context)
        result = self.results[min(self.calls, len(self.results) - 1)]
        self.calls += 1
        if isinstance(result, Exception):
            raise result
        return result


def make_registry(prerequisites: Dict[str, Sequence[str]]) -> AgentRegistry:
    """Build a registry from ``{agent_id: [prerequisite ids]}``."""
    return AgentRegistry(
        AgentMetadata(
            id=agent_id,
            name=agent_id.replace("-", " ").title(),
            description=f"Test agent {agent_id}",
            category="research",
            inputs=tuple(inputs),
            can_run_in_parallel=not inputs,
        )
        for agent_id, inputs in prerequisites.items()
    )


def make_tasks(functions: Dict[str, Callable[..., Any]]) -> TaskRegistry:
    """Build a task registry that ignores ``@agent_task`` globals."""
    tasks = TaskRegistry(include_global=False)
    for agent_id, func in functions.items():
        tasks.register(agent_id, func)
    return tasks


def returns(value: Any) -> Callable[..., Any]:
    """Work function that returns ``value``."""

    def work(_ctx: Any) -> Any:
        return value

    return work


def raises(error: Exception) -> Callable[..., Any]:
    """Work function that raises ``error``."""

    def work(_ctx: Any) -> Any:
        raise error

    return work


def make_store(
    summarizer: Optional[SummarizationOracle] = None,
    blob_store: Optional[InMemoryBlobStore] = None,
    **kwargs: Any,
) -> ContextStore:
    """Build a context store with in-memory blobs and a ticking clock."""
    kwargs.setdefault("clock", TickingClock())
    kwargs.setdefault("hook_registry", EventHookRegistry())
    return ContextStore(
        job_id="job-1",
        tenant_id="tenant-1",
        domain="example.com",
        blob_store=blob_store if blob_store is not None else InMemoryBlobStore(),
        summarizer=summarizer or StubSummarizer(),
        **kwargs,
    )


def make_plan(*phases: Dict[str, Any]) -> ExecutionPlan:
    """Build a plan from ``{"name", "agents", "parallel", "depends_on"}`` dicts."""
    return ExecutionPlan(
        phases=tuple(
            ExecutionPhase(
                name=p["name"],
                agent_ids=tuple(p["agents"]),
                run_in_parallel=p.get("parallel", False),
                depends_on=tuple(p.get("depends_on", ())),
            )
            for p in phases
        )
    )
