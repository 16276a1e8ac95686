"""Tests for the job orchestrator state machine."""

import pytest

from aeo_orchestrator.config import PipelineConfig
from aeo_orchestrator.errors import (
    AgentExecutionFailedError,
    DependencyUnsatisfiedError,
    OracleCallFailedError,
    OraclePlanInvalidError,
)
from aeo_orchestrator.executor import AgentExecutor
from aeo_orchestrator.models import AgentStatus, ReasoningResult
from aeo_orchestrator.observability.hooks import EventHookRegistry, PipelineEvent
from aeo_orchestrator.orchestrator import Orchestrator, OrchestratorState
from aeo_orchestrator.storage import InMemoryBlobStore
from tests.helpers import (
    ScriptedReasoner,
    StubPlanningOracle,
    StubSummarizer,
    TickingClock,
    make_plan,
    make_registry,
    make_tasks,
    raises,
    returns,
)

REGISTRY = make_registry(
    {
        "page-analysis": [],
        "search-a": ["page-analysis"],
        "search-b": ["page-analysis"],
        "scoring": ["search-a"],
        "report": ["scoring"],
    }
)

DISCOVERY_RESEARCH = make_plan(
    {"name": "Discovery", "agents": ["page-analysis"]},
    {"name": "Research", "agents": ["search-a", "search-b"], "parallel": True},
)

THREE_PHASES = make_plan(
    {"name": "Discovery", "agents": ["page-analysis"]},
    {"name": "Research", "agents": ["search-a", "search-b"], "parallel": True},
    {"name": "Scoring", "agents": ["scoring"]},
)

DEFAULT_TASKS = {
    "page-analysis": returns({"topic": "crm"}),
    "search-a": returns({"hits": 3}),
    "search-b": returns({"hits": 1}),
    "scoring": returns({"score": 70}),
    "report": returns({"text": "done"}),
}


def make_orchestrator(plan=THREE_PHASES, reasoner=None, tasks=None, **kwargs):
    planning_oracle = kwargs.pop("planning_oracle", None) or StubPlanningOracle(plan)
    kwargs.setdefault("hook_registry", EventHookRegistry())
    kwargs.setdefault("blob_store", InMemoryBlobStore())
    return Orchestrator(
        job_id="job-1",
        tenant_id="tenant-1",
        domain="example.com",
        planning_oracle=planning_oracle,
        summarizer=kwargs.pop("summarizer", None) or StubSummarizer(),
        reasoner=reasoner or ScriptedReasoner(),
        tasks=make_tasks(tasks if tasks is not None else DEFAULT_TASKS),
        registry=REGISTRY,
        clock=TickingClock(),
        **kwargs,
    )


class TestInitialize:
    @pytest.mark.asyncio
    async def test_moves_to_ready_with_plan(self):
        orchestrator = make_orchestrator()
        assert orchestrator.state is OrchestratorState.INITIALIZED

        plan = await orchestrator.initialize("https://example.com/crm")

        assert orchestrator.state is OrchestratorState.READY
        assert orchestrator.plan == plan == THREE_PHASES
        assert orchestrator.current_phase_index == 0

    @pytest.mark.asyncio
    async def test_planning_failure_fails_the_job(self):
        oracle = StubPlanningOracle(error=TimeoutError("model offline"))
        orchestrator = make_orchestrator(planning_oracle=oracle)

        with pytest.raises(OracleCallFailedError):
            await orchestrator.initialize("https://example.com/crm")

        assert orchestrator.state is OrchestratorState.FAILED

    @pytest.mark.asyncio
    async def test_invalid_plan_fails_the_job(self):
        orchestrator = make_orchestrator(plan=make_plan({"name": "X", "agents": ["ghost"]}))
        with pytest.raises(OraclePlanInvalidError):
            await orchestrator.initialize("https://example.com/crm")
        assert orchestrator.state is OrchestratorState.FAILED

    @pytest.mark.asyncio
    async def test_initialize_twice_is_rejected(self):
        orchestrator = make_orchestrator()
        await orchestrator.initialize("https://example.com/crm")
        with pytest.raises(RuntimeError):
            await orchestrator.initialize("https://example.com/crm")

    @pytest.mark.asyncio
    async def test_execute_requires_ready(self):
        with pytest.raises(RuntimeError):
            await make_orchestrator().execute()


class TestExecute:
    @pytest.mark.asyncio
    async def test_discovery_then_research(self):
        orchestrator = make_orchestrator(
            plan=DISCOVERY_RESEARCH,
            tasks={**DEFAULT_TASKS, "search-b": raises(RuntimeError("quota"))},
        )
        seen = {}

        def on_phase_complete(phase_name, summaries):
            seen[phase_name] = {k: s.status for k, s in summaries.items()}

        await orchestrator.initialize("https://example.com/crm")
        result = await orchestrator.execute(on_phase_complete=on_phase_complete)

        assert seen["Discovery"] == {"page-analysis": AgentStatus.COMPLETED}
        assert seen["Research"] == {
            "page-analysis": AgentStatus.COMPLETED,
            "search-a": AgentStatus.COMPLETED,
            "search-b": AgentStatus.FAILED,
        }
        assert result.state is OrchestratorState.COMPLETED
        assert result.phases_executed == ["Discovery", "Research"]
        assert result.failed_agents == ["search-b"]
        assert orchestrator.state is OrchestratorState.COMPLETED

    @pytest.mark.asyncio
    async def test_reasoner_stop_skips_remaining_phases(self, monkeypatch):
        reasoner = ScriptedReasoner(
            ReasoningResult(should_continue=False, insights=["enough data"])
        )
        orchestrator = make_orchestrator(reasoner=reasoner)
        phases_run = []
        original = AgentExecutor.run_phase

        async def spy(self, agent_ids, parallel, context, phase_name=None, target_url=""):
            phases_run.append(phase_name)
            return await original(self, agent_ids, parallel, context, phase_name, target_url)

        monkeypatch.setattr(AgentExecutor, "run_phase", spy)

        await orchestrator.initialize("https://example.com/crm")
        result = await orchestrator.execute()

        assert phases_run == ["Discovery"]
        assert orchestrator.state is OrchestratorState.COMPLETED
        assert result.stopped_early
        assert result.insights == {"Discovery": ["enough data"]}
        assert reasoner.calls == 1

    @pytest.mark.asyncio
    async def test_all_phases_run_with_reasoning_after_each(self):
        reasoner = ScriptedReasoner()
        orchestrator = make_orchestrator(reasoner=reasoner)

        await orchestrator.initialize("https://example.com/crm")
        result = await orchestrator.execute()

        assert result.phases_executed == ["Discovery", "Research", "Scoring"]
        assert not result.stopped_early
        assert reasoner.calls == 3
        assert orchestrator.current_phase_index == 2
        assert set(result.summaries) == {"page-analysis", "search-a", "search-b", "scoring"}

    @pytest.mark.asyncio
    async def test_callback_errors_are_not_fatal(self):
        def broken(_phase_name, _summaries):
            raise KeyError("oops")

        orchestrator = make_orchestrator()
        await orchestrator.initialize("https://example.com/crm")
        result = await orchestrator.execute(on_phase_complete=broken)

        assert result.state is OrchestratorState.COMPLETED

    @pytest.mark.asyncio
    async def test_async_callbacks_are_awaited(self):
        seen = []

        async def on_phase_complete(phase_name, _summaries):
            seen.append(phase_name)

        orchestrator = make_orchestrator(plan=DISCOVERY_RESEARCH)
        await orchestrator.initialize("https://example.com/crm")
        await orchestrator.execute(on_phase_complete=on_phase_complete)

        assert seen == ["Discovery", "Research"]


class TestFailures:
    @pytest.mark.asyncio
    async def test_sequential_abort_marks_unstarted_agents_failed(self):
        plan = make_plan(
            {"name": "Discovery", "agents": ["page-analysis"]},
            {"name": "Chain", "agents": ["search-a", "scoring", "report"]},
        )
        hooks = EventHookRegistry()
        errors = []
        hooks.on(PipelineEvent.JOB_ERROR, errors.append)
        orchestrator = make_orchestrator(
            plan=plan,
            tasks={**DEFAULT_TASKS, "search-a": raises(RuntimeError("blocked"))},
            hook_registry=hooks,
        )

        await orchestrator.initialize("https://example.com/crm")
        with pytest.raises(AgentExecutionFailedError):
            await orchestrator.execute()

        summaries = orchestrator.get_all_agent_summaries()
        assert orchestrator.state is OrchestratorState.FAILED
        assert summaries["search-a"].summary == "Agent failed: blocked"
        assert summaries["scoring"].status is AgentStatus.FAILED
        assert summaries["report"].status is AgentStatus.FAILED
        assert summaries["page-analysis"].status is AgentStatus.COMPLETED
        assert errors[0].data["code"] == "AGENT_EXECUTION_FAILED"

    @pytest.mark.asyncio
    async def test_dependency_violation_fails_the_job(self):
        plan = make_plan({"name": "Early", "agents": ["scoring"]})
        orchestrator = make_orchestrator(plan=plan)

        await orchestrator.initialize("https://example.com/crm")
        with pytest.raises(DependencyUnsatisfiedError):
            await orchestrator.execute()

        assert orchestrator.state is OrchestratorState.FAILED

    @pytest.mark.asyncio
    async def test_reasoner_failure_is_fatal(self):
        reasoner = ScriptedReasoner(ConnectionError("reasoner down"))
        orchestrator = make_orchestrator(reasoner=reasoner)

        await orchestrator.initialize("https://example.com/crm")
        with pytest.raises(OracleCallFailedError):
            await orchestrator.execute()

        assert orchestrator.state is OrchestratorState.FAILED
        assert orchestrator.current_phase_index == 0

    @pytest.mark.asyncio
    async def test_snapshot_written_on_failure(self):
        blobs = InMemoryBlobStore()
        orchestrator = make_orchestrator(
            reasoner=ScriptedReasoner(ConnectionError("down")), blob_store=blobs
        )

        await orchestrator.initialize("https://example.com/crm")
        with pytest.raises(OracleCallFailedError):
            await orchestrator.execute()

        assert blobs.get("tenant-1", "job-1", "context-snapshot")["jobId"] == "job-1"


class TestReplanningAndCompression:
    @pytest.mark.asyncio
    async def test_adjustments_replace_remaining_phases(self):
        oracle = StubPlanningOracle(THREE_PHASES).then(
            make_plan({"name": "Report", "agents": ["scoring", "report"]})
        )
        reasoner = ScriptedReasoner(
            ReasoningResult(should_continue=True),
            ReasoningResult(should_continue=True, adjustments=["skip to the report"]),
            ReasoningResult(should_continue=True),
        )
        orchestrator = make_orchestrator(
            planning_oracle=oracle,
            reasoner=reasoner,
            config=PipelineConfig(replan_on_adjustments=True, max_replans=1),
        )

        await orchestrator.initialize("https://example.com/crm")
        result = await orchestrator.execute()

        assert result.phases_executed == ["Discovery", "Research", "Report"]
        assert result.replans == 1
        assert orchestrator.plan.phase_names == ["Discovery", "Research", "Report"]
        assert "- search-a:" in oracle.digests[1]
        assert orchestrator.context.get_summary("report").status is AgentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_replanned_phase_may_depend_on_executed_phase(self):
        oracle = StubPlanningOracle(THREE_PHASES).then(
            make_plan({"name": "Report", "agents": ["scoring", "report"], "depends_on": ["Research"]})
        )
        reasoner = ScriptedReasoner(
            ReasoningResult(should_continue=True),
            ReasoningResult(should_continue=True, adjustments=["skip to the report"]),
            ReasoningResult(should_continue=True),
        )
        orchestrator = make_orchestrator(
            planning_oracle=oracle,
            reasoner=reasoner,
            config=PipelineConfig(replan_on_adjustments=True, max_replans=1),
        )

        await orchestrator.initialize("https://example.com/crm")
        result = await orchestrator.execute()

        assert orchestrator.state is OrchestratorState.COMPLETED
        assert result.phases_executed == ["Discovery", "Research", "Report"]

    @pytest.mark.asyncio
    async def test_replanned_phase_cannot_reuse_executed_name(self):
        oracle = StubPlanningOracle(THREE_PHASES).then(
            make_plan({"name": "Discovery", "agents": ["scoring"]})
        )
        reasoner = ScriptedReasoner(
            ReasoningResult(should_continue=True),
            ReasoningResult(should_continue=True, adjustments=["redo discovery"]),
        )
        orchestrator = make_orchestrator(
            planning_oracle=oracle,
            reasoner=reasoner,
            config=PipelineConfig(replan_on_adjustments=True, max_replans=1),
        )

        await orchestrator.initialize("https://example.com/crm")
        with pytest.raises(OraclePlanInvalidError) as exc_info:
            await orchestrator.execute()

        assert "duplicate phase name Discovery" in exc_info.value.errors
        assert orchestrator.state is OrchestratorState.FAILED

    @pytest.mark.asyncio
    async def test_adjustments_ignored_when_replanning_disabled(self):
        oracle = StubPlanningOracle(THREE_PHASES)
        reasoner = ScriptedReasoner(ReasoningResult(should_continue=True, adjustments=["x"]))
        orchestrator = make_orchestrator(planning_oracle=oracle, reasoner=reasoner)

        await orchestrator.initialize("https://example.com/crm")
        result = await orchestrator.execute()

        assert len(oracle.digests) == 1
        assert result.replans == 0
        assert result.phases_executed == ["Discovery", "Research", "Scoring"]

    @pytest.mark.asyncio
    async def test_compresses_when_approaching_token_limit(self):
        summarizer = StubSummarizer()
        orchestrator = make_orchestrator(
            summarizer=summarizer,
            config=PipelineConfig(token_limit=10, compression_min_completed=2, compression_fraction=0.5),
        )

        await orchestrator.initialize("https://example.com/crm")
        await orchestrator.execute()

        assert summarizer.brief_calls
        assert orchestrator.context.get_summary("page-analysis").summary == "page-analysis brief"


class TestAccessors:
    @pytest.mark.asyncio
    async def test_should_retrieve_full_data(self):
        orchestrator = make_orchestrator(
            plan=DISCOVERY_RESEARCH,
            tasks={**DEFAULT_TASKS, "search-b": raises(RuntimeError("quota"))},
        )
        await orchestrator.initialize("https://example.com/crm")
        await orchestrator.execute()

        assert orchestrator.should_retrieve_full_data("search-b")
        assert not orchestrator.should_retrieve_full_data("search-a")
        assert not orchestrator.should_retrieve_full_data("never-ran")

    @pytest.mark.asyncio
    async def test_next_steps_request_full_data(self):
        orchestrator = make_orchestrator(
            plan=make_plan({"name": "Discovery", "agents": ["page-analysis"]}),
            summarizer=StubSummarizer(next_steps=["check competitors"]),
        )
        await orchestrator.initialize("https://example.com/crm")
        result = await orchestrator.execute()

        assert orchestrator.should_retrieve_full_data("page-analysis")
        assert result.snapshot_ref == "tenant-1/job-1/context/agent-results/context-snapshot.json"

    @pytest.mark.asyncio
    async def test_job_events(self):
        hooks = EventHookRegistry()
        events = []
        hooks.on_all(events.append)
        orchestrator = make_orchestrator(plan=DISCOVERY_RESEARCH, hook_registry=hooks)

        await orchestrator.initialize("https://example.com/crm")
        await orchestrator.execute()

        kinds = [e.event for e in events]
        assert kinds[0] is PipelineEvent.JOB_START
        assert kinds[1] is PipelineEvent.PLAN_CREATED
        assert kinds[-1] is PipelineEvent.JOB_END
        assert kinds.count(PipelineEvent.REASONING_COMPLETE) == 2
