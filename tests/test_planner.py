"""Tests for plan generation and validation."""

import pytest

from aeo_orchestrator.errors import OracleCallFailedError, OraclePlanInvalidError
from aeo_orchestrator.models import ExecutionPlan
from aeo_orchestrator.observability.hooks import EventHookRegistry, PipelineEvent
from aeo_orchestrator.oracles.static import DEFAULT_AEO_PLAN, StaticPlanningOracle
from aeo_orchestrator.planner import (
    PlanGenerator,
    build_context_digest,
    check_plan_ordering,
    validate_plan,
)
from aeo_orchestrator.registry import default_agent_registry
from tests.helpers import StubPlanningOracle, make_plan, make_store


def generator_for(proposal, **kwargs):
    oracle = StubPlanningOracle(proposal, **kwargs)
    return oracle, PlanGenerator(oracle, hook_registry=EventHookRegistry())


async def create(generator, store=None):
    store = store or make_store()
    return await generator.create_plan("https://example.com/crm", "example.com", store.get_context())


class TestDigest:
    @pytest.mark.asyncio
    async def test_lists_completed_and_running_agents(self):
        store = make_store()
        await store.store_result("page-analysis", {"topic": "crm"})
        store.mark_running("query-generation")
        store.mark_failed("competitor-discovery", "boom")

        digest = build_context_digest(store.get_context())

        summary = store.get_summary("page-analysis").summary
        assert digest == (
            f"Completed agents:\n- page-analysis: {summary}\n\n"
            "Running agents: query-generation\n\n"
            "Total agents: 3"
        )

    def test_empty_context(self):
        digest = build_context_digest(make_store().get_context())
        assert digest == "Completed agents:\nNone\n\nRunning agents: None\n\nTotal agents: 0"


class TestCreatePlan:
    @pytest.mark.asyncio
    async def test_accepts_plan_objects(self):
        oracle, generator = generator_for(DEFAULT_AEO_PLAN)
        plan = await create(generator)
        assert plan.phase_names == ["Discovery", "Research", "Analysis", "Scoring", "Output"]
        assert oracle.digests[0].startswith("Completed agents:")

    @pytest.mark.asyncio
    async def test_accepts_oracle_json(self):
        _, generator = generator_for(
            {
                "phases": [
                    {"name": "Discovery", "agents": ["page-analysis"], "runInParallel": False},
                    {
                        "name": "Queries",
                        "agents": ["query-generation"],
                        "runInParallel": False,
                        "dependsOn": ["Discovery"],
                    },
                ],
                "estimatedDuration": 30,
                "reasoning": "Discovery only",
            }
        )
        plan = await create(generator)
        assert plan.agent_ids == ["page-analysis", "query-generation"]
        assert plan.estimated_duration_seconds == 30.0
        assert plan.rationale == "Discovery only"

    @pytest.mark.asyncio
    async def test_plan_created_hook(self):
        hooks = EventHookRegistry()
        events = []
        hooks.on(PipelineEvent.PLAN_CREATED, events.append)
        generator = PlanGenerator(StaticPlanningOracle(), hook_registry=hooks)

        await create(generator)

        assert events[0].data["phases"] == DEFAULT_AEO_PLAN.phase_names

    @pytest.mark.asyncio
    async def test_static_oracle_skips_completed_agents(self):
        store = make_store()
        for agent_id in ("page-analysis", "query-generation", "competitor-discovery"):
            await store.store_result(agent_id, {})
        generator = PlanGenerator(StaticPlanningOracle(), hook_registry=EventHookRegistry())

        plan = await create(generator, store)

        assert plan.phase_names == ["Research", "Analysis", "Scoring", "Output"]
        assert plan.phases[0].depends_on == ()


class TestOracleFailures:
    @pytest.mark.asyncio
    async def test_oracle_exception_is_wrapped(self):
        _, generator = generator_for(None, error=ConnectionError("refused"))
        with pytest.raises(OracleCallFailedError) as exc_info:
            await create(generator)
        assert isinstance(exc_info.value.cause, ConnectionError)

    @pytest.mark.asyncio
    async def test_typed_oracle_error_passes_through(self):
        error = OracleCallFailedError("Plan Generator", ValueError("bad json"))
        _, generator = generator_for(None, error=error)
        with pytest.raises(OracleCallFailedError) as exc_info:
            await create(generator)
        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_malformed_json_is_invalid(self):
        _, generator = generator_for({"phases": "Discovery"})
        with pytest.raises(OraclePlanInvalidError):
            await create(generator)

    @pytest.mark.asyncio
    async def test_non_plan_reply_is_invalid(self):
        _, generator = generator_for("run everything")
        with pytest.raises(OraclePlanInvalidError):
            await create(generator)


class TestValidation:
    @pytest.mark.asyncio
    async def test_empty_plan(self):
        _, generator = generator_for(ExecutionPlan(phases=()))
        with pytest.raises(OraclePlanInvalidError, match="no phases"):
            await create(generator)

    @pytest.mark.asyncio
    async def test_reports_every_problem(self):
        plan = make_plan(
            {"name": "Discovery", "agents": ["page-analysis"]},
            {"name": "Discovery", "agents": ["query-generation"]},
            {"name": " ", "agents": ["made-up-agent"]},
            {"name": "Empty", "agents": []},
            {"name": "Late", "agents": ["perplexity"], "depends_on": ["Later"]},
        )
        _, generator = generator_for(plan)

        with pytest.raises(OraclePlanInvalidError) as exc_info:
            await create(generator)

        errors = exc_info.value.errors
        assert "duplicate phase name 'Discovery'" in errors
        assert "phase 3 has an empty name" in errors
        assert "phase 3 references unknown agent 'made-up-agent'" in errors
        assert "phase 'Empty' lists no agents" in errors
        assert "phase 'Late' references disabled agent 'perplexity'" in errors
        assert "phase 'Late' depends on 'Later', which is not an earlier phase" in errors
        assert exc_info.value.code == "ORACLE_PLAN_INVALID"

    @pytest.mark.asyncio
    async def test_ordering_problems_only_warn(self):
        plan = make_plan({"name": "Backwards", "agents": ["query-generation", "page-analysis"]})
        _, generator = generator_for(plan)
        assert await create(generator) == plan

    def test_executed_phases_count_as_earlier(self):
        plan = make_plan(
            {"name": "Discovery", "agents": ["query-generation"]},
            {"name": "Scoring", "agents": ["visibility-scoring"], "depends_on": ["Research"]},
        )
        errors = validate_plan(
            plan, default_agent_registry, executed_phases=["Discovery", "Research"]
        )
        assert errors == ["duplicate phase name 'Discovery'"]

class TestOrderingCheck:
    def test_default_plan_is_well_ordered(self):
        assert check_plan_ordering(DEFAULT_AEO_PLAN, default_agent_registry) == []

    def test_parallel_phase_cannot_satisfy_its_own_members(self):
        plan = make_plan(
            {"name": "P", "agents": ["page-analysis", "query-generation"], "parallel": True}
        )
        warnings = check_plan_ordering(plan, default_agent_registry)
        assert warnings == [
            "Agent query-generation in phase 'P' is scheduled before page-analysis"
        ]

    def test_completed_agents_satisfy_prerequisites(self):
        plan = make_plan({"name": "Q", "agents": ["query-generation"]})
        assert check_plan_ordering(plan, default_agent_registry, {"page-analysis"}) == []
