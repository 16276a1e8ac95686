"""Tests for the data model."""

from datetime import datetime, timezone

import pytest

from aeo_orchestrator.errors import AgentTimeoutError, DependencyUnsatisfiedError, PipelineError
from aeo_orchestrator.models import (
    AgentStatus,
    AgentSummary,
    ExecutionPhase,
    ExecutionPlan,
    ReasoningResult,
    SummaryResult,
)
from aeo_orchestrator.oracles.static import DEFAULT_AEO_PLAN


class TestExecutionPlan:
    def test_from_oracle_json(self):
        plan = ExecutionPlan.from_dict(
            {
                "phases": [
                    {"name": "Discovery", "agents": ["page-analysis"], "runInParallel": False},
                    {
                        "name": "Research",
                        "agent_ids": ["tavily-research", "community-signals"],
                        "run_in_parallel": True,
                        "depends_on": ["Discovery"],
                    },
                ],
                "estimatedDuration": "45",
                "reasoning": "why",
            }
        )
        assert plan.phases[1] == ExecutionPhase(
            name="Research",
            agent_ids=("tavily-research", "community-signals"),
            run_in_parallel=True,
            depends_on=("Discovery",),
        )
        assert plan.estimated_duration_seconds == 45.0
        assert plan.rationale == "why"

    def test_dict_round_trip(self):
        assert ExecutionPlan.from_dict(DEFAULT_AEO_PLAN.to_dict()) == DEFAULT_AEO_PLAN

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"phases": "Discovery"},
            {"phases": ["Discovery"]},
            {"phases": [{"name": "A", "agents": "page-analysis"}]},
            {"phases": [{"name": "A", "agents": [], "runInParallel": "yes"}]},
            {"phases": [], "estimatedDuration": "soon"},
            {"phases": [{"name": 5, "agents": ["page-analysis"]}]},
            {"phases": [{"name": None, "agents": ["page-analysis"]}]},
        ],
    )
    def test_malformed_input_raises(self, data):
        with pytest.raises(ValueError):
            ExecutionPlan.from_dict(data)

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "plan.yaml"
        path.write_text(
            "phases:\n"
            "  - name: Discovery\n"
            "    agents: [page-analysis, query-generation]\n"
            "    runInParallel: false\n"
            "estimatedDuration: 20\n"
            "reasoning: discovery only\n",
            encoding="utf-8",
        )
        plan = ExecutionPlan.from_yaml(path)
        assert plan.agent_ids == ["page-analysis", "query-generation"]

    def test_plans_are_immutable(self):
        with pytest.raises(AttributeError):
            DEFAULT_AEO_PLAN.phases[0].name = "Other"


class TestSummaries:
    def test_summary_serializes_camel_case(self):
        summary = AgentSummary(
            agent_id="a",
            status=AgentStatus.COMPLETED,
            summary="ok",
            artifact_ref="t/j/context/agent-results/a.json",
            completed_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        assert summary.to_dict() == {
            "agentId": "a",
            "status": "completed",
            "summary": "ok",
            "keyFindings": [],
            "metrics": {},
            "artifactRef": "t/j/context/agent-results/a.json",
            "completedAt": "2024-01-01T00:00:00+00:00",
            "nextSteps": None,
        }

    def test_terminal_statuses(self):
        assert AgentStatus.COMPLETED.is_terminal
        assert AgentStatus.FAILED.is_terminal
        assert not AgentStatus.RUNNING.is_terminal

    def test_summary_result_normalizes_fields(self):
        result = SummaryResult.from_dict(
            {
                "summary": "s",
                "keyFindings": ["k"],
                "metrics": {"score": 7, "label": "high", "flag": True},
                "status": "weird",
            }
        )
        assert result.metrics == {"score": 7}
        assert result.status == "completed"
        assert result.next_steps is None

    def test_reasoning_result_requires_decision(self):
        with pytest.raises(ValueError):
            ReasoningResult.from_dict({"insights": ["x"]})
        result = ReasoningResult.from_dict({"should_continue": True, "adjustments": ["more"]})
        assert result.adjustments == ["more"]


class TestErrors:
    def test_codes_and_hierarchy(self):
        error = AgentTimeoutError("slow", 2.5)
        assert isinstance(error, PipelineError)
        assert error.code == "AGENT_TIMEOUT"
        assert str(error) == "Agent slow failed: timed out after 2.5s"

    def test_missing_dependencies_are_sorted(self):
        error = DependencyUnsatisfiedError("x", {"b", "a"})
        assert error.missing == ["a", "b"]
        assert error.code == "DEPENDENCY_UNSATISFIED"
