"""Tests for compression policies."""

from datetime import datetime, timedelta, timezone

import pytest

from aeo_orchestrator.compression import OldestFractionPolicy
from aeo_orchestrator.models import AgentStatus, AgentSummary

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def completed(agent_id: str, minutes: int) -> AgentSummary:
    return AgentSummary(
        agent_id=agent_id,
        status=AgentStatus.COMPLETED,
        summary="done",
        artifact_ref=f"t/j/context/agent-results/{agent_id}.json",
        completed_at=START + timedelta(minutes=minutes),
    )


class TestOldestFractionPolicy:
    def test_selects_nothing_below_minimum(self):
        summaries = [completed(f"a{i}", i) for i in range(5)]
        assert OldestFractionPolicy().select(summaries) == []

    def test_selects_oldest_by_completion_time(self):
        # Declared newest first
        summaries = [completed(f"a{i}", 10 - i) for i in range(10)]
        selected = OldestFractionPolicy().select(summaries)
        assert [s.agent_id for s in selected] == ["a9", "a8", "a7"]

    def test_floor_of_fraction(self):
        summaries = [completed(f"a{i}", i) for i in range(6)]
        assert len(OldestFractionPolicy().select(summaries)) == 1

    def test_failed_and_running_agents_are_ignored(self):
        summaries = [completed(f"a{i}", i) for i in range(6)]
        summaries.append(AgentSummary(agent_id="f", status=AgentStatus.FAILED))
        summaries.append(AgentSummary(agent_id="r", status=AgentStatus.RUNNING))
        selected = OldestFractionPolicy(fraction=1.0).select(summaries)
        assert {s.agent_id for s in selected} == {f"a{i}" for i in range(6)}

    def test_completed_without_blob_is_never_selected(self):
        summaries = [completed(f"a{i}", i + 1) for i in range(6)]
        summaries.append(
            AgentSummary(agent_id="seedless", status=AgentStatus.COMPLETED, completed_at=START)
        )
        selected = OldestFractionPolicy(fraction=0.5).select(summaries)
        assert "seedless" not in [s.agent_id for s in selected]

    @pytest.mark.parametrize("fraction", [0.0, -0.1, 1.1])
    def test_invalid_fraction(self, fraction):
        with pytest.raises(ValueError):
            OldestFractionPolicy(fraction=fraction)
