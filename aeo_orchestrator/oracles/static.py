"""
Deterministic oracles.

These oracles make no model calls. They back offline runs and the demo,
and give the pipeline a predictable baseline: the default five-phase AEO plan,
shape-based summaries and a reasoner that always continues.
"""

import json
import re
from typing import Any, Dict, List, Set

from aeo_orchestrator.models import (
    AgentContext,
    AgentStatus,
    ExecutionPhase,
    ExecutionPlan,
    ReasoningResult,
    SummaryResult,
)
from aeo_orchestrator.oracles.base import PlanningOracle, ResultReasoner, SummarizationOracle

DEFAULT_AEO_PLAN = ExecutionPlan(
    phases=(
        ExecutionPhase(
            name="Discovery",
            agent_ids=("page-analysis", "query-generation", "competitor-discovery"),
            run_in_parallel=False,
        ),
        ExecutionPhase(
            name="Research",
            agent_ids=("tavily-research", "community-signals"),
            run_in_parallel=True,
            depends_on=("Discovery",),
        ),
        ExecutionPhase(
            name="Analysis",
            agent_ids=("citation-analysis", "content-comparison"),
            run_in_parallel=True,
            depends_on=("Research",),
        ),
        ExecutionPhase(
            name="Scoring",
            agent_ids=("visibility-scoring",),
            run_in_parallel=False,
            depends_on=("Analysis",),
        ),
        ExecutionPhase(
            name="Output",
            agent_ids=("recommendations", "cursor-prompt"),
            run_in_parallel=False,
            depends_on=("Scoring",),
        ),
    ),
    estimated_duration_seconds=100,
    rationale="Full pipeline with Tavily research and community engagement discovery",
)

_COMPLETED_LINE = re.compile(r"^- ([A-Za-z0-9_.-]+):")


def completed_ids_from_digest(context_digest: str) -> Set[str]:
    """Extract completed agent ids from a context digest."""
    completed: Set[str] = set()
    in_completed = False
    for line in context_digest.splitlines():
        if line.startswith("Completed agents:"):
            in_completed = True
            continue
        if in_completed:
            match = _COMPLETED_LINE.match(line)
            if not match:
                break
            completed.add(match.group(1))
    return completed


class StaticPlanningOracle(PlanningOracle):
    """Returns a fixed plan, minus agents the digest reports as completed."""

    def __init__(self, plan: ExecutionPlan = DEFAULT_AEO_PLAN) -> None:
        self._plan = plan

    async def propose(
        self,
        target_url: str,
        domain: str,
        context_digest: str,
    ) -> ExecutionPlan:
        completed = completed_ids_from_digest(context_digest)
        if not completed:
            return self._plan

        phases: List[ExecutionPhase] = []
        kept_names: Set[str] = set()
        for phase in self._plan.phases:
            remaining = tuple(a for a in phase.agent_ids if a not in completed)
            if not remaining:
                continue
            phases.append(
                ExecutionPhase(
                    name=phase.name,
                    agent_ids=remaining,
                    run_in_parallel=phase.run_in_parallel and len(remaining) > 1,
                    depends_on=tuple(d for d in phase.depends_on if d in kept_names),
                )
            )
            kept_names.add(phase.name)

        return ExecutionPlan(
            phases=tuple(phases),
            estimated_duration_seconds=self._plan.estimated_duration_seconds,
            rationale=f"{self._plan.rationale} (skipping {len(completed)} completed agents)",
        )


class HeuristicSummarizationOracle(SummarizationOracle):
    """Summarizes results from their structure instead of their meaning."""

    def __init__(self, max_findings: int = 5) -> None:
        self.max_findings = max_findings

    async def summarize(self, agent_id: str, full_result: Any) -> SummaryResult:
        findings: List[str] = []
        metrics: Dict[str, float] = {}

        if isinstance(full_result, dict):
            for key, value in full_result.items():
                if isinstance(value, bool):
                    findings.append(f"{key}: {'yes' if value else 'no'}")
                elif isinstance(value, (int, float)):
                    metrics[str(key)] = value
                elif isinstance(value, list):
                    metrics[f"{key}_count"] = len(value)
                elif isinstance(value, str) and value:
                    findings.append(f"{key}: {_shorten(value, 80)}")
            shape = f"{len(full_result)} fields"
        elif isinstance(full_result, list):
            metrics["items"] = len(full_result)
            findings.extend(_shorten(_render(item), 80) for item in full_result[:3])
            shape = f"{len(full_result)} items"
        else:
            findings.append(_shorten(_render(full_result), 80))
            shape = type(full_result).__name__

        return SummaryResult(
            summary=f"{agent_id} produced {shape}",
            key_findings=findings[: self.max_findings],
            metrics=metrics,
        )

    async def brief_summarize(self, agent_id: str, full_result: Any) -> str:
        return _shorten(f"{agent_id}: {_render(full_result)}", 120)


class ContinueReasoner(ResultReasoner):
    """Always continues; surfaces failed agents as insights."""

    async def reason(self, context: AgentContext) -> ReasoningResult:
        failed = sorted(
            s.agent_id
            for s in context.summaries.values()
            if s.status is AgentStatus.FAILED
        )
        completed = sum(
            1 for s in context.summaries.values() if s.status is AgentStatus.COMPLETED
        )
        insights = [f"{completed} agents completed"]
        insights.extend(f"{agent_id} failed" for agent_id in failed)
        return ReasoningResult(should_continue=True, insights=insights)


def _render(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def _shorten(text: str, limit: int) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
