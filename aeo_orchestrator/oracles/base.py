"""
Oracle interfaces.

The planning heuristic, result summarization and continue/stop reasoning are
model-driven decisions made outside the deterministic scheduling core. The
core consults them through these narrow interfaces so they can be swapped
for stubs in tests or for different model providers.
"""

# pylint: disable=too-few-public-methods

from abc import ABC, abstractmethod
from typing import Any, Mapping, Union

from aeo_orchestrator.models import (
    AgentContext,
    ExecutionPlan,
    ReasoningResult,
    SummaryResult,
)


class PlanningOracle(ABC):
    """Proposes an execution plan for a job."""

    @abstractmethod
    async def propose(
        self,
        target_url: str,
        domain: str,
        context_digest: str,
    ) -> Union[ExecutionPlan, Mapping[str, Any]]:
        """Propose phases for analyzing ``target_url``.

        Args:
            target_url: URL under analysis
            domain: Domain under analysis
            context_digest: Text digest of already completed/running agents

        Returns:
            An ExecutionPlan, or a mapping in the plan's JSON shape
        """


class SummarizationOracle(ABC):
    """Condenses full agent results into context-sized summaries."""

    @abstractmethod
    async def summarize(self, agent_id: str, full_result: Any) -> SummaryResult:
        """Summarize one agent's full result."""

    @abstractmethod
    async def brief_summarize(self, agent_id: str, full_result: Any) -> str:
        """Produce a one-sentence summary, used when compressing context."""


class ResultReasoner(ABC):
    """Decides after each phase whether the job should continue."""

    @abstractmethod
    async def reason(self, context: AgentContext) -> ReasoningResult:
        """Reason over the accumulated summaries of a job.

        Args:
            context: Snapshot of the job's context

        Returns:
            Insights plus the continue/stop decision
        """
