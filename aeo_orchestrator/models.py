"""
Data model for the orchestration pipeline.

This module contains the dataclasses and enums shared by the context store,
the executor, the plan generator and the orchestrator: agent summaries,
execution plans and the structured outputs of the oracles.
"""

# pylint: disable=too-many-instance-attributes

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml


class AgentStatus(Enum):
    """Lifecycle status of one agent within a job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether the agent has finished, successfully or not."""
        return self in (AgentStatus.COMPLETED, AgentStatus.FAILED)


@dataclass
class AgentSummary:
    """Lightweight in-memory record of one agent's outcome.

    Attributes:
        agent_id: Registry identifier of the agent
        status: Current lifecycle status
        summary: Short text describing the result
        key_findings: Ordered list of short findings
        metrics: Numeric metrics extracted from the result
        artifact_ref: Blob reference of the full result (completed only)
        completed_at: When the agent completed
        next_steps: Suggested follow-ups from the summarizer
    """

    agent_id: str
    status: AgentStatus = AgentStatus.PENDING
    summary: str = ""
    key_findings: List[str] = field(default_factory=list)
    metrics: Dict[str, float] = field(default_factory=dict)
    artifact_ref: Optional[str] = None
    completed_at: Optional[datetime] = None
    next_steps: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the summary to a JSON-safe dictionary."""
        return {
            "agentId": self.agent_id,
            "status": self.status.value,
            "summary": self.summary,
            "keyFindings": list(self.key_findings),
            "metrics": dict(self.metrics),
            "artifactRef": self.artifact_ref,
            "completedAt": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "nextSteps": list(self.next_steps) if self.next_steps is not None else None,
        }


@dataclass
class AgentContext:
    """Per-job record of every agent's summary and artifact reference.

    Attributes:
        job_id: Job identifier
        tenant_id: Tenant owning the job
        domain: Domain under analysis
        summaries: Agent id -> summary
        artifact_refs: Agent id -> blob reference (completed agents only)
        created_at: When the context was created
        last_updated: When any summary last changed
        token_estimate: Approximate token size of the summaries
    """

    job_id: str
    tenant_id: str
    domain: str
    summaries: Dict[str, AgentSummary] = field(default_factory=dict)
    artifact_refs: Dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
    last_updated: datetime = field(default_factory=datetime.now)
    token_estimate: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert the context to a JSON-safe dictionary."""
        return {
            "jobId": self.job_id,
            "tenantId": self.tenant_id,
            "domain": self.domain,
            "summaries": {k: v.to_dict() for k, v in self.summaries.items()},
            "artifactRefs": dict(self.artifact_refs),
            "metadata": {
                "createdAt": self.created_at.isoformat(),
                "lastUpdated": self.last_updated.isoformat(),
                "tokenEstimate": self.token_estimate,
            },
        }


@dataclass(frozen=True)
class ExecutionPhase:
    """A named group of agents executed together.

    Attributes:
        name: Phase name (e.g. "Discovery")
        agent_ids: Agents to run, in declaration order
        run_in_parallel: Whether the agents run concurrently
        depends_on: Names of phases that must run before this one
    """

    name: str
    agent_ids: Tuple[str, ...]
    run_in_parallel: bool = False
    depends_on: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExecutionPhase":
        """Create a phase from the oracle's JSON shape.

        Both ``agents``/``runInParallel``/``dependsOn`` and their snake_case
        spellings are accepted.

        Raises:
            ValueError: If a field has the wrong type
        """
        agents = data.get("agents", data.get("agent_ids", []))
        depends_on = data.get("dependsOn", data.get("depends_on")) or []
        parallel = data.get("runInParallel", data.get("run_in_parallel", False))
        name = data.get("name", "")
        if not isinstance(name, str):
            raise ValueError(f"Phase name must be a string, got {type(name).__name__}")
        if not isinstance(agents, (list, tuple)):
            raise ValueError(f"Phase agents must be a list, got {type(agents).__name__}")
        if not isinstance(depends_on, (list, tuple)):
            raise ValueError("Phase dependsOn must be a list")
        if not isinstance(parallel, bool):
            raise ValueError("Phase runInParallel must be a boolean")
        return cls(
            name=name,
            agent_ids=tuple(str(a) for a in agents),
            run_in_parallel=parallel,
            depends_on=tuple(str(d) for d in depends_on),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the phase to the oracle's JSON shape."""
        result: Dict[str, Any] = {
            "name": self.name,
            "agents": list(self.agent_ids),
            "runInParallel": self.run_in_parallel,
        }
        if self.depends_on:
            result["dependsOn"] = list(self.depends_on)
        return result


@dataclass(frozen=True)
class ExecutionPlan:
    """The ordered list of phases for one job.

    Attributes:
        phases: Phases in execution order
        estimated_duration_seconds: Oracle's duration estimate
        rationale: Free-text explanation, for observability only
    """

    phases: Tuple[ExecutionPhase, ...]
    estimated_duration_seconds: float = 0.0
    rationale: str = ""

    @property
    def phase_names(self) -> List[str]:
        """Names of the phases in order."""
        return [p.name for p in self.phases]

    @property
    def agent_ids(self) -> List[str]:
        """Every agent id scheduled by the plan, in order."""
        return [a for p in self.phases for a in p.agent_ids]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExecutionPlan":
        """Create a plan from the oracle's JSON shape.

        Args:
            data: Mapping with ``phases``, ``estimatedDuration`` and ``reasoning``

        Returns:
            ExecutionPlan instance

        Raises:
            ValueError: If the mapping does not have the expected structure
        """
        phases = data.get("phases")
        if not isinstance(phases, (list, tuple)):
            raise ValueError("Plan must contain a list of phases")
        for phase in phases:
            if not isinstance(phase, Mapping):
                raise ValueError("Each phase must be an object")

        duration = data.get(
            "estimatedDuration", data.get("estimated_duration_seconds", 0)
        )
        try:
            duration = float(duration or 0)
        except (TypeError, ValueError) as exc:
            raise ValueError("estimatedDuration must be a number") from exc

        return cls(
            phases=tuple(ExecutionPhase.from_dict(p) for p in phases),
            estimated_duration_seconds=duration,
            rationale=str(data.get("reasoning", data.get("rationale", "")) or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the plan to the oracle's JSON shape."""
        return {
            "phases": [p.to_dict() for p in self.phases],
            "estimatedDuration": self.estimated_duration_seconds,
            "reasoning": self.rationale,
        }

    @classmethod
    def from_yaml(cls, path: Path | str) -> "ExecutionPlan":
        """Load a plan from a YAML file.

        Args:
            path: Path to YAML file

        Returns:
            ExecutionPlan instance
        """
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)


@dataclass
class SummaryResult:
    """Structured output of the summarization oracle."""

    summary: str
    key_findings: List[str] = field(default_factory=list)
    metrics: Dict[str, float] = field(default_factory=dict)
    next_steps: Optional[List[str]] = None
    status: str = "completed"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SummaryResult":
        """Create a summary result, filling defaults for optional fields."""
        status = str(data.get("status") or "completed")
        if status not in ("completed", "partial", "failed"):
            status = "completed"
        metrics: Dict[str, float] = {}
        for key, value in (data.get("metrics") or {}).items():
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                metrics[str(key)] = value
        next_steps = data.get("nextSteps", data.get("next_steps"))
        return cls(
            summary=str(data.get("summary", "")),
            key_findings=[
                str(f) for f in (data.get("keyFindings", data.get("key_findings")) or [])
            ],
            metrics=metrics,
            next_steps=[str(s) for s in next_steps] if next_steps is not None else None,
            status=status,
        )


@dataclass
class ReasoningResult:
    """Structured output of the result reasoner."""

    should_continue: bool
    insights: List[str] = field(default_factory=list)
    next_steps: List[str] = field(default_factory=list)
    adjustments: List[str] = field(default_factory=list)
    confidence: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReasoningResult":
        """Create a reasoning result from the reasoner's JSON shape.

        Raises:
            ValueError: If ``shouldContinue`` is missing or not a boolean
        """
        should_continue = data.get("shouldContinue", data.get("should_continue"))
        if not isinstance(should_continue, bool):
            raise ValueError("Reasoning result must include boolean shouldContinue")
        confidence = data.get("confidence")
        return cls(
            should_continue=should_continue,
            insights=[str(i) for i in data.get("insights") or []],
            next_steps=[str(s) for s in data.get("nextSteps", data.get("next_steps")) or []],
            adjustments=[str(a) for a in data.get("adjustments") or []],
            confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
        )


@dataclass
class PhaseReport:
    """Outcome of one executor phase.

    Attributes:
        phase_name: Name of the phase that ran
        completed: Agents that completed, in completion order
        failed: Agent id -> error message for agents that failed
        not_started: Agents that never started (sequential abort)
        duration_ms: Wall time of the phase
    """

    phase_name: str
    completed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    not_started: List[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def has_failures(self) -> bool:
        """Whether any agent in the phase failed."""
        return bool(self.failed)
