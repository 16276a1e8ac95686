"""
Error types for the orchestration pipeline.

Every failure the core can surface is a subclass of PipelineError and carries
a stable ``code`` that the job-status layer attaches to a failed job.
"""

from typing import Iterable, List, Optional


class PipelineError(Exception):
    """Base class for all orchestration pipeline errors."""

    code = "PIPELINE_ERROR"


class UnknownAgentError(PipelineError):
    """Raised when an agent identifier is not in the registry catalog."""

    code = "UNKNOWN_AGENT"

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"Unknown agent: {agent_id}")


class DependencyUnsatisfiedError(PipelineError):
    """Raised when an agent is started before its prerequisites completed."""

    code = "DEPENDENCY_UNSATISFIED"

    def __init__(self, agent_id: str, missing: Iterable[str]) -> None:
        self.agent_id = agent_id
        self.missing = sorted(missing)
        super().__init__(
            f"Dependencies not satisfied for agent {agent_id}: "
            f"missing {', '.join(self.missing)}"
        )


class AgentExecutionFailedError(PipelineError):
    """Raised when an agent's own work function fails."""

    code = "AGENT_EXECUTION_FAILED"

    def __init__(
        self,
        agent_id: str,
        cause: Optional[BaseException] = None,
        message: Optional[str] = None,
    ) -> None:
        self.agent_id = agent_id
        self.cause = cause
        detail = message or (str(cause) if cause is not None else "unknown error")
        super().__init__(f"Agent {agent_id} failed: {detail}")
        self.detail = detail


class AgentTimeoutError(AgentExecutionFailedError):
    """Raised when an agent does not finish before its deadline."""

    code = "AGENT_TIMEOUT"

    def __init__(self, agent_id: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(agent_id, message=f"timed out after {timeout_seconds:g}s")


class OraclePlanInvalidError(PipelineError):
    """Raised when the planning oracle returns a malformed execution plan."""

    code = "ORACLE_PLAN_INVALID"

    def __init__(self, errors: List[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid execution plan: " + "; ".join(self.errors))


class OracleCallFailedError(PipelineError):
    """Raised when a planning, summarization or reasoning call fails."""

    code = "ORACLE_CALL_FAILED"

    def __init__(self, oracle: str, cause: Optional[BaseException] = None) -> None:
        self.oracle = oracle
        self.cause = cause
        detail = str(cause) if cause is not None else "no response"
        super().__init__(f"{oracle} call failed: {detail}")
