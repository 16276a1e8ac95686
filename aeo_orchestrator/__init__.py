"""
AEO agent orchestration pipeline.

This package plans, schedules and supervises the agents of an Answer Engine
Optimization analysis: a registry of agents and their prerequisites, a per-job
context store that offloads full results to blob storage, an executor for
parallel and sequential phases, and an orchestrator that consults planning and
reasoning oracles between phases.
"""

from aeo_orchestrator.compression import CompressionPolicy, OldestFractionPolicy
from aeo_orchestrator.config import DEFAULT_MODEL, PipelineConfig
from aeo_orchestrator.context import ContextStore, estimate_tokens
from aeo_orchestrator.errors import (
    AgentExecutionFailedError,
    AgentTimeoutError,
    DependencyUnsatisfiedError,
    OracleCallFailedError,
    OraclePlanInvalidError,
    PipelineError,
    UnknownAgentError,
)
from aeo_orchestrator.executor import AgentExecutor
from aeo_orchestrator.models import (
    AgentContext,
    AgentStatus,
    AgentSummary,
    ExecutionPhase,
    ExecutionPlan,
    PhaseReport,
    ReasoningResult,
    SummaryResult,
)
from aeo_orchestrator.observability import (
    EventHookRegistry,
    PipelineEvent,
    PipelineLogger,
    configure_logging,
    default_hook_registry,
    get_logger,
)
from aeo_orchestrator.orchestrator import (
    Orchestrator,
    OrchestratorResult,
    OrchestratorState,
)
from aeo_orchestrator.planner import PlanGenerator, build_context_digest
from aeo_orchestrator.registry import (
    AEO_AGENTS,
    AgentMetadata,
    AgentRegistry,
    default_agent_registry,
)
from aeo_orchestrator.storage import BlobStore, InMemoryBlobStore, LocalBlobStore
from aeo_orchestrator.tasks import AgentRunContext, TaskRegistry, agent_task

__all__ = [
    # Core components
    "AgentRegistry",
    "AgentMetadata",
    "AEO_AGENTS",
    "default_agent_registry",
    "ContextStore",
    "estimate_tokens",
    "AgentExecutor",
    "PlanGenerator",
    "build_context_digest",
    "Orchestrator",
    "OrchestratorResult",
    "OrchestratorState",
    "agent_task",
    "AgentRunContext",
    "TaskRegistry",
    # Data model
    "AgentStatus",
    "AgentSummary",
    "AgentContext",
    "ExecutionPhase",
    "ExecutionPlan",
    "PhaseReport",
    "SummaryResult",
    "ReasoningResult",
    # Policies and storage
    "CompressionPolicy",
    "OldestFractionPolicy",
    "BlobStore",
    "InMemoryBlobStore",
    "LocalBlobStore",
    # Configuration
    "DEFAULT_MODEL",
    "PipelineConfig",
    # Errors
    "PipelineError",
    "UnknownAgentError",
    "DependencyUnsatisfiedError",
    "AgentExecutionFailedError",
    "AgentTimeoutError",
    "OraclePlanInvalidError",
    "OracleCallFailedError",
    # Observability
    "PipelineEvent",
    "PipelineLogger",
    "EventHookRegistry",
    "configure_logging",
    "default_hook_registry",
    "get_logger",
]
