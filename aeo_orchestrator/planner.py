"""
Plan generation.

Builds the context digest handed to the planning oracle and validates the
plan that comes back. Malformed plans are rejected outright; nothing is
repaired or reordered here.
"""

from typing import Any, Iterable, List, Mapping, Optional, Sequence, Set, Union

from aeo_orchestrator.errors import OracleCallFailedError, OraclePlanInvalidError
from aeo_orchestrator.models import AgentContext, AgentStatus, ExecutionPlan
from aeo_orchestrator.observability.hooks import (
    EventHookRegistry,
    PipelineEvent,
    default_hook_registry,
)
from aeo_orchestrator.observability.logging import get_logger
from aeo_orchestrator.oracles.base import PlanningOracle
from aeo_orchestrator.registry import AgentRegistry, default_agent_registry


def build_context_digest(context: AgentContext) -> str:
    """Render the compact text digest of a context for the planning oracle.

    Lists completed agents with their one-line summaries, running agents and
    the total number of tracked agents.
    """
    summaries = list(context.summaries.values())
    completed = "\n".join(
        f"- {s.agent_id}: {s.summary}"
        for s in summaries
        if s.status is AgentStatus.COMPLETED
    )
    running = ", ".join(s.agent_id for s in summaries if s.status is AgentStatus.RUNNING)

    return (
        f"Completed agents:\n{completed or 'None'}\n\n"
        f"Running agents: {running or 'None'}\n\n"
        f"Total agents: {len(summaries)}"
    )


def validate_plan(
    plan: ExecutionPlan,
    registry: AgentRegistry,
    executed_phases: Iterable[str] = (),
) -> List[str]:
    """Collect every structural problem of a plan.

    Args:
        plan: Plan to check
        registry: Catalog agent ids must resolve in
        executed_phases: Names of phases that already ran in this job. New
            phases may depend on them but may not reuse their names.

    Returns:
        Problem descriptions, empty when the plan is valid
    """
    errors: List[str] = []
    if not plan.phases:
        errors.append("plan has no phases")

    seen: Set[str] = set(executed_phases)
    for index, phase in enumerate(plan.phases):
        label = f"phase {index + 1}"
        if not phase.name.strip():
            errors.append(f"{label} has an empty name")
        elif phase.name in seen:
            errors.append(f"duplicate phase name '{phase.name}'")
        else:
            label = f"phase '{phase.name}'"

        if not phase.agent_ids:
            errors.append(f"{label} lists no agents")
        for agent_id in phase.agent_ids:
            metadata = registry.find(agent_id)
            if metadata is None:
                errors.append(f"{label} references unknown agent '{agent_id}'")
            elif not metadata.enabled:
                errors.append(f"{label} references disabled agent '{agent_id}'")

        for dependency in phase.depends_on:
            if dependency not in seen:
                errors.append(
                    f"{label} depends on '{dependency}', which is not an earlier phase"
                )

        if phase.name.strip():
            seen.add(phase.name)

    return errors


def check_plan_ordering(
    plan: ExecutionPlan,
    registry: AgentRegistry,
    completed: Iterable[str] = (),
) -> List[str]:
    """Find agents scheduled before their prerequisites.

    A prerequisite is satisfied when it has already completed, is scheduled in
    an earlier phase, or comes earlier in the same sequential phase. Unknown
    agents are skipped.

    Returns:
        One warning per agent with unsatisfied prerequisites
    """
    available = set(completed)
    warnings: List[str] = []
    for phase in plan.phases:
        in_phase: Set[str] = set()
        for agent_id in phase.agent_ids:
            if agent_id not in registry:
                continue
            satisfied = available if phase.run_in_parallel else available | in_phase
            missing = registry.missing_dependencies(agent_id, satisfied)
            if missing:
                warnings.append(
                    f"Agent {agent_id} in phase '{phase.name}' is scheduled before "
                    f"{', '.join(sorted(missing))}"
                )
            in_phase.add(agent_id)
        available |= in_phase
    return warnings


class PlanGenerator:
    """Asks the planning oracle for a plan and validates the answer.

    Usage:
        generator = PlanGenerator(StaticPlanningOracle())
        plan = await generator.create_plan(
            "https://example.com/pricing", "example.com", store.get_context()
        )
    """

    def __init__(
        self,
        oracle: PlanningOracle,
        registry: Optional[AgentRegistry] = None,
        hook_registry: Optional[EventHookRegistry] = None,
    ) -> None:
        self._oracle = oracle
        self._registry = registry or default_agent_registry
        self._hooks = hook_registry or default_hook_registry

    async def create_plan(
        self,
        target_url: str,
        domain: str,
        context_snapshot: AgentContext,
        executed_phases: Sequence[str] = (),
    ) -> ExecutionPlan:
        """Create a validated execution plan.

        Args:
            target_url: URL under analysis
            domain: Domain under analysis
            context_snapshot: Current context of the job
            executed_phases: Phases already run, when re-planning

        Returns:
            The oracle's plan

        Raises:
            OracleCallFailedError: If the oracle call fails
            OraclePlanInvalidError: If the oracle's plan is malformed
        """
        logger = get_logger("planner", job_id=context_snapshot.job_id)
        digest = build_context_digest(context_snapshot)

        try:
            proposal = await self._oracle.propose(target_url, domain, digest)
        except (OracleCallFailedError, OraclePlanInvalidError):
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error(f"Planning oracle failed: {e}")
            raise OracleCallFailedError("Planning oracle", e) from e

        plan = self._coerce_proposal(proposal)

        errors = validate_plan(plan, self._registry, executed_phases)
        if errors:
            logger.error(f"Rejected plan with {len(errors)} problems", extra={"errors": errors})
            raise OraclePlanInvalidError(errors)

        completed = (
            s.agent_id
            for s in context_snapshot.summaries.values()
            if s.status is AgentStatus.COMPLETED
        )
        for warning in check_plan_ordering(plan, self._registry, completed):
            logger.warning(warning)

        logger.info(
            f"Plan created with {len(plan.phases)} phases",
            extra={
                "phases": plan.phase_names,
                "estimated_duration": plan.estimated_duration_seconds,
            },
        )
        self._hooks.trigger(
            PipelineEvent.PLAN_CREATED,
            job_id=context_snapshot.job_id,
            phases=plan.phase_names,
            agents=plan.agent_ids,
            estimated_duration=plan.estimated_duration_seconds,
        )
        return plan

    @staticmethod
    def _coerce_proposal(
        proposal: Union[ExecutionPlan, Mapping[str, Any], Any],
    ) -> ExecutionPlan:
        if isinstance(proposal, ExecutionPlan):
            return proposal
        if isinstance(proposal, Mapping):
            try:
                return ExecutionPlan.from_dict(proposal)
            except ValueError as e:
                raise OraclePlanInvalidError([str(e)]) from e
        raise OraclePlanInvalidError(
            [f"planning oracle returned {type(proposal).__name__}, not a plan"]
        )
