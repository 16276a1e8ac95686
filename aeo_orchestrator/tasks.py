"""
Agent work function registration.

Each agent's business logic (page analysis, search research, scoring...) is
an external work function. This module provides a decorator-based system to
register those functions against agent ids, and a registry the executor uses
to look them up.

Work functions take a single AgentRunContext and return a JSON-serializable
result. They may be plain functions (run in a worker thread) or coroutines.
"""

import asyncio
import importlib.util
import inspect
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Union

from aeo_orchestrator.observability.logging import get_logger

if TYPE_CHECKING:
    from aeo_orchestrator.context import ContextStore

_logger = get_logger("tasks")


@dataclass
class AgentRunContext:
    """What a work function sees of the job it runs in.

    Attributes:
        agent_id: Agent being run
        job_id: Job identifier
        tenant_id: Tenant owning the job
        domain: Domain under analysis
        target_url: URL under analysis
        model: Model name configured for the pipeline
        store: The job's context store
    """

    agent_id: str
    job_id: str
    tenant_id: str
    domain: str
    target_url: str
    model: str
    store: "ContextStore"

    def get_result(self, agent_id: str) -> Optional[Any]:
        """Read a prior agent's full result (or a seeded artifact)."""
        return self.store.get_full_result(agent_id)

    def require_result(self, agent_id: str) -> Any:
        """Read a prior agent's full result, failing if it is absent.

        Raises:
            RuntimeError: If no result is stored for ``agent_id``
        """
        result = self.store.get_full_result(agent_id)
        if result is None:
            raise RuntimeError(
                f"Result of {agent_id} not available. Run {agent_id} first."
            )
        return result


WorkFunction = Callable[[AgentRunContext], Union[Any, Awaitable[Any]]]


@dataclass
class AgentTask:
    """Binding of an agent id to its work function.

    Attributes:
        agent_id: Registry identifier the function implements
        function: The callable that does the work
        description: Human-readable description
    """

    agent_id: str
    function: WorkFunction
    description: str = ""

    @property
    def is_async(self) -> bool:
        """Whether the work function is a coroutine function."""
        return inspect.iscoroutinefunction(self.function)

    async def invoke(self, run_context: AgentRunContext) -> Any:
        """Run the work function without blocking the event loop."""
        if self.is_async:
            return await self.function(run_context)
        return await asyncio.to_thread(self.function, run_context)


# Global registry of decorated work functions
_TASK_REGISTRY: Dict[str, AgentTask] = {}


def agent_task(
    agent_id: str,
    description: str = "",
) -> Callable[[WorkFunction], WorkFunction]:
    """Decorator to register a function as an agent's work function.

    Usage:
        @agent_task("page-analysis")
        def analyze_pages(ctx: AgentRunContext) -> dict:
            pages = ctx.require_result("pages")
            ...

    Args:
        agent_id: Agent the function implements
        description: Description (defaults to the docstring)

    Returns:
        Decorator function
    """

    def decorator(func: WorkFunction) -> WorkFunction:
        _TASK_REGISTRY[agent_id] = AgentTask(
            agent_id=agent_id,
            function=func,
            description=description or func.__doc__ or "",
        )
        return func

    return decorator


class TaskRegistry:
    """Registry mapping agent ids to work functions."""

    def __init__(self, include_global: bool = True) -> None:
        """Initialize the registry.

        Args:
            include_global: Whether to load functions registered with
                ``@agent_task``
        """
        self._tasks: Dict[str, AgentTask] = {}
        if include_global:
            self._load_global_registry()

    def _load_global_registry(self) -> None:
        self._tasks.update(_TASK_REGISTRY)

    def register(
        self,
        agent_id: str,
        func: WorkFunction,
        description: str = "",
    ) -> None:
        """Register a work function for an agent, replacing any previous one."""
        self._tasks[agent_id] = AgentTask(
            agent_id=agent_id,
            function=func,
            description=description or func.__doc__ or "",
        )

    def get(self, agent_id: str) -> Optional[AgentTask]:
        """Get the task bound to an agent id, or None."""
        return self._tasks.get(agent_id)

    def list_tasks(self) -> List[str]:
        """Get the agent ids that have a work function."""
        return list(self._tasks.keys())

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._tasks

    def discover_from_directory(self, directory: Path | str) -> int:
        """Import every module in a directory so its ``@agent_task``
        functions register themselves.

        Args:
            directory: Directory containing work function modules

        Returns:
            Number of tasks discovered
        """
        directory = Path(directory)
        if not directory.exists():
            return 0

        initial_count = len(self._tasks)

        for py_file in sorted(directory.glob("*.py")):
            if py_file.name.startswith("_"):
                continue

            module_spec = importlib.util.spec_from_file_location(py_file.stem, py_file)
            if module_spec and module_spec.loader:
                module = importlib.util.module_from_spec(module_spec)
                try:
                    module_spec.loader.exec_module(module)
                except (ImportError, SyntaxError) as e:
                    _logger.warning(f"Failed to load task module {py_file}: {e}")

        self._load_global_registry()

        return len(self._tasks) - initial_count
