"""
Agent registry.

Static catalog of the pipeline's agents with their metadata and declared
prerequisites. The registry is pure lookup: it holds no per-job state.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from aeo_orchestrator.errors import UnknownAgentError

CATEGORIES = ("discovery", "research", "analysis", "output")


@dataclass(frozen=True)
class AgentMetadata:
    """Static description of an agent.

    Attributes:
        id: Stable agent identifier
        name: Human-readable name
        description: What the agent does
        category: Pipeline stage (discovery, research, analysis, output)
        inputs: Ids of agents whose results this agent needs
        outputs: Name of the result type
        can_run_in_parallel: Whether the agent is safe to co-schedule
        estimated_duration: Rough duration in seconds
        retryable: Whether a re-enqueued job may retry the agent
        error_handling: Hint for the queue layer ("fail", "skip", "retry")
        enabled: Disabled agents need special setup and are never planned
    """

    id: str
    name: str
    description: str
    category: str
    inputs: Tuple[str, ...] = ()
    outputs: str = ""
    can_run_in_parallel: bool = False
    estimated_duration: int = 10
    retryable: bool = True
    error_handling: str = "retry"
    enabled: bool = True


AEO_AGENTS: Tuple[AgentMetadata, ...] = (
    # Discovery
    AgentMetadata(
        id="page-analysis",
        name="Page Analysis",
        description="Analyzes page content to extract topic, intent, and entities",
        category="discovery",
        outputs="PageAnalysis",
        estimated_duration=10,
    ),
    AgentMetadata(
        id="query-generation",
        name="Query Generation",
        description="Generates target queries the page should answer",
        category="discovery",
        inputs=("page-analysis",),
        outputs="TargetQuery[]",
        estimated_duration=15,
    ),
    AgentMetadata(
        id="competitor-discovery",
        name="Competitor Discovery",
        description="Identifies competing domains from search results",
        category="discovery",
        inputs=("query-generation",),
        outputs="CompetitorVisibility[]",
        estimated_duration=5,
        error_handling="skip",
    ),
    # Research
    AgentMetadata(
        id="tavily-research",
        name="Tavily Research",
        description="Searches queries via Tavily API",
        category="research",
        inputs=("query-generation",),
        outputs="TavilySearchResult[]",
        can_run_in_parallel=True,
        estimated_duration=30,
    ),
    AgentMetadata(
        id="google-aio",
        name="Google AI Overviews",
        description="Scrapes Google AI Overview results",
        category="research",
        inputs=("query-generation",),
        outputs="GoogleAIOResult[]",
        can_run_in_parallel=True,
        estimated_duration=60,
        error_handling="skip",
        enabled=False,
    ),
    AgentMetadata(
        id="perplexity",
        name="Perplexity Research",
        description="Queries Perplexity for citations",
        category="research",
        inputs=("query-generation",),
        outputs="PerplexityResult[]",
        can_run_in_parallel=True,
        estimated_duration=45,
        error_handling="skip",
        enabled=False,
    ),
    AgentMetadata(
        id="community-signals",
        name="Community Signals",
        description="Monitors Reddit, HN, GitHub for mentions",
        category="research",
        inputs=("query-generation",),
        outputs="CommunitySignal[]",
        can_run_in_parallel=True,
        estimated_duration=40,
        error_handling="skip",
    ),
    # Analysis
    AgentMetadata(
        id="citation-analysis",
        name="Citation Analysis",
        description="Analyzes citation patterns and frequency",
        category="analysis",
        inputs=("tavily-research",),
        outputs="CitationAnalysisResult",
        can_run_in_parallel=True,
        estimated_duration=10,
    ),
    AgentMetadata(
        id="content-comparison",
        name="Content Comparison",
        description="Compares content against competitors",
        category="analysis",
        inputs=("page-analysis", "competitor-discovery"),
        outputs="ContentComparisonResult",
        can_run_in_parallel=True,
        estimated_duration=20,
    ),
    AgentMetadata(
        id="visibility-scoring",
        name="Visibility Scoring",
        description="Calculates AEO visibility score",
        category="analysis",
        inputs=("citation-analysis", "content-comparison"),
        outputs="VisibilityScore",
        estimated_duration=5,
    ),
    # Output
    AgentMetadata(
        id="recommendations",
        name="Recommendations",
        description="Generates prioritized recommendations",
        category="output",
        inputs=("visibility-scoring", "content-comparison"),
        outputs="AEORecommendation[]",
        estimated_duration=15,
    ),
    AgentMetadata(
        id="cursor-prompt",
        name="Cursor Prompt",
        description="Generates ready-to-use Cursor prompt",
        category="output",
        inputs=("recommendations",),
        outputs="CursorPrompt",
        estimated_duration=10,
    ),
    AgentMetadata(
        id="report-generator",
        name="Report Generator",
        description="Generates final AEO report",
        category="output",
        inputs=("cursor-prompt", "recommendations"),
        outputs="AEOReport",
        estimated_duration=5,
    ),
)


class AgentRegistry:
    """Catalog of agents and their prerequisites.

    Usage:
        registry = AgentRegistry(AEO_AGENTS)
        registry.get_dependencies("visibility-scoring")
        # frozenset({'citation-analysis', 'content-comparison'})
        registry.dependencies_satisfied("query-generation", {"page-analysis"})
        # True
    """

    def __init__(self, agents: Iterable[AgentMetadata] = ()) -> None:
        """Initialize the registry.

        Args:
            agents: Agent metadata to register

        Raises:
            ValueError: If two entries share an id
        """
        self._agents: Dict[str, AgentMetadata] = {}
        for metadata in agents:
            if metadata.id in self._agents:
                raise ValueError(f"Duplicate agent id: {metadata.id}")
            self._agents[metadata.id] = metadata

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def get_metadata(self, agent_id: str) -> AgentMetadata:
        """Get an agent's metadata.

        Raises:
            UnknownAgentError: If the id is not in the catalog
        """
        metadata = self._agents.get(agent_id)
        if metadata is None:
            raise UnknownAgentError(agent_id)
        return metadata

    def find(self, agent_id: str) -> Optional[AgentMetadata]:
        """Get an agent's metadata, or None when unknown."""
        return self._agents.get(agent_id)

    def list_agents(self, include_disabled: bool = True) -> List[str]:
        """List agent ids in catalog order."""
        return [
            a.id for a in self._agents.values() if include_disabled or a.enabled
        ]

    def is_enabled(self, agent_id: str) -> bool:
        """Whether the agent may be scheduled."""
        return self.get_metadata(agent_id).enabled

    def get_agents_by_category(self, category: str) -> List[AgentMetadata]:
        """Get all agents of a pipeline category."""
        return [a for a in self._agents.values() if a.category == category]

    def get_dependencies(self, agent_id: str) -> FrozenSet[str]:
        """Get the ids an agent requires before it may run.

        Args:
            agent_id: Agent identifier

        Returns:
            Set of prerequisite ids (empty when the agent has none)

        Raises:
            UnknownAgentError: If the id is not in the catalog
        """
        return frozenset(self.get_metadata(agent_id).inputs)

    def dependencies_satisfied(self, agent_id: str, completed: Iterable[str]) -> bool:
        """Check whether every prerequisite of an agent has completed.

        Args:
            agent_id: Agent identifier
            completed: Ids of completed agents

        Returns:
            True iff the agent's dependencies are a subset of ``completed``
        """
        return self.get_dependencies(agent_id) <= set(completed)

    def missing_dependencies(self, agent_id: str, completed: Iterable[str]) -> Set[str]:
        """Get the prerequisites of an agent that have not completed."""
        return set(self.get_dependencies(agent_id) - set(completed))

    def get_parallelizable_agents(
        self, candidates: Iterable[str], completed: Iterable[str]
    ) -> List[str]:
        """Filter candidates to agents that may run concurrently right now.

        Unknown ids are skipped.
        """
        done = set(completed)
        result: List[str] = []
        for agent_id in candidates:
            metadata = self._agents.get(agent_id)
            if metadata is None or not metadata.can_run_in_parallel:
                continue
            if self.dependencies_satisfied(agent_id, done):
                result.append(agent_id)
        return result

    def dependency_order(self, agent_ids: Iterable[str]) -> List[str]:
        """Order agents so each comes after its prerequisites.

        Only edges between the given ids are considered; prerequisites
        outside the set are ignored. Ties keep the input order.

        Args:
            agent_ids: Agent identifiers to order

        Returns:
            Agent ids in dependency order

        Raises:
            UnknownAgentError: If an id is not in the catalog
            ValueError: If the given agents form a cycle
        """
        ids = list(dict.fromkeys(agent_ids))
        wanted = set(ids)
        for agent_id in ids:
            self.get_metadata(agent_id)

        ordered: List[str] = []
        placed: Set[str] = set()
        remaining = list(ids)
        while remaining:
            ready = [
                a
                for a in remaining
                if (self.get_dependencies(a) & wanted) <= placed
            ]
            if not ready:
                raise ValueError(
                    f"Dependency cycle between agents: {', '.join(remaining)}"
                )
            ordered.extend(ready)
            placed.update(ready)
            remaining = [a for a in remaining if a not in placed]

        return ordered


# Default registry with the AEO catalog
default_agent_registry = AgentRegistry(AEO_AGENTS)
