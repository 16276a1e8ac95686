"""
Per-job context store.

The store keeps a lightweight summary of every agent in memory and offloads
full results to blob storage. Summaries are what planning and reasoning read;
full results are fetched on demand by the agents that need them.
"""

# pylint: disable=too-many-arguments, too-many-positional-arguments, too-many-instance-attributes

import asyncio
import copy
import json
import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from aeo_orchestrator.compression import CompressionPolicy, OldestFractionPolicy
from aeo_orchestrator.errors import OracleCallFailedError
from aeo_orchestrator.models import AgentContext, AgentStatus, AgentSummary, SummaryResult
from aeo_orchestrator.observability.hooks import (
    EventHookRegistry,
    PipelineEvent,
    default_hook_registry,
)
from aeo_orchestrator.observability.logging import PipelineLogger, get_logger
from aeo_orchestrator.oracles.base import SummarizationOracle
from aeo_orchestrator.storage import BlobStore

SNAPSHOT_ID = "context-snapshot"
LIMIT_THRESHOLD = 0.8


def utc_now() -> datetime:
    """Current time, timezone-aware."""
    return datetime.now(timezone.utc)


def estimate_tokens(summaries: Mapping[str, AgentSummary]) -> int:
    """Approximate the token size of a summary map.

    Roughly one token per four bytes of the map's JSON serialization.
    """
    serialized = json.dumps(
        {agent_id: summaries[agent_id].to_dict() for agent_id in sorted(summaries)},
        sort_keys=True,
    )
    return math.ceil(len(serialized.encode("utf-8")) / 4)


class ContextStore:
    """Working context of one job.

    The store is owned by a single orchestrator and never shared between
    jobs. Writes happen from the event loop only.

    Usage:
        store = ContextStore("job-1", "tenant-1", "example.com",
                             blob_store=InMemoryBlobStore(),
                             summarizer=HeuristicSummarizationOracle())
        store.mark_running("page-analysis")
        await store.store_result("page-analysis", {"topic": "crm"})
        store.get_summary("page-analysis").status  # AgentStatus.COMPLETED
    """

    def __init__(
        self,
        job_id: str,
        tenant_id: str,
        domain: str,
        blob_store: BlobStore,
        summarizer: SummarizationOracle,
        compression_policy: Optional[CompressionPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
        hook_registry: Optional[EventHookRegistry] = None,
    ) -> None:
        """Initialize an empty context.

        Args:
            job_id: Job identifier
            tenant_id: Tenant owning the job
            domain: Domain under analysis
            blob_store: Where full results are persisted
            summarizer: Oracle producing summaries of full results
            compression_policy: Which summaries to compress (oldest 30% by default)
            clock: Time source for timestamps
            hook_registry: Event hook registry
        """
        self._clock = clock or utc_now
        self._blobs = blob_store
        self._summarizer = summarizer
        self._policy = compression_policy or OldestFractionPolicy()
        self._hooks = hook_registry or default_hook_registry
        now = self._clock()
        self._context = AgentContext(
            job_id=job_id,
            tenant_id=tenant_id,
            domain=domain,
            created_at=now,
            last_updated=now,
        )
        self._logger: PipelineLogger = get_logger("context", job_id=job_id)
        self._update_token_estimate()

    @property
    def job_id(self) -> str:
        """Job identifier."""
        return self._context.job_id

    @property
    def tenant_id(self) -> str:
        """Tenant owning the job."""
        return self._context.tenant_id

    @property
    def domain(self) -> str:
        """Domain under analysis."""
        return self._context.domain

    @property
    def token_estimate(self) -> int:
        """Approximate token size of the summaries."""
        return self._context.token_estimate

    # --- Status Transitions ---

    def mark_running(self, agent_id: str) -> None:
        """Mark an agent as running, creating its summary if needed.

        Args:
            agent_id: Agent identifier
        """
        summary = self._context.summaries.get(agent_id)
        if summary is None:
            self._context.summaries[agent_id] = AgentSummary(
                agent_id=agent_id, status=AgentStatus.RUNNING
            )
        else:
            summary.status = AgentStatus.RUNNING
            summary.artifact_ref = None
            self._context.artifact_refs.pop(agent_id, None)

        self._logger.debug("Marked running", agent_id=agent_id)
        self._touch()

    async def store_result(self, agent_id: str, full_result: Any) -> AgentSummary:
        """Persist an agent's full result and record its summary.

        This is the only write path for a successful agent completion.

        Args:
            agent_id: Agent identifier
            full_result: The agent's complete, JSON-serializable result

        Returns:
            Copy of the recorded summary

        Raises:
            OracleCallFailedError: If the summarization oracle fails
        """
        ref = await asyncio.to_thread(
            self._blobs.put, self.tenant_id, self.job_id, agent_id, full_result
        )
        self._logger.debug(f"Stored full result at {ref}", agent_id=agent_id)

        result = await self._call_summarizer(agent_id, full_result)

        completed = result.status != AgentStatus.FAILED.value
        summary = AgentSummary(
            agent_id=agent_id,
            status=AgentStatus.COMPLETED if completed else AgentStatus.FAILED,
            summary=result.summary,
            key_findings=list(result.key_findings),
            metrics=dict(result.metrics),
            artifact_ref=ref if completed else None,
            completed_at=self._clock() if completed else None,
            next_steps=list(result.next_steps) if result.next_steps is not None else None,
        )
        self._context.summaries[agent_id] = summary
        if completed:
            self._context.artifact_refs[agent_id] = ref
        else:
            self._context.artifact_refs.pop(agent_id, None)
            self._logger.warning(
                "Summarizer reported a failed result", agent_id=agent_id
            )

        self._touch()
        self._hooks.trigger(
            PipelineEvent.CONTEXT_UPDATED,
            job_id=self.job_id,
            agent_id=agent_id,
            status=summary.status.value,
            token_estimate=self.token_estimate,
        )
        return copy.deepcopy(summary)

    def mark_failed(self, agent_id: str, error_text: str) -> None:
        """Record an agent failure. Nothing is written to blob storage.

        Args:
            agent_id: Agent identifier
            error_text: Error description
        """
        self._context.summaries[agent_id] = AgentSummary(
            agent_id=agent_id,
            status=AgentStatus.FAILED,
            summary=f"Agent failed: {error_text}",
        )
        self._context.artifact_refs.pop(agent_id, None)
        self._logger.debug(f"Marked failed: {error_text}", agent_id=agent_id)
        self._touch()
        self._hooks.trigger(
            PipelineEvent.CONTEXT_UPDATED,
            job_id=self.job_id,
            agent_id=agent_id,
            status=AgentStatus.FAILED.value,
            token_estimate=self.token_estimate,
        )

    def seed_artifact(self, name: str, data: Any) -> str:
        """Store an external input (such as crawled pages) for agents to read.

        The artifact is recorded as a completed entry so agents can declare it
        as a prerequisite and read it with ``get_full_result(name)``.

        Args:
            name: Artifact name
            data: JSON-serializable content

        Returns:
            Blob reference of the artifact
        """
        ref = self._blobs.put(self.tenant_id, self.job_id, name, data)
        self._context.summaries[name] = AgentSummary(
            agent_id=name,
            status=AgentStatus.COMPLETED,
            summary=f"External input: {name}",
            artifact_ref=ref,
            completed_at=self._clock(),
        )
        self._context.artifact_refs[name] = ref
        self._touch()
        return ref

    # --- Reads ---

    def get_summary(self, agent_id: str) -> Optional[AgentSummary]:
        """Get a copy of an agent's summary, or None."""
        summary = self._context.summaries.get(agent_id)
        return copy.deepcopy(summary) if summary is not None else None

    def get_all_summaries(self) -> Dict[str, AgentSummary]:
        """Get a copy of every summary, keyed by agent id."""
        return copy.deepcopy(self._context.summaries)

    def get_full_result(self, agent_id: str) -> Optional[Any]:
        """Read an agent's full result from blob storage.

        Every call goes to the blob store; nothing is cached.

        Returns:
            The stored result, or None if the agent has no completed result
        """
        if agent_id not in self._context.artifact_refs:
            return None
        return self._blobs.get(self.tenant_id, self.job_id, agent_id)

    def get_context(self) -> AgentContext:
        """Get a snapshot copy of the whole context."""
        return copy.deepcopy(self._context)

    def agent_ids_with_status(self, status: AgentStatus) -> List[str]:
        """Get the ids of agents currently in ``status``."""
        return [s.agent_id for s in self._context.summaries.values() if s.status is status]

    def completed_agent_ids(self) -> set[str]:
        """Get the ids of completed agents."""
        return set(self.agent_ids_with_status(AgentStatus.COMPLETED))

    # --- Token Budget ---

    def is_approaching_limit(self, limit_tokens: int = 100_000) -> bool:
        """Check whether the context exceeds 80% of a token budget."""
        return self._context.token_estimate > limit_tokens * LIMIT_THRESHOLD

    async def compress(self, oracle: Optional[SummarizationOracle] = None) -> List[str]:
        """Narrow the summaries the compression policy selects.

        Each selected summary gets a brief summary of its full result and
        keeps only its first two key findings.

        Args:
            oracle: Summarizer for the brief summaries (defaults to the store's)

        Returns:
            Ids of the compressed agents

        Raises:
            OracleCallFailedError: If a brief summary cannot be produced
        """
        summarizer = oracle or self._summarizer
        before = self._context.token_estimate
        compressed: List[str] = []

        for summary in self._policy.select(list(self._context.summaries.values())):
            full_result = await asyncio.to_thread(self.get_full_result, summary.agent_id)
            if full_result is None:
                continue
            try:
                brief = await summarizer.brief_summarize(summary.agent_id, full_result)
            except OracleCallFailedError:
                raise
            except Exception as e:  # pylint: disable=broad-exception-caught
                raise OracleCallFailedError("Summarization oracle", e) from e
            summary.summary = brief
            summary.key_findings = summary.key_findings[:2]
            compressed.append(summary.agent_id)

        self._touch()

        if compressed:
            self._logger.info(
                f"Compressed {len(compressed)} summaries",
                extra={"before": before, "after": self.token_estimate},
            )
            self._hooks.trigger(
                PipelineEvent.CONTEXT_COMPRESSED,
                job_id=self.job_id,
                agents=compressed,
                tokens_before=before,
                tokens_after=self.token_estimate,
            )
        return compressed

    # --- Persistence ---

    def snapshot_to_blob(self) -> str:
        """Persist the serialized context next to the job's agent results.

        Returns:
            Blob reference of the snapshot
        """
        return self._blobs.put(
            self.tenant_id, self.job_id, SNAPSHOT_ID, self._context.to_dict()
        )

    # --- Internals ---

    async def _call_summarizer(self, agent_id: str, full_result: Any) -> SummaryResult:
        try:
            return await self._summarizer.summarize(agent_id, full_result)
        except OracleCallFailedError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise OracleCallFailedError("Summarization oracle", e) from e

    def _touch(self) -> None:
        self._context.last_updated = self._clock()
        self._update_token_estimate()

    def _update_token_estimate(self) -> None:
        self._context.token_estimate = estimate_tokens(self._context.summaries)

    def __repr__(self) -> str:
        return (
            f"ContextStore(job='{self.job_id}', "
            f"summaries={len(self._context.summaries)}, "
            f"tokens={self._context.token_estimate})"
        )
