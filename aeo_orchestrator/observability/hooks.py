"""
Event hooks for the orchestration pipeline.

External code (the job-status layer, progress reporters, tests) subscribes to
job, phase, agent and context events here. Callbacks run synchronously on the
event loop thread; a failing callback is logged and skipped.
"""

import logging
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional

_logger = logging.getLogger("aeo.hooks")


class PipelineEvent(Enum):
    """Lifecycle events emitted while a job runs."""

    # Job
    JOB_START = "job_start"
    PLAN_CREATED = "plan_created"
    JOB_END = "job_end"
    JOB_ERROR = "job_error"

    # Phase
    PHASE_START = "phase_start"
    PHASE_END = "phase_end"
    REASONING_COMPLETE = "reasoning_complete"

    # Agent
    AGENT_START = "agent_start"
    AGENT_END = "agent_end"
    AGENT_ERROR = "agent_error"

    # Context store
    CONTEXT_UPDATED = "context_updated"
    CONTEXT_COMPRESSED = "context_compressed"


@dataclass
class EventData:
    """Payload handed to hook callbacks.

    Attributes:
        event: Which event fired
        job_id: Job the event belongs to
        agent_id: Agent concerned, for agent and context events
        phase: Phase name, for phase and reasoning events
        error: The exception, for error events
        duration_ms: Elapsed time, for *_END and error events
        data: Event-specific fields (plan phases, token counts, ...)
        timestamp: When the event fired (UTC)
    """

    event: PipelineEvent
    job_id: Optional[str] = None
    agent_id: Optional[str] = None
    phase: Optional[str] = None
    error: Optional[BaseException] = None
    duration_ms: Optional[float] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe form, omitting unset fields."""
        result: Dict[str, Any] = {
            "event": self.event.value,
            "timestamp": self.timestamp.isoformat(),
        }
        for name in ("job_id", "agent_id", "phase"):
            value = getattr(self, name)
            if value:
                result[name] = value
        if self.duration_ms is not None:
            result["duration_ms"] = self.duration_ms
        if self.error is not None:
            result["error"] = str(self.error)
            result["error_code"] = getattr(self.error, "code", type(self.error).__name__)
        if self.data:
            result["data"] = dict(self.data)
        return result


HookCallback = Callable[[EventData], None]

_PAYLOAD_FIELDS: FrozenSet[str] = frozenset(
    f.name for f in fields(EventData) if f.name not in ("event", "data", "timestamp")
)


class EventHookRegistry:
    """Subscriptions to pipeline events.

    Each orchestrator takes a registry; jobs that should be observed
    separately get separate registries.

    Usage:
        hooks = EventHookRegistry()
        hooks.on(PipelineEvent.PHASE_END, report_progress)
        hooks.on_all(audit_log.append)
        hooks.trigger(PipelineEvent.PHASE_END, job_id="job-1", phase="Discovery")
    """

    def __init__(self) -> None:
        self._by_event: Dict[PipelineEvent, List[HookCallback]] = {}
        self._catch_all: List[HookCallback] = []
        self._muted = False

    def on(self, event: PipelineEvent, callback: HookCallback) -> None:
        """Call ``callback`` whenever ``event`` fires. Subscribing twice is a no-op."""
        subscribers = self._by_event.setdefault(event, [])
        if callback not in subscribers:
            subscribers.append(callback)

    def on_all(self, callback: HookCallback) -> None:
        """Call ``callback`` for every event."""
        if callback not in self._catch_all:
            self._catch_all.append(callback)

    def off(self, event: PipelineEvent, callback: HookCallback) -> None:
        """Remove a subscription made with ``on``."""
        subscribers = self._by_event.get(event, [])
        if callback in subscribers:
            subscribers.remove(callback)

    def off_all(self, callback: HookCallback) -> None:
        """Remove a subscription made with ``on_all``."""
        if callback in self._catch_all:
            self._catch_all.remove(callback)

    def subscriber_count(self, event: PipelineEvent) -> int:
        """Number of callbacks that will see ``event``, catch-all ones included."""
        return len(self._by_event.get(event, [])) + len(self._catch_all)

    def mute(self) -> None:
        """Stop delivering events until ``unmute`` is called."""
        self._muted = True

    def unmute(self) -> None:
        """Resume delivering events."""
        self._muted = False

    @property
    def is_muted(self) -> bool:
        """Whether delivery is suspended."""
        return self._muted

    def trigger(self, event: PipelineEvent, **fields_and_data: Any) -> None:
        """Deliver an event to its subscribers.

        Keyword arguments naming an EventData field (``job_id``, ``agent_id``,
        ``phase``, ``error``, ``duration_ms``) fill that field; the rest are
        collected into ``data``.

        Args:
            event: Event to deliver
            **fields_and_data: Payload fields and event-specific data
        """
        if self._muted:
            return

        payload = {k: v for k, v in fields_and_data.items() if k in _PAYLOAD_FIELDS}
        data = {k: v for k, v in fields_and_data.items() if k not in _PAYLOAD_FIELDS}
        event_data = EventData(event=event, data=data, **payload)

        for callback in self._by_event.get(event, []) + self._catch_all:
            try:
                callback(event_data)
            except Exception:  # pylint: disable=broad-exception-caught
                _logger.warning(
                    "Hook callback %r failed for %s", callback, event.value, exc_info=True
                )


# Shared registry for callers that do not pass their own
default_hook_registry = EventHookRegistry()
