"""
Context compression policies.

A policy decides which completed summaries the context store narrows when
the token budget runs low. The store does the narrowing; the policy only
selects.
"""

# pylint: disable=too-few-public-methods

import math
from abc import ABC, abstractmethod
from typing import List, Sequence

from aeo_orchestrator.models import AgentStatus, AgentSummary


class CompressionPolicy(ABC):
    """Selects which summaries to compress."""

    @abstractmethod
    def select(self, summaries: Sequence[AgentSummary]) -> List[AgentSummary]:
        """Choose summaries to compress.

        Args:
            summaries: Every summary in the context

        Returns:
            The summaries to compress, in the order they should be processed
        """


class OldestFractionPolicy(CompressionPolicy):
    """Compress the oldest fraction of completed, blob-backed summaries.

    Nothing is selected until at least ``min_completed`` summaries have
    completed. With 10 completed summaries and the default fraction, the 3
    oldest by completion time are selected.
    """

    def __init__(self, fraction: float = 0.3, min_completed: int = 6) -> None:
        if not 0.0 < fraction <= 1.0:
            raise ValueError("fraction must be in (0, 1]")
        self.fraction = fraction
        self.min_completed = min_completed

    def select(self, summaries: Sequence[AgentSummary]) -> List[AgentSummary]:
        completed = [s for s in summaries if s.status is AgentStatus.COMPLETED]
        if len(completed) < self.min_completed:
            return []

        candidates = sorted(
            (s for s in completed if s.artifact_ref and s.completed_at),
            key=lambda s: s.completed_at,
        )
        # Absorb float error in the product before flooring
        count = math.floor(len(candidates) * self.fraction + 1e-9)
        return candidates[:count]

    def __repr__(self) -> str:
        return (
            f"OldestFractionPolicy(fraction={self.fraction}, "
            f"min_completed={self.min_completed})"
        )
