"""
Observability for the orchestration pipeline.

Structured logging and event hooks for monitoring job progress.
"""

from .hooks import (
    EventData,
    EventHookRegistry,
    PipelineEvent,
    default_hook_registry,
)
from .logging import PipelineLogger, configure_logging, get_logger

__all__ = [
    # Logging
    "PipelineLogger",
    "configure_logging",
    "get_logger",
    # Hooks
    "EventData",
    "EventHookRegistry",
    "PipelineEvent",
    "default_hook_registry",
]
