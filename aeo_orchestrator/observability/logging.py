"""
Structured logging for the orchestration pipeline.

Every record emitted under the ``aeo`` logger namespace can carry the job,
agent and phase it belongs to, plus a duration and free-form data, so one job
can be followed through planning, phase execution and reasoning. Console
output is human-readable by default; file output is always JSON lines.
"""

import json
import logging
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional, Tuple, Union

ROOT_LOGGER_NAME = "aeo"

# Record attribute -> key in JSON output
_CONTEXT_ATTRS: Tuple[Tuple[str, str], ...] = (
    ("job_id", "job_id"),
    ("phase", "phase"),
    ("agent_id", "agent"),
    ("duration_ms", "duration_ms"),
    ("extra_data", "data"),
)


class LogLevel(Enum):
    """Log levels accepted by ``configure_logging``."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: getattr(record, attr)
        for attr, key in _CONTEXT_ATTRS
        if getattr(record, attr, None) is not None
    }


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, include_timestamp: bool = True, pretty: bool = False) -> None:
        super().__init__()
        self._include_timestamp = include_timestamp
        self._pretty = pretty

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        if self._include_timestamp:
            payload["timestamp"] = datetime.fromtimestamp(record.created).isoformat()
        payload.update(_record_context(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, indent=2 if self._pretty else None, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Single-line console output with a bracketed job context."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self._use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        context = _record_context(record)
        tags: List[str] = []
        if "job_id" in context:
            # Console shows the first 8 characters of the job id
            tags.append(f"job={context['job_id'][:8]}")
        if "phase" in context:
            tags.append(f"phase={context['phase']}")
        if "agent" in context:
            tags.append(f"agent={context['agent']}")
        if "duration_ms" in context:
            tags.append(f"duration={context['duration_ms']}ms")

        level = f"{record.levelname:8}"
        if self._use_colors and record.levelname in self.LEVEL_COLORS:
            level = f"{self.LEVEL_COLORS[record.levelname]}{level}{self.RESET}"

        when = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        prefix = f" [{', '.join(tags)}]" if tags else ""
        line = f"{when} | {level} |{prefix} {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class PipelineLogger(logging.LoggerAdapter):
    """Logger adapter that stamps job and agent context onto records.

    Besides the standard logging keywords, every call accepts ``agent_id``,
    ``phase`` and ``duration_ms``; ``extra`` is attached as structured data.

    Usage:
        logger = PipelineLogger("executor", job_id="job-123")
        logger.info("Agent completed", agent_id="page-analysis", duration_ms=812.4)
        logger.error("Phase failed", phase="Research", exc_info=True)
    """

    def __init__(
        self,
        name: str,
        job_id: Optional[str] = None,
        agent_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}"),
            {"job_id": job_id, "agent_id": agent_id},
        )
        self._name = name

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        context: Dict[str, Any] = {
            key: value for key, value in self.extra.items() if value is not None
        }

        agent_id = kwargs.pop("agent_id", None)
        if agent_id:
            context["agent_id"] = agent_id
        phase = kwargs.pop("phase", None)
        if phase:
            context["phase"] = phase
        duration_ms = kwargs.pop("duration_ms", None)
        if duration_ms is not None:
            context["duration_ms"] = round(duration_ms, 2)
        data = kwargs.pop("extra", None)
        if data:
            context["extra_data"] = data

        kwargs["extra"] = context
        return msg, kwargs

    def with_context(
        self,
        job_id: Optional[str] = None,
        agent_id: Optional[str] = None,
    ) -> "PipelineLogger":
        """Derive a logger with additional job or agent context."""
        return PipelineLogger(
            self._name,
            job_id=job_id or self.extra.get("job_id"),
            agent_id=agent_id or self.extra.get("agent_id"),
        )


def configure_logging(
    level: Union[LogLevel, str] = LogLevel.INFO,
    log_file: Optional[Union[str, Path]] = None,
    json_format: bool = False,
    use_colors: bool = True,
    pretty_json: bool = False,
) -> None:
    """Install handlers on the ``aeo`` logger, replacing previous ones.

    Args:
        level: Minimum log level, as a LogLevel or its name
        log_file: Also write JSON lines to this file
        json_format: Use JSON on the console instead of readable lines
        use_colors: Color the level in readable console output
        pretty_json: Indent console JSON
    """
    if isinstance(level, str):
        level = LogLevel[level.upper()]

    pipeline_logger = logging.getLogger(ROOT_LOGGER_NAME)
    pipeline_logger.setLevel(level.value)
    pipeline_logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(
        StructuredFormatter(pretty=pretty_json)
        if json_format
        else HumanReadableFormatter(use_colors=use_colors)
    )
    pipeline_logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(StructuredFormatter())
        pipeline_logger.addHandler(file_handler)


def get_logger(
    name: str,
    job_id: Optional[str] = None,
    agent_id: Optional[str] = None,
) -> PipelineLogger:
    """Get a pipeline logger for a component, optionally bound to a job/agent."""
    return PipelineLogger(name, job_id=job_id, agent_id=agent_id)
