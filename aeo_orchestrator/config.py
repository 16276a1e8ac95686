"""
Pipeline configuration management with YAML support.

This module provides the PipelineConfig dataclass and utilities for loading
it from YAML files, dictionaries or environment variables.
"""

# pylint: disable=too-many-instance-attributes

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

DEFAULT_MODEL = "gpt-oss:20b"


@dataclass
class PipelineConfig:
    """Configuration for one orchestration pipeline.

    Attributes:
        model: Ollama model name used by the LLM-backed oracles
        token_limit: Context token budget; compression starts at 80% of it
        agent_timeout_seconds: Deadline for a single agent invocation
        max_parallel_agents: Upper bound on concurrently running agents
        compression_fraction: Share of the oldest completed summaries to compress
        compression_min_completed: Completed summaries needed before compressing
        replan_on_adjustments: Whether reasoner adjustments trigger re-planning
        max_replans: Maximum number of re-plans per job
        storage_dir: Root directory of the local blob store
        ollama_host: Ollama server URL (None for the client default)
    """

    model: str = DEFAULT_MODEL
    token_limit: int = 100_000
    agent_timeout_seconds: float = 300.0
    max_parallel_agents: int = 8
    compression_fraction: float = 0.3
    compression_min_completed: int = 6
    replan_on_adjustments: bool = False
    max_replans: int = 1
    storage_dir: str = ".local-storage"
    ollama_host: Optional[str] = None

    def __post_init__(self) -> None:
        if self.token_limit <= 0:
            raise ValueError("token_limit must be positive")
        if self.agent_timeout_seconds <= 0:
            raise ValueError("agent_timeout_seconds must be positive")
        if self.max_parallel_agents < 1:
            raise ValueError("max_parallel_agents must be at least 1")
        if not 0.0 < self.compression_fraction <= 1.0:
            raise ValueError("compression_fraction must be in (0, 1]")
        if self.max_replans < 0:
            raise ValueError("max_replans must not be negative")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PipelineConfig":
        """Create a configuration from a dictionary.

        Args:
            data: Dictionary with configuration values

        Returns:
            PipelineConfig instance

        Raises:
            ValueError: If the dictionary contains unknown keys
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown pipeline config keys: {', '.join(unknown)}")
        return cls(**dict(data))

    @classmethod
    def from_yaml(cls, path: Path | str) -> "PipelineConfig":
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML configuration file

        Returns:
            PipelineConfig instance with values from the file

        Raises:
            FileNotFoundError: If the YAML file doesn't exist
            yaml.YAMLError: If the YAML is malformed
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Pipeline config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        """Build configuration from environment variables.

        Reads ``OLLAMA_MODEL``, ``OLLAMA_HOST`` and ``AEO_<FIELD>`` for every
        other field (e.g. ``AEO_TOKEN_LIMIT``). Unset variables keep defaults.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            PipelineConfig instance
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        if env.get("OLLAMA_MODEL"):
            values["model"] = env["OLLAMA_MODEL"]
        if env.get("OLLAMA_HOST"):
            values["ollama_host"] = env["OLLAMA_HOST"]

        for f in fields(cls):
            raw = env.get(f"AEO_{f.name.upper()}")
            if raw is None or raw == "":
                continue
            values[f.name] = _coerce(f.name, raw, type(getattr(cls(), f.name)))

        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a dictionary."""
        return asdict(self)

    def to_yaml(self, path: Path | str) -> None:
        """Save configuration to a YAML file.

        Args:
            path: Path where the YAML file will be saved
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


def _coerce(name: str, raw: str, kind: type) -> Any:
    if kind is bool:
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Invalid boolean for {name}: {raw!r}")
    if kind is int:
        return int(raw)
    if kind is float:
        return float(raw)
    return raw
