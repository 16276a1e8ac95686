"""
Blob storage for full agent results.

Full results are too large to keep in the working context, so the context
store offloads them here and keeps only a reference. Keys are namespaced by
tenant, job and agent.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional


def agent_result_key(tenant_id: str, job_id: str, agent_id: str) -> str:
    """Build the blob key of one agent's full result.

    Args:
        tenant_id: Tenant owning the job
        job_id: Job identifier
        agent_id: Agent identifier

    Returns:
        Key of the form ``tenant/job/context/agent-results/agent.json``
    """
    for part in (tenant_id, job_id, agent_id):
        if not part or "/" in part or part in (".", ".."):
            raise ValueError(f"Invalid blob key component: {part!r}")
    return f"{tenant_id}/{job_id}/context/agent-results/{agent_id}.json"


class BlobStore(ABC):
    """Storage collaborator for full agent results.

    Each agent writes at most once per job run; a re-run overwrites.
    """

    @abstractmethod
    def put(self, tenant_id: str, job_id: str, agent_id: str, data: Any) -> str:
        """Persist a JSON-serializable result.

        Returns:
            Opaque reference to the stored blob
        """

    @abstractmethod
    def get(self, tenant_id: str, job_id: str, agent_id: str) -> Optional[Any]:
        """Read a result back, or None if nothing is stored under the key."""


class InMemoryBlobStore(BlobStore):
    """Process-local blob store.

    Values are serialized on write so callers never share mutable state with
    the store, and so unserializable results fail the same way they would
    against durable storage.
    """

    def __init__(self) -> None:
        self._blobs: Dict[str, str] = {}

    def put(self, tenant_id: str, job_id: str, agent_id: str, data: Any) -> str:
        key = agent_result_key(tenant_id, job_id, agent_id)
        self._blobs[key] = json.dumps(data)
        return key

    def get(self, tenant_id: str, job_id: str, agent_id: str) -> Optional[Any]:
        raw = self._blobs.get(agent_result_key(tenant_id, job_id, agent_id))
        if raw is None:
            return None
        return json.loads(raw)

    def keys(self) -> list[str]:
        """List stored keys."""
        return list(self._blobs)

    def __len__(self) -> int:
        return len(self._blobs)

    def __repr__(self) -> str:
        return f"InMemoryBlobStore(blobs={len(self._blobs)})"


class LocalBlobStore(BlobStore):
    """Blob store backed by JSON files under a root directory."""

    def __init__(self, root_dir: Path | str) -> None:
        """Initialize the store.

        Args:
            root_dir: Directory under which blobs are written
        """
        self.root_dir = Path(root_dir)

    def _path(self, tenant_id: str, job_id: str, agent_id: str) -> Path:
        return self.root_dir / agent_result_key(tenant_id, job_id, agent_id)

    def put(self, tenant_id: str, job_id: str, agent_id: str, data: Any) -> str:
        path = self._path(tenant_id, job_id, agent_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(data, indent=2)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(content)
        tmp_path.replace(path)
        return agent_result_key(tenant_id, job_id, agent_id)

    def get(self, tenant_id: str, job_id: str, agent_id: str) -> Optional[Any]:
        path = self._path(tenant_id, job_id, agent_id)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def __repr__(self) -> str:
        return f"LocalBlobStore(root_dir='{self.root_dir}')"
