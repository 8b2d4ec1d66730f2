"""Per-network deployment record storage."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from .errors import ArtifactReadError, ArtifactWriteError
from .schemas.deployment import DeploymentRecords, PublishArtifact
from .utils import read_text, write_json_atomic

ARTIFACTS_DIR_ENV = "SUI_ARTIFACTS_DIR"
DEFAULT_ARTIFACTS_DIRNAME = "deployments"


def resolve_artifacts_dir(artifacts_dir: Optional[Path] = None) -> Path:
    if artifacts_dir is not None:
        return Path(artifacts_dir).resolve()
    env_value = os.environ.get(ARTIFACTS_DIR_ENV)
    if env_value:
        return Path(env_value).resolve()
    return Path.cwd() / DEFAULT_ARTIFACTS_DIRNAME


def _published_at_utc(artifact: PublishArtifact) -> datetime:
    # Records without an offset count as UTC.
    if artifact.published_at.tzinfo is None:
        return artifact.published_at.replace(tzinfo=timezone.utc)
    return artifact.published_at.astimezone(timezone.utc)


def _record_key(record: Mapping[str, Any]) -> Optional[str]:
    if isinstance(record.get("objectId"), str):
        return f"object:{record['objectId']}"
    if isinstance(record.get("packageId"), str):
        return f"package:{record['packageId']}"
    return None


def dedupe_records(records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Drop earlier records sharing a package/object id, keeping the most recent one."""

    seen = set()
    kept: List[Dict[str, Any]] = []
    for record in reversed(records):
        key = _record_key(record)
        if key is not None:
            if key in seen:
                continue
            seen.add(key)
        kept.append(dict(record))
    kept.reverse()
    return kept


def read_records(path: Path) -> List[Dict[str, Any]]:
    """Raw JSON records from ``path``; a missing file is an empty record list."""

    try:
        payload = json.loads(read_text(path))
    except FileNotFoundError:
        return []
    except (OSError, json.JSONDecodeError) as exc:
        raise ArtifactReadError(path, exc) from exc
    if not isinstance(payload, list):
        raise ArtifactReadError(path, "expected a JSON array of deployment records")
    return payload


class ArtifactStore:
    """Read and append deployment records under ``root``."""

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = resolve_artifacts_dir(root)

    def path_for(self, network: str) -> Path:
        return self.root / f"deployment.{network}.json"

    def load(self, network: str) -> List[PublishArtifact]:
        path = self.path_for(network)
        records = read_records(path)
        try:
            return DeploymentRecords.validate_python(records)
        except ValidationError as exc:
            raise ArtifactReadError(path, exc) from exc

    def latest(self, network: str, package_path: Optional[str] = None) -> Optional[PublishArtifact]:
        candidates = [
            artifact
            for artifact in self.load(network)
            if package_path is None or artifact.package_path == package_path
        ]
        if not candidates:
            return None
        return max(candidates, key=_published_at_utc)

    def append(self, network: str, artifacts: Sequence[PublishArtifact]) -> Path:
        """Merge ``artifacts`` into the network's record and rewrite it atomically."""

        path = self.path_for(network)
        try:
            existing = read_records(path)
        except ArtifactReadError as exc:
            raise ArtifactWriteError(path, exc) from exc
        merged = dedupe_records([*existing, *(artifact.to_record() for artifact in artifacts)])
        try:
            write_json_atomic(merged, path)
        except OSError as exc:
            raise ArtifactWriteError(path, exc) from exc
        return path


__all__ = [
    "ARTIFACTS_DIR_ENV",
    "ArtifactStore",
    "dedupe_records",
    "read_records",
    "resolve_artifacts_dir",
]
