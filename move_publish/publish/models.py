"""Data models used during package publishing."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..config import NetworkConfig
from ..schemas.deployment import PublishArtifact


class PublishStrategy(str, Enum):
    SDK = "sdk"
    CLI = "cli"


@dataclass(frozen=True, slots=True)
class PackageNames:
    root: Optional[str] = None
    dependencies: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PublishPlan:
    """Everything one publish attempt needs. A retry replaces the plan rather than mutating it."""

    network: NetworkConfig
    package_path: Path
    sender: str
    gas_budget: int
    strategy: PublishStrategy
    should_use_unpublished_dependencies: bool
    unpublished_dependencies: Tuple[str, ...] = ()
    build_flags: Tuple[str, ...] = ()
    package_names: PackageNames = field(default_factory=PackageNames)
    dependency_addresses_from_lock: Dict[str, str] = field(default_factory=dict)
    keystore_path: Optional[str] = None
    use_dev_build: bool = False
    allow_auto_unpublished_dependencies: bool = False
    toolchain_version: Optional[str] = None
    updated_lock_dependencies: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def network_name(self) -> str:
        return self.network.name

    @property
    def rpc_url(self) -> str:
        return self.network.rpc_url

    @property
    def strip_test_modules(self) -> bool:
        return not self.should_use_unpublished_dependencies


@dataclass(slots=True)
class PublishedPackage:
    package_id: str
    upgrade_cap_id: Optional[str] = None
    publisher_id: Optional[str] = None
    is_dependency: bool = False
    package_name: Optional[str] = None


@dataclass(slots=True)
class PublishResult:
    packages: List[PublishedPackage]
    digest: str
    warnings: List[str] = field(default_factory=list)


@dataclass(slots=True)
class PublishRequest:
    package_path: Path
    network: Optional[str] = None
    strategy: Optional[PublishStrategy] = None
    use_dev_build: bool = False
    with_unpublished_dependencies: bool = False
    allow_auto_unpublished_dependencies: Optional[bool] = None
    re_publish: bool = False
    gas_budget: Optional[int] = None
    sender: Optional[str] = None
    keystore_path: Optional[str] = None
    skip_fetch_latest_git_deps: bool = True
    sync_environment: bool = True
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True)
class PublishOutcome:
    status: str
    network: str
    package_path: Path
    artifacts: List[PublishArtifact] = field(default_factory=list)
    artifact_path: Optional[Path] = None
    digest: Optional[str] = None
    strategy: Optional[PublishStrategy] = None
    retried: bool = False
    updated_manifests: List[Path] = field(default_factory=list)
    updated_lock_dependencies: List[str] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    next_steps: List[str] = field(default_factory=list)
    metadata: Dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status,
            "network": self.network,
            "package_path": str(self.package_path),
            "digest": self.digest,
            "strategy": self.strategy.value if self.strategy else None,
            "retried": self.retried,
            "artifact_path": str(self.artifact_path) if self.artifact_path else None,
            "artifacts": [artifact.to_record() for artifact in self.artifacts],
            "updated_manifests": [str(path) for path in self.updated_manifests],
            "updated_lock_dependencies": self.updated_lock_dependencies,
            "logs": self.logs,
            "warnings": self.warnings,
            "next_steps": self.next_steps,
            "metadata": self.metadata,
        }
