"""Framework revision consistency checks across a package and its local dependencies."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .errors import ConsistencyError
from .lock.manifest import local_dependencies
from .lock.move_lock import lock_packages, normalize_dependency_id, read_lock, single_framework_revision

logger = logging.getLogger(__name__)

MISMATCH_HEADER = "Framework version mismatch detected across Move.lock files."
ALIGN_HINT = (
    "Align all packages to the same Sui framework commit (e.g., run `sui move update` in each package) "
    "before publishing."
)
CHECK_MODES = ("warn", "error")


@dataclass(slots=True)
class RevisionGroup:
    revision: str
    framework_packages: List[str] = field(default_factory=list)
    packages: List[str] = field(default_factory=list)


@dataclass(slots=True)
class DependencyRevision:
    name: str
    path: Path
    revision: Optional[str]


@dataclass(slots=True)
class ConsistencyReport:
    package_path: Path
    environment: Optional[str] = None
    root_revision: Optional[str] = None
    revisions: List[RevisionGroup] = field(default_factory=list)
    outlier: Optional[str] = None
    dependencies: List[DependencyRevision] = field(default_factory=list)
    mismatches: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return len(self.revisions) <= 1 and not self.mismatches

    def to_dict(self) -> Dict[str, object]:
        return {
            "package_path": str(self.package_path),
            "environment": self.environment,
            "root_revision": self.root_revision,
            "consistent": self.consistent,
            "revisions": [
                {
                    "revision": group.revision,
                    "framework_packages": group.framework_packages,
                    "packages": group.packages,
                }
                for group in self.revisions
            ],
            "outlier": self.outlier,
            "dependencies": [
                {"name": dep.name, "path": str(dep.path), "revision": dep.revision} for dep in self.dependencies
            ],
            "mismatches": self.mismatches,
            "warnings": self.warnings,
        }


def group_revisions(lock_contents: str, environment: Optional[str] = None) -> List[RevisionGroup]:
    """Group pinned framework revisions with the non-framework packages that depend on them."""

    packages = lock_packages(lock_contents, environment)
    groups: Dict[str, RevisionGroup] = {}
    pin_revisions: Dict[str, str] = {}
    for pkg in packages:
        if not pkg.revision:
            continue
        group = groups.setdefault(pkg.revision, RevisionGroup(revision=pkg.revision))
        group.framework_packages.append(pkg.name)
        pin_revisions[pkg.name] = pkg.revision
        pin_revisions.setdefault(normalize_dependency_id(pkg.name), pkg.revision)

    for pkg in packages:
        if pkg.revision or pkg.is_framework:
            continue
        referenced = [*pkg.deps, *pkg.dev_deps]
        for dep in referenced:
            revision = pin_revisions.get(dep) or pin_revisions.get(normalize_dependency_id(dep))
            if revision is None:
                continue
            group = groups[revision]
            if pkg.name not in group.packages:
                group.packages.append(pkg.name)
    return list(groups.values())


def guess_outlier(groups: List[RevisionGroup]) -> Optional[str]:
    if len(groups) < 2:
        return None
    return min(groups, key=lambda group: len(group.packages)).revision


def describe_revision_drift(package_path: Path, groups: List[RevisionGroup], outlier: Optional[str]) -> str:
    lines = [f"Multiple Sui framework revisions are pinned in {Path(package_path) / 'Move.lock'}:"]
    for group in groups:
        pinned = ", ".join(group.packages) if group.packages else "framework packages only"
        lines.append(f"  - {group.revision} ({', '.join(group.framework_packages)}): {pinned}")
    if outlier:
        lines.append(f"Likely outlier revision: {outlier}")
    return "\n".join(lines)


def format_mismatch_message(mismatches: List[str]) -> str:
    return "\n".join([MISMATCH_HEADER, *mismatches, ALIGN_HINT])


def check_framework_consistency(
    package_path: Path,
    *,
    environment: Optional[str] = None,
    mode: str = "error",
) -> ConsistencyReport:
    """Verify a single framework revision across the root lock and local dependencies.

    Multiple revisions inside the root lock warn or raise depending on ``mode``.
    A local dependency pinned to a different revision than the root always raises.
    """

    if mode not in CHECK_MODES:
        raise ValueError(f"Unknown consistency mode '{mode}'. Expected one of {', '.join(CHECK_MODES)}.")

    package_path = Path(package_path)
    report = ConsistencyReport(package_path=package_path, environment=environment)
    contents = read_lock(package_path)
    if contents is None:
        return report

    report.revisions = group_revisions(contents, environment)
    report.root_revision = single_framework_revision(contents, environment)
    if len(report.revisions) > 1:
        report.outlier = guess_outlier(report.revisions)
        message = describe_revision_drift(package_path, report.revisions, report.outlier)
        if mode == "error":
            raise ConsistencyError(message)
        logger.warning(message)
        report.warnings.append(message)

    if not report.root_revision:
        return report

    for dependency in local_dependencies(package_path):
        dependency_lock = read_lock(dependency.path)
        revision = single_framework_revision(dependency_lock, environment) if dependency_lock else None
        report.dependencies.append(DependencyRevision(name=dependency.name, path=dependency.path, revision=revision))
        if revision and revision != report.root_revision:
            report.mismatches.append(
                f"{dependency.name} ({dependency.path}) uses rev {revision}, root uses {report.root_revision}"
            )

    if report.mismatches:
        raise ConsistencyError(format_mismatch_message(report.mismatches))
    return report


__all__ = [
    "ALIGN_HINT",
    "CHECK_MODES",
    "ConsistencyReport",
    "DependencyRevision",
    "MISMATCH_HEADER",
    "RevisionGroup",
    "check_framework_consistency",
    "describe_revision_drift",
    "format_mismatch_message",
    "group_revisions",
    "guess_outlier",
]
