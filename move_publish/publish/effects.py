"""Turn transaction object changes into labeled publish results."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .models import PackageNames, PublishedPackage, PublishResult

logger = logging.getLogger(__name__)

UPGRADE_CAP_SUFFIX = "::package::UpgradeCap"
PUBLISHER_SUFFIX = "::package::Publisher"
SIZE_LIMIT_PHRASES = ("size limit exceeded", "serialized transaction size")
EXPLORER_BASE_URL = "https://explorer.sui.io/txblock"


def _created_object_ids(object_changes: Iterable[Mapping[str, Any]], predicate: Callable[[str], bool]) -> List[str]:
    ids: List[str] = []
    for change in object_changes:
        if change.get("type") != "created":
            continue
        object_type = change.get("objectType")
        object_id = change.get("objectId")
        if isinstance(object_type, str) and isinstance(object_id, str) and predicate(object_type):
            ids.append(object_id)
    return ids


def _count_mismatch_warning(label: str, actual: int, expected: int) -> Optional[str]:
    if actual == 0 or actual == expected:
        return None
    return f"Publish returned {expected} package(s) but {actual} {label}(s); pairing by index."


def extract_publish_result(object_changes: Optional[Iterable[Mapping[str, Any]]], digest: str) -> PublishResult:
    """Pair published package ids with created upgrade caps and publisher objects by index.

    The root package is expected first; every later package is treated as a
    dependency published in the same transaction. An empty ``packages`` list is
    returned as-is and left for the caller to reject.
    """

    changes = [change for change in (object_changes or []) if isinstance(change, Mapping)]
    package_ids = [
        change["packageId"]
        for change in changes
        if change.get("type") == "published" and isinstance(change.get("packageId"), str)
    ]
    upgrade_caps = _created_object_ids(changes, lambda object_type: object_type.endswith(UPGRADE_CAP_SUFFIX))
    publisher_ids = _created_object_ids(changes, lambda object_type: object_type.endswith(PUBLISHER_SUFFIX))

    if not package_ids:
        return PublishResult(packages=[], digest=digest)

    packages = [
        PublishedPackage(
            package_id=package_id,
            upgrade_cap_id=upgrade_caps[idx] if idx < len(upgrade_caps) else None,
            publisher_id=publisher_ids[idx] if idx < len(publisher_ids) else None,
            is_dependency=idx > 0,
        )
        for idx, package_id in enumerate(package_ids)
    ]

    warnings: List[str] = []
    for label, count in (("upgrade cap", len(upgrade_caps)), ("publisher object", len(publisher_ids))):
        message = _count_mismatch_warning(label, count, len(packages))
        if message:
            logger.warning(message)
            warnings.append(message)
    return PublishResult(packages=packages, digest=digest, warnings=warnings)


def label_publish_result(result: PublishResult, names: Optional[PackageNames]) -> PublishResult:
    """Name the root entry after the package and dependencies after unpublished deps, in order."""

    if not result.packages:
        return result
    names = names or PackageNames()
    labeled: List[PublishedPackage] = []
    for idx, pkg in enumerate(result.packages):
        is_dependency = pkg.is_dependency or idx > 0
        if is_dependency:
            dep_index = idx - 1
            package_name = names.dependencies[dep_index] if 0 <= dep_index < len(names.dependencies) else None
        else:
            package_name = names.root
        labeled.append(
            PublishedPackage(
                package_id=pkg.package_id,
                upgrade_cap_id=pkg.upgrade_cap_id,
                publisher_id=pkg.publisher_id,
                is_dependency=is_dependency,
                package_name=package_name,
            )
        )
    return PublishResult(packages=labeled, digest=result.digest, warnings=list(result.warnings))


def is_size_limit_error(error: BaseException) -> bool:
    message = str(error).lower()
    return any(phrase in message for phrase in SIZE_LIMIT_PHRASES)


def merge_dependency_addresses(
    lock_addresses: Mapping[str, str],
    packages: Iterable[PublishedPackage],
) -> Dict[str, str]:
    merged = dict(lock_addresses)
    for pkg in packages:
        if pkg.is_dependency and pkg.package_name:
            merged[pkg.package_name] = pkg.package_id
    return merged


def build_explorer_url(digest: Optional[str], network: str) -> Optional[str]:
    if not digest:
        return None
    if network == "mainnet":
        return f"{EXPLORER_BASE_URL}/{digest}"
    return f"{EXPLORER_BASE_URL}/{digest}?network={network}"


__all__ = [
    "PUBLISHER_SUFFIX",
    "SIZE_LIMIT_PHRASES",
    "UPGRADE_CAP_SUFFIX",
    "build_explorer_url",
    "extract_publish_result",
    "is_size_limit_error",
    "label_publish_result",
    "merge_dependency_addresses",
]
