"""Move.toml helpers: package metadata, local dependencies and environment chain ids."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from ..utils import read_text, write_text
from .sections import find_section, iter_sections, read_entry, read_section_entry, upsert_entry

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "Move.toml"
ENVIRONMENTS_SECTION = "environments"
ENVIRONMENT_ANCHORS = ("addresses", "dev-dependencies")

_NAME_RE = re.compile(r'name\s*=\s*"([^"]+)"')
_LOCAL_RE = re.compile(r'local\s*=\s*"([^"]+)"')
_INLINE_LOCAL_RE = re.compile(r'^\s*([A-Za-z0-9_\-]+)\s*=\s*\{[^}]*local\s*=\s*"([^"]+)"', re.MULTILINE)
_SKIPPED_DIRS = {"build", "node_modules"}


@dataclass(frozen=True, slots=True)
class LocalDependency:
    name: str
    path: Path
    dev: bool = False


@dataclass(slots=True)
class EnvironmentSyncResult:
    environment: str
    chain_id: Optional[str] = None
    attempted: bool = False
    updated_files: List[Path] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def manifest_path(package_path: Path) -> Path:
    return Path(package_path) / MANIFEST_FILENAME


def read_package_name(package_path: Path) -> Optional[str]:
    try:
        contents = read_text(manifest_path(package_path))
    except FileNotFoundError:
        return None
    name = read_entry(contents, "package", "name")
    if name:
        return name
    match = _NAME_RE.search(contents)
    return match.group(1) if match else None


def local_dependencies(package_path: Path) -> List[LocalDependency]:
    """Dependencies declared with ``local = "..."``, resolved against the package directory."""

    package_path = Path(package_path)
    try:
        contents = read_text(manifest_path(package_path))
    except FileNotFoundError:
        return []

    found: dict[Path, LocalDependency] = {}
    for section in iter_sections(contents):
        if section.is_array:
            continue
        head, _, dep_name = section.name.partition(".")
        if head not in ("dependencies", "dev-dependencies"):
            continue
        body = section.block(contents)
        dev = head == "dev-dependencies"
        if dep_name:
            match = _LOCAL_RE.search(body)
            if match:
                resolved = (package_path / match.group(1)).resolve()
                found[resolved] = LocalDependency(name=dep_name.strip('"'), path=resolved, dev=dev)
            continue
        for match in _INLINE_LOCAL_RE.finditer(body):
            resolved = (package_path / match.group(2)).resolve()
            found[resolved] = LocalDependency(name=match.group(1), path=resolved, dev=dev)
    return list(found.values())


def has_dep_replacements(contents: str, environment: str) -> bool:
    return find_section(contents, f"dep-replacements.{environment}") is not None


def has_environment_entry(contents: str, environment: str) -> bool:
    section = find_section(contents, ENVIRONMENTS_SECTION)
    if section is None:
        return False
    return read_section_entry(section, environment) is not None


def read_environment_chain_id(contents: str, environment: str) -> Optional[str]:
    return read_entry(contents, ENVIRONMENTS_SECTION, environment)


def update_environment_chain_id(
    contents: str,
    environment: str,
    chain_id: str,
    *,
    require_managed: bool = True,
) -> Tuple[str, bool]:
    """Point ``[environments].<environment>`` at ``chain_id``.

    Unless ``require_managed`` is false, only manifests that already mention the
    environment (an entry or a ``[dep-replacements.<env>]`` table) are touched.
    """

    managed = has_dep_replacements(contents, environment) or has_environment_entry(contents, environment)
    if require_managed and not managed:
        return contents, False
    return upsert_entry(contents, ENVIRONMENTS_SECTION, environment, chain_id, anchors=ENVIRONMENT_ANCHORS)


def list_manifests(root: Path) -> List[Path]:
    root = Path(root)
    if not root.exists():
        return []
    manifests = []
    for candidate in sorted(root.rglob(MANIFEST_FILENAME)):
        relative_parts = candidate.relative_to(root).parts[:-1]
        if any(part in _SKIPPED_DIRS or part.startswith(".") for part in relative_parts):
            continue
        manifests.append(candidate)
    return manifests


def sync_environment_chain_id(
    move_root: Path,
    environment: str,
    chain_id: str,
    *,
    dry_run: bool = False,
) -> EnvironmentSyncResult:
    """Update every managed manifest under ``move_root``; failures become warnings."""

    result = EnvironmentSyncResult(environment=environment, chain_id=chain_id, attempted=True)
    try:
        manifests = list_manifests(move_root)
    except OSError as exc:
        message = f"Failed to list Move.toml files under {move_root}: {exc}"
        logger.warning(message)
        result.warnings.append(message)
        return result

    for path in manifests:
        try:
            contents = read_text(path)
            updated, changed = update_environment_chain_id(contents, environment, chain_id)
            if changed and not dry_run:
                write_text(path, updated)
        except (OSError, UnicodeDecodeError) as exc:
            message = f"Failed to sync environments in {path}: {exc}"
            logger.warning(message)
            result.warnings.append(message)
            continue
        if changed:
            result.updated_files.append(path)
    return result


__all__ = [
    "ENVIRONMENTS_SECTION",
    "EnvironmentSyncResult",
    "LocalDependency",
    "MANIFEST_FILENAME",
    "has_dep_replacements",
    "has_environment_entry",
    "list_manifests",
    "local_dependencies",
    "manifest_path",
    "read_environment_chain_id",
    "read_package_name",
    "sync_environment_chain_id",
    "update_environment_chain_id",
]
