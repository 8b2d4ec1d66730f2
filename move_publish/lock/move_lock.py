"""Move.lock parsing and published-address bookkeeping."""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from ..utils import read_text, write_text
from .sections import TomlSection, iter_sections, read_section_entry, upsert_section_entry

LOCK_FILENAME = "Move.lock"
SUI_FRAMEWORK_GIT = "https://github.com/MystenLabs/sui.git"
FRAMEWORK_PACKAGE_IDS = frozenset({"sui", "movestdlib", "std", "bridge", "suisystem", "sui_system", "deepbook"})
PUBLISHED_ADDRESS_KEYS = ("published-at", "published-id")

_SOURCE_RE = re.compile(r"^\s*source\s*=\s*\{([^}]*)\}\s*$", re.MULTILINE)
_DEPS_INLINE_RE = re.compile(r"^\s*deps\s*=\s*\{([^}]*)\}", re.MULTILINE)
_LEGACY_ID_RE = re.compile(r'^\s*(?:id|name)\s*=\s*"([^"]+)"', re.MULTILINE)
_ARRAY_RE_TEMPLATE = r"^\s*{key}\s*=\s*\[(.*?)\]\s*$"
_QUOTED_RE = re.compile(r'"([^"]+)"')
_ARRAY_ID_RE = re.compile(r'id\s*=\s*"([^"]+)"')
_PINNED_NAME_RE = re.compile(r"^pinned\.([^.]+)\.(.+)$")
_VERSION_SUFFIX_RE = re.compile(r"_\d+$")


@dataclass(frozen=True, slots=True)
class LockPackage:
    name: str
    environment_name: Optional[str]
    section: TomlSection
    source: str = ""
    revision: Optional[str] = None
    subdir: Optional[str] = None
    is_framework_source: bool = False
    is_root: bool = False
    published_at: Optional[str] = None
    deps: Tuple[str, ...] = ()
    dev_deps: Tuple[str, ...] = ()

    @property
    def is_framework(self) -> bool:
        return self.is_framework_source or is_framework_package(self.name)


@dataclass(frozen=True, slots=True)
class FrameworkPin:
    """A framework package pinned to a git revision of the Sui repository."""

    package_name: str
    revision: str
    section_header: str
    environment_name: Optional[str] = None
    subdir: Optional[str] = None


@dataclass(slots=True)
class LockAddressUpdate:
    contents: str
    updated_dependencies: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.updated_dependencies)


def lock_path(package_path: Path) -> Path:
    return Path(package_path) / LOCK_FILENAME


def read_lock(package_path: Path) -> Optional[str]:
    """Return Move.lock contents, or ``None`` when the package has never been built."""

    try:
        return read_text(lock_path(package_path))
    except FileNotFoundError:
        return None


def write_lock(package_path: Path, contents: str) -> None:
    write_text(lock_path(package_path), contents)


def normalize_dependency_id(name: str) -> str:
    normalized = name.strip().lower().replace("-", "_")
    return _VERSION_SUFFIX_RE.sub("", normalized)


def is_framework_package(name: str) -> bool:
    return normalize_dependency_id(name) in FRAMEWORK_PACKAGE_IDS


def detect_lock_format(contents: str) -> str:
    has_pinned = False
    has_legacy = False
    for section in iter_sections(contents):
        if section.is_array and section.name == "move.package":
            has_legacy = True
        elif not section.is_array and section.name.startswith("pinned."):
            has_pinned = True
    if has_pinned:
        return "pinned"
    if has_legacy:
        return "legacy"
    return "unknown"


def _source_fields(body: str) -> Tuple[str, Optional[str], Optional[str], bool]:
    match = _SOURCE_RE.search(body)
    if not match:
        return "", None, None, False
    inline = match.group(1)
    is_sui_git = re.search(rf'git\s*=\s*"{re.escape(SUI_FRAMEWORK_GIT)}"', inline, re.IGNORECASE) is not None
    rev = re.search(r'rev\s*=\s*"([^"]+)"', inline, re.IGNORECASE)
    subdir = re.search(r'subdir\s*=\s*"([^"]+)"', inline, re.IGNORECASE)
    return inline, rev.group(1) if rev else None, subdir.group(1) if subdir else None, is_sui_git


def _array_ids(body: str, key: str) -> Tuple[str, ...]:
    pattern = re.compile(_ARRAY_RE_TEMPLATE.format(key=re.escape(key)), re.MULTILINE | re.DOTALL)
    match = pattern.search(body)
    if not match:
        return ()
    return tuple(_ARRAY_ID_RE.findall(match.group(1)))


def _published_address(section: TomlSection) -> Optional[str]:
    for key in PUBLISHED_ADDRESS_KEYS:
        value = read_section_entry(section, key)
        if value:
            return value
    return None


def _pinned_package(section: TomlSection, body: str) -> Optional[LockPackage]:
    match = _PINNED_NAME_RE.match(section.name)
    if not match:
        return None
    inline, rev, subdir, is_sui_git = _source_fields(body)
    deps_match = _DEPS_INLINE_RE.search(body)
    deps = tuple(_QUOTED_RE.findall(deps_match.group(1))) if deps_match else ()
    return LockPackage(
        name=match.group(2),
        environment_name=match.group(1),
        section=section,
        source=inline,
        revision=rev if is_sui_git else None,
        subdir=subdir if is_sui_git else None,
        is_framework_source=is_sui_git,
        is_root=re.search(r"root\s*=\s*true", inline) is not None,
        published_at=_published_address(section),
        deps=deps,
    )


def _legacy_package(section: TomlSection, body: str) -> Optional[LockPackage]:
    match = _LEGACY_ID_RE.search(body)
    if not match:
        return None
    inline, rev, subdir, is_sui_git = _source_fields(body)
    name = match.group(1)
    return LockPackage(
        name=name,
        environment_name=None,
        section=section,
        source=inline,
        revision=rev if (is_sui_git or is_framework_package(name)) else None,
        subdir=subdir,
        is_framework_source=is_sui_git,
        published_at=_published_address(section),
        deps=_array_ids(body, "dependencies"),
        dev_deps=_array_ids(body, "dev-dependencies"),
    )


def lock_packages(contents: str, environment: Optional[str] = None) -> List[LockPackage]:
    """List package entries in declaration order.

    Pinned locks are narrowed to ``environment`` when it has entries, otherwise the
    first pin of each package name across environments is kept.
    """

    lock_format = detect_lock_format(contents)
    packages: List[LockPackage] = []
    for section in iter_sections(contents):
        body = section.block(contents)
        if lock_format == "pinned" and not section.is_array:
            package = _pinned_package(section, body)
        elif lock_format == "legacy" and section.is_array and section.name == "move.package":
            package = _legacy_package(section, body)
        else:
            package = None
        if package is not None:
            packages.append(package)

    if lock_format != "pinned":
        return packages
    if environment and any(pkg.environment_name == environment for pkg in packages):
        return [pkg for pkg in packages if pkg.environment_name == environment]
    seen: Set[str] = set()
    unique: List[LockPackage] = []
    for pkg in packages:
        if pkg.name in seen:
            continue
        seen.add(pkg.name)
        unique.append(pkg)
    return unique


def framework_pins(contents: str, environment: Optional[str] = None) -> List[FrameworkPin]:
    pins: List[FrameworkPin] = []
    for pkg in lock_packages(contents, environment):
        if not pkg.revision:
            continue
        pins.append(
            FrameworkPin(
                package_name=pkg.name,
                revision=pkg.revision,
                section_header=pkg.section.header.text.strip(),
                environment_name=pkg.environment_name,
                subdir=pkg.subdir,
            )
        )
    return pins


def framework_revisions(contents: str, environment: Optional[str] = None) -> List[str]:
    revisions: List[str] = []
    for pin in framework_pins(contents, environment):
        if pin.revision not in revisions:
            revisions.append(pin.revision)
    return revisions


def single_framework_revision(contents: str, environment: Optional[str] = None) -> Optional[str]:
    revisions = framework_revisions(contents, environment)
    return revisions[0] if revisions else None


def _root_dependency_ids(contents: str, packages: List[LockPackage], include_dev: bool) -> List[str]:
    roots = [pkg for pkg in packages if pkg.is_root]
    if roots:
        return list(roots[0].deps)
    for section in iter_sections(contents):
        if section.is_array or section.name != "move":
            continue
        body = section.block(contents)
        ids = list(_array_ids(body, "dependencies"))
        if include_dev:
            ids.extend(_array_ids(body, "dev-dependencies"))
        return ids
    return []


def resolve_allowed_dependency_ids(
    contents: str,
    environment: Optional[str] = None,
    *,
    include_dev_dependencies: bool = True,
) -> Optional[Set[str]]:
    """Normalized ids reachable from the root package, or ``None`` when the root is unknown."""

    packages = lock_packages(contents, environment)
    start = _root_dependency_ids(contents, packages, include_dev_dependencies)
    if not start:
        return None
    by_id = {normalize_dependency_id(pkg.name): pkg for pkg in packages}
    allowed: Set[str] = set()
    queue = deque(start)
    while queue:
        current = normalize_dependency_id(queue.popleft())
        if current in allowed:
            continue
        allowed.add(current)
        pkg = by_id.get(current)
        if pkg is None:
            continue
        queue.extend(pkg.deps)
        if include_dev_dependencies:
            queue.extend(pkg.dev_deps)
    return allowed


def find_unpublished_dependencies(
    contents: str,
    environment: Optional[str] = None,
    *,
    include_dev_dependencies: bool = True,
) -> List[str]:
    allowed = resolve_allowed_dependency_ids(
        contents, environment, include_dev_dependencies=include_dev_dependencies
    )
    unpublished: List[str] = []
    for pkg in lock_packages(contents, environment):
        if pkg.is_root or pkg.is_framework or pkg.published_at:
            continue
        if allowed is not None and normalize_dependency_id(pkg.name) not in allowed:
            continue
        if pkg.name not in unpublished:
            unpublished.append(pkg.name)
    return unpublished


def parse_published_addresses(contents: Optional[str], environment: Optional[str] = None) -> Dict[str, str]:
    if not contents:
        return {}
    return {
        pkg.name: pkg.published_at
        for pkg in lock_packages(contents, environment)
        if pkg.published_at and not pkg.is_root
    }


def _match_address(name: str, addresses: Mapping[str, str]) -> Optional[str]:
    target = normalize_dependency_id(name)
    for key, value in addresses.items():
        if normalize_dependency_id(key) == target:
            return value
    return None


def update_published_addresses(
    contents: str,
    addresses: Mapping[str, str],
    environment: Optional[str] = None,
) -> LockAddressUpdate:
    """Write ``published-at`` for every lock entry with a known address."""

    update = LockAddressUpdate(contents=contents)
    if not addresses:
        return update
    names = [pkg.name for pkg in lock_packages(contents, environment) if not pkg.is_root and not pkg.is_framework]
    for name in names:
        address = _match_address(name, addresses)
        if not address:
            continue
        current = next((pkg for pkg in lock_packages(update.contents, environment) if pkg.name == name), None)
        if current is None:
            continue
        updated, changed = upsert_section_entry(update.contents, current.section, "published-at", address)
        if changed:
            update.contents = updated
            update.updated_dependencies.append(name)
    return update


def filter_addresses(addresses: Mapping[str, str], allowed: Optional[Iterable[str]]) -> Dict[str, str]:
    if allowed is None:
        return dict(addresses)
    allowed_ids = set(allowed)
    return {key: value for key, value in addresses.items() if normalize_dependency_id(key) in allowed_ids}


__all__ = [
    "FrameworkPin",
    "LOCK_FILENAME",
    "LockAddressUpdate",
    "LockPackage",
    "detect_lock_format",
    "filter_addresses",
    "find_unpublished_dependencies",
    "framework_pins",
    "framework_revisions",
    "is_framework_package",
    "lock_packages",
    "lock_path",
    "normalize_dependency_id",
    "parse_published_addresses",
    "read_lock",
    "resolve_allowed_dependency_ids",
    "single_framework_revision",
    "update_published_addresses",
    "write_lock",
]
