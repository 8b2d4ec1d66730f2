"""Read compiled modules and BuildInfo.yaml from a package's ``build/`` directory."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..utils import read_text

logger = logging.getLogger(__name__)

BUILD_DIRNAME = "build"
BUILD_INFO_FILENAME = "BuildInfo.yaml"
BYTECODE_DIRNAME = "bytecode_modules"
_METADATA_DIRS = ("locks", "deps")

_ALIAS_BLOCK_RE = re.compile(
    r"address_alias_instantiation:[ \t]*\r?\n((?:[ \t]+[A-Za-z0-9_]+[ \t]*:[ \t]*\"?(?:0x)?[0-9a-fA-F]{64}\"?[ \t]*(?:\r?\n|$))+)"
)
_ALIAS_ENTRY_RE = re.compile(r'^[ \t]+([A-Za-z0-9_]+)[ \t]*:[ \t]*"?(?:0x)?([0-9a-fA-F]{64})"?', re.MULTILINE)


@dataclass(slots=True)
class BuildArtifacts:
    package_name: str
    build_info_path: Path
    modules: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    dependency_addresses: Dict[str, str] = field(default_factory=dict)


def build_dir_for(package_path: Path) -> Path:
    return Path(package_path) / BUILD_DIRNAME


def infer_build_package_name(build_dir: Path) -> Optional[str]:
    """Pick the package directory under ``build/``, preferring the one holding BuildInfo.yaml."""

    candidates = sorted(entry.name for entry in build_dir.iterdir() if entry.is_dir())
    for name in candidates:
        if (build_dir / name / BUILD_INFO_FILENAME).is_file():
            return name
    for name in candidates:
        if name not in _METADATA_DIRS:
            return name
    return candidates[0] if candidates else None


def find_build_info(build_dir: Path, package_name: str) -> Path:
    package_root = build_dir / package_name
    if package_root.is_dir():
        for candidate in sorted(package_root.rglob(BUILD_INFO_FILENAME)):
            if candidate.is_file():
                return candidate
    raise FileNotFoundError(
        f"{BUILD_INFO_FILENAME} not found under {package_root}. Ensure the package was built successfully."
    )


def is_test_module_filename(filename: str) -> bool:
    lowered = filename.lower()
    return lowered.endswith("_tests.mv") or lowered.endswith("_test.mv") or lowered.startswith("test_")


def is_test_module_bytecode(module_b64: str) -> bool:
    """Guess whether base64 bytecode belongs to a test module from embedded identifiers."""

    try:
        decoded = base64.b64decode(module_b64, validate=False).decode("utf-8", errors="ignore").lower()
    except (binascii.Error, ValueError):
        return False
    return any(marker in decoded for marker in ("_tests", "_test", "test::", "::test_"))


def read_bytecode_modules(build_dir: Path, package_name: str, *, strip_test_modules: bool = False) -> List[str]:
    bytecode_dir = build_dir / package_name / BYTECODE_DIRNAME
    if not bytecode_dir.is_dir():
        raise FileNotFoundError(f"Bytecode directory not found at {bytecode_dir}.")
    files = sorted(
        path
        for path in bytecode_dir.iterdir()
        if path.is_file()
        and path.name.endswith(".mv")
        and not (strip_test_modules and is_test_module_filename(path.name))
    )
    return [base64.b64encode(path.read_bytes()).decode("ascii") for path in files]


def normalize_address(address: str) -> str:
    value = address.strip().lower()
    if value.startswith("0x"):
        value = value[2:]
    return f"0x{value}"


def parse_address_aliases(build_info_raw: str) -> Dict[str, str]:
    block = _ALIAS_BLOCK_RE.search(build_info_raw)
    if not block:
        return {}
    return {alias: address for alias, address in _ALIAS_ENTRY_RE.findall(block.group(1))}


def dependency_address_map(build_info_raw: str, package_name: str) -> Dict[str, str]:
    own = package_name.lower()
    return {
        alias: normalize_address(address)
        for alias, address in parse_address_aliases(build_info_raw).items()
        if alias.lower() != own
    }


def _locate_build_info(package_path: Path) -> Tuple[Path, str, Path]:
    build_dir = build_dir_for(package_path)
    if not build_dir.is_dir():
        raise FileNotFoundError(f"Build directory not found at {build_dir}.")
    package_name = infer_build_package_name(build_dir)
    if package_name is None:
        raise FileNotFoundError(f"No compiled package found under {build_dir}.")
    return build_dir, package_name, find_build_info(build_dir, package_name)


def read_dependency_addresses(package_path: Path) -> Dict[str, str]:
    """Dependency alias table from BuildInfo.yaml, or an empty map when it cannot be read."""

    try:
        _, package_name, build_info_path = _locate_build_info(package_path)
        return dependency_address_map(read_text(build_info_path), package_name)
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Dependency addresses unavailable: %s", exc)
        return {}


def read_build_artifacts(package_path: Path, *, strip_test_modules: bool = False) -> BuildArtifacts:
    """Load modules and dependency addresses from disk.

    Raises ``FileNotFoundError`` when the build directory or its BuildInfo.yaml is missing.
    """

    build_dir, package_name, build_info_path = _locate_build_info(package_path)
    raw = read_text(build_info_path)
    addresses = dependency_address_map(raw, package_name)
    dependencies = list(dict.fromkeys(addresses.values()))
    modules = read_bytecode_modules(build_dir, package_name, strip_test_modules=strip_test_modules)
    return BuildArtifacts(
        package_name=package_name,
        build_info_path=build_info_path,
        modules=modules,
        dependencies=dependencies,
        dependency_addresses=addresses,
    )


__all__ = [
    "BUILD_INFO_FILENAME",
    "BuildArtifacts",
    "build_dir_for",
    "dependency_address_map",
    "find_build_info",
    "infer_build_package_name",
    "is_test_module_bytecode",
    "is_test_module_filename",
    "normalize_address",
    "parse_address_aliases",
    "read_build_artifacts",
    "read_bytecode_modules",
    "read_dependency_addresses",
]
