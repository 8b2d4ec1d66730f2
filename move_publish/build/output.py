"""Parse JSON emitted by ``sui move build`` and ``sui client publish``."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

MODULE_KEYS = ("modules", "compiledModules", "compiled_modules", "bytecodeModules", "bytecode_modules")
MODULE_ITEM_KEYS = (
    "bytecode",
    "bytes",
    "module",
    "moduleBytes",
    "module_bytes",
    "module_base64",
    "base64",
    "data",
)
DEPENDENCY_KEYS = (
    "dependencies",
    "dependencyIds",
    "dependency_ids",
    "deps",
    "packageDependencies",
    "package_dependencies",
)
DEPENDENCY_ITEM_KEYS = ("address", "id", "packageId", "package_id", "package", "dependency")

_TRAILING_BLOCK_RE = re.compile(r"(\{.*\}|\[.*\])\s*$", re.DOTALL)


@dataclass(slots=True)
class BuildOutput:
    modules: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    dependency_addresses: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class ParsedBuildJson:
    modules: List[str]
    dependencies: List[str]


def _whole_document(text: str) -> Optional[str]:
    trimmed = text.strip()
    return trimmed or None


def _from_last_json_line(text: str) -> Optional[str]:
    lines = text.strip().splitlines()
    for index in range(len(lines) - 1, -1, -1):
        line = lines[index].lstrip()
        if line.startswith("{") or line.startswith("["):
            return "\n".join(lines[index:]).strip()
    return None


def _trailing_block(text: str) -> Optional[str]:
    match = _TRAILING_BLOCK_RE.search(text.strip())
    return match.group(1).strip() if match else None


def _outer_braces(text: str) -> Optional[str]:
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None
    return text[start : end + 1]


CANDIDATE_STRATEGIES: Sequence[Callable[[str], Optional[str]]] = (
    _whole_document,
    _from_last_json_line,
    _trailing_block,
    _outer_braces,
)


def collect_json_candidates(text: str) -> List[str]:
    """Candidate JSON substrings in the order they should be tried."""

    candidates: List[str] = []
    if not text:
        return candidates
    for strategy in CANDIDATE_STRATEGIES:
        candidate = strategy(text)
        if candidate and candidate not in candidates:
            candidates.append(candidate)
    return candidates


def try_parse_json(candidate: str) -> Optional[Any]:
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None


def parse_json_payload(text: str) -> Optional[Any]:
    for candidate in collect_json_candidates(text):
        parsed = try_parse_json(candidate)
        if parsed is not None:
            return parsed
    return None


def _first_present(payload: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def normalize_module_list(modules: Any) -> List[str]:
    if not isinstance(modules, list):
        return []
    normalized: List[str] = []
    for item in modules:
        if isinstance(item, str):
            value: Any = item
        elif isinstance(item, list):
            value = item[-1] if item else None
        elif isinstance(item, dict):
            value = _first_present(item, MODULE_ITEM_KEYS)
        else:
            value = None
        if isinstance(value, str) and value:
            normalized.append(value)
    return normalized


def normalize_dependency_list(dependencies: Any) -> List[str]:
    if not isinstance(dependencies, list):
        return []
    normalized: List[str] = []
    for item in dependencies:
        if isinstance(item, str):
            value: Any = item
        elif isinstance(item, dict):
            value = _first_present(item, DEPENDENCY_ITEM_KEYS)
        else:
            value = None
        if isinstance(value, str) and value:
            normalized.append(value)
    return normalized


def normalize_build_json(payload: Any) -> Optional[ParsedBuildJson]:
    if not isinstance(payload, dict):
        return None
    modules = normalize_module_list(_first_present(payload, MODULE_KEYS))
    dependencies = normalize_dependency_list(_first_present(payload, DEPENDENCY_KEYS))
    if not modules and not dependencies:
        return None
    return ParsedBuildJson(modules=modules, dependencies=dependencies)


def parse_build_json(text: str) -> Optional[ParsedBuildJson]:
    """Return the first candidate that parses and carries modules or dependencies."""

    for candidate in collect_json_candidates(text):
        parsed = try_parse_json(candidate)
        if parsed is None:
            continue
        normalized = normalize_build_json(parsed)
        if normalized is not None:
            return normalized
    return None


def parse_build_streams(stdout: str, stderr: Optional[str] = None) -> Optional[ParsedBuildJson]:
    parsed = parse_build_json(stdout)
    if parsed is None and stderr:
        parsed = parse_build_json(stderr)
    return parsed


__all__ = [
    "BuildOutput",
    "CANDIDATE_STRATEGIES",
    "ParsedBuildJson",
    "collect_json_candidates",
    "normalize_build_json",
    "normalize_dependency_list",
    "normalize_module_list",
    "parse_build_json",
    "parse_build_streams",
    "parse_json_payload",
    "try_parse_json",
]
