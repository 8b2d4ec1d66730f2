"""Published.toml cleanup used when re-publishing a package."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

from ..utils import read_text, write_text
from .sections import remove_section

PUBLISHED_FILENAME = "Published.toml"
TEST_PUBLISH_ENVIRONMENT = "test-publish"


def published_sections_for(network: str, *, permissive: bool = False) -> List[str]:
    targets = [f"published.{network}"]
    if permissive:
        targets.append(f"published.{TEST_PUBLISH_ENVIRONMENT}")
    return targets


def remove_published_sections(contents: str, sections: List[str]) -> Tuple[str, bool]:
    changed = False
    for name in sections:
        contents, removed = remove_section(contents, name)
        changed = changed or removed
    return contents, changed


def clear_published_entry(
    package_path: Path,
    network: Optional[str],
    *,
    permissive: bool = False,
) -> Tuple[Path, bool]:
    """Remove ``[published.<network>]`` so the toolchain treats the package as unpublished.

    A missing Published.toml means there is nothing to clear.
    """

    path = Path(package_path) / PUBLISHED_FILENAME
    if not network:
        return path, False
    try:
        contents = read_text(path)
    except FileNotFoundError:
        return path, False

    updated, changed = remove_published_sections(contents, published_sections_for(network, permissive=permissive))
    if changed:
        write_text(path, updated)
    return path, changed


__all__ = [
    "PUBLISHED_FILENAME",
    "TEST_PUBLISH_ENVIRONMENT",
    "clear_published_entry",
    "published_sections_for",
    "remove_published_sections",
]
