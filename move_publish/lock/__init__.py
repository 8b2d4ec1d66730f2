"""Text-preserving editors for Move.toml, Move.lock and Published.toml."""

from .manifest import (
    EnvironmentSyncResult,
    LocalDependency,
    local_dependencies,
    read_package_name,
    sync_environment_chain_id,
    update_environment_chain_id,
)
from .move_lock import (
    FrameworkPin,
    find_unpublished_dependencies,
    framework_pins,
    framework_revisions,
    parse_published_addresses,
    read_lock,
    update_published_addresses,
)
from .published import clear_published_entry
from .sections import remove_section, upsert_entry

__all__ = [
    "EnvironmentSyncResult",
    "FrameworkPin",
    "LocalDependency",
    "clear_published_entry",
    "find_unpublished_dependencies",
    "framework_pins",
    "framework_revisions",
    "local_dependencies",
    "parse_published_addresses",
    "read_lock",
    "read_package_name",
    "remove_section",
    "sync_environment_chain_id",
    "update_environment_chain_id",
    "update_published_addresses",
    "upsert_entry",
]
