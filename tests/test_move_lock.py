from __future__ import annotations

from pathlib import Path

from move_publish.lock.move_lock import (
    detect_lock_format,
    find_unpublished_dependencies,
    framework_revisions,
    lock_packages,
    normalize_dependency_id,
    parse_published_addresses,
    read_lock,
    resolve_allowed_dependency_ids,
    update_published_addresses,
)

from .helpers import address, pinned_lock

LEGACY_LOCK = """# @generated by Move, please check-in and do not edit manually.

[move]
version = 3
manifest_digest = "AAAA"
deps_digest = "BBBB"
dependencies = [
  { id = "Sui", name = "Sui" },
  { id = "pricing", name = "pricing" },
]

[[move.package]]
id = "MoveStdlib"
source = { git = "https://github.com/MystenLabs/sui.git", rev = "aaa111", subdir = "crates/sui-framework/packages/move-stdlib" }

[[move.package]]
id = "Sui"
source = { git = "https://github.com/MystenLabs/sui.git", rev = "aaa111", subdir = "crates/sui-framework/packages/sui-framework" }

dependencies = [
  { id = "MoveStdlib", name = "MoveStdlib" },
]

[[move.package]]
id = "pricing"
source = { local = "../pricing" }

dependencies = [
  { id = "Sui", name = "Sui" },
]
"""


def test_detect_lock_format() -> None:
    assert detect_lock_format(pinned_lock("testnet", "aaa111", "shop", {})) == "pinned"
    assert detect_lock_format(LEGACY_LOCK) == "legacy"
    assert detect_lock_format("[move]\nversion = 4\n") == "unknown"


def test_normalize_dependency_id() -> None:
    assert normalize_dependency_id("Sui_1") == "sui"
    assert normalize_dependency_id(" My-Dep ") == "my_dep"


def test_read_lock_missing_returns_none(tmp_path: Path) -> None:
    assert read_lock(tmp_path) is None


def test_pinned_lock_packages_and_revisions() -> None:
    lock = pinned_lock("testnet", "aaa111", "shop", {"pricing": None})
    packages = {pkg.name: pkg for pkg in lock_packages(lock, "testnet")}
    assert set(packages) == {"MoveStdlib", "Sui", "shop", "pricing"}
    assert packages["shop"].is_root is True
    assert packages["Sui"].is_framework is True
    assert packages["Sui"].revision == "aaa111"
    assert packages["pricing"].revision is None
    assert framework_revisions(lock, "testnet") == ["aaa111"]


def test_pinned_lock_prefers_requested_environment() -> None:
    lock = pinned_lock("testnet", "aaa111", "shop", {}) + "\n" + pinned_lock("mainnet", "bbb222", "shop", {}).split(
        "version = 4\n", 1
    )[1]
    assert framework_revisions(lock, "mainnet") == ["bbb222"]
    assert framework_revisions(lock, "devnet") == ["aaa111"]


def test_find_unpublished_dependencies_skips_published_and_framework() -> None:
    lock = pinned_lock("testnet", "aaa111", "shop", {"pricing": None, "inventory": address(0xABC)})
    assert find_unpublished_dependencies(lock, "testnet") == ["pricing"]


def test_unreachable_packages_are_not_reported() -> None:
    lock = pinned_lock("testnet", "aaa111", "shop", {"pricing": None})
    lock += '\n[pinned.testnet.orphan]\nsource = { local = "../orphan" }\ndeps = {}\n'
    allowed = resolve_allowed_dependency_ids(lock, "testnet")
    assert allowed is not None and "orphan" not in allowed
    assert find_unpublished_dependencies(lock, "testnet") == ["pricing"]


def test_update_published_addresses_is_idempotent() -> None:
    lock = pinned_lock("testnet", "aaa111", "shop", {"pricing": None})
    update = update_published_addresses(lock, {"Pricing": address(0xBEEF)}, "testnet")
    assert update.changed is True
    assert update.updated_dependencies == ["pricing"]
    assert f'published-at = "{address(0xBEEF)}"' in update.contents
    assert parse_published_addresses(update.contents, "testnet") == {"pricing": address(0xBEEF)}
    assert find_unpublished_dependencies(update.contents, "testnet") == []

    again = update_published_addresses(update.contents, {"pricing": address(0xBEEF)}, "testnet")
    assert again.changed is False
    assert again.contents == update.contents


def test_update_published_addresses_leaves_other_lines_untouched() -> None:
    lock = pinned_lock("testnet", "aaa111", "shop", {"pricing": None})
    update = update_published_addresses(lock, {"pricing": address(1)}, "testnet")
    removed = update.contents.replace(f'published-at = "{address(1)}"\n', "", 1)
    assert removed == lock


def test_legacy_lock_unpublished_and_address_sync() -> None:
    assert framework_revisions(LEGACY_LOCK) == ["aaa111"]
    assert find_unpublished_dependencies(LEGACY_LOCK) == ["pricing"]

    update = update_published_addresses(LEGACY_LOCK, {"pricing": address(7)})
    assert update.updated_dependencies == ["pricing"]
    assert parse_published_addresses(update.contents) == {"pricing": address(7)}
    assert find_unpublished_dependencies(update.contents) == []
