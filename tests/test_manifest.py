from __future__ import annotations

from pathlib import Path

from move_publish.lock.manifest import (
    list_manifests,
    local_dependencies,
    read_environment_chain_id,
    read_package_name,
    sync_environment_chain_id,
    update_environment_chain_id,
)
from move_publish.lock.published import clear_published_entry

from .helpers import manifest, write_package


def test_read_package_name_and_local_dependencies(tmp_path: Path) -> None:
    root = write_package(tmp_path, "shop", manifest("shop", ["pricing", "inventory"]))
    text = (root / "Move.toml").read_text(encoding="utf-8")
    text += '\n[dependencies.tokens]\nlocal = "../tokens"\n'
    (root / "Move.toml").write_text(text, encoding="utf-8")

    assert read_package_name(root) == "shop"
    deps = {dep.name: dep.path for dep in local_dependencies(root)}
    assert deps == {
        "pricing": (tmp_path / "pricing").resolve(),
        "inventory": (tmp_path / "inventory").resolve(),
        "tokens": (tmp_path / "tokens").resolve(),
    }


def test_sync_is_noop_when_chain_id_matches(tmp_path: Path) -> None:
    write_package(tmp_path, "shop", manifest("shop", environments={"test-publish": "4c78adac"}))
    before = (tmp_path / "shop" / "Move.toml").read_bytes()

    result = sync_environment_chain_id(tmp_path, "test-publish", "4c78adac")

    assert result.updated_files == []
    assert result.warnings == []
    assert (tmp_path / "shop" / "Move.toml").read_bytes() == before


def test_sync_updates_only_managed_manifests(tmp_path: Path) -> None:
    managed = write_package(tmp_path, "shop", manifest("shop", environments={"test-publish": "00000000"}))
    unmanaged = write_package(tmp_path, "pricing", manifest("pricing"))
    replaced = write_package(tmp_path, "inventory", manifest("inventory"))
    with (replaced / "Move.toml").open("a", encoding="utf-8") as handle:
        handle.write('\n[dep-replacements.test-publish]\nSui = { local = "../sui" }\n')

    result = sync_environment_chain_id(tmp_path, "test-publish", "4c78adac")

    assert sorted(result.updated_files) == sorted([managed / "Move.toml", replaced / "Move.toml"])
    assert read_environment_chain_id((managed / "Move.toml").read_text(encoding="utf-8"), "test-publish") == "4c78adac"
    assert read_environment_chain_id((replaced / "Move.toml").read_text(encoding="utf-8"), "test-publish") == "4c78adac"
    assert "[environments]" not in (unmanaged / "Move.toml").read_text(encoding="utf-8")


def test_sync_continues_past_unreadable_manifest(tmp_path: Path) -> None:
    first = write_package(tmp_path, "a", manifest("a", environments={"test-publish": "00000000"}))
    broken = tmp_path / "b" / "Move.toml"
    broken.parent.mkdir()
    broken.write_bytes(b'[package]\nname = "\xff"\n')
    last = write_package(tmp_path, "c", manifest("c", environments={"test-publish": "00000000"}))

    result = sync_environment_chain_id(tmp_path, "test-publish", "4c78adac")

    assert result.updated_files == [first / "Move.toml", last / "Move.toml"]
    assert len(result.warnings) == 1
    assert str(broken) in result.warnings[0]
    assert read_environment_chain_id((last / "Move.toml").read_text(encoding="utf-8"), "test-publish") == "4c78adac"


def test_sync_dry_run_does_not_write(tmp_path: Path) -> None:
    write_package(tmp_path, "shop", manifest("shop", environments={"test-publish": "00000000"}))
    result = sync_environment_chain_id(tmp_path, "test-publish", "4c78adac", dry_run=True)
    assert len(result.updated_files) == 1
    assert '"00000000"' in (tmp_path / "shop" / "Move.toml").read_text(encoding="utf-8")


def test_insert_environment_round_trip() -> None:
    text = manifest("shop")
    updated, changed = update_environment_chain_id(text, "testnet", "4c78adac", require_managed=False)
    assert changed is True
    assert read_environment_chain_id(updated, "testnet") == "4c78adac"
    assert updated.index("[environments]") < updated.index("[addresses]")
    assert updated.replace('[environments]\ntestnet = "4c78adac"\n\n', "", 1) == text


def test_sync_preserves_crlf(tmp_path: Path) -> None:
    path = tmp_path / "shop" / "Move.toml"
    path.parent.mkdir()
    path.write_bytes(manifest("shop", environments={"testnet": "old"}).replace("\n", "\r\n").encode("utf-8"))

    assert sync_environment_chain_id(tmp_path, "testnet", "new").updated_files == [path]

    raw = path.read_bytes().decode("utf-8")
    assert 'testnet = "new"\r\n' in raw
    assert "\n" not in raw.replace("\r\n", "")


def test_list_manifests_skips_build_directories(tmp_path: Path) -> None:
    write_package(tmp_path, "shop", manifest("shop"))
    write_package(tmp_path / "shop" / "build" / "deps", "Sui", manifest("Sui"))
    assert list_manifests(tmp_path) == [tmp_path / "shop" / "Move.toml"]


def test_clear_published_entry(tmp_path: Path) -> None:
    published = tmp_path / "Published.toml"
    published.write_text(
        '[published.localnet]\npublished-at = "0x1"\n\n[published.test-publish]\npublished-at = "0x2"\n\n'
        '[published.testnet]\npublished-at = "0x3"\n',
        encoding="utf-8",
    )

    path, changed = clear_published_entry(tmp_path, "localnet", permissive=True)

    assert path == published
    assert changed is True
    assert published.read_text(encoding="utf-8") == '[published.testnet]\npublished-at = "0x3"\n'


def test_clear_published_entry_missing_file(tmp_path: Path) -> None:
    path, changed = clear_published_entry(tmp_path, "testnet")
    assert changed is False
    assert not path.exists()
