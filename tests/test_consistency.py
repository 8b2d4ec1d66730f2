from __future__ import annotations

from pathlib import Path

import pytest

from move_publish.consistency import check_framework_consistency, group_revisions, guess_outlier
from move_publish.errors import ConsistencyError

from .helpers import SUI_GIT, manifest, pinned_lock, write_package


def _drifting_lock() -> str:
    lock = pinned_lock("testnet", "aaa111", "shop", {"pricing": None, "inventory": None})
    lock = lock.replace('deps = { Sui = "Sui" }\n\n[pinned.testnet.inventory]', 'deps = { Sui = "Sui_1" }\n\n[pinned.testnet.inventory]')
    lock += (
        "\n[pinned.testnet.Sui_1]\n"
        f'source = {{ git = "{SUI_GIT}", subdir = "crates/sui-framework/packages/sui-framework", rev = "bbb222" }}\n'
        'deps = { MoveStdlib = "MoveStdlib" }\n'
    )
    return lock


def test_group_revisions_assigns_packages_to_pins() -> None:
    groups = group_revisions(_drifting_lock(), "testnet")
    by_revision = {group.revision: group for group in groups}
    assert set(by_revision) == {"aaa111", "bbb222"}
    assert by_revision["aaa111"].framework_packages == ["MoveStdlib", "Sui"]
    assert by_revision["aaa111"].packages == ["shop", "inventory"]
    assert by_revision["bbb222"].packages == ["pricing"]
    assert guess_outlier(groups) == "bbb222"


def test_drift_inside_root_lock_raises_in_error_mode(tmp_path: Path) -> None:
    root = write_package(tmp_path, "shop", manifest("shop"), _drifting_lock())
    with pytest.raises(ConsistencyError) as excinfo:
        check_framework_consistency(root, environment="testnet")
    assert "Likely outlier revision: bbb222" in str(excinfo.value)


def test_drift_inside_root_lock_warns_in_warn_mode(tmp_path: Path) -> None:
    root = write_package(tmp_path, "shop", manifest("shop"), _drifting_lock())
    report = check_framework_consistency(root, environment="testnet", mode="warn")
    assert report.outlier == "bbb222"
    assert report.root_revision == "aaa111"
    assert report.consistent is False
    assert len(report.warnings) == 1


def test_local_dependency_on_other_revision_always_raises(tmp_path: Path) -> None:
    root = write_package(
        tmp_path,
        "shop",
        manifest("shop", ["pricing"]),
        pinned_lock("testnet", "aaa111", "shop", {"pricing": None}),
    )
    write_package(tmp_path, "pricing", manifest("pricing"), pinned_lock("testnet", "bbb222", "pricing", {}))

    with pytest.raises(ConsistencyError) as excinfo:
        check_framework_consistency(root, environment="testnet", mode="warn")
    message = str(excinfo.value)
    assert message.startswith("Framework version mismatch detected across Move.lock files.")
    assert "uses rev bbb222, root uses aaa111" in message


def test_consistent_tree_reports_dependencies(tmp_path: Path) -> None:
    root = write_package(
        tmp_path,
        "shop",
        manifest("shop", ["pricing", "inventory"]),
        pinned_lock("testnet", "aaa111", "shop", {"pricing": None, "inventory": None}),
    )
    write_package(tmp_path, "pricing", manifest("pricing"), pinned_lock("testnet", "aaa111", "pricing", {}))

    report = check_framework_consistency(root, environment="testnet")

    assert report.consistent is True
    revisions = {dep.name: dep.revision for dep in report.dependencies}
    assert revisions == {"pricing": "aaa111", "inventory": None}
    assert report.to_dict()["consistent"] is True


def test_missing_lock_is_consistent(tmp_path: Path) -> None:
    report = check_framework_consistency(tmp_path)
    assert report.consistent is True
    assert report.root_revision is None


def test_unknown_mode_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        check_framework_consistency(tmp_path, mode="strict")
