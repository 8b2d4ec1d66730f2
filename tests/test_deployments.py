from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

import pytest

from move_publish.deployments import ArtifactStore, dedupe_records, resolve_artifacts_dir
from move_publish.errors import ArtifactReadError, ArtifactWriteError
from move_publish.schemas.deployment import PublishArtifact

from .helpers import address


def _record(package_id: str, published_at: str = "2026-01-01T00:00:00Z", **extra: Any) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "network": "testnet",
        "rpcUrl": "https://fullnode.testnet.sui.io:443",
        "packagePath": "/work/move/shop",
        "packageId": package_id,
        "sender": address(0x5E),
        "digest": "DIGEST",
        "publishedAt": published_at,
    }
    record.update(extra)
    return record


def test_append_keeps_existing_records_and_unknown_fields(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path)
    path = store.path_for("testnet")
    path.write_text(json.dumps([_record(address(1), annotatedBy="indexer")]), encoding="utf-8")

    artifact = PublishArtifact.model_validate(_record(address(2), "2026-02-01T00:00:00Z", modules=["AAA"]))
    written = store.append("testnet", [artifact])

    assert written == path
    records = json.loads(path.read_text(encoding="utf-8"))
    assert [record["packageId"] for record in records] == [address(1), address(2)]
    assert records[0]["annotatedBy"] == "indexer"
    assert records[1]["modules"] == ["AAA"]
    assert "upgradeCap" not in records[1]


def test_append_creates_directory_and_file(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path / "nested" / "deployments")
    artifact = PublishArtifact.model_validate(_record(address(3)))
    path = store.append("localnet", [artifact])
    assert path.name == "deployment.localnet.json"
    assert len(json.loads(path.read_text(encoding="utf-8"))) == 1


def test_dedupe_keeps_latest_record_per_package() -> None:
    records = [_record(address(1), digest="OLD"), _record(address(2)), _record(address(1), digest="NEW"), {"note": 1}]
    deduped = dedupe_records(records)
    assert [record.get("packageId") for record in deduped] == [address(2), address(1), None]
    assert deduped[1]["digest"] == "NEW"


def test_unreadable_record_aborts_append_without_writing(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path)
    path = store.path_for("testnet")
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ArtifactWriteError):
        store.append("testnet", [PublishArtifact.model_validate(_record(address(1)))])
    assert path.read_text(encoding="utf-8") == "{not json"


def test_non_array_record_is_rejected(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path)
    store.path_for("testnet").write_text(json.dumps({"packageId": address(1)}), encoding="utf-8")
    with pytest.raises(ArtifactReadError):
        store.load("testnet")


def test_latest_filters_by_package_path(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path)
    store.path_for("testnet").write_text(
        json.dumps(
            [
                _record(address(1), "2026-01-01T00:00:00Z"),
                _record(address(2), "2026-03-01T00:00:00Z"),
                _record(address(3), "2026-04-01T00:00:00Z", packagePath="/work/move/other"),
            ]
        ),
        encoding="utf-8",
    )

    latest = store.latest("testnet", "/work/move/shop")
    assert latest is not None
    assert latest.package_id == address(2)
    assert latest.published_at == datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert store.latest("testnet").package_id == address(3)  # type: ignore[union-attr]
    assert store.latest("mainnet") is None


def test_latest_treats_naive_timestamps_as_utc(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path)
    store.path_for("testnet").write_text(
        json.dumps(
            [
                _record(address(1), "2026-02-01T00:00:00Z"),
                _record(address(2), "2026-01-01T00:00:00"),
                _record(address(3), "2026-01-15T12:00:00+02:00"),
            ]
        ),
        encoding="utf-8",
    )

    latest = store.latest("testnet", "/work/move/shop")
    assert latest is not None
    assert latest.package_id == address(1)


def test_artifacts_dir_resolution(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUI_ARTIFACTS_DIR", str(tmp_path / "from-env"))
    assert resolve_artifacts_dir() == (tmp_path / "from-env").resolve()
    assert resolve_artifacts_dir(tmp_path / "explicit") == (tmp_path / "explicit").resolve()
    monkeypatch.delenv("SUI_ARTIFACTS_DIR")
    monkeypatch.chdir(tmp_path)
    assert resolve_artifacts_dir() == tmp_path.resolve() / "deployments"
