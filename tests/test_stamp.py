import os
from pathlib import Path

import cbor2
import pytest

from bootstage.cargo import CargoCommand, prepare_cargo
from bootstage.errors import StampError
from bootstage.models import Compiler, Kind, Mode, TargetSelection
from bootstage.stamp import StampRecord, StampTracker, fingerprint

HOST = TargetSelection("x86_64-unknown-linux-gnu")


def _command(tmp_path: Path, kind: Kind = Kind.CHECK) -> CargoCommand:
    return prepare_cargo(
        cargo="cargo",
        kind=kind,
        compiler=Compiler(stage=0, host=HOST),
        mode=Mode.LIBRARY,
        target=HOST,
        manifest_path=tmp_path / "library/test/Cargo.toml",
        target_dir=tmp_path / "out",
        out_dir=tmp_path / "out" / HOST.triple / "release",
        rustc="rustc",
    )


def _artifact(tmp_path: Path, name: str = "libcore-0123.rmeta", content: str = "meta") -> Path:
    path = tmp_path / "deps" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_stamp_is_written_atomically_as_canonical_cbor(tmp_path: Path) -> None:
    tracker = StampTracker()
    artifact = _artifact(tmp_path)
    record = tracker.record(unit="library", fingerprint="abc", artifacts=[artifact])
    stamp = tmp_path / "out" / ".library-check.stamp"

    tracker.write(stamp, record)

    assert not stamp.with_name(stamp.name + ".tmp").exists()
    payload = cbor2.loads(stamp.read_bytes())
    assert payload["unit"] == "library"
    assert payload["schema_version"] == 1
    assert payload["artifacts"][0]["path"] == str(artifact)
    assert tracker.read(stamp) == record


def test_missing_stamp_reads_as_none_and_is_stale(tmp_path: Path) -> None:
    tracker = StampTracker()
    stamp = tmp_path / ".missing.stamp"

    assert tracker.read(stamp) is None
    assert tracker.digest(stamp) == ""
    freshness = tracker.check(stamp, fingerprint="abc")
    assert not freshness.fresh
    assert freshness.reason == "no stamp"


def test_corrupt_stamp_raises_on_read_and_is_stale(tmp_path: Path) -> None:
    tracker = StampTracker()
    stamp = tmp_path / ".corrupt.stamp"
    stamp.write_bytes(b"\xa1")

    with pytest.raises(StampError):
        tracker.read(stamp)
    assert not tracker.check(stamp, fingerprint="abc").fresh


def test_stamp_with_unknown_schema_is_rejected() -> None:
    data = cbor2.dumps({"schema_version": 99, "unit": "x", "fingerprint": "y", "artifacts": []})

    with pytest.raises(StampError):
        StampRecord.from_cbor(data)


def test_fresh_stamp_requires_matching_fingerprint(tmp_path: Path) -> None:
    tracker = StampTracker()
    artifact = _artifact(tmp_path)
    stamp = tmp_path / ".library-check.stamp"
    tracker.write(stamp, tracker.record(unit="library", fingerprint="abc", artifacts=[artifact]))

    fresh = tracker.check(stamp, fingerprint="abc")
    stale = tracker.check(stamp, fingerprint="def")

    assert fresh.fresh
    assert fresh.record is not None
    assert fresh.record.paths == (artifact,)
    assert not stale.fresh
    assert stale.reason == "command or dependencies changed"


def test_modified_or_missing_artifact_makes_stamp_stale(tmp_path: Path) -> None:
    tracker = StampTracker()
    first = _artifact(tmp_path, "liba-1.rmeta")
    second = _artifact(tmp_path, "libb-1.rmeta")
    stamp = tmp_path / ".library-check.stamp"
    tracker.write(stamp, tracker.record(unit="library", fingerprint="abc", artifacts=[first, second]))

    first.write_text("changed", encoding="utf-8")
    assert tracker.check(stamp, fingerprint="abc").reason == "modified artifact liba-1.rmeta"

    first.write_text("meta", encoding="utf-8")
    second.unlink()
    assert tracker.check(stamp, fingerprint="abc").reason == "missing artifact libb-1.rmeta"


def test_newer_sources_make_stamp_stale(tmp_path: Path) -> None:
    tracker = StampTracker()
    sources = tmp_path / "library"
    source = sources / "core" / "lib.rs"
    source.parent.mkdir(parents=True)
    source.write_text("// core\n", encoding="utf-8")
    os.utime(source, (1_000_000_000, 1_000_000_000))
    stamp = tmp_path / ".library-check.stamp"
    tracker.write(stamp, tracker.record(unit="library", fingerprint="abc", artifacts=[]))

    assert tracker.check(stamp, fingerprint="abc", sources=[sources]).fresh

    later = stamp.stat().st_mtime + 60
    os.utime(source, (later, later))
    freshness = tracker.check(stamp, fingerprint="abc", sources=[sources])
    assert not freshness.fresh
    assert freshness.reason == "sources newer than stamp"


def test_fingerprint_tracks_command_and_dependency_stamps(tmp_path: Path) -> None:
    check = _command(tmp_path)
    lint = _command(tmp_path, Kind.LINT)

    assert fingerprint(check) == fingerprint(_command(tmp_path))
    assert fingerprint(check) != fingerprint(lint)
    assert fingerprint(check, ["dep-1"]) != fingerprint(check, ["dep-2"])
