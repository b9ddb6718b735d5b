"""Stamp files marking a unit's output as current.

A stamp is a canonical CBOR document listing the artifacts of the last
successful build together with the fingerprint of the command that produced
them. It is written atomically and only after the unit fully succeeded.
"""

from __future__ import annotations

import hashlib
import json
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

import cbor2

from bootstage.cargo import CargoCommand
from bootstage.errors import StampError

STAMP_SCHEMA_VERSION = 1


@dataclass(frozen=True, slots=True)
class StampedArtifact:
    path: Path
    sha256: str


@dataclass(frozen=True, slots=True)
class StampRecord:
    unit: str
    fingerprint: str
    artifacts: tuple[StampedArtifact, ...] = ()
    schema_version: int = STAMP_SCHEMA_VERSION

    @property
    def paths(self) -> tuple[Path, ...]:
        return tuple(artifact.path for artifact in self.artifacts)

    def to_cbor(self) -> bytes:
        payload = {
            "schema_version": self.schema_version,
            "unit": self.unit,
            "fingerprint": self.fingerprint,
            "artifacts": [
                {"path": str(artifact.path), "sha256": artifact.sha256}
                for artifact in self.artifacts
            ],
        }
        return cbor2.dumps(payload, canonical=True)

    @classmethod
    def from_cbor(cls, data: bytes) -> StampRecord:
        try:
            payload = cbor2.loads(data)
        except (cbor2.CBORDecodeError, EOFError) as exc:
            raise StampError("Stamp is not valid CBOR.") from exc
        if not isinstance(payload, dict):
            raise StampError("Stamp has invalid structure.")
        if payload.get("schema_version") != STAMP_SCHEMA_VERSION:
            raise StampError(
                "Unsupported stamp schema version.",
                context={"schema_version": str(payload.get("schema_version"))},
            )
        unit = payload.get("unit")
        fingerprint = payload.get("fingerprint")
        raw_artifacts = payload.get("artifacts")
        if not isinstance(unit, str) or not isinstance(fingerprint, str):
            raise StampError("Stamp lacks `unit` or `fingerprint`.")
        if not isinstance(raw_artifacts, list):
            raise StampError("Stamp lacks an `artifacts` list.")
        artifacts: list[StampedArtifact] = []
        for item in raw_artifacts:
            if (
                not isinstance(item, dict)
                or not isinstance(item.get("path"), str)
                or not isinstance(item.get("sha256"), str)
            ):
                raise StampError("Invalid artifact entry in stamp.")
            artifacts.append(StampedArtifact(path=Path(item["path"]), sha256=item["sha256"]))
        return cls(unit=unit, fingerprint=fingerprint, artifacts=tuple(artifacts))


@dataclass(frozen=True, slots=True)
class Freshness:
    fresh: bool
    reason: str
    record: StampRecord | None = None


def fingerprint(command: CargoCommand, dependencies: Iterable[str] = ()) -> str:
    """Digest of everything that decides what a cargo invocation produces."""
    payload = command.describe()
    payload["dependencies"] = list(dependencies)
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def file_digest(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def newest_mtime(roots: Iterable[Path]) -> float:
    newest = 0.0
    for root in roots:
        if root.is_file():
            newest = max(newest, root.stat().st_mtime)
            continue
        for dirpath, _dirnames, filenames in os.walk(root):
            for filename in filenames:
                newest = max(newest, (Path(dirpath) / filename).stat().st_mtime)
    return newest


class StampTracker:
    def read(self, path: Path) -> StampRecord | None:
        if not path.exists():
            return None
        return StampRecord.from_cbor(path.read_bytes())

    def digest(self, path: Path) -> str:
        """Digest of a stamp's bytes, used to chain dependent fingerprints."""
        if not path.exists():
            return ""
        return file_digest(path)

    def record(self, *, unit: str, fingerprint: str, artifacts: Sequence[Path]) -> StampRecord:
        return StampRecord(
            unit=unit,
            fingerprint=fingerprint,
            artifacts=tuple(
                StampedArtifact(path=path, sha256=file_digest(path)) for path in artifacts
            ),
        )

    def write(self, path: Path, record: StampRecord) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_name(path.name + ".tmp")
        temp_path.write_bytes(record.to_cbor())
        os.replace(temp_path, path)
        return path

    def check(self, path: Path, *, fingerprint: str, sources: Sequence[Path] = ()) -> Freshness:
        """Decide whether ``path`` still describes a current build."""
        try:
            record = self.read(path)
        except StampError as exc:
            return Freshness(fresh=False, reason=f"unreadable stamp: {exc}")
        if record is None:
            return Freshness(fresh=False, reason="no stamp")
        if record.fingerprint != fingerprint:
            return Freshness(fresh=False, reason="command or dependencies changed")
        for artifact in record.artifacts:
            if not artifact.path.exists():
                return Freshness(fresh=False, reason=f"missing artifact {artifact.path.name}")
            if file_digest(artifact.path) != artifact.sha256:
                return Freshness(fresh=False, reason=f"modified artifact {artifact.path.name}")
        if newest_mtime(sources) > path.stat().st_mtime:
            return Freshness(fresh=False, reason="sources newer than stamp")
        return Freshness(fresh=True, reason="up to date", record=record)
