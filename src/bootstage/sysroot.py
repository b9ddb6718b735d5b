"""Publish built artifacts into sysroot library directories."""

from __future__ import annotations

import hashlib
import os
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from bootstage.errors import PublishFailedError


@dataclass(frozen=True, slots=True)
class PublishReport:
    copied: tuple[Path, ...] = ()
    unchanged: tuple[Path, ...] = ()


class SysrootPublisher:
    """Copies artifacts into the target and host library directories.

    Publishing is additive: files are created or replaced, never removed, and a
    destination that already holds identical bytes is left untouched.
    """

    def publish(
        self,
        artifacts: Sequence[Path],
        *,
        libdir: Path,
        hostdir: Path,
    ) -> PublishReport:
        destinations = [libdir] if libdir == hostdir else [libdir, hostdir]
        copied: list[Path] = []
        unchanged: list[Path] = []
        for artifact in artifacts:
            for directory in destinations:
                dest = directory / artifact.name
                try:
                    if _same_content(artifact, dest):
                        unchanged.append(dest)
                        continue
                    directory.mkdir(parents=True, exist_ok=True)
                    temp_path = dest.with_name(dest.name + ".tmp")
                    shutil.copy2(artifact, temp_path)
                    os.replace(temp_path, dest)
                except OSError as exc:
                    raise PublishFailedError(
                        "Failed to copy artifact into sysroot.",
                        hint="Check free space and permissions of the build directory.",
                        context={
                            "operation": "publish",
                            "artifact": str(artifact),
                            "destination": str(dest),
                            "error": str(exc),
                        },
                    ) from exc
                copied.append(dest)
        return PublishReport(copied=tuple(copied), unchanged=tuple(unchanged))


def _same_content(src: Path, dest: Path) -> bool:
    if not dest.exists():
        return False
    src_stat = src.stat()
    dest_stat = dest.stat()
    if src_stat.st_size != dest_stat.st_size:
        return False
    if src_stat.st_mtime_ns == dest_stat.st_mtime_ns:
        return True
    return _digest(src) == _digest(dest)


def _digest(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()
