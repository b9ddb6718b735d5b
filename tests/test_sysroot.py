from pathlib import Path

import pytest

from bootstage.errors import PublishFailedError
from bootstage.sysroot import SysrootPublisher


def _artifacts(tmp_path: Path, *names: str) -> list[Path]:
    deps = tmp_path / "out" / "deps"
    deps.mkdir(parents=True, exist_ok=True)
    paths = []
    for name in names:
        path = deps / name
        path.write_bytes(f"payload:{name}".encode())
        paths.append(path)
    return paths


def test_publish_copies_into_target_and_host_libdirs(tmp_path: Path) -> None:
    artifacts = _artifacts(tmp_path, "libcore-1.rmeta", "libstd-2.rmeta")
    libdir = tmp_path / "sysroot/lib/rustlib/aarch64-unknown-linux-gnu/lib"
    hostdir = tmp_path / "sysroot/lib/rustlib/x86_64-unknown-linux-gnu/lib"

    report = SysrootPublisher().publish(artifacts, libdir=libdir, hostdir=hostdir)

    assert len(report.copied) == 4
    for directory in (libdir, hostdir):
        for artifact in artifacts:
            assert (directory / artifact.name).read_bytes() == artifact.read_bytes()


def test_publish_to_same_directory_copies_once(tmp_path: Path) -> None:
    artifacts = _artifacts(tmp_path, "libcore-1.rmeta")
    libdir = tmp_path / "sysroot/lib"

    report = SysrootPublisher().publish(artifacts, libdir=libdir, hostdir=libdir)

    assert report.copied == (libdir / "libcore-1.rmeta",)


def test_republishing_identical_artifacts_is_a_no_op(tmp_path: Path) -> None:
    artifacts = _artifacts(tmp_path, "libcore-1.rmeta")
    libdir = tmp_path / "sysroot/lib"
    publisher = SysrootPublisher()
    publisher.publish(artifacts, libdir=libdir, hostdir=libdir)
    published = libdir / "libcore-1.rmeta"
    mtime = published.stat().st_mtime_ns

    report = publisher.publish(artifacts, libdir=libdir, hostdir=libdir)

    assert report.copied == ()
    assert report.unchanged == (published,)
    assert published.stat().st_mtime_ns == mtime


def test_changed_artifact_replaces_published_copy(tmp_path: Path) -> None:
    (artifact,) = _artifacts(tmp_path, "libcore-1.rmeta")
    libdir = tmp_path / "sysroot/lib"
    publisher = SysrootPublisher()
    publisher.publish([artifact], libdir=libdir, hostdir=libdir)

    artifact.write_bytes(b"rebuilt metadata")
    report = publisher.publish([artifact], libdir=libdir, hostdir=libdir)

    assert report.copied == (libdir / artifact.name,)
    assert (libdir / artifact.name).read_bytes() == b"rebuilt metadata"


def test_publish_leaves_other_files_alone(tmp_path: Path) -> None:
    libdir = tmp_path / "sysroot/lib"
    libdir.mkdir(parents=True)
    foreign = libdir / "librustdoc-9.rmeta"
    foreign.write_bytes(b"other unit")
    artifacts = _artifacts(tmp_path, "libclippy-3.rmeta")

    SysrootPublisher().publish(artifacts, libdir=libdir, hostdir=libdir)

    assert foreign.read_bytes() == b"other unit"
    assert sorted(p.name for p in libdir.iterdir()) == ["libclippy-3.rmeta", "librustdoc-9.rmeta"]


def test_missing_artifact_raises_publish_failed(tmp_path: Path) -> None:
    libdir = tmp_path / "sysroot/lib"

    with pytest.raises(PublishFailedError) as excinfo:
        SysrootPublisher().publish(
            [tmp_path / "out/deps/libgone-0.rmeta"],
            libdir=libdir,
            hostdir=libdir,
        )

    assert excinfo.value.context["operation"] == "publish"
