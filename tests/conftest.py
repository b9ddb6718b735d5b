"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from bootstage.cargo import CargoCommand
from bootstage.crates import Crate, CrateGraph
from bootstage.engine import BuildContext, InProcessEngine
from bootstage.models import BuildConfig, Mode
from bootstage.runners import BuildOutcome, CargoRunner, InProcessRunner

HOST = "x86_64-unknown-linux-gnu"
CROSS = "aarch64-unknown-linux-gnu"

SOURCE_FILES = (
    "library/test/src/lib.rs",
    "library/std/src/lib.rs",
    "compiler/rustc/src/main.rs",
    "compiler/rustc_middle/src/lib.rs",
    "src/tools/rustdoc/src/lib.rs",
    "src/tools/clippy/src/lib.rs",
    "src/tools/docgen/src/lib.rs",
    "src/bootstrap/src/lib.rs",
)

# Well in the past, so stamps written during a test are always newer.
SOURCE_MTIME = 1_000_000_000


@dataclass(slots=True)
class FailingRunner:
    """Delegates to an in-process runner but fails every build in ``fail_modes``."""

    fail_modes: frozenset[Mode]
    inner: InProcessRunner = field(default_factory=InProcessRunner)
    name: str = "failing"

    @property
    def invocations(self) -> list[CargoCommand]:
        return self.inner.invocations

    def invoke_build(self, command: CargoCommand) -> BuildOutcome:
        if command.mode in self.fail_modes:
            self.inner.invocations.append(command)
            return BuildOutcome(returncode=101, stderr="error: could not compile")
        return self.inner.invoke_build(command)


@pytest.fixture
def crate_graph() -> CrateGraph:
    return CrateGraph(
        crates={
            "test": Crate("test", Path("library/test"), deps=("std", "core")),
            "std": Crate("std", Path("library/std"), deps=("core", "alloc")),
            "alloc": Crate("alloc", Path("library/alloc"), deps=("core",)),
            "core": Crate("core", Path("library/core")),
            "rustc-main": Crate("rustc-main", Path("compiler/rustc"), deps=("rustc_driver",)),
            "rustc_driver": Crate(
                "rustc_driver", Path("compiler/rustc_driver"), deps=("rustc_middle",)
            ),
            "rustc_middle": Crate("rustc_middle", Path("compiler/rustc_middle")),
        }
    )


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    root = tmp_path / "src-root"
    for relative in SOURCE_FILES:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("// source\n", encoding="utf-8")
        os.utime(path, (SOURCE_MTIME, SOURCE_MTIME))
    return root


@pytest.fixture
def make_config(tmp_path: Path, source_tree: Path) -> Callable[..., BuildConfig]:
    def _make(**overrides: Any) -> BuildConfig:
        options: dict[str, Any] = {"src": source_tree, "out": tmp_path / "build", "build": HOST}
        options.update(overrides)
        return BuildConfig.initialize(**options)

    return _make


@pytest.fixture
def runner() -> InProcessRunner:
    return InProcessRunner()


@pytest.fixture
def make_engine(
    crate_graph: CrateGraph,
    runner: InProcessRunner,
) -> Callable[..., InProcessEngine]:
    def _make(config: BuildConfig, *, with_runner: CargoRunner | None = None) -> InProcessEngine:
        context = BuildContext.create(
            config,
            runner=with_runner if with_runner is not None else runner,
            crates=crate_graph,
        )
        return InProcessEngine(context)

    return _make


@pytest.fixture
def failing_runner() -> Callable[..., FailingRunner]:
    def _make(*modes: Mode) -> FailingRunner:
        return FailingRunner(fail_modes=frozenset(modes))

    return _make


@pytest.fixture
def snapshot() -> Callable[[Path], dict[str, bytes]]:
    """Map of relative path to bytes for every file under a directory."""

    def _snapshot(root: Path) -> dict[str, bytes]:
        if not root.exists():
            return {}
        return {
            str(path.relative_to(root)): path.read_bytes()
            for path in sorted(root.rglob("*"))
            if path.is_file()
        }

    return _snapshot
