"""Dependency resolution for build units.

``Engine`` is the seam to whatever scheduler drives the pipeline. Units only
rely on ``ensure``: it blocks until the requested unit has been built and
returns its result, running each distinct request at most once.
``InProcessEngine`` is the reference implementation used by ``run_check`` and
the tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from bootstage.crates import CrateGraph
from bootstage.errors import BootstageError, DependencyUnsatisfiedError, ValidationError
from bootstage.layout import BuildRoot
from bootstage.models import BuildConfig, Compiler
from bootstage.observability import StructuredLogger
from bootstage.runners.base import CargoRunner
from bootstage.runners.local import LocalCargoRunner
from bootstage.stamp import StampTracker
from bootstage.sysroot import SysrootPublisher


@dataclass(frozen=True, slots=True)
class UnitResult:
    """Handle to a finished unit: its stamp and the artifacts it published."""

    unit: str
    stamp: Path
    artifacts: tuple[Path, ...] = ()
    fresh: bool = False


@dataclass(slots=True)
class BuildContext:
    config: BuildConfig
    root: BuildRoot
    runner: CargoRunner
    crates: CrateGraph
    stamps: StampTracker = field(default_factory=StampTracker)
    publisher: SysrootPublisher = field(default_factory=SysrootPublisher)
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    @classmethod
    def create(
        cls,
        config: BuildConfig,
        *,
        runner: CargoRunner | None = None,
        crates: CrateGraph | None = None,
        logger: StructuredLogger | None = None,
    ) -> BuildContext:
        if crates is None:
            manifests = [config.library_manifest, config.compiler_manifest]
            manifests.extend(f"{tool.path}/Cargo.toml" for tool in config.tools)
            crates = CrateGraph.discover(src=config.src, manifests=manifests, cargo=config.cargo)
        return cls(
            config=config,
            root=BuildRoot(config.out),
            runner=runner if runner is not None else LocalCargoRunner(),
            crates=crates,
            logger=logger if logger is not None else StructuredLogger(),
        )

    def seed_compiler(self) -> Compiler:
        return Compiler(stage=0, host=self.config.build)


class BuildRequest(Protocol):
    def describe(self) -> str:
        """Short human-readable unit name."""

    def run(self, engine: Engine) -> UnitResult:
        """Build the unit, ensuring its dependencies first."""


class Engine(Protocol):
    context: BuildContext

    def ensure(self, request: BuildRequest) -> UnitResult:
        """Return the memoized result of ``request``, building it if needed."""


@dataclass(slots=True)
class InProcessEngine:
    """Single-threaded memoizing engine.

    Results and failures are both memoized, so a request never runs twice in
    one engine. Re-entering a request that is still running is a cycle.
    """

    context: BuildContext
    results: dict[BuildRequest, UnitResult] = field(default_factory=dict)
    failures: dict[BuildRequest, BootstageError] = field(default_factory=dict)
    _active: list[BuildRequest] = field(default_factory=list)

    def ensure(self, request: BuildRequest) -> UnitResult:
        if request in self.results:
            return self.results[request]
        if request in self.failures:
            raise self.failures[request]
        if request in self._active:
            chain = [item.describe() for item in self._active] + [request.describe()]
            raise ValidationError(
                "Dependency cycle between build units.",
                context={"cycle": " -> ".join(chain)},
            )

        self._active.append(request)
        try:
            result = request.run(self)
        except BootstageError as exc:
            self.failures[request] = exc
            raise
        finally:
            self._active.pop()
        self.results[request] = result
        return result


def ensure_dependency(engine: Engine, dependency: BuildRequest, *, dependent: str) -> UnitResult:
    """Ensure ``dependency``; its failure means ``dependent`` cannot start."""
    try:
        return engine.ensure(dependency)
    except BootstageError as exc:
        raise DependencyUnsatisfiedError(
            f"{dependent} cannot start because {dependency.describe()} failed.",
            hint="Fix the failing dependency and rerun.",
            context={
                "unit": dependent,
                "dependency": dependency.describe(),
                "cause": exc.code,
            },
        ) from exc
