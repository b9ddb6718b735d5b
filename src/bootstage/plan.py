"""Select the units a run should build and drive them through an engine."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath

from bootstage.crates import CrateGraph
from bootstage.engine import BuildContext, BuildRequest, Engine, InProcessEngine, UnitResult
from bootstage.models import BuildConfig, TargetSelection
from bootstage.observability import StructuredLogger
from bootstage.runners.base import CargoRunner
from bootstage.units import CompilerCheck, LibraryCheck, ToolCheck


@dataclass(frozen=True, slots=True)
class UnitDescription:
    name: str
    paths: tuple[str, ...]
    make: Callable[[TargetSelection], BuildRequest]
    only_hosts: bool = True
    default: bool = True

    def matches(self, path: str) -> bool:
        wanted = PurePosixPath(path.strip("/"))
        for own in self.paths:
            candidate = PurePosixPath(own)
            if wanted == candidate or candidate in wanted.parents or wanted in candidate.parents:
                return True
        return False


def unit_descriptions(config: BuildConfig) -> tuple[UnitDescription, ...]:
    descriptions = [
        UnitDescription(
            name="library",
            paths=("library",),
            make=LibraryCheck,
            only_hosts=False,
        ),
        UnitDescription(name="compiler", paths=("compiler",), make=CompilerCheck),
    ]
    for tool in config.tools:
        descriptions.append(
            UnitDescription(
                name=tool.name,
                paths=(tool.path,),
                make=lambda target, tool=tool: ToolCheck(tool=tool, target=target),
            )
        )
    return tuple(descriptions)


def plan_requests(config: BuildConfig, paths: Sequence[str] = ()) -> list[BuildRequest]:
    """Requests for the units matching ``paths``, or every default unit."""
    requests: list[BuildRequest] = []
    for description in unit_descriptions(config):
        if paths:
            if not any(description.matches(path) for path in paths):
                continue
        elif not description.default:
            continue
        for target in _targets_for(config, only_hosts=description.only_hosts):
            request = description.make(target)
            if request not in requests:
                requests.append(request)
    return requests


def execute(engine: Engine, requests: Iterable[BuildRequest]) -> list[UnitResult]:
    return [engine.ensure(request) for request in requests]


def run_check(
    config: BuildConfig,
    paths: Sequence[str] = (),
    *,
    runner: CargoRunner | None = None,
    crates: CrateGraph | None = None,
    logger: StructuredLogger | None = None,
) -> list[UnitResult]:
    context = BuildContext.create(config, runner=runner, crates=crates, logger=logger)
    engine = InProcessEngine(context)
    return execute(engine, plan_requests(config, paths))


def _targets_for(config: BuildConfig, *, only_hosts: bool) -> tuple[TargetSelection, ...]:
    if not only_hosts:
        return config.targets
    return tuple(target for target in config.targets if target in config.hosts)
