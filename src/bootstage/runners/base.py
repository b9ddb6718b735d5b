"""Protocol for the external crate-graph compiler."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from bootstage.cargo import CargoCommand


@dataclass(frozen=True, slots=True)
class BuildOutcome:
    returncode: int
    artifacts: tuple[Path, ...] = ()
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CargoRunner(Protocol):
    name: str

    def invoke_build(self, command: CargoCommand) -> BuildOutcome:
        """Run ``command`` to completion and report the artifacts it produced."""
