"""In-process cargo runner for testing and development.

Produces deterministic placeholder metadata files without invoking cargo,
one per selected package (or one for the manifest's crate when no ``-p``
selector is given). Every invocation is recorded in ``invocations``.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

from bootstage.cargo import CargoCommand
from bootstage.runners.base import BuildOutcome


@dataclass(slots=True)
class InProcessRunner:
    name: str = "inprocess"
    invocations: list[CargoCommand] = field(default_factory=list)

    def invoke_build(self, command: CargoCommand) -> BuildOutcome:
        self.invocations.append(command)
        deps_dir = command.out_dir / "deps"
        deps_dir.mkdir(parents=True, exist_ok=True)

        crates = list(command.packages) or [command.manifest_path.parent.name]
        rendered = " ".join(command.argv())
        artifacts = []
        for crate in crates:
            identity = (
                f"{command.manifest_path}:{crate}:{command.mode.value}"
                f":{command.target.triple}:{command.compiler.stage}"
            )
            suffix = hashlib.sha256(identity.encode()).hexdigest()[:16]
            artifact_path = deps_dir / f"lib{crate.replace('-', '_')}-{suffix}.rmeta"
            content = (
                f"bootstage-artifact: crate={crate} mode={command.mode.value}\n"
                f"target={command.target.triple}\n"
                f"command={rendered}\n"
            )
            artifact_path.write_text(content, encoding="utf-8")
            artifacts.append(artifact_path)
        return BuildOutcome(returncode=0, artifacts=tuple(artifacts))
