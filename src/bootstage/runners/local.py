"""Cargo execution on the local host.

Runs the rendered cargo command with ``--message-format json-render-diagnostics``
and collects library artifacts from the ``compiler-artifact`` messages.
"""

from __future__ import annotations

import json
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from bootstage.cargo import CargoCommand
from bootstage.errors import BuildFailedError
from bootstage.runners.base import BuildOutcome

LIBRARY_SUFFIXES = (".rlib", ".rmeta", ".so", ".dylib", ".dll", ".a", ".lib")


@dataclass(slots=True)
class LocalCargoRunner:
    name: str = "local"

    def invoke_build(self, command: CargoCommand) -> BuildOutcome:
        env = dict(os.environ)
        env.update(command.environment())
        command.out_dir.mkdir(parents=True, exist_ok=True)

        try:
            result = subprocess.run(
                list(command.argv()),
                env=env,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise BuildFailedError(
                f"Could not run `{command.cargo}`.",
                hint="Ensure cargo is installed and executable, or set `cargo` in the build config.",
                context={
                    "runner": self.name,
                    "operation": "invoke_build",
                    "cargo": command.cargo,
                    "error": str(exc),
                },
            ) from exc
        if result.returncode != 0:
            return BuildOutcome(returncode=result.returncode, stderr=result.stderr or "")
        return BuildOutcome(
            returncode=0,
            artifacts=collect_artifacts(result.stdout),
            stderr=result.stderr or "",
        )


def collect_artifacts(stdout: str) -> tuple[Path, ...]:
    """Extract library artifact paths from cargo's JSON message stream."""
    artifacts: list[Path] = []
    for line in stdout.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(message, dict) or message.get("reason") != "compiler-artifact":
            continue
        target = message.get("target") or {}
        if "custom-build" in target.get("kind", []):
            continue
        for filename in message.get("filenames", []):
            path = Path(filename)
            if path.suffix in LIBRARY_SUFFIXES and path not in artifacts:
                artifacts.append(path)
    return tuple(artifacts)
