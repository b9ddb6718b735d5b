"""In-tree crate classification from ``cargo metadata`` output."""

from __future__ import annotations

import json
import subprocess
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bootstage.errors import ValidationError


@dataclass(frozen=True, slots=True)
class Crate:
    name: str
    path: Path
    deps: tuple[str, ...] = ()


@dataclass(slots=True)
class CrateGraph:
    crates: dict[str, Crate] = field(default_factory=dict)

    @classmethod
    def from_metadata(cls, payloads: Iterable[Mapping[str, Any]]) -> CrateGraph:
        """Build the graph from one or more ``cargo metadata --no-deps`` documents.

        Only packages without a registry/git ``source`` are in-tree; dependency
        edges keep path dependencies only.
        """
        graph = cls()
        for payload in payloads:
            packages = payload.get("packages")
            if not isinstance(packages, list):
                raise ValidationError("Cargo metadata is missing a `packages` list.")
            for package in packages:
                graph._add_package(package)
        return graph

    @classmethod
    def discover(
        cls,
        *,
        src: Path,
        manifests: Iterable[str],
        cargo: str = "cargo",
    ) -> CrateGraph:
        payloads = [_cargo_metadata(cargo=cargo, manifest=src / manifest) for manifest in manifests]
        return cls.from_metadata(payloads)

    def in_tree_crates(self, root: str) -> list[str]:
        """Return ``root`` and every in-tree crate reachable from it, depth first."""
        if root not in self.crates:
            raise ValidationError(
                f"Crate `{root}` is not part of the in-tree crate graph.",
                hint="Check that its manifest was included in crate discovery.",
                context={"root": root},
            )
        ordered: list[str] = []
        pending = [root]
        visited = {root}
        while pending:
            crate = self.crates[pending.pop()]
            ordered.append(crate.name)
            for dep in crate.deps:
                if dep in self.crates and dep not in visited:
                    visited.add(dep)
                    pending.append(dep)
        return ordered

    def _add_package(self, package: Any) -> None:
        if not isinstance(package, dict):
            raise ValidationError("Invalid package entry in cargo metadata.")
        name = package.get("name")
        manifest_path = package.get("manifest_path")
        if not isinstance(name, str) or not isinstance(manifest_path, str):
            raise ValidationError("Cargo metadata package lacks `name` or `manifest_path`.")
        if package.get("source") is not None:
            return

        deps: list[str] = []
        for dep in package.get("dependencies", []):
            if not isinstance(dep, dict) or dep.get("source") is not None:
                continue
            dep_name = dep.get("name")
            if isinstance(dep_name, str) and dep_name not in deps:
                deps.append(dep_name)
        self.crates[name] = Crate(name=name, path=Path(manifest_path).parent, deps=tuple(deps))


def _cargo_metadata(*, cargo: str, manifest: Path) -> dict[str, Any]:
    cmd = [
        cargo,
        "metadata",
        "--format-version",
        "1",
        "--no-deps",
        "--manifest-path",
        str(manifest),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True, check=False)
    if result.returncode != 0:
        raise ValidationError(
            "cargo metadata failed.",
            hint="Check that the manifest exists and cargo is in PATH.",
            context={
                "operation": "crate_discovery",
                "manifest": str(manifest),
                "returncode": str(result.returncode),
                "stderr": result.stderr[:2000] if result.stderr else "",
            },
        )
    try:
        parsed = json.loads(result.stdout)
    except json.JSONDecodeError as exc:
        raise ValidationError(
            "cargo metadata produced invalid JSON.",
            context={"manifest": str(manifest)},
        ) from exc
    if not isinstance(parsed, dict):
        raise ValidationError("cargo metadata produced an unexpected document.")
    return parsed
