"""Cargo command construction and verb selection."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from bootstage.models import Compiler, Kind, Mode, SourceType, TargetSelection


def cargo_subcommand(kind: Kind) -> str:
    return kind.value


def verb_args(kind: Kind) -> tuple[str, ...]:
    """Arguments passed after ``--`` to the driver for a verb."""
    if kind is Kind.LINT:
        return ("--", "--cap-lints", "warn")
    return ()


@dataclass(slots=True)
class CargoCommand:
    """One cargo invocation over a crate graph.

    Mutable while a unit assembles it; ``argv()`` renders the final command.
    """

    cargo: str
    subcommand: str
    compiler: Compiler
    mode: Mode
    target: TargetSelection
    manifest_path: Path
    target_dir: Path
    out_dir: Path
    rustc: str
    sysroot: Path | None = None
    packages: list[str] = field(default_factory=list)
    all_targets: bool = False
    rustflags: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    trailing: list[str] = field(default_factory=list)

    def package(self, name: str) -> CargoCommand:
        if name not in self.packages:
            self.packages.append(name)
        return self

    def argv(self) -> tuple[str, ...]:
        target_arg = self.target.file or self.target.triple
        cmd = [
            self.cargo,
            self.subcommand,
            "--manifest-path",
            str(self.manifest_path),
            "--target",
            target_arg,
            "--target-dir",
            str(self.target_dir),
            "--release",
            "--message-format",
            "json-render-diagnostics",
        ]
        if self.all_targets:
            cmd.append("--all-targets")
        for name in self.packages:
            cmd.extend(["-p", name])
        cmd.extend(self.trailing)
        return tuple(cmd)

    def environment(self) -> dict[str, str]:
        env = dict(sorted(self.env.items()))
        env["RUSTC"] = self.rustc
        env["RUSTC_STAGE"] = str(self.compiler.stage)
        flags = list(self.rustflags)
        if self.sysroot is not None:
            # Crates resolve `std` and the compiler crates from the sysroot
            # earlier units published into, not from the seed toolchain's own.
            env["RUSTC_SYSROOT"] = str(self.sysroot)
            flags.append(f"--sysroot={self.sysroot}")
        if flags:
            env["RUSTFLAGS"] = " ".join(flags)
        return env

    def describe(self) -> dict[str, object]:
        return {
            "argv": list(self.argv()),
            "env": self.environment(),
        }


def prepare_cargo(
    *,
    cargo: str,
    kind: Kind,
    compiler: Compiler,
    mode: Mode,
    target: TargetSelection,
    manifest_path: Path,
    target_dir: Path,
    out_dir: Path,
    rustc: str,
    sysroot: Path | None = None,
    source_type: SourceType = SourceType.IN_TREE,
    deny_warnings: bool = True,
    rustflags: tuple[str, ...] = (),
    env: dict[str, str] | None = None,
) -> CargoCommand:
    flags = list(rustflags)
    if deny_warnings and source_type is SourceType.IN_TREE and "-Dwarnings" not in flags:
        flags.append("-Dwarnings")
    return CargoCommand(
        cargo=cargo,
        subcommand=cargo_subcommand(kind),
        compiler=compiler,
        mode=mode,
        target=target,
        manifest_path=manifest_path,
        target_dir=target_dir,
        out_dir=out_dir,
        rustc=rustc,
        sysroot=sysroot,
        rustflags=flags,
        env=dict(env or {}),
        trailing=list(verb_args(kind)),
    )
