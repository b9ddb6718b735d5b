"""Output directory layout shared by every pipeline component.

``BuildRoot`` is passed explicitly instead of living in global state, so each
test can point a pipeline at its own temporary directory::

    out/<host>/stage0-std/<target>/release       cargo output for the library
    out/<host>/stage0-std-test/<target>/release  its test/bench/example pass
    out/<host>/stage0-sysroot/lib/rustlib/<target>/lib
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from bootstage.models import Compiler, Mode, TargetSelection


@dataclass(frozen=True, slots=True)
class BuildRoot:
    out: Path

    def host_out(self, host: TargetSelection) -> Path:
        return self.out / host.triple

    def stage_out(self, compiler: Compiler, mode: Mode) -> Path:
        """Cargo ``--target-dir`` for a compiler building in ``mode``."""
        return self.host_out(compiler.host) / f"stage{compiler.stage}-{mode.value}"

    def cargo_out(self, compiler: Compiler, mode: Mode, target: TargetSelection) -> Path:
        return self.stage_out(compiler, mode) / target.triple / "release"

    def sysroot(self, compiler: Compiler) -> Path:
        if compiler.is_seed():
            return self.host_out(compiler.host) / "stage0-sysroot"
        return self.host_out(compiler.host) / f"stage{compiler.stage}"

    def sysroot_libdir(self, compiler: Compiler, target: TargetSelection) -> Path:
        return self.sysroot(compiler) / "lib" / "rustlib" / target.triple / "lib"

    def test_stage_out(self, compiler: Compiler, mode: Mode) -> Path:
        """Separate ``--target-dir`` for the test/bench/example pass.

        Sharing the primary directory would let that pass rewrite files the
        primary stamp recorded.
        """
        return self.host_out(compiler.host) / f"stage{compiler.stage}-{mode.value}-test"

    def test_cargo_out(self, compiler: Compiler, mode: Mode, target: TargetSelection) -> Path:
        return self.test_stage_out(compiler, mode) / target.triple / "release"
