"""Check-mode build units for the library, the compiler and auxiliary tools.

Every unit is built by the stage 0 compiler and follows the same sequence:
ensure the dependency unit, run cargo, publish the artifacts into the sysroot,
then write the unit's stamp. A unit whose stamp is still fresh skips cargo but
publishes again, which is a no-op when the sysroot is intact.

Dependency chain for one target: library -> compiler -> tool.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from bootstage.cargo import CargoCommand, prepare_cargo
from bootstage.engine import BuildContext, Engine, UnitResult, ensure_dependency
from bootstage.errors import BuildFailedError, StampError
from bootstage.layout import BuildRoot
from bootstage.models import BuildConfig, Compiler, Mode, SourceType, TargetSelection, ToolIdentity
from bootstage.stamp import fingerprint


def library_stamp(root: BuildRoot, compiler: Compiler, target: TargetSelection) -> Path:
    return root.cargo_out(compiler, Mode.LIBRARY, target) / ".library-check.stamp"


def library_test_stamp(root: BuildRoot, compiler: Compiler, target: TargetSelection) -> Path:
    return root.cargo_out(compiler, Mode.LIBRARY, target) / ".library-check-test.stamp"


def compiler_stamp(root: BuildRoot, compiler: Compiler, target: TargetSelection) -> Path:
    return root.cargo_out(compiler, Mode.COMPILER, target) / ".compiler-check.stamp"


def tool_stamp(
    root: BuildRoot,
    compiler: Compiler,
    target: TargetSelection,
    tool: ToolIdentity,
) -> Path:
    return root.cargo_out(compiler, Mode.TOOL, target) / tool.stamp_name


@dataclass(frozen=True, slots=True)
class LibraryCheck:
    target: TargetSelection

    name = "library"

    def describe(self) -> str:
        return f"{self.name}({self.target})"

    def stamp_path(self, context: BuildContext) -> Path:
        return library_stamp(context.root, context.seed_compiler(), self.target)

    def run(self, engine: Engine) -> UnitResult:
        ctx = engine.context
        config = ctx.config
        compiler = ctx.seed_compiler()
        sources = (config.src / "library",)

        command = _prepare(ctx, compiler, Mode.LIBRARY, self.target, config.library_manifest)
        _log_start(ctx, self.name, compiler, self.target, "artifacts")
        result = _run_unit(
            ctx,
            unit=self.name,
            command=command,
            stamp=library_stamp(ctx.root, compiler, self.target),
            sources=sources,
            dependencies=(),
            publish=True,
        )

        # Test targets of the library crates depend on a crate that cargo
        # assumes is already in the sysroot, so this pass only runs after the
        # first one has been published.
        if config.all_targets:
            test_command = _prepare(
                ctx, compiler, Mode.LIBRARY, self.target, config.library_manifest
            )
            test_command.target_dir = ctx.root.test_stage_out(compiler, Mode.LIBRARY)
            test_command.out_dir = ctx.root.test_cargo_out(compiler, Mode.LIBRARY, self.target)
            test_command.all_targets = True
            for krate in ctx.crates.in_tree_crates(config.library_crate):
                test_command.package(krate)
            _log_start(ctx, self.name, compiler, self.target, "test/bench/example targets")
            _run_unit(
                ctx,
                unit=f"{self.name}-test",
                command=test_command,
                stamp=library_test_stamp(ctx.root, compiler, self.target),
                sources=sources,
                dependencies=(result,),
                publish=False,
            )
        return result


@dataclass(frozen=True, slots=True)
class CompilerCheck:
    target: TargetSelection

    name = "compiler"

    def describe(self) -> str:
        return f"{self.name}({self.target})"

    def stamp_path(self, context: BuildContext) -> Path:
        return compiler_stamp(context.root, context.seed_compiler(), self.target)

    def run(self, engine: Engine) -> UnitResult:
        ctx = engine.context
        config = ctx.config
        compiler = ctx.seed_compiler()

        library = ensure_dependency(engine, LibraryCheck(self.target), dependent=self.describe())

        command = _prepare(ctx, compiler, Mode.COMPILER, self.target, config.compiler_manifest)
        command.all_targets = config.all_targets
        # Selecting every compiler crate explicitly makes cargo check their
        # tests and benches too, not only the leaf crate.
        for krate in ctx.crates.in_tree_crates(config.compiler_crate):
            command.package(krate)

        _log_start(ctx, self.name, compiler, self.target, "artifacts")
        return _run_unit(
            ctx,
            unit=self.name,
            command=command,
            stamp=compiler_stamp(ctx.root, compiler, self.target),
            sources=(config.src / "compiler",),
            dependencies=(library,),
            publish=True,
        )


@dataclass(frozen=True, slots=True)
class ToolCheck:
    """Check one auxiliary tool that links against the compiler crates."""

    tool: ToolIdentity
    target: TargetSelection

    @classmethod
    def named(cls, config: BuildConfig, name: str, target: TargetSelection) -> ToolCheck:
        return cls(tool=config.tool(name), target=target)

    @property
    def name(self) -> str:
        return self.tool.name

    def describe(self) -> str:
        return f"{self.tool.name}({self.target})"

    def stamp_path(self, context: BuildContext) -> Path:
        return tool_stamp(context.root, context.seed_compiler(), self.target, self.tool)

    def run(self, engine: Engine) -> UnitResult:
        ctx = engine.context
        config = ctx.config
        compiler = ctx.seed_compiler()

        compiler_result = ensure_dependency(
            engine, CompilerCheck(self.target), dependent=self.describe()
        )

        command = _prepare(
            ctx,
            compiler,
            Mode.TOOL,
            self.target,
            f"{self.tool.path}/Cargo.toml",
            source_type=self.tool.source_type,
        )
        command.all_targets = config.all_targets

        _log_start(ctx, self.tool.name, compiler, self.target, "artifacts")
        return _run_unit(
            ctx,
            unit=self.tool.name,
            command=command,
            stamp=tool_stamp(ctx.root, compiler, self.target, self.tool),
            sources=(config.src / self.tool.path,),
            dependencies=(compiler_result,),
            publish=True,
        )


def tool_checks(config: BuildConfig, target: TargetSelection) -> tuple[ToolCheck, ...]:
    return tuple(ToolCheck(tool=tool, target=target) for tool in config.tools)


def _prepare(
    ctx: BuildContext,
    compiler: Compiler,
    mode: Mode,
    target: TargetSelection,
    manifest: str,
    *,
    source_type: SourceType = SourceType.IN_TREE,
) -> CargoCommand:
    config = ctx.config
    return prepare_cargo(
        cargo=config.cargo,
        kind=config.kind,
        compiler=compiler,
        mode=mode,
        target=target,
        manifest_path=config.src / manifest,
        target_dir=ctx.root.stage_out(compiler, mode),
        out_dir=ctx.root.cargo_out(compiler, mode, target),
        rustc=config.initial_rustc,
        sysroot=ctx.root.sysroot(compiler),
        source_type=source_type,
        deny_warnings=config.deny_warnings,
        rustflags=config.rustflags,
        env=dict(config.env),
    )


def _log_start(
    ctx: BuildContext,
    unit: str,
    compiler: Compiler,
    target: TargetSelection,
    what: str,
) -> None:
    ctx.logger.log(
        operation="start",
        unit=unit,
        stage=compiler.stage,
        target=target.triple,
        message=f"Checking {unit} {what} ({compiler.host} -> {target})",
    )


def _run_unit(
    ctx: BuildContext,
    *,
    unit: str,
    command: CargoCommand,
    stamp: Path,
    sources: Sequence[Path],
    dependencies: Sequence[UnitResult],
    publish: bool,
) -> UnitResult:
    compiler = command.compiler
    target = command.target
    expected = fingerprint(command, [ctx.stamps.digest(dep.stamp) for dep in dependencies])

    freshness = ctx.stamps.check(stamp, fingerprint=expected, sources=sources)
    if freshness.fresh and freshness.record is not None:
        ctx.logger.log(
            operation="up_to_date",
            unit=unit,
            stage=compiler.stage,
            target=target.triple,
            message=f"{unit} is up to date",
            extra={"stamp": str(stamp)},
        )
        artifacts = freshness.record.paths
        if publish:
            _publish(ctx, unit, compiler, target, artifacts)
        return UnitResult(unit=unit, stamp=stamp, artifacts=artifacts, fresh=True)

    ctx.logger.log(
        operation="build",
        unit=unit,
        stage=compiler.stage,
        target=target.triple,
        message=f"running cargo {command.subcommand}",
        extra={"reason": freshness.reason, "argv": list(command.argv())},
    )
    outcome = ctx.runner.invoke_build(command)
    if not outcome.ok:
        ctx.logger.log(
            operation="build",
            unit=unit,
            stage=compiler.stage,
            target=target.triple,
            message=f"cargo {command.subcommand} failed",
            level="error",
            extra={"returncode": outcome.returncode},
        )
        raise BuildFailedError(
            f"cargo {command.subcommand} failed for {unit}.",
            hint="Check the compiler diagnostics above.",
            context={
                "unit": unit,
                "target": target.triple,
                "returncode": str(outcome.returncode),
                "stderr": outcome.stderr[:2000],
                "command": " ".join(command.argv()),
            },
        )

    if publish:
        _publish(ctx, unit, compiler, target, outcome.artifacts)

    record = ctx.stamps.record(unit=unit, fingerprint=expected, artifacts=outcome.artifacts)
    try:
        ctx.stamps.write(stamp, record)
    except OSError as exc:
        raise StampError(
            "Failed to write stamp file.",
            context={"unit": unit, "stamp": str(stamp), "error": str(exc)},
        ) from exc
    ctx.logger.log(
        operation="stamp",
        unit=unit,
        stage=compiler.stage,
        target=target.triple,
        message=f"wrote {stamp.name}",
        extra={"artifacts": len(record.artifacts)},
    )
    return UnitResult(unit=unit, stamp=stamp, artifacts=outcome.artifacts)


def _publish(
    ctx: BuildContext,
    unit: str,
    compiler: Compiler,
    target: TargetSelection,
    artifacts: Sequence[Path],
) -> None:
    libdir = ctx.root.sysroot_libdir(compiler, target)
    hostdir = ctx.root.sysroot_libdir(compiler, compiler.host)
    report = ctx.publisher.publish(artifacts, libdir=libdir, hostdir=hostdir)
    ctx.logger.log(
        operation="publish",
        unit=unit,
        stage=compiler.stage,
        target=target.triple,
        message=f"published {len(report.copied)} file(s), {len(report.unchanged)} unchanged",
        extra={"libdir": str(libdir), "hostdir": str(hostdir)},
    )
