"""Core typed dataclasses for targets, compilers, verbs and build configuration."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from bootstage.errors import ValidationError

DEFAULT_LIBRARY_CRATE = "test"
DEFAULT_LIBRARY_MANIFEST = "library/test/Cargo.toml"
DEFAULT_COMPILER_CRATE = "rustc-main"
DEFAULT_COMPILER_MANIFEST = "compiler/rustc/Cargo.toml"


class Mode(StrEnum):
    """What a cargo invocation builds; the value names its stage output directory."""

    LIBRARY = "std"
    COMPILER = "rustc"
    TOOL = "tools"


class SourceType(StrEnum):
    IN_TREE = "in-tree"
    SUBMODULE = "submodule"


class Kind(StrEnum):
    """Verb selected for a pipeline run."""

    CHECK = "check"
    FIX = "fix"
    LINT = "clippy"


@dataclass(frozen=True, slots=True)
class TargetSelection:
    """A target triple, optionally backed by a custom target spec file."""

    triple: str
    file: str | None = None

    @classmethod
    def from_user(cls, selection: str) -> TargetSelection:
        if not selection:
            raise ValidationError(
                "Target selection cannot be empty.",
                hint="Pass a target triple such as `x86_64-unknown-linux-gnu`.",
            )
        path = Path(selection)
        if path.suffix == ".json":
            return cls(triple=path.stem, file=selection)
        return cls(triple=selection)

    def __str__(self) -> str:
        return self.triple


@dataclass(frozen=True, slots=True)
class Compiler:
    """The toolchain instance performing a build: a stage on a host."""

    stage: int
    host: TargetSelection

    def is_seed(self) -> bool:
        return self.stage == 0


@dataclass(frozen=True, slots=True)
class ToolIdentity:
    name: str
    path: str
    source_type: SourceType = SourceType.IN_TREE

    @property
    def stamp_name(self) -> str:
        return f".{self.name.lower()}-check.stamp"


RUSTDOC = ToolIdentity(name="rustdoc", path="src/tools/rustdoc")
# Clippy lives in a subtree rather than a submodule; treating it as in-tree
# keeps new warnings fatal.
CLIPPY = ToolIdentity(name="clippy", path="src/tools/clippy")
BOOTSTRAP = ToolIdentity(name="bootstrap", path="src/bootstrap")

DEFAULT_TOOLS: tuple[ToolIdentity, ...] = (RUSTDOC, CLIPPY, BOOTSTRAP)


@dataclass(frozen=True, slots=True)
class BuildConfig:
    src: Path
    out: Path
    build: TargetSelection
    hosts: tuple[TargetSelection, ...]
    targets: tuple[TargetSelection, ...]
    kind: Kind = Kind.CHECK
    all_targets: bool = False
    deny_warnings: bool = True
    cargo: str = "cargo"
    initial_rustc: str = "rustc"
    rustflags: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    library_crate: str = DEFAULT_LIBRARY_CRATE
    library_manifest: str = DEFAULT_LIBRARY_MANIFEST
    compiler_crate: str = DEFAULT_COMPILER_CRATE
    compiler_manifest: str = DEFAULT_COMPILER_MANIFEST
    tools: tuple[ToolIdentity, ...] = DEFAULT_TOOLS

    @classmethod
    def initialize(
        cls,
        *,
        src: str | Path,
        out: str | Path,
        build: str,
        hosts: Iterable[str] = (),
        targets: Iterable[str] = (),
        kind: Kind | str = Kind.CHECK,
        all_targets: bool = False,
        deny_warnings: bool = True,
        cargo: str = "cargo",
        initial_rustc: str = "rustc",
        rustflags: Iterable[str] = (),
        env: Mapping[str, str] | None = None,
        library_crate: str = DEFAULT_LIBRARY_CRATE,
        library_manifest: str = DEFAULT_LIBRARY_MANIFEST,
        compiler_crate: str = DEFAULT_COMPILER_CRATE,
        compiler_manifest: str = DEFAULT_COMPILER_MANIFEST,
        tools: Iterable[ToolIdentity] = DEFAULT_TOOLS,
    ) -> BuildConfig:
        """Normalize user-facing values into a validated configuration.

        Hosts default to the build triple and targets default to the hosts.
        Crate roots and manifests are stripped; manifests must be relative to
        ``src``.
        """
        build_target = TargetSelection.from_user(build)
        host_targets = _dedupe_targets(hosts) or (build_target,)
        target_targets = _dedupe_targets(targets) or host_targets

        try:
            verb = Kind(kind)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown verb `{kind}`.",
                hint="Use one of: " + ", ".join(k.value for k in Kind),
            ) from exc

        roots = {
            "library_crate": library_crate.strip(),
            "library_manifest": library_manifest.strip(),
            "compiler_crate": compiler_crate.strip(),
            "compiler_manifest": compiler_manifest.strip(),
        }
        for key, value in roots.items():
            if not value:
                raise ValidationError(f"`{key}` cannot be empty.")
        for key in ("library_manifest", "compiler_manifest"):
            if Path(roots[key]).is_absolute():
                raise ValidationError(
                    f"`{key}` must be relative to the source root.",
                    context={key: roots[key]},
                )

        tool_list = tuple(tools)
        for tool in tool_list:
            if not tool.name or "/" in tool.name or "\\" in tool.name:
                raise ValidationError(
                    f"Invalid tool name `{tool.name}`.",
                    hint="Tool names become stamp file names and cannot contain path separators.",
                    context={"tool": tool.name},
                )
        # Stamp names are lowercased, so names differing only in case collide.
        stamp_names = [tool.stamp_name for tool in tool_list]
        if len(set(stamp_names)) != len(stamp_names):
            raise ValidationError(
                "Tool names must be unique ignoring case.",
                hint="Two tools sharing a name would share a stamp file.",
                context={"tools": ", ".join(tool.name for tool in tool_list)},
            )

        return cls(
            src=Path(src),
            out=Path(out),
            build=build_target,
            hosts=host_targets,
            targets=target_targets,
            kind=verb,
            all_targets=all_targets,
            deny_warnings=deny_warnings,
            cargo=cargo,
            initial_rustc=initial_rustc,
            rustflags=tuple(rustflags),
            env=dict(env or {}),
            tools=tool_list,
            library_crate=roots["library_crate"],
            library_manifest=roots["library_manifest"],
            compiler_crate=roots["compiler_crate"],
            compiler_manifest=roots["compiler_manifest"],
        )

    def tool(self, name: str) -> ToolIdentity:
        for tool in self.tools:
            if tool.name == name:
                return tool
        raise ValidationError(
            f"Unknown tool `{name}`.",
            context={"known": ", ".join(tool.name for tool in self.tools)},
        )


def _dedupe_targets(items: Iterable[str]) -> tuple[TargetSelection, ...]:
    seen: set[TargetSelection] = set()
    out: list[TargetSelection] = []
    for item in items:
        target = TargetSelection.from_user(item)
        if target not in seen:
            seen.add(target)
            out.append(target)
    return tuple(out)
