"""Staged check pipeline for a self-hosting compiler toolchain."""

from .crates import CrateGraph
from .engine import BuildContext, Engine, InProcessEngine, UnitResult
from .errors import (
    BootstageError,
    BuildFailedError,
    DependencyUnsatisfiedError,
    ErrorCode,
    PublishFailedError,
    StampError,
    ValidationError,
)
from .layout import BuildRoot
from .models import (
    BOOTSTRAP,
    CLIPPY,
    RUSTDOC,
    BuildConfig,
    Compiler,
    Kind,
    Mode,
    SourceType,
    TargetSelection,
    ToolIdentity,
)
from .plan import plan_requests, run_check
from .units import CompilerCheck, LibraryCheck, ToolCheck

__all__ = [
    "BOOTSTRAP",
    "CLIPPY",
    "RUSTDOC",
    "BootstageError",
    "BuildConfig",
    "BuildContext",
    "BuildFailedError",
    "BuildRoot",
    "Compiler",
    "CompilerCheck",
    "CrateGraph",
    "DependencyUnsatisfiedError",
    "Engine",
    "ErrorCode",
    "InProcessEngine",
    "Kind",
    "LibraryCheck",
    "Mode",
    "PublishFailedError",
    "SourceType",
    "StampError",
    "TargetSelection",
    "ToolCheck",
    "ToolIdentity",
    "UnitResult",
    "ValidationError",
    "plan_requests",
    "run_check",
]
