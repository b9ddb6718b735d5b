"""Typed pipeline error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers surfaced to the invoking layer."""

    VALIDATION = "E_VALIDATION"
    BUILD_FAILED = "E_BUILD_FAILED"
    PUBLISH_FAILED = "E_PUBLISH_FAILED"
    DEPENDENCY_UNSATISFIED = "E_DEPENDENCY_UNSATISFIED"
    STAMP = "E_STAMP"


class BootstageError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(BootstageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class BuildFailedError(BootstageError):
    """The external crate-graph compiler exited non-zero."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BUILD_FAILED, hint=hint, context=context)


class PublishFailedError(BootstageError):
    """Copying artifacts into a sysroot failed; the unit stamp stays unwritten."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.PUBLISH_FAILED, hint=hint, context=context)


class DependencyUnsatisfiedError(BootstageError):
    """A depended-on unit failed, so the dependent unit never started."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.DEPENDENCY_UNSATISFIED,
            hint=hint,
            context=context,
        )


class StampError(BootstageError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.STAMP, hint=hint, context=context)


__all__ = [
    "BootstageError",
    "BuildFailedError",
    "DependencyUnsatisfiedError",
    "ErrorCode",
    "PublishFailedError",
    "StampError",
    "ValidationError",
]
