"""Cargo runner interfaces and implementations."""

from .base import BuildOutcome, CargoRunner
from .inprocess import InProcessRunner
from .local import LocalCargoRunner, collect_artifacts

__all__ = [
    "BuildOutcome",
    "CargoRunner",
    "InProcessRunner",
    "LocalCargoRunner",
    "collect_artifacts",
]
