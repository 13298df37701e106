"""Doctest harness components."""

from .extractor import CodeExtractor, CodeSample, ExtractionError
from .naming import build_test_name, unique_names
from .reporter import FailureReporter
from .runner import CaseStatus, DoctestCase, DoctestRunner, RunnerOptions, RunSummary, SampleSkipped
from .sandbox import (
    DEFAULT_CONTEXT,
    DoctestOptions,
    ExecutionResult,
    ExecutionStatus,
    Sandbox,
    SampleFailure,
    SampleTimeout,
)

__all__ = [
    "CodeExtractor",
    "CodeSample",
    "ExtractionError",
    "build_test_name",
    "unique_names",
    "FailureReporter",
    "CaseStatus",
    "DoctestCase",
    "DoctestRunner",
    "RunnerOptions",
    "RunSummary",
    "SampleSkipped",
    "DEFAULT_CONTEXT",
    "DoctestOptions",
    "ExecutionResult",
    "ExecutionStatus",
    "Sandbox",
    "SampleFailure",
    "SampleTimeout",
]
