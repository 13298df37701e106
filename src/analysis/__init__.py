"""Failure analysis."""

from .errors import ErrorAnalyzer, FailureKind

__all__ = [
    "ErrorAnalyzer",
    "FailureKind",
]
