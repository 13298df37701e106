"""Failure categorization for code samples."""

import re
from enum import Enum


class FailureKind(Enum):
    """Why a sample failed."""

    SYNTAX = "syntax"  # Sample does not compile
    IMPORT = "import"  # Module not found, wrong import path
    ASSERTION = "assertion"  # Ran, but an expected value did not match
    TIMEOUT = "timeout"  # Deadline exceeded
    RUNTIME = "runtime"  # Any other exception


class ErrorAnalyzer:
    """Categorize failures reported by the sandbox."""

    SYNTAX_PATTERNS = [
        r"SyntaxError",
        r"IndentationError",
        r"TabError",
    ]

    IMPORT_PATTERNS = [
        r"ModuleNotFoundError",
        r"ImportError",
        r"No module named",
    ]

    def categorize(
        self,
        exception_type: str | None,
        exception_message: str | None = None,
        timed_out: bool = False,
    ) -> FailureKind:
        """Determine the failure kind.

        Args:
            exception_type: The exception class name, if any.
            exception_message: The error message.
            timed_out: Whether the sample exceeded its deadline.

        Returns:
            The FailureKind for the failure.
        """
        if timed_out:
            return FailureKind.TIMEOUT

        exc_type = exception_type or ""
        combined = f"{exc_type} {exception_message or ''}"

        if any(re.search(p, exc_type) for p in self.SYNTAX_PATTERNS):
            return FailureKind.SYNTAX

        if any(re.search(p, combined) for p in self.IMPORT_PATTERNS):
            return FailureKind.IMPORT

        if exc_type == "AssertionError":
            return FailureKind.ASSERTION

        return FailureKind.RUNTIME
