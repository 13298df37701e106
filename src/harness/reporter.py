"""Diagnostics for failed code samples."""

from enum import Enum

from rich.console import Console

PLACEHOLDER = "?"
SEPARATOR = "-" * 10


def _field(failure: object, name: str) -> str:
    value = getattr(failure, name, None)
    if value is None or value == "":
        return PLACEHOLDER
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def format_location(failure: object) -> str:
    """``file:line:column`` of a failure, ``?`` for unknown parts."""
    return ":".join(
        _field(failure, name) for name in ("file_name", "line_number", "column_number")
    )


class FailureReporter:
    """Print where a sample failed, followed by the sample itself.

    The reporter only writes; callers re-raise the failure afterwards so the
    test framework still records it.
    """

    def __init__(self, console: Console | None = None):
        self.console = console or Console(stderr=True, highlight=False, soft_wrap=True)

    def format(self, failure: object, code: str | None) -> str:
        """Render the diagnostic for a failure.

        Works on any exception; location fields it lacks render as ``?``.
        """
        location = format_location(failure)
        message = getattr(failure, "message", None) or str(failure) or PLACEHOLDER

        return (
            "Markdown Doctest is failed\n"
            f"  at {location}\n"
            f"  {_field(failure, 'kind')}: {message}\n"
            "\n"
            f"{SEPARATOR}\n"
            f"{code if code is not None else ''}\n"
            f"{SEPARATOR}\n"
        )

    def report(self, failure: object, code: str | None) -> None:
        """Write the diagnostic for a failure to the console."""
        self.console.print(self.format(failure, code), markup=False, emoji=False, highlight=False)
