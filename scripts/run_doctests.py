#!/usr/bin/env python3
"""Run the code samples of Markdown documents without pytest."""

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.docs.document import DEFAULT_PATTERNS, Document, discover
from src.harness.extractor import DEFAULT_LANGUAGES, CodeExtractor
from src.harness.runner import CaseStatus, DoctestRunner, RunnerOptions, RunSummary
from src.harness.sandbox import DEFAULT_TIMEOUT_MS, Sandbox

STATUS_STYLES = {
    CaseStatus.PASSED: "green",
    CaseStatus.FAILED: "red",
    CaseStatus.SKIPPED: "yellow",
}


def env_timeout_ms() -> int:
    value = os.getenv("MARKDOWN_DOCTEST_TIMEOUT_MS")
    if not value:
        return DEFAULT_TIMEOUT_MS
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"MARKDOWN_DOCTEST_TIMEOUT_MS must be an integer, got {value!r}") from None


def env_languages() -> list[str]:
    value = os.getenv("MARKDOWN_DOCTEST_LANGUAGES")
    if not value:
        return list(DEFAULT_LANGUAGES)
    return [lang.strip() for lang in value.split(",") if lang.strip()]


def print_summary(summary: RunSummary, console: Console):
    table = Table(title="Markdown Doctest")
    table.add_column("Sample")
    table.add_column("Location")
    table.add_column("Status")

    for outcome in summary.outcomes:
        sample = outcome.case.sample
        style = STATUS_STYLES[outcome.status]
        status = outcome.status.value
        if outcome.failure is not None:
            status = f"{status} ({outcome.failure.kind.value})"
        table.add_row(
            escape(outcome.case.name),
            escape(f"{sample.source_file}:{sample.start_line}"),
            f"[{style}]{status}[/{style}]",
        )

    console.print(table)
    console.print(
        f"{summary.count(CaseStatus.PASSED)} passed, "
        f"{summary.count(CaseStatus.FAILED)} failed, "
        f"{summary.count(CaseStatus.SKIPPED)} skipped"
    )


def main():
    # Load environment
    load_dotenv()

    parser = argparse.ArgumentParser(description="Run code samples embedded in Markdown documents")

    parser.add_argument(
        "paths",
        nargs="*",
        type=Path,
        default=[Path("docs")],
        help="Documents or directories to test",
    )
    parser.add_argument(
        "--pattern",
        dest="patterns",
        action="append",
        default=None,
        help=f"File name glob inside directories (default: {', '.join(DEFAULT_PATTERNS)})",
    )
    parser.add_argument(
        "--language",
        dest="languages",
        action="append",
        default=None,
        help="Fence language to run (repeatable)",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help=f"Per-sample deadline in milliseconds (default: {DEFAULT_TIMEOUT_MS})",
    )
    parser.add_argument(
        "--venv",
        type=Path,
        default=None,
        help="Virtual environment whose interpreter runs the samples",
    )

    args = parser.parse_args()

    console = Console()

    try:
        options = RunnerOptions(default_timeout_ms=args.timeout_ms or env_timeout_ms())
        paths = discover(args.paths, args.patterns or DEFAULT_PATTERNS)
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(2)

    runner = DoctestRunner(
        sandbox=Sandbox(venv_path=args.venv),
        options=options,
        extractor=CodeExtractor(args.languages or env_languages()),
    )
    documents = [Document.read(path) for path in paths]

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Running samples...", total=None)

        def progress_callback(current: int, total: int, description: str):
            progress.update(task, total=total, completed=current, description=escape(f"[{current}/{total}] {description}"))

        try:
            summary = runner.run(documents, progress_callback)
        except KeyboardInterrupt:
            console.print("\n[yellow]Run interrupted[/yellow]")
            sys.exit(1)

    print_summary(summary, console)
    sys.exit(0 if summary.passed else 1)


if __name__ == "__main__":
    main()
