"""Collect code samples from Markdown files as pytest items.

Wire it up from a ``conftest.py``::

    from src.harness.pytest_plugin import MarkdownDoctest

    pytest_collect_file = MarkdownDoctest(patterns=["*.md"]).pytest()
"""

from pathlib import Path
from typing import Mapping

import pytest

from ..docs.document import DEFAULT_PATTERNS, Document, matches
from .extractor import DEFAULT_LANGUAGES, CodeExtractor
from .reporter import FailureReporter, format_location
from .runner import CaseBody, DoctestCase, DoctestRunner, RunnerOptions, SampleSkipped
from .sandbox import DEFAULT_CONTEXT, DEFAULT_TIMEOUT_MS, Sandbox, SampleFailure


class SampleItem(pytest.Item):
    """One code sample."""

    def __init__(self, *, body: CaseBody, case: DoctestCase, **kwargs):
        super().__init__(**kwargs)
        self.body = body
        self.case = case

    def runtest(self):
        try:
            self.body()
        except SampleSkipped as e:
            pytest.skip(str(e))

    def repr_failure(self, excinfo, style=None):
        failure = excinfo.value
        if isinstance(failure, SampleFailure):
            lines = [f"{format_location(failure)}: {failure.message}"]
            if failure.traceback:
                lines.append(failure.traceback.rstrip())
            return "\n".join(lines)
        return super().repr_failure(excinfo, style=style)

    def reportinfo(self):
        return self.path, self.case.sample.start_line - 1, self.name


class MarkdownFile(pytest.File):
    """A Markdown document whose samples become items."""

    def __init__(self, *, runner: DoctestRunner, **kwargs):
        super().__init__(**kwargs)
        self.runner = runner

    def collect(self):
        document = Document.read(self.path)
        bodies: list[tuple[str, CaseBody]] = []
        cases = self.runner.register(document, lambda name, body: bodies.append((name, body)))
        for case, (name, body) in zip(cases, bodies):
            yield SampleItem.from_parent(self, name=name, body=body, case=case)


class MarkdownDoctest:
    """Configuration for collecting Markdown doctests."""

    def __init__(
        self,
        patterns: tuple[str, ...] | list[str] = DEFAULT_PATTERNS,
        languages: tuple[str, ...] | list[str] = DEFAULT_LANGUAGES,
        context: Mapping[str, str] = DEFAULT_CONTEXT,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        sandbox: Sandbox | None = None,
        reporter: FailureReporter | None = None,
    ):
        self.patterns = tuple(patterns)
        self.runner = DoctestRunner(
            sandbox=sandbox,
            reporter=reporter,
            context=context,
            options=RunnerOptions(default_timeout_ms=timeout_ms),
            extractor=CodeExtractor(languages),
        )

    def pytest(self):
        """Build a ``pytest_collect_file`` hook for a ``conftest.py``."""

        def pytest_collect_file(file_path: Path, parent):
            if matches(file_path, self.patterns):
                return MarkdownFile.from_parent(parent, path=file_path, runner=self.runner)
            return None

        return pytest_collect_file
