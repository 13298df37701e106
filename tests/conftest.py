"""Shared fixtures for the doctest harness tests."""

import io
from pathlib import Path

import pytest
from rich.console import Console

from src.docs.document import Document
from src.harness.reporter import FailureReporter


@pytest.fixture
def make_document(tmp_path):
    """Write a Markdown document under ``tmp_path/guide`` and return it."""

    def _make(content: str, name: str = "README.md") -> Document:
        doc_dir = tmp_path / "guide"
        doc_dir.mkdir(exist_ok=True)
        path = doc_dir / name
        path.write_text(content, encoding="utf-8")
        return Document.read(path)

    return _make


@pytest.fixture
def console_output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def reporter(console_output) -> FailureReporter:
    """Reporter writing into a buffer instead of stderr."""
    console = Console(file=console_output, width=200, highlight=False, color_system=None)
    return FailureReporter(console=console)


@pytest.fixture
def sample_doc_path() -> Path:
    """Path to the documentation examples shipped with the repository."""
    return Path(__file__).parent.parent / "docs" / "examples.md"
