"""Run the Python samples in the documentation as tests."""

from src.harness.pytest_plugin import MarkdownDoctest

pytest_collect_file = MarkdownDoctest(patterns=["examples.md"]).pytest()
