"""Tests for the doctest runner."""

import pytest

from src.analysis.errors import FailureKind
from src.docs.document import Document
from src.harness.runner import (
    CaseStatus,
    DoctestRunner,
    RunnerOptions,
    SampleSkipped,
)
from src.harness.sandbox import (
    DEFAULT_CONTEXT,
    ExecutionResult,
    ExecutionStatus,
    SampleFailure,
)

TWO_SAMPLES = """# Guide

```python
print("ok")
```

```python
raise RuntimeError("boom")
```
"""


class FakeSandbox:
    """Records evaluations; fails samples whose code contains ``raise``."""

    def __init__(self):
        self.calls = []

    def evaluate(self, sample, options):
        self.calls.append((sample, options))
        if "raise" in sample.code:
            raise SampleFailure(
                "RuntimeError: boom",
                file_name=str(sample.source_file),
                line_number=sample.start_line,
                column_number=1,
            )
        return ExecutionResult(status=ExecutionStatus.SUCCESS)


@pytest.fixture
def sandbox():
    return FakeSandbox()


@pytest.fixture
def runner(sandbox, reporter):
    return DoctestRunner(sandbox=sandbox, reporter=reporter)


class TestRunnerOptions:
    def test_default_timeout(self):
        assert RunnerOptions().default_timeout_ms == 2000

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError, match="positive"):
            RunnerOptions(default_timeout_ms=0)


class TestBuildCases:
    def test_one_case_per_sample(self, runner, make_document):
        cases = runner.build_cases(make_document(TWO_SAMPLES))
        assert [c.name for c in cases] == [
            'guide: print("ok")',
            'guide: raise RuntimeError("boom")',
        ]
        assert all(c.scope_label == "guide" for c in cases)

    def test_duplicate_names_get_suffix(self, runner, make_document):
        document = make_document("```python\nx = 1\n```\n\n```python\nx = 1\n```\n")
        assert [c.name for c in runner.build_cases(document)] == ["guide: x = 1", "guide: x = 1 #2"]

    def test_deterministic(self, runner, make_document):
        document = make_document(TWO_SAMPLES)
        assert runner.build_cases(document) == runner.build_cases(document)


class TestRegister:
    def test_registers_in_document_order(self, runner, sandbox, make_document):
        registered = []
        cases = runner.register(make_document(TWO_SAMPLES), lambda name, body: registered.append((name, body)))

        assert [name for name, _ in registered] == [c.name for c in cases]
        assert len(registered) == 2
        # Registration does not evaluate anything.
        assert sandbox.calls == []

    def test_bodies_run_their_own_sample(self, runner, sandbox, make_document):
        registered = []
        runner.register(make_document(TWO_SAMPLES), lambda name, body: registered.append(body))

        result = registered[0]()
        assert result.status == ExecutionStatus.SUCCESS
        assert sandbox.calls[0][0].code == 'print("ok")'

    def test_extraction_error_aborts_registration(self, runner, make_document):
        registered = []
        document = make_document("```python\nx = 1\n```\n<!-- doctest:options:oops -->\n```python\ny\n```\n")
        with pytest.raises(ValueError):
            runner.register(document, lambda name, body: registered.append(name))
        assert registered == []


class TestRunCase:
    def test_passes_context_and_timeout(self, runner, sandbox, make_document):
        case = runner.build_cases(make_document(TWO_SAMPLES))[0]
        runner.run_case(case)

        _, options = sandbox.calls[0]
        assert options.timeout_ms == 2000
        assert dict(options.context) == dict(DEFAULT_CONTEXT)

    def test_context_is_copied_read_only(self, sandbox, reporter, make_document):
        context = {"dumps": "json:dumps"}
        runner = DoctestRunner(sandbox=sandbox, reporter=reporter, context=context)
        context["loads"] = "json:loads"

        assert dict(runner.context) == {"dumps": "json:dumps"}
        with pytest.raises(TypeError):
            runner.context["other"] = "os"

    def test_sample_timeout_option(self, runner, sandbox, make_document):
        document = make_document('<!-- doctest:options:{"timeout": 5000} -->\n```python\nx = 1\n```\n')
        runner.run_case(runner.build_cases(document)[0])
        assert sandbox.calls[0][1].timeout_ms == 5000

    def test_invalid_timeout_option_fails_the_sample(self, runner, sandbox, console_output, make_document):
        document = make_document('<!-- doctest:options:{"timeout": "soon"} -->\n```python\nx = 1\n```\n')
        with pytest.raises(SampleFailure, match="invalid timeout option 'soon'") as excinfo:
            runner.run_case(runner.build_cases(document)[0])

        assert excinfo.value.line_number == 3
        assert sandbox.calls == []
        assert f"at {document.file_path}:3:1" in console_output.getvalue()

    def test_success_emits_no_diagnostic(self, runner, console_output, make_document):
        runner.run_case(runner.build_cases(make_document(TWO_SAMPLES))[0])
        assert console_output.getvalue() == ""

    def test_failure_reported_then_reraised(self, runner, console_output, make_document):
        case = runner.build_cases(make_document(TWO_SAMPLES))[1]
        with pytest.raises(SampleFailure) as excinfo:
            runner.run_case(case)

        assert excinfo.value.line_number == 8
        output = console_output.getvalue()
        assert f"at {case.sample.source_file}:8:1" in output
        assert 'raise RuntimeError("boom")' in output

    def test_disabled_sample_skipped(self, runner, sandbox, make_document):
        document = make_document("<!-- doctest:disable -->\n```python\nx = 1\n```\n")
        with pytest.raises(SampleSkipped):
            runner.run_case(runner.build_cases(document)[0])
        assert sandbox.calls == []


class TestRun:
    def test_failure_does_not_stop_siblings(self, runner, make_document):
        document = make_document(
            "```python\nraise RuntimeError('first')\n```\n\n```python\nprint('second')\n```\n"
        )
        summary = runner.run([document])

        assert [o.status for o in summary.outcomes] == [CaseStatus.FAILED, CaseStatus.PASSED]
        assert summary.outcomes[0].failure.message == "RuntimeError: boom"
        assert not summary.passed

    def test_invalid_timeout_option_does_not_stop_siblings(self, runner, sandbox, make_document):
        document = make_document(
            "```python\nx = 1\n```\n\n"
            '<!-- doctest:options:{"timeout": "soon"} -->\n```python\ny = 2\n```\n\n'
            "```python\nz = 3\n```\n"
        )
        summary = runner.run([document])

        assert [o.status for o in summary.outcomes] == [
            CaseStatus.PASSED,
            CaseStatus.FAILED,
            CaseStatus.PASSED,
        ]
        failure = summary.outcomes[1].failure
        assert failure.message == "invalid timeout option 'soon'"
        assert failure.line_number == 7
        assert [call[0].code for call in sandbox.calls] == ["x = 1", "z = 3"]

    def test_progress_and_counts(self, runner, make_document):
        first = make_document(TWO_SAMPLES, name="first.md")
        second = make_document("<!-- doctest:disable -->\n```python\nx\n```\n", name="second.md")
        progress = []

        summary = runner.run([first, second], lambda current, total, desc: progress.append((current, total)))

        assert progress == [(1, 3), (2, 3), (3, 3)]
        assert summary.count(CaseStatus.PASSED) == 1
        assert summary.count(CaseStatus.FAILED) == 1
        assert summary.count(CaseStatus.SKIPPED) == 1

    def test_empty_run_passes(self, runner):
        assert runner.run([]).passed


class TestEndToEnd:
    """Real subprocess evaluation of a two-sample document."""

    def test_ok_and_boom(self, reporter, console_output, make_document):
        runner = DoctestRunner(reporter=reporter)
        document = make_document(TWO_SAMPLES)

        summary = runner.run([document])

        assert len(summary.outcomes) == 2
        ok, boom = summary.outcomes
        assert ok.status == CaseStatus.PASSED
        assert ok.result.stdout == "ok"
        assert boom.status == CaseStatus.FAILED
        assert boom.failure.kind == FailureKind.RUNTIME
        assert boom.failure.line_number == 8

        output = console_output.getvalue()
        assert output.count("Markdown Doctest is failed") == 1
        assert 'raise RuntimeError("boom")' in output
        assert f"at {document.file_path}:8:" in output


class TestShippedExamples:
    def test_examples_document(self, runner, sample_doc_path):
        cases = runner.build_cases(Document.read(sample_doc_path))

        assert len(cases) == 5
        assert all(c.name.startswith("docs: ") for c in cases)
        assert [c.sample.disabled for c in cases] == [False, False, False, True, False]
        assert cases[-1].sample.options["timeout"] == 5000
