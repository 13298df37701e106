"""Doctest runner: one named test case per code sample."""

from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from types import MappingProxyType
from typing import Callable, Mapping

from ..docs.document import Document
from .extractor import CodeExtractor, CodeSample
from .naming import build_test_name, unique_names
from .reporter import FailureReporter
from .sandbox import (
    DEFAULT_CONTEXT,
    DEFAULT_TIMEOUT_MS,
    DoctestOptions,
    ExecutionResult,
    Sandbox,
    SampleFailure,
)

CaseBody = Callable[[], ExecutionResult]
RegisterCase = Callable[[str, CaseBody], None]


class SampleSkipped(Exception):
    """A sample is disabled with a ``doctest:disable`` directive."""


class CaseStatus(Enum):
    """Final state of a test case."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class RunnerOptions:
    """Configuration shared by every sample in a run."""

    default_timeout_ms: int = DEFAULT_TIMEOUT_MS

    def __post_init__(self):
        if self.default_timeout_ms <= 0:
            raise ValueError(f"Timeout must be positive, got {self.default_timeout_ms} ms")


@dataclass(frozen=True)
class DoctestCase:
    """A sample paired with its test name."""

    name: str
    sample: CodeSample
    scope_label: str


@dataclass
class CaseOutcome:
    """Result of running one case outside a test framework."""

    case: DoctestCase
    status: CaseStatus
    failure: SampleFailure | None = None
    result: ExecutionResult | None = None


@dataclass
class RunSummary:
    """Outcomes of a run, in execution order."""

    outcomes: list[CaseOutcome] = field(default_factory=list)

    def count(self, status: CaseStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def passed(self) -> bool:
        return self.count(CaseStatus.FAILED) == 0


class DoctestRunner:
    """Turn document samples into test cases and run them.

    The evaluation context is copied once and shared read-only by every
    sample of the run.
    """

    def __init__(
        self,
        sandbox: Sandbox | None = None,
        reporter: FailureReporter | None = None,
        context: Mapping[str, str] = DEFAULT_CONTEXT,
        options: RunnerOptions | None = None,
        extractor: CodeExtractor | None = None,
    ):
        self.sandbox = sandbox or Sandbox()
        self.reporter = reporter or FailureReporter()
        self.context = MappingProxyType(dict(context))
        self.options = options or RunnerOptions()
        self.extractor = extractor or CodeExtractor()

    def build_cases(self, document: Document) -> list[DoctestCase]:
        """Extract the document's samples and name them.

        Repeated names get a numeric suffix so every case is addressable.
        """
        samples = self.extractor.extract(document)
        scope_label = document.scope_label
        names = unique_names([build_test_name(sample, scope_label) for sample in samples])
        return [
            DoctestCase(name=name, sample=sample, scope_label=scope_label)
            for name, sample in zip(names, samples)
        ]

    def register(self, document: Document, register_case: RegisterCase) -> list[DoctestCase]:
        """Register one case per sample, in document order.

        Args:
            document: The document to extract samples from.
            register_case: Framework hook called with each case name and a
                zero-argument body that runs the case.

        Returns:
            The registered cases.
        """
        cases = self.build_cases(document)
        for case in cases:
            register_case(case.name, partial(self.run_case, case))
        return cases

    def doctest_options(self, sample: CodeSample) -> DoctestOptions:
        """Options for one sample: the run context and its deadline.

        Raises:
            SampleFailure: If the sample's ``timeout`` option is not a
                positive number of milliseconds.
        """
        timeout_ms = sample.options.get("timeout", self.options.default_timeout_ms)
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, (int, float)) or timeout_ms <= 0:
            raise SampleFailure(
                f"invalid timeout option {timeout_ms!r}",
                file_name=str(sample.source_file),
                line_number=sample.start_line,
                column_number=sample.start_column,
            )
        return DoctestOptions(context=self.context, timeout_ms=timeout_ms)

    def run_case(self, case: DoctestCase) -> ExecutionResult:
        """Evaluate a case, reporting and re-raising any failure.

        Raises:
            SampleSkipped: If the sample is disabled.
            SampleFailure: If evaluation failed or timed out.
        """
        sample = case.sample
        if sample.disabled:
            raise SampleSkipped(f"{case.name} is disabled")

        try:
            return self.sandbox.evaluate(sample, self.doctest_options(sample))
        except SampleFailure as failure:
            self.reporter.report(failure, sample.code)
            raise

    def run(
        self,
        documents: list[Document],
        progress_callback: Callable[[int, int, str], None] | None = None,
    ) -> RunSummary:
        """Run every case of every document sequentially.

        Args:
            documents: Documents to test.
            progress_callback: Optional callback (current, total, description).

        Returns:
            RunSummary with one outcome per case.
        """
        cases: list[DoctestCase] = []
        bodies: list[CaseBody] = []
        for document in documents:
            cases.extend(self.register(document, lambda _name, body: bodies.append(body)))
        registered = list(zip(cases, bodies))

        summary = RunSummary()
        for current, (case, body) in enumerate(registered, start=1):
            if progress_callback:
                progress_callback(current, len(registered), case.name)

            try:
                result = body()
            except SampleSkipped:
                summary.outcomes.append(CaseOutcome(case=case, status=CaseStatus.SKIPPED))
            except SampleFailure as failure:
                summary.outcomes.append(
                    CaseOutcome(case=case, status=CaseStatus.FAILED, failure=failure)
                )
            else:
                summary.outcomes.append(
                    CaseOutcome(case=case, status=CaseStatus.PASSED, result=result)
                )

        return summary
