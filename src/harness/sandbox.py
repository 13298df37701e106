"""Isolated code execution sandbox."""

import json
import os
import subprocess
import sys
import tempfile
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from ..analysis.errors import ErrorAnalyzer, FailureKind
from .extractor import CodeSample

DEFAULT_TIMEOUT_MS = 2000

# Globals injected into every sample: name -> "module" or "module:attribute".
DEFAULT_CONTEXT: Mapping[str, str] = MappingProxyType(
    {
        "urlparse": "urllib.parse:urlparse",
        "urlunparse": "urllib.parse:urlunparse",
        "urljoin": "urllib.parse:urljoin",
        "urlencode": "urllib.parse:urlencode",
        "parse_qs": "urllib.parse:parse_qs",
        "quote": "urllib.parse:quote",
        "unquote": "urllib.parse:unquote",
    }
)


class ExecutionStatus(Enum):
    """Status of code execution."""

    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"
    SYNTAX_ERROR = "syntax_error"


@dataclass
class ExecutionResult:
    """Result of code execution in sandbox."""

    status: ExecutionStatus
    stdout: str = ""
    stderr: str = ""
    exception_type: str | None = None
    exception_message: str | None = None
    traceback: str | None = None
    file_name: str | None = None
    line_number: int | None = None
    column_number: int | None = None
    execution_time_ms: float = 0
    exit_code: int = 0


@dataclass(frozen=True)
class DoctestOptions:
    """Options for evaluating one sample."""

    context: Mapping[str, str] = field(default_factory=lambda: DEFAULT_CONTEXT)
    timeout_ms: int = DEFAULT_TIMEOUT_MS


class SampleFailure(Exception):
    """A sample raised, failed an expectation, or did not compile."""

    def __init__(
        self,
        message: str,
        file_name: str | None = None,
        line_number: int | None = None,
        column_number: int | None = None,
        kind: FailureKind = FailureKind.RUNTIME,
        result: ExecutionResult | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.file_name = file_name
        self.line_number = line_number
        self.column_number = column_number
        self.kind = kind
        self.result = result

    @property
    def exception_type(self) -> str | None:
        return self.result.exception_type if self.result else None

    @property
    def traceback(self) -> str | None:
        return self.result.traceback if self.result else None

    @property
    def stdout(self) -> str | None:
        return self.result.stdout if self.result else None

    @property
    def stderr(self) -> str | None:
        return self.result.stderr if self.result else None

    @classmethod
    def from_result(cls, result: ExecutionResult) -> "SampleFailure":
        """Build the failure matching an unsuccessful result."""
        timed_out = result.status == ExecutionStatus.TIMEOUT
        kind = ErrorAnalyzer().categorize(
            result.exception_type,
            result.exception_message,
            timed_out=timed_out,
        )

        if result.exception_type and result.exception_message:
            message = f"{result.exception_type}: {result.exception_message}"
        elif result.exception_type:
            message = result.exception_type
        elif result.exception_message:
            message = result.exception_message
        else:
            last_line = result.stderr.strip().splitlines()[-1:] or [""]
            message = last_line[0] or f"Sample exited with code {result.exit_code}"

        failure_class = SampleTimeout if timed_out else cls
        return failure_class(
            message,
            file_name=result.file_name,
            line_number=result.line_number,
            column_number=result.column_number,
            kind=kind,
            result=result,
        )


class SampleTimeout(SampleFailure):
    """A sample did not finish before its deadline."""


@dataclass
class Sandbox:
    """Isolated execution environment for code samples.

    Each sample runs in a fresh interpreter. By default that is the
    interpreter running the harness; ``venv_path`` selects another one.
    """

    venv_path: Path | None = None
    working_dir: Path | None = None
    env_vars: dict[str, str] = field(default_factory=dict)

    @property
    def python_executable(self) -> Path:
        """Path to the Python executable used for samples."""
        if self.venv_path is None:
            return Path(sys.executable)
        if sys.platform == "win32":
            return self.venv_path / "Scripts" / "python.exe"
        return self.venv_path / "bin" / "python"

    def evaluate(self, sample: CodeSample, options: DoctestOptions) -> ExecutionResult:
        """Execute a sample and raise if it did not succeed.

        Args:
            sample: The code sample to run.
            options: Evaluation context and deadline.

        Returns:
            The successful ExecutionResult.

        Raises:
            SampleTimeout: If the deadline elapsed.
            SampleFailure: If the sample raised or did not compile.
        """
        result = self.execute(sample, options)
        if result.status == ExecutionStatus.SUCCESS:
            return result
        raise SampleFailure.from_result(result)

    def execute(self, sample: CodeSample, options: DoctestOptions) -> ExecutionResult:
        """Execute a sample in a subprocess.

        Args:
            sample: The code sample to run.
            options: Evaluation context and deadline.

        Returns:
            ExecutionResult with execution details.
        """
        file_name = str(sample.source_file)
        timeout_seconds = options.timeout_ms / 1000

        with tempfile.TemporaryDirectory(prefix="doctest_") as tmp:
            tmp_dir = Path(tmp)

            payload_file = tmp_dir / "payload.json"
            payload_file.write_text(
                json.dumps(
                    {
                        "code": sample.code,
                        "file_name": file_name,
                        "start_line": sample.start_line,
                        "start_column": sample.start_column,
                        "context": dict(options.context),
                    }
                ),
                encoding="utf-8",
            )
            runner_file = tmp_dir / "_runner.py"
            runner_file.write_text(RUNNER_SCRIPT, encoding="utf-8")

            env = os.environ.copy()
            env.setdefault("PYTHONIOENCODING", "utf-8")
            env.update(self.env_vars)

            start_time = time.monotonic()

            try:
                proc = subprocess.run(
                    [str(self.python_executable), str(runner_file), str(payload_file)],
                    stdin=subprocess.DEVNULL,
                    capture_output=True,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    timeout=timeout_seconds,
                    cwd=str(self._working_dir(sample)),
                    env=env,
                )
            except subprocess.TimeoutExpired as e:
                return ExecutionResult(
                    status=ExecutionStatus.TIMEOUT,
                    stdout=_decode(e.stdout),
                    stderr=_decode(e.stderr),
                    exception_message=f"Sample timed out after {options.timeout_ms} ms",
                    file_name=file_name,
                    line_number=sample.start_line,
                    column_number=sample.start_column,
                    execution_time_ms=options.timeout_ms,
                )

            execution_time_ms = (time.monotonic() - start_time) * 1000
            return self._parse_result(proc, execution_time_ms, file_name)

    def _working_dir(self, sample: CodeSample) -> Path:
        if self.working_dir is not None:
            return self.working_dir
        return sample.source_file.resolve().parent

    def _parse_result(
        self,
        proc_result: subprocess.CompletedProcess,
        execution_time_ms: float,
        file_name: str,
    ) -> ExecutionResult:
        """Parse the structured output from the runner."""
        stdout = proc_result.stdout
        stderr = proc_result.stderr

        # Extract structured result
        try:
            start_marker = "__RESULT_START__"
            end_marker = "__RESULT_END__"

            if start_marker in stdout and end_marker in stdout:
                start = stdout.rindex(start_marker) + len(start_marker)
                end = stdout.rindex(end_marker)
                result_data = json.loads(stdout[start:end].strip())

                # Clean stdout (remove result markers)
                clean_stdout = stdout[: stdout.rindex(start_marker)].rstrip("\n")

                return ExecutionResult(
                    status=ExecutionStatus(result_data["status"]),
                    stdout=clean_stdout,
                    stderr=stderr,
                    exception_type=result_data.get("exception_type"),
                    exception_message=result_data.get("exception_message"),
                    traceback=result_data.get("traceback"),
                    file_name=result_data.get("file_name") or file_name,
                    line_number=result_data.get("line_number"),
                    column_number=result_data.get("column_number"),
                    execution_time_ms=execution_time_ms,
                    exit_code=proc_result.returncode,
                )
        except (json.JSONDecodeError, KeyError, ValueError):
            pass

        # Fallback: the runner died before reporting (e.g. os._exit in the sample)
        return ExecutionResult(
            status=ExecutionStatus.SUCCESS if proc_result.returncode == 0 else ExecutionStatus.ERROR,
            stdout=stdout,
            stderr=stderr,
            file_name=file_name,
            execution_time_ms=execution_time_ms,
            exit_code=proc_result.returncode,
        )


def _decode(output: str | bytes | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


RUNNER_SCRIPT = r'''
import ast
import importlib
import io
import json
import os
import sys
import tokenize
import traceback

EXPECT = "__doctest_expect__"


def expect(actual, expected):
    if actual != expected:
        raise AssertionError(f"expected {expected!r}, got {actual!r}")


def as_expression(text):
    """Normalized source of `text` if it is a single expression, else None."""
    if not text.strip():
        return None
    try:
        return ast.unparse(ast.parse(text.strip(), mode="eval"))
    except SyntaxError:
        return None


def expectation_comments(code):
    """Row -> (column, text) of `# =>` comments ending a one-line statement."""
    skipped = (tokenize.NL, tokenize.COMMENT, tokenize.INDENT, tokenize.DEDENT, tokenize.ENCODING)
    comments = {}
    try:
        tokens = list(tokenize.generate_tokens(io.StringIO(code).readline))
    except (tokenize.TokenError, SyntaxError):
        # Left to compile() to report
        return comments

    statement_row = None
    for token, following in zip(tokens, tokens[1:]):
        if token.type == tokenize.NEWLINE:
            statement_row = None
        elif token.type not in skipped and statement_row is None:
            statement_row = token.start[0]
        elif (
            token.type == tokenize.COMMENT
            and token.string.startswith("# =>")
            and following.type == tokenize.NEWLINE
            and token.start[0] == statement_row
        ):
            comments[token.start[0]] = (token.start[1], token.string[len("# =>"):])
    return comments


def rewrite_expectations(code):
    """Turn `expr  # => expected` lines into equality checks on the same line."""
    lines = code.split("\n")
    for row, (column, expected) in expectation_comments(code).items():
        head = lines[row - 1][:column]
        expression = as_expression(head)
        expected = as_expression(expected) if expression else None
        if expected is not None:
            indent = head[: len(head) - len(head.lstrip())]
            lines[row - 1] = f"{indent}{EXPECT}(({expression}), ({expected}))"
    return "\n".join(lines)


def resolve(reference):
    module_name, _, attribute = reference.partition(":")
    value = importlib.import_module(module_name)
    for part in filter(None, attribute.split(".")):
        value = getattr(value, part)
    return value


def locate(error, file_name):
    if isinstance(error, SyntaxError) and error.filename == file_name:
        return error.lineno, error.offset
    frames = [f for f in traceback.extract_tb(error.__traceback__) if f.filename == file_name]
    if not frames:
        return None, None
    frame = frames[-1]
    column = getattr(frame, "colno", None)
    return frame.lineno, column + 1 if column is not None else None


def main():
    with open(sys.argv[1], encoding="utf-8") as f:
        payload = json.load(f)

    # Samples import relative to the working directory, not this script.
    sys.path[0] = os.getcwd()

    file_name = payload["file_name"]
    result = {
        "status": "success",
        "exception_type": None,
        "exception_message": None,
        "traceback": None,
        "file_name": file_name,
        "line_number": None,
        "column_number": None,
    }

    error = None
    try:
        namespace = {"__name__": "__main__", "__file__": file_name, EXPECT: expect}
        for name, reference in payload["context"].items():
            namespace[name] = resolve(reference)

        source = "\n" * (payload["start_line"] - 1) + rewrite_expectations(payload["code"])
        exec(compile(source, file_name, "exec"), namespace)

    except SyntaxError as e:
        result["status"] = "syntax_error"
        error = e

    except SystemExit as e:
        if e.code not in (None, 0):
            result["status"] = "error"
            error = e

    except Exception as e:
        result["status"] = "error"
        error = e

    if error is not None:
        line_number, column_number = locate(error, file_name)
        if column_number is not None:
            column_number += payload["start_column"] - 1
        result["exception_type"] = type(error).__name__
        result["exception_message"] = str(error)
        result["traceback"] = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        result["line_number"] = line_number
        result["column_number"] = column_number

    # Output structured result
    sys.stdout.flush()
    print("\n__RESULT_START__", file=sys.__stdout__)
    print(json.dumps(result), file=sys.__stdout__)
    print("__RESULT_END__", file=sys.__stdout__)


if __name__ == "__main__":
    main()
'''
