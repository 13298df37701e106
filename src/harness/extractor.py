"""Extract code samples from Markdown documents."""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from ..docs.document import Document

DEFAULT_LANGUAGES = ("python", "py", "python3")


class ExtractionError(ValueError):
    """A document holds a directive that cannot be understood."""


@dataclass(frozen=True)
class CodeSample:
    """One fenced code block found in a document."""

    code: str
    language: str
    source_file: Path
    start_line: int  # 1-based line of the first code line
    start_column: int = 1
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    disabled: bool = False


@dataclass
class _Directives:
    disabled: bool = False
    options: dict = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return not self.disabled and not self.options


class CodeExtractor:
    """Extract fenced code blocks from Markdown, in document order.

    Blocks may be preceded by HTML comment directives:

        <!-- doctest:disable -->
        <!-- doctest:options:{"timeout": 5000} -->

    Unknown directive names are ignored.

    A fence may be indented by up to three spaces, counted from the content
    indent of the enclosing list item, if any. Deeper fences belong to an
    indented code block and are plain text.
    """

    FENCE_OPEN_PATTERN = re.compile(r"^(?P<indent>[ \t]*)(?P<fence>`{3,}|~{3,})(?P<info>.*)$")

    LIST_ITEM_PATTERN = re.compile(r"^(?P<marker>[ \t]*(?:[-*+]|\d{1,9}[.)])[ \t]+)\S")

    MAX_FENCE_INDENT = 3

    DIRECTIVE_PATTERN = re.compile(
        r"^\s*<!--\s*doctest:(?P<name>[\w-]+)(?::(?P<value>.*?))?\s*-->\s*$"
    )

    def __init__(self, languages: tuple[str, ...] | list[str] = DEFAULT_LANGUAGES):
        self.languages = tuple(lang.lower() for lang in languages)

    def extract(self, document: Document) -> list[CodeSample]:
        """Extract all samples in a selected language.

        Args:
            document: The document to scan.

        Returns:
            List of CodeSample objects in document order.

        Raises:
            ExtractionError: If a doctest directive is malformed.
        """
        lines = split_lines(document.content)
        samples = []
        directives = _Directives()
        list_indent = 0
        index = 0

        while index < len(lines):
            line = lines[index]

            directive = self.DIRECTIVE_PATTERN.match(line)
            if directive:
                self._apply_directive(directive, directives, document.file_path, index + 1)
                index += 1
                continue

            opening = self._match_fence(line, list_indent)
            if opening is None:
                if line.strip():
                    if not directives.empty:
                        directives = _Directives()
                    list_indent = self._list_indent(line, list_indent)
                index += 1
                continue

            indent, fence, info = opening
            start_line = index + 2
            body, index = self._read_block(lines, index + 1, indent, fence)
            language = info.split()[0].lower() if info.split() else ""

            if language in self.languages:
                samples.append(
                    CodeSample(
                        code="\n".join(body),
                        language=language,
                        source_file=document.file_path,
                        start_line=start_line,
                        start_column=len(indent) + 1,
                        options=MappingProxyType(dict(directives.options)),
                        disabled=directives.disabled,
                    )
                )
            directives = _Directives()

        return samples

    def _list_indent(self, line: str, current: int) -> int:
        """Content indent of the list item a non-blank line opens or continues."""
        item = self.LIST_ITEM_PATTERN.match(line)
        if item:
            return _width(item.group("marker"))
        if _width(line[: len(line) - len(line.lstrip())]) < current:
            return 0
        return current

    def _match_fence(self, line: str, list_indent: int = 0) -> tuple[str, str, str] | None:
        match = self.FENCE_OPEN_PATTERN.match(line)
        if not match:
            return None
        width = _width(match.group("indent"))
        base = list_indent if width >= list_indent else 0
        if width - base > self.MAX_FENCE_INDENT:
            return None
        fence = match.group("fence")
        info = match.group("info").strip()
        # backtick fences cannot carry backticks in their info string
        if fence[0] == "`" and "`" in info:
            return None
        return match.group("indent"), fence, info

    def _read_block(
        self,
        lines: list[str],
        start: int,
        indent: str,
        fence: str,
    ) -> tuple[list[str], int]:
        """Collect block lines up to the closing fence.

        An unterminated block runs to the end of the document.

        Returns:
            The de-indented body and the index of the line after the block.
        """
        closing = re.compile(
            r"^[ \t]*" + re.escape(fence[0]) + "{" + str(len(fence)) + r",}[ \t]*$"
        )
        body = []
        index = start
        while index < len(lines) and not closing.match(lines[index]):
            body.append(self._dedent(lines[index], len(indent)))
            index += 1
        return body, index + 1

    @staticmethod
    def _dedent(line: str, width: int) -> str:
        stripped = 0
        while stripped < width and stripped < len(line) and line[stripped] in " \t":
            stripped += 1
        return line[stripped:]

    def _apply_directive(
        self,
        match: re.Match,
        directives: _Directives,
        file_path: Path,
        line_number: int,
    ) -> None:
        name = match.group("name")
        value = match.group("value")

        if name == "disable":
            directives.disabled = True
        elif name == "options":
            try:
                options = json.loads(value or "")
            except json.JSONDecodeError as e:
                raise ExtractionError(
                    f"{file_path}:{line_number}: invalid doctest options: {e.msg}"
                ) from e
            if not isinstance(options, dict):
                raise ExtractionError(
                    f"{file_path}:{line_number}: doctest options must be a JSON object"
                )
            directives.options.update(options)


def split_lines(text: str) -> list[str]:
    """Split text into lines at line feeds only.

    ``str.splitlines`` also breaks at form feeds and Unicode line separators,
    which editors and the Python tokenizer keep inside a line.
    """
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _width(indent: str) -> int:
    return len(indent.expandtabs(4))
