"""Markdown documents that carry code samples."""

import fnmatch
from dataclasses import dataclass
from pathlib import Path

DEFAULT_PATTERNS = ("*.md", "*.markdown")


@dataclass(frozen=True)
class Document:
    """A documentation file and its text."""

    file_path: Path
    content: str

    @classmethod
    def read(cls, file_path: Path | str) -> "Document":
        """Read a document from disk as UTF-8."""
        path = Path(file_path)
        return cls(file_path=path, content=path.read_text(encoding="utf-8"))

    @property
    def scope_label(self) -> str:
        """Name of the directory enclosing the document."""
        return self.file_path.resolve().parent.name


def matches(path: Path, patterns: tuple[str, ...] | list[str]) -> bool:
    """Check whether a file name matches any of the glob patterns."""
    return any(fnmatch.fnmatch(path.name, pattern) for pattern in patterns)


def discover(
    paths: list[Path],
    patterns: tuple[str, ...] | list[str] = DEFAULT_PATTERNS,
) -> list[Path]:
    """Expand files and directories into a sorted list of documents.

    Args:
        paths: Files or directories to search.
        patterns: File name globs selecting documents inside directories.

    Returns:
        Unique document paths, directories searched recursively.
    """
    found: set[Path] = set()
    for path in paths:
        path = Path(path)
        if path.is_dir():
            for candidate in path.rglob("*"):
                if candidate.is_file() and matches(candidate, patterns):
                    found.add(candidate)
        elif path.is_file():
            found.add(path)
        else:
            raise FileNotFoundError(f"Document not found: {path}")
    return sorted(found)
