"""Human-readable test names for code samples."""

import re
from collections import Counter

from .extractor import CodeSample

MAX_NAME_CODE_LENGTH = 64

_NEWLINE_PATTERN = re.compile(r"[\r\n]")


def build_test_name(sample: CodeSample, scope_label: str) -> str:
    """Build the test name for a sample.

    The name is the scope label followed by the first 64 characters of the
    code, with every carriage return and line feed replaced by ``_``.
    Two samples sharing a prefix get the same name.
    """
    prefix = _NEWLINE_PATTERN.sub("_", sample.code[:MAX_NAME_CODE_LENGTH])
    return f"{scope_label}: {prefix}"


def unique_names(names: list[str]) -> list[str]:
    """Suffix repeated names with ``#2``, ``#3``... keeping the first as is."""
    seen: Counter[str] = Counter()
    result = []
    for name in names:
        seen[name] += 1
        result.append(name if seen[name] == 1 else f"{name} #{seen[name]}")
    return result
