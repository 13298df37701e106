"""Documentation management."""

from .document import DEFAULT_PATTERNS, Document, discover

__all__ = ["DEFAULT_PATTERNS", "Document", "discover"]
