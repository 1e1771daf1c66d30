"""
Error taxonomy for the extraction engine.

``ParseError`` is returned by the parser as a value. ``MalformedTreeError``
is raised by the structural extractor and never escapes the file processor,
which turns every per-file failure into a ``FileExtractionError`` record
(see ``extraction.models``).
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ParseError:
    """The AST adapter could not produce a usable tree.

    Attributes:
        message: Human-readable reason (syntax error location, I/O failure).
        error_count: Number of ERROR/MISSING nodes found, 0 for I/O failures.
    """

    message: str
    error_count: int = 0

    def __str__(self) -> str:
        return self.message


class MalformedTreeError(ValueError):
    """A tree was returned but lacks the expected top-level structure."""
