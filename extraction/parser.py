"""
Tree-sitter parser initialization and file parsing utilities.

This module is the AST adapter of the engine: it turns Java source bytes into
either a ``ParseTree`` or a ``ParseError`` value. It never raises for bad
input; callers branch on the returned type.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import tree_sitter_java as tsjava
from tree_sitter import Language, Node, Parser, Tree

from extraction.config import DEFAULT_ALLOW_SYNTAX_ERRORS
from extraction.errors import ParseError

# Configure logging
logger = logging.getLogger(__name__)

# Module-level language constant
JAVA_LANGUAGE = Language(tsjava.language())


@dataclass(frozen=True)
class ParseTree:
    """A successfully parsed Java file.

    Attributes:
        tree: The tree-sitter syntax tree.
        source_bytes: The bytes the tree was parsed from. Node byte offsets
            index into this buffer.
        error_count: ERROR/MISSING nodes present (non-zero only when syntax
            errors are tolerated).
    """

    tree: Tree
    source_bytes: bytes
    error_count: int = 0

    @property
    def root_node(self) -> Node:
        return self.tree.root_node


ParseOutcome = Union[ParseTree, ParseError]


def create_parser() -> Parser:
    """Create and configure a tree-sitter parser for Java.

    Parsers are cheap and not thread-safe, so each unit of work creates its own.

    Returns:
        A Parser instance configured with the Java language.

    Example:
        >>> parser = create_parser()
        >>> tree = parser.parse(b"class A {}")
    """
    parser = Parser(JAVA_LANGUAGE)
    logger.debug("Created tree-sitter Java parser")
    return parser


def count_error_nodes(tree: Tree) -> int:
    """Count ERROR and MISSING nodes in a parsed tree."""
    count = 0
    stack = [tree.root_node]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            count += 1
        # Subtrees without errors cannot contain error nodes
        if node.has_error:
            stack.extend(node.children)
    return count


def first_error_location(tree: Tree) -> Optional[Tuple[int, int]]:
    """Return the 1-indexed (line, column) of the first ERROR/MISSING node."""
    node = tree.root_node
    if not node.has_error:
        return None
    while True:
        if node.type == "ERROR" or node.is_missing:
            return node.start_point.row + 1, node.start_point.column + 1
        next_node = None
        for child in node.children:
            if child.has_error or child.is_missing:
                next_node = child
                break
        if next_node is None:
            return node.start_point.row + 1, node.start_point.column + 1
        node = next_node


def parse_bytes(
    source: bytes,
    allow_syntax_errors: bool = DEFAULT_ALLOW_SYNTAX_ERRORS,
) -> ParseOutcome:
    """Parse raw bytes of Java source code.

    Args:
        source: UTF-8 encoded bytes of Java source code.
        allow_syntax_errors: If True, a tree with error nodes is still
            returned as a ``ParseTree``. Otherwise it becomes a ``ParseError``.

    Returns:
        ``ParseTree`` on success, ``ParseError`` otherwise.

    Raises:
        TypeError: If source is not bytes.

    Example:
        >>> outcome = parse_bytes(b"class A {}")
        >>> outcome.root_node.type
        'program'
    """
    if not isinstance(source, bytes):
        raise TypeError(f"Source must be bytes, got {type(source).__name__}")

    parser = create_parser()
    tree = parser.parse(source)
    logger.debug("Parsed %d bytes of Java code", len(source))

    if not tree.root_node.has_error:
        return ParseTree(tree=tree, source_bytes=source)

    error_count = count_error_nodes(tree)
    if allow_syntax_errors:
        logger.warning("Parsed tree contains %d syntax error nodes", error_count)
        return ParseTree(tree=tree, source_bytes=source, error_count=error_count)

    location = first_error_location(tree)
    where = f" at line {location[0]}, column {location[1]}" if location else ""
    return ParseError(
        message=f"Syntax error{where} ({error_count} error nodes)",
        error_count=error_count,
    )


def parse_file(
    file_path: str,
    allow_syntax_errors: bool = DEFAULT_ALLOW_SYNTAX_ERRORS,
) -> ParseOutcome:
    """Read and parse a Java source file from disk.

    Read failures are reported as ``ParseError`` so that a single unreadable
    file never escapes as an exception.

    Args:
        file_path: Path to the .java file.
        allow_syntax_errors: Forwarded to ``parse_bytes``.

    Returns:
        ``ParseTree`` on success, ``ParseError`` otherwise.

    Example:
        >>> outcome = parse_file("Example.java")
        >>> isinstance(outcome, ParseTree)
        True
    """
    try:
        with open(file_path, "rb") as f:
            source_bytes = f.read()
    except (OSError, ValueError) as e:
        # ValueError: embedded NUL byte in the path
        logger.error("Error reading file %s: %s", file_path, e)
        return ParseError(message=f"Cannot read file: {e}")

    outcome = parse_bytes(source_bytes, allow_syntax_errors=allow_syntax_errors)

    if isinstance(outcome, ParseError):
        logger.warning("File %s failed to parse: %s", file_path, outcome.message)
    else:
        logger.debug("Successfully parsed file: %s", file_path)
    return outcome
