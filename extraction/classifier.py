"""
Pipeline stage classification.

Every call expression in a file is matched by its simple name against three
operation vocabularies (source, transformation, sink). Each vocabulary hit
produces one PipelineStage, so a single call can yield several stages. This is
name matching only: no imports are consulted and no types are resolved.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional

from tree_sitter import Node

from core.startup_config import ConfigValidationError, load_yaml_mapping
from extraction.config import (
    ASSIGNMENT_NODE,
    COMMENT_NODES,
    DEFAULT_SINK_OPERATIONS,
    DEFAULT_SOURCE_OPERATIONS,
    DEFAULT_TRANSFORMATION_OPERATIONS,
    FIELD_ACCESS_NODE,
    IDENTIFIER_NODE,
    METHOD_INVOCATION_NODE,
    VARIABLE_DECLARATOR_NODE,
)
from extraction.models import PipelineStage, StageTag
from extraction.parser import ParseTree
from extraction.traversal import iter_descendants, node_text

logger = logging.getLogger(__name__)

_CHAIN_PARENTS = {METHOD_INVOCATION_NODE, FIELD_ACCESS_NODE}


@dataclass(frozen=True)
class PipelineVocabulary:
    """Immutable operation-name sets used by the classifier.

    The sets may overlap; a name present in several sets is tagged once per set.
    """

    sources: frozenset = DEFAULT_SOURCE_OPERATIONS
    transformations: frozenset = DEFAULT_TRANSFORMATION_OPERATIONS
    sinks: frozenset = DEFAULT_SINK_OPERATIONS

    def __post_init__(self) -> None:
        # Accept any iterable of names but always store frozensets
        for attr in ("sources", "transformations", "sinks"):
            value = getattr(self, attr)
            if not isinstance(value, frozenset):
                object.__setattr__(self, attr, frozenset(value))

    def operations_for(self, tag: StageTag) -> frozenset:
        if tag is StageTag.SOURCE:
            return self.sources
        if tag is StageTag.TRANSFORMATION:
            return self.transformations
        return self.sinks

    def tags_for(self, operation: str) -> List[StageTag]:
        """Return every tag whose vocabulary contains ``operation`` (exact, case-sensitive)."""
        return [tag for tag in StageTag if operation in self.operations_for(tag)]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PipelineVocabulary":
        """Build a vocabulary from a ``{sources, transformations, sinks}`` mapping.

        Missing sections fall back to the defaults.

        Raises:
            ValueError: If a section is not a list of non-empty strings, or an
                unknown section is present.
        """
        allowed = {"sources", "transformations", "sinks"}
        unknown = set(data) - allowed
        if unknown:
            raise ValueError(f"Unknown vocabulary sections: {', '.join(sorted(unknown))}")

        defaults = cls()
        kwargs = {}
        for section in sorted(allowed):
            if section not in data:
                kwargs[section] = getattr(defaults, section)
                continue
            names = data[section]
            if not isinstance(names, (list, tuple, set, frozenset)):
                raise ValueError(f"Vocabulary section '{section}' must be a list")
            if any(not isinstance(name, str) or not name for name in names):
                raise ValueError(f"Vocabulary section '{section}' must contain non-empty strings")
            kwargs[section] = frozenset(names)
        return cls(**kwargs)


DEFAULT_VOCABULARY = PipelineVocabulary()


def load_vocabulary(path: str, strict: bool = False) -> PipelineVocabulary:
    """Load a vocabulary from a YAML file with sources/transformations/sinks lists.

    In non-strict mode a missing or invalid file yields the default vocabulary.

    Raises:
        ConfigValidationError: In strict mode, if the file is missing or invalid.
    """
    payload = load_yaml_mapping(path, strict=strict)
    if not payload:
        return DEFAULT_VOCABULARY
    try:
        vocabulary = PipelineVocabulary.from_mapping(payload)
    except ValueError as exc:
        if strict:
            raise ConfigValidationError(f"Invalid vocabulary in {path}: {exc}") from exc
        logger.warning("Invalid vocabulary in %s: %s; using defaults", path, exc)
        return DEFAULT_VOCABULARY

    logger.info(
        "Loaded vocabulary from %s (%d sources, %d transformations, %d sinks)",
        path,
        len(vocabulary.sources),
        len(vocabulary.transformations),
        len(vocabulary.sinks),
    )
    return vocabulary


def call_arguments(call: Node) -> List[str]:
    """Raw source text of each argument of a method_invocation, in order."""
    arguments = call.child_by_field_name("arguments")
    if arguments is None:
        return []
    return [
        node_text(arg)
        for arg in arguments.named_children
        if arg.type not in COMMENT_NODES
    ]


def receiver_identifier(call: Node) -> Optional[str]:
    """Name of the call's receiver if it is a bare identifier, else None."""
    receiver = call.child_by_field_name("object")
    if receiver is not None and receiver.type == IDENTIFIER_NODE:
        return node_text(receiver)
    return None


def attached_variable(call: Node) -> Optional[str]:
    """Name of the variable a call's result is stored in, if any.

    Only the outermost call of a chain is attached: in
    ``df = spark.read().csv(path)`` the ``csv`` call is attached to ``df`` and
    the ``read`` call is not.
    """
    node = call
    parent = node.parent
    if parent is not None and parent.type in _CHAIN_PARENTS:
        if parent.child_by_field_name("object") == node:
            return None

    while parent is not None and parent.type == "parenthesized_expression":
        node = parent
        parent = parent.parent
    if parent is None:
        return None

    if parent.type == VARIABLE_DECLARATOR_NODE:
        if parent.child_by_field_name("value") == node:
            return node_text(parent.child_by_field_name("name")) or None
        return None

    if parent.type == ASSIGNMENT_NODE:
        left = parent.child_by_field_name("left")
        if parent.child_by_field_name("right") == node and left is not None:
            if left.type == IDENTIFIER_NODE:
                return node_text(left)
    return None


class PipelineClassifier:
    """Classifies every call in a file against an injected vocabulary."""

    def __init__(self, vocabulary: PipelineVocabulary = DEFAULT_VOCABULARY):
        self.vocabulary = vocabulary

    def binding_for(self, call: Node, tag: StageTag) -> Optional[str]:
        """Resolve the binding identifier of one tagged call.

        Source stages prefer the variable the result is attached to; all tags
        fall back to the bare-identifier receiver.
        """
        if tag is StageTag.SOURCE:
            attached = attached_variable(call)
            if attached is not None:
                return attached
        return receiver_identifier(call)

    def classify_nodes(self, nodes: Iterable[Node]) -> List[PipelineStage]:
        """Classify the method_invocation nodes among ``nodes``."""
        stages: List[PipelineStage] = []
        for node in nodes:
            if node.type != METHOD_INVOCATION_NODE:
                continue
            operation = node_text(node.child_by_field_name("name"))
            if not operation:
                continue
            tags = self.vocabulary.tags_for(operation)
            if not tags:
                continue

            arguments = tuple(call_arguments(node))
            line = node.start_point.row + 1
            for tag in tags:
                stages.append(
                    PipelineStage(
                        tag=tag,
                        operation=operation,
                        arguments=arguments,
                        binding_identifier=self.binding_for(node, tag),
                        line=line,
                        ordinal=len(stages),
                    )
                )
            if len(tags) > 1:
                logger.debug(
                    "Call '%s' at line %d matched %d vocabularies",
                    operation,
                    line,
                    len(tags),
                )
        return stages

    def classify(self, parsed: ParseTree, file_path: str = "<memory>") -> List[PipelineStage]:
        """Classify every call anywhere in a parsed file.

        Args:
            parsed: Parsed Java file.
            file_path: Used for logging only.

        Returns:
            Pipeline stages in document order of their call sites.
        """
        stages = self.classify_nodes(iter_descendants(parsed.root_node))
        logger.debug("Classified %d pipeline stages in %s", len(stages), file_path)
        return stages
