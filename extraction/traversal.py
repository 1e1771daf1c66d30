"""
AST traversal and structural extraction logic.

This module walks a Java syntax tree and builds the structural entity graph of
one file: type declarations (flattened, nested types included) with their
methods and fields, and for each method body the call sites and local
variables it contains.
"""

import logging
from typing import Iterator, List, Optional, Tuple

from tree_sitter import Node

from extraction.config import (
    ENHANCED_FOR_NODE,
    EXTENDS_INTERFACES_NODE,
    FIELD_NODES,
    FORMAL_PARAMETER_NODE,
    GENERIC_TYPE_NODE,
    IMPORT_NODE,
    INTERFACE_NODE,
    METHOD_INVOCATION_NODE,
    METHOD_NODE,
    MODIFIERS_NODE,
    PACKAGE_NODE,
    PROGRAM_NODE,
    QUALIFIED_NAME_NODES,
    RESOURCE_NODE,
    SCOPED_TYPE_NODE,
    SPREAD_PARAMETER_NODE,
    SUPER_INTERFACES_NODE,
    TYPE_DECLARATION_NODES,
    TYPE_LIST_NODE,
    VARIABLE_DECLARATOR_NODE,
)
from extraction.errors import MalformedTreeError
from extraction.models import (
    CallReference,
    Field,
    LocalVariable,
    Method,
    Parameter,
    SourceFile,
    TypeDeclaration,
    TypeKind,
)
from extraction.parser import ParseTree

logger = logging.getLogger(__name__)


def node_text(node: Optional[Node]) -> str:
    """Return the UTF-8 source text of a node, or "" for None."""
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def iter_descendants(node: Node) -> Iterator[Node]:
    """Yield every descendant of ``node`` in document (pre-)order."""
    stack = list(reversed(node.children))
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def get_modifier_flags(node: Node) -> Tuple[bool, bool]:
    """Read (is_public, is_static) from a declaration's modifiers.

    Only an explicit ``public`` keyword counts as public; package-private,
    protected and private all collapse to non-public.
    """
    is_public = False
    is_static = False
    for child in node.children:
        if child.type != MODIFIERS_NODE:
            continue
        for modifier in child.children:
            if modifier.type == "public":
                is_public = True
            elif modifier.type == "static":
                is_static = True
    return is_public, is_static


def simple_type_name(node: Node) -> str:
    """Reduce a type node to its simple name.

    ``java.util.List<String>`` becomes ``List``; annotations are skipped.
    """
    if node.type == GENERIC_TYPE_NODE:
        for child in node.named_children:
            if child.type in ("type_identifier", SCOPED_TYPE_NODE):
                return simple_type_name(child)
    if node.type == SCOPED_TYPE_NODE:
        identifiers = [c for c in node.named_children if c.type == "type_identifier"]
        if identifiers:
            return node_text(identifiers[-1])
    return node_text(node)


def _type_list_names(node: Optional[Node]) -> List[str]:
    """Collect simple names from a superclass/super_interfaces/extends_interfaces node."""
    if node is None:
        return []
    type_nodes: List[Node] = []
    for child in node.named_children:
        if child.type == TYPE_LIST_NODE:
            type_nodes.extend(child.named_children)
        else:
            type_nodes.append(child)
    return [
        simple_type_name(t)
        for t in type_nodes
        if t.type not in ("marker_annotation", "annotation")
    ]


def _child_of_type(node: Node, node_type: str) -> Optional[Node]:
    for child in node.children:
        if child.type == node_type:
            return child
    return None


def extract_supertypes(node: Node) -> Tuple[List[str], List[str]]:
    """Extract (extends, implements) name lists of a type declaration.

    Args:
        node: A class_declaration or interface_declaration node.

    Returns:
        For classes, the superclass (if any) and the implemented interfaces.
        For interfaces, the extended interfaces and an empty list.
    """
    if node.type == INTERFACE_NODE:
        return _type_list_names(_child_of_type(node, EXTENDS_INTERFACES_NODE)), []

    superclass = node.child_by_field_name("superclass")
    interfaces = node.child_by_field_name("interfaces")
    if interfaces is None:
        interfaces = _child_of_type(node, SUPER_INTERFACES_NODE)
    return _type_list_names(superclass), _type_list_names(interfaces)


def _declared_type(type_node: Optional[Node], declarator: Optional[Node] = None) -> str:
    """Render a declared type, folding C-style declarator dimensions (``int a[]``)."""
    type_text = node_text(type_node)
    if declarator is not None:
        dimensions = declarator.child_by_field_name("dimensions")
        if dimensions is not None:
            type_text += node_text(dimensions).replace(" ", "")
    return type_text


def extract_parameters(method_node: Node) -> List[Parameter]:
    """Extract the ordered parameter list of a method declaration."""
    params_node = method_node.child_by_field_name("parameters")
    if params_node is None:
        return []

    parameters: List[Parameter] = []
    for child in params_node.named_children:
        if child.type == FORMAL_PARAMETER_NODE:
            name_node = child.child_by_field_name("name")
            parameters.append(
                Parameter(
                    name=node_text(name_node),
                    type=_declared_type(child.child_by_field_name("type"), child),
                )
            )
        elif child.type == SPREAD_PARAMETER_NODE:
            # String... args -> type node, '...', variable_declarator
            type_node = None
            declarator = None
            for part in child.named_children:
                if part.type == VARIABLE_DECLARATOR_NODE:
                    declarator = part
                elif part.type != MODIFIERS_NODE and type_node is None:
                    type_node = part
            if declarator is not None:
                name_node = declarator.child_by_field_name("name")
            else:
                name_node = child.child_by_field_name("name")
            parameters.append(
                Parameter(name=node_text(name_node), type=f"{node_text(type_node)}...")
            )
    return parameters


def collect_body_entities(body: Node) -> Tuple[List[CallReference], List[LocalVariable]]:
    """Collect call sites and local variables anywhere inside a method body.

    Calls are recorded by simple name; receiver chains are discarded.
    Variables include declarators in nested blocks, enhanced-for loop
    variables and try-with-resources resources.

    Args:
        body: The method's block node.

    Returns:
        A tuple of (calls, variables), both in document order.
    """
    calls: List[CallReference] = []
    variables: List[LocalVariable] = []

    for node in iter_descendants(body):
        if node.type == METHOD_INVOCATION_NODE:
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                calls.append(CallReference(name=node_text(name_node)))

        elif node.type == VARIABLE_DECLARATOR_NODE:
            parent = node.parent
            # Spread parameters of lambdas/local methods are not locals
            if parent is None or parent.type == SPREAD_PARAMETER_NODE:
                continue
            value = node.child_by_field_name("value")
            variables.append(
                LocalVariable(
                    name=node_text(node.child_by_field_name("name")),
                    type=_declared_type(parent.child_by_field_name("type"), node),
                    initial_value=node_text(value) if value is not None else None,
                )
            )

        elif node.type == ENHANCED_FOR_NODE:
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                variables.append(
                    LocalVariable(
                        name=node_text(name_node),
                        type=_declared_type(node.child_by_field_name("type"), node),
                    )
                )

        elif node.type == RESOURCE_NODE:
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                value = node.child_by_field_name("value")
                variables.append(
                    LocalVariable(
                        name=node_text(name_node),
                        type=node_text(node.child_by_field_name("type")),
                        initial_value=node_text(value) if value is not None else None,
                    )
                )

    return calls, variables


def extract_method(node: Node) -> Method:
    """Build a Method from a method_declaration node."""
    is_public, is_static = get_modifier_flags(node)
    body = node.child_by_field_name("body")

    calls: List[CallReference] = []
    variables: List[LocalVariable] = []
    if body is not None:
        calls, variables = collect_body_entities(body)

    return Method(
        name=node_text(node.child_by_field_name("name")),
        return_type=_declared_type(node.child_by_field_name("type"), node),
        is_public=is_public,
        is_static=is_static,
        parameters=tuple(extract_parameters(node)),
        body=node_text(body) if body is not None else None,
        method_calls=tuple(calls),
        variables=tuple(variables),
    )


def extract_fields(node: Node) -> List[Field]:
    """Expand a field declaration into one Field per declared name."""
    is_public, is_static = get_modifier_flags(node)
    type_node = node.child_by_field_name("type")
    fields = []
    for declarator in node.children_by_field_name("declarator"):
        value = declarator.child_by_field_name("value")
        fields.append(
            Field(
                name=node_text(declarator.child_by_field_name("name")),
                type=_declared_type(type_node, declarator),
                is_public=is_public,
                is_static=is_static,
                initial_value=node_text(value) if value is not None else None,
            )
        )
    return fields


def extract_type_declaration(node: Node) -> Optional[TypeDeclaration]:
    """Build a TypeDeclaration from a class/interface declaration node.

    Only members of the type's own body are attached; nested types are
    extracted separately by the caller.

    Returns:
        The declaration, or None if the node has no name (error recovery).
    """
    name = node_text(node.child_by_field_name("name"))
    if not name:
        logger.debug("Skipping unnamed %s at line %d", node.type, node.start_point.row + 1)
        return None

    extends, implements = extract_supertypes(node)
    methods: List[Method] = []
    fields: List[Field] = []

    body = node.child_by_field_name("body")
    if body is not None:
        for member in body.named_children:
            if member.type == METHOD_NODE:
                methods.append(extract_method(member))
            elif member.type in FIELD_NODES:
                fields.extend(extract_fields(member))

    kind = TypeKind.INTERFACE if node.type == INTERFACE_NODE else TypeKind.CLASS
    logger.debug(
        "Extracted %s %s (%d methods, %d fields) at line %d",
        kind.value,
        name,
        len(methods),
        len(fields),
        node.start_point.row + 1,
    )
    return TypeDeclaration(
        name=name,
        kind=kind,
        extends=tuple(extends),
        implements=tuple(implements),
        methods=tuple(methods),
        fields=tuple(fields),
    )


def extract_source_file(root: Node, file_path: str) -> SourceFile:
    """Read package and import declarations from the program root."""
    package: Optional[str] = None
    imports: List[str] = []

    for child in root.named_children:
        if child.type == PACKAGE_NODE:
            for part in child.named_children:
                if part.type in QUALIFIED_NAME_NODES:
                    package = node_text(part)
                    break
        elif child.type == IMPORT_NODE:
            for part in child.named_children:
                if part.type in QUALIFIED_NAME_NODES:
                    imports.append(node_text(part))
                    break

    return SourceFile(path=file_path, package=package, imports=tuple(imports))


def traverse_and_extract(node: Node) -> List[TypeDeclaration]:
    """Collect every class/interface declaration under ``node``.

    Top-level, member, and local types are all returned in one flat list, in
    document order.
    """
    types: List[TypeDeclaration] = []
    for child in iter_descendants(node):
        if child.type in TYPE_DECLARATION_NODES:
            declaration = extract_type_declaration(child)
            if declaration is not None:
                types.append(declaration)
    return types


def extract_structure(
    parsed: ParseTree,
    file_path: str,
) -> Tuple[SourceFile, List[TypeDeclaration]]:
    """Extract the structural entity graph of one parsed file.

    This is the main entry point for structural extraction.

    Args:
        parsed: Parsed Java file.
        file_path: Path recorded on the SourceFile.

    Returns:
        A tuple of (source_file, type_declarations).

    Raises:
        MalformedTreeError: If the tree has no Java program root.
    """
    root = parsed.root_node
    if root is None or root.type != PROGRAM_NODE:
        raise MalformedTreeError(
            f"Expected '{PROGRAM_NODE}' root node, got "
            f"'{root.type if root is not None else None}'"
        )

    source_file = extract_source_file(root, file_path)
    types = traverse_and_extract(root)
    logger.debug("Extracted %d types from %s", len(types), file_path)
    return source_file, types
