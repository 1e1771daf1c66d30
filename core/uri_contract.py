"""Entity URI contract shared by the query layer and the graph store."""

from __future__ import annotations

import hashlib
import re
from typing import NotRequired, Sequence, TypedDict

ENTITY_URI_SEPARATOR = "::"


class ParsedEntityUri(TypedDict):
    """Parsed entity URI payload."""

    file_path: str
    entity_type: str
    entity_name: str
    discriminator: NotRequired[str]


_WHITESPACE_RE = re.compile(r"\s+")
_PUNCT_SPACING_RE = re.compile(r"\s*([<>,\[\]])\s*")


def normalize_java_name(name: str) -> str:
    """Normalize Java names and type strings into a canonical form.

    ``Map< String , List<Integer> >`` becomes ``Map<String,List<Integer>>`` so
    that identifiers do not depend on source formatting.
    """
    normalized = _WHITESPACE_RE.sub(" ", name.strip())
    normalized = _PUNCT_SPACING_RE.sub(r"\1", normalized)
    return normalized


def make_signature_hash(parameter_types: Sequence[str], digest_length: int = 12) -> str:
    """Create a stable short hash token that tells overloaded methods apart."""
    canonical = ",".join(normalize_java_name(t) for t in parameter_types)
    if not canonical:
        canonical = "<no-parameters>"
    length = max(8, min(digest_length, 40))
    digest = hashlib.sha1(canonical.encode("utf-8")).hexdigest()[:length]
    return f"sig_{digest}"


def create_entity_uri(
    file_path: str,
    entity_type: str,
    entity_name: str,
    discriminator: str | None = None,
) -> str:
    """Create an entity URI.

    Args:
        file_path: Path of the owning file.
        entity_type: One of File/Class/Interface/Method/Field/Stage.
        entity_name: Entity name, qualified by its owner where relevant
            (``Type.method``).
        discriminator: Optional suffix (signature hash, stage ordinal).

    Returns:
        URI in format ``FilePath::EntityType::EntityName[::Discriminator]``.
    """
    uri = (
        f"{file_path}{ENTITY_URI_SEPARATOR}{entity_type}"
        f"{ENTITY_URI_SEPARATOR}{normalize_java_name(entity_name)}"
    )
    if discriminator:
        uri = f"{uri}{ENTITY_URI_SEPARATOR}{discriminator}"
    return uri


def create_method_uri(
    file_path: str,
    type_name: str,
    method_name: str,
    parameter_types: Sequence[str],
) -> str:
    """URI of a method, disambiguated by its parameter types."""
    return create_entity_uri(
        file_path,
        "Method",
        f"{type_name}.{method_name}",
        discriminator=make_signature_hash(parameter_types),
    )


def create_type_uri(file_path: str, is_interface: bool, type_name: str, type_index: int) -> str:
    """URI of a type; the index in the file keeps same-named nested types apart."""
    kind = "Interface" if is_interface else "Class"
    return create_entity_uri(file_path, kind, type_name, discriminator=f"#{type_index}")


def create_stage_uri(file_path: str, tag: str, ordinal: int) -> str:
    """URI of a pipeline stage; ordinals are unique within one file."""
    return create_entity_uri(file_path, "Stage", tag, discriminator=f"#{ordinal}")


def parse_entity_uri(entity_uri: str) -> ParsedEntityUri:
    """Parse an entity URI into components.

    File paths never contain the separator on supported platforms, so the
    first component is always the path.

    Raises:
        ValueError: If the URI does not contain the required components.
    """
    parts = entity_uri.split(ENTITY_URI_SEPARATOR)
    if len(parts) < 3 or not all(parts[:3]):
        raise ValueError(f"Malformed entity URI: {entity_uri}")

    payload = ParsedEntityUri(
        file_path=parts[0],
        entity_type=parts[1],
        entity_name=parts[2],
    )
    if len(parts) >= 4:
        payload["discriminator"] = ENTITY_URI_SEPARATOR.join(parts[3:])
    return payload
