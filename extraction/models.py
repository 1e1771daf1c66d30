"""
Data models for the extracted Java code model.

Every record is immutable once built. ``to_dict`` methods produce the wire
shape consumed by the persistence and visualization collaborators; the
matching ``from_dict`` constructors read that shape back.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class TypeKind(str, Enum):
    CLASS = "class"
    INTERFACE = "interface"


class StageTag(str, Enum):
    SOURCE = "source"
    TRANSFORMATION = "transformation"
    SINK = "sink"

    @property
    def wire_key(self) -> str:
        """Key of this tag's list under ``pipelineStages``."""
        return _STAGE_WIRE_KEYS[self]


_STAGE_WIRE_KEYS = {
    StageTag.SOURCE: "sources",
    StageTag.TRANSFORMATION: "transformations",
    StageTag.SINK: "sinks",
}


@dataclass(frozen=True)
class SourceFile:
    """A Java source file header.

    Attributes:
        path: Absolute path of the file.
        package: Declared package name, or None for the default package.
        imports: Imported names in declaration order (without ``.*``).
    """

    path: str
    package: Optional[str] = None
    imports: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Parameter:
    name: str
    type: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type}


@dataclass(frozen=True)
class CallReference:
    """A call site inside a method body, by simple callee name."""

    name: str


@dataclass(frozen=True)
class LocalVariable:
    name: str
    type: str
    initial_value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "type": self.type}
        if self.initial_value is not None:
            data["initialValue"] = self.initial_value
        return data


@dataclass(frozen=True)
class Method:
    """A method declared directly in a type body.

    A method without a body (abstract or interface signature) has
    ``body=None`` and no calls or variables.
    """

    name: str
    return_type: str
    is_public: bool
    is_static: bool
    parameters: Tuple[Parameter, ...] = ()
    body: Optional[str] = None
    method_calls: Tuple[CallReference, ...] = ()
    variables: Tuple[LocalVariable, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "returnType": self.return_type,
            "isPublic": self.is_public,
            "isStatic": self.is_static,
            "parameters": [p.to_dict() for p in self.parameters],
        }
        if self.body is not None:
            data["body"] = self.body
        data["methodCalls"] = [call.name for call in self.method_calls]
        data["variables"] = [v.to_dict() for v in self.variables]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Method":
        return cls(
            name=data["name"],
            return_type=data.get("returnType", ""),
            is_public=bool(data.get("isPublic", False)),
            is_static=bool(data.get("isStatic", False)),
            parameters=tuple(
                Parameter(name=p["name"], type=p["type"])
                for p in data.get("parameters", [])
            ),
            body=data.get("body"),
            method_calls=tuple(CallReference(name) for name in data.get("methodCalls", [])),
            variables=tuple(
                LocalVariable(
                    name=v["name"],
                    type=v["type"],
                    initial_value=v.get("initialValue"),
                )
                for v in data.get("variables", [])
            ),
        )


@dataclass(frozen=True)
class Field:
    """One declared field name. ``int a, b;`` yields two Fields."""

    name: str
    type: str
    is_public: bool
    is_static: bool
    initial_value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "isPublic": self.is_public,
            "isStatic": self.is_static,
        }
        if self.initial_value is not None:
            data["initialValue"] = self.initial_value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Field":
        return cls(
            name=data["name"],
            type=data["type"],
            is_public=bool(data.get("isPublic", False)),
            is_static=bool(data.get("isStatic", False)),
            initial_value=data.get("initialValue"),
        )


@dataclass(frozen=True)
class TypeDeclaration:
    """A class or interface declared anywhere in a file (nested types included).

    Attributes:
        name: Simple type name, never empty.
        kind: CLASS unless declared with ``interface``.
        extends: Supertype names as written (simple names, unresolved).
        implements: Implemented interface names (classes only).
        methods: Methods declared directly in this type's body.
        fields: Fields declared directly in this type's body.
    """

    name: str
    kind: TypeKind = TypeKind.CLASS
    extends: Tuple[str, ...] = ()
    implements: Tuple[str, ...] = ()
    methods: Tuple[Method, ...] = ()
    fields: Tuple[Field, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("TypeDeclaration name must be non-empty")

    @property
    def is_interface(self) -> bool:
        return self.kind is TypeKind.INTERFACE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "isInterface": self.is_interface,
            "extends": list(self.extends),
            "implements": list(self.implements),
            "methods": [m.to_dict() for m in self.methods],
            "fields": [f.to_dict() for f in self.fields],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TypeDeclaration":
        return cls(
            name=data["name"],
            kind=TypeKind.INTERFACE if data.get("isInterface") else TypeKind.CLASS,
            extends=tuple(data.get("extends", [])),
            implements=tuple(data.get("implements", [])),
            methods=tuple(Method.from_dict(m) for m in data.get("methods", [])),
            fields=tuple(Field.from_dict(f) for f in data.get("fields", [])),
        )


@dataclass(frozen=True)
class PipelineStage:
    """One classified call site.

    Attributes:
        tag: Which vocabulary matched.
        operation: The matched callee name (member of the tag's vocabulary).
        arguments: Raw source text of each argument, in call order.
        binding_identifier: Join key for flow edges, or None when the call
            cannot be linked.
        line: 1-indexed line of the call.
        ordinal: Position in the file's emission order.
    """

    tag: StageTag
    operation: str
    arguments: Tuple[str, ...] = ()
    binding_identifier: Optional[str] = None
    line: int = 0
    ordinal: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "arguments": list(self.arguments),
            "bindingIdentifier": self.binding_identifier,
            "line": self.line,
            "ordinal": self.ordinal,
        }

    @classmethod
    def from_dict(cls, tag: StageTag, data: Dict[str, Any], ordinal: int) -> "PipelineStage":
        """Read a stage back; ``ordinal`` is used only when the payload has none."""
        return cls(
            tag=tag,
            operation=data["operation"],
            arguments=tuple(data.get("arguments", [])),
            binding_identifier=data.get("bindingIdentifier"),
            line=int(data.get("line", 0)),
            ordinal=int(data.get("ordinal", ordinal)),
        )


@dataclass(frozen=True)
class FileExtraction:
    """Successful extraction of one file."""

    source_file: SourceFile
    types: Tuple[TypeDeclaration, ...] = ()
    stages: Tuple[PipelineStage, ...] = ()
    parse_error_count: int = 0

    @property
    def path(self) -> str:
        return self.source_file.path

    def stages_for(self, tag: StageTag) -> List[PipelineStage]:
        return [stage for stage in self.stages if stage.tag is tag]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire shape for successful files."""
        return {
            "file": self.source_file.path,
            "package": self.source_file.package,
            "imports": list(self.source_file.imports),
            "classes": [t.to_dict() for t in self.types],
            "pipelineStages": {
                tag.wire_key: [s.to_dict() for s in self.stages_for(tag)]
                for tag in StageTag
            },
        }


@dataclass(frozen=True)
class FileExtractionError:
    """A file that could not be extracted. Carried as data, never raised."""

    path: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"file": self.path, "error": self.reason}


FileResult = Union[FileExtraction, FileExtractionError]


def file_result_from_dict(data: Dict[str, Any]) -> FileResult:
    """Rebuild a ``FileResult`` from its wire shape.

    Stages come back in ordinal (document) order. Payloads written without
    ordinals get them assigned in wire order (sources, transformations,
    sinks), which keeps them unique within the file.
    """
    if "error" in data:
        return FileExtractionError(path=data["file"], reason=str(data["error"]))

    stage_payload = data.get("pipelineStages") or {}
    stages: List[PipelineStage] = []
    for tag in StageTag:
        for item in stage_payload.get(tag.wire_key, []):
            stages.append(PipelineStage.from_dict(tag, item, ordinal=len(stages)))
    stages.sort(key=lambda s: s.ordinal)

    return FileExtraction(
        source_file=SourceFile(
            path=data["file"],
            package=data.get("package"),
            imports=tuple(data.get("imports", [])),
        ),
        types=tuple(TypeDeclaration.from_dict(t) for t in data.get("classes", [])),
        stages=tuple(stages),
    )


@dataclass(frozen=True)
class FlowEdge:
    """A resolved (upstream, downstream) pair sharing a binding identifier."""

    upstream: PipelineStage
    downstream: PipelineStage
    binding_identifier: str


@dataclass
class ExtractionStats:
    """Statistics for a batch run."""

    files_processed: int = 0
    files_failed: int = 0
    types_extracted: int = 0
    methods_extracted: int = 0
    stages_classified: int = 0
    parse_errors: int = 0
    failures: List[Dict[str, str]] = field(default_factory=list)

    def record(self, result: FileResult) -> None:
        if isinstance(result, FileExtractionError):
            self.files_failed += 1
            self.failures.append(result.to_dict())
            return
        self.files_processed += 1
        self.types_extracted += len(result.types)
        self.methods_extracted += sum(len(t.methods) for t in result.types)
        self.stages_classified += len(result.stages)
        self.parse_errors += result.parse_error_count

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "files_processed": self.files_processed,
            "files_failed": self.files_failed,
            "types_extracted": self.types_extracted,
            "methods_extracted": self.methods_extracted,
            "stages_classified": self.stages_classified,
            "parse_errors": self.parse_errors,
            "failures": sorted(self.failures, key=lambda f: f["file"]),
        }

    def __str__(self) -> str:
        return (
            f"ExtractionStats(processed={self.files_processed}, "
            f"failed={self.files_failed}, types={self.types_extracted}, "
            f"methods={self.methods_extracted}, stages={self.stages_classified})"
        )


@dataclass(frozen=True)
class BatchResult:
    """All per-file results of one batch run, one entry per input path."""

    results: Tuple[FileResult, ...]
    stats: ExtractionStats = field(default_factory=ExtractionStats, compare=False)

    @property
    def extractions(self) -> List[FileExtraction]:
        return [r for r in self.results if isinstance(r, FileExtraction)]

    @property
    def errors(self) -> List[FileExtractionError]:
        return [r for r in self.results if isinstance(r, FileExtractionError)]

    def to_dict_list(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.results]
