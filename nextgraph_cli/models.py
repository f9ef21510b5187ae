"""Core data models shared by the walker, analyzers and layout engines.

Attributes are snake_case in Python; ``to_dict()`` emits the camelCase
payload consumed by the rendering layer and the JSON API.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Dict, List, Optional


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_payload(value: Any) -> Any:
    """Recursively convert dataclasses to camelCase dicts."""
    if is_dataclass(value) and not isinstance(value, type):
        return {
            _camel(f.name): to_payload(getattr(value, f.name))
            for f in fields(value)
            if not f.metadata.get("internal")
        }
    if isinstance(value, Mapping):
        return {k: to_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_payload(v) for v in value]
    return value


class Payload:
    def to_dict(self) -> Dict[str, Any]:
        return to_payload(self)


# ===================================================================
# Project structure
# ===================================================================

@dataclass(frozen=True)
class RoutingAnalysis(Payload):
    type: str
    display_name: str
    routing_type: str
    url_effect: str
    description: str
    param_name: Optional[str] = None
    slot_name: Optional[str] = None
    intercept_level: Optional[str] = None
    intercept_segment: Optional[str] = None


@dataclass
class FileAnalysis(Payload):
    type: str
    purpose: str
    description: str
    is_app_router_special: bool = False
    base_name: str = ""
    api_methods: Optional[List[str]] = None
    server_actions: Optional[List[str]] = None
    colocated_kind: Optional[str] = None


@dataclass
class SpecialFiles(Payload):
    has_page: bool = False
    has_layout: bool = False
    has_loading: bool = False
    has_error: bool = False
    has_not_found: bool = False
    has_api_route: bool = False
    has_template: bool = False
    has_default: bool = False


@dataclass
class StructureNode(Payload):
    name: str
    kind: str  # "folder" | "file"
    full_path: str
    relative_path: str
    is_app_router_scope: bool = False
    routing_analysis: Optional[RoutingAnalysis] = None
    route_path: Optional[str] = None
    special_files: Optional[SpecialFiles] = None
    file_analysis: Optional[FileAnalysis] = None
    children: List["StructureNode"] = field(default_factory=list)

    @property
    def is_folder(self) -> bool:
        return self.kind == "folder"

    def folders(self) -> List["StructureNode"]:
        return [c for c in self.children if c.is_folder]

    def files(self) -> List["StructureNode"]:
        return [c for c in self.children if not c.is_folder]

    def iter_nodes(self):
        """Pre-order iteration over this subtree."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


@dataclass
class Insights(Payload):
    app_router_detected: bool = False
    route_count: int = 0
    api_endpoint_count: int = 0
    route_patterns: Dict[str, int] = field(default_factory=lambda: {
        "static": 0,
        "dynamic": 0,
        "catchAll": 0,
        "optionalCatchAll": 0,
        "routeGroups": 0,
        "privateFolders": 0,
        "parallelRoutes": 0,
        "interceptingRoutes": 0,
    })
    special_files: Dict[str, int] = field(default_factory=lambda: {
        "layouts": 0,
        "pages": 0,
        "loading": 0,
        "errors": 0,
        "notFound": 0,
        "templates": 0,
        "defaults": 0,
    })


# ===================================================================
# Dependencies
# ===================================================================

@dataclass(frozen=True)
class RawImport:
    """One import-like statement as found in the syntax tree."""

    source: str
    type: str  # import | dynamic-import | require | export-from | export-all-from
    import_kind: str = "value"
    specifiers: tuple = ()  # tuple of (spec_type, local, imported/exported)


@dataclass
class Specifier(Payload):
    type: str
    local: Optional[str]
    imported: Optional[str] = None
    exported: Optional[str] = None
    id: str = ""


@dataclass
class Resolution(Payload):
    resolved_path: str
    is_local: bool
    exists: Optional[bool]
    relative_path: Optional[str] = None
    is_alias: bool = False
    path_id: Optional[str] = None
    package_name: Optional[str] = None
    package_id: Optional[str] = None


@dataclass
class DependencyRecord(Payload):
    source: str
    type: str
    stable_id: str
    node_id: str
    specifiers: List[Specifier] = field(default_factory=list)
    import_kind: str = "value"
    is_local: bool = False
    exists: Optional[bool] = None
    resolved_path: str = ""
    relative_path: Optional[str] = None
    is_alias: bool = False
    path_id: Optional[str] = None
    package_name: Optional[str] = None
    package_id: Optional[str] = None

    @property
    def state(self) -> str:
        """One of ``local-resolved``, ``local-missing`` or ``external``."""
        if not self.is_local:
            return "external"
        return "local-resolved" if self.exists else "local-missing"


@dataclass
class DependencyMetadata(Payload):
    total_count: int = 0
    parse_errors: List[str] = field(default_factory=list)
    file_path: str = ""
    analysis_id: str = ""
    timestamp: str = ""


@dataclass
class DependencyResult(Payload):
    local_dependencies: List[DependencyRecord] = field(default_factory=list)
    external_dependencies: List[DependencyRecord] = field(default_factory=list)
    metadata: DependencyMetadata = field(default_factory=DependencyMetadata)

    @property
    def all(self) -> List[DependencyRecord]:
        return [*self.local_dependencies, *self.external_dependencies]


@dataclass(frozen=True)
class ImportedByRef(Payload):
    source: str
    name: str
    relative_path: str
    specifiers: tuple = ()


@dataclass
class DependencyMapEntry(Payload):
    id: str
    name: str
    relative_path: str
    imports: List[DependencyRecord] = field(default_factory=list)
    external_imports: List[DependencyRecord] = field(default_factory=list)
    imported_by: List[ImportedByRef] = field(default_factory=list)
    parse_errors: List[str] = field(default_factory=list)


# ===================================================================
# Layout
# ===================================================================

@dataclass
class Position(Payload):
    x: float
    y: float


@dataclass
class LayoutNode(Payload):
    id: str
    kind: str  # folder | file | dependency | model | enum
    position: Position
    width: float
    height: float
    data: Dict[str, Any] = field(default_factory=dict)

    def bounds(self, padding: float = 0.0):
        """(left, top, right, bottom) grown by *padding* on every side."""
        return (
            self.position.x - padding,
            self.position.y - padding,
            self.position.x + self.width + padding,
            self.position.y + self.height + padding,
        )


@dataclass
class LayoutEdge(Payload):
    id: str
    source: str
    target: str
    style: str = "structural"
    label: str = ""
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GraphLayout(Payload):
    nodes: List[LayoutNode] = field(default_factory=list)
    edges: List[LayoutEdge] = field(default_factory=list)


# ===================================================================
# Prisma schema
# ===================================================================

@dataclass
class SchemaField(Payload):
    name: str
    type: str
    kind: str  # scalar | object | enum
    is_list: bool = False
    is_required: bool = True
    is_unique: bool = False
    is_id: bool = False
    is_updated_at: bool = False
    has_default_value: bool = False
    default: Optional[str] = None
    db_name: Optional[str] = None
    relation_name: Optional[str] = None
    relation_from_fields: List[str] = field(default_factory=list)
    relation_to_fields: List[str] = field(default_factory=list)
    relation_on_delete: Optional[str] = None
    relation_on_update: Optional[str] = None


@dataclass
class SchemaIndex(Payload):
    fields: List[str]
    name: Optional[str] = None


@dataclass
class SchemaModel(Payload):
    name: str
    fields: List[SchemaField] = field(default_factory=list)
    db_name: Optional[str] = None
    primary_key: Optional[SchemaIndex] = None
    unique_indexes: List[SchemaIndex] = field(default_factory=list)
    indexes: List[SchemaIndex] = field(default_factory=list)

    def field_named(self, name: str) -> Optional[SchemaField]:
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass
class SchemaEnumValue(Payload):
    name: str
    db_name: Optional[str] = None


@dataclass
class SchemaEnum(Payload):
    name: str
    values: List[SchemaEnumValue] = field(default_factory=list)
    db_name: Optional[str] = None


@dataclass
class ParsedSchema(Payload):
    models: List[SchemaModel] = field(default_factory=list)
    enums: List[SchemaEnum] = field(default_factory=list)
    datasource_provider: Optional[str] = None
    generators: List[str] = field(default_factory=list)

    def model_named(self, name: str) -> Optional[SchemaModel]:
        for m in self.models:
            if m.name == name:
                return m
        return None


@dataclass
class SchemaGraph(Payload):
    nodes: List[LayoutNode] = field(default_factory=list)
    edges: List[LayoutEdge] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)


# ===================================================================
# Whole-project result
# ===================================================================

@dataclass
class ProjectAnalysis(Payload):
    structure: StructureNode
    insights: Insights
    prisma_info: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    dependency_map: Optional[Any] = field(default=None, metadata={"internal": True})

    def to_dict(self) -> Dict[str, Any]:
        payload = to_payload(self)
        if self.dependency_map is not None:
            payload["dependencyMap"] = self.dependency_map.to_dict()
        return payload
