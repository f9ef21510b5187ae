"""Turn a parsed Prisma schema into graph nodes, edges and statistics."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from .config_manager import ForceLayoutConfig
from .force_layout import layout_schema_graph
from .models import (
    LayoutEdge,
    LayoutNode,
    ParsedSchema,
    Position,
    SchemaEnum,
    SchemaField,
    SchemaGraph,
    SchemaModel,
)
from .schema_parser import format_default, parse_schema_file

logger = logging.getLogger(__name__)

RELATION_SYMBOLS = {
    "one-to-one": "1:1",
    "one-to-many": "1:N",
    "many-to-many": "N:N",
}


# ===================================================================
# Display helpers
# ===================================================================

def field_constraints(field: SchemaField) -> List[str]:
    constraints: List[str] = []
    if field.is_id:
        constraints.append("PRIMARY KEY")
    if field.is_unique:
        constraints.append("UNIQUE")
    if field.is_required and field.kind == "scalar":
        constraints.append("NOT NULL")
    if field.has_default_value:
        constraints.append(f"DEFAULT {format_default(field.default)}".rstrip())
    if field.kind == "object" and field.relation_from_fields:
        fk = ", ".join(field.relation_from_fields)
        ref = ", ".join(field.relation_to_fields) or "id"
        constraints.append(f"FK ({fk}) → {field.type}({ref})")
    if field.is_updated_at:
        constraints.append("AUTO UPDATE")
    return constraints


def model_constraints(model: SchemaModel) -> List[Dict[str, Any]]:
    constraints: List[Dict[str, Any]] = []
    if model.primary_key and len(model.primary_key.fields) > 1:
        constraints.append({
            "type": "PRIMARY KEY",
            "fields": list(model.primary_key.fields),
            "name": model.primary_key.name,
        })
    for index in model.unique_indexes:
        constraints.append({"type": "UNIQUE", "fields": list(index.fields), "name": index.name})
    for index in model.indexes:
        constraints.append({"type": "INDEX", "fields": list(index.fields), "name": index.name})
    return constraints


def format_field_type(field: SchemaField) -> str:
    text = field.type
    if field.is_list:
        text += "[]"
    if not field.is_required and field.kind == "scalar":
        text += "?"
    return text


# ===================================================================
# Nodes
# ===================================================================

def _model_node(model: SchemaModel) -> LayoutNode:
    rows = [
        {
            "name": f.name,
            "type": format_field_type(f),
            "constraints": field_constraints(f),
            "isId": f.is_id,
            "isUnique": f.is_unique,
            "isRequired": f.is_required,
            "isRelation": f.kind == "object",
            "isEnum": f.kind == "enum",
            "isList": f.is_list,
            "handleId": f"{model.name}.{f.name}",
            "dbName": f.db_name or f.name,
            "hasDefaultValue": f.has_default_value,
            "default": f.default,
        }
        for f in model.fields
    ]
    constraints = model_constraints(model)
    index_count = len(model.indexes) + len(model.unique_indexes)
    return LayoutNode(
        id=f"model-{model.name}",
        kind="model",
        position=Position(0, 0),
        width=0,
        height=0,
        data={
            "label": model.name,
            "dbName": model.db_name or model.name,
            "fields": rows,
            "stats": {
                "totalFields": len(model.fields),
                "relations": sum(1 for f in model.fields if f.kind == "object"),
                "indexes": index_count,
                "constraints": len(constraints),
            },
            "constraints": constraints,
            "primaryKey": model.primary_key.to_dict() if model.primary_key else None,
            "uniqueIndexes": [i.to_dict() for i in model.unique_indexes],
            "indexes": [i.to_dict() for i in model.indexes],
        },
    )


def _enum_node(enum: SchemaEnum) -> LayoutNode:
    rows = [
        {
            "name": value.name,
            "type": "enum value",
            "handleId": f"{enum.name}.{value.name}",
            "dbName": value.db_name or value.name,
            "isEnum": True,
        }
        for value in enum.values
    ]
    return LayoutNode(
        id=f"enum-{enum.name}",
        kind="enum",
        position=Position(0, 0),
        width=0,
        height=0,
        data={
            "label": enum.name,
            "dbName": enum.db_name or enum.name,
            "fields": rows,
            "stats": {"totalFields": len(enum.values)},
            "constraints": [],
            "indexes": [],
        },
    )


# ===================================================================
# Edges
# ===================================================================

def _reverse_field(
    source: SchemaModel,
    field: SchemaField,
    target: Optional[SchemaModel],
) -> Optional[SchemaField]:
    if target is None:
        return None
    for candidate in target.fields:
        if candidate is field:
            continue
        if (
            candidate.kind == "object"
            and candidate.type == source.name
            and candidate.relation_name == field.relation_name
        ):
            return candidate
    return None


def relation_type(source: SchemaModel, field: SchemaField, target: Optional[SchemaModel]) -> str:
    """Cardinality from both sides; a missing back-relation counts as non-list."""
    reverse = _reverse_field(source, field, target)
    target_is_list = reverse.is_list if reverse is not None else False
    if field.is_list and target_is_list:
        return "many-to-many"
    if field.is_list or target_is_list:
        return "one-to-many"
    return "one-to-one"


def relation_key(model: SchemaModel, field: SchemaField) -> str:
    if field.relation_name:
        return field.relation_name
    return "-".join(sorted((model.name, field.type)))


def _relation_edge(model: SchemaModel, field: SchemaField, schema: ParsedSchema) -> LayoutEdge:
    target = schema.model_named(field.type)
    kind = relation_type(model, field, target)
    target_pk = next((f for f in target.fields if f.is_id), None) if target else None

    fk = None
    if field.relation_from_fields:
        fk = {
            "fromFields": list(field.relation_from_fields),
            "toFields": list(field.relation_to_fields) or ["id"],
        }

    parts = [RELATION_SYMBOLS[kind]]
    if field.relation_name:
        parts.append(field.relation_name)
    if fk:
        parts.append(f"{','.join(fk['fromFields'])} → {','.join(fk['toFields'])}")

    return LayoutEdge(
        id=f"relation-{model.name}-{field.name}-{field.type}",
        source=f"model-{model.name}",
        target=f"model-{field.type}",
        style="relation",
        label=" | ".join(parts),
        data={
            "type": "relation",
            "relationType": kind,
            "relationName": field.relation_name,
            "foreignKeyFields": list(field.relation_from_fields),
            "referencedFields": list(field.relation_to_fields),
            "onDelete": field.relation_on_delete,
            "onUpdate": field.relation_on_update,
            "sourceHandle": f"{model.name}.{field.name}-source",
            "targetHandle": f"{field.type}.{target_pk.name if target_pk else 'id'}-target",
        },
    )


def _enum_edge(model: SchemaModel, field: SchemaField) -> LayoutEdge:
    return LayoutEdge(
        id=f"enum-ref-{model.name}-{field.name}-{field.type}",
        source=f"model-{model.name}",
        target=f"enum-{field.type}",
        style="enum-reference",
        label="uses",
        data={
            "type": "enumReference",
            "sourceHandle": f"{model.name}.{field.name}-source",
            "targetHandle": f"{field.type}.{field.type}-target",
        },
    )


# ===================================================================
# Builder
# ===================================================================

class SchemaGraphBuilder:
    """One node per model and enum, one edge per unique relation."""

    def __init__(self, schema: ParsedSchema):
        self.schema = schema

    def build(self) -> SchemaGraph:
        nodes = [_model_node(m) for m in self.schema.models]
        nodes.extend(_enum_node(e) for e in self.schema.enums)

        edges: List[LayoutEdge] = []
        processed: Set[str] = set()
        for model in self.schema.models:
            for field in model.fields:
                if field.kind == "object":
                    key = relation_key(model, field)
                    if key in processed:
                        continue
                    processed.add(key)
                    edges.append(_relation_edge(model, field, self.schema))
                elif field.kind == "enum":
                    edges.append(_enum_edge(model, field))

        stats = compute_schema_stats(self.schema, edges)
        logger.debug(
            "Schema graph: %d nodes, %d edges", len(nodes), len(edges),
        )
        return SchemaGraph(nodes=nodes, edges=edges, stats=stats)


def build_schema_graph(schema: ParsedSchema) -> SchemaGraph:
    return SchemaGraphBuilder(schema).build()


def analyze_schema(
    path: Path,
    layout: bool = True,
    cfg: Optional[ForceLayoutConfig] = None,
) -> SchemaGraph:
    """Parse, build and (optionally) position the graph of one schema file.

    ``OSError`` from reading the file propagates.
    """
    graph = build_schema_graph(parse_schema_file(path))
    if layout:
        layout_schema_graph(graph, cfg)
    return graph


# ===================================================================
# Statistics
# ===================================================================

def compute_schema_stats(schema: ParsedSchema, edges: List[LayoutEdge]) -> Dict[str, Any]:
    models = schema.models
    enums = schema.enums
    relation_edges = [e for e in edges if e.data.get("type") == "relation"]
    enum_edges = [e for e in edges if e.data.get("type") == "enumReference"]

    def count(kind: str) -> int:
        return sum(1 for e in relation_edges if e.data.get("relationType") == kind)

    breakdown: List[Dict[str, Any]] = []
    for model in models:
        relation_fields = [f for f in model.fields if f.kind == "object"]
        breakdown.append({
            "name": model.name,
            "dbName": model.db_name or model.name,
            "relations": len(relation_fields),
            "fields": len(model.fields),
            "indexes": len(model.indexes) + len(model.unique_indexes),
            "relatedModels": [f.type for f in relation_fields],
            "scalarFields": sum(1 for f in model.fields if f.kind == "scalar"),
            "enumFields": sum(1 for f in model.fields if f.kind == "enum"),
            "uniqueFields": sum(1 for f in model.fields if f.is_unique),
            "requiredFields": sum(1 for f in model.fields if f.is_required),
            "fieldsWithDefaults": sum(1 for f in model.fields if f.has_default_value),
            "relationTypes": {"oneToOne": 0, "oneToMany": 0, "manyToMany": 0},
        })
    # Stable sort keeps declaration order among equally connected models.
    breakdown.sort(key=lambda m: m["relations"], reverse=True)

    by_name = {m["name"]: m for m in breakdown}
    type_keys = {"one-to-one": "oneToOne", "one-to-many": "oneToMany", "many-to-many": "manyToMany"}
    for edge in relation_edges:
        entry = by_name.get(edge.source[len("model-"):])
        key = type_keys.get(edge.data.get("relationType"))
        if entry is not None and key:
            entry["relationTypes"][key] += 1

    regular_indexes = sum(len(m.indexes) for m in models)
    unique_indexes = sum(len(m.unique_indexes) for m in models)
    total_values = sum(len(e.values) for e in enums)
    used_enums = {f.type for m in models for f in m.fields if f.kind == "enum"}
    total_relations = sum(m["relations"] for m in breakdown)
    average = round(total_relations / len(models), 2) if models else 0.0

    return {
        "overview": {
            "modelCount": len(models),
            "enumCount": len(enums),
            "totalRelations": len(relation_edges),
            "totalIndexes": regular_indexes + unique_indexes,
        },
        "modelBreakdown": breakdown,
        "relations": {
            "total": len(relation_edges),
            "oneToOne": count("one-to-one"),
            "oneToMany": count("one-to-many"),
            "manyToMany": count("many-to-many"),
            "enumReferences": len(enum_edges),
            "averagePerModel": average,
        },
        "indexes": {
            "total": regular_indexes + unique_indexes,
            "regular": regular_indexes,
            "unique": unique_indexes,
        },
        "enums": {
            "total": len(enums),
            "totalValues": total_values,
            "usedInModels": len(used_enums),
            "averageValuesPerEnum": round(total_values / len(enums), 2) if enums else 0.0,
        },
        "insights": {
            "mostConnectedModel": breakdown[0] if breakdown else None,
            "leastConnectedModel": breakdown[-1] if breakdown else None,
            "averageRelationsPerModel": average,
            "totalModelsWithRelations": sum(1 for m in breakdown if m["relations"] > 0),
        },
    }
