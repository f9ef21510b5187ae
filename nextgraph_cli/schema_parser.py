"""Line-oriented reader for Prisma schema files.

``parse_schema()`` produces the model / enum / field structure the schema
graph is built from.  ``analyze_schema_file()`` produces the lighter line
statistics shown in the project overview.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .models import (
    ParsedSchema,
    SchemaEnum,
    SchemaEnumValue,
    SchemaField,
    SchemaIndex,
    SchemaModel,
)

logger = logging.getLogger(__name__)


class SchemaParseError(ValueError):
    """The schema text has no recognizable blocks."""


_BLOCK_RE = re.compile(r"^(model|enum|view|type|datasource|generator)\s+(\w+)\s*\{")
_FIELD_RE = re.compile(r'^(\w+)\s+(\w+(?:\("[^"]*"\))?)(\[\])?(\?)?(.*)$')
_ENUM_VALUE_RE = re.compile(r"^(\w+)(.*)$")
_PROVIDER_RE = re.compile(r'provider\s*=\s*["\']([^"\']+)["\']')
_FUNCTION_DEFAULT_RE = re.compile(r"^(\w+)\s*\(")


# ---------------------------------------------------------------------------
# Low-level text helpers
# ---------------------------------------------------------------------------

def _strip_comment(line: str) -> str:
    """Drop a trailing ``//`` comment that is not inside a string."""
    in_string = False
    for i, ch in enumerate(line):
        if ch == '"' and (i == 0 or line[i - 1] != "\\"):
            in_string = not in_string
        elif ch == "/" and not in_string and line[i:i + 2] == "//":
            return line[:i].rstrip()
    return line.rstrip()


def _attribute_args(text: str, name: str) -> Optional[str]:
    """Raw argument text of ``@name(...)``; ``""`` for a bare ``@name``.

    Block attributes (``@@name``) are matched when *name* starts with ``@``.
    """
    pattern = re.compile(r"(?<!@)@" + re.escape(name) + r"(?![\w.])")
    match = pattern.search(text)
    if match is None:
        return None
    pos = match.end()
    if pos >= len(text) or text[pos] != "(":
        return ""

    depth = 0
    in_string = False
    for i in range(pos, len(text)):
        ch = text[i]
        if ch == '"' and text[i - 1] != "\\":
            in_string = not in_string
        elif in_string:
            continue
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return text[pos + 1:i].strip()
    return text[pos + 1:].strip()


def _field_list(args: str, key: Optional[str] = None) -> List[str]:
    """Names inside the first ``[...]`` (or the one after ``key:``)."""
    if key is not None:
        match = re.search(re.escape(key) + r"\s*:\s*\[([^\]]*)\]", args)
    else:
        match = re.search(r"\[([^\]]*)\]", args)
    if match is None:
        return []
    names = []
    for part in match.group(1).split(","):
        name = re.sub(r"\(.*\)", "", part).strip()
        if name:
            names.append(name)
    return names


def _named_arg(args: str, key: str) -> Optional[str]:
    match = re.search(re.escape(key) + r'\s*:\s*"([^"]*)"', args)
    return match.group(1) if match else None


def _bare_arg(args: str, key: str) -> Optional[str]:
    match = re.search(re.escape(key) + r"\s*:\s*(\w+)", args)
    return match.group(1) if match else None


def _leading_string(args: str) -> Optional[str]:
    match = re.match(r'\s*"([^"]*)"', args)
    return match.group(1) if match else None


def format_default(raw: Optional[str]) -> str:
    """Display form of a ``@default(...)`` argument."""
    if not raw:
        return ""
    func = _FUNCTION_DEFAULT_RE.match(raw)
    if func:
        return f"{func.group(1)}()"
    return raw


# ---------------------------------------------------------------------------
# Structured parse
# ---------------------------------------------------------------------------

def _parse_field(line: str) -> Optional[SchemaField]:
    match = _FIELD_RE.match(line)
    if match is None:
        return None
    name, type_name, list_marker, optional_marker, rest = match.groups()

    field = SchemaField(
        name=name,
        type=type_name,
        kind="scalar",
        is_list=bool(list_marker),
        is_required=not optional_marker,
        is_unique=_attribute_args(rest, "unique") is not None,
        is_id=_attribute_args(rest, "id") is not None,
        is_updated_at=_attribute_args(rest, "updatedAt") is not None,
    )

    default = _attribute_args(rest, "default")
    if default is not None:
        field.has_default_value = True
        field.default = default

    db_name = _attribute_args(rest, "map")
    if db_name:
        field.db_name = _leading_string(db_name)

    relation = _attribute_args(rest, "relation")
    if relation is not None:
        field.relation_name = _leading_string(relation) or _named_arg(relation, "name")
        field.relation_from_fields = _field_list(relation, "fields")
        field.relation_to_fields = _field_list(relation, "references")
        field.relation_on_delete = _bare_arg(relation, "onDelete")
        field.relation_on_update = _bare_arg(relation, "onUpdate")
    return field


def _parse_block_attribute(model: SchemaModel, line: str) -> None:
    args = _attribute_args(line, "@id")
    if args is not None:
        model.primary_key = SchemaIndex(fields=_field_list(args), name=_named_arg(args, "name"))
        return
    args = _attribute_args(line, "@unique")
    if args is not None:
        model.unique_indexes.append(SchemaIndex(fields=_field_list(args), name=_named_arg(args, "name")))
        return
    args = _attribute_args(line, "@index")
    if args is not None:
        model.indexes.append(SchemaIndex(fields=_field_list(args), name=_named_arg(args, "name")))
        return
    args = _attribute_args(line, "@map")
    if args:
        model.db_name = _leading_string(args)


def parse_schema(text: str, strict: bool = False) -> ParsedSchema:
    """Parse Prisma schema *text*.

    Field kinds are resolved once every block is known: a type naming a
    model is ``object``, one naming an enum is ``enum``.  Relation fields
    without an explicit name get Prisma's implicit ``AToB`` name (model
    names sorted) so both sides of the relation agree.
    """
    schema = ParsedSchema()
    block: Optional[Tuple[str, str]] = None
    current_model: Optional[SchemaModel] = None
    current_enum: Optional[SchemaEnum] = None
    saw_block = False

    for raw_line in text.splitlines():
        line = _strip_comment(raw_line).strip()
        if not line:
            continue

        if block is None:
            header = _BLOCK_RE.match(line)
            if header is None:
                continue
            saw_block = True
            kind, name = header.groups()
            block = (kind, name)
            if kind == "model":
                current_model = SchemaModel(name=name)
                schema.models.append(current_model)
            elif kind == "enum":
                current_enum = SchemaEnum(name=name)
                schema.enums.append(current_enum)
            if line.endswith("}"):
                block, current_model, current_enum = None, None, None
            continue

        if line.startswith("}"):
            block, current_model, current_enum = None, None, None
            continue

        kind = block[0]
        if kind == "datasource":
            provider = _PROVIDER_RE.search(line)
            if provider:
                schema.datasource_provider = provider.group(1)
        elif kind == "generator":
            provider = _PROVIDER_RE.search(line)
            if provider:
                schema.generators.append(provider.group(1))
        elif kind == "model" and current_model is not None:
            if line.startswith("@@"):
                _parse_block_attribute(current_model, line)
                continue
            field = _parse_field(line)
            if field is not None:
                current_model.fields.append(field)
        elif kind == "enum" and current_enum is not None:
            if line.startswith("@@"):
                mapped = _attribute_args(line, "@map")
                if mapped:
                    current_enum.db_name = _leading_string(mapped)
                continue
            match = _ENUM_VALUE_RE.match(line)
            if match:
                value_name, rest = match.groups()
                mapped = _attribute_args(rest, "map")
                current_enum.values.append(SchemaEnumValue(
                    name=value_name,
                    db_name=_leading_string(mapped) if mapped else None,
                ))

    if strict and not saw_block:
        raise SchemaParseError("No model, enum, datasource or generator blocks found")

    _resolve_kinds(schema)
    return schema


def _resolve_kinds(schema: ParsedSchema) -> None:
    model_names = {m.name for m in schema.models}
    enum_names = {e.name for e in schema.enums}
    for model in schema.models:
        for field in model.fields:
            if field.type in model_names:
                field.kind = "object"
                if not field.relation_name:
                    first, second = sorted((model.name, field.type))
                    field.relation_name = f"{first}To{second}"
            elif field.type in enum_names:
                field.kind = "enum"


def parse_schema_file(path: Path, strict: bool = False) -> ParsedSchema:
    """Read and parse a schema file; ``OSError`` propagates to the caller."""
    text = Path(path).read_text(encoding="utf-8")
    return parse_schema(text, strict=strict)


# ---------------------------------------------------------------------------
# Line statistics
# ---------------------------------------------------------------------------

def _classify_relation_pairs(relation_fields: List[Dict]) -> Dict[str, int]:
    pairs: Dict[str, List[Dict]] = {}
    for rel in relation_fields:
        key = "-".join(sorted((rel["model"], rel["type"])))
        pairs.setdefault(key, []).append(rel)

    counts = {"oneToOne": 0, "oneToMany": 0, "manyToMany": 0}
    for pair in pairs.values():
        lists = [r["isArray"] for r in pair]
        if all(lists) and len(pair) > 1:
            counts["manyToMany"] += 1
        elif any(lists):
            counts["oneToMany"] += 1
        else:
            counts["oneToOne"] += 1
    return counts


def analyze_schema_text(text: str) -> Dict:
    """Count blocks, fields, relations and constraints line by line."""
    stats: Dict = {
        "models": 0,
        "enums": 0,
        "views": 0,
        "types": 0,
        "relationships": {
            "total": 0,
            "oneToOne": 0,
            "oneToMany": 0,
            "manyToMany": 0,
            "selfRelations": 0,
        },
        "fields": {"total": 0, "required": 0, "optional": 0, "unique": 0, "indexed": 0},
        "fieldTypes": {},
        "datasource": {"provider": None},
        "generators": [],
        "constraints": {"primaryKeys": 0, "uniqueConstraints": 0, "indexes": 0},
    }
    model_names: List[str] = []
    enum_names: List[str] = []
    relation_fields: List[Dict] = []

    context = None
    current = None
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(("//", "/*", "*")):
            continue

        header = _BLOCK_RE.match(line)
        if header:
            kind, name = header.groups()
            context = kind
            current = name
            if kind == "model":
                stats["models"] += 1
                model_names.append(name)
            elif kind == "enum":
                stats["enums"] += 1
                enum_names.append(name)
            elif kind == "view":
                stats["views"] += 1
            elif kind == "type":
                stats["types"] += 1
            continue

        if line.startswith("}"):
            context, current = None, None
            continue

        if context == "datasource":
            provider = _PROVIDER_RE.search(line)
            if provider:
                stats["datasource"]["provider"] = provider.group(1)
        elif context == "generator":
            provider = _PROVIDER_RE.search(line)
            if provider:
                stats["generators"].append(provider.group(1))
        elif context in ("model", "view", "type"):
            if line.startswith("@@"):
                if "@@unique" in line:
                    stats["constraints"]["uniqueConstraints"] += 1
                if "@@index" in line:
                    stats["constraints"]["indexes"] += 1
                    stats["fields"]["indexed"] += len(_field_list(line))
                if "@@id" in line:
                    stats["constraints"]["primaryKeys"] += 1
                continue

            match = _FIELD_RE.match(line)
            if match is None:
                continue
            name, type_name, is_array, is_optional, _rest = match.groups()
            fields = stats["fields"]
            fields["total"] += 1
            fields["optional" if is_optional else "required"] += 1
            stats["fieldTypes"][type_name] = stats["fieldTypes"].get(type_name, 0) + 1
            if "@id" in line:
                stats["constraints"]["primaryKeys"] += 1
            if "@unique" in line:
                fields["unique"] += 1
            if "@relation" in line:
                stats["relationships"]["total"] += 1
                relation_fields.append({
                    "model": current,
                    "field": name,
                    "type": type_name,
                    "isArray": bool(is_array),
                })
                if type_name == current:
                    stats["relationships"]["selfRelations"] += 1

    stats["relationships"].update(_classify_relation_pairs(relation_fields))
    return {"stats": stats, "modelNames": model_names, "enumNames": enum_names}


def analyze_schema_file(path: Path) -> Dict:
    """File facts plus ``analyze_schema_text`` statistics.

    A read failure is reported in an ``error`` key with ``stats: None``.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
        st = path.stat()
    except OSError as exc:
        logger.warning("Could not analyze schema %s: %s", path, exc)
        return {"fileName": path.name, "filePath": str(path), "error": str(exc), "stats": None}

    result = {
        "fileName": path.name,
        "filePath": str(path),
        "fileSize": f"{st.st_size / 1024:.2f} KB",
        "lastModified": datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat(),
        "lineCount": len(text.split("\n")),
    }
    result.update(analyze_schema_text(text))
    return result
