"""Import extraction for JavaScript / TypeScript using Tree-sitter.

Tree-sitter gives an error-tolerant concrete syntax tree for JS, JSX, TS
and TSX.  ``ImportExtractor`` walks that tree once and reports every
import-like statement:

- ``import ... from "x"`` and ``import "x"``
- ``import("x")`` (dynamic import)
- ``require("x")``
- ``export { a } from "x"`` / ``export * as ns from "x"``
- ``export * from "x"``

Only string-literal sources are reported; computed specifiers are skipped.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Dict, List, Optional, Tuple

from tree_sitter import Language, Parser as TSParser

from .models import RawImport

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
}

# language -> (grammar module, factory function)
_GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
}


class ParseFailure(Exception):
    """Raised when a source file does not produce a clean syntax tree."""

    def __init__(self, line: int, column: int):
        self.line = line
        self.column = column
        super().__init__(f"Parse error at line {line}, column {column}")


def _text(node: Any) -> str:
    return node.text.decode("utf-8", errors="replace")


def _string_value(node: Any) -> Optional[str]:
    """Value of a ``string`` literal node, without its quotes."""
    if node is None or node.type != "string":
        return None
    raw = _text(node)
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "'\"":
        return raw[1:-1]
    return None


def _first_error(root: Any) -> Optional[Any]:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_error or node.is_missing:
            return node
        if node.has_error:
            stack.extend(reversed(node.children))
    return None


class ImportExtractor:
    """Parse one file and enumerate its import-like statements."""

    def __init__(self) -> None:
        self._parsers: Dict[str, TSParser] = {}

    # ------------------------------------------------------------------
    # Grammar loading
    # ------------------------------------------------------------------

    def _parser_for(self, lang: str) -> TSParser:
        parser = self._parsers.get(lang)
        if parser is not None:
            return parser

        mod_name, factory = _GRAMMAR_MODULES[lang]
        mod = importlib.import_module(mod_name)
        # tree-sitter >=0.22 per-language packages expose a function that
        # returns the Language capsule.
        ts_lang = Language(getattr(mod, factory)())
        parser = TSParser(ts_lang)
        self._parsers[lang] = parser
        logger.debug("Loaded tree-sitter parser for %s", lang)
        return parser

    def supports(self, extension: str) -> bool:
        return extension in LANGUAGE_MAP

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def extract(self, source: str, extension: str) -> List[RawImport]:
        """Return raw imports in source order.

        Raises ``ParseFailure`` when the tree contains ERROR or MISSING
        nodes, and ``KeyError`` for an extension with no grammar.
        """
        lang = LANGUAGE_MAP[extension]
        tree = self._parser_for(lang).parse(source.encode("utf-8"))
        root = tree.root_node

        if root.has_error:
            bad = _first_error(root) or root
            row, column = bad.start_point[0], bad.start_point[1]
            raise ParseFailure(row + 1, column + 1)

        found: List[RawImport] = []
        stack = [root]
        while stack:
            node = stack.pop()
            handler = _HANDLERS.get(node.type)
            if handler is not None:
                raw = handler(node)
                if raw is not None:
                    found.append(raw)
            stack.extend(reversed(node.children))
        return found


# ===================================================================
# Per-node-kind handlers
# ===================================================================

def _import_statement(node: Any) -> Optional[RawImport]:
    source = _string_value(node.child_by_field_name("source"))
    if source is None:
        return None

    import_kind = "value"
    specifiers: List[tuple] = []
    for child in node.children:
        if child.type == "type":
            import_kind = "type"
        elif child.type == "import_clause":
            specifiers.extend(_import_clause(child))

    return RawImport(
        source=source,
        type="import",
        import_kind=import_kind,
        specifiers=tuple(specifiers),
    )


def _import_clause(clause: Any) -> List[tuple]:
    specs: List[tuple] = []
    for child in clause.named_children:
        if child.type == "identifier":
            name = _text(child)
            specs.append(("default", name, name, None))
        elif child.type == "namespace_import":
            ident = next((c for c in child.named_children if c.type == "identifier"), None)
            if ident is not None:
                name = _text(ident)
                specs.append(("namespace", name, name, None))
        elif child.type == "named_imports":
            for spec in child.named_children:
                if spec.type != "import_specifier":
                    continue
                name_node = spec.child_by_field_name("name")
                alias_node = spec.child_by_field_name("alias")
                if name_node is None:
                    continue
                imported = _text(name_node)
                local = _text(alias_node) if alias_node is not None else imported
                specs.append(("named", local, imported, None))
    return specs


def _export_statement(node: Any) -> Optional[RawImport]:
    source = _string_value(node.child_by_field_name("source"))
    if source is None:
        return None

    import_kind = "value"
    specifiers: List[tuple] = []
    export_all = False
    for child in node.children:
        if child.type == "type":
            import_kind = "type"
        elif child.type == "*":
            export_all = True
        elif child.type == "namespace_export":
            ident = next(
                (c for c in child.named_children if c.type in ("identifier", "string")),
                None,
            )
            if ident is not None:
                name = _text(ident)
                specifiers.append(("namespace-export", None, None, name))
        elif child.type == "export_clause":
            for spec in child.named_children:
                if spec.type != "export_specifier":
                    continue
                name_node = spec.child_by_field_name("name")
                alias_node = spec.child_by_field_name("alias")
                if name_node is None:
                    continue
                local = _text(name_node)
                exported = _text(alias_node) if alias_node is not None else local
                specifiers.append(("export", local, None, exported))

    return RawImport(
        source=source,
        type="export-all-from" if export_all else "export-from",
        import_kind=import_kind,
        specifiers=tuple(specifiers),
    )


def _call_expression(node: Any) -> Optional[RawImport]:
    callee = node.child_by_field_name("function")
    args = node.child_by_field_name("arguments")
    if callee is None or args is None:
        return None

    if callee.type == "import":
        kind = "dynamic-import"
    elif callee.type == "identifier" and _text(callee) == "require":
        kind = "require"
    else:
        return None

    first = args.named_children[0] if args.named_children else None
    source = _string_value(first)
    if source is None:
        return None
    return RawImport(source=source, type=kind)


_HANDLERS = {
    "import_statement": _import_statement,
    "export_statement": _export_statement,
    "call_expression": _call_expression,
}
