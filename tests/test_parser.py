"""Tests for Tree-sitter import extraction."""

import pytest

from nextgraph_cli.parser import ImportExtractor, ParseFailure


@pytest.fixture(scope="module")
def extractor() -> ImportExtractor:
    return ImportExtractor()


def test_static_imports(extractor: ImportExtractor):
    source = (
        'import React from "react";\n'
        'import * as path from "path";\n'
        'import { a, b as c } from "./lib";\n'
        'import "./styles.css";\n'
    )
    found = extractor.extract(source, ".js")
    assert [r.source for r in found] == ["react", "path", "./lib", "./styles.css"]
    assert all(r.type == "import" for r in found)
    assert found[0].specifiers == (("default", "React", "React", None),)
    assert found[1].specifiers == (("namespace", "path", "path", None),)
    assert found[2].specifiers == (
        ("named", "a", "a", None),
        ("named", "c", "b", None),
    )
    assert found[3].specifiers == ()


def test_dynamic_import_and_require(extractor: ImportExtractor):
    source = (
        'const fs = require("fs");\n'
        'async function load() { return import("./chunk"); }\n'
        "const skipped = require(name);\n"
    )
    found = extractor.extract(source, ".js")
    assert [(r.source, r.type) for r in found] == [("fs", "require"), ("./chunk", "dynamic-import")]


def test_reexports(extractor: ImportExtractor):
    source = (
        'export { Button as PrimaryButton, Icon } from "./ui";\n'
        'export * from "./all";\n'
        "export const local = 1;\n"
    )
    found = extractor.extract(source, ".js")
    assert [(r.source, r.type) for r in found] == [("./ui", "export-from"), ("./all", "export-all-from")]
    assert found[0].specifiers == (
        ("export", "Button", None, "PrimaryButton"),
        ("export", "Icon", None, "Icon"),
    )


def test_jsx_in_js(extractor: ImportExtractor):
    source = 'import Nav from "./Nav";\nexport default function Page() { return <div><Nav /></div>; }\n'
    assert [r.source for r in extractor.extract(source, ".jsx")] == ["./Nav"]


def test_typescript_type_import(extractor: ImportExtractor):
    source = 'import type { User } from "./types";\nimport { db } from "./db";\nlet u: User;\n'
    found = extractor.extract(source, ".ts")
    assert [(r.source, r.import_kind) for r in found] == [("./types", "type"), ("./db", "value")]


def test_modern_syntax_is_tolerated(extractor: ImportExtractor):
    source = (
        'import { load } from "./load";\n'
        "const value = (await load())?.items ?? [];\n"
    )
    assert [r.source for r in extractor.extract(source, ".mjs")] == ["./load"]


def test_tsx(extractor: ImportExtractor):
    source = 'import Header from "@/components/Header";\nconst x = <Header title={"a" as string} />;\n'
    assert [r.source for r in extractor.extract(source, ".tsx")] == ["@/components/Header"]


def test_syntax_error_reports_position(extractor: ImportExtractor):
    with pytest.raises(ParseFailure) as excinfo:
        extractor.extract("import { from 'x';", ".js")
    assert excinfo.value.line == 1
    assert str(excinfo.value).startswith("Parse error at line 1, column ")


def test_supports(extractor: ImportExtractor):
    assert extractor.supports(".tsx")
    assert not extractor.supports(".css")
