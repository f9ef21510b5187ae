"""Integration tests for CLI commands."""

import json
from pathlib import Path

from typer.testing import CliRunner

from nextgraph_cli import __version__
from nextgraph_cli.cli import app


runner = CliRunner()


class TestVersion:
    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"NextGraph CLI v{__version__}" in result.stdout


class TestAnalyzeCommand:
    """Tests for 'nextgraph analyze'."""

    def test_summary(self, nextjs_project: Path):
        result = runner.invoke(app, ["analyze", str(nextjs_project)])
        assert result.exit_code == 0
        assert "Routes:" in result.stdout
        assert "Route patterns" in result.stdout

    def test_json(self, nextjs_project: Path):
        result = runner.invoke(app, ["analyze", str(nextjs_project), "--json"])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["insights"]["routeCount"] == 2
        assert payload["insights"]["apiEndpointCount"] == 1
        assert payload["structure"]["kind"] == "folder"

    def test_output_file(self, nextjs_project: Path, temp_dir: Path):
        target = temp_dir / "analysis.json"
        result = runner.invoke(app, ["analyze", str(nextjs_project), "--deps", "-o", str(target)])
        assert result.exit_code == 0
        assert "Wrote analysis" in result.stdout
        assert "dependencyMap" in json.loads(target.read_text())

    def test_nonexistent_path(self, temp_dir: Path):
        result = runner.invoke(app, ["analyze", str(temp_dir / "missing")])
        assert result.exit_code == 1

    def test_error_keeps_bracketed_path(self, temp_dir: Path):
        result = runner.invoke(app, ["analyze", str(temp_dir / "[b]x")])
        assert result.exit_code == 1
        assert "[b]x" in result.stdout

    def test_prisma_summary(self, full_project: Path):
        result = runner.invoke(app, ["analyze", str(full_project)])
        assert result.exit_code == 0
        assert "2 models" in result.stdout


class TestShowAndRoutes:
    def test_show_tree(self, nextjs_project: Path):
        result = runner.invoke(app, ["show", str(nextjs_project)])
        assert result.exit_code == 0
        assert "about/" in result.stdout
        assert "/api/users" in result.stdout

    def test_show_keeps_brackets(self, full_project: Path):
        result = runner.invoke(app, ["show", str(full_project)])
        assert result.exit_code == 0
        assert "[slug]/" in result.stdout

    def test_routes_table(self, nextjs_project: Path):
        result = runner.invoke(app, ["routes", str(nextjs_project)])
        assert result.exit_code == 0
        assert "/about" in result.stdout
        assert "GET, POST" in result.stdout

    def test_routes_json(self, full_project: Path):
        result = runner.invoke(app, ["routes", str(full_project), "--json"])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["summary"]["totalPages"] == 6
        assert payload["interceptingRoutes"][0]["target"] == "/login"

    def test_routes_missing_project(self, temp_dir: Path):
        result = runner.invoke(app, ["routes", str(temp_dir / "missing")])
        assert result.exit_code == 1


class TestDependencyCommands:
    def test_deps_json(self, full_project: Path):
        target = full_project / "app" / "page.tsx"
        result = runner.invoke(app, ["deps", str(target), "--root", str(full_project), "--json"])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert [d["source"] for d in payload["localDependencies"]] == ["@/components/Header", "@/lib/db"]
        assert payload["metadata"]["totalCount"] == 3

    def test_deps_table(self, full_project: Path):
        target = full_project / "app" / "page.tsx"
        result = runner.invoke(app, ["deps", str(target), "--root", str(full_project)])
        assert result.exit_code == 0
        assert "react" in result.stdout

    def test_deps_parse_error(self, full_project: Path):
        target = full_project / "lib" / "broken.js"
        result = runner.invoke(app, ["deps", str(target), "--root", str(full_project)])
        assert result.exit_code == 0
        assert "Parse error" in result.stdout
        assert "No dependencies found." in result.stdout

    def test_importers(self, full_project: Path):
        target = full_project / "components" / "Nav.tsx"
        result = runner.invoke(app, ["importers", str(target), "--root", str(full_project)])
        assert result.exit_code == 0
        assert "components/Header.tsx" in result.stdout
        assert "(Nav)" in result.stdout

    def test_no_importers(self, full_project: Path):
        target = full_project / "app" / "page.tsx"
        result = runner.invoke(app, ["importers", str(target), "--root", str(full_project)])
        assert result.exit_code == 0
        assert "No importers found." in result.stdout


class TestLayoutCommand:
    def test_json_layout(self, nextjs_project: Path):
        result = runner.invoke(app, ["layout", str(nextjs_project)])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["nodes"][0]["id"] == "root"

    def test_expand_all_with_deps(self, nextjs_project: Path):
        result = runner.invoke(app, ["layout", str(nextjs_project), "--expand-all", "--deps"])
        assert result.exit_code == 0
        kinds = {n["kind"] for n in json.loads(result.stdout)["nodes"]}
        assert kinds == {"folder", "file", "dependency"}

    def test_dot_to_file(self, nextjs_project: Path, temp_dir: Path):
        target = temp_dir / "tree.dot"
        result = runner.invoke(app, ["layout", str(nextjs_project), "-f", "dot", "-o", str(target)])
        assert result.exit_code == 0
        assert "Exported graph" in result.stdout
        assert target.read_text().startswith("digraph")

    def test_bad_format(self, nextjs_project: Path):
        result = runner.invoke(app, ["layout", str(nextjs_project), "-f", "svg"])
        assert result.exit_code != 0


class TestSchemaCommand:
    def test_summary(self, schema_file: Path):
        result = runner.invoke(app, ["schema", str(schema_file)])
        assert result.exit_code == 0
        assert "Models" in result.stdout
        assert "User" in result.stdout

    def test_json(self, schema_file: Path):
        result = runner.invoke(app, ["schema", str(schema_file), "-f", "json", "--no-layout"])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["stats"]["overview"]["modelCount"] == 2
        assert len(payload["edges"]) == 2

    def test_html_to_file(self, schema_file: Path, temp_dir: Path):
        target = temp_dir / "schema.html"
        result = runner.invoke(app, ["schema", str(schema_file), "-f", "html", "-o", str(target)])
        assert result.exit_code == 0
        assert "<svg" in target.read_text()

    def test_missing_file(self, temp_dir: Path):
        result = runner.invoke(app, ["schema", str(temp_dir / "none.prisma")])
        assert result.exit_code != 0


class TestConfigCommands:
    def test_show_defaults(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "(defaults)" in result.stdout

    def test_set_and_show(self):
        result = runner.invoke(app, ["config", "set", "layout.depth_distance", "700"])
        assert result.exit_code == 0
        assert "Set layout.depth_distance = 700" in result.stdout

        shown = runner.invoke(app, ["config", "show"])
        assert "[layout]" in shown.stdout
        assert "depth_distance = 700" in shown.stdout

    def test_set_extra_ignores(self):
        result = runner.invoke(app, ["config", "set", "analysis.extra_ignores", "out/, tmp/"])
        assert result.exit_code == 0
        assert "['out/', 'tmp/']" in result.stdout

    def test_set_rejects_unknown_section(self):
        result = runner.invoke(app, ["config", "set", "colors.folder", "red"])
        assert result.exit_code != 0

    def test_set_rejects_malformed_key(self):
        result = runner.invoke(app, ["config", "set", "depth_distance", "1"])
        assert result.exit_code != 0
