"""Tests for the route manifest."""

from pathlib import Path

import pytest

from nextgraph_cli.routes import build_route_manifest, detect_config_files
from nextgraph_cli.walker import analyze_project


@pytest.fixture
def manifest(full_project: Path):
    structure = analyze_project(full_project).structure
    return build_route_manifest(structure, full_project)


class TestRouteManifest:
    def test_pages_in_tree_order(self, manifest):
        assert [p.url for p in manifest.pages] == [
            "/", "/about", "/", "/blog/[slug]", "/docs/[[...path]]", "/login",
        ]

    def test_layout_chain(self, manifest):
        post = next(p for p in manifest.pages if p.url == "/blog/[slug]")
        assert post.layout_chain == ["app/layout.tsx", "app/blog/layout.tsx"]
        about = next(p for p in manifest.pages if p.url == "/about")
        assert about.layout_chain == ["app/layout.tsx"]

    def test_api_routes(self, manifest):
        assert [(a.url, a.methods, a.kind) for a in manifest.api_routes] == [
            ("/api/posts/[id]", ["DELETE", "GET"], "dynamic-api"),
            ("/api/users", ["GET", "POST"], "static-api"),
        ]
        assert list(manifest.api_groups) == ["api"]

    def test_special_folders(self, manifest):
        assert [(g.name, g.url) for g in manifest.route_groups] == [("marketing", "/")]
        assert [s.slot for s in manifest.parallel_slots["/"]] == ["modal"]
        assert manifest.private_folders == ["app/_components"]
        assert manifest.dynamic_segments == 3

    def test_intercepting_route_target(self, manifest):
        (route,) = manifest.intercepting_routes
        assert route.intercept_level == "same-level"
        assert route.target_segment == "login"
        assert route.target == "/login"
        login = manifest.pages[-1]
        assert login.intercepted_by == ["app/@modal/(.)login"]

    def test_metadata_files(self, manifest):
        assert [(m.type, m.file) for m in manifest.metadata_files] == [("robots", "app/robots.ts")]

    def test_summary(self, manifest):
        summary = manifest.summary
        assert summary["totalPages"] == 6
        assert summary["totalApiRoutes"] == 2
        assert summary["maxLayoutDepth"] == 2
        assert summary["hasNestedLayouts"] is True
        assert summary["hasMiddleware"] is True
        assert summary["hasServerActions"] is False
        assert summary["parallelRoutes"] == 1

    def test_payload_is_camel_case(self, manifest):
        payload = manifest.to_dict()
        assert "apiRoutes" in payload
        assert payload["pages"][0]["layoutChain"] == ["app/layout.tsx"]
        assert payload["parallelSlots"]["/"][0]["relativePath"] == "app/@modal"


class TestConfigFiles:
    def test_detected(self, full_project: Path):
        found = [(c.type, c.file_name) for c in detect_config_files(full_project)]
        assert found == [
            ("next-config", "next.config.mjs"),
            ("middleware", "middleware.ts"),
            ("environment", ".env.local"),
        ]

    def test_none(self, temp_dir: Path):
        assert detect_config_files(temp_dir) == []


def test_project_without_app_folder(make_project):
    root = make_project({"src/index.js": "console.log(1);\n"})
    manifest = build_route_manifest(analyze_project(root).structure)
    assert manifest.pages == []
    assert manifest.summary["totalPages"] == 0
    assert manifest.summary["maxLayoutDepth"] == 0
