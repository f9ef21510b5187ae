"""Project walker: builds the Structure Tree and the project-level insights."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

import pathspec

from . import config
from .config_manager import AnalysisConfig, load_analysis_config
from .dependencies import DependencyAnalyzer, build_dependency_map
from .models import Insights, ProjectAnalysis, SpecialFiles, StructureNode
from .routing import (
    build_route_path,
    classify,
    classify_file,
    display_route,
    is_in_scope,
)
from .schema_parser import analyze_schema_file

logger = logging.getLogger(__name__)


class ProjectRootError(ValueError):
    """The project root is missing or not a directory."""


_FLAG_FOR_TYPE = {
    "page-file": "has_page",
    "layout-file": "has_layout",
    "loading-file": "has_loading",
    "error-file": "has_error",
    "not-found-file": "has_not_found",
    "api-route-file": "has_api_route",
    "template-file": "has_template",
    "default-file": "has_default",
}

_PATTERN_KEYS = {
    "static-route": "static",
    "dynamic-route": "dynamic",
    "catch-all-route": "catchAll",
    "optional-catch-all-route": "optionalCatchAll",
    "route-group": "routeGroups",
    "private-folder": "privateFolders",
    "parallel-route": "parallelRoutes",
    "intercepting-route": "interceptingRoutes",
}

_SPECIAL_KEYS = {
    "layout-file": "layouts",
    "page-file": "pages",
    "loading-file": "loading",
    "error-file": "errors",
    "not-found-file": "notFound",
    "template-file": "templates",
    "default-file": "defaults",
}


# ===================================================================
# Ignore rules
# ===================================================================

def load_ignore_spec(
    project_root: Path,
    extra_patterns: Optional[List[str]] = None,
) -> pathspec.GitIgnoreSpec:
    """Defaults + the project's ``.gitignore`` + configured extras."""
    lines: List[str] = list(config.DEFAULT_IGNORES)
    ignore_file = project_root / config.IGNORE_FILE
    if ignore_file.is_file():
        try:
            lines.extend(ignore_file.read_text(encoding="utf-8", errors="replace").splitlines())
        except OSError as exc:
            logger.warning("Could not read %s: %s", ignore_file, exc)
    lines.extend(extra_patterns or [])
    return pathspec.GitIgnoreSpec.from_lines(lines)


# ===================================================================
# Route paths
# ===================================================================

def route_path_for(relative_path: str, router_root: str = config.APP_ROUTER_ROOT) -> Optional[str]:
    """Derive a folder's URL path from its project-relative path alone.

    ``None`` outside the router root.
    """
    rel = relative_path.replace("\\", "/").strip("/")
    if not is_in_scope(rel, router_root):
        return None
    parts = rel.split("/")
    route = ""
    prefix_len = len(router_root.strip("/").split("/"))
    for segment in parts[prefix_len - 1:]:
        route = build_route_path(route, segment, classify(segment), router_root.split("/")[-1])
    return route


def _sort_key(node: StructureNode):
    return (0 if node.is_folder else 1, node.name.lower(), node.name)


# ===================================================================
# Walker
# ===================================================================

class ProjectWalker:
    """Recursive descent over a project directory.

    Ignored entries are pruned before descent.  Scope membership and route
    paths are derived from each node's own relative path.
    """

    def __init__(self, project_root: Path, settings: Optional[AnalysisConfig] = None):
        root = Path(os.path.abspath(project_root))
        if not root.exists() or not root.is_dir():
            raise ProjectRootError(f"Project path is not a valid directory: {project_root}")
        self.root = root
        self.settings = settings or load_analysis_config(root)
        self.ignore = load_ignore_spec(root, self.settings.extra_ignores)
        self.router_root = self.settings.app_router_root.strip("/")
        self.source_files: List[Path] = []

    def is_ignored(self, relative_path: str, is_dir: bool) -> bool:
        if not relative_path:
            return False
        candidate = relative_path + "/" if is_dir else relative_path
        return self.ignore.match_file(candidate)

    def build(self) -> StructureNode:
        self.source_files = []
        return self._folder(self.root, "")

    # ------------------------------------------------------------------

    def _folder(self, path: Path, rel: str) -> StructureNode:
        in_scope = bool(rel) and is_in_scope(rel, self.router_root)
        node = StructureNode(
            name=path.name,
            kind="folder",
            full_path=str(path),
            relative_path=rel or path.name,
            is_app_router_scope=in_scope,
        )
        if in_scope:
            node.routing_analysis = classify(path.name)
            node.route_path = display_route(route_path_for(rel, self.router_root))

        try:
            entries = list(os.scandir(path))
        except OSError as exc:
            logger.warning("Could not list %s: %s", path, exc)
            entries = []

        children: List[StructureNode] = []
        for entry in entries:
            child_rel = f"{rel}/{entry.name}" if rel else entry.name
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue
            if self.is_ignored(child_rel, is_dir):
                logger.debug("Ignored %s", child_rel)
                continue
            if is_dir:
                children.append(self._folder(Path(entry.path), child_rel))
            elif entry.is_file():
                children.append(self._file(Path(entry.path), child_rel, node.route_path))

        children.sort(key=_sort_key)
        node.children = children
        if in_scope:
            node.special_files = detect_special_files(children)
        return node

    def _file(self, path: Path, rel: str, folder_route: Optional[str]) -> StructureNode:
        in_scope = is_in_scope(rel, self.router_root)
        node = StructureNode(
            name=path.name,
            kind="file",
            full_path=str(path),
            relative_path=rel,
            is_app_router_scope=in_scope,
        )
        if path.suffix in config.SCRIPT_EXTENSIONS:
            self.source_files.append(path)
        if in_scope:
            node.route_path = folder_route
            node.file_analysis = classify_file(path.name, self._read_route_source(path))
        return node

    @staticmethod
    def _read_route_source(path: Path) -> Optional[str]:
        if path.suffix not in config.ROUTE_EXTENSIONS:
            return None
        try:
            if path.stat().st_size > config.MAX_READ_BYTES:
                return None
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return None


def detect_special_files(children: List[StructureNode]) -> SpecialFiles:
    """Presence flags computed from direct children only."""
    flags = SpecialFiles()
    for child in children:
        analysis = child.file_analysis
        if child.kind != "file" or analysis is None or not analysis.is_app_router_special:
            continue
        attr = _FLAG_FOR_TYPE.get(analysis.type)
        if attr:
            setattr(flags, attr, True)
    return flags


def compute_insights(structure: StructureNode) -> Insights:
    insights = Insights()
    for node in structure.iter_nodes():
        if not node.is_app_router_scope:
            continue
        insights.app_router_detected = True
        if node.is_folder and node.routing_analysis is not None:
            key = _PATTERN_KEYS.get(node.routing_analysis.type)
            if key:
                insights.route_patterns[key] += 1
            if node.special_files and node.special_files.has_page:
                insights.route_count += 1
            if node.special_files and node.special_files.has_api_route:
                insights.api_endpoint_count += 1
        elif node.kind == "file" and node.file_analysis and node.file_analysis.is_app_router_special:
            key = _SPECIAL_KEYS.get(node.file_analysis.type)
            if key:
                insights.special_files[key] += 1
    return insights


def detect_prisma_schemas(project_root: Path) -> dict:
    """Find ``prisma/**/*.prisma`` and attach line-level statistics."""
    info = {"detected": False, "schemaFolder": None, "schemas": []}
    prisma_dir = project_root / config.PRISMA_DIR
    if not prisma_dir.is_dir():
        return info

    info["detected"] = True
    info["schemaFolder"] = f"{config.PRISMA_DIR}/"
    for schema in sorted(prisma_dir.rglob("*.prisma")):
        if not schema.is_file():
            continue
        analysis = analyze_schema_file(schema)
        analysis["relativePath"] = schema.relative_to(project_root).as_posix()
        info["schemas"].append(analysis)
    return info


def iter_source_files(project_root: Path, settings: Optional[AnalysisConfig] = None) -> Iterator[Path]:
    """Every non-ignored script file under *project_root*."""
    walker = ProjectWalker(project_root, settings)
    walker.build()
    yield from walker.source_files


def analyze_project(
    project_root: Path,
    include_dependencies: Optional[bool] = None,
    settings: Optional[AnalysisConfig] = None,
) -> ProjectAnalysis:
    """Walk *project_root* and return the full analysis.

    Raises ``ProjectRootError`` when the root is not a directory; every
    other failure is recorded per file and the walk continues.
    """
    walker = ProjectWalker(project_root, settings)
    structure = walker.build()
    insights = compute_insights(structure)
    prisma_info = detect_prisma_schemas(walker.root)

    if include_dependencies is None:
        include_dependencies = walker.settings.include_dependencies

    dependency_map = None
    if include_dependencies:
        analyzer = DependencyAnalyzer(walker.root, walker.settings.alias_prefix)
        dependency_map = build_dependency_map(walker.source_files, walker.root, analyzer)

    folders = sum(1 for n in structure.iter_nodes() if n.kind == "folder")
    files = sum(1 for n in structure.iter_nodes() if n.kind == "file")
    logger.debug("Walked %s: %d folders, %d files", walker.root, folders, files)

    return ProjectAnalysis(
        structure=structure,
        insights=insights,
        prisma_info=prisma_info,
        metadata={
            "analyzedAt": datetime.now(timezone.utc).isoformat(),
            "hasAppRouter": insights.app_router_detected,
            "totalRoutes": insights.route_count,
            "totalApiEndpoints": insights.api_endpoint_count,
            "hasPrisma": prisma_info["detected"],
            "totalPrismaSchemas": len(prisma_info["schemas"]),
            "totalFolders": folders,
            "totalFiles": files,
            "projectRoot": str(walker.root),
        },
        dependency_map=dependency_map,
    )
