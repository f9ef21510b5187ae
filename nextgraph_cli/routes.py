"""Route manifest: the App Router seen as URLs rather than folders.

Everything here is derived from an already built Structure Tree; the only
filesystem access is the check for root-level config files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from . import config
from .models import Payload, StructureNode
from .routing import api_route_kind, metadata_type

logger = logging.getLogger(__name__)

_DYNAMIC_TYPES = ("dynamic-route", "catch-all-route", "optional-catch-all-route")

_CONFIG_FILES = {
    "next.config.js": "next-config",
    "next.config.mjs": "next-config",
    "next.config.ts": "next-config",
    "tailwind.config.js": "tailwind-config",
    "tailwind.config.ts": "tailwind-config",
    "middleware.js": "middleware",
    "middleware.ts": "middleware",
    "instrumentation.js": "instrumentation",
    "instrumentation.ts": "instrumentation",
}


@dataclass
class PageRoute(Payload):
    url: str
    file: str
    route_type: str
    layout_chain: List[str] = field(default_factory=list)
    intercepted_by: List[str] = field(default_factory=list)


@dataclass
class ApiRoute(Payload):
    url: str
    file: str
    methods: List[str]
    server_actions: List[str]
    kind: str


@dataclass
class LayoutEntry(Payload):
    url: str
    file: str


@dataclass
class RouteGroup(Payload):
    name: str
    url: str
    relative_path: str


@dataclass
class ParallelSlot(Payload):
    slot: str
    url: str
    relative_path: str


@dataclass
class InterceptingRoute(Payload):
    pattern: str
    target_segment: str
    intercept_level: str
    url: str
    relative_path: str
    target: Optional[str] = None


@dataclass
class MetadataEntry(Payload):
    type: str
    file: str
    url: str


@dataclass
class ConfigFile(Payload):
    type: str
    file_name: str
    full_path: str


@dataclass
class RouteManifest(Payload):
    pages: List[PageRoute] = field(default_factory=list)
    api_routes: List[ApiRoute] = field(default_factory=list)
    layouts: List[LayoutEntry] = field(default_factory=list)
    route_groups: List[RouteGroup] = field(default_factory=list)
    parallel_slots: Dict[str, List[ParallelSlot]] = field(default_factory=dict)
    intercepting_routes: List[InterceptingRoute] = field(default_factory=list)
    api_groups: Dict[str, List[ApiRoute]] = field(default_factory=dict)
    metadata_files: List[MetadataEntry] = field(default_factory=list)
    private_folders: List[str] = field(default_factory=list)
    dynamic_segments: int = 0
    config_files: List[ConfigFile] = field(default_factory=list)
    summary: Dict[str, object] = field(default_factory=dict)


# ===================================================================
# Root config files
# ===================================================================

def detect_config_files(project_root: Path) -> List[ConfigFile]:
    """Next.js config, Tailwind, middleware, instrumentation and ``.env*``."""
    found: List[ConfigFile] = []
    for name, kind in _CONFIG_FILES.items():
        path = project_root / name
        if path.is_file():
            found.append(ConfigFile(type=kind, file_name=name, full_path=str(path)))
    for path in sorted(project_root.glob(".env*")):
        if path.is_file():
            found.append(ConfigFile(type="environment", file_name=path.name, full_path=str(path)))
    return found


# ===================================================================
# Manifest
# ===================================================================

def _find_router_root(structure: StructureNode, router_root: str) -> Optional[StructureNode]:
    target = router_root.strip("/")
    for node in structure.iter_nodes():
        if node.is_folder and node.relative_path == target:
            return node
    return None


def _visit(folder: StructureNode, layouts: Tuple[str, ...], manifest: RouteManifest) -> None:
    url = folder.route_path or "/"
    analysis = folder.routing_analysis
    kind = analysis.type if analysis else "static-route"

    if kind == "route-group":
        manifest.route_groups.append(RouteGroup(analysis.display_name, url, folder.relative_path))
    elif kind == "parallel-route":
        slot = ParallelSlot(analysis.slot_name or folder.name[1:], url, folder.relative_path)
        manifest.parallel_slots.setdefault(url, []).append(slot)
    elif kind == "intercepting-route":
        manifest.intercepting_routes.append(InterceptingRoute(
            pattern=folder.name,
            target_segment=analysis.intercept_segment or "",
            intercept_level=analysis.intercept_level or "same-level",
            url=url,
            relative_path=folder.relative_path,
        ))
    elif kind == "private-folder":
        manifest.private_folders.append(folder.relative_path)
    elif kind in _DYNAMIC_TYPES:
        manifest.dynamic_segments += 1

    files = folder.files()
    for file in files:
        if file.file_analysis and file.file_analysis.type == "layout-file":
            manifest.layouts.append(LayoutEntry(url, file.relative_path))
            layouts = layouts + (file.relative_path,)

    for file in files:
        analysis_f = file.file_analysis
        if analysis_f is None:
            continue
        if analysis_f.type == "page-file":
            manifest.pages.append(PageRoute(
                url=url,
                file=file.relative_path,
                route_type=kind,
                layout_chain=list(layouts),
            ))
        elif analysis_f.type == "api-route-file":
            manifest.api_routes.append(ApiRoute(
                url=url,
                file=file.relative_path,
                methods=list(analysis_f.api_methods or []),
                server_actions=list(analysis_f.server_actions or []),
                kind=api_route_kind(url),
            ))
        elif analysis_f.type == "metadata-file":
            manifest.metadata_files.append(
                MetadataEntry(metadata_type(file.name) or "metadata", file.relative_path, url)
            )

    for child in folder.folders():
        _visit(child, layouts, manifest)


def _connect_intercepts(manifest: RouteManifest) -> None:
    for route in manifest.intercepting_routes:
        if not route.target_segment:
            continue
        suffix = "/" + route.target_segment
        for page in manifest.pages:
            if page.url.endswith(suffix):
                route.target = page.url
                page.intercepted_by.append(route.relative_path)
                break


def _group_api_routes(manifest: RouteManifest) -> None:
    groups: Dict[str, List[ApiRoute]] = {}
    for api in manifest.api_routes:
        segments = [s for s in api.url.split("/") if s]
        groups.setdefault(segments[0] if segments else "root", []).append(api)
    manifest.api_groups = groups


def _summarize(manifest: RouteManifest) -> Dict[str, object]:
    parallel = sum(len(slots) for slots in manifest.parallel_slots.values())
    return {
        "totalPages": len(manifest.pages),
        "totalLayouts": len(manifest.layouts),
        "totalApiRoutes": len(manifest.api_routes),
        "totalMetadataFiles": len(manifest.metadata_files),
        "totalConfigFiles": len(manifest.config_files),
        "totalPrivateFolders": len(manifest.private_folders),
        "routeGroups": len(manifest.route_groups),
        "parallelRoutes": parallel,
        "interceptingRoutes": len(manifest.intercepting_routes),
        "dynamicRoutes": manifest.dynamic_segments,
        "apiGroups": len(manifest.api_groups),
        "serverActionsCount": sum(len(a.server_actions) for a in manifest.api_routes),
        "maxLayoutDepth": max((len(p.layout_chain) for p in manifest.pages), default=0),
        "hasRouteGroups": bool(manifest.route_groups),
        "hasParallelRoutes": parallel > 0,
        "hasInterceptingRoutes": bool(manifest.intercepting_routes),
        "hasDynamicRoutes": manifest.dynamic_segments > 0,
        "hasNestedLayouts": any(len(p.layout_chain) > 1 for p in manifest.pages),
        "hasMetadataFiles": bool(manifest.metadata_files),
        "hasServerActions": any(a.server_actions for a in manifest.api_routes),
        "hasPrivateFolders": bool(manifest.private_folders),
        "hasMiddleware": any(c.type == "middleware" for c in manifest.config_files),
    }


def build_route_manifest(
    structure: StructureNode,
    project_root: Optional[Path] = None,
    router_root: str = config.APP_ROUTER_ROOT,
) -> RouteManifest:
    """Collect pages, API routes, layouts and the special folder kinds.

    Pages and API routes are listed in tree order.  A page's layout chain
    runs from the outermost layout to the one in its own folder.
    """
    manifest = RouteManifest()
    root = _find_router_root(structure, router_root)
    if root is None:
        logger.debug("No %s/ folder in %s", router_root, structure.relative_path)
    else:
        _visit(root, (), manifest)
        _connect_intercepts(manifest)
        _group_api_routes(manifest)

    if project_root is None:
        project_root = Path(structure.full_path)
    manifest.config_files = detect_config_files(project_root)
    manifest.summary = _summarize(manifest)
    return manifest
