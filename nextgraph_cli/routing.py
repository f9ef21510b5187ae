"""Next.js App Router naming conventions.

Pure functions that turn a folder or file name into its routing meaning:
``classify()`` for folders, ``build_route_path()`` for the URL segment a
folder contributes, and ``classify_file()`` for the reserved file names.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Dict, List, Optional

from . import config
from .models import FileAnalysis, RoutingAnalysis

# ---------------------------------------------------------------------------
# Folder classification
# ---------------------------------------------------------------------------

ROUTE_TYPES = (
    "static-route",
    "route-group",
    "private-folder",
    "dynamic-route",
    "catch-all-route",
    "optional-catch-all-route",
    "parallel-route",
    "intercepting-route",
)

# One or more "(.)", "(..)" or "(...)" markers followed by the segment.
_INTERCEPT_RE = re.compile(r"^((?:\(\.{1,3}\))+)(.*)$")

_INTERCEPT_LEVELS: Dict[str, tuple] = {
    "(.)": ("same-level", "Intercepts routes at the same level"),
    "(..)": ("one-level-up", "Intercepts routes one level above"),
    "(..)(..)": ("two-levels-up", "Intercepts routes two levels above"),
    "(...)": ("from-root", "Intercepts routes from the root"),
}


def classify(name: str) -> RoutingAnalysis:
    """Return the App Router meaning of a folder called *name*.

    Total over all strings: anything that matches no convention is a
    static segment.
    """
    intercept = _INTERCEPT_RE.match(name)
    if intercept:
        marker, segment = intercept.groups()
        level, description = _INTERCEPT_LEVELS.get(
            marker, ("same-level", "Intercepts routes at the same level"),
        )
        return RoutingAnalysis(
            type="intercepting-route",
            display_name=name,
            routing_type="Intercepting Route",
            url_effect="Modal/overlay behavior",
            description=description,
            intercept_level=level,
            intercept_segment=segment,
        )

    if name.startswith("(") and name.endswith(")") and len(name) >= 2:
        return RoutingAnalysis(
            type="route-group",
            display_name=name[1:-1],
            routing_type="Route Group",
            url_effect="No URL impact",
            description="Groups routes for organization without affecting URL structure",
        )

    if name.startswith("_"):
        return RoutingAnalysis(
            type="private-folder",
            display_name=name,
            routing_type="Private Folder",
            url_effect="Not routable",
            description="Private implementation detail, excluded from routing",
        )

    if name.startswith("[") and name.endswith("]") and len(name) >= 2:
        inner = name[1:-1]
        if inner.startswith("[...") and inner.endswith("]"):
            return RoutingAnalysis(
                type="optional-catch-all-route",
                display_name=name,
                routing_type="Optional Catch-all Route",
                url_effect="Matches /route and /route/a/b/c",
                description="Matches zero or more path segments",
                param_name=inner[4:-1],
            )
        if inner.startswith("..."):
            return RoutingAnalysis(
                type="catch-all-route",
                display_name=name,
                routing_type="Catch-all Route",
                url_effect="Matches /route/a/b/c",
                description="Matches one or more path segments",
                param_name=inner[3:],
            )
        return RoutingAnalysis(
            type="dynamic-route",
            display_name=name,
            routing_type="Dynamic Route",
            url_effect="Matches /route/123, /route/abc",
            description="Matches a single dynamic path segment",
            param_name=inner,
        )

    if name.startswith("@"):
        return RoutingAnalysis(
            type="parallel-route",
            display_name=name,
            routing_type="Parallel Route",
            url_effect="Named slot",
            description="Renders content in parallel with the main page",
            slot_name=name[1:],
        )

    return RoutingAnalysis(
        type="static-route",
        display_name=name,
        routing_type="Static Route",
        url_effect=f"Matches /route/{name}",
        description="Static path segment",
    )


def build_route_path(
    parent_path: Optional[str],
    name: str,
    analysis: Optional[RoutingAnalysis],
    router_root: str = config.APP_ROUTER_ROOT,
) -> str:
    """URL path of folder *name* given its parent's path.

    The router root contributes nothing when it is the first segment, so
    ``app`` maps to ``""`` and ``app/blog`` to ``/blog``.
    """
    base = parent_path or ""
    if analysis is None:
        return base

    kind = analysis.type
    if kind in ("route-group", "private-folder", "parallel-route", "intercepting-route"):
        return base
    if kind == "dynamic-route":
        return f"{base}/[{analysis.param_name}]"
    if kind == "catch-all-route":
        return f"{base}/[...{analysis.param_name}]"
    if kind == "optional-catch-all-route":
        return f"{base}/[[...{analysis.param_name}]]"

    if name == router_root and base == "":
        return ""
    return f"{base}/{name}"


def display_route(route_path: Optional[str]) -> Optional[str]:
    """The router root's empty path is shown as ``/``."""
    if route_path is None:
        return None
    return route_path or "/"


def is_in_scope(relative_path: str, router_root: str = config.APP_ROUTER_ROOT) -> bool:
    """True when *relative_path* is the router root or lies below it."""
    rel = relative_path.replace("\\", "/").strip("/")
    return rel == router_root or rel.startswith(router_root + "/")


# ---------------------------------------------------------------------------
# File classification
# ---------------------------------------------------------------------------

_SPECIAL_FILES: Dict[str, tuple] = {
    "layout": ("layout-file", "Layout Component",
               "Shared UI that wraps child pages and layouts"),
    "page": ("page-file", "Page Component",
             "Unique UI for a route and makes routes publicly accessible"),
    "loading": ("loading-file", "Loading UI",
                "Loading UI for page or layout (React Suspense boundary)"),
    "not-found": ("not-found-file", "Not Found UI",
                  "Not found UI for a route segment"),
    "error": ("error-file", "Error UI",
              "Error UI for a route segment (React Error Boundary)"),
    "global-error": ("global-error-file", "Global Error UI",
                     "Global error UI for the entire application"),
    "route": ("api-route-file", "API Route", "Server-side API endpoint"),
    "template": ("template-file", "Template Component",
                 "Re-rendered layout that creates new state on navigation"),
    "default": ("default-file", "Default Component",
                "Fallback UI for parallel routes"),
}

SPECIAL_FILE_NAMES = frozenset(_SPECIAL_FILES)

METADATA_FILES = (
    "opengraph-image",
    "twitter-image",
    "icon",
    "apple-icon",
    "manifest",
    "sitemap",
    "robots",
    "favicon.ico",
)

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")

_METHOD_PATTERNS = {
    method: re.compile(rf"export\s+(async\s+)?function\s+{method}\s*\(")
    for method in HTTP_METHODS
}

_SERVER_ACTION_RE = re.compile(r"export\s+async\s+function\s+(\w+)")


def split_name(file_name: str) -> tuple:
    """``("page", ".tsx")`` for ``page.tsx``; only the last extension is stripped."""
    p = PurePosixPath(file_name)
    return p.stem, p.suffix


def metadata_type(file_name: str) -> Optional[str]:
    base, _ = split_name(file_name)
    if file_name == "favicon.ico":
        return "favicon"
    if base in METADATA_FILES:
        return base
    return None


def extract_api_methods(content: str) -> List[str]:
    """HTTP handlers exported as ``export [async] function METHOD(``, sorted."""
    return sorted(m for m, pattern in _METHOD_PATTERNS.items() if pattern.search(content))


def extract_server_actions(content: str) -> List[str]:
    """Exported async functions of a ``'use server'`` module."""
    if "'use server'" not in content and '"use server"' not in content:
        return []
    return _SERVER_ACTION_RE.findall(content)


def api_route_kind(route_path: str) -> str:
    if "[" in route_path and "]" in route_path:
        if "[..." in route_path or "[[..." in route_path:
            return "catch-all-api"
        return "dynamic-api"
    return "static-api"


def colocated_kind(file_name: str, content: Optional[str] = None) -> str:
    """Guess what a non-reserved script file next to a route holds."""
    base = split_name(file_name)[0].lower()
    if "component" in base:
        return "component"
    if "util" in base or "helper" in base:
        return "utility"
    if "hook" in base or base.startswith("use"):
        return "hook"
    if "type" in base or "interface" in base:
        return "types"
    if "constant" in base or "config" in base:
        return "constants"
    if content:
        if "export default" in content and "return" in content:
            return "component"
        if "useState" in content or "useEffect" in content:
            return "hook"
    return "module"


def classify_file(file_name: str, content: Optional[str] = None) -> FileAnalysis:
    """Classify *file_name* by the App Router's reserved names.

    *content* is only consulted for ``route`` files (exported HTTP
    handlers and server actions) and to refine the colocated kind; a
    missing content string simply yields empty method lists.
    """
    base, ext = split_name(file_name)

    meta = metadata_type(file_name)
    if meta is not None:
        return FileAnalysis(
            type="metadata-file",
            purpose="Metadata",
            description=f"Route metadata ({meta})",
            base_name=base,
        )

    if ext not in config.ROUTE_EXTENSIONS:
        return FileAnalysis(
            type="regular-file",
            purpose="Asset/Config",
            description="Non-route file",
            base_name=base,
        )

    special = _SPECIAL_FILES.get(base)
    if special is None:
        return FileAnalysis(
            type="component-file",
            purpose="Component/Utility",
            description="React component or utility file",
            base_name=base,
            colocated_kind=colocated_kind(file_name, content),
        )

    file_type, purpose, description = special
    analysis = FileAnalysis(
        type=file_type,
        purpose=purpose,
        description=description,
        is_app_router_special=True,
        base_name=base,
    )
    if base == "route":
        methods = extract_api_methods(content or "")
        analysis.api_methods = methods
        analysis.server_actions = extract_server_actions(content or "")
        if methods:
            analysis.description = f"API endpoint: {', '.join(methods)}"
    return analysis
