"""Configuration paths and analysis defaults for NextGraph."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("NEXTGRAPH_HOME", str(Path.home() / ".nextgraph"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"
PROJECT_CONFIG_NAME = "nextgraph.toml"

# Files the dependency analyzer will parse.
SCRIPT_EXTENSIONS = {".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"}

# Files the App Router treats as route-relevant code.
ROUTE_EXTENSIONS = {".js", ".jsx", ".ts", ".tsx"}

APP_ROUTER_ROOT = "app"
ALIAS_PREFIX = "@/"

DEFAULT_IGNORES = ["node_modules", ".next", ".git", "dist", "build"]
IGNORE_FILE = ".gitignore"

# Content-read service refuses anything larger than this.
MAX_READ_BYTES = 1024 * 1024

PRISMA_DIR = "prisma"


def ensure_base_dirs() -> None:
    """Create the user-level config directory if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
