"""Resolve import specifiers to project files or external packages."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Optional

from . import config
from .models import Resolution

# Tried in order after the bare path.
RESOLVE_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".json", ".mjs", ".cjs")
INDEX_FILES = ("index.js", "index.jsx", "index.ts", "index.tsx")


def short_hash(value: str, length: int = 8) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()[:length]


def package_name(specifier: str) -> str:
    """``@scope/pkg/sub`` -> ``@scope/pkg``; ``pkg/sub`` -> ``pkg``."""
    parts = specifier.split("/")
    if specifier.startswith("@"):
        return "/".join(parts[:2])
    return parts[0]


def find_actual_file(base: Path) -> Optional[Path]:
    """First existing file among *base*, *base* + extension, *base*/index.*."""
    for ext in ("", *RESOLVE_EXTENSIONS):
        candidate = Path(str(base) + ext)
        if candidate.is_file():
            return candidate
    if base.is_dir():
        for index in INDEX_FILES:
            candidate = base / index
            if candidate.is_file():
                return candidate
    return None


class PathResolver:
    """Resolve specifiers written in files below *project_root*.

    Relative specifiers resolve against the importing file's directory,
    ``alias_prefix`` specifiers against the project root, and any other
    bare specifier is local only if that path exists under the root.
    """

    def __init__(self, project_root: Path, alias_prefix: str = config.ALIAS_PREFIX):
        self.project_root = Path(os.path.abspath(project_root))
        self.alias_prefix = alias_prefix

    def resolve(self, specifier: str, importing_file: Path) -> Resolution:
        if specifier.startswith("."):
            base = Path(os.path.normpath(Path(importing_file).parent / specifier))
            return self._local(base, is_alias=False)

        if self.alias_prefix and specifier.startswith(self.alias_prefix):
            rest = specifier[len(self.alias_prefix):]
            base = Path(os.path.normpath(self.project_root / rest))
            return self._local(base, is_alias=True)

        candidate = Path(os.path.normpath(self.project_root / specifier))
        if candidate.exists() or find_actual_file(candidate) is not None:
            return self._local(candidate, is_alias=False)

        name = package_name(specifier)
        return Resolution(
            resolved_path=specifier,
            is_local=False,
            exists=None,
            package_name=name,
            package_id=short_hash(name),
        )

    def _local(self, base: Path, is_alias: bool) -> Resolution:
        actual = find_actual_file(base)
        target = actual or base
        return Resolution(
            resolved_path=str(target),
            is_local=True,
            exists=actual is not None,
            relative_path=os.path.relpath(target, self.project_root).replace(os.sep, "/"),
            is_alias=is_alias,
            path_id=short_hash(str(target)),
        )
