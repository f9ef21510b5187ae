"""Per-file dependency analysis and project-wide reverse dependencies.

``DependencyAnalyzer.analyze()`` turns one source file into local and
external ``DependencyRecord`` lists.  Reverse dependencies are computed
in two strictly ordered phases:

1. ``build_forward_map()`` analyzes every file and returns a
   ``ForwardDependencyMap`` (imports only).
2. ``compute_reverse_dependencies()`` takes that completed map as its only
   input and returns a ``DependencyMap`` whose entries carry ``imported_by``.
"""

from __future__ import annotations

import hashlib
import logging
import os
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from . import config
from .models import (
    DependencyMapEntry,
    DependencyMetadata,
    DependencyRecord,
    DependencyResult,
    ImportedByRef,
    RawImport,
    Specifier,
)
from .parser import ImportExtractor, ParseFailure
from .resolver import PathResolver

logger = logging.getLogger(__name__)


def stable_id(source: str, dep_type: str, file_path: str) -> str:
    """Reproducible id of a (source, type, importing file) triple."""
    data = f"{source}-{dep_type}-{file_path}"
    return hashlib.md5(data.encode("utf-8")).hexdigest()[:12]


def _new_node_id() -> str:
    return uuid.uuid4().hex[:12]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DependencyAnalyzer:
    """Extract and resolve the dependencies of single files."""

    def __init__(
        self,
        project_root: Path,
        alias_prefix: str = config.ALIAS_PREFIX,
        extractor: Optional[ImportExtractor] = None,
    ) -> None:
        self.project_root = Path(os.path.abspath(project_root))
        self.resolver = PathResolver(self.project_root, alias_prefix)
        self.extractor = extractor or ImportExtractor()

    def analyze(self, file_path: Path) -> DependencyResult:
        """Analyze *file_path*; never raises for per-file problems."""
        path = Path(os.path.abspath(file_path))
        ext = path.suffix

        if ext not in config.SCRIPT_EXTENSIONS:
            return self._empty(path, f"Unsupported file type: {ext or path.name}")

        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return self._empty(path, f"File not found: {path}")
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return self._empty(path, f"Could not read file: {exc}")

        try:
            raw_imports = self.extractor.extract(content, ext)
        except ParseFailure as exc:
            logger.warning("Skipping dependencies of %s: %s", path, exc)
            return self._empty(path, str(exc))

        records = self._collect(raw_imports, str(path))
        return self._categorize(records, path)

    # ------------------------------------------------------------------

    def _collect(self, raw_imports: Iterable[RawImport], file_key: str) -> List[DependencyRecord]:
        """Collapse statements with the same (source, type) into one record."""
        by_key: Dict[Tuple[str, str], DependencyRecord] = {}
        seen_specs: Dict[Tuple[str, str], set] = {}

        for raw in raw_imports:
            key = (raw.source, raw.type)
            record = by_key.get(key)
            if record is None:
                sid = stable_id(raw.source, raw.type, file_key)
                record = DependencyRecord(
                    source=raw.source,
                    type=raw.type,
                    stable_id=sid,
                    node_id=_new_node_id(),
                    import_kind=raw.import_kind,
                )
                by_key[key] = record
                seen_specs[key] = set()
            elif raw.import_kind == "value":
                record.import_kind = "value"

            for spec in raw.specifiers:
                if spec in seen_specs[key]:
                    continue
                seen_specs[key].add(spec)
                spec_type, local, imported, exported = spec
                index = len(record.specifiers)
                record.specifiers.append(Specifier(
                    type=spec_type,
                    local=local,
                    imported=imported,
                    exported=exported,
                    id=hashlib.md5(
                        f"{record.stable_id}-{index}-{local or exported}".encode("utf-8")
                    ).hexdigest()[:12],
                ))
        return list(by_key.values())

    def _categorize(self, records: List[DependencyRecord], path: Path) -> DependencyResult:
        local: List[DependencyRecord] = []
        external: List[DependencyRecord] = []
        for record in records:
            res = self.resolver.resolve(record.source, path)
            record.is_local = res.is_local
            record.exists = res.exists
            record.resolved_path = res.resolved_path
            record.relative_path = res.relative_path
            record.is_alias = res.is_alias
            record.path_id = res.path_id
            record.package_name = res.package_name
            record.package_id = res.package_id
            (local if res.is_local else external).append(record)

        local.sort(key=lambda r: (r.source, r.type))
        external.sort(key=lambda r: (r.source, r.type))
        return DependencyResult(
            local_dependencies=local,
            external_dependencies=external,
            metadata=DependencyMetadata(
                total_count=len(local) + len(external),
                parse_errors=[],
                file_path=str(path),
                analysis_id=_new_node_id(),
                timestamp=_now(),
            ),
        )

    @staticmethod
    def _empty(path: Path, error: str) -> DependencyResult:
        return DependencyResult(
            metadata=DependencyMetadata(
                total_count=0,
                parse_errors=[error],
                file_path=str(path),
                analysis_id=_new_node_id(),
                timestamp=_now(),
            ),
        )


def analyze_dependencies(file_path: Path, project_root: Path) -> DependencyResult:
    """Convenience wrapper around ``DependencyAnalyzer(project_root).analyze``."""
    return DependencyAnalyzer(project_root).analyze(file_path)


def get_dependency_by_id(result: DependencyResult, dependency_id: str) -> Optional[DependencyRecord]:
    for record in result.all:
        if record.stable_id == dependency_id:
            return record
    return None


def filter_dependencies_by_type(result: DependencyResult, dep_type: str) -> List[DependencyRecord]:
    return [record for record in result.all if record.type == dep_type]


# ===================================================================
# Two-phase dependency map
# ===================================================================

@dataclass(frozen=True)
class ForwardDependencyMap:
    """Phase-1 output: every scanned file with its forward imports only."""

    entries: Mapping[str, DependencyMapEntry]
    project_root: str = ""

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class DependencyMap:
    """Phase-2 output: forward imports plus ``imported_by`` back-references."""

    entries: Mapping[str, DependencyMapEntry]
    project_root: str = ""

    def __getitem__(self, file_id: str) -> DependencyMapEntry:
        return self.entries[file_id]

    def __contains__(self, file_id: object) -> bool:
        return file_id in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, file_id: str) -> Optional[DependencyMapEntry]:
        return self.entries.get(file_id)

    def to_dict(self) -> Dict[str, dict]:
        return {key: entry.to_dict() for key, entry in self.entries.items()}


def build_forward_map(
    files: Iterable[Path],
    project_root: Path,
    analyzer: Optional[DependencyAnalyzer] = None,
) -> ForwardDependencyMap:
    """Phase 1: analyze every file in *files*."""
    root = Path(os.path.abspath(project_root))
    analyzer = analyzer or DependencyAnalyzer(root)
    entries: Dict[str, DependencyMapEntry] = {}

    for file_path in files:
        path = Path(os.path.abspath(file_path))
        if path.suffix not in config.SCRIPT_EXTENSIONS:
            continue
        result = analyzer.analyze(path)
        key = str(path)
        entries[key] = DependencyMapEntry(
            id=key,
            name=path.name,
            relative_path=os.path.relpath(path, root).replace(os.sep, "/"),
            imports=list(result.local_dependencies),
            external_imports=list(result.external_dependencies),
            parse_errors=list(result.metadata.parse_errors),
        )
        logger.debug("Scanned %s (%d deps)", key, result.metadata.total_count)

    return ForwardDependencyMap(entries=MappingProxyType(entries), project_root=str(root))


def compute_reverse_dependencies(forward: ForwardDependencyMap) -> DependencyMap:
    """Phase 2: invert every resolved local import of a completed phase 1.

    The input is not modified; the returned entries are copies.
    """
    back_refs: Dict[str, List[ImportedByRef]] = {key: [] for key in forward.entries}

    for key in sorted(forward.entries):
        entry = forward.entries[key]
        for record in entry.imports:
            target = record.resolved_path
            if not record.exists or target not in back_refs:
                continue
            back_refs[target].append(ImportedByRef(
                source=entry.id,
                name=entry.name,
                relative_path=entry.relative_path,
                specifiers=tuple(record.specifiers),
            ))

    entries = {
        key: replace(entry, imported_by=back_refs[key])
        for key, entry in forward.entries.items()
    }
    return DependencyMap(entries=MappingProxyType(entries), project_root=forward.project_root)


def build_dependency_map(
    files: Iterable[Path],
    project_root: Path,
    analyzer: Optional[DependencyAnalyzer] = None,
) -> DependencyMap:
    """Run both phases over *files*."""
    return compute_reverse_dependencies(build_forward_map(files, project_root, analyzer))


def find_files_importing(target: Path, project_root: Path) -> List[ImportedByRef]:
    """Every project file that imports *target*, found via a full two-phase scan."""
    from .walker import iter_source_files

    root = Path(os.path.abspath(project_root))
    dep_map = build_dependency_map(iter_source_files(root), root)
    entry = dep_map.get(str(Path(os.path.abspath(target))))
    return list(entry.imported_by) if entry is not None else []
