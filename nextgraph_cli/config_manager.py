"""Configuration manager for NextGraph using TOML files.

Settings are read from ``~/.nextgraph/config.toml`` and, for analysis
options, from an optional ``nextgraph.toml`` at the analyzed project's root.
Missing or broken files always fall back to the built-in defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

import toml

from . import config

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ===================================================================
# Settings dataclasses
# ===================================================================

@dataclass(frozen=True)
class AnalysisConfig:
    """Options that shape a project walk."""

    app_router_root: str = config.APP_ROUTER_ROOT
    alias_prefix: str = config.ALIAS_PREFIX
    extra_ignores: List[str] = field(default_factory=list)
    include_dependencies: bool = False


@dataclass(frozen=True)
class TreeLayoutConfig:
    """Spacing and box sizes for the folder/file tree layout.

    The primary axis is x (depth grows to the right), the secondary axis
    is y (siblings spread vertically).
    """

    depth_distance: float = 600
    file_offset: float = 0
    dependency_distance: float = 450
    folder_spacing: float = 50
    file_spacing: float = 100
    dependency_spacing: float = 100
    min_tree_extent: float = 300

    collision_vertical_increment: float = 150
    collision_horizontal_increment: float = 120
    collision_padding: float = 20
    collision_max_attempts: int = 20

    folder_width: float = 260
    folder_height: float = 80
    file_width: float = 260
    file_height: float = 30
    dependency_width: float = 280
    dependency_height: float = 40

    root_x: float = 100

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "TreeLayoutConfig":
        return _from_mapping(cls, values)


@dataclass(frozen=True)
class ForceLayoutConfig:
    """Parameters of the schema graph force simulation."""

    viewport_width: float = 1920
    viewport_height: float = 1080
    node_width: float = 320

    header_height: float = 56
    footer_height: float = 48
    field_row_height: float = 44
    section_divider_height: float = 40
    section_row_height: float = 32
    height_padding: float = 20
    min_height: float = 180
    max_height: float = 1200

    link_distance: float = 350
    link_strength: float = 0.4
    charge_strength: float = -1500
    charge_distance_max: float = 1000
    charge_distance_min: float = 1
    collision_padding: float = 60
    collision_strength: float = 1.0
    collision_iterations: int = 3
    axis_strength: float = 0.03

    ticks: int = 400
    alpha_min: float = 0.001
    alpha_decay_ticks: int = 300
    velocity_decay: float = 0.4
    seed: int = 0

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ForceLayoutConfig":
        return _from_mapping(cls, values)


_TRUE_STRINGS = {"true", "yes", "on", "1"}
_FALSE_STRINGS = {"false", "no", "off", "0"}


def _to_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(f"not a boolean: {raw!r}")
    if isinstance(raw, int):
        return bool(raw)
    raise TypeError(f"not a boolean: {raw!r}")


def _to_str_list(raw: Any) -> List[str]:
    if isinstance(raw, str):
        return [p.strip() for p in raw.split(",") if p.strip()]
    if isinstance(raw, (list, tuple)):
        return [str(p) for p in raw]
    raise TypeError(f"not a list: {raw!r}")


# Declared field type (a string under postponed annotations) -> converter.
_CONVERTERS = {
    "bool": _to_bool,
    "int": int,
    "float": float,
    "str": str,
    "List[str]": _to_str_list,
}


def _from_mapping(cls: Type[T], values: Mapping[str, Any]) -> T:
    """Build *cls* from a TOML section, ignoring unknown keys.

    Values are converted by each field's declared type, so ``612.5`` stays
    a float and ``"false"`` becomes ``False``.
    """
    base = cls()
    updates: Dict[str, Any] = {}
    for f in fields(cls):  # type: ignore[arg-type]
        if f.name not in values:
            continue
        raw = values[f.name]
        declared = f.type if isinstance(f.type, str) else getattr(f.type, "__name__", "")
        convert = _CONVERTERS.get(declared)
        if convert is None:
            updates[f.name] = raw
            continue
        if declared in ("int", "float") and isinstance(raw, bool):
            logger.warning("Ignoring invalid config value %s=%r", f.name, raw)
            continue
        try:
            updates[f.name] = convert(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid config value %s=%r", f.name, raw)
    return replace(base, **updates)  # type: ignore[type-var]


# ===================================================================
# TOML access
# ===================================================================

def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    path = path or config.CONFIG_FILE
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Could not read config %s: %s", path, exc)
        return {}


def _save_full_config(data: Dict[str, Any], path: Optional[Path] = None) -> bool:
    path = path or config.CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(path, "w", encoding="utf-8") as f:
            toml.dump(data, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config %s: %s", path, exc)
        return False


def save_section(section: str, values: Dict[str, Any], path: Optional[Path] = None) -> bool:
    """Merge *values* into ``[section]``, preserving the other sections."""
    data = load_full_config(path)
    merged = dict(data.get(section, {}))
    merged.update(values)
    data[section] = merged
    return _save_full_config(data, path)


def load_layout_config(path: Optional[Path] = None) -> TreeLayoutConfig:
    return TreeLayoutConfig.from_mapping(load_full_config(path).get("layout", {}))


def load_schema_layout_config(path: Optional[Path] = None) -> ForceLayoutConfig:
    return ForceLayoutConfig.from_mapping(load_full_config(path).get("schema_layout", {}))


def load_analysis_config(
    project_root: Optional[Path] = None,
    path: Optional[Path] = None,
) -> AnalysisConfig:
    """Resolve analysis options: user config first, project file on top."""
    section: Dict[str, Any] = dict(load_full_config(path).get("analysis", {}))
    if project_root is not None:
        project_file = project_root / config.PROJECT_CONFIG_NAME
        section.update(load_full_config(project_file).get("analysis", {}))

    return _from_mapping(AnalysisConfig, section)
