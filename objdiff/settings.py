"""Persistent application settings, with upgrades from older saved formats."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from objdiff.config import (
    DEFAULT_WATCH_PATTERNS,
    DirNode,
    FileNode,
    ProjectConfigInfo,
    ProjectObject,
    ScratchConfig,
    build_globset,
)
from objdiff.obj import DiffAlg

log = logging.getLogger(__name__)

CONFIG_VERSION = 1
RECENT_PROJECTS_LIMIT = 10

PathLike = Union[str, Path]


def _field(data: dict, key: str, types: Union[type, tuple], default: Any = None) -> Any:
    value = data.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool) and bool not in (types if isinstance(types, tuple) else (types,)):
        raise ValueError(f"invalid value for '{key}': {value!r}")
    if not isinstance(value, types):
        raise ValueError(f"invalid value for '{key}': {value!r}")
    return value


def _required(data: dict, key: str, types: Union[type, tuple]) -> Any:
    if key not in data or data[key] is None:
        raise ValueError(f"missing field '{key}'")
    return _field(data, key, types)


def _path(data: dict, key: str) -> Optional[Path]:
    value = _field(data, key, str)
    return Path(value) if value is not None else None


def _path_text(path: Optional[PathLike]) -> Optional[str]:
    return str(path) if path is not None else None


def _patterns(data: dict, key: str, default: Optional[list[str]] = None) -> list[str]:
    if default is None:
        patterns = _required(data, key, list)
    else:
        patterns = _field(data, key, list, default)
    if not all(isinstance(p, str) for p in patterns):
        raise ValueError(f"'{key}' must be a list of strings")
    build_globset(patterns)
    return list(patterns)


def _diff_alg(data: dict, key: str) -> DiffAlg:
    name = _field(data, key, str)
    if name is None:
        return DiffAlg.PATIENCE
    try:
        return DiffAlg[name]
    except KeyError:
        raise ValueError(f"unknown diff algorithm '{name}'") from None


def _scratch_to_dict(scratch: ScratchConfig) -> dict:
    return {
        "platform": scratch.platform,
        "compiler": scratch.compiler,
        "c_flags": scratch.c_flags,
        "ctx_path": _path_text(scratch.ctx_path),
        "build_ctx": scratch.build_ctx,
    }


def _scratch_from_dict(data: Any) -> ScratchConfig:
    if not isinstance(data, dict):
        raise ValueError("scratch configuration must be a mapping")
    return ScratchConfig(
        platform=_field(data, "platform", str),
        compiler=_field(data, "compiler", str),
        c_flags=_field(data, "c_flags", str),
        ctx_path=_path(data, "ctx_path"),
        build_ctx=_field(data, "build_ctx", bool, False),
    )


@dataclass
class ObjectConfig:
    """The configuration for a single object file."""

    name: str
    target_path: Optional[Path] = None
    base_path: Optional[Path] = None
    reverse_fn_order: Optional[bool] = None
    complete: Optional[bool] = None
    scratch: Optional[ScratchConfig] = None

    def _to_dict(self) -> dict:
        return {
            "name": self.name,
            "target_path": _path_text(self.target_path),
            "base_path": _path_text(self.base_path),
            "reverse_fn_order": self.reverse_fn_order,
            "complete": self.complete,
            "scratch": _scratch_to_dict(self.scratch) if self.scratch is not None else None,
        }

    @classmethod
    def _from_dict(cls, data: Any) -> ObjectConfig:
        if not isinstance(data, dict):
            raise ValueError("selected object must be a mapping")
        scratch = data.get("scratch")
        return cls(
            name=_required(data, "name", str),
            target_path=_path(data, "target_path"),
            base_path=_path(data, "base_path"),
            reverse_fn_order=_field(data, "reverse_fn_order", bool),
            complete=_field(data, "complete", bool),
            scratch=_scratch_from_dict(scratch) if scratch is not None else None,
        )


@dataclass
class AppConfig:
    """Application settings; the fields after ``relax_reloc_diffs`` are not saved."""

    version: int = CONFIG_VERSION
    custom_make: Optional[str] = None
    selected_wsl_distro: Optional[str] = None
    project_dir: Optional[Path] = None
    target_obj_dir: Optional[Path] = None
    base_obj_dir: Optional[Path] = None
    selected_obj: Optional[ObjectConfig] = None
    build_base: bool = True
    build_target: bool = False
    rebuild_on_changes: bool = True
    auto_update_check: bool = True
    watch_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_WATCH_PATTERNS))
    recent_projects: list[Path] = field(default_factory=list)
    code_alg: DiffAlg = DiffAlg.PATIENCE
    data_alg: DiffAlg = DiffAlg.PATIENCE
    relax_reloc_diffs: bool = False

    objects: list[ProjectObject] = field(default_factory=list)
    object_nodes: list[Union[FileNode, DirNode]] = field(default_factory=list)
    watcher_change: bool = False
    config_change: bool = False
    obj_change: bool = False
    queue_build: bool = False
    queue_reload: bool = False
    queue_scratch: bool = False
    project_config_info: Optional[ProjectConfigInfo] = None

    def set_project_dir(self, path: PathLike) -> None:
        """Open a project, remembering it among the recent ones."""
        path = Path(path)
        recent = [p for p in self.recent_projects if Path(p) != path]
        del recent[RECENT_PROJECTS_LIMIT - 1 :]
        self.recent_projects = [path, *recent]
        self.project_dir = path
        self.target_obj_dir = None
        self.base_obj_dir = None
        self.selected_obj = None
        self.build_target = False
        self.objects.clear()
        self.object_nodes.clear()
        self.watcher_change = True
        self.config_change = True
        self.obj_change = True
        self.queue_build = False
        self.project_config_info = None

    def set_target_obj_dir(self, path: PathLike) -> None:
        self.target_obj_dir = Path(path)
        self.selected_obj = None
        self.obj_change = True
        self.queue_build = False

    def set_base_obj_dir(self, path: PathLike) -> None:
        self.base_obj_dir = Path(path)
        self.selected_obj = None
        self.obj_change = True
        self.queue_build = False

    def set_selected_obj(self, obj: ObjectConfig) -> None:
        self.selected_obj = obj
        self.obj_change = True
        self.queue_build = False

    def to_dict(self) -> dict:
        """The saved fields as plain JSON-compatible data."""
        return {
            "version": self.version,
            "custom_make": self.custom_make,
            "selected_wsl_distro": self.selected_wsl_distro,
            "project_dir": _path_text(self.project_dir),
            "target_obj_dir": _path_text(self.target_obj_dir),
            "base_obj_dir": _path_text(self.base_obj_dir),
            "selected_obj": self.selected_obj._to_dict() if self.selected_obj else None,
            "build_base": self.build_base,
            "build_target": self.build_target,
            "rebuild_on_changes": self.rebuild_on_changes,
            "auto_update_check": self.auto_update_check,
            "watch_patterns": list(self.watch_patterns),
            "recent_projects": [str(p) for p in self.recent_projects],
            "code_alg": self.code_alg.name,
            "data_alg": self.data_alg.name,
            "relax_reloc_diffs": self.relax_reloc_diffs,
        }

    @classmethod
    def from_dict(cls, data: Any) -> AppConfig:
        """Read saved fields; raises :class:`ValueError` for malformed data."""
        if not isinstance(data, dict):
            raise ValueError("configuration must be a mapping")
        version = _required(data, "version", int)
        if version < 0:
            raise ValueError(f"invalid version {version}")
        selected = data.get("selected_obj")
        recent = _field(data, "recent_projects", list, [])
        if not all(isinstance(p, str) for p in recent):
            raise ValueError("'recent_projects' must be a list of strings")
        return cls(
            version=version,
            custom_make=_field(data, "custom_make", str),
            selected_wsl_distro=_field(data, "selected_wsl_distro", str),
            project_dir=_path(data, "project_dir"),
            target_obj_dir=_path(data, "target_obj_dir"),
            base_obj_dir=_path(data, "base_obj_dir"),
            selected_obj=ObjectConfig._from_dict(selected) if selected is not None else None,
            build_base=_field(data, "build_base", bool, True),
            build_target=_field(data, "build_target", bool, False),
            rebuild_on_changes=_field(data, "rebuild_on_changes", bool, True),
            auto_update_check=_field(data, "auto_update_check", bool, False),
            watch_patterns=_patterns(data, "watch_patterns", list(DEFAULT_WATCH_PATTERNS)),
            recent_projects=[Path(p) for p in recent],
            code_alg=_diff_alg(data, "code_alg"),
            data_alg=_diff_alg(data, "data_alg"),
            relax_reloc_diffs=_field(data, "relax_reloc_diffs", bool, False),
        )


@dataclass
class ObjectConfigV0:
    """A selected object as saved by the unversioned format."""

    name: str
    target_path: Path
    base_path: Path
    reverse_fn_order: Optional[bool] = None

    def into_config(self) -> ObjectConfig:
        return ObjectConfig(
            name=self.name,
            target_path=self.target_path,
            base_path=self.base_path,
            reverse_fn_order=self.reverse_fn_order,
        )

    @classmethod
    def _from_dict(cls, data: Any) -> ObjectConfigV0:
        if not isinstance(data, dict):
            raise ValueError("selected object must be a mapping")
        return cls(
            name=_required(data, "name", str),
            target_path=Path(_required(data, "target_path", str)),
            base_path=Path(_required(data, "base_path", str)),
            reverse_fn_order=_field(data, "reverse_fn_order", bool),
        )


@dataclass
class AppConfigV0:
    """Settings as saved by the unversioned format."""

    custom_make: Optional[str]
    selected_wsl_distro: Optional[str]
    project_dir: Optional[Path]
    target_obj_dir: Optional[Path]
    base_obj_dir: Optional[Path]
    selected_obj: Optional[ObjectConfigV0]
    build_target: bool
    auto_update_check: bool
    watch_patterns: list[str]

    def into_config(self) -> AppConfig:
        log.info("Upgrading configuration from v0")
        return AppConfig(
            custom_make=self.custom_make,
            selected_wsl_distro=self.selected_wsl_distro,
            project_dir=self.project_dir,
            target_obj_dir=self.target_obj_dir,
            base_obj_dir=self.base_obj_dir,
            selected_obj=self.selected_obj.into_config() if self.selected_obj else None,
            build_target=self.build_target,
            auto_update_check=self.auto_update_check,
            watch_patterns=list(self.watch_patterns),
        )

    @classmethod
    def _from_dict(cls, data: Any) -> AppConfigV0:
        if not isinstance(data, dict):
            raise ValueError("configuration must be a mapping")
        selected = data.get("selected_obj")
        return cls(
            custom_make=_field(data, "custom_make", str),
            selected_wsl_distro=_field(data, "selected_wsl_distro", str),
            project_dir=_path(data, "project_dir"),
            target_obj_dir=_path(data, "target_obj_dir"),
            base_obj_dir=_path(data, "base_obj_dir"),
            selected_obj=ObjectConfigV0._from_dict(selected) if selected is not None else None,
            build_target=_required(data, "build_target", bool),
            auto_update_check=_required(data, "auto_update_check", bool),
            watch_patterns=_patterns(data, "watch_patterns"),
        )


def serialize_config(config: AppConfig) -> str:
    """Encode the saved fields of ``config`` as JSON text."""
    return json.dumps(config.to_dict(), indent=2)


def deserialize_config(text: str) -> Optional[AppConfig]:
    """Decode saved settings, upgrading older formats; ``None`` if they cannot be read."""
    try:
        data = json.loads(text)
    except ValueError as exc:
        log.warning("Failed to decode config: %s", exc)
        return None
    version = data.get("version") if isinstance(data, dict) else None
    if isinstance(version, int) and not isinstance(version, bool):
        if version != CONFIG_VERSION:
            log.warning("Unknown config version: %s", version)
            return None
        try:
            return AppConfig.from_dict(data)
        except ValueError as exc:
            log.warning("Failed to decode config: %s", exc)
            return None
    log.warning("Failed to decode config version")
    try:
        return AppConfigV0._from_dict(data).into_config()
    except ValueError as exc:
        log.warning("Failed to decode config: %s", exc)
        return None