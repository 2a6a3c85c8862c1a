"""Project configuration files (objdiff.yml / objdiff.json) and watch patterns."""

from __future__ import annotations

import fnmatch
import json
import re
import stat
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePath
from typing import Any, Optional, Union

import semver
import yaml

APP_VERSION = "0.1.0"

CONFIG_FILENAMES = ("objdiff.yml", "objdiff.yaml", "objdiff.json")

DEFAULT_WATCH_PATTERNS = (
    "*.c", "*.cp", "*.cpp", "*.cxx", "*.h", "*.hp", "*.hpp", "*.hxx",
    "*.s", "*.S", "*.asm", "*.inc", "*.py", "*.yml", "*.txt", "*.json",
)


class ProjectConfigError(Exception):
    """A project configuration could not be read or is not usable."""


def _get(data: dict, key: str, types: Union[type, tuple], default: Any = None) -> Any:
    value = data.get(key, default)
    if value is None:
        return default
    if not isinstance(value, types):
        raise ProjectConfigError(f"invalid value for '{key}': {value!r}")
    return value


def _get_path(data: dict, key: str) -> Optional[Path]:
    value = _get(data, key, str)
    return Path(value) if value is not None else None


@dataclass
class ScratchConfig:
    platform: Optional[str] = None
    compiler: Optional[str] = None
    c_flags: Optional[str] = None
    ctx_path: Optional[Path] = None
    build_ctx: bool = False

    @classmethod
    def _from_dict(cls, data: Any) -> ScratchConfig:
        if not isinstance(data, dict):
            raise ProjectConfigError("scratch configuration must be a mapping")
        return cls(
            platform=_get(data, "platform", str),
            compiler=_get(data, "compiler", str),
            c_flags=_get(data, "c_flags", str),
            ctx_path=_get_path(data, "ctx_path"),
            build_ctx=_get(data, "build_ctx", bool, False),
        )


@dataclass
class ProjectObject:
    name: Optional[str] = None
    path: Optional[Path] = None
    target_path: Optional[Path] = None
    base_path: Optional[Path] = None
    reverse_fn_order: Optional[bool] = None
    complete: Optional[bool] = None
    scratch: Optional[ScratchConfig] = None

    def display_name(self) -> str:
        if self.name is not None:
            return self.name
        if self.path is not None:
            return str(self.path)
        return "[unknown]"

    @classmethod
    def _from_dict(cls, data: Any) -> ProjectObject:
        if not isinstance(data, dict):
            raise ProjectConfigError("each object must be a mapping")
        scratch = data.get("scratch")
        return cls(
            name=_get(data, "name", str),
            path=_get_path(data, "path"),
            target_path=_get_path(data, "target_path"),
            base_path=_get_path(data, "base_path"),
            reverse_fn_order=_get(data, "reverse_fn_order", bool),
            complete=_get(data, "complete", bool),
            scratch=ScratchConfig._from_dict(scratch) if scratch is not None else None,
        )


@dataclass
class FileNode:
    name: str
    object: ProjectObject


@dataclass
class DirNode:
    name: str
    children: list[Union[FileNode, DirNode]] = field(default_factory=list)


@dataclass
class ProjectConfig:
    min_version: Optional[str] = None
    custom_make: Optional[str] = None
    target_dir: Optional[Path] = None
    base_dir: Optional[Path] = None
    build_base: bool = True
    build_target: bool = False
    watch_patterns: Optional[list[str]] = None
    objects: list[ProjectObject] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> ProjectConfig:
        """Build a configuration from parsed YAML or JSON; ``units`` aliases ``objects``."""
        if not isinstance(data, dict):
            raise ProjectConfigError("project configuration must be a mapping")
        objects = data.get("objects", data.get("units"))
        if objects is None:
            objects = []
        if not isinstance(objects, list):
            raise ProjectConfigError("'objects' must be a list")
        patterns = _get(data, "watch_patterns", list)
        if patterns is not None and not all(isinstance(p, str) for p in patterns):
            raise ProjectConfigError("'watch_patterns' must be a list of strings")
        return cls(
            min_version=_get(data, "min_version", str),
            custom_make=_get(data, "custom_make", str),
            target_dir=_get_path(data, "target_dir"),
            base_dir=_get_path(data, "base_dir"),
            build_base=_get(data, "build_base", bool, True),
            build_target=_get(data, "build_target", bool, False),
            watch_patterns=list(patterns) if patterns is not None else None,
            objects=[ProjectObject._from_dict(o) for o in objects],
        )


@dataclass(frozen=True)
class ProjectConfigInfo:
    path: Path
    timestamp: float


def _closing_brace(pattern: str, start: int) -> int:
    depth = 0
    i = start
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise ValueError(f"unclosed alternate group in glob {pattern!r}")


def _split_alternates(body: str) -> list[str]:
    parts, depth, current = [], 0, []
    for ch in body:
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        depth += ch == "{"
        depth -= ch == "}"
        current.append(ch)
    parts.append("".join(current))
    return parts


def _expand_braces(pattern: str) -> list[str]:
    start = pattern.find("{")
    if start < 0:
        if "}" in pattern.replace("\\}", ""):
            raise ValueError(f"unopened alternate group in glob {pattern!r}")
        return [pattern]
    end = _closing_brace(pattern, start)
    head, tail = pattern[:start], pattern[end + 1 :]
    return [
        expanded
        for part in _split_alternates(pattern[start + 1 : end])
        for expanded in _expand_braces(head + part + tail)
    ]


def _check_classes(pattern: str) -> None:
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "[":
            j = i + 1
            if j < len(pattern) and pattern[j] in "!^":
                j += 1
            if j < len(pattern) and pattern[j] == "]":
                j += 1
            close = pattern.find("]", j)
            if close < 0:
                raise ValueError(f"unclosed character class in glob {pattern!r}")
            i = close
        i += 1


@dataclass(frozen=True)
class GlobSet:
    """A set of glob patterns; ``*`` also matches path separators."""

    patterns: tuple[str, ...]
    _regexes: tuple[re.Pattern, ...] = field(default=(), repr=False, compare=False)

    def is_match(self, path: Union[str, PurePath]) -> bool:
        text = PurePath(path).as_posix()
        return any(regex.match(text) for regex in self._regexes)


def build_globset(patterns: Iterable[str]) -> GlobSet:
    """Compile glob patterns; raises :class:`ValueError` for a malformed pattern."""
    patterns = tuple(patterns)
    regexes = []
    for pattern in patterns:
        for expanded in _expand_braces(pattern):
            _check_classes(expanded)
            regexes.append(re.compile(fnmatch.translate(expanded)))
    return GlobSet(patterns, tuple(regexes))


def _find_dir(name: str, nodes: list) -> list:
    for node in nodes:
        if isinstance(node, DirNode) and node.name == name:
            return node.children
    new = DirNode(name)
    nodes.append(new)
    return new.children


def _resolve(
    path: Optional[Path], explicit: Optional[Path], obj_dir: Optional[Path], project_dir: Path
) -> Optional[Path]:
    if obj_dir is not None and path is not None and explicit is None:
        return Path(obj_dir) / path
    if explicit is not None:
        return Path(project_dir) / explicit
    return None


def build_nodes(
    objects: Iterable[ProjectObject],
    project_dir: Path,
    target_obj_dir: Optional[Path],
    base_obj_dir: Optional[Path],
) -> list[Union[FileNode, DirNode]]:
    """Arrange objects into a directory tree by name, resolving their paths."""
    nodes: list[Union[FileNode, DirNode]] = []
    for obj in objects:
        if obj.name is not None:
            tree_path = PurePath(obj.name)
        elif obj.path is not None:
            tree_path = PurePath(obj.path)
        else:
            continue
        if not tree_path.name:
            raise ProjectConfigError(f"object path '{tree_path}' has no file name")
        out = nodes
        for part in tree_path.parent.parts:
            if part == tree_path.anchor or part in (".", ".."):
                continue
            out = _find_dir(part, out)
        resolved = replace(
            obj,
            target_path=_resolve(obj.path, obj.target_path, target_obj_dir, project_dir),
            base_path=_resolve(obj.path, obj.base_path, base_obj_dir, project_dir),
        )
        out.append(FileNode(tree_path.name, resolved))
    return nodes


def read_project_config(path: Union[str, Path]) -> ProjectConfig:
    """Read a YAML or JSON (by file name) project configuration."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text) if "json" in path.name else yaml.safe_load(text)
    except (OSError, UnicodeDecodeError, ValueError, yaml.YAMLError) as exc:
        raise ProjectConfigError(f"Failed to read {path}: {exc}") from exc
    return ProjectConfig.from_dict(data)


def try_project_config(
    directory: Union[str, Path],
) -> Optional[tuple[ProjectConfig, ProjectConfigInfo]]:
    """Read the first configuration file found in ``directory``, or return ``None``."""
    directory = Path(directory)
    for filename in CONFIG_FILENAMES:
        config_path = directory / filename
        try:
            st = config_path.stat()
        except OSError:
            continue
        if not stat.S_ISREG(st.st_mode):
            continue
        config = read_project_config(config_path)
        return config, ProjectConfigInfo(config_path, st.st_mtime)
    return None


def _check_min_version(min_version: str) -> None:
    parts = min_version.strip().split(".")
    parts += ["0"] * (3 - len(parts))
    try:
        required = semver.Version.parse(".".join(parts))
    except ValueError as exc:
        raise ProjectConfigError(f"Invalid min_version '{min_version}'") from exc
    if semver.Version.parse(APP_VERSION) < required:
        raise ProjectConfigError(f"Project requires objdiff version {min_version} or higher")


def load_project_config(config: Any) -> None:
    """Load the project configuration for ``config.project_dir`` into ``config``."""
    project_dir = getattr(config, "project_dir", None)
    if project_dir is None:
        return
    project_dir = Path(project_dir)
    found = try_project_config(project_dir)
    if found is None:
        return
    project_config, info = found
    if project_config.min_version is not None:
        _check_min_version(project_config.min_version)
    config.custom_make = project_config.custom_make
    config.target_obj_dir = (
        project_dir / project_config.target_dir if project_config.target_dir is not None else None
    )
    config.base_obj_dir = (
        project_dir / project_config.base_dir if project_config.base_dir is not None else None
    )
    config.build_base = project_config.build_base
    config.build_target = project_config.build_target
    config.watch_patterns = (
        list(project_config.watch_patterns)
        if project_config.watch_patterns is not None
        else list(DEFAULT_WATCH_PATTERNS)
    )
    config.watcher_change = True
    config.objects = project_config.objects
    config.object_nodes = build_nodes(
        config.objects, project_dir, config.target_obj_dir, config.base_obj_dir
    )
    config.project_config_info = info