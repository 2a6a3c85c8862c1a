"""Build object files with make, then load and diff them."""

from __future__ import annotations

import copy
import logging
import os
import shlex
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePath
from typing import Any, Optional, Union

from objdiff.diff import ProcessCode, diff_objs
from objdiff.jobs import Job, JobContext, JobState, start_job, update_status
from objdiff.obj import DiffAlg, DiffObjConfig, ObjInfo
from objdiff.settings import AppConfig, ObjectConfig

log = logging.getLogger(__name__)

LoadObject = Callable[[Path], ObjInfo]
"""Reads an object file from disk."""

_WINDOWS = os.name == "nt"


@dataclass
class BuildStatus:
    success: bool = True
    cmdline: str = ""
    stdout: str = ""
    stderr: str = ""


@dataclass
class BuildConfig:
    project_dir: Optional[Path] = None
    custom_make: Optional[str] = None
    selected_wsl_distro: Optional[str] = None

    @classmethod
    def from_config(cls, config: AppConfig) -> BuildConfig:
        return cls(
            project_dir=config.project_dir,
            custom_make=config.custom_make,
            selected_wsl_distro=config.selected_wsl_distro,
        )


@dataclass
class ObjDiffConfig:
    build_config: BuildConfig
    build_base: bool
    build_target: bool
    selected_obj: Optional[ObjectConfig]
    code_alg: DiffAlg
    data_alg: DiffAlg
    relax_reloc_diffs: bool

    @classmethod
    def from_config(cls, config: AppConfig) -> ObjDiffConfig:
        return cls(
            build_config=BuildConfig.from_config(config),
            build_base=config.build_base,
            build_target=config.build_target,
            selected_obj=copy.deepcopy(config.selected_obj),
            code_alg=config.code_alg,
            data_alg=config.data_alg,
            relax_reloc_diffs=config.relax_reloc_diffs,
        )


@dataclass
class ObjDiffResult:
    first_status: BuildStatus
    second_status: BuildStatus
    first_obj: Optional[Any]
    second_obj: Optional[Any]
    time: datetime


def _command(config: BuildConfig, cwd: Path, arg: Union[str, PurePath]) -> tuple[list[str], Optional[Path]]:
    make = config.custom_make if config.custom_make is not None else "make"
    if not _WINDOWS:
        return [make, str(arg)], cwd
    arg_text = PurePath(arg).as_posix()
    if config.selected_wsl_distro is not None:
        return ["wsl", "--cd", str(cwd), "-d", config.selected_wsl_distro, "--", make, arg_text], None
    return [make, arg_text], cwd


def _run_make_cmd(config: BuildConfig, cwd: Path, arg: Union[str, PurePath]) -> BuildStatus:
    argv, run_dir = _command(config, cwd, arg)
    cmdline = subprocess.list2cmdline(argv) if _WINDOWS else " ".join(shlex.quote(a) for a in argv)
    flags = getattr(subprocess, "CREATE_NO_WINDOW", 0) if _WINDOWS else 0
    try:
        output = subprocess.run(
            argv, cwd=run_dir, capture_output=True, check=False, creationflags=flags
        )
    except OSError as exc:
        raise OSError(f"Failed to execute build: {exc}") from exc
    try:
        stdout = output.stdout.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValueError("Failed to process stdout") from exc
    try:
        stderr = output.stderr.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValueError("Failed to process stderr") from exc
    return BuildStatus(output.returncode == 0, cmdline, stdout, stderr)


def run_make(config: BuildConfig, arg: Union[str, PurePath]) -> BuildStatus:
    """Run make for ``arg`` in the project directory; failures are reported in the status."""
    if config.project_dir is None:
        return BuildStatus(success=False, stderr="Missing project dir")
    try:
        return _run_make_cmd(config, Path(config.project_dir), arg)
    except (OSError, ValueError) as exc:
        return BuildStatus(success=False, stderr=str(exc))


def _relative(path: Optional[Path], project_dir: Path, label: str) -> Optional[PurePath]:
    if path is None:
        return None
    try:
        return PurePath(path).relative_to(PurePath(project_dir))
    except ValueError:
        raise ValueError(
            f"{label} path '{path}' doesn't begin with '{project_dir}'"
        ) from None


def _load(load_object: LoadObject, path: Path) -> Any:
    try:
        return load_object(Path(path))
    except Exception as exc:
        raise RuntimeError(f"Failed to read object '{path}': {exc}") from exc


def run_build(
    context: JobContext,
    config: ObjDiffConfig,
    load_object: LoadObject,
    process_code: ProcessCode,
) -> ObjDiffResult:
    """Build the selected object's target and base as configured, load and diff them."""
    obj_config = config.selected_obj
    if obj_config is None:
        raise ValueError("Missing obj path")
    project_dir = config.build_config.project_dir
    if project_dir is None:
        raise ValueError("Missing project dir")
    target_rel = _relative(obj_config.target_path, project_dir, "Target")
    base_rel = _relative(obj_config.base_path, project_dir, "Base")

    total = 3
    if config.build_target and target_rel is not None:
        total += 1
    if config.build_base and base_rel is not None:
        total += 1

    if target_rel is not None and config.build_target:
        update_status(context, f"Building target {target_rel}", 0, total)
        first_status = run_make(config.build_config, target_rel)
    else:
        first_status = BuildStatus()

    if base_rel is not None and config.build_base:
        update_status(context, f"Building base {base_rel}", 0, total)
        second_status = run_make(config.build_config, base_rel)
    else:
        second_status = BuildStatus()

    time = datetime.now(timezone.utc)

    first_obj = None
    if obj_config.target_path is not None and first_status.success:
        update_status(context, f"Loading target {target_rel}", 2, total)
        first_obj = _load(load_object, obj_config.target_path)

    second_obj = None
    if obj_config.base_path is not None and second_status.success:
        update_status(context, f"Loading base {base_rel}", 3, total)
        second_obj = _load(load_object, obj_config.base_path)

    update_status(context, "Performing diff", 4, total)
    diff_config = DiffObjConfig(
        code_alg=config.code_alg,
        data_alg=config.data_alg,
        relax_reloc_diffs=config.relax_reloc_diffs,
    )
    diff_objs(diff_config, first_obj, second_obj, process_code)

    update_status(context, "Complete", total, total)
    return ObjDiffResult(first_status, second_status, first_obj, second_obj, time)


def start_build(
    config: ObjDiffConfig, load_object: LoadObject, process_code: ProcessCode
) -> JobState:
    """Run :func:`run_build` as a background job."""
    return start_job(
        "Object diff",
        Job.OBJ_DIFF,
        lambda context: run_build(context, config, load_object, process_code),
    )