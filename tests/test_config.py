import json
from pathlib import Path
from types import SimpleNamespace

import pytest

from objdiff.config import (
    DEFAULT_WATCH_PATTERNS,
    DirNode,
    FileNode,
    ProjectConfig,
    ProjectConfigError,
    ProjectObject,
    build_globset,
    build_nodes,
    load_project_config,
    read_project_config,
    try_project_config,
)

YAML_CONFIG = """\
custom_make: ninja
target_dir: build/asm
base_dir: build/src
build_target: true
units:
  - name: main/foo
    path: main/foo.o
    scratch:
      compiler: mwcc
      build_ctx: true
"""


def test_from_dict_defaults_and_alias():
    config = ProjectConfig.from_dict({"units": [{"name": "a"}]})
    assert config.build_base is True
    assert config.build_target is False
    assert config.watch_patterns is None
    assert [o.name for o in config.objects] == ["a"]


def test_from_dict_rejects_bad_types():
    with pytest.raises(ProjectConfigError):
        ProjectConfig.from_dict({"build_base": "yes"})
    with pytest.raises(ProjectConfigError):
        ProjectConfig.from_dict(["not", "a", "mapping"])


def test_display_name():
    assert ProjectObject(name="n", path=Path("p.o")).display_name() == "n"
    assert ProjectObject(path=Path("p.o")).display_name() == "p.o"
    assert ProjectObject().display_name() == "[unknown]"


def test_build_nodes_tree_and_paths():
    project = Path("/proj")
    objects = [
        ProjectObject(name="a/b/c.o", path=Path("a/b/c.o")),
        ProjectObject(name="a/d.o", target_path=Path("explicit/d.o")),
        ProjectObject(),
    ]
    nodes = build_nodes(objects, project, Path("/proj/target"), None)
    assert len(nodes) == 1
    top = nodes[0]
    assert isinstance(top, DirNode) and top.name == "a"
    sub = top.children[0]
    assert isinstance(sub, DirNode) and sub.name == "b"
    leaf = sub.children[0]
    assert isinstance(leaf, FileNode) and leaf.name == "c.o"
    assert leaf.object.target_path == Path("/proj/target") / "a/b/c.o"
    assert leaf.object.base_path is None
    second = top.children[1]
    assert second.name == "d.o"
    assert second.object.target_path == project / "explicit/d.o"
    assert objects[0].target_path is None


def test_globset_matching():
    globs = build_globset(DEFAULT_WATCH_PATTERNS)
    assert globs.is_match("src/foo.c")
    assert globs.is_match(Path("include") / "bar.h")
    assert not globs.is_match("build/foo.o")
    braces = build_globset(["*.{c,h}"])
    assert braces.is_match("x.h") and not braces.is_match("x.s")


@pytest.mark.parametrize("pattern", ["[abc", "*.{c,h"])
def test_globset_rejects_malformed(pattern):
    with pytest.raises(ValueError):
        build_globset([pattern])


def test_try_project_config_missing(tmp_path):
    assert try_project_config(tmp_path) is None


def test_try_project_config_prefers_yml(tmp_path):
    (tmp_path / "objdiff.json").write_text(json.dumps({"custom_make": "from_json"}))
    (tmp_path / "objdiff.yml").write_text("custom_make: from_yml\n")
    config, info = try_project_config(tmp_path)
    assert config.custom_make == "from_yml"
    assert info.path == tmp_path / "objdiff.yml"


def test_read_json_config(tmp_path):
    path = tmp_path / "objdiff.json"
    path.write_text(json.dumps({"objects": [{"path": "x.o"}], "build_base": False}))
    config = read_project_config(path)
    assert config.build_base is False
    assert config.objects[0].path == Path("x.o")


def test_read_invalid_yaml(tmp_path):
    path = tmp_path / "objdiff.yml"
    path.write_text("objects: [unclosed\n")
    with pytest.raises(ProjectConfigError):
        read_project_config(path)


def test_load_project_config(tmp_path):
    (tmp_path / "objdiff.yml").write_text(YAML_CONFIG)
    config = SimpleNamespace(project_dir=tmp_path)
    load_project_config(config)
    assert config.custom_make == "ninja"
    assert config.target_obj_dir == tmp_path / "build/asm"
    assert config.base_obj_dir == tmp_path / "build/src"
    assert config.build_target is True and config.build_base is True
    assert config.watch_patterns == list(DEFAULT_WATCH_PATTERNS)
    assert config.watcher_change is True
    assert config.project_config_info.path == tmp_path / "objdiff.yml"
    node = config.object_nodes[0]
    assert node.name == "main"
    leaf = node.children[0]
    assert leaf.name == "foo"
    assert leaf.object.target_path == tmp_path / "build/asm" / "main/foo.o"
    assert leaf.object.scratch.compiler == "mwcc"
    assert leaf.object.scratch.build_ctx is True


def test_load_project_config_without_project_dir_is_untouched():
    config = SimpleNamespace(project_dir=None, custom_make="keep")
    load_project_config(config)
    assert config.custom_make == "keep"


def test_load_project_config_min_version(tmp_path):
    (tmp_path / "objdiff.yml").write_text("min_version: 999.0.0\n")
    config = SimpleNamespace(project_dir=tmp_path)
    with pytest.raises(ProjectConfigError, match="999.0.0"):
        load_project_config(config)
    assert not hasattr(config, "project_config_info")

    (tmp_path / "objdiff.yml").write_text("min_version: '0.0'\n")
    load_project_config(config)
    assert config.project_config_info.path == tmp_path / "objdiff.yml"