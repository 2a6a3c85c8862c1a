# objdiff

A library for comparing two builds of the same object file, the compiled
"target" and a freshly built "base", section by section and symbol by symbol.
It is meant for matching-decompilation projects, where the goal is to make
source code compile to exactly the same machine code as an original binary.

## Modules

- `objdiff.obj` – the object model: `ObjInfo`, `ObjSection`, `ObjSymbol`,
  `ObjReloc`, `ObjIns` and its operands (`ObjInsArg`, `ObjInsArgValue`), the
  diff results (`ObjInsDiff`, `ObjDataDiff`), plus `DiffAlg`,
  `DiffObjConfig` and `ProcessCodeResult`.
- `objdiff.diff` – `diff_objs`, which diffs two whole objects in place.
- `objdiff.code` – instruction diffing (`diff_code`, `no_diff_code`,
  `resolve_branches`, `find_section_and_symbol`, `symbol_code`).
- `objdiff.data` – data section diffing (`diff_data`, `diff_data_similar`,
  `diff_data_lev`, `no_diff_data`) and BSS symbol matching
  (`diff_bss_symbols`).
- `objdiff.sequence` – `capture_diff`, a sequence diff with the Myers, LCS and
  patience algorithms and an optional timeout.
- `objdiff.editops` – `editops_find`, Levenshtein edit operations.
- `objdiff.config` – project configuration files and watch-pattern globs.
- `objdiff.settings` – application settings (`AppConfig`) and their saved
  JSON form.
- `objdiff.jobs` – background jobs on threads with progress and cancellation.
- `objdiff.build` – running `make` and the build-load-diff job.
- `objdiff.fontmatch` – picking the closest font in a family by style,
  weight and stretch.
- `objdiff.util` – `signed_hex`.

## Diffing objects

Reading object files and disassembling instructions is up to the caller.
`diff_objs` takes the two parsed objects (`ObjInfo`, either may be `None`)
and a `process_code` callable, called as
`process_code(architecture, code_bytes, symbol, relocations, line_info)`,
that returns a `ProcessCodeResult` (one opcode id per instruction, plus the
`ObjIns` records).

```python
from objdiff.obj import DiffAlg, DiffObjConfig
from objdiff.diff import diff_objs

config = DiffObjConfig(
    code_alg=DiffAlg.PATIENCE,
    data_alg=DiffAlg.PATIENCE,
    relax_reloc_diffs=False,
)

diff_objs(config, target_obj, base_obj, process_code)

for section in target_obj.sections:
    for symbol in section.symbols:
        print(symbol.name, symbol.match_percent)
```

After diffing, each symbol in a code section carries its aligned
`instructions` (a list of `ObjInsDiff`, each with a `kind` such as
`ObjInsDiffKind.ARG_MISMATCH`, branch links and argument colour indices),
and each data section carries its `data_diff` (runs of `ObjDataDiff`).
Relocated operands are compared by target symbol and section unless
`relax_reloc_diffs` is set, in which case only the relocation kind matters.
BSS and common symbols are matched by name: equal sizes give 100 %,
different sizes 50 %.

## Smaller building blocks

```python
from objdiff.editops import editops_find
from objdiff.sequence import capture_diff
from objdiff.obj import DiffAlg
from objdiff.util import signed_hex

editops_find(b"kitten", b"sitting")           # list of LevEditOp
capture_diff(DiffAlg.MYERS, "abcd", "abxd")    # list of DiffOp runs
signed_hex(-16)                                # "-0x10"
signed_hex(255, upper=True, prefix=False)      # "FF"
```

## Project configuration

A project describes its objects in `objdiff.yml`, `objdiff.yaml` or
`objdiff.json` (looked for in that order):

```yaml
min_version: "0.1.0"
target_dir: build/orig
base_dir: build/src
build_target: false
watch_patterns:
  - "*.c"
  - "*.h"
objects:
  - name: main/game
    path: main/game.o
```

`units` is accepted in place of `objects`. Load it into the settings:

```python
from objdiff.settings import AppConfig
from objdiff.config import load_project_config

app_config = AppConfig()
app_config.set_project_dir(project_dir)
load_project_config(app_config)

for node in app_config.object_nodes:   # FileNode / DirNode tree
    print(node)
```

A missing configuration file is not an error; an unreadable one, or one that
requires a newer version than this package, raises `ProjectConfigError`.
`build_globset(patterns)` compiles watch patterns into a `GlobSet` whose
`is_match(path)` tests a relative path.

## Settings

`serialize_config(config)` writes an `AppConfig`'s saved fields as JSON;
`deserialize_config(text)` reads them back, upgrading the older unversioned
layout, and returns `None` for data it cannot read.

## Building and jobs

`run_make(BuildConfig, path)` runs `make` (or `custom_make`, through WSL on
Windows when a distribution is selected) in the project directory and
returns a `BuildStatus`. `start_build(ObjDiffConfig.from_config(app_config),
load_object, process_code)` builds the selected object's target and base as
configured, loads them with `load_object(path)`, diffs them and returns a
`JobState`; collect finished jobs with `JobQueue.iter_finished()`.

## What it does not do

- It does not read object files or disassemble machine code: `load_object`
  and `process_code` must be supplied.
- It does not watch the file system; rebuilding on changes is up to the
  caller.
- It has no user interface and no command-line program.
- It does not check for or install updates, or upload scratches to a web
  service.

## Running the tests

Install the `test` extra and run `pytest` from the project root.