# mdc

`mdc` runs `docker compose` across several compose projects at once. It finds
compose files in the current directory and its subdirectories. It then runs the
same `docker compose` command in each project it found and combines the output.

## Installation

```
pip install .
```

`docker` with the compose plugin must be on your `PATH`. The package has no
other runtime dependencies. To install the test tools as well:

```
pip install ".[test]"
pytest
```

## Usage

```
mdc [mdc flags] <docker-compose args...>
mdc --help
mdc --version
```

`mdc help`, `mdc -h` and `mdc --help` print the usage text. If you run `mdc`
with no arguments, it prints the same text. `mdc version` and `mdc --version`
print the version. A development install prints `mdc dev`.

### mdc flags

| Flag                          | Meaning                                                     |
|-------------------------------|-------------------------------------------------------------|
| `--depth N`, `--depth=N`      | Discovery depth. `0` = current directory only, default `1`  |
| `--jobs N`, `--jobs=N`        | Max concurrent `docker compose` commands. `0` = all targets |
| `--quiet-targets`             | Suppress per-target section labels for non-merged output    |

The mdc flags must come first. The first argument that is not an mdc flag starts
the `docker compose` arguments, and mdc passes them on unchanged. Put `--`
before the compose arguments if they might look like mdc flags. The values of
`--depth` and `--jobs` must be non-negative integers.

### Examples

```
mdc ps
mdc up -d
mdc --depth 2 pull
mdc --ansi never ps
mdc --jobs 1 exec app sh
```

Global compose flags such as `--ansi`, `-f`/`--file`, `-p`/`--project-name`,
`--profile`, `--env-file`, `--progress`, `--parallel`, `--project-directory`,
`--compatibility`, `--dry-run` and `--all-resources` may come before the
subcommand. mdc skips over them to find the subcommand.

## How projects are found

mdc checks the current directory and its subdirectories, down to `--depth`
levels. It skips any directory whose name starts with `.`. In each directory it
tries these names in order and uses the first one it finds:

1. `compose.yaml`
2. `compose.yml`
3. `docker-compose.yaml`
4. `docker-compose.yml`

Each target is labelled by its path relative to the current directory, and the
current directory itself is labelled `.`. Targets are listed in label order.

For each target, mdc runs:

```
docker compose --project-name <name> -f <compose file> --project-directory <dir> <your args...>
```

The command runs with the project directory as its working directory. The
project name has the form `mdc-<directory name>-<hash>`. The hash is a 64-bit
FNV-1a hash of the directory's absolute path. The same directory always gets
the same name, and two directories with the same base name get different names.

## Output

- **`ps`** (with no `--format`, or with `--format json`): mdc runs
  `ps --format json` in every project. It merges the results into one table
  with `NAME`, `SERVICE`, `STATUS` and `PORTS` columns, sorted by name. If no
  containers are found, it prints `No containers found.` If any project's
  command fails, or its JSON cannot be read, mdc runs the original `ps` command
  in every project instead. It then prints the combined text with one header
  line.
- **Streaming commands** (`build`, `create`, `down`, `events`, `logs`, `pull`,
  `restart`, `start`, `stop`, `up`):
  - When more than one target runs at a time, output is shown as it arrives.
    Each line starts with the target's label, e.g. `[api] ...`.
  - When only one target runs at a time, output goes straight to the terminal.
    If standard output is not a terminal, mdc collects the output and prints it
    in sections.
- **Interactive commands** (`attach`, `exec`, `run`) need `--jobs 1` when there
  is more than one target. Otherwise mdc stops with a usage error. With
  `--jobs 1`, they are connected directly to the terminal.
- **Everything else** is collected per target. It is printed in sections headed
  `[label]`, with a blank line between sections. A target that succeeds and
  prints nothing gets no section. `--quiet-targets` leaves out the headings.

## Exit status

- `0` when every target succeeds.
- The exit code of the first failing target, in label order, when any fail.
  A summary such as `1 target(s) failed: api (boom)` goes to stderr.
- `1` when no compose files are found or a directory cannot be read.
- `2` for usage errors.

When mdc receives an interrupt or `SIGTERM`, it stops the running
`docker compose` processes and does not start any more.

## Using it from Python

`mdc.cli.run_cli(stop, stdout, stderr, argv, runner)` runs the whole command
and returns the exit code. Its arguments are:

- `stop`: an optional `threading.Event` that cancels the run when set.
- `stdout`, `stderr`: text streams for the output.
- `runner`: a callable with the same signature as `mdc.compose.exec_compose`.
  It returns an `mdc.compose.CommandResult`.

The building blocks live in these modules:

- `mdc.discovery`: `discover_targets`, `Target`.
- `mdc.args`: `parse_args`, `compose_command`, `should_merge_ps`,
  `output_mode_for_args`.
- `mdc.compose`: `compose_project_name`, `compose_command_args`, `exec_compose`,
  `LinePrefixWriter`.
- `mdc.ps`: `parse_ps_json`, `merge_ps_rows`, `render_ps_table`,
  `merge_ps_text`.