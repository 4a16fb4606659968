# catalog-builder

Build a custom JSON Schema catalog (`catalog.json`) from schemas you keep
locally, schemas you download from a URL, and whole external catalogs. The
result is a directory that can be served as static files: every schema is
stored under `schemas/`, external `$ref` dependencies are downloaded next to
it and rewritten to point at your copy, and a browsable `index.html` and a
`README.md` are written alongside the catalog.

## Installation

```sh
pip install .
```

Only the Python standard library is needed at run time (Python 3.11 or later).

## Usage

The command is installed under two names, `catalog-builder` and
`lintel-catalog-builder`; both run `catalog_builder.cli:main`.

```sh
catalog-builder generate
catalog-builder generate --config my-catalog.toml --target pages --concurrency 50 --no-cache
catalog-builder version
catalog-builder --version
```

Options of `generate`:

| Option | Default | Meaning |
| --- | --- | --- |
| `--config PATH` | `lintel-catalog.toml` | Configuration file to read |
| `--target NAME` | all targets | Build only the named target |
| `--concurrency N` | `20` | Maximum number of concurrent downloads (a non-negative number; `0` behaves like `1`) |
| `--no-cache` | off | Do not read schemas from the cache (fetched schemas are still written to it) |

Run without a command, it prints the usage and exits with status 1. When
generation fails it prints `Error: ...` and exits with status 1: for example
a missing config file, a config without targets, an unknown `--target`, a
local schema that does not exist, two schemas that would be written to the
same path, or a schema that matches more than one organize entry.

Set the `LINTEL_LOG` environment variable to turn on logging to standard
error, e.g. `LINTEL_LOG=debug` or `LINTEL_LOG=info`. Accepted levels are
`trace`, `debug`, `info`, `warn`, `warning`, `error` and `off`; for a
comma-separated list such as `catalog_builder=debug`, the part after `=` is
the level and the last one given wins.

Downloaded documents are cached as JSON files in
`$XDG_CACHE_HOME/lintel/schemas` (or `~/.cache/lintel/schemas`).

## Configuration

```toml
[catalog]
title = "My Schemas"

[target.local]
type = "dir"
dir = "../catalog-generated"
base_url = "https://schemas.example.com/"

[target.pages]
type = "github-pages"
base_url = "https://catalog.example.com/"
cname = "catalog.example.com"

[groups.tools]
name = "Tools"
description = "Schemas for our tool configuration files"

[groups.tools.schemas]
# No url: read from schemas/tools/agent.json next to the config file.
agent = { name = "Agent", description = "Agent definition", file-match = ["**/agents/*.md"] }
# With url: downloaded.
devenv = { url = "https://example.com/devenv.schema.json", name = "devenv.yaml", description = "devenv config", file-match = ["devenv.yaml"] }

[groups.github]
name = "GitHub"
description = "GitHub configuration files"

[sources.external]
url = "https://example.com/api/json/catalog.json"

[sources.external.organize.github]
match = ["**.github**"]
```

The `[catalog]` table is required (its `title` is optional); `target`,
`groups` and `sources` may be left out. Unknown keys are rejected.

### Targets

* `type = "dir"` writes to `dir` (relative to the config file unless
  absolute). An optional `[target.<name>.github]` table, with an optional
  `cname`, also writes `.nojekyll` and, when `cname` is set, `CNAME`.
* `type = "github-pages"` writes to `dir` if given, otherwise to
  `.lintel-pages-output/<target>` next to the config file, and always writes
  `.nojekyll`, plus `CNAME` when `cname` is set.

Every target gets `catalog.json` (with `$schema`, `version` and `title`
first), `README.md` (schema, group and source counts, plus the `origin`
remote of the git repository holding the config file, found by running
`git`) and `index.html` (a searchable list of schemas by group). Schema URLs in
the catalog are built from the target's `base_url`.

### Sources and organize rules

Every schema of an external catalog is downloaded into `schemas/<source>/`,
with filenames made from a slug of the schema name (`GitHub Workflow` becomes
`github-workflow.json`; duplicates in one directory get `-2`, `-3`, ...
suffixes). Schemas listed twice with the same URL are kept once. An
`organize` entry moves matching schemas into `schemas/<key>/` and adds them
to the group of the same key, which is created automatically (named after the
key with its first letter upper-cased) when no `[groups.<key>]` exists.

A `match` pattern is either a full `http://` or `https://` URL, compared with
the schema URL exactly, or a pattern compared with each `fileMatch` string as
literal text, where `**` stands for any run of characters. So `**.github**`
matches `**/.github/workflows/*.yml` and `.github/dependabot.yml`.

Source schemas that fail to download, or whose JSON is larger than 10 MiB,
keep their upstream URL in the catalog. A group schema that fails to download
stops the build.

### `$ref` handling

Absolute `http(s)` `$ref` targets are downloaded into
`schemas/<group-or-source>/_shared/` (recursively), and the references are
rewritten to point there, keeping any `#fragment`. Different URLs with the
same last path segment get `-2`, `-3`, ... suffixes. Dependencies that fail to
download keep their original URL. Fragments that contain characters not
allowed in a URI (spaces, brackets, `<`, `>`, `|`, non-ASCII, ...) are
percent-encoded, for example `#/$defs/Parameter Node` becomes
`#/$defs/Parameter%20Node`.

## Library use

```python
from catalog_builder.config import load_config
from catalog_builder.refs import find_external_refs, fix_ref_uris

with open("lintel-catalog.toml", encoding="utf-8") as fh:
    config = load_config(fh.read())

schema = {"$ref": "https://example.com/base.json#/definitions/Foo"}
print(find_external_refs(schema))  # {'https://example.com/base.json'}
```

`catalog_builder.generate.run(config_path, target_filter, concurrency,
no_cache)` runs a whole build and raises `GenerateError` on failure;
`catalog_builder.config.load_config` raises `ConfigError`.

## What it does not do

It does not serve the generated directory or deploy it anywhere; it only
writes files. It does not validate schemas against JSON Schema, only checks
that they are JSON. Cache entries never expire; use `--no-cache` to refetch.

## Development

```sh
pip install -e ".[test]"
pytest
```