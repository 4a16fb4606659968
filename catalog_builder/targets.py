"""Output targets: where a built catalog is written and what accompanies it."""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from catalog_builder.catalog import Catalog, SchemaEntry, write_catalog_json
from catalog_builder.config import (
    DirTargetConfig,
    GitHubPagesConfig,
    GitHubPagesTargetConfig,
)

log = logging.getLogger(__name__)


@dataclass
class OutputContext:
    """Everything a target needs to write its output files."""

    output_dir: Path
    config_path: Path
    catalog: Catalog
    groups_meta: list[tuple[str, str]] = field(default_factory=list)
    source_count: int = 0

    def __post_init__(self) -> None:
        self.output_dir = Path(self.output_dir)
        self.config_path = Path(self.config_path)


def _resolve_dir(directory: str, config_dir: Path) -> Path:
    path = Path(directory)
    return path if path.is_absolute() else Path(config_dir) / path


def _write_file(path: Path, text: str) -> None:
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise OSError(f"failed to write {path}: {exc}") from exc


def _write_pages_files(output_dir: Path, cname: str | None) -> None:
    _write_file(output_dir / ".nojekyll", "")
    log.debug("wrote .nojekyll")
    if cname is not None:
        _write_file(output_dir / "CNAME", f"{cname}\n")
        log.debug("wrote CNAME for %s", cname)


class Target(ABC):
    """An output target with a base URL and an output directory."""

    base_url: str

    @abstractmethod
    def output_dir(self, target_name: str, config_dir: str | Path) -> Path:
        """Return the directory this target writes to."""

    @abstractmethod
    def finalize(self, ctx: OutputContext) -> None:
        """Write all output files for this target."""


@dataclass
class DirTarget(Target):
    """Writes output to a local directory, optionally with GitHub Pages files."""

    dir: str
    base_url: str
    github: GitHubPagesConfig | None = None

    def output_dir(self, target_name: str, config_dir: str | Path) -> Path:
        return _resolve_dir(self.dir, Path(config_dir))

    def finalize(self, ctx: OutputContext) -> None:
        write_common_files(ctx)
        if self.github is not None:
            _write_pages_files(ctx.output_dir, self.github.cname)


@dataclass
class GitHubPagesTarget(Target):
    """Writes output laid out for GitHub Pages deployment."""

    base_url: str
    cname: str | None = None
    dir: str | None = None

    def output_dir(self, target_name: str, config_dir: str | Path) -> Path:
        config_dir = Path(config_dir)
        if self.dir is not None:
            return _resolve_dir(self.dir, config_dir)
        return config_dir / ".lintel-pages-output" / target_name

    def finalize(self, ctx: OutputContext) -> None:
        write_common_files(ctx)
        _write_pages_files(ctx.output_dir, self.cname)


def target_from_config(config: DirTargetConfig | GitHubPagesTargetConfig) -> Target:
    """Build the target described by a target configuration."""
    match config:
        case DirTargetConfig(dir=directory, base_url=base_url, github=github):
            return DirTarget(dir=directory, base_url=base_url, github=github)
        case GitHubPagesTargetConfig(base_url=base_url, cname=cname, dir=directory):
            return GitHubPagesTarget(base_url=base_url, cname=cname, dir=directory)
    raise TypeError(f"unsupported target configuration: {config!r}")


def write_common_files(ctx: OutputContext) -> None:
    """Write ``catalog.json``, ``README.md`` and ``index.html``."""
    write_catalog_json(ctx.output_dir, ctx.catalog)
    write_readme(ctx)
    write_index_html(ctx)


def write_index_html(ctx: OutputContext) -> Path:
    """Write the ``index.html`` landing page and return its path."""
    path = ctx.output_dir / "index.html"
    _write_file(path, generate_index_html(ctx.catalog, ctx.groups_meta))
    log.debug("wrote %s", path)
    return path


def write_readme(ctx: OutputContext) -> Path:
    """Write ``README.md`` describing the generated directory and return its path."""
    config_dir = ctx.config_path.parent
    source_repo = detect_git_remote(config_dir)
    config_filename = ctx.config_path.name

    lines = [
        "# Schema Catalog\n\n",
        "This directory was generated by `lintel-catalog-builder`.\n",
        "**Do not edit files in this directory manually** — "
        "they will be overwritten on the next run.\n\n",
    ]
    if source_repo is not None:
        lines.append(f"Source repository: <{source_repo}>\n\n")
    lines += [
        "## Stats\n\n",
        f"- **{len(ctx.catalog.schemas)}** schemas\n",
        f"- **{len(ctx.catalog.groups)}** groups\n",
        f"- **{ctx.source_count}** external sources\n\n",
        "## Regenerate\n\n",
        "```sh\n",
        f"lintel-catalog-builder generate --config {config_filename}\n",
        "```\n",
    ]

    path = ctx.output_dir / "README.md"
    _write_file(path, "".join(lines))
    log.debug("wrote %s", path)
    return path


def detect_git_remote(directory: str | Path) -> str | None:
    """Return the ``origin`` remote URL of the git repository at *directory*, if any."""
    try:
        result = subprocess.run(
            ["git", "-C", str(directory), "remote", "get-url", "origin"],
            capture_output=True,
            check=False,
        )
    except OSError:
        return None
    if result.returncode != 0:
        return None
    try:
        url = result.stdout.decode("utf-8").strip()
    except UnicodeDecodeError:
        return None
    return url or None


def html_escape(s: str) -> str:
    """Escape ``&``, ``<``, ``>`` and ``"`` for HTML."""
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def _schema_card(schema: SchemaEntry) -> str:
    parts = [
        '<div class="schema-card">',
        f'<div class="schema-name"><a href="{html_escape(schema.url)}">'
        f"{html_escape(schema.name)}</a></div>",
    ]
    if schema.description:
        parts.append(f'<div class="schema-desc">{html_escape(schema.description)}</div>')
    if schema.file_match:
        patterns = " ".join(f"<code>{html_escape(p)}</code>" for p in schema.file_match)
        parts.append(f'<div class="schema-patterns">{patterns}</div>')
    parts.append("</div>\n")
    return "".join(parts)


def generate_index_html(catalog: Catalog, groups_meta: list[tuple[str, str]]) -> str:
    """Render a self-contained HTML landing page for *catalog*."""
    parts = [
        _INDEX_HTML_HEAD,
        '<div class="stats">\n'
        f'<div class="stat"><strong>{len(catalog.schemas)}</strong><span>schemas</span></div>\n'
        f'<div class="stat"><strong>{len(catalog.groups)}</strong><span>groups</span></div>\n'
        "</div>\n",
    ]

    schemas_by_group = {group.name: group.schemas for group in catalog.groups}
    assigned = {name for group in catalog.groups for name in group.schemas}

    for group_name, group_desc in groups_meta:
        names = schemas_by_group.get(group_name, [])
        members = [s for s in catalog.schemas if s.name in names]
        if not members:
            continue
        parts.append(
            "<details open data-group>\n"
            f"<summary>{html_escape(group_name)}"
            f'<span class="desc">— {html_escape(group_desc)}</span>'
            f'<span class="count">{len(members)} schemas</span></summary>\n'
            '<div class="schema-list">\n'
        )
        parts.extend(_schema_card(s) for s in members)
        parts.append("</div>\n</details>\n")

    unassigned = [s for s in catalog.schemas if s.name not in assigned]
    if unassigned:
        parts.append(
            "<details data-group>\n"
            f'<summary>Other Schemas<span class="count">{len(unassigned)} schemas</span>'
            "</summary>\n"
            '<div class="schema-list">\n'
        )
        parts.extend(_schema_card(s) for s in unassigned)
        parts.append("</div>\n</details>\n")

    parts.append(_INDEX_HTML_FOOTER)
    return "".join(parts)


_INDEX_HTML_HEAD = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Schema Catalog</title>
<style>
*, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }
body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, Helvetica, Arial, sans-serif; line-height: 1.6; color: #1a1a2e; background: #f8f9fa; }
.container { max-width: 960px; margin: 0 auto; padding: 2rem 1.5rem; }
header { text-align: center; margin-bottom: 2rem; padding-bottom: 1.5rem; border-bottom: 2px solid #e9ecef; }
header h1 { font-size: 2rem; font-weight: 700; color: #16213e; }
header p { color: #495057; margin-top: 0.5rem; }
.search-box { margin-bottom: 2rem; }
.search-box input { width: 100%; padding: 0.75rem 1rem; font-size: 1rem; border: 1px solid #dee2e6; border-radius: 8px; outline: none; transition: border-color 0.2s; }
.search-box input:focus { border-color: #4361ee; box-shadow: 0 0 0 3px rgba(67, 97, 238, 0.15); }
.stats { display: flex; gap: 1.5rem; justify-content: center; margin-bottom: 2rem; flex-wrap: wrap; }
.stat { background: #fff; padding: 0.75rem 1.25rem; border-radius: 8px; border: 1px solid #e9ecef; text-align: center; }
.stat strong { display: block; font-size: 1.5rem; color: #4361ee; }
.stat span { font-size: 0.85rem; color: #6c757d; }
details { margin-bottom: 1rem; background: #fff; border-radius: 8px; border: 1px solid #e9ecef; }
summary { padding: 1rem 1.25rem; cursor: pointer; font-weight: 600; font-size: 1.1rem; color: #16213e; user-select: none; list-style: none; display: flex; align-items: center; gap: 0.5rem; }
summary::before { content: "\25B6"; font-size: 0.7rem; transition: transform 0.2s; }
details[open] > summary::before { transform: rotate(90deg); }
summary .count { font-weight: 400; font-size: 0.85rem; color: #6c757d; margin-left: auto; }
summary .desc { font-weight: 400; font-size: 0.9rem; color: #6c757d; margin-left: 0.5rem; }
.schema-list { padding: 0 1.25rem 1rem; }
.schema-card { padding: 0.75rem 0; border-top: 1px solid #f1f3f5; }
.schema-card:first-child { border-top: none; }
.schema-name { font-weight: 600; color: #16213e; }
.schema-name a { color: #4361ee; text-decoration: none; }
.schema-name a:hover { text-decoration: underline; }
.schema-desc { font-size: 0.9rem; color: #495057; margin-top: 0.25rem; }
.schema-patterns { font-size: 0.8rem; color: #868e96; margin-top: 0.25rem; }
.schema-patterns code { background: #f1f3f5; padding: 0.1rem 0.3rem; border-radius: 3px; font-size: 0.8rem; }
footer { margin-top: 3rem; padding-top: 1.5rem; border-top: 1px solid #e9ecef; text-align: center; font-size: 0.85rem; color: #868e96; }
footer a { color: #4361ee; text-decoration: none; }
.hidden { display: none; }
</style>
</head>
<body>
<div class="container">
<header>
<h1>Schema Catalog</h1>
<p>JSON Schemas for editor auto-completion, validation, and documentation</p>
</header>
<div class="search-box">
<input type="text" id="search" placeholder="Search schemas by name or description..." autocomplete="off">
</div>
"""

_INDEX_HTML_FOOTER = r"""<footer>
<p>Generated by lintel-catalog-builder</p>
</footer>
</div>
<script>
document.getElementById('search').addEventListener('input', function(e) {
  var q = e.target.value.toLowerCase();
  document.querySelectorAll('.schema-card').forEach(function(card) {
    var text = card.textContent.toLowerCase();
    card.classList.toggle('hidden', q.length > 0 && !text.includes(q));
  });
  document.querySelectorAll('[data-group]').forEach(function(group) {
    var visible = group.querySelectorAll('.schema-card:not(.hidden)').length;
    group.classList.toggle('hidden', q.length > 0 && visible === 0);
    if (q.length > 0 && visible > 0) group.open = true;
  });
});
</script>
</body>
</html>
"""