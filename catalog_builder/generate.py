"""The ``generate`` command: build catalog output for every configured target."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, MutableSet
from dataclasses import dataclass, field
from pathlib import Path

from catalog_builder.catalog import (
    Catalog,
    CatalogGroup,
    SchemaEntry,
    build_output_catalog,
)
from catalog_builder.config import (
    CatalogConfig,
    ConfigError,
    OrganizeEntry,
    SourceConfig,
    load_config,
)
from catalog_builder.download import (
    DownloadItem,
    FetchError,
    SchemaFetcher,
    _Fetcher,
    download_batch,
    download_one,
)
from catalog_builder.refs import resolve_and_rewrite
from catalog_builder.targets import OutputContext, Target, target_from_config

log = logging.getLogger(__name__)

_BUILD_ERRORS = (FetchError, OSError, ValueError)


class GenerateError(Exception):
    """Raised when catalog generation cannot complete."""


@dataclass
class _SourceSchemaInfo:
    name: str
    description: str
    url: str
    local_url: str
    file_match: list[str] = field(default_factory=list)
    versions: dict[str, str] = field(default_factory=dict)


def _default_cache_dir() -> Path:
    base = os.environ.get("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / "lintel" / "schemas"


def _load_catalog_config(config_path: Path) -> CatalogConfig:
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise GenerateError(f"failed to read {config_path}: {exc}") from exc
    try:
        return load_config(text)
    except ConfigError as exc:
        raise GenerateError(f"failed to parse {config_path}: {exc}") from exc


def run(
    config_path: str | Path,
    target_filter: str | None = None,
    concurrency: int = 20,
    no_cache: bool = False,
) -> None:
    """Build every target in the config (or only *target_filter*)."""
    given = Path(config_path)
    try:
        resolved = given.resolve(strict=True)
    except OSError as exc:
        raise GenerateError(f"config file not found: {given}") from exc
    config_dir = resolved.parent

    config = _load_catalog_config(resolved)
    if not config.target:
        raise GenerateError(
            "no targets defined in config; add at least one [target.<name>] section"
        )
    if target_filter is not None and target_filter not in config.target:
        available = ", ".join(config.target)
        raise GenerateError(
            f"target '{target_filter}' not found in config; available targets: {available}"
        )

    fetcher = SchemaFetcher(cache_dir=_default_cache_dir(), force_fetch=no_cache)

    for target_name, target_config in config.target.items():
        if target_filter is not None and target_name != target_filter:
            continue
        log.info("building target %s", target_name)
        target = target_from_config(target_config)
        output_dir = target.output_dir(target_name, config_dir)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            generate_for_target(
                fetcher, config, target, output_dir, resolved, config_dir, concurrency
            )
        except (GenerateError, *_BUILD_ERRORS) as exc:
            raise GenerateError(f"failed to build target '{target_name}': {exc}") from exc
        log.info("target %s complete: %s", target_name, output_dir)

    log.info("catalog generation complete")


def _claim_path(output_paths: MutableSet[Path], dest: Path, what: str) -> None:
    canonical = dest.resolve()
    if canonical in output_paths:
        raise GenerateError(f"output path collision: {dest} ({what})")
    output_paths.add(canonical)


def generate_for_target(
    fetcher: _Fetcher,
    config: CatalogConfig,
    target: Target,
    output_dir: str | Path,
    config_path: str | Path,
    config_dir: str | Path,
    concurrency: int,
) -> Catalog:
    """Write all schemas and catalog files of one target; return the catalog."""
    output_dir = Path(output_dir)
    config_dir = Path(config_dir)
    trimmed_base = target.base_url.rstrip("/")
    schemas_dir = output_dir / "schemas"
    entries: list[SchemaEntry] = []
    output_paths: set[Path] = set()
    catalog_groups: dict[str, CatalogGroup] = {}
    groups_meta: dict[str, tuple[str, str]] = {}

    for group_key, group_config in config.groups.items():
        log.info("processing group %s (%d schemas)", group_key, len(group_config.schemas))
        group_dir = schemas_dir / group_key
        group_dir.mkdir(parents=True, exist_ok=True)
        shared_dir = group_dir / "_shared"
        shared_base_url = f"{trimmed_base}/schemas/{group_key}/_shared"
        already_downloaded: dict[str, str] = {}
        group_schema_names: list[str] = []

        for key, schema_def in group_config.schemas.items():
            filename = f"{key}.json"
            dest_path = group_dir / filename
            _claim_path(output_paths, dest_path, f"group={group_key}, key={key}")
            schema_url = f"{trimmed_base}/schemas/{group_key}/{filename}"

            if schema_def.url is not None:
                log.info("downloading group schema %s -> %s", schema_def.url, dest_path)
                try:
                    text = download_one(fetcher, schema_def.url, dest_path)
                except _BUILD_ERRORS as exc:
                    raise GenerateError(
                        f"failed to download schema for {group_key}/{key}: {exc}"
                    ) from exc
            else:
                source_path = config_dir / "schemas" / group_key / filename
                if not source_path.exists():
                    raise GenerateError(
                        f"local schema not found: {source_path} "
                        f"(expected for group={group_key}, key={key})"
                    )
                try:
                    text = source_path.read_text(encoding="utf-8")
                except OSError as exc:
                    raise GenerateError(
                        f"failed to read local schema {source_path}: {exc}"
                    ) from exc

            resolve_and_rewrite(
                fetcher, text, dest_path, shared_dir, shared_base_url, already_downloaded
            )

            group_schema_names.append(schema_def.name)
            entries.append(
                SchemaEntry(
                    name=schema_def.name,
                    description=schema_def.description,
                    url=schema_url,
                    file_match=list(schema_def.file_match),
                )
            )

        catalog_groups[group_key] = CatalogGroup(
            name=group_config.name,
            description=group_config.description,
            schemas=group_schema_names,
        )
        groups_meta[group_key] = (group_config.name, group_config.description)

    for source_name, source_config in config.sources.items():
        log.info("processing source %s (%s)", source_name, source_config.url)
        try:
            source_entries, source_groups = process_source(
                fetcher,
                target.base_url,
                source_name,
                source_config,
                schemas_dir,
                concurrency,
                output_paths,
            )
        except (GenerateError, *_BUILD_ERRORS) as exc:
            raise GenerateError(f"failed to process source: {source_name}: {exc}") from exc

        for group_key, org_schemas in source_groups:
            existing = catalog_groups.get(group_key)
            if existing is not None:
                existing.schemas.extend(org_schemas)
                continue
            auto_name = title_case(group_key)
            auto_desc = f"Auto-generated group for organize key '{group_key}'"
            log.warning(
                "no [groups.%s] defined; auto-generating group %r", group_key, auto_name
            )
            catalog_groups[group_key] = CatalogGroup(
                name=auto_name, description=auto_desc, schemas=org_schemas
            )
            groups_meta[group_key] = (auto_name, auto_desc)

        entries.extend(source_entries)

    log.info("writing output files (%d entries)", len(entries))
    catalog = build_output_catalog(
        config.catalog.title,
        entries,
        [catalog_groups[key] for key in sorted(catalog_groups)],
    )
    ctx = OutputContext(
        output_dir=output_dir,
        config_path=Path(config_path),
        catalog=catalog,
        groups_meta=[groups_meta[key] for key in sorted(groups_meta)],
        source_count=len(config.sources),
    )
    target.finalize(ctx)
    return catalog


def process_source(
    fetcher: _Fetcher,
    base_url: str,
    source_name: str,
    source_config: SourceConfig,
    schemas_dir: str | Path,
    concurrency: int,
    output_paths: MutableSet[Path],
) -> tuple[list[SchemaEntry], list[tuple[str, list[str]]]]:
    """Download an external catalog's schemas and sort them into directories.

    Returns the catalog entries and, for each organize key that matched
    anything, the names of the schemas routed to it.
    """
    schemas_dir = Path(schemas_dir)
    log.info("fetching source catalog %s", source_config.url)
    catalog_value = fetcher.fetch(source_config.url)
    try:
        source_catalog = Catalog.from_dict(catalog_value)
    except ValueError as exc:
        raise GenerateError(
            f"failed to parse source catalog from {source_config.url}: {exc}"
        ) from exc
    log.info("source catalog parsed (%d schemas)", len(source_catalog.schemas))

    base_url = base_url.rstrip("/")
    (schemas_dir / source_name).mkdir(parents=True, exist_ok=True)
    for dir_name in source_config.organize:
        (schemas_dir / dir_name).mkdir(parents=True, exist_ok=True)

    download_items: list[DownloadItem] = []
    entry_info: list[_SourceSchemaInfo] = []
    filename_counts: dict[tuple[str, str], int] = {}
    seen_urls: set[str] = set()
    organize_schemas: dict[str, list[str]] = {}

    for schema in source_catalog.schemas:
        if schema.url in seen_urls:
            continue
        seen_urls.add(schema.url)

        target_dir = classify_schema(schema, source_config.organize, source_name)
        slug = slugify(schema.name)
        base_filename = f"{slug}.json"
        count = filename_counts.get((target_dir, base_filename), 0) + 1
        filename_counts[(target_dir, base_filename)] = count
        filename = base_filename if count == 1 else f"{slug}-{count}.json"

        dest_path = schemas_dir / target_dir / filename
        _claim_path(output_paths, dest_path, f"source={source_name}, schema={schema.name}")

        if target_dir != source_name:
            organize_schemas.setdefault(target_dir, []).append(schema.name)

        download_items.append(DownloadItem(url=schema.url, dest=dest_path))
        entry_info.append(
            _SourceSchemaInfo(
                name=schema.name,
                description=schema.description,
                url=schema.url,
                local_url=f"{base_url}/schemas/{target_dir}/{filename}",
                file_match=list(schema.file_match),
                versions=dict(schema.versions),
            )
        )

    log.info(
        "downloading %d source schemas (concurrency %d)", len(download_items), concurrency
    )
    downloaded = download_batch(fetcher, download_items, concurrency)
    log.info(
        "source download complete: %d downloaded, %d skipped",
        len(downloaded),
        len(download_items) - len(downloaded),
    )

    _resolve_source_refs(
        fetcher, download_items, entry_info, downloaded, schemas_dir, base_url, source_name
    )

    entries: list[SchemaEntry] = []
    for info in entry_info:
        if info.url in downloaded:
            url = info.local_url
        else:
            log.warning("using upstream URL for %s (download was skipped)", info.name)
            url = info.url
        entries.append(
            SchemaEntry(
                name=info.name,
                description=info.description,
                url=url,
                file_match=list(info.file_match),
                versions=dict(info.versions),
            )
        )

    groups = [
        (dir_name, organize_schemas[dir_name])
        for dir_name in source_config.organize
        if dir_name in organize_schemas
    ]
    return entries, groups


def _resolve_source_refs(
    fetcher: _Fetcher,
    download_items: list[DownloadItem],
    entry_info: list[_SourceSchemaInfo],
    downloaded: set[str],
    schemas_dir: Path,
    base_url: str,
    source_name: str,
) -> None:
    shared_dir = schemas_dir / source_name / "_shared"
    shared_base_url = f"{base_url}/schemas/{source_name}/_shared"
    already_downloaded: dict[str, str] = {}

    for item, info in zip(download_items, entry_info):
        if item.url not in downloaded:
            continue
        text = Path(item.dest).read_text(encoding="utf-8")
        log.debug("processing refs of %s", info.name)
        try:
            resolve_and_rewrite(
                fetcher, text, item.dest, shared_dir, shared_base_url, already_downloaded
            )
        except _BUILD_ERRORS as exc:
            raise GenerateError(f"failed to process refs for {info.name}: {exc}") from exc


def classify_schema(
    schema: SchemaEntry,
    organize: Mapping[str, OrganizeEntry],
    source_name: str,
) -> str:
    """Return the directory (under ``schemas/``) that *schema* belongs in.

    Raises GenerateError if it matches more than one organize entry.
    """
    matched: str | None = None
    for dir_name in sorted(organize):
        for matcher in organize[dir_name].match_patterns:
            if matcher.startswith(("http://", "https://")):
                matches = schema.url == matcher
            else:
                matches = any(organize_glob_matches(matcher, fm) for fm in schema.file_match)
            if not matches:
                continue
            if matched is None:
                matched = dir_name
            elif matched != dir_name:
                raise GenerateError(
                    f"schema '{schema.name}' matches multiple organize entries: "
                    f"'{matched}' and '{dir_name}'"
                )
    return source_name if matched is None else matched


def organize_glob_matches(pattern: str, text: str) -> bool:
    """Match *pattern* against *text* taken literally, where ``**`` matches anything.

    The literal parts between ``**`` must occur in order; a pattern that does
    not start (end) with ``**`` is anchored at the start (end) of the text.
    """
    remaining = text
    for index, part in enumerate(pattern.split("**")):
        if not part:
            continue
        if index == 0 and not pattern.startswith("**"):
            if not remaining.startswith(part):
                return False
            remaining = remaining[len(part):]
        else:
            pos = remaining.find(part)
            if pos < 0:
                return False
            remaining = remaining[pos + len(part):]
    return pattern.endswith("**") or not remaining


def title_case(s: str) -> str:
    """Upper-case the first character of *s*."""
    return s[:1].upper() + s[1:]


def slugify(name: str) -> str:
    """Lower-case ASCII alphanumerics joined by single hyphens."""
    result: list[str] = []
    prev_hyphen = True
    for char in name:
        if char.isascii() and char.isalnum():
            result.append(char.lower())
            prev_hyphen = False
        else:
            if not prev_hyphen:
                result.append("-")
            prev_hyphen = True
    return "".join(result).rstrip("-")