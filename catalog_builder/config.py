"""Loading and validation of ``lintel-catalog.toml`` configuration."""

from __future__ import annotations

import tomllib
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, TypeVar

T = TypeVar("T")


class ConfigError(ValueError):
    """Raised when a configuration is not valid TOML or does not fit the schema."""


@dataclass
class CatalogMeta:
    """Metadata about the catalog being built."""

    title: str | None = None


@dataclass
class GitHubPagesConfig:
    """GitHub Pages hosting options (``.nojekyll``, ``CNAME``)."""

    cname: str | None = None


@dataclass
class DirTargetConfig:
    """Target that writes output to a local directory."""

    dir: str
    base_url: str
    github: GitHubPagesConfig | None = None


@dataclass
class GitHubPagesTargetConfig:
    """Target that produces output for GitHub Pages deployment."""

    base_url: str
    cname: str | None = None
    dir: str | None = None


TargetConfig = DirTargetConfig | GitHubPagesTargetConfig


@dataclass
class SchemaDefinition:
    """A single schema within a group; without a URL it is read locally."""

    name: str
    description: str
    url: str | None = None
    file_match: list[str] = field(default_factory=list)


@dataclass
class GroupConfig:
    """A named group of schema definitions."""

    name: str
    description: str
    schemas: dict[str, SchemaDefinition] = field(default_factory=dict)


@dataclass
class OrganizeEntry:
    """Routes schemas from a source into a group directory by match patterns."""

    match_patterns: list[str]


@dataclass
class SourceConfig:
    """An external catalog source."""

    url: str
    organize: dict[str, OrganizeEntry] = field(default_factory=dict)


@dataclass
class CatalogConfig:
    """Top-level configuration."""

    catalog: CatalogMeta
    target: dict[str, TargetConfig] = field(default_factory=dict)
    groups: dict[str, GroupConfig] = field(default_factory=dict)
    sources: dict[str, SourceConfig] = field(default_factory=dict)


def _table(
    value: Any,
    where: str,
    required: Iterable[str] = (),
    optional: Iterable[str] = (),
) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"{where}: expected a table")
    required = tuple(required)
    allowed = set(required) | set(optional)
    for key in value:
        if key not in allowed:
            raise ConfigError(f"{where}: unknown field `{key}`")
    for key in required:
        if key not in value:
            raise ConfigError(f"{where}: missing field `{key}`")
    return value


def _string(value: Any, where: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{where}: expected a string")
    return value


def _optional_string(table: dict[str, Any], key: str, where: str) -> str | None:
    if key not in table:
        return None
    return _string(table[key], f"{where}.{key}")


def _string_list(value: Any, where: str) -> list[str]:
    if not isinstance(value, list):
        raise ConfigError(f"{where}: expected an array of strings")
    return [_string(item, where) for item in value]


def _named_tables(
    table: dict[str, Any],
    key: str,
    where: str,
    parse: Callable[[Any, str], T],
) -> dict[str, T]:
    raw = table.get(key, {})
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}.{key}: expected a table")
    return {name: parse(raw[name], f"{where}.{key}.{name}") for name in sorted(raw)}


def _parse_meta(value: Any, where: str) -> CatalogMeta:
    table = _table(value, where, optional=("title",))
    return CatalogMeta(title=_optional_string(table, "title", where))


def _parse_github(value: Any, where: str) -> GitHubPagesConfig:
    table = _table(value, where, optional=("cname",))
    return GitHubPagesConfig(cname=_optional_string(table, "cname", where))


def _parse_target(value: Any, where: str) -> TargetConfig:
    if not isinstance(value, dict):
        raise ConfigError(f"{where}: expected a table")
    kind = value.get("type")
    if kind is None:
        raise ConfigError(f"{where}: missing field `type`")
    if kind == "dir":
        table = _table(value, where, required=("type", "dir", "base_url"), optional=("github",))
        github = table.get("github")
        return DirTargetConfig(
            dir=_string(table["dir"], f"{where}.dir"),
            base_url=_string(table["base_url"], f"{where}.base_url"),
            github=None if github is None else _parse_github(github, f"{where}.github"),
        )
    if kind == "github-pages":
        table = _table(value, where, required=("type", "base_url"), optional=("cname", "dir"))
        return GitHubPagesTargetConfig(
            base_url=_string(table["base_url"], f"{where}.base_url"),
            cname=_optional_string(table, "cname", where),
            dir=_optional_string(table, "dir", where),
        )
    raise ConfigError(
        f"{where}: unknown target type {kind!r}, expected one of `dir`, `github-pages`"
    )


def _parse_schema_definition(value: Any, where: str) -> SchemaDefinition:
    table = _table(
        value, where, required=("name", "description"), optional=("url", "file-match")
    )
    return SchemaDefinition(
        name=_string(table["name"], f"{where}.name"),
        description=_string(table["description"], f"{where}.description"),
        url=_optional_string(table, "url", where),
        file_match=_string_list(table.get("file-match", []), f"{where}.file-match"),
    )


def _parse_group(value: Any, where: str) -> GroupConfig:
    table = _table(value, where, required=("name", "description"), optional=("schemas",))
    return GroupConfig(
        name=_string(table["name"], f"{where}.name"),
        description=_string(table["description"], f"{where}.description"),
        schemas=_named_tables(table, "schemas", where, _parse_schema_definition),
    )


def _parse_organize(value: Any, where: str) -> OrganizeEntry:
    table = _table(value, where, required=("match",))
    return OrganizeEntry(match_patterns=_string_list(table["match"], f"{where}.match"))


def _parse_source(value: Any, where: str) -> SourceConfig:
    table = _table(value, where, required=("url",), optional=("organize",))
    return SourceConfig(
        url=_string(table["url"], f"{where}.url"),
        organize=_named_tables(table, "organize", where, _parse_organize),
    )


def load_config(toml_str: str) -> CatalogConfig:
    """Parse a catalog configuration from TOML text.

    Raises ConfigError if the TOML is invalid or does not match the schema.
    """
    try:
        data = tomllib.loads(toml_str)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML: {exc}") from exc

    root = "config"
    table = _table(data, root, required=("catalog",), optional=("target", "groups", "sources"))
    return CatalogConfig(
        catalog=_parse_meta(table["catalog"], "catalog"),
        target=_named_tables(table, "target", "", _parse_target_named),
        groups=_named_tables(table, "groups", "", _parse_group_named),
        sources=_named_tables(table, "sources", "", _parse_source_named),
    )


def _parse_target_named(value: Any, where: str) -> TargetConfig:
    return _parse_target(value, where.lstrip("."))


def _parse_group_named(value: Any, where: str) -> GroupConfig:
    return _parse_group(value, where.lstrip("."))


def _parse_source_named(value: Any, where: str) -> SourceConfig:
    return _parse_source(value, where.lstrip("."))