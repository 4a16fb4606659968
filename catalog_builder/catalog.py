"""Schema catalog data model and ``catalog.json`` output."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CATALOG_SCHEMA_URL = "https://json.schemastore.org/schema-catalog.json"


def _require_str(data: dict[str, Any], key: str, where: str) -> str:
    try:
        value = data[key]
    except KeyError:
        raise ValueError(f"{where}: missing field `{key}`") from None
    if not isinstance(value, str):
        raise ValueError(f"{where}: field `{key}` must be a string")
    return value


def _optional_str(data: dict[str, Any], key: str, where: str, default: str | None) -> str | None:
    value = data.get(key, default)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{where}: field `{key}` must be a string")
    return value


def _str_list(data: dict[str, Any], key: str, where: str) -> list[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{where}: field `{key}` must be a list of strings")
    return list(value)


def _expect_object(data: Any, where: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{where}: expected a JSON object")
    return data


@dataclass
class SchemaEntry:
    """A single schema listed in a catalog."""

    name: str
    description: str = ""
    url: str = ""
    file_match: list[str] = field(default_factory=list)
    versions: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation of this entry."""
        out: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "url": self.url,
        }
        if self.file_match:
            out["fileMatch"] = list(self.file_match)
        if self.versions:
            out["versions"] = dict(sorted(self.versions.items()))
        return out

    @classmethod
    def from_dict(cls, data: Any) -> SchemaEntry:
        """Build an entry from its JSON representation."""
        obj = _expect_object(data, "schema entry")
        versions = obj.get("versions", {})
        if not isinstance(versions, dict) or not all(
            isinstance(v, str) for v in versions.values()
        ):
            raise ValueError("schema entry: field `versions` must map names to URLs")
        return cls(
            name=_require_str(obj, "name", "schema entry"),
            description=_optional_str(obj, "description", "schema entry", "") or "",
            url=_require_str(obj, "url", "schema entry"),
            file_match=_str_list(obj, "fileMatch", "schema entry"),
            versions=dict(sorted(versions.items())),
        )


@dataclass
class CatalogGroup:
    """A named group of schemas, referenced by schema name."""

    name: str
    description: str = ""
    schemas: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation of this group."""
        return {
            "name": self.name,
            "description": self.description,
            "schemas": list(self.schemas),
        }

    @classmethod
    def from_dict(cls, data: Any) -> CatalogGroup:
        """Build a group from its JSON representation."""
        obj = _expect_object(data, "catalog group")
        return cls(
            name=_require_str(obj, "name", "catalog group"),
            description=_optional_str(obj, "description", "catalog group", "") or "",
            schemas=_str_list(obj, "schemas", "catalog group"),
        )


@dataclass
class Catalog:
    """A schema catalog: a versioned list of schemas and optional groups."""

    version: int = 1
    title: str | None = None
    schemas: list[SchemaEntry] = field(default_factory=list)
    groups: list[CatalogGroup] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation of this catalog."""
        out: dict[str, Any] = {"version": self.version}
        if self.title is not None:
            out["title"] = self.title
        out["schemas"] = [entry.to_dict() for entry in self.schemas]
        if self.groups:
            out["groups"] = [group.to_dict() for group in self.groups]
        return out

    @classmethod
    def from_dict(cls, data: Any) -> Catalog:
        """Build a catalog from its JSON representation."""
        obj = _expect_object(data, "catalog")
        version = obj.get("version", 1)
        if not isinstance(version, int) or isinstance(version, bool):
            raise ValueError("catalog: field `version` must be an integer")
        schemas = obj.get("schemas")
        if not isinstance(schemas, list):
            raise ValueError("catalog: field `schemas` must be a list")
        groups = obj.get("groups", [])
        if not isinstance(groups, list):
            raise ValueError("catalog: field `groups` must be a list")
        return cls(
            version=version,
            title=_optional_str(obj, "title", "catalog", None),
            schemas=[SchemaEntry.from_dict(s) for s in schemas],
            groups=[CatalogGroup.from_dict(g) for g in groups],
        )


def build_output_catalog(
    title: str | None,
    entries: list[SchemaEntry],
    groups: list[CatalogGroup],
) -> Catalog:
    """Build an output catalog from schema entries and groups."""
    return Catalog(version=1, title=title, schemas=list(entries), groups=list(groups))


def write_catalog_json(output_dir: str | Path, catalog: Catalog) -> Path:
    """Write ``catalog.json`` into *output_dir*, with ``$schema`` first.

    Returns the path of the written file.
    """
    body = catalog.to_dict()
    ordered: dict[str, Any] = {"$schema": CATALOG_SCHEMA_URL}
    for key in ("version", "title"):
        if key in body:
            ordered[key] = body.pop(key)
    ordered.update(body)

    text = json.dumps(ordered, indent=2, ensure_ascii=False)
    path = Path(output_dir) / "catalog.json"
    try:
        path.write_text(f"{text}\n", encoding="utf-8")
    except OSError as exc:
        raise OSError(f"failed to write {path}: {exc}") from exc
    return path