"""Discovery, download and rewriting of external ``$ref`` dependencies."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, MutableMapping
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from catalog_builder.download import FetchError, _Fetcher, download_one

log = logging.getLogger(__name__)

# Characters not allowed in a URI fragment (besides controls and non-ASCII).
_FRAGMENT_RESERVED = frozenset(' <>[]{}|\\^"`')


def _objects(value: Any) -> Iterator[dict[str, Any]]:
    """Yield every JSON object nested in *value*, outermost first."""
    if isinstance(value, dict):
        yield value
        for child in value.values():
            yield from _objects(child)
    elif isinstance(value, list):
        for child in value:
            yield from _objects(child)


def _ref_string(obj: dict[str, Any]) -> str | None:
    ref = obj.get("$ref")
    return ref if isinstance(ref, str) else None


def find_external_refs(value: Any) -> set[str]:
    """Return the absolute HTTP(S) ``$ref`` URLs in *value*, fragments stripped."""
    refs: set[str] = set()
    for obj in _objects(value):
        ref = _ref_string(obj)
        if ref is None or not ref.startswith(("http://", "https://")):
            continue
        base = ref.split("#", 1)[0]
        if base:
            refs.add(base)
    return refs


def filename_from_url(url: str) -> str:
    """Return the last path segment of *url*, or ``<host>.json`` if there is none.

    Raises ValueError if the URL cannot be parsed or has no host to fall back on.
    """
    try:
        parts = urlsplit(url)
    except ValueError as exc:
        raise ValueError(f"invalid URL: {url}") from exc
    if not parts.scheme:
        raise ValueError(f"invalid URL: {url}")
    if parts.netloc:
        last = parts.path.split("/")[-1]
        if last:
            return last
    host = parts.hostname
    if not host:
        raise ValueError(f"URL has no host: {url}")
    return f"{host}.json"


def unique_filename_in(directory: str | Path, base: str) -> str:
    """Return *base*, or ``stem-N.ext`` with the lowest N >= 2 not yet in *directory*."""
    directory = Path(directory)
    if not (directory / base).exists():
        return base
    stem, dot, ext = base.rpartition(".")
    if not dot:
        stem, ext = base, ""
    else:
        ext = f".{ext}"
    n = 2
    while (directory / f"{stem}-{n}{ext}").exists():
        n += 1
    return f"{stem}-{n}{ext}"


def rewrite_refs(value: Any, url_map: dict[str, str]) -> None:
    """Replace ``$ref`` base URLs in place using *url_map*, keeping fragments."""
    for obj in _objects(value):
        ref = _ref_string(obj)
        if ref is None:
            continue
        base, sep, fragment = ref.partition("#")
        new_base = url_map.get(base)
        if new_base is not None:
            obj["$ref"] = f"{new_base}#{fragment}" if sep else new_base


def _encode_fragment_char(char: str) -> str:
    code = ord(char)
    if code < 0x20 or code == 0x7F or code > 0x7F or char in _FRAGMENT_RESERVED:
        return "".join(f"%{byte:02X}" for byte in char.encode("utf-8"))
    return char


def encode_ref_fragment(ref_str: str) -> str | None:
    """Percent-encode characters invalid in the fragment of *ref_str*.

    Returns None when there is no fragment or nothing needs encoding.
    """
    base, sep, fragment = ref_str.partition("#")
    if not sep:
        return None
    encoded = "/".join(
        "".join(_encode_fragment_char(c) for c in segment) for segment in fragment.split("/")
    )
    if encoded == fragment:
        return None
    return f"{base}#{encoded}"


def fix_ref_uris(value: Any) -> None:
    """Percent-encode invalid characters in every ``$ref`` fragment, in place."""
    for obj in _objects(value):
        ref = _ref_string(obj)
        if ref is None:
            continue
        fixed = encode_ref_fragment(ref)
        if fixed is not None:
            obj["$ref"] = fixed


def _write_json(path: Path, value: Any) -> None:
    text = json.dumps(value, indent=2, ensure_ascii=False)
    path.write_text(f"{text}\n", encoding="utf-8")


def resolve_and_rewrite(
    fetcher: _Fetcher,
    schema_text: str,
    schema_dest: str | Path,
    shared_dir: str | Path,
    base_url_for_shared: str,
    already_downloaded: MutableMapping[str, str],
) -> None:
    """Download a schema's external ``$ref`` dependencies and rewrite them.

    Dependencies are stored in *shared_dir* under names unique within it and
    referenced as ``<base_url_for_shared>/<filename>``; transitive dependencies
    are handled the same way. *already_downloaded* maps URLs to the filenames
    already stored and is updated. Dependencies that fail to download keep
    their original URL. The rewritten schema is written to *schema_dest*.
    """
    schema_dest = Path(schema_dest)
    shared_dir = Path(shared_dir)
    try:
        value = json.loads(schema_text)
    except ValueError as exc:
        raise ValueError(f"failed to parse schema JSON: {exc}") from exc

    external_refs = find_external_refs(value)
    if not external_refs:
        fix_ref_uris(value)
        _write_json(schema_dest, value)
        return

    log.debug("found %d external $ref dependencies", len(external_refs))
    prefix = base_url_for_shared.rstrip("/")
    url_map: dict[str, str] = {}
    to_process: list[tuple[str, str]] = []

    for ref_url in sorted(external_refs):
        existing = already_downloaded.get(ref_url)
        if existing is not None:
            url_map[ref_url] = f"{prefix}/{existing}"
            continue

        base_filename = filename_from_url(ref_url)
        shared_dir.mkdir(parents=True, exist_ok=True)
        filename = unique_filename_in(shared_dir, base_filename)
        try:
            dep_text = download_one(fetcher, ref_url, shared_dir / filename)
        except (FetchError, OSError, ValueError, TypeError) as exc:
            log.warning(
                "failed to download $ref dependency %s, keeping original URL: %s", ref_url, exc
            )
            continue
        already_downloaded[ref_url] = filename
        url_map[ref_url] = f"{prefix}/{filename}"
        to_process.append((dep_text, filename))

    rewrite_refs(value, url_map)
    fix_ref_uris(value)
    _write_json(schema_dest, value)

    for dep_text, filename in to_process:
        resolve_and_rewrite(
            fetcher,
            dep_text,
            shared_dir / filename,
            shared_dir,
            base_url_for_shared,
            already_downloaded,
        )