import json

import pytest

from catalog_builder import download
from catalog_builder.download import (
    DownloadItem,
    FetchError,
    SchemaFetcher,
    download_batch,
    download_one,
)


def _write_json(path, value):
    path.write_text(json.dumps(value), encoding="utf-8")
    return path.as_uri()


def test_fetch_parses_json_from_file_url(tmp_path):
    url = _write_json(tmp_path / "s.json", {"type": "object"})
    assert SchemaFetcher().fetch(url) == {"type": "object"}


def test_fetch_missing_file_raises(tmp_path):
    with pytest.raises(FetchError):
        SchemaFetcher().fetch((tmp_path / "missing.json").as_uri())


def test_fetch_invalid_json_raises(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(FetchError):
        SchemaFetcher().fetch(path.as_uri())


def test_fetch_uses_cache(tmp_path):
    source = tmp_path / "s.json"
    url = _write_json(source, {"a": 1})
    cache_dir = tmp_path / "cache"
    assert SchemaFetcher(cache_dir=cache_dir).fetch(url) == {"a": 1}
    source.unlink()
    assert SchemaFetcher(cache_dir=cache_dir).fetch(url) == {"a": 1}
    with pytest.raises(FetchError):
        SchemaFetcher(cache_dir=cache_dir, force_fetch=True).fetch(url)


def test_download_one_writes_pretty_json(tmp_path):
    value = {"title": "X", "properties": {"a": {"type": "string"}}}
    url = _write_json(tmp_path / "src.json", value)
    dest = tmp_path / "out" / "nested" / "x.json"
    text = download_one(SchemaFetcher(), url, dest)
    assert dest.read_text(encoding="utf-8") == text
    assert json.loads(text) == value
    assert text == json.dumps(value, indent=2)


def test_download_one_rejects_large_schema(tmp_path, monkeypatch):
    url = _write_json(tmp_path / "src.json", {"description": "x" * 100})
    monkeypatch.setattr(download, "MAX_SCHEMA_SIZE", 10)
    dest = tmp_path / "big.json"
    with pytest.raises(FetchError, match="too large"):
        download_one(SchemaFetcher(), url, dest)
    assert not dest.exists()


def test_download_batch_skips_failures(tmp_path):
    good_a = _write_json(tmp_path / "a.json", {"id": "a"})
    good_b = _write_json(tmp_path / "b.json", {"id": "b"})
    bad = (tmp_path / "missing.json").as_uri()
    out = tmp_path / "out"
    items = [
        DownloadItem(good_a, out / "a.json"),
        DownloadItem(bad, out / "m.json"),
        DownloadItem(good_b, out / "b.json"),
    ]
    result = download_batch(SchemaFetcher(), items, 2)
    assert result == {good_a, good_b}
    assert json.loads((out / "a.json").read_text(encoding="utf-8")) == {"id": "a"}
    assert not (out / "m.json").exists()


def test_download_batch_empty():
    assert download_batch(SchemaFetcher(), [], 4) == set()