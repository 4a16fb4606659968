import json
from pathlib import Path

import pytest

from catalog_builder.cli import build_parser, main


def test_parses_generate_defaults():
    args = build_parser().parse_args(["generate"])
    assert args.command == "generate"
    assert args.config == Path("lintel-catalog.toml")
    assert args.target is None
    assert args.concurrency == 20
    assert args.no_cache is False


def test_parses_generate_with_options():
    args = build_parser().parse_args(
        [
            "generate",
            "--config",
            "my-catalog.toml",
            "--target",
            "pages",
            "--concurrency",
            "50",
            "--no-cache",
        ]
    )
    assert args.command == "generate"
    assert args.config == Path("my-catalog.toml")
    assert args.target == "pages"
    assert args.concurrency == 50
    assert args.no_cache is True


def test_parses_version():
    args = build_parser().parse_args(["version"])
    assert args.command == "version"


def test_rejects_non_numeric_concurrency():
    with pytest.raises(SystemExit) as info:
        build_parser().parse_args(["generate", "--concurrency", "many"])
    assert info.value.code == 2


def test_main_version_prints_name_and_version(capsys):
    assert main(["version"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("lintel-catalog-builder ")
    assert out.strip() == "lintel-catalog-builder 0.0.3"


def test_main_without_command_prints_usage_and_fails(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().err


def test_main_missing_config_reports_error(tmp_path, capsys):
    missing = tmp_path / "absent.toml"
    assert main(["generate", "--config", str(missing)]) == 1
    err = capsys.readouterr().err
    assert err.startswith("Error: ")
    assert "config file not found" in err


def test_main_config_without_targets_fails(tmp_path, capsys):
    config = tmp_path / "lintel-catalog.toml"
    config.write_text("[catalog]\n", encoding="utf-8")
    assert main(["generate", "--config", str(config)]) == 1
    assert "no targets defined" in capsys.readouterr().err


def test_main_unknown_target_fails(tmp_path, capsys):
    config = tmp_path / "lintel-catalog.toml"
    config.write_text(
        '[catalog]\n\n[target.local]\ntype = "dir"\ndir = "out"\n'
        'base_url = "https://example.com/"\n',
        encoding="utf-8",
    )
    assert main(["generate", "--config", str(config), "--target", "pages"]) == 1
    err = capsys.readouterr().err
    assert "target 'pages' not found" in err
    assert "local" in err


def test_main_generates_local_catalog(tmp_path):
    config = tmp_path / "lintel-catalog.toml"
    config.write_text(
        '[catalog]\ntitle = "Mine"\n\n'
        '[target.local]\ntype = "dir"\ndir = "out"\nbase_url = "https://example.com/"\n\n'
        '[groups.tools]\nname = "Tools"\ndescription = "Tool configs"\n\n'
        "[groups.tools.schemas]\n"
        'thing = { name = "Thing", description = "A thing", file-match = ["thing.json"] }\n',
        encoding="utf-8",
    )
    schema_dir = tmp_path / "schemas" / "tools"
    schema_dir.mkdir(parents=True)
    (schema_dir / "thing.json").write_text(
        json.dumps({"$ref": "#/$defs/Some Thing"}), encoding="utf-8"
    )

    assert main(["generate", "--config", str(config)]) == 0

    out = tmp_path / "out"
    catalog = json.loads((out / "catalog.json").read_text(encoding="utf-8"))
    assert catalog["title"] == "Mine"
    assert catalog["schemas"][0]["name"] == "Thing"
    assert catalog["schemas"][0]["url"] == "https://example.com/schemas/tools/thing.json"
    written = json.loads((out / "schemas" / "tools" / "thing.json").read_text(encoding="utf-8"))
    assert written["$ref"] == "#/$defs/Some%20Thing"