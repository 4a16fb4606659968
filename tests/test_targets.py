import json
import subprocess
from pathlib import Path
from unittest import mock

from catalog_builder.catalog import CatalogGroup, SchemaEntry, build_output_catalog
from catalog_builder.config import (
    DirTargetConfig,
    GitHubPagesConfig,
    GitHubPagesTargetConfig,
)
from catalog_builder.targets import (
    DirTarget,
    GitHubPagesTarget,
    OutputContext,
    detect_git_remote,
    generate_index_html,
    html_escape,
    target_from_config,
    write_common_files,
    write_index_html,
    write_readme,
)


def _ctx(output_dir, catalog, config_path=Path("lintel-catalog.toml"), groups_meta=(), sources=0):
    return OutputContext(
        output_dir=output_dir,
        config_path=config_path,
        catalog=catalog,
        groups_meta=list(groups_meta),
        source_count=sources,
    )


def test_write_readme_generates_file(tmp_path):
    catalog = build_output_catalog(
        None,
        [SchemaEntry(name="A"), SchemaEntry(name="B")],
        [CatalogGroup(name="G")],
    )
    ctx = _ctx(tmp_path, catalog, config_path=tmp_path / "lintel-catalog.toml", sources=1)
    path = write_readme(ctx)
    content = (tmp_path / "README.md").read_text(encoding="utf-8")
    assert path == tmp_path / "README.md"
    assert "lintel-catalog-builder" in content
    assert "**2** schemas" in content
    assert "**1** groups" in content
    assert "**1** external sources" in content
    assert "generate --config lintel-catalog.toml" in content


def test_write_readme_includes_source_repository(tmp_path):
    catalog = build_output_catalog(None, [], [])
    done = subprocess.CompletedProcess(args=[], returncode=0, stdout=b"https://example.com/repo.git\n")
    with mock.patch("catalog_builder.targets.subprocess.run", return_value=done):
        write_readme(_ctx(tmp_path, catalog))
    content = (tmp_path / "README.md").read_text(encoding="utf-8")
    assert "Source repository: <https://example.com/repo.git>" in content


def test_detect_git_remote_failure_returns_none(tmp_path):
    failed = subprocess.CompletedProcess(args=[], returncode=2, stdout=b"")
    with mock.patch("catalog_builder.targets.subprocess.run", return_value=failed):
        assert detect_git_remote(tmp_path) is None


def test_detect_git_remote_missing_git_returns_none(tmp_path):
    with mock.patch("catalog_builder.targets.subprocess.run", side_effect=FileNotFoundError):
        assert detect_git_remote(tmp_path) is None


def test_detect_git_remote_empty_output_returns_none(tmp_path):
    done = subprocess.CompletedProcess(args=[], returncode=0, stdout=b"  \n")
    with mock.patch("catalog_builder.targets.subprocess.run", return_value=done):
        assert detect_git_remote(tmp_path) is None


def test_gh_pages_finalize_creates_nojekyll_and_index(tmp_path):
    catalog = build_output_catalog(None, [], [])
    target = GitHubPagesTarget(base_url="https://example.com/", cname="example.com")
    target.finalize(_ctx(tmp_path, catalog))
    assert (tmp_path / ".nojekyll").exists()
    assert (tmp_path / "CNAME").read_text(encoding="utf-8").strip() == "example.com"
    assert (tmp_path / "index.html").exists()
    assert (tmp_path / "README.md").exists()
    data = json.loads((tmp_path / "catalog.json").read_text(encoding="utf-8"))
    assert data["version"] == 1


def test_gh_pages_finalize_without_cname(tmp_path):
    catalog = build_output_catalog(None, [], [])
    GitHubPagesTarget(base_url="https://example.com/").finalize(_ctx(tmp_path, catalog))
    assert (tmp_path / ".nojekyll").read_text(encoding="utf-8") == ""
    assert not (tmp_path / "CNAME").exists()


def test_dir_target_without_github_writes_no_pages_files(tmp_path):
    catalog = build_output_catalog(None, [], [])
    DirTarget(dir="out", base_url="https://example.com/").finalize(_ctx(tmp_path, catalog))
    assert (tmp_path / "catalog.json").exists()
    assert not (tmp_path / ".nojekyll").exists()
    assert not (tmp_path / "CNAME").exists()


def test_dir_target_with_github_writes_pages_files(tmp_path):
    catalog = build_output_catalog(None, [], [])
    target = DirTarget(
        dir="out",
        base_url="https://example.com/",
        github=GitHubPagesConfig(cname="docs.example.com"),
    )
    target.finalize(_ctx(tmp_path, catalog))
    assert (tmp_path / ".nojekyll").exists()
    assert (tmp_path / "CNAME").read_text(encoding="utf-8") == "docs.example.com\n"


def test_dir_target_output_dir_relative_and_absolute(tmp_path):
    relative = DirTarget(dir="../generated", base_url="https://example.com/")
    assert relative.output_dir("local", tmp_path) == tmp_path / "../generated"
    absolute = DirTarget(dir=str(tmp_path / "abs"), base_url="https://example.com/")
    assert absolute.output_dir("local", Path("/elsewhere")) == tmp_path / "abs"


def test_gh_pages_output_dir_default_and_explicit(tmp_path):
    default = GitHubPagesTarget(base_url="https://example.com/")
    assert default.output_dir("pages", tmp_path) == tmp_path / ".lintel-pages-output" / "pages"
    explicit = GitHubPagesTarget(base_url="https://example.com/", dir="site")
    assert explicit.output_dir("pages", tmp_path) == tmp_path / "site"


def test_target_from_config_dir():
    github = GitHubPagesConfig(cname="example.com")
    target = target_from_config(
        DirTargetConfig(dir="out", base_url="https://example.com/", github=github)
    )
    assert target == DirTarget(dir="out", base_url="https://example.com/", github=github)
    assert target.base_url == "https://example.com/"


def test_target_from_config_github_pages():
    target = target_from_config(
        GitHubPagesTargetConfig(base_url="https://example.com/", cname="example.com")
    )
    assert target == GitHubPagesTarget(base_url="https://example.com/", cname="example.com")


def test_html_escape_special_chars():
    assert html_escape('<b>"hi"&</b>') == "&lt;b&gt;&quot;hi&quot;&amp;&lt;/b&gt;"


def test_generate_index_html_contains_schema():
    catalog = build_output_catalog(
        None,
        [
            SchemaEntry(
                name="Test Schema",
                description="A test",
                url="schemas/test.json",
                file_match=["*.test"],
            )
        ],
        [],
    )
    html = generate_index_html(catalog, [])
    assert "Test Schema" in html
    assert "A test" in html
    assert "schemas/test.json" in html
    assert "<code>*.test</code>" in html
    assert "Other Schemas" in html


def test_generate_index_html_groups_and_unassigned():
    catalog = build_output_catalog(
        None,
        [SchemaEntry(name="In", url="a.json"), SchemaEntry(name="Out", url="b.json")],
        [CatalogGroup(name="Group One", description="first", schemas=["In"])],
    )
    html = generate_index_html(catalog, [("Group One", "first")])
    assert "<summary>Group One<span class=\"desc\">— first</span>" in html
    assert '<span class="count">1 schemas</span>' in html
    assert '<div class="stat"><strong>2</strong><span>schemas</span></div>' in html
    assert '<div class="stat"><strong>1</strong><span>groups</span></div>' in html
    assert html.index("Group One") < html.index("Other Schemas")
    assert html.count('<div class="schema-card">') == 2


def test_generate_index_html_skips_empty_groups():
    catalog = build_output_catalog(None, [], [CatalogGroup(name="Empty", schemas=[])])
    html = generate_index_html(catalog, [("Empty", "nothing")])
    assert "nothing" not in html
    assert "Other Schemas" not in html
    assert html.endswith("</html>\n")


def test_write_index_html_writes_file(tmp_path):
    catalog = build_output_catalog(None, [SchemaEntry(name="X&Y", url="x.json")], [])
    path = write_index_html(_ctx(tmp_path, catalog))
    text = path.read_text(encoding="utf-8")
    assert path == tmp_path / "index.html"
    assert "X&amp;Y" in text


def test_write_common_files_writes_all(tmp_path):
    catalog = build_output_catalog("Title", [SchemaEntry(name="S", url="s.json")], [])
    write_common_files(_ctx(tmp_path, catalog))
    assert sorted(p.name for p in tmp_path.iterdir()) == ["README.md", "catalog.json", "index.html"]
    data = json.loads((tmp_path / "catalog.json").read_text(encoding="utf-8"))
    assert data["title"] == "Title"
    assert data["schemas"][0]["name"] == "S"