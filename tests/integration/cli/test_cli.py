"""Integration tests for the one2mp command line"""

import json

import pytest
from typer.testing import CliRunner

from one2mp.cli.cli import app


CONFIG = """\
accounts:
  - name: main
    app_id: wx-app
    app_secret: wx-secret
selected_account: main
"""


@pytest.fixture(name="workdir")
def workdir_fixture(tmp_path, monkeypatch):
    """Run inside tmp_path with a vault directory and key-value draft storage."""
    monkeypatch.chdir(tmp_path)
    vault = tmp_path / "vault"
    vault.mkdir()
    monkeypatch.setenv("ONE2MP_VAULT_DIR", str(vault))
    monkeypatch.setenv("ONE2MP_DB_URL", "")
    return tmp_path


@pytest.fixture(name="runner")
def runner_fixture():
    return CliRunner()


def test_render_writes_themed_html(runner, workdir, png):
    """render writes styled HTML named after the note into the output directory."""
    (workdir / "vault" / "n.md").write_text("# Hi\n\n![[pic.png]]\n---\nText\n", encoding="utf-8")
    (workdir / "vault" / "pic.png").write_bytes(png)

    result = runner.invoke(app, ["render", "n.md"])

    assert result.exit_code == 0, result.output
    html = (workdir / "dist" / "n.html").read_text(encoding="utf-8")
    assert 'class="one2mp-article"' in html
    assert "data-one2mp-theme-key" in html
    assert "<hr" in html and "<h2" not in html


def test_render_missing_note(runner, workdir):
    """A note that does not exist exits with an error."""
    result = runner.invoke(app, ["render", "nope.md"])
    assert result.exit_code == 1
    assert "Note not found" in result.output


def test_export_redbook(runner, workdir, png):
    """export-redbook reports the manifest and writes the export folder."""
    notes = workdir / "vault" / "notes"
    notes.mkdir()
    (notes / "post.md").write_text("---\ncover: c.png\n---\nHello ![](a.png)\n", encoding="utf-8")
    (notes / "c.png").write_bytes(png)
    (notes / "a.png").write_bytes(png)

    result = runner.invoke(app, ["export-redbook", "notes/post.md"])

    assert result.exit_code == 0, result.output
    assert "图1: 01-c.png" in result.output
    assert "(2/2 images)" in result.output
    folders = list((workdir / "vault" / "小红书导出").iterdir())
    assert len(folders) == 1 and folders[0].name.startswith("post-")
    assert (folders[0] / "文案.txt").read_text(encoding="utf-8") == "Hello 【图1】\n"


def test_draft_record_persists_between_runs(runner, workdir):
    """draft updates given fields and later runs read them back from the data file."""
    (workdir / "config.yaml").write_text(CONFIG, encoding="utf-8")

    first = runner.invoke(app, ["draft", "notes/a.md", "--title", "Custom", "--author", "Ann"])
    assert first.exit_code == 0, first.output
    record = json.loads(first.stdout)
    assert record["_id"] == "mainnotes/a.md"
    assert record["title"] == "Custom"

    second = runner.invoke(app, ["draft", "notes/a.md"])
    assert json.loads(second.stdout)["author"] == "Ann"
    assert (workdir / ".one2mp" / "data.json").exists()


def test_draft_without_account(runner, workdir):
    """draft needs a selected account."""
    result = runner.invoke(app, ["draft", "a.md"])
    assert result.exit_code == 1
    assert "No WeChat account selected" in result.output


def test_themes_listing(runner, workdir):
    """themes lists theme notes and fails when there are none."""
    empty = runner.invoke(app, ["themes"])
    assert empty.exit_code == 1
    assert "No themes found." in empty.output

    themes = workdir / "vault" / "themes"
    themes.mkdir()
    (themes / "dark.md").write_text("---\ntheme_name: Dark\n---\n```css\np{}\n```\n", encoding="utf-8")
    listed = runner.invoke(app, ["themes"])
    assert listed.exit_code == 0, listed.output
    assert "Dark\tthemes/dark.md" in listed.output


def test_init_database(runner, workdir, monkeypatch):
    """init creates the draft table; an empty db_url is refused."""
    refused = runner.invoke(app, ["init"])
    assert refused.exit_code == 1

    monkeypatch.setenv("ONE2MP_DB_URL", f"sqlite:///{workdir}/drafts.db")
    result = runner.invoke(app, ["init", "--reset"])
    assert result.exit_code == 0, result.output
    assert "Existing data cleared." in result.output
    assert (workdir / "drafts.db").exists()


def test_invalid_log_level(runner, workdir):
    """A log level outside the allowed set is a configuration error."""
    result = runner.invoke(app, ["--log-level", "loud", "themes"])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
