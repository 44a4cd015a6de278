"""CLI command implementations"""

import asyncio
import json
import logging
from pathlib import Path, PurePosixPath
from typing import Annotated, Optional

import typer

from one2mp.config import Settings, load_config
from one2mp.core.host import FileVault
from one2mp.core.messages import Notifier
from one2mp.core.render.pipeline import WechatRender
from one2mp.core.theme.theme_manager import ThemeManager
from one2mp.crud.db import init_db, make_engine, open_draft_store
from one2mp.crud.drafts import DraftManager
from one2mp.logging_config import setup_logging
from one2mp.platforms.halo.client import HaloClient
from one2mp.platforms.halo.publisher import HaloPublisher
from one2mp.platforms.redbook.export import RedBookExporter
from one2mp.platforms.wechat.publisher import WechatPublisher


logger = logging.getLogger(__name__)


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        return load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))


def _vault(settings: Settings) -> FileVault:
    return FileVault(settings.vault_dir, settings.attachment_folder, settings.native_snapshot_suffix)


def _notifier() -> Notifier:
    return Notifier(sink=lambda msg: typer.echo(f"Notice: {msg}", err=True))


def main_callback(
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR")] = None,
    ):
    """Convert Markdown notes for WeChat, RedBook and Halo."""
    settings = _settings(overrides={"log_level": log_level and log_level.upper()})
    setup_logging(settings.log_level)


def render_cmd(
    note: Annotated[str, typer.Argument(help="Vault-relative note path")],
    out: Annotated[Optional[str], typer.Option("--out", help="Output HTML file")] = None,
    theme: Annotated[Optional[str], typer.Option("--theme", help="Theme note path")] = None,
    vault: Annotated[Optional[str], typer.Option("--vault", help="Note vault directory")] = None,
    ):
    """Render a note to themed article HTML (preview mode)."""
    settings = _settings(overrides={"vault_dir": vault, "custom_theme": theme})
    host = _vault(settings)
    if not host.exists(note):
        _fail(f"Note not found: {note}")
    try:
        html = asyncio.run(WechatRender(settings, host).render_note(note))
        styled = ThemeManager(settings, host, _notifier()).style_html(html)
    except Exception as e:
        logger.exception("render failed for %s", note)
        _fail("Render failed", e)
    target = Path(out) if out else Path(settings.output_dir) / f"{PurePosixPath(note).stem}.html"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(styled, encoding="utf-8")
    typer.echo(f"  {note} -> {target}")


def publish_wechat_cmd(
    note: Annotated[str, typer.Argument(help="Vault-relative note path")],
    account: Annotated[Optional[str], typer.Option("--account", help="WeChat account name")] = None,
    vault: Annotated[Optional[str], typer.Option("--vault", help="Note vault directory")] = None,
    ):
    """Send a note to the WeChat draft box."""
    settings = _settings(overrides={"vault_dir": vault})
    host = _vault(settings)
    if not host.exists(note):
        _fail(f"Note not found: {note}")
    try:
        with open_draft_store(settings) as store:
            publisher = WechatPublisher(settings, host, store, themes=ThemeManager(settings, host, _notifier()))
            result = asyncio.run(publisher.send_to_draft_box(note, account))
    except Exception as e:
        logger.exception("wechat publish failed for %s", note)
        _fail("Publish failed", e)
    for kind, count in result.uploads.items():
        typer.echo(f"  {kind}: {count} uploaded")
    typer.echo(f"Draft created: {result.media_id}")
    if result.url:
        typer.echo(f"  {result.url}")


def export_redbook_cmd(
    note: Annotated[str, typer.Argument(help="Vault-relative note path")],
    vault: Annotated[Optional[str], typer.Option("--vault", help="Note vault directory")] = None,
    ):
    """Write a RedBook caption, numbered images and upload order."""
    settings = _settings(overrides={"vault_dir": vault})
    host = _vault(settings)
    if not host.exists(note):
        _fail(f"Note not found: {note}")
    try:
        result = RedBookExporter(settings, host).export(note)
    except Exception as e:
        logger.exception("redbook export failed for %s", note)
        _fail("Export failed", e)
    for line in result.manifest:
        typer.echo(f"  {line}")
    typer.echo(f"Exported to {result.folder} ({result.success_count}/{result.image_count} images)")


def publish_halo_cmd(
    note: Annotated[str, typer.Argument(help="Vault-relative note path")],
    site: Annotated[Optional[str], typer.Option("--site", help="Halo site name")] = None,
    vault: Annotated[Optional[str], typer.Option("--vault", help="Note vault directory")] = None,
    ):
    """Publish a note to Halo and record the post in its frontmatter."""
    settings = _settings(overrides={"vault_dir": vault})
    host = _vault(settings)
    if not host.exists(note):
        _fail(f"Note not found: {note}")
    try:
        result = asyncio.run(HaloPublisher(settings, host, _notifier()).publish(note, site))
    except Exception as e:
        logger.exception("halo publish failed for %s", note)
        _fail("Publish failed", e)
    state = "published" if result.publish else "saved as draft"
    typer.echo(f"Post {result.name} {state} on {result.site}")
    if result.permalink:
        typer.echo(f"  {result.permalink}")


def halo_check_cmd(
    site: Annotated[Optional[str], typer.Option("--site", help="Halo site name")] = None,
    ):
    """Check that a Halo site is reachable with its token."""
    settings = _settings()
    target = settings.halo_site(site)
    if target is None:
        _fail("No Halo site configured")
    result = HaloClient(target).test_connection()
    if not result.ok:
        _fail(f"{target.name}: {result.code}" + (f" (HTTP {result.status})" if result.status else ""))
    typer.echo(f"{target.name}: ok")


def draft_cmd(
    note: Annotated[str, typer.Argument(help="Vault-relative note path")],
    account: Annotated[Optional[str], typer.Option("--account", help="WeChat account name")] = None,
    title: Annotated[Optional[str], typer.Option("--title", help="Article title")] = None,
    author: Annotated[Optional[str], typer.Option("--author", help="Article author")] = None,
    digest: Annotated[Optional[str], typer.Option("--digest", help="Article digest")] = None,
    cover: Annotated[Optional[str], typer.Option("--cover", help="Cover image path or URL")] = None,
    theme: Annotated[Optional[str], typer.Option("--theme", help="Theme note path")] = None,
    ):
    """Show the local draft record for a note, updating any given fields."""
    settings = _settings()
    selected = settings.account(account)
    if selected is None:
        _fail("No WeChat account selected; set selected_account or pass --account")
    fields = {"title": title, "author": author, "digest": digest, "cover_image_url": cover, "theme": theme}
    with open_draft_store(settings) as store:
        drafts = DraftManager(store)
        draft = drafts.draft_for_note(selected.name, note)
        if any(v is not None for v in fields.values()):
            draft = drafts.update(draft, **fields)
    typer.echo(json.dumps(draft.to_record(), ensure_ascii=False, indent=2))


def themes_cmd():
    """List theme notes discovered under the themes folder."""
    settings = _settings()
    themes = ThemeManager(settings, _vault(settings)).load_themes()
    if not themes:
        typer.echo("No themes found.")
        raise typer.Exit(1)
    for t in themes:
        typer.echo(f"{t.name}\t{t.path}")


def init_cmd(
    reset: Annotated[bool, typer.Option("--reset", help="Drop and recreate all tables")] = False,
    ):
    """Initialize the draft database. Use --reset to clear existing data."""
    settings = _settings()
    if not settings.db_url:
        _fail("db_url is empty; drafts use the key-value data file")
    engine = make_engine(settings.db_url)
    init_db(engine, reset=reset)
    if reset:
        typer.echo("Existing data cleared.")
    typer.echo(f"Database initialized at: {settings.db_url}")
