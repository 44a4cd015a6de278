"""CLI entrypoint: Typer app definition and command registration"""

import typer

from one2mp.cli.commands import (
    draft_cmd, export_redbook_cmd, halo_check_cmd, init_cmd, main_callback,
    publish_halo_cmd, publish_wechat_cmd, render_cmd, themes_cmd,
)


app = typer.Typer(name="one2mp", no_args_is_help=True, help="Markdown notes to WeChat, RedBook and Halo")

app.callback()(main_callback)
app.command(name="render")(render_cmd)
app.command(name="publish-wechat")(publish_wechat_cmd)
app.command(name="export-redbook")(export_redbook_cmd)
app.command(name="publish-halo")(publish_halo_cmd)
app.command(name="halo-check")(halo_check_cmd)
app.command(name="draft")(draft_cmd)
app.command(name="themes")(themes_cmd)
app.command(name="init")(init_cmd)
