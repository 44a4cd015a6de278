"""Application configuration: settings schema and config.yaml loader"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field


CONFIG_FILE = "config.yaml"
ENV_PREFIX = "ONE2MP_"


class WechatAccount(BaseModel):
    name:       str
    app_id:     str
    app_secret: str


class HaloSite(BaseModel):
    name:  str
    url:   str
    token: str = ""


class Settings(BaseModel):
    app_name:          str = "one2mp"
    vault_dir:         str = Field(default=".", description="Root directory of the note vault")
    attachment_folder: str = Field(default="", description="Attachment folder; './x' is relative to the note")
    db_url:            str = Field(default="sqlite:///one2mp.db", description="Draft database URL; empty disables it")
    data_file:         str = Field(default=".one2mp/data.json", description="Key-value data blob for fallback storage")

    accounts:          list[WechatAccount] = Field(default_factory=list)
    selected_account:  Optional[str] = None
    custom_theme:      Optional[str] = Field(default=None, description="Theme note whose css fences extend the base sheet")
    themes_folder:     str = Field(default="themes", description="Folder scanned for theme notes")

    halo_sites:              list[HaloSite] = Field(default_factory=list)
    selected_halo_site:      Optional[str] = None
    halo_publish_by_default: bool = False

    redbook_export_label:   str   = "小红书导出"
    callout_timeout:        float = Field(default=1.0, ge=0, description="Seconds to wait for callouts")
    diagram_timeout:        float = Field(default=5.0, ge=0, description="Seconds to wait for diagram svg")
    svg_upload_threshold:   int   = Field(default=10000, ge=0, description="Min serialized svg length to upload")
    native_snapshot_suffix: str   = Field(default=".native.html", description="Sidecar with natively rendered DOM")
    output_dir:             str   = Field(default="dist", description="Directory for rendered HTML")
    log_level:              str   = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    def account(self, name: str = None) -> WechatAccount | None:
        """Return the named account, or the selected one."""
        name = name or self.selected_account
        return next((a for a in self.accounts if a.name == name), None)

    def halo_site(self, name: str = None) -> HaloSite | None:
        """Return the named site, else the selected one, else the first configured."""
        name = name or self.selected_halo_site
        if name:
            hit = next((s for s in self.halo_sites if s.name == name), None)
            if hit:
                return hit
        return self.halo_sites[0] if self.halo_sites else None


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then ONE2MP_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid {CONFIG_FILE}: expected a mapping")

    for name in Settings.model_fields:
        if (val := os.getenv(f"{ENV_PREFIX}{name.upper()}")) is not None:
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Settings(**data)
    except ValueError as e:
        raise ValueError(f"Invalid configuration: {e}") from e
