"""Local draft record: per-account publishing metadata for one note"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def draft_id(account_name: str, note_path: str) -> str:
    """Composite key: account name immediately followed by the note path."""
    return account_name + note_path


class LocalDraftItem(BaseModel):
    """Rendering and draft-box parameters remembered per (account, note)."""
    model_config = ConfigDict(populate_by_name=True)

    account_name:          Optional[str] = Field(default=None, alias="accountName")
    note_path:             Optional[str] = Field(default=None, alias="notePath")
    id:                    Optional[str] = Field(default=None, alias="_id")
    title:                 str = ""
    theme:                 Optional[str] = None
    cover_image_url:       Optional[str] = None
    author:                Optional[str] = None
    digest:                Optional[str] = None
    content:               Optional[str] = None
    content_source_url:    Optional[str] = None
    thumb_media_id:        Optional[str] = None
    show_cover_pic:        Optional[int] = None
    need_open_comment:     Optional[int] = None
    only_fans_can_comment: Optional[int] = None
    pic_crop_235_1:        Optional[str] = None
    pic_crop_1_1:          Optional[str] = None
    cover_crop_scale:      Optional[float] = None
    cover_crop_offset_x:   Optional[float] = None
    cover_crop_offset_y:   Optional[float] = None
    cover_crop_ref:        Optional[str] = None
    last_draft_url:        Optional[str] = None
    last_draft_id:         Optional[str] = None

    def to_record(self) -> dict[str, Any]:
        """Stored form: wire aliases, unset fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)
