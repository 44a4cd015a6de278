"""Table definition for the embedded draft database"""

from datetime import datetime
from typing import Any

from sqlalchemy import Column
from sqlalchemy.types import JSON, DateTime, Text
from sqlmodel import Field, SQLModel


class DraftRow(SQLModel, table=True):
    """One LocalDraftItem, stored whole as JSON under its composite id."""
    __tablename__ = "local_drafts"

    id:           str = Field(sa_column=Column(Text, primary_key=True))
    account_name: str = Field(sa_column=Column(Text, nullable=False, index=True))
    note_path:    str = Field(sa_column=Column(Text, nullable=False))
    record:       dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    updated_at:   datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime, nullable=False))
