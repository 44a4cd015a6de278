"""Shared fixtures for crud unit tests"""

import pytest
from sqlalchemy import create_engine
from sqlmodel import SQLModel

from one2mp.crud.models import LocalDraftItem
from one2mp.crud.sql_models import DraftRow  # noqa: F401


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine with all tables created."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="draft")
def draft_fixture():
    """A draft for account main and a nested note."""
    return LocalDraftItem(account_name="main", note_path="notes/post.md", title="Post", author="Ann")
