"""Engine setup and draft-store selection"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from one2mp.config import Settings
from one2mp.core.host import JsonDataStore
from one2mp.crud.memory_repo import MemoryDraftStore
from one2mp.crud.repo import DraftStore
from one2mp.crud.sql_models import DraftRow  # noqa: F401  registers the table
from one2mp.crud.sql_repo import SQLDraftStore


logger = logging.getLogger(__name__)


def make_engine(db_url: str):
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    return create_engine(db_url, echo=False, connect_args=connect_args)


def init_db(engine, reset: bool = False) -> None:
    if reset:
        SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)


def probe_engine(db_url: str):
    """Engine with the schema in place, or None when the database cannot be used."""
    if not db_url:
        return None
    try:
        engine = make_engine(db_url)
        init_db(engine)
    except SQLAlchemyError as e:
        logger.warning("draft database %s unavailable, using key-value storage: %s", db_url, e)
        return None
    return engine


@contextmanager
def open_draft_store(settings: Settings, engine=None) -> Iterator[DraftStore]:
    """Yield the SQL-backed store when the database works, else the key-value one."""
    engine = engine if engine is not None else probe_engine(settings.db_url)
    if engine is None:
        store: DraftStore = MemoryDraftStore(JsonDataStore(settings.data_file))
    else:
        store = SQLDraftStore(Session(engine))
    try:
        yield store
    finally:
        store.close()
