"""Draft lookup for a note, creating the default record on first use"""

import logging
from pathlib import PurePosixPath
from typing import Optional

from one2mp.crud.models import LocalDraftItem, draft_id
from one2mp.crud.repo import DraftStore


logger = logging.getLogger(__name__)


def note_basename(note_path: str) -> str:
    return PurePosixPath(note_path).stem


class DraftManager:
    def __init__(self, store: DraftStore):
        self.store = store

    def get(self, account_name: str, note_path: str) -> Optional[LocalDraftItem]:
        return self.store.get(account_name, note_path)

    def set(self, item: LocalDraftItem) -> bool:
        return self.store.set(item)

    def draft_for_note(self, account_name: Optional[str], note_path: str) -> Optional[LocalDraftItem]:
        """The note's draft for account; a missing draft is created and a blank title filled from the file name."""
        if not account_name:
            return None
        draft = self.store.get(account_name, note_path)
        if draft is None:
            draft = LocalDraftItem(
                account_name=account_name,
                note_path=note_path,
                title=note_basename(note_path),
                id=draft_id(account_name, note_path),
            )
            logger.debug("creating draft %s", draft.id)
            self.store.set(draft)
        if not draft.title.strip():
            draft.title = note_basename(note_path)
            self.store.set(draft)
        return draft

    def update(self, draft: LocalDraftItem, **fields) -> LocalDraftItem:
        """Apply non-None field values and store the result."""
        for name, value in fields.items():
            if value is not None:
                setattr(draft, name, value)
        self.store.set(draft)
        return draft
