"""Draft store interface shared by the SQL and key-value backings"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from one2mp.crud.models import LocalDraftItem, draft_id


class InvalidDraftError(ValueError):
    """A draft lacks the account name or note path that identify it."""


class DraftStore(ABC):
    """get/set of LocalDraftItem keyed by account + note path.

    `set` skips the write when the stored record is structurally equal to the new one;
    `writes` counts the writes that actually reached the backing.
    """

    writes = 0

    def get(self, account_name: str, note_path: str) -> Optional[LocalDraftItem]:
        record = self._load(draft_id(account_name, note_path))
        return LocalDraftItem.model_validate(record) if record else None

    def set(self, item: LocalDraftItem) -> bool:
        if not item.account_name or not item.note_path:
            raise InvalidDraftError("Invalid draft: account name and note path are required")
        if not item.id:
            item.id = draft_id(item.account_name, item.note_path)
        record = item.to_record()
        if self._load(item.id) == record:
            return True
        self._write(item.id, record)
        self.writes += 1
        return True

    def close(self) -> None:
        pass

    @abstractmethod
    def _load(self, key: str) -> Optional[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def _write(self, key: str, record: dict[str, Any]) -> None:
        raise NotImplementedError
