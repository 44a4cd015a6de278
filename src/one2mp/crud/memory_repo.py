from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Optional

from one2mp.core.host import JsonDataStore
from one2mp.crud.repo import DraftStore


LOCAL_DRAFTS_KEY = "local_drafts"


@dataclass
class MemoryDraftStore(DraftStore):
    """In-memory drafts, persisted under the local_drafts key of a JSON data blob when one is given."""
    data_store: Optional[JsonDataStore] = None
    _drafts: dict[str, dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self):
        if self.data_store is not None:
            self._drafts = dict(self.data_store.load().get(LOCAL_DRAFTS_KEY) or {})

    def _load(self, key: str) -> Optional[dict[str, Any]]:
        record = self._drafts.get(key)
        return deepcopy(record) if record is not None else None

    def _write(self, key: str, record: dict[str, Any]) -> None:
        self._drafts[key] = deepcopy(record)
        if self.data_store is not None:
            data = self.data_store.load()
            data[LOCAL_DRAFTS_KEY] = self._drafts
            self.data_store.save(data)
