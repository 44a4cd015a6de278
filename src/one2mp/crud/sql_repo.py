from copy import deepcopy
from datetime import datetime
from typing import Any, Optional

from sqlmodel import Session

from one2mp.crud.repo import DraftStore
from one2mp.crud.sql_models import DraftRow


class SQLDraftStore(DraftStore):
    def __init__(self, session: Session):
        self.session = session

    def _load(self, key: str) -> Optional[dict[str, Any]]:
        row = self.session.get(DraftRow, key)
        return deepcopy(row.record) if row else None

    def _write(self, key: str, record: dict[str, Any]) -> None:
        row = self.session.get(DraftRow, key) or DraftRow(
            id=key, account_name=record["accountName"], note_path=record["notePath"],
        )
        row.record = deepcopy(record)
        row.updated_at = datetime.now()
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)

    def close(self) -> None:
        self.session.close()
