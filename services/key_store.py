"""
Action Key Store: persists one ephemeral signing key per (action type, email).

put() overwrites (last writer wins), which invalidates any token signed with
the superseded key. There is no transaction spanning issuance and first use.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete

from models.action_key import ActionKey
from models.db_storage import DBStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionKeyRecord:
    action_type: str
    email: str
    signing_key: str
    owner_id: Optional[str]
    created_at: datetime
    expires_at: Optional[datetime] = None

    def __repr__(self) -> str:
        return f"ActionKeyRecord(action_type={self.action_type!r}, email={self.email!r}, owner_id={self.owner_id!r})"


class ActionKeyStore:
    """Interface for action key persistence."""

    def put(self, action_type: str, email: str, signing_key: str,
            owner_id: Optional[str], expires_at: Optional[datetime] = None) -> ActionKeyRecord:
        raise NotImplementedError

    def get(self, action_type: str, email: str) -> Optional[ActionKeyRecord]:
        raise NotImplementedError

    def delete(self, action_type: str, email: str) -> None:
        raise NotImplementedError

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete records whose expires_at has passed; return how many."""
        raise NotImplementedError


class SQLActionKeyStore(ActionKeyStore):
    """ActionKeyStore on top of DBStorage (SQLAlchemy)."""

    def __init__(self, storage: DBStorage) -> None:
        self._storage = storage

    @staticmethod
    def _to_record(row: ActionKey) -> ActionKeyRecord:
        return ActionKeyRecord(
            action_type=row.action_type,
            email=row.email,
            signing_key=row.signing_key,
            owner_id=row.owner_id,
            created_at=row.created_at,
            expires_at=row.expires_at,
        )

    def put(self, action_type, email, signing_key, owner_id, expires_at=None):
        row = ActionKey(
            action_type=action_type,
            email=email,
            signing_key=signing_key,
            owner_id=owner_id,
            created_at=datetime.now(timezone.utc),
            expires_at=expires_at,
        )
        row = self._storage.merge(row)
        self._storage.save()
        logger.debug("Stored %s key for %s", action_type, email)
        return self._to_record(row)

    def get(self, action_type, email):
        row = self._storage.get(ActionKey, (action_type, email))
        if row is None:
            return None
        return self._to_record(row)

    def delete(self, action_type, email):
        row = self._storage.get(ActionKey, (action_type, email))
        if row is not None:
            self._storage.delete(row)
            self._storage.save()

    def purge_expired(self, now=None):
        now = now or datetime.now(timezone.utc)
        session = self._storage.get_session()
        stmt = (
            delete(ActionKey)
            .where(ActionKey.expires_at.is_not(None), ActionKey.expires_at < now)
            .execution_options(synchronize_session="fetch")
        )
        result = session.execute(stmt)
        self._storage.save()
        logger.info("Purged %d expired action keys", result.rowcount)
        return result.rowcount
