from __future__ import annotations

import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, List

from sqlalchemy import select, update
from sqlalchemy.orm import sessionmaker

from app.models.notification import NotificationRow
from app.schemas.notifications import Notification


def new_notification(*, contract_id: str, sender: str, recipient: str, message: str) -> Notification:
    return Notification(
        id=str(uuid.uuid4()),
        contract_id=contract_id,
        sender=sender,
        recipient=recipient,
        message=message,
        created_at=datetime.now(timezone.utc),
        read=False,
    )


class NotificationStore(ABC):
    """Append-only, keyed by recipient. Read flags only ever go false -> true."""

    @abstractmethod
    def append(self, n: Notification) -> Notification:
        ...

    @abstractmethod
    def list_for(self, email: str) -> List[Notification]:
        """Newest first."""

    @abstractmethod
    def mark_read(self, ids: Iterable[str]) -> int:
        """Returns how many notifications flipped to read."""


class InMemoryNotificationStore(NotificationStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._items: List[Notification] = []

    def append(self, n: Notification) -> Notification:
        with self._lock:
            self._items.append(n)
        return n

    def list_for(self, email: str) -> List[Notification]:
        key = email.strip().lower()
        with self._lock:
            rows = [n for n in self._items if n.recipient.lower() == key]
        # ascending then reversed: ties keep newest-inserted first
        return sorted(rows, key=lambda n: n.created_at)[::-1]

    def mark_read(self, ids: Iterable[str]) -> int:
        wanted = set(ids)
        flipped = 0
        with self._lock:
            for i, n in enumerate(self._items):
                if n.id in wanted and not n.read:
                    self._items[i] = n.model_copy(update={"read": True})
                    flipped += 1
        return flipped


class SqlNotificationStore(NotificationStore):
    def __init__(self, session_factory: sessionmaker):
        self._sessions = session_factory

    @staticmethod
    def _from_row(r: NotificationRow) -> Notification:
        return Notification(
            id=r.id,
            contract_id=r.contract_id,
            sender=r.sender,
            recipient=r.recipient,
            message=r.message,
            created_at=r.created_at,
            read=bool(r.read),
        )

    def append(self, n: Notification) -> Notification:
        with self._sessions() as db:
            db.add(NotificationRow(
                id=n.id,
                contract_id=n.contract_id,
                sender=n.sender,
                recipient=n.recipient.lower(),
                message=n.message,
                created_at=n.created_at,
                read=n.read,
            ))
            db.commit()
        return n

    def list_for(self, email: str) -> List[Notification]:
        with self._sessions() as db:
            rows = db.execute(
                select(NotificationRow)
                .where(NotificationRow.recipient == email.strip().lower())
                .order_by(NotificationRow.created_at.desc())
            ).scalars().all()
            return [self._from_row(r) for r in rows]

    def mark_read(self, ids: Iterable[str]) -> int:
        wanted = list(set(ids))
        if not wanted:
            return 0
        with self._sessions() as db:
            res = db.execute(
                update(NotificationRow)
                .where(NotificationRow.id.in_(wanted), NotificationRow.read.is_(False))
                .values(read=True)
            )
            db.commit()
            return res.rowcount
