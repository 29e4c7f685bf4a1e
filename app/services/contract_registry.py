from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional, Set

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.core.errors import ConflictError, NotFoundError, UpstreamError
from app.core.locks import KeyedLocks
from app.models.contract_record import ContractRow
from app.models.enums import ContractStatus
from app.schemas.contracts import Contract, Locator

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# STORE INTERFACE
# ─────────────────────────────────────────────


class ContractStore(ABC):
    """Narrow persistence seam. Records are immutable values; writes are whole-record."""

    @abstractmethod
    def get(self, contract_id: str) -> Optional[Contract]:
        ...

    @abstractmethod
    def put(self, contract: Contract) -> None:
        """Insert a new record; an existing id is a ConflictError."""

    @abstractmethod
    def list(self) -> List[Contract]:
        ...

    @abstractmethod
    def compare_and_swap(self, contract_id: str, expected_version: int, new: Contract) -> bool:
        """Replace the record iff its stored version is `expected_version`."""


class InMemoryContractStore(ContractStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._rows: Dict[str, Contract] = {}

    def get(self, contract_id: str) -> Optional[Contract]:
        with self._lock:
            return self._rows.get(contract_id)

    def put(self, contract: Contract) -> None:
        with self._lock:
            if contract.id in self._rows:
                raise ConflictError("Contract id already exists.")
            self._rows[contract.id] = contract

    def list(self) -> List[Contract]:
        with self._lock:
            return list(self._rows.values())

    def compare_and_swap(self, contract_id: str, expected_version: int, new: Contract) -> bool:
        with self._lock:
            cur = self._rows.get(contract_id)
            if cur is None or cur.version != expected_version:
                return False
            self._rows[contract_id] = new
            return True


class SqlContractStore(ContractStore):
    def __init__(self, session_factory: sessionmaker):
        self._sessions = session_factory

    @staticmethod
    def _to_row_values(c: Contract) -> dict:
        return {
            "vendor_id": c.vendor_id,
            "vendor_email": c.vendor_email,
            "assigned_to_email": c.assigned_to_email,
            "status": c.status.value,
            "version": c.version,
            "created_at": c.created_at,
            "payload_json": c.model_dump(mode="json", by_alias=True),
        }

    @staticmethod
    def _from_row(row: ContractRow) -> Contract:
        return Contract.model_validate(row.payload_json)

    def get(self, contract_id: str) -> Optional[Contract]:
        with self._sessions() as db:
            row = db.execute(select(ContractRow).where(ContractRow.id == contract_id)).scalar_one_or_none()
            return self._from_row(row) if row else None

    def put(self, contract: Contract) -> None:
        with self._sessions() as db:
            db.add(ContractRow(id=contract.id, **self._to_row_values(contract)))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise ConflictError("Contract id already exists.")

    def list(self) -> List[Contract]:
        with self._sessions() as db:
            rows = db.execute(select(ContractRow).order_by(ContractRow.created_at)).scalars().all()
            return [self._from_row(r) for r in rows]

    def compare_and_swap(self, contract_id: str, expected_version: int, new: Contract) -> bool:
        with self._sessions() as db:
            res = db.execute(
                update(ContractRow)
                .where(ContractRow.id == contract_id, ContractRow.version == expected_version)
                .values(**self._to_row_values(new))
            )
            db.commit()
            return res.rowcount == 1


# ─────────────────────────────────────────────
# REGISTRY
# ─────────────────────────────────────────────

Mutator = Callable[[Contract], Contract]


class ContractRegistry:
    """
    Authoritative contract map over an injected store.

    - `mutate` is the only write path after creation: read, apply, compare-and-swap,
      retry on a lost race. Mutators must be pure functions of the record they receive.
    - Signing is claimed per contract id so a second concurrent signer in this process
      is rejected up front; signers in other processes lose at the commit instead.
    """

    def __init__(self, store: ContractStore, *, max_retries: int = 16):
        self.store = store
        self.max_retries = max_retries
        self._locks = KeyedLocks()
        self._claims: Set[str] = set()
        self._claims_guard = threading.Lock()

    def create(
        self,
        *,
        locator: Locator,
        original_name: str,
        assigned_to_email: str,
        vendor_id: Optional[str],
        vendor_email: Optional[str],
        contract_id: Optional[str] = None,
    ) -> Contract:
        contract = Contract(
            id=contract_id or self.new_id(),
            vendor_id=vendor_id,
            vendor_email=vendor_email,
            assigned_to_email=assigned_to_email,
            original_name=original_name,
            locator=locator,
            status=ContractStatus.pending,
            created_at=datetime.now(timezone.utc),
        )
        self.store.put(contract)
        logger.info("contract created", extra={"contract_id": contract.id, "assigned_to": assigned_to_email})
        return contract

    def new_id(self) -> str:
        return str(uuid.uuid4())

    def get(self, contract_id: str) -> Contract:
        c = self.store.get(contract_id)
        if c is None:
            raise NotFoundError("Contract not found.")
        return c

    def list(self, *, vendor: Optional[str] = None, assigned_to: Optional[str] = None) -> List[Contract]:
        rows = self.store.list()
        if vendor:
            v = vendor.strip().lower()
            rows = [c for c in rows if (c.vendor_email or "").lower() == v or (c.vendor_id or "").lower() == v]
        if assigned_to:
            a = assigned_to.strip().lower()
            rows = [c for c in rows if c.assigned_to_email.lower() == a]
        return sorted(rows, key=lambda c: c.created_at)[::-1]

    def mutate(self, contract_id: str, fn: Mutator) -> Contract:
        for _ in range(self.max_retries):
            cur = self.get(contract_id)
            new = fn(cur)
            if new is cur or new == cur:
                return cur
            new = new.model_copy(update={"version": cur.version + 1})
            with self._locks.hold(contract_id):
                if self.store.compare_and_swap(contract_id, cur.version, new):
                    return new
            logger.info("lost compare-and-swap race, retrying", extra={"contract_id": contract_id})
        raise UpstreamError("Contract is under heavy concurrent modification; retry later.")

    @contextmanager
    def signing_claim(self, contract_id: str) -> Iterator[Contract]:
        """
        Exclusive right to sign `contract_id` for the duration of the block, within this process.
        ConflictError if already signed or another signer here holds the claim.

        Workers sharing one store are not excluded by it: across processes the
        compare-and-swap commit decides, and each attempt writes its artifact under its own name.
        """
        with self._locks.hold(contract_id):
            contract = self.get(contract_id)
            if contract.status == ContractStatus.signed:
                raise ConflictError("Contract is already signed.")
            with self._claims_guard:
                if contract_id in self._claims:
                    raise ConflictError("Contract is already being signed.")
                self._claims.add(contract_id)
        try:
            yield contract
        finally:
            with self._claims_guard:
                self._claims.discard(contract_id)
