#app/models/contract_record.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class ContractRow(Base):
    """
    One row per contract. `payload_json` holds the full Contract record;
    the scalar columns duplicate what list filters need.

    Concurrency rule:
      - UPDATE only with `WHERE version = <expected>` and bump version (compare-and-swap).
    """

    __tablename__ = "contracts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    vendor_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    vendor_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    assigned_to_email: Mapped[str] = mapped_column(String(320), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    payload_json: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)

    __table_args__ = (
        Index("ix_contracts_vendor_email", "vendor_email"),
        Index("ix_contracts_vendor_id", "vendor_id"),
        Index("ix_contracts_assigned_to", "assigned_to_email"),
    )
