# /app/core/deps.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import Request

from app.core.config import Settings
from app.core.signing import KeyStore
from app.db.base import Base
from app.db.session import make_engine, make_sessionmaker
from app.services.access_provisioner import AccessProvisioner
from app.services.blob_resolver import BlobResolver, HttpFetcher
from app.services.blob_writer import BlobWriter
from app.services.chat_client import ChatClient
from app.services.contract_registry import ContractStore, ContractRegistry, InMemoryContractStore, SqlContractStore
from app.services.contract_service import ContractService
from app.services.document_signer import DocumentSigner
from app.services.dropbox_client import DropboxClient
from app.services.notification_store import InMemoryNotificationStore, NotificationStore, SqlNotificationStore
from app.services.notifier import InviteNotifier

logger = logging.getLogger(__name__)


@dataclass
class Services:
    contracts: ContractService
    chat: ChatClient
    key_store: KeyStore


def build_services(
    settings: Settings,
    *,
    dropbox: Optional[DropboxClient] = None,
    http: Optional[HttpFetcher] = None,
    notifier: Optional[InviteNotifier] = None,
    chat: Optional[ChatClient] = None,
    contract_store: Optional[ContractStore] = None,
    notification_store: Optional[NotificationStore] = None,
) -> Services:
    """
    Process-start wiring. Every collaborator can be injected (tests pass fakes);
    the rest is built from settings.
    """
    timeout = settings.http_timeout_seconds

    if dropbox is None and settings.dropbox_token:
        dropbox = DropboxClient(settings.dropbox_token, timeout=timeout)
    http = http or HttpFetcher(timeout=timeout)

    if contract_store is None or notification_store is None:
        if settings.database_url:
            engine = make_engine(settings.database_url)
            Base.metadata.create_all(bind=engine)
            sessions = make_sessionmaker(engine)
            contract_store = contract_store or SqlContractStore(sessions)
            notification_store = notification_store or SqlNotificationStore(sessions)
        else:
            logger.info("DATABASE_URL not set, using in-memory registries")
            contract_store = contract_store or InMemoryContractStore()
            notification_store = notification_store or InMemoryNotificationStore()

    key_store = KeyStore(settings.keys_dir)
    key_store.ensure_keys()

    storage_root = Path(settings.storage_root)
    registry = ContractRegistry(contract_store)
    provisioner = AccessProvisioner(
        registry,
        notifier or InviteNotifier(settings.invite_webhook_url, timeout=timeout),
        course_url=settings.course_url,
        team_chat_url=settings.team_chat_url,
        dashboard_url=settings.dashboard_url,
        ttl_days=settings.access_ttl_days,
    )

    contracts = ContractService(
        registry=registry,
        resolver=BlobResolver.build(client=dropbox, http=http, storage_root=storage_root),
        writer=BlobWriter.build(client=dropbox, folder=settings.dropbox_folder, storage_root=storage_root),
        signer=DocumentSigner(key_store, font_path=settings.signature_font_path),
        provisioner=provisioner,
        notifications=notification_store,
        key_store=key_store,
    )
    return Services(
        contracts=contracts,
        chat=chat or ChatClient(settings.chat_service_url, timeout=timeout),
        key_store=key_store,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_contract_service(request: Request) -> ContractService:
    return request.app.state.services.contracts
