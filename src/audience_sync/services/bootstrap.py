"""
Builds the clients, the watermark store, the engine and the runner from settings.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.config import Settings
from ..core.exceptions import ConfigurationError, WatermarkStoreError
from ..engine.sync import SyncEngine
from ..integrations.mailchimp.client import MailchimpClient
from ..integrations.ometria.client import OmetriaClient
from .runner import SyncRunner
from .watermarks import FirestoreWatermarkStore, RedisWatermarkStore, WatermarkStore

logger = logging.getLogger(__name__)


@dataclass
class SyncServices:
    settings: Settings
    store: WatermarkStore
    source: MailchimpClient
    destination: OmetriaClient
    engine: SyncEngine
    runner: SyncRunner


def create_watermark_store(settings: Settings) -> WatermarkStore:
    """Create the watermark store for the configured backend."""
    state = settings.state
    if state.backend == "redis":
        return RedisWatermarkStore(
            addr=state.redis_addr,
            password=state.redis_password,
            db=state.redis_db,
            key_prefix=state.key_prefix,
        )
    if state.backend == "firestore":
        return FirestoreWatermarkStore(
            project_id=state.firestore_project,
            collection=state.firestore_collection,
        )
    raise ConfigurationError(f"Unknown watermark backend: {state.backend}")


def build_services(settings: Settings, store: Optional[WatermarkStore] = None) -> SyncServices:
    """
    Wire everything a sync needs.

    The watermark store is probed first: without it a cycle can't tell what
    was already synced, so nothing starts when it is unreachable.

    Args:
        settings: Resolved settings
        store: Pre-built store, overrides the configured backend

    Returns:
        SyncServices

    Raises:
        WatermarkStoreError: If the store can't be reached
        ConfigurationError: If a client or the engine rejects its settings
    """
    store = store or create_watermark_store(settings)
    if not store.ping():
        raise WatermarkStoreError(
            f"unable to connect to the {settings.state.backend} watermark store - make sure it is available"
        )
    logger.info(f"Connected to the {settings.state.backend} watermark store")

    pool_size = settings.sync.concurrency_limit + 1
    source = MailchimpClient(
        api_key=settings.mailchimp.api_key,
        base_url=settings.mailchimp.base_url,
        timeout=settings.sync.request_timeout_seconds,
        pool_size=pool_size,
    )
    destination = OmetriaClient(
        api_key=settings.ometria.api_key,
        endpoint=settings.ometria.endpoint,
        timeout=settings.sync.request_timeout_seconds,
        pool_size=pool_size,
    )
    engine = SyncEngine(
        source=source,
        destination=destination,
        watermark_store=store,
        page_size=settings.sync.page_size,
        concurrency_limit=settings.sync.concurrency_limit,
    )
    return SyncServices(
        settings=settings,
        store=store,
        source=source,
        destination=destination,
        engine=engine,
        runner=SyncRunner(source=source, engine=engine),
    )
