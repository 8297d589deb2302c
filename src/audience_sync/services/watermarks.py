"""
Watermark stores: the "last completed sync" timestamp of each audience list.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

import redis
from google.auth import default
from google.cloud import firestore

from ..core.exceptions import WatermarkStoreError

logger = logging.getLogger(__name__)


def format_watermark(timestamp: datetime) -> str:
    """Render a timestamp the way Mailchimp's since_last_changed expects it."""
    return timestamp.isoformat(timespec="seconds")


class WatermarkStore(ABC):
    """Abstract base class for watermark stores."""

    @abstractmethod
    def get(self, list_id: str) -> str:
        """
        Get the last completed run timestamp of a list.

        Returns:
            ISO 8601 timestamp, or an empty string if the list was never synced

        Raises:
            WatermarkStoreError: If the store can't be reached
        """
        pass

    @abstractmethod
    def set(self, list_id: str, timestamp: datetime) -> None:
        """Record a completed run for a list."""
        pass

    @abstractmethod
    def ping(self) -> bool:
        """Check the store is reachable."""
        pass


class RedisWatermarkStore(WatermarkStore):
    """Keeps one string key per list in Redis."""

    def __init__(
        self,
        addr: str = "localhost:6379",
        password: Optional[str] = None,
        db: int = 0,
        key_prefix: str = "watermark:",
        client: Optional[redis.Redis] = None,
    ):
        """
        Initialize the Redis store.

        Args:
            addr: host:port of the Redis server
            password: Optional Redis password
            db: Redis database number
            key_prefix: Prefix prepended to the list ID to build the key
            client: Pre-built client, mostly for tests
        """
        self.addr = addr
        self.key_prefix = key_prefix
        if client is not None:
            self.client = client
        else:
            host, _, port = addr.rpartition(":")
            self.client = redis.Redis(
                host=host or addr,
                port=int(port) if host and port else 6379,
                password=password or None,
                db=db,
                decode_responses=True,
            )

    def _key(self, list_id: str) -> str:
        return f"{self.key_prefix}{list_id}"

    def get(self, list_id: str) -> str:
        try:
            value = self.client.get(self._key(list_id))
        except redis.RedisError as e:
            raise WatermarkStoreError(f"Unable to read the watermark of list {list_id} from redis: {e}") from e
        if value is None:
            return ""
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, list_id: str, timestamp: datetime) -> None:
        try:
            self.client.set(self._key(list_id), format_watermark(timestamp))
        except redis.RedisError as e:
            raise WatermarkStoreError(f"Unable to save the watermark of list {list_id} to redis: {e}") from e

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.error(f"Unable to connect to redis at '{self.addr}': {e}")
            return False


class FirestoreWatermarkStore(WatermarkStore):
    """Keeps one document per list in a Firestore collection."""

    FIELD = "last_completed_run"

    def __init__(
        self,
        project_id: Optional[str] = None,
        collection: str = "sync_watermarks",
        db: Optional[firestore.Client] = None,
    ):
        """
        Initialize the Firestore store.

        Args:
            project_id: Google Cloud project ID. If None, uses default from environment.
            collection: Collection holding one document per list
            db: Pre-built client, mostly for tests
        """
        try:
            if db is not None:
                self.db = db
            elif project_id:
                self.db = firestore.Client(project=project_id)
            else:
                # Use application default credentials
                credentials, project = default()
                self.db = firestore.Client(project=project, credentials=credentials)
        except Exception as e:
            raise WatermarkStoreError(f"Failed to initialize Firestore: {e}") from e

        self.collection = collection
        logger.info(f"Firestore watermark store initialized (collection: {self.collection})")

    def get(self, list_id: str) -> str:
        try:
            doc = self.db.collection(self.collection).document(list_id).get()
        except Exception as e:
            raise WatermarkStoreError(f"Failed to get watermark for list {list_id}: {e}") from e

        if not doc.exists:
            return ""
        data = doc.to_dict() or {}
        return data.get(self.FIELD) or ""

    def set(self, list_id: str, timestamp: datetime) -> None:
        try:
            doc_ref = self.db.collection(self.collection).document(list_id)
            doc_ref.set({
                self.FIELD: format_watermark(timestamp),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            })
        except Exception as e:
            raise WatermarkStoreError(f"Failed to save watermark for list {list_id}: {e}") from e

    def ping(self) -> bool:
        try:
            # any read proves connectivity and credentials
            self.db.collection(self.collection).limit(1).get()
            return True
        except Exception as e:
            logger.error(f"Unable to reach Firestore: {e}")
            return False
