import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from audience_sync.core.exceptions import MailchimpAPIError, OmetriaAPIError, WatermarkStoreError
from audience_sync.core.models import AudienceList, Member, MembersPage, OmetriaContact
from audience_sync.engine.sync import SyncEngine
from audience_sync.services.watermarks import WatermarkStore, format_watermark

CHANGED_AT = "2026-10-18T09:00:00+00:00"


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeMailchimp:
    """In-memory members API that honours offset, count and since_last_changed."""

    def __init__(
        self,
        members: Sequence[Tuple[Member, str]] = (),
        total_items: Optional[int] = None,
        delay: float = 0.0,
        fail_on_offsets: Sequence[int] = (),
        slow_offsets: Optional[Dict[int, float]] = None,
        lists: Sequence[AudienceList] = (),
        fail_lists: bool = False,
    ):
        self.members = list(members)
        self.total_items = total_items
        self.delay = delay
        self.fail_on_offsets = set(fail_on_offsets)
        self.slow_offsets = dict(slow_offsets or {})
        self.lists = list(lists)
        self.fail_lists = fail_lists

        self.calls: List[Tuple[str, int, int, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._cond = threading.Condition()

    def get_members_page(self, list_id: str, offset: int, count: int,
                         since_last_changed: str = "") -> MembersPage:
        with self._cond:
            self.calls.append((list_id, offset, count, since_last_changed))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            self._cond.notify_all()
        try:
            delay = self.slow_offsets.get(offset, self.delay)
            if delay:
                time.sleep(delay)
            if offset in self.fail_on_offsets:
                raise MailchimpAPIError(f"HTTP 500: offset {offset} exploded", status_code=500)

            changed = [m for m, ts in self.members if not since_last_changed or ts > since_last_changed]
            total = self.total_items if self.total_items is not None else len(changed)
            return MembersPage(total_items=total, members=changed[offset:offset + count])
        finally:
            with self._cond:
                self.in_flight -= 1
                self._cond.notify_all()

    def get_all_lists(self) -> List[AudienceList]:
        if self.fail_lists:
            raise MailchimpAPIError("HTTP 401: API key invalid", status_code=401)
        return list(self.lists)

    def test_connection(self) -> bool:
        return not self.fail_lists

    def wait_for_calls(self, n: int, timeout: float = 5.0) -> bool:
        """Wait for background page fetches the engine did not wait for."""
        with self._cond:
            return self._cond.wait_for(lambda: len(self.calls) >= n and self.in_flight == 0, timeout)

    @property
    def offsets(self) -> List[int]:
        return sorted(call[1] for call in self.calls)


class FakeOmetria:
    def __init__(self, fail_on_ids: Sequence[str] = ()):
        self.fail_on_ids = set(fail_on_ids)
        self.batches: List[List[OmetriaContact]] = []
        self._lock = threading.Lock()

    def push_contacts(self, contacts: List[OmetriaContact]) -> None:
        if any(contact.id in self.fail_on_ids for contact in contacts):
            raise OmetriaAPIError("push response was not successful: HTTP 500", status_code=500)
        with self._lock:
            self.batches.append(list(contacts))

    @property
    def pushed(self) -> List[OmetriaContact]:
        with self._lock:
            return [contact for batch in self.batches for contact in batch]


class FakeWatermarkStore(WatermarkStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None, fail_get: bool = False,
                 fail_set: bool = False, reachable: bool = True):
        self.values = dict(initial or {})
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.reachable = reachable
        self.writes = 0

    def get(self, list_id: str) -> str:
        if self.fail_get:
            raise WatermarkStoreError("connection refused")
        return self.values.get(list_id, "")

    def set(self, list_id: str, timestamp: datetime) -> None:
        if self.fail_set:
            raise WatermarkStoreError("connection refused")
        self.values[list_id] = format_watermark(timestamp)
        self.writes += 1

    def ping(self) -> bool:
        return self.reachable


def build_members(n: int, changed_at: str = CHANGED_AT, prefix: str = "m") -> List[Tuple[Member, str]]:
    return [
        (
            Member(
                id=f"{prefix}{i}",
                email_address=f"{prefix}{i}@example.com",
                full_name=f"First{i} Last{i}",
                status="subscribed",
            ),
            changed_at,
        )
        for i in range(n)
    ]


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 18, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return FakeWatermarkStore()


@pytest.fixture
def ometria():
    return FakeOmetria()


@pytest.fixture
def make_members():
    return build_members


@pytest.fixture
def make_source():
    return FakeMailchimp


@pytest.fixture
def make_engine(ometria, store, clock):
    def _make(source, page_size: int = 10, concurrency_limit: int = 9, destination=None,
              watermark_store=None) -> SyncEngine:
        return SyncEngine(
            source=source,
            destination=destination or ometria,
            watermark_store=watermark_store or store,
            page_size=page_size,
            concurrency_limit=concurrency_limit,
            clock=clock,
        )
    return _make
