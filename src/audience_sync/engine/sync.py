"""
Main sync engine that incrementally copies audience members from Mailchimp to Ometria.
"""

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from ..core.exceptions import ConfigurationError, SyncError
from ..integrations.mailchimp.client import MailchimpClient
from ..integrations.ometria.client import OmetriaClient
from ..models.sync import ListSyncResult, PageOutcome, SyncStage
from ..services.watermarks import WatermarkStore, format_watermark
from .transforms import transform_members

logger = logging.getLogger(__name__)

# Mailchimp allows at most 1000 members per page and 10 concurrent connections per key
MAX_PAGE_SIZE = 1000
MAX_CONCURRENCY = 9

DEFAULT_PAGE_SIZE = 900
DEFAULT_CONCURRENCY = 9


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class SyncEngine:
    """
    Syncs one audience list per call, fetching only members changed since the
    list's watermark.

    The watermark moves forward only when every page of the cycle was fetched
    and pushed. A failed cycle leaves it where it was, so the next cycle picks
    up the same changes again.
    """

    def __init__(
        self,
        source: MailchimpClient,
        destination: OmetriaClient,
        watermark_store: WatermarkStore,
        page_size: int = DEFAULT_PAGE_SIZE,
        concurrency_limit: int = DEFAULT_CONCURRENCY,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the sync engine.

        Args:
            source: Client used to read member pages
            destination: Client used to push contacts
            watermark_store: Where the last completed run of each list is kept
            page_size: Members per page request
            concurrency_limit: Maximum number of pages fetched and pushed at once
            clock: Returns the current time, defaults to UTC now
        """
        if source is None or destination is None or watermark_store is None:
            raise ConfigurationError("the sync engine needs a source, a destination and a watermark store")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ConfigurationError(f"page size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}")
        if not 1 <= concurrency_limit <= MAX_CONCURRENCY:
            raise ConfigurationError(
                f"concurrency limit must be between 1 and {MAX_CONCURRENCY}, got {concurrency_limit}"
            )

        self.source = source
        self.destination = destination
        self.watermark_store = watermark_store
        self.page_size = page_size
        self.concurrency_limit = concurrency_limit
        self.clock = clock or utc_now
        # shared by every cycle of this engine, one slot per page being fetched and pushed
        self._slots = threading.BoundedSemaphore(concurrency_limit)

    def sync_list(self, list_id: str) -> ListSyncResult:
        """
        Run one sync cycle for an audience list.

        Args:
            list_id: Mailchimp audience list ID

        Returns:
            ListSyncResult describing the cycle

        Raises:
            SyncError: If any stage fails. The watermark is left untouched.
        """
        try:
            since_last_changed = self.watermark_store.get(list_id)
        except Exception as e:
            raise SyncError(
                f"unable to get the last run timestamp (check connectivity): {e}",
                list_id, SyncStage.WATERMARK_READ.value
            ) from e
        logger.info(f"last run timestamp for list {list_id}: {since_last_changed or 'none (full sync)'}")

        # captured before fetching so changes made during the cycle are picked up next time
        cycle_start = self.clock()
        result = ListSyncResult(
            list_id=list_id,
            since_last_changed=since_last_changed,
            cycle_started_at=cycle_start,
        )

        logger.info("fetching the first page")
        try:
            first_page = self.source.get_members_page(list_id, 0, self.page_size, since_last_changed)
        except Exception as e:
            raise SyncError(
                f"unable to get the first page of results: {e}",
                list_id, SyncStage.FETCH_FIRST_PAGE.value
            ) from e

        total = first_page.total_items
        result.total_items = total
        result.pages = 1
        logger.info(f"total items: {total}")

        if total == 0:
            self._commit(list_id, cycle_start)
            logger.info("didn't find new members - will wait for the next cycle")
            return self._finish(result, processed=0, committed=True)

        # one page beyond total // page_size, completion is still decided by count
        number_of_pages = total // self.page_size + 1
        result.pages = number_of_pages
        logger.info(f"page size: {self.page_size}")
        logger.info(f"number of pages (api calls): {number_of_pages}")

        try:
            self.destination.push_contacts(transform_members(first_page.members))
        except Exception as e:
            raise SyncError(
                f"unable to save the first page of results: {e}",
                list_id, SyncStage.PUSH_FIRST_PAGE.value
            ) from e

        processed = len(first_page.members)

        if number_of_pages == 1:
            self._commit(list_id, cycle_start)
            logger.info(f"number of members processed so far: {processed} (total is {total})")
            return self._finish(result, processed=processed, committed=True)

        processed, committed = self._sync_remaining_pages(
            list_id, since_last_changed, number_of_pages, processed, total, cycle_start
        )
        if not committed:
            logger.warning(
                f"all {number_of_pages} pages of list {list_id} reported but only {processed} of {total} "
                f"members were processed - the watermark was not advanced"
            )
        return self._finish(result, processed=processed, committed=committed)

    def _sync_remaining_pages(
        self,
        list_id: str,
        since_last_changed: str,
        number_of_pages: int,
        processed: int,
        total: int,
        cycle_start: datetime,
    ) -> Tuple[int, bool]:
        """
        Fetch and push pages 1..number_of_pages-1 on a bounded pool.

        Only this thread reads the results queue and owns the running count,
        so the workers never share state with each other.

        Returns:
            (members processed, whether the watermark was committed)
        """
        results: "queue.Queue[PageOutcome]" = queue.Queue()
        executor = ThreadPoolExecutor(
            max_workers=self.concurrency_limit,
            thread_name_prefix=f"sync-{list_id}",
        )
        try:
            for page in range(1, number_of_pages):
                executor.submit(self._process_page, results, list_id, page, since_last_changed)

            for _ in range(1, number_of_pages):
                outcome = results.get()
                if outcome.error is not None:
                    # siblings already running are left to finish, their results are ignored
                    raise SyncError(
                        f"page {outcome.page} failed: {outcome.error}",
                        list_id, outcome.stage.value
                    ) from outcome.error

                processed += outcome.member_count
                logger.info(f"number of members processed so far: {processed} (total is {total})")

                # or more, in case members were added while this is running
                if processed >= total:
                    self._commit(list_id, cycle_start)
                    return processed, True
        finally:
            # pages still queued or in flight run to completion, nothing waits on them
            executor.shutdown(wait=False)

        return processed, False

    def _process_page(self, results: "queue.Queue[PageOutcome]", list_id: str, page: int,
                      since_last_changed: str) -> None:
        """Fetch one page, push it, and report the outcome."""
        offset = page * self.page_size
        # slots outlive the pool, so stragglers of an earlier cycle still count
        with self._slots:
            try:
                members_page = self.source.get_members_page(list_id, offset, self.page_size, since_last_changed)
            except Exception as e:
                logger.error(f"failed to fetch page {page} of list {list_id}: {e}")
                results.put(PageOutcome(page=page, error=e, stage=SyncStage.FETCH_PAGE))
                return

            try:
                self.destination.push_contacts(transform_members(members_page.members))
            except Exception as e:
                logger.error(f"failed to push page {page} of list {list_id}: {e}")
                results.put(PageOutcome(page=page, error=e, stage=SyncStage.PUSH_PAGE))
                return

        results.put(PageOutcome(page=page, member_count=len(members_page.members)))

    def _commit(self, list_id: str, cycle_start: datetime) -> None:
        """Save the cycle start so the next cycle continues from this point."""
        try:
            self.watermark_store.set(list_id, cycle_start)
        except Exception as e:
            raise SyncError(
                f"unable to save the last run timestamp: {e}",
                list_id, SyncStage.WATERMARK_WRITE.value
            ) from e
        logger.info(f"saved watermark {format_watermark(cycle_start)} for list {list_id}")

    def _finish(self, result: ListSyncResult, processed: int, committed: bool) -> ListSyncResult:
        result.processed = processed
        result.watermark_committed = committed
        result.completed_at = self.clock()
        result.execution_time_seconds = (result.completed_at - result.cycle_started_at).total_seconds()
        return result
