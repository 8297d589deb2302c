"""
Runs sync sweeps over every audience list, once or on a fixed interval.
"""

import json
import logging
import threading
import time
from typing import Optional

from ..core.exceptions import SyncError
from ..engine.sync import SyncEngine, utc_now
from ..integrations.mailchimp.client import MailchimpClient
from ..models.sync import SweepResult

logger = logging.getLogger(__name__)


class SyncRunner:
    """Lists the audiences and syncs them one after the other."""

    def __init__(self, source: MailchimpClient, engine: SyncEngine):
        self.source = source
        self.engine = engine

    def run_sweep(self) -> SweepResult:
        """
        Sync every audience list once.

        A failing list is logged and skipped; its watermark stays where it
        was so the next sweep retries it.

        Returns:
            SweepResult with per-list outcomes
        """
        logger.info("starting run")
        started = time.monotonic()
        sweep = SweepResult(started_at=utc_now())

        try:
            lists = self.source.get_all_lists()
        except Exception as e:
            logger.error(f"unable to get the audience lists: {e}")
            sweep.error = str(e)
            sweep.completed_at = utc_now()
            return sweep

        sweep.lists_found = len(lists)
        logger.info(f"found {len(lists)} lists")
        logger.info(json.dumps([audience.model_dump() for audience in lists], indent=4))

        for audience in lists:
            logger.info(f"sync'ing list {audience.id} ({audience.name})")
            try:
                sweep.results.append(self.engine.sync_list(audience.id))
            except SyncError as e:
                logger.error(str(e))
                sweep.failures[audience.id] = str(e)

        sweep.completed_at = utc_now()
        logger.info(f"finished run. Time elapsed: {time.monotonic() - started:.2f}s")
        return sweep

    def run_forever(self, interval_seconds: float, stop_event: Optional[threading.Event] = None,
                    max_sweeps: Optional[int] = None) -> int:
        """
        Run a sweep now and then every ``interval_seconds``.

        Args:
            interval_seconds: Time between the starts of two sweeps
            stop_event: Set it to stop after the current sweep
            max_sweeps: Stop after this many sweeps (None runs until stopped)

        Returns:
            Number of sweeps run
        """
        stop_event = stop_event or threading.Event()
        logger.info(f"will run every {interval_seconds} seconds")

        sweeps = 0
        while not stop_event.is_set():
            started = time.monotonic()
            self.run_sweep()
            sweeps += 1

            if max_sweeps is not None and sweeps >= max_sweeps:
                break

            # a sweep longer than the interval starts the next one straight away
            remaining = interval_seconds - (time.monotonic() - started)
            if stop_event.wait(max(remaining, 0)):
                break

        return sweeps
