"""
Network reachability probe used when choosing a recognition strategy.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import requests

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05


class ReachabilityProbe:
    """Time-boxed, cancellable HEAD request against a well-known URL."""

    def __init__(self, url: str = "https://www.google.com/favicon.ico", timeout: float = 10.0):
        self.url = url
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="reachability")

    def _head(self) -> bool:
        try:
            response = requests.head(self.url, timeout=self.timeout, allow_redirects=True)
            return response.status_code < 500
        except requests.RequestException as e:
            logger.debug(f"Reachability probe failed: {e}")
            return False

    def is_reachable(self, cancel_event: Optional[threading.Event] = None) -> bool:
        """
        Check whether the network is reachable.

        Args:
            cancel_event: Setting this event aborts the wait early

        Returns:
            True only if the probe answered within the timeout and was not cancelled
        """
        future = self._executor.submit(self._head)
        deadline = time.monotonic() + self.timeout

        while not future.done():
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Reachability probe cancelled")
                return False
            if time.monotonic() >= deadline:
                logger.warning(f"Reachability probe timed out after {self.timeout}s")
                return False
            time.sleep(POLL_INTERVAL)

        return future.result()
