"""
Best-effort fan-out of notifications on a background thread pool.

Callers hand over a batch and return immediately. Each recipient is
delivered by its own task, so one bad address cannot affect the others,
and no failure ever propagates back to the request that triggered it.
"""

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Iterable, List, Optional

from dotenv import load_dotenv
from flask import current_app

from backend.notification_service.mailer import EmailTransport, Notification

load_dotenv()

logger = logging.getLogger(__name__)

NOTIFY_WORKERS = int(os.getenv("NOTIFY_WORKERS", 4))

EXTENSION_KEY = "event_echo_dispatcher"


class NotificationDispatcher:
    def __init__(self, transport: Optional[EmailTransport] = None, max_workers: int = NOTIFY_WORKERS) -> None:
        self.transport = transport or EmailTransport()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")
        self._pending: List[Future] = []
        self._pending_lock = threading.Lock()

    def dispatch(self, notifications: Iterable[Notification]) -> List[Future]:
        """
        Queue every notification for delivery and return the futures.

        Each future resolves to True if its message was delivered and
        False if delivery failed (the failure is logged, not raised).
        """
        futures = [self._executor.submit(self._deliver, n) for n in notifications]
        with self._pending_lock:
            self._pending = [f for f in self._pending if not f.done()] + futures
        return futures

    def _deliver(self, notification: Notification) -> bool:
        try:
            self.transport.send(notification)
        except Exception as e:
            # Not retried; the triggering mutation has already committed.
            logger.warning(f"Notification to {notification.recipient} failed: {e}")
            return False
        return True

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued deliveries. Returns True if all of them finished."""
        with self._pending_lock:
            pending = list(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)


def get_dispatcher() -> NotificationDispatcher:
    """Return the dispatcher attached to the running Flask app."""
    return current_app.extensions[EXTENSION_KEY]
