"""
Client-side status polling for an initiated STK Push.

The poller only reads ``GET /payment/status?id=`` until the transaction
leaves ``pending`` or the attempt cap is hit; it never re-initiates a
payment.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 3
DEFAULT_MAX_ATTEMPTS = 30

SUCCESS = 'success'
FAILED = 'failed'
TIMEOUT = 'timeout'
CANCELLED = 'cancelled'

TIMEOUT_MESSAGE = 'Payment verification timeout. Please check status later.'


@dataclass
class PollResult:
    outcome: str
    message: str
    attempts: int
    transaction: Optional[dict] = field(default=None)


def http_status_fetcher(base_url, timeout=10, session=requests):
    """Build a fetch function that reads a transaction from the status endpoint."""
    def fetch(transaction_id):
        resp = session.get(
            f"{base_url.rstrip('/')}/payment/status",
            params={'id': transaction_id},
            timeout=timeout,
        )
        resp.raise_for_status()
        return resp.json()['transaction']
    return fetch


class StatusPoller:
    """
    Poll a transaction every ``interval`` seconds, at most ``max_attempts`` times.

    ``cancel()`` may be called from another thread; the wait between
    attempts is an Event wait so cancellation takes effect immediately.
    A poller is single-use: once cancelled, every later ``poll()`` on the
    same instance returns ``cancelled`` at once. Build a new one to poll again.
    """

    def __init__(self, fetch: Callable[[str], dict], interval: float = DEFAULT_INTERVAL,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.fetch = fetch
        self.interval = interval
        self.max_attempts = max_attempts
        self._cancelled = threading.Event()

    def cancel(self):
        self._cancelled.set()

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    def poll(self, transaction_id: Any) -> PollResult:
        attempts = 0
        transaction = None
        while attempts < self.max_attempts:
            if self._cancelled.wait(self.interval):
                return PollResult(CANCELLED, 'Status polling cancelled.', attempts, transaction)
            attempts += 1
            try:
                transaction = self.fetch(transaction_id)
                status = transaction.get('status')
            except Exception as e:
                # A failed or malformed read still uses up an attempt
                logger.warning("Status check error for %s (attempt %s): %s", transaction_id, attempts, e)
                transaction = None
                continue

            if status == SUCCESS:
                receipt = transaction.get('mpesaReceiptNumber')
                return PollResult(SUCCESS, f"Payment successful! Receipt: {receipt}", attempts, transaction)
            if status == FAILED:
                desc = transaction.get('resultDesc')
                return PollResult(FAILED, f"Payment failed: {desc}", attempts, transaction)

        return PollResult(TIMEOUT, TIMEOUT_MESSAGE, attempts, transaction)
