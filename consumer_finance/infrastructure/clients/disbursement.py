"""Disbursement webhook client with exponential backoff retry logic"""

import time
from typing import Any, Callable, Dict, Optional

import httpx

from consumer_finance.config import settings
from consumer_finance.infrastructure.observability.metrics import webhook_failure_counter, webhook_latency_histogram


class DisbursementClient:
    """Client for notifying the downstream disbursement service of approved loans"""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.webhook_url = webhook_url or settings.disbursement_webhook_url
        self.max_retries = max_retries if max_retries is not None else settings.webhook_max_retries
        self.backoff_base = backoff_base if backoff_base is not None else settings.webhook_backoff_base
        self.timeout = timeout or settings.http_timeout_seconds
        self._transport = transport
        self._sleep = sleep

    def send_approval_event(self, payload: Dict[str, Any]) -> None:
        """
        Send a loan approval event with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^(attempt-1))
        - Retries on 5xx/4xx responses and network failures
        - Tracks latency histogram and failure counter

        Raises:
            httpx.HTTPError: after the final failed attempt
        """
        attempt = 0
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return  # Success

                except (httpx.HTTPStatusError, httpx.RequestError):
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        # Final failure after all retries
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    self._sleep(backoff)
