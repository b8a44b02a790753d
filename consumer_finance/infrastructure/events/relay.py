"""In-process event relay with independently failing handlers"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, DefaultDict, List, Optional, Type

from consumer_finance.infrastructure.observability.metrics import event_handler_failure_counter

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


@dataclass
class _Subscription:
    name: str
    handler: Handler


class EventRelay:
    """
    Synchronous publish/subscribe keyed by event class.

    Delivery semantics:
    - Handlers run in registration order, in the publisher's thread.
    - Each handler gets up to ``max_attempts`` tries, so handlers must be
      idempotent (at-least-once).
    - A handler that still fails is logged and counted; the remaining
      handlers run regardless and nothing is raised to the publisher.

    Services publish only after their transaction has committed. A crash
    between commit and publish loses the in-process delivery; downstream
    reconciliation against the store closes that gap.
    """

    def __init__(self, max_attempts: int = 1):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self._subscriptions: DefaultDict[Type, List[_Subscription]] = defaultdict(list)

    def subscribe(self, event_type: Type, handler: Handler, name: Optional[str] = None) -> None:
        """Register ``handler`` for events of exactly ``event_type``"""
        label = name or getattr(handler, "__name__", None) or type(handler).__name__
        self._subscriptions[event_type].append(_Subscription(name=label, handler=handler))

    def handlers_for(self, event_type: Type) -> List[str]:
        return [sub.name for sub in self._subscriptions.get(event_type, [])]

    def publish(self, event: Any) -> int:
        """
        Deliver ``event`` to every subscriber.

        Returns:
            Number of handlers that completed successfully
        """
        event_name = type(event).__name__
        delivered = 0
        for subscription in list(self._subscriptions.get(type(event), [])):
            if self._deliver(subscription, event, event_name):
                delivered += 1
        return delivered

    def _deliver(self, subscription: _Subscription, event: Any, event_name: str) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            try:
                subscription.handler(event)
                return True
            except Exception:
                final = attempt >= self.max_attempts
                logger.error(
                    "Event handler failed",
                    exc_info=final,
                    extra={
                        "event": event_name,
                        "handler": subscription.name,
                        "attempt": attempt,
                        "final": final,
                    },
                )

        event_handler_failure_counter.labels(event=event_name, handler=subscription.name).inc()
        return False
