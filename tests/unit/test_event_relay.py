"""Unit tests for the in-process event relay"""

from dataclasses import dataclass

import pytest

from consumer_finance.infrastructure.events.relay import EventRelay


@dataclass(frozen=True)
class Ping:
    n: int


@dataclass(frozen=True)
class Pong:
    n: int


def test_handlers_run_in_registration_order():
    relay = EventRelay()
    calls = []
    relay.subscribe(Ping, lambda e: calls.append(("first", e.n)))
    relay.subscribe(Ping, lambda e: calls.append(("second", e.n)))

    assert relay.publish(Ping(1)) == 2
    assert calls == [("first", 1), ("second", 1)]


def test_dispatch_is_keyed_by_event_type():
    relay = EventRelay()
    seen = []
    relay.subscribe(Ping, seen.append)

    assert relay.publish(Pong(1)) == 0
    assert seen == []


def test_failing_handler_does_not_stop_others_or_raise():
    """Test a broken listener is absorbed and later listeners still run"""
    relay = EventRelay()
    seen = []

    def broken(event):
        raise RuntimeError("vendor outage")

    relay.subscribe(Ping, broken, name="broken")
    relay.subscribe(Ping, seen.append, name="recorder")

    assert relay.publish(Ping(7)) == 1
    assert seen == [Ping(7)]


def test_handler_retried_up_to_max_attempts():
    relay = EventRelay(max_attempts=3)
    attempts = []

    def flaky(event):
        attempts.append(event)
        if len(attempts) < 3:
            raise ConnectionError("transient")

    relay.subscribe(Ping, flaky)

    assert relay.publish(Ping(1)) == 1
    assert len(attempts) == 3


def test_handler_gives_up_after_max_attempts():
    relay = EventRelay(max_attempts=2)
    attempts = []

    def always_fails(event):
        attempts.append(event)
        raise RuntimeError("down")

    relay.subscribe(Ping, always_fails)

    assert relay.publish(Ping(1)) == 0
    assert len(attempts) == 2


def test_handlers_for_lists_names():
    relay = EventRelay()
    relay.subscribe(Ping, lambda e: None, name="principal_account")
    relay.subscribe(Ping, lambda e: None, name="vendor_accounts")
    assert relay.handlers_for(Ping) == ["principal_account", "vendor_accounts"]
    assert relay.handlers_for(Pong) == []


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        EventRelay(max_attempts=0)
