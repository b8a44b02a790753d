"""Idempotent create-or-return keyed by a natural key"""

import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from consumer_finance.domain.exceptions import IntegrityError
from consumer_finance.domain.models import LinkResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


def link_or_get(
    db: Session,
    find: Callable[[], Optional[T]],
    build: Callable[[], T],
    natural_key: str,
) -> LinkResult[T]:
    """
    Return the record for a natural key, creating it if absent.

    Flow:
    1. Look the key up; an existing record is returned without writing
    2. Otherwise insert a new record and commit it as one atomic write
    3. If the store rejects the insert as a duplicate, a concurrent caller
       won the race: roll back, read the key again and return the winner

    The reconcile read happens once. Concurrent callers therefore all
    receive the same record and none of them sees the uniqueness violation.

    Args:
        db: Session whose transaction this call commits or rolls back
        find: Looks the natural key up in ``db``
        build: Makes a new, unsaved record for the key
        natural_key: Used for logging and error messages only

    Raises:
        IntegrityError: the insert was rejected but no record exists for the key
    """
    existing = find()
    if existing is not None:
        return LinkResult(resource=existing, created=False)

    record = build()
    db.add(record)
    try:
        db.commit()
    except sa_exc.IntegrityError as e:
        db.rollback()
        logger.info("Concurrent create detected, reconciling", extra={"natural_key": natural_key})

        winner = find()
        if winner is None:
            logger.error("Reconcile read found no record", extra={"natural_key": natural_key})
            raise IntegrityError(
                f"Store rejected create for '{natural_key}' but no existing record was found"
            ) from e
        return LinkResult(resource=winner, created=False)

    return LinkResult(resource=record, created=True)
