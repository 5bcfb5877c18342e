"""Unit of work for ride status changes: one session, one commit."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.orm import sessionmaker

from .repositories.ride_repository import RideRepository

logger = logging.getLogger(__name__)


@contextmanager
def ride_transaction(session_factory: sessionmaker[Any]) -> Iterator[RideRepository]:
    """Yield a RideRepository on a fresh session and commit when the block exits.

    Any exception rolls the session back and propagates, so a ride refused
    for tracking keeps its stored status.
    """
    with session_factory() as session:
        repo = RideRepository(session)
        try:
            yield repo
        except Exception as e:
            session.rollback()
            logger.warning(f"Ride transaction rolled back: {type(e).__name__}")
            raise
        session.commit()
