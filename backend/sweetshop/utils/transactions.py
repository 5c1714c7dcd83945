import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

log = logging.getLogger(__name__)

T = TypeVar("T")


@contextmanager
def smart_transaction(session: Session) -> Iterator:
    """
    Begin a unit of work on the given Session.

    If a transaction is already active, a nested SAVEPOINT is used and the
    final commit belongs to whoever opened the outer transaction. Otherwise a
    normal transaction is started and committed on exit. An exception rolls
    back whichever unit was opened here and propagates.

    Usage:
        with smart_transaction(db):
            ... DB work ...
    """
    if session.in_transaction():
        cm = session.begin_nested()
    else:
        cm = session.begin()
    with cm:
        yield


def run_with_retry(func: Callable[[], T], *, attempts: int = 3, backoff_base: float = 0.05) -> T:
    """
    Run a transactional callable, retrying on lock contention.

    OperationalError covers "database is locked" on SQLite and deadlock or
    serialization failures on server databases. The callable must open and
    close its own unit of work so that a retry starts from a clean state.
    """
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError as exc:
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            log.warning("Retrying after storage contention (%s), attempt %d in %.2fs", exc.orig, attempt + 1, delay)
            time.sleep(delay)
    raise RuntimeError("run_with_retry called with attempts < 1")
