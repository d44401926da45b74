from __future__ import annotations
"""Transaction boundary for read-modify-write operations.

`run_in_transaction(session, work)` calls `work()` (which must re-read everything it
touches), commits, and maps store failures onto the domain error taxonomy:

  StaleDataError   -> rollback, re-run work() up to `retries` times, then Conflict
  IntegrityError   -> rollback, Conflict (duplicate key or unique index)
  DBAPIError       -> rollback, StoreUnavailable (never retried)
  HTTPException    -> rollback, re-raised unchanged
"""
import logging
from contextlib import contextmanager
from typing import Callable, Optional, TypeVar
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.exceptions import HTTPException
from jobtrack.errors import Conflict, StoreUnavailable

log = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_RETRIES = 3


def _configured_retries() -> int:
    try:
        from flask import current_app
        return int(current_app.config.get('TRANSITION_CONFLICT_RETRIES', DEFAULT_RETRIES))
    except RuntimeError:  # outside an application context
        return DEFAULT_RETRIES


def run_in_transaction(session, work: Callable[[], T], *, entity_id: Optional[str] = None, retries: Optional[int] = None) -> T:
    if retries is None:
        retries = _configured_retries()
    attempt = 0
    while True:
        try:
            result = work()
            session.commit()
            return result
        except StaleDataError as e:
            session.rollback()
            attempt += 1
            if attempt > retries:
                raise Conflict('Entity was modified concurrently; retry the request', entity_id=entity_id) from e
            log.warning('Version conflict on %s, retrying (%d/%d)', entity_id, attempt, retries)
        except IntegrityError as e:
            session.rollback()
            raise Conflict('Conflicts with an existing record', entity_id=entity_id) from e
        except DBAPIError as e:
            session.rollback()
            log.error('Store failure on %s: %s', entity_id, e)
            raise StoreUnavailable('Persistence layer unavailable', entity_id=entity_id) from e
        except HTTPException:
            session.rollback()
            raise


@contextmanager
def read_guard(entity_id: Optional[str] = None):
    """Map store failures during reads onto StoreUnavailable."""
    try:
        yield
    except DBAPIError as e:
        log.error('Store failure on read %s: %s', entity_id, e)
        raise StoreUnavailable('Persistence layer unavailable', entity_id=entity_id) from e
