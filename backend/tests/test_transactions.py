import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError
from jobtrack.errors import Conflict, InvalidInput, StoreUnavailable
from jobtrack.utils.transactions import read_guard, run_in_transaction


class FakeSession:
    def __init__(self):
        self.commits = 0
        self.rollbacks = 0

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


def test_stale_data_is_retried_then_succeeds():
    session = FakeSession()
    attempts = []

    def work():
        attempts.append(1)
        if len(attempts) < 3:
            raise StaleDataError('version mismatch')
        return 'ok'

    assert run_in_transaction(session, work, entity_id='C-1', retries=3) == 'ok'
    assert len(attempts) == 3
    assert session.rollbacks == 2
    assert session.commits == 1


def test_stale_data_exhausts_retries_as_conflict():
    session = FakeSession()
    attempts = []

    def work():
        attempts.append(1)
        raise StaleDataError('version mismatch')

    with pytest.raises(Conflict) as exc:
        run_in_transaction(session, work, entity_id='C-1', retries=2)
    assert len(attempts) == 3
    assert exc.value.context == {'entity_id': 'C-1'}


def test_integrity_error_is_conflict_without_retry():
    session = FakeSession()

    def work():
        raise IntegrityError('INSERT', {}, Exception('UNIQUE constraint failed'))

    with pytest.raises(Conflict):
        run_in_transaction(session, work, entity_id='C-1')
    assert session.rollbacks == 1


def test_store_failure_is_never_retried():
    session = FakeSession()
    attempts = []

    def work():
        attempts.append(1)
        raise OperationalError('UPDATE', {}, Exception('database is locked'))

    with pytest.raises(StoreUnavailable) as exc:
        run_in_transaction(session, work, entity_id='C-1', retries=5)
    assert len(attempts) == 1
    assert exc.value.code == 503


def test_domain_errors_roll_back_and_propagate():
    session = FakeSession()

    def work():
        raise InvalidInput('bad', entity_id='C-1')

    with pytest.raises(InvalidInput):
        run_in_transaction(session, work)
    assert session.rollbacks == 1
    assert session.commits == 0


def test_read_guard_maps_store_errors():
    with pytest.raises(StoreUnavailable):
        with read_guard('C-1'):
            raise OperationalError('SELECT', {}, Exception('gone'))
