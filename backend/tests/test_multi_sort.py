from datetime import datetime, timedelta
from jobtrack import get_db
from jobtrack.models.job import Job
from tests.test_lifecycle_helpers import headers_for
from tests.test_utils_seed import ADMIN, seed_job

BASE = datetime(2026, 5, 4, 9, 0)


def _ids(resp):
    assert resp.status_code == 200, resp.get_json()
    return [j['id'] for j in resp.get_json()['data']]


def test_id_sort_is_lexicographic(client, app_instance):
    with app_instance.app_context():
        session = get_db()
        for i, job_id in enumerate(['C-2', 'C-10', 'C-9']):
            seed_job(session, job_id, created_at=BASE + timedelta(minutes=i))
    headers = headers_for(app_instance, ADMIN)
    assert _ids(client.get('/jobs?sort=id_asc', headers=headers)) == ['C-10', 'C-2', 'C-9']
    assert _ids(client.get('/jobs?sort=id_desc', headers=headers)) == ['C-9', 'C-2', 'C-10']


def test_default_sort_is_most_recently_updated(client, app_instance):
    with app_instance.app_context():
        session = get_db()
        seed_job(session, 'C-1', created_at=BASE)
        seed_job(session, 'C-2', created_at=BASE + timedelta(hours=2))
        seed_job(session, 'C-3', created_at=BASE + timedelta(hours=1))
    assert _ids(client.get('/jobs', headers=headers_for(app_instance, ADMIN))) == ['C-2', 'C-3', 'C-1']


def test_priority_sort_ranks_repeat_over_urgent_over_normal(client, app_instance):
    with app_instance.app_context():
        session = get_db()
        seed_job(session, 'C-1', priority=Job.PRIORITY_URGENT, created_at=BASE)
        seed_job(session, 'C-2', priority=Job.PRIORITY_NORMAL, created_at=BASE + timedelta(hours=3))
        seed_job(session, 'C-3', priority=Job.PRIORITY_REPEAT, created_at=BASE)
        seed_job(session, 'C-4', priority=Job.PRIORITY_URGENT, created_at=BASE + timedelta(hours=1))
    ids = _ids(client.get('/jobs?sort=priority', headers=headers_for(app_instance, ADMIN)))
    assert ids == ['C-3', 'C-4', 'C-1', 'C-2']


def test_unknown_sort_is_rejected(client, app_instance):
    resp = client.get('/jobs?sort=colour', headers=headers_for(app_instance, ADMIN))
    assert resp.status_code == 400
