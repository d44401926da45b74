from datetime import datetime
import pytest
from jobtrack import get_db
from jobtrack.models.job import Job
from tests.test_lifecycle_helpers import headers_for
from tests.test_utils_seed import ADMIN, BRANCH_CENTRAL, BRANCH_PARAGUAY, LAB, seed_job


def _seed(app_instance):
    with app_instance.app_context():
        session = get_db()
        seed_job(session, 'C-1', created_at=datetime(2026, 3, 2, 9, 0), status=Job.STATUS_COMPLETED, history=[
            (Job.STATUS_PENDING_IN_BRANCH, datetime(2026, 3, 2, 9, 0)),
            (Job.STATUS_SENT_TO_LAB, datetime(2026, 3, 2, 10, 0)),
            (Job.STATUS_COMPLETED, datetime(2026, 3, 2, 16, 0)),
        ])
        seed_job(session, 'P-1', branch=BRANCH_PARAGUAY, priority=Job.PRIORITY_REPEAT,
                 created_at=datetime(2026, 3, 20, 9, 0))
        seed_job(session, 'C-2', created_at=datetime(2026, 2, 10, 9, 0))
        seed_job(session, '3001', job_type=Job.TYPE_REPAIR, created_at=datetime(2026, 3, 5, 9, 0))


def test_stats_excludes_repairs_by_default(client, app_instance):
    _seed(app_instance)
    headers = headers_for(app_instance, ADMIN)
    body = client.get('/reports/stats?start_date=2026-03-01&end_date=2026-03-31', headers=headers).get_json()
    assert body['current']['total_jobs'] == 2
    assert body['current']['average_cycle_time'] == pytest.approx(6.0)
    assert body['current']['repetition_rate'] == pytest.approx(50.0)
    assert 'previous' not in body
    body = client.get('/reports/stats?start_date=2026-03-01&end_date=2026-03-31&include_repairs=true', headers=headers).get_json()
    assert body['current']['total_jobs'] == 3


def test_stats_comparison_window(client, app_instance):
    _seed(app_instance)
    headers = headers_for(app_instance, ADMIN)
    body = client.get('/reports/stats?start_date=2026-03-01&end_date=2026-03-31&compare=true', headers=headers).get_json()
    assert body['previous_range'] == {'start_date': '2026-01-29T00:00:00.000Z', 'end_date': '2026-02-28T23:59:59.999Z'}
    assert body['previous']['total_jobs'] == 1
    assert body['deltas']['total_jobs'] == pytest.approx(100.0)
    assert body['deltas']['repetition_rate'] is None
    assert body['deltas']['average_cycle_time'] is None


def test_comparison_requires_both_dates(client, app_instance):
    resp = client.get('/reports/stats?start_date=2026-03-01&compare=true', headers=headers_for(app_instance, ADMIN))
    assert resp.status_code == 400


def test_branch_stats_are_scoped(client, app_instance):
    _seed(app_instance)
    body = client.get('/reports/stats', headers=headers_for(app_instance, BRANCH_CENTRAL)).get_json()
    assert body['current']['jobs_by_branch'] == {'Casa central': 2}


def test_dashboards_are_admin_and_lab_only(client, app_instance):
    _seed(app_instance)
    assert client.get('/reports/system-health', headers=headers_for(app_instance, BRANCH_CENTRAL)).status_code == 403
    health = client.get('/reports/system-health', headers=headers_for(app_instance, LAB)).get_json()
    assert set(health) == {'pending_receipt_in_lab', 'active_alerts', 'max_lab_age_hours', 'overdue_jobs'}
    assert health['active_alerts'] == 1
    summary = client.get('/reports/lab-summary', headers=headers_for(app_instance, ADMIN)).get_json()
    assert summary['by_status'][Job.STATUS_COMPLETED] == 1
