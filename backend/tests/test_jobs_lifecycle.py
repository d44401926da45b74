from datetime import timedelta
from jobtrack import get_db
from jobtrack.constants.roles import ROLE_BRANCH
from jobtrack.models.history import KIND_BRANCH_TRANSFERRED, KIND_DESCRIPTION_EDITED, KIND_PRIORITY_CHANGED, KIND_STATUS_CHANGED
from jobtrack.models.job import Job
from jobtrack.services.policy import Actor
from jobtrack.utils.clock import isoformat, utcnow
from tests.test_lifecycle_helpers import assert_transition, create_resource_and_assert, headers_for
from tests.test_utils_seed import ADMIN, BRANCH_CENTRAL, BRANCH_PARAGUAY, LAB, seed_job

BRANCH_X = Actor(id='5', username='Paso del Bosque', role=ROLE_BRANCH)


def test_branch_sends_then_cannot_receive_for_lab(client, app_instance):
    headers = headers_for(app_instance, BRANCH_X)
    job = create_resource_and_assert(client, '/jobs', {'job_number': '1', 'description': 'Lentes'}, headers,
                                     expected_initial_status=Job.STATUS_PENDING_IN_BRANCH)
    assert job['id'] == 'X-1'
    assert_transition(client, '/jobs/X-1/transition', headers, Job.STATUS_SENT_TO_LAB)
    resp = client.post('/jobs/X-1/transition', json={'status': Job.STATUS_RECEIVED_BY_LAB}, headers=headers)
    assert resp.status_code == 403
    err = resp.get_json()['error']
    assert err['entity_id'] == 'X-1'
    assert err['attempted_status'] == Job.STATUS_RECEIVED_BY_LAB


def test_full_cycle_through_lab(client, app_instance):
    branch = headers_for(app_instance, BRANCH_CENTRAL)
    lab = headers_for(app_instance, LAB)
    create_resource_and_assert(client, '/jobs', {'job_number': '1042'}, branch)
    url = '/jobs/C-1042/transition'
    assert_transition(client, url, branch, Job.STATUS_SENT_TO_LAB)
    assert_transition(client, url, lab, Job.STATUS_RECEIVED_BY_LAB)
    assert_transition(client, url, lab, Job.STATUS_COMPLETED)
    assert_transition(client, url, lab, Job.STATUS_SENT_TO_BRANCH)
    assert_transition(client, url, branch, Job.STATUS_RECEIVED_BY_BRANCH)
    history = client.get('/jobs/C-1042/history', headers=branch).get_json()['data']
    assert [h['status'] for h in history] == [
        Job.STATUS_RECEIVED_BY_BRANCH, Job.STATUS_SENT_TO_BRANCH, Job.STATUS_COMPLETED,
        Job.STATUS_RECEIVED_BY_LAB, Job.STATUS_SENT_TO_LAB, Job.STATUS_PENDING_IN_BRANCH,
    ]
    assert history[0]['updated_by'] == 'Casa central'
    assert history[1]['updated_by'] == 'laboratorio'


def test_skipping_a_step_is_invalid(client, app_instance):
    lab = headers_for(app_instance, LAB)
    with app_instance.app_context():
        seed_job(get_db(), 'C-1', status=Job.STATUS_SENT_TO_LAB)
    resp = client.post('/jobs/C-1/transition', json={'status': Job.STATUS_COMPLETED}, headers=lab)
    assert resp.status_code == 400


def test_admin_override_sets_any_status(client, app_instance):
    admin = headers_for(app_instance, ADMIN)
    with app_instance.app_context():
        seed_job(get_db(), 'C-1', status=Job.STATUS_RECEIVED_BY_BRANCH)
    assert_transition(client, '/jobs/C-1/transition', admin, Job.STATUS_PENDING_IN_BRANCH)


def test_round_trip_create_then_get(client, app_instance):
    branch = headers_for(app_instance, BRANCH_CENTRAL)
    created = create_resource_and_assert(client, '/jobs', {'job_number': '77', 'description': 'Armazon roto'}, branch)
    fetched = client.get('/jobs/C-77', headers=branch).get_json()
    for key in ('id', 'description', 'branch_id', 'branch_name', 'status', 'priority', 'priority_message', 'job_type', 'created_at'):
        assert fetched[key] == created[key]
    assert fetched['linked_spare_part'] is None
    assert len(fetched['history']) == 1
    assert client.head('/jobs/C-77', headers=branch).status_code == 200


def test_repair_ids_keep_number_and_admin_names_branch(client, app_instance):
    admin = headers_for(app_instance, ADMIN)
    body = create_resource_and_assert(client, '/jobs', {
        'job_number': '5501', 'job_type': Job.TYPE_REPAIR, 'branch_id': '2', 'branch_name': 'Paraguay',
    }, admin)
    assert body['id'] == '5501'
    assert body['branch_id'] == '2'
    missing = client.post('/jobs', json={'job_number': '5502'}, headers=admin)
    assert missing.status_code == 400


def test_duplicate_id_is_conflict(client, app_instance):
    branch = headers_for(app_instance, BRANCH_CENTRAL)
    create_resource_and_assert(client, '/jobs', {'job_number': '9'}, branch)
    resp = client.post('/jobs', json={'job_number': '9'}, headers=branch)
    assert resp.status_code == 409
    assert resp.get_json()['error']['entity_id'] == 'C-9'


def test_lab_cannot_create_jobs(client, app_instance):
    resp = client.post('/jobs', json={'job_number': '1'}, headers=headers_for(app_instance, LAB))
    assert resp.status_code == 403


def test_same_status_is_a_noop(client, app_instance):
    branch = headers_for(app_instance, BRANCH_CENTRAL)
    created = create_resource_and_assert(client, '/jobs', {'job_number': '10'}, branch)
    resp = client.post('/jobs/C-10/transition', json={'status': Job.STATUS_PENDING_IN_BRANCH}, headers=branch)
    assert resp.status_code == 200
    assert resp.get_json()['updated_at'] == created['updated_at']
    resp = client.patch('/jobs/C-10', json={'priority': Job.PRIORITY_NORMAL, 'description': ''}, headers=branch)
    assert resp.get_json()['updated_at'] == created['updated_at']
    assert len(client.get('/jobs/C-10/history', headers=branch).get_json()['data']) == 1


def test_transition_appends_one_entry_stamped_at_updated_at(client, app_instance):
    branch = headers_for(app_instance, BRANCH_CENTRAL)
    future = utcnow() + timedelta(days=1)
    with app_instance.app_context():
        seed_job(get_db(), 'C-11', history=[(Job.STATUS_PENDING_IN_BRANCH, future)])
    body = client.post('/jobs/C-11/transition', json={'status': Job.STATUS_SENT_TO_LAB}, headers=branch).get_json()
    history = client.get('/jobs/C-11/history', headers=branch).get_json()['data']
    assert len(history) == 2
    assert history[0]['kind'] == KIND_STATUS_CHANGED
    assert history[0]['timestamp'] == body['updated_at'] == isoformat(future)


def test_priority_change_and_reset_clears_message(client, app_instance):
    lab = headers_for(app_instance, LAB)
    with app_instance.app_context():
        seed_job(get_db(), 'C-12', status=Job.STATUS_RECEIVED_BY_LAB)
    body = client.patch('/jobs/C-12', json={'priority': Job.PRIORITY_URGENT, 'priority_message': 'Cliente viaja'}, headers=lab).get_json()
    assert body['priority'] == Job.PRIORITY_URGENT
    assert body['priority_message'] == 'Cliente viaja'
    body = client.patch('/jobs/C-12', json={'priority': Job.PRIORITY_NORMAL}, headers=lab).get_json()
    assert body['priority_message'] == ''
    history = client.get('/jobs/C-12/history', headers=lab).get_json()['data']
    assert [h['kind'] for h in history[:2]] == [KIND_PRIORITY_CHANGED, KIND_PRIORITY_CHANGED]
    assert history[1]['label'] == 'PRIORIDAD CAMBIADA A URGENTE'
    assert history[1]['status'] is None
    assert history[1]['details'] == {'to': Job.PRIORITY_URGENT, 'message': 'Cliente viaja'}


def test_field_permissions(client, app_instance):
    lab = headers_for(app_instance, LAB)
    branch = headers_for(app_instance, BRANCH_CENTRAL)
    admin = headers_for(app_instance, ADMIN)
    with app_instance.app_context():
        seed_job(get_db(), 'C-13')
    assert client.patch('/jobs/C-13', json={'description': 'nuevo'}, headers=lab).status_code == 403
    assert client.patch('/jobs/C-13', json={'branch_id': '2', 'branch_name': 'Paraguay'}, headers=branch).status_code == 403
    assert client.patch('/jobs/C-13', json={'job_type': Job.TYPE_REPAIR}, headers=branch).status_code == 403
    assert client.patch('/jobs/C-13', json={'description': 'nuevo'}, headers=branch).status_code == 200
    moved = client.patch('/jobs/C-13', json={'branch_id': '2', 'branch_name': 'Paraguay'}, headers=admin)
    assert moved.status_code == 200
    assert moved.get_json()['branch_name'] == 'Paraguay'
    kinds = [h['kind'] for h in client.get('/jobs/C-13/history', headers=admin).get_json()['data']]
    assert kinds[:2] == [KIND_BRANCH_TRANSFERRED, KIND_DESCRIPTION_EDITED]
    # The job now belongs to Paraguay
    assert client.get('/jobs/C-13', headers=branch).status_code == 403
    assert client.get('/jobs/C-13', headers=headers_for(app_instance, BRANCH_PARAGUAY)).status_code == 200


def test_unknown_fields_are_rejected(client, app_instance):
    admin = headers_for(app_instance, ADMIN)
    with app_instance.app_context():
        seed_job(get_db(), 'C-14')
    resp = client.patch('/jobs/C-14', json={'colour': 'red'}, headers=admin)
    assert resp.status_code == 400


def test_delete_is_admin_only_and_removes_history(client, app_instance):
    admin = headers_for(app_instance, ADMIN)
    branch = headers_for(app_instance, BRANCH_CENTRAL)
    with app_instance.app_context():
        seed_job(get_db(), 'C-15')
    assert client.delete('/jobs/C-15', headers=branch).status_code == 403
    assert client.delete('/jobs/C-15', headers=admin).status_code == 204
    assert client.get('/jobs/C-15', headers=admin).status_code == 404
    with app_instance.app_context():
        from jobtrack.models.history import JobHistoryEntry
        assert get_db().query(JobHistoryEntry).filter_by(job_id='C-15').count() == 0
