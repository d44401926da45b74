from datetime import datetime, timedelta
from jobtrack import get_db
from jobtrack.config.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, normalize_pagination
from tests.test_lifecycle_helpers import headers_for
from tests.test_utils_seed import ADMIN, LAB, seed_job


def _seed(app_instance, n):
    with app_instance.app_context():
        session = get_db()
        for i in range(n):
            seed_job(session, f'C-{i:03d}', created_at=datetime(2026, 1, 1) + timedelta(minutes=i))


def test_page_meta(client, app_instance):
    _seed(app_instance, 5)
    body = client.get('/jobs?sort=id_asc&page=2&page_size=2', headers=headers_for(app_instance, ADMIN)).get_json()
    assert [j['id'] for j in body['data']] == ['C-002', 'C-003']
    assert body['pagination'] == {'total': 5, 'page': 2, 'page_size': 2, 'returned': 2}


def test_default_page_size(client, app_instance):
    _seed(app_instance, DEFAULT_PAGE_SIZE + 2)
    body = client.get('/jobs', headers=headers_for(app_instance, ADMIN)).get_json()
    assert body['pagination']['returned'] == DEFAULT_PAGE_SIZE
    assert body['pagination']['total'] == DEFAULT_PAGE_SIZE + 2


def test_unpaginated_mode_returns_full_set(client, app_instance):
    _seed(app_instance, DEFAULT_PAGE_SIZE + 2)
    headers = headers_for(app_instance, ADMIN)
    body = client.get('/jobs?paginate=false&page_size=1', headers=headers).get_json()
    assert body['pagination']['page_size'] is None
    assert body['pagination']['returned'] == body['pagination']['total'] == DEFAULT_PAGE_SIZE + 2
    export = client.get('/jobs/export', headers=headers_for(app_instance, LAB)).get_json()
    assert export['pagination']['total'] == DEFAULT_PAGE_SIZE + 2
    assert export['pagination']['page_size'] is None


def test_bad_page_values(client, app_instance):
    assert client.get('/jobs?page=uno', headers=headers_for(app_instance, ADMIN)).status_code == 400


def test_normalize_pagination_clamps():
    assert normalize_pagination(None, None) == (1, DEFAULT_PAGE_SIZE)
    assert normalize_pagination('0', '5000') == (1, MAX_PAGE_SIZE)
    assert normalize_pagination(3, 0) == (3, 1)
