"""Print request API tests."""

import io

import pytest

from conftest import PDF_BYTES

from printdesk.errors import NotFound
from printdesk.lifecycle.events import EventKind
from printdesk.models import PrintRequest, RequestStatus


def test_submit_print_request(requester_client, requester, org1, submit):
    response = submit(requester_client, organization_id='999')

    assert response.status_code == 201
    data = response.get_json()
    assert data['message'] == 'Print request submitted successfully'
    created = data['print_request']
    assert created['status'] == 'PENDING'
    assert created['organization_id'] == org1.id
    assert created['requester']['id'] == requester.id
    assert created['file']['filename'] == 'worksheet.pdf'
    assert created['file']['size'] == len(PDF_BYTES)
    assert created['due_at'] == '2026-01-23T09:11:00Z'
    assert created['allowed_actions'] == ['read_request', 'delete_request']

    print_request = PrintRequest.query.filter_by(requester_id=requester.id).one()
    assert print_request.file_key.startswith(f'organizations/{org1.id}/')
    assert not print_request.file_key.endswith('worksheet.pdf')


def test_same_wall_clock_from_any_client_is_one_instant(app, requester_client, submit):
    """Two clients submitting the same local value store the same UTC instant."""
    first = submit(requester_client, due_at='2026-01-23T14:41')
    second = submit(requester_client, due_at='2026-01-23T14:41:00')

    assert first.get_json()['print_request']['due_at'] == second.get_json()['print_request']['due_at']


def test_submit_room_delivery(requester_client, submit):
    response = submit(requester_client, delivery_method='ROOM_DELIVERY', delivery_room='Lab 3')

    assert response.status_code == 201
    assert response.get_json()['print_request']['delivery_room'] == 'Lab 3'


@pytest.mark.parametrize('filename', ['archive.zip', 'clip.mp4', 'setup.exe', 'funny.gif', 'notes.xyz'])
def test_submit_rejects_file_types(requester_client, submit, filename):
    response = submit(requester_client, filename=filename)

    assert response.status_code == 400
    assert 'not allowed' in response.get_json()['error'].lower()
    assert PrintRequest.query.count() == 0


def test_submit_rejects_empty_file(requester_client, submit):
    response = submit(requester_client, content=b'')

    assert response.status_code == 400
    assert response.get_json()['error'] == 'File is empty'


def test_submit_rejects_oversized_file(requester_client, submit, app):
    app.extensions['printdesk.lifecycle'].max_upload_bytes = 1024

    response = submit(requester_client, content=b'x' * 2048)

    assert response.status_code == 400
    assert 'too large' in response.get_json()['error'].lower()


def test_submit_requires_file(requester_client):
    response = requester_client.post(
        '/api/print-requests',
        data={'title': 'No file', 'copies': '1'},
        content_type='multipart/form-data'
    )

    assert response.status_code == 400


def test_submit_requires_positive_copies(requester_client, submit):
    response = submit(requester_client, copies='0')

    assert response.status_code == 400
    assert response.get_json()['code'] == 'VALIDATION_ERROR'


def test_only_requesters_submit(admin_client, operator_client, submit):
    assert submit(admin_client).status_code == 403
    assert submit(operator_client).status_code == 403


def test_submit_requires_login(client, submit):
    assert submit(client).status_code == 401


def test_list_requests_with_status_filter(requester_client, requester, make_request):
    make_request(requester)
    make_request(requester, status=RequestStatus.APPROVED)

    response = requester_client.get('/api/print-requests?status=approved')

    assert response.status_code == 200
    items = response.get_json()['print_requests']
    assert [item['status'] for item in items] == ['APPROVED']


def test_list_rejects_unknown_status(requester_client):
    response = requester_client.get('/api/print-requests?status=LOST')
    assert response.status_code == 400


def test_requester_cannot_read_someone_elses(other_requester_client, requester, make_request):
    print_request = make_request(requester)

    response = other_requester_client.get(f'/api/print-requests/{print_request.id}')

    assert response.status_code == 403
    assert response.get_json() == {'error': 'Not authorized', 'code': 'FORBIDDEN'}


def test_full_lifecycle_over_api(admin_client, operator_client, requester_client, requester, make_request):
    print_request = make_request(requester)
    url = f'/api/print-requests/{print_request.id}'

    response = admin_client.post(f'{url}/approve')
    assert response.status_code == 200
    assert response.get_json()['print_request']['allowed_actions'] == ['read_request', 'delete_request']

    response = operator_client.post(f'{url}/status', json={'status': 'IN_PROGRESS'})
    assert response.status_code == 200
    assert response.get_json()['print_request']['status'] == 'IN_PROGRESS'

    response = operator_client.post(f'{url}/status', json={'status': 'COMPLETED'})
    assert response.status_code == 200

    response = requester_client.get(url)
    assert response.get_json()['status'] == 'COMPLETED'
    assert response.get_json()['allowed_actions'] == ['read_request', 'delete_request']


def test_status_endpoint_error_codes(admin_client, operator_client, requester, make_request):
    print_request = make_request(requester, status=RequestStatus.APPROVED)
    url = f'/api/print-requests/{print_request.id}/status'

    response = operator_client.post(url, json={'status': 'COMPLETED'})
    assert response.status_code == 409
    assert response.get_json()['code'] == 'INVALID_TRANSITION'

    response = admin_client.post(url, json={'status': 'IN_PROGRESS'})
    assert response.status_code == 403

    response = operator_client.post(url, json={})
    assert response.status_code == 400


def test_reject_then_delete(admin_client, requester_client, requester, make_request, db):
    print_request = make_request(requester)
    request_id = print_request.id

    assert admin_client.post(f'/api/print-requests/{request_id}/reject').status_code == 200
    assert admin_client.post(f'/api/print-requests/{request_id}/approve').status_code == 409

    response = requester_client.delete(f'/api/print-requests/{request_id}')
    assert response.status_code == 200
    db.session.expire_all()
    assert db.session.get(PrintRequest, request_id) is None


def test_requester_cannot_delete_approved(requester_client, requester, make_request):
    print_request = make_request(requester, status=RequestStatus.APPROVED)

    response = requester_client.delete(f'/api/print-requests/{print_request.id}')

    assert response.status_code == 403


def test_preview_streams_inline(requester_client, requester, make_request):
    print_request = make_request(requester)

    response = requester_client.get(f'/api/print-requests/{print_request.id}/preview')

    assert response.status_code == 200
    assert response.mimetype == 'application/pdf'
    assert response.data == PDF_BYTES
    assert 'attachment' not in response.headers.get('Content-Disposition', '')


def test_operator_download_notifies_requester(operator_client, requester, make_request, fanout):
    print_request = make_request(requester, status=RequestStatus.APPROVED)
    listener = fanout.add_listener(requester.organization_id, requester.id, requester.role)

    response = operator_client.get(f'/api/print-requests/{print_request.id}/download')

    assert response.status_code == 200
    assert response.data == PDF_BYTES
    assert 'attachment' in response.headers['Content-Disposition']
    assert 'worksheet.pdf' in response.headers['Content-Disposition']
    assert [event.kind for event in listener.drain()] == [EventKind.FILE_DOWNLOADED]


def test_requester_cannot_use_download(requester_client, requester, make_request):
    print_request = make_request(requester, status=RequestStatus.APPROVED)

    response = requester_client.get(f'/api/print-requests/{print_request.id}/download')

    assert response.status_code == 403


def test_download_missing_artifact(operator_client, requester, make_request, engine, fanout):
    print_request = make_request(requester, status=RequestStatus.APPROVED)
    engine.storage.delete_file(print_request.file_key)
    listener = fanout.add_listener(requester.organization_id, requester.id, requester.role)

    response = operator_client.get(f'/api/print-requests/{print_request.id}/download')

    assert response.status_code == 404
    # The requester is not told about a download that never happened
    assert listener.drain() == []


def test_engine_download_of_missing_artifact_emits_nothing(engine, notifier, operator, requester, make_request):
    print_request = make_request(requester, status=RequestStatus.APPROVED)
    engine.storage.delete_file(print_request.file_key)

    with pytest.raises(NotFound):
        engine.record_download(operator, print_request.id)
    assert notifier.events == []


def test_signed_file_url(app, requester_client, requester, make_request):
    print_request = make_request(requester)

    response = requester_client.get(f'/api/print-requests/{print_request.id}/file-url')
    assert response.status_code == 200
    data = response.get_json()
    assert data['expires_in'] == app.config['FILE_URL_MAX_AGE']
    assert '/api/files/' in data['url']

    # The URL works without any session
    path = data['url'].split('localhost', 1)[1]
    response = app.test_client().get(path)
    assert response.status_code == 200
    assert response.data == PDF_BYTES


def test_signed_file_url_matches_preview(app, requester_client, requester, make_request):
    print_request = make_request(requester, filename='notes.txt')
    url = requester_client.get(f'/api/print-requests/{print_request.id}/file-url').get_json()['url']

    signed = app.test_client().get(url.split('localhost', 1)[1])
    preview = requester_client.get(f'/api/print-requests/{print_request.id}/preview')

    assert signed.status_code == preview.status_code == 200
    assert signed.mimetype == preview.mimetype == print_request.mimetype
    assert 'notes.txt' in signed.headers['Content-Disposition']


def test_signed_file_url_dies_with_request(app, requester_client, requester, make_request):
    print_request = make_request(requester)
    url = requester_client.get(f'/api/print-requests/{print_request.id}/file-url').get_json()['url']

    assert requester_client.delete(f'/api/print-requests/{print_request.id}').status_code == 200

    response = app.test_client().get(url.split('localhost', 1)[1])
    assert response.status_code == 404


def test_forged_file_token(client):
    response = client.get('/api/files/not-a-real-token')

    assert response.status_code == 404
    assert response.get_json()['code'] == 'NOT_FOUND'


def test_dashboard_stats(admin_client, operator_client, requester_client, requester, make_request):
    make_request(requester)
    make_request(requester, status=RequestStatus.APPROVED)
    make_request(requester, status=RequestStatus.COMPLETED)

    admin_stats = admin_client.get('/api/dashboard/stats').get_json()
    assert admin_stats == {
        'total': 3, 'pending': 1, 'approved': 1, 'rejected': 0, 'in_progress': 0, 'completed': 1,
    }

    operator_stats = operator_client.get('/api/dashboard/stats').get_json()
    assert operator_stats['total'] == 2
    assert operator_stats['pending'] == 0

    assert requester_client.get('/api/dashboard/stats').get_json()['total'] == 3


def test_health(client):
    response = client.get('/api/health')
    assert response.status_code == 200
    assert response.get_json() == {'status': 'ok'}


def test_unknown_route_uses_json_envelope(client):
    response = client.get('/api/nowhere')

    assert response.status_code == 404
    assert response.get_json()['code'] == 'NOT_FOUND'


def test_json_submission_without_file(requester_client):
    response = requester_client.post('/api/print-requests', json={
        'title': 'Missing file',
        'copies': 1,
        'print_format': 'SINGLE_SIDED',
        'delivery_method': 'PICKUP',
        'due_at': '2026-01-23T14:41'
    })

    assert response.status_code == 400
    assert response.get_json()['error'] == 'File is required'


def test_upload_stream_is_rewound_before_saving(requester_client, engine, submit):
    content = b'%PDF-1.4 ' + b'0' * 4096

    response = submit(requester_client, content=content)

    key = PrintRequest.query.one().file_key
    with open(engine.storage.get_file_path(key), 'rb') as stored:
        assert stored.read() == content
    assert response.get_json()['print_request']['file']['size'] == len(content)


def test_submit_uses_file_field_only(requester_client):
    response = requester_client.post(
        '/api/print-requests',
        data={
            'title': 'Wrong field',
            'copies': '1',
            'print_format': 'SINGLE_SIDED',
            'delivery_method': 'PICKUP',
            'due_at': '2026-01-23T14:41',
            'document': (io.BytesIO(PDF_BYTES), 'worksheet.pdf'),
        },
        content_type='multipart/form-data'
    )

    assert response.status_code == 400
