import pytest
from django.core import mail
from django.db import IntegrityError
from django.urls import reverse
from rest_framework.test import APIClient

from clinic.exceptions import api_exception_handler
from clinic.models import AuditEvent, User
from clinic.services import users as user_service

from .helpers import PASSWORD, make_user

pytestmark = pytest.mark.django_db


def login(client, email, password=PASSWORD):
    return client.post(reverse('login_view'), {'email': email, 'password': password}, format='json')


def test_login_returns_jwt_and_drf_token(admin_user):
    r = login(APIClient(), 'admin@clinic.test')
    assert r.status_code == 200
    data = r.data['data']
    assert data['token'] and data['jwt_access'] and data['jwt_refresh']
    assert data['user']['role'] == 'admin'
    admin_user.refresh_from_db()
    assert admin_user.last_login is not None
    assert admin_user.last_login_ip == '127.0.0.1'


def test_login_is_case_insensitive_on_email(admin_user):
    assert login(APIClient(), 'ADMIN@Clinic.test').status_code == 200


def test_both_token_kinds_authenticate(admin_user):
    data = login(APIClient(), 'admin@clinic.test').data['data']
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Token {data['token']}")
    assert client.get(reverse('me')).status_code == 200
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {data['jwt_access']}")
    r = client.get(reverse('me'))
    assert r.status_code == 200
    assert r.data['data']['email'] == 'admin@clinic.test'


def test_wrong_password_is_401_and_counted(admin_user):
    r = login(APIClient(), 'admin@clinic.test', 'wrong-password')
    assert r.status_code == 401
    assert r.data['ok'] is False
    admin_user.refresh_from_db()
    assert admin_user.login_attempts == 1
    assert AuditEvent.objects.filter(action='login', detail__result='fail').exists()


def test_unknown_email_is_401():
    assert login(APIClient(), 'nobody@clinic.test').status_code == 401


def test_five_failures_lock_the_account(admin_user):
    client = APIClient()
    codes = [login(client, 'admin@clinic.test', 'bad').status_code for _ in range(5)]
    assert codes == [401, 401, 401, 401, 423]
    # even the right password is refused while locked
    r = login(client, 'admin@clinic.test')
    assert r.status_code == 423
    assert r.data['error']['code'] == 'account_locked'
    admin_user.refresh_from_db()
    assert admin_user.is_locked()


def test_successful_login_resets_attempts(admin_user):
    client = APIClient()
    login(client, 'admin@clinic.test', 'bad')
    login(client, 'admin@clinic.test', 'bad')
    assert login(client, 'admin@clinic.test').status_code == 200
    admin_user.refresh_from_db()
    assert admin_user.login_attempts == 0


def test_inactive_account_is_403(db):
    make_user('gone@clinic.test', User.ROLE_RECEPTIONIST, is_active=False)
    assert login(APIClient(), 'gone@clinic.test').status_code == 403


def test_unauthenticated_requests_are_401(db):
    r = APIClient().get(reverse('patients'))
    assert r.status_code == 401
    assert r.data['error']['code'] == 'not_authenticated'


def test_role_is_not_taken_from_the_request(receptionist_user):
    r = APIClient().post(reverse('login_view'),
                         {'email': 'reception@clinic.test', 'password': PASSWORD, 'role': 'admin'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['user']['role'] == 'receptionist'


def test_jwt_refresh(admin_user):
    data = login(APIClient(), 'admin@clinic.test').data['data']
    r = APIClient().post(reverse('jwt_refresh'), {'refresh': data['jwt_refresh']}, format='json')
    assert r.status_code == 200
    assert r.data['data']['jwt_access']


def test_logout_blacklists_refresh_and_drops_token(admin_user):
    data = login(APIClient(), 'admin@clinic.test').data['data']
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {data['jwt_access']}")
    r = client.post(reverse('logout'), {'refresh': data['jwt_refresh']}, format='json')
    assert r.status_code == 200
    assert r.data['data']['blacklisted'] == 1
    r = APIClient().post(reverse('jwt_refresh'), {'refresh': data['jwt_refresh']}, format='json')
    assert r.status_code == 401
    token_client = APIClient()
    token_client.credentials(HTTP_AUTHORIZATION=f"Token {data['token']}")
    assert token_client.get(reverse('me')).status_code == 401


def test_change_password(admin_client, admin_user):
    url = reverse('change_password')
    r = admin_client.put(url, {'current_password': 'nope', 'new_password': 'another1'}, format='json')
    assert r.status_code == 401
    r = admin_client.put(url, {'current_password': PASSWORD, 'new_password': PASSWORD}, format='json')
    assert r.status_code == 400
    r = admin_client.put(url, {'current_password': PASSWORD, 'new_password': 'another1'}, format='json')
    assert r.status_code == 200
    admin_user.refresh_from_db()
    assert admin_user.check_password('another1')


def test_update_profile(receptionist_client, receptionist_user):
    r = receptionist_client.put(reverse('profile'), {'name': 'New Desk Name', 'phone': '11987654321'},
                                format='json')
    assert r.status_code == 200
    receptionist_user.refresh_from_db()
    assert receptionist_user.name == 'New Desk Name'


def test_forgot_password_never_reveals_accounts(admin_user):
    client = APIClient()
    r1 = client.post(reverse('forgot_password'), {'email': 'admin@clinic.test'}, format='json')
    r2 = client.post(reverse('forgot_password'), {'email': 'ghost@clinic.test'}, format='json')
    assert r1.status_code == r2.status_code == 200
    assert r1.data['message'] == r2.data['message']
    assert len(mail.outbox) == 1
    assert '/reset-password/' in mail.outbox[0].body


def test_reset_password_flow(admin_user):
    raw = user_service.request_password_reset('admin@clinic.test')
    admin_user.refresh_from_db()
    assert admin_user.password_reset_token != raw

    client = APIClient()
    url = reverse('reset_password', args=[raw])
    r = client.post(url, {'password': 'fresh-pass', 'password_confirm': 'other'}, format='json')
    assert r.status_code == 400
    r = client.post(url, {'password': 'fresh-pass', 'password_confirm': 'fresh-pass'}, format='json')
    assert r.status_code == 200
    assert login(client, 'admin@clinic.test', 'fresh-pass').status_code == 200
    # tokens are single use
    r = client.post(url, {'password': 'again-pass', 'password_confirm': 'again-pass'}, format='json')
    assert r.status_code == 400


def test_admin_only_user_management(admin_client, receptionist_client, receptionist_user):
    assert receptionist_client.get(reverse('users')).status_code == 403
    r = admin_client.post(reverse('users'), {
        'name': 'Second Desk', 'email': 'desk2@clinic.test', 'password': 'secret12', 'role': 'receptionist',
    }, format='json')
    assert r.status_code == 201
    r = admin_client.post(reverse('users'), {
        'name': 'Dup Desk', 'email': 'DESK2@clinic.test', 'password': 'secret12',
    }, format='json')
    assert r.status_code == 409

    r = admin_client.get(reverse('users'), {'role': 'receptionist'})
    assert r.data['pagination']['total'] == 2


def test_admin_cannot_deactivate_self(admin_client, admin_user):
    r = admin_client.delete(reverse('user_detail', args=[admin_user.pk]))
    assert r.status_code == 400
    r = admin_client.patch(reverse('user_toggle_status', args=[admin_user.pk]))
    assert r.status_code == 400


def test_healthz():
    r = APIClient().get('/healthz')
    assert r.status_code == 200
    assert r.json()['db'] is True


def test_metrics_are_public():
    r = APIClient().get('/metrics')
    assert r.status_code == 200
    assert b'django_http_requests' in r.content


def test_profile_hides_credentials(doctor_client, doctor):
    data = doctor_client.get(reverse('me')).data['data']
    assert data['doctor_id'] == str(doctor.pk)
    assert data['email'] == 'doctor@clinic.test'
    assert not {'password', 'password_reset_token', 'login_attempts'} & set(data)


def test_integrity_errors_answer_conflict():
    r = api_exception_handler(IntegrityError('UNIQUE constraint failed: clinic_patient.cpf'), {})
    assert r.status_code == 409
    assert r.data['error']['code'] == 'conflict'
