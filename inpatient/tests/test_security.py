import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from inpatient.models import AuditEvent, User

pytestmark = pytest.mark.django_db


def login(client, username, password):
    r = client.post(reverse('login_view'), {'username': username, 'password': password}, format='json')
    assert r.status_code in (200, 400, 401)
    return r


def test_requests_without_credentials_are_401(api_client, bed):
    for url in (reverse('beds'), reverse('bed_detail', args=[bed.id]), reverse('occupancy_stats')):
        r = api_client.get(url)
        assert r.status_code == 401
        assert r.data['ok'] is False
        assert r.data['error']['code'] == 'unauthorized'
    r = api_client.post(reverse('allocate_bed'), {}, format='json')
    assert r.status_code == 401


def test_patient_role_is_forbidden(patient_client, bed, patient):
    r = patient_client.get(reverse('beds'))
    assert r.status_code == 403
    assert r.data['error'] == {'code': 'forbidden', 'message': 'Access denied. Admin, doctor, or staff role required'}

    r = patient_client.post(reverse('allocate_bed'),
                            {'bedId': bed.id, 'patientId': patient.id, 'admissionReason': 'self admit'}, format='json')
    assert r.status_code == 403
    bed.refresh_from_db()
    assert bed.status == 'available'


@pytest.mark.parametrize('role', ['admin', 'doctor', 'staff'])
def test_manager_roles_can_read_catalog(role):
    user = User.objects.create_user(username=f'u_{role}', password='P@ssw0rd1', role=role)
    client = APIClient()
    client.force_authenticate(user=user)
    assert client.get(reverse('beds')).status_code == 200


def test_login_returns_jwt_and_legacy_token(doctor_user):
    client = APIClient()
    r = login(client, 'doctor1', 'P@ssw0rd1')
    assert r.status_code == 200
    assert r.data['jwt_access'] and r.data['jwt_refresh'] and r.data['token']
    assert r.data['role'] == 'doctor'
    assert AuditEvent.objects.filter(action='login', user=doctor_user).exists()

    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    assert client.get(reverse('beds')).status_code == 200

    jwt_client = APIClient()
    jwt_client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['jwt_access']}")
    assert jwt_client.get(reverse('occupancy_stats')).status_code == 200


def test_bad_password_is_rejected():
    User.objects.create_user(username='staff9', password='P@ssw0rd1', role='staff')
    r = login(APIClient(), 'staff9', 'wrong')
    assert r.status_code == 400
    assert r.data['ok'] is False
    assert AuditEvent.objects.filter(action='login', detail__result='fail').exists()


def test_no_role_bypass_in_login():
    client = APIClient()
    u = User.objects.create_user(username='u1', password='P@ssw0rd1', role='patient')
    r = client.post(reverse('login_view'), {'username': 'u1', 'password': 'P@ssw0rd1', 'role': 'admin'}, format='json')
    assert r.status_code == 200
    assert r.data['role'] == 'patient'
    u.refresh_from_db()
    assert u.role == 'patient'
    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    assert client.get(reverse('beds')).status_code == 403


def test_token_of_user_without_role_is_refused():
    client = APIClient()
    User.objects.create_user(username='norole', password='P@ssw0rd1', role='')
    r = login(client, 'norole', 'P@ssw0rd1')
    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    r = client.get(reverse('beds'))
    assert r.status_code == 401


def test_refresh_and_logout(staff_user):
    client = APIClient()
    r = login(client, 'staff1', 'P@ssw0rd1')
    refresh = r.data['jwt_refresh']

    r2 = client.post(reverse('jwt_refresh_view'), {'refresh': refresh}, format='json')
    assert r2.status_code == 200
    assert r2.data['jwt_access']

    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    r3 = client.post(reverse('logout_view'), {'refresh': refresh}, format='json')
    assert r3.status_code == 200
    assert r3.data['blacklisted'] == 1

    # both credentials are revoked
    assert client.get(reverse('beds')).status_code == 401
    r4 = APIClient().post(reverse('jwt_refresh_view'), {'refresh': refresh}, format='json')
    assert r4.status_code == 401
