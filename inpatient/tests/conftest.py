import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from inpatient.models import BedSpace, Department, PatientProfile, User


@pytest.fixture(autouse=True)
def _clear_cache():
    # stats cache and throttle history live in the locmem cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def department(db):
    return Department.objects.create(name='Internal Medicine')


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(username='admin1', password='P@ssw0rd1', role=User.ROLE_ADMIN)


@pytest.fixture
def doctor_user(db, department):
    return User.objects.create_user(
        username='doctor1', password='P@ssw0rd1', role=User.ROLE_DOCTOR,
        first_name='Gregory', last_name='House', department=department,
    )


@pytest.fixture
def staff_user(db):
    return User.objects.create_user(username='staff1', password='P@ssw0rd1', role=User.ROLE_STAFF)


@pytest.fixture
def patient_user(db):
    return User.objects.create_user(
        username='patient1', password='P@ssw0rd1', role=User.ROLE_PATIENT, first_name='Ann', last_name='Lee',
    )


@pytest.fixture
def patient(patient_user):
    return PatientProfile.objects.create(user=patient_user, sex='female', phone='5550001')


@pytest.fixture
def make_patient(db):
    def _make(username):
        user = User.objects.create_user(username=username, password='P@ssw0rd1', role=User.ROLE_PATIENT)
        return PatientProfile.objects.create(user=user)
    return _make


@pytest.fixture
def make_bed(db):
    def _make(room='101', bed='A', **extra):
        extra.setdefault('type', 'general')
        return BedSpace.objects.create(room_number=room, bed_number=bed, **extra)
    return _make


@pytest.fixture
def bed(make_bed, department):
    return make_bed('101', 'A', department=department, ward='Ward A', floor=1)


@pytest.fixture
def other_bed(make_bed, department):
    return make_bed('102', 'A', department=department, ward='Ward A', floor=1)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def patient_client(patient_user):
    client = APIClient()
    client.force_authenticate(user=patient_user)
    return client
