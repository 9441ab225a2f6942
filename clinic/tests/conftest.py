from decimal import Decimal

import pytest
from django.core.cache import cache

from clinic.models import HealthInsurance, User

from .helpers import client_for, make_doctor, make_patient, make_user


@pytest.fixture(autouse=True)
def _isolated(settings):
    # throttles and cached reports live in the cache
    cache.clear()
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    settings.SMS_PROVIDER = 'console'
    yield
    cache.clear()


@pytest.fixture
def admin_user(db):
    return make_user('admin@clinic.test', User.ROLE_ADMIN, name='Clinic Admin')


@pytest.fixture
def doctor_user(db):
    return make_user('doctor@clinic.test', User.ROLE_DOCTOR, name='Doctor Login')


@pytest.fixture
def receptionist_user(db):
    return make_user('reception@clinic.test', User.ROLE_RECEPTIONIST, name='Front Desk')


@pytest.fixture
def doctor(doctor_user):
    return make_doctor(1, user=doctor_user)


@pytest.fixture
def other_doctor(db):
    return make_doctor(2, specialty='Dermatology')


@pytest.fixture
def patient(db):
    return make_patient(1)


@pytest.fixture
def insurance(db):
    return HealthInsurance.objects.create(
        name='Unimed', code='UNI', reimbursement_percentage=Decimal('80.00'), copayment_amount=Decimal('20.00'),
    )


@pytest.fixture
def admin_client(admin_user):
    return client_for(admin_user)


@pytest.fixture
def doctor_client(doctor_user):
    return client_for(doctor_user)


@pytest.fixture
def receptionist_client(receptionist_user):
    return client_for(receptionist_user)
