from datetime import date, time, timedelta
from decimal import Decimal

from django.utils import timezone
from rest_framework.test import APIClient

from clinic.models import Appointment, Doctor, Patient, User
from clinic.validators import make_cpf

PASSWORD = 'P@ssw0rd1'


def next_weekday(weekday: int, weeks_ahead: int = 1) -> date:
    """A date strictly in the future falling on ``weekday`` (0 = Monday)."""
    today = timezone.localdate()
    days = (weekday - today.weekday()) % 7 or 7
    return today + timedelta(days=days + 7 * (weeks_ahead - 1))


def make_user(email, role, **extra):
    name = extra.pop('name', email.split('@')[0] + ' user')
    return User.objects.create_user(email=email, password=PASSWORD, name=name, role=role, **extra)


def make_patient(n=1, **extra):
    data = {
        'name': f'Patient Number {n}',
        'cpf': make_cpf(f'{123456000 + n:09d}'),
        'birth_date': date(1990, 5, 17),
        'gender': 'female',
        'phone': f'119{n:08d}',
        'email': f'patient{n}@example.com',
        'preferred_contact_method': 'email',
    }
    data.update(extra)
    return Patient.objects.create(**data)


def make_doctor(n=1, user=None, **extra):
    data = {
        'name': f'Doctor Number {n}',
        'crm': f'{100000 + n}',
        'crm_state': 'SP',
        'cpf': make_cpf(f'{987654000 + n:09d}'),
        'specialty': 'Cardiology',
        'email': f'doctor{n}@example.com',
        'phone': f'118{n:08d}',
        'consultation_price': Decimal('200.00'),
        'consultation_duration': 30,
        'user': user,
    }
    data.update(extra)
    return Doctor.objects.create(**data)


def make_appointment(patient, doctor, on=None, at='10:00', **extra):
    h, m = at.split(':')
    data = {
        'patient': patient,
        'doctor': doctor,
        'appointment_date': on or next_weekday(0),
        'appointment_time': time(int(h), int(m)),
        'duration': doctor.consultation_duration,
        'price': doctor.consultation_price,
    }
    data.update(extra)
    return Appointment.objects.create(**data)


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client
