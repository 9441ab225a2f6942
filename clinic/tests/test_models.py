from datetime import date, timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from clinic.models import Appointment, HealthInsurance, Patient, Payment, User

from .helpers import make_appointment, make_user

pytestmark = pytest.mark.django_db


def test_user_email_is_normalised_and_used_as_username():
    user = make_user('Mixed.Case@Clinic.TEST', User.ROLE_DOCTOR)
    assert user.email == 'mixed.case@clinic.test'
    assert user.username == user.email


def test_role_levels():
    admin = User(role=User.ROLE_ADMIN)
    desk = User(role=User.ROLE_RECEPTIONIST)
    assert admin.has_role(User.ROLE_DOCTOR)
    assert not desk.has_role(User.ROLE_DOCTOR)
    assert desk.has_role(User.ROLE_RECEPTIONIST)


def test_lock_expires(settings, admin_user):
    settings.LOGIN_MAX_ATTEMPTS = 2
    admin_user.register_failed_login()
    assert not admin_user.is_locked()
    admin_user.register_failed_login()
    assert admin_user.is_locked()

    admin_user.locked_until = timezone.now() - timedelta(seconds=1)
    admin_user.save()
    assert not admin_user.is_locked()
    # an expired lock starts a fresh count
    admin_user.register_failed_login()
    assert admin_user.login_attempts == 1


def test_password_reset_token_is_stored_hashed(admin_user):
    raw = admin_user.create_password_reset_token()
    assert len(raw) == 64
    assert admin_user.password_reset_token != raw
    assert admin_user.password_reset_expires > timezone.now()


def test_insurance_validity():
    ins = HealthInsurance(name='Plan', is_active=True)
    assert ins.is_valid()
    ins.contract_end_date = timezone.localdate() - timedelta(days=1)
    assert not ins.is_valid()


def test_insurance_shares_never_go_negative():
    ins = HealthInsurance(name='Plan', reimbursement_percentage=Decimal('100'), copayment_amount=Decimal('500'))
    split = ins.calculate_consultation_value('100')
    assert split['insurance_pays'] == Decimal('0.00')
    assert split['patient_pays'] == Decimal('500.00')


def test_doctor_working_hours(doctor):
    assert doctor.is_available_on_day('Monday')
    assert not doctor.is_available_on_day('sunday')
    assert doctor.is_time_within_working_hours('monday', '08:00')
    assert doctor.is_time_within_working_hours('monday', '17:59:00')
    assert not doctor.is_time_within_working_hours('monday', '18:00')


def test_payment_balances(patient, doctor):
    appt = make_appointment(patient, doctor)
    payment = Payment(appointment=appt, patient=patient, amount=Decimal('300.00'), discount=Decimal('30.00'),
                      installments=3, due_date=timezone.localdate() - timedelta(days=1), payment_method='cash')
    payment.compute_installment_value()
    assert payment.net_amount() == Decimal('270.00')
    assert payment.installment_value == Decimal('90.00')
    assert payment.is_overdue()
    payment.process(Decimal('270.00'), None)
    assert payment.payment_status == 'paid'
    assert payment.remaining_balance() == Decimal('0.00')
    assert not payment.is_overdue()


def test_receipt_numbers_use_month_prefix():
    numbers = {Payment.generate_receipt_number() for _ in range(5)}
    assert all(n.startswith(timezone.localdate().strftime('REC-%Y%m-')) for n in numbers)


def test_appointment_helpers(patient, doctor):
    appt = make_appointment(patient, doctor)
    assert appt.can_be_cancelled()
    assert not appt.is_past()
    appt.status = Appointment.STATUS_COMPLETED
    assert not appt.can_be_cancelled()


def test_patient_formatted_address():
    p = Patient(address_street='Rua A', address_number='10', address_city='Campinas', address_state='SP',
                address_zip='13000-000', birth_date=date(2000, 1, 1))
    assert p.formatted_address() == 'Rua A, 10, Campinas - SP, 13000-000'


def test_ensure_test_users_is_idempotent():
    out = StringIO()
    call_command('ensure_test_users', '--password', 'demo-pass', stdout=out)
    call_command('ensure_test_users', '--password', 'demo-pass', stdout=out)
    assert User.objects.filter(email__endswith='@clinic.test').count() == 3
    assert User.objects.get(email='doctor@clinic.test').check_password('demo-pass')


def test_populate_data_seeds_a_consistent_clinic():
    call_command('populate_data', stdout=StringIO())
    assert Patient.objects.count() == 6
    completed = Appointment.objects.filter(status=Appointment.STATUS_COMPLETED)
    assert all(a.payment_status == 'paid' for a in completed)
    assert all(hasattr(a, 'medical_record') for a in completed)
