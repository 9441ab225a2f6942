import logging
from typing import Optional

from django.db import transaction
from django.db.models import Count, Max, Min, Q, Sum
from django.db.models.functions import ExtractDay
from django.utils import timezone
from rest_framework.exceptions import NotFound

from clinic.exceptions import BusinessRuleError, Conflict
from clinic.models import Appointment, Patient
from clinic.services.audit import log_action
from clinic.validators import only_digits

logger = logging.getLogger(__name__)


def _check_unique(cpf: Optional[str], email: Optional[str], exclude_pk=None) -> None:
    qs = Patient.objects.all()
    if exclude_pk:
        qs = qs.exclude(pk=exclude_pk)
    if cpf and qs.filter(cpf=cpf).exists():
        raise Conflict('A patient with this CPF already exists.')
    if email and qs.filter(email__iexact=email).exists():
        raise Conflict('A patient with this e-mail already exists.')


def filter_patients(*, search=None, is_active=None, health_insurance=None, gender=None,
                    sort_by='name', sort_order='asc'):
    qs = Patient.objects.all()
    if search:
        cond = Q(name__icontains=search) | Q(cpf__icontains=search) | Q(email__icontains=search)
        digits = only_digits(search)
        if digits:
            cond |= Q(phone__icontains=digits) | Q(phone__icontains=search)
        qs = qs.filter(cond)
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    if health_insurance:
        qs = qs.filter(health_insurance__icontains=health_insurance)
    if gender:
        qs = qs.filter(gender=gender)
    prefix = '-' if sort_order == 'desc' else ''
    return qs.order_by(f'{prefix}{sort_by}', 'id')


@transaction.atomic
def create_patient(actor, data: dict) -> Patient:
    _check_unique(data.get('cpf'), data.get('email'))
    patient = Patient.objects.create(**data)
    log_action(user=actor, action='patient_create', object_type='patient', object_id=patient.pk)
    logger.info('patient %s created by %s', patient.pk, getattr(actor, 'email', None))
    return patient


@transaction.atomic
def update_patient(actor, patient: Patient, data: dict) -> Patient:
    _check_unique(data.get('cpf'), data.get('email'), exclude_pk=patient.pk)
    for k, v in data.items():
        setattr(patient, k, v)
    patient.save()
    log_action(user=actor, action='patient_update', object_type='patient', object_id=patient.pk,
               detail={'fields': sorted(data)})
    return patient


def future_appointments(patient: Patient):
    return patient.appointments.filter(
        appointment_date__gte=timezone.localdate(),
        status__in=[Appointment.STATUS_SCHEDULED, Appointment.STATUS_CONFIRMED],
    )


def deactivate_patient(actor, patient: Patient) -> Patient:
    """Soft delete; refused while the patient still has upcoming bookings."""
    if future_appointments(patient).exists():
        raise BusinessRuleError('Patient has upcoming appointments; cancel them first.')
    patient.is_active = False
    patient.save(update_fields=['is_active', 'updated_at'])
    log_action(user=actor, action='patient_delete', object_type='patient', object_id=patient.pk)
    return patient


def toggle_patient_status(actor, patient: Patient) -> Patient:
    patient.is_active = not patient.is_active
    patient.save(update_fields=['is_active', 'updated_at'])
    log_action(user=actor, action='patient_toggle', object_type='patient', object_id=patient.pk,
               detail={'is_active': patient.is_active})
    return patient


def reactivate_patient(actor, patient: Patient) -> Patient:
    if patient.is_active:
        raise BusinessRuleError('Patient is already active.')
    patient.is_active = True
    patient.save(update_fields=['is_active', 'updated_at'])
    log_action(user=actor, action='patient_reactivate', object_type='patient', object_id=patient.pk)
    return patient


def add_document(actor, patient: Patient, document: dict) -> dict:
    doc = patient.add_document({**document, 'uploaded_by': getattr(actor, 'pk', None)})
    log_action(user=actor, action='patient_document_add', object_type='patient', object_id=patient.pk,
               detail={'filename': doc.get('filename')})
    return doc


def remove_document(actor, patient: Patient, filename: str) -> None:
    if not patient.remove_document(filename):
        raise NotFound('Document not found.')
    log_action(user=actor, action='patient_document_remove', object_type='patient', object_id=patient.pk,
               detail={'filename': filename})


def birthdays_in_month(month: int):
    qs = Patient.objects.filter(is_active=True, birth_date__month=month)
    return qs.annotate(birth_day=ExtractDay('birth_date')).order_by('birth_day', 'name')


def by_insurance(name: str):
    return Patient.objects.filter(is_active=True, health_insurance__icontains=name).order_by('name')


def patient_statistics() -> dict:
    today = timezone.localdate()
    active = Patient.objects.filter(is_active=True)
    by_gender = {row['gender']: row['n'] for row in active.values('gender').annotate(n=Count('id'))}
    with_insurance = active.exclude(health_insurance='').filter(
        Q(health_insurance_validity__isnull=True) | Q(health_insurance_validity__gte=today)
    ).count()
    total_active = active.count()
    return {
        'total': Patient.objects.count(),
        'active': total_active,
        'inactive': Patient.objects.filter(is_active=False).count(),
        'by_gender': {g: by_gender.get(g, 0) for g, _ in Patient.GENDER_CHOICES},
        'with_insurance': with_insurance,
        'without_insurance': total_active - with_insurance,
        'new_this_month': Patient.objects.filter(
            registration_date__year=today.year, registration_date__month=today.month
        ).count(),
    }


def patient_appointment_stats(patient: Patient) -> dict:
    """Totals, per-status counts, last visit, next booking and money spent."""
    appts = patient.appointments.all()
    by_status = {row['status']: row['n'] for row in appts.values('status').annotate(n=Count('id'))}
    today = timezone.localdate()
    last = appts.filter(status=Appointment.STATUS_COMPLETED).aggregate(d=Max('appointment_date'))['d']
    upcoming = appts.filter(
        appointment_date__gte=today,
        status__in=[Appointment.STATUS_SCHEDULED, Appointment.STATUS_CONFIRMED],
    ).aggregate(d=Min('appointment_date'))['d']
    spent = patient.payments.filter(
        payment_status__in=['paid', 'partially_paid']
    ).aggregate(total=Sum('amount_paid'))['total'] or 0
    return {
        'total_appointments': sum(by_status.values()),
        'by_status': {s: by_status.get(s, 0) for s, _ in Appointment.STATUS_CHOICES},
        'last_appointment_date': last,
        'next_appointment_date': upcoming,
        'total_spent': spent,
    }
