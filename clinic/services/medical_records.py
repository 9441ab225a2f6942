"""
Medical record lifecycle.

Records move draft -> completed -> reviewed; an amendment reopens a
completed or reviewed record for editing and drops its signature.
Doctors only ever see and touch records written under their own
profile; admins see everything.
"""
import logging
from collections import Counter

from django.db import transaction
from django.db.models import Count, Q
from rest_framework.exceptions import NotFound, PermissionDenied

from clinic.exceptions import BusinessRuleError, Conflict
from clinic.models import Appointment, MedicalRecord
from clinic.services.audit import log_action
from clinic.services.doctors import doctor_for_user

logger = logging.getLogger(__name__)


def scope_records(user, qs=None):
    """Restrict a record queryset to what ``user`` may read."""
    qs = MedicalRecord.objects.all() if qs is None else qs
    if user.role == 'admin':
        return qs
    own = doctor_for_user(user)
    return qs.filter(doctor=own) if own else qs.none()


def ensure_can_access(user, record: MedicalRecord) -> None:
    if user.role == 'admin':
        return
    own = doctor_for_user(user)
    if own is None or record.doctor_id != own.pk:
        raise PermissionDenied('You can only access your own medical records.')


def filter_records(user, *, patient_id=None, doctor_id=None, status=None, diagnosis=None,
                   date_from=None, date_to=None):
    qs = scope_records(user).select_related('patient', 'doctor')
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if doctor_id:
        qs = qs.filter(doctor_id=doctor_id)
    if status:
        qs = qs.filter(record_status=status)
    if diagnosis:
        qs = qs.filter(Q(diagnosis_primary__icontains=diagnosis) | Q(diagnosis_secondary__icontains=diagnosis))
    if date_from:
        qs = qs.filter(consultation_date__gte=date_from)
    if date_to:
        qs = qs.filter(consultation_date__lte=date_to)
    return qs.order_by('-consultation_date', '-created_at')


def record_for_appointment(user, appointment_id) -> MedicalRecord:
    record = MedicalRecord.objects.select_related('patient', 'doctor').filter(appointment_id=appointment_id).first()
    if record is None:
        raise NotFound('No medical record for this appointment.')
    ensure_can_access(user, record)
    return record


@transaction.atomic
def create_record(actor, data: dict) -> MedicalRecord:
    appointment = Appointment.objects.select_related('patient', 'doctor').filter(pk=data.pop('appointment_id')).first()
    if appointment is None:
        raise NotFound('Appointment not found.')
    if actor.role == 'doctor':
        own = doctor_for_user(actor)
        if own is None or appointment.doctor_id != own.pk:
            raise PermissionDenied('You can only write records for your own appointments.')
    if MedicalRecord.objects.filter(appointment=appointment).exists():
        raise Conflict('This appointment already has a medical record.')
    data.pop('patient', None)
    data.pop('doctor', None)
    record = MedicalRecord.objects.create(
        appointment=appointment,
        patient=appointment.patient,
        doctor=appointment.doctor,
        created_by=actor,
        updated_by=actor,
        **data,
    )
    log_action(user=actor, action='record_create', object_type='medical_record', object_id=record.pk,
               detail={'appointment': str(appointment.pk)})
    logger.info('medical record %s created for appointment %s', record.pk, appointment.pk)
    return record


def update_record(actor, record: MedicalRecord, data: dict) -> MedicalRecord:
    ensure_can_access(actor, record)
    if not record.can_be_edited():
        raise BusinessRuleError(f'A {record.record_status} record cannot be edited; amend it first.')
    for k, v in data.items():
        setattr(record, k, v)
    record.updated_by = actor
    record.save()
    log_action(user=actor, action='record_update', object_type='medical_record', object_id=record.pk,
               detail={'fields': sorted(data)})
    return record


def complete_record(actor, record: MedicalRecord) -> MedicalRecord:
    ensure_can_access(actor, record)
    if not record.can_be_edited():
        raise BusinessRuleError(f'Cannot complete a {record.record_status} record.')
    record.complete()
    record.updated_by = actor
    record.save()
    log_action(user=actor, action='record_complete', object_type='medical_record', object_id=record.pk)
    return record


def sign_record(actor, record: MedicalRecord, signature: str = '') -> MedicalRecord:
    if actor.role != 'doctor':
        raise PermissionDenied('Only doctors can sign medical records.')
    ensure_can_access(actor, record)
    if not record.is_complete():
        raise BusinessRuleError('Only completed records can be signed.')
    if record.signature_timestamp:
        raise BusinessRuleError('Record is already signed.')
    record.sign(signature or record.doctor.signature or f'{record.doctor.name} CRM {record.doctor.crm}')
    record.save(update_fields=['digital_signature', 'signature_timestamp', 'updated_at'])
    log_action(user=actor, action='record_sign', object_type='medical_record', object_id=record.pk)
    return record


def review_record(actor, record: MedicalRecord) -> MedicalRecord:
    if record.record_status != 'completed':
        raise BusinessRuleError('Only completed records can be reviewed.')
    record.review(actor)
    record.save()
    log_action(user=actor, action='record_review', object_type='medical_record', object_id=record.pk)
    return record


def amend_record(actor, record: MedicalRecord) -> MedicalRecord:
    ensure_can_access(actor, record)
    if not record.is_complete():
        raise BusinessRuleError('Only completed or reviewed records can be amended.')
    record.amend()
    record.updated_by = actor
    record.save()
    log_action(user=actor, action='record_amend', object_type='medical_record', object_id=record.pk)
    logger.info('medical record %s reopened for amendment by %s', record.pk, actor.email)
    return record


def add_attachment(actor, record: MedicalRecord, attachment: dict) -> dict:
    ensure_can_access(actor, record)
    att = record.add_attachment({**attachment, 'uploaded_by': str(actor.pk)})
    record.save(update_fields=['attachments', 'updated_at'])
    log_action(user=actor, action='record_attachment_add', object_type='medical_record', object_id=record.pk,
               detail={'filename': att['filename']})
    return att


def remove_attachment(actor, record: MedicalRecord, filename: str) -> None:
    ensure_can_access(actor, record)
    if not record.remove_attachment(filename):
        raise NotFound('Attachment not found.')
    record.save(update_fields=['attachments', 'updated_at'])
    log_action(user=actor, action='record_attachment_remove', object_type='medical_record', object_id=record.pk,
               detail={'filename': filename})


def top_diagnoses(qs, limit: int = 10) -> list[dict]:
    rows = (qs.exclude(diagnosis_primary='').values('diagnosis_primary')
            .annotate(n=Count('id')).order_by('-n', 'diagnosis_primary')[:limit])
    return [{'diagnosis': r['diagnosis_primary'], 'count': r['n']} for r in rows]


def record_statistics(qs=None) -> dict:
    qs = MedicalRecord.objects.all() if qs is None else qs
    by_status = {r['record_status']: r['n'] for r in qs.values('record_status').annotate(n=Count('id'))}
    codes = Counter(code for row in qs.values_list('icd10_codes', flat=True) for code in (row or []))
    return {
        'total': sum(by_status.values()),
        'by_status': {s: by_status.get(s, 0) for s, _ in MedicalRecord.STATUS_CHOICES},
        'signed': qs.filter(signature_timestamp__isnull=False).count(),
        'top_diagnoses': top_diagnoses(qs),
        'top_icd10_codes': [{'code': c, 'count': n} for c, n in codes.most_common(10)],
    }
