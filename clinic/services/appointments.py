"""
Appointment booking rules and status transitions.

A booking must pass three checks: the doctor works on that weekday, the
start time falls inside the doctor's hours, and the doctor has no other
live appointment at the same date and time.  The last check is backed
by the ``unique_doctor_datetime`` constraint, so two racing requests
still end with one 409.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Count, Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound

from clinic.exceptions import BusinessRuleError, Conflict
from clinic.models import Appointment, Doctor, Patient
from clinic.services import notifications
from clinic.services.audit import log_action
from clinic.services.doctors import doctor_for_user
from clinic.validators import WEEKDAYS

logger = logging.getLogger(__name__)

# action -> (statuses it may start from, resulting status)
TRANSITIONS = {
    'confirm': ((Appointment.STATUS_SCHEDULED,), Appointment.STATUS_CONFIRMED),
    'start': ((Appointment.STATUS_SCHEDULED, Appointment.STATUS_CONFIRMED), Appointment.STATUS_IN_PROGRESS),
    'complete': (
        (Appointment.STATUS_SCHEDULED, Appointment.STATUS_CONFIRMED, Appointment.STATUS_IN_PROGRESS),
        Appointment.STATUS_COMPLETED,
    ),
    'cancel': ((Appointment.STATUS_SCHEDULED, Appointment.STATUS_CONFIRMED), Appointment.STATUS_CANCELLED),
    'no_show': ((Appointment.STATUS_SCHEDULED, Appointment.STATUS_CONFIRMED), Appointment.STATUS_NO_SHOW),
}

LOCKED_STATUSES = (Appointment.STATUS_COMPLETED, Appointment.STATUS_CANCELLED)


def weekday_name(d: date) -> str:
    return WEEKDAYS[d.weekday()]


def _hhmm(t: time) -> str:
    return t.strftime('%H:%M')


def _minutes(hhmm: str) -> int:
    h, m = hhmm.split(':')[:2]
    return int(h) * 60 + int(m)


def _clock(minutes: int) -> str:
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def filter_appointments(user, *, doctor_id=None, patient_id=None, status=None, payment_status=None,
                        date=None, date_from=None, date_to=None):
    qs = Appointment.objects.select_related('patient', 'doctor')
    own = doctor_for_user(user)
    if getattr(user, 'role', None) == 'doctor':
        qs = qs.filter(doctor=own) if own else qs.none()
    if doctor_id:
        qs = qs.filter(doctor_id=doctor_id)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if status:
        qs = qs.filter(status=status)
    if payment_status:
        qs = qs.filter(payment_status=payment_status)
    if date:
        qs = qs.filter(appointment_date=date)
    if date_from:
        qs = qs.filter(appointment_date__gte=date_from)
    if date_to:
        qs = qs.filter(appointment_date__lte=date_to)
    return qs.order_by('-appointment_date', '-appointment_time')


def get_active_doctor(doctor_id, lock: bool = False) -> Doctor:
    qs = Doctor.objects.select_for_update() if lock else Doctor.objects.all()
    doctor = qs.filter(pk=doctor_id, is_active=True).first()
    if doctor is None:
        raise NotFound('Doctor not found or inactive.')
    return doctor


def get_active_patient(patient_id) -> Patient:
    patient = Patient.objects.filter(pk=patient_id, is_active=True).first()
    if patient is None:
        raise NotFound('Patient not found or inactive.')
    return patient


def has_conflict(doctor: Doctor, on: date, at: time, exclude_pk=None) -> bool:
    qs = Appointment.objects.filter(doctor=doctor, appointment_date=on, appointment_time=at)
    qs = qs.exclude(status__in=Appointment.INACTIVE_STATUSES)
    if exclude_pk:
        qs = qs.exclude(pk=exclude_pk)
    return qs.exists()


def check_slot(doctor: Doctor, on: date, at: time, exclude_pk=None) -> None:
    day = weekday_name(on)
    if not doctor.is_available_on_day(day):
        raise BusinessRuleError(f'Doctor does not work on {day}.')
    if not doctor.is_time_within_working_hours(day, _hhmm(at)):
        hours = doctor.working_hours_for_day(day)
        raise BusinessRuleError(f"Time outside working hours ({hours['start']}-{hours['end']}).")
    if has_conflict(doctor, on, at, exclude_pk=exclude_pk):
        raise Conflict('Doctor already has an appointment at this date and time.')


def _ensure_not_past(on: date, at: time) -> None:
    when = timezone.make_aware(datetime.combine(on, at))
    if when < timezone.now():
        raise BusinessRuleError('Cannot book an appointment in the past.')


def _check_insurance_accepted(doctor: Doctor, patient: Patient) -> None:
    if not patient.has_active_insurance():
        raise BusinessRuleError('Patient has no active health insurance.')
    if not doctor.accepts_insurance(patient.health_insurance):
        raise BusinessRuleError(f'Doctor does not accept {patient.health_insurance}.')


def _save_slot(appointment: Appointment) -> None:
    try:
        with transaction.atomic():
            appointment.save()
    except IntegrityError:
        raise Conflict('Doctor already has an appointment at this date and time.')


@transaction.atomic
def book_appointment(actor, data: dict) -> Appointment:
    # the doctor row lock serialises bookings for the same doctor
    doctor = get_active_doctor(data['doctor_id'], lock=True)
    patient = get_active_patient(data['patient_id'])
    on, at = data['appointment_date'], data['appointment_time']
    _ensure_not_past(on, at)
    check_slot(doctor, on, at)
    if data.get('payment_method') == 'health_insurance':
        _check_insurance_accepted(doctor, patient)

    price = data.get('price')
    appointment = Appointment(
        patient=patient,
        doctor=doctor,
        appointment_date=on,
        appointment_time=at,
        duration=data.get('duration') or doctor.consultation_duration,
        appointment_type=data.get('appointment_type') or 'first_visit',
        reason=data.get('reason', ''),
        notes=data.get('notes', ''),
        price=price if price is not None else doctor.consultation_price,
        payment_method=data.get('payment_method', ''),
        health_insurance_authorization=data.get('health_insurance_authorization', ''),
        status=Appointment.STATUS_SCHEDULED,
        payment_status='pending',
        created_by=actor,
    )
    _save_slot(appointment)
    log_action(user=actor, action='appointment_create', object_type='appointment', object_id=appointment.pk,
               detail={'doctor': str(doctor.pk), 'patient': str(patient.pk),
                       'date': on.isoformat(), 'time': _hhmm(at)})
    logger.info('appointment %s booked for %s %s with doctor %s', appointment.pk, on, _hhmm(at), doctor.pk)
    return appointment


@transaction.atomic
def update_appointment(actor, appointment: Appointment, data: dict) -> Appointment:
    if appointment.status in LOCKED_STATUSES:
        raise BusinessRuleError(f'A {appointment.status} appointment cannot be changed.')

    doctor_id = data.get('doctor_id', appointment.doctor_id)
    if doctor_id == appointment.doctor_id:
        doctor = Doctor.objects.select_for_update().get(pk=doctor_id)
    else:
        doctor = get_active_doctor(doctor_id, lock=True)
    if 'patient_id' in data and data['patient_id'] != appointment.patient_id:
        appointment.patient = get_active_patient(data['patient_id'])
    on = data.get('appointment_date', appointment.appointment_date)
    at = data.get('appointment_time', appointment.appointment_time)
    moved = (doctor.pk != appointment.doctor_id or on != appointment.appointment_date
             or at != appointment.appointment_time)
    if moved:
        _ensure_not_past(on, at)
        check_slot(doctor, on, at, exclude_pk=appointment.pk)

    appointment.doctor = doctor
    appointment.appointment_date = on
    appointment.appointment_time = at
    for f in ('duration', 'appointment_type', 'reason', 'notes', 'price', 'payment_method',
              'health_insurance_authorization'):
        if f in data:
            setattr(appointment, f, data[f])
    _save_slot(appointment)
    log_action(user=actor, action='appointment_update', object_type='appointment', object_id=appointment.pk,
               detail={'fields': sorted(data), 'rescheduled': moved})
    return appointment


def transition(actor, appointment: Appointment, action: str, *, reason: Optional[str] = None) -> Appointment:
    """Move an appointment along its lifecycle or raise 400."""
    allowed, target = TRANSITIONS[action]
    if appointment.status not in allowed:
        raise BusinessRuleError(
            f'Cannot {action.replace("_", "-")} an appointment with status {appointment.status}.'
        )
    now = timezone.now()
    appointment.status = target
    if action == 'confirm':
        appointment.confirmed_at = now
    elif action == 'complete':
        appointment.completed_at = now
    elif action == 'cancel':
        appointment.cancellation_reason = reason or 'Not informed'
        appointment.cancelled_at = now
        appointment.cancelled_by = actor

    with transaction.atomic():
        appointment.save()
        if action == 'complete':
            appointment.patient.increment_appointments(appointment.appointment_date)
    log_action(user=actor, action=f'appointment_{action}', object_type='appointment', object_id=appointment.pk,
               detail={'status': target, **({'reason': reason} if reason else {})})
    logger.info('appointment %s -> %s', appointment.pk, target)

    if action == 'confirm':
        notifications.appointment_confirmation(appointment)
    elif action == 'cancel':
        notifications.appointment_cancellation(appointment)
    return appointment


def delete_appointment(actor, appointment: Appointment) -> None:
    if appointment.payments.exists() or hasattr(appointment, 'medical_record'):
        raise Conflict('Appointment has payments or a medical record; cancel it instead.')
    pk = appointment.pk
    appointment.delete()
    log_action(user=actor, action='appointment_delete', object_type='appointment', object_id=pk)


def available_slots(doctor: Doctor, on: date) -> dict:
    """Working hours, busy intervals and free start times for one day.

    Free slots step through the working window by the doctor's
    consultation duration; a slot is free when it overlaps no live
    booking and, for today, has not already started.
    """
    day = weekday_name(on)
    result = {
        'date': on.isoformat(),
        'day': day,
        'doctor_id': str(doctor.pk),
        'consultation_duration': doctor.consultation_duration,
        'working': doctor.is_available_on_day(day),
        'working_hours': doctor.working_hours_for_day(day),
        'busy_slots': [],
        'available_slots': [],
    }
    if not result['working']:
        return result

    busy = list(
        doctor.appointments.filter(appointment_date=on)
        .exclude(status__in=Appointment.INACTIVE_STATUSES)
        .order_by('appointment_time')
        .values_list('appointment_time', 'duration')
    )
    result['busy_slots'] = [{'time': _hhmm(t), 'duration': d} for t, d in busy]
    intervals = [(_minutes(_hhmm(t)), _minutes(_hhmm(t)) + d) for t, d in busy]

    hours = result['working_hours']
    start, end = _minutes(hours['start']), _minutes(hours['end'])
    step = doctor.consultation_duration
    earliest = start
    if on == timezone.localdate():
        now = timezone.localtime()
        earliest = max(start, now.hour * 60 + now.minute + 1)
    slot = start
    while slot + step <= end:
        if slot >= earliest and not any(slot < b_end and b_start < slot + step for b_start, b_end in intervals):
            result['available_slots'].append(_clock(slot))
        slot += step
    return result


def appointment_statistics() -> dict:
    by_status = {r['status']: r['n'] for r in Appointment.objects.values('status').annotate(n=Count('id'))}
    by_type = {r['appointment_type']: r['n']
               for r in Appointment.objects.values('appointment_type').annotate(n=Count('id'))}
    revenue = Appointment.objects.filter(payment_status='paid').aggregate(total=Sum('price'))['total'] or 0
    return {
        'total': sum(by_status.values()),
        'by_status': {s: by_status.get(s, 0) for s, _ in Appointment.STATUS_CHOICES},
        'by_type': {t: by_type.get(t, 0) for t, _ in Appointment.TYPE_CHOICES},
        'revenue': revenue,
    }


def send_reminders(days_ahead: int = 1) -> int:
    """Remind patients of live bookings ``days_ahead`` days from today."""
    target = timezone.localdate() + timedelta(days=days_ahead)
    qs = Appointment.objects.select_related('patient', 'doctor').filter(
        appointment_date=target,
        status__in=[Appointment.STATUS_SCHEDULED, Appointment.STATUS_CONFIRMED],
        reminder_sent=False,
    )
    sent = 0
    for appointment in qs:
        results = notifications.appointment_reminder(appointment)
        if any(r.sent for r in results):
            appointment.reminder_sent = True
            appointment.reminder_sent_at = timezone.now()
            appointment.save(update_fields=['reminder_sent', 'reminder_sent_at', 'updated_at'])
            sent += 1
    logger.info('sent %s appointment reminders for %s', sent, target)
    return sent
