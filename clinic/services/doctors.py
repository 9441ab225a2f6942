import logging
from datetime import timedelta

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied

from clinic.exceptions import Conflict
from clinic.models import Appointment, Doctor
from clinic.services.audit import log_action

logger = logging.getLogger(__name__)

SPECIALTIES_CACHE_KEY = 'doctors:specialties'


def _check_unique(data: dict, exclude_pk=None) -> None:
    qs = Doctor.objects.all()
    if exclude_pk:
        qs = qs.exclude(pk=exclude_pk)
    crm = data.get('crm')
    state = data.get('crm_state')
    if crm and state and qs.filter(crm=crm, crm_state=state.upper()).exists():
        raise Conflict('A doctor with this CRM is already registered in this state.')
    if data.get('cpf') and qs.filter(cpf=data['cpf']).exists():
        raise Conflict('A doctor with this CPF already exists.')
    if data.get('email') and qs.filter(email__iexact=data['email']).exists():
        raise Conflict('A doctor with this e-mail already exists.')
    if data.get('user') and qs.filter(user=data['user']).exists():
        raise Conflict('This user is already linked to another doctor.')


def ensure_self_or_admin(user, doctor: Doctor) -> None:
    """Admins see every doctor; a doctor only their own profile."""
    if user.role == 'admin':
        return
    if user.role == 'doctor' and doctor.user_id == user.pk:
        return
    raise PermissionDenied('You can only access your own schedule.')


def doctor_for_user(user):
    if getattr(user, 'role', None) != 'doctor':
        return None
    return Doctor.objects.filter(user=user).first()


def filter_doctors(*, search=None, specialty=None, is_active=None):
    qs = Doctor.objects.all()
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(crm__icontains=search) | Q(cpf__icontains=search))
    if specialty:
        qs = qs.filter(specialty__icontains=specialty)
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    return qs.order_by('name')


def specialties() -> list[str]:
    cached = cache.get(SPECIALTIES_CACHE_KEY)
    if cached is not None:
        return cached
    values = list(
        Doctor.objects.filter(is_active=True).order_by('specialty')
        .values_list('specialty', flat=True).distinct()
    )
    cache.set(SPECIALTIES_CACHE_KEY, values, settings.REPORT_CACHE_SECONDS)
    return values


@transaction.atomic
def create_doctor(actor, data: dict) -> Doctor:
    _check_unique(data)
    doctor = Doctor.objects.create(**data)
    cache.delete(SPECIALTIES_CACHE_KEY)
    log_action(user=actor, action='doctor_create', object_type='doctor', object_id=doctor.pk)
    logger.info('doctor %s (CRM %s/%s) created', doctor.pk, doctor.crm, doctor.crm_state)
    return doctor


@transaction.atomic
def update_doctor(actor, doctor: Doctor, data: dict) -> Doctor:
    check = dict(data)
    check.setdefault('crm', doctor.crm if 'crm_state' in data else None)
    check.setdefault('crm_state', doctor.crm_state if 'crm' in data else None)
    _check_unique(check, exclude_pk=doctor.pk)
    for k, v in data.items():
        setattr(doctor, k, v)
    doctor.save()
    cache.delete(SPECIALTIES_CACHE_KEY)
    log_action(user=actor, action='doctor_update', object_type='doctor', object_id=doctor.pk,
               detail={'fields': sorted(data)})
    return doctor


def set_working_hours(actor, doctor: Doctor, hours: dict) -> Doctor:
    doctor.working_hours = hours
    doctor.save(update_fields=['working_hours', 'updated_at'])
    log_action(user=actor, action='doctor_working_hours', object_type='doctor', object_id=doctor.pk)
    return doctor


def toggle_doctor_status(actor, doctor: Doctor) -> Doctor:
    doctor.is_active = not doctor.is_active
    doctor.save(update_fields=['is_active', 'updated_at'])
    cache.delete(SPECIALTIES_CACHE_KEY)
    log_action(user=actor, action='doctor_toggle', object_type='doctor', object_id=doctor.pk,
               detail={'is_active': doctor.is_active})
    return doctor


def deactivate_doctor(actor, doctor: Doctor) -> Doctor:
    doctor.is_active = False
    doctor.save(update_fields=['is_active', 'updated_at'])
    cache.delete(SPECIALTIES_CACHE_KEY)
    log_action(user=actor, action='doctor_delete', object_type='doctor', object_id=doctor.pk)
    return doctor


def schedule(doctor: Doctor, days: int = 7):
    """Bookings from today through ``days`` ahead, excluding released slots."""
    today = timezone.localdate()
    return doctor.appointments.filter(
        appointment_date__gte=today,
        appointment_date__lte=today + timedelta(days=days),
    ).exclude(status__in=Appointment.INACTIVE_STATUSES).select_related('patient').order_by(
        'appointment_date', 'appointment_time'
    )


def doctor_statistics() -> dict:
    agg = Doctor.objects.aggregate(
        total=Count('id'),
        active=Count('id', filter=Q(is_active=True)),
        with_system_access=Count('id', filter=Q(user__isnull=False)),
    )
    by_specialty = {
        row['specialty']: row['n']
        for row in Doctor.objects.filter(is_active=True).values('specialty').annotate(n=Count('id'))
    }
    return {
        'total': agg['total'],
        'active': agg['active'],
        'inactive': agg['total'] - agg['active'],
        'with_system_access': agg['with_system_access'],
        'by_specialty': by_specialty,
    }
