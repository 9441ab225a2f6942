import logging

from django.db.models import Q

from clinic.exceptions import Conflict
from clinic.models import HealthInsurance
from clinic.services.audit import log_action

logger = logging.getLogger(__name__)


def _check_unique(data: dict, exclude_pk=None) -> None:
    qs = HealthInsurance.objects.all()
    if exclude_pk:
        qs = qs.exclude(pk=exclude_pk)
    if data.get('name') and qs.filter(name__iexact=data['name']).exists():
        raise Conflict('A health insurance with this name already exists.')
    if data.get('code') and qs.filter(code=data['code']).exists():
        raise Conflict('A health insurance with this code already exists.')


def filter_insurances(*, search=None, type=None, is_active=None):
    qs = HealthInsurance.objects.all()
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(code__icontains=search))
    if type:
        qs = qs.filter(type=type)
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    return qs.order_by('name')


def create_insurance(actor, data: dict) -> HealthInsurance:
    _check_unique(data)
    insurance = HealthInsurance.objects.create(**data)
    log_action(user=actor, action='insurance_create', object_type='health_insurance', object_id=insurance.pk)
    logger.info('health insurance %s (%s) created', insurance.pk, insurance.name)
    return insurance


def update_insurance(actor, insurance: HealthInsurance, data: dict) -> HealthInsurance:
    _check_unique(data, exclude_pk=insurance.pk)
    for k, v in data.items():
        setattr(insurance, k, v)
    insurance.save()
    log_action(user=actor, action='insurance_update', object_type='health_insurance', object_id=insurance.pk,
               detail={'fields': sorted(data)})
    return insurance


def set_insurance_active(actor, insurance: HealthInsurance, active: bool) -> HealthInsurance:
    insurance.is_active = active
    insurance.save(update_fields=['is_active', 'updated_at'])
    log_action(user=actor, action='insurance_status', object_type='health_insurance', object_id=insurance.pk,
               detail={'is_active': active})
    return insurance
