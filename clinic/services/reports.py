"""
Administrative reports.

Each report is a plain dict built from ORM aggregates; the dashboard is
cached for ``REPORT_CACHE_SECONDS``.  Exports return a header row plus
value rows so the view can render them as CSV or JSON.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone

from clinic.models import Appointment, Doctor, MedicalRecord, Patient, Payment
from clinic.services.medical_records import record_statistics
from clinic.services.payments import overdue_payments

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')
DASHBOARD_CACHE_KEY = 'reports:dashboard'
AGE_RANGES = (('0-17', 0, 17), ('18-30', 18, 30), ('31-45', 31, 45), ('46-60', 46, 60), ('60+', 61, 200))
EXPORT_TYPES = ('patients', 'doctors', 'appointments', 'payments')
PAID = ('paid', 'partially_paid')


def _live(qs):
    return qs.exclude(status__in=Appointment.INACTIVE_STATUSES)


def dashboard() -> dict:
    data = cache.get(DASHBOARD_CACHE_KEY)
    if data is not None:
        return data
    today = timezone.localdate()
    month = Q(appointment_date__year=today.year, appointment_date__month=today.month)
    open_payments = Payment.objects.filter(payment_status__in=Payment.OPEN_STATUSES)
    upcoming = _live(Appointment.objects.filter(
        appointment_date__gt=today, appointment_date__lte=today + timedelta(days=7),
    )).select_related('patient', 'doctor').order_by('appointment_date', 'appointment_time')[:10]

    data = {
        'totals': {
            'active_patients': Patient.objects.filter(is_active=True).count(),
            'active_doctors': Doctor.objects.filter(is_active=True).count(),
            'active_users': get_user_model().objects.filter(is_active=True).count(),
        },
        'appointments': {
            'today': _live(Appointment.objects.filter(appointment_date=today)).count(),
            'this_month': _live(Appointment.objects.filter(month)).count(),
            'completed_this_month': Appointment.objects.filter(month, status=Appointment.STATUS_COMPLETED).count(),
        },
        'financial': {
            'month_revenue': Payment.objects.filter(
                payment_status__in=PAID, payment_date__year=today.year, payment_date__month=today.month,
            ).aggregate(t=Sum('amount_paid'))['t'] or ZERO,
            'pending_amount': open_payments.aggregate(t=Sum('amount'))['t'] or ZERO,
            'overdue_amount': overdue_payments().aggregate(t=Sum('amount'))['t'] or ZERO,
        },
        'new_patients_this_month': Patient.objects.filter(
            registration_date__year=today.year, registration_date__month=today.month,
        ).count(),
        'upcoming_appointments': [
            {
                'id': str(a.pk),
                'date': a.appointment_date,
                'time': a.appointment_time.strftime('%H:%M'),
                'patient': a.patient.name,
                'doctor': a.doctor.name,
                'status': a.status,
            }
            for a in upcoming
        ],
        'generated_at': timezone.now(),
    }
    cache.set(DASHBOARD_CACHE_KEY, data, settings.REPORT_CACHE_SECONDS)
    return data


def _counts(qs, field: str) -> dict:
    return {r[field]: r['n'] for r in qs.values(field).annotate(n=Count('id')).order_by('-n')}


def appointments_report(date_from, date_to) -> dict:
    qs = Appointment.objects.filter(appointment_date__gte=date_from, appointment_date__lte=date_to)
    total = qs.count()
    completed = qs.filter(status=Appointment.STATUS_COMPLETED).count()
    return {
        'period': {'date_from': date_from, 'date_to': date_to},
        'total': total,
        'completion_rate': round(completed * 100 / total, 1) if total else 0,
        'by_status': _counts(qs, 'status'),
        'by_type': _counts(qs, 'appointment_type'),
        'by_doctor': _counts(qs, 'doctor__name'),
        'by_specialty': _counts(qs, 'doctor__specialty'),
    }


def financial_report(date_from, date_to) -> dict:
    created = Payment.objects.filter(created_at__date__gte=date_from, created_at__date__lte=date_to)
    paid = Payment.objects.filter(
        payment_status__in=PAID, payment_date__date__gte=date_from, payment_date__date__lte=date_to,
    )
    refunds = Payment.objects.filter(
        payment_status='refunded', refund_date__date__gte=date_from, refund_date__date__lte=date_to,
    )
    revenue = paid.aggregate(t=Sum('amount_paid'))['t'] or ZERO
    refunded = refunds.aggregate(t=Sum('refund_amount'))['t'] or ZERO

    def grouped(field):
        return [
            {'name': r[field] or 'n/a', 'count': r['n'], 'total': r['t'] or ZERO}
            for r in paid.values(field).annotate(n=Count('id'), t=Sum('amount_paid')).order_by('-t')
        ]

    return {
        'period': {'date_from': date_from, 'date_to': date_to},
        'revenue': revenue,
        'pending': created.filter(payment_status__in=('pending', 'partially_paid'))
        .aggregate(t=Sum('amount'))['t'] or ZERO,
        'overdue': overdue_payments(created).aggregate(t=Sum('amount'))['t'] or ZERO,
        'discounts': created.aggregate(t=Sum('discount'))['t'] or ZERO,
        'refunds': refunded,
        'net_revenue': revenue - refunded,
        'by_payment_method': grouped('payment_method'),
        'by_doctor': grouped('appointment__doctor__name'),
        'by_insurance': grouped('health_insurance__name'),
    }


def patients_report() -> dict:
    today = timezone.localdate()
    active = Patient.objects.filter(is_active=True)
    ages = {label: 0 for label, _, _ in AGE_RANGES}
    for born in active.values_list('birth_date', flat=True):
        age = today.year - born.year - ((today.month, today.day) < (born.month, born.day))
        for label, low, high in AGE_RANGES:
            if low <= age <= high:
                ages[label] += 1
                break
    since = (today.replace(day=1) - timedelta(days=155)).replace(day=1)
    monthly = (Patient.objects.filter(registration_date__gte=since)
               .annotate(month=TruncMonth('registration_date')).values('month')
               .annotate(n=Count('id')).order_by('month'))
    insurances = (active.exclude(health_insurance='').values('health_insurance')
                  .annotate(n=Count('id')).order_by('-n')[:10])
    return {
        'total': Patient.objects.count(),
        'active': active.count(),
        'by_gender': _counts(active, 'gender'),
        'by_age_range': ages,
        'top_insurances': [{'name': r['health_insurance'], 'count': r['n']} for r in insurances],
        'new_patients_by_month': [{'month': r['month'].strftime('%Y-%m'), 'count': r['n']} for r in monthly],
    }


def doctors_report(date_from, date_to) -> dict:
    period = Q(appointments__appointment_date__gte=date_from, appointments__appointment_date__lte=date_to)
    completed = period & Q(appointments__status=Appointment.STATUS_COMPLETED)
    rows = (Doctor.objects.filter(is_active=True)
            .annotate(total=Count('appointments', filter=period),
                      completed=Count('appointments', filter=completed),
                      revenue=Sum('appointments__price', filter=completed))
            .order_by('-total', 'name'))
    performance = [
        {
            'id': str(d.pk),
            'name': d.name,
            'specialty': d.specialty,
            'appointments': d.total,
            'completed': d.completed,
            'completion_rate': round(d.completed * 100 / d.total, 1) if d.total else 0,
            'revenue': d.revenue or ZERO,
        }
        for d in rows
    ]
    return {
        'period': {'date_from': date_from, 'date_to': date_to},
        'by_specialty': _counts(Doctor.objects.filter(is_active=True), 'specialty'),
        'most_active': performance[:5],
        'performance': [p for p in performance if p['completed']],
    }


def medical_records_report(date_from, date_to) -> dict:
    qs = MedicalRecord.objects.filter(consultation_date__gte=date_from, consultation_date__lte=date_to)
    return {'period': {'date_from': date_from, 'date_to': date_to}, **record_statistics(qs)}


def export_rows(kind: str) -> tuple[list[str], list[list]]:
    if kind == 'patients':
        header = ['id', 'name', 'cpf', 'birth_date', 'gender', 'phone', 'email', 'health_insurance', 'is_active']
        rows = Patient.objects.order_by('name').values_list(*header)
    elif kind == 'doctors':
        header = ['id', 'name', 'crm', 'crm_state', 'specialty', 'phone', 'email', 'consultation_price', 'is_active']
        rows = Doctor.objects.order_by('name').values_list(*header)
    elif kind == 'appointments':
        header = ['id', 'appointment_date', 'appointment_time', 'patient__name', 'doctor__name', 'status',
                  'appointment_type', 'price', 'payment_status']
        rows = Appointment.objects.order_by('-appointment_date', '-appointment_time').values_list(*header)
    elif kind == 'payments':
        header = ['id', 'receipt_number', 'patient__name', 'amount', 'discount', 'amount_paid', 'payment_method',
                  'payment_status', 'due_date', 'payment_date']
        rows = Payment.objects.order_by('-created_at').values_list(*header)
    else:
        raise ValueError(kind)
    logger.info('exporting %s', kind)
    return [h.replace('__', '_') for h in header], [[_plain(v) for v in row] for row in rows]


def _plain(value):
    if value is None:
        return ''
    if isinstance(value, (str, int, bool)):
        return value
    if hasattr(value, 'strftime') and hasattr(value, 'hour') and not hasattr(value, 'year'):
        return value.strftime('%H:%M')
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    return str(value)
