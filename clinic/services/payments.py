"""
Payments against appointments.

A payment is created pending, absorbs one or more ``process`` calls
until its balance reaches zero, and may then be refunded.  The linked
appointment's ``payment_status`` follows the payment.
"""
import logging
from datetime import date
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone
from rest_framework.exceptions import NotFound

from clinic.exceptions import BusinessRuleError
from clinic.models import Appointment, HealthInsurance, Patient, Payment
from clinic.services import notifications
from clinic.services.audit import log_action

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')
CENT = Decimal('0.01')
LOCKED_STATUSES = ('paid', 'refunded')

WRITABLE = (
    'amount', 'discount', 'discount_percentage', 'payment_method', 'installments', 'due_date',
    'card_last_digits', 'card_brand', 'authorization_code', 'transaction_id',
    'health_insurance_authorization', 'insurance_coverage_amount', 'patient_copayment',
    'invoice_number', 'notes',
)


def filter_payments(*, status=None, method=None, patient_id=None, date_from=None, date_to=None,
                    overdue_only=None):
    qs = Payment.objects.select_related('patient')
    if status:
        qs = qs.filter(payment_status=status)
    if method:
        qs = qs.filter(payment_method=method)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if date_from:
        qs = qs.filter(created_at__date__gte=date_from)
    if date_to:
        qs = qs.filter(created_at__date__lte=date_to)
    if overdue_only:
        qs = overdue_payments(qs)
    return qs.order_by('-created_at')


def overdue_payments(qs=None):
    qs = Payment.objects.select_related('patient') if qs is None else qs
    today = timezone.localdate()
    return qs.filter(
        Q(payment_status='overdue') | Q(payment_status__in=Payment.OPEN_STATUSES, due_date__lt=today)
    ).order_by('due_date')


def _apply_discount(payment: Payment) -> None:
    if payment.discount_percentage and not payment.discount:
        payment.discount = (payment.amount * payment.discount_percentage / 100).quantize(CENT)
    if payment.discount > payment.amount:
        raise BusinessRuleError('Discount cannot exceed the amount.')


def _apply_insurance(payment: Payment) -> None:
    insurance = payment.health_insurance
    if insurance is None:
        return
    if not insurance.is_valid():
        raise BusinessRuleError('Health insurance is inactive or its contract has expired.')
    service_type = payment.appointment.appointment_type
    if not insurance.accepts_service_type(service_type):
        raise BusinessRuleError(f'{insurance.name} does not cover {service_type} appointments.')
    split = insurance.calculate_consultation_value(payment.amount)
    if payment.insurance_coverage_amount is None:
        payment.insurance_coverage_amount = split['insurance_pays']
    if payment.patient_copayment is None:
        payment.patient_copayment = split['patient_pays']
    if payment.due_date is None:
        payment.due_date = insurance.days_until_payment(timezone.localdate())


@transaction.atomic
def create_payment(actor, data: dict) -> Payment:
    appointment = Appointment.objects.select_related('patient').filter(pk=data.pop('appointment_id')).first()
    if appointment is None:
        raise NotFound('Appointment not found.')
    patient_id = data.pop('patient_id', None) or appointment.patient_id
    patient = Patient.objects.filter(pk=patient_id).first()
    if patient is None:
        raise NotFound('Patient not found.')
    insurance = None
    insurance_id = data.pop('health_insurance_id', None)
    if insurance_id:
        insurance = HealthInsurance.objects.filter(pk=insurance_id).first()
        if insurance is None:
            raise NotFound('Health insurance not found.')
    if not data.get('transaction_id'):
        data['transaction_id'] = None

    payment = Payment(appointment=appointment, patient=patient, health_insurance=insurance,
                      processed_by=actor, **data)
    _apply_discount(payment)
    _apply_insurance(payment)
    payment.compute_installment_value()
    payment.receipt_number = Payment.generate_receipt_number()
    payment.save()
    log_action(user=actor, action='payment_create', object_type='payment', object_id=payment.pk,
               detail={'amount': str(payment.amount), 'appointment': str(appointment.pk)})
    logger.info('payment %s (%s) created for appointment %s', payment.pk, payment.receipt_number, appointment.pk)
    return payment


def update_payment(actor, payment: Payment, data: dict) -> Payment:
    if payment.payment_status in LOCKED_STATUSES:
        raise BusinessRuleError(f'A {payment.payment_status} payment cannot be changed.')
    changed = [f for f in WRITABLE if f in data]
    for f in changed:
        setattr(payment, f, data[f])
    if 'transaction_id' in changed and not payment.transaction_id:
        payment.transaction_id = None
    if 'discount_percentage' in changed and 'discount' not in changed:
        payment.discount = ZERO
    _apply_discount(payment)
    if payment.net_amount() < (payment.amount_paid or ZERO):
        raise BusinessRuleError(f'Net amount cannot fall below the amount already paid ({payment.amount_paid}).')
    payment.compute_installment_value()
    with transaction.atomic():
        if payment.amount_paid and payment.remaining_balance() == ZERO:
            payment.payment_status = 'paid'
            payment.payment_date = payment.payment_date or timezone.now()
        payment.save()
        _sync_appointment(payment)
    log_action(user=actor, action='payment_update', object_type='payment', object_id=payment.pk,
               detail={'fields': changed})
    return payment


def _sync_appointment(payment: Payment) -> None:
    status = {'paid': 'paid', 'partially_paid': 'partially_paid', 'refunded': 'refunded'}.get(payment.payment_status)
    if status is None:
        return
    appointment = payment.appointment
    appointment.payment_status = status
    appointment.payment_method = appointment.payment_method or (
        payment.payment_method if payment.payment_method in dict(Appointment.PAYMENT_METHOD_CHOICES) else ''
    )
    appointment.save(update_fields=['payment_status', 'payment_method', 'updated_at'])


def process_payment(actor, payment: Payment, data: dict) -> Payment:
    if payment.payment_status in ('cancelled', 'refunded', 'paid'):
        raise BusinessRuleError(f'Cannot process a {payment.payment_status} payment.')
    amount = data['amount']
    balance = payment.remaining_balance()
    if amount > balance:
        raise BusinessRuleError(f'Amount exceeds the remaining balance ({balance}).')
    for f in ('payment_method', 'authorization_code'):
        if data.get(f):
            setattr(payment, f, data[f])
    if data.get('transaction_id'):
        payment.transaction_id = data['transaction_id']

    with transaction.atomic():
        payment.process(amount, actor)
        payment.save()
        _sync_appointment(payment)
    log_action(user=actor, action='payment_process', object_type='payment', object_id=payment.pk,
               detail={'amount': str(amount), 'status': payment.payment_status})
    logger.info('payment %s received %s, now %s', payment.pk, amount, payment.payment_status)
    notifications.payment_confirmation(payment)
    return payment


def cancel_payment(actor, payment: Payment, reason: str) -> Payment:
    if payment.payment_status in ('paid', 'refunded', 'cancelled'):
        raise BusinessRuleError(f'Cannot cancel a {payment.payment_status} payment.')
    payment.cancel(reason, actor)
    payment.save()
    log_action(user=actor, action='payment_cancel', object_type='payment', object_id=payment.pk,
               detail={'reason': reason})
    return payment


def refund_payment(actor, payment: Payment, amount: Decimal, reason: str) -> Payment:
    if payment.payment_status not in ('paid', 'partially_paid'):
        raise BusinessRuleError(f'Cannot refund a {payment.payment_status} payment.')
    if amount > payment.amount_paid:
        raise BusinessRuleError(f'Refund exceeds the amount paid ({payment.amount_paid}).')
    with transaction.atomic():
        payment.refund(amount, reason)
        payment.save()
        _sync_appointment(payment)
    log_action(user=actor, action='payment_refund', object_type='payment', object_id=payment.pk,
               detail={'amount': str(amount), 'reason': reason})
    logger.info('payment %s refunded %s', payment.pk, amount)
    return payment


def receipt(payment: Payment) -> dict:
    appointment = payment.appointment
    patient = payment.patient
    return {
        'receipt_number': payment.receipt_number,
        'issued_at': timezone.localtime().strftime('%Y-%m-%d %H:%M:%S'),
        'patient': {'name': patient.name, 'cpf': patient.cpf},
        'appointment': {
            'date': appointment.appointment_date,
            'time': appointment.appointment_time.strftime('%H:%M'),
            'doctor': appointment.doctor.name,
            'specialty': appointment.doctor.specialty,
        },
        'amount': payment.amount,
        'discount': payment.discount,
        'net_amount': payment.net_amount(),
        'amount_paid': payment.amount_paid,
        'remaining_balance': payment.remaining_balance(),
        'payment_method': payment.payment_method,
        'payment_status': payment.payment_status,
        'payment_date': payment.payment_date,
        'installments': payment.installments,
        'installment_value': payment.installment_value,
    }


def mark_overdue() -> int:
    """Flag open payments whose due date has passed."""
    n = Payment.objects.filter(
        payment_status__in=('pending', 'partially_paid'), due_date__lt=timezone.localdate()
    ).update(payment_status='overdue', updated_at=timezone.now())
    if n:
        logger.info('marked %s payments as overdue', n)
    return n


def payment_statistics() -> dict:
    today = timezone.localdate()
    agg = Payment.objects.aggregate(
        total=Count('id'),
        received=Sum('amount_paid', filter=Q(payment_status__in=('paid', 'partially_paid'))),
        pending=Sum('amount', filter=Q(payment_status__in=('pending', 'partially_paid'))),
        refunded=Sum('refund_amount', filter=Q(payment_status='refunded')),
        month=Sum('amount_paid', filter=Q(payment_date__year=today.year, payment_date__month=today.month)),
    )
    by_status = {r['payment_status']: r['n'] for r in Payment.objects.values('payment_status').annotate(n=Count('id'))}
    by_method = {
        r['payment_method']: {'count': r['n'], 'total': r['t'] or ZERO}
        for r in Payment.objects.filter(payment_status__in=('paid', 'partially_paid'))
        .values('payment_method').annotate(n=Count('id'), t=Sum('amount_paid'))
    }
    overdue = overdue_payments()
    return {
        'total': agg['total'],
        'total_received': agg['received'] or ZERO,
        'total_pending': agg['pending'] or ZERO,
        'total_refunded': agg['refunded'] or ZERO,
        'received_this_month': agg['month'] or ZERO,
        'overdue_count': overdue.count(),
        'overdue_amount': overdue.aggregate(t=Sum('amount'))['t'] or ZERO,
        'by_status': {s: by_status.get(s, 0) for s, _ in Payment.STATUS_CHOICES},
        'by_method': by_method,
    }


def revenue(date_from: date, date_to: date) -> dict:
    qs = Payment.objects.filter(
        payment_status__in=('paid', 'partially_paid'),
        payment_date__date__gte=date_from,
        payment_date__date__lte=date_to,
    )
    daily = (qs.annotate(day=TruncDate('payment_date')).values('day')
             .annotate(total=Sum('amount_paid'), n=Count('id')).order_by('day'))
    return {
        'date_from': date_from,
        'date_to': date_to,
        'total': qs.aggregate(t=Sum('amount_paid'))['t'] or ZERO,
        'count': qs.count(),
        'daily': [{'date': r['day'], 'total': r['total'], 'count': r['n']} for r in daily],
    }
