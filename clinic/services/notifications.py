"""
Outbound patient and staff notifications.

E-mail goes through Django's mail framework (``EMAIL_BACKEND``); SMS
goes through the provider named by ``SMS_PROVIDER``: ``console`` only
logs the message, ``twilio`` posts it to the Twilio REST API.  Sending
never raises; failures are logged and reported through the result.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import requests
from django.conf import settings
from django.core.mail import send_mail

from clinic.validators import only_digits

logger = logging.getLogger(__name__)

TWILIO_URL = 'https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json'


@dataclass
class SendResult:
    channel: str
    sent: bool
    detail: Optional[str] = None


def send_email(to: str, subject: str, body: str) -> SendResult:
    if not to:
        return SendResult('email', False, 'no recipient')
    try:
        send_mail(f"[{settings.CLINIC_NAME}] {subject}", body, settings.DEFAULT_FROM_EMAIL, [to])
    except Exception as e:
        logger.warning('email to %s failed: %s', to, e)
        return SendResult('email', False, str(e))
    logger.info('email sent to %s: %s', to, subject)
    return SendResult('email', True)


def _to_e164(phone: str) -> str:
    digits = only_digits(phone)
    if not digits.startswith('55'):
        digits = f'55{digits}'
    return f'+{digits}'


def send_sms(phone: str, message: str) -> SendResult:
    if not phone:
        return SendResult('sms', False, 'no phone')
    provider = settings.SMS_PROVIDER
    if provider == 'twilio':
        url = TWILIO_URL.format(sid=settings.TWILIO_ACCOUNT_SID)
        data = {'From': settings.TWILIO_FROM_NUMBER, 'To': _to_e164(phone), 'Body': message}
        try:
            r = requests.post(
                url, data=data, timeout=settings.SMS_TIMEOUT,
                auth=(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN),
            )
            r.raise_for_status()
            sid = r.json().get('sid')
        except (requests.RequestException, ValueError) as e:
            logger.warning('sms to %s failed: %s', phone, e)
            return SendResult('sms', False, str(e))
        logger.info('sms sent to %s via twilio', phone)
        return SendResult('sms', True, sid)
    if provider != 'console':
        logger.warning('unknown SMS_PROVIDER %r, falling back to console', provider)
    logger.info('sms (console) to %s: %s', phone, message)
    return SendResult('sms', True, 'console')


def notify_patient(patient, subject: str, body: str) -> list[SendResult]:
    """Reach a patient on their preferred channel, e-mail as fallback."""
    results = []
    if patient.preferred_contact_method in ('sms', 'whatsapp', 'phone') and patient.phone:
        results.append(send_sms(patient.phone, body))
    if patient.email and (patient.preferred_contact_method == 'email' or not results):
        results.append(send_email(patient.email, subject, body))
    return results


def _when(appointment) -> str:
    return f"{appointment.appointment_date:%d/%m/%Y} {appointment.appointment_time:%H:%M}"


def appointment_confirmation(appointment) -> list[SendResult]:
    body = (f"Hello {appointment.patient.name}, your appointment with {appointment.doctor.name} "
            f"on {_when(appointment)} is confirmed.")
    return notify_patient(appointment.patient, 'Appointment confirmed', body)


def appointment_cancellation(appointment) -> list[SendResult]:
    body = (f"Hello {appointment.patient.name}, your appointment with {appointment.doctor.name} "
            f"on {_when(appointment)} was cancelled. Reason: {appointment.cancellation_reason}.")
    return notify_patient(appointment.patient, 'Appointment cancelled', body)


def appointment_reminder(appointment) -> list[SendResult]:
    body = (f"Reminder: {appointment.patient.name}, you have an appointment with "
            f"{appointment.doctor.name} ({appointment.doctor.specialty}) on {_when(appointment)}.")
    return notify_patient(appointment.patient, 'Appointment reminder', body)


def payment_confirmation(payment) -> list[SendResult]:
    body = (f"Hello {payment.patient.name}, we received R$ {payment.amount_paid:.2f}. "
            f"Receipt: {payment.receipt_number or '-'}.")
    return notify_patient(payment.patient, 'Payment received', body)


def password_reset(user, raw_token: str) -> SendResult:
    link = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password/{raw_token}"
    body = (f"Hello {user.name},\n\nUse the link below to choose a new password. "
            f"It expires in {settings.PASSWORD_RESET_HOURS} hour(s).\n\n{link}\n")
    return send_email(user.email, 'Password reset', body)
