"""
Database models for the clinic backend.

The schema covers staff accounts, patients, doctors, health insurance
plans, appointments, medical records and payments.  Domain tables use
UUID primary keys; staff users keep Django's integer key so the auth,
token and JWT blacklist apps work unchanged.

Small pieces of domain logic that only depend on a single row (ages,
BMI, balances, state checks) live on the models.  Rules that span rows
or need the requesting user live in :mod:`clinic.services`.
"""
from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.contrib.auth.base_user import BaseUserManager
from django.contrib.auth.models import AbstractUser
from django.core.validators import MaxValueValidator, MinLengthValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .validators import (
    default_working_hours,
    validate_cpf,
    validate_phone,
    validate_state,
    validate_working_hours,
    validate_zip,
)

ZERO = Decimal('0.00')
CENTS = Decimal('0.01')


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(CENTS, rounding=ROUND_HALF_UP)


def _age_on(birth: date | None, today: date | None = None) -> int | None:
    if not birth:
        return None
    today = today or timezone.localdate()
    return today.year - birth.year - ((today.month, today.day) < (birth.month, birth.day))


def default_preferences() -> dict:
    return {'theme': 'light', 'notifications': True, 'language': 'pt-BR'}


# ---------------------------------------------------------------------
# Staff users
# ---------------------------------------------------------------------
class UserManager(BaseUserManager):
    """Manager for e-mail based logins; ``username`` mirrors the e-mail."""
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError('An e-mail address is required')
        email = self.normalize_email(email).lower()
        username = extra_fields.pop('username', None) or email
        user = self.model(username=username, email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email=None, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email=None, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', User.ROLE_ADMIN)
        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    """Clinic staff account.

    Three roles exist: ``admin`` manages everything, ``doctor`` works on
    appointments and medical records, ``receptionist`` handles patients,
    bookings and payments.  Roles are ordered so ``has_role`` can answer
    "at least" questions.
    """
    ROLE_ADMIN = 'admin'
    ROLE_DOCTOR = 'doctor'
    ROLE_RECEPTIONIST = 'receptionist'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_RECEPTIONIST, 'Receptionist'),
    ]
    ROLE_LEVELS = {ROLE_ADMIN: 3, ROLE_DOCTOR: 2, ROLE_RECEPTIONIST: 1}

    name = models.CharField(max_length=100, validators=[MinLengthValidator(3)])
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_RECEPTIONIST, db_index=True)
    phone = models.CharField(max_length=20, blank=True, validators=[validate_phone])
    avatar = models.URLField(max_length=500, blank=True)
    last_login_ip = models.GenericIPAddressField(null=True, blank=True)
    login_attempts = models.PositiveIntegerField(default=0)
    locked_until = models.DateTimeField(null=True, blank=True)
    password_reset_token = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    password_reset_expires = models.DateTimeField(null=True, blank=True)
    password_changed_at = models.DateTimeField(null=True, blank=True)
    preferences = models.JSONField(default=default_preferences, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username', 'name']

    objects = UserManager()

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        if not self.username:
            self.username = self.email
        if self.name:
            self.name = self.name.strip()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.email} ({self.role})"

    def public_profile(self) -> dict:
        """Account fields safe to send to clients; no password or reset data."""
        doctor = getattr(self, 'doctor_profile', None) if self.role == self.ROLE_DOCTOR else None
        return {
            'id': self.pk,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'phone': self.phone,
            'avatar': self.avatar,
            'is_active': self.is_active,
            'last_login': self.last_login,
            'last_login_ip': self.last_login_ip,
            'preferences': self.preferences,
            'created_at': self.date_joined,
            'doctor_id': str(doctor.pk) if doctor else None,
        }

    def has_role(self, required: str) -> bool:
        return self.ROLE_LEVELS.get(self.role, 0) >= self.ROLE_LEVELS.get(required, 99)

    def is_locked(self) -> bool:
        return bool(self.locked_until and self.locked_until > timezone.now())

    def register_failed_login(self) -> None:
        """Count a failed login; lock the account once the limit is hit."""
        now = timezone.now()
        if self.locked_until and self.locked_until <= now:
            self.login_attempts = 0
            self.locked_until = None
        self.login_attempts += 1
        if self.login_attempts >= settings.LOGIN_MAX_ATTEMPTS:
            self.locked_until = now + timedelta(minutes=settings.LOGIN_LOCK_MINUTES)
        self.save(update_fields=['login_attempts', 'locked_until'])

    def reset_login_attempts(self) -> None:
        self.login_attempts = 0
        self.locked_until = None

    def create_password_reset_token(self) -> str:
        """Store the sha256 of a fresh token and return the raw token."""
        raw = secrets.token_hex(32)
        self.password_reset_token = hashlib.sha256(raw.encode()).hexdigest()
        self.password_reset_expires = timezone.now() + timedelta(hours=settings.PASSWORD_RESET_HOURS)
        self.save(update_fields=['password_reset_token', 'password_reset_expires'])
        return raw


class TimeStampedModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ---------------------------------------------------------------------
# Health insurance plans
# ---------------------------------------------------------------------
class HealthInsurance(TimeStampedModel):
    """A health plan the clinic has an agreement with."""
    TYPE_CHOICES = [
        ('private', 'Private'),
        ('public', 'Public'),
        ('cooperative', 'Cooperative'),
        ('self_management', 'Self-management'),
    ]
    CATEGORY_CHOICES = [
        ('individual', 'Individual'),
        ('company', 'Company'),
        ('collective', 'Collective'),
        ('family', 'Family'),
    ]

    name = models.CharField(max_length=100, unique=True, validators=[MinLengthValidator(2)])
    code = models.CharField(max_length=50, unique=True, null=True, blank=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='private')
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, blank=True)
    contact_name = models.CharField(max_length=100, blank=True)
    contact_phone = models.CharField(max_length=20, blank=True)
    contact_email = models.EmailField(blank=True)
    website = models.URLField(max_length=255, blank=True)
    reimbursement_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('100.00'),
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    copayment_amount = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO,
                                           validators=[MinValueValidator(0)])
    copayment_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=ZERO,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    minimum_consultation_value = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    requires_authorization = models.BooleanField(default=False)
    authorization_deadline_days = models.PositiveIntegerField(null=True, blank=True)
    billing_deadline_days = models.PositiveIntegerField(default=30)
    payment_deadline_days = models.PositiveIntegerField(default=30)
    procedure_table = models.CharField(max_length=50, blank=True)
    coverage_info = models.TextField(blank=True)
    exclusions = models.TextField(blank=True)
    accepts_emergency = models.BooleanField(default=True)
    accepts_telemedicine = models.BooleanField(default=False)
    waiting_period_days = models.PositiveIntegerField(default=0)
    notes = models.TextField(blank=True)
    contract_number = models.CharField(max_length=50, blank=True)
    contract_start_date = models.DateField(null=True, blank=True)
    contract_end_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    logo = models.URLField(max_length=500, blank=True)

    class Meta:
        ordering = ['name']

    def __str__(self) -> str:
        return self.name

    def is_valid(self) -> bool:
        if not self.is_active:
            return False
        return not (self.contract_end_date and self.contract_end_date < timezone.localdate())

    def calculate_consultation_value(self, base_value) -> dict:
        """Split a consultation price between insurer and patient.

        The insurer covers ``reimbursement_percentage`` of the base value;
        fixed and percentage copayments then move money from the insurer
        share to the patient share.  Neither share goes below zero.
        """
        base = _money(base_value)
        insurance_pays = base
        patient_pays = ZERO
        if self.reimbursement_percentage is not None:
            insurance_pays = _money(base * Decimal(self.reimbursement_percentage) / 100)
            patient_pays = base - insurance_pays
        if self.copayment_amount:
            patient_pays += Decimal(self.copayment_amount)
            insurance_pays -= Decimal(self.copayment_amount)
        if self.copayment_percentage:
            copay = _money(base * Decimal(self.copayment_percentage) / 100)
            patient_pays += copay
            insurance_pays -= copay
        return {
            'total': base,
            'patient_pays': max(ZERO, _money(patient_pays)),
            'insurance_pays': max(ZERO, _money(insurance_pays)),
        }

    def accepts_service_type(self, service_type: str) -> bool:
        if service_type == 'emergency':
            return self.accepts_emergency
        if service_type == 'telemedicine':
            return self.accepts_telemedicine
        return True

    def is_in_waiting_period(self, start_date: date) -> bool:
        if not self.waiting_period_days or not start_date:
            return False
        return (timezone.localdate() - start_date).days < self.waiting_period_days

    def days_until_payment(self, billing_date: date) -> date:
        return billing_date + timedelta(days=self.payment_deadline_days)


# ---------------------------------------------------------------------
# Patients
# ---------------------------------------------------------------------
class Patient(TimeStampedModel):
    GENDER_CHOICES = [('male', 'Male'), ('female', 'Female'), ('other', 'Other')]
    MARITAL_CHOICES = [
        ('single', 'Single'),
        ('married', 'Married'),
        ('divorced', 'Divorced'),
        ('widowed', 'Widowed'),
        ('other', 'Other'),
    ]
    BLOOD_TYPES = ['A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-']
    BLOOD_CHOICES = [(b, b) for b in BLOOD_TYPES]
    INSURANCE_TYPE_CHOICES = [('holder', 'Holder'), ('dependent', 'Dependent')]
    RISK_CHOICES = [('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('critical', 'Critical')]
    CONTACT_CHOICES = [('phone', 'Phone'), ('email', 'E-mail'), ('sms', 'SMS'), ('whatsapp', 'WhatsApp')]

    # identity
    name = models.CharField(max_length=100, validators=[MinLengthValidator(3)], db_index=True)
    cpf = models.CharField(max_length=14, unique=True, validators=[validate_cpf])
    rg = models.CharField(max_length=20, blank=True)
    birth_date = models.DateField()
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES)
    marital_status = models.CharField(max_length=10, choices=MARITAL_CHOICES, blank=True)
    nationality = models.CharField(max_length=50, default='Brasileira')
    # contact
    email = models.EmailField(unique=True, null=True, blank=True)
    phone = models.CharField(max_length=20, validators=[validate_phone])
    phone_secondary = models.CharField(max_length=20, blank=True, validators=[validate_phone])
    preferred_contact_method = models.CharField(max_length=10, choices=CONTACT_CHOICES, default='phone')
    # address
    address_street = models.CharField(max_length=200, blank=True)
    address_number = models.CharField(max_length=20, blank=True)
    address_complement = models.CharField(max_length=100, blank=True)
    address_neighborhood = models.CharField(max_length=100, blank=True)
    address_city = models.CharField(max_length=100, blank=True)
    address_state = models.CharField(max_length=2, blank=True, validators=[validate_state])
    address_zip = models.CharField(max_length=9, blank=True, validators=[validate_zip])
    # insurance
    health_insurance = models.CharField(max_length=100, blank=True, db_index=True)
    health_insurance_number = models.CharField(max_length=50, blank=True)
    health_insurance_validity = models.DateField(null=True, blank=True)
    health_insurance_type = models.CharField(max_length=10, choices=INSURANCE_TYPE_CHOICES, blank=True)
    # clinical
    blood_type = models.CharField(max_length=3, choices=BLOOD_CHOICES, blank=True)
    weight = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True,
                                 validators=[MinValueValidator(0), MaxValueValidator(500)])
    height = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True,
                                 validators=[MinValueValidator(0), MaxValueValidator(300)])
    allergies = models.TextField(blank=True)
    chronic_diseases = models.TextField(blank=True)
    medications = models.TextField(blank=True)
    previous_surgeries = models.TextField(blank=True)
    family_history = models.TextField(blank=True)
    lifestyle = models.JSONField(default=dict, blank=True)
    medical_notes = models.TextField(blank=True)
    risk_classification = models.CharField(max_length=10, choices=RISK_CHOICES, default='low')
    # emergency contact / guardian
    emergency_contact_name = models.CharField(max_length=100, blank=True)
    emergency_contact_phone = models.CharField(max_length=20, blank=True)
    emergency_contact_relationship = models.CharField(max_length=50, blank=True)
    guardian_name = models.CharField(max_length=100, blank=True)
    guardian_cpf = models.CharField(max_length=14, blank=True)
    guardian_phone = models.CharField(max_length=20, blank=True)
    # administrative
    photo = models.URLField(max_length=500, blank=True)
    documents = models.JSONField(default=list, blank=True)
    special_needs = models.TextField(blank=True)
    administrative_notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    registration_date = models.DateField(default=timezone.localdate)
    last_appointment_date = models.DateField(null=True, blank=True)
    total_appointments = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['name']
        indexes = [
            models.Index(fields=['is_active', 'name'], name='clinic_pati_is_acti_5e8f0a_idx'),
            models.Index(fields=['birth_date'], name='clinic_pati_birth_d_9b7c21_idx'),
        ]

    def save(self, *args, **kwargs):
        self.name = (self.name or '').strip()
        self.email = (self.email or '').strip().lower() or None
        self.address_state = (self.address_state or '').upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.name} ({self.cpf})"

    @property
    def age(self) -> int | None:
        return _age_on(self.birth_date)

    def is_minor(self) -> bool:
        age = self.age
        return age is not None and age < 18

    def requires_guardian(self) -> bool:
        return self.is_minor()

    def bmi(self) -> float | None:
        if not self.weight or not self.height:
            return None
        meters = float(self.height) / 100
        return round(float(self.weight) / (meters * meters), 1)

    def bmi_classification(self) -> str | None:
        bmi = self.bmi()
        if bmi is None:
            return None
        if bmi < 18.5:
            return 'underweight'
        if bmi < 25:
            return 'normal'
        if bmi < 30:
            return 'overweight'
        if bmi < 35:
            return 'obesity_1'
        if bmi < 40:
            return 'obesity_2'
        return 'obesity_3'

    def has_active_insurance(self) -> bool:
        if not self.health_insurance:
            return False
        return not self.health_insurance_validity or self.health_insurance_validity >= timezone.localdate()

    def formatted_address(self) -> str:
        street = ', '.join(p for p in (self.address_street, self.address_number) if p)
        parts = [street, self.address_complement, self.address_neighborhood]
        city = ' - '.join(p for p in (self.address_city, self.address_state) if p)
        parts.append(city)
        parts.append(self.address_zip)
        return ', '.join(p for p in parts if p)

    def has_allergies(self) -> bool:
        return bool(self.allergies and self.allergies.strip())

    def has_chronic_diseases(self) -> bool:
        return bool(self.chronic_diseases and self.chronic_diseases.strip())

    def add_document(self, document: dict) -> dict:
        doc = dict(document)
        doc.setdefault('uploaded_at', timezone.now().isoformat())
        self.documents = [*(self.documents or []), doc]
        self.save(update_fields=['documents', 'updated_at'])
        return doc

    def remove_document(self, filename: str) -> bool:
        docs = list(self.documents or [])
        kept = [d for d in docs if d.get('filename') != filename]
        if len(kept) == len(docs):
            return False
        self.documents = kept
        self.save(update_fields=['documents', 'updated_at'])
        return True

    def increment_appointments(self, on_date: date | None = None) -> None:
        self.total_appointments = (self.total_appointments or 0) + 1
        self.last_appointment_date = on_date or timezone.localdate()
        self.save(update_fields=['total_appointments', 'last_appointment_date', 'updated_at'])


# ---------------------------------------------------------------------
# Doctors
# ---------------------------------------------------------------------
class Doctor(TimeStampedModel):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctor_profile'
    )
    name = models.CharField(max_length=100, validators=[MinLengthValidator(3)])
    crm = models.CharField(max_length=20)
    crm_state = models.CharField(max_length=2, validators=[validate_state])
    cpf = models.CharField(max_length=14, unique=True, validators=[validate_cpf])
    specialty = models.CharField(max_length=100, db_index=True)
    sub_specialties = models.JSONField(default=list, blank=True)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, validators=[validate_phone])
    phone_secondary = models.CharField(max_length=20, blank=True)
    birth_date = models.DateField(null=True, blank=True)
    consultation_price = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO,
                                             validators=[MinValueValidator(0)])
    consultation_duration = models.PositiveIntegerField(
        default=30, validators=[MinValueValidator(5), MaxValueValidator(480)]
    )
    accepts_health_insurance = models.BooleanField(default=True)
    health_insurances = models.JSONField(default=list, blank=True)
    working_hours = models.JSONField(default=default_working_hours, validators=[validate_working_hours])
    bio = models.TextField(blank=True)
    photo = models.URLField(max_length=500, blank=True)
    signature = models.TextField(blank=True)
    formation = models.TextField(blank=True)
    additional_info = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['crm', 'crm_state'], name='unique_crm_per_state'),
        ]

    def save(self, *args, **kwargs):
        self.name = (self.name or '').strip()
        self.email = (self.email or '').strip().lower()
        self.crm_state = (self.crm_state or '').upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.name} - CRM {self.crm}/{self.crm_state}"

    @property
    def age(self) -> int | None:
        return _age_on(self.birth_date)

    def working_hours_for_day(self, day: str) -> dict | None:
        return (self.working_hours or {}).get(day.lower())

    def is_available_on_day(self, day: str) -> bool:
        slot = self.working_hours_for_day(day)
        return bool(slot and slot.get('active'))

    def is_time_within_working_hours(self, day: str, time_str: str) -> bool:
        """``start <= time < end`` on an active day; times are HH:mm strings."""
        slot = self.working_hours_for_day(day)
        if not slot or not slot.get('active'):
            return False
        return slot['start'] <= time_str[:5] < slot['end']

    def active_days(self) -> list[str]:
        return [day for day, slot in (self.working_hours or {}).items() if slot.get('active')]

    def accepts_insurance(self, insurance_name: str) -> bool:
        if not self.accepts_health_insurance or not insurance_name:
            return False
        wanted = insurance_name.strip().lower()
        return any(str(n).lower() == wanted for n in (self.health_insurances or []))


# ---------------------------------------------------------------------
# Appointments
# ---------------------------------------------------------------------
class Appointment(TimeStampedModel):
    STATUS_SCHEDULED = 'scheduled'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_NO_SHOW = 'no_show'
    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_NO_SHOW, 'No show'),
    ]
    # statuses that release the doctor's slot
    INACTIVE_STATUSES = (STATUS_CANCELLED, STATUS_NO_SHOW)
    TYPE_CHOICES = [
        ('first_visit', 'First visit'),
        ('return', 'Return'),
        ('follow_up', 'Follow-up'),
        ('emergency', 'Emergency'),
    ]
    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('partially_paid', 'Partially paid'),
        ('refunded', 'Refunded'),
    ]
    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('credit_card', 'Credit card'),
        ('debit_card', 'Debit card'),
        ('pix', 'PIX'),
        ('health_insurance', 'Health insurance'),
    ]

    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='appointments')
    doctor = models.ForeignKey(Doctor, on_delete=models.PROTECT, related_name='appointments')
    appointment_date = models.DateField()
    appointment_time = models.TimeField()
    duration = models.PositiveIntegerField(default=30, validators=[MinValueValidator(5), MaxValueValidator(480)])
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED, db_index=True)
    appointment_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='first_visit')
    reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True,
                                validators=[MinValueValidator(0)])
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='pending')
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, blank=True)
    health_insurance_authorization = models.CharField(max_length=100, blank=True)
    cancellation_reason = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    reminder_sent = models.BooleanField(default=False)
    reminder_sent_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )

    class Meta:
        ordering = ['appointment_date', 'appointment_time']
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'appointment_date', 'appointment_time'],
                condition=~Q(status__in=['cancelled', 'no_show']),
                name='unique_doctor_datetime',
            ),
        ]
        indexes = [
            models.Index(fields=['doctor', 'appointment_date'], name='clinic_appo_doctor__6f1b1e_idx'),
            models.Index(fields=['patient', 'appointment_date'], name='clinic_appo_patient_a3c2d4_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.patient_id} with {self.doctor_id} on {self.appointment_date} {self.appointment_time}"

    @property
    def full_datetime(self) -> datetime:
        return timezone.make_aware(datetime.combine(self.appointment_date, self.appointment_time))

    def can_be_cancelled(self) -> bool:
        return self.status in (self.STATUS_SCHEDULED, self.STATUS_CONFIRMED)

    def is_past(self) -> bool:
        return self.full_datetime < timezone.now()


# ---------------------------------------------------------------------
# Medical records
# ---------------------------------------------------------------------
class MedicalRecord(TimeStampedModel):
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('completed', 'Completed'),
        ('reviewed', 'Reviewed'),
        ('amended', 'Amended'),
        ('cancelled', 'Cancelled'),
    ]

    appointment = models.OneToOneField(Appointment, on_delete=models.PROTECT, related_name='medical_record')
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='medical_records')
    doctor = models.ForeignKey(Doctor, on_delete=models.PROTECT, related_name='medical_records')
    consultation_date = models.DateField(default=timezone.localdate)
    consultation_time = models.TimeField(null=True, blank=True)
    # anamnesis
    chief_complaint = models.TextField(blank=True)
    history_present_illness = models.TextField(blank=True)
    past_medical_history = models.TextField(blank=True)
    family_history = models.TextField(blank=True)
    social_history = models.TextField(blank=True)
    allergies = models.TextField(blank=True)
    current_medications = models.TextField(blank=True)
    # examination
    vital_signs = models.JSONField(default=dict, blank=True)
    physical_examination = models.TextField(blank=True)
    clinical_assessment = models.TextField(blank=True)
    # diagnosis and plan
    diagnosis_primary = models.CharField(max_length=255, blank=True, db_index=True)
    diagnosis_secondary = models.TextField(blank=True)
    icd10_codes = models.JSONField(default=list, blank=True)
    treatment_plan = models.TextField(blank=True)
    prescription = models.TextField(blank=True)
    medications_prescribed = models.JSONField(default=list, blank=True)
    lab_tests_requested = models.TextField(blank=True)
    imaging_requested = models.TextField(blank=True)
    referrals = models.TextField(blank=True)
    patient_instructions = models.TextField(blank=True)
    follow_up = models.TextField(blank=True)
    follow_up_date = models.DateField(null=True, blank=True)
    procedures_performed = models.TextField(blank=True)
    procedure_codes = models.JSONField(default=list, blank=True)
    clinical_notes = models.TextField(blank=True)
    private_notes = models.TextField(blank=True)
    attachments = models.JSONField(default=list, blank=True)
    # lifecycle
    record_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft', db_index=True)
    is_confidential = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    digital_signature = models.TextField(blank=True)
    signature_timestamp = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )

    class Meta:
        ordering = ['-consultation_date', '-created_at']
        indexes = [models.Index(fields=['patient', 'consultation_date'], name='clinic_medi_patient_4d2e8b_idx')]

    def __str__(self) -> str:
        return f"record {self.id} ({self.record_status})"

    def is_complete(self) -> bool:
        return self.record_status in ('completed', 'reviewed')

    def can_be_edited(self) -> bool:
        return self.record_status in ('draft', 'amended')

    def complete(self) -> None:
        self.record_status = 'completed'
        self.completed_at = timezone.now()

    def sign(self, signature: str) -> None:
        self.digital_signature = signature
        self.signature_timestamp = timezone.now()

    def review(self, user) -> None:
        self.record_status = 'reviewed'
        self.reviewed_by = user
        self.reviewed_at = timezone.now()

    def amend(self) -> None:
        self.record_status = 'amended'
        self.digital_signature = ''
        self.signature_timestamp = None

    def bmi(self) -> float | None:
        vs = self.vital_signs or {}
        try:
            weight = float(vs.get('weight') or 0)
            height = float(vs.get('height') or 0)
        except (TypeError, ValueError):
            return None
        if not weight or not height:
            return None
        meters = height / 100 if height > 3 else height
        return round(weight / (meters * meters), 1)

    def has_prescription(self) -> bool:
        return bool(self.prescription or self.medications_prescribed)

    def has_tests_requested(self) -> bool:
        return bool(self.lab_tests_requested or self.imaging_requested)

    def days_since_consultation(self) -> int:
        return (timezone.localdate() - self.consultation_date).days

    def add_attachment(self, attachment: dict) -> dict:
        att = dict(attachment)
        att.setdefault('uploaded_at', timezone.now().isoformat())
        self.attachments = [*(self.attachments or []), att]
        return att

    def remove_attachment(self, filename: str) -> bool:
        items = list(self.attachments or [])
        kept = [a for a in items if a.get('filename') != filename]
        self.attachments = kept
        return len(kept) != len(items)


# ---------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------
class Payment(TimeStampedModel):
    METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('credit_card', 'Credit card'),
        ('debit_card', 'Debit card'),
        ('pix', 'PIX'),
        ('bank_transfer', 'Bank transfer'),
        ('health_insurance', 'Health insurance'),
        ('check', 'Check'),
        ('other', 'Other'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('partially_paid', 'Partially paid'),
        ('overdue', 'Overdue'),
        ('refunded', 'Refunded'),
        ('cancelled', 'Cancelled'),
    ]
    OPEN_STATUSES = ('pending', 'partially_paid', 'overdue')

    appointment = models.ForeignKey(Appointment, on_delete=models.PROTECT, related_name='payments')
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='payments')
    amount = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    amount_paid = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=ZERO,
                                              validators=[MinValueValidator(0), MaxValueValidator(100)])
    payment_method = models.CharField(max_length=20, choices=METHOD_CHOICES)
    payment_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)
    installments = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    installment_value = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    payment_date = models.DateTimeField(null=True, blank=True)
    card_last_digits = models.CharField(max_length=4, blank=True)
    card_brand = models.CharField(max_length=20, blank=True)
    authorization_code = models.CharField(max_length=50, blank=True)
    transaction_id = models.CharField(max_length=100, unique=True, null=True, blank=True)
    health_insurance = models.ForeignKey(
        HealthInsurance, null=True, blank=True, on_delete=models.SET_NULL, related_name='payments'
    )
    health_insurance_authorization = models.CharField(max_length=100, blank=True)
    insurance_coverage_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    patient_copayment = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    refund_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    refund_date = models.DateTimeField(null=True, blank=True)
    refund_reason = models.TextField(blank=True)
    receipt_number = models.CharField(max_length=50, unique=True, null=True, blank=True)
    receipt_url = models.URLField(max_length=500, blank=True)
    invoice_number = models.CharField(max_length=50, blank=True)
    invoice_url = models.URLField(max_length=500, blank=True)
    notes = models.TextField(blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    cancellation_reason = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['payment_status', 'due_date'], name='clinic_paym_payment_7a1c3f_idx'),
            models.Index(fields=['patient', 'created_at'], name='clinic_paym_patient_b8e2d0_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.receipt_number or self.id} {self.amount} ({self.payment_status})"

    def net_amount(self) -> Decimal:
        return _money(self.amount) - _money(self.discount)

    def remaining_balance(self) -> Decimal:
        return max(ZERO, self.net_amount() - _money(self.amount_paid))

    def is_paid(self) -> bool:
        return self.payment_status == 'paid' or self.remaining_balance() == ZERO

    def is_overdue(self) -> bool:
        if not self.due_date or self.payment_status in ('paid', 'refunded', 'cancelled'):
            return False
        return self.due_date < timezone.localdate()

    def days_until_due(self) -> int | None:
        if not self.due_date:
            return None
        return (self.due_date - timezone.localdate()).days

    def compute_installment_value(self) -> None:
        if self.installments and self.installments > 1:
            self.installment_value = _money(self.net_amount() / self.installments)
        else:
            self.installment_value = None

    def process(self, amount, user) -> None:
        """Apply a received amount; the caller validates it against the balance."""
        self.amount_paid = _money(self.amount_paid) + _money(amount)
        if self.remaining_balance() == ZERO:
            self.payment_status = 'paid'
            self.payment_date = timezone.now()
        else:
            self.payment_status = 'partially_paid'
        self.processed_by = user

    def cancel(self, reason: str, user) -> None:
        self.payment_status = 'cancelled'
        self.cancellation_reason = reason
        self.cancelled_by = user
        self.cancelled_at = timezone.now()

    def refund(self, amount, reason: str) -> None:
        self.refund_amount = _money(amount)
        self.refund_reason = reason
        self.refund_date = timezone.now()
        self.payment_status = 'refunded'

    @classmethod
    def generate_receipt_number(cls) -> str:
        prefix = timezone.localdate().strftime('REC-%Y%m-')
        for _ in range(20):
            candidate = f"{prefix}{secrets.randbelow(10000):04d}"
            if not cls.objects.filter(receipt_number=candidate).exists():
                return candidate
        return f"{prefix}{uuid.uuid4().hex[:8].upper()}"


# ---------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------
class AuditEvent(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='clinic_audi_action_2f9e61_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='clinic_audi_object__c47a55_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.action} {self.object_type}:{self.object_id}"
