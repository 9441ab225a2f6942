"""
Django admin registrations for the clinic models.

Superusers can inspect and correct data at ``/admin/``; day to day
work goes through the API.
"""
from django.contrib import admin

from .models import AuditEvent, Appointment, Doctor, HealthInsurance, MedicalRecord, Patient, Payment, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('email', 'name', 'role', 'is_active', 'last_login', 'locked_until')
    list_filter = ('role', 'is_active')
    search_fields = ('email', 'name')
    exclude = ('password', 'password_reset_token')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('name', 'cpf', 'birth_date', 'phone', 'health_insurance', 'is_active')
    list_filter = ('is_active', 'gender')
    search_fields = ('name', 'cpf', 'email', 'phone')


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('name', 'crm', 'crm_state', 'specialty', 'is_active')
    list_filter = ('specialty', 'is_active')
    search_fields = ('name', 'crm', 'cpf', 'email')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('appointment_date', 'appointment_time', 'patient', 'doctor', 'status', 'payment_status')
    list_filter = ('status', 'payment_status', 'appointment_type')
    search_fields = ('patient__name', 'doctor__name')
    date_hierarchy = 'appointment_date'


@admin.register(MedicalRecord)
class MedicalRecordAdmin(admin.ModelAdmin):
    list_display = ('consultation_date', 'patient', 'doctor', 'record_status', 'diagnosis_primary')
    list_filter = ('record_status',)
    search_fields = ('patient__name', 'doctor__name', 'diagnosis_primary')


@admin.register(HealthInsurance)
class HealthInsuranceAdmin(admin.ModelAdmin):
    list_display = ('name', 'code', 'type', 'reimbursement_percentage', 'is_active')
    list_filter = ('type', 'is_active')
    search_fields = ('name', 'code')


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('receipt_number', 'patient', 'amount', 'amount_paid', 'payment_method', 'payment_status',
                    'due_date')
    list_filter = ('payment_status', 'payment_method')
    search_fields = ('receipt_number', 'patient__name', 'transaction_id')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'user', 'action', 'object_type', 'object_id')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id', 'user__email')
