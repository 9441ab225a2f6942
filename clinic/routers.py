"""
URL mappings for the clinic API.

Paths carry no trailing slash.  Literal segments (``statistics``,
``stats``, ``overdue``...) are listed before the ``<uuid:pk>`` routes
of the same resource.
"""
from django.urls import include, path

from .auth_views import (
    change_password_view,
    forgot_password_view,
    jwt_refresh_view,
    login_view,
    logout_view,
    me_view,
    profile_view,
    reset_password_view,
)
from .views import appointments, doctors, health, insurances, medical_records, patients, payments, reports, users


urlpatterns = [
    # exposes /metrics
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz),

    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh'),
    path('api/auth/logout', logout_view, name='logout'),
    path('api/auth/me', me_view, name='me'),
    path('api/auth/profile', profile_view, name='profile'),
    path('api/auth/change-password', change_password_view, name='change_password'),
    path('api/auth/forgot-password', forgot_password_view, name='forgot_password'),
    path('api/auth/reset-password/<str:token>', reset_password_view, name='reset_password'),

    # Users
    path('api/users', users.users, name='users'),
    path('api/users/statistics', users.user_statistics, name='user_statistics'),
    path('api/users/<int:pk>', users.user_detail, name='user_detail'),
    path('api/users/<int:pk>/toggle-status', users.toggle_user_status, name='user_toggle_status'),

    # Patients
    path('api/patients', patients.patients, name='patients'),
    path('api/patients/statistics', patients.patient_statistics, name='patient_statistics'),
    path('api/patients/birthdays', patients.birthdays, name='patient_birthdays'),
    path('api/patients/by-insurance/<str:name>', patients.patients_by_insurance, name='patients_by_insurance'),
    path('api/patients/cpf/<str:cpf>', patients.patient_by_cpf, name='patient_by_cpf'),
    path('api/patients/<uuid:pk>', patients.patient_detail, name='patient_detail'),
    path('api/patients/<uuid:pk>/toggle-status', patients.toggle_patient_status, name='patient_toggle_status'),
    path('api/patients/<uuid:pk>/reactivate', patients.reactivate_patient, name='patient_reactivate'),
    path('api/patients/<uuid:pk>/appointments', patients.patient_appointments, name='patient_appointments'),
    path('api/patients/<uuid:pk>/stats', patients.patient_stats, name='patient_stats'),
    path('api/patients/<uuid:pk>/medical-records', patients.patient_medical_records,
         name='patient_medical_records'),
    path('api/patients/<uuid:pk>/payments', patients.patient_payments, name='patient_payments'),
    path('api/patients/<uuid:pk>/documents', patients.add_patient_document, name='patient_documents'),
    path('api/patients/<uuid:pk>/documents/<str:filename>', patients.remove_patient_document,
         name='patient_document_detail'),

    # Doctors
    path('api/doctors', doctors.doctors, name='doctors'),
    path('api/doctors/specialties', doctors.specialties, name='doctor_specialties'),
    path('api/doctors/statistics', doctors.doctor_statistics, name='doctor_statistics'),
    path('api/doctors/<uuid:pk>', doctors.doctor_detail, name='doctor_detail'),
    path('api/doctors/<uuid:pk>/appointments', doctors.doctor_appointments, name='doctor_appointments'),
    path('api/doctors/<uuid:pk>/schedule', doctors.doctor_schedule, name='doctor_schedule'),
    path('api/doctors/<uuid:pk>/working-hours', doctors.doctor_working_hours, name='doctor_working_hours'),
    path('api/doctors/<uuid:pk>/toggle-status', doctors.toggle_doctor_status, name='doctor_toggle_status'),

    # Appointments
    path('api/appointments', appointments.appointments, name='appointments'),
    path('api/appointments/stats', appointments.appointment_stats, name='appointment_stats'),
    path('api/appointments/doctor/<uuid:doctor_id>/available-slots', appointments.available_slots,
         name='available_slots'),
    path('api/appointments/<uuid:pk>', appointments.appointment_detail, name='appointment_detail'),
    path('api/appointments/<uuid:pk>/confirm', appointments.confirm_appointment, name='appointment_confirm'),
    path('api/appointments/<uuid:pk>/start', appointments.start_appointment, name='appointment_start'),
    path('api/appointments/<uuid:pk>/complete', appointments.complete_appointment, name='appointment_complete'),
    path('api/appointments/<uuid:pk>/cancel', appointments.cancel_appointment, name='appointment_cancel'),
    path('api/appointments/<uuid:pk>/no-show', appointments.no_show_appointment, name='appointment_no_show'),

    # Medical records
    path('api/medical-records', medical_records.medical_records, name='medical_records'),
    path('api/medical-records/stats/overview', medical_records.record_stats, name='medical_record_stats'),
    path('api/medical-records/patient/<uuid:patient_id>', medical_records.records_by_patient,
         name='medical_records_by_patient'),
    path('api/medical-records/appointment/<uuid:appointment_id>', medical_records.record_by_appointment,
         name='medical_record_by_appointment'),
    path('api/medical-records/<uuid:pk>', medical_records.record_detail, name='medical_record_detail'),
    path('api/medical-records/<uuid:pk>/complete', medical_records.complete_record, name='medical_record_complete'),
    path('api/medical-records/<uuid:pk>/sign', medical_records.sign_record, name='medical_record_sign'),
    path('api/medical-records/<uuid:pk>/review', medical_records.review_record, name='medical_record_review'),
    path('api/medical-records/<uuid:pk>/amend', medical_records.amend_record, name='medical_record_amend'),
    path('api/medical-records/<uuid:pk>/attachments', medical_records.add_attachment,
         name='medical_record_attachments'),
    path('api/medical-records/<uuid:pk>/attachments/<str:filename>', medical_records.remove_attachment,
         name='medical_record_attachment_detail'),

    # Health insurances
    path('api/health-insurances', insurances.insurances, name='insurances'),
    path('api/health-insurances/<uuid:pk>', insurances.insurance_detail, name='insurance_detail'),
    path('api/health-insurances/<uuid:pk>/toggle-status', insurances.toggle_insurance_status,
         name='insurance_toggle_status'),
    path('api/health-insurances/<uuid:pk>/calculate', insurances.calculate_value, name='insurance_calculate'),

    # Payments
    path('api/payments', payments.payments, name='payments'),
    path('api/payments/overdue', payments.overdue, name='payments_overdue'),
    path('api/payments/statistics', payments.payment_statistics, name='payment_statistics'),
    path('api/payments/revenue', payments.revenue, name='payment_revenue'),
    path('api/payments/<uuid:pk>', payments.payment_detail, name='payment_detail'),
    path('api/payments/<uuid:pk>/process', payments.process_payment, name='payment_process'),
    path('api/payments/<uuid:pk>/cancel', payments.cancel_payment, name='payment_cancel'),
    path('api/payments/<uuid:pk>/refund', payments.refund_payment, name='payment_refund'),
    path('api/payments/<uuid:pk>/receipt', payments.payment_receipt, name='payment_receipt'),

    # Reports
    path('api/reports/dashboard', reports.dashboard, name='report_dashboard'),
    path('api/reports/appointments', reports.appointments_report, name='report_appointments'),
    path('api/reports/financial', reports.financial_report, name='report_financial'),
    path('api/reports/patients', reports.patients_report, name='report_patients'),
    path('api/reports/doctors', reports.doctors_report, name='report_doctors'),
    path('api/reports/medical-records', reports.medical_records_report, name='report_medical_records'),
    path('api/reports/export', reports.export, name='report_export'),
]
