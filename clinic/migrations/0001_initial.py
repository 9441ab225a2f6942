import uuid
from decimal import Decimal

import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import clinic.models
import clinic.validators


def _timestamps():
    return [
        ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
        ('created_at', models.DateTimeField(auto_now_add=True)),
        ('updated_at', models.DateTimeField(auto_now=True)),
    ]


def _user_fk():
    return models.ForeignKey(
        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
        related_name='+', to=settings.AUTH_USER_MODEL,
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('name', models.CharField(max_length=100, validators=[django.core.validators.MinLengthValidator(3)])),
                ('email', models.EmailField(max_length=254, unique=True)),
                ('role', models.CharField(choices=[('admin', 'Administrator'), ('doctor', 'Doctor'), ('receptionist', 'Receptionist')], db_index=True, default='receptionist', max_length=20)),
                ('phone', models.CharField(blank=True, max_length=20, validators=[clinic.validators.validate_phone])),
                ('avatar', models.URLField(blank=True, max_length=500)),
                ('last_login_ip', models.GenericIPAddressField(blank=True, null=True)),
                ('login_attempts', models.PositiveIntegerField(default=0)),
                ('locked_until', models.DateTimeField(blank=True, null=True)),
                ('password_reset_token', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('password_reset_expires', models.DateTimeField(blank=True, null=True)),
                ('password_changed_at', models.DateTimeField(blank=True, null=True)),
                ('preferences', models.JSONField(blank=True, default=clinic.models.default_preferences)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'abstract': False,
            },
            managers=[
                ('objects', clinic.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='HealthInsurance',
            fields=_timestamps() + [
                ('name', models.CharField(max_length=100, unique=True, validators=[django.core.validators.MinLengthValidator(2)])),
                ('code', models.CharField(blank=True, max_length=50, null=True, unique=True)),
                ('type', models.CharField(choices=[('private', 'Private'), ('public', 'Public'), ('cooperative', 'Cooperative'), ('self_management', 'Self-management')], default='private', max_length=20)),
                ('category', models.CharField(blank=True, choices=[('individual', 'Individual'), ('company', 'Company'), ('collective', 'Collective'), ('family', 'Family')], max_length=20)),
                ('contact_name', models.CharField(blank=True, max_length=100)),
                ('contact_phone', models.CharField(blank=True, max_length=20)),
                ('contact_email', models.EmailField(blank=True, max_length=254)),
                ('website', models.URLField(blank=True, max_length=255)),
                ('reimbursement_percentage', models.DecimalField(decimal_places=2, default=Decimal('100.00'), max_digits=5, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('copayment_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ('copayment_percentage', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=5, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('minimum_consultation_value', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('requires_authorization', models.BooleanField(default=False)),
                ('authorization_deadline_days', models.PositiveIntegerField(blank=True, null=True)),
                ('billing_deadline_days', models.PositiveIntegerField(default=30)),
                ('payment_deadline_days', models.PositiveIntegerField(default=30)),
                ('procedure_table', models.CharField(blank=True, max_length=50)),
                ('coverage_info', models.TextField(blank=True)),
                ('exclusions', models.TextField(blank=True)),
                ('accepts_emergency', models.BooleanField(default=True)),
                ('accepts_telemedicine', models.BooleanField(default=False)),
                ('waiting_period_days', models.PositiveIntegerField(default=0)),
                ('notes', models.TextField(blank=True)),
                ('contract_number', models.CharField(blank=True, max_length=50)),
                ('contract_start_date', models.DateField(blank=True, null=True)),
                ('contract_end_date', models.DateField(blank=True, null=True)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('logo', models.URLField(blank=True, max_length=500)),
            ],
            options={'ordering': ['name']},
        ),
        migrations.CreateModel(
            name='Patient',
            fields=_timestamps() + [
                ('name', models.CharField(db_index=True, max_length=100, validators=[django.core.validators.MinLengthValidator(3)])),
                ('cpf', models.CharField(max_length=14, unique=True, validators=[clinic.validators.validate_cpf])),
                ('rg', models.CharField(blank=True, max_length=20)),
                ('birth_date', models.DateField()),
                ('gender', models.CharField(choices=[('male', 'Male'), ('female', 'Female'), ('other', 'Other')], max_length=10)),
                ('marital_status', models.CharField(blank=True, choices=[('single', 'Single'), ('married', 'Married'), ('divorced', 'Divorced'), ('widowed', 'Widowed'), ('other', 'Other')], max_length=10)),
                ('nationality', models.CharField(default='Brasileira', max_length=50)),
                ('email', models.EmailField(blank=True, max_length=254, null=True, unique=True)),
                ('phone', models.CharField(max_length=20, validators=[clinic.validators.validate_phone])),
                ('phone_secondary', models.CharField(blank=True, max_length=20, validators=[clinic.validators.validate_phone])),
                ('preferred_contact_method', models.CharField(choices=[('phone', 'Phone'), ('email', 'E-mail'), ('sms', 'SMS'), ('whatsapp', 'WhatsApp')], default='phone', max_length=10)),
                ('address_street', models.CharField(blank=True, max_length=200)),
                ('address_number', models.CharField(blank=True, max_length=20)),
                ('address_complement', models.CharField(blank=True, max_length=100)),
                ('address_neighborhood', models.CharField(blank=True, max_length=100)),
                ('address_city', models.CharField(blank=True, max_length=100)),
                ('address_state', models.CharField(blank=True, max_length=2, validators=[clinic.validators.validate_state])),
                ('address_zip', models.CharField(blank=True, max_length=9, validators=[clinic.validators.validate_zip])),
                ('health_insurance', models.CharField(blank=True, db_index=True, max_length=100)),
                ('health_insurance_number', models.CharField(blank=True, max_length=50)),
                ('health_insurance_validity', models.DateField(blank=True, null=True)),
                ('health_insurance_type', models.CharField(blank=True, choices=[('holder', 'Holder'), ('dependent', 'Dependent')], max_length=10)),
                ('blood_type', models.CharField(blank=True, choices=[('A+', 'A+'), ('A-', 'A-'), ('B+', 'B+'), ('B-', 'B-'), ('AB+', 'AB+'), ('AB-', 'AB-'), ('O+', 'O+'), ('O-', 'O-')], max_length=3)),
                ('weight', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(500)])),
                ('height', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(300)])),
                ('allergies', models.TextField(blank=True)),
                ('chronic_diseases', models.TextField(blank=True)),
                ('medications', models.TextField(blank=True)),
                ('previous_surgeries', models.TextField(blank=True)),
                ('family_history', models.TextField(blank=True)),
                ('lifestyle', models.JSONField(blank=True, default=dict)),
                ('medical_notes', models.TextField(blank=True)),
                ('risk_classification', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('critical', 'Critical')], default='low', max_length=10)),
                ('emergency_contact_name', models.CharField(blank=True, max_length=100)),
                ('emergency_contact_phone', models.CharField(blank=True, max_length=20)),
                ('emergency_contact_relationship', models.CharField(blank=True, max_length=50)),
                ('guardian_name', models.CharField(blank=True, max_length=100)),
                ('guardian_cpf', models.CharField(blank=True, max_length=14)),
                ('guardian_phone', models.CharField(blank=True, max_length=20)),
                ('photo', models.URLField(blank=True, max_length=500)),
                ('documents', models.JSONField(blank=True, default=list)),
                ('special_needs', models.TextField(blank=True)),
                ('administrative_notes', models.TextField(blank=True)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('registration_date', models.DateField(default=django.utils.timezone.localdate)),
                ('last_appointment_date', models.DateField(blank=True, null=True)),
                ('total_appointments', models.PositiveIntegerField(default=0)),
            ],
            options={'ordering': ['name']},
        ),
        migrations.CreateModel(
            name='Doctor',
            fields=_timestamps() + [
                ('name', models.CharField(max_length=100, validators=[django.core.validators.MinLengthValidator(3)])),
                ('crm', models.CharField(max_length=20)),
                ('crm_state', models.CharField(max_length=2, validators=[clinic.validators.validate_state])),
                ('cpf', models.CharField(max_length=14, unique=True, validators=[clinic.validators.validate_cpf])),
                ('specialty', models.CharField(db_index=True, max_length=100)),
                ('sub_specialties', models.JSONField(blank=True, default=list)),
                ('email', models.EmailField(max_length=254, unique=True)),
                ('phone', models.CharField(max_length=20, validators=[clinic.validators.validate_phone])),
                ('phone_secondary', models.CharField(blank=True, max_length=20)),
                ('birth_date', models.DateField(blank=True, null=True)),
                ('consultation_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ('consultation_duration', models.PositiveIntegerField(default=30, validators=[django.core.validators.MinValueValidator(5), django.core.validators.MaxValueValidator(480)])),
                ('accepts_health_insurance', models.BooleanField(default=True)),
                ('health_insurances', models.JSONField(blank=True, default=list)),
                ('working_hours', models.JSONField(default=clinic.validators.default_working_hours, validators=[clinic.validators.validate_working_hours])),
                ('bio', models.TextField(blank=True)),
                ('photo', models.URLField(blank=True, max_length=500)),
                ('signature', models.TextField(blank=True)),
                ('formation', models.TextField(blank=True)),
                ('additional_info', models.TextField(blank=True)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('user', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='doctor_profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={'ordering': ['name']},
        ),
        migrations.AddConstraint(
            model_name='doctor',
            constraint=models.UniqueConstraint(fields=('crm', 'crm_state'), name='unique_crm_per_state'),
        ),
        migrations.CreateModel(
            name='Appointment',
            fields=_timestamps() + [
                ('appointment_date', models.DateField()),
                ('appointment_time', models.TimeField()),
                ('duration', models.PositiveIntegerField(default=30, validators=[django.core.validators.MinValueValidator(5), django.core.validators.MaxValueValidator(480)])),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('confirmed', 'Confirmed'), ('in_progress', 'In progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled'), ('no_show', 'No show')], db_index=True, default='scheduled', max_length=20)),
                ('appointment_type', models.CharField(choices=[('first_visit', 'First visit'), ('return', 'Return'), ('follow_up', 'Follow-up'), ('emergency', 'Emergency')], default='first_visit', max_length=20)),
                ('reason', models.TextField(blank=True)),
                ('notes', models.TextField(blank=True)),
                ('price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(0)])),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('partially_paid', 'Partially paid'), ('refunded', 'Refunded')], default='pending', max_length=20)),
                ('payment_method', models.CharField(blank=True, choices=[('cash', 'Cash'), ('credit_card', 'Credit card'), ('debit_card', 'Debit card'), ('pix', 'PIX'), ('health_insurance', 'Health insurance')], max_length=20)),
                ('health_insurance_authorization', models.CharField(blank=True, max_length=100)),
                ('cancellation_reason', models.TextField(blank=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('reminder_sent', models.BooleanField(default=False)),
                ('reminder_sent_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_by', _user_fk()),
                ('created_by', _user_fk()),
                ('doctor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='appointments', to='clinic.doctor')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='appointments', to='clinic.patient')),
            ],
            options={'ordering': ['appointment_date', 'appointment_time']},
        ),
        migrations.AddConstraint(
            model_name='appointment',
            constraint=models.UniqueConstraint(condition=models.Q(('status__in', ['cancelled', 'no_show']), _negated=True), fields=('doctor', 'appointment_date', 'appointment_time'), name='unique_doctor_datetime'),
        ),
        migrations.AddIndex(
            model_name='appointment',
            index=models.Index(fields=['doctor', 'appointment_date'], name='clinic_appo_doctor__6f1b1e_idx'),
        ),
        migrations.AddIndex(
            model_name='appointment',
            index=models.Index(fields=['patient', 'appointment_date'], name='clinic_appo_patient_a3c2d4_idx'),
        ),
        migrations.AddIndex(
            model_name='patient',
            index=models.Index(fields=['is_active', 'name'], name='clinic_pati_is_acti_5e8f0a_idx'),
        ),
        migrations.AddIndex(
            model_name='patient',
            index=models.Index(fields=['birth_date'], name='clinic_pati_birth_d_9b7c21_idx'),
        ),
        migrations.CreateModel(
            name='MedicalRecord',
            fields=_timestamps() + [
                ('consultation_date', models.DateField(default=django.utils.timezone.localdate)),
                ('consultation_time', models.TimeField(blank=True, null=True)),
                ('chief_complaint', models.TextField(blank=True)),
                ('history_present_illness', models.TextField(blank=True)),
                ('past_medical_history', models.TextField(blank=True)),
                ('family_history', models.TextField(blank=True)),
                ('social_history', models.TextField(blank=True)),
                ('allergies', models.TextField(blank=True)),
                ('current_medications', models.TextField(blank=True)),
                ('vital_signs', models.JSONField(blank=True, default=dict)),
                ('physical_examination', models.TextField(blank=True)),
                ('clinical_assessment', models.TextField(blank=True)),
                ('diagnosis_primary', models.CharField(blank=True, db_index=True, max_length=255)),
                ('diagnosis_secondary', models.TextField(blank=True)),
                ('icd10_codes', models.JSONField(blank=True, default=list)),
                ('treatment_plan', models.TextField(blank=True)),
                ('prescription', models.TextField(blank=True)),
                ('medications_prescribed', models.JSONField(blank=True, default=list)),
                ('lab_tests_requested', models.TextField(blank=True)),
                ('imaging_requested', models.TextField(blank=True)),
                ('referrals', models.TextField(blank=True)),
                ('patient_instructions', models.TextField(blank=True)),
                ('follow_up', models.TextField(blank=True)),
                ('follow_up_date', models.DateField(blank=True, null=True)),
                ('procedures_performed', models.TextField(blank=True)),
                ('procedure_codes', models.JSONField(blank=True, default=list)),
                ('clinical_notes', models.TextField(blank=True)),
                ('private_notes', models.TextField(blank=True)),
                ('attachments', models.JSONField(blank=True, default=list)),
                ('record_status', models.CharField(choices=[('draft', 'Draft'), ('completed', 'Completed'), ('reviewed', 'Reviewed'), ('amended', 'Amended'), ('cancelled', 'Cancelled')], db_index=True, default='draft', max_length=20)),
                ('is_confidential', models.BooleanField(default=False)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('digital_signature', models.TextField(blank=True)),
                ('signature_timestamp', models.DateTimeField(blank=True, null=True)),
                ('appointment', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='medical_record', to='clinic.appointment')),
                ('created_by', _user_fk()),
                ('doctor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='medical_records', to='clinic.doctor')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='medical_records', to='clinic.patient')),
                ('reviewed_by', _user_fk()),
                ('updated_by', _user_fk()),
            ],
            options={'ordering': ['-consultation_date', '-created_at']},
        ),
        migrations.AddIndex(
            model_name='medicalrecord',
            index=models.Index(fields=['patient', 'consultation_date'], name='clinic_medi_patient_4d2e8b_idx'),
        ),
        migrations.CreateModel(
            name='Payment',
            fields=_timestamps() + [
                ('amount', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('amount_paid', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('discount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('discount_percentage', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=5, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('payment_method', models.CharField(choices=[('cash', 'Cash'), ('credit_card', 'Credit card'), ('debit_card', 'Debit card'), ('pix', 'PIX'), ('bank_transfer', 'Bank transfer'), ('health_insurance', 'Health insurance'), ('check', 'Check'), ('other', 'Other')], max_length=20)),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('partially_paid', 'Partially paid'), ('overdue', 'Overdue'), ('refunded', 'Refunded'), ('cancelled', 'Cancelled')], db_index=True, default='pending', max_length=20)),
                ('installments', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('installment_value', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('due_date', models.DateField(blank=True, null=True)),
                ('payment_date', models.DateTimeField(blank=True, null=True)),
                ('card_last_digits', models.CharField(blank=True, max_length=4)),
                ('card_brand', models.CharField(blank=True, max_length=20)),
                ('authorization_code', models.CharField(blank=True, max_length=50)),
                ('transaction_id', models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ('health_insurance_authorization', models.CharField(blank=True, max_length=100)),
                ('insurance_coverage_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('patient_copayment', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('refund_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('refund_date', models.DateTimeField(blank=True, null=True)),
                ('refund_reason', models.TextField(blank=True)),
                ('receipt_number', models.CharField(blank=True, max_length=50, null=True, unique=True)),
                ('receipt_url', models.URLField(blank=True, max_length=500)),
                ('invoice_number', models.CharField(blank=True, max_length=50)),
                ('invoice_url', models.URLField(blank=True, max_length=500)),
                ('notes', models.TextField(blank=True)),
                ('cancellation_reason', models.TextField(blank=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('appointment', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='clinic.appointment')),
                ('cancelled_by', _user_fk()),
                ('health_insurance', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='payments', to='clinic.healthinsurance')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='clinic.patient')),
                ('processed_by', _user_fk()),
            ],
            options={'ordering': ['-created_at']},
        ),
        migrations.AddIndex(
            model_name='payment',
            index=models.Index(fields=['payment_status', 'due_date'], name='clinic_paym_payment_7a1c3f_idx'),
        ),
        migrations.AddIndex(
            model_name='payment',
            index=models.Index(fields=['patient', 'created_at'], name='clinic_paym_patient_b8e2d0_idx'),
        ),
        migrations.CreateModel(
            name='AuditEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=64)),
                ('object_type', models.CharField(blank=True, max_length=64, null=True)),
                ('object_id', models.CharField(blank=True, max_length=64, null=True)),
                ('detail', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.AddIndex(
            model_name='auditevent',
            index=models.Index(fields=['action', 'created_at'], name='clinic_audi_action_2f9e61_idx'),
        ),
        migrations.AddIndex(
            model_name='auditevent',
            index=models.Index(fields=['object_type', 'object_id', 'created_at'], name='clinic_audi_object__c47a55_idx'),
        ),
    ]
