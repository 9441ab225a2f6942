"""
Management command to populate the database with demo clinic data.
"""
import random
from datetime import time, timedelta
from decimal import Decimal

from django.core.management import call_command
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from clinic.models import Appointment, Doctor, HealthInsurance, MedicalRecord, Patient, Payment, User
from clinic.validators import make_cpf


INSURANCES = [
    {'name': 'Unimed', 'code': 'UNI', 'type': 'cooperative', 'reimbursement_percentage': Decimal('80'),
     'copayment_amount': Decimal('20.00')},
    {'name': 'Bradesco Saude', 'code': 'BRA', 'type': 'private', 'reimbursement_percentage': Decimal('100')},
    {'name': 'SUS', 'code': 'SUS', 'type': 'public', 'reimbursement_percentage': Decimal('100')},
]

DOCTORS = [
    ('Dr. Ana Ribeiro', '123456', 'SP', 'Cardiology', Decimal('300.00'), 30),
    ('Dr. Bruno Costa', '654321', 'RJ', 'Dermatology', Decimal('250.00'), 20),
    ('Dr. Carla Mendes', '112233', 'MG', 'Pediatrics', Decimal('200.00'), 30),
]

PATIENTS = [
    ('Maria Silva', 'female', 1985), ('Joao Souza', 'male', 1972), ('Lucas Pereira', 'male', 2012),
    ('Fernanda Lima', 'female', 1990), ('Roberto Alves', 'male', 1958), ('Patricia Gomes', 'female', 2001),
]


class Command(BaseCommand):
    help = 'Populate database with demo data'

    def add_arguments(self, parser):
        parser.add_argument('--seed', type=int, default=42)

    @transaction.atomic
    def handle(self, *args, **options):
        random.seed(options['seed'])
        self.stdout.write('Creating demo data...')
        call_command('ensure_test_users', stdout=self.stdout)
        insurances = self.create_insurances()
        doctors = self.create_doctors(insurances)
        patients = self.create_patients(insurances)
        self.create_appointments(doctors, patients)
        self.stdout.write(self.style.SUCCESS('Demo data created.'))

    def create_insurances(self):
        out = []
        for data in INSURANCES:
            ins, _ = HealthInsurance.objects.get_or_create(name=data['name'], defaults=data)
            out.append(ins)
        return out

    def create_doctors(self, insurances):
        doctor_user = User.objects.filter(email='doctor@clinic.test').first()
        out = []
        for i, (name, crm, state, specialty, price, duration) in enumerate(DOCTORS):
            doctor, _ = Doctor.objects.get_or_create(
                crm=crm, crm_state=state,
                defaults={
                    'name': name,
                    'cpf': make_cpf(f'{300000000 + i * 1111:09d}'),
                    'specialty': specialty,
                    'email': f'{crm}@clinic.test',
                    'phone': f'1199999{i:04d}',
                    'consultation_price': price,
                    'consultation_duration': duration,
                    'health_insurances': [ins.name for ins in insurances[:2]],
                    'user': doctor_user if i == 0 else None,
                },
            )
            out.append(doctor)
        return out

    def create_patients(self, insurances):
        out = []
        for i, (name, gender, year) in enumerate(PATIENTS):
            ins = insurances[i % len(insurances)] if i % 2 == 0 else None
            patient, _ = Patient.objects.get_or_create(
                cpf=make_cpf(f'{100000000 + i * 7777:09d}'),
                defaults={
                    'name': name,
                    'birth_date': timezone.localdate().replace(year=year, month=(i % 12) + 1, day=10),
                    'gender': gender,
                    'email': f'patient{i}@example.com',
                    'phone': f'1198888{i:04d}',
                    'preferred_contact_method': 'email',
                    'health_insurance': ins.name if ins else '',
                    'address_city': 'Sao Paulo',
                    'address_state': 'SP',
                },
            )
            out.append(patient)
        return out

    def create_appointments(self, doctors, patients):
        today = timezone.localdate()
        created = 0
        for offset in range(-10, 10):
            day = today + timedelta(days=offset)
            if day.weekday() >= 5:
                continue
            doctor = doctors[offset % len(doctors)]
            patient = random.choice(patients)
            at = time(8 + random.randrange(0, 9), 0)
            if Appointment.objects.filter(doctor=doctor, appointment_date=day, appointment_time=at).exists():
                continue
            status = Appointment.STATUS_COMPLETED if offset < 0 else Appointment.STATUS_SCHEDULED
            appt = Appointment.objects.create(
                patient=patient, doctor=doctor, appointment_date=day, appointment_time=at,
                duration=doctor.consultation_duration, price=doctor.consultation_price,
                status=status, reason='Routine consultation',
                completed_at=timezone.now() if offset < 0 else None,
            )
            created += 1
            if status == Appointment.STATUS_COMPLETED:
                patient.increment_appointments(day)
                self.create_history(appt)
        self.stdout.write(f'{created} appointments created')

    def create_history(self, appointment):
        record = MedicalRecord(
            appointment=appointment, patient=appointment.patient, doctor=appointment.doctor,
            consultation_date=appointment.appointment_date,
            chief_complaint='Check-up', diagnosis_primary='Healthy', icd10_codes=['Z00.0'],
            vital_signs={'weight': 70, 'height': 170, 'blood_pressure': '120/80'},
        )
        record.complete()
        record.save()
        payment = Payment(
            appointment=appointment, patient=appointment.patient, amount=appointment.price,
            payment_method='pix', receipt_number=Payment.generate_receipt_number(),
            due_date=appointment.appointment_date,
        )
        payment.process(appointment.price, None)
        payment.save()
        appointment.payment_status = 'paid'
        appointment.save(update_fields=['payment_status', 'updated_at'])
