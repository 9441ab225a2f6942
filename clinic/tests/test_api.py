"""
Integration tests for the registry endpoints: patients, doctors and
health insurances.

These tests exercise registration, uniqueness conflicts, role checks,
soft deletion and the insurance value split through the HTTP API using
Django REST Framework's APITestCase.
"""
from datetime import date
from decimal import Decimal

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from clinic.models import Appointment, Doctor, HealthInsurance, User
from clinic.validators import make_cpf

from .helpers import client_for, make_appointment, make_doctor, make_patient, make_user, next_weekday


def patient_payload(**extra):
    data = {
        'name': 'Maria da Silva',
        'cpf': make_cpf('529982247'),
        'birth_date': '1985-03-14',
        'gender': 'female',
        'phone': '(11) 98765-4321',
        'email': 'Maria@Example.com',
        'address_state': 'sp',
    }
    data.update(extra)
    return data


def doctor_payload(**extra):
    data = {
        'name': 'Dr. Paulo Andrade',
        'crm': '445566',
        'crm_state': 'rj',
        'cpf': make_cpf('111444777'),
        'specialty': 'Orthopedics',
        'email': 'paulo@clinic.test',
        'phone': '21987654321',
        'consultation_price': '350.00',
        'consultation_duration': 40,
    }
    data.update(extra)
    return data


class RegistryAPITests(APITestCase):
    def setUp(self) -> None:
        self.admin = client_for(make_user('admin@clinic.test', User.ROLE_ADMIN))
        self.desk = client_for(make_user('reception@clinic.test', User.ROLE_RECEPTIONIST))
        self.doctor_user = make_user('doctor@clinic.test', User.ROLE_DOCTOR)
        self.doc = client_for(self.doctor_user)
        self.doctor = make_doctor(1, user=self.doctor_user)


class PatientAPITests(RegistryAPITests):
    def test_create_patient(self):
        r = self.desk.post(reverse('patients'), patient_payload(), format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED, r.data)
        data = r.data['data']
        self.assertEqual(data['cpf'], '529.982.247-25')
        self.assertEqual(data['email'], 'maria@example.com')
        self.assertEqual(data['address_state'], 'SP')
        self.assertTrue(data['is_active'])

    def test_unformatted_cpf_is_normalised(self):
        r = self.desk.post(reverse('patients'), patient_payload(cpf='52998224725'), format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(r.data['data']['cpf'], '529.982.247-25')

    def test_invalid_cpf_is_400(self):
        r = self.desk.post(reverse('patients'), patient_payload(cpf='529.982.247-26'), format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['error']['code'], 'validation_error')
        self.assertIn('cpf', r.data['error']['fields'])

    def test_duplicate_cpf_or_email_is_409(self):
        self.desk.post(reverse('patients'), patient_payload(), format='json')
        r = self.desk.post(reverse('patients'), patient_payload(email='other@example.com'), format='json')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        r = self.desk.post(reverse('patients'), patient_payload(cpf=make_cpf('111444777')), format='json')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)

    def test_future_birth_date_is_400(self):
        r = self.desk.post(reverse('patients'), patient_payload(birth_date='2999-01-01'), format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_doctors_cannot_register_patients(self):
        r = self.doc.post(reverse('patients'), patient_payload(), format='json')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_search_and_pagination(self):
        for n in range(1, 26):
            make_patient(n)
        r = self.doc.get(reverse('patients'), {'limit': 10, 'page': 3})
        self.assertEqual(r.data['pagination'], {'total': 25, 'page': 3, 'limit': 10, 'totalPages': 3})
        self.assertEqual(len(r.data['data']), 5)

        make_patient(30, name='Zelda Quintana')
        r = self.doc.get(reverse('patients'), {'search': 'quintana'})
        self.assertEqual([p['name'] for p in r.data['data']], ['Zelda Quintana'])

        r = self.doc.get(reverse('patients'), {'limit': 500})
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_lookup_by_cpf(self):
        patient = make_patient(1)
        digits = patient.cpf.replace('.', '').replace('-', '')
        r = self.doc.get(reverse('patient_by_cpf', args=[digits]))
        self.assertEqual(r.data['data']['id'], str(patient.pk))
        r = self.doc.get(reverse('patient_by_cpf', args=['52998224725']))
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_patient(self):
        patient, other = make_patient(1), make_patient(2)
        url = reverse('patient_detail', args=[patient.pk])
        r = self.desk.put(url, {'phone': '11912345678'}, format='json')
        self.assertEqual(r.data['data']['phone'], '11912345678')
        r = self.desk.put(url, {'cpf': other.cpf}, format='json')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)

    def test_soft_delete_blocked_by_upcoming_appointments(self):
        patient = make_patient(1)
        appt = make_appointment(patient, self.doctor)
        url = reverse('patient_detail', args=[patient.pk])
        self.assertEqual(self.desk.delete(url).status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.admin.delete(url).status_code, status.HTTP_400_BAD_REQUEST)

        appt.status = Appointment.STATUS_CANCELLED
        appt.save()
        self.assertEqual(self.admin.delete(url).status_code, status.HTTP_200_OK)
        patient.refresh_from_db()
        self.assertFalse(patient.is_active)

        reactivate = reverse('patient_reactivate', args=[patient.pk])
        self.assertEqual(self.admin.patch(reactivate).status_code, status.HTTP_200_OK)
        self.assertEqual(self.admin.patch(reactivate).status_code, status.HTTP_400_BAD_REQUEST)

    def test_birthdays_are_ordered_by_day(self):
        make_patient(1, birth_date=date(1980, 4, 20))
        make_patient(2, birth_date=date(1995, 4, 3))
        make_patient(3, birth_date=date(1991, 5, 1))
        r = self.desk.get(reverse('patient_birthdays'), {'month': 4})
        self.assertEqual([p['birth_date'] for p in r.data['data']], ['1995-04-03', '1980-04-20'])
        r = self.desk.get(reverse('patient_birthdays'), {'month': 13})
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_documents(self):
        patient = make_patient(1)
        r = self.desk.post(reverse('patient_documents', args=[patient.pk]),
                           {'type': 'id', 'filename': 'rg.pdf', 'url': 'https://files.test/rg.pdf'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        patient.refresh_from_db()
        self.assertEqual(patient.documents[0]['filename'], 'rg.pdf')

        detail = reverse('patient_document_detail', args=[patient.pk, 'rg.pdf'])
        self.assertEqual(self.desk.delete(detail).status_code, status.HTTP_200_OK)
        self.assertEqual(self.desk.delete(detail).status_code, status.HTTP_404_NOT_FOUND)

    def test_appointment_stats(self):
        patient = make_patient(1)
        make_appointment(patient, self.doctor)
        make_appointment(patient, self.doctor, at='11:00', status=Appointment.STATUS_CANCELLED)
        data = self.desk.get(reverse('patient_stats', args=[patient.pk])).data['data']
        self.assertEqual(data['total_appointments'], 2)
        self.assertEqual(data['by_status']['cancelled'], 1)
        self.assertEqual(data['next_appointment_date'], next_weekday(0))

    def test_statistics_admin_only(self):
        make_patient(1)
        self.assertEqual(self.desk.get(reverse('patient_statistics')).status_code, status.HTTP_403_FORBIDDEN)
        data = self.admin.get(reverse('patient_statistics')).data['data']
        self.assertEqual(data['active'], 1)
        self.assertEqual(data['by_gender']['female'], 1)

    def test_bmi_and_guardian_helpers(self):
        p = make_patient(1, birth_date=date(2015, 1, 1), weight=Decimal('30'), height=Decimal('130'),
                         allergies='Penicillin')
        self.assertTrue(p.requires_guardian())
        data = self.doc.get(reverse('patient_detail', args=[p.pk])).data['data']
        self.assertEqual(data['bmi'], 17.8)
        self.assertEqual(data['bmi_classification'], 'underweight')
        self.assertTrue(data['is_minor'])
        self.assertTrue(data['has_allergies'])
        self.assertFalse(data['has_chronic_diseases'])


class DoctorAPITests(RegistryAPITests):
    def test_create_doctor_admin_only(self):
        r = self.desk.post(reverse('doctors'), doctor_payload(), format='json')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)
        r = self.admin.post(reverse('doctors'), doctor_payload(), format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED, r.data)
        self.assertEqual(r.data['data']['crm_state'], 'RJ')
        self.assertEqual(r.data['data']['active_days'],
                         ['monday', 'tuesday', 'wednesday', 'thursday', 'friday'])

    def test_crm_is_unique_per_state(self):
        r = self.admin.post(reverse('doctors'), doctor_payload(crm=self.doctor.crm, crm_state='SP'), format='json')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        r = self.admin.post(reverse('doctors'), doctor_payload(crm=self.doctor.crm, crm_state='RJ'), format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)

    def test_duplicate_cpf_is_409(self):
        r = self.admin.post(reverse('doctors'), doctor_payload(cpf=self.doctor.cpf), format='json')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)

    def test_specialties_are_distinct_and_active(self):
        make_doctor(2, specialty='Cardiology')
        make_doctor(3, specialty='Dermatology', is_active=False)
        r = self.desk.get(reverse('doctor_specialties'))
        self.assertEqual(r.data['data'], ['Cardiology'])

    def test_working_hours_by_self_or_admin(self):
        other = make_doctor(2)
        hours = dict(self.doctor.working_hours)
        hours['saturday'] = {'start': '09:00', 'end': '13:00', 'active': True}
        url = reverse('doctor_working_hours', args=[self.doctor.pk])
        self.assertEqual(self.desk.put(url, {'working_hours': hours}, format='json').status_code,
                         status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.doc.put(url, {'working_hours': hours}, format='json').status_code, status.HTTP_200_OK)
        self.doctor.refresh_from_db()
        self.assertTrue(self.doctor.is_available_on_day('saturday'))

        other_url = reverse('doctor_working_hours', args=[other.pk])
        self.assertEqual(self.doc.put(other_url, {'working_hours': hours}, format='json').status_code,
                         status.HTTP_403_FORBIDDEN)

    def test_invalid_working_hours_is_400(self):
        url = reverse('doctor_working_hours', args=[self.doctor.pk])
        hours = dict(self.doctor.working_hours)
        hours['monday'] = {'start': '18:00', 'end': '08:00', 'active': True}
        self.assertEqual(self.admin.put(url, {'working_hours': hours}, format='json').status_code,
                         status.HTTP_400_BAD_REQUEST)
        hours['monday'] = {'start': '08:00', 'end': '18:00', 'active': True}
        hours.pop('sunday')
        self.assertEqual(self.admin.put(url, {'working_hours': hours}, format='json').status_code,
                         status.HTTP_400_BAD_REQUEST)

    def test_schedule_hides_released_slots(self):
        patient = make_patient(1)
        on = next_weekday(1)
        make_appointment(patient, self.doctor, on=on, at='09:00')
        make_appointment(patient, self.doctor, on=on, at='10:00', status=Appointment.STATUS_CANCELLED)
        r = self.doc.get(reverse('doctor_schedule', args=[self.doctor.pk]), {'days': 14})
        self.assertEqual([a['appointment_time'] for a in r.data['data']['appointments']], ['09:00'])

    def test_soft_delete(self):
        self.assertEqual(self.admin.delete(reverse('doctor_detail', args=[self.doctor.pk])).status_code,
                         status.HTTP_200_OK)
        self.assertFalse(Doctor.objects.get(pk=self.doctor.pk).is_active)


class HealthInsuranceAPITests(RegistryAPITests):
    def setUp(self) -> None:
        super().setUp()
        self.insurance = HealthInsurance.objects.create(
            name='Unimed', code='UNI', reimbursement_percentage=Decimal('80.00'), copayment_amount=Decimal('20.00'),
        )

    def test_calculate_value_split(self):
        r = self.desk.post(reverse('insurance_calculate', args=[self.insurance.pk]), {'base_value': '200.00'},
                           format='json')
        # 80% of 200 covered, then the 20.00 copay moves to the patient
        self.assertEqual(r.data['data'], {
            'total': Decimal('200.00'),
            'patient_pays': Decimal('60.00'),
            'insurance_pays': Decimal('140.00'),
        })

    def test_calculate_checks_service_type_and_waiting_period(self):
        self.insurance.accepts_telemedicine = False
        self.insurance.waiting_period_days = 180
        self.insurance.save()
        url = reverse('insurance_calculate', args=[self.insurance.pk])
        r = self.desk.post(url, {'base_value': '100.00', 'service_type': 'telemedicine'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

        joined = date.today().replace(day=1).isoformat()
        r = self.desk.post(url, {'base_value': '100.00', 'service_type': 'emergency', 'start_date': joined},
                           format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertTrue(r.data['data']['in_waiting_period'])

    def test_admin_crud_and_duplicates(self):
        payload = {'name': 'Amil', 'code': 'AMI', 'type': 'private', 'reimbursement_percentage': '70.00'}
        self.assertEqual(self.desk.post(reverse('insurances'), payload, format='json').status_code,
                         status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.admin.post(reverse('insurances'), payload, format='json').status_code,
                         status.HTTP_201_CREATED)
        r = self.admin.post(reverse('insurances'), {**payload, 'code': 'OTHER'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)

        self.admin.delete(reverse('insurance_detail', args=[self.insurance.pk]))
        r = self.desk.get(reverse('insurances'), {'is_active': 'true'})
        self.assertEqual([i['name'] for i in r.data['data']], ['Amil'])

    def test_contract_end_before_start_is_400(self):
        r = self.admin.post(reverse('insurances'), {
            'name': 'Broken Plan', 'contract_start_date': '2024-05-01', 'contract_end_date': '2024-01-01',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
