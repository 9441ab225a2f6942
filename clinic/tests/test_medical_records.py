import pytest
from django.urls import reverse

from clinic.models import MedicalRecord
from clinic.services import medical_records as record_service

from .helpers import make_appointment

pytestmark = pytest.mark.django_db


@pytest.fixture
def appointment(patient, doctor):
    return make_appointment(patient, doctor)


@pytest.fixture
def record(appointment, doctor_user):
    return MedicalRecord.objects.create(
        appointment=appointment, patient=appointment.patient, doctor=appointment.doctor,
        chief_complaint='Headache', diagnosis_primary='Migraine', icd10_codes=['G43.9'],
        created_by=doctor_user,
    )


def create(client, appointment, **extra):
    payload = {
        'appointment_id': str(appointment.pk),
        'chief_complaint': 'Chest pain on exertion',
        'diagnosis_primary': 'Stable angina',
        'icd10_codes': ['i20.8'],
        'vital_signs': {'weight': 80, 'height': 180, 'blood_pressure': '130/85'},
    }
    payload.update(extra)
    return client.post(reverse('medical_records'), payload, format='json')


class TestCreate:
    def test_doctor_writes_record_for_own_appointment(self, doctor_client, appointment, patient, doctor):
        r = create(doctor_client, appointment)
        assert r.status_code == 201, r.data
        data = r.data['data']
        assert data['record_status'] == 'draft'
        assert data['patient']['id'] == str(patient.pk)
        assert data['doctor']['id'] == str(doctor.pk)
        assert data['icd10_codes'] == ['I20.8']
        assert data['bmi'] == 24.7
        assert data['has_prescription'] is False
        assert data['days_since_consultation'] == 0

    def test_prescription_and_tests_flags(self, doctor_client, appointment):
        r = create(doctor_client, appointment, prescription='Aspirin 100mg daily', lab_tests_requested='Lipid panel')
        assert r.data['data']['has_prescription'] is True
        assert r.data['data']['has_tests_requested'] is True

    def test_one_record_per_appointment(self, doctor_client, appointment):
        assert create(doctor_client, appointment).status_code == 201
        assert create(doctor_client, appointment).status_code == 409

    def test_unknown_appointment_is_404(self, admin_client):
        r = admin_client.post(reverse('medical_records'),
                              {'appointment_id': '00000000-0000-0000-0000-000000000000'}, format='json')
        assert r.status_code == 404

    def test_receptionist_has_no_access(self, receptionist_client, appointment, record):
        assert create(receptionist_client, appointment).status_code == 403
        assert receptionist_client.get(reverse('medical_records')).status_code == 403
        assert receptionist_client.get(reverse('medical_record_detail', args=[record.pk])).status_code == 403

    def test_other_doctor_is_forbidden(self, patient, other_doctor, doctor_client):
        theirs = make_appointment(patient, other_doctor)
        assert create(doctor_client, theirs).status_code == 403


class TestAccess:
    def test_doctor_cannot_read_another_doctors_record(self, doctor_client, patient, other_doctor):
        appt = make_appointment(patient, other_doctor, at='15:00')
        theirs = MedicalRecord.objects.create(appointment=appt, patient=patient, doctor=other_doctor)
        assert doctor_client.get(reverse('medical_record_detail', args=[theirs.pk])).status_code == 403
        r = doctor_client.get(reverse('medical_records_by_patient', args=[patient.pk]))
        assert r.data['data'] == []

    def test_admin_reads_everything(self, admin_client, record):
        r = admin_client.get(reverse('medical_records'))
        assert r.data['pagination']['total'] == 1
        r = admin_client.get(reverse('medical_record_by_appointment', args=[record.appointment_id]))
        assert r.data['data']['id'] == str(record.pk)

    def test_patient_records_are_scoped(self, doctor_client, record, patient):
        r = doctor_client.get(reverse('patient_medical_records', args=[patient.pk]))
        assert [x['id'] for x in r.data['data']] == [str(record.pk)]


class TestLifecycle:
    def test_complete_sign_review(self, doctor_client, admin_client, record):
        url = reverse('medical_record_detail', args=[record.pk])
        assert doctor_client.put(url, {'treatment_plan': 'Rest and fluids'}, format='json').status_code == 200

        # drafts cannot be signed
        assert doctor_client.patch(reverse('medical_record_sign', args=[record.pk])).status_code == 400

        r = doctor_client.patch(reverse('medical_record_complete', args=[record.pk]))
        assert r.data['data']['record_status'] == 'completed'
        assert doctor_client.put(url, {'treatment_plan': 'changed'}, format='json').status_code == 400

        r = doctor_client.patch(reverse('medical_record_sign', args=[record.pk]), {'signature': 'sig-data'},
                                format='json')
        assert r.status_code == 200
        assert r.data['data']['is_signed'] is True
        assert doctor_client.patch(reverse('medical_record_sign', args=[record.pk])).status_code == 400

        assert doctor_client.patch(reverse('medical_record_review', args=[record.pk])).status_code == 403
        r = admin_client.patch(reverse('medical_record_review', args=[record.pk]))
        assert r.data['data']['record_status'] == 'reviewed'

    def test_admin_cannot_sign(self, admin_client, record):
        record.complete()
        record.save()
        assert admin_client.patch(reverse('medical_record_sign', args=[record.pk])).status_code == 403

    def test_amend_reopens_and_drops_signature(self, doctor_client, record):
        record.complete()
        record.sign('sig')
        record.save()
        r = doctor_client.patch(reverse('medical_record_amend', args=[record.pk]))
        assert r.status_code == 200
        record.refresh_from_db()
        assert record.record_status == 'amended'
        assert record.signature_timestamp is None
        r = doctor_client.put(reverse('medical_record_detail', args=[record.pk]),
                              {'clinical_notes': 'Amended after lab results'}, format='json')
        assert r.status_code == 200

    def test_draft_cannot_be_reviewed_or_amended(self, admin_client, record):
        assert admin_client.patch(reverse('medical_record_review', args=[record.pk])).status_code == 400
        assert admin_client.patch(reverse('medical_record_amend', args=[record.pk])).status_code == 400

    def test_attachments(self, doctor_client, record):
        url = reverse('medical_record_attachments', args=[record.pk])
        r = doctor_client.post(url, {'filename': 'ecg.pdf', 'url': 'https://files.test/ecg.pdf'}, format='json')
        assert r.status_code == 201
        record.refresh_from_db()
        assert [a['filename'] for a in record.attachments] == ['ecg.pdf']
        detail = reverse('medical_record_attachment_detail', args=[record.pk, 'ecg.pdf'])
        assert doctor_client.delete(detail).status_code == 200
        assert doctor_client.delete(detail).status_code == 404


def test_record_statistics(record, patient, other_doctor):
    appt = make_appointment(patient, other_doctor, at='16:00')
    MedicalRecord.objects.create(appointment=appt, patient=patient, doctor=other_doctor,
                                 diagnosis_primary='Migraine', icd10_codes=['G43.9', 'R51'],
                                 record_status='completed')
    stats = record_service.record_statistics()
    assert stats['total'] == 2
    assert stats['by_status']['draft'] == 1
    assert stats['by_status']['completed'] == 1
    assert stats['top_diagnoses'] == [{'diagnosis': 'Migraine', 'count': 2}]
    assert stats['top_icd10_codes'][0] == {'code': 'G43.9', 'count': 2}
