from datetime import time

import pytest
from django.core import mail
from django.urls import reverse
from django.utils import timezone

from clinic.models import Appointment, Doctor, Payment
from clinic.services import appointments as appointment_service

from .helpers import make_appointment, next_weekday

pytestmark = pytest.mark.django_db


def book(client, patient, doctor, on=None, at='10:00', **extra):
    payload = {
        'patient_id': str(patient.pk),
        'doctor_id': str(doctor.pk),
        'appointment_date': (on or next_weekday(0)).isoformat(),
        'appointment_time': at,
        'reason': 'Chest pain',
    }
    payload.update(extra)
    return client.post(reverse('appointments'), payload, format='json')


class TestBooking:
    def test_book_uses_doctor_defaults(self, receptionist_client, patient, doctor):
        r = book(receptionist_client, patient, doctor)
        assert r.status_code == 201, r.data
        data = r.data['data']
        assert data['status'] == 'scheduled'
        assert data['payment_status'] == 'pending'
        assert data['duration'] == 30
        assert data['price'] == 200
        assert data['appointment_time'] == '10:00'

    def test_double_booking_is_409(self, receptionist_client, patient, doctor):
        assert book(receptionist_client, patient, doctor).status_code == 201
        r = book(receptionist_client, patient, doctor)
        assert r.status_code == 409
        assert r.data['error']['code'] == 'conflict'

    def test_cancelled_slot_can_be_rebooked(self, receptionist_client, patient, doctor):
        first = book(receptionist_client, patient, doctor).data['data']
        r = receptionist_client.patch(reverse('appointment_cancel', args=[first['id']]),
                                      {'cancellation_reason': 'Patient travelling'}, format='json')
        assert r.status_code == 200
        assert r.data['data']['status'] == 'cancelled'
        assert book(receptionist_client, patient, doctor).status_code == 201
        assert Appointment.objects.count() == 2

    def test_non_working_day_is_400(self, receptionist_client, patient, doctor):
        r = book(receptionist_client, patient, doctor, on=next_weekday(5))
        assert r.status_code == 400
        assert 'saturday' in r.data['error']['message']

    def test_outside_working_hours_is_400(self, receptionist_client, patient, doctor):
        assert book(receptionist_client, patient, doctor, at='19:00').status_code == 400
        # the end of the window is exclusive
        assert book(receptionist_client, patient, doctor, at='18:00').status_code == 400
        assert book(receptionist_client, patient, doctor, at='08:00').status_code == 201

    def test_inactive_doctor_is_404(self, receptionist_client, patient, doctor):
        doctor.is_active = False
        doctor.save()
        assert book(receptionist_client, patient, doctor).status_code == 404

    def test_past_booking_is_400(self, receptionist_client, patient, doctor):
        r = book(receptionist_client, patient, doctor, on=next_weekday(0, weeks_ahead=-1))
        assert r.status_code == 400

    def test_doctors_cannot_book(self, doctor_client, patient, doctor):
        assert book(doctor_client, patient, doctor).status_code == 403

    def test_reschedule_checks_the_new_slot(self, receptionist_client, patient, doctor):
        make_appointment(patient, doctor, at='11:00')
        appt = make_appointment(patient, doctor, at='10:00')
        url = reverse('appointment_detail', args=[appt.pk])
        assert receptionist_client.put(url, {'appointment_time': '11:00'}, format='json').status_code == 409
        r = receptionist_client.put(url, {'appointment_time': '14:30'}, format='json')
        assert r.status_code == 200
        assert r.data['data']['appointment_time'] == '14:30'

    def test_completed_appointment_is_locked(self, receptionist_client, patient, doctor):
        appt = make_appointment(patient, doctor, status=Appointment.STATUS_COMPLETED)
        r = receptionist_client.put(reverse('appointment_detail', args=[appt.pk]), {'notes': 'late edit'},
                                    format='json')
        assert r.status_code == 400

    def test_seconds_do_not_open_a_second_slot(self, receptionist_client, patient, doctor):
        assert book(receptionist_client, patient, doctor, at='10:00').status_code == 201
        r = book(receptionist_client, patient, doctor, at='10:00:30')
        assert r.status_code == 409
        assert r.data['error']['code'] == 'conflict'
        assert Appointment.objects.filter(doctor=doctor).count() == 1

    def test_booking_locks_the_doctor_row(self, monkeypatch, receptionist_client, patient, doctor):
        locked = []
        select_for_update = Doctor.objects.select_for_update

        def tracking(*args, **kwargs):
            locked.append(True)
            return select_for_update(*args, **kwargs)

        monkeypatch.setattr(Doctor.objects, 'select_for_update', tracking)
        assert book(receptionist_client, patient, doctor).status_code == 201
        assert locked

    def test_insurance_booking_needs_a_plan_the_doctor_accepts(self, receptionist_client, patient, doctor):
        r = book(receptionist_client, patient, doctor, payment_method='health_insurance')
        assert r.status_code == 400

        patient.health_insurance = 'Unimed'
        patient.save()
        r = book(receptionist_client, patient, doctor, payment_method='health_insurance')
        assert 'does not accept' in r.data['error']['message']

        doctor.health_insurances = ['unimed']
        doctor.save()
        r = book(receptionist_client, patient, doctor, payment_method='health_insurance')
        assert r.status_code == 201


class TestTransitions:
    def test_full_lifecycle(self, receptionist_client, doctor_client, patient, doctor):
        appt = make_appointment(patient, doctor)
        assert receptionist_client.patch(reverse('appointment_confirm', args=[appt.pk])).status_code == 200
        assert len(mail.outbox) == 1
        assert doctor_client.patch(reverse('appointment_start', args=[appt.pk])).status_code == 200
        r = doctor_client.patch(reverse('appointment_complete', args=[appt.pk]))
        assert r.status_code == 200
        assert r.data['data']['status'] == 'completed'
        assert r.data['data']['completed_at']

        patient.refresh_from_db()
        assert patient.total_appointments == 1
        assert patient.last_appointment_date == appt.appointment_date

    def test_completed_cannot_be_cancelled(self, receptionist_client, patient, doctor):
        appt = make_appointment(patient, doctor, status=Appointment.STATUS_COMPLETED)
        r = receptionist_client.patch(reverse('appointment_cancel', args=[appt.pk]),
                                      {'cancellation_reason': 'changed mind'}, format='json')
        assert r.status_code == 400

    def test_confirm_only_from_scheduled(self, admin_client, patient, doctor):
        appt = make_appointment(patient, doctor, status=Appointment.STATUS_IN_PROGRESS)
        assert admin_client.patch(reverse('appointment_confirm', args=[appt.pk])).status_code == 400

    def test_cancel_requires_reason(self, receptionist_client, patient, doctor):
        appt = make_appointment(patient, doctor)
        r = receptionist_client.patch(reverse('appointment_cancel', args=[appt.pk]), {}, format='json')
        assert r.status_code == 400

    def test_cancel_records_who_and_why(self, receptionist_client, receptionist_user, patient, doctor):
        appt = make_appointment(patient, doctor)
        receptionist_client.patch(reverse('appointment_cancel', args=[appt.pk]),
                                  {'cancellation_reason': '<b>Sick</b>'}, format='json')
        appt.refresh_from_db()
        assert appt.cancellation_reason == 'Sick'
        assert appt.cancelled_by == receptionist_user
        assert appt.cancelled_at is not None

    def test_no_show(self, receptionist_client, doctor_client, patient, doctor):
        appt = make_appointment(patient, doctor)
        assert doctor_client.patch(reverse('appointment_no_show', args=[appt.pk])).status_code == 403
        r = receptionist_client.patch(reverse('appointment_no_show', args=[appt.pk]))
        assert r.data['data']['status'] == 'no_show'

    def test_receptionist_cannot_complete(self, receptionist_client, patient, doctor):
        appt = make_appointment(patient, doctor)
        assert receptionist_client.patch(reverse('appointment_complete', args=[appt.pk])).status_code == 403


class TestVisibility:
    def test_doctor_sees_only_own_appointments(self, doctor_client, patient, doctor, other_doctor):
        mine = make_appointment(patient, doctor)
        theirs = make_appointment(patient, other_doctor)
        r = doctor_client.get(reverse('appointments'))
        assert [a['id'] for a in r.data['data']] == [str(mine.pk)]
        assert doctor_client.get(reverse('appointment_detail', args=[theirs.pk])).status_code == 403
        # filtering by another doctor does not widen the scope
        r = doctor_client.get(reverse('appointments'), {'doctor_id': str(other_doctor.pk)})
        assert r.data['data'] == []

    def test_doctor_cannot_read_another_schedule(self, doctor_client, other_doctor):
        assert doctor_client.get(reverse('doctor_schedule', args=[other_doctor.pk])).status_code == 403

    def test_list_filters(self, receptionist_client, patient, doctor):
        monday, tuesday = next_weekday(0), next_weekday(1)
        make_appointment(patient, doctor, on=monday)
        make_appointment(patient, doctor, on=tuesday, status=Appointment.STATUS_CONFIRMED)
        r = receptionist_client.get(reverse('appointments'), {'status': 'confirmed'})
        assert r.data['pagination']['total'] == 1
        r = receptionist_client.get(reverse('appointments'), {'date': monday.isoformat()})
        assert [a['appointment_date'] for a in r.data['data']] == [monday.isoformat()]

    def test_delete_blocked_by_payments(self, admin_client, patient, doctor):
        appt = make_appointment(patient, doctor)
        Payment.objects.create(appointment=appt, patient=patient, amount=appt.price, payment_method='cash')
        assert admin_client.delete(reverse('appointment_detail', args=[appt.pk])).status_code == 409
        bare = make_appointment(patient, doctor, at='15:00')
        assert admin_client.delete(reverse('appointment_detail', args=[bare.pk])).status_code == 200


class TestAvailableSlots:
    def test_busy_slots_are_excluded(self, receptionist_client, patient, doctor):
        on = next_weekday(2)
        make_appointment(patient, doctor, on=on, at='09:00')
        make_appointment(patient, doctor, on=on, at='10:00', status=Appointment.STATUS_CANCELLED)
        r = receptionist_client.get(reverse('available_slots', args=[doctor.pk]), {'date': on.isoformat()})
        assert r.status_code == 200
        data = r.data['data']
        assert data['working'] is True
        assert data['busy_slots'] == [{'time': '09:00', 'duration': 30}]
        assert '09:00' not in data['available_slots']
        assert '10:00' in data['available_slots']
        assert data['available_slots'][0] == '08:00'
        assert data['available_slots'][-1] == '17:30'
        assert len(data['available_slots']) == 19

    def test_day_off_has_no_slots(self, receptionist_client, doctor):
        on = next_weekday(6)
        data = receptionist_client.get(reverse('available_slots', args=[doctor.pk]),
                                       {'date': on.isoformat()}).data['data']
        assert data['working'] is False
        assert data['available_slots'] == []

    def test_date_is_required(self, receptionist_client, doctor):
        assert receptionist_client.get(reverse('available_slots', args=[doctor.pk])).status_code == 400


def test_has_conflict_ignores_released_bookings(patient, doctor):
    on = next_weekday(3)
    appt = make_appointment(patient, doctor, on=on, at='13:00')
    assert appointment_service.has_conflict(doctor, on, time(13, 0))
    assert not appointment_service.has_conflict(doctor, on, time(13, 0), exclude_pk=appt.pk)
    appt.status = Appointment.STATUS_NO_SHOW
    appt.save()
    assert not appointment_service.has_conflict(doctor, on, time(13, 0))


def test_send_reminders_marks_appointments(patient, doctor):
    on = next_weekday(0)
    appt = make_appointment(patient, doctor, on=on)
    days = (on - timezone.localdate()).days
    assert appointment_service.send_reminders(days) == 1
    appt.refresh_from_db()
    assert appt.reminder_sent
    assert appointment_service.send_reminders(days) == 0
