"""
Appointment views.

Booking and rescheduling belong to the front desk; doctors confirm,
start and complete their visits.  Status changes are PATCH actions on
the appointment, each validated by the appointment service.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.models import Appointment, Doctor
from clinic.pagination import paginate
from clinic.permissions import IsAdminOrDoctor, IsAdminOrReceptionist, IsAdminRole, IsStaff
from clinic.serializers.appointment import (
    AppointmentListQuerySerializer,
    AppointmentSerializer,
    AppointmentWriteSerializer,
    CancelAppointmentSerializer,
    SlotQuerySerializer,
)
from clinic.services import appointments as appointment_service
from clinic.services.doctors import doctor_for_user


def _data(appointment):
    return AppointmentSerializer(appointment).data


def _get(request, pk) -> Appointment:
    appointment = get_object_or_404(Appointment.objects.select_related('patient', 'doctor'), pk=pk)
    if request.user.role == 'doctor':
        own = doctor_for_user(request.user)
        if own is None or appointment.doctor_id != own.pk:
            raise PermissionDenied('You can only access your own appointments.')
    return appointment


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaff])
def appointments(request):
    if request.method == 'POST':
        if request.user.role not in ('admin', 'receptionist'):
            raise PermissionDenied('Only admins and receptionists can book appointments.')
        s = AppointmentWriteSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        appointment = appointment_service.book_appointment(request.user, dict(s.validated_data))
        return Response({'ok': True, 'data': _data(appointment), 'message': 'Appointment booked.'},
                        status=status.HTTP_201_CREATED)

    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = appointment_service.filter_appointments(request.user, **q.validated_data)
    return paginate(request, qs, _data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def appointment_stats(request):
    return Response({'ok': True, 'data': appointment_service.appointment_statistics()})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def available_slots(request, doctor_id):
    doctor = get_object_or_404(Doctor, pk=doctor_id)
    q = SlotQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return Response({'ok': True, 'data': appointment_service.available_slots(doctor, q.validated_data['date'])})


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaff])
def appointment_detail(request, pk):
    appointment = _get(request, pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': _data(appointment)})

    if request.method == 'DELETE':
        if request.user.role != 'admin':
            raise PermissionDenied('Only admins can delete appointments.')
        appointment_service.delete_appointment(request.user, appointment)
        return Response({'ok': True, 'message': 'Appointment deleted.'})

    if request.user.role not in ('admin', 'receptionist'):
        raise PermissionDenied('Only admins and receptionists can change appointments.')
    s = AppointmentWriteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    appointment = appointment_service.update_appointment(request.user, appointment, dict(s.validated_data))
    return Response({'ok': True, 'data': _data(appointment), 'message': 'Appointment updated.'})


def _transition(request, pk, action, message, reason=None):
    appointment = appointment_service.transition(request.user, _get(request, pk), action, reason=reason)
    return Response({'ok': True, 'data': _data(appointment), 'message': message})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsStaff])
def confirm_appointment(request, pk):
    return _transition(request, pk, 'confirm', 'Appointment confirmed.')


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def start_appointment(request, pk):
    return _transition(request, pk, 'start', 'Appointment started.')


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def complete_appointment(request, pk):
    return _transition(request, pk, 'complete', 'Appointment completed.')


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminOrReceptionist])
def cancel_appointment(request, pk):
    s = CancelAppointmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return _transition(request, pk, 'cancel', 'Appointment cancelled.',
                       reason=s.validated_data['cancellation_reason'])


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminOrReceptionist])
def no_show_appointment(request, pk):
    return _transition(request, pk, 'no_show', 'Appointment marked as no-show.')
