"""Doctor registry, schedules and working hours."""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.models import Doctor
from clinic.pagination import paginate
from clinic.permissions import IsAdminRole, IsStaff
from clinic.serializers.appointment import AppointmentListQuerySerializer, AppointmentSerializer
from clinic.serializers.doctor import (
    DoctorListQuerySerializer,
    DoctorSerializer,
    ScheduleQuerySerializer,
    WorkingHoursSerializer,
)
from clinic.services import doctors as doctor_service


def _data(doctor):
    return DoctorSerializer(doctor).data


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaff])
def doctors(request):
    if request.method == 'POST':
        if request.user.role != 'admin':
            raise PermissionDenied('Only admins can register doctors.')
        s = DoctorSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        doctor = doctor_service.create_doctor(request.user, dict(s.validated_data))
        return Response({'ok': True, 'data': _data(doctor), 'message': 'Doctor registered.'},
                        status=status.HTTP_201_CREATED)

    q = DoctorListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return paginate(request, doctor_service.filter_doctors(**q.validated_data), _data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def specialties(request):
    return Response({'ok': True, 'data': doctor_service.specialties()})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def doctor_statistics(request):
    return Response({'ok': True, 'data': doctor_service.doctor_statistics()})


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaff])
def doctor_detail(request, pk):
    doctor = get_object_or_404(Doctor, pk=pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': _data(doctor)})
    if request.user.role != 'admin':
        raise PermissionDenied('Only admins can change doctors.')
    if request.method == 'DELETE':
        doctor_service.deactivate_doctor(request.user, doctor)
        return Response({'ok': True, 'message': 'Doctor deactivated.'})

    s = DoctorSerializer(doctor, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    doctor = doctor_service.update_doctor(request.user, doctor, dict(s.validated_data))
    return Response({'ok': True, 'data': _data(doctor), 'message': 'Doctor updated.'})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def doctor_appointments(request, pk):
    doctor = get_object_or_404(Doctor, pk=pk)
    doctor_service.ensure_self_or_admin(request.user, doctor)
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = doctor.appointments.select_related('patient', 'doctor')
    if vd.get('status'):
        qs = qs.filter(status=vd['status'])
    if vd.get('date'):
        qs = qs.filter(appointment_date=vd['date'])
    if vd.get('date_from'):
        qs = qs.filter(appointment_date__gte=vd['date_from'])
    if vd.get('date_to'):
        qs = qs.filter(appointment_date__lte=vd['date_to'])
    qs = qs.order_by('-appointment_date', '-appointment_time')
    return paginate(request, qs, lambda a: AppointmentSerializer(a).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def doctor_schedule(request, pk):
    doctor = get_object_or_404(Doctor, pk=pk)
    doctor_service.ensure_self_or_admin(request.user, doctor)
    q = ScheduleQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    days = q.validated_data['days']
    items = [AppointmentSerializer(a).data for a in doctor_service.schedule(doctor, days)]
    return Response({'ok': True, 'data': {
        'doctor_id': str(doctor.pk),
        'days': days,
        'working_hours': doctor.working_hours,
        'appointments': items,
    }})


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsStaff])
def doctor_working_hours(request, pk):
    doctor = get_object_or_404(Doctor, pk=pk)
    doctor_service.ensure_self_or_admin(request.user, doctor)
    s = WorkingHoursSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor = doctor_service.set_working_hours(request.user, doctor, s.validated_data['working_hours'])
    return Response({'ok': True, 'data': {'working_hours': doctor.working_hours},
                     'message': 'Working hours updated.'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def toggle_doctor_status(request, pk):
    doctor = doctor_service.toggle_doctor_status(request.user, get_object_or_404(Doctor, pk=pk))
    return Response({'ok': True, 'data': _data(doctor)})
