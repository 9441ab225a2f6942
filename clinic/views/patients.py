"""
Patient registry views.

Everyone on staff can look patients up; the front desk (admins and
receptionists) registers and edits them; only admins deactivate.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.models import Patient
from clinic.pagination import paginate
from clinic.permissions import IsAdminOrDoctor, IsAdminOrReceptionist, IsAdminRole, IsStaff
from clinic.serializers.appointment import AppointmentListQuerySerializer, AppointmentSerializer
from clinic.serializers.medical_record import MedicalRecordSerializer
from clinic.serializers.patient import (
    PatientDocumentSerializer,
    PatientListQuerySerializer,
    PatientSerializer,
)
from clinic.serializers.payment import PaymentSerializer
from clinic.services import patients as patient_service
from clinic.services.medical_records import scope_records
from clinic.validators import format_cpf


def _data(patient):
    return PatientSerializer(patient).data


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaff])
def patients(request):
    if request.method == 'POST':
        if request.user.role not in ('admin', 'receptionist'):
            raise PermissionDenied('Only admins and receptionists can register patients.')
        s = PatientSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        patient = patient_service.create_patient(request.user, dict(s.validated_data))
        return Response({'ok': True, 'data': _data(patient), 'message': 'Patient registered.'},
                        status=status.HTTP_201_CREATED)

    q = PatientListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return paginate(request, patient_service.filter_patients(**q.validated_data), _data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def patient_statistics(request):
    return Response({'ok': True, 'data': patient_service.patient_statistics()})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrReceptionist])
def birthdays(request):
    try:
        month = int(request.query_params.get('month') or timezone.localdate().month)
    except ValueError:
        month = 0
    if not 1 <= month <= 12:
        raise ValidationError({'month': ['month must be 1-12.']})
    qs = patient_service.birthdays_in_month(month)
    return Response({'ok': True, 'data': [_data(p) for p in qs]})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrReceptionist])
def patients_by_insurance(request, name):
    return paginate(request, patient_service.by_insurance(name), _data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def patient_by_cpf(request, cpf):
    patient = Patient.objects.filter(cpf=format_cpf(cpf)).first()
    if patient is None:
        raise NotFound('Patient not found.')
    return Response({'ok': True, 'data': _data(patient)})


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaff])
def patient_detail(request, pk):
    patient = get_object_or_404(Patient, pk=pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': _data(patient)})

    if request.method == 'DELETE':
        if request.user.role != 'admin':
            raise PermissionDenied('Only admins can deactivate patients.')
        patient_service.deactivate_patient(request.user, patient)
        return Response({'ok': True, 'message': 'Patient deactivated.'})

    if request.user.role not in ('admin', 'receptionist'):
        raise PermissionDenied('Only admins and receptionists can edit patients.')
    s = PatientSerializer(patient, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    patient = patient_service.update_patient(request.user, patient, dict(s.validated_data))
    return Response({'ok': True, 'data': _data(patient), 'message': 'Patient updated.'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def toggle_patient_status(request, pk):
    patient = patient_service.toggle_patient_status(request.user, get_object_or_404(Patient, pk=pk))
    return Response({'ok': True, 'data': _data(patient)})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def reactivate_patient(request, pk):
    patient = patient_service.reactivate_patient(request.user, get_object_or_404(Patient, pk=pk))
    return Response({'ok': True, 'data': _data(patient), 'message': 'Patient reactivated.'})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def patient_appointments(request, pk):
    patient = get_object_or_404(Patient, pk=pk)
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = patient.appointments.select_related('doctor', 'patient')
    if vd.get('status'):
        qs = qs.filter(status=vd['status'])
    if vd.get('date_from'):
        qs = qs.filter(appointment_date__gte=vd['date_from'])
    if vd.get('date_to'):
        qs = qs.filter(appointment_date__lte=vd['date_to'])
    qs = qs.order_by('-appointment_date', '-appointment_time')
    return paginate(request, qs, lambda a: AppointmentSerializer(a).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaff])
def patient_stats(request, pk):
    patient = get_object_or_404(Patient, pk=pk)
    return Response({'ok': True, 'data': patient_service.patient_appointment_stats(patient)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def patient_medical_records(request, pk):
    patient = get_object_or_404(Patient, pk=pk)
    qs = scope_records(request.user, patient.medical_records.select_related('patient', 'doctor'))
    return paginate(request, qs, lambda r: MedicalRecordSerializer(r).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrReceptionist])
def patient_payments(request, pk):
    patient = get_object_or_404(Patient, pk=pk)
    qs = patient.payments.select_related('patient').order_by('-created_at')
    return paginate(request, qs, lambda p: PaymentSerializer(p).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrReceptionist])
def add_patient_document(request, pk):
    patient = get_object_or_404(Patient, pk=pk)
    s = PatientDocumentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doc = patient_service.add_document(request.user, patient, dict(s.validated_data))
    return Response({'ok': True, 'data': doc, 'message': 'Document added.'}, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsAdminOrReceptionist])
def remove_patient_document(request, pk, filename):
    patient = get_object_or_404(Patient, pk=pk)
    patient_service.remove_document(request.user, patient, filename)
    return Response({'ok': True, 'message': 'Document removed.'})
