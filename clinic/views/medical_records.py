"""
Medical record views; admins and doctors only.

Doctors are scoped to records under their own profile by the medical
record service, which raises 403 for anything else.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.models import MedicalRecord
from clinic.pagination import paginate
from clinic.permissions import IsAdminOrDoctor, IsAdminRole
from clinic.serializers.medical_record import (
    AttachmentSerializer,
    MedicalRecordCreateSerializer,
    MedicalRecordListQuerySerializer,
    MedicalRecordSerializer,
    SignRecordSerializer,
)
from clinic.services import medical_records as record_service


def _data(record):
    return MedicalRecordSerializer(record).data


def _get(request, pk) -> MedicalRecord:
    record = get_object_or_404(MedicalRecord.objects.select_related('patient', 'doctor'), pk=pk)
    record_service.ensure_can_access(request.user, record)
    return record


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def medical_records(request):
    if request.method == 'POST':
        s = MedicalRecordCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        record = record_service.create_record(request.user, dict(s.validated_data))
        return Response({'ok': True, 'data': _data(record), 'message': 'Medical record created.'},
                        status=status.HTTP_201_CREATED)

    q = MedicalRecordListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return paginate(request, record_service.filter_records(request.user, **q.validated_data), _data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def record_stats(request):
    return Response({'ok': True, 'data': record_service.record_statistics()})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def records_by_patient(request, patient_id):
    return paginate(request, record_service.filter_records(request.user, patient_id=patient_id), _data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def record_by_appointment(request, appointment_id):
    record = record_service.record_for_appointment(request.user, appointment_id)
    return Response({'ok': True, 'data': _data(record)})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def record_detail(request, pk):
    record = _get(request, pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': _data(record)})
    s = MedicalRecordSerializer(record, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    record = record_service.update_record(request.user, record, dict(s.validated_data))
    return Response({'ok': True, 'data': _data(record), 'message': 'Medical record updated.'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def complete_record(request, pk):
    record = record_service.complete_record(request.user, _get(request, pk))
    return Response({'ok': True, 'data': _data(record), 'message': 'Medical record completed.'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def sign_record(request, pk):
    s = SignRecordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    record = record_service.sign_record(request.user, _get(request, pk), s.validated_data.get('signature', ''))
    return Response({'ok': True, 'data': _data(record), 'message': 'Medical record signed.'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def review_record(request, pk):
    record = record_service.review_record(request.user, _get(request, pk))
    return Response({'ok': True, 'data': _data(record), 'message': 'Medical record reviewed.'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def amend_record(request, pk):
    record = record_service.amend_record(request.user, _get(request, pk))
    return Response({'ok': True, 'data': _data(record), 'message': 'Medical record reopened for amendment.'})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def add_attachment(request, pk):
    s = AttachmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    att = record_service.add_attachment(request.user, _get(request, pk), dict(s.validated_data))
    return Response({'ok': True, 'data': att, 'message': 'Attachment added.'}, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def remove_attachment(request, pk, filename):
    record_service.remove_attachment(request.user, _get(request, pk), filename)
    return Response({'ok': True, 'message': 'Attachment removed.'})
