from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.exceptions import BusinessRuleError
from clinic.models import HealthInsurance
from clinic.pagination import paginate
from clinic.permissions import IsAdminRole, IsStaff
from clinic.serializers.insurance import (
    ConsultationValueSerializer,
    HealthInsuranceSerializer,
    InsuranceListQuerySerializer,
)
from clinic.services import insurance as insurance_service


def _data(insurance):
    return HealthInsuranceSerializer(insurance).data


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaff])
def insurances(request):
    if request.method == 'POST':
        if request.user.role != 'admin':
            raise PermissionDenied('Only admins can register health insurances.')
        s = HealthInsuranceSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        insurance = insurance_service.create_insurance(request.user, dict(s.validated_data))
        return Response({'ok': True, 'data': _data(insurance), 'message': 'Health insurance created.'},
                        status=status.HTTP_201_CREATED)

    q = InsuranceListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return paginate(request, insurance_service.filter_insurances(**q.validated_data), _data)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaff])
def insurance_detail(request, pk):
    insurance = get_object_or_404(HealthInsurance, pk=pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': _data(insurance)})
    if request.user.role != 'admin':
        raise PermissionDenied('Only admins can change health insurances.')
    if request.method == 'DELETE':
        insurance_service.set_insurance_active(request.user, insurance, False)
        return Response({'ok': True, 'message': 'Health insurance deactivated.'})

    s = HealthInsuranceSerializer(insurance, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    insurance = insurance_service.update_insurance(request.user, insurance, dict(s.validated_data))
    return Response({'ok': True, 'data': _data(insurance), 'message': 'Health insurance updated.'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def toggle_insurance_status(request, pk):
    insurance = get_object_or_404(HealthInsurance, pk=pk)
    insurance = insurance_service.set_insurance_active(request.user, insurance, not insurance.is_active)
    return Response({'ok': True, 'data': _data(insurance)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaff])
def calculate_value(request, pk):
    insurance = get_object_or_404(HealthInsurance, pk=pk)
    s = ConsultationValueSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    service_type = s.validated_data.get('service_type')
    if service_type and not insurance.accepts_service_type(service_type):
        raise BusinessRuleError(f'{insurance.name} does not cover {service_type} services.')
    data = insurance.calculate_consultation_value(s.validated_data['base_value'])
    if 'start_date' in s.validated_data:
        data['in_waiting_period'] = insurance.is_in_waiting_period(s.validated_data['start_date'])
    return Response({'ok': True, 'data': data})
