"""Administrative reports and data export."""
from __future__ import annotations

import csv

from django.http import HttpResponse
from django.utils import timezone
from rest_framework import serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.permissions import IsAdminRole
from clinic.serializers.payment import DateRangeSerializer
from clinic.services import reports as report_service


class ExportQuerySerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=report_service.EXPORT_TYPES)
    format = serializers.ChoiceField(choices=['csv', 'json'], required=False, default='csv')


def _range(request) -> dict:
    q = DateRangeSerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return q.validated_data


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def dashboard(request):
    return Response({'ok': True, 'data': report_service.dashboard()})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def appointments_report(request):
    return Response({'ok': True, 'data': report_service.appointments_report(**_range(request))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def financial_report(request):
    return Response({'ok': True, 'data': report_service.financial_report(**_range(request))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def patients_report(request):
    return Response({'ok': True, 'data': report_service.patients_report()})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def doctors_report(request):
    return Response({'ok': True, 'data': report_service.doctors_report(**_range(request))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def medical_records_report(request):
    return Response({'ok': True, 'data': report_service.medical_records_report(**_range(request))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def export(request):
    q = ExportQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    kind, fmt = q.validated_data['type'], q.validated_data['format']
    header, rows = report_service.export_rows(kind)
    if fmt == 'json':
        return Response({'ok': True, 'data': [dict(zip(header, row)) for row in rows]})

    filename = f"{kind}-{timezone.localdate():%Y%m%d}.csv"
    resp = HttpResponse(content_type='text/csv; charset=utf-8')
    resp['Content-Disposition'] = f'attachment; filename="{filename}"'
    writer = csv.writer(resp)
    writer.writerow(header)
    writer.writerows(rows)
    return resp
