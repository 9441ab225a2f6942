"""Payment views; front desk by default, money-moving admin actions for admins."""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.models import Payment
from clinic.pagination import paginate
from clinic.permissions import IsAdminOrReceptionist, IsAdminRole
from clinic.serializers.payment import (
    CancelPaymentSerializer,
    DateRangeSerializer,
    PaymentListQuerySerializer,
    PaymentSerializer,
    PaymentWriteSerializer,
    ProcessPaymentSerializer,
    RefundPaymentSerializer,
)
from clinic.services import payments as payment_service


def _data(payment):
    return PaymentSerializer(payment).data


def _get(pk) -> Payment:
    return get_object_or_404(Payment.objects.select_related('patient', 'appointment__doctor'), pk=pk)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminOrReceptionist])
def payments(request):
    if request.method == 'POST':
        s = PaymentWriteSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        payment = payment_service.create_payment(request.user, dict(s.validated_data))
        return Response({'ok': True, 'data': _data(payment), 'message': 'Payment created.'},
                        status=status.HTTP_201_CREATED)

    q = PaymentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return paginate(request, payment_service.filter_payments(**q.validated_data), _data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrReceptionist])
def overdue(request):
    return paginate(request, payment_service.overdue_payments(), _data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def payment_statistics(request):
    return Response({'ok': True, 'data': payment_service.payment_statistics()})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def revenue(request):
    q = DateRangeSerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return Response({'ok': True, 'data': payment_service.revenue(**q.validated_data)})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsAdminOrReceptionist])
def payment_detail(request, pk):
    payment = _get(pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': _data(payment)})
    s = PaymentWriteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    payment = payment_service.update_payment(request.user, payment, dict(s.validated_data))
    return Response({'ok': True, 'data': _data(payment), 'message': 'Payment updated.'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminOrReceptionist])
def process_payment(request, pk):
    s = ProcessPaymentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    payment = payment_service.process_payment(request.user, _get(pk), s.validated_data)
    return Response({'ok': True, 'data': _data(payment), 'message': 'Payment processed.'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def cancel_payment(request, pk):
    s = CancelPaymentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    payment = payment_service.cancel_payment(request.user, _get(pk), s.validated_data['reason'])
    return Response({'ok': True, 'data': _data(payment), 'message': 'Payment cancelled.'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def refund_payment(request, pk):
    s = RefundPaymentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    payment = payment_service.refund_payment(request.user, _get(pk), s.validated_data['amount'],
                                             s.validated_data['reason'])
    return Response({'ok': True, 'data': _data(payment), 'message': 'Payment refunded.'})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrReceptionist])
def payment_receipt(request, pk):
    return Response({'ok': True, 'data': payment_service.receipt(_get(pk))})
