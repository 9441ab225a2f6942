"""Admin management of staff accounts."""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from clinic.models import User
from clinic.pagination import paginate
from clinic.permissions import IsAdminRole
from clinic.serializers.user import UserListQuerySerializer, UserSerializer, UserWriteSerializer
from clinic.services import users as user_service


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def users(request):
    if request.method == 'POST':
        s = UserWriteSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        user = user_service.create_user(request.user, dict(s.validated_data))
        return Response({'ok': True, 'data': UserSerializer(user).data, 'message': 'User created.'},
                        status=status.HTTP_201_CREATED)

    q = UserListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = user_service.filter_users(**q.validated_data)
    return paginate(request, qs, lambda u: UserSerializer(u).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_statistics(request):
    return Response({'ok': True, 'data': user_service.user_statistics()})


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_detail(request, pk):
    user = get_object_or_404(User, pk=pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': UserSerializer(user).data})
    if request.method == 'DELETE':
        user_service.deactivate_user(request.user, user)
        return Response({'ok': True, 'message': 'User deactivated.'})

    s = UserWriteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    user = user_service.update_user(request.user, user, dict(s.validated_data))
    return Response({'ok': True, 'data': UserSerializer(user).data, 'message': 'User updated.'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def toggle_user_status(request, pk):
    user = user_service.toggle_user_status(request.user, get_object_or_404(User, pk=pk))
    return Response({'ok': True, 'data': UserSerializer(user).data})
