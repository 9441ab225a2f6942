"""
Authentication views.

Login issues both a DRF token (``Authorization: Token <key>``) and a
simplejwt pair (``Authorization: Bearer <access>``).  These views live
apart from ``clinic.authentication`` so DRF can import the
authentication class without pulling in serializers and services.
"""
from __future__ import annotations

import logging

from django.conf import settings
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from clinic.serializers.auth import (
    ChangePasswordSerializer,
    ForgotPasswordSerializer,
    LoginSerializer,
    ProfileUpdateSerializer,
    ResetPasswordSerializer,
)
from clinic.services import users as user_service
from clinic.services.audit import log_action

logger = logging.getLogger(__name__)


def client_ip(request) -> str | None:
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = user_service.authenticate_staff(
        s.validated_data['email'], s.validated_data['password'], ip=client_ip(request)
    )
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    logger.info('user %s logged in', user.email)
    return Response({
        'ok': True,
        'data': {
            'token': token_obj.key,
            'jwt_access': str(refresh.access_token),
            'jwt_refresh': str(refresh),
            'user': user.public_profile(),
        },
        'message': 'Login successful.',
    })


# ScopedRateThrottle reads throttle_scope from the view class
login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    s = TokenRefreshSerializer(data={'refresh': request.data.get('refresh') or request.data.get('jwt_refresh')})
    try:
        s.is_valid(raise_exception=True)
    except TokenError as e:
        raise InvalidToken(e.args[0])
    data = {'jwt_access': s.validated_data['access']}
    if 'refresh' in s.validated_data:
        data['jwt_refresh'] = s.validated_data['refresh']
    return Response({'ok': True, 'data': data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Blacklist the given refresh token, or all of the user's, and drop the DRF token."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError as e:
            logger.info('logout with unusable refresh token: %s', e)
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    log_action(user=request.user, action='logout', object_type='user', object_id=request.user.pk,
               detail={'blacklisted': count})
    return Response({'ok': True, 'data': {'blacklisted': count}, 'message': 'Logged out.'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response({'ok': True, 'data': request.user.public_profile()})


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def profile_view(request):
    s = ProfileUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    user = user_service.update_profile(request.user, s.validated_data)
    return Response({'ok': True, 'data': user.public_profile(), 'message': 'Profile updated.'})


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def change_password_view(request):
    s = ChangePasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user_service.change_password(request.user, s.validated_data['current_password'],
                                 s.validated_data['new_password'])
    return Response({'ok': True, 'message': 'Password changed.'})


@api_view(['POST'])
@permission_classes([AllowAny])
def forgot_password_view(request):
    s = ForgotPasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    raw = user_service.request_password_reset(s.validated_data['email'])
    payload = {'ok': True, 'message': 'If the e-mail is registered, reset instructions were sent.'}
    if raw and settings.DEBUG:
        payload['data'] = {'reset_token': raw}
    return Response(payload)


forgot_password_view.cls.throttle_scope = 'password_reset'


@api_view(['POST'])
@permission_classes([AllowAny])
def reset_password_view(request, token):
    s = ResetPasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user_service.reset_password(token, s.validated_data['password'])
    return Response({'ok': True, 'message': 'Password reset successful.'})
