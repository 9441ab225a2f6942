import hashlib
import logging
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone
from rest_framework.exceptions import AuthenticationFailed, PermissionDenied

from clinic.exceptions import AccountLocked, BusinessRuleError, Conflict
from clinic.services import notifications
from clinic.services.audit import log_action

User = get_user_model()
logger = logging.getLogger(__name__)


def authenticate_staff(email: str, password: str, *, ip: Optional[str] = None) -> User:
    """Check credentials, lockout and active flag; update login bookkeeping."""
    user = User.objects.filter(email__iexact=email).first()
    if user is None:
        log_action(user=None, action='login', object_type='user',
                   detail={'result': 'fail', 'email': email, 'ip': ip})
        raise AuthenticationFailed('Invalid e-mail or password.')
    if user.is_locked():
        log_action(user=user, action='login', object_type='user', object_id=user.pk,
                   detail={'result': 'locked', 'ip': ip})
        raise AccountLocked()
    if not user.check_password(password):
        user.register_failed_login()
        log_action(user=user, action='login', object_type='user', object_id=user.pk,
                   detail={'result': 'fail', 'attempts': user.login_attempts, 'ip': ip})
        logger.info('failed login for %s (%s attempts)', user.email, user.login_attempts)
        if user.is_locked():
            raise AccountLocked()
        raise AuthenticationFailed('Invalid e-mail or password.')
    if not user.is_active:
        raise PermissionDenied('Account is inactive. Contact an administrator.')

    user.reset_login_attempts()
    user.last_login = timezone.now()
    user.last_login_ip = ip
    user.save(update_fields=['login_attempts', 'locked_until', 'last_login', 'last_login_ip'])
    log_action(user=user, action='login', object_type='user', object_id=user.pk,
               detail={'result': 'ok', 'ip': ip})
    return user


def update_profile(user: User, data: dict) -> User:
    fields = [f for f in ('name', 'phone', 'avatar') if f in data]
    for f in fields:
        setattr(user, f, data[f])
    if fields:
        user.save(update_fields=[*fields, 'updated_at'])
    return user


def change_password(user: User, current: str, new: str) -> None:
    if not user.check_password(current):
        raise AuthenticationFailed('Current password is incorrect.')
    user.set_password(new)
    user.password_changed_at = timezone.now()
    user.save(update_fields=['password', 'password_changed_at', 'updated_at'])
    log_action(user=user, action='change_password', object_type='user', object_id=user.pk)


def request_password_reset(email: str) -> Optional[str]:
    """Return the raw reset token when the e-mail matches an active user."""
    user = User.objects.filter(email__iexact=email, is_active=True).first()
    if user is None:
        logger.info('password reset requested for unknown e-mail')
        return None
    raw = user.create_password_reset_token()
    notifications.password_reset(user, raw)
    log_action(user=user, action='forgot_password', object_type='user', object_id=user.pk)
    return raw


def reset_password(raw_token: str, new_password: str) -> User:
    hashed = hashlib.sha256(raw_token.encode()).hexdigest()
    user = User.objects.filter(
        password_reset_token=hashed, password_reset_expires__gt=timezone.now()
    ).first()
    if user is None:
        raise BusinessRuleError('Invalid or expired reset token.')
    user.set_password(new_password)
    user.password_reset_token = None
    user.password_reset_expires = None
    user.password_changed_at = timezone.now()
    user.reset_login_attempts()
    user.save()
    log_action(user=user, action='reset_password', object_type='user', object_id=user.pk)
    return user


# ---------------------------------------------------------------------
# Admin management of staff accounts
# ---------------------------------------------------------------------
def filter_users(*, role=None, is_active=None, search=None):
    qs = User.objects.all().order_by('name')
    if role:
        qs = qs.filter(role=role)
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(email__icontains=search))
    return qs


@transaction.atomic
def create_user(actor: User, data: dict) -> User:
    if User.objects.filter(email__iexact=data['email']).exists():
        raise Conflict('E-mail already registered.')
    password = data.pop('password')
    user = User.objects.create_user(email=data.pop('email'), password=password, **data)
    log_action(user=actor, action='user_create', object_type='user', object_id=user.pk,
               detail={'role': user.role})
    return user


@transaction.atomic
def update_user(actor: User, user: User, data: dict) -> User:
    email = data.get('email')
    if email and User.objects.filter(email__iexact=email).exclude(pk=user.pk).exists():
        raise Conflict('E-mail already registered.')
    if user.pk == actor.pk and data.get('is_active') is False:
        raise BusinessRuleError('You cannot deactivate your own account.')
    password = data.pop('password', None)
    for k, v in data.items():
        setattr(user, k, v)
    if email:
        user.username = email
    if password:
        user.set_password(password)
        user.password_changed_at = timezone.now()
    user.save()
    log_action(user=actor, action='user_update', object_type='user', object_id=user.pk,
               detail={'fields': sorted(data)})
    return user


def toggle_user_status(actor: User, user: User) -> User:
    if user.pk == actor.pk:
        raise BusinessRuleError('You cannot change the status of your own account.')
    user.is_active = not user.is_active
    user.save(update_fields=['is_active', 'updated_at'])
    log_action(user=actor, action='user_toggle', object_type='user', object_id=user.pk,
               detail={'is_active': user.is_active})
    return user


def deactivate_user(actor: User, user: User) -> User:
    if user.pk == actor.pk:
        raise BusinessRuleError('You cannot delete your own account.')
    user.is_active = False
    user.save(update_fields=['is_active', 'updated_at'])
    log_action(user=actor, action='user_delete', object_type='user', object_id=user.pk)
    return user


def user_statistics() -> dict:
    agg = User.objects.aggregate(
        total=Count('id'),
        active=Count('id', filter=Q(is_active=True)),
    )
    by_role = {row['role']: row['n'] for row in User.objects.values('role').annotate(n=Count('id'))}
    return {
        'total': agg['total'],
        'active': agg['active'],
        'inactive': agg['total'] - agg['active'],
        'by_role': {role: by_role.get(role, 0) for role, _ in User.ROLE_CHOICES},
    }
