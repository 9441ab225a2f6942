import logging
from typing import Any, Dict, Optional

from django.contrib.auth import get_user_model

from clinic.models import AuditEvent

User = get_user_model()
logger = logging.getLogger(__name__)


def log_action(*, user: Optional[User], action: str, object_type: Optional[str] = None,
               object_id: Any = None, detail: Optional[Dict[str, Any]] = None) -> AuditEvent:
    """Append an audit event; ``object_id`` may be an int or a UUID."""
    event = AuditEvent.objects.create(
        user=user if isinstance(user, User) and user.pk else None,
        action=action,
        object_type=object_type,
        object_id=str(object_id) if object_id is not None else None,
        detail=detail or {},
    )
    logger.debug('audit %s %s:%s', action, object_type, object_id)
    return event
