from typing import Optional, Any, Dict
from django.contrib.auth import get_user_model
from careflow.models import AuditEvent

User = get_user_model()

def log_action(*, user: Optional[User], action: str, object_type: Optional[str]=None, object_id=None, detail: Optional[Dict[str, Any]]=None) -> AuditEvent:
    return AuditEvent.objects.create(
        user=user if getattr(user, 'pk', None) else None,
        action=action,
        object_type=object_type,
        object_id=str(object_id) if object_id is not None else None,
        detail=detail or {},
    )

def log_transition(*, user, object_type: str, object_id, action: str, from_status: str, to_status: str, **extra) -> AuditEvent:
    detail = {'from': from_status, 'to': to_status}
    detail.update(extra)
    return log_action(user=user, action=action, object_type=object_type, object_id=object_id, detail=detail)
