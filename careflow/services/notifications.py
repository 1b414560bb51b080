"""
Per-user notification log.

The workflow only appends (:func:`push`); recipients list their messages
and flip the read flag.  Writes that fail after a committed transition are
parked in :class:`~careflow.models.DeferredNotification` and replayed by
``manage.py retry_notifications``.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple, Union

import bleach
from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from careflow.errors import NotFound, SideEffectDeferred
from careflow.models import DeferredNotification, Notification, User

logger = logging.getLogger(__name__)


def push(*, recipient_id: int, category: str, title: str, body: str = '',
         subject_type: str = '', subject_id: str = '') -> Notification:
    return Notification.objects.create(
        recipient_id=recipient_id,
        category=category,
        title=bleach.clean(title, strip=True)[:255],
        body=bleach.clean(body or '', strip=True),
        subject_type=subject_type,
        subject_id=str(subject_id or ''),
    )


def defer(failure: SideEffectDeferred) -> DeferredNotification:
    payload = failure.payload
    return DeferredNotification.objects.create(
        recipient_id=payload['recipient_id'],
        category=payload['category'],
        title=payload['title'][:255],
        body=payload.get('body', ''),
        subject_type=payload.get('subject_type', ''),
        subject_id=str(payload.get('subject_id', '')),
        attempts=1,
        last_error=repr(failure.cause),
    )


def serialize(n: Notification) -> dict:
    return {
        'id': n.id,
        'category': n.category,
        'title': n.title,
        'body': n.body,
        'read': n.read,
        'subjectType': n.subject_type or None,
        'subjectId': n.subject_id or None,
        'createdAt': n.created_at.isoformat(),
    }


def list_notifications(user: User, *, limit: Optional[int] = None) -> Tuple[List[dict], int]:
    """Return the newest notifications for ``user`` and their unread count."""
    limit = limit or settings.NOTIFICATION_PAGE_SIZE
    qs = Notification.objects.filter(recipient_id=user.id)
    items = [serialize(n) for n in qs.order_by('-created_at', '-id')[:limit]]
    unread = qs.filter(read=False).count()
    return items, unread


def mark_read(user: User, target: Union[int, str]) -> int:
    """Mark one notification (by id) or ``'all'`` as read; return rows flipped."""
    qs = Notification.objects.filter(recipient_id=user.id)
    if target == 'all':
        return qs.filter(read=False).update(read=True)
    if not qs.filter(id=target).exists():
        # Other users' notifications are reported as missing, not forbidden.
        raise NotFound('Notification not found.')
    return qs.filter(id=target, read=False).update(read=True)


def retry_deferred(*, limit: Optional[int] = None, batch: int = 100) -> Tuple[int, int]:
    """Replay queued notifications; return ``(delivered, still_failing)``."""
    limit = limit or settings.NOTIFICATION_RETRY_LIMIT
    pending = DeferredNotification.objects.filter(delivered_at__isnull=True, attempts__lt=limit)
    delivered = failing = 0
    for entry in pending.order_by('created_at')[:batch]:
        try:
            with transaction.atomic():
                notification = push(**entry.payload())
                entry.delivered = notification
                entry.delivered_at = timezone.now()
                entry.attempts = F('attempts') + 1
                entry.save(update_fields=['delivered', 'delivered_at', 'attempts'])
            delivered += 1
        except Exception as exc:
            failing += 1
            logger.warning('deferred notification %s failed again: %r', entry.id, exc)
            DeferredNotification.objects.filter(id=entry.id).update(
                attempts=F('attempts') + 1, last_error=repr(exc)
            )
    return delivered, failing
