import pytest
from django.core.management import call_command

from careflow.errors import NotFound, SideEffectDeferred
from careflow.models import DeferredNotification, Notification, NotificationCategory, Role
from careflow.services import notifications
from careflow.tests import builders

pytestmark = pytest.mark.django_db


def _push(user, title='hello', **extra):
    return notifications.push(
        recipient_id=user.id, category=NotificationCategory.NEW_APPOINTMENT, title=title, **extra
    )


def test_list_is_newest_first_with_unread_count(patient):
    first = _push(patient, 'first')
    second = _push(patient, 'second')
    notifications.mark_read(patient, first.id)

    items, unread = notifications.list_notifications(patient)
    assert [i['id'] for i in items] == [second.id, first.id]
    assert unread == 1
    assert items[0]['category'] == 'new-appointment'


def test_list_is_capped(patient, settings):
    settings.NOTIFICATION_PAGE_SIZE = 3
    for n in range(5):
        _push(patient, f'n{n}')
    items, unread = notifications.list_notifications(patient)
    assert len(items) == 3
    assert unread == 5


def test_push_strips_markup(patient):
    n = _push(patient, '<span>Hi</span>', body='<script>x</script>ok')
    assert n.title == 'Hi'
    assert '<script>' not in n.body


def test_mark_all_read_counts_rows(patient):
    _push(patient)
    _push(patient)
    assert notifications.mark_read(patient, 'all') == 2
    assert notifications.mark_read(patient, 'all') == 0
    assert not Notification.objects.filter(read=False).exists()


def test_mark_read_of_someone_elses_notification_is_not_found(patient):
    other = builders.make_user(Role.PATIENT)
    theirs = _push(other)
    with pytest.raises(NotFound):
        notifications.mark_read(patient, theirs.id)
    theirs.refresh_from_db()
    assert theirs.read is False


def test_retry_gives_up_after_limit(patient, monkeypatch, settings):
    settings.NOTIFICATION_RETRY_LIMIT = 2
    payload = {'recipient_id': patient.id, 'category': 'new-prescription', 'title': 't', 'body': 'b',
               'subject_type': 'prescription', 'subject_id': 'x'}
    entry = notifications.defer(SideEffectDeferred(payload, RuntimeError('boom')))
    assert entry.attempts == 1

    def broken(**kwargs):
        raise RuntimeError('still down')

    monkeypatch.setattr(notifications, 'push', broken)
    assert notifications.retry_deferred() == (0, 1)
    assert notifications.retry_deferred() == (0, 0)
    entry.refresh_from_db()
    assert entry.attempts == 2
    assert 'still down' in entry.last_error


def test_retry_command_delivers_queue(patient):
    payload = {'recipient_id': patient.id, 'category': 'new-prescription', 'title': 'queued', 'body': '',
               'subject_type': '', 'subject_id': ''}
    notifications.defer(SideEffectDeferred(payload, RuntimeError('boom')))
    call_command('retry_notifications')
    assert Notification.objects.get(recipient=patient).title == 'queued'
    assert DeferredNotification.objects.get().delivered_at is not None
