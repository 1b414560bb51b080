import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from careflow.models import Role
from careflow.tests import builders


@pytest.fixture
def department(db):
    return builders.make_department('Internal Medicine')


@pytest.fixture
def doctor(db, department):
    return builders.make_doctor(department=department, first_name='Dana', last_name='Kim')


@pytest.fixture
def patient(db):
    return builders.make_user(Role.PATIENT, first_name='Pat', last_name='Lee')


@pytest.fixture
def pharmacy(db):
    return builders.make_user(Role.PHARMACY, first_name='Central', last_name='Pharmacy')


@pytest.fixture
def travel(monkeypatch):
    """Pin ``timezone.now()`` to the given moment for the rest of the test."""
    def _travel(when):
        monkeypatch.setattr(timezone, 'now', lambda: when)
        return when
    return _travel


@pytest.fixture
def api():
    def _client(user=None):
        client = APIClient()
        if user is not None:
            client.force_authenticate(user=user)
        return client
    return _client
