"""
Role permissions for the workflow endpoints.

The orchestrator enforces the same rules; these classes reject the request
before any service code runs and give a message in the caller's terms.
"""
from rest_framework.permissions import BasePermission

from careflow.models import Role


class _HasRole(BasePermission):
    roles: frozenset = frozenset()

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in self.roles)


class IsPatientRole(_HasRole):
    """Allow access only to users with the patient role."""
    roles = frozenset({Role.PATIENT.value})
    message = 'This action is available to patients only.'


class IsDoctorRole(_HasRole):
    roles = frozenset({Role.DOCTOR.value})
    message = 'This action is available to doctors only.'


class IsPharmacyRole(_HasRole):
    roles = frozenset({Role.PHARMACY.value})
    message = 'This action is available to pharmacies only.'


class IsCareParticipant(_HasRole):
    """Patients and doctors, the two sides of an appointment."""
    roles = frozenset({Role.PATIENT.value, Role.DOCTOR.value})
    message = 'Only the patient or the doctor on an appointment can do this.'
