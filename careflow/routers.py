"""
URL mappings for the care workflow API.

Trailing slashes are deliberately omitted; APPEND_SLASH is off.
"""
from django.urls import path

from .views import appointments, health, notifications, prescriptions

urlpatterns = [
    path('healthz', health.healthz),

    path('api/appointments', appointments.appointment_collection),
    path('api/appointments/<uuid:appointment_id>', appointments.appointment_detail),
    path('api/appointments/<uuid:appointment_id>/confirm', appointments.appointment_confirm),
    path('api/appointments/<uuid:appointment_id>/cancel', appointments.appointment_cancel),
    path('api/appointments/<uuid:appointment_id>/complete', appointments.appointment_complete),

    path('api/prescriptions', prescriptions.prescription_collection),
    path('api/prescriptions/<uuid:prescription_id>', prescriptions.prescription_detail),
    path('api/prescriptions/<uuid:prescription_id>/pharmacies', prescriptions.prescription_pharmacies),
    path('api/prescriptions/<uuid:prescription_id>/route', prescriptions.prescription_route),
    path('api/prescriptions/<uuid:prescription_id>/dispense', prescriptions.prescription_dispense),

    path('api/notifications', notifications.notification_list),
    path('api/notifications/read', notifications.notification_read),
]
