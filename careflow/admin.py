"""
Django admin registrations for the careflow models.

Workflow entities are read-mostly here: status columns must only change
through the services, so they are shown but not editable.
"""

from django.contrib import admin

from .models import (
    Appointment,
    AuditEvent,
    DeferredNotification,
    Department,
    Medication,
    Notification,
    PharmacyStock,
    Prescription,
    PrescriptionItem,
    ProviderProfile,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'phone', 'is_active', 'is_staff')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'first_name', 'last_name', 'phone')


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'created_at')
    search_fields = ('name',)


@admin.register(ProviderProfile)
class ProviderProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'department', 'specialization', 'offers_remote', 'offers_in_person')
    list_filter = ('department', 'offers_remote', 'offers_in_person')
    search_fields = ('user__username', 'specialization')


@admin.register(Medication)
class MedicationAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'unit_price', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name',)


@admin.register(PharmacyStock)
class PharmacyStockAdmin(admin.ModelAdmin):
    list_display = ('pharmacy', 'medication', 'quantity', 'updated_at')
    search_fields = ('pharmacy__username', 'medication__name')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'provider', 'scheduled_at', 'modality', 'status')
    list_filter = ('status', 'modality', 'department')
    search_fields = ('id', 'patient__username', 'provider__username')
    readonly_fields = ('status', 'notes', 'confirmed_at', 'cancelled_at', 'completed_at', 'cancelled_by')


class PrescriptionItemInline(admin.TabularInline):
    model = PrescriptionItem
    extra = 0
    readonly_fields = ('medication', 'quantity', 'unit_price')


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ('number', 'patient', 'provider', 'pharmacy', 'status', 'valid_until')
    list_filter = ('status',)
    search_fields = ('number', 'patient__username')
    readonly_fields = ('status', 'pharmacy', 'total_price', 'routed_at', 'dispensed_at')
    inlines = [PrescriptionItemInline]


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'recipient', 'category', 'title', 'read', 'created_at')
    list_filter = ('category', 'read')


@admin.register(DeferredNotification)
class DeferredNotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'recipient', 'category', 'attempts', 'delivered_at', 'created_at')
    list_filter = ('category',)


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'action', 'object_type', 'object_id', 'user', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id',)
