from django.conf import settings
from rest_framework import serializers

from careflow.models import PrescriptionStatus
from careflow.serializers.fields import NormalizedChoiceField


class PrescriptionItemSerializer(serializers.Serializer):
    medicationId = serializers.IntegerField(min_value=1)
    # Range checks live in the service so they surface as invalid_line_item.
    quantity = serializers.IntegerField()
    dosage = serializers.CharField(max_length=100, required=False, allow_blank=True)
    frequency = serializers.CharField(max_length=100, required=False, allow_blank=True)
    duration = serializers.CharField(max_length=100, required=False, allow_blank=True)
    substituteAllowed = serializers.BooleanField(required=False, default=False)

    def to_service(self, data):
        return {
            'medication_id': data['medicationId'],
            'quantity': data['quantity'],
            'dosage': data.get('dosage', ''),
            'frequency': data.get('frequency', ''),
            'duration': data.get('duration', ''),
            'substitute_allowed': data.get('substituteAllowed', False),
        }


class PrescriptionIssueSerializer(serializers.Serializer):
    appointmentId = serializers.UUIDField()
    diagnosis = serializers.CharField(max_length=2000)
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    validityDays = serializers.IntegerField(min_value=1, required=False)
    items = PrescriptionItemSerializer(many=True, allow_empty=True)

    def validate_validityDays(self, value):
        if value > settings.PRESCRIPTION_MAX_VALIDITY_DAYS:
            raise serializers.ValidationError(
                f'At most {settings.PRESCRIPTION_MAX_VALIDITY_DAYS} days.'
            )
        return value

    def service_items(self):
        item = PrescriptionItemSerializer()
        return [item.to_service(line) for line in self.validated_data['items']]


class PrescriptionRouteSerializer(serializers.Serializer):
    pharmacyId = serializers.IntegerField(min_value=1)


class PrescriptionListQuerySerializer(serializers.Serializer):
    status = NormalizedChoiceField(choices=PrescriptionStatus.choices, required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=100, required=False)
