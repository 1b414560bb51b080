from rest_framework import serializers

from careflow.models import AppointmentStatus, Modality, RemoteChannel
from careflow.serializers.fields import NormalizedChoiceField


class AppointmentRequestSerializer(serializers.Serializer):
    providerId = serializers.IntegerField(min_value=1)
    departmentId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    scheduledAt = serializers.DateTimeField()
    modality = NormalizedChoiceField(choices=Modality.choices)
    remoteChannel = NormalizedChoiceField(choices=RemoteChannel.choices, required=False, allow_blank=True)
    symptoms = serializers.CharField(max_length=2000, required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs['modality'] == Modality.REMOTE and not attrs.get('remoteChannel'):
            attrs['remoteChannel'] = RemoteChannel.VIDEO.value
        return attrs


class AppointmentNoteSerializer(serializers.Serializer):
    note = serializers.CharField(max_length=1000, required=False, allow_blank=True)


class AppointmentCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000, required=False, allow_blank=True)


class AppointmentListQuerySerializer(serializers.Serializer):
    status = NormalizedChoiceField(choices=AppointmentStatus.choices, required=False)
    modality = NormalizedChoiceField(choices=Modality.choices, required=False)
    upcoming = serializers.BooleanField(required=False, default=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=100, required=False)
