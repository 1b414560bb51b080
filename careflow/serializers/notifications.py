from rest_framework import serializers


class NotificationReadSerializer(serializers.Serializer):
    """Either ``{"id": 12}`` or ``{"all": true}``."""
    id = serializers.IntegerField(min_value=1, required=False)
    all = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if not attrs.get('all') and not attrs.get('id'):
            raise serializers.ValidationError('Pass a notification id or all=true.')
        return attrs

    @property
    def target(self):
        data = self.validated_data
        return 'all' if data.get('all') else data['id']
