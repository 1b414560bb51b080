from rest_framework import serializers

from careflow.models import normalize_choice


class NormalizedChoiceField(serializers.ChoiceField):
    """ChoiceField that accepts any casing or legacy spelling of a choice."""

    def to_internal_value(self, data):
        if data == '' and self.allow_blank:
            return ''
        return super().to_internal_value(normalize_choice(data))
