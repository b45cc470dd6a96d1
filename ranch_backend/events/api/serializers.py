# events/api/serializers.py

from rest_framework import serializers

from events.models import Event


class EventSerializer(serializers.ModelSerializer):
    journal_entry_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Event
        fields = (
            "id",
            "site_id",
            "event_type",
            "event_date",
            "description",
            "status",
            "posting_status",
            "payload",
            "group_id",
            "animal_count",
            "total_quantity",
            "total_cost",
            "posted_cost",
            "journal_entry_id",
            "last_error",
            "posted_at",
            "voided_at",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class EventCreateSerializer(serializers.Serializer):
    """
    payload is validated by the service layer against event_type
    (see events.payloads); this serializer only checks the envelope.
    """

    site_id = serializers.CharField(max_length=64)
    event_type = serializers.ChoiceField(choices=Event.EventType.choices)
    event_date = serializers.DateField(required=False)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    status = serializers.ChoiceField(
        choices=[Event.Status.DRAFT, Event.Status.PENDING, Event.Status.COMPLETED],
        required=False,
        default=Event.Status.PENDING,
    )
    payload = serializers.JSONField()
    group_id = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    animal_count = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    post = serializers.BooleanField(required=False, default=False)

    def validate_payload(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("payload must be an object")
        return value


class EventUpdateSerializer(serializers.Serializer):
    site_id = serializers.CharField(max_length=64, required=False)
    event_date = serializers.DateField(required=False)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    status = serializers.ChoiceField(
        choices=[Event.Status.DRAFT, Event.Status.PENDING, Event.Status.COMPLETED],
        required=False,
    )
    payload = serializers.JSONField(required=False)
    group_id = serializers.CharField(max_length=64, required=False, allow_blank=True)
    animal_count = serializers.IntegerField(min_value=1, required=False, allow_null=True)


class PostingResultSerializer(serializers.Serializer):
    posted = serializers.BooleanField()
    partial = serializers.BooleanField()
    message = serializers.CharField(allow_null=True, allow_blank=True)
    event = EventSerializer(required=False)


class ReprocessSummarySerializer(serializers.Serializer):
    found = serializers.IntegerField()
    reprocessed = serializers.IntegerField()
    message = serializers.CharField()
    details = serializers.ListField(child=serializers.DictField())
