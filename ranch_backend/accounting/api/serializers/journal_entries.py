# accounting/api/serializers/journal_entries.py

from rest_framework import serializers

from accounting.models.journal import JournalEntry
from accounting.models.ledger import JournalLine


class JournalLineSerializer(serializers.ModelSerializer):
    account_code = serializers.CharField(source="account.code", read_only=True)
    account_name = serializers.CharField(source="account.name", read_only=True)

    class Meta:
        model = JournalLine
        fields = ("line_number", "account", "account_code", "account_name", "debit", "credit", "description")
        read_only_fields = fields


class JournalEntrySerializer(serializers.ModelSerializer):
    lines = JournalLineSerializer(many=True, read_only=True)
    reversed_by = serializers.SerializerMethodField()

    class Meta:
        model = JournalEntry
        fields = (
            "id",
            "entry_date",
            "memo",
            "reference",
            "status",
            "reverses",
            "reversed_by",
            "source_type",
            "source_id",
            "posted_at",
            "reversed_at",
            "created_at",
            "lines",
        )
        read_only_fields = fields

    def get_reversed_by(self, obj) -> int | None:
        reversal = getattr(obj, "reversal", None)
        return reversal.pk if reversal else None


class JournalLineInputSerializer(serializers.Serializer):
    account_id = serializers.IntegerField()
    debit = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, default=0)
    credit = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, default=0)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class JournalEntryCreateSerializer(serializers.Serializer):
    entry_date = serializers.DateField(required=False)
    memo = serializers.CharField()
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    lines = JournalLineInputSerializer(many=True, allow_empty=False)
    post = serializers.BooleanField(required=False, default=False)


class JournalEntryReverseSerializer(serializers.Serializer):
    reversal_date = serializers.DateField(required=False)
    memo = serializers.CharField(required=False, allow_blank=True)
