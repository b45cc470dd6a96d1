# accounting/api/serializers/invoices.py

from rest_framework import serializers

from accounting.models.customer_invoice import CustomerInvoice, InvoicePayment


class InvoicePaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoicePayment
        fields = ("id", "amount", "method", "payment_date", "reference", "journal_entry", "created_at")
        read_only_fields = fields


class CustomerInvoiceSerializer(serializers.ModelSerializer):
    amount_due = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    payments = InvoicePaymentSerializer(many=True, read_only=True)

    class Meta:
        model = CustomerInvoice
        fields = (
            "id",
            "invoice_number",
            "customer_id",
            "customer_name",
            "memo",
            "invoice_date",
            "due_date",
            "total",
            "amount_paid",
            "amount_due",
            "status",
            "journal_entry",
            "source_type",
            "source_id",
            "created_at",
            "voided_at",
            "payments",
        )
        read_only_fields = fields


class CustomerInvoiceCreateSerializer(serializers.Serializer):
    customer_name = serializers.CharField(max_length=200)
    customer_id = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    total = serializers.DecimalField(max_digits=14, decimal_places=2)
    invoice_date = serializers.DateField(required=False)
    due_date = serializers.DateField(required=False)
    terms_days = serializers.IntegerField(required=False, min_value=0)
    revenue_code = serializers.CharField(max_length=20, required=False, allow_blank=True)
    memo = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")

    def validate(self, attrs):
        invoice_date, due_date = attrs.get("invoice_date"), attrs.get("due_date")
        if invoice_date and due_date and due_date < invoice_date:
            raise serializers.ValidationError({"due_date": "due_date cannot be before invoice_date"})
        return attrs


class InvoicePaymentCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    method = serializers.ChoiceField(choices=InvoicePayment.Method.choices, default=InvoicePayment.Method.CHECK)
    payment_date = serializers.DateField(required=False)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
