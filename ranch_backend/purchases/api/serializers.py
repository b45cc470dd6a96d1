# purchases/api/serializers.py

from rest_framework import serializers

from purchases.models import (
    Bill,
    BillLine,
    Payment,
    PurchaseOrder,
    PurchaseOrderLine,
    Receipt,
    ReceiptLine,
    Requisition,
    RequisitionLine,
    Vendor,
)

QTY = {"max_digits": 14, "decimal_places": 3}
PRICE = {"max_digits": 14, "decimal_places": 4}
MONEY = {"max_digits": 14, "decimal_places": 2}


# -----------------------------------------
# VENDORS
# -----------------------------------------
class VendorSerializer(serializers.ModelSerializer):
    class Meta:
        model = Vendor
        fields = ("id", "name", "phone", "email", "address", "payment_terms_days", "is_active", "created_at")
        read_only_fields = ("id", "created_at")


# -----------------------------------------
# REQUISITIONS
# -----------------------------------------
class RequisitionLineSerializer(serializers.ModelSerializer):
    item_name = serializers.CharField(source="item.name", read_only=True)

    class Meta:
        model = RequisitionLine
        fields = ("id", "line_number", "item", "item_name", "quantity", "estimated_unit_price")


class RequisitionSerializer(serializers.ModelSerializer):
    lines = RequisitionLineSerializer(many=True, read_only=True)
    purchase_order_id = serializers.SerializerMethodField()

    class Meta:
        model = Requisition
        fields = (
            "id",
            "number",
            "site_id",
            "status",
            "source",
            "requested_by",
            "notes",
            "rejection_reason",
            "submitted_at",
            "decided_at",
            "purchase_order_id",
            "lines",
            "created_at",
        )

    def get_purchase_order_id(self, obj):
        po = getattr(obj, "purchase_order", None)
        return str(po.pk) if po else None


class RequisitionLineInputSerializer(serializers.Serializer):
    item_id = serializers.IntegerField()
    quantity = serializers.DecimalField(**QTY)
    estimated_unit_price = serializers.DecimalField(**PRICE, required=False)


class RequisitionCreateSerializer(serializers.Serializer):
    site_id = serializers.CharField(max_length=64)
    requested_by = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    lines = RequisitionLineInputSerializer(many=True, allow_empty=False)


class RequisitionRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255)


class RequisitionConvertSerializer(serializers.Serializer):
    vendor_id = serializers.UUIDField()
    expected_date = serializers.DateField(required=False, allow_null=True)


# -----------------------------------------
# PURCHASE ORDERS
# -----------------------------------------
class PurchaseOrderLineSerializer(serializers.ModelSerializer):
    item_name = serializers.CharField(source="item.name", read_only=True)
    qty_remaining = serializers.DecimalField(**QTY, read_only=True)
    line_total = serializers.DecimalField(**MONEY, read_only=True)

    class Meta:
        model = PurchaseOrderLine
        fields = (
            "id",
            "line_number",
            "item",
            "item_name",
            "description",
            "qty_ordered",
            "qty_received",
            "qty_remaining",
            "unit_price",
            "line_total",
        )


class PurchaseOrderSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source="vendor.name", read_only=True)
    lines = PurchaseOrderLineSerializer(many=True, read_only=True)
    total = serializers.DecimalField(**MONEY, read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = (
            "id",
            "number",
            "site_id",
            "vendor",
            "vendor_name",
            "requisition",
            "status",
            "order_date",
            "expected_date",
            "notes",
            "total",
            "sent_at",
            "acknowledged_at",
            "closed_at",
            "cancelled_at",
            "lines",
            "created_at",
        )


class PurchaseOrderLineInputSerializer(serializers.Serializer):
    item_id = serializers.IntegerField()
    qty_ordered = serializers.DecimalField(**QTY)
    unit_price = serializers.DecimalField(**PRICE, required=False)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)


class PurchaseOrderCreateSerializer(serializers.Serializer):
    site_id = serializers.CharField(max_length=64)
    vendor_id = serializers.UUIDField()
    order_date = serializers.DateField(required=False, allow_null=True)
    expected_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    lines = PurchaseOrderLineInputSerializer(many=True, allow_empty=False)


# -----------------------------------------
# RECEIPTS
# -----------------------------------------
class ReceiptLineSerializer(serializers.ModelSerializer):
    po_line_number = serializers.IntegerField(read_only=True)
    item_name = serializers.CharField(source="po_line.item.name", read_only=True)
    line_total = serializers.DecimalField(**MONEY, read_only=True)

    class Meta:
        model = ReceiptLine
        fields = ("id", "po_line", "po_line_number", "item_name", "qty_received", "unit_cost", "line_total")


class ReceiptSerializer(serializers.ModelSerializer):
    purchase_order_number = serializers.CharField(source="purchase_order.number", read_only=True)
    lines = ReceiptLineSerializer(many=True, read_only=True)
    total = serializers.DecimalField(**MONEY, read_only=True)

    class Meta:
        model = Receipt
        fields = (
            "id",
            "number",
            "site_id",
            "purchase_order",
            "purchase_order_number",
            "receipt_date",
            "status",
            "total",
            "journal_entry",
            "last_error",
            "posted_at",
            "lines",
            "created_at",
        )


class ReceiptLineInputSerializer(serializers.Serializer):
    po_line_number = serializers.IntegerField(min_value=1)
    qty_received = serializers.DecimalField(**QTY)
    unit_cost = serializers.DecimalField(**PRICE, required=False)


class ReceiptCreateSerializer(serializers.Serializer):
    purchase_order_id = serializers.UUIDField()
    receipt_date = serializers.DateField(required=False, allow_null=True)
    site_id = serializers.CharField(max_length=64, required=False, allow_blank=True)
    lines = ReceiptLineInputSerializer(many=True, allow_empty=False)
    post = serializers.BooleanField(required=False, default=False)


# -----------------------------------------
# BILLS
# -----------------------------------------
class BillLineSerializer(serializers.ModelSerializer):
    po_line_number = serializers.IntegerField(source="po_line.line_number", read_only=True, allow_null=True)
    account_code = serializers.CharField(source="account.code", read_only=True, allow_null=True)

    class Meta:
        model = BillLine
        fields = (
            "id",
            "line_number",
            "po_line",
            "po_line_number",
            "account",
            "account_code",
            "description",
            "quantity",
            "unit_price",
            "amount",
        )


class BillSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source="vendor.name", read_only=True)
    amount_due = serializers.DecimalField(**MONEY, read_only=True)
    lines = BillLineSerializer(many=True, read_only=True)

    class Meta:
        model = Bill
        fields = (
            "id",
            "number",
            "vendor",
            "vendor_name",
            "vendor_invoice_number",
            "purchase_order",
            "receipt",
            "bill_date",
            "due_date",
            "status",
            "match_status",
            "variance_amount",
            "total",
            "amount_paid",
            "amount_due",
            "journal_entry",
            "approved_at",
            "voided_at",
            "lines",
            "created_at",
        )


class BillLineInputSerializer(serializers.Serializer):
    po_line_number = serializers.IntegerField(min_value=1, required=False)
    account_id = serializers.IntegerField(required=False)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    quantity = serializers.DecimalField(**QTY, required=False)
    unit_price = serializers.DecimalField(**PRICE, required=False)
    amount = serializers.DecimalField(**MONEY, required=False)

    def validate(self, attrs):
        if attrs.get("unit_price") is None and attrs.get("amount") is None:
            raise serializers.ValidationError("Provide unit_price or amount")
        return attrs


class BillCreateSerializer(serializers.Serializer):
    vendor_id = serializers.UUIDField()
    vendor_invoice_number = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    purchase_order_id = serializers.UUIDField(required=False, allow_null=True)
    receipt_id = serializers.UUIDField(required=False, allow_null=True)
    bill_date = serializers.DateField(required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)
    lines = BillLineInputSerializer(many=True, required=False)

    def validate(self, attrs):
        linked = attrs.get("purchase_order_id") or attrs.get("receipt_id")
        if not attrs.get("lines") and not linked:
            raise serializers.ValidationError({"lines": "A bill without a purchase order needs lines"})
        return attrs


class MatchLineSerializer(serializers.Serializer):
    line_number = serializers.IntegerField()
    status = serializers.CharField()
    reason = serializers.CharField(allow_blank=True)
    received = serializers.DecimalField(**QTY, allow_null=True)


class MatchResultSerializer(serializers.Serializer):
    bill_id = serializers.CharField()
    bill_total = serializers.DecimalField(**MONEY)
    match_status = serializers.CharField()
    variance_amount = serializers.DecimalField(**MONEY)
    lines = MatchLineSerializer(many=True)


# -----------------------------------------
# PAYMENTS
# -----------------------------------------
class PaymentSerializer(serializers.ModelSerializer):
    bill_number = serializers.CharField(source="bill.number", read_only=True)

    class Meta:
        model = Payment
        fields = (
            "id",
            "number",
            "bill",
            "bill_number",
            "payment_date",
            "amount",
            "method",
            "reference",
            "journal_entry",
            "created_at",
        )


class PaymentCreateSerializer(serializers.Serializer):
    bill_id = serializers.UUIDField()
    amount = serializers.DecimalField(**MONEY)
    method = serializers.ChoiceField(choices=Payment.Method.choices, default=Payment.Method.CHECK)
    payment_date = serializers.DateField(required=False, allow_null=True)
    reference = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")


# -----------------------------------------
# REORDER
# -----------------------------------------
class ReorderCheckSerializer(serializers.Serializer):
    site_id = serializers.CharField(max_length=64)
    create = serializers.BooleanField(required=False, default=False)


class ReorderSuggestionSerializer(serializers.Serializer):
    item_id = serializers.IntegerField()
    item_name = serializers.CharField()
    site_id = serializers.CharField()
    on_hand = serializers.DecimalField(**QTY)
    reorder_point = serializers.DecimalField(**QTY)
    suggested_quantity = serializers.DecimalField(**QTY)
    requisition_id = serializers.CharField(allow_null=True)
