# events/payloads.py

"""
======================================================
PATH: events/payloads.py
======================================================
TYPED EVENT PAYLOADS

Closed set of payload variants, one per Event.EventType. Raw JSON is
parsed once into a frozen dataclass; everything downstream (totals, line
derivation) works on the dataclass and dispatches on its type.

Per-animal scaling (consumption lines):
- quantity = quantity_per_animal x animal_count
- cost     = quantity x unit_cost
Both are recomputed from those inputs every time, never accumulated.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ImproperlyConfigured

from events.models import Event
from events.services.exceptions import PayloadValidationError

QTY_PLACES = Decimal("0.001")
TWOPLACES = Decimal("0.01")

SETTLE_CASH = "cash"
SETTLE_PAYABLE = "payable"
SETTLE_RECEIVABLE = "receivable"


def _decimal(value, name: str, *, required: bool = True, allow_negative: bool = False) -> Decimal | None:
    if value is None or value == "":
        if required:
            raise PayloadValidationError(f"{name} is required")
        return None
    if isinstance(value, bool):
        raise PayloadValidationError(f"{name} must be a number")
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise PayloadValidationError(f"{name} must be a number") from exc
    if not number.is_finite():
        raise PayloadValidationError(f"{name} must be a number")
    if number < 0 and not allow_negative:
        raise PayloadValidationError(f"{name} cannot be negative")
    return number


def _item_id(value, name: str = "item_id") -> int:
    if value is None or value == "" or isinstance(value, bool):
        raise PayloadValidationError(f"{name} is required")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise PayloadValidationError(f"{name} must be an integer id") from exc


def _lines(data: dict, key: str = "lines") -> list:
    raw = data.get(key) or []
    if not isinstance(raw, list):
        raise PayloadValidationError(f"{key} must be a list")
    return raw


def scaled_quantity(quantity_per_animal: Decimal, animal_count: int) -> Decimal:
    return (Decimal(quantity_per_animal) * Decimal(animal_count)).quantize(
        QTY_PLACES, rounding=ROUND_HALF_UP
    )


def line_cost(quantity: Decimal, unit_cost: Decimal) -> Decimal:
    return (Decimal(quantity) * Decimal(unit_cost)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ConsumptionLine:
    item_id: int
    quantity: Decimal | None = None
    quantity_per_animal: Decimal | None = None
    unit_cost: Decimal | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "ConsumptionLine":
        if not isinstance(data, dict):
            raise PayloadValidationError("Each line must be an object")
        line = cls(
            item_id=_item_id(data.get("item_id")),
            quantity=_decimal(data.get("quantity"), "quantity", required=False),
            quantity_per_animal=_decimal(
                data.get("quantity_per_animal"), "quantity_per_animal", required=False
            ),
            unit_cost=_decimal(data.get("unit_cost"), "unit_cost", required=False),
        )
        if (line.quantity is None) == (line.quantity_per_animal is None):
            raise PayloadValidationError(
                "Each line needs exactly one of quantity or quantity_per_animal"
            )
        return line

    def resolved_quantity(self, animal_count: int | None) -> Decimal:
        if self.quantity_per_animal is not None:
            if not animal_count:
                raise PayloadValidationError(
                    "animal_count is required when quantity_per_animal is used"
                )
            return scaled_quantity(self.quantity_per_animal, animal_count)
        return self.quantity.quantize(QTY_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ReceivingLine:
    item_id: int
    quantity: Decimal
    unit_cost: Decimal

    @classmethod
    def from_dict(cls, data: dict) -> "ReceivingLine":
        if not isinstance(data, dict):
            raise PayloadValidationError("Each line must be an object")
        line = cls(
            item_id=_item_id(data.get("item_id")),
            quantity=_decimal(data.get("quantity"), "quantity"),
            unit_cost=_decimal(data.get("unit_cost"), "unit_cost"),
        )
        if line.quantity <= 0:
            raise PayloadValidationError("quantity must be greater than zero")
        return line


@dataclass(frozen=True)
class FeedingPayload:
    lines: tuple[ConsumptionLine, ...]

    @classmethod
    def from_dict(cls, data: dict) -> "FeedingPayload":
        lines = tuple(ConsumptionLine.from_dict(x) for x in _lines(data))
        if not lines:
            raise PayloadValidationError("At least one line is required")
        return cls(lines=lines)


@dataclass(frozen=True)
class TreatmentPayload(FeedingPayload):
    pass


@dataclass(frozen=True)
class ReceivingPayload:
    lines: tuple[ReceivingLine, ...]
    settlement: str = SETTLE_PAYABLE
    vendor_name: str = ""
    invoice_number: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "ReceivingPayload":
        lines = tuple(ReceivingLine.from_dict(x) for x in _lines(data))
        if not lines:
            raise PayloadValidationError("At least one line is required")
        settlement = (data.get("settlement") or SETTLE_PAYABLE).strip().lower()
        if settlement not in (SETTLE_CASH, SETTLE_PAYABLE):
            raise PayloadValidationError("settlement must be 'cash' or 'payable'")
        return cls(
            lines=lines,
            settlement=settlement,
            vendor_name=str(data.get("vendor_name") or ""),
            invoice_number=str(data.get("invoice_number") or ""),
        )


@dataclass(frozen=True)
class SalePayload:
    amount: Decimal
    settlement: str = SETTLE_CASH
    customer_name: str = ""
    customer_id: str = ""
    terms_days: int | None = None
    lines: tuple[ConsumptionLine, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict) -> "SalePayload":
        amount = _decimal(data.get("amount"), "amount")
        if amount <= 0:
            raise PayloadValidationError("amount must be greater than zero")
        settlement = (data.get("settlement") or SETTLE_CASH).strip().lower()
        if settlement not in (SETTLE_CASH, SETTLE_RECEIVABLE):
            raise PayloadValidationError("settlement must be 'cash' or 'receivable'")
        customer_name = str(data.get("customer_name") or "").strip()
        if settlement == SETTLE_RECEIVABLE and not customer_name:
            raise PayloadValidationError("customer_name is required for a sale on account")
        terms_days = data.get("terms_days")
        if terms_days not in (None, ""):
            try:
                terms_days = int(terms_days)
            except (TypeError, ValueError) as exc:
                raise PayloadValidationError("terms_days must be a whole number") from exc
            if terms_days < 0:
                raise PayloadValidationError("terms_days cannot be negative")
        else:
            terms_days = None
        return cls(
            amount=amount,
            settlement=settlement,
            customer_name=customer_name,
            customer_id=str(data.get("customer_id") or ""),
            terms_days=terms_days,
            lines=tuple(ConsumptionLine.from_dict(x) for x in _lines(data)),
        )


@dataclass(frozen=True)
class LaborPayload:
    hours: Decimal | None = None
    rate: Decimal | None = None
    amount: Decimal | None = None
    worker_name: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "LaborPayload":
        payload = cls(
            hours=_decimal(data.get("hours"), "hours", required=False),
            rate=_decimal(data.get("rate"), "rate", required=False),
            amount=_decimal(data.get("amount"), "amount", required=False),
            worker_name=str(data.get("worker_name") or ""),
        )
        if payload.amount is None and (payload.hours is None or payload.rate is None):
            raise PayloadValidationError("Labor needs amount, or hours and rate")
        if payload.total <= 0:
            raise PayloadValidationError("Labor cost must be greater than zero")
        return payload

    @property
    def total(self) -> Decimal:
        if self.amount is not None:
            return self.amount.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
        return line_cost(self.hours, self.rate)


@dataclass(frozen=True)
class MaintenancePayload:
    amount: Decimal
    vendor_name: str = ""
    asset_name: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "MaintenancePayload":
        amount = _decimal(data.get("amount"), "amount")
        if amount <= 0:
            raise PayloadValidationError("amount must be greater than zero")
        return cls(
            amount=amount,
            vendor_name=str(data.get("vendor_name") or ""),
            asset_name=str(data.get("asset_name") or ""),
        )


@dataclass(frozen=True)
class AdjustmentPayload:
    item_id: int
    quantity_delta: Decimal
    unit_cost: Decimal | None = None
    reason: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "AdjustmentPayload":
        delta = _decimal(data.get("quantity_delta"), "quantity_delta", allow_negative=True)
        if delta == 0:
            raise PayloadValidationError("quantity_delta cannot be 0")
        return cls(
            item_id=_item_id(data.get("item_id")),
            quantity_delta=delta,
            unit_cost=_decimal(data.get("unit_cost"), "unit_cost", required=False),
            reason=str(data.get("reason") or ""),
        )


@dataclass(frozen=True)
class TransferPayload:
    item_id: int
    quantity: Decimal
    to_site_id: str

    @classmethod
    def from_dict(cls, data: dict) -> "TransferPayload":
        quantity = _decimal(data.get("quantity"), "quantity")
        if quantity <= 0:
            raise PayloadValidationError("quantity must be greater than zero")
        to_site_id = str(data.get("to_site_id") or "").strip()
        if not to_site_id:
            raise PayloadValidationError("to_site_id is required")
        return cls(item_id=_item_id(data.get("item_id")), quantity=quantity, to_site_id=to_site_id)


PAYLOAD_TYPES = {
    Event.EventType.FEEDING: FeedingPayload,
    Event.EventType.TREATMENT: TreatmentPayload,
    Event.EventType.RECEIVING: ReceivingPayload,
    Event.EventType.SALE: SalePayload,
    Event.EventType.LABOR: LaborPayload,
    Event.EventType.MAINTENANCE: MaintenancePayload,
    Event.EventType.ADJUSTMENT: AdjustmentPayload,
    Event.EventType.TRANSFER: TransferPayload,
}

_unmapped = set(Event.EventType.values) - {str(k) for k in PAYLOAD_TYPES}
if _unmapped:
    raise ImproperlyConfigured(f"Event types without a payload variant: {sorted(_unmapped)}")


def parse_payload(event_type: str, data) -> object:
    try:
        payload_cls = PAYLOAD_TYPES[Event.EventType(event_type)]
    except ValueError as exc:
        raise PayloadValidationError(f"Unknown event_type: {event_type!r}") from exc
    if not isinstance(data, dict):
        raise PayloadValidationError("payload must be an object")
    return payload_cls.from_dict(data)


def _json_safe(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items() if v is not None}
    return value


def payload_to_json(payload) -> dict:
    return _json_safe(asdict(payload))


def item_ids(payload) -> list[int]:
    if isinstance(payload, (FeedingPayload, ReceivingPayload, SalePayload)):
        return sorted({line.item_id for line in payload.lines})
    if isinstance(payload, (AdjustmentPayload, TransferPayload)):
        return [payload.item_id]
    return []
