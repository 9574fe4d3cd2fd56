from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .constants import (
    MEASUREMENT_UNITS,
    ROLES,
    SUBSCRIPTION_STATUSES,
    TASK_FREQUENCIES,
    TASK_STATUSES,
)
from .errors import ValidationError
from .time_utils import parse_iso_datetime


# Maximum price / stock magnitude; keeps nonsensical values out of documents
MAX_AMOUNT = 999_999_999


@dataclass(frozen=True)
class FieldSpec:
    """
    kind: text | number | bool | choice | datetime
    nullable: the field may be sent as null (removes it from the document)
    """
    kind: str
    nullable: bool = False
    choices: tuple = ()
    max_length: int | None = None


@dataclass(frozen=True)
class DocumentPolicy:
    """
    Central policy layer:
    - fields: what clients are allowed to set (security boundary) and how
    - required_on_create: fields required when creating
    """
    fields: dict[str, FieldSpec]
    required_on_create: set[str] = field(default_factory=set)


def _coerce_value(name: str, spec: FieldSpec, value: Any):
    if spec.kind == "text":
        if not isinstance(value, str):
            raise ValidationError(f"{name} must be a string")
        value = value.strip()
        if not spec.nullable and value == "":
            raise ValidationError(f"{name} cannot be blank")
        if spec.max_length and len(value) > spec.max_length:
            raise ValidationError(f"{name} exceeds max length {spec.max_length}")
        return value

    if spec.kind == "number":
        # bool is a subclass of int; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{name} must be a number")
        if value < 0:
            raise ValidationError(f"{name} must be >= 0")
        if value > MAX_AMOUNT:
            raise ValidationError(f"{name} cannot exceed {MAX_AMOUNT}")
        return value

    if spec.kind == "bool":
        if not isinstance(value, bool):
            raise ValidationError(f"{name} must be a boolean")
        return value

    if spec.kind == "choice":
        if value not in spec.choices:
            raise ValidationError(f"{name} must be one of: {', '.join(spec.choices)}")
        return value

    if spec.kind == "datetime":
        if not isinstance(value, str):
            raise ValidationError(f"{name} must be an ISO-8601 datetime")
        try:
            parsed = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{name} must be an ISO-8601 datetime")
        if parsed is None:
            raise ValidationError(f"{name} must be an ISO-8601 datetime")
        return value.strip()

    return value


def validate_payload(*, payload: dict, policy: DocumentPolicy, partial: bool) -> dict:
    """
    Validates + normalizes incoming fields against a policy.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)

    Returns a cleaned dict holding only writable fields. Nullable fields sent
    as None stay None, which removes them on update.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) is None)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    for key in payload.keys():
        if key not in policy.fields:
            raise ValidationError(f"Field not allowed: {key}")

    cleaned: dict = {}
    for key, raw in payload.items():
        spec = policy.fields[key]
        if raw is None:
            if not spec.nullable:
                raise ValidationError(f"{key} cannot be null")
            cleaned[key] = None
            continue
        cleaned[key] = _coerce_value(key, spec, raw)

    return cleaned


USER_POLICY = DocumentPolicy(
    fields={
        "username": FieldSpec("text", max_length=64),
        "email": FieldSpec("text", nullable=True, max_length=255),
        "password": FieldSpec("text"),
        "role": FieldSpec("choice", choices=ROLES),
        "name": FieldSpec("text", max_length=128),
        "local_id": FieldSpec("text", nullable=True),
    },
    required_on_create={"username", "role", "name"},
)

LOCAL_POLICY = DocumentPolicy(
    fields={
        "name": FieldSpec("text", max_length=128),
        "address": FieldSpec("text", max_length=255),
        "is_active": FieldSpec("bool"),
        "subscription_status": FieldSpec("choice", choices=SUBSCRIPTION_STATUSES),
        "last_payment_date": FieldSpec("datetime", nullable=True),
        "cash_in_register": FieldSpec("number", nullable=True),
    },
    required_on_create={"name", "address"},
)

PRODUCT_POLICY = DocumentPolicy(
    fields={
        "local_id": FieldSpec("text"),
        "name": FieldSpec("text", max_length=255),
        "price": FieldSpec("number"),
        "stock": FieldSpec("number"),
        "min_stock": FieldSpec("number"),
        "category": FieldSpec("text", max_length=128),
        "sku": FieldSpec("text", max_length=64),
        "barcode": FieldSpec("text", nullable=True, max_length=64),
        "cost_price": FieldSpec("number", nullable=True),
        "measurement_unit": FieldSpec("choice", choices=MEASUREMENT_UNITS),
    },
    required_on_create={"local_id", "name", "price", "stock", "min_stock", "category", "sku"},
)

TASK_POLICY = DocumentPolicy(
    fields={
        "local_id": FieldSpec("text"),
        "assigned_to_id": FieldSpec("text"),
        "assigned_by_id": FieldSpec("text"),
        "title": FieldSpec("text", max_length=255),
        "description": FieldSpec("text", nullable=True),
        "due_date": FieldSpec("datetime", nullable=True),
        "status": FieldSpec("choice", choices=TASK_STATUSES),
        "completed_at": FieldSpec("datetime", nullable=True),
        "is_recurring": FieldSpec("bool"),
        "frequency": FieldSpec("choice", nullable=True, choices=TASK_FREQUENCIES),
    },
    required_on_create={"local_id", "assigned_to_id", "assigned_by_id", "title"},
)
