"""
Pydantic Schemas for the Route Profile Engine.

Request shapes validated before any transaction is opened.
RouteFieldUpdate is the closed set of settable route fields:
each field name carries its own value type.
"""

import json
from enum import Enum
from typing import Annotated, Any, Dict, Optional

from pydantic import (
    BaseModel,
    Field,
    StringConstraints,
    TypeAdapter,
    field_validator,
    model_validator,
)

from .types import IDENTITY_FIELDS, ROUTE_FIELD_NAMES, AliasType, RouteField, RouteStatus


# =============================================================
# FIELD TYPES
# =============================================================

_Ordinal = Annotated[int, Field(ge=1)]
_Index = Annotated[int, Field(ge=0)]
_Label = Annotated[str, Field(max_length=255)]
_Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
_Scope = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=64)]

FIELD_ADAPTERS: Dict[RouteField, TypeAdapter] = {
    RouteField.ORDINAL: TypeAdapter(_Ordinal),
    RouteField.SOURCE_INDEX: TypeAdapter(_Index),
    RouteField.PATCH_PANEL: TypeAdapter(_Label),
    RouteField.SOURCE_SUB_INDEX: TypeAdapter(_Index),
    RouteField.ENCODER_VENDOR: TypeAdapter(_Label),
    RouteField.ENCODER_UNIT: TypeAdapter(_Index),
    RouteField.ENCODER_SLOT: TypeAdapter(_Index),
    RouteField.ENCODER_INPUT_LABEL: TypeAdapter(_Label),
    RouteField.OUTBOUND_LABEL: TypeAdapter(_Label),
    RouteField.TRANSPORT_PROTOCOL: TypeAdapter(_Label),
    RouteField.NETWORK_ENDPOINT: TypeAdapter(_Label),
    RouteField.RECEIVER_VENDOR: TypeAdapter(_Label),
    RouteField.RECEIVER_UNIT: TypeAdapter(Optional[_Index]),
    RouteField.DESTINATION_LABEL: TypeAdapter(_Label),
    RouteField.STATUS: TypeAdapter(RouteStatus),
}


def coerce_field_value(route_field: RouteField, value: Any) -> Any:
    """
    Validate a value for a route field and return its Python form.

    Raises:
        pydantic.ValidationError: If the value does not fit the field
    """
    return FIELD_ADAPTERS[route_field].validate_python(value)


def to_json_value(value: Any) -> Any:
    """Plain JSON form of a value stored in an override record."""
    if isinstance(value, Enum):
        value = value.value
    try:
        json.dumps(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"value is not JSON serializable: {value!r}") from e
    return value


# =============================================================
# PROFILES / ROUTES / ALIASES
# =============================================================

class ProfileCreate(BaseModel):
    name: _Name
    scope: _Scope


class ProfileClone(BaseModel):
    source_profile_id: str = Field(min_length=1)
    new_name: _Name


class AliasUpsert(BaseModel):
    route_id: str = Field(min_length=1)
    alias_type: AliasType
    value: str = Field(max_length=255)


class RouteFieldUpdate(BaseModel):
    """A single baseline field assignment; value is typed by field."""

    field: RouteField
    value: Any = None

    @model_validator(mode="after")
    def _coerce_value(self) -> "RouteFieldUpdate":
        self.value = coerce_field_value(self.field, self.value)
        return self


# =============================================================
# CONSUMER FIELD CHANGES
# =============================================================

class FieldChange(BaseModel):
    """
    One consumer edit destined for the override ledger.

    Field names outside RouteField are accepted and recorded as
    they are; values for route fields are validated against the
    field type.
    """

    consumer_id: str = Field(min_length=1, max_length=64)
    route_id: str = Field(min_length=1)
    field: str = Field(min_length=1, max_length=64)
    old_value: Any = None
    new_value: Any = None

    @field_validator("field")
    @classmethod
    def _not_identity(cls, v: str) -> str:
        if v in IDENTITY_FIELDS:
            raise ValueError(f"{v} identifies the route and cannot be overridden")
        return v

    @model_validator(mode="after")
    def _normalize_values(self) -> "FieldChange":
        if self.field in ROUTE_FIELD_NAMES:
            route_field = RouteField(self.field)
            self.new_value = coerce_field_value(route_field, self.new_value)
        self.old_value = to_json_value(self.old_value)
        self.new_value = to_json_value(self.new_value)
        return self


class ForkRequest(BaseModel):
    consumer_id: str = Field(min_length=1, max_length=64)
    new_profile_name: _Name
    source_profile_id: str = Field(min_length=1)
