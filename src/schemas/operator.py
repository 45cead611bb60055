"""Operator surface Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.models.order import OPERATOR_STATUSES, OrderStatus
from src.services.retention_sweeper import PurgePreset


class OperatorSessionCreate(BaseModel):
    """Schema for exchanging the passkey for a session token."""

    passkey: str = Field(min_length=1, description="Operator passkey")


class OperatorSessionResponse(BaseModel):
    """Schema for operator session responses."""

    access_token: str = Field(description="Bearer token for operator routes")
    token_type: str = Field(default="bearer", description="Token type")
    expires_at: int = Field(description="Expiry as Unix epoch seconds")


class StatusUpdateRequest(BaseModel):
    """Schema for PATCH /operator/orders/{order_id}/status."""

    order_status: OrderStatus = Field(description="New fulfillment status")

    @field_validator("order_status")
    @classmethod
    def check_operator_status(cls, value: OrderStatus) -> OrderStatus:
        if value not in OPERATOR_STATUSES:
            allowed = ", ".join(status.value for status in OPERATOR_STATUSES)
            raise ValueError(f"Status must be one of: {allowed}")
        return value


class DeleteOrderResponse(BaseModel):
    """Schema for order deletion responses."""

    order_id: str = Field(description="Deleted order id")
    deleted: bool = Field(description="False if the order was already gone")


class PurgeRequest(BaseModel):
    """Schema for POST /operator/orders/purge.

    Exactly one of ``preset`` or ``cutoff`` must be given.
    """

    preset: PurgePreset | None = Field(default=None, description="short, long or all")
    cutoff: datetime | None = Field(default=None, description="Delete orders created at or before this time")
    confirm: bool = Field(default=False, description="Must be true; purged orders cannot be recovered")

    @model_validator(mode="after")
    def check_target(self) -> "PurgeRequest":
        if (self.preset is None) == (self.cutoff is None):
            raise ValueError("Provide exactly one of 'preset' or 'cutoff'")
        return self


class PurgeResponse(BaseModel):
    """Schema for purge results."""

    model_config = ConfigDict(from_attributes=True)

    matched: int = Field(description="Orders matching the cutoff")
    deleted: int = Field(description="Orders deleted")
    batches: int = Field(description="Atomic batches committed")
    cutoff: datetime | None = Field(default=None, description="Cutoff applied, null for purge-all")
    noop: bool = Field(description="True when nothing matched")
