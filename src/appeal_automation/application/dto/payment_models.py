"""Pydantic models for payment provider notifications."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

PAYMENT_SUCCESS_EVENT_TYPES = frozenset({"checkout.session.completed", "payment_intent.succeeded"})


class ProviderModel(BaseModel):
    """Provider payloads carry many fields we never read; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")


class PaymentEventEnvelope(ProviderModel):
    id: str | None = None
    type: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


class PaymentObject(ProviderModel):
    """The `data.object` of a payment success event."""

    id: str = Field(min_length=1)
    metadata: dict[str, str] = Field(default_factory=dict)
    amount_total: int | None = None
    amount_received: int | None = None
    currency: str | None = None

    def metadata_value(self, *keys: str) -> str | None:
        for key in keys:
            value = self.metadata.get(key)
            if value is not None and value.strip():
                return value.strip()
        return None

    @property
    def amount_minor(self) -> int | None:
        return self.amount_total if self.amount_total is not None else self.amount_received


class PaymentWebhookResponse(BaseModel):
    ok: bool
    outcome: str
