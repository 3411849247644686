"""Pydantic schemas for da_plan API."""

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, Field, model_validator

from src.da_common.cents import cents_to_display
from src.da_common.datetime_utils import iso_or_none
from src.da_common.enums import PlanVisibility
from src.da_plan.domain.models import Plan

Percent = Annotated[Decimal, Field(ge=0, le=100, max_digits=5, decimal_places=2)]


class PlanCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    min_deposit_cents: int = Field(0, ge=0)
    max_deposit_cents: int = Field(0, ge=0)
    max_accounts: int = Field(1, ge=1)
    profit_sharing_customer: Percent
    profit_sharing_platform: Percent
    upfront_fee_cents: int = Field(0, ge=0)
    visibility: PlanVisibility = PlanVisibility.PUBLIC
    confirmation_text: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _deposit_range(self) -> "PlanCreateRequest":
        if self.max_deposit_cents and self.max_deposit_cents < self.min_deposit_cents:
            raise ValueError("max_deposit_cents must be >= min_deposit_cents")
        return self

    def to_fields(self) -> dict[str, object]:
        return {
            "name": self.name,
            "min_deposit": self.min_deposit_cents,
            "max_deposit": self.max_deposit_cents,
            "max_accounts": self.max_accounts,
            "profit_sharing_customer": self.profit_sharing_customer,
            "profit_sharing_platform": self.profit_sharing_platform,
            "upfront_fee": self.upfront_fee_cents,
            "visibility": self.visibility.value,
            "confirmation_text": self.confirmation_text,
        }


class PlanUpdateRequest(BaseModel):
    """Partial update — only fields present in the body are written."""

    name: str | None = Field(None, min_length=1, max_length=128)
    min_deposit_cents: int | None = Field(None, ge=0)
    max_deposit_cents: int | None = Field(None, ge=0)
    max_accounts: int | None = Field(None, ge=1)
    profit_sharing_customer: Percent | None = None
    profit_sharing_platform: Percent | None = None
    upfront_fee_cents: int | None = Field(None, ge=0)
    visibility: PlanVisibility | None = None
    confirmation_text: str | None = Field(None, max_length=2000)

    def to_fields(self) -> dict[str, object]:
        renames = {
            "min_deposit_cents": "min_deposit",
            "max_deposit_cents": "max_deposit",
            "upfront_fee_cents": "upfront_fee",
        }
        fields: dict[str, object] = {}
        for key, value in self.model_dump(exclude_unset=True).items():
            if isinstance(value, PlanVisibility):
                value = value.value
            fields[renames.get(key, key)] = value
        return fields


class PlanResponse(BaseModel):
    id: str
    name: str
    min_deposit_cents: int
    min_deposit_display: str
    max_deposit_cents: int
    max_deposit_display: str
    max_accounts: int
    profit_sharing_customer: Decimal
    profit_sharing_platform: Decimal
    upfront_fee_cents: int
    upfront_fee_display: str
    visibility: str
    confirmation_text: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, plan: Plan) -> "PlanResponse":
        return cls(
            id=plan.id,
            name=plan.name,
            min_deposit_cents=plan.min_deposit,
            min_deposit_display=cents_to_display(plan.min_deposit),
            max_deposit_cents=plan.max_deposit,
            max_deposit_display=cents_to_display(plan.max_deposit),
            max_accounts=plan.max_accounts,
            profit_sharing_customer=plan.profit_sharing_customer,
            profit_sharing_platform=plan.profit_sharing_platform,
            upfront_fee_cents=plan.upfront_fee,
            upfront_fee_display=cents_to_display(plan.upfront_fee),
            visibility=plan.visibility,
            confirmation_text=plan.confirmation_text,
            created_at=iso_or_none(plan.created_at),
        )
