from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from records import TransactionStatus


def _parse_statuses(value: object) -> Optional[list[TransactionStatus]]:
    """Accept ``"all"``, a comma-separated string, or a list of statuses."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        if value.strip().lower() == "all":
            return None
        value = [part for part in value.split(",") if part.strip()]
    statuses = [TransactionStatus(str(item).strip().lower()) for item in value]
    return statuses or None


class ReportParams(BaseModel):
    start_date: date
    end_date: date
    account_id: Optional[int] = None
    category_id: Optional[int] = None
    statuses: Optional[list[TransactionStatus]] = None

    @field_validator("statuses", mode="before")
    @classmethod
    def _statuses(cls, value: object) -> Optional[list[TransactionStatus]]:
        return _parse_statuses(value)

    @model_validator(mode="after")
    def _check_order(self) -> "ReportParams":
        if self.start_date > self.end_date:
            raise ValueError("Start date must be before end date")
        return self


class LedgerFilters(BaseModel):
    statuses: Optional[list[TransactionStatus]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("statuses", mode="before")
    @classmethod
    def _statuses(cls, value: object) -> Optional[list[TransactionStatus]]:
        return _parse_statuses(value)


class ReconciliationStartIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    statement_date: date
    statement_ending_balance: Decimal = Field(..., max_digits=14, decimal_places=2)


class ReconciliationFinishIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    transaction_ids: list[int] = Field(..., min_length=1)
