import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ledger import Recurrence


def _finite(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is not None and not value.is_finite():
        raise ValueError("Amount must be a finite number")
    return value


def _not_blank(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("Must not be blank")
    return value


class TransactionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = Field(default=None, min_length=1, max_length=40)
    date: dt.date
    merchant: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., max_digits=14, decimal_places=2)
    category_id: Optional[int] = None
    description: Optional[str] = Field(default=None, max_length=1000)
    recurrence: Recurrence = Recurrence.none

    check_amount = field_validator("amount")(_finite)
    check_merchant = field_validator("merchant")(_not_blank)


class TransactionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: Optional[dt.date] = None
    merchant: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Decimal] = Field(default=None, max_digits=14, decimal_places=2)
    category_id: Optional[int] = None
    description: Optional[str] = Field(default=None, max_length=1000)
    recurrence: Optional[Recurrence] = None

    check_amount = field_validator("amount")(_finite)
    check_merchant = field_validator("merchant")(_not_blank)


class CategoryIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, max_length=60)
    budget: Optional[Decimal] = Field(
        default=None, ge=0, max_digits=14, decimal_places=2
    )

    check_budget = field_validator("budget")(_finite)
    check_name = field_validator("name")(_not_blank)


class CategoryUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, max_length=60)
    budget: Optional[Decimal] = Field(
        default=None, ge=0, max_digits=14, decimal_places=2
    )

    check_budget = field_validator("budget")(_finite)
    check_name = field_validator("name")(_not_blank)


class TokenRequest(BaseModel):
    api_key: str = Field(..., min_length=1)
    user_id: int = Field(default=1, ge=1)


class QuestionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    question: str = Field(..., min_length=1, max_length=1000)
