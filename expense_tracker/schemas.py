"""Pydantic schemas for serialising expense tracking data."""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_serializer

Category = Literal["Food", "Transportation", "Entertainment", "Shopping", "Bills", "Other"]
PaymentType = Literal[
    "Cash",
    "Credit Card",
    "Debit Card",
    "UPI",
    "PhonePe",
    "Google Pay",
    "Paytm",
    "Bank Transfer",
    "Net Banking",
]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class ExpenseBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    date: dt.date
    category: Category
    location: str = Field("", max_length=255)
    payment_type: PaymentType = Field(..., alias="paymentType")


class ExpenseCreate(ExpenseBase):
    pass


class ExpenseRead(ExpenseBase, ORMModel):
    id: int

    @field_serializer("amount")
    def _amount_as_number(self, amount: Decimal) -> float:
        return float(amount)


class UserRead(ORMModel):
    id: int
    name: str
    email: str


NonBlankName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class RegisterRequest(BaseModel):
    name: NonBlankName
    email: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=255)]
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class GoogleAuthRequest(BaseModel):
    credential: str = Field(..., min_length=1)


class VerifyEmailRequest(BaseModel):
    email: str


class RegisterResponse(BaseModel):
    token: str
    user: UserRead


class LoginResponse(RegisterResponse):
    success: bool = True


class VerifyTokenResponse(BaseModel):
    user: UserRead


class EmailCheck(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    verified: bool
    valid_domain: bool = Field(..., alias="validDomain")
    exists: bool
    is_gmail: bool = Field(..., alias="isGmail")


class HealthRead(BaseModel):
    status: str
    timestamp: dt.datetime


class ErrorRead(BaseModel):
    error: str
    detail: Optional[str] = None
