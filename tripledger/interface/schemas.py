"""Mini README: Request bodies accepted by the HTTP API.

Field names follow the JSON the mobile and web clients send (camelCase),
while snake_case is accepted too so scripts can post either form. Only the
shape is checked here; ledger rules such as the split total live in the
store so every caller gets the same validation.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SplitIn(_Body):
    user_id: str = Field(..., alias="userId", min_length=1)
    amount: Decimal
    percentage: Optional[Decimal] = None


class ExpenseIn(_Body):
    description: str
    amount: Decimal = Field(..., gt=0)
    currency: str = "USD"
    payer_id: str = Field(..., alias="payerId", min_length=1)
    spent_on: str = Field(..., alias="date", description="ISO-8601 date or timestamp")
    splits: List[SplitIn]


class PaymentIn(_Body):
    from_user_id: str = Field(..., alias="fromUserId", min_length=1)
    to_user_id: str = Field(..., alias="toUserId", min_length=1)
    amount: Decimal = Field(..., gt=0)
    currency: str = "USD"


class UserIn(_Body):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None


class TripIn(_Body):
    name: str = Field(..., min_length=1)
    organizer_id: str = Field(..., alias="organizerId", min_length=1)
    destination: Optional[str] = None
    start_date: Optional[date] = Field(None, alias="startDate")
    end_date: Optional[date] = Field(None, alias="endDate")


class MemberIn(_Body):
    user_id: str = Field(..., alias="userId", min_length=1)
    role: str = "member"
    can_edit: bool = Field(False, alias="canEdit")
