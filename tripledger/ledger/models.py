"""Mini README: Plain records returned by the ledger and directory stores.

Structure:
    * MemberRole - organizer versus regular member.
    * User, Trip, TripMember - directory records.
    * SplitRequest - one requested share when recording an expense.
    * ExpenseSplit, Expense - persisted ledger records.
    * SettlementPayment - a recorded real-world payment between two members.

Records are detached from the ORM session so they can be handed to the
event bus or serialised after the transaction closes. ``as_dict`` renders
amounts as floats and dates as ISO strings, matching the JSON API.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Dict, List, Optional

from ..errors import ValidationError

AMOUNT_QUANTUM = Decimal("0.0001")
CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("9999999999.9999")


def to_amount(value: object, *, field_name: str = "amount", limit: Optional[Decimal] = MAX_AMOUNT) -> Decimal:
    """Coerce numbers or numeric strings into a four-place decimal."""

    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        # Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
        amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as error:
        raise ValidationError(f"{field_name} must be a number, got {value!r}") from error
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be finite")
    # Stored as Numeric(14, 4).
    if limit is not None and abs(amount) > limit:
        raise ValidationError(f"{field_name} must not exceed {limit}")
    try:
        return amount.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)
    except InvalidOperation as error:
        raise ValidationError(f"{field_name} must be a number, got {value!r}") from error


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _iso(value: Optional[object]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class MemberRole(str, Enum):
    """Enumerate the supported trip roles."""

    ORGANIZER = "organizer"
    MEMBER = "member"

    @classmethod
    def from_str(cls, value: str) -> "MemberRole":
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError) as error:
            raise ValidationError(f"Unsupported member role: {value}") from error


@dataclass(slots=True)
class User:
    user_id: str
    name: str
    email: Optional[str] = None

    def as_dict(self) -> Dict[str, object]:
        return {"id": self.user_id, "name": self.name, "email": self.email}


@dataclass(slots=True)
class Trip:
    trip_id: str
    name: str
    organizer_id: str
    destination: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.trip_id,
            "name": self.name,
            "destination": self.destination,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "organizer_id": self.organizer_id,
        }


@dataclass(slots=True)
class TripMember:
    trip_id: str
    user_id: str
    name: str
    role: MemberRole
    can_edit: bool

    def as_dict(self) -> Dict[str, object]:
        return {
            "trip_id": self.trip_id,
            "user_id": self.user_id,
            "name": self.name,
            "role": self.role.value,
            "can_edit": self.can_edit,
        }


@dataclass(slots=True)
class SplitRequest:
    """A requested share of an expense before it is persisted."""

    user_id: str
    amount: Decimal
    percentage: Optional[Decimal] = None

    @classmethod
    def build(cls, user_id: str, amount: object, percentage: object = None) -> "SplitRequest":
        return cls(
            user_id=str(user_id),
            amount=to_amount(amount, field_name="split amount"),
            percentage=None if percentage is None else to_amount(percentage, field_name="percentage"),
        )


@dataclass(slots=True)
class ExpenseSplit:
    split_id: str
    expense_id: str
    user_id: str
    amount: Decimal
    percentage: Optional[Decimal] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.split_id,
            "expense_id": self.expense_id,
            "user_id": self.user_id,
            "amount": float(self.amount),
            "percentage": None if self.percentage is None else float(self.percentage),
        }


@dataclass(slots=True)
class Expense:
    expense_id: str
    trip_id: str
    description: str
    amount: Decimal
    currency: str
    payer_id: str
    spent_on: date
    created_at: datetime
    splits: List[ExpenseSplit] = field(default_factory=list)

    @property
    def split_total(self) -> Decimal:
        return sum((split.amount for split in self.splits), Decimal("0"))

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.expense_id,
            "trip_id": self.trip_id,
            "description": self.description,
            "amount": float(self.amount),
            "currency": self.currency,
            "payer_id": self.payer_id,
            "date": self.spent_on.isoformat(),
            "created_at": self.created_at.isoformat(),
            "splits": [split.as_dict() for split in self.splits],
        }


@dataclass(slots=True)
class SettlementPayment:
    payment_id: str
    trip_id: str
    from_user_id: str
    to_user_id: str
    amount: Decimal
    currency: str
    recorded_at: datetime

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.payment_id,
            "trip_id": self.trip_id,
            "from_user_id": self.from_user_id,
            "to_user_id": self.to_user_id,
            "amount": float(self.amount),
            "currency": self.currency,
            "recorded_at": self.recorded_at.isoformat(),
        }
