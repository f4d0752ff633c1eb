"""Mini README: Helpers for building and checking expense splits.

Structure:
    * split_equally - divide an amount into cent-exact equal shares.
    * validate_splits - enforce the split invariants before a write.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal
from typing import Iterable, List, Sequence

from ..errors import ValidationError
from .models import CENT, SplitRequest, to_amount


def split_equally(amount: object, user_ids: Sequence[str]) -> List[SplitRequest]:
    """Share ``amount`` across users, handing leftover cents to the earliest users."""

    if not user_ids:
        raise ValidationError("At least one user is required to split an expense")
    total = to_amount(amount).quantize(CENT)
    if total <= 0:
        raise ValidationError("Amount must be greater than zero")

    count = len(user_ids)
    base_share = (total / count).quantize(CENT, rounding=ROUND_DOWN)
    leftover_cents = int((total - base_share * count) / CENT)
    shares = []
    for index, user_id in enumerate(user_ids):
        share = base_share + (CENT if index < leftover_cents else Decimal("0"))
        shares.append(SplitRequest(user_id=str(user_id), amount=share))
    return shares


def validate_splits(
    amount: Decimal,
    splits: Iterable[SplitRequest],
    *,
    tolerance: Decimal = Decimal("0.01"),
) -> List[SplitRequest]:
    """Return the splits as a list or raise ``ValidationError`` on any violation."""

    split_list = list(splits)
    if not split_list:
        raise ValidationError("An expense needs at least one split")

    seen = set()
    for split in split_list:
        if split.user_id in seen:
            raise ValidationError(f"User {split.user_id} appears more than once in the splits")
        seen.add(split.user_id)
        if split.amount < 0:
            raise ValidationError(f"Split amount for user {split.user_id} cannot be negative")
        if split.percentage is not None and not Decimal("0") <= split.percentage <= Decimal("100"):
            raise ValidationError(f"Split percentage for user {split.user_id} must be between 0 and 100")

    split_total = sum((split.amount for split in split_list), Decimal("0"))
    if abs(split_total - amount) > tolerance:
        raise ValidationError(
            f"Sum of splits ({split_total:.2f}) must equal the expense amount ({amount:.2f})"
        )
    return split_list
