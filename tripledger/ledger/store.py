"""Mini README: Durable, trip-scoped record of expenses and settlement payments.

Structure:
    * LedgerStore.record_expense - validate and atomically write an expense with its splits.
    * LedgerStore.list_expenses / get_expense - read expenses with splits attached.
    * LedgerStore.record_payment / list_payments - real-world settlement payments.
    * LedgerStore.split_rows / payment_rows - raw rows consumed by the balance aggregator.

Every write happens inside one database transaction, so an expense is
never visible without its splits. The event bus is notified only after
the transaction commits. Expenses carrying an idempotency key already
stored for the trip are returned as-is instead of being written twice.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, NamedTuple, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..errors import NotFoundError, ValidationError
from ..events import EventBus, EventName
from ..logging_utils import get_logger
from ..storage import LedgerDatabase
from .directory import member_ids, require_trip
from .models import Expense, ExpenseSplit, SettlementPayment, SplitRequest, to_amount
from .splits import validate_splits
from .tables import ExpenseRow, ExpenseSplitRow, SettlementPaymentRow

LOGGER = get_logger(__name__)


class SplitRow(NamedTuple):
    """One (expense, split) pair as seen by the balance aggregator."""

    payer_id: str
    user_id: str
    amount: Decimal


class PaymentRow(NamedTuple):
    from_user_id: str
    to_user_id: str
    amount: Decimal


def _expense_from_row(row: ExpenseRow) -> Expense:
    return Expense(
        expense_id=row.id,
        trip_id=row.trip_id,
        description=row.description,
        amount=to_amount(row.amount),
        currency=row.currency,
        payer_id=row.payer_id,
        spent_on=row.spent_on,
        created_at=row.created_at,
        splits=[
            ExpenseSplit(
                split_id=split.id,
                expense_id=row.id,
                user_id=split.user_id,
                amount=to_amount(split.amount),
                percentage=None if split.percentage is None else to_amount(split.percentage),
            )
            for split in row.splits
        ],
    )


def _payment_from_row(row: SettlementPaymentRow) -> SettlementPayment:
    return SettlementPayment(
        payment_id=row.id,
        trip_id=row.trip_id,
        from_user_id=row.from_user_id,
        to_user_id=row.to_user_id,
        amount=to_amount(row.amount),
        currency=row.currency,
        recorded_at=row.recorded_at,
    )


def normalise_currency(currency: str) -> str:
    code = (currency or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError(f"Currency must be a 3-letter code, got {currency!r}")
    return code


def _parse_date(value: object) -> date:
    """Accept ISO strings or date/datetime instances."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
        except ValueError as error:
            raise ValidationError(f"Date must be ISO-8601, got {value!r}") from error
    raise ValidationError("Dates must be provided as ISO strings or date/datetime instances.")


class LedgerStore:
    """Record expenses and payments for trips and read them back."""

    def __init__(
        self,
        database: LedgerDatabase,
        event_bus: Optional[EventBus] = None,
        *,
        split_tolerance: Decimal = Decimal("0.01"),
    ) -> None:
        self._database = database
        self._event_bus = event_bus
        self._split_tolerance = split_tolerance

    def record_expense(
        self,
        trip_id: str,
        description: str,
        amount: object,
        currency: str,
        payer_id: str,
        spent_on: object,
        splits: Iterable[SplitRequest],
        *,
        idempotency_key: Optional[str] = None,
    ) -> Expense:
        """Validate and persist an expense together with all of its splits."""

        expense, created = self._write_expense(
            trip_id,
            description,
            amount,
            currency,
            payer_id,
            spent_on,
            splits,
            idempotency_key=idempotency_key,
        )
        if not created:
            LOGGER.info("Replayed expense %s for idempotency key %s", expense.expense_id, idempotency_key)
            return expense

        LOGGER.info(
            "Recorded expense %s on trip %s: %s %s paid by %s across %s splits",
            expense.expense_id,
            trip_id,
            expense.amount,
            expense.currency,
            payer_id,
            len(expense.splits),
        )
        if self._event_bus is not None:
            self._event_bus.publish(trip_id, EventName.EXPENSE_ADDED, expense.as_dict())
        return expense

    def _write_expense(
        self,
        trip_id: str,
        description: str,
        amount: object,
        currency: str,
        payer_id: str,
        spent_on: object,
        splits: Iterable[SplitRequest],
        *,
        idempotency_key: Optional[str],
    ) -> Tuple[Expense, bool]:
        total = to_amount(amount)
        if total <= 0:
            raise ValidationError("Expense amount must be greater than zero")
        if not description or not description.strip():
            raise ValidationError("Expense description is required")
        currency_code = normalise_currency(currency)
        expense_date = _parse_date(spent_on)
        split_list = validate_splits(total, splits, tolerance=self._split_tolerance)

        try:
            with self._database.transaction() as session:
                require_trip(session, trip_id)
                if idempotency_key:
                    existing = self._find_by_key(session, trip_id, idempotency_key)
                    if existing is not None:
                        return _expense_from_row(existing), False

                members = set(member_ids(session, trip_id))
                outsiders = sorted({payer_id, *(split.user_id for split in split_list)} - members)
                if outsiders:
                    raise ValidationError(f"Users {', '.join(outsiders)} are not members of trip {trip_id}")

                row = ExpenseRow(
                    id=str(uuid.uuid4()),
                    trip_id=trip_id,
                    description=description.strip(),
                    amount=total,
                    currency=currency_code,
                    payer_id=payer_id,
                    spent_on=expense_date,
                    idempotency_key=idempotency_key or None,
                )
                row.splits = [
                    ExpenseSplitRow(
                        id=str(uuid.uuid4()),
                        user_id=split.user_id,
                        amount=split.amount,
                        percentage=split.percentage,
                        position=position,
                    )
                    for position, split in enumerate(split_list)
                ]
                session.add(row)
                session.flush()
                return _expense_from_row(row), True
        except IntegrityError:
            if not idempotency_key:
                raise
            # A concurrent request with the same key won the insert.
            with self._database.session() as session:
                existing = self._find_by_key(session, trip_id, idempotency_key)
                if existing is None:
                    raise
                return _expense_from_row(existing), False

    @staticmethod
    def _find_by_key(session: Session, trip_id: str, idempotency_key: str) -> Optional[ExpenseRow]:
        return session.scalar(
            select(ExpenseRow)
            .options(selectinload(ExpenseRow.splits))
            .where(ExpenseRow.trip_id == trip_id, ExpenseRow.idempotency_key == idempotency_key)
        )

    def list_expenses(self, trip_id: str) -> List[Expense]:
        """Return expenses newest first with their splits attached."""

        with self._database.session() as session:
            require_trip(session, trip_id)
            rows = session.scalars(
                select(ExpenseRow)
                .options(selectinload(ExpenseRow.splits))
                .where(ExpenseRow.trip_id == trip_id)
                .order_by(ExpenseRow.spent_on.desc(), ExpenseRow.created_at.desc(), ExpenseRow.id)
            )
            expenses = [_expense_from_row(row) for row in rows]
        LOGGER.debug("Listed %s expenses for trip %s", len(expenses), trip_id)
        return expenses

    def get_expense(self, trip_id: str, expense_id: str) -> Expense:
        with self._database.session() as session:
            row = session.scalar(
                select(ExpenseRow)
                .options(selectinload(ExpenseRow.splits))
                .where(ExpenseRow.trip_id == trip_id, ExpenseRow.id == expense_id)
            )
            if row is None:
                raise NotFoundError(f"Expense {expense_id} not found in trip {trip_id}")
            return _expense_from_row(row)

    def record_payment(
        self,
        trip_id: str,
        from_user_id: str,
        to_user_id: str,
        amount: object,
        currency: str = "USD",
    ) -> SettlementPayment:
        """Persist a real-world payment between two trip members."""

        value = to_amount(amount)
        if value <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        if from_user_id == to_user_id:
            raise ValidationError("A payment needs two different users")
        currency_code = normalise_currency(currency)

        with self._database.transaction() as session:
            require_trip(session, trip_id)
            outsiders = sorted({from_user_id, to_user_id} - set(member_ids(session, trip_id)))
            if outsiders:
                raise ValidationError(f"Users {', '.join(outsiders)} are not members of trip {trip_id}")
            row = SettlementPaymentRow(
                id=str(uuid.uuid4()),
                trip_id=trip_id,
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                amount=value,
                currency=currency_code,
            )
            session.add(row)
            session.flush()
            payment = _payment_from_row(row)

        LOGGER.info(
            "Recorded payment %s on trip %s: %s -> %s %s",
            payment.payment_id,
            trip_id,
            from_user_id,
            to_user_id,
            payment.amount,
        )
        if self._event_bus is not None:
            self._event_bus.publish(trip_id, EventName.SETTLEMENT_RECORDED, payment.as_dict())
        return payment

    def list_payments(self, trip_id: str) -> List[SettlementPayment]:
        with self._database.session() as session:
            require_trip(session, trip_id)
            rows = session.scalars(
                select(SettlementPaymentRow)
                .where(SettlementPaymentRow.trip_id == trip_id)
                .order_by(SettlementPaymentRow.recorded_at.desc(), SettlementPaymentRow.id)
            )
            return [_payment_from_row(row) for row in rows]

    def split_rows(self, trip_id: str) -> List[SplitRow]:
        """Return every (payer, split owner, amount) triple for the trip."""

        with self._database.session() as session:
            require_trip(session, trip_id)
            result = session.execute(
                select(ExpenseRow.payer_id, ExpenseSplitRow.user_id, ExpenseSplitRow.amount)
                .join(ExpenseSplitRow, ExpenseSplitRow.expense_id == ExpenseRow.id)
                .where(ExpenseRow.trip_id == trip_id)
            )
            return [SplitRow(payer, user, to_amount(amount)) for payer, user, amount in result]

    def payment_rows(self, trip_id: str) -> List[PaymentRow]:
        with self._database.session() as session:
            result = session.execute(
                select(
                    SettlementPaymentRow.from_user_id,
                    SettlementPaymentRow.to_user_id,
                    SettlementPaymentRow.amount,
                ).where(SettlementPaymentRow.trip_id == trip_id)
            )
            return [PaymentRow(sender, receiver, to_amount(amount)) for sender, receiver, amount in result]
