"""Mini README: FastAPI service exposing the ledger and trip channels.

Structure:
    * create_application - application factory wiring stores, routes, and handlers.
    * /api/... routes - directory, expenses, balances, settlement, payments.
    * /ws - WebSocket bridge joining clients to per-trip event channels.

Handlers are synchronous so blocking database work runs on FastAPI's thread
pool. Ledger errors are rendered as ``{"error": {"code", "message"}}`` with
their HTTP status; unexpected failures become ``internal_error`` and only
reveal the exception text outside production.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, Optional

from fastapi import FastAPI, Header, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..balances import BalanceAggregator, net_balances
from ..configuration import TripLedgerSettings, get_settings
from ..errors import TripLedgerError, ValidationError
from ..events import EventBus, Subscription, TripEvent
from ..ledger import LedgerStore, MemberRole, SplitRequest, TripDirectory
from ..logging_utils import configure_root_logger, get_logger, level_for_environment
from ..settlement import SettlementSimplifier
from ..storage import LedgerDatabase
from .schemas import ExpenseIn, MemberIn, PaymentIn, TripIn, UserIn

LOGGER = get_logger(__name__)


def _describe_validation(error: RequestValidationError) -> str:
    parts = []
    for issue in error.errors():
        location = ".".join(str(item) for item in issue.get("loc", ()) if item != "body")
        parts.append(f"{location or 'body'}: {issue.get('msg', 'invalid value')}")
    return "; ".join(parts) or "Invalid request"


def create_application(settings: Optional[TripLedgerSettings] = None) -> FastAPI:
    """Create the FastAPI application with routes and dependencies."""

    settings = settings or get_settings()
    configure_root_logger(level_for_environment(settings.environment))

    app = FastAPI(title="Trip Ledger", version="0.1.0")

    database = LedgerDatabase(settings.database_url)
    database.create_schema()
    event_bus = EventBus()
    directory = TripDirectory(database, event_bus)
    store = LedgerStore(database, event_bus, split_tolerance=settings.split_tolerance)
    aggregator = BalanceAggregator(store, directory)
    simplifier = SettlementSimplifier(settings.settlement_epsilon)

    app.state.settings = settings
    app.state.database = database
    app.state.event_bus = event_bus
    app.state.directory = directory
    app.state.store = store

    @app.exception_handler(TripLedgerError)
    async def ledger_error(request: Request, error: TripLedgerError) -> JSONResponse:
        return JSONResponse(status_code=error.status_code, content=error.as_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, error: RequestValidationError) -> JSONResponse:
        message = _describe_validation(error)
        LOGGER.warning("Rejected %s %s: %s", request.method, request.url.path, message)
        return JSONResponse(status_code=400, content=ValidationError(message).as_dict())

    @app.exception_handler(Exception)
    async def internal_error(request: Request, error: Exception) -> JSONResponse:
        LOGGER.exception("Unhandled error for %s %s", request.method, request.url.path)
        message = str(error) if settings.show_internal_errors else "An unexpected error occurred"
        return JSONResponse(status_code=500, content={"error": {"code": "internal_error", "message": message}})

    @app.get("/healthz")
    def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    # -- directory -----------------------------------------------------------

    @app.post("/api/users")
    def create_user(body: UserIn) -> Dict[str, Any]:
        return directory.create_user(body.name, body.email).as_dict()

    @app.get("/api/users/{user_id}")
    def get_user(user_id: str) -> Dict[str, Any]:
        return directory.get_user(user_id).as_dict()

    @app.post("/api/trips")
    def create_trip(body: TripIn) -> Dict[str, Any]:
        trip = directory.create_trip(
            body.name,
            body.organizer_id,
            destination=body.destination,
            start_date=body.start_date,
            end_date=body.end_date,
        )
        return trip.as_dict()

    @app.get("/api/trips/{trip_id}")
    def get_trip(trip_id: str) -> Dict[str, Any]:
        return directory.get_trip(trip_id).as_dict()

    @app.post("/api/trips/{trip_id}/members")
    def add_member(trip_id: str, body: MemberIn) -> Dict[str, Any]:
        member = directory.add_member(
            trip_id, body.user_id, role=MemberRole.from_str(body.role), can_edit=body.can_edit
        )
        return member.as_dict()

    @app.get("/api/trips/{trip_id}/members")
    def list_members(trip_id: str) -> list:
        return [member.as_dict() for member in directory.list_members(trip_id)]

    # -- ledger ----------------------------------------------------------------

    @app.post("/api/trips/{trip_id}/expenses")
    def record_expense(
        trip_id: str,
        body: ExpenseIn,
        idempotency_key: Optional[str] = Header(None),
    ) -> Dict[str, Any]:
        splits = [SplitRequest.build(split.user_id, split.amount, split.percentage) for split in body.splits]
        expense = store.record_expense(
            trip_id,
            body.description,
            body.amount,
            body.currency,
            body.payer_id,
            body.spent_on,
            splits,
            idempotency_key=idempotency_key,
        )
        return expense.as_dict()

    @app.get("/api/trips/{trip_id}/expenses")
    def list_expenses(trip_id: str) -> list:
        return [expense.as_dict() for expense in store.list_expenses(trip_id)]

    @app.get("/api/trips/{trip_id}/expenses/{expense_id}")
    def get_expense(trip_id: str, expense_id: str) -> Dict[str, Any]:
        return store.get_expense(trip_id, expense_id).as_dict()

    @app.get("/api/trips/{trip_id}/balances")
    def balances(trip_id: str) -> Dict[str, Any]:
        return aggregator.snapshot(trip_id)

    @app.get("/api/trips/{trip_id}/balances/{user_id}")
    def user_balance(trip_id: str, user_id: str) -> Dict[str, Any]:
        balance = aggregator.balance_for(trip_id, user_id)
        return {"userId": user_id, **balance.as_dict()}

    @app.get("/api/trips/{trip_id}/settlement")
    def settlement(trip_id: str) -> Dict[str, Any]:
        return simplifier.plan(net_balances(aggregator.compute(trip_id)))

    @app.post("/api/trips/{trip_id}/settlements")
    def record_payment(trip_id: str, body: PaymentIn) -> Dict[str, Any]:
        payment = store.record_payment(trip_id, body.from_user_id, body.to_user_id, body.amount, body.currency)
        return payment.as_dict()

    @app.get("/api/trips/{trip_id}/settlements")
    def list_payments(trip_id: str) -> list:
        return [payment.as_dict() for payment in store.list_payments(trip_id)]

    # -- trip channels ----------------------------------------------------------

    @app.websocket("/ws")
    async def trip_channels(websocket: WebSocket) -> None:
        """Join/leave trip channels and push their events to this client."""

        await websocket.accept()
        loop = asyncio.get_running_loop()
        outbox: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
        subscriptions: Dict[str, Subscription] = {}

        def forward(event: TripEvent) -> None:
            # Publishers run on worker threads; hop onto this connection's loop.
            loop.call_soon_threadsafe(outbox.put_nowait, event.as_message())

        async def pump() -> None:
            while True:
                message = await outbox.get()
                await websocket.send_json(message)

        async def join(trip_id: str) -> Dict[str, Any]:
            try:
                await run_in_threadpool(directory.get_trip, trip_id)
            except TripLedgerError as error:
                return {"event": "error", "trip_id": trip_id, **error.as_dict()}
            if trip_id not in subscriptions:
                subscriptions[trip_id] = event_bus.subscribe(trip_id, forward)
            return {"event": "joined", "trip_id": trip_id}

        def leave(trip_id: str) -> Dict[str, Any]:
            subscription = subscriptions.pop(trip_id, None)
            if subscription is not None:
                event_bus.unsubscribe(subscription)
            return {"event": "left", "trip_id": trip_id}

        sender = asyncio.create_task(pump())
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                except ValueError:
                    message = None
                if not isinstance(message, dict):
                    outbox.put_nowait({"event": "error", "error": {"code": "validation_error", "message": "Messages must be JSON objects"}})
                    continue
                action = message.get("action")
                trip_id = str(message.get("trip_id") or "")
                if action == "join" and trip_id:
                    outbox.put_nowait(await join(trip_id))
                elif action == "leave" and trip_id:
                    outbox.put_nowait(leave(trip_id))
                else:
                    outbox.put_nowait(
                        {
                            "event": "error",
                            "trip_id": trip_id or None,
                            "error": {"code": "validation_error", "message": f"Unsupported action {action!r}"},
                        }
                    )
        except WebSocketDisconnect:
            LOGGER.debug("Channel client disconnected from %s trips", len(subscriptions))
        finally:
            for trip_id in list(subscriptions):
                leave(trip_id)
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except Exception:
                LOGGER.exception("Channel sender stopped with an error")

    LOGGER.info("Trip ledger application created (environment=%s)", settings.environment)
    return app
