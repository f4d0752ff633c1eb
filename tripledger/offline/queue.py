"""Mini README: Durable client-side FIFO of mutations awaiting the server.

Structure:
    * ActionState - Created -> Attempting -> Applied | Failed-Retryable | Failed-Terminal.
    * DrainTrigger - events that start a drain (reconnect, foreground, manual retry).
    * QueuedAction - one pending mutation plus its idempotency key.
    * SubmitResult / DrainReport - outcomes handed back to the caller.
    * OfflineActionQueue - persistence, submission, cancellation, and draining.

Ordering rules:
    Actions leave the queue strictly in the order they entered it, one at a
    time. A network failure halts the drain with the action still at the
    head, so a later action can never overtake it. A direct submission made
    while older actions are pending is queued behind them instead of sent.
    Error responses are terminal: the action is reported and dropped.

The queue file is rewritten atomically after every change so a crash
leaves either the old or the new list on disk, never a torn file.
"""

from __future__ import annotations

import json
import os
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..errors import ApiError, NetworkError, TripLedgerError
from ..logging_utils import get_logger
from .transport import Transport

LOGGER = get_logger(__name__)


class ActionState(str, Enum):
    CREATED = "created"
    ATTEMPTING = "attempting"
    APPLIED = "applied"
    FAILED_RETRYABLE = "failed-retryable"
    FAILED_TERMINAL = "failed-terminal"


class DrainTrigger(str, Enum):
    CONNECTIVITY_RESTORED = "connectivity-restored"
    FOREGROUND = "foreground"
    MANUAL = "manual"


class QueueStateError(TripLedgerError):
    """Raised when an action cannot change state, e.g. cancelling one in flight."""

    code = "queue_state"


@dataclass(slots=True)
class QueuedAction:
    action_id: str
    method: str
    target: str
    payload: Dict[str, Any]
    enqueued_at: datetime
    idempotency_key: str
    state: ActionState = ActionState.CREATED
    attempts: int = 0
    last_error: Optional[str] = None

    @classmethod
    def create(cls, method: str, target: str, payload: Optional[Mapping[str, Any]] = None) -> "QueuedAction":
        return cls(
            action_id=uuid.uuid4().hex,
            method=method.upper(),
            target=target,
            payload=dict(payload or {}),
            enqueued_at=datetime.now(timezone.utc),
            idempotency_key=str(uuid.uuid4()),
        )

    def as_record(self) -> Dict[str, Any]:
        """Persisted shape; the attempt count stands in for the state."""

        return {
            "id": self.action_id,
            "method": self.method,
            "target": self.target,
            "payload": self.payload,
            "enqueuedAt": self.enqueued_at.isoformat(),
            "idempotencyKey": self.idempotency_key,
            "attempts": self.attempts,
            "lastError": self.last_error,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "QueuedAction":
        """Rebuild a pending action; anything already attempted reloads as retryable."""

        try:
            attempts = int(record.get("attempts") or 0)
            return cls(
                action_id=str(record["id"]),
                method=str(record["method"]).upper(),
                target=str(record["target"]),
                payload=dict(record.get("payload") or {}),
                enqueued_at=datetime.fromisoformat(record["enqueuedAt"]),
                idempotency_key=str(record.get("idempotencyKey") or uuid.uuid4()),
                state=ActionState.FAILED_RETRYABLE if attempts else ActionState.CREATED,
                attempts=attempts,
                last_error=record.get("lastError"),
            )
        except (KeyError, TypeError, ValueError) as error:
            raise ValueError(f"Malformed queued action record: {record!r}") from error


@dataclass(slots=True)
class SubmitResult:
    queued: bool
    action: QueuedAction
    response: Any = None

    @property
    def message(self) -> str:
        return "Action queued for sync" if self.queued else "Action applied"


@dataclass(slots=True)
class DrainReport:
    trigger: DrainTrigger
    applied: List[QueuedAction] = field(default_factory=list)
    failed: List[Tuple[QueuedAction, ApiError]] = field(default_factory=list)
    halted_on: Optional[QueuedAction] = None
    skipped: bool = False

    @property
    def complete(self) -> bool:
        return not self.skipped and self.halted_on is None


AppliedCallback = Callable[[QueuedAction, Any], None]
FailureCallback = Callable[[QueuedAction, ApiError], None]


class OfflineActionQueue:
    """Queue mutations while offline and replay them in order later."""

    def __init__(
        self,
        transport: Transport,
        path: Path,
        *,
        online: bool = True,
        on_applied: Optional[AppliedCallback] = None,
        on_terminal_failure: Optional[FailureCallback] = None,
    ) -> None:
        self._transport = transport
        self._path = Path(path)
        self._online = online
        self._on_applied = on_applied
        self._on_terminal_failure = on_terminal_failure
        self._state_lock = threading.RLock()
        self._drain_lock = threading.Lock()
        self._actions: List[QueuedAction] = self._load()
        LOGGER.debug("Offline queue loaded %s pending actions from %s", len(self._actions), self._path)

    # -- persistence -----------------------------------------------------

    def _load(self) -> List[QueuedAction]:
        if not self._path.exists():
            return []
        raw = json.loads(self._path.read_text(encoding="utf-8") or "[]")
        if not isinstance(raw, list):
            raise ValueError(f"Queue file {self._path} must hold a JSON list")
        return [QueuedAction.from_record(record) for record in raw]

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_name(self._path.name + ".tmp")
        records = [action.as_record() for action in self._actions]
        temp_path.write_text(json.dumps(records, indent=2), encoding="utf-8")
        os.replace(temp_path, self._path)

    # -- inspection ------------------------------------------------------

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def pending(self) -> List[QueuedAction]:
        with self._state_lock:
            return list(self._actions)

    def __len__(self) -> int:
        with self._state_lock:
            return len(self._actions)

    # -- mutation entry points ------------------------------------------

    def enqueue(self, method: str, target: str, payload: Optional[Mapping[str, Any]] = None) -> QueuedAction:
        return self._append(QueuedAction.create(method, target, payload))

    def _append(self, action: QueuedAction, state: ActionState = ActionState.CREATED) -> QueuedAction:
        action.state = state
        with self._state_lock:
            self._actions.append(action)
            self._persist()
        LOGGER.info("Queued %s %s as action %s", action.method, action.target, action.action_id)
        return action

    def submit(self, method: str, target: str, payload: Optional[Mapping[str, Any]] = None) -> SubmitResult:
        """Try a mutation now, falling back to the queue when unreachable.

        Error responses propagate as ``ApiError`` so the caller can show
        them; only network failures are absorbed into the queue.
        """

        action = QueuedAction.create(method, target, payload)
        with self._state_lock:
            must_queue = not self._online or bool(self._actions)
        if must_queue:
            return SubmitResult(queued=True, action=self._append(action))

        action.state = ActionState.ATTEMPTING
        action.attempts += 1
        try:
            response = self._send(action)
        except NetworkError as error:
            # The request may have reached the server, so it is no longer cancellable.
            action.last_error = str(error)
            return SubmitResult(queued=True, action=self._append(action, ActionState.FAILED_RETRYABLE))
        except ApiError:
            action.state = ActionState.FAILED_TERMINAL
            raise
        action.state = ActionState.APPLIED
        return SubmitResult(queued=False, action=action, response=response)

    def cancel(self, action_id: str) -> QueuedAction:
        """Remove an action the user no longer wants; only untouched actions qualify."""

        with self._state_lock:
            for index, action in enumerate(self._actions):
                if action.action_id != action_id:
                    continue
                if action.state is not ActionState.CREATED:
                    raise QueueStateError(
                        f"Action {action_id} is {action.state.value} and can no longer be cancelled"
                    )
                del self._actions[index]
                self._persist()
                LOGGER.info("Cancelled queued action %s", action_id)
                return action
        raise KeyError(f"Action {action_id} is not queued")

    # -- triggers ----------------------------------------------------------

    def set_online(self, online: bool) -> Optional[DrainReport]:
        """Record connectivity; regaining it drains the queue."""

        was_online = self._online
        self._online = online
        if online and not was_online:
            LOGGER.info("Connectivity restored with %s pending actions", len(self))
            return self.drain(DrainTrigger.CONNECTIVITY_RESTORED)
        if not online and was_online:
            LOGGER.info("Connectivity lost; new mutations will be queued")
        return None

    def on_foreground(self) -> DrainReport:
        return self.drain(DrainTrigger.FOREGROUND)

    def retry(self) -> DrainReport:
        return self.drain(DrainTrigger.MANUAL)

    def drain(self, trigger: DrainTrigger = DrainTrigger.MANUAL) -> DrainReport:
        """Replay queued actions head first until empty or a network failure."""

        report = DrainReport(trigger=trigger)
        if not self._drain_lock.acquire(blocking=False):
            LOGGER.debug("Drain (%s) skipped; another drain is running", trigger.value)
            report.skipped = True
            return report
        try:
            self._drain_into(report)
        finally:
            self._drain_lock.release()
        LOGGER.info(
            "Drain (%s) finished: %s applied, %s failed, %s pending",
            trigger.value,
            len(report.applied),
            len(report.failed),
            len(self),
        )
        return report

    def _drain_into(self, report: DrainReport) -> None:
        while True:
            with self._state_lock:
                if not self._actions:
                    return
                action = self._actions[0]
                action.state = ActionState.ATTEMPTING
                action.attempts += 1

            try:
                response = self._send(action)
            except NetworkError as error:
                with self._state_lock:
                    action.state = ActionState.FAILED_RETRYABLE
                    action.last_error = str(error)
                    self._persist()
                LOGGER.warning("Action %s will be retried later: %s", action.action_id, error)
                report.halted_on = action
                return
            except ApiError as error:
                with self._state_lock:
                    action.state = ActionState.FAILED_TERMINAL
                    action.last_error = error.message
                    self._remove_head(action)
                LOGGER.warning("Action %s rejected by server and dropped: %s", action.action_id, error.message)
                report.failed.append((action, error))
                if self._on_terminal_failure is not None:
                    self._on_terminal_failure(action, error)
                continue

            with self._state_lock:
                action.state = ActionState.APPLIED
                self._remove_head(action)
            report.applied.append(action)
            if self._on_applied is not None:
                self._on_applied(action, response)

    def _remove_head(self, action: QueuedAction) -> None:
        if self._actions and self._actions[0] is action:
            self._actions.pop(0)
        self._persist()

    def _send(self, action: QueuedAction) -> Any:
        LOGGER.debug("Sending action %s (%s %s, attempt %s)", action.action_id, action.method, action.target, action.attempts)
        return self._transport.send(
            action.method,
            action.target,
            action.payload,
            idempotency_key=action.idempotency_key,
        )
