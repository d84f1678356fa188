# src/aclio/offline_queue.py

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from .core.ports import KVStore
from .goals.models import Goal

logger = logging.getLogger(__name__)

QUEUE_KEY = "aclio_offline_queue"
DEFAULT_MAX_RETRIES = 3


class OfflineOperationType(StrEnum):
    CREATE_GOAL = "create_goal"
    UPDATE_GOAL = "update_goal"
    DELETE_GOAL = "delete_goal"
    TOGGLE_STEP = "toggle_step"
    EXTEND_GOAL = "extend_goal"


@dataclass(slots=True)
class OfflineOperation:
    type: OfflineOperationType
    payload: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    retry_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "payload": self.payload,
            "createdAt": self.created_at.isoformat(),
            "retryCount": self.retry_count,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> OfflineOperation:
        created_raw = raw.get("createdAt")
        try:
            created = datetime.fromisoformat(str(created_raw)) if created_raw else datetime.now(timezone.utc)
        except ValueError:
            created = datetime.now(timezone.utc)
        return cls(
            id=str(raw.get("id") or uuid.uuid4()),
            type=OfflineOperationType(raw["type"]),
            payload=dict(raw.get("payload") or {}),
            created_at=created,
            retry_count=int(raw.get("retryCount") or 0),
        )


OperationExecutor = Callable[[OfflineOperation], Awaitable[None]]


async def local_executor(op: OfflineOperation) -> None:
    """Operations are already applied to local storage; nothing to sync yet."""
    logger.debug("Offline op %s (%s) has no remote sync target.", op.id, op.type.value)


class OfflineQueueService:
    """
    Persistent FIFO of operations made while offline.

    process_queue() runs every pending operation once, in order. Successful
    operations leave the queue; failed ones stay with retry_count + 1 until they
    hit max_retries, then they are dropped with a warning.
    """

    def __init__(
            self,
            store: KVStore,
            executor: OperationExecutor | None = None,
            *,
            is_connected: bool = True,
            max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        self.store = store
        self.executor: OperationExecutor = executor or local_executor
        self.max_retries = max(1, int(max_retries))
        self.is_processing = False
        self._connected = bool(is_connected)
        self._tasks: set[asyncio.Task] = set()
        self.pending_operations: list[OfflineOperation] = self._load_queue()

    # ---- connectivity ----

    def is_connected(self) -> bool:
        return self._connected

    async def set_connected(self, connected: bool) -> None:
        was_connected = self._connected
        self._connected = bool(connected)
        if connected and not was_connected:
            logger.info("Connectivity restored; processing %d queued operation(s).", self.pending_count)
            await self.process_queue()

    # ---- enqueue ----

    def enqueue(self, op: OfflineOperation) -> None:
        self.pending_operations.append(op)
        self._save_queue()
        logger.debug("Queued offline op %s (%s).", op.id, op.type.value)

        if self._connected:
            self._schedule_processing()

    def enqueue_toggle_step(self, goal_id: int, step_id: int) -> None:
        self.enqueue(OfflineOperation(OfflineOperationType.TOGGLE_STEP, {"goalId": goal_id, "stepId": step_id}))

    def enqueue_goal_create(self, goal: Goal) -> None:
        self.enqueue(OfflineOperation(OfflineOperationType.CREATE_GOAL, goal.to_dict()))

    def enqueue_goal_update(self, goal: Goal) -> None:
        self.enqueue(OfflineOperation(OfflineOperationType.UPDATE_GOAL, goal.to_dict()))

    def enqueue_goal_delete(self, goal_id: int) -> None:
        self.enqueue(OfflineOperation(OfflineOperationType.DELETE_GOAL, {"goalId": goal_id}))

    def enqueue_goal_extend(self, goal: Goal) -> None:
        self.enqueue(OfflineOperation(OfflineOperationType.EXTEND_GOAL, goal.to_dict()))

    def _schedule_processing(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # picked up by the next explicit process_queue()
        task = loop.create_task(self.process_queue())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ---- processing ----

    async def process_queue(self) -> None:
        if self.is_processing or not self._connected or not self.pending_operations:
            return

        self.is_processing = True
        try:
            batch = list(self.pending_operations)
            remaining: list[OfflineOperation] = []

            for op in batch:
                try:
                    await self.executor(op)
                except Exception as e:
                    op.retry_count += 1
                    if op.retry_count < self.max_retries:
                        logger.info("Offline op %s failed (%s); retry %d/%d later.",
                                    op.id, e, op.retry_count, self.max_retries)
                        remaining.append(op)
                    else:
                        logger.warning("Discarding offline op %s (%s) after %d retries.",
                                       op.id, op.type.value, self.max_retries)

            # Keep anything enqueued while the batch was running.
            processed_ids = {op.id for op in batch}
            remaining.extend(op for op in self.pending_operations if op.id not in processed_ids)
            self.pending_operations = remaining
            self._save_queue()
        finally:
            self.is_processing = False

    # ---- persistence / status ----

    def _save_queue(self) -> None:
        self.store.set(QUEUE_KEY, [op.to_dict() for op in self.pending_operations])

    def _load_queue(self) -> list[OfflineOperation]:
        raw = self.store.get(QUEUE_KEY, [])
        if not isinstance(raw, list):
            return []
        out: list[OfflineOperation] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            try:
                out.append(OfflineOperation.from_dict(item))
            except (KeyError, ValueError):
                logger.warning("Dropping undecodable offline op: %r", item.get("id"))
        return out

    def clear_queue(self) -> None:
        self.pending_operations = []
        self.store.delete(QUEUE_KEY)

    @property
    def has_pending_operations(self) -> bool:
        return bool(self.pending_operations)

    @property
    def pending_count(self) -> int:
        return len(self.pending_operations)
