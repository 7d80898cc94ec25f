"""Collaborator contracts and the local implementations used by the CLI.

The engine never talks to a platform directly. It calls these protocols:

* ``NotificationService`` — deliver/cancel notifications, report permission.
* ``HealthDataService``   — write workout summaries, read trend samples.
* ``KeyValueStore``       — settings scalars and the workout-log blob.
* ``AlarmPlayer``         — fire-and-forget alarm sound.
"""

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Protocol

from loguru import logger
from pydantic import BaseModel
from rich.table import Table

from n4x4.models.intents import NotificationId, ScheduleIntent
from n4x4.models.workout import PermissionState, WorkoutType


class TrendSample(BaseModel):
    """One health metric reading (e.g. a VO₂ max estimate)."""

    timestamp: datetime
    value: float


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class NotificationService(Protocol):
    def schedule(self, intent: ScheduleIntent) -> None: ...

    def cancel(self, notification_id: NotificationId) -> None: ...

    def query_permission(self) -> PermissionState: ...

    def request_permission(self) -> PermissionState: ...


class HealthDataService(Protocol):
    def request_authorization(self, read_types: list[str], write_types: list[str]) -> bool: ...

    def query_trend_samples(self, metric: str, limit: int) -> list[TrendSample]: ...

    def write_workout(
        self, workout_type: WorkoutType, start: datetime, end: datetime
    ) -> bool: ...


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class AlarmPlayer(Protocol):
    def play(self, sound_id: str) -> None: ...


# ---------------------------------------------------------------------------
# Key-value stores
# ---------------------------------------------------------------------------


class MemoryStore:
    """In-process store, handy for tests and dry runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileStore:
    """All keys kept in one JSON object on disk, rewritten on every ``set``.

    A missing or unreadable file starts an empty store; the next write
    replaces it.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._data: dict[str, str] = {}
        if path.exists():
            try:
                loaded = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning(f"Could not read {path}, starting empty: {exc}")
            else:
                if isinstance(loaded, dict):
                    self._data = {str(k): str(v) for k, v in loaded.items()}

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self._path)


# ---------------------------------------------------------------------------
# Terminal collaborators
# ---------------------------------------------------------------------------


class ConsoleNotificationService:
    """Tracks pending notifications and renders them as a rich table.

    There is no permission prompt in a terminal, so permission is always
    granted unless constructed otherwise.
    """

    def __init__(self, permission: PermissionState = PermissionState.GRANTED) -> None:
        self._permission = permission
        self.pending: dict[NotificationId, ScheduleIntent] = {}

    def schedule(self, intent: ScheduleIntent) -> None:
        self.pending[intent.id] = intent
        logger.debug(f"Scheduled {intent.id.value}: {intent.body}")

    def cancel(self, notification_id: NotificationId) -> None:
        self.pending.pop(notification_id, None)

    def query_permission(self) -> PermissionState:
        return self._permission

    def request_permission(self) -> PermissionState:
        return self._permission

    def pending_table(self) -> Table:
        table = Table(title="Pending notifications")
        table.add_column("ID", style="dim")
        table.add_column("Title", style="bold")
        table.add_column("Trigger")
        table.add_column("Repeats", justify="center")
        for intent in self.pending.values():
            if intent.calendar_match is not None:
                trigger = intent.calendar_match.model_dump_json(exclude_none=True)
            else:
                trigger = f"in {intent.fire_after_seconds:.0f}s"
            table.add_row(intent.id.value, intent.title, trigger, "✓" if intent.repeats else "")
        return table


class TerminalBell:
    """Rings the terminal bell; there is only one alarm sound."""

    def play(self, sound_id: str) -> None:
        sys.stdout.write("\a")
        sys.stdout.flush()
