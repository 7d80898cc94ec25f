"""Append-only log of completed workouts.

The log is stored as one JSON array under ``LOG_KEY``. Three shapes have been
written over time and are all still readable, tried newest first:

1. current  — ``{"id", "completedAt", "workoutType", "notes"}``
2. typed    — ``{"completedAt", "workoutType": <any string>, "notes"?}``
3. original — ``{"completedAt"}``

A blob matches a shape only if every element matches it exactly. Older shapes
are migrated (unknown types become Norwegian 4x4, notes are trimmed) and
written back in the current shape straight away.
"""

from datetime import datetime
from uuid import UUID, uuid4

from loguru import logger
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from n4x4.models.workout import WorkoutLogEntry, WorkoutType
from n4x4.services import KeyValueStore

LOG_KEY = "workoutLogEntriesData"


class CorruptLogError(ValueError):
    """Raised when a stored blob matches none of the known shapes."""


class _TypedEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    id: UUID | None = None
    completed_at: datetime
    workout_type: str
    notes: str | None = None

    def migrate(self) -> WorkoutLogEntry:
        return WorkoutLogEntry(
            id=self.id or uuid4(),
            completed_at=self.completed_at,
            workout_type=WorkoutType.from_legacy(self.workout_type),
            notes=self.notes or "",
        )


class _TimestampEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    completed_at: datetime

    def migrate(self) -> WorkoutLogEntry:
        return WorkoutLogEntry.create(completed_at=self.completed_at)


_CURRENT = TypeAdapter(list[WorkoutLogEntry])
_LEGACY_SHAPES: tuple[TypeAdapter, ...] = (  # type: ignore[type-arg]
    TypeAdapter(list[_TypedEntry]),
    TypeAdapter(list[_TimestampEntry]),
)


def decode_log(raw: str | bytes) -> tuple[list[WorkoutLogEntry], bool]:
    """Parse a stored blob.

    Returns:
        ``(entries, migrated)`` where ``migrated`` is True when the blob was
        in a legacy shape and should be written back.

    Raises:
        CorruptLogError: Not JSON, or no shape matches.
    """
    try:
        return _CURRENT.validate_json(raw), False
    except ValidationError:
        pass

    for adapter in _LEGACY_SHAPES:
        try:
            legacy = adapter.validate_json(raw)
        except ValidationError:
            continue
        return [entry.migrate() for entry in legacy], True

    raise CorruptLogError(f"Unrecognised workout log blob ({len(raw)} bytes)")


def encode_log(entries: list[WorkoutLogEntry]) -> str:
    return _CURRENT.dump_json(entries, by_alias=True).decode()


class WorkoutLog:
    """Newest-first list of completed workouts, persisted on every append."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._entries: list[WorkoutLogEntry] = []

    @classmethod
    def load(cls, store: KeyValueStore) -> "WorkoutLog":
        log = cls(store)
        log.reload()
        return log

    def reload(self) -> None:
        """Re-read the stored blob. A corrupt blob yields an empty log."""
        raw = self._store.get(LOG_KEY)
        if raw is None:
            self._entries = []
            return

        try:
            entries, migrated = decode_log(raw)
        except CorruptLogError as exc:
            logger.warning(f"Discarding unreadable workout log: {exc}")
            self._entries = []
            return

        self._entries = entries
        if migrated:
            logger.info(f"Migrated {len(entries)} workout log entries to the current schema")
            self._persist()

    @property
    def entries(self) -> tuple[WorkoutLogEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, entry: WorkoutLogEntry) -> None:
        self._entries.insert(0, entry)
        self._persist()

    def _persist(self) -> None:
        try:
            self._store.set(LOG_KEY, encode_log(self._entries))
        except Exception:
            logger.exception("Failed to persist workout log; keeping it in memory")
