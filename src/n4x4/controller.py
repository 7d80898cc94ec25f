"""Glue between settings, the timer, reminders, the log and the collaborators.

Settings changes go through ``update_settings``, which clamps, saves and then
runs the follow-up work explicitly: a plan field rebuilds the plan (and
resets the timer), a reminder field reschedules reminders, turning on a
feature that needs permission asks for it.

Timer events are turned into collaborator calls here. Failures of the
notification service, health service, alarm or store are logged and never
interrupt the workout.
"""

from datetime import datetime

from loguru import logger

from n4x4.config import PLAN_FIELDS, REMINDER_FIELDS, WorkoutSettings
from n4x4.models.intents import CancelIntent, NotificationId, ScheduleIntent
from n4x4.models.workout import (
    PermissionState,
    ReminderMode,
    WorkoutLogEntry,
    WorkoutType,
)
from n4x4.permissions import Capability, PermissionGate
from n4x4.plan_builder import build_plan_from_settings
from n4x4.reminders.scheduler import ReminderDecision, decide, resolve_weekday
from n4x4.services import (
    AlarmPlayer,
    HealthDataService,
    KeyValueStore,
    NotificationService,
    TrendSample,
)
from n4x4.timer_engine import ALARM_SOUND_ID, TimerEngine, TimerEvent, TimerEventKind
from n4x4.workout_log import WorkoutLog

# Fields put back by "Reset to Defaults". Permission flags and reminders stay.
_RESETTABLE_FIELDS = (
    "number_of_intervals",
    "warmup_duration",
    "high_intensity_duration",
    "rest_duration",
    "alarm_enabled",
    "notifications_enabled",
)


class WorkoutController:
    def __init__(
        self,
        store: KeyValueStore,
        notifications: NotificationService,
        health: HealthDataService | None = None,
        alarm: AlarmPlayer | None = None,
        gate: PermissionGate | None = None,
    ) -> None:
        self._store = store
        self._notifications = notifications
        self._health = health
        self._alarm = alarm
        self.gate = gate or PermissionGate()

        self.settings = WorkoutSettings.load(store)
        self.log = WorkoutLog.load(store)
        self.engine = TimerEngine(build_plan_from_settings(self.settings))
        self.engine.subscribe(self._on_timer_event)

        # Set when a workout finishes; cleared once it is logged or the timer resets.
        self.show_post_workout_summary = False

        self.gate.refresh_notifications(notifications)

    @property
    def notifications(self) -> NotificationService:
        return self._notifications

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def update_settings(self, now: datetime, **changes: object) -> set[str]:
        """Apply setting changes and run their follow-up work.

        Values are clamped into range. Returns the names of fields whose
        stored value actually changed.
        """
        changed: set[str] = set()
        for name, value in changes.items():
            if name not in WorkoutSettings.model_fields:
                raise ValueError(f"Unknown setting: {name}")
            before = getattr(self.settings, name)
            setattr(self.settings, name, value)
            if getattr(self.settings, name) != before:
                changed.add(name)

        if not changed:
            return changed

        if (
            "workout_reminder_mode" in changed
            and self.settings.workout_reminder_mode is ReminderMode.WEEKLY_WEEKDAY
            and self.settings.workout_reminder_weekday == 0
        ):
            self.settings.workout_reminder_weekday = resolve_weekday(0, now)
            changed.add("workout_reminder_weekday")

        self._save_settings()

        if changed & PLAN_FIELDS:
            self.rebuild_plan()

        if "notifications_enabled" in changed:
            if self.settings.notifications_enabled:
                self._ensure_notification_permission()
            else:
                self._cancel(CancelIntent(id=NotificationId.NEXT_INTERVAL))

        if "health_enabled" in changed and self.settings.health_enabled:
            self.request_health_authorization()

        if changed & REMINDER_FIELDS:
            self.reschedule_reminders(now)

        return changed

    def reset_settings_to_defaults(self, now: datetime) -> None:
        defaults = WorkoutSettings()
        self.update_settings(now, **{name: getattr(defaults, name) for name in _RESETTABLE_FIELDS})

    def rebuild_plan(self) -> None:
        self.engine.load_plan(build_plan_from_settings(self.settings))
        self.show_post_workout_summary = False

    def _save_settings(self) -> None:
        try:
            self.settings.save(self._store)
        except Exception:
            logger.exception("Failed to save settings")

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def refresh_permissions(self) -> None:
        """Re-read permission state and switch off features that lost it."""
        self.gate.refresh_notifications(self._notifications)
        if self.gate.should_disable(Capability.NOTIFICATIONS) and self.settings.notifications_enabled:
            logger.warning("Notification permission revoked; interval notifications off")
            self.settings.notifications_enabled = False
            self._save_settings()
        if self.settings.health_enabled:
            self.request_health_authorization()

    def _ensure_notification_permission(self) -> PermissionState:
        state = self.gate.refresh_notifications(self._notifications)
        if state is PermissionState.UNKNOWN and not self.settings.notification_permission_requested:
            state = self.gate.request_notifications(self._notifications)
            self.settings.notification_permission_requested = True
        if self.gate.should_disable(Capability.NOTIFICATIONS) and self.settings.notifications_enabled:
            logger.warning(f"Notification permission {state.value}; interval notifications off")
            self.settings.notifications_enabled = False
        self._save_settings()
        return state

    def request_health_authorization(self) -> PermissionState:
        state = self.gate.request_health(self._health)
        self.settings.health_permission_requested = True
        if self.gate.should_disable(Capability.HEALTH) and self.settings.health_enabled:
            logger.warning(f"Health permission {state.value}; health sync off")
            self.settings.health_enabled = False
        self._save_settings()
        return state

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    def reschedule_reminders(self, now: datetime) -> ReminderDecision:
        config = self.settings.reminder_config
        decision = decide(config, self.gate.state(Capability.NOTIFICATIONS), now, self.log.entries)
        if decision.needs_permission and not self.settings.notification_permission_requested:
            self._ensure_notification_permission()
            decision = decide(
                config, self.gate.state(Capability.NOTIFICATIONS), now, self.log.entries
            )

        for cancel in decision.cancel:
            self._cancel(cancel)
        for intent in decision.schedule:
            self._schedule(intent)

        if decision.force_disabled:
            logger.warning("Workout reminders turned off: notifications are not permitted")
            self.settings.workout_reminders_enabled = False
            self._save_settings()
        elif decision.config.weekday != self.settings.workout_reminder_weekday:
            self.settings.workout_reminder_weekday = decision.config.weekday
            self._save_settings()
        return decision

    def _schedule(self, intent: ScheduleIntent) -> None:
        try:
            self._notifications.schedule(intent)
        except Exception:
            logger.exception(f"Failed to schedule notification {intent.id.value}")

    def _cancel(self, intent: CancelIntent) -> None:
        try:
            self._notifications.cancel(intent.id)
        except Exception:
            logger.exception(f"Failed to cancel notification {intent.id.value}")

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def start(self, now: datetime) -> None:
        self.engine.start(now)

    def pause(self, now: datetime) -> None:
        self.engine.pause(now)

    def skip(self, now: datetime) -> None:
        self.engine.skip(now)

    def tick(self, now: datetime) -> bool:
        return self.engine.tick(now)

    def resume_from_background(self, now: datetime) -> bool:
        return self.engine.resume_from_background(now)

    def reset(self) -> None:
        self.engine.reset()
        self.show_post_workout_summary = False

    def _on_timer_event(self, event: TimerEvent) -> None:
        if event.kind is TimerEventKind.ALARM:
            self._play_alarm()
        elif event.kind is TimerEventKind.SCHEDULE_NOTIFICATION:
            if (
                isinstance(event.intent, ScheduleIntent)
                and self.settings.notifications_enabled
                and self.gate.allows(Capability.NOTIFICATIONS)
            ):
                self._schedule(event.intent)
        elif event.kind is TimerEventKind.CANCEL_NOTIFICATION:
            if isinstance(event.intent, CancelIntent):
                self._cancel(event.intent)
        elif event.kind is TimerEventKind.WORKOUT_FINISHED:
            self.show_post_workout_summary = True
            if event.at is not None:
                self._save_finished_workout_to_health(event.at)
            if event.now is not None:
                self.reschedule_reminders(event.now)

    def _play_alarm(self) -> None:
        if not self.settings.alarm_enabled or self._alarm is None:
            return
        try:
            self._alarm.play(ALARM_SOUND_ID)
        except Exception:
            logger.exception("Error playing alarm sound")

    def _save_finished_workout_to_health(self, ended_at: datetime) -> None:
        if not self.settings.health_enabled or self._health is None:
            return
        if not self.gate.allows(Capability.HEALTH):
            logger.info("Skipping health sync: not authorized")
            return
        started_at = self.engine.session_started_at or ended_at
        try:
            saved = self._health.write_workout(WorkoutType.NORWEGIAN_4X4, started_at, ended_at)
        except Exception:
            logger.exception("Health workout write failed")
            return
        if not saved:
            logger.warning("Health service did not save the workout")

    # ------------------------------------------------------------------
    # Log and trends
    # ------------------------------------------------------------------

    def save_workout_log_entry(
        self,
        now: datetime,
        workout_type: WorkoutType = WorkoutType.NORWEGIAN_4X4,
        notes: str = "",
    ) -> WorkoutLogEntry:
        """Log the finished session and get ready for the next one."""
        entry = WorkoutLogEntry.create(completed_at=now, workout_type=workout_type, notes=notes)
        self.log.append(entry)
        self.reset()
        # A workout on the scheduled day cancels the missed-workout follow-up
        self.reschedule_reminders(now)
        return entry

    def fetch_trend_samples(self, metric: str = "vo2max", limit: int = 30) -> list[TrendSample]:
        if self._health is None or not self.settings.health_enabled:
            return []
        if not self.gate.allows(Capability.HEALTH):
            return []
        try:
            return self._health.query_trend_samples(metric, limit)
        except Exception:
            logger.exception(f"Could not fetch {metric} samples")
            return []
