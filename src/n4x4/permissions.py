"""Permission tracking for notifications and health data.

The gate only remembers what the services last reported. Turning a feature
toggle off when its permission is refused is the controller's job; the gate
answers ``allows`` and ``should_disable``.
"""

from enum import Enum

from loguru import logger

from n4x4.models.workout import PermissionState
from n4x4.services import HealthDataService, NotificationService

HEALTH_READ_TYPES = ["vo2max"]
HEALTH_WRITE_TYPES = ["workout"]


class Capability(str, Enum):
    NOTIFICATIONS = "notifications"
    HEALTH = "health"


class PermissionGate:
    def __init__(self) -> None:
        self._states: dict[Capability, PermissionState] = {
            capability: PermissionState.UNKNOWN for capability in Capability
        }

    def state(self, capability: Capability) -> PermissionState:
        return self._states[capability]

    def update(self, capability: Capability, state: PermissionState) -> None:
        if self._states[capability] is not state:
            logger.debug(f"{capability.value} permission: {state.value}")
        self._states[capability] = state

    def allows(self, capability: Capability) -> bool:
        return self._states[capability] is PermissionState.GRANTED

    def should_disable(self, capability: Capability) -> bool:
        return self._states[capability] in (PermissionState.DENIED, PermissionState.UNAVAILABLE)

    # ------------------------------------------------------------------
    # Talking to the services
    # ------------------------------------------------------------------

    def refresh_notifications(self, service: NotificationService) -> PermissionState:
        """Ask the service for the current state without prompting the user."""
        try:
            state = service.query_permission()
        except Exception:
            logger.exception("Could not query notification permission")
        else:
            self.update(Capability.NOTIFICATIONS, state)
        return self.state(Capability.NOTIFICATIONS)

    def request_notifications(self, service: NotificationService) -> PermissionState:
        try:
            state = service.request_permission()
        except Exception:
            logger.exception("Notification permission request failed")
        else:
            self.update(Capability.NOTIFICATIONS, state)
        return self.state(Capability.NOTIFICATIONS)

    def request_health(self, service: HealthDataService | None) -> PermissionState:
        if service is None:
            self.update(Capability.HEALTH, PermissionState.UNAVAILABLE)
            return PermissionState.UNAVAILABLE
        try:
            granted = service.request_authorization(HEALTH_READ_TYPES, HEALTH_WRITE_TYPES)
        except Exception:
            logger.exception("Health authorization request failed")
        else:
            self.update(
                Capability.HEALTH,
                PermissionState.GRANTED if granted else PermissionState.DENIED,
            )
        return self.state(Capability.HEALTH)
