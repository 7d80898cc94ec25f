"""Health data service backed by the Intervals.icu REST API.

Completed sessions are uploaded as manual activities and trend samples
(VO₂ max and friends) are read from the athlete's wellness records.

Authentication: HTTP Basic Auth where username is the literal string "API_KEY"
and password is your API key from intervals.icu → Settings → Developer Settings.

API docs: https://intervals.icu/api/v1/docs/swagger-ui/index.html
"""

from collections.abc import Callable
from datetime import date, datetime, timedelta

import httpx
from loguru import logger
from pydantic import SecretStr, ValidationError

from n4x4.models.intervals import ManualActivity, WellnessRecord
from n4x4.models.workout import WorkoutType
from n4x4.services import TrendSample

_BASE_URL = "https://intervals.icu"

# How far back trend queries look.
_TREND_LOOKBACK_DAYS = 365

_SPORT_TYPES: dict[WorkoutType, str] = {
    WorkoutType.NORWEGIAN_4X4: "Workout",
    WorkoutType.RUN: "Run",
    WorkoutType.CYCLE: "Ride",
    WorkoutType.ROW: "Rowing",
    WorkoutType.SWIM: "Swim",
    WorkoutType.ELLIPTICAL: "Elliptical",
    WorkoutType.STAIR_CLIMBER: "StairStepper",
    WorkoutType.HIIT: "HighIntensityIntervalTraining",
    WorkoutType.HIKE: "Hike",
    WorkoutType.STRENGTH: "WeightTraining",
    WorkoutType.OTHER: "Workout",
}


class IntervalsAPIError(Exception):
    """Raised when the Intervals.icu API returns an error response."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class IntervalsClient:
    """Thin synchronous wrapper around the Intervals.icu REST API."""

    def __init__(
        self,
        api_key: SecretStr,
        athlete_id: str = "i0",
        base_url: str = _BASE_URL,
    ) -> None:
        self._athlete_id = athlete_id
        self._base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            auth=("API_KEY", api_key.get_secret_value()),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=30.0,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self._base_url}/api/v1/athlete/{self._athlete_id}/{path.lstrip('/')}"

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            detail = response.json()
            message = detail.get("message") or detail.get("error") or str(detail)
        except Exception:
            message = response.text or response.reason_phrase

        if response.status_code == 401:
            raise IntervalsAPIError(
                401,
                "Unauthorised — check your API key "
                "(Settings → Developer Settings on intervals.icu).",
            )
        if response.status_code == 404:
            raise IntervalsAPIError(
                404,
                f"Not found — check your athlete ID (current: '{self._athlete_id}'). {message}",
            )
        raise IntervalsAPIError(response.status_code, message)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_athlete(self) -> dict:  # type: ignore[type-arg]
        """Fetch the authenticated athlete's profile (useful for verifying credentials)."""
        response = self._client.get(f"{self._base_url}/api/v1/athlete/{self._athlete_id}")
        self._raise_for_status(response)
        return response.json()  # type: ignore[no-any-return]

    def get_wellness(self, oldest: date, newest: date) -> list[WellnessRecord]:
        """Fetch daily wellness records within a date range (inclusive)."""
        response = self._client.get(
            self._url("wellness"),
            params={"oldest": oldest.isoformat(), "newest": newest.isoformat()},
        )
        self._raise_for_status(response)
        return [WellnessRecord.model_validate(item) for item in response.json()]

    def create_manual_activity(self, activity: ManualActivity) -> dict:  # type: ignore[type-arg]
        """Record a completed workout.

        Returns:
            The created activity object from the API.
        """
        response = self._client.post(
            self._url("activities/manual"),
            json=activity.model_dump(exclude_none=True),
        )
        self._raise_for_status(response)
        return response.json()  # type: ignore[no-any-return]

    # ------------------------------------------------------------------
    # Context manager support
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "IntervalsClient":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


class IntervalsHealthService:
    """``HealthDataService`` on top of ``IntervalsClient``.

    Every failure is logged and reported as ``False`` or an empty result;
    nothing here raises into the workout flow.
    """

    def __init__(
        self,
        client: IntervalsClient,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._client = client
        self._today = today

    def request_authorization(self, read_types: list[str], write_types: list[str]) -> bool:
        # Intervals.icu keys are all-or-nothing: a working key grants everything.
        try:
            self._client.get_athlete()
        except (IntervalsAPIError, httpx.HTTPError) as exc:
            logger.warning(f"Intervals.icu authorization failed: {exc}")
            return False
        return True

    def query_trend_samples(self, metric: str, limit: int) -> list[TrendSample]:
        """Newest-first readings of ``metric`` from the last year of wellness data."""
        newest = self._today()
        oldest = newest - timedelta(days=_TREND_LOOKBACK_DAYS)
        try:
            records = self._client.get_wellness(oldest, newest)
        except (IntervalsAPIError, httpx.HTTPError, ValidationError) as exc:
            logger.warning(f"Could not fetch {metric} samples: {exc}")
            return []

        samples = [
            TrendSample(timestamp=datetime.combine(record.id, datetime.min.time()), value=value)
            for record in records
            if (value := record.metric(metric)) is not None
        ]
        samples.sort(key=lambda sample: sample.timestamp, reverse=True)
        return samples[:limit]

    def write_workout(self, workout_type: WorkoutType, start: datetime, end: datetime) -> bool:
        seconds = max(int((end - start).total_seconds()), 0)
        local_start = start.astimezone() if start.tzinfo else start
        started = local_start.replace(microsecond=0, tzinfo=None).isoformat()
        activity = ManualActivity(
            start_date_local=started,
            type=_SPORT_TYPES[workout_type],
            name=workout_type.value,
            moving_time=seconds,
            elapsed_time=seconds,
            description="Logged by n4x4",
            external_id=f"n4x4-{started}",
        )
        try:
            self._client.create_manual_activity(activity)
        except (IntervalsAPIError, httpx.HTTPError) as exc:
            logger.warning(f"Could not save workout to Intervals.icu: {exc}")
            return False
        logger.info(f"Saved {workout_type.value} ({seconds}s) to Intervals.icu")
        return True
