"""
Validation and serialisation tests for the calendar domain models.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from calcore.domain import (
    CalendarShare,
    Category,
    Event,
    EventException,
    OwnedSyncResponse,
    WorkloadUnit,
)
from calcore.tests.factories import (
    CREATED,
    dt,
    minimal_deadline,
    minimal_event,
    minimal_exception,
    minimal_share,
)


class TestEvent:
    def test_end_must_follow_start(self) -> None:
        with pytest.raises(ValidationError, match="end_time must be after"):
            minimal_event(start_time=dt(1), end_time=dt(1))

    def test_invalid_rrule_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Invalid recurrence rule"):
            minimal_event(rrule="FREQ=FORTNIGHTLY")

    def test_blank_rrule_means_non_recurring(self) -> None:
        event = minimal_event(rrule="   ")

        assert event.rrule is None
        assert not event.is_recurring

    def test_times_are_normalised_to_utc(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        event = minimal_event(
            start_time=datetime(2024, 1, 1, 12, 0, tzinfo=plus_two),
            end_time=datetime(2024, 1, 1, 13, 0, tzinfo=plus_two),
        )

        assert event.start_time == dt(1, 10)
        assert event.start_time.tzinfo == timezone.utc

    def test_naive_times_are_read_as_utc(self) -> None:
        event = minimal_event(
            start_time=datetime(2024, 1, 1, 10, 0),
            end_time=datetime(2024, 1, 1, 11, 0),
        )

        assert event.start_time == dt(1, 10)

    def test_serialises_with_camel_case_names(self) -> None:
        event = minimal_event(rrule="FREQ=DAILY")

        payload = event.model_dump(by_alias=True, mode="json")

        assert payload["eventId"] == 1
        assert payload["ownerUserId"] == 1
        assert payload["startTime"] == "2024-01-01T10:00:00Z"
        assert payload["rrule"] == "FREQ=DAILY"
        assert "deletedAt" in payload

    def test_accepts_camel_case_input(self) -> None:
        event = Event.model_validate(
            {
                "eventId": 5,
                "ownerUserId": 2,
                "title": "From the wire",
                "startTime": "2024-01-01T10:00:00Z",
                "endTime": "2024-01-01T11:00:00Z",
                "createdAt": "2023-12-01T00:00:00Z",
                "updatedAt": "2023-12-01T00:00:00Z",
            }
        )

        assert event.event_id == 5
        assert event.start_time == dt(1, 10)


class TestEventException:
    def test_cancellation_needs_no_window(self) -> None:
        exception = minimal_exception(is_deleted=True)

        assert exception.start_time is None

    def test_override_requires_a_window(self) -> None:
        with pytest.raises(ValidationError, match="start_time and end_time"):
            EventException(
                exception_id=1,
                event_id=1,
                original_occurrence_time=dt(8),
                title="Moved",
                created_at=CREATED,
                updated_at=CREATED,
            )

    def test_override_window_must_be_ordered(self) -> None:
        with pytest.raises(ValidationError, match="end_time must be after"):
            minimal_exception(start_time=dt(8, 12), end_time=dt(8, 11))


class TestDeadline:
    def test_workload_fields_come_together(self) -> None:
        with pytest.raises(ValidationError, match="set together"):
            minimal_deadline(workload_magnitude=2)
        with pytest.raises(ValidationError, match="set together"):
            minimal_deadline(workload_unit=WorkloadUnit.DAYS)

        deadline = minimal_deadline(
            workload_magnitude=2, workload_unit=WorkloadUnit.DAYS
        )
        assert deadline.workload_magnitude == 2

    def test_workload_magnitude_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            minimal_deadline(
                workload_magnitude=0, workload_unit=WorkloadUnit.HOURS
            )


class TestShares:
    def test_category_ids_are_unique_and_sorted(self) -> None:
        share = minimal_share(shared_category_ids=[12, 10, 12, 11])

        assert share.shared_category_ids == [10, 11, 12]

    def test_cannot_share_with_owner(self) -> None:
        with pytest.raises(ValidationError, match="cannot be shared"):
            CalendarShare(
                share_id=1,
                owner_user_id=1,
                shared_with_user_id=1,
                created_at=CREATED,
                updated_at=CREATED,
            )


def test_category_name_must_not_be_empty() -> None:
    with pytest.raises(ValidationError):
        Category(
            category_id=1,
            owner_user_id=1,
            name="",
            color="#000000",
            created_at=CREATED,
            updated_at=CREATED,
        )


def test_sync_response_uses_camel_case_keys() -> None:
    response = OwnedSyncResponse(sync_timestamp=dt(10))

    payload = response.model_dump(by_alias=True, mode="json")

    assert set(payload) == {
        "categories",
        "deadlines",
        "events",
        "eventExceptions",
        "receivedInvitations",
        "sharesCreated",
        "sharesReceived",
        "syncTimestamp",
    }
