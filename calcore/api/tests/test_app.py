"""
Tests for the calendar core FastAPI application.

These tests drive the HTTP layer end to end against the in-memory
repositories, overriding the repository dependency so each test starts
from its own seeded store.
"""

from typing import Generator
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from calcore.api.app import app
from calcore.api.dependencies import get_repositories
from calcore.domain import PrivacyLevel
from calcore.repos import Repositories
from calcore.repos.memory import MemoryStore, memory_repositories
from calcore.repositories import EventRepository
from calcore.tests.factories import (
    dt,
    minimal_category,
    minimal_deadline,
    minimal_event,
    minimal_invitation,
    minimal_open_share,
    minimal_share,
)

OWNER = {"X-User-Id": "1"}
VIEWER = {"X-User-Id": "2"}
STRANGER = {"X-User-Id": "3"}

JANUARY = {
    "startTime": "2024-01-01T00:00:00Z",
    "endTime": "2024-02-01T00:00:00Z",
}

OPEN_SHARE_ID = uuid4()


@pytest.fixture
def store() -> MemoryStore:
    """A memory store seeded with one sharer, a viewer and a stranger."""
    store = MemoryStore()
    for category in (
        minimal_category(category_id=10),
        minimal_category(category_id=11, name="Private"),
        minimal_category(category_id=20, owner_user_id=3),
    ):
        store.categories[category.category_id] = category
    for event in (
        minimal_event(
            event_id=1,
            title="Team sync",
            description="Agenda",
            location="Room 1",
            rrule="FREQ=WEEKLY;COUNT=5",
        ),
        minimal_event(event_id=2, category_id=11, start_time=dt(3, 15)),
        minimal_event(
            event_id=100, owner_user_id=3, category_id=20, start_time=dt(4)
        ),
    ):
        store.events[event.event_id] = event
    store.invitations[1] = minimal_invitation(event_id=100)
    store.deadlines[1] = minimal_deadline(deadline_id=1, category_id=10)
    store.shares[1] = minimal_share(
        share_id=1,
        shared_category_ids=[10],
        privacy_level=PrivacyLevel.LIMITED,
    )
    store.shares[2] = minimal_share(share_id=2, expires_at=dt(5))
    store.open_shares[OPEN_SHARE_ID] = minimal_open_share(
        open_share_id=OPEN_SHARE_ID, shared_category_ids=[10]
    )
    return store


@pytest.fixture
def repos(store: MemoryStore) -> Repositories:
    return memory_repositories(store)


@pytest.fixture
def client(
    repos: Repositories, monkeypatch: pytest.MonkeyPatch
) -> Generator[TestClient, None, None]:
    """Create a test client backed by the seeded memory repositories."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("CALCORE_CONFIG", raising=False)
    app.dependency_overrides[get_repositories] = lambda: repos

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


class TestHealthEndpoint:
    def test_health_check(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert "timestamp" in data


class TestAuthentication:
    @pytest.mark.parametrize(
        "headers", [{}, {"X-User-Id": "abc"}, {"X-User-Id": "0"}]
    )
    def test_missing_or_malformed_principal_is_401(
        self, client: TestClient, headers
    ) -> None:
        response = client.get(
            "/api/calendar/events", params=JANUARY, headers=headers
        )

        assert response.status_code == 401
        assert response.json() == {"detail": "Not authenticated"}

    def test_open_share_needs_no_principal(self, client: TestClient) -> None:
        response = client.get(
            f"/api/open-shares/{OPEN_SHARE_ID}", params=JANUARY
        )

        assert response.status_code == 200


class TestCalendarEventsEndpoint:
    def test_returns_expanded_occurrences(self, client: TestClient) -> None:
        response = client.get(
            "/api/calendar/events", params=JANUARY, headers=OWNER
        )

        assert response.status_code == 200
        data = response.json()
        assert [(o["eventId"], o["startTime"]) for o in data] == [
            (1, "2024-01-01T10:00:00Z"),
            (2, "2024-01-03T15:00:00Z"),
            (100, "2024-01-04T10:00:00Z"),
            (1, "2024-01-08T10:00:00Z"),
            (1, "2024-01-15T10:00:00Z"),
            (1, "2024-01-22T10:00:00Z"),
            (1, "2024-01-29T10:00:00Z"),
        ]
        assert data[0]["originalOccurrenceTime"] == "2024-01-01T10:00:00Z"
        assert data[0]["location"] == "Room 1"
        assert "ownerUserId" not in data[0]
        assert "rrule" not in data[0]

    def test_offset_timestamps_are_accepted(self, client: TestClient) -> None:
        response = client.get(
            "/api/calendar/events",
            params={
                "startTime": "2024-01-08T12:00:00+02:00",
                "endTime": "2024-01-08T13:00:00+02:00",
            },
            headers=OWNER,
        )

        assert response.status_code == 200
        assert [o["eventId"] for o in response.json()] == [1]

    @pytest.mark.parametrize(
        "params",
        [
            {"startTime": "2024-01-01", "endTime": "2024-02-01T00:00:00Z"},
            {"startTime": "2024-01-01T00:00:00Z", "endTime": "soon"},
            {
                "startTime": "2024-02-01T00:00:00Z",
                "endTime": "2024-01-01T00:00:00Z",
            },
            {
                "startTime": "2024-01-01T00:00:00Z",
                "endTime": "2026-01-01T00:00:00Z",
            },
        ],
        ids=["date-only", "garbage", "inverted", "too-long"],
    )
    def test_invalid_range_is_400(self, client: TestClient, params) -> None:
        response = client.get(
            "/api/calendar/events", params=params, headers=OWNER
        )

        assert response.status_code == 400

    def test_missing_range_is_422(self, client: TestClient) -> None:
        response = client.get("/api/calendar/events", headers=OWNER)

        assert response.status_code == 422

    def test_repository_failure_is_500(
        self, client: TestClient, repos: Repositories
    ) -> None:
        broken = AsyncMock(spec=EventRepository)
        broken.get_active_for_owners.side_effect = RuntimeError("db down")
        app.dependency_overrides[get_repositories] = lambda: repos._replace(
            events=broken
        )

        response = client.get(
            "/api/calendar/events", params=JANUARY, headers=OWNER
        )

        assert response.status_code == 500
        assert response.json() == {
            "detail": "Failed to load calendar due to an internal error."
        }


class TestSharedCalendarEndpoints:
    def test_limited_share_is_redacted(self, client: TestClient) -> None:
        response = client.get(
            "/api/calendar/shares/1", params=JANUARY, headers=VIEWER
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ownerUserId"] == 1
        assert data["privacyLevel"] == "limited"
        assert [e["eventId"] for e in data["events"]] == [1, 100, 1, 1, 1, 1]
        for event in data["events"]:
            assert event["title"] == "Busy"
            for key in ("description", "location", "rrule", "categoryId"):
                assert key not in event
        assert [d["title"] for d in data["deadlines"]] == ["Deadline"]

    def test_unusable_shares_are_indistinguishable(
        self, client: TestClient
    ) -> None:
        foreign = client.get(
            "/api/calendar/shares/1", params=JANUARY, headers=STRANGER
        )
        expired = client.get(
            "/api/calendar/shares/2", params=JANUARY, headers=VIEWER
        )
        unknown = client.get(
            "/api/calendar/shares/99", params=JANUARY, headers=VIEWER
        )

        for response in (foreign, expired, unknown):
            assert response.status_code == 404
            assert response.json() == {"detail": "Share not found"}

    def test_open_share_view(self, client: TestClient) -> None:
        response = client.get(
            f"/api/open-shares/{OPEN_SHARE_ID}", params=JANUARY
        )

        assert response.status_code == 200
        data = response.json()
        assert {e["eventId"] for e in data["events"]} == {1}
        assert data["events"][0]["description"] == "Agenda"

    def test_unknown_open_share_is_404(self, client: TestClient) -> None:
        response = client.get(f"/api/open-shares/{uuid4()}", params=JANUARY)

        assert response.status_code == 404
        assert response.json() == {"detail": "Share not found"}

    def test_list_shared_calendars(self, client: TestClient) -> None:
        response = client.get("/api/shared-calendars", headers=VIEWER)

        assert response.status_code == 200
        assert [s["shareId"] for s in response.json()] == [1]


class TestSyncEndpoints:
    def test_owned_bootstrap(self, client: TestClient) -> None:
        response = client.get("/api/sync/me", headers=OWNER)

        assert response.status_code == 200
        data = response.json()
        assert [e["eventId"] for e in data["events"]] == [1, 2, 100]
        assert [c["categoryId"] for c in data["categories"]] == [10, 11]
        assert [s["shareId"] for s in data["sharesCreated"]] == [1, 2]
        assert data["eventExceptions"] == []
        assert "syncTimestamp" in data

    def test_owned_delta_since(self, client: TestClient) -> None:
        response = client.get(
            "/api/sync/me",
            params={"since": "2024-01-10T12:00:00Z"},
            headers=OWNER,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["events"] == []
        assert data["categories"] == []

    def test_blank_since_means_bootstrap(self, client: TestClient) -> None:
        response = client.get(
            "/api/sync/me", params={"since": ""}, headers=OWNER
        )

        assert response.status_code == 200
        assert len(response.json()["events"]) == 3

    @pytest.mark.parametrize("since", ["last tuesday", "20240101T100000Z"])
    def test_invalid_since_is_400(
        self, client: TestClient, since: str
    ) -> None:
        response = client.get(
            "/api/sync/me", params={"since": since}, headers=OWNER
        )

        assert response.status_code == 400
        assert response.json()["detail"].startswith(
            "Invalid 'since' parameter"
        )

    def test_shared_sync_bootstrap(self, client: TestClient) -> None:
        response = client.get(
            "/api/sync/calendar/shares/1", headers=VIEWER
        )

        assert response.status_code == 200
        data = response.json()
        assert data["shareInfo"]["shareId"] == 1
        assert [e["eventId"] for e in data["events"]] == [1, 100]
        assert all(e["title"] == "Busy" for e in data["events"])

    def test_shared_sync_for_stranger_is_empty(
        self, client: TestClient
    ) -> None:
        response = client.get(
            "/api/sync/calendar/shares/1", headers=STRANGER
        )

        assert response.status_code == 200
        data = response.json()
        assert "shareInfo" not in data
        assert data["events"] == []
        assert data["deadlines"] == []


class TestShareManagementEndpoints:
    def test_update_share_scope(self, client: TestClient) -> None:
        response = client.put(
            "/api/me/shares/1",
            json={"categoryIds": [10, 11], "privacyLevel": "full"},
            headers=OWNER,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["sharedCategoryIds"] == [10, 11]
        assert data["privacyLevel"] == "full"

        view = client.get(
            "/api/calendar/shares/1", params=JANUARY, headers=VIEWER
        )
        titles = {e["title"] for e in view.json()["events"]}
        assert "Test Event" in titles

    def test_update_with_foreign_category_is_400(
        self, client: TestClient
    ) -> None:
        response = client.put(
            "/api/me/shares/1", json={"categoryIds": [20]}, headers=OWNER
        )

        assert response.status_code == 400
        assert "20" in response.json()["detail"]

    def test_update_by_non_owner_is_404(self, client: TestClient) -> None:
        response = client.put(
            "/api/me/shares/1", json={"categoryIds": [10]}, headers=VIEWER
        )

        assert response.status_code == 404

    def test_revoke_share_then_sync_reports_it(
        self, client: TestClient
    ) -> None:
        revoke = client.delete("/api/me/shares/1", headers=OWNER)
        assert revoke.status_code == 200
        assert revoke.json()["deletedAt"] is not None

        sync = client.get(
            "/api/sync/calendar/shares/1",
            params={"since": "2024-01-10T12:00:00Z"},
            headers=VIEWER,
        )
        data = sync.json()
        assert data["shareInfo"]["deletedAt"] is not None
        assert data["events"] == []

        again = client.delete("/api/me/shares/1", headers=OWNER)
        assert again.status_code == 404

    def test_update_open_share_scope(self, client: TestClient) -> None:
        response = client.put(
            f"/api/me/open-shares/{OPEN_SHARE_ID}",
            json={"categoryIds": [11], "privacyLevel": "limited"},
            headers=OWNER,
        )

        assert response.status_code == 200
        assert response.json()["sharedCategoryIds"] == [11]

        view = client.get(
            f"/api/open-shares/{OPEN_SHARE_ID}", params=JANUARY
        )
        assert [e["title"] for e in view.json()["events"]] == ["Busy"]
