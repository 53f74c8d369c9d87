from __future__ import annotations

from datetime import date

import pytest
import requests

from redmine_timesheet import (
    Activity,
    RedmineClient,
    RedmineError,
    resolve_activity,
    to_time_entry_payloads,
)
from time_distribution import IssueRef, TimeEntryAllocation, TimeEntryToCreate

BASE_URL = "https://redmine.test"


class _Response:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload if payload is not None else {}
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")

    def json(self):
        return self.payload


class _Session:
    """Stands in for requests.Session, routing by path."""

    def __init__(self, get_routes=None, post_handler=None):
        self.headers = {}
        self.get_routes = get_routes or {}
        self.post_handler = post_handler
        self.calls = []

    def get(self, url, params=None, timeout=None):
        path = url[len(BASE_URL):]
        self.calls.append(("GET", path, params))
        route = self.get_routes[path]
        return route(params) if callable(route) else route

    def post(self, url, json=None, timeout=None):
        path = url[len(BASE_URL):]
        self.calls.append(("POST", path, json))
        return self.post_handler(json)


def _client(session: _Session) -> RedmineClient:
    client = RedmineClient({"url": BASE_URL + "/", "api_key": "secret"})
    assert client.session.headers["X-Redmine-API-Key"] == "secret"
    client.session = session
    return client


def _user_route():
    return _Response({"user": {"id": 42, "login": "dev"}})


def test_current_month_issues_are_merged_deduplicated_and_sorted():
    open_issues = [
        {"id": 1, "subject": "Old", "created_on": "2026-09-01T08:00:00Z"},
        {"id": 2, "subject": "Stale", "created_on": "2026-10-05T08:00:00Z"},
    ]
    range_issues = [
        {"id": 2, "subject": "Fresh", "created_on": "2026-10-05T08:00:00Z"},
        {"id": 3, "subject": "New", "created_on": "2026-10-10T08:00:00Z"},
    ]

    def issues_route(params):
        if "created_on" in params:
            return _Response({"issues": range_issues})
        return _Response({"issues": open_issues})

    session = _Session({
        "/users/current.json": _user_route(),
        "/issues.json": issues_route,
    })

    issues = _client(session).get_issues_for_current_month(date(2026, 10, 19))

    assert [i["id"] for i in issues] == [3, 2, 1]
    assert issues[1]["subject"] == "Fresh"

    issue_calls = [c for c in session.calls if c[1] == "/issues.json"]
    open_params, range_params = issue_calls[0][2], issue_calls[1][2]
    assert open_params == {"assigned_to_id": 42, "status_id": "open", "limit": 100}
    assert range_params["created_on"] == "><2026-09-01|2026-10-31"
    assert "status_id" not in range_params
    # current user is fetched once and cached
    assert [c[1] for c in session.calls].count("/users/current.json") == 1


def test_previous_month_wraps_year_boundary():
    session = _Session({
        "/users/current.json": _user_route(),
        "/issues.json": _Response({"issues": []}),
    })

    _client(session).get_issues_for_current_month(date(2026, 1, 15))

    range_params = session.calls[-1][2]
    assert range_params["created_on"] == "><2025-12-01|2026-01-31"


def test_http_errors_become_redmine_errors():
    session = _Session({"/users/current.json": _Response(status_code=401)})

    with pytest.raises(RedmineError, match="Failed to get current user"):
        _client(session).get_current_user()


def test_test_connection_reports_failure():
    session = _Session({"/users/current.json": _Response(status_code=401)})

    assert _client(session).test_connection() is False


def test_spent_hours_sum_time_entries():
    session = _Session({
        "/time_entries.json": _Response(
            {"time_entries": [{"hours": 1.5}, {"hours": 2}, {"hours": None}]}
        ),
    })

    assert _client(session).get_spent_hours(7) == 3.5
    assert session.calls[0][2] == {"issue_id": 7, "limit": 100}


def test_spent_hours_fall_back_to_zero():
    session = _Session({"/time_entries.json": _Response(status_code=500)})

    assert _client(session).get_spent_hours(7) == 0.0


def test_activities_are_validated_at_the_boundary():
    session = _Session({
        "/enumerations/time_entry_activities.json": _Response({
            "time_entry_activities": [
                {"id": 8, "name": "Design"},
                {"id": 9, "name": "Development", "is_default": True},
            ]
        }),
    })

    activities = _client(session).get_time_entry_activities()

    assert activities == [
        Activity(8, "Design", False),
        Activity(9, "Development", True),
    ]


@pytest.mark.parametrize("record", [{"name": "No id"}, {"id": "9", "name": "x"}, "junk"])
def test_malformed_activity_raises(record):
    with pytest.raises(RedmineError):
        Activity.from_api(record)


def test_resolve_activity_priority():
    activities = [Activity(8, "Design"), Activity(9, "Development", True)]

    assert resolve_activity(activities, 8).id == 8
    assert resolve_activity(activities).id == 9
    assert resolve_activity(activities, 99).id == 9
    assert resolve_activity([Activity(8, "Design")]).id == 8
    assert resolve_activity([]) is None


def test_batch_submission_continues_past_failures():
    def post_handler(body):
        entry = body["time_entry"]
        if entry["issue_id"] == 2:
            return _Response({"errors": ["Issue is closed"]}, status_code=422)
        return _Response({"time_entry": {"id": 100 + entry["issue_id"], **entry}})

    session = _Session(post_handler=post_handler)
    payloads = [
        {"issue_id": 1, "spent_on": "2026-10-19", "hours": 8.0, "comments": "a"},
        {"issue_id": 2, "spent_on": "2026-10-19", "hours": 1.0, "comments": "b"},
        {"issue_id": 3, "spent_on": "2026-10-20", "hours": 2.0, "comments": "c"},
    ]

    result = _client(session).create_time_entries(payloads)

    assert [c["id"] for c in result.created] == [101, 103]
    assert len(result.failed) == 1
    failed_payload, reason = result.failed[0]
    assert failed_payload["issue_id"] == 2
    assert "Failed to create time entry" in reason
    assert result.ok is False
    assert len([c for c in session.calls if c[0] == "POST"]) == 3


def test_payloads_flatten_allocations():
    allocation = TimeEntryAllocation(
        IssueRef(5, "Search"),
        10,
        (
            TimeEntryToCreate(date(2026, 10, 19), 8.0, "Working on: Search"),
            TimeEntryToCreate(date(2026, 10, 20), 2.0, "Working on: Search"),
        ),
    )

    with_activity = to_time_entry_payloads([allocation], activity_id=9)
    without = to_time_entry_payloads([allocation])

    assert with_activity[0] == {
        "issue_id": 5,
        "spent_on": "2026-10-19",
        "hours": 8.0,
        "comments": "Working on: Search",
        "activity_id": 9,
    }
    assert [p["spent_on"] for p in with_activity] == ["2026-10-19", "2026-10-20"]
    assert "activity_id" not in without[0]
