"""Tests for the HTTP backend against a mocked rota service."""
import json
from datetime import date

import httpx
import pytest

from carerota.backend.http import HttpRotaBackend
from carerota.exceptions import ConflictError, RotaError, RuleValidationError, TransportError
from carerota.models.schedule import CandidateEntry
from carerota.models.shift import ShiftType
from carerota.models.violation import RuleType

MONDAY = date(2025, 8, 4)

ENTRY = {
    "id": "e1",
    "packageId": "pkg-1",
    "carerId": "alice",
    "date": "2025-08-04T00:00:00.000Z",
    "shiftType": "DAY",
    "startTime": "09:00",
    "endTime": "17:00",
    "isConfirmed": False,
    "carer": {"id": "alice", "name": "Alice"},
}


class FakeService:
    """Records requests and answers from a route table."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes[(request.method, request.url.path)]
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(request)
        status, body = handler
        return httpx.Response(status, json=body)


def make_backend(routes):
    service = FakeService(routes)
    client = httpx.AsyncClient(transport=httpx.MockTransport(service), base_url="http://rota.test")
    return HttpRotaBackend(client=client), service


def candidate():
    return CandidateEntry("pkg-1", "alice", MONDAY, ShiftType.DAY, "09:00", "17:00")


class TestReads:

    @pytest.mark.asyncio
    async def test_weekly_schedule(self):
        backend, service = make_backend({
            ("GET", "/api/rota/weekly"): (200, {"success": True, "data": {
                "weekStart": "2025-08-04T00:00:00.000Z",
                "entries": [ENTRY],
                "packageCarers": [{"id": "alice", "name": "Alice"}],
                "packageTaskIds": ["t1"],
            }}),
        })
        schedule = await backend.get_weekly_schedule("pkg-1", MONDAY)
        assert schedule.week_start == MONDAY
        assert [e.id for e in schedule.entries] == ["e1"]
        assert schedule.carer_name("alice") == "Alice"
        params = service.requests[0].url.params
        assert params["packageId"] == "pkg-1"
        assert params["weekStart"] == "2025-08-04"

    @pytest.mark.asyncio
    async def test_carer_entries_follow_pages(self):
        def paged(request):
            page = int(request.url.params["page"])
            entry = dict(ENTRY, id=f"e{page}")
            return httpx.Response(200, json={
                "success": True, "data": [entry], "pagination": {"page": page, "totalPages": 2},
            })

        backend, service = make_backend({("GET", "/api/rota"): paged})
        entries = await backend.get_carer_entries(["alice"], date(2025, 7, 28), date(2025, 8, 11))
        assert [e.id for e in entries] == ["e1", "e2"]
        assert [r.url.params["page"] for r in service.requests] == ["1", "2"]
        assert service.requests[0].url.params["limit"] == "100"

    @pytest.mark.asyncio
    async def test_list_packages(self):
        backend, _ = make_backend({
            ("GET", "/api/care-packages"): (200, {"success": True, "data": [
                {"id": "pkg-1", "name": "Rose Cottage", "postcode": "AB1", "scheduledHours": 16},
            ]}),
        })
        packages = await backend.list_packages()
        assert packages[0].name == "Rose Cottage"
        assert packages[0].scheduled_hours == 16

    @pytest.mark.asyncio
    async def test_validate(self):
        backend, service = make_backend({
            ("POST", "/api/rota/validate"): (200, {"success": True, "data": {
                "isValid": True, "violations": [],
                "warnings": [{"rule": "ROTATION_PATTERN", "message": "w", "severity": "warning"}],
            }}),
        })
        result = await backend.validate_entry(candidate())
        assert result.is_valid
        assert [v.rule for v in result.warnings] == [RuleType.ROTATION_PATTERN]
        assert json.loads(service.requests[0].content)["carerId"] == "alice"


class TestCommits:

    @pytest.mark.asyncio
    async def test_create_sends_idempotency_key(self):
        backend, service = make_backend({
            ("POST", "/api/rota"): (201, {"success": True, "data": ENTRY, "warnings": []}),
        })
        response = await backend.create_entry(candidate(), idempotency_key="key-1")
        assert response.entry.id == "e1"
        assert response.entry.carer_name == "Alice"
        assert service.requests[0].headers["Idempotency-Key"] == "key-1"

    @pytest.mark.asyncio
    async def test_create_refused(self):
        backend, _ = make_backend({
            ("POST", "/api/rota"): (400, {
                "success": False,
                "error": "Rota entry violates scheduling rules",
                "violations": [
                    {"rule": "MIN_COMPETENT_STAFF", "message": "m", "severity": "error"},
                    {"rule": "COMPETENCY_PAIRING", "message": "p", "severity": "error", "carerId": "bob"},
                ],
                "warnings": [],
            }),
        })
        with pytest.raises(RuleValidationError) as exc:
            await backend.create_entry(candidate())
        assert [v.rule for v in exc.value.violations] == [
            RuleType.MIN_COMPETENT_STAFF, RuleType.COMPETENCY_PAIRING,
        ]

    @pytest.mark.asyncio
    async def test_confirm(self):
        backend, _ = make_backend({
            ("PATCH", "/api/rota/e1/confirm"): (200, {"success": True, "data": dict(ENTRY, isConfirmed=True)}),
        })
        entry = await backend.confirm_entry("e1")
        assert entry.is_confirmed

    @pytest.mark.asyncio
    async def test_move_puts_new_slot(self):
        moved = dict(ENTRY, date="2025-08-05T00:00:00.000Z")
        backend, service = make_backend({
            ("PUT", "/api/rota/e1"): (200, {"success": True, "data": moved, "warnings": []}),
        })
        tuesday = CandidateEntry("pkg-1", "alice", date(2025, 8, 5), ShiftType.DAY, "09:00", "17:00")
        response = await backend.move_entry("e1", tuesday, idempotency_key="key-2")
        assert response.entry.id == "e1"
        assert response.entry.date == date(2025, 8, 5)
        request = service.requests[0]
        assert request.headers["Idempotency-Key"] == "key-2"
        body = json.loads(request.content)
        assert body["date"] == "2025-08-05"
        assert body["isConfirmed"] is False

    @pytest.mark.asyncio
    async def test_move_refused_and_missing(self):
        backend, _ = make_backend({
            ("PUT", "/api/rota/e1"): (400, {
                "success": False,
                "error": "Scheduling rule violations",
                "violations": [{"rule": "WEEKLY_HOUR_LIMIT", "message": "m", "severity": "error"}],
            }),
            ("PUT", "/api/rota/e9"): (404, {"success": False, "error": "Rota entry not found"}),
        })
        with pytest.raises(RuleValidationError):
            await backend.move_entry("e1", candidate())
        with pytest.raises(ConflictError) as exc:
            await backend.move_entry("e9", candidate())
        assert exc.value.entity_id == "e9"

    @pytest.mark.asyncio
    async def test_not_found_is_conflict(self):
        backend, _ = make_backend({
            ("DELETE", "/api/rota/e9"): (404, {"success": False, "error": "Rota entry not found"}),
        })
        with pytest.raises(ConflictError) as exc:
            await backend.delete_entry("e9")
        assert exc.value.entity_id == "e9"

    @pytest.mark.asyncio
    async def test_batch_delete(self):
        backend, service = make_backend({
            ("DELETE", "/api/rota/batch"): (200, {"success": True, "data": {
                "deletedCount": 1,
                "errors": [{"id": "e2", "error": "Rota entry not found"}],
                "deletedIds": ["e1"],
            }}),
        })
        result = await backend.batch_delete(["e1", "e2"])
        assert result.is_partial
        assert json.loads(service.requests[0].content) == {"ids": ["e1", "e2"]}

    @pytest.mark.asyncio
    async def test_legacy_batch_refusal(self):
        backend, _ = make_backend({
            ("DELETE", "/api/rota/batch"): (400, {
                "success": False, "error": "Some entries not found", "notFoundIds": ["e2"],
            }),
        })
        result = await backend.batch_delete(["e1", "e2"])
        assert result.deleted_count == 0
        assert [(e.id, e.error) for e in result.errors] == [("e2", "Rota entry not found")]


class TestTransportFailures:
    """Outcome-unknown failures."""

    @pytest.mark.asyncio
    async def test_timeout(self):
        backend, _ = make_backend({("POST", "/api/rota"): httpx.ReadTimeout("slow")})
        with pytest.raises(TransportError) as exc:
            await backend.create_entry(candidate())
        assert exc.value.retryable

    @pytest.mark.asyncio
    async def test_connection_error(self):
        backend, _ = make_backend({("GET", "/api/care-packages"): httpx.ConnectError("refused")})
        with pytest.raises(TransportError):
            await backend.list_packages()

    @pytest.mark.asyncio
    async def test_server_error(self):
        backend, _ = make_backend({("GET", "/api/care-packages"): (503, {"error": "down"})})
        with pytest.raises(TransportError) as exc:
            await backend.list_packages()
        assert exc.value.status_code == 503

    @pytest.mark.asyncio
    async def test_plain_client_error(self):
        backend, _ = make_backend({("PATCH", "/api/rota/e1/confirm"): (400, {"error": "bad id"})})
        with pytest.raises(RotaError) as exc:
            await backend.confirm_entry("e1")
        assert not isinstance(exc.value, (RuleValidationError, ConflictError, TransportError))
        assert exc.value.details["error"] == "bad id"
