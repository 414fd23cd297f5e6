"""
HTTP Rota Backend
=================
RotaBackend over the rota service's JSON API using ``httpx.AsyncClient``.

Every response uses the envelope ``{success, data, error, violations,
warnings}``. Failures map onto the exception taxonomy:

    404                        -> ConflictError
    400/422 with violations    -> RuleValidationError
    400/422 otherwise          -> RotaError
    timeout, connection, 5xx   -> TransportError (retryable)
"""
import uuid
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

import httpx

from carerota.exceptions import ConflictError, RotaError, RuleValidationError, TransportError
from carerota.models.package import CarePackage
from carerota.models.schedule import CandidateEntry, ShiftEntry, WeeklySchedule
from carerota.models.violation import RuleViolation, ValidationResult
from carerota.utils.logging_setup import get_logger

from .base import BatchDeleteFailure, BatchDeleteResult, CreateEntryResponse

logger = get_logger("carerota.backend.http")

PAGE_SIZE = 100


class HttpRotaBackend:
    """
    RotaBackend talking to ``{base_url}/api/rota``.

    Args:
        base_url: Service root, e.g. ``https://rota.example.org``
        client: Pre-built AsyncClient (tests pass one with a MockTransport)
        token: Bearer token added to every request
        timeout: Seconds before a request is treated as a TransportError
    """

    def __init__(
        self,
        base_url: str = "",
        client: Optional[httpx.AsyncClient] = None,
        token: Optional[str] = None,
        timeout: float = 10.0,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "HttpRotaBackend":
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    # --- transport ----------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        entity_id: str = "",
        **kwargs,
    ) -> Dict[str, Any]:
        """Send one request and return the decoded envelope, or raise."""
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {url} timed out")
            raise TransportError(f"{method} {url} timed out") from e
        except httpx.TransportError as e:
            logger.warning(f"{method} {url} failed: {type(e).__name__}: {e}")
            raise TransportError(f"{method} {url} failed: {e}") from e

        body = _json(response)
        status = response.status_code
        error = str(body.get("error") or body.get("message") or response.reason_phrase)

        if status >= 500:
            raise TransportError(f"{method} {url} returned {status}: {error}", status_code=status)
        if status == 404:
            raise ConflictError(entity_id or url, error)
        if status >= 400 or body.get("success") is False:
            violations = [RuleViolation.from_dict(v) for v in body.get("violations") or []]
            warnings = [RuleViolation.from_dict(v) for v in body.get("warnings") or []]
            if violations:
                raise RuleValidationError(violations, warnings, message=error)
            raise RotaError(f"{method} {url} returned {status}: {error}", details=body)
        return body

    # --- reads --------------------------------------------------------------

    async def get_weekly_schedule(self, package_id: str, week_start: date) -> WeeklySchedule:
        body = await self._request(
            "GET", "/api/rota/weekly",
            entity_id=package_id,
            params={"packageId": package_id, "weekStart": week_start.isoformat()},
        )
        data = dict(body.get("data") or {})
        data.setdefault("weekStart", week_start.isoformat())
        return WeeklySchedule.from_dict(data, package_id=package_id)

    async def get_carer_entries(
        self,
        carer_ids: Iterable[str],
        start: date,
        end: date,
    ) -> List[ShiftEntry]:
        found: List[ShiftEntry] = []
        for carer_id in carer_ids:
            page = 1
            while True:
                body = await self._request("GET", "/api/rota", params={
                    "carerId": carer_id,
                    "startDate": start.isoformat(),
                    "endDate": end.isoformat(),
                    "page": page,
                    "limit": PAGE_SIZE,
                })
                found.extend(ShiftEntry.from_dict(e) for e in body.get("data") or [])
                pages = int((body.get("pagination") or {}).get("totalPages", 1) or 1)
                if page >= pages:
                    break
                page += 1
        return found

    async def list_packages(self) -> List[CarePackage]:
        body = await self._request("GET", "/api/care-packages")
        return [CarePackage.from_dict(p) for p in body.get("data") or []]

    async def validate_entry(self, candidate: CandidateEntry) -> ValidationResult:
        body = await self._request("POST", "/api/rota/validate", json=candidate.to_dict())
        return ValidationResult.from_dict(body.get("data") or {})

    # --- commits ------------------------------------------------------------

    async def create_entry(
        self,
        candidate: CandidateEntry,
        idempotency_key: Optional[str] = None,
    ) -> CreateEntryResponse:
        key = idempotency_key or str(uuid.uuid4())
        body = await self._request(
            "POST", "/api/rota",
            json=candidate.to_dict(),
            headers={"Idempotency-Key": key},
        )
        return _entry_response(body)

    async def move_entry(
        self,
        entry_id: str,
        candidate: CandidateEntry,
        idempotency_key: Optional[str] = None,
    ) -> CreateEntryResponse:
        """PUT the new slot onto the existing entry; the service re-checks it without the old slot."""
        key = idempotency_key or str(uuid.uuid4())
        body = await self._request(
            "PUT", f"/api/rota/{entry_id}",
            entity_id=entry_id,
            json={**candidate.to_dict(), "isConfirmed": False},
            headers={"Idempotency-Key": key},
        )
        return _entry_response(body)

    async def confirm_entry(self, entry_id: str) -> ShiftEntry:
        body = await self._request("PATCH", f"/api/rota/{entry_id}/confirm", entity_id=entry_id)
        return ShiftEntry.from_dict(body.get("data") or {})

    async def delete_entry(self, entry_id: str) -> None:
        await self._request("DELETE", f"/api/rota/{entry_id}", entity_id=entry_id)

    async def batch_delete(self, entry_ids: List[str]) -> BatchDeleteResult:
        try:
            body = await self._request("DELETE", "/api/rota/batch", json={"ids": list(entry_ids)})
        except RotaError as e:
            # Older servers refuse the whole batch and list the missing ids
            missing = e.details.get("notFoundIds")
            if type(e) is not RotaError or missing is None:
                raise
            return BatchDeleteResult(
                deleted_count=0,
                errors=[BatchDeleteFailure(id=i, error="Rota entry not found") for i in missing],
            )
        return BatchDeleteResult.from_dict(body.get("data") or {})


def _entry_response(body: Dict[str, Any]) -> CreateEntryResponse:
    data = body.get("data") or {}
    return CreateEntryResponse(
        entry=ShiftEntry.from_dict(data.get("entry") or data),
        violations=[RuleViolation.from_dict(v) for v in body.get("violations") or []],
        warnings=[RuleViolation.from_dict(v) for v in body.get("warnings") or []],
    )


def _json(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {"data": body}
