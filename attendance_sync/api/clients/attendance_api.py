"""
Outline
fetch_attendance_for_date()
upload_check_in()
upload_check_out()
"""

from typing import Any, Optional, Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from attendance_sync.core.exceptions import RemoteValidationError, TransportError
from attendance_sync.core.logging import get_logger
from attendance_sync.core.retry import NO_RETRY, RetryPolicy, call_with_retry
from attendance_sync.models.attendance import AttendanceResponse

logger = get_logger(__name__)


class RemoteAttendanceApi(Protocol):
    """Collaborator interface consumed by the resolver and the sync orchestrator."""

    async def fetch_attendance_for_date(
        self, employee_id: str, date: str
    ) -> Optional[AttendanceResponse]: ...

    async def upload_check_in(
        self,
        employee_id: str,
        latitude: float,
        longitude: float,
        scan_type: str,
        timestamp: int,
        record_id: str,
    ) -> str: ...

    async def upload_check_out(
        self,
        employee_id: str,
        latitude: float,
        longitude: float,
        scan_type: str,
        timestamp: int,
        record_id: str,
    ) -> str: ...


def _response_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("detail", "message", "error"):
            if body.get(key):
                return str(body[key])
    return str(body)


class AttendanceApiClient:
    """
    Client for the remote attendance service.

    Network failures, timeouts, 5xx, 429 and auth failures raise
    TransportError so the caller keeps the record for a later pass. Any other
    4xx means the server refused the punch and raises RemoteValidationError.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        token: str = "",
        retry_policy: RetryPolicy = NO_RETRY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the attendance API client.

        Args:
            base_url: Base URL of the attendance API, e.g. https://host/api/
            timeout: Request timeout in seconds
            token: Bearer token sent with every request
            retry_policy: Backoff policy applied to transport failures
            transport: Optional httpx transport, used to stub the network in tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token = token
        self.retry_policy = retry_policy
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._headers(),
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Error calling {method} {path}: {str(e)}")
            raise TransportError(f"Network error on {method} {path}: {e}") from e

        if response.status_code >= 500 or response.status_code in (401, 403, 408, 429):
            detail = _response_detail(response)
            logger.warning(f"{method} {path} failed (status: {response.status_code}): {detail}")
            raise TransportError(f"{method} {path} returned {response.status_code}: {detail}")
        return response

    async def fetch_attendance_for_date(
        self, employee_id: str, date: str
    ) -> Optional[AttendanceResponse]:
        """
        Retrieve the authoritative attendance record of an employee for a date.

        Returns None when the server has no record for that date.
        """

        async def operation() -> Optional[AttendanceResponse]:
            response = await self._request(
                "GET",
                "/attendance/records/",
                params={"employee_id": employee_id, "date": date},
            )
            if response.status_code == 404:
                logger.info(f"No server attendance for employee {employee_id} on {date}")
                return None
            if response.status_code != 200:
                raise RemoteValidationError(_response_detail(response), response.status_code)

            try:
                body = response.json()
                if isinstance(body, dict) and "data" in body:
                    body = body["data"]
                if isinstance(body, list):
                    body = body[0] if body else None
                if not body:
                    return None
                record = AttendanceResponse.model_validate(body)
            except (ValueError, PydanticValidationError) as e:
                logger.warning(
                    f"Malformed attendance record for employee {employee_id} on {date}: {e}"
                )
                raise RemoteValidationError(
                    f"Malformed attendance record from server: {e}", response.status_code
                ) from e
            logger.info(f"Retrieved server attendance for employee {employee_id} on {date}")
            return record

        return await call_with_retry(
            operation, self.retry_policy, f"fetch attendance {employee_id}/{date}"
        )

    async def _upload(self, method: str, path: str, payload: dict[str, Any]) -> str:
        async def operation() -> str:
            response = await self._request(method, path, json=payload)
            if response.status_code not in (200, 201):
                detail = _response_detail(response)
                logger.warning(f"{method} {path} rejected (status: {response.status_code}): {detail}")
                raise RemoteValidationError(detail, response.status_code)
            return _response_detail(response)

        return await call_with_retry(operation, self.retry_policy, f"{method} {path}")

    async def upload_check_in(
        self,
        employee_id: str,
        latitude: float,
        longitude: float,
        scan_type: str,
        timestamp: int,
        record_id: str,
    ) -> str:
        payload = {
            "employee_id": employee_id,
            "check_in_latitude": latitude,
            "check_in_longitude": longitude,
            "scan_type": scan_type,
            "client_timestamp": timestamp,
            "offline_id": record_id,
        }
        detail = await self._upload("POST", "/attendance/check-in/", payload)
        logger.info(f"Uploaded check-in {record_id} for employee {employee_id}")
        return detail

    async def upload_check_out(
        self,
        employee_id: str,
        latitude: float,
        longitude: float,
        scan_type: str,
        timestamp: int,
        record_id: str,
    ) -> str:
        payload = {
            "employee_id": employee_id,
            "check_out_latitude": latitude,
            "check_out_longitude": longitude,
            "scan_type": scan_type,
            "client_timestamp": timestamp,
            "offline_id": record_id,
        }
        detail = await self._upload("PUT", "/attendance/check-out/", payload)
        logger.info(f"Uploaded check-out {record_id} for employee {employee_id}")
        return detail
