from abc import ABC, abstractmethod

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from directory_app.exceptions import TransportError
from directory_app.listings.models import DuplicateHandling
from directory_app.listings.schemas import BatchResponse, BatchResults, ImportRow

logger = structlog.get_logger()

IMPORT_PATH = "/api/v1/listings/import"
IMPORTS_PATH = "/api/v1/listings/imports"
LOGIN_PATH = "/api/v1/auth/login"
DEFAULT_TIMEOUT = 120.0


class BatchSubmitter(ABC):
    @abstractmethod
    async def submit_batch(
        self,
        rows: list[ImportRow],
        *,
        skip_logos: bool,
        duplicate_handling: DuplicateHandling,
        import_id: str | None = None,
    ) -> BatchResults: ...


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or f"HTTP {response.status_code}")
    return f"HTTP {response.status_code}"


class ImportClient(BatchSubmitter):
    """Talks to the listing import service over HTTP."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "ImportClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def login(self, username: str, password: str) -> str:
        response = await self._request(
            "POST", LOGIN_PATH, json={"username": username, "password": password}
        )
        self._token = response.json()["access_token"]
        return self._token

    async def create_import(self, file_name: str, total_rows: int) -> str:
        response = await self._request(
            "POST", IMPORTS_PATH, json={"file_name": file_name, "total_rows": total_rows}
        )
        return response.json()["id"]

    async def submit_batch(
        self,
        rows: list[ImportRow],
        *,
        skip_logos: bool,
        duplicate_handling: DuplicateHandling,
        import_id: str | None = None,
    ) -> BatchResults:
        body: dict = {
            "rows": [row.model_dump() for row in rows],
            "skipLogos": skip_logos,
            "duplicateHandling": str(duplicate_handling),
        }
        if import_id is not None:
            body["importId"] = import_id

        response = await self._request("POST", IMPORT_PATH, json=body)
        try:
            data = response.json()
        except ValueError as exc:
            raise TransportError(f"Unexpected response from import service: {exc}") from exc
        if isinstance(data, dict) and data.get("success") is False:
            message = str(data.get("error") or "Import service reported failure")
            logger.warning("import_batch_refused", error=message)
            raise TransportError(message, status_code=response.status_code)
        try:
            payload = BatchResponse.model_validate(data)
        except PydanticValidationError as exc:
            raise TransportError(f"Unexpected response from import service: {exc}") from exc
        if not payload.success:
            raise TransportError("Import service reported failure")
        return payload.results

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("import_request_failed", path=path, error=str(exc))
            message = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
            raise TransportError(message) from exc

        if not response.is_success:
            message = _error_message(response)
            logger.warning(
                "import_request_rejected", path=path, status=response.status_code, error=message
            )
            raise TransportError(message, status_code=response.status_code)
        return response
