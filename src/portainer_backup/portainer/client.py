"""HTTP client for the Portainer management API

Wraps ``httpx.Client`` and translates transport and HTTP failures into the
portainer-backup error taxonomy:

- transport failures and timeouts -> RemoteConnectionError
- HTTP 401 -> RemoteAuthorizationError
- any other non-2xx status or malformed payload -> RemoteServerError
"""

from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

import httpx
from pydantic import ValidationError

from portainer_backup.exceptions import (
    RemoteAuthorizationError,
    RemoteConnectionError,
    RemoteServerError,
)
from portainer_backup.logger import Logger, get_logger
from portainer_backup.portainer.models import ServerStatus, Stack, StackFile

STATUS_PATH = "/api/status"
BACKUP_PATH = "/api/backup"
STACKS_PATH = "/api/stacks"

TOKEN_HEADER = "X-API-Key"
CHUNK_SIZE = 64 * 1024


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    if response.status_code == 401:
        raise RemoteAuthorizationError(
            f"Request failed with status code 401 ({response.reason_phrase})",
            details={"url": str(response.request.url)},
        )
    raise RemoteServerError(
        f"Request failed with status code {response.status_code} ({response.reason_phrase})",
        number=response.status_code,
        details={"url": str(response.request.url)},
    )


class PortainerClient:
    """Synchronous Portainer API client

    Usage:
        with PortainerClient("http://portainer:9000", token) as client:
            status = client.status()
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        logger: Optional[Logger] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.logger = logger or get_logger()
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={TOKEN_HEADER: token} if token else {},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def __enter__(self) -> "PortainerClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        self.logger.debug("Portainer request", method=method, path=path)
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise RemoteConnectionError(
                f"Unable to reach portainer server: {exc}",
                details={"url": f"{self.base_url}{path}"},
            ) from exc
        _raise_for_status(response)
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteServerError(
                f"Invalid JSON response from portainer server: {exc}",
                number=response.status_code,
            ) from exc

    def status(self) -> ServerStatus:
        """Server version and instance id (no token required)"""
        response = self._request("GET", STATUS_PATH)
        try:
            return ServerStatus.model_validate(self._json(response))
        except ValidationError as exc:
            raise RemoteServerError(f"Unexpected status payload: {exc}") from exc

    @contextmanager
    def fetch_backup_archive(self, password: str = "") -> Iterator[Iterator[bytes]]:
        """Request a data backup archive and yield its byte chunks

        The response stream is closed when the context exits, whether or not
        the chunks were consumed.

        Args:
            password: Optional archive protection password
        """
        request = self._client.build_request("POST", BACKUP_PATH, json={"password": password or ""})
        self.logger.debug("Portainer request", method="POST", path=BACKUP_PATH)
        try:
            response = self._client.send(request, stream=True)
        except httpx.TransportError as exc:
            raise RemoteConnectionError(
                f"Unable to reach portainer server: {exc}",
                details={"url": f"{self.base_url}{BACKUP_PATH}"},
            ) from exc
        try:
            if not response.is_success:
                response.read()
                _raise_for_status(response)
            yield self._iter_chunks(response)
        finally:
            response.close()

    def _iter_chunks(self, response: httpx.Response) -> Iterator[bytes]:
        try:
            yield from response.iter_bytes(CHUNK_SIZE)
        except httpx.TransportError as exc:
            raise RemoteConnectionError(f"Backup download interrupted: {exc}") from exc

    def list_stacks(self) -> List[Stack]:
        """Stack catalog"""
        payload = self._json(self._request("GET", STACKS_PATH))
        if not isinstance(payload, list):
            raise RemoteServerError("Unexpected stacks payload: expected a list")
        try:
            return [Stack.model_validate(item) for item in payload]
        except ValidationError as exc:
            raise RemoteServerError(f"Unexpected stacks payload: {exc}") from exc

    def fetch_stack_file(self, stack_id: Any) -> str:
        """Raw docker-compose content for one stack"""
        response = self._request("GET", f"{STACKS_PATH}/{stack_id}/file")
        try:
            return StackFile.model_validate(self._json(response)).content
        except ValidationError as exc:
            raise RemoteServerError(f"Unexpected stack file payload: {exc}") from exc
