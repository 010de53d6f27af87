"""HTTP gateway to the remote chat, transcription and speech services.

Every call either returns a usable result or raises :class:`GatewayError`.
Non-success statuses carry the server's ``error`` message when the body has
one; connection failures become ``TRANSPORT`` errors. Nothing is retried.
"""

import logging

import httpx

from dijiang.config import API_BASE_URL, REQUEST_TIMEOUT
from dijiang.gateway.types import GatewayError, GatewayErrorKind

logger = logging.getLogger(__name__)


class ServiceGateway:
    """Request/response wrapper around the three remote services."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url or API_BASE_URL
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        """Create the shared HTTP client."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        logger.info("Service gateway ready (%s)", self._base_url)

    async def stop(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def post_json(self, endpoint: str, payload: dict) -> dict:
        """POST a JSON body and return the parsed JSON object."""
        response = await self._send(endpoint, json=payload)
        return self._parse_json(endpoint, response)

    async def post_json_raw(self, endpoint: str, payload: dict) -> httpx.Response:
        """POST a JSON body and return the successful response unparsed."""
        return await self._send(endpoint, json=payload)

    async def post_multipart(
        self,
        endpoint: str,
        *,
        field: str,
        filename: str,
        data: bytes,
        content_type: str,
    ) -> dict:
        """Upload *data* as a single named file field and return parsed JSON."""
        response = await self._send(
            endpoint, files={field: (filename, data, content_type)}
        )
        return self._parse_json(endpoint, response)

    async def _send(self, endpoint: str, **kwargs) -> httpx.Response:
        if self._client is None:
            await self.start()
        try:
            response = await self._client.post(endpoint, **kwargs)
        except httpx.DecodingError as exc:
            logger.warning("POST %s returned an undecodable body: %s", endpoint, exc)
            raise GatewayError(
                GatewayErrorKind.MALFORMED_RESPONSE,
                f"Service returned an undecodable response: {exc}",
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("POST %s failed before a response: %s", endpoint, exc)
            raise GatewayError(
                GatewayErrorKind.TRANSPORT, f"Could not reach service: {exc}"
            ) from exc

        if response.is_success:
            return response

        message = _server_message(response) or (
            f"Request failed with status {response.status_code}"
        )
        logger.warning(
            "POST %s rejected with status %d: %s",
            endpoint,
            response.status_code,
            message,
        )
        raise GatewayError(
            GatewayErrorKind.SERVICE_REJECTED,
            message,
            status_code=response.status_code,
        )

    @staticmethod
    def _parse_json(endpoint: str, response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError as exc:
            raise GatewayError(
                GatewayErrorKind.MALFORMED_RESPONSE,
                "Service returned a response that is not JSON",
                status_code=response.status_code,
            ) from exc
        if not isinstance(body, dict):
            raise GatewayError(
                GatewayErrorKind.MALFORMED_RESPONSE,
                "Service returned an unexpected response body",
                status_code=response.status_code,
            )
        logger.debug("POST %s -> %d", endpoint, response.status_code)
        return body


def _server_message(response: httpx.Response) -> str | None:
    """Pull a human-readable error out of a JSON error body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    for key in ("error", "message"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, dict) and isinstance(value.get("message"), str):
            return value["message"]
    return None
