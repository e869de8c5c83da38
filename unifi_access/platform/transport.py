"""
HTTPS transport to the UniFi Access controller.

Sends one request, returns the raw body as text. No envelope handling happens
here; every httpx failure is turned into a ``TransportError``.
"""

import json
import logging
import ssl
from typing import Any, Optional

import httpx

from unifi_access.config import ClientSettings, TLSConfig
from unifi_access.constants import TRACE
from unifi_access.errors import (
    NetworkConnectionError,
    RequestTimeoutError,
    ResponseEncodingError,
    SSLCertificateError,
    TransportError,
)
from .log_codes import (
    TRANSPORT_FAILED,
    TRANSPORT_REQUEST,
    TRANSPORT_REQUEST_BODY,
    TRANSPORT_RESPONSE_RAW,
)

logger = logging.getLogger(__name__)

logging.addLevelName(TRACE, "TRACE")


class BearerAuth(httpx.Auth):
    """
    Attaches the controller API token to every request.
    """

    def __init__(self, token: str):
        self.token = token

    def auth_flow(self, request):
        request.headers["Authorization"] = f"Bearer {self.token}"
        yield request


class Transport:
    """
    Async HTTP transport bound to one controller.

    Args:
        settings (ClientSettings): Host, token, port and timeout.
        tls_config (TLSConfig): The resolved certificate trust configuration.
        transport (Optional[httpx.AsyncBaseTransport]): Overrides the network
            layer, mostly for tests.
    """

    def __init__(
        self,
        settings: ClientSettings,
        tls_config: TLSConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings
        self._tls_config = tls_config
        self._http_client = self._create_http_client(transport)

    def _create_http_client(
        self, transport: Optional[httpx.AsyncBaseTransport]
    ) -> httpx.AsyncClient:
        client_kwargs = {
            "base_url": self._settings.base_url,
            "verify": self._tls_config.verify_context,
            "headers": {"Accept": "application/json"},
            "timeout": httpx.Timeout(self._settings.timeout),
            "auth": BearerAuth(self._settings.token),
            "trust_env": False,
        }
        if transport is not None:
            client_kwargs["transport"] = transport

        return httpx.AsyncClient(**client_kwargs)

    @property
    def base_url(self) -> str:
        return self._settings.base_url

    async def send(
        self, method: str, path: str, body: Optional[Any] = None
    ) -> str:
        """
        Issue a single request and return the raw body.

        Args:
            method (str): HTTP method.
            path (str): API path, starting with '/'.
            body (Optional[Any]): JSON serializable request body.

        Returns:
            str: The response body decoded as UTF-8.

        Raises:
            TransportError: On connection, timeout, TLS or decoding failures.
        """
        headers = {}
        content = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            content = json.dumps(body)

        logger.debug(
            TRANSPORT_REQUEST, extra={"method": method, "path": path}
        )
        if content is not None:
            logger.log(TRACE, "%s: %s", TRANSPORT_REQUEST_BODY, content)

        try:
            response = await self._http_client.request(
                method, path, headers=headers, content=content
            )
        except httpx.ConnectError as e:
            logger.debug(TRANSPORT_FAILED, extra={"path": path, "error": str(e)})
            if _is_certificate_error(e):
                raise SSLCertificateError(reason=str(e)) from e
            raise NetworkConnectionError(reason=str(e)) from e
        except httpx.TimeoutException as e:
            logger.debug(TRANSPORT_FAILED, extra={"path": path, "error": str(e)})
            raise RequestTimeoutError(reason=str(e)) from e
        except httpx.HTTPError as e:
            logger.debug(TRANSPORT_FAILED, extra={"path": path, "error": str(e)})
            raise TransportError(reason=str(e)) from e

        try:
            text = response.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ResponseEncodingError(reason=str(e)) from e

        logger.log(TRACE, "%s: %s", TRANSPORT_RESPONSE_RAW, text)
        return text

    async def aclose(self) -> None:
        await self._http_client.aclose()


def _is_certificate_error(exception: Exception) -> bool:
    """
    Check if a connect error was caused by certificate verification.
    """
    cause = exception.__cause__ or exception.__context__
    if isinstance(cause, ssl.SSLCertVerificationError):
        return True

    error_message = str(exception).lower()
    ca_error_indicators = [
        "certificate_verify_failed",
        "unable to get local issuer certificate",
        "self signed certificate",
        "self-signed certificate",
        "certificate has expired",
    ]
    return any(indicator in error_message for indicator in ca_error_indicators)
