# ABOUTME: HTTP client for the local nginx config applier
# ABOUTME: Posts rendered config records and reports delivery failures

"""
Config applier HTTP client.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module delivers rendered nginx configs to the config applier, a local
HTTP listener that writes them into the proxy and reloads it:

    POST http://localhost:3033/api/v1/nginx/conf
    Content-Type: application/json

    {"namespace": "store", "ingress": "shop", "typeEvent": "CREATE",
     "config": "server {\\n   listen 8080;\\n..."}

=============================================================================
DELIVERY SEMANTICS
=============================================================================

- One attempt per config. No retry, no backoff.
- No timeout unless one is configured.
- 2xx response: logged as success.
- Any other status: logged as a warning. The config still counts as
  sent and the status is returned to the caller.
- Transport failure (connection refused, DNS, reset): DispatchError is
  raised. The caller logs it and moves on to the next ingress.
- The response body is never read beyond the status code.

=============================================================================
CONTEXT MANAGER
=============================================================================

    with ConfigApplierClient("http://localhost:3033") as applier:
        applier.send(config)

The underlying httpx.Client connection pool is created on enter and closed
on exit, even when an exception escapes the block.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

if TYPE_CHECKING:
    from sidra_ingress.renderer import NginxConfig

logger = structlog.get_logger(__name__)


class DispatchError(Exception):
    """
    A config could not be delivered to the applier.

    Raised only for transport-level failures. HTTP error statuses are not
    DispatchErrors.
    """

    def __init__(self, ingress: str, message: str) -> None:
        self.ingress = ingress
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"Error sending nginx config for ingress {self.ingress}: {self.message}"


class ConfigApplierClient:
    """
    Synchronous client for the config applier.

    LIFECYCLE:
    ----------
    1. Create client: applier = ConfigApplierClient(base_url)
    2. Enter context: with applier: ...
    3. Send configs: applier.send(config)
    4. Exit context: HTTP connections closed
    """

    def __init__(
        self,
        base_url: str,
        path: str = "/api/v1/nginx/conf",
        timeout: float | None = None,
    ) -> None:
        """
        Initialize config applier client.

        Args:
            base_url: Applier base URL, e.g. "http://localhost:3033"
            path: Path configs are POSTed to
            timeout: Request timeout in seconds. None waits indefinitely.
        """
        self._base_url = base_url
        self._path = path
        self._timeout = timeout
        self._client: httpx.Client | None = None

    def __enter__(self) -> ConfigApplierClient:
        self._client = httpx.Client(
            base_url=self._base_url,
            headers={"Content-Type": "application/json"},
            timeout=self._timeout,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}{self._path}"

    def send(self, config: NginxConfig) -> int:
        """
        POST one config record to the applier.

        Args:
            config: The CREATE or DELETE record to deliver

        Returns:
            The HTTP status code of the response.

        Raises:
            DispatchError: If the applier cannot be reached.
            RuntimeError: If client not initialized (forgot `with`)
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'with' context manager.")

        log = logger.bind(
            ingress=config.ingress,
            namespace=config.namespace,
            type_event=config.type_event,
        )
        log.debug("Sending nginx config", endpoint=self.endpoint)

        try:
            response = self._client.post(self._path, json=config.to_payload())
        except httpx.RequestError as e:
            log.debug("HTTP POST request failed", error=str(e))
            raise DispatchError(config.ingress, str(e)) from e

        if response.is_success:
            log.info("Successfully sent nginx config", status=response.status_code)
        else:
            log.warning("Received non-OK status code", status=response.status_code)
        return response.status_code
