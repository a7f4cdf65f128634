from __future__ import annotations

import logging

import httpx

from authcore.domain.exceptions import OAuthProviderError


logger = logging.getLogger(__name__)


class OAuthHttpClient:
    """httpx plumbing shared by the authorization-code providers.

    Authorization codes are single use, so nothing here retries.
    """

    name = "oauth"

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout_seconds, transport=self._transport)

    def _request_json(self, method: str, url: str, **kwargs) -> dict | list:
        try:
            with self._client() as client:
                response = client.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("%s_oauth_client: request_failed method=%s url=%s error=%s", self.name, method, url, exc)
            raise OAuthProviderError(f"{self.name} request failed.") from exc
