# integrations/provider_http.py

import json
from typing import Any, Dict, Optional

import requests

from core.errors import ConfigurationMissing, ProviderRejected, ProviderTimeout, ProviderUnreachable
from core.logger import logger


def _error_body(resp: requests.Response) -> Any:
    """Provider error bodies are JSON or plain text depending on the failure."""
    try:
        return resp.json()
    except ValueError:
        return resp.text[:2000]


class ProviderHttpClient:
    """
    Base for the generation provider clients.

    One outbound HTTP call per method, no retries. Non-2xx answers become
    ProviderRejected (with the provider's body), transport failures become
    ProviderUnreachable.
    """

    provider_name = "provider"

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationMissing(f"{self.provider_name} API key not configured")

    def _auth_headers(self) -> Dict[str, str]:
        raise NotImplementedError

    def _request(
        self,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        self.ensure_configured()
        headers = {"Content-Type": "application/json", **self._auth_headers()}

        try:
            resp = self.session.request(
                method,
                url,
                headers=headers,
                data=json.dumps(body) if body is not None else None,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except requests.Timeout as e:
            logger.error(f"[{self.provider_name}] {method} {url} timed out: {e}")
            raise ProviderTimeout(f"{self.provider_name} timed out: {e}") from e
        except requests.RequestException as e:
            logger.error(f"[{self.provider_name}] {method} {url} failed: {e}")
            raise ProviderUnreachable(f"{self.provider_name} unreachable: {e}") from e

        if not resp.ok:
            details = _error_body(resp)
            logger.error(
                f"[{self.provider_name}] {method} {url} -> {resp.status_code}: {details}"
            )
            raise ProviderRejected(
                f"{self.provider_name} API rejected request",
                provider_status=resp.status_code,
                body=details,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise ProviderRejected(
                f"{self.provider_name} returned a non-JSON response",
                provider_status=resp.status_code,
                body=resp.text[:2000],
            ) from e
