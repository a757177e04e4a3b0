# core/vault_client.py
import logging
from typing import Optional
import httpx
from pydantic import ValidationError
from config.settings import Settings, settings as default_settings
from model.endpoint import ServiceEndpoint
from model.vault import VaultSecretResponse
from util.constants import ExternalURIs
from util.errors import AuthError, TransportError

logger = logging.getLogger(__name__)


def _auth_headers(token: str) -> dict[str, str]:
    """
    Build the bearer header. Header values must be printable ASCII with no
    line breaks; anything else raises AuthError before a request is made.
    An empty token sends no header (anonymous per store policy).
    """
    if not token:
        return {}
    try:
        token.encode("ascii")
    except UnicodeEncodeError as e:
        raise AuthError(f"Error parsing token: {e}") from e
    if not token.isprintable():
        raise AuthError("Error parsing token: contains control characters")
    return {"Authorization": f"Bearer {token}"}


class VaultClient:
    """Reads this service's secret namespace from Vault."""

    def __init__(
        self,
        endpoint: ServiceEndpoint,
        settings: Settings = default_settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._endpoint = endpoint
        self._service = settings.SERVER_NAME
        self._token: str = settings.VAULT_TOKEN
        self._base_url = endpoint.base_url(settings.VAULT_SCHEME)
        self._timeout = httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS)
        self._transport = transport

    async def secret(self) -> dict[str, str]:
        headers = _auth_headers(self._token)
        path = ExternalURIs.VAULT_SECRET.format(service=self._service)

        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                res = await client.get(path, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"Error getting {path}: {e}") from e

        if res.status_code // 100 != 2:
            raise TransportError(f"Unexpected status {res.status_code} for {path}")

        try:
            body = VaultSecretResponse.model_validate_json(res.content)
        except ValidationError as e:
            raise TransportError(f"Error parsing json from {path}: {e}") from e

        logger.info(
            "vault.secret.ok host=%s keys=%d", self._endpoint, len(body.data)
        )
        return body.data
