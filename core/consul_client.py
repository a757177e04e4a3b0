# core/consul_client.py
import base64
import binascii
import logging
from typing import Any, Optional
import httpx
from pydantic import TypeAdapter, ValidationError
from config.settings import Settings, settings as default_settings
from model.consul import AgentServiceCheck, ConsulKV, HealthService
from model.endpoint import ServiceEndpoint
from util.constants import ExternalURIs, KV_NAMESPACE
from util.errors import DecodeError, TransportError

logger = logging.getLogger(__name__)

_KV_LIST = TypeAdapter(list[ConsulKV])
_HEALTH_LIST = TypeAdapter(list[HealthService])


def decode_kv_value(raw: str) -> str:
    """
    Consul returns KV values base64 encoded. Strict on both layers:
    invalid base64 or non UTF-8 bytes raise DecodeError.
    """
    try:
        data = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Error decoding base64: {e}") from e
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"Error decoding utf8: {e}") from e


class ConsulClient:
    """
    Client role against the Consul HTTP API: KV config, health lookups and
    TCP check registration for this process.

    Construction parses CONSUL_ADDRESS and raises ConfigError if it is malformed.
    """

    def __init__(
        self,
        settings: Settings = default_settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._endpoint = ServiceEndpoint.parse(settings.CONSUL_ADDRESS)
        self._base_url = self._endpoint.base_url(settings.CONSUL_SCHEME)
        self._timeout = httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS)
        self._transport = transport

    @property
    def host(self) -> str:
        return self._endpoint.host

    @property
    def port(self) -> int:
        return self._endpoint.port

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        )

    async def _get_json(self, path: str, params: Optional[dict] = None) -> Any:
        try:
            async with self._client() as client:
                res = await client.get(path, params=params)
                res.raise_for_status()
                return res.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Unexpected status {e.response.status_code} for {path}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Error getting {path}: {e}") from e
        except ValueError as e:
            raise TransportError(f"Error parsing json from {path}: {e}") from e

    def gen_check(self) -> AgentServiceCheck:
        s = self._settings
        return AgentServiceCheck(
            id=f"{s.SERVER_NAME}_{s.POD_IP}",
            name=s.SERVER_NAME,
            interval="5s",
            timeout="5s",
            ttl="10s",
            deregister_critical_service_after="20s",
            http=None,
            tcp=f"{s.POD_IP}:{s.PORT}",
        )

    async def register(self) -> bool:
        """Best-effort upsert of this process's TCP check. Never raises."""
        check = self.gen_check()
        body = check.model_dump(by_alias=True)
        try:
            async with self._client() as client:
                res = await client.put(ExternalURIs.CONSUL_CHECK_REGISTER, json=body)
        except httpx.HTTPError as e:
            logger.warning("consul.register.error id=%s err=%s", check.id, e)
            return False

        if res.status_code // 100 != 2:
            logger.warning(
                "consul.register.bad_status id=%s status=%d", check.id, res.status_code
            )
            return False

        logger.info("consul.register.ok id=%s tcp=%s", check.id, check.tcp)
        return True

    async def kv(self) -> dict[str, str]:
        service = self._settings.SERVER_NAME
        path = ExternalURIs.CONSUL_KV_CONFIG.format(service=service)
        try:
            async with self._client() as client:
                res = await client.get(path, params={"recurse": "true"})
        except httpx.HTTPError as e:
            raise TransportError(f"Error getting {path}: {e}") from e

        # Consul answers 404 when nothing lives under the prefix.
        if res.status_code == 404:
            logger.info("consul.kv.empty service=%s", service)
            return {}
        if res.status_code // 100 != 2:
            raise TransportError(f"Unexpected status {res.status_code} for {path}")

        try:
            entries = _KV_LIST.validate_json(res.content)
        except ValidationError as e:
            raise TransportError(f"Error parsing json from {path}: {e}") from e

        namespace = KV_NAMESPACE.format(service=service)
        out: dict[str, str] = {}
        for entry in entries:
            if entry.value is None:
                # folder marker, nothing to decode
                continue
            key = entry.key
            if key.startswith(namespace):
                key = key[len(namespace):]
            out[key] = decode_kv_value(entry.value)

        logger.info("consul.kv.ok service=%s keys=%d", service, len(out))
        return out

    async def get_service(self, name: str) -> list[str]:
        path = ExternalURIs.CONSUL_HEALTH_CHECKS.format(service=name)
        payload = await self._get_json(path)
        try:
            services = _HEALTH_LIST.validate_python(payload)
        except ValidationError as e:
            raise TransportError(f"Error parsing json from {path}: {e}") from e

        addrs = [f"{s.service.address}:{s.service.port}" for s in services]
        logger.info("consul.service.ok name=%s count=%d", name, len(addrs))
        return addrs
