import base64
import json
import httpx
import pytest
from core.consul_client import ConsulClient, decode_kv_value
from util.errors import ConfigError, DecodeError, TransportError


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _client(make_settings, handler, **overrides) -> ConsulClient:
    overrides.setdefault("SERVER_NAME", "svc")
    return ConsulClient(make_settings(**overrides), transport=httpx.MockTransport(handler))


def test_construction_parses_address(make_settings):
    client = ConsulClient(make_settings(APP_CONSUL_ADDRESS="192.168.40.73:8500"))
    assert client.host == "192.168.40.73"
    assert client.port == 8500


@pytest.mark.parametrize("address", ["192.168.40.73", "192.168.40.73:port"])
def test_construction_rejects_bad_address(make_settings, address):
    with pytest.raises(ConfigError):
        ConsulClient(make_settings(APP_CONSUL_ADDRESS=address))


def test_gen_check_defaults(make_settings):
    client = ConsulClient(make_settings(APP_CONSUL_ADDRESS="192.168.40.73:8500"))
    check = client.gen_check()
    assert check.id == "text-embeddings-inference-server_127.0.0.1"
    assert check.name == "text-embeddings-inference-server"
    assert check.interval == "5s"
    assert check.timeout == "5s"
    assert check.ttl == "10s"
    assert check.deregister_critical_service_after == "20s"
    assert check.http is None
    assert check.tcp == "127.0.0.1:8080"

    body = check.model_dump(by_alias=True)
    assert body["ID"] == "text-embeddings-inference-server_127.0.0.1"
    assert body["DeregisterCriticalServiceAfter"] == "20s"
    assert body["TCP"] == "127.0.0.1:8080"


@pytest.mark.asyncio
async def test_kv_strips_namespace_and_decodes(make_settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["recurse"] = request.url.params.get("recurse")
        return httpx.Response(
            200,
            json=[
                {"Key": "config/svc/", "Value": None},
                {"Key": "config/svc/access_key", "Value": _b64("AKIA123")},
                {"Key": "config/svc/region", "Value": _b64("cn-north-1")},
            ],
        )

    kv = await _client(make_settings, handler).kv()
    assert seen == {"path": "/v1/kv/config/svc", "recurse": "true"}
    assert kv == {"access_key": "AKIA123", "region": "cn-north-1"}


@pytest.mark.asyncio
async def test_kv_strips_only_leading_namespace(make_settings):
    def handler(request):
        return httpx.Response(
            200, json=[{"Key": "config/svc/nested/config/svc/x", "Value": _b64("v")}]
        )

    kv = await _client(make_settings, handler).kv()
    assert kv == {"nested/config/svc/x": "v"}


@pytest.mark.asyncio
async def test_kv_invalid_base64_fails_whole_batch(make_settings):
    def handler(request):
        return httpx.Response(
            200,
            json=[
                {"Key": "config/svc/good", "Value": _b64("ok")},
                {"Key": "config/svc/bad", "Value": "!!not-base64!!"},
            ],
        )

    with pytest.raises(DecodeError):
        await _client(make_settings, handler).kv()


@pytest.mark.asyncio
async def test_kv_invalid_utf8_is_decode_error(make_settings):
    raw = base64.b64encode(b"\xff\xfe\xfa").decode("ascii")

    def handler(request):
        return httpx.Response(200, json=[{"Key": "config/svc/bin", "Value": raw}])

    with pytest.raises(DecodeError):
        await _client(make_settings, handler).kv()


@pytest.mark.asyncio
async def test_kv_missing_namespace_is_empty(make_settings):
    kv = await _client(make_settings, lambda r: httpx.Response(404)).kv()
    assert kv == {}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"Key": "not-a-list"}),
    ],
)
async def test_kv_transport_failures(make_settings, response):
    with pytest.raises(TransportError):
        await _client(make_settings, lambda r: response).kv()


@pytest.mark.asyncio
async def test_kv_connection_error(make_settings):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransportError):
        await _client(make_settings, handler).kv()


def test_decode_kv_value():
    assert decode_kv_value(_b64("héllo")) == "héllo"
    with pytest.raises(DecodeError):
        decode_kv_value("abc")


@pytest.mark.asyncio
async def test_get_service_returns_addresses_in_order(make_settings):
    def handler(request):
        assert request.url.path == "/v1/health/checks/vault"
        return httpx.Response(
            200,
            json=[
                {"Service": {"ID": "v1", "Service": "vault", "Tags": [], "Address": "10.0.0.2", "Port": 8200}},
                {"Service": {"ID": "v2", "Service": "vault", "Tags": ["b"], "Address": "10.0.0.1", "Port": 8201}},
            ],
        )

    addrs = await _client(make_settings, handler).get_service("vault")
    assert addrs == ["10.0.0.2:8200", "10.0.0.1:8201"]


@pytest.mark.asyncio
async def test_get_service_empty(make_settings):
    addrs = await _client(make_settings, lambda r: httpx.Response(200, json=[])).get_service("vault")
    assert addrs == []


@pytest.mark.asyncio
async def test_get_service_bad_payload(make_settings):
    with pytest.raises(TransportError):
        await _client(
            make_settings, lambda r: httpx.Response(200, json=[{"Service": {}}])
        ).get_service("vault")


@pytest.mark.asyncio
async def test_register_puts_check(make_settings):
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200)

    client = _client(make_settings, handler, POD_IP="10.1.1.1", PORT="9000")
    assert await client.register() is True
    assert seen["method"] == "PUT"
    assert seen["path"] == "/v1/agent/check/register"
    assert seen["body"]["ID"] == "svc_10.1.1.1"
    assert seen["body"]["TCP"] == "10.1.1.1:9000"
    assert seen["body"]["HTTP"] is None


@pytest.mark.asyncio
async def test_register_swallows_failures(make_settings):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    assert await _client(make_settings, handler).register() is False
    assert await _client(make_settings, lambda r: httpx.Response(503)).register() is False
