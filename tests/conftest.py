import io
import pytest
from botocore.exceptions import ClientError
from config.settings import Settings

_ENV_KEYS = (
    "APP_CONSUL_ADDRESS",
    "APP_CONSUL_SCHEME",
    "APP_VAULT_SCHEME",
    "APP_VAULT_TOKEN",
    "POD_IP",
    "SERVER_NAME",
    "PORT",
    "MODEL_ID",
    "MODEL_REVISION",
    "S3_ROOT_PREFIX",
    "S3_ENDPOINT_URL",
    "LOCAL_MODEL_ROOT",
    "DOWNLOAD_CONCURRENCY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_settings():
    def _make(**overrides) -> Settings:
        return Settings(**overrides)

    return _make


class FakeS3:
    """
    In-memory stand-in for a boto3 S3 client: list_objects_v2 with
    Delimiter/ContinuationToken support and get_object returning a file-like Body.
    """

    def __init__(self, objects: dict[str, bytes], page_size: int = 1000, fail_keys=()):
        self.objects = dict(objects)
        self.page_size = page_size
        self.fail_keys = set(fail_keys)
        self.list_calls: list[dict] = []
        self.fetched: list[str] = []

    def list_objects_v2(self, Bucket, Prefix, Delimiter=None, ContinuationToken=None):
        self.list_calls.append(
            {"Prefix": Prefix, "ContinuationToken": ContinuationToken}
        )
        if "list:" + Prefix in self.fail_keys:
            raise ClientError(
                {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "ListObjectsV2"
            )

        entries: list[tuple[str, str]] = []
        seen_prefixes = set()
        for key in sorted(self.objects):
            if not key.startswith(Prefix):
                continue
            rest = key[len(Prefix):]
            if Delimiter and Delimiter in rest:
                cp = Prefix + rest[: rest.index(Delimiter) + 1]
                if cp not in seen_prefixes:
                    seen_prefixes.add(cp)
                    entries.append(("prefix", cp))
            else:
                entries.append(("key", key))

        start = int(ContinuationToken or 0)
        page = entries[start : start + self.page_size]
        truncated = start + self.page_size < len(entries)
        resp = {
            "Contents": [{"Key": k} for kind, k in page if kind == "key"],
            "CommonPrefixes": [{"Prefix": k} for kind, k in page if kind == "prefix"],
            "IsTruncated": truncated,
        }
        if truncated:
            resp["NextContinuationToken"] = str(start + self.page_size)
        return resp

    def get_object(self, Bucket, Key):
        self.fetched.append(Key)
        if Key in self.fail_keys:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "gone"}}, "GetObject"
            )
        return {"Body": io.BytesIO(self.objects[Key])}


@pytest.fixture
def fake_s3_factory():
    return FakeS3
