# core/s3_downloader.py
import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional, Tuple
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from util.constants import S3_PATH_SEPARATOR
from util.errors import ObjectStoreError
from util.timing import timed

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
PART_SUFFIX = ".part"

_S3_ERRORS = (BotoCoreError, ClientError)


class S3TreeDownloader:
    """
    Mirrors every object under `root_prefix + sub_prefix` into `local_root`,
    with `root_prefix` stripped from each key.

    Walk rules:
      - one listing per prefix level (Delimiter="/"), following continuation tokens
      - keys ending in "/" are containers and are recursed into, never fetched
      - the first list/fetch/write failure aborts the whole walk (ObjectStoreError)

    boto3 is blocking, so every store call runs in a worker thread.
    """

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        region: str,
        bucket: str,
        root_prefix: str,
        sub_prefix: str,
        local_root: str = "/tmp/",
        endpoint_url: Optional[str] = None,
        concurrency: int = 1,
        client: Any = None,
    ) -> None:
        if not root_prefix.endswith(S3_PATH_SEPARATOR):
            root_prefix += S3_PATH_SEPARATOR
        self._access_key = access_key
        self._secret_key = secret_key
        self._region = region
        self._endpoint_url = endpoint_url
        self.bucket = bucket
        self.root_prefix = root_prefix
        self.sub_prefix = sub_prefix
        self.local_root = Path(local_root)
        self._concurrency = max(1, int(concurrency))
        self._client = client

    def _s3(self) -> Any:
        if self._client is None:
            # Empty credentials fall through to boto3's default provider chain.
            try:
                self._client = boto3.client(
                    "s3",
                    region_name=self._region or None,
                    endpoint_url=self._endpoint_url or None,
                    aws_access_key_id=self._access_key or None,
                    aws_secret_access_key=self._secret_key or None,
                )
            except (BotoCoreError, ValueError) as e:
                raise ObjectStoreError(self.bucket, e, action="connect") from e
        return self._client

    @property
    def start_prefix(self) -> str:
        prefix = f"{self.root_prefix}{self.sub_prefix}"
        if not prefix.endswith(S3_PATH_SEPARATOR):
            prefix += S3_PATH_SEPARATOR
        return prefix

    def local_path_for(self, key: str) -> Path:
        """
        Map an object key to its local file. The root prefix must be an exact
        leading match, and the result must stay inside local_root.
        """
        if not key.startswith(self.root_prefix):
            raise ObjectStoreError(
                key, ValueError(f"key outside root prefix {self.root_prefix!r}"), action="map"
            )
        rel = key[len(self.root_prefix):]
        root = self.local_root.resolve()
        path = (root / rel).resolve()
        if path == root or not path.is_relative_to(root):
            raise ObjectStoreError(
                key, ValueError(f"path escapes local root {str(root)!r}"), action="map"
            )
        return path

    async def download(self) -> int:
        """Walk the model tree and return how many files were written."""
        prefix = self.start_prefix
        logger.info(
            "s3.download.start bucket=%s prefix=%s conc=%d",
            self.bucket,
            prefix,
            self._concurrency,
        )
        with timed(logger, "s3.download", bucket=self.bucket, prefix=prefix):
            count = await self._walk(prefix)
        logger.info("s3.download.ok prefix=%s files=%d", prefix, count)
        return count

    async def _pages(self, prefix: str) -> AsyncIterator[Tuple[List[str], List[str]]]:
        """Yield (leaf_keys, container_keys) per listing page."""
        client = self._s3()
        token: Optional[str] = None
        while True:
            params = {
                "Bucket": self.bucket,
                "Prefix": prefix,
                "Delimiter": S3_PATH_SEPARATOR,
            }
            if token:
                params["ContinuationToken"] = token
            try:
                resp = await asyncio.to_thread(client.list_objects_v2, **params)
            except _S3_ERRORS as e:
                raise ObjectStoreError(prefix, e, action="list") from e

            leaves: List[str] = []
            containers: List[str] = []
            for obj in resp.get("Contents") or []:
                key = obj.get("Key")
                # a marker object for the prefix itself
                if not key or key == prefix:
                    continue
                if key.endswith(S3_PATH_SEPARATOR):
                    containers.append(key)
                else:
                    leaves.append(key)
            for cp in resp.get("CommonPrefixes") or []:
                key = cp.get("Prefix")
                if key and key != prefix and key not in containers:
                    containers.append(key)
            yield leaves, containers

            if not resp.get("IsTruncated"):
                return
            token = resp.get("NextContinuationToken")
            if not token:
                return

    async def _walk(self, prefix: str) -> int:
        count = 0
        async for leaves, containers in self._pages(prefix):
            count += await self._fetch_all(leaves)
            for sub in containers:
                count += await self._walk(sub)
        return count

    async def _fetch_all(self, keys: List[str]) -> int:
        if self._concurrency == 1:
            for key in keys:
                await self._download_file(key)
            return len(keys)

        sem = asyncio.Semaphore(self._concurrency)

        async def _one(key: str) -> None:
            async with sem:
                await self._download_file(key)

        results = await asyncio.gather(*(_one(k) for k in keys), return_exceptions=True)
        # First failure in listing order wins; the rest are discarded.
        for res in results:
            if isinstance(res, BaseException):
                raise res
        return len(keys)

    async def _download_file(self, key: str) -> None:
        path = self.local_path_for(key)
        await asyncio.to_thread(self._fetch_to_file, key, path)
        logger.info("s3.file.ok key=%s path=%s", key, path)

    def _fetch_to_file(self, key: str, path: Path) -> None:
        client = self._s3()
        try:
            resp = client.get_object(Bucket=self.bucket, Key=key)
        except _S3_ERRORS as e:
            raise ObjectStoreError(key, e, action="fetch") from e

        tmp = path.with_name(path.name + PART_SUFFIX)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as fh:
                shutil.copyfileobj(resp["Body"], fh, CHUNK_SIZE)
            os.replace(tmp, path)
        except _S3_ERRORS as e:
            self._discard(tmp)
            raise ObjectStoreError(key, e, action="fetch") from e
        except OSError as e:
            self._discard(tmp)
            raise ObjectStoreError(key, e, action="write") from e

    @staticmethod
    def _discard(tmp: Path) -> None:
        try:
            tmp.unlink(missing_ok=True)
        except OSError:
            logger.warning("s3.file.cleanup.error path=%s", tmp)
