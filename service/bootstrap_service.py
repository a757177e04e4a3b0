# service/bootstrap_service.py
import logging
import posixpath
from typing import Callable, Dict, Optional
from config.settings import Settings, settings as default_settings
from core.consul_client import ConsulClient
from core.entities import BootstrapResult, ObjectStoreCredentials
from core.s3_downloader import S3TreeDownloader
from core.vault_client import VaultClient
from model.endpoint import ServiceEndpoint
from util.constants import DEFAULT_MODEL_REVISION
from util.enums import BootstrapState
from util.errors import BootstrapError
from util.timing import timed

logger = logging.getLogger(__name__)

VaultFactory = Callable[[ServiceEndpoint], VaultClient]
DownloaderFactory = Callable[[ObjectStoreCredentials, str], S3TreeDownloader]


class BootstrapService:
    """
    Startup sequence, run once before serving:

      INIT -> KV_FETCHED -> SECRET_RESOLVED -> DOWNLOADED -> REGISTERED

    Every step after construction is best-effort: failures are logged and
    replaced with a default so the server still starts. Only a malformed
    discovery-store address (ConfigError, raised by ConsulClient) is fatal.
    """

    def __init__(
        self,
        settings: Settings = default_settings,
        consul: Optional[ConsulClient] = None,
        vault_factory: Optional[VaultFactory] = None,
        downloader_factory: Optional[DownloaderFactory] = None,
    ) -> None:
        self._settings = settings
        self._consul = consul if consul is not None else ConsulClient(settings)
        self._vault_factory = vault_factory or self._default_vault
        self._downloader_factory = downloader_factory or self._default_downloader

    def _default_vault(self, endpoint: ServiceEndpoint) -> VaultClient:
        return VaultClient(endpoint, self._settings)

    def _default_downloader(
        self, creds: ObjectStoreCredentials, sub_prefix: str
    ) -> S3TreeDownloader:
        s = self._settings
        return S3TreeDownloader(
            access_key=creds.access_key,
            secret_key=creds.secret_key,
            region=creds.region,
            bucket=creds.bucket,
            root_prefix=s.S3_ROOT_PREFIX,
            sub_prefix=sub_prefix,
            local_root=s.LOCAL_MODEL_ROOT,
            endpoint_url=s.S3_ENDPOINT_URL,
            concurrency=s.DOWNLOAD_CONCURRENCY,
        )

    async def start(self, model_id: str, model_revision: str) -> str:
        """Run the whole sequence and return the local model directory."""
        result = await self.run(model_id, model_revision)
        return result.model_path

    async def run(self, model_id: str, model_revision: str) -> BootstrapResult:
        revision = model_revision or DEFAULT_MODEL_REVISION
        sub_prefix = f"{model_id}/{revision}"
        result = BootstrapResult(
            model_path=posixpath.join(self._settings.LOCAL_MODEL_ROOT, sub_prefix)
        )
        logger.info("bootstrap.start model=%s revision=%s", model_id, revision)

        with timed(logger, "bootstrap", model=model_id, revision=revision):
            config = await self._load_kv(result)
            result.state = BootstrapState.KV_FETCHED

            secrets = await self._load_secrets(result)
            if secrets is not None:
                # Secret values win over discovery values.
                config.update(secrets)
            result.state = BootstrapState.SECRET_RESOLVED

            creds = ObjectStoreCredentials.from_config(config)
            result.files_downloaded = await self._download(creds, sub_prefix, result)
            result.state = BootstrapState.DOWNLOADED

            result.registered = await self._consul.register()
            result.state = BootstrapState.REGISTERED

        logger.info(
            "bootstrap.done path=%s files=%s registered=%s warnings=%d",
            result.model_path,
            result.files_downloaded,
            result.registered,
            len(result.warnings),
        )
        return result

    async def _load_kv(self, result: BootstrapResult) -> Dict[str, str]:
        try:
            return await self._consul.kv()
        except BootstrapError as e:
            logger.warning("bootstrap.kv.error err=%s", e)
            result.warnings.append(f"kv: {e}")
            return {}

    async def _load_secrets(self, result: BootstrapResult) -> Optional[Dict[str, str]]:
        """None means the secret store was skipped; the caller keeps its map."""
        name = self._settings.VAULT_SERVICE_NAME
        try:
            addrs = await self._consul.get_service(name)
        except BootstrapError as e:
            logger.warning("bootstrap.vault.lookup.error err=%s", e)
            result.warnings.append(f"vault lookup: {e}")
            return None

        if not addrs:
            logger.info("bootstrap.vault.absent service=%s", name)
            return None

        try:
            endpoint = ServiceEndpoint.parse(addrs[0])
            return await self._vault_factory(endpoint).secret()
        except BootstrapError as e:
            logger.warning("bootstrap.vault.secret.error addr=%s err=%s", addrs[0], e)
            result.warnings.append(f"vault secret: {e}")
            return None

    async def _download(
        self, creds: ObjectStoreCredentials, sub_prefix: str, result: BootstrapResult
    ) -> Optional[int]:
        try:
            downloader = self._downloader_factory(creds, sub_prefix)
            return await downloader.download()
        except BootstrapError as e:
            logger.warning("bootstrap.download.error bucket=%s err=%s", creds.bucket, e)
            result.warnings.append(f"download: {e}")
            return None


async def start_app(
    model_id: str, model_revision: str, settings: Settings = default_settings
) -> str:
    """Process entry point. Raises ConfigError if the discovery address is malformed."""
    return await BootstrapService(settings).start(model_id, model_revision)
