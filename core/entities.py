from dataclasses import dataclass, field
from typing import Dict, List, Optional
from util.enums import BootstrapState


@dataclass
class ObjectStoreCredentials:
    access_key: str
    secret_key: str
    region: str
    bucket: str

    @classmethod
    def from_config(cls, config: Dict[str, str]) -> "ObjectStoreCredentials":
        # Missing keys are not fatal here; the store call will fail and get logged.
        return cls(
            access_key=config.get("accessKeyID", ""),
            secret_key=config.get("secretAccessKey", ""),
            region=config.get("region", ""),
            bucket=config.get("bucket", ""),
        )


@dataclass
class BootstrapResult:
    """
    Outcome of one bootstrap run. model_path is always set, whether or not
    the download succeeded.
    """

    model_path: str
    state: BootstrapState = BootstrapState.INIT
    files_downloaded: Optional[int] = None
    registered: bool = False
    warnings: List[str] = field(default_factory=list)
