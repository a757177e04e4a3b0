# config/settings.py
import os
import sys
from typing import Optional
from dotenv import load_dotenv
from pydantic import ValidationError, Field
from pydantic_settings import BaseSettings
from util.enums import Environment
import logging


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()

_log = logging.getLogger("config.settings")


class Settings(BaseSettings):
    # App
    APP_ENV: str = Field(default=Environment.DEV.value, validation_alias="APP_ENV")
    SERVER_NAME: str = Field(
        default="text-embeddings-inference-server", validation_alias="SERVER_NAME"
    )
    POD_IP: str = Field(default="127.0.0.1", validation_alias="POD_IP")
    HOST: str = Field(default="0.0.0.0", validation_alias="HOST")
    PORT: int = Field(default=8080, validation_alias="PORT")

    # Discovery store (Consul)
    CONSUL_ADDRESS: str = Field(
        default="127.0.0.1:8500", validation_alias="APP_CONSUL_ADDRESS"
    )
    CONSUL_SCHEME: str = Field(default="http", validation_alias="APP_CONSUL_SCHEME")

    # Secret store (Vault)
    VAULT_SCHEME: str = Field(default="http", validation_alias="APP_VAULT_SCHEME")
    VAULT_TOKEN: str = Field(default="", validation_alias="APP_VAULT_TOKEN")
    VAULT_SERVICE_NAME: str = "vault"

    # Model artifacts
    MODEL_ID: str = Field(default="", validation_alias="MODEL_ID")
    MODEL_REVISION: str = Field(default="", validation_alias="MODEL_REVISION")
    S3_ROOT_PREFIX: str = Field(default="huggingface", validation_alias="S3_ROOT_PREFIX")
    S3_ENDPOINT_URL: Optional[str] = Field(default=None, validation_alias="S3_ENDPOINT_URL")
    LOCAL_MODEL_ROOT: str = Field(default="/tmp/", validation_alias="LOCAL_MODEL_ROOT")
    DOWNLOAD_CONCURRENCY: int = Field(default=1, validation_alias="DOWNLOAD_CONCURRENCY")

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=10.0, validation_alias="HTTP_TIMEOUT_SECONDS"
    )

    # Logging knobs
    LOGGER_NAME: str = "model-bootstrap"
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="app.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Missing/invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
