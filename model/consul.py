from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class AgentServiceCheck(BaseModel):
    """Body of PUT /v1/agent/check/register."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="ID")
    name: str = Field(alias="Name")
    interval: str = Field(alias="Interval")
    timeout: str = Field(alias="Timeout")
    ttl: str = Field(alias="TTL")
    deregister_critical_service_after: str = Field(
        alias="DeregisterCriticalServiceAfter"
    )
    http: Optional[str] = Field(default=None, alias="HTTP")
    tcp: Optional[str] = Field(default=None, alias="TCP")


class ConsulKV(BaseModel):
    key: str = Field(alias="Key")
    # Folder entries (keys ending in "/") come back with a null value.
    value: Optional[str] = Field(default=None, alias="Value")


class ServiceEntry(BaseModel):
    id: str = Field(alias="ID")
    service: str = Field(alias="Service")
    tags: list[str] | None = Field(default=None, alias="Tags")
    address: str = Field(alias="Address")
    port: int = Field(alias="Port")


class HealthService(BaseModel):
    service: ServiceEntry = Field(alias="Service")
