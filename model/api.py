from pydantic import BaseModel


class HealthResponse(BaseModel):
    ok: bool


class ModelInfoResponse(BaseModel):
    modelId: str
    modelRevision: str
    modelPath: str | None = None
    ready: bool
