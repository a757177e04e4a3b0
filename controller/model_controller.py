# controller/model_controller.py
from fastapi import APIRouter, Depends, status
from controller.controller_dependencies import get_bootstrap_result
from config.settings import settings
from core.entities import BootstrapResult
from model.api import HealthResponse, ModelInfoResponse
from util.constants import DEFAULT_MODEL_REVISION, InternalURIs
import os

model_router = APIRouter()


@model_router.get(
    InternalURIs.HEALTHZ, response_model=HealthResponse, status_code=status.HTTP_200_OK
)
async def healthz() -> HealthResponse:
    return HealthResponse(ok=True)


@model_router.get(
    InternalURIs.MODEL, response_model=ModelInfoResponse, status_code=status.HTTP_200_OK
)
async def model_info(
    result: BootstrapResult | None = Depends(get_bootstrap_result),
) -> ModelInfoResponse:
    path = result.model_path if result else None
    return ModelInfoResponse(
        modelId=settings.MODEL_ID,
        modelRevision=settings.MODEL_REVISION or DEFAULT_MODEL_REVISION,
        modelPath=path,
        ready=bool(path and os.path.isdir(path)),
    )
