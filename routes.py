from fastapi import FastAPI
from controller.model_controller import model_router


def register_routes(app: FastAPI) -> None:
    """Register & Access control controllers here."""
    app.include_router(model_router)
