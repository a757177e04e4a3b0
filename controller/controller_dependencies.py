from fastapi import Request
from core.entities import BootstrapResult


def get_bootstrap_result(request: Request) -> BootstrapResult | None:
    # Set by the lifespan hook once the bootstrap run has finished.
    return getattr(request.app.state, "bootstrap", None)
