# main.py
import routes
from contextlib import asynccontextmanager
from util.enums import Environment, Color
from fastapi import FastAPI
from config.settings import settings
from service.bootstrap_service import BootstrapService
from util.errors import ConfigError
from util.logger import init_logger


@asynccontextmanager
async def lifespan(fastApi: FastAPI):
    logger = init_logger()
    print(f"{Color.GREEN}Bootstrapping...{Color.RESET}")
    try:
        service = BootstrapService(settings)
    except ConfigError as e:
        logger.critical("bootstrap.config.error err=%s", e)
        raise

    fastApi.state.bootstrap = await service.run(
        settings.MODEL_ID, settings.MODEL_REVISION
    )
    print(f"{Color.BLUE}Server Started{Color.RESET} model={fastApi.state.bootstrap.model_path}")

    try:
        yield
    finally:
        print(f"{Color.RED}Server Shutdown{Color.RESET}")


app: FastAPI = FastAPI(lifespan=lifespan)

routes.register_routes(app)

if __name__ == "__main__":
    import uvicorn

    reload = settings.APP_ENV == Environment.DEV
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=reload)
