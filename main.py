from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from framework.config import settings
from framework.middleware.logging_md import LoggingMiddleware
from framework.logging.logger import LogConfig
from framework.database.manager import DatabaseManager
from framework.exceptions.handler import AuthenticationError, BusinessException, global_exception_handler
from apps.identity.api.router import router as identity_router
import apps.models  # noqa: F401  (registers every table on SQLModel.metadata)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Unknown provider or malformed connection settings fail here, before serving
    manager = DatabaseManager.get_instance()
    await manager.db.connect()
    await manager.db.create_schema()
    logger.info(f"{settings.APP_NAME} started with {manager.db.provider_name} provider")
    yield
    await DatabaseManager.reset_instance()
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

# Initialize logging configuration
LogConfig.setup_logging()

# Register global exception handlers
app.add_exception_handler(BusinessException, global_exception_handler)
app.add_exception_handler(AuthenticationError, global_exception_handler)
app.add_exception_handler(RequestValidationError, global_exception_handler)
app.add_exception_handler(SQLAlchemyError, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.add_middleware(LoggingMiddleware)

app.include_router(
    identity_router,
    prefix=settings.API_V1_AUTH_PREFIX,
    tags=["Identity"]
)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
