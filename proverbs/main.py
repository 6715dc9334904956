import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from . import db
from . import router
from .core import config
from .core.errors import InvalidArgument, StorageError, Unauthorized
from .db import mongodb
from .repositories import MongoRatingsRepository, SQLRatingsRepository

logger = logging.getLogger(__name__)

# create the SQL schema on startup, close whichever store connection was opened
@asynccontextmanager
async def lifespan(app: FastAPI):
    if db.engine is not None:
        await db.create_tables()
    yield
    if db.engine is not None:
        await db.close_session()
    mongodb.close_mongoDB()

def create_ratings_repository(settings):
    """Select the ratings backend once, at process start."""
    if settings.RATINGS_BACKEND == "mongo":
        mongodb.init_mongoDB(settings)
        collection = mongodb.get_db().get_collection(mongodb.RATINGS_COLLECTION)
        mongodb.ensure_rating_indexes(collection)
        return MongoRatingsRepository(collection, server_aggregate=settings.MONGO_SERVER_AGGREGATE)

    db.init_db(settings)
    return SQLRatingsRepository(db.get_session_factory())

def register_exception_handlers(app: FastAPI):

    @app.exception_handler(InvalidArgument)
    async def invalid_argument_handler(request: Request, exc: InvalidArgument):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "Malformed request"})

    @app.exception_handler(Unauthorized)
    async def unauthorized_handler(request: Request, exc: Unauthorized):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": exc.message},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": exc.message})

# ฟังก์ชันสร้างแอป
def create_app(settings=None, repository=None):
    if not settings:
        settings = config.get_settings()

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings

    if repository is None:
        repository = create_ratings_repository(settings)
    app.state.ratings_repository = repository
    logger.info("Ratings backend: %s", type(repository).__name__)

    register_exception_handlers(app)
    app.include_router(router.get_router(), prefix="/api")

    return app
