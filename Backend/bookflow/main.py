import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import onboarding, routes
from .core.config import get_settings
from .core.db import AsyncSessionLocal, Base, engine
from .core.errors import DomainError
from .core.responses import ErrorCodes, error_response
from .seed import seed_demo_business


settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="BookFlow Booking Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, exc.details),
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content=error_response(ErrorCodes.DATABASE_ERROR, "A database error occurred"),
    )


app.include_router(onboarding.router, tags=["businesses"])
app.include_router(routes.router)


@app.on_event("startup")
async def on_startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if settings.seed_demo_business:
        async with AsyncSessionLocal() as session:
            await seed_demo_business(session)


@app.on_event("shutdown")
async def on_shutdown():
    await routes.get_dispatcher().drain()


@app.get("/health")
async def healthcheck():
    return {"ok": True}
