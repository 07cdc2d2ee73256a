from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from parkpass.api.routers.bookings import router as bookings_router
from parkpass.config.settings_env import settings
from parkpass.domain.exceptions import (
    BookingError,
    InvalidSelection,
    CapacityConflict,
    InvalidTransition,
    ScopeMismatch,
    AccessDenied,
    NotFound,
)
from parkpass.infrastructure.persistence.database import init_db

ERROR_STATUS_CODES = {
    InvalidSelection: 422,
    CapacityConflict: 409,
    InvalidTransition: 409,
    ScopeMismatch: 403,
    AccessDenied: 403,
    NotFound: 404,
}


def status_code_for(error: BookingError) -> int:
    for error_type in type(error).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return 400


async def booking_error_handler(request: Request, exc: BookingError):
    status_code = status_code_for(exc)
    if isinstance(exc, (InvalidTransition, ScopeMismatch)):
        logger.warning(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": exc.message, "retryable": exc.retryable},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


def create_app(with_lifespan: bool = True) -> FastAPI:
    app = FastAPI(title="ParkPass Booking API", lifespan=lifespan if with_lifespan else None)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(BookingError, booking_error_handler)
    app.include_router(bookings_router)

    @app.get("/")
    def read_root():
        return {"message": "ParkPass Booking API is running"}

    return app


app = create_app()


def run():
    uvicorn.run("parkpass.main_api:app", host=settings.FASTAPI_HOST, port=settings.FASTAPI_PORT, reload=settings.DEV_MODE)


if __name__ == "__main__":
    run()
