from contextlib import asynccontextmanager
import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import TimesheetError
from app.core.logging import configure_logging
from app.database import SessionLocal, configure_database
from app.routers.auth import router as auth_router
from app.routers.export import router as export_router
from app.routers.reference_data import router as reference_data_router
from app.routers.timesheet_entries import router as timesheet_entries_router
from app.routers.users import router as users_router
from app.services.auth_service import bootstrap_admin

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_ORIGINS = "http://localhost:5173,http://localhost:5174"


def _allowed_origins() -> list[str]:
    raw = os.getenv("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS)
    return [o.strip() for o in raw.split(",") if o.strip()]


def _bootstrap_admin() -> None:
    configure_database()
    db = SessionLocal()
    try:
        bootstrap_admin(db)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Admin bootstrap failed")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    _bootstrap_admin()
    yield


app = FastAPI(
    title="Crew Timesheet Service",
    lifespan=lifespan,
)


@app.middleware("http")
async def catch_unhandled_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled exception", extra={"path": request.url.path})
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TimesheetError)
async def timesheet_error_handler(request: Request, exc: TimesheetError):
    if exc.status_code >= 500:
        logger.error(
            exc.message,
            exc_info=exc.__cause__ is not None,
            extra={"path": request.url.path, "kind": exc.kind},
        )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Storage error", exc_info=exc, extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.include_router(auth_router)
app.include_router(reference_data_router)
app.include_router(timesheet_entries_router)
app.include_router(export_router)
app.include_router(users_router)


@app.get("/")
def root():
    return {"status": "Crew Timesheet Service running"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": "1.0.0",
    }


def run() -> None:
    import uvicorn

    uvicorn.run("app.main:app", host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    run()
