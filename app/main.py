import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.database import Base, engine
from app.core.exceptions import DuplicateServiceTagError, InvalidLinkError, NotFoundError, ValidationError
from app.scheduler import start_scheduler, scheduler
from app.api import analytics, cron, customers, programs, settings as tenant_settings, sync, templates, track

from app.models import *  # noqa: F401,F403  (register tables before create_all)

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


app = FastAPI(title="ReviewLoop Backend")

# -------------------------
# CORS (dashboard frontend)
# -------------------------
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -------------------------
# Domain errors -> HTTP
# -------------------------
@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(DuplicateServiceTagError)
def duplicate_tag_handler(request: Request, exc: DuplicateServiceTagError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
def validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(InvalidLinkError)
def invalid_link_handler(request: Request, exc: InvalidLinkError):
    return JSONResponse(status_code=403, content={"detail": "Invalid or Expired Link"})


# -------------------------
# Include Routers
# -------------------------
app.include_router(track.router)
app.include_router(cron.router)
app.include_router(tenant_settings.router)
app.include_router(customers.router)
app.include_router(programs.router)
app.include_router(templates.router)
app.include_router(analytics.router)
app.include_router(sync.router)


# -------------------------
# DB INIT
# -------------------------
Base.metadata.create_all(bind=engine)

# -------------------------
# FastAPI lifecycle
# -------------------------

@app.on_event("startup")
def startup():
    if settings.ENABLE_SCHEDULER:
        start_scheduler()


@app.on_event("shutdown")
def shutdown():
    if scheduler.running:
        scheduler.shutdown()


@app.get("/")
def root():
    return {"status": "running"}
