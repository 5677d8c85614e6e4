# backend/main.py
from contextlib import asynccontextmanager
from datetime import datetime
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

load_dotenv()

from config import settings
from database import SessionLocal, init_db
from services.config_service import config_service
from utils import token_blacklist
from utils.errors import register_exception_handlers

# Router imports
from routes.auth import router as auth_router
from routes.admin import router as admin_router
from routes.logs import router as logs_router
from routes.course_types import router as course_types_router
from routes.course_requests import router as course_requests_router
from routes.instructor import router as instructor_router
from routes.accounting import router as accounting_router
from routes.organization import router as organization_router
from routes.vendor import router as vendor_router
from routes.timesheet import router as timesheet_router
from routes.payment_requests import router as payment_requests_router
from routes.sysadmin import router as sysadmin_router
from routes.profile_changes import router as profile_changes_router
from routes.analytics import router as analytics_router
from routes.notifications import router as notifications_router
from routes.hr_dashboard import router as hr_dashboard_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("cpr_training")

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tables, default configuration and blacklist housekeeping
    init_db()
    db = SessionLocal()
    try:
        config_service.seed_defaults(db)
        token_blacklist.cleanup_expired(db, datetime.utcnow())
    finally:
        db.close()
    yield


app = FastAPI(title="CPR Training Manager API", version="1.0.0", lifespan=lifespan)

register_exception_handlers(app)

# CORS Configuration
# Frontend URL comes from the environment, local dev servers are always allowed
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)
origins.extend(settings.EXTRA_CORS_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Router registration
for router in (
    auth_router,
    admin_router,
    logs_router,
    course_types_router,
    course_requests_router,
    instructor_router,
    accounting_router,
    organization_router,
    vendor_router,
    timesheet_router,
    payment_requests_router,
    sysadmin_router,
    profile_changes_router,
    analytics_router,
    notifications_router,
    hr_dashboard_router,
):
    app.include_router(router, prefix=API_PREFIX)


@app.get("/")
def read_root():
    return {"message": "CPR Training Manager API is running"}


@app.get(f"{API_PREFIX}/health")
def health():
    return {"success": True, "data": {"status": "ok"}}
