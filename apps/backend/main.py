# apps/backend/main.py
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apps.backend.config.settings import settings
from apps.backend.middleware.access_log import install_access_log
from apps.backend.middleware.errors import install_error_handlers
from apps.backend.utils.keepalive import start_keepalive_tasks

from apps.backend.routes.health import router as health_router
from apps.backend.routes.keepalive_status import router as keepalive_router
from apps.backend.routes.levels import router as levels_router
from apps.backend.routes.promoters import router as promoters_router
from apps.backend.routes.referrals import router as referrals_router
from apps.backend.routes.admin import router as admin_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("canwin.main")

app = FastAPI(
    title="CanWin Referral Platform",
    version=settings.CANWIN_VERSION,
    description="Promoter referrals, points and membership levels",
)

scheduler = AsyncIOScheduler()

# -------------------------------------------------------------------
# Error handling (stable envelopes, no stack leaks)
# -------------------------------------------------------------------
install_error_handlers(app)

# -------------------------------------------------------------------
# CORS (browser client)
# -------------------------------------------------------------------
if settings.CORS_MODE == "allowlist":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

# -------------------------------------------------------------------
# Access log (sensitive headers masked)
# -------------------------------------------------------------------
install_access_log(app)

# -------------------------------------------------------------------
# Routers
# -------------------------------------------------------------------
app.include_router(health_router)
app.include_router(keepalive_router)

app.include_router(levels_router)
app.include_router(promoters_router)
app.include_router(referrals_router)
app.include_router(admin_router)

# -------------------------------------------------------------------
# Root
# -------------------------------------------------------------------
@app.get("/")
async def root():
    return {
        "status": "CanWin Online",
        "environment": settings.ENVIRONMENT,
        "routes": [
            "/health",
            "/api/keep-alive",
            "/levels",
            "/promoters",
            "/courses",
            "/referrals",
            "/admin",
        ],
    }

# -------------------------------------------------------------------
# Startup / shutdown (keepalive scheduler is opt-in)
# -------------------------------------------------------------------
@app.on_event("startup")
async def startup_event():
    if settings.KEEPALIVE_ENABLED:
        start_keepalive_tasks(scheduler, settings.KEEPALIVE_INTERVAL_SECONDS)
        scheduler.start()
    log.info("CanWin starting (keepalive %s)", "on" if settings.KEEPALIVE_ENABLED else "off")


@app.on_event("shutdown")
async def shutdown_event():
    if scheduler.running:
        scheduler.shutdown(wait=False)
