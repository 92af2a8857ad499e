from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rollcall.api.v1.analytics.router import router as analytics_router
from rollcall.api.v1.attendance.router import router as attendance_router
from rollcall.api.v1.auth.router import router as auth_router
from rollcall.api.v1.fees.router import router as fees_router
from rollcall.api.v1.roster.router import router as roster_router
from rollcall.api.v1.staff.router import router as staff_router
from rollcall.api.v1.working_days.router import router as working_days_router
from rollcall.core.config import settings
from rollcall.middleware.logging import add_logging_middleware, setup_logging


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Rollcall")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    add_logging_middleware(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(staff_router)
    app.include_router(roster_router)
    app.include_router(working_days_router)
    app.include_router(attendance_router)
    app.include_router(analytics_router)
    app.include_router(fees_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
