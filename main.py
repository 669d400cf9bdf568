from fastapi import FastAPI, Depends, HTTPException, status, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
import uvicorn

from backoffice.config import settings
from backoffice.core.logging_config import setup_logging, get_logger
from backoffice.database.session import get_db, init_db
from backoffice.dependencies import get_super_admin_lookup, shutdown_audit_dispatcher
from backoffice.routes import group_router, role_router, user_router, audit_log_router
from backoffice.seed.seed_data import seed_iam, ensure_guest_role_attached

# Setup logging as early as possible
setup_logging(log_level=settings.LOG_LEVEL)

logger = get_logger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Group membership, permission cache and audit API",
    version=settings.APP_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(group_router, prefix=settings.API_PREFIX)
app.include_router(role_router, prefix=settings.API_PREFIX)
app.include_router(user_router, prefix=settings.API_PREFIX)
app.include_router(audit_log_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.APP_NAME} API"}


@app.get("/health")
async def health_check():
    return {"message": "I Am Alive!!"}


@app.post("/seed-database")
def seed_database(
    force: bool = Query(False, description="Also forget the cached Super Admin role id"),
    db: Session = Depends(get_db),
):
    logger.info("Starting database seeding...")
    try:
        seed_iam(db)
        ensure_guest_role_attached(db)
        if force:
            get_super_admin_lookup().reset()
        logger.info("Database seeding completed successfully.")
        return {"message": "Database seeded successfully."}
    except Exception as e:
        logger.exception(f"Seeding failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database seeding failed. Check server logs for details.",
        ) from e


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info(f"{settings.APP_NAME} starting up (env={settings.ENV})")
    init_db()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    shutdown_audit_dispatcher()
    logger.info(f"{settings.APP_NAME} shutting down")


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
