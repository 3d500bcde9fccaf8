from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from soundshelf.api.deps import get_db
from soundshelf.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Check system health and DB connection."""
    try:
        await db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        db_status = f"disconnected: {str(e)}"

    return {"status": "ok", "database": db_status, "version": "0.1.0"}


@router.get("/config")
async def get_config():
    """Return public configuration."""
    return {
        "log_level": settings.LOG_LEVEL,
        "music_path": settings.MUSIC_PATH,
        "scan_batch_size": settings.SCAN_BATCH_SIZE,
        "scan_path_batch_size": settings.SCAN_PATH_BATCH_SIZE,
        "scan_optimized": settings.SCAN_OPTIMIZED,
    }
