from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
import redis.asyncio as redis

from engine.src.services.definition_loader import PipelineConfigError
from gateway.src.db.database import get_db
from gateway.src.config import get_settings
from gateway.src.services.pipeline import get_definition
from gateway.src.services.queue import get_queue_length

settings = get_settings()

router = APIRouter(tags=["health"])

async def check_db(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
        return "healthy"
    except Exception as e:
        return f"unhealthy: {e}"

async def check_redis() -> str:
    try:
        client = redis.from_url(settings.redis_url)
        await client.ping()
        await client.close()
        return "healthy"
    except Exception as e:
        return f"unhealthy: {e}"

def check_workflow() -> str:
    try:
        get_definition()
        return "healthy"
    except PipelineConfigError as e:
        return f"unhealthy: {e}"

@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "shipline-gateway"}

@router.get("/health/db")
async def db_health_check(db: AsyncSession = Depends(get_db)):
    state = await check_db(db)
    return {"status": "healthy" if state == "healthy" else "unhealthy", "database": state}

@router.get("/health/redis")
async def redis_health_check():
    state = await check_redis()
    return {"status": "healthy" if state == "healthy" else "unhealthy", "redis": state}

@router.get("/health/workflow")
async def workflow_health_check():
    state = check_workflow()
    return {"status": "healthy" if state == "healthy" else "unhealthy", "workflow": state}

@router.get("/health/queue")
async def queue_health_check():
    try:
        queue_length = await get_queue_length()
        return {
            "status": "healthy",
            "queue_length": queue_length,
        }
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}

@router.get("/health/all")
async def full_health_check(db: AsyncSession = Depends(get_db)):
    """Combined health check for all services."""
    health = {
        "api": "healthy",
        "database": await check_db(db),
        "redis": await check_redis(),
        "workflow": check_workflow(),
        "queue_length": 0,
    }

    try:
        health["queue_length"] = await get_queue_length()
    except Exception:
        pass

    overall = "healthy" if all(
        v == "healthy" for k, v in health.items()
        if k not in ["queue_length"]
    ) else "degraded"

    return {"status": overall, "services": health}
