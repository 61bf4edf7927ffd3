"""
Queue worker - pulls runs from Redis and executes them.
"""

import asyncio
import logging
import json
import redis.asyncio as redis
from typing import Optional, Dict, Any

from engine.src.config import get_settings
from engine.src.services.executor import execute_pipeline
from engine.src.services.provisioner import ProvisionError

logger = logging.getLogger(__name__)
settings = get_settings()

PIPELINE_QUEUE = "shipline:jobs"
PIPELINE_STATUS = "shipline:status"

def get_redis_client() -> redis.Redis:
    return redis.from_url(settings.redis_url, decode_responses=True)

async def get_next_job(client: redis.Redis) -> Optional[Dict[str, Any]]:
    """Pull next job from Redis queue."""
    result = await client.brpop(PIPELINE_QUEUE, timeout=5)
    if result:
        _, job_data = result
        return json.loads(job_data)
    return None

async def set_live_status(client: redis.Redis, run_id: str, status: str):
    await client.hset(PIPELINE_STATUS, run_id, status)

async def run_job(client: redis.Redis, job: Dict[str, Any]) -> str:
    """Execute one job and publish its live status. Returns the final status."""
    run_id = job.get("run_id", "unknown")
    await set_live_status(client, run_id, "running")

    try:
        result = await execute_pipeline(job)
        status = result.status.value if result else "skipped"
    except ProvisionError as e:
        logger.error(f"Run {run_id} rejected: {e}")
        status = "rejected"
    except Exception as e:
        logger.exception(f"Failed to execute pipeline {run_id}: {e}")
        status = "failed"

    await set_live_status(client, run_id, status)
    return status

async def worker_loop():
    """Main worker loop. Runs up to max_concurrent_runs jobs at once."""
    logger.info("Worker started, waiting for jobs...")

    client = get_redis_client()
    slots = asyncio.Semaphore(settings.max_concurrent_runs)
    in_flight = set()

    async def run_in_slot(job: Dict[str, Any]):
        try:
            await run_job(client, job)
        finally:
            slots.release()

    try:
        while True:
            try:
                await slots.acquire()
                job = await get_next_job(client)

                if not job:
                    slots.release()
                    continue

                logger.info(f"Received job for run {job.get('run_id', 'unknown')}")
                task = asyncio.create_task(run_in_slot(job))
                in_flight.add(task)
                task.add_done_callback(in_flight.discard)

            except asyncio.CancelledError:
                logger.info("Worker shutting down...")
                break
            except Exception as e:
                slots.release()
                logger.exception(f"Worker error: {e}")
                await asyncio.sleep(5)
    finally:
        for task in in_flight:
            task.cancel()
        await client.close()

def run_worker():
    """Entry point for worker."""
    asyncio.run(worker_loop())
