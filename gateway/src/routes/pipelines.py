from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from typing import List, Optional

from engine.src.models.db import PipelineRun, PipelineStep
from gateway.src.db.database import get_db
from gateway.src.models.run import PipelineRunResponse
from gateway.src.services.queue import get_run_status

router = APIRouter(prefix="/pipelines", tags=["pipelines"])

async def _load_run(run_id: str, db: AsyncSession) -> PipelineRun:
    query = (
        select(PipelineRun)
        .options(selectinload(PipelineRun.steps))
        .where(PipelineRun.id == run_id)
    )
    result = await db.execute(query)
    run = result.scalar_one_or_none()

    if not run:
        raise HTTPException(status_code=404, detail="Pipeline run not found")
    return run

@router.get("/runs", response_model=List[PipelineRunResponse])
async def list_runs(
    limit: int = 20,
    offset: int = 0,
    status: Optional[str] = None,
    branch: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    """List recorded pipeline runs, newest first."""
    query = (
        select(PipelineRun)
        .options(selectinload(PipelineRun.steps))
        .order_by(PipelineRun.created_at.desc())
    )

    if status:
        query = query.where(PipelineRun.status == status)
    if branch:
        query = query.where(PipelineRun.branch == branch)

    query = query.limit(limit).offset(offset)

    result = await db.execute(query)
    return result.scalars().all()

@router.get("/runs/{run_id}", response_model=PipelineRunResponse)
async def get_run(run_id: str, db: AsyncSession = Depends(get_db)):
    """Get a specific pipeline run."""
    return await _load_run(run_id, db)

@router.get("/runs/{run_id}/status")
async def get_run_status_endpoint(run_id: str, db: AsyncSession = Depends(get_db)):
    """Recorded verdict, reporting verdict and live queue status of a run."""
    run = await _load_run(run_id, db)
    live_status = await get_run_status(run_id)

    return {
        "run_id": run_id,
        "status": run.status,
        "live_status": live_status,
        "failed_step": run.failed_step,
        "report_status": run.report_status,
        "steps": [
            {
                "name": step.name,
                "action": step.action,
                "status": step.status,
                "order": step.step_order,
            }
            for step in run.steps
        ]
    }

@router.get("/runs/{run_id}/logs")
async def get_run_logs(run_id: str, db: AsyncSession = Depends(get_db)):
    """Get masked output for all steps in a pipeline run."""
    query = (
        select(PipelineStep)
        .where(PipelineStep.run_id == run_id)
        .order_by(PipelineStep.step_order)
    )
    result = await db.execute(query)
    steps = result.scalars().all()

    if not steps:
        raise HTTPException(status_code=404, detail="Pipeline run not found")

    return {
        "run_id": run_id,
        "steps": [
            {
                "name": step.name,
                "status": step.status,
                "error_kind": step.error_kind,
                "logs": step.logs,
                "started_at": step.started_at,
                "finished_at": step.finished_at,
            }
            for step in steps
        ]
    }

@router.get("/stats")
async def get_pipeline_stats(db: AsyncSession = Depends(get_db)):
    """Run counts by status and by reporting outcome."""
    result = await db.execute(
        select(PipelineRun.status, func.count(PipelineRun.id))
        .group_by(PipelineRun.status)
    )
    status_counts = {row[0]: row[1] for row in result.all()}

    result = await db.execute(
        select(PipelineRun.report_status, func.count(PipelineRun.id))
        .where(PipelineRun.report_status.is_not(None))
        .group_by(PipelineRun.report_status)
    )
    report_counts = {row[0]: row[1] for row in result.all()}

    return {
        "runs": status_counts,
        "reports": report_counts,
        "total_runs": sum(status_counts.values()),
    }
