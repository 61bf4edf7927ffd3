from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

class StepResponse(BaseModel):
    id: str
    name: str
    action: str
    status: str
    step_order: int
    error_kind: Optional[str] = None
    exit_code: Optional[int] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PipelineRunResponse(BaseModel):
    id: str
    event_kind: str
    branch: str
    commit_sha: str
    status: str
    repo_full_name: Optional[str] = None
    triggered_by: Optional[str] = None
    failed_step: Optional[int] = None
    report_status: Optional[str] = None
    report_detail: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    steps: List[StepResponse] = []

    class Config:
        from_attributes = True
