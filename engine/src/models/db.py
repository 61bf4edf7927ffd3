"""
Database models for run history.

Column types are portable so the same tables work on PostgreSQL in
production and SQLite in tests. Nothing here ever holds a secret value.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, JSON
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
import uuid

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class PipelineRun(Base):
    __tablename__ = "pipeline_runs"

    id = Column(String(36), primary_key=True, default=_new_id)
    repo_full_name = Column(String(255))
    event_kind = Column(String(50), nullable=False)
    commit_sha = Column(String(40), nullable=False, default="")
    branch = Column(String(255), nullable=False)
    status = Column(String(50), default="pending")
    triggered_by = Column(String(255))
    definition = Column(JSON)
    failed_step = Column(Integer)
    report_status = Column(String(50))
    report_detail = Column(Text)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    steps = relationship("PipelineStep", back_populates="run", order_by="PipelineStep.step_order")


class PipelineStep(Base):
    __tablename__ = "pipeline_steps"

    id = Column(String(36), primary_key=True, default=_new_id)
    run_id = Column(String(36), ForeignKey("pipeline_runs.id", ondelete="CASCADE"))
    name = Column(String(255), nullable=False)
    action = Column(String(50), nullable=False)
    status = Column(String(50), default="pending")
    step_order = Column(Integer, nullable=False)
    error_kind = Column(String(50))
    exit_code = Column(Integer)
    logs = Column(Text)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    run = relationship("PipelineRun", back_populates="steps")
