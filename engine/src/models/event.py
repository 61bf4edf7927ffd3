"""
Trigger event model shared by the gateway and the engine.
"""

from typing import Optional

from pydantic import BaseModel

from engine.src.models.definition import EventKind


class TriggerEvent(BaseModel):
    kind: EventKind
    branch: str
    commit_sha: str = ""
    clone_url: str = ""
    repo_full_name: str = ""
    triggered_by: str = ""
    action: Optional[str] = None

    class Config:
        frozen = True
