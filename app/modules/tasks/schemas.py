from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date

from app.modules.projects.models import ProjectStatus, ProjectPriority


class TaskCreate(BaseModel):
    project_uuid: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.ON_TRACK
    priority: ProjectPriority = ProjectPriority.MEDIUM
    due_date: Optional[date] = None
    assigned_user_ids: Optional[List[int]] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    priority: Optional[ProjectPriority] = None
    due_date: Optional[date] = None
    assigned_user_ids: Optional[List[int]] = None


class AssignmentCreate(BaseModel):
    user_id: int
